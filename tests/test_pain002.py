from datetime import datetime, timezone

import pytest

from isomapper.errors import InvalidStructureError, InvalidXmlNamespaceError
from isomapper.models import StatusCode
from isomapper.pain import PaymentStatusReport

STATUS_REPORT = b"""<?xml version="1.0" encoding="UTF-8"?>
<Document xmlns="urn:iso:std:iso:20022:tech:xsd:pain.002.001.03">
    <CstmrPmtStsRpt>
        <GrpHdr>
            <MsgId>STS-001</MsgId>
            <CreDtTm>2023-04-21T08:30:00Z</CreDtTm>
            <InitgPty>
                <Nm>Bank of Example</Nm>
            </InitgPty>
        </GrpHdr>
        <OrgnlGrpInfAndSts>
            <OrgnlMsgId>MSG-SEPA-1</OrgnlMsgId>
            <OrgnlMsgNmId>pain.001.001.03</OrgnlMsgNmId>
            <GrpSts>PART</GrpSts>
        </OrgnlGrpInfAndSts>
        <OrgnlPmtInfAndSts>
            <OrgnlPmtInfId>PMTINF-1</OrgnlPmtInfId>
            <PmtInfSts>ACSP</PmtInfSts>
            <TxInfAndSts>
                <OrgnlEndToEndId>E2E-1</OrgnlEndToEndId>
                <TxSts>ACSC</TxSts>
            </TxInfAndSts>
            <TxInfAndSts>
                <OrgnlEndToEndId>E2E-2</OrgnlEndToEndId>
                <TxSts>RJCT</TxSts>
                <StsRsnInf>
                    <Rsn>
                        <Cd>AC04</Cd>
                    </Rsn>
                    <AddtlInf>Account closed</AddtlInf>
                </StsRsnInf>
            </TxInfAndSts>
        </OrgnlPmtInfAndSts>
    </CstmrPmtStsRpt>
</Document>"""


def test_statuses_are_ordered_group_payment_transaction():
    report = PaymentStatusReport.from_xml(STATUS_REPORT)

    assert [s.type for s in report.statuses] == ["group", "payment", "transaction", "transaction"]
    assert [s.original_id for s in report.statuses] == ["MSG-SEPA-1", "PMTINF-1", "E2E-1", "E2E-2"]
    assert report.status is StatusCode.PARTIALLY_ACCEPTED
    assert report.original_id == "MSG-SEPA-1"
    assert report.original_message_id == "MSG-SEPA-1"


def test_header_and_rejection_reason():
    report = PaymentStatusReport.from_xml(STATUS_REPORT)

    assert report.message_id == "STS-001"
    assert report.creation_date == datetime(2023, 4, 21, 8, 30, tzinfo=timezone.utc)
    assert report.initiating_party.name == "Bank of Example"

    rejected = report.statuses[-1]
    assert rejected.status is StatusCode.REJECTED
    assert rejected.reason.code == "AC04"
    assert rejected.reason.additional_information == "Account closed"


def test_without_group_status_payment_status_comes_first():
    xml = STATUS_REPORT.replace(b"<GrpSts>PART</GrpSts>", b"")
    report = PaymentStatusReport.from_xml(xml)

    assert report.statuses[0].type == "payment"
    assert report.status is StatusCode.ACCEPTED_SETTLEMENT_IN_PROCESS
    assert report.original_id == "PMTINF-1"


def test_round_trip():
    report = PaymentStatusReport.from_xml(STATUS_REPORT)
    xml = report.serialize()

    assert "<OrgnlMsgNmId>pain.001.001.03</OrgnlMsgNmId>" in xml
    assert PaymentStatusReport.from_xml(xml) == report


def test_unknown_status():
    xml = STATUS_REPORT.replace(b"<TxSts>ACSC</TxSts>", b"<TxSts>NOPE</TxSts>")
    with pytest.raises(InvalidStructureError, match="Unknown status: NOPE"):
        PaymentStatusReport.from_xml(xml)


def test_missing_message_id():
    xml = STATUS_REPORT.replace(b"<MsgId>STS-001</MsgId>", b"")
    with pytest.raises(InvalidStructureError, match="missing GrpHdr.MsgId"):
        PaymentStatusReport.from_xml(xml)


def test_rejects_camt_namespace():
    xml = STATUS_REPORT.replace(b"pain.002.001.03", b"camt.053.001.02")
    with pytest.raises(InvalidXmlNamespaceError, match="Invalid PAIN.002 namespace"):
        PaymentStatusReport.from_xml(xml)
