from datetime import datetime, timezone

import pytest

from isomapper.camt import CashManagementGetTransaction
from isomapper.errors import InvalidStructureError
from isomapper.models import TransactionCriterionType

GET_TRANSACTION = b"""<?xml version="1.0" encoding="UTF-8"?>
<Document xmlns="urn:iso:std:iso:20022:tech:xsd:camt.005.001.02">
    <GetTx>
        <MsgHdr>
            <MsgId>GETTX-001</MsgId>
            <CreDtTm>2023-05-02T08:30:00Z</CreDtTm>
        </MsgHdr>
        <TxQryDef>
            <TxCrit>
                <NewCrit>
                    <SchCrit>
                        <PmtSch>
                            <MsgId>PAY-MSG-1</MsgId>
                            <MsgId>PAY-MSG-2</MsgId>
                            <ReqdExctnDt>
                                <DtSch>
                                    <EQDt>2023-05-01</EQDt>
                                </DtSch>
                            </ReqdExctnDt>
                            <PmtId>
                                <LngBizId>
                                    <EndToEndId>E2E-A</EndToEndId>
                                </LngBizId>
                            </PmtId>
                        </PmtSch>
                    </SchCrit>
                </NewCrit>
            </TxCrit>
        </TxQryDef>
    </GetTx>
</Document>"""


def test_parse_get_transaction():
    message = CashManagementGetTransaction.from_xml(GET_TRANSACTION)
    assert message.header.message_id == "GETTX-001"

    by_message, by_date, by_end_to_end = message.new_criteria.search_criteria
    assert by_message.type is TransactionCriterionType.MESSAGE_ID
    assert by_message.msg_ids_equal_to == ["PAY-MSG-1", "PAY-MSG-2"]
    assert by_date.type is TransactionCriterionType.REQUESTED_EXECUTION_DATE
    assert by_date.date_equal_to == datetime(2023, 5, 1, tzinfo=timezone.utc)
    assert by_end_to_end.type.value == "PmtSch.PmtId.LngBizId.EndToEndId"
    assert by_end_to_end.end_to_end_ids_equal_to == ["E2E-A"]


def test_round_trip_is_idempotent():
    message = CashManagementGetTransaction.from_xml(GET_TRANSACTION)
    reparsed = CashManagementGetTransaction.from_xml(message.serialize())
    assert reparsed == message
    assert reparsed.to_json() == message.to_json()


def test_multiple_execution_dates_are_rejected():
    xml = GET_TRANSACTION.replace(
        b"</ReqdExctnDt>",
        b"</ReqdExctnDt><ReqdExctnDt><DtSch><EQDt>2023-05-03</EQDt></DtSch></ReqdExctnDt>",
    )
    with pytest.raises(InvalidStructureError, match="multiple ReqdExctnDt"):
        CashManagementGetTransaction.from_xml(xml)


def test_missing_criteria():
    xml = b"""<Document xmlns="urn:iso:std:iso:20022:tech:xsd:camt.005.001.02">
    <GetTx><MsgHdr><MsgId>X</MsgId></MsgHdr><TxQryDef><TxCrit><NewCrit><NewQryNm>Q</NewQryNm></NewCrit></TxCrit></TxQryDef></GetTx>
</Document>"""
    with pytest.raises(InvalidStructureError, match="missing search criteria"):
        CashManagementGetTransaction.from_xml(xml)
