import os
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from isomapper.camt import CashManagementEndOfDayReport
from isomapper.errors import InvalidStructureError, InvalidXmlError, InvalidXmlNamespaceError
from isomapper.models import BicAgent, LocalAccount

EXAMPLES_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "example_messages")


def load(name):
    with open(os.path.join(EXAMPLES_DIR, name), "rb") as f:
        return f.read()


def test_parse_statement_header_and_account():
    report = CashManagementEndOfDayReport.from_xml(load("camt053_statement.xml"))

    assert report.message_id == "STMT-MSG-20230420"
    assert report.creation_date == datetime(2023, 4, 20, 23, 0, tzinfo=timezone.utc)
    assert report.recipient.name == "Acme Treasury"

    statement = report.statements[0]
    assert statement.id == "STMT-001"
    assert statement.electronic_sequence_number == 7
    assert statement.account == LocalAccount(account_number="123456789", account_type="checking", currency="USD")
    assert statement.agent == BicAgent(bic="CHASUS33XXX")
    assert statement.num_of_entries == 14
    assert statement.sum_of_entries == Decimal("140")
    assert statement.net_amount_of_entries == 14000


def test_parse_entries_in_minor_units():
    """The first entry of the statement is a 10.00 USD ACH credit reject."""
    report = CashManagementEndOfDayReport.from_xml(load("camt053_statement.xml"))

    entry = report.entries[0]
    assert entry.amount == 1000
    assert entry.currency == "USD"
    assert entry.credit_debit_indicator == "credit"
    assert entry.proprietary_code == "ACH Credit Reject"
    assert entry.reversal is False
    assert entry.status == "BOOK"
    assert entry.booking_date == datetime(2023, 4, 20, tzinfo=timezone.utc)

    second = report.entries[1]
    assert second.amount == 525
    assert second.credit_debit_indicator == "debit"
    assert second.bank_transaction_code.domain_code == "PMNT"
    assert second.bank_transaction_code.domain_sub_family_code == "ESCT"


def test_parse_balances_and_transactions():
    report = CashManagementEndOfDayReport.from_xml(load("camt053_statement.xml"))

    assert [b.type for b in report.balances] == ["OPBD", "CLBD"]
    assert report.balances[0].amount == 100000
    assert report.balances[1].amount == 100475

    first, second = report.transactions
    assert first.end_to_end_id == "E2E-0001"
    assert first.transaction_amount == 1000
    assert first.creditor.name == "Acme Corp"
    assert first.creditor.account == LocalAccount(account_number="987654321")
    assert first.remittance_information == "Invoice 42"
    assert second.instructed_amount == 525
    assert second.debtor.name == "Jane Doe"


def test_reversal_flag_is_read():
    xml = load("camt053_statement.xml").replace(
        b"<CdtDbtInd>DBIT</CdtDbtInd>", b"<CdtDbtInd>DBIT</CdtDbtInd><RvslInd>true</RvslInd>"
    )
    report = CashManagementEndOfDayReport.from_xml(xml)
    assert report.entries[0].reversal is False
    assert report.entries[1].reversal is True


def test_round_trip_is_idempotent():
    report = CashManagementEndOfDayReport.from_xml(load("camt053_statement.xml"))
    xml = report.serialize()

    assert 'xmlns="urn:iso:std:iso:20022:tech:xsd:camt.053.001.02"' in xml
    assert '<Amt Ccy="USD">10.00</Amt>' in xml

    reparsed = CashManagementEndOfDayReport.from_xml(xml)
    assert reparsed == report
    assert reparsed.to_json() == report.to_json()


def test_json_entry_point():
    report = CashManagementEndOfDayReport.from_xml(load("camt053_statement.xml"))
    assert CashManagementEndOfDayReport.from_json(report.to_json()) == report


def test_rejects_other_message_types():
    pain002 = b"""<?xml version="1.0" encoding="UTF-8"?>
<Document xmlns="urn:iso:std:iso:20022:tech:xsd:pain.002.001.03">
    <CstmrPmtStsRpt>
        <GrpHdr><MsgId>STS-1</MsgId></GrpHdr>
    </CstmrPmtStsRpt>
</Document>"""
    with pytest.raises(InvalidXmlNamespaceError, match="Invalid CAMT.053 namespace"):
        CashManagementEndOfDayReport.from_xml(pain002)


def test_rejects_non_xml():
    with pytest.raises(InvalidXmlError):
        CashManagementEndOfDayReport.from_xml("HELLO!!")
    with pytest.raises(InvalidXmlError):
        CashManagementEndOfDayReport.from_xml(b"<NotADocument/>")


def test_missing_required_nodes():
    missing_header = b"""<Document xmlns="urn:iso:std:iso:20022:tech:xsd:camt.053.001.02">
    <BkToCstmrStmt><GrpHdr><CreDtTm>2023-04-20T23:00:00Z</CreDtTm></GrpHdr></BkToCstmrStmt>
</Document>"""
    with pytest.raises(InvalidStructureError, match="missing GrpHdr.MsgId"):
        CashManagementEndOfDayReport.from_xml(missing_header)

    bad_amount = load("camt053_statement.xml").replace(b">10.00<", b">ten<", 1)
    with pytest.raises(InvalidStructureError, match="Invalid amount in Stmt.Ntry.Amt"):
        CashManagementEndOfDayReport.from_xml(bad_amount)


def test_balance_without_currency_is_rejected():
    xml = load("camt053_statement.xml").replace(b'<Amt Ccy="USD">1000.00</Amt>', b"<Amt>1000.00</Amt>")
    with pytest.raises(InvalidStructureError, match="Missing currency in Stmt.Bal.Amt"):
        CashManagementEndOfDayReport.from_xml(xml)


def test_entry_without_currency_is_rejected():
    xml = load("camt053_statement.xml").replace(b'<Amt Ccy="USD">5.25</Amt>', b"<Amt>5.25</Amt>", 1)
    with pytest.raises(InvalidStructureError, match="Missing currency in Stmt.Ntry.Amt"):
        CashManagementEndOfDayReport.from_xml(xml)


def test_negative_entry_amount_is_rejected():
    xml = load("camt053_statement.xml").replace(b">10.00<", b">-10.00<", 1)
    with pytest.raises(InvalidStructureError, match="Negative amount in Stmt.Ntry.Amt"):
        CashManagementEndOfDayReport.from_xml(xml)
