import logging
import os
from datetime import datetime, timezone

import pytest

from isomapper.bond import (
    AccountRecord,
    CamtToBondMapper,
    TransactionRecord,
    validate_with_summary,
)
from isomapper.errors import AnalyticsValidationError

EXAMPLES_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "example_messages")


def load(name):
    with open(os.path.join(EXAMPLES_DIR, name), "rb") as f:
        return f.read()


def test_parse_accounts():
    account, = CamtToBondMapper().parse_accounts(load("camt053_statement.xml"))

    assert account.account_identifier == "123456789"
    assert account.currency == "USD"
    assert account.opening_balance.amount == "100000"
    assert account.opening_balance.date == datetime(2023, 4, 20, tzinfo=timezone.utc)
    assert account.closing_balance.amount == "100475"


def test_parse_transactions():
    first, second = CamtToBondMapper().parse_transactions(load("camt053_statement.xml"))

    assert first.provider_id == "E2E-0001"
    assert first.amount == "1000"
    assert first.currency == "USD"
    assert first.type == "ACH Credit Reject"
    assert first.ending_balance == "101000"
    assert first.reference == "E2E-0001"
    assert first.description == "Invoice 42"
    assert first.beneficiary.account_identifier == "987654321"
    assert first.beneficiary.metadata["name"] == "Acme Corp"

    assert second.provider_id is None
    assert second.amount == "525"
    assert second.type == "PMNT"
    # the running balance restarts from the opening balance for every entry
    assert second.ending_balance == "100525"
    assert second.date == datetime(2023, 4, 20, 10, 0, tzinfo=timezone.utc)
    assert second.reference == "SYN_123456789_20230420_525"
    assert second.description is None
    assert second.beneficiary.account_identifier == "Jane Doe"


def test_parse_nests_transactions_under_accounts():
    account, = CamtToBondMapper().parse(load("camt053_statement.xml"))

    assert account.account_identifier == "123456789"
    assert [t.reference for t in account.transactions] == ["E2E-0001", "SYN_123456789_20230420_525"]


def test_missing_opening_balance():
    xml = load("camt053_statement.xml").replace(b"<Cd>OPBD</Cd>", b"<Cd>ITBD</Cd>")
    with pytest.raises(AnalyticsValidationError, match="Opening balance not found"):
        CamtToBondMapper().parse_accounts(xml)


def test_missing_closing_balance():
    xml = load("camt053_statement.xml").replace(b"<Cd>CLBD</Cd>", b"<Cd>ITBD</Cd>")
    with pytest.raises(AnalyticsValidationError, match="Closing balance not found"):
        CamtToBondMapper().parse_transactions(xml)


def test_custom_balance_codes():
    xml = load("camt053_statement.xml").replace(b"<Cd>OPBD</Cd>", b"<Cd>ITBD</Cd>")
    account, = CamtToBondMapper(opening_balance_types=["ITBD"]).parse_accounts(xml)
    assert account.opening_balance.amount == "100000"


def test_synthetic_reference_without_date():
    assert CamtToBondMapper.synthetic_reference("ACC", None, 42) == "SYN_ACC_00000000_42"


def test_validate_with_summary_warnings(caplog):
    with caplog.at_level(logging.WARNING, logger="isomapper.bond"):
        result = validate_with_summary(AccountRecord, {"account_identifier": "ACC-1", "currency": "EUR"})

    assert result.success
    assert result.errors == []
    assert result.data.account_identifier == "ACC-1"
    assert [w["field"] for w in result.warnings] == ["closing_balance", "opening_balance"]
    assert "AccountRecord validation produced 2 warning(s)" in caplog.text


def test_validate_with_summary_errors():
    with pytest.raises(AnalyticsValidationError) as excinfo:
        validate_with_summary(AccountRecord, {"account_identifier": "ACC-1", "currency": "euro"})

    assert "AccountRecord validation failed with 1 error(s)" in str(excinfo.value)
    assert excinfo.value.errors[0]["field"] == "currency"


def test_validate_with_summary_list_prefixes_fields():
    record = {
        "amount": "100",
        "currency": "USD",
        "type": "PMNT",
        "ending_balance": "100",
        "date": "2023-04-20T00:00:00Z",
        "reference": "R-1",
    }
    result = validate_with_summary(TransactionRecord, [record, dict(record, reference="R-2")])
    assert [r.reference for r in result.data] == ["R-1", "R-2"]
    assert "1.beneficiary" in [w["field"] for w in result.warnings]

    with pytest.raises(AnalyticsValidationError) as excinfo:
        validate_with_summary(TransactionRecord, [record, dict(record, reference=None)])
    assert [e["field"] for e in excinfo.value.errors] == ["1.reference"]
