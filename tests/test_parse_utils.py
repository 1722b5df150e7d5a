from datetime import datetime, timedelta, timezone

import pytest

from isomapper.errors import InvalidStructureError
from isomapper.models import (
    AbaAgent,
    BicAgent,
    IbanAccount,
    LocalAccount,
    MessageHeader,
    OtherAccountIdentification,
    Party,
    PostalAddress,
)
from isomapper.parse_utils import (
    export_account,
    export_account_identification,
    export_address,
    export_agent,
    export_message_header,
    export_party,
    format_date,
    format_datetime,
    generate_identifier,
    parse_account,
    parse_account_identification,
    parse_additional_information,
    parse_address,
    parse_agent,
    parse_amount,
    parse_bool,
    parse_credit_debit,
    parse_date,
    parse_message_header,
    parse_party,
    require_currency,
    sanitize,
)


def test_parse_date_prefers_date_time():
    parsed = parse_date({"DtTm": "2023-04-20T10:15:30Z", "Dt": "2023-01-01"})
    assert parsed == datetime(2023, 4, 20, 10, 15, 30, tzinfo=timezone.utc)


def test_parse_date_variants():
    assert parse_date({"Dt": "2023-04-20"}) == datetime(2023, 4, 20, tzinfo=timezone.utc)
    assert parse_date("2023-04-20T10:15:30") == datetime(2023, 4, 20, 10, 15, 30, tzinfo=timezone.utc)
    offset = parse_date("2023-04-20T10:15:30+02:00")
    assert offset == datetime(2023, 4, 20, 8, 15, 30, tzinfo=timezone.utc)
    assert offset.utcoffset() == timedelta(hours=2)
    assert parse_date("2023-04-20T10:15:30.123Z").microsecond == 123000
    assert parse_date(None) is None
    assert parse_date({"Dt": ""}) is None


def test_parse_date_rejects_garbage():
    with pytest.raises(InvalidStructureError, match="Invalid date"):
        parse_date("yesterday")
    with pytest.raises(InvalidStructureError):
        parse_date("2023-02-30")


def test_format_datetime_is_utc_with_z_suffix():
    value = datetime(2023, 4, 20, 12, 0, tzinfo=timezone(timedelta(hours=2)))
    assert format_datetime(value) == "2023-04-20T10:00:00.000Z"
    assert format_datetime(datetime(2023, 4, 20)) == "2023-04-20T00:00:00.000Z"
    assert format_datetime(None) is None
    assert format_date(datetime(2023, 4, 20, 23, 0, tzinfo=timezone.utc)) == "2023-04-20"


def test_parse_amount_names_the_path():
    assert parse_amount({"#text": "10.00", "@_Ccy": "USD"}, "USD") == 1000
    with pytest.raises(InvalidStructureError, match="Missing amount in Stmt.Bal.Amt"):
        parse_amount(None, "USD", "Stmt.Bal.Amt")
    with pytest.raises(InvalidStructureError, match="Invalid amount in Stmt.Bal.Amt: 'ten'"):
        parse_amount("ten", "USD", "Stmt.Bal.Amt")
    with pytest.raises(InvalidStructureError, match="Negative amount in Stmt.Bal.Amt: '-5.00'"):
        parse_amount({"#text": "-5.00", "@_Ccy": "USD"}, "USD", "Stmt.Bal.Amt")
    assert parse_amount("-140.00", "USD", signed=True) == -14000


def test_require_currency():
    assert require_currency({"#text": "10.00", "@_Ccy": "EUR"}, "Stmt.Ntry.Amt") == "EUR"
    with pytest.raises(InvalidStructureError, match="Missing currency in Stmt.Ntry.Amt"):
        require_currency("10.00", "Stmt.Ntry.Amt")


def test_scalar_helpers():
    assert parse_bool("true") is True
    assert parse_bool("false") is False
    assert parse_bool(None) is False
    assert parse_credit_debit("CRDT") == "credit"
    assert parse_credit_debit("DBIT") == "debit"
    assert parse_additional_information(["line one", "", "line two"]) == "line one\nline two"
    assert parse_additional_information(None) is None


def test_address_round_trip():
    raw = {"StrtNm": "Main St", "BldgNb": "1", "PstCd": "10001", "TwnNm": "New York", "Ctry": "US", "AdrLine": ["Suite 5"]}
    address = parse_address(raw)
    assert address == PostalAddress(
        street_name="Main St",
        building_number="1",
        post_code="10001",
        town_name="New York",
        country="US",
        address_lines=["Suite 5"],
    )
    assert parse_address(export_address(address)) == address
    assert parse_address({}) is None
    assert parse_address("text") is None


def test_accounts_are_iban_or_local():
    assert parse_account({"Id": {"IBAN": "DE89370400440532013000"}}) == IbanAccount(iban="DE89370400440532013000")

    local = parse_account({"Id": {"Othr": {"Id": "12345"}}, "Tp": {"Cd": "SVGS"}, "Ccy": "USD", "Nm": "Ops"})
    assert local == LocalAccount(account_number="12345", account_type="savings", currency="USD", name="Ops")
    assert export_account(local) == {"Id": {"Othr": {"Id": "12345"}}, "Tp": {"Cd": "SVGS"}, "Ccy": "USD", "Nm": "Ops"}
    assert parse_account(None) is None


def test_account_identification():
    other = parse_account_identification({"Othr": {"Id": "ACC-1", "SchmeNm": {"Cd": "BBAN"}, "Issr": "BANK"}})
    assert other == OtherAccountIdentification(id="ACC-1", issuer="BANK", scheme_name="BBAN")
    assert parse_account_identification(export_account_identification(other)) == other
    assert parse_account_identification({"IBAN": "GB90MIDL40051522334455"}).kind == "iban"


def test_agents_are_bic_or_aba():
    bic = parse_agent({"FinInstnId": {"BICFI": "DEUTDEFF"}})
    assert bic == BicAgent(bic="DEUTDEFF")
    assert export_agent(bic, "BICFI") == {"FinInstnId": {"BICFI": "DEUTDEFF", "PstlAdr": None}}

    aba = parse_agent({"FinInstnId": {"ClrSysMmbId": {"MmbId": "021000021"}}})
    assert aba == AbaAgent(routing_number="021000021")
    assert parse_agent(export_agent(aba)) == aba
    assert parse_agent({"FinInstnId": {"Othr": {"Id": "011000015"}}}) == AbaAgent(routing_number="011000015")
    assert parse_agent(None) is None


def test_party_round_trip():
    party = Party(id="ORG-1", name="Acme", address=PostalAddress(country="US"))
    assert parse_party(export_party(party)) == party
    assert parse_party({"Nm": "Bank", "Id": {"OrgId": {"BICOrBEI": "CHASUS33"}}}).id == "CHASUS33"
    assert parse_party(None) == Party()


def test_message_header_round_trip():
    header = MessageHeader(
        message_id="MSG-1",
        creation_date_time=datetime(2023, 1, 1, tzinfo=timezone.utc),
        original_business_query=MessageHeader(message_id="QRY-1"),
    )
    assert parse_message_header(export_message_header(header)) == header


def test_identifiers():
    assert sanitize("ID_with*bad#chars") == "IDwithbadchars"
    assert len(sanitize("x" * 50)) == 35
    identifier = generate_identifier()
    assert len(identifier) <= 35
    assert generate_identifier() != identifier
