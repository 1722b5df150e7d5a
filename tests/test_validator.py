import os

from isomapper.models import (
    AbaAgent,
    BicAgent,
    IbanAccount,
    Party,
    PaymentIdentification,
    PaymentInstruction,
    PostalAddress,
)
from isomapper.pain import SWIFTCreditPaymentInitiation
from isomapper.validator import Validator

EXAMPLES_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "example_messages")


def initiation(debtor_iban="GB90MIDL40051522334455", creditor_bic="NWBKGB2LXXX"):
    return SWIFTCreditPaymentInitiation(
        initiating_party=Party(name="Acme", account=IbanAccount(iban=debtor_iban)),
        payment_instructions=[
            PaymentInstruction(
                id="W-1",
                amount=100,
                currency="GBP",
                creditor=Party(
                    name="Widget Ltd",
                    address=PostalAddress(country="GB"),
                    agent=BicAgent(bic=creditor_bic),
                ),
            )
        ],
    )


def test_valid_message():
    report = Validator.validate(initiation())
    assert report.is_valid is True
    assert report.errors == []


def test_invalid_iban_checksum():
    report = Validator.validate(initiation(debtor_iban="GB99MIDL40051522334455"))
    assert report.is_valid is False
    assert len(report.errors) == 1
    assert report.errors[0].startswith("[initiating_party.account]")
    assert "Invalid IBAN checksum" in report.errors[0]


def test_invalid_iban_format():
    error = Validator._validate_iban_checksum("NOT AN IBAN")
    assert "Invalid IBAN format" in error


def test_iban_with_spaces():
    assert Validator._validate_iban_checksum("GB90 MIDL 4005 1522 3344 55") is None


def test_invalid_bic():
    report = Validator.validate(initiation(creditor_bic="BANK"))
    assert report.is_valid is False
    assert "[payment_instructions[0].creditor.agent]" in report.errors[0]
    assert "'BANK'" in report.errors[0]


def test_bic_lengths():
    assert Validator._validate_bic("CHASGB2L") is None
    assert Validator._validate_bic("BANKUS33XXX") is None
    assert Validator._validate_bic("BANKUS33XX") is not None


def test_aba_checksum():
    assert Validator._validate_aba("021000021") is None
    assert "checksum" in Validator._validate_aba("021000022")
    assert "9 digits" in Validator._validate_aba("12345")

    report = Validator.validate(AbaAgent(routing_number="021000022"))
    assert report.is_valid is False
    assert report.errors[0].startswith("[AbaAgent]")


def test_uetr():
    valid = PaymentIdentification(
        currency="EUR", amount=1, end_to_end_id="E2E", uetr="97ed4827-7b6f-4491-a06f-b548d5a7512d"
    )
    assert Validator.validate(valid).is_valid

    invalid = PaymentIdentification(currency="EUR", amount=1, end_to_end_id="E2E", uetr="not-a-uuid")
    report = Validator.validate(invalid)
    assert "Invalid UETR format" in report.errors[0]


def test_currency_codes_are_checked():
    report = Validator.validate(PaymentIdentification(currency="eur", amount=1, end_to_end_id="E2E"))
    assert report.is_valid is False
    assert "3 uppercase" in report.errors[0]


def test_validate_payload():
    with open(os.path.join(EXAMPLES_DIR, "camt053_statement.xml"), "rb") as f:
        assert Validator.validate_payload(f.read()).is_valid

    report = Validator.validate_payload(b"HELLO!!")
    assert report.is_valid is False
    assert report.errors == ["Invalid XML format"]
