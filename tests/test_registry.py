import json
import os

import pytest

from isomapper.camt import CashManagementEndOfDayReport, CashManagementGetTransaction
from isomapper.errors import InvalidFormatError, InvalidXmlError, InvalidXmlNamespaceError
from isomapper.message import MessageType
from isomapper.models import AbaAgent, BicAgent, IbanAccount, LocalAccount, Party, PaymentInstruction, PostalAddress
from isomapper.pain import (
    ACHCreditPaymentInitiation,
    PaymentStatusReport,
    RTPCreditPaymentInitiation,
    SEPACreditPaymentInitiation,
    SWIFTCreditPaymentInitiation,
)
from isomapper.registry import (
    REGISTRY,
    MessageFactory,
    MessageRegistry,
    default_registry,
    detect_message_type,
    from_json,
    from_xml,
)
from isomapper import xmltree

EXAMPLES_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "example_messages")

GET_TRANSACTION = b"""<?xml version="1.0" encoding="UTF-8"?>
<Document xmlns="urn:iso:std:iso:20022:tech:xsd:camt.005.001.02">
    <GetTx>
        <MsgHdr>
            <MsgId>GETTX-1</MsgId>
        </MsgHdr>
        <TxQryDef>
            <TxCrit>
                <NewCrit>
                    <SchCrit>
                        <PmtSch>
                            <MsgId>PAY-MSG-1</MsgId>
                        </PmtSch>
                    </SchCrit>
                </NewCrit>
            </TxCrit>
        </TxQryDef>
    </GetTx>
</Document>"""

DEBTOR = Party(
    id="ACME",
    name="Acme",
    account=LocalAccount(account_number="123456789", account_type="checking", currency="USD"),
    agent=AbaAgent(routing_number="021000021"),
)

EURO_CREDITOR = Party(
    name="Widget GmbH",
    address=PostalAddress(town_name="Berlin", country="DE"),
    account=IbanAccount(iban="DE89370400440532013000"),
    agent=BicAgent(bic="COBADEFFXXX"),
)

US_CREDITOR = Party(
    name="Jane Doe",
    account=LocalAccount(account_number="987654321", account_type="checking", currency="USD"),
    agent=AbaAgent(routing_number="021000021"),
)


def load(name):
    with open(os.path.join(EXAMPLES_DIR, name), "rb") as f:
        return f.read()


def test_detect_message_type():
    tree = xmltree.parse(load("camt053_statement.xml"))
    assert detect_message_type(tree) is MessageType.CAMT_053


def test_from_xml_dispatches_by_namespace():
    assert isinstance(from_xml(load("camt053_statement.xml")), CashManagementEndOfDayReport)

    message = from_xml(GET_TRANSACTION)
    assert isinstance(message, CashManagementGetTransaction)
    assert message.header.message_id == "GETTX-1"


def test_unsupported_namespace():
    xml = GET_TRANSACTION.replace(b"camt.005.001.02", b"camt.099.001.01")
    with pytest.raises(InvalidXmlNamespaceError, match="Unsupported namespace"):
        from_xml(xml)


def test_explicit_type_must_match_namespace():
    with pytest.raises(InvalidXmlNamespaceError, match="Invalid CAMT.053 namespace"):
        from_xml(GET_TRANSACTION, message_type=MessageType.CAMT_053)


def test_invalid_payloads():
    with pytest.raises(InvalidXmlError):
        from_xml(b"HELLO!!")
    with pytest.raises(InvalidFormatError):
        from_json(json.dumps({"NotADocument": {}}))


def test_from_json_uses_namespace_or_explicit_type():
    report = from_xml(load("camt053_statement.xml"))
    tree = report.to_json()

    # to_json carries no namespace; the type has to be given
    with pytest.raises(InvalidXmlNamespaceError):
        from_json(tree)
    assert from_json(json.dumps(tree), message_type=MessageType.CAMT_053) == report

    assert from_json(report.to_document_json()) == report
    tree_with_namespace = xmltree.parse(report.serialize())
    assert from_json(tree_with_namespace) == report


@pytest.mark.parametrize(
    "method, creditor, currency, expected",
    [
        ("create_swift_credit_payment_initiation", EURO_CREDITOR, "EUR", SWIFTCreditPaymentInitiation),
        ("create_sepa_credit_payment_initiation", EURO_CREDITOR, "EUR", SEPACreditPaymentInitiation),
        ("create_ach_credit_payment_initiation", US_CREDITOR, "USD", ACHCreditPaymentInitiation),
        ("create_rtp_credit_payment_initiation", US_CREDITOR, "USD", RTPCreditPaymentInitiation),
    ],
)
def test_payment_initiation_variant_detection(method, creditor, currency, expected):
    factory = MessageFactory(DEBTOR)
    initiation = getattr(factory, method)(
        [PaymentInstruction(id="P-1", amount=100, currency=currency, creditor=creditor)]
    )
    assert type(initiation) is expected
    assert initiation.initiating_party == DEBTOR

    parsed = from_xml(initiation.serialize())
    assert type(parsed) is expected
    assert parsed.message_id == initiation.message_id


def test_factory_create_message_discards_unknown_fields():
    factory = MessageFactory(DEBTOR)
    initiation = factory.create_message(
        MessageType.PAIN_001,
        payment_instructions=[PaymentInstruction(id="P-1", amount=100, currency="EUR", creditor=EURO_CREDITOR)],
        message_id="MSG-1",
        not_a_field="ignored",
    )
    assert isinstance(initiation, SWIFTCreditPaymentInitiation)
    assert initiation.message_id == "MSG-1"
    assert initiation.initiating_party == DEBTOR


def test_custom_registry():
    registry = MessageRegistry()
    registry.register(MessageType.PAIN_002, PaymentStatusReport)

    assert MessageType.PAIN_002 in registry
    assert "camt.053" not in registry
    assert "not-a-type" not in registry
    assert registry.message_types() == [MessageType.PAIN_002]

    with pytest.raises(InvalidXmlNamespaceError, match="No mapper registered for CAMT.053"):
        from_xml(load("camt053_statement.xml"), registry=registry)
    with pytest.raises(InvalidXmlNamespaceError, match="No mapper registered"):
        MessageFactory(DEBTOR, registry=registry).create_message(MessageType.CAMT_053)


def test_default_registry_covers_every_type():
    assert set(default_registry().message_types()) == set(MessageType)
    assert REGISTRY.lookup("pain.002") is PaymentStatusReport
