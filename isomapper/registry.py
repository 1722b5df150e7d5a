import logging
import re
from dataclasses import fields
from typing import Any, Dict, List, Optional, Type, Union

from isomapper import xmltree
from isomapper.camt import (
    CashManagementEndOfDayReport,
    CashManagementGetAccount,
    CashManagementGetTransaction,
    CashManagementReturnAccount,
    CashManagementReturnTransaction,
)
from isomapper.errors import InvalidFormatError, InvalidXmlError, InvalidXmlNamespaceError
from isomapper.message import ISO20022_URN_PREFIX, Iso20022Message, MessageType, document_namespace
from isomapper.models import Party, PaymentInstruction
from isomapper.pain import (
    ACHCreditPaymentInitiation,
    PaymentInitiation,
    PaymentStatusReport,
    RTPCreditPaymentInitiation,
    SEPACreditPaymentInitiation,
    SWIFTCreditPaymentInitiation,
)
from isomapper.xmltree import RawTree, as_list, dig, text_of

logger = logging.getLogger(__name__)

_NAMESPACE_PATTERN = re.compile(re.escape(ISO20022_URN_PREFIX) + r"(?P<type>[a-z]{4}\.\d{3})\.")


class MessageRegistry:
    """
    Maps each MessageType to the mapper class handling it.

    Registries are explicit objects; nothing registers itself on import.
    """

    def __init__(self):
        self._mappers: Dict[MessageType, Type[Iso20022Message]] = {}

    def register(self, message_type: MessageType, mapper: Type[Iso20022Message]) -> None:
        self._mappers[MessageType(message_type)] = mapper

    def lookup(self, message_type: MessageType) -> Optional[Type[Iso20022Message]]:
        return self._mappers.get(MessageType(message_type))

    def message_types(self) -> List[MessageType]:
        return list(self._mappers)

    def __contains__(self, message_type) -> bool:
        try:
            return MessageType(message_type) in self._mappers
        except ValueError:
            return False


def default_registry() -> MessageRegistry:
    """A registry covering every message type isomapper supports."""
    registry = MessageRegistry()
    registry.register(MessageType.CAMT_003, CashManagementGetAccount)
    registry.register(MessageType.CAMT_004, CashManagementReturnAccount)
    registry.register(MessageType.CAMT_005, CashManagementGetTransaction)
    registry.register(MessageType.CAMT_006, CashManagementReturnTransaction)
    registry.register(MessageType.CAMT_053, CashManagementEndOfDayReport)
    registry.register(MessageType.PAIN_001, SWIFTCreditPaymentInitiation)
    registry.register(MessageType.PAIN_002, PaymentStatusReport)
    return registry


REGISTRY = default_registry()


def detect_message_type(tree: RawTree) -> MessageType:
    """
    Reads the message type from the ``Document`` namespace, e.g.
    ``urn:iso:std:iso:20022:tech:xsd:camt.053.001.02`` -> ``MessageType.CAMT_053``.

    Raises:
        InvalidXmlNamespaceError: If the namespace is missing or not a supported type.
    """
    namespace = document_namespace(tree)
    match = _NAMESPACE_PATTERN.match(namespace or "")
    if not match:
        raise InvalidXmlNamespaceError(f"Unsupported namespace: {namespace}")
    try:
        return MessageType(match.group("type"))
    except ValueError:
        raise InvalidXmlNamespaceError(f"Unsupported namespace: {namespace}") from None


def detect_payment_initiation_variant(tree: RawTree) -> Type[PaymentInitiation]:
    """
    Picks the pain.001 variant from the payment type information of the
    first ``PmtInf``: service level SEPA, NURG (ACH) or URNS / local
    instrument RTP; anything else is read as a SWIFT wire.
    """
    payment_information = next(iter(as_list(dig(tree, "Document", "CstmrCdtTrfInitn", "PmtInf"))), None)
    service_level = text_of(dig(payment_information, "PmtTpInf", "SvcLvl", "Cd"))
    local_instrument = text_of(dig(payment_information, "PmtTpInf", "LclInstrm", "Prtry"))

    if service_level == SEPACreditPaymentInitiation.service_level:
        return SEPACreditPaymentInitiation
    if service_level == RTPCreditPaymentInitiation.service_level or local_instrument == "RTP":
        return RTPCreditPaymentInitiation
    if service_level == ACHCreditPaymentInitiation.service_level:
        return ACHCreditPaymentInitiation
    return SWIFTCreditPaymentInitiation


def _resolve_mapper(
    tree: RawTree, message_type: Optional[MessageType], registry: MessageRegistry
) -> Type[Iso20022Message]:
    detected = message_type is None
    message_type = detect_message_type(tree) if detected else MessageType(message_type)
    mapper = registry.lookup(message_type)
    if mapper is None:
        raise InvalidXmlNamespaceError(f"No mapper registered for {message_type.label}")
    if detected and message_type is MessageType.PAIN_001 and mapper is SWIFTCreditPaymentInitiation:
        mapper = detect_payment_initiation_variant(tree)
    logger.debug("Dispatching %s document to %s", message_type.label, mapper.__name__)
    return mapper


def parse_document(
    tree: RawTree, message_type: Optional[MessageType] = None, registry: Optional[MessageRegistry] = None
) -> Iso20022Message:
    """
    Maps an already parsed raw tree to its typed message.

    Args:
        tree: The raw document tree, ``{"Document": {...}}``.
        message_type: Forces a mapper instead of detecting it from the namespace.
        registry: Defaults to the module registry.
    """
    mapper = _resolve_mapper(tree, message_type, registry or REGISTRY)
    return mapper.from_document_object(tree)


def from_xml(
    xml: Union[str, bytes], message_type: Optional[MessageType] = None, registry: Optional[MessageRegistry] = None
) -> Iso20022Message:
    """
    Parses any supported ISO 20022 XML document.

    Raises:
        InvalidXmlError: If the payload is not XML or has no ``Document`` root.
        InvalidXmlNamespaceError: If the namespace is unsupported, or does not
            match an explicitly requested ``message_type``.
    """
    tree = xmltree.parse(xml)
    if "Document" not in tree:
        raise InvalidXmlError("Invalid XML format")

    mapper = _resolve_mapper(tree, message_type, registry or REGISTRY)
    namespace = document_namespace(tree) or ""
    if not namespace.startswith(mapper.message_type.namespace_prefix):
        raise InvalidXmlNamespaceError(f"Invalid {mapper.label()} namespace")
    return mapper.from_document_object(tree)


def from_json(
    payload: Union[str, bytes, RawTree],
    message_type: Optional[MessageType] = None,
    registry: Optional[MessageRegistry] = None,
) -> Iso20022Message:
    """
    Parses the JSON rendering of a raw tree. Without ``message_type`` the
    tree must still carry its ``@_xmlns`` namespace.
    """
    tree = xmltree.parse_json(payload)
    if "Document" not in tree:
        raise InvalidFormatError("Invalid JSON format")
    return parse_document(tree, message_type, registry)


class MessageFactory:
    """
    Entry point for building outgoing messages on behalf of one initiating
    party.

    Args:
        initiating_party: The debtor used for every payment initiation created
            by this factory.
    """

    def __init__(self, initiating_party: Party, registry: Optional[MessageRegistry] = None):
        self.initiating_party = initiating_party
        self.registry = registry or REGISTRY

    def create_swift_credit_payment_initiation(
        self, payment_instructions: List[PaymentInstruction], **kwargs: Any
    ) -> SWIFTCreditPaymentInitiation:
        return SWIFTCreditPaymentInitiation(
            initiating_party=self.initiating_party, payment_instructions=payment_instructions, **kwargs
        )

    def create_sepa_credit_payment_initiation(
        self, payment_instructions: List[PaymentInstruction], **kwargs: Any
    ) -> SEPACreditPaymentInitiation:
        return SEPACreditPaymentInitiation(
            initiating_party=self.initiating_party, payment_instructions=payment_instructions, **kwargs
        )

    def create_ach_credit_payment_initiation(
        self, payment_instructions: List[PaymentInstruction], **kwargs: Any
    ) -> ACHCreditPaymentInitiation:
        return ACHCreditPaymentInitiation(
            initiating_party=self.initiating_party, payment_instructions=payment_instructions, **kwargs
        )

    def create_rtp_credit_payment_initiation(
        self, payment_instructions: List[PaymentInstruction], **kwargs: Any
    ) -> RTPCreditPaymentInitiation:
        return RTPCreditPaymentInitiation(
            initiating_party=self.initiating_party, payment_instructions=payment_instructions, **kwargs
        )

    def create_message(self, message_type: MessageType, **kwargs: Any) -> Iso20022Message:
        """
        Builds any registered message type from keyword fields.

        Keywords that are not fields of the target mapper are discarded. For
        pain.001 the factory's initiating party is used unless one is given.

        Raises:
            InvalidXmlNamespaceError: If no mapper is registered for the type.
        """
        message_type = MessageType(message_type)
        mapper = self.registry.lookup(message_type)
        if mapper is None:
            raise InvalidXmlNamespaceError(f"No mapper registered for {message_type.label}")

        valid_fields = {f.name for f in fields(mapper) if f.init}
        filtered_kwargs = {k: v for k, v in kwargs.items() if k in valid_fields}
        if issubclass(mapper, PaymentInitiation):
            filtered_kwargs.setdefault("initiating_party", self.initiating_party)
        return mapper(**filtered_kwargs)
