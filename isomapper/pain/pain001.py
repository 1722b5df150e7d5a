"""
pain.001 Customer Credit Transfer Initiation builders.

Each variant (SWIFT, SEPA, ACH, RTP) fixes the payment type information and
charge bearer codes of its payment rail and checks, once at construction,
that the instructions it carries can actually be sent on that rail.
"""

import uuid
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, List, Optional, Type

from isomapper.currency import sum_minor_units, to_decimal_string
from isomapper.errors import InvalidCurrencyConsistencyError, InvalidStructureError
from isomapper.message import Iso20022Message, MessageType
from isomapper.models import (
    AbaAgent,
    ACHCreditPaymentInstruction,
    Account,
    Agent,
    BicAgent,
    IbanAccount,
    LocalAccount,
    Party,
    PaymentInstruction,
    RTPCreditPaymentInstruction,
    SEPACreditPaymentInstruction,
    SWIFTCreditPaymentInstruction,
)
from isomapper.parse_utils import (
    MAX_IDENTIFIER_LENGTH,
    export_account,
    export_address,
    export_agent,
    format_date,
    format_datetime,
    generate_identifier,
    parse_account,
    parse_additional_information,
    parse_address,
    parse_agent,
    parse_amount,
    parse_date,
    parse_party,
    sanitize,
)
from isomapper.xmltree import ATTRIBUTE_PREFIX, TEXT_KEY, RawTree, as_list, attribute_of, dig, prune, text_of

MIXED_CURRENCY_MESSAGE = (
    "In order to calculate the payment instructions sum, all payment instruction currencies must be the same."
)
INCOMPLETE_ADDRESS_MESSAGE = (
    "All creditors must have complete addresses (street name, building number, postal code, town name, and country)"
)

DEFAULT_ACH_LOCAL_INSTRUMENT = "CCD"


@dataclass(frozen=True)
class PaymentInitiation(Iso20022Message):
    """
    Base class for the pain.001 variants. A single ``PmtInf`` block is
    produced, debiting the initiating party's account.

    Attributes:
        initiating_party: Debtor of every instruction; its ``account`` and
            ``agent`` become ``DbtrAcct`` and ``DbtrAgt``.
        payment_instructions: At least one credit transfer, all in one currency.
        message_id: ``GrpHdr/MsgId``, generated when omitted.
        creation_date: Defaults to the current UTC time; also used as the
            requested execution date.
        payment_information_id: ``PmtInf/PmtInfId``, generated when omitted.
    """

    initiating_party: Party
    payment_instructions: List[PaymentInstruction]
    message_id: Optional[str] = None
    creation_date: Optional[datetime] = None
    payment_information_id: Optional[str] = None

    message_type: ClassVar[MessageType] = MessageType.PAIN_001
    serialization_namespace: ClassVar[str] = "urn:iso:std:iso:20022:tech:xsd:pain.001.001.03"

    variant: ClassVar[str] = "credit"
    instruction_class: ClassVar[Type[PaymentInstruction]] = PaymentInstruction
    service_level: ClassVar[str] = ""
    charge_bearer: ClassVar[str] = "SHAR"
    required_currency: ClassVar[Optional[str]] = None
    requires_creditor_country: ClassVar[bool] = False
    creditor_agent_type: ClassVar[Optional[type]] = None
    creditor_account_type: ClassVar[Optional[type]] = None

    def __post_init__(self):
        if self.message_id is None:
            object.__setattr__(self, "message_id", generate_identifier())
        if self.payment_information_id is None:
            object.__setattr__(self, "payment_information_id", sanitize(str(uuid.uuid4()), MAX_IDENTIFIER_LENGTH))
        if self.creation_date is None:
            object.__setattr__(self, "creation_date", datetime.now(timezone.utc))
        elif self.creation_date.tzinfo is None:
            object.__setattr__(self, "creation_date", self.creation_date.replace(tzinfo=timezone.utc))

        object.__setattr__(
            self,
            "payment_instructions",
            [self._coerce_instruction(instruction) for instruction in self.payment_instructions or []],
        )
        self.validate()

    @classmethod
    def _coerce_instruction(cls, instruction: PaymentInstruction) -> PaymentInstruction:
        values = {f.name: getattr(instruction, f.name) for f in fields(PaymentInstruction) if f.init}
        values["id"] = sanitize(values["id"] or generate_identifier())
        values["end_to_end_id"] = sanitize(values["end_to_end_id"] or values["id"])
        return cls.instruction_class(**values)

    # --- Validation ---

    def validate(self) -> None:
        """
        Runs the construction-time checks, in order: message id length,
        currency consistency, rail currency, creditor addresses, then the
        identification schemes of creditor agents and accounts.

        Raises:
            InvalidStructureError: On the first failed check.
            InvalidCurrencyConsistencyError: If instructions mix currencies.
        """
        if len(self.message_id) > MAX_IDENTIFIER_LENGTH:
            raise InvalidStructureError("message_id must not exceed 35 characters")
        if not self.payment_instructions:
            raise InvalidStructureError("At least one payment instruction is required")

        currencies = {instruction.currency for instruction in self.payment_instructions}
        if len(currencies) > 1:
            raise InvalidCurrencyConsistencyError(MIXED_CURRENCY_MESSAGE)

        if self.required_currency and self.currency != self.required_currency:
            raise InvalidStructureError(
                f"{self.variant.upper()} payments must use {self.required_currency} as currency"
            )

        if self.requires_creditor_country:
            for instruction in self.payment_instructions:
                address = instruction.creditor.address
                if address is None or not address.country:
                    raise InvalidStructureError(INCOMPLETE_ADDRESS_MESSAGE)

        for instruction in self.payment_instructions:
            self._validate_creditor(instruction.creditor)

    def _validate_creditor(self, creditor: Party) -> None:
        label = self.variant.upper()
        if self.creditor_agent_type and creditor.agent is not None:
            if not isinstance(creditor.agent, self.creditor_agent_type):
                raise InvalidStructureError(
                    f"{label} creditor agents must be {self.creditor_agent_type.__name__} instances"
                )
        if self.creditor_account_type:
            if not isinstance(creditor.account, self.creditor_account_type):
                raise InvalidStructureError(
                    f"{label} creditor accounts must be {self.creditor_account_type.__name__} instances"
                )

    # --- Derived values ---

    @property
    def currency(self) -> str:
        return self.payment_instructions[0].currency

    @property
    def control_sum(self) -> str:
        """The exact sum of all instruction amounts, at the currency's precision."""
        total = sum_minor_units(instruction.amount for instruction in self.payment_instructions)
        return to_decimal_string(total, self.currency)

    # --- Export helpers ---

    def party(self, party: Party) -> Dict[str, Any]:
        return {
            "Nm": party.name,
            "PstlAdr": export_address(party.address),
            "Id": {"OrgId": {"Othr": {"Id": party.id}}} if party.id else None,
        }

    def account(self, account: Optional[Account]) -> Optional[Dict[str, Any]]:
        return export_account(account)

    def agent(self, agent: Optional[Agent]) -> Optional[Dict[str, Any]]:
        return export_agent(agent)

    def initiating_party_node(self) -> Dict[str, Any]:
        return {"Nm": self.initiating_party.name, "Id": {"OrgId": {"Othr": {"Id": self.initiating_party.id}}}}

    def batch_booking(self) -> Optional[bool]:
        return None

    def payment_type_information(self) -> Dict[str, Any]:
        return {"SvcLvl": {"Cd": self.service_level}}

    def creditor_account(self, instruction: PaymentInstruction) -> Optional[Dict[str, Any]]:
        return self.account(instruction.creditor.account)

    def credit_transfer(self, instruction: PaymentInstruction) -> Dict[str, Any]:
        return {
            "PmtId": {"InstrId": instruction.id, "EndToEndId": instruction.end_to_end_id or instruction.id},
            "Amt": {
                "InstdAmt": {
                    TEXT_KEY: to_decimal_string(instruction.amount, instruction.currency),
                    ATTRIBUTE_PREFIX + "Ccy": instruction.currency,
                }
            },
            "CdtrAgt": self.agent(instruction.creditor.agent),
            "Cdtr": self.party(instruction.creditor),
            "CdtrAcct": self.creditor_account(instruction),
            "RmtInf": {"Ustrd": instruction.remittance_information},
        }

    def to_json(self) -> RawTree:
        number_of_transactions = str(len(self.payment_instructions))
        control_sum = self.control_sum
        return prune(
            {
                "Document": {
                    "CstmrCdtTrfInitn": {
                        "GrpHdr": {
                            "MsgId": self.message_id,
                            "CreDtTm": format_datetime(self.creation_date),
                            "NbOfTxs": number_of_transactions,
                            "CtrlSum": control_sum,
                            "InitgPty": self.initiating_party_node(),
                        },
                        "PmtInf": {
                            "PmtInfId": self.payment_information_id,
                            "PmtMtd": "TRF",
                            "BtchBookg": self.batch_booking(),
                            "NbOfTxs": number_of_transactions,
                            "CtrlSum": control_sum,
                            "PmtTpInf": self.payment_type_information(),
                            "ReqdExctnDt": format_date(self.creation_date),
                            "Dbtr": self.party(self.initiating_party),
                            "DbtrAcct": self.account(self.initiating_party.account),
                            "DbtrAgt": self.agent(self.initiating_party.agent),
                            "ChrgBr": self.charge_bearer,
                            "CdtTrfTxInf": [self.credit_transfer(i) for i in self.payment_instructions],
                        },
                    }
                }
            }
        )

    # --- Parsing ---

    @classmethod
    def _parse_instruction(cls, raw: Dict[str, Any]) -> PaymentInstruction:
        instructed = dig(raw, "Amt", "InstdAmt")
        currency = attribute_of(instructed, "Ccy")
        creditor = parse_party(
            raw.get("Cdtr"),
            account=parse_account(raw.get("CdtrAcct")),
            agent=parse_agent(raw.get("CdtrAgt")),
        )
        return cls.instruction_class(
            amount=parse_amount(instructed, currency, "CdtTrfTxInf.Amt.InstdAmt"),
            currency=currency,
            creditor=creditor,
            id=text_of(dig(raw, "PmtId", "InstrId")),
            end_to_end_id=text_of(dig(raw, "PmtId", "EndToEndId")),
            remittance_information=parse_additional_information(dig(raw, "RmtInf", "Ustrd")),
        )

    @classmethod
    def _variant_fields(cls, payment_information: Dict[str, Any]) -> Dict[str, Any]:
        return {}

    @classmethod
    def from_document_object(cls, tree: RawTree) -> "PaymentInitiation":
        initiation = dig(tree, "Document", "CstmrCdtTrfInitn")
        if not isinstance(initiation, dict):
            raise InvalidStructureError("Invalid PAIN.001 document: missing CstmrCdtTrfInitn")

        payment_informations = as_list(initiation.get("PmtInf"))
        if len(payment_informations) > 1:
            raise InvalidStructureError("Multiple PmtInf is not supported")
        if not payment_informations or not isinstance(payment_informations[0], dict):
            raise InvalidStructureError("Invalid PAIN.001 document: missing PmtInf")
        payment_information = payment_informations[0]

        header = initiation.get("GrpHdr") or {}
        initiating = parse_party(header.get("InitgPty"))
        debtor = payment_information.get("Dbtr") or {}
        initiating_party = Party(
            id=initiating.id,
            name=initiating.name or text_of(dig(debtor, "Nm")),
            address=parse_address(dig(debtor, "PstlAdr")) or initiating.address,
            account=parse_account(payment_information.get("DbtrAcct")),
            agent=parse_agent(payment_information.get("DbtrAgt")),
        )

        instructions = [
            cls._parse_instruction(raw)
            for raw in as_list(payment_information.get("CdtTrfTxInf"))
            if isinstance(raw, dict)
        ]

        return cls(
            initiating_party=initiating_party,
            payment_instructions=instructions,
            message_id=text_of(header.get("MsgId")),
            creation_date=parse_date(header.get("CreDtTm")),
            payment_information_id=text_of(payment_information.get("PmtInfId")),
            **cls._variant_fields(payment_information),
        )


@dataclass(frozen=True)
class SWIFTCreditPaymentInitiation(PaymentInitiation):
    """Cross-border urgent wire, creditor agents identified by BIC."""

    variant: ClassVar[str] = "swift"
    instruction_class: ClassVar[Type[PaymentInstruction]] = SWIFTCreditPaymentInstruction
    service_level: ClassVar[str] = "URGP"
    charge_bearer: ClassVar[str] = "SHAR"
    requires_creditor_country: ClassVar[bool] = True
    creditor_agent_type: ClassVar[Optional[type]] = BicAgent

    def batch_booking(self) -> Optional[bool]:
        return False

    def payment_type_information(self) -> Dict[str, Any]:
        return {"InstrPrty": "NORM", "SvcLvl": {"Cd": self.service_level}}


@dataclass(frozen=True)
class SEPACreditPaymentInitiation(PaymentInitiation):
    """EUR credit transfer inside the SEPA zone, IBAN creditor accounts only."""

    variant: ClassVar[str] = "sepa"
    instruction_class: ClassVar[Type[PaymentInstruction]] = SEPACreditPaymentInstruction
    service_level: ClassVar[str] = "SEPA"
    charge_bearer: ClassVar[str] = "SLEV"
    required_currency: ClassVar[Optional[str]] = "EUR"
    requires_creditor_country: ClassVar[bool] = True
    creditor_agent_type: ClassVar[Optional[type]] = BicAgent
    creditor_account_type: ClassVar[Optional[type]] = IbanAccount

    def payment_type_information(self) -> Dict[str, Any]:
        return {"SvcLvl": {"Cd": self.service_level}, "CtgyPurp": {"Cd": "TRAD"}}

    def creditor_account(self, instruction: PaymentInstruction) -> Optional[Dict[str, Any]]:
        return {"Id": {"IBAN": instruction.creditor.account.iban}, "Ccy": instruction.currency}


@dataclass(frozen=True)
class ACHCreditPaymentInitiation(PaymentInitiation):
    """
    US ACH credit. ``local_instrument`` is the NACHA standard entry class
    code sent as ``LclInstrm/Prtry`` (CCD, PPD, CTX...).
    """

    local_instrument: str = DEFAULT_ACH_LOCAL_INSTRUMENT

    variant: ClassVar[str] = "ach"
    instruction_class: ClassVar[Type[PaymentInstruction]] = ACHCreditPaymentInstruction
    service_level: ClassVar[str] = "NURG"
    charge_bearer: ClassVar[str] = "SHAR"
    required_currency: ClassVar[Optional[str]] = "USD"
    creditor_agent_type: ClassVar[Optional[type]] = AbaAgent
    creditor_account_type: ClassVar[Optional[type]] = LocalAccount

    def initiating_party_node(self) -> Dict[str, Any]:
        return {"Nm": self.initiating_party.name, "Id": {"OrgId": {"BICOrBEI": self.initiating_party.id}}}

    def batch_booking(self) -> Optional[bool]:
        return False

    def payment_type_information(self) -> Dict[str, Any]:
        return {
            "InstrPrty": "NORM",
            "SvcLvl": {"Cd": self.service_level},
            "LclInstrm": {"Prtry": self.local_instrument},
        }

    def creditor_account(self, instruction: PaymentInstruction) -> Optional[Dict[str, Any]]:
        account = instruction.creditor.account
        return export_account(
            LocalAccount(
                account_number=account.account_number,
                account_type=account.account_type or "checking",
                currency=instruction.currency,
                name=account.name,
            )
        )

    @classmethod
    def _variant_fields(cls, payment_information: Dict[str, Any]) -> Dict[str, Any]:
        local_instrument = text_of(dig(payment_information, "PmtTpInf", "LclInstrm", "Prtry"))
        return {"local_instrument": local_instrument or DEFAULT_ACH_LOCAL_INSTRUMENT}


@dataclass(frozen=True)
class RTPCreditPaymentInitiation(PaymentInitiation):
    """US Real-Time Payments credit, settled immediately."""

    variant: ClassVar[str] = "rtp"
    instruction_class: ClassVar[Type[PaymentInstruction]] = RTPCreditPaymentInstruction
    service_level: ClassVar[str] = "URNS"
    charge_bearer: ClassVar[str] = "SLEV"
    required_currency: ClassVar[Optional[str]] = "USD"
    creditor_agent_type: ClassVar[Optional[type]] = AbaAgent
    creditor_account_type: ClassVar[Optional[type]] = LocalAccount

    def payment_type_information(self) -> Dict[str, Any]:
        return {"SvcLvl": {"Cd": self.service_level}, "LclInstrm": {"Prtry": "RTP"}}

    def creditor_account(self, instruction: PaymentInstruction) -> Optional[Dict[str, Any]]:
        return {"Id": {"Othr": {"Id": instruction.creditor.account.account_number}}}


PAYMENT_INITIATION_VARIANTS = (
    SWIFTCreditPaymentInitiation,
    SEPACreditPaymentInitiation,
    ACHCreditPaymentInitiation,
    RTPCreditPaymentInitiation,
)
