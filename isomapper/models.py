from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional, Union

from isomapper.errors import InvalidStructureError


@dataclass(frozen=True)
class PostalAddress:
    """
    Standardized representation of an ISO 20022 PstlAdr (Postal Address).
    """

    street_name: Optional[str] = None
    building_number: Optional[str] = None
    post_code: Optional[str] = None
    town_name: Optional[str] = None
    country_sub_division: Optional[str] = None
    country: Optional[str] = None
    address_lines: Optional[List[str]] = None


# --- Accounts ---


@dataclass(frozen=True)
class IbanAccount:
    """An account identified by its International Bank Account Number."""

    iban: str
    kind: str = field(default="iban", init=False)


@dataclass(frozen=True)
class LocalAccount:
    """
    An account identified by a local (non-IBAN) account number.

    Attributes:
        account_number: The ``Othr/Id`` value of the account.
        account_type: ``"checking"`` or ``"savings"`` when the document states it.
        currency: Account currency (``Ccy``).
        name: Account display name (``Nm``).
    """

    account_number: Optional[str]
    account_type: Optional[str] = None
    currency: Optional[str] = None
    name: Optional[str] = None
    kind: str = field(default="local", init=False)


Account = Union[IbanAccount, LocalAccount]


@dataclass(frozen=True)
class OtherAccountIdentification:
    """A generic ``Othr`` account identification used by the camt query messages."""

    id: Optional[str]
    issuer: Optional[str] = None
    scheme_name: Optional[str] = None
    kind: str = field(default="other", init=False)


AccountIdentification = Union[IbanAccount, OtherAccountIdentification]


# --- Agents ---


@dataclass(frozen=True)
class BicAgent:
    """A financial institution identified by its ISO 9362 BIC."""

    bic: Optional[str]
    bank_address: Optional[PostalAddress] = None
    kind: str = field(default="bic", init=False)


@dataclass(frozen=True)
class AbaAgent:
    """A financial institution identified by an ABA / national clearing routing number."""

    routing_number: Optional[str]
    kind: str = field(default="aba", init=False)


Agent = Union[BicAgent, AbaAgent]


@dataclass(frozen=True)
class Party:
    """
    Any named counterparty: debtor, creditor, initiating party or recipient.
    """

    id: Optional[str] = None
    name: Optional[str] = None
    address: Optional[PostalAddress] = None
    account: Optional[Account] = None
    agent: Optional[Agent] = None


@dataclass(frozen=True)
class MessageHeader:
    """
    The ``MsgHdr`` block shared by the camt query and return messages.
    """

    message_id: str
    creation_date_time: Optional[datetime] = None
    original_business_query: Optional["MessageHeader"] = None


# --- camt.053 statements ---


class BalanceType(str, Enum):
    """ISO 20022 external balance type codes."""

    CLOSING_AVAILABLE = "CLAV"
    CLOSING_BOOKED = "CLBD"
    FORWARD_AVAILABLE = "FWAV"
    INFORMATION = "INFO"
    INTERIM_AVAILABLE = "ITAV"
    INTERIM_BOOKED = "ITBD"
    OPENING_AVAILABLE = "OPAV"
    OPENING_BOOKED = "OPBD"
    PREVIOUSLY_CLOSED_BOOKED = "PRCD"
    EXPECTED = "XPCD"
    ADDITIONAL_BALANCE_RESERVE_REQUIREMENT = "ABRR"


@dataclass(frozen=True)
class BankTransactionCode:
    domain_code: Optional[str] = None
    domain_family_code: Optional[str] = None
    domain_sub_family_code: Optional[str] = None
    proprietary_code: Optional[str] = None
    proprietary_code_issuer: Optional[str] = None


@dataclass(frozen=True)
class Balance:
    """
    A statement balance. ``type`` is kept verbatim from ``Tp/CdOrPrtry/Cd``;
    banks using a proprietary code get it in ``proprietary`` instead.
    """

    date: Optional[datetime]
    type: Optional[str]
    amount: int
    currency: str
    credit_debit_indicator: str
    proprietary: Optional[str] = None


@dataclass(frozen=True)
class Transaction:
    message_id: Optional[str] = None
    account_servicer_reference_id: Optional[str] = None
    payment_information_id: Optional[str] = None
    instruction_id: Optional[str] = None
    end_to_end_id: Optional[str] = None
    transaction_id: Optional[str] = None
    instructed_amount: Optional[int] = None
    instructed_currency: Optional[str] = None
    transaction_amount: Optional[int] = None
    transaction_currency: Optional[str] = None
    proprietary_purpose: Optional[str] = None
    debtor: Optional[Party] = None
    creditor: Optional[Party] = None
    remittance_information: Optional[str] = None
    return_reason: Optional[str] = None
    return_additional_information: Optional[str] = None


@dataclass(frozen=True)
class Entry:
    """
    A booked statement entry.

    The ``NtryDtls/TxDtls`` nesting of the source document is flattened into
    ``transactions``; detail-group boundaries are not kept.
    """

    credit_debit_indicator: str
    amount: int
    currency: str
    reversal: bool = False
    booking_date: Optional[datetime] = None
    value_date: Optional[datetime] = None
    reference_id: Optional[str] = None
    status: Optional[str] = None
    proprietary_code: Optional[str] = None
    bank_transaction_code: Optional[BankTransactionCode] = None
    additional_information: Optional[str] = None
    account_servicer_reference_id: Optional[str] = None
    transactions: List[Transaction] = field(default_factory=list)


@dataclass(frozen=True)
class Statement:
    """
    One ``Stmt`` block of a camt.053 report.

    The aggregate fields are reported by the bank and are never recomputed
    from the entries.
    """

    id: str
    creation_date: Optional[datetime]
    account: Optional[Account]
    agent: Optional[Agent] = None
    electronic_sequence_number: Optional[int] = None
    legal_sequence_number: Optional[int] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    num_of_entries: Optional[int] = None
    sum_of_entries: Optional[Decimal] = None
    net_amount_of_entries: Optional[int] = None
    num_of_credit_entries: Optional[int] = None
    sum_of_credit_entries: Optional[Decimal] = None
    num_of_debit_entries: Optional[int] = None
    sum_of_debit_entries: Optional[Decimal] = None
    balances: List[Balance] = field(default_factory=list)
    entries: List[Entry] = field(default_factory=list)


# --- camt.004 / camt.006 report items ---


@dataclass(frozen=True)
class BusinessError:
    code: str
    description: Optional[str] = None


@dataclass(frozen=True)
class BalanceReport:
    amount: int
    credit_debit_indicator: str
    type: Optional[str] = None
    value_date: Optional[datetime] = None
    processing_date: Optional[datetime] = None


@dataclass(frozen=True)
class AccountReport:
    currency: str
    balances: List[BalanceReport]
    name: Optional[str] = None
    type: Optional[str] = None


def _exactly_one(report: Any, error: Any, label: str) -> None:
    if (report is None) == (error is None):
        raise InvalidStructureError(
            f"{label} must carry exactly one of a report or a business error"
        )


@dataclass(frozen=True)
class AccountReportOrError:
    """One ``AcctRpt`` item: either an account report or a business error."""

    account_id: AccountIdentification
    report: Optional[AccountReport] = None
    error: Optional[BusinessError] = None

    def __post_init__(self):
        _exactly_one(self.report, self.error, "AccountReportOrError")

    @property
    def kind(self) -> str:
        return "report" if self.report is not None else "error"


@dataclass(frozen=True)
class PaymentIdentification:
    """
    ``PmtId/LngBizId`` of a camt.006 report. The currency is carried here so
    that the amount can be read in minor units.
    """

    currency: str
    amount: int
    end_to_end_id: str
    transaction_id: Optional[str] = None
    uetr: Optional[str] = None


@dataclass(frozen=True)
class TransactionReportStatus:
    """
    Status of a reported payment. ``code`` is ``"<tag>:<code>"``, e.g.
    ``"Sttlm:ACCC"``, remembering which ``Sts/Cd`` variant held the code.
    """

    code: str
    reason: Optional[str] = None

    @property
    def code_type(self) -> str:
        return self.code.split(":", 1)[0]

    @property
    def code_value(self) -> str:
        return self.code.split(":", 1)[-1]


@dataclass(frozen=True)
class TransactionReport:
    debtor: Party
    creditor: Party
    debtor_agent: Optional[Agent] = None
    creditor_agent: Optional[Agent] = None
    msg_id: Optional[str] = None
    requested_execution_date: Optional[datetime] = None
    status: Optional[TransactionReportStatus] = None


@dataclass(frozen=True)
class TransactionReportOrError:
    """One ``TxRpt`` item: either a transaction report or a business error."""

    payment_id: PaymentIdentification
    report: Optional[TransactionReport] = None
    error: Optional[BusinessError] = None

    def __post_init__(self):
        _exactly_one(self.report, self.error, "TransactionReportOrError")

    @property
    def kind(self) -> str:
        return "report" if self.report is not None else "error"


# --- camt.003 / camt.005 query criteria ---


@dataclass(frozen=True)
class AccountCriterion:
    """
    One ``SchCrit`` of an account query.

    ``account_reg_exp`` holds contains / not-contains matches as regular
    expressions (``.*X.*`` and ``^((?!X).)*$``).
    """

    account_reg_exp: Optional[str] = None
    account_equal_to: Optional[AccountIdentification] = None
    currency_equal_to: Optional[str] = None
    balance_as_of_date_equal_to: Optional[datetime] = None


@dataclass(frozen=True)
class AccountQueryCriteria:
    search_criteria: List[AccountCriterion]
    name: Optional[str] = None


class TransactionCriterionType(str, Enum):
    MESSAGE_ID = "PmtSch.MsgId"
    REQUESTED_EXECUTION_DATE = "PmtSch.ReqdExctnDt"
    END_TO_END_ID = "PmtSch.PmtId.LngBizId.EndToEndId"


@dataclass(frozen=True)
class TransactionCriterion:
    type: TransactionCriterionType
    msg_ids_equal_to: Optional[List[str]] = None
    date_equal_to: Optional[datetime] = None
    end_to_end_ids_equal_to: Optional[List[str]] = None


@dataclass(frozen=True)
class TransactionQueryCriteria:
    search_criteria: List[TransactionCriterion]
    name: Optional[str] = None


# --- pain.002 status information ---


class StatusCode(str, Enum):
    """Payment status codes accepted in a pain.002 report."""

    REJECTED = "RJCT"
    PARTIALLY_ACCEPTED = "PART"
    PENDING = "PNDG"
    ACCEPTED = "ACCP"
    ACCEPTED_SETTLEMENT_IN_PROCESS = "ACSP"
    ACCEPTED_SETTLEMENT_COMPLETED = "ACSC"
    ACCEPTED_TECHNICAL_VALIDATION = "ACTC"


@dataclass(frozen=True)
class StatusReason:
    code: Optional[str] = None
    additional_information: Optional[str] = None


@dataclass(frozen=True)
class GroupStatusInformation:
    original_message_id: str
    status: StatusCode
    reason: Optional[StatusReason] = None
    type: str = field(default="group", init=False)

    @property
    def original_id(self) -> str:
        return self.original_message_id


@dataclass(frozen=True)
class PaymentStatusInformation:
    original_payment_id: str
    status: StatusCode
    reason: Optional[StatusReason] = None
    type: str = field(default="payment", init=False)

    @property
    def original_id(self) -> str:
        return self.original_payment_id


@dataclass(frozen=True)
class TransactionStatusInformation:
    original_end_to_end_id: str
    status: StatusCode
    reason: Optional[StatusReason] = None
    type: str = field(default="transaction", init=False)

    @property
    def original_id(self) -> str:
        return self.original_end_to_end_id


StatusInformation = Union[
    GroupStatusInformation, PaymentStatusInformation, TransactionStatusInformation
]


@dataclass(frozen=True)
class OriginalGroupInformation:
    original_message_id: str


# --- pain.001 payment instructions ---


@dataclass(frozen=True)
class PaymentInstruction:
    """
    A single credit transfer inside a pain.001 initiation.

    Attributes:
        amount: Amount in minor units of ``currency``; never negative.
        currency: ISO 4217 code.
        creditor: The party receiving the funds.
        id: Instruction identification (``InstrId``).
        end_to_end_id: End-to-end identification, defaults to ``id`` on the wire.
        remittance_information: Unstructured remittance text.
    """

    amount: int
    currency: str
    creditor: Party
    id: Optional[str] = None
    end_to_end_id: Optional[str] = None
    remittance_information: Optional[str] = None
    direction: str = field(default="credit", init=False)
    type: str = field(default="credit", init=False)

    def __post_init__(self):
        if self.amount is None or int(self.amount) < 0:
            raise InvalidStructureError(
                f"Payment instruction amount must be a non-negative number of minor units, got {self.amount!r}"
            )


@dataclass(frozen=True)
class SWIFTCreditPaymentInstruction(PaymentInstruction):
    type: str = field(default="swift", init=False)


@dataclass(frozen=True)
class SEPACreditPaymentInstruction(PaymentInstruction):
    type: str = field(default="sepa", init=False)


@dataclass(frozen=True)
class ACHCreditPaymentInstruction(PaymentInstruction):
    type: str = field(default="ach", init=False)


@dataclass(frozen=True)
class RTPCreditPaymentInstruction(PaymentInstruction):
    type: str = field(default="rtp", init=False)


@dataclass
class ValidationReport:
    """
    Output of the Validator: a boolean verdict plus the list of findings.
    """

    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
