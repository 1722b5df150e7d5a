from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict

from isomapper.camt import CashManagementEndOfDayReport
from isomapper.models import StatusCode
from isomapper.pain import PaymentInitiation, PaymentStatusReport


class PydanticPostalAddress(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    street_name: Optional[str] = None
    building_number: Optional[str] = None
    post_code: Optional[str] = None
    town_name: Optional[str] = None
    country_sub_division: Optional[str] = None
    country: Optional[str] = None
    address_lines: Optional[List[str]] = None


class PydanticIbanAccount(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    kind: Literal["iban"] = "iban"
    iban: str


class PydanticLocalAccount(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    kind: Literal["local"] = "local"
    account_number: Optional[str] = None
    account_type: Optional[str] = None
    currency: Optional[str] = None
    name: Optional[str] = None


class PydanticBicAgent(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    kind: Literal["bic"] = "bic"
    bic: Optional[str] = None
    bank_address: Optional[PydanticPostalAddress] = None


class PydanticAbaAgent(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    kind: Literal["aba"] = "aba"
    routing_number: Optional[str] = None


class PydanticParty(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    name: Optional[str] = None
    address: Optional[PydanticPostalAddress] = None
    account: Optional[Union[PydanticIbanAccount, PydanticLocalAccount]] = None
    agent: Optional[Union[PydanticBicAgent, PydanticAbaAgent]] = None


class PydanticBalance(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: Optional[datetime] = None
    type: Optional[str] = None
    proprietary: Optional[str] = None
    amount: int
    currency: str
    credit_debit_indicator: str


class PydanticTransaction(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    message_id: Optional[str] = None
    payment_information_id: Optional[str] = None
    instruction_id: Optional[str] = None
    end_to_end_id: Optional[str] = None
    transaction_id: Optional[str] = None
    instructed_amount: Optional[int] = None
    instructed_currency: Optional[str] = None
    transaction_amount: Optional[int] = None
    transaction_currency: Optional[str] = None
    debtor: Optional[PydanticParty] = None
    creditor: Optional[PydanticParty] = None
    remittance_information: Optional[str] = None
    return_reason: Optional[str] = None


class PydanticEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    reference_id: Optional[str] = None
    credit_debit_indicator: str
    amount: int
    currency: str
    reversal: bool = False
    status: Optional[str] = None
    booking_date: Optional[datetime] = None
    value_date: Optional[datetime] = None
    additional_information: Optional[str] = None
    transactions: List[PydanticTransaction] = []


class PydanticStatement(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    creation_date: Optional[datetime] = None
    account: Optional[Union[PydanticIbanAccount, PydanticLocalAccount]] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    num_of_entries: Optional[int] = None
    sum_of_entries: Optional[Decimal] = None
    net_amount_of_entries: Optional[int] = None
    balances: List[PydanticBalance] = []
    entries: List[PydanticEntry] = []


class PydanticIso20022Message(BaseModel):
    """Envelope shared by every mirrored message: its type and raw JSON tree."""

    model_config = ConfigDict(from_attributes=True)

    message_type: str
    document: Optional[Dict[str, Any]] = None


class PydanticEndOfDayReport(PydanticIso20022Message):
    message_id: str
    creation_date: Optional[datetime] = None
    recipient: Optional[PydanticParty] = None
    statements: List[PydanticStatement] = []


class PydanticPaymentInstruction(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    type: str
    id: Optional[str] = None
    end_to_end_id: Optional[str] = None
    amount: int
    currency: str
    creditor: PydanticParty
    remittance_information: Optional[str] = None


class PydanticPaymentInitiation(PydanticIso20022Message):
    variant: str
    message_id: str
    creation_date: datetime
    payment_information_id: Optional[str] = None
    currency: str
    control_sum: str
    initiating_party: PydanticParty
    payment_instructions: List[PydanticPaymentInstruction]


class PydanticStatusReason(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: Optional[str] = None
    additional_information: Optional[str] = None


class PydanticStatusInformation(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    type: Literal["group", "payment", "transaction"]
    original_id: Optional[str] = None
    status: StatusCode
    reason: Optional[PydanticStatusReason] = None


class PydanticPaymentStatusReport(PydanticIso20022Message):
    message_id: str
    creation_date: Optional[datetime] = None
    original_message_id: str
    status: Optional[StatusCode] = None
    statuses: List[PydanticStatusInformation] = []


def _envelope(msg: Any) -> Dict[str, Any]:
    return {"message_type": msg.message_type.value, "document": msg.to_json()}


def from_dataclass(msg: Any) -> PydanticIso20022Message:
    """
    Converts a mapped isomapper message into its Pydantic equivalent.

    Messages without a dedicated mirror are returned as the generic
    envelope, carrying their JSON tree.
    """
    if isinstance(msg, CashManagementEndOfDayReport):
        return PydanticEndOfDayReport.model_validate(
            {
                **_envelope(msg),
                "message_id": msg.message_id,
                "creation_date": msg.creation_date,
                "recipient": msg.recipient,
                "statements": msg.statements,
            }
        )
    if isinstance(msg, PaymentInitiation):
        return PydanticPaymentInitiation.model_validate(
            {
                **_envelope(msg),
                "variant": msg.variant,
                "message_id": msg.message_id,
                "creation_date": msg.creation_date,
                "payment_information_id": msg.payment_information_id,
                "currency": msg.currency,
                "control_sum": msg.control_sum,
                "initiating_party": msg.initiating_party,
                "payment_instructions": msg.payment_instructions,
            }
        )
    if isinstance(msg, PaymentStatusReport):
        return PydanticPaymentStatusReport.model_validate(
            {
                **_envelope(msg),
                "message_id": msg.message_id,
                "creation_date": msg.creation_date,
                "original_message_id": msg.original_message_id,
                "status": msg.status,
                "statuses": msg.statuses,
            }
        )

    return PydanticIso20022Message.model_validate(_envelope(msg))
