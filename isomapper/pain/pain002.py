from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional

from isomapper.errors import InvalidStructureError
from isomapper.message import Iso20022Message, MessageType
from isomapper.models import (
    GroupStatusInformation,
    OriginalGroupInformation,
    Party,
    PaymentStatusInformation,
    StatusCode,
    StatusInformation,
    StatusReason,
    TransactionStatusInformation,
)
from isomapper.parse_utils import (
    export_party,
    first,
    format_datetime,
    parse_additional_information,
    parse_date,
    parse_party,
)
from isomapper.xmltree import RawTree, as_list, dig, prune, text_of

ORIGINAL_MESSAGE_NAME = "pain.001.001.03"


def parse_status(value: Any) -> StatusCode:
    code = text_of(value)
    try:
        return StatusCode(code)
    except ValueError:
        raise InvalidStructureError(f"Unknown status: {code}") from None


def parse_status_reason(raw: Any) -> Optional[StatusReason]:
    information = first(raw)
    if not isinstance(information, dict):
        return None
    reason = StatusReason(
        code=text_of(dig(information, "Rsn", "Cd")),
        additional_information=parse_additional_information(information.get("AddtlInf")),
    )
    if reason == StatusReason():
        return None
    return reason


def export_status_reason(reason: Optional[StatusReason]) -> Optional[Dict[str, Any]]:
    if reason is None:
        return None
    return {"Rsn": {"Cd": reason.code}, "AddtlInf": reason.additional_information}


def parse_group_status(raw: Dict[str, Any]) -> Optional[GroupStatusInformation]:
    if text_of(raw.get("GrpSts")) is None:
        return None
    return GroupStatusInformation(
        original_message_id=text_of(raw.get("OrgnlMsgId")),
        status=parse_status(raw.get("GrpSts")),
        reason=parse_status_reason(raw.get("StsRsnInf")),
    )


def parse_payment_statuses(payments: List[Dict[str, Any]]) -> List[PaymentStatusInformation]:
    return [
        PaymentStatusInformation(
            original_payment_id=text_of(payment.get("OrgnlPmtInfId")),
            status=parse_status(payment.get("PmtInfSts")),
            reason=parse_status_reason(payment.get("StsRsnInf")),
        )
        for payment in payments
        if text_of(payment.get("PmtInfSts")) is not None
    ]


def parse_transaction_statuses(transactions: List[Dict[str, Any]]) -> List[TransactionStatusInformation]:
    return [
        TransactionStatusInformation(
            original_end_to_end_id=text_of(transaction.get("OrgnlEndToEndId")),
            status=parse_status(transaction.get("TxSts")),
            reason=parse_status_reason(transaction.get("StsRsnInf")),
        )
        for transaction in transactions
        if text_of(transaction.get("TxSts")) is not None
    ]


@dataclass(frozen=True)
class PaymentStatusReport(Iso20022Message):
    """
    A pain.002 Customer Payment Status Report.

    ``statuses`` lists the group status first, then every payment-level
    status, then every transaction-level status, so the first entry is
    always the most general status the bank reported.
    """

    message_id: str
    creation_date: Optional[datetime]
    initiating_party: Optional[Party]
    original_group_information: OriginalGroupInformation
    statuses: List[StatusInformation] = field(default_factory=list)

    message_type: ClassVar[MessageType] = MessageType.PAIN_002
    serialization_namespace: ClassVar[str] = "urn:iso:std:iso:20022:tech:xsd:pain.002.001.03"

    @classmethod
    def from_document_object(cls, tree: RawTree) -> "PaymentStatusReport":
        report = dig(tree, "Document", "CstmrPmtStsRpt")
        if not isinstance(report, dict):
            raise InvalidStructureError("Invalid PAIN.002 document: missing CstmrPmtStsRpt")

        header = report.get("GrpHdr") or {}
        message_id = text_of(header.get("MsgId"))
        if not message_id:
            raise InvalidStructureError("Invalid PAIN.002 document: missing GrpHdr.MsgId")

        group = report.get("OrgnlGrpInfAndSts")
        if not isinstance(group, dict):
            raise InvalidStructureError("Invalid PAIN.002 document: missing OrgnlGrpInfAndSts")

        payments = [p for p in as_list(report.get("OrgnlPmtInfAndSts")) if isinstance(p, dict)]
        transactions = [
            tx for payment in payments for tx in as_list(payment.get("TxInfAndSts")) if isinstance(tx, dict)
        ]

        statuses: List[StatusInformation] = []
        group_status = parse_group_status(group)
        if group_status is not None:
            statuses.append(group_status)
        statuses.extend(parse_payment_statuses(payments))
        statuses.extend(parse_transaction_statuses(transactions))

        return cls(
            message_id=message_id,
            creation_date=parse_date(header.get("CreDtTm")),
            initiating_party=parse_party(header.get("InitgPty")) if header.get("InitgPty") else None,
            original_group_information=OriginalGroupInformation(
                original_message_id=text_of(group.get("OrgnlMsgId"))
            ),
            statuses=statuses,
        )

    @property
    def first_status_information(self) -> Optional[StatusInformation]:
        return self.statuses[0] if self.statuses else None

    @property
    def status(self) -> Optional[StatusCode]:
        """The status of the most general level reported."""
        information = self.first_status_information
        return information.status if information else None

    @property
    def original_id(self) -> Optional[str]:
        """The original message, payment or end-to-end id the first status refers to."""
        information = self.first_status_information
        return information.original_id if information else None

    @property
    def original_message_id(self) -> str:
        return self.original_group_information.original_message_id

    def to_json(self) -> RawTree:
        group = next((s for s in self.statuses if s.type == "group"), None)
        payments = [s for s in self.statuses if s.type == "payment"]
        transactions = [s for s in self.statuses if s.type == "transaction"]

        payment_nodes = [
            {
                "OrgnlPmtInfId": payment.original_payment_id,
                "PmtInfSts": payment.status.value,
                "StsRsnInf": export_status_reason(payment.reason),
            }
            for payment in payments
        ]
        transaction_nodes = [
            {
                "OrgnlEndToEndId": transaction.original_end_to_end_id,
                "TxSts": transaction.status.value,
                "StsRsnInf": export_status_reason(transaction.reason),
            }
            for transaction in transactions
        ]
        # payment grouping of transaction statuses is not kept; attach them to the last payment
        if transaction_nodes:
            if not payment_nodes:
                payment_nodes.append({"OrgnlPmtInfId": None})
            payment_nodes[-1]["TxInfAndSts"] = transaction_nodes

        return prune(
            {
                "Document": {
                    "CstmrPmtStsRpt": {
                        "GrpHdr": {
                            "MsgId": self.message_id,
                            "CreDtTm": format_datetime(self.creation_date),
                            "InitgPty": export_party(self.initiating_party),
                        },
                        "OrgnlGrpInfAndSts": {
                            "OrgnlMsgId": self.original_message_id,
                            "OrgnlMsgNmId": ORIGINAL_MESSAGE_NAME,
                            "GrpSts": group.status.value if group else None,
                            "StsRsnInf": export_status_reason(group.reason) if group else None,
                        },
                        "OrgnlPmtInfAndSts": payment_nodes,
                    }
                }
            }
        )
