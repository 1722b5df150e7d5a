from dataclasses import dataclass, field
from datetime import datetime, time, timezone
from typing import Any, ClassVar, Dict, List, Optional

from isomapper.camt.utils import export_business_error, parse_business_error
from isomapper.currency import to_decimal_string
from isomapper.errors import InvalidStructureError
from isomapper.message import Iso20022Message, MessageType
from isomapper.models import (
    MessageHeader,
    Party,
    PaymentIdentification,
    TransactionReport,
    TransactionReportOrError,
    TransactionReportStatus,
)
from isomapper.parse_utils import (
    export_agent,
    export_message_header,
    export_party,
    first,
    format_date,
    format_datetime,
    parse_agent,
    parse_amount,
    parse_date,
    parse_message_header,
    parse_party,
)
from isomapper.xmltree import RawTree, as_list, attribute_of, dig, prune, text_of

# Sts/Cd choice elements, in lookup order
STATUS_CODE_TYPES = ("Pdg", "Fnl", "RTGS", "Sttlm", "Prtly")


def _parse_payment_id(raw: Dict[str, Any]) -> PaymentIdentification:
    identification = dig(raw, "PmtId", "LngBizId") or {}
    settlement_amount = identification.get("IntrBkSttlmAmt") or {}
    raw_amount = settlement_amount.get("Amt") or settlement_amount.get("Amount")

    currency = text_of(settlement_amount.get("Ccy")) or attribute_of(raw_amount, "Ccy")
    if not currency:
        raise InvalidStructureError("Invalid CAMT.006 document: missing Ccy in PmtId.LngBizId.IntrBkSttlmAmt")
    if text_of(raw_amount) is None:
        raise InvalidStructureError(
            "Invalid CAMT.006 document: missing or invalid Amt in PmtId.LngBizId.IntrBkSttlmAmt"
        )
    end_to_end_id = text_of(identification.get("EndToEndId"))
    if not end_to_end_id:
        raise InvalidStructureError("Invalid CAMT.006 document: missing EndToEndId in PmtId.LngBizId")

    return PaymentIdentification(
        currency=currency,
        amount=parse_amount(raw_amount, currency, "PmtId.LngBizId.IntrBkSttlmAmt.Amt"),
        end_to_end_id=end_to_end_id,
        transaction_id=text_of(identification.get("TxId")),
        uetr=text_of(identification.get("UETR")),
    )


def _parse_status(raw: Any) -> Optional[TransactionReportStatus]:
    status = first(raw)
    if not isinstance(status, dict):
        return None
    codes = status.get("Cd")
    if not isinstance(codes, dict):
        return None
    for code_type in STATUS_CODE_TYPES:
        code = text_of(codes.get(code_type))
        if code:
            return TransactionReportStatus(
                code=f"{code_type}:{code}",
                reason=text_of(dig(status, "Rsn", "Prtry")),
            )
    return None


def _export_status(status: Optional[TransactionReportStatus]) -> Optional[Dict[str, Any]]:
    if status is None:
        return None
    return {
        "Cd": {status.code_type: status.code_value},
        "Rsn": {"Prtry": status.reason} if status.reason else None,
    }


def _parse_counterparty(raw: Any) -> Party:
    party = parse_party(dig(raw, "Pty"))
    agent = parse_agent(dig(raw, "Agt"))
    return Party(id=party.id, name=party.name, address=party.address, agent=agent)


def _export_counterparty(party: Party) -> Dict[str, Any]:
    return {"Pty": export_party(party), "Agt": export_agent(party.agent, bic_tag="BICFI")}


def _export_execution_date(value: Optional[datetime]) -> Optional[Dict[str, Any]]:
    if value is None:
        return None
    utc = value.astimezone(timezone.utc)
    if utc.time() == time(0):
        return {"Dt": format_date(utc)}
    return {"DtTm": format_datetime(utc)}


def _parse_report(raw: Dict[str, Any]) -> TransactionReportOrError:
    payment_id = _parse_payment_id(raw)

    transaction = dig(raw, "TxOrErr", "Tx")
    business_error = dig(raw, "TxOrErr", "BizErr")

    if isinstance(transaction, dict):
        payment = transaction.get("Pmt") or {}
        parties = payment.get("Pties") or {}
        report = TransactionReport(
            msg_id=text_of(payment.get("MsgId")),
            requested_execution_date=parse_date(payment.get("ReqdExctnDt")),
            status=_parse_status(payment.get("Sts")),
            debtor=_parse_counterparty(parties.get("Dbtr")),
            debtor_agent=parse_agent(parties.get("DbtrAgt")),
            creditor=_parse_counterparty(parties.get("Cdtr")),
            creditor_agent=parse_agent(parties.get("CdtrAgt")),
        )
        if not report.debtor.id:
            raise InvalidStructureError("Invalid CAMT.006 document: missing Id in TxOrErr.Tx.Dbtr.Pty")
        if not report.creditor.id:
            raise InvalidStructureError("Invalid CAMT.006 document: missing Id in TxOrErr.Tx.Cdtr.Pty")
        return TransactionReportOrError(payment_id=payment_id, report=report)

    if isinstance(business_error, dict):
        return TransactionReportOrError(payment_id=payment_id, error=parse_business_error(business_error))

    raise InvalidStructureError("Invalid CAMT.006 document: missing TxOrErr")


def _export_report(item: TransactionReportOrError) -> Dict[str, Any]:
    payment_id = item.payment_id
    if item.report is not None:
        report = item.report
        transaction_or_error = {
            "Tx": {
                "Pmt": {
                    "MsgId": report.msg_id,
                    "ReqdExctnDt": _export_execution_date(report.requested_execution_date),
                    "Sts": _export_status(report.status),
                    "Pties": {
                        "Dbtr": _export_counterparty(report.debtor),
                        "DbtrAgt": export_agent(report.debtor_agent, bic_tag="BICFI"),
                        "Cdtr": _export_counterparty(report.creditor),
                        "CdtrAgt": export_agent(report.creditor_agent, bic_tag="BICFI"),
                    },
                }
            }
        }
    else:
        transaction_or_error = {"BizErr": export_business_error(item.error)}

    return {
        "PmtId": {
            "LngBizId": {
                "TxId": payment_id.transaction_id,
                "UETR": payment_id.uetr,
                "IntrBkSttlmAmt": {
                    "Amt": to_decimal_string(payment_id.amount, payment_id.currency),
                    "Ccy": payment_id.currency,
                },
                "EndToEndId": payment_id.end_to_end_id,
            }
        },
        "TxOrErr": transaction_or_error,
    }


@dataclass(frozen=True)
class CashManagementReturnTransaction(Iso20022Message):
    """
    A camt.006 Return Transaction message.

    Each ``TxRpt`` pairs a payment identification with either a transaction
    report (status, parties and agents) or a business error.
    """

    header: MessageHeader
    reports: List[TransactionReportOrError] = field(default_factory=list)

    message_type: ClassVar[MessageType] = MessageType.CAMT_006
    serialization_namespace: ClassVar[str] = "urn:iso:std:iso:20022:tech:xsd:camt.006.001.02"

    @classmethod
    def from_document_object(cls, tree: RawTree) -> "CashManagementReturnTransaction":
        raw_header = dig(tree, "Document", "RtrTx", "MsgHdr")
        if not raw_header:
            raise InvalidStructureError("Invalid CAMT.006 document: missing MsgHdr")

        raw_reports = [
            r
            for r in as_list(dig(tree, "Document", "RtrTx", "RptOrErr", "BizRpt", "TxRpt"))
            if isinstance(r, dict)
        ]
        reports = [_parse_report(raw) for raw in raw_reports]
        return cls(header=parse_message_header(raw_header), reports=reports)

    def to_json(self) -> RawTree:
        return prune(
            {
                "Document": {
                    "RtrTx": {
                        "MsgHdr": export_message_header(self.header),
                        "RptOrErr": {"BizRpt": {"TxRpt": [_export_report(item) for item in self.reports]}},
                    }
                }
            }
        )
