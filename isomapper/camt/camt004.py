from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List

from isomapper.camt.utils import (
    export_balance_report,
    export_business_error,
    parse_balance_report,
    parse_business_error,
)
from isomapper.errors import InvalidStructureError
from isomapper.message import Iso20022Message, MessageType
from isomapper.models import AccountReport, AccountReportOrError, MessageHeader
from isomapper.parse_utils import (
    export_account_identification,
    export_message_header,
    parse_account_identification,
    parse_message_header,
)
from isomapper.xmltree import RawTree, as_list, dig, prune, text_of


def _parse_report(raw: Dict[str, Any]) -> AccountReportOrError:
    account_id = parse_account_identification(raw.get("AcctId"))
    if account_id is None:
        raise InvalidStructureError("Invalid CAMT.004 document: missing AcctId")

    account = dig(raw, "AcctOrErr", "Acct")
    business_error = dig(raw, "AcctOrErr", "BizErr")

    if isinstance(account, dict):
        currency = text_of(account.get("Ccy"))
        if not currency:
            raise InvalidStructureError("Invalid CAMT.004 document: missing Ccy in Acct")
        balances = [parse_balance_report(currency, bal) for bal in as_list(account.get("MulBal"))]
        if not balances:
            raise InvalidStructureError("Invalid CAMT.004 document: missing MulBal in Acct")
        report = AccountReport(
            currency=currency,
            name=text_of(account.get("Nm")),
            type=text_of(dig(account, "Tp", "Cd")) or text_of(dig(account, "Tp", "Prtry")),
            balances=balances,
        )
        return AccountReportOrError(account_id=account_id, report=report)

    if isinstance(business_error, dict):
        return AccountReportOrError(account_id=account_id, error=parse_business_error(business_error))

    raise InvalidStructureError("Invalid CAMT.004 document: missing AcctOrErr")


def _export_report(item: AccountReportOrError) -> Dict[str, Any]:
    if item.report is not None:
        report = item.report
        account_or_error = {
            "Acct": {
                "Nm": report.name,
                "Tp": {"Cd": report.type},
                "Ccy": report.currency,
                "MulBal": [export_balance_report(report.currency, bal) for bal in report.balances],
            }
        }
    else:
        account_or_error = {"BizErr": export_business_error(item.error)}

    return {
        "AcctId": export_account_identification(item.account_id),
        "AcctOrErr": account_or_error,
    }


@dataclass(frozen=True)
class CashManagementReturnAccount(Iso20022Message):
    """
    A camt.004 Return Account message: one report or business error per
    queried account.
    """

    header: MessageHeader
    reports: List[AccountReportOrError] = field(default_factory=list)

    message_type: ClassVar[MessageType] = MessageType.CAMT_004
    serialization_namespace: ClassVar[str] = "urn:iso:std:iso:20022:tech:xsd:camt.004.001.02"

    @classmethod
    def from_document_object(cls, tree: RawTree) -> "CashManagementReturnAccount":
        raw_header = dig(tree, "Document", "RtrAcct", "MsgHdr")
        if not raw_header:
            raise InvalidStructureError("Invalid CAMT.004 document: missing MsgHdr")

        raw_reports = [
            r for r in as_list(dig(tree, "Document", "RtrAcct", "RptOrErr", "AcctRpt")) if isinstance(r, dict)
        ]
        reports = [_parse_report(raw) for raw in raw_reports]
        return cls(header=parse_message_header(raw_header), reports=reports)

    def to_json(self) -> RawTree:
        return prune(
            {
                "Document": {
                    "RtrAcct": {
                        "MsgHdr": export_message_header(self.header),
                        "RptOrErr": {"AcctRpt": [_export_report(item) for item in self.reports]},
                    }
                }
            }
        )
