from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List

from isomapper.errors import InvalidStructureError
from isomapper.message import Iso20022Message, MessageType
from isomapper.models import (
    MessageHeader,
    TransactionCriterion,
    TransactionCriterionType,
    TransactionQueryCriteria,
)
from isomapper.parse_utils import (
    export_message_header,
    format_date,
    parse_date,
    parse_message_header,
    text_list,
)
from isomapper.xmltree import RawTree, as_list, dig, prune, text_of


def _parse_criteria(raw: Dict[str, Any]) -> List[TransactionCriterion]:
    """A single ``SchCrit`` may yield up to one criterion of each type."""
    search = raw.get("PmtSch")
    if not isinstance(search, dict):
        return []

    criteria = []
    message_ids = text_list(search.get("MsgId"))
    if message_ids:
        criteria.append(
            TransactionCriterion(type=TransactionCriterionType.MESSAGE_ID, msg_ids_equal_to=message_ids)
        )

    execution_dates = as_list(search.get("ReqdExctnDt"))
    if len(execution_dates) > 1:
        raise InvalidStructureError("Invalid CAMT.005 document: multiple ReqdExctnDt criterium not supported")
    if execution_dates:
        date = parse_date(dig(execution_dates[0], "DtSch", "EQDt"))
        if date is not None:
            criteria.append(
                TransactionCriterion(type=TransactionCriterionType.REQUESTED_EXECUTION_DATE, date_equal_to=date)
            )

    end_to_end_ids = [
        text_of(dig(payment_id, "LngBizId", "EndToEndId")) for payment_id in as_list(search.get("PmtId"))
    ]
    end_to_end_ids = [value for value in end_to_end_ids if value]
    if end_to_end_ids:
        criteria.append(
            TransactionCriterion(
                type=TransactionCriterionType.END_TO_END_ID, end_to_end_ids_equal_to=end_to_end_ids
            )
        )
    return criteria


def _export_criterion(criterion: TransactionCriterion) -> Dict[str, Any]:
    criterion_type = TransactionCriterionType(criterion.type)
    if criterion_type is TransactionCriterionType.MESSAGE_ID:
        search = {"MsgId": criterion.msg_ids_equal_to}
    elif criterion_type is TransactionCriterionType.REQUESTED_EXECUTION_DATE:
        search = {"ReqdExctnDt": {"DtSch": {"EQDt": format_date(criterion.date_equal_to)}}}
    else:
        search = {
            "PmtId": [
                {"LngBizId": {"EndToEndId": end_to_end_id}}
                for end_to_end_id in criterion.end_to_end_ids_equal_to or []
            ]
        }
    return {"PmtSch": search}


@dataclass(frozen=True)
class CashManagementGetTransaction(Iso20022Message):
    """
    A camt.005 Get Transaction query, searching payments by message id,
    requested execution date or end-to-end id.
    """

    header: MessageHeader
    new_criteria: TransactionQueryCriteria

    message_type: ClassVar[MessageType] = MessageType.CAMT_005
    serialization_namespace: ClassVar[str] = "urn:iso:std:iso:20022:tech:xsd:camt.005.001.02"

    @classmethod
    def from_document_object(cls, tree: RawTree) -> "CashManagementGetTransaction":
        raw_header = dig(tree, "Document", "GetTx", "MsgHdr")
        if not raw_header:
            raise InvalidStructureError("Invalid CAMT.005 document: missing MsgHdr")

        new_criteria = dig(tree, "Document", "GetTx", "TxQryDef", "TxCrit", "NewCrit")
        if not new_criteria:
            raise InvalidStructureError("Invalid CAMT.005 document: missing GetTx.TxQryDef.TxCrit.NewCrit")

        raw_criteria = [c for c in as_list(dig(new_criteria, "SchCrit")) if isinstance(c, dict)]
        if not raw_criteria:
            raise InvalidStructureError("Invalid CAMT.005 document: missing search criteria")

        search_criteria = [criterion for raw in raw_criteria for criterion in _parse_criteria(raw)]
        return cls(
            header=parse_message_header(raw_header),
            new_criteria=TransactionQueryCriteria(
                name=text_of(dig(new_criteria, "NewQryNm")),
                search_criteria=search_criteria,
            ),
        )

    def to_json(self) -> RawTree:
        return prune(
            {
                "Document": {
                    "GetTx": {
                        "MsgHdr": export_message_header(self.header),
                        "TxQryDef": {
                            "TxCrit": {
                                "NewCrit": {
                                    "NewQryNm": self.new_criteria.name,
                                    "SchCrit": [_export_criterion(c) for c in self.new_criteria.search_criteria],
                                }
                            }
                        },
                    }
                }
            }
        )
