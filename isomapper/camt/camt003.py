from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Optional

from isomapper.errors import InvalidStructureError
from isomapper.message import Iso20022Message, MessageType
from isomapper.models import AccountCriterion, AccountQueryCriteria, MessageHeader
from isomapper.parse_utils import (
    export_account_identification,
    export_message_header,
    format_date,
    parse_account_identification,
    parse_date,
    parse_message_header,
)
from isomapper.xmltree import RawTree, as_list, dig, prune, text_of

_CONTAINS_PREFIX, _CONTAINS_SUFFIX = ".*", ".*"
_NOT_CONTAINS_PREFIX, _NOT_CONTAINS_SUFFIX = "^((?!", ").)*$"


def contains_pattern(text: str) -> str:
    return f"{_CONTAINS_PREFIX}{text}{_CONTAINS_SUFFIX}"


def not_contains_pattern(text: str) -> str:
    return f"{_NOT_CONTAINS_PREFIX}{text}{_NOT_CONTAINS_SUFFIX}"


def _single(criterion: Dict[str, Any], key: str) -> Any:
    values = as_list(criterion.get(key))
    if len(values) > 1:
        raise InvalidStructureError(f"Invalid CAMT.003 document: multiple {key} criterium not supported")
    return values[0] if values else None


def _parse_criterion(raw: Dict[str, Any]) -> AccountCriterion:
    account_reg_exp = None
    account_equal_to = None
    account_id = _single(raw, "AcctId")
    if isinstance(account_id, dict):
        if text_of(account_id.get("CTTxt")):
            account_reg_exp = contains_pattern(text_of(account_id.get("CTTxt")))
        elif text_of(account_id.get("NCTTxt")):
            account_reg_exp = not_contains_pattern(text_of(account_id.get("NCTTxt")))
        elif account_id.get("EQ") is not None:
            account_equal_to = parse_account_identification(account_id.get("EQ"))

    balance_date = None
    balance = _single(raw, "Bal")
    if isinstance(balance, dict):
        value_date = _single(balance, "ValDt")
        balance_date = parse_date(dig(value_date, "Dt", "EQDt"))

    return AccountCriterion(
        account_reg_exp=account_reg_exp,
        account_equal_to=account_equal_to,
        currency_equal_to=text_of(_single(raw, "Ccy")),
        balance_as_of_date_equal_to=balance_date,
    )


def _export_account_match(criterion: AccountCriterion) -> Optional[Dict[str, Any]]:
    pattern = criterion.account_reg_exp
    if pattern:
        if pattern.startswith(_NOT_CONTAINS_PREFIX) and pattern.endswith(_NOT_CONTAINS_SUFFIX):
            return {"NCTTxt": pattern[len(_NOT_CONTAINS_PREFIX):-len(_NOT_CONTAINS_SUFFIX)]}
        if pattern.startswith(_CONTAINS_PREFIX) and pattern.endswith(_CONTAINS_SUFFIX):
            return {"CTTxt": pattern[len(_CONTAINS_PREFIX):-len(_CONTAINS_SUFFIX)]}
        raise InvalidStructureError(
            f"Account pattern '{pattern}' is neither a contains nor a not-contains expression"
        )
    if criterion.account_equal_to is not None:
        return {"EQ": export_account_identification(criterion.account_equal_to)}
    return None


def _export_criterion(criterion: AccountCriterion) -> Dict[str, Any]:
    balance = None
    if criterion.balance_as_of_date_equal_to is not None:
        balance = [{"ValDt": [{"Dt": {"EQDt": format_date(criterion.balance_as_of_date_equal_to)}}]}]
    return {
        "AcctId": _export_account_match(criterion),
        "Ccy": [criterion.currency_equal_to] if criterion.currency_equal_to else None,
        "Bal": balance,
    }


@dataclass(frozen=True)
class CashManagementGetAccount(Iso20022Message):
    """
    A camt.003 Get Account query. Only new criteria (``NewCrit``) are supported.
    """

    header: MessageHeader
    new_criteria: AccountQueryCriteria

    message_type: ClassVar[MessageType] = MessageType.CAMT_003
    serialization_namespace: ClassVar[str] = "urn:iso:std:iso:20022:tech:xsd:camt.003.001.02"

    @classmethod
    def from_document_object(cls, tree: RawTree) -> "CashManagementGetAccount":
        raw_header = dig(tree, "Document", "GetAcct", "MsgHdr")
        if not raw_header:
            raise InvalidStructureError("Invalid CAMT.003 document: missing MsgHdr")
        header = parse_message_header(raw_header)

        new_criteria = dig(tree, "Document", "GetAcct", "AcctQryDef", "AcctCrit", "NewCrit")
        if not new_criteria:
            raise InvalidStructureError(
                "Invalid CAMT.003 document: missing GetAcct.AcctQryDef.AcctCrit.NewCrit"
            )

        raw_criteria = [c for c in as_list(dig(new_criteria, "SchCrit")) if isinstance(c, dict)]
        if not raw_criteria:
            raise InvalidStructureError("Invalid CAMT.003 document: missing search criteria")

        return cls(
            header=header,
            new_criteria=AccountQueryCriteria(
                name=text_of(dig(new_criteria, "NewQryNm")),
                search_criteria=[_parse_criterion(raw) for raw in raw_criteria],
            ),
        )

    def to_json(self) -> RawTree:
        return prune(
            {
                "Document": {
                    "GetAcct": {
                        "MsgHdr": export_message_header(self.header),
                        "AcctQryDef": {
                            "AcctCrit": {
                                "NewCrit": {
                                    "NewQryNm": self.new_criteria.name,
                                    "SchCrit": [
                                        _export_criterion(c) for c in self.new_criteria.search_criteria
                                    ],
                                }
                            }
                        },
                    }
                }
            }
        )
