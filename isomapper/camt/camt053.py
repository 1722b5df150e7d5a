from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar, List, Optional

from isomapper.camt.utils import export_statement, parse_statement
from isomapper.errors import InvalidStructureError
from isomapper.message import Iso20022Message, MessageType
from isomapper.models import Balance, Entry, Party, Statement, Transaction
from isomapper.parse_utils import export_recipient, format_datetime, parse_date, parse_recipient
from isomapper.xmltree import RawTree, as_list, dig, prune, text_of


@dataclass(frozen=True)
class CashManagementEndOfDayReport(Iso20022Message):
    """
    A camt.053 Bank-to-Customer Statement.

    Attributes:
        message_id: ``GrpHdr/MsgId``.
        creation_date: ``GrpHdr/CreDtTm``.
        statements: Every ``Stmt`` block of the report, in document order.
        recipient: The optional ``GrpHdr/MsgRcpt`` party.
    """

    message_id: str
    creation_date: Optional[datetime]
    statements: List[Statement] = field(default_factory=list)
    recipient: Optional[Party] = None

    message_type: ClassVar[MessageType] = MessageType.CAMT_053
    serialization_namespace: ClassVar[str] = "urn:iso:std:iso:20022:tech:xsd:camt.053.001.02"

    @classmethod
    def from_document_object(cls, tree: RawTree) -> "CashManagementEndOfDayReport":
        report = dig(tree, "Document", "BkToCstmrStmt")
        if not isinstance(report, dict):
            raise InvalidStructureError("Invalid CAMT.053 document: missing BkToCstmrStmt")

        header = report.get("GrpHdr") or {}
        message_id = text_of(dig(header, "MsgId"))
        if not message_id:
            raise InvalidStructureError("Invalid CAMT.053 document: missing GrpHdr.MsgId")

        statements = [parse_statement(stmt) for stmt in as_list(report.get("Stmt"))]

        return cls(
            message_id=message_id,
            creation_date=parse_date(dig(header, "CreDtTm")),
            statements=statements,
            recipient=parse_recipient(dig(header, "MsgRcpt")),
        )

    def to_json(self) -> RawTree:
        return prune(
            {
                "Document": {
                    "BkToCstmrStmt": {
                        "GrpHdr": {
                            "MsgId": self.message_id,
                            "CreDtTm": format_datetime(self.creation_date),
                            "MsgRcpt": export_recipient(self.recipient),
                        },
                        "Stmt": [export_statement(statement) for statement in self.statements],
                    }
                }
            }
        )

    @property
    def balances(self) -> List[Balance]:
        """Every balance across every statement, in statement order."""
        return [balance for statement in self.statements for balance in statement.balances]

    @property
    def entries(self) -> List[Entry]:
        return [entry for statement in self.statements for entry in statement.entries]

    @property
    def transactions(self) -> List[Transaction]:
        return [tx for entry in self.entries for tx in entry.transactions]
