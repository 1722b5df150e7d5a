import dataclasses
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from isomapper.camt.camt053 import CashManagementEndOfDayReport
from isomapper.database.models import Base, EntryRecord, StatementRecord
from isomapper.models import BicAgent, Entry, Statement
from isomapper.parse_utils import account_identifier, format_datetime

logger = logging.getLogger(__name__)


def _json_safe(value: Any) -> Any:
    """Makes dataclass dumps JSON-column friendly (datetimes to ISO strings)."""
    if isinstance(value, dict):
        return {key: _json_safe(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_json_safe(item) for item in value]
    if isinstance(value, datetime):
        return format_datetime(value)
    return value


class MessageRepository:
    """
    Repository layer for persisting camt.053 statements and their entries.
    """

    def __init__(self, session: Session):
        self.session = session

    def save(self, report: CashManagementEndOfDayReport) -> List[StatementRecord]:
        """
        Converts every statement of a report into a StatementRecord, with one
        EntryRecord per entry, and adds them to the session.
        """
        records = [self._to_record(report.message_id, statement) for statement in report.statements]
        self.session.add_all(records)
        self.session.flush()
        logger.debug("Stored %d statement(s) of %s", len(records), report.message_id)
        return records

    def get_by_statement_id(self, statement_id: str) -> Optional[StatementRecord]:
        stmt = select(StatementRecord).where(StatementRecord.statement_id == statement_id)
        return self.session.execute(stmt).scalars().first()

    def list_by_message_id(self, message_id: str) -> List[StatementRecord]:
        stmt = select(StatementRecord).where(StatementRecord.message_id == message_id)
        return list(self.session.execute(stmt).scalars().all())

    def list_entries_by_account(self, account: str) -> List[EntryRecord]:
        """
        Lists every stored entry booked on an account (IBAN or local number),
        across statements, oldest booking first.
        """
        stmt = (
            select(EntryRecord)
            .where(EntryRecord.account_identifier == account)
            .order_by(EntryRecord.booking_date, EntryRecord.id)
        )
        return list(self.session.execute(stmt).scalars().all())

    def _entry_record(self, account: Optional[str], entry: Entry) -> EntryRecord:
        return EntryRecord(
            reference_id=entry.reference_id,
            account_identifier=account,
            credit_debit_indicator=entry.credit_debit_indicator,
            amount=entry.amount,
            currency=entry.currency,
            reversal=entry.reversal,
            status=entry.status,
            booking_date=entry.booking_date,
            value_date=entry.value_date,
            additional_information=entry.additional_information,
            transactions=[_json_safe(dataclasses.asdict(tx)) for tx in entry.transactions] or None,
        )

    def _to_record(self, message_id: str, statement: Statement) -> StatementRecord:
        account = account_identifier(statement.account)
        balances: List[Dict[str, Any]] = [_json_safe(dataclasses.asdict(b)) for b in statement.balances]
        return StatementRecord(
            message_id=message_id,
            statement_id=statement.id,
            account_identifier=account,
            account_currency=getattr(statement.account, "currency", None),
            servicer_bic=statement.agent.bic if isinstance(statement.agent, BicAgent) else None,
            creation_date=statement.creation_date,
            from_date=statement.from_date,
            to_date=statement.to_date,
            num_of_entries=statement.num_of_entries,
            net_amount_of_entries=statement.net_amount_of_entries,
            balances=balances or None,
            entries=[self._entry_record(account, entry) for entry in statement.entries],
        )

    @staticmethod
    def create_schema(engine) -> None:
        """
        Utility to create all defined tables in the target database.
        """
        Base.metadata.create_all(engine)
