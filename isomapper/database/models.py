from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StatementRecord(Base):
    """
    One camt.053 ``Stmt`` block. Amounts are stored in minor units, as
    integers, alongside the currency they are expressed in.
    """

    __tablename__ = "statements"

    id: Mapped[int] = mapped_column(primary_key=True)
    message_id: Mapped[str] = mapped_column(String(35), index=True)
    statement_id: Mapped[str] = mapped_column(String(35), index=True)

    account_identifier: Mapped[Optional[str]] = mapped_column(String(34), index=True)
    account_currency: Mapped[Optional[str]] = mapped_column(String(3))
    servicer_bic: Mapped[Optional[str]] = mapped_column(String(11))

    creation_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    from_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    to_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    num_of_entries: Mapped[Optional[int]] = mapped_column(Integer)
    net_amount_of_entries: Mapped[Optional[int]] = mapped_column(Integer)

    # Balances are stored as JSON, one dict per Bal block
    balances: Mapped[Optional[list]] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    entries: Mapped[List["EntryRecord"]] = relationship(
        back_populates="statement", cascade="all, delete-orphan", order_by="EntryRecord.id"
    )


class EntryRecord(Base):
    """One ``Ntry`` of a stored statement, with its flattened transaction details."""

    __tablename__ = "entries"

    id: Mapped[int] = mapped_column(primary_key=True)
    statement_id: Mapped[int] = mapped_column(ForeignKey("statements.id"), index=True)

    reference_id: Mapped[Optional[str]] = mapped_column(String(35))
    account_identifier: Mapped[Optional[str]] = mapped_column(String(34), index=True)
    credit_debit_indicator: Mapped[str] = mapped_column(String(6))
    amount: Mapped[int] = mapped_column(Integer)
    currency: Mapped[str] = mapped_column(String(3))
    reversal: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[Optional[str]] = mapped_column(String(4))
    booking_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    value_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    additional_information: Mapped[Optional[str]] = mapped_column(String(500))

    transactions: Mapped[Optional[list]] = mapped_column(JSON)

    statement: Mapped[StatementRecord] = relationship(back_populates="entries")
