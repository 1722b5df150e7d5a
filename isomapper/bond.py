"""
Downstream analytics mapper: flattens camt.053 statements into account and
transaction records carrying a running balance.

Records are validated with pydantic. Hard validation errors abort the
mapping with AnalyticsValidationError; fields listed in a record's
``warn_if_missing`` only produce warnings, which are logged and returned.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Dict, FrozenSet, Iterable, List, Optional, Tuple, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from isomapper.camt.camt053 import CashManagementEndOfDayReport
from isomapper.errors import AnalyticsValidationError
from isomapper.models import Balance, Entry, LocalAccount, Party, Statement, Transaction
from isomapper.parse_utils import account_identifier

logger = logging.getLogger(__name__)

OPENING_BALANCE_TYPES = ("OPAV", "040", "40", "OPBD")
CLOSING_BALANCE_TYPES = ("CLAV", "015", "15", "901", "CLBD")

CURRENCY_PATTERN = r"^[A-Z]{3}$"


class BondRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    # absent values of these fields are warnings, not errors
    warn_if_missing: ClassVar[FrozenSet[str]] = frozenset()


class BalanceSnapshot(BondRecord):
    amount: str
    date: datetime


class AccountRecord(BondRecord):
    account_identifier: str
    currency: str = Field(pattern=CURRENCY_PATTERN)
    opening_balance: Optional[BalanceSnapshot] = None
    closing_balance: Optional[BalanceSnapshot] = None

    warn_if_missing: ClassVar[FrozenSet[str]] = frozenset({"opening_balance", "closing_balance"})


class Beneficiary(BondRecord):
    account_identifier: str
    metadata: Dict[str, Any]


class TransactionRecord(BondRecord):
    provider_id: Optional[str] = None
    amount: str
    currency: str = Field(pattern=CURRENCY_PATTERN)
    type: str
    ending_balance: str
    date: datetime
    reference: str
    description: Optional[str] = None
    beneficiary: Optional[Beneficiary] = None

    warn_if_missing: ClassVar[FrozenSet[str]] = frozenset({"provider_id", "description", "beneficiary"})


class AccountWithTransactions(AccountRecord):
    transactions: Optional[List[TransactionRecord]] = None

    warn_if_missing: ClassVar[FrozenSet[str]] = AccountRecord.warn_if_missing | {"transactions"}


@dataclass
class ValidationResult:
    """
    Outcome of validate_with_summary. ``success`` is True whenever there are
    no hard errors, warnings notwithstanding.
    """

    success: bool
    data: Any
    errors: List[Dict[str, str]] = field(default_factory=list)
    warnings: List[Dict[str, str]] = field(default_factory=list)


def _missing_field_warnings(model: Type[BondRecord], item: Any, prefix: str) -> List[Dict[str, str]]:
    values = item if isinstance(item, dict) else {}
    return [
        {"field": f"{prefix}{name}", "message": "Field is absent. Confirm expected behavior."}
        for name in sorted(model.warn_if_missing)
        if values.get(name) is None
    ]


def validate_with_summary(model: Type[BondRecord], data: Union[Dict[str, Any], List[Dict[str, Any]]]) -> ValidationResult:
    """
    Validates one record, or a list of records, against ``model``.

    Args:
        model: The record class.
        data: A mapping, or a list of mappings, of record fields.

    Returns:
        ValidationResult: ``data`` holds the validated model instance(s).

    Raises:
        AnalyticsValidationError: If any hard validation error is found. The
            exception carries the full issue list.
    """
    many = isinstance(data, list)
    items = data if many else [data]

    validated = []
    errors: List[Dict[str, str]] = []
    warnings: List[Dict[str, str]] = []
    for index, item in enumerate(items):
        prefix = f"{index}." if many else ""
        warnings.extend(_missing_field_warnings(model, item, prefix))
        try:
            validated.append(model.model_validate(item))
        except ValidationError as exc:
            for issue in exc.errors():
                location = ".".join(str(part) for part in issue["loc"])
                errors.append({"field": f"{prefix}{location}", "message": issue["msg"]})

    if errors:
        logger.error("%s validation failed with %d error(s)", model.__name__, len(errors))
        for issue in errors:
            logger.error('Field "%s" - %s', issue["field"], issue["message"])
        raise AnalyticsValidationError(
            f"{model.__name__} validation failed with {len(errors)} error(s)", errors
        )

    if warnings:
        logger.warning("%s validation produced %d warning(s)", model.__name__, len(warnings))
        for issue in warnings:
            logger.warning('Field "%s" is absent. Confirm expected behavior.', issue["field"])

    return ValidationResult(
        success=True,
        data=validated if many else validated[0],
        errors=[],
        warnings=warnings,
    )


class CamtToBondMapper:
    """
    Maps camt.053 reports to analytics account and transaction records.

    Args:
        opening_balance_types: Balance codes (ISO or proprietary) accepted as
            the opening balance, first match wins.
        closing_balance_types: Same for the closing balance.
    """

    def __init__(
        self,
        opening_balance_types: Optional[Iterable[str]] = None,
        closing_balance_types: Optional[Iterable[str]] = None,
    ):
        self.opening_balance_types = tuple(opening_balance_types or OPENING_BALANCE_TYPES)
        self.closing_balance_types = tuple(closing_balance_types or CLOSING_BALANCE_TYPES)

    # --- Entry points ---

    def parse(self, xml: Union[str, bytes]) -> List[AccountWithTransactions]:
        """One account record per statement, each with its transactions."""
        report = CashManagementEndOfDayReport.from_xml(xml)
        accounts = []
        for statement in report.statements:
            account = self.parse_account(statement)
            transactions = self.parse_statement_transactions(statement)
            result = validate_with_summary(
                AccountWithTransactions,
                {**account.model_dump(), "transactions": [t.model_dump() for t in transactions] or None},
            )
            accounts.append(result.data)
        return accounts

    def parse_accounts(self, xml: Union[str, bytes]) -> List[AccountRecord]:
        report = CashManagementEndOfDayReport.from_xml(xml)
        return [self.parse_account(statement) for statement in report.statements]

    def parse_transactions(self, xml: Union[str, bytes]) -> List[TransactionRecord]:
        report = CashManagementEndOfDayReport.from_xml(xml)
        return [
            record
            for statement in report.statements
            for record in self.parse_statement_transactions(statement)
        ]

    # --- Statement level ---

    def _account_currency(self, statement: Statement) -> Optional[str]:
        if isinstance(statement.account, LocalAccount) and statement.account.currency:
            return statement.account.currency
        # IBAN accounts carry no currency of their own
        return next((b.currency for b in statement.balances if b.currency), None)

    def _find_balance(self, statement: Statement, codes: Tuple[str, ...]) -> Optional[Balance]:
        return next(
            (b for b in statement.balances if b.type in codes or b.proprietary in codes),
            None,
        )

    def extract_balances(self, statement: Statement) -> Tuple[Balance, Balance]:
        """
        Raises:
            AnalyticsValidationError: If the opening or closing balance is missing.
        """
        opening = self._find_balance(statement, self.opening_balance_types)
        if opening is None:
            raise AnalyticsValidationError("Opening balance not found in CAMT statement")
        closing = self._find_balance(statement, self.closing_balance_types)
        if closing is None:
            raise AnalyticsValidationError("Closing balance not found in CAMT statement")
        return opening, closing

    def parse_account(self, statement: Statement) -> AccountRecord:
        opening, closing = self.extract_balances(statement)
        data = {
            "account_identifier": account_identifier(statement.account),
            "currency": self._account_currency(statement),
            "opening_balance": {"amount": str(opening.amount), "date": opening.date},
            "closing_balance": {"amount": str(closing.amount), "date": closing.date},
        }
        return validate_with_summary(AccountRecord, data).data

    # --- Transaction level ---

    @staticmethod
    def _transaction_type(entry: Entry) -> Optional[str]:
        code = entry.bank_transaction_code
        if code is None:
            return entry.proprietary_code
        return (
            code.domain_code
            or code.proprietary_code
            or code.domain_family_code
            or code.domain_sub_family_code
            or code.proprietary_code_issuer
        )

    @staticmethod
    def _beneficiary(transaction: Transaction) -> Optional[Dict[str, Any]]:
        party: Optional[Party] = transaction.creditor or transaction.debtor
        if party is None:
            return None
        identifier = account_identifier(party.account) or party.name
        if not identifier:
            return None
        return {"account_identifier": identifier, "metadata": asdict(party)}

    @staticmethod
    def synthetic_reference(account: Optional[str], date: Optional[datetime], amount: int) -> str:
        day = date.strftime("%Y%m%d") if date else "00000000"
        return f"SYN_{account}_{day}_{amount}"

    def parse_statement_transactions(self, statement: Statement) -> List[TransactionRecord]:
        """
        Flattens every transaction detail of every entry.

        The running balance restarts from the opening balance for each entry
        and accumulates the amounts of that entry's transactions.
        """
        opening, _ = self.extract_balances(statement)
        account = account_identifier(statement.account)

        records = []
        for entry in statement.entries:
            running_balance = opening.amount
            for transaction in entry.transactions:
                amount = next(
                    (
                        value
                        for value in (transaction.transaction_amount, transaction.instructed_amount, entry.amount)
                        if value is not None
                    )
                )
                running_balance += amount
                date = entry.booking_date or entry.value_date
                reference = (
                    transaction.end_to_end_id
                    or transaction.transaction_id
                    or entry.reference_id
                    or self.synthetic_reference(account, date, amount)
                )
                if transaction.payment_information_id:
                    description = f"Payment Info {transaction.payment_information_id}"
                else:
                    description = transaction.remittance_information

                records.append(
                    {
                        "provider_id": transaction.end_to_end_id,
                        "amount": str(amount),
                        "currency": transaction.transaction_currency
                        or transaction.instructed_currency
                        or entry.currency,
                        "type": self._transaction_type(entry),
                        "ending_balance": str(running_balance),
                        "date": date,
                        "reference": reference,
                        "description": description,
                        "beneficiary": self._beneficiary(transaction),
                    }
                )

        if not records:
            return []
        return validate_with_summary(TransactionRecord, records).data
