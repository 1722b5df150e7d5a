"""
Parsing and export of the building blocks shared by the camt mappers:
statements, balances, entries, transaction details, bank transaction codes,
balance reports and business errors.
"""

from typing import Any, Dict, List, Optional

from isomapper.currency import DEFAULT_CURRENCY, to_decimal_string
from isomapper.errors import InvalidStructureError
from isomapper.models import (
    Account,
    Balance,
    BalanceReport,
    BankTransactionCode,
    BusinessError,
    Entry,
    LocalAccount,
    Party,
    Statement,
    Transaction,
)
from isomapper.parse_utils import (
    export_account,
    export_agent,
    export_credit_debit,
    export_party,
    format_date,
    format_datetime,
    parse_account,
    parse_additional_information,
    parse_agent,
    parse_amount,
    parse_bool,
    parse_credit_debit,
    parse_date,
    parse_decimal,
    parse_int,
    parse_party,
    require_currency,
)
from isomapper.xmltree import ATTRIBUTE_PREFIX, TEXT_KEY, as_list, attribute_of, dig, text_of

UNKNOWN_ERROR_CODE = "UKNW"


def statement_currency(account: Optional[Account], balances: List[Balance]) -> str:
    """
    Currency used for statement-level totals that carry no ``Ccy`` of their
    own: the account currency, else the first balance currency, else USD.
    """
    if isinstance(account, LocalAccount) and account.currency:
        return account.currency
    for balance in balances:
        if balance.currency:
            return balance.currency
    return DEFAULT_CURRENCY


def _amount_node(amount: Optional[int], currency: Optional[str]) -> Optional[Dict[str, Any]]:
    if amount is None:
        return None
    return {TEXT_KEY: to_decimal_string(amount, currency), ATTRIBUTE_PREFIX + "Ccy": currency}


def _decimal_text(value) -> Optional[str]:
    return None if value is None else str(value)


# --- Statements ---


def parse_statement(stmt: Dict[str, Any]) -> Statement:
    statement_id = text_of(stmt.get("Id"))
    if not statement_id:
        raise InvalidStructureError("Invalid statement: missing Stmt.Id")

    account = parse_account(stmt.get("Acct"))
    agent = parse_agent(dig(stmt, "Acct", "Svcr"))
    balances = [parse_balance(balance) for balance in as_list(stmt.get("Bal"))]
    entries = [parse_entry(entry) for entry in as_list(stmt.get("Ntry"))]

    totals = dig(stmt, "TxsSummry", "TtlNtries") or {}
    credits = dig(stmt, "TxsSummry", "TtlCdtNtries") or {}
    debits = dig(stmt, "TxsSummry", "TtlDbtNtries") or {}

    net_amount = None
    if text_of(totals.get("TtlNetNtryAmt")) is not None:
        net_amount = parse_amount(
            totals.get("TtlNetNtryAmt"),
            statement_currency(account, balances),
            "Stmt.TxsSummry.TtlNtries.TtlNetNtryAmt",
            signed=True,
        )

    return Statement(
        id=statement_id,
        creation_date=parse_date(stmt.get("CreDtTm")),
        account=account,
        agent=agent,
        electronic_sequence_number=parse_int(stmt.get("ElctrncSeqNb"), "Stmt.ElctrncSeqNb"),
        legal_sequence_number=parse_int(stmt.get("LglSeqNb"), "Stmt.LglSeqNb"),
        from_date=parse_date(dig(stmt, "FrToDt", "FrDtTm")),
        to_date=parse_date(dig(stmt, "FrToDt", "ToDtTm")),
        num_of_entries=parse_int(totals.get("NbOfNtries"), "Stmt.TxsSummry.TtlNtries.NbOfNtries"),
        sum_of_entries=parse_decimal(totals.get("Sum"), "Stmt.TxsSummry.TtlNtries.Sum"),
        net_amount_of_entries=net_amount,
        num_of_credit_entries=parse_int(credits.get("NbOfNtries"), "Stmt.TxsSummry.TtlCdtNtries.NbOfNtries"),
        sum_of_credit_entries=parse_decimal(credits.get("Sum"), "Stmt.TxsSummry.TtlCdtNtries.Sum"),
        num_of_debit_entries=parse_int(debits.get("NbOfNtries"), "Stmt.TxsSummry.TtlDbtNtries.NbOfNtries"),
        sum_of_debit_entries=parse_decimal(debits.get("Sum"), "Stmt.TxsSummry.TtlDbtNtries.Sum"),
        balances=balances,
        entries=entries,
    )


def export_statement(statement: Statement) -> Dict[str, Any]:
    account = export_account(statement.account) or {}
    net_amount = None
    if statement.net_amount_of_entries is not None:
        net_amount = to_decimal_string(
            statement.net_amount_of_entries,
            statement_currency(statement.account, statement.balances),
        )

    return {
        "Id": statement.id,
        "ElctrncSeqNb": statement.electronic_sequence_number,
        "LglSeqNb": statement.legal_sequence_number,
        "CreDtTm": format_datetime(statement.creation_date),
        "FrToDt": {
            "FrDtTm": format_datetime(statement.from_date),
            "ToDtTm": format_datetime(statement.to_date),
        },
        "Acct": {**account, "Svcr": export_agent(statement.agent)},
        "Bal": [export_balance(balance) for balance in statement.balances],
        "TxsSummry": {
            "TtlNtries": {
                "NbOfNtries": statement.num_of_entries,
                "Sum": _decimal_text(statement.sum_of_entries),
                "TtlNetNtryAmt": net_amount,
            },
            "TtlCdtNtries": {
                "NbOfNtries": statement.num_of_credit_entries,
                "Sum": _decimal_text(statement.sum_of_credit_entries),
            },
            "TtlDbtNtries": {
                "NbOfNtries": statement.num_of_debit_entries,
                "Sum": _decimal_text(statement.sum_of_debit_entries),
            },
        },
        "Ntry": [export_entry(entry) for entry in statement.entries],
    }


# --- Balances ---


def parse_balance(balance: Dict[str, Any]) -> Balance:
    currency = require_currency(balance.get("Amt"), "Stmt.Bal.Amt")
    return Balance(
        date=parse_date(balance.get("Dt")),
        type=text_of(dig(balance, "Tp", "CdOrPrtry", "Cd")),
        proprietary=text_of(dig(balance, "Tp", "CdOrPrtry", "Prtry")),
        amount=parse_amount(balance.get("Amt"), currency, "Stmt.Bal.Amt"),
        currency=currency,
        credit_debit_indicator=parse_credit_debit(balance.get("CdtDbtInd")),
    )


def export_balance(balance: Balance) -> Dict[str, Any]:
    code = {"Cd": balance.type} if balance.type else {"Prtry": balance.proprietary}
    return {
        "Tp": {"CdOrPrtry": code},
        "Amt": _amount_node(balance.amount, balance.currency),
        "CdtDbtInd": export_credit_debit(balance.credit_debit_indicator),
        "Dt": {"DtTm": format_datetime(balance.date)},
    }


# --- Entries ---


def parse_entry(entry: Dict[str, Any]) -> Entry:
    currency = require_currency(entry.get("Amt"), "Stmt.Ntry.Amt")
    status = entry.get("Sts")
    if isinstance(status, dict):
        status = status.get("Cd")

    transactions = [
        parse_transaction_detail(detail)
        for group in as_list(entry.get("NtryDtls"))
        for detail in as_list(dig(group, "TxDtls"))
    ]

    return Entry(
        reference_id=text_of(entry.get("NtryRef")),
        amount=parse_amount(entry.get("Amt"), currency, "Stmt.Ntry.Amt"),
        currency=currency,
        credit_debit_indicator=parse_credit_debit(entry.get("CdtDbtInd")),
        reversal=parse_bool(entry.get("RvslInd")),
        status=text_of(status),
        booking_date=parse_date(entry.get("BookgDt")),
        value_date=parse_date(entry.get("ValDt")),
        account_servicer_reference_id=text_of(entry.get("AcctSvcrRef")),
        proprietary_code=text_of(dig(entry, "BkTxCd", "Prtry", "Cd")),
        bank_transaction_code=parse_bank_transaction_code(entry.get("BkTxCd")),
        additional_information=parse_additional_information(entry.get("AddtlNtryInf")),
        transactions=transactions,
    )


def export_entry(entry: Entry) -> Dict[str, Any]:
    return {
        "NtryRef": entry.reference_id,
        "Amt": _amount_node(entry.amount, entry.currency),
        "CdtDbtInd": export_credit_debit(entry.credit_debit_indicator),
        "RvslInd": entry.reversal,
        "Sts": entry.status,
        "BookgDt": {"DtTm": format_datetime(entry.booking_date)},
        "ValDt": {"DtTm": format_datetime(entry.value_date)},
        "AcctSvcrRef": entry.account_servicer_reference_id,
        "BkTxCd": export_bank_transaction_code(entry.bank_transaction_code, entry.proprietary_code),
        "NtryDtls": [{"TxDtls": export_transaction_detail(tx)} for tx in entry.transactions],
        "AddtlNtryInf": entry.additional_information,
    }


def parse_bank_transaction_code(raw: Any) -> Optional[BankTransactionCode]:
    if not isinstance(raw, dict):
        return None
    code = BankTransactionCode(
        domain_code=text_of(dig(raw, "Domn", "Cd")),
        domain_family_code=text_of(dig(raw, "Domn", "Fmly", "Cd")),
        domain_sub_family_code=text_of(dig(raw, "Domn", "Fmly", "SubFmlyCd")),
        proprietary_code=text_of(dig(raw, "Prtry", "Cd")),
        proprietary_code_issuer=text_of(dig(raw, "Prtry", "Issr")),
    )
    if code == BankTransactionCode():
        return None
    return code


def export_bank_transaction_code(
    code: Optional[BankTransactionCode], proprietary_code: Optional[str] = None
) -> Optional[Dict[str, Any]]:
    if code is None and not proprietary_code:
        return None
    code = code or BankTransactionCode()
    domain = None
    if code.domain_code:
        domain = {
            "Cd": code.domain_code,
            "Fmly": {"Cd": code.domain_family_code, "SubFmlyCd": code.domain_sub_family_code},
        }
    return {
        "Domn": domain,
        "Prtry": {
            "Cd": code.proprietary_code or proprietary_code,
            "Issr": code.proprietary_code_issuer,
        },
    }


# --- Transaction details ---


def _related_party(details: Dict[str, Any], role: str) -> Optional[Party]:
    raw_party = dig(details, "RltdPties", role)
    account = parse_account(dig(details, "RltdPties", f"{role}Acct"))
    agent = parse_agent(dig(details, "RltdAgts", f"{role}Agt"))
    if raw_party is None and account is None and agent is None:
        return None
    return parse_party(raw_party, account=account, agent=agent)


def _return_reason(raw: Any) -> Optional[str]:
    if isinstance(raw, dict) and TEXT_KEY not in raw:
        return text_of(raw.get("Cd")) or text_of(raw.get("Prtry"))
    return text_of(raw)


def parse_transaction_detail(details: Dict[str, Any]) -> Transaction:
    refs = details.get("Refs") or {}
    instructed = dig(details, "AmtDtls", "InstdAmt", "Amt")
    transacted = dig(details, "AmtDtls", "TxAmt", "Amt")
    instructed_currency = attribute_of(instructed, "Ccy")
    transaction_currency = attribute_of(transacted, "Ccy")

    return Transaction(
        message_id=text_of(refs.get("MsgId")),
        account_servicer_reference_id=text_of(refs.get("AcctSvcrRef")),
        payment_information_id=text_of(refs.get("PmtInfId")),
        instruction_id=text_of(refs.get("InstrId")),
        end_to_end_id=text_of(refs.get("EndToEndId")),
        transaction_id=text_of(refs.get("TxId")),
        instructed_amount=parse_amount(instructed, instructed_currency, "TxDtls.AmtDtls.InstdAmt.Amt")
        if text_of(instructed) is not None
        else None,
        instructed_currency=instructed_currency,
        transaction_amount=parse_amount(transacted, transaction_currency, "TxDtls.AmtDtls.TxAmt.Amt")
        if text_of(transacted) is not None
        else None,
        transaction_currency=transaction_currency,
        proprietary_purpose=text_of(dig(details, "Purp", "Prtry")),
        debtor=_related_party(details, "Dbtr"),
        creditor=_related_party(details, "Cdtr"),
        remittance_information=parse_additional_information(dig(details, "RmtInf", "Ustrd")),
        return_reason=_return_reason(dig(details, "RtrInf", "Rsn")),
        return_additional_information=parse_additional_information(dig(details, "RtrInf", "AddtlInf")),
    )


def export_transaction_detail(tx: Transaction) -> Dict[str, Any]:
    debtor = tx.debtor
    creditor = tx.creditor
    return {
        "Refs": {
            "MsgId": tx.message_id,
            "AcctSvcrRef": tx.account_servicer_reference_id,
            "PmtInfId": tx.payment_information_id,
            "InstrId": tx.instruction_id,
            "EndToEndId": tx.end_to_end_id,
            "TxId": tx.transaction_id,
        },
        "AmtDtls": {
            "InstdAmt": {"Amt": _amount_node(tx.instructed_amount, tx.instructed_currency)},
            "TxAmt": {"Amt": _amount_node(tx.transaction_amount, tx.transaction_currency)},
        },
        "RltdPties": {
            "Dbtr": export_party(debtor) if debtor else None,
            "DbtrAcct": export_account(debtor.account) if debtor else None,
            "Cdtr": export_party(creditor) if creditor else None,
            "CdtrAcct": export_account(creditor.account) if creditor else None,
        },
        "RltdAgts": {
            "DbtrAgt": export_agent(debtor.agent) if debtor else None,
            "CdtrAgt": export_agent(creditor.agent) if creditor else None,
        },
        "Purp": {"Prtry": tx.proprietary_purpose},
        "RmtInf": {"Ustrd": tx.remittance_information},
        "RtrInf": {
            "Rsn": {"Cd": tx.return_reason} if tx.return_reason else None,
            "AddtlInf": tx.return_additional_information,
        },
    }


# --- camt.004 balance reports ---


def parse_balance_report(currency: str, balance: Dict[str, Any]) -> BalanceReport:
    return BalanceReport(
        amount=parse_amount(balance.get("Amt"), currency, "MulBal.Amt"),
        credit_debit_indicator=parse_credit_debit(balance.get("CdtDbtInd")),
        type=text_of(dig(balance, "Tp", "Cd")) or text_of(dig(balance, "Tp", "Prtry")),
        value_date=parse_date(dig(balance, "ValDt", "Dt")),
        processing_date=parse_date(dig(balance, "PrcgDt", "DtTm")),
    )


def export_balance_report(currency: str, balance: BalanceReport) -> Dict[str, Any]:
    return {
        "Amt": to_decimal_string(balance.amount, currency),
        "CdtDbtInd": export_credit_debit(balance.credit_debit_indicator),
        "Tp": {"Cd": balance.type},
        "ValDt": {"Dt": format_date(balance.value_date)},
        "PrcgDt": {"DtTm": format_datetime(balance.processing_date)},
    }


# --- Business errors ---


def parse_business_error(raw: Dict[str, Any]) -> BusinessError:
    code = text_of(dig(raw, "Err", "Cd")) or text_of(dig(raw, "Err", "Prtry")) or UNKNOWN_ERROR_CODE
    return BusinessError(code=code, description=text_of(raw.get("Desc")))


def export_business_error(error: BusinessError) -> Dict[str, Any]:
    return {"Err": {"Cd": error.code}, "Desc": error.description}
