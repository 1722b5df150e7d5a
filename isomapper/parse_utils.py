"""
Field-level converters for the substructures that recur across ISO 20022
messages: accounts, agents, parties, postal addresses, dates, headers and
free-text information.

Every ``parse_*`` function reads a node of the raw document tree and every
``export_*`` function produces the node it would read back. These helpers never
decide whether a document is acceptable; a missing sub-field simply comes back
as ``None`` and the message mapper rejects the document if it needs that field.
"""

import re
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from isomapper.currency import to_minor_units
from isomapper.errors import InvalidStructureError
from isomapper.models import (
    AbaAgent,
    Account,
    AccountIdentification,
    Agent,
    BicAgent,
    IbanAccount,
    LocalAccount,
    MessageHeader,
    OtherAccountIdentification,
    Party,
    PostalAddress,
)
from isomapper.xmltree import as_list, attribute_of, dig, text_of

MAX_IDENTIFIER_LENGTH = 35

_ISO_DATETIME = re.compile(
    r"\A(?P<date>\d{4}-\d{2}-\d{2})"
    r"(?:[T ](?P<time>\d{2}:\d{2}(?::\d{2})?)(?:[.,](?P<fraction>\d+))?)?"
    r"(?P<tz>Z|[+-]\d{2}:?\d{2})?\Z"
)

_SWIFT_CHARACTERS = re.compile(r"[^A-Za-z0-9/\-?:().,'+ ]")

_ACCOUNT_TYPE_CODES = {"CACC": "checking", "SVGS": "savings"}
_ACCOUNT_TYPE_NAMES = {value: key for key, value in _ACCOUNT_TYPE_CODES.items()}


# --- Dates ---


def _parse_iso_datetime(text: str) -> datetime:
    match = _ISO_DATETIME.match(text.strip())
    if not match:
        raise InvalidStructureError(f"Invalid date or date-time value: '{text}'")

    year, month, day = (int(part) for part in match.group("date").split("-"))
    hour = minute = second = microsecond = 0
    if match.group("time"):
        pieces = [int(part) for part in match.group("time").split(":")]
        hour, minute = pieces[0], pieces[1]
        second = pieces[2] if len(pieces) > 2 else 0
    if match.group("fraction"):
        microsecond = int(match.group("fraction")[:6].ljust(6, "0"))

    tz = timezone.utc
    offset = match.group("tz")
    if offset and offset != "Z":
        sign = -1 if offset[0] == "-" else 1
        digits = offset[1:].replace(":", "")
        tz = timezone(sign * timedelta(hours=int(digits[:2]), minutes=int(digits[2:])))

    try:
        return datetime(year, month, day, hour, minute, second, microsecond, tzinfo=tz)
    except ValueError as exc:
        raise InvalidStructureError(f"Invalid date or date-time value: '{text}'") from exc


def parse_date(raw: Any) -> Optional[datetime]:
    """
    Reads a date from either a ``{"DtTm": ...}`` / ``{"Dt": ...}`` choice node
    or a bare value.

    ``DtTm`` wins over ``Dt`` when both are present. Values without a UTC
    offset are taken as UTC, so the result is always timezone-aware.
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw if raw.tzinfo else raw.replace(tzinfo=timezone.utc)
    if isinstance(raw, dict) and ("DtTm" in raw or "Dt" in raw):
        value = text_of(raw.get("DtTm")) or text_of(raw.get("Dt"))
    else:
        value = text_of(raw)
    if not value:
        return None
    return _parse_iso_datetime(value)


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    """Formats an instant as ISO 8601 in UTC with a ``Z`` suffix."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    timespec = "milliseconds" if value.microsecond % 1000 == 0 else "microseconds"
    return value.replace(tzinfo=None).isoformat(timespec=timespec) + "Z"


def format_date(value: Optional[datetime]) -> Optional[str]:
    """Formats the UTC calendar date of an instant as ``YYYY-MM-DD``."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%d")


# --- Scalars ---


def parse_int(raw: Any, path: str = "value") -> Optional[int]:
    text = text_of(raw)
    if text is None:
        return None
    try:
        return int(text)
    except ValueError:
        raise InvalidStructureError(f"Invalid integer in {path}: '{text}'") from None


def parse_decimal(raw: Any, path: str = "value") -> Optional[Decimal]:
    text = text_of(raw)
    if text is None:
        return None
    try:
        return Decimal(text)
    except InvalidOperation:
        raise InvalidStructureError(f"Invalid decimal in {path}: '{text}'") from None


def parse_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    return (text_of(raw) or "").lower() == "true"


def parse_amount(raw: Any, currency: Optional[str], path: str = "Amt", signed: bool = False) -> int:
    """
    Reads a decimal amount node (bare or ``#text``) into minor units.

    Document amounts are non-negative; the direction travels in ``CdtDbtInd``.
    Pass ``signed=True`` for totals that may carry their own sign.

    Raises:
        InvalidStructureError: If the amount is missing, not numeric or
            negative; the message names ``path``.
    """
    text = text_of(raw)
    if text is None:
        raise InvalidStructureError(f"Missing amount in {path}")
    try:
        amount = to_minor_units(text, currency)
    except InvalidStructureError as exc:
        raise InvalidStructureError(f"Invalid amount in {path}: '{text}'") from exc
    if amount < 0 and not signed:
        raise InvalidStructureError(f"Negative amount in {path}: '{text}'")
    return amount


def require_currency(raw: Any, path: str) -> str:
    """
    Reads the ``Ccy`` attribute of an amount node.

    Raises:
        InvalidStructureError: If the attribute is missing.
    """
    currency = attribute_of(raw, "Ccy")
    if not currency:
        raise InvalidStructureError(f"Missing currency in {path}")
    return currency


def parse_credit_debit(raw: Any) -> str:
    return "credit" if text_of(raw) == "CRDT" else "debit"


def export_credit_debit(indicator: Optional[str]) -> str:
    return "CRDT" if indicator == "credit" else "DBIT"


def parse_additional_information(raw: Any) -> Optional[str]:
    """
    Normalizes one or many free-text lines into a single newline-joined string.
    """
    lines = [text_of(line) for line in as_list(raw)]
    lines = [line for line in lines if line]
    if not lines:
        return None
    return "\n".join(lines)


# --- Postal addresses ---


def parse_address(raw: Any) -> Optional[PostalAddress]:
    if not isinstance(raw, dict):
        return None

    address_lines = [text_of(line) for line in as_list(raw.get("AdrLine"))]
    address = PostalAddress(
        street_name=text_of(raw.get("StrtNm")),
        building_number=text_of(raw.get("BldgNb")),
        post_code=text_of(raw.get("PstCd")),
        town_name=text_of(raw.get("TwnNm")),
        country_sub_division=text_of(raw.get("CtrySubDvsn")),
        country=text_of(raw.get("Ctry")),
        address_lines=[line for line in address_lines if line] or None,
    )
    if address == PostalAddress():
        return None
    return address


def export_address(address: Optional[PostalAddress]) -> Optional[Dict[str, Any]]:
    if address is None:
        return None
    # element order follows PostalAddress6
    return {
        "StrtNm": address.street_name,
        "BldgNb": address.building_number,
        "PstCd": address.post_code,
        "TwnNm": address.town_name,
        "CtrySubDvsn": address.country_sub_division,
        "Ctry": address.country,
        "AdrLine": address.address_lines,
    }


# --- Accounts ---


def parse_account(raw: Any) -> Optional[Account]:
    """
    Returns an IbanAccount when ``Id/IBAN`` is present, otherwise a
    LocalAccount built from ``Id/Othr/Id``, ``Tp``, ``Ccy`` and ``Nm``.
    """
    if not isinstance(raw, dict):
        return None

    iban = text_of(dig(raw, "Id", "IBAN"))
    if iban:
        return IbanAccount(iban=iban)

    type_code = text_of(dig(raw, "Tp", "Cd"))
    return LocalAccount(
        account_number=text_of(dig(raw, "Id", "Othr", "Id")),
        account_type=_ACCOUNT_TYPE_CODES.get(type_code) if type_code else None,
        currency=text_of(raw.get("Ccy")),
        name=text_of(raw.get("Nm")),
    )


def export_account(account: Optional[Account]) -> Optional[Dict[str, Any]]:
    if account is None:
        return None
    if isinstance(account, IbanAccount):
        return {"Id": {"IBAN": account.iban}}

    account_type = _ACCOUNT_TYPE_NAMES.get(account.account_type) if account.account_type else None
    return {
        "Id": {"Othr": {"Id": account.account_number}},
        "Tp": {"Cd": account_type} if account_type else None,
        "Ccy": account.currency,
        "Nm": account.name,
    }


def account_identifier(account: Optional[Account]) -> Optional[str]:
    """The IBAN or local account number of an account."""
    if account is None:
        return None
    if isinstance(account, IbanAccount):
        return account.iban
    return account.account_number


def parse_account_identification(raw: Any) -> Optional[AccountIdentification]:
    if not isinstance(raw, dict):
        return None
    iban = text_of(raw.get("IBAN"))
    if iban:
        return IbanAccount(iban=iban)

    other = raw.get("Othr")
    if not isinstance(other, dict):
        return None
    return OtherAccountIdentification(
        id=text_of(other.get("Id")),
        issuer=text_of(other.get("Issr")),
        scheme_name=text_of(dig(other, "SchmeNm", "Cd")) or text_of(dig(other, "SchmeNm", "Prtry")),
    )


def export_account_identification(identification: Optional[AccountIdentification]) -> Optional[Dict[str, Any]]:
    if identification is None:
        return None
    if isinstance(identification, IbanAccount):
        return {"IBAN": identification.iban}
    return {
        "Othr": {
            "Id": identification.id,
            "SchmeNm": {"Cd": identification.scheme_name} if identification.scheme_name else None,
            "Issr": identification.issuer,
        }
    }


# --- Agents ---


def parse_agent(raw: Any) -> Optional[Agent]:
    """
    Returns a BicAgent when ``FinInstnId/BIC`` (or ``BICFI``) is present,
    otherwise an AbaAgent read from the clearing-system member id or the
    ``Othr/Id`` routing number.
    """
    institution = dig(raw, "FinInstnId")
    if not isinstance(institution, dict):
        return None

    bic = text_of(institution.get("BIC")) or text_of(institution.get("BICFI"))
    if bic:
        return BicAgent(bic=bic, bank_address=parse_address(institution.get("PstlAdr")))

    routing_number = text_of(dig(institution, "ClrSysMmbId", "MmbId")) or text_of(
        dig(institution, "Othr", "Id")
    )
    return AbaAgent(routing_number=routing_number)


def export_agent(agent: Optional[Agent], bic_tag: str = "BIC") -> Optional[Dict[str, Any]]:
    if agent is None:
        return None
    if isinstance(agent, BicAgent):
        return {
            "FinInstnId": {
                bic_tag: agent.bic,
                "PstlAdr": export_address(agent.bank_address),
            }
        }
    return {"FinInstnId": {"ClrSysMmbId": {"MmbId": agent.routing_number}}}


# --- Parties ---


def parse_party(raw: Any, account: Optional[Account] = None, agent: Optional[Agent] = None) -> Party:
    """
    Reads ``Nm``, the organisation id and ``PstlAdr`` of a party node.

    An account and agent found elsewhere in the document (``DbtrAcct``,
    ``DbtrAgt``...) can be attached through the keyword arguments.
    """
    if not isinstance(raw, dict):
        raw = {}

    party_id = (
        text_of(dig(raw, "Id", "OrgId", "Othr", "Id"))
        or text_of(dig(raw, "Id", "OrgId", "BICOrBEI"))
        or text_of(dig(raw, "Id", "PrvtId", "Othr", "Id"))
    )
    return Party(
        id=party_id,
        name=text_of(raw.get("Nm")),
        address=parse_address(raw.get("PstlAdr")),
        account=account,
        agent=agent,
    )


def export_party(party: Optional[Party]) -> Optional[Dict[str, Any]]:
    if party is None:
        return None
    return {
        "Nm": party.name,
        "PstlAdr": export_address(party.address),
        "Id": {"OrgId": {"Othr": {"Id": party.id}}} if party.id else None,
    }


def parse_recipient(raw: Any) -> Optional[Party]:
    if not isinstance(raw, dict):
        return None
    return parse_party(raw)


def export_recipient(recipient: Optional[Party]) -> Optional[Dict[str, Any]]:
    return export_party(recipient)


# --- Message headers ---


def parse_message_header(raw: Any) -> MessageHeader:
    original = raw.get("OrgnlBizQry") if isinstance(raw, dict) else None
    original_header = None
    if isinstance(original, dict) and text_of(original.get("MsgId")):
        original_header = MessageHeader(
            message_id=text_of(original.get("MsgId")),
            creation_date_time=parse_date(original.get("CreDtTm")),
        )
    return MessageHeader(
        message_id=text_of(dig(raw, "MsgId")),
        creation_date_time=parse_date(dig(raw, "CreDtTm")),
        original_business_query=original_header,
    )


def export_message_header(header: MessageHeader) -> Dict[str, Any]:
    original = header.original_business_query
    return {
        "MsgId": header.message_id,
        "CreDtTm": format_datetime(header.creation_date_time),
        "OrgnlBizQry": {
            "MsgId": original.message_id,
            "CreDtTm": format_datetime(original.creation_date_time),
        }
        if original
        else None,
    }


# --- Identifiers ---


def sanitize(text: str, length: int = MAX_IDENTIFIER_LENGTH) -> str:
    """
    Drops characters outside the SWIFT character set and truncates to ``length``.
    """
    return _SWIFT_CHARACTERS.sub("", str(text))[:length]


def generate_identifier() -> str:
    """A random 32-character identifier, within the 35-character ISO limit."""
    return uuid.uuid4().hex[:MAX_IDENTIFIER_LENGTH]


def first(value: Any) -> Any:
    """The first member of a one-or-many node."""
    items = as_list(value)
    return items[0] if items else None


def text_list(value: Any) -> List[str]:
    return [text for text in (text_of(item) for item in as_list(value)) if text]
