"""
Currency precision table and minor-unit amount codec.

Amounts travel through isomapper as integer counts of minor units (cents for
USD). The decimal strings found in ISO 20022 documents are converted with the
declared precision of the currency, never with the number of digits the source
document happened to use.
"""

from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Iterable, Optional, Union

from isomapper.errors import InvalidStructureError

Amount = Union[str, int, float, Decimal]

DEFAULT_CURRENCY = "USD"
DEFAULT_PRECISION = 2

_THREE_DECIMAL_CURRENCIES = frozenset(
    {"BHD", "IQD", "JOD", "KWD", "LYD", "OMR", "TND"}
)

_FOUR_DECIMAL_CURRENCIES = frozenset({"CLF"})

# JPY is absent here, see PRECISION_OVERRIDES
_ZERO_DECIMAL_CURRENCIES = frozenset(
    {
        "BIF", "BYN", "CVE", "DJF", "GNF", "ISK", "KMF", "KRW", "PYG",
        "RWF", "UGX", "UYI", "VND", "VUV", "XAF", "XOF", "XPF",
    }
)

# Declared precisions that differ from ISO 4217
PRECISION_OVERRIDES = {"JPY": 2}


def precision_of(currency: Optional[str]) -> int:
    """
    Returns the number of fractional digits declared for an ISO 4217 code.

    Unknown or missing codes fall back to 2.
    """
    if not currency:
        return DEFAULT_PRECISION

    code = currency.strip().upper()
    if code in PRECISION_OVERRIDES:
        return PRECISION_OVERRIDES[code]
    if code in _THREE_DECIMAL_CURRENCIES:
        return 3
    if code in _FOUR_DECIMAL_CURRENCIES:
        return 4
    if code in _ZERO_DECIMAL_CURRENCIES:
        return 0
    return DEFAULT_PRECISION


def _to_decimal(amount: Amount) -> Decimal:
    if isinstance(amount, bool):
        raise InvalidStructureError(f"Invalid amount: {amount!r}")
    if isinstance(amount, Decimal):
        value = amount
    else:
        # str() keeps floats at their shortest repr (10.5 -> '10.5')
        text = str(amount).strip()
        try:
            value = Decimal(text)
        except InvalidOperation:
            raise InvalidStructureError(f"Invalid amount: {amount!r}") from None

    if not value.is_finite():
        raise InvalidStructureError(f"Invalid amount: {amount!r}")
    return value


def to_minor_units(amount: Amount, currency: Optional[str] = DEFAULT_CURRENCY) -> int:
    """
    Converts a decimal amount into an integer count of minor units.

    The scaled value is truncated toward zero.

    Args:
        amount: Decimal amount as found in a document (``"10.50"``, ``10.5``, ``Decimal``).
        currency: ISO 4217 code, defaults to USD.

    Returns:
        int: The amount expressed in minor units.

    Raises:
        InvalidStructureError: If the amount is not a finite number.
    """
    value = _to_decimal(amount)
    scaled = value.scaleb(precision_of(currency))
    return int(scaled.to_integral_value(rounding=ROUND_DOWN))


def to_decimal_string(minor_units: int, currency: Optional[str] = DEFAULT_CURRENCY) -> str:
    """
    Formats a minor-unit amount with exactly the currency's number of decimals.

    Zero-decimal currencies are rendered without a decimal point.
    """
    precision = precision_of(currency)
    if precision == 0:
        return str(int(minor_units))

    value = Decimal(int(minor_units)).scaleb(-precision)
    return f"{value:.{precision}f}"


def sum_minor_units(amounts: Iterable[int]) -> int:
    """Exact integer sum of minor-unit amounts."""
    return sum(int(amount) for amount in amounts)
