from decimal import Decimal

import pytest

from isomapper.currency import precision_of, sum_minor_units, to_decimal_string, to_minor_units
from isomapper.errors import InvalidStructureError


def test_usd_amount_to_minor_units():
    assert to_minor_units("10.50", "USD") == 1050
    assert to_minor_units(10.5, "USD") == 1050
    assert to_minor_units(Decimal("0.01"), "USD") == 1


def test_jpy_uses_two_decimals():
    """JPY keeps two fractional digits for compatibility with existing fixtures."""
    assert precision_of("JPY") == 2
    assert to_minor_units("100000", "JPY") == 10000000
    assert to_decimal_string(10000000, "JPY") == "100000.00"


def test_three_and_zero_decimal_currencies():
    assert to_minor_units("1.234", "KWD") == 1234
    assert to_decimal_string(1234, "KWD") == "1.234"
    assert to_minor_units("1500", "KRW") == 1500
    assert to_decimal_string(1500, "KRW") == "1500"


def test_unknown_currency_defaults_to_two_decimals():
    assert precision_of("XYZ") == 2
    assert precision_of(None) == 2
    assert to_minor_units("3.10") == 310


def test_excess_precision_is_truncated():
    assert to_minor_units("10.999", "USD") == 1099
    assert to_minor_units("-10.999", "USD") == -1099


def test_decimal_string_always_has_currency_precision():
    assert to_decimal_string(9060000, "EUR") == "90600.00"
    assert to_decimal_string(5, "USD") == "0.05"
    assert to_decimal_string(0, "USD") == "0.00"


@pytest.mark.parametrize("amount", ["abc", "", "NaN", "Infinity", True])
def test_invalid_amounts_raise(amount):
    with pytest.raises(InvalidStructureError):
        to_minor_units(amount, "USD")


def test_sum_minor_units_is_exact():
    assert sum_minor_units([1, 2, 3]) == 6
    assert sum_minor_units([]) == 0
    assert to_decimal_string(sum_minor_units([10, 20]), "USD") == "0.30"
