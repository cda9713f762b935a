from decimal import Decimal

import pytest

from investtrack.utils.decimal_math import money, pct, qty, safe_pct, to_decimal


def test_quantization_rounds_half_up() -> None:
    assert money("10.005") == Decimal("10.01")
    assert money(Decimal("-2.345")) == Decimal("-2.35")
    assert qty("0.0000005") == Decimal("0.000001")
    assert pct(12) == Decimal("12.000000")


def test_safe_pct_returns_zero_for_zero_denominator() -> None:
    assert safe_pct(Decimal("50"), Decimal("0")) == Decimal("0")
    assert safe_pct(Decimal("1"), Decimal("3")) == Decimal("33.333333")
    assert safe_pct(Decimal("-30"), Decimal("120")) == Decimal("-25")


def test_to_decimal_rejects_non_numeric_values() -> None:
    with pytest.raises(TypeError):
        to_decimal(True)
    with pytest.raises(TypeError):
        to_decimal(None)
    with pytest.raises(ValueError):
        to_decimal("abc")
    with pytest.raises(ValueError):
        to_decimal("NaN")
