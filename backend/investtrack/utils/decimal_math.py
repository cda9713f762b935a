from decimal import Decimal, InvalidOperation, ROUND_HALF_UP


MONEY_QUANT = Decimal("0.01")
QTY_QUANT = Decimal("0.000001")
PCT_QUANT = Decimal("0.000001")

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise TypeError(f"Expected a numeric value, got {value!r}.")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except InvalidOperation as exc:
            raise ValueError(f"Expected a numeric value, got {value!r}.") from exc
    if not result.is_finite():
        raise ValueError(f"Expected a finite numeric value, got {value!r}.")
    return result


def money(value: Decimal | int | float | str) -> Decimal:
    return to_decimal(value).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def qty(value: Decimal | int | float | str) -> Decimal:
    return to_decimal(value).quantize(QTY_QUANT, rounding=ROUND_HALF_UP)


def pct(value: Decimal | int | float | str) -> Decimal:
    return to_decimal(value).quantize(PCT_QUANT, rounding=ROUND_HALF_UP)


def safe_pct(numerator: Decimal, denominator: Decimal) -> Decimal:
    if denominator == 0:
        return pct(0)
    return pct((to_decimal(numerator) / to_decimal(denominator)) * HUNDRED)
