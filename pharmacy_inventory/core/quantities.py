from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

MONEY_QUANT = Decimal("0.01")
QUANTITY_QUANT = Decimal("0.001")
ZERO_MONEY = Decimal("0.00")
ZERO_QUANTITY = Decimal("0.000")

# Column bounds: Numeric(14, 3) for quantities, Numeric(12, 2) for unit costs.
MAX_QUANTITY = Decimal("99999999999.999")
MAX_MONEY = Decimal("9999999999.99")


def to_money(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def to_quantity(value: Decimal | int | float | str) -> Decimal:
    """Normalize a stock quantity; raises ValueError for non-numeric, non-finite or oversized input."""
    try:
        parsed = Decimal(str(value))
        if not parsed.is_finite():
            raise ValueError(f"Invalid quantity: {value!r}")
        return parsed.quantize(QUANTITY_QUANT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"Invalid quantity: {value!r}") from exc


def format_quantity(value: Decimal) -> str:
    normalized = to_quantity(value).normalize()
    return f"{normalized:f}"
