from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext

ZERO_MONEY = Decimal("0.00")


def to_money(value: Decimal | int | float | str) -> Decimal:
    return round_half_up(value, 2)


def round_half_up(value: Decimal | int | float | str, places: int) -> Decimal:
    amount = Decimal(str(value))
    quant = Decimal(1).scaleb(-places)
    with localcontext() as ctx:
        # Quantize needs room for every integer digit plus the requested places.
        ctx.prec = max(ctx.prec, amount.adjusted() + places + 2)
        return amount.quantize(quant, rounding=ROUND_HALF_UP)


def parse_brl_amount(raw: str) -> Decimal:
    """Parses Brazilian-formatted amounts such as ``"1.234,56"`` or ``"R$ 40,40"``."""
    cleaned = raw.replace("R$", "").replace(" ", "").strip()
    if not cleaned:
        raise ValueError("Empty amount")
    cleaned = cleaned.replace(".", "").replace(",", ".")
    try:
        return to_money(cleaned)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {raw!r}") from exc
