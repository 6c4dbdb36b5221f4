from decimal import Decimal

from storefront_shipping.core.money import ZERO_MONEY, round_half_up, to_money
from storefront_shipping.services.carrier_provider import RateQuote

FALLBACK_RATE_PER_GRAM = Decimal("0.005")
FALLBACK_ECONOMY_FEE = Decimal("15.90")
FALLBACK_EXPRESS_FEE = Decimal("25.90")

FREE_SHIPPING_THRESHOLD = Decimal("200")
STANDARD_DELIVERY_LABEL = "Correios - PAC"
FREE_SHIPPING_SUFFIX = " (Grátis)"


def fallback_rates(weight_grams: float) -> list[RateQuote]:
    """Weight-only two-tier pricing used when no carrier produced a quote."""
    base_price = round_half_up(Decimal(str(weight_grams)) * FALLBACK_RATE_PER_GRAM, 1)
    return [
        RateQuote(
            carrier_label="Economy",
            price=to_money(base_price + FALLBACK_ECONOMY_FEE),
            estimated_transit="4-9 dias úteis",
        ),
        RateQuote(
            carrier_label="Express",
            price=to_money(base_price + FALLBACK_EXPRESS_FEE),
            estimated_transit="1-3 dias úteis",
        ),
    ]


def is_eligible_for_free_shipping(
    order_total: Decimal | float | int,
    threshold: Decimal = FREE_SHIPPING_THRESHOLD,
) -> bool:
    # Compared unrounded: 199.995 is still below a 200 threshold.
    return Decimal(str(order_total)) >= threshold


def apply_free_shipping(
    options: list[RateQuote],
    order_total: Decimal | float | int,
    *,
    threshold: Decimal = FREE_SHIPPING_THRESHOLD,
    standard_label: str = STANDARD_DELIVERY_LABEL,
) -> list[RateQuote]:
    if not is_eligible_for_free_shipping(order_total, threshold):
        return list(options)

    return [
        RateQuote(
            carrier_label=f"{option.carrier_label}{FREE_SHIPPING_SUFFIX}",
            price=ZERO_MONEY,
            estimated_transit=option.estimated_transit,
        )
        if option.carrier_label == standard_label
        else option
        for option in options
    ]
