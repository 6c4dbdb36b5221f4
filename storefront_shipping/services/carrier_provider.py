import logging
import re
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Protocol

from storefront_shipping.core.money import round_half_up, to_money
from storefront_shipping.core.observability import log_event, shipping_logger

POSTAL_CODE_DIGITS = 8


@dataclass(frozen=True)
class RateQuote:
    carrier_label: str
    price: Decimal
    estimated_transit: str

    def __post_init__(self) -> None:
        if self.price < 0:
            raise ValueError(f"Negative price for {self.carrier_label!r}: {self.price}")

    def relabel(self, carrier_label: str) -> "RateQuote":
        return replace(self, carrier_label=carrier_label)


class RateProvider(Protocol):
    """A source of rate quotes. Implementations swallow their own failures and return []."""

    name: str

    async def calculate(self, postal_code: str, weight_grams: float) -> list[RateQuote]:
        ...


def strip_postal_code(value: str) -> str:
    return re.sub(r"\D", "", value or "")


def is_full_postal_code(value: str) -> bool:
    return len(strip_postal_code(value)) == POSTAL_CODE_DIGITS


@dataclass(frozen=True)
class FormulaTier:
    label: str
    fee: Decimal
    estimated_transit: str


class FormulaCarrierProvider:
    """Carrier priced locally as ``round(grams * rate_per_gram, 2) + fee`` per tier."""

    name: str = "formula_carrier"
    rate_per_gram: Decimal = Decimal("0")
    tiers: tuple[FormulaTier, ...] = ()

    async def calculate(self, postal_code: str, weight_grams: float) -> list[RateQuote]:
        try:
            base_price = round_half_up(Decimal(str(weight_grams)) * self.rate_per_gram, 2)
            return [
                RateQuote(
                    carrier_label=tier.label,
                    price=to_money(base_price + tier.fee),
                    estimated_transit=tier.estimated_transit,
                )
                for tier in self.tiers
            ]
        except (ArithmeticError, ValueError) as exc:
            log_event(
                shipping_logger,
                logging.WARNING,
                "shipping.provider.failed",
                provider=self.name,
                error=str(exc),
            )
            return []


class JadlogProvider(FormulaCarrierProvider):
    name = "Jadlog"
    rate_per_gram = Decimal("0.04")
    tiers = (
        FormulaTier(label="Package", fee=Decimal("18.90"), estimated_transit="3-5 dias úteis"),
        FormulaTier(label="Com", fee=Decimal("29.90"), estimated_transit="1-2 dias úteis"),
    )


class TotalExpressProvider(FormulaCarrierProvider):
    name = "Total Express"
    rate_per_gram = Decimal("0.045")
    tiers = (
        FormulaTier(label="Econômico", fee=Decimal("20.90"), estimated_transit="4-6 dias úteis"),
        FormulaTier(label="Rápido", fee=Decimal("32.90"), estimated_transit="2-3 dias úteis"),
    )
