import asyncio
import logging
from typing import Sequence

from storefront_shipping.core.observability import log_event, shipping_logger
from storefront_shipping.services.carrier_provider import RateProvider, RateQuote
from storefront_shipping.services.shipping_pricing import fallback_rates

DEFAULT_PROVIDER_TIMEOUT_SECONDS = 5.0


class RateAggregator:
    """Fans a quote out to every registered provider and merges the answers.

    Providers run concurrently. Each call is bounded by ``timeout_seconds``;
    a provider that times out or raises contributes nothing. Merged quotes are
    labelled ``"<provider> - <label>"`` and sorted by price, ties keeping
    registration order. When nothing comes back the weight-based fallback
    rates are returned instead.
    """

    def __init__(
        self,
        providers: Sequence[RateProvider],
        *,
        timeout_seconds: float = DEFAULT_PROVIDER_TIMEOUT_SECONDS,
    ):
        self.providers = tuple(providers)
        self.timeout_seconds = timeout_seconds

    async def calculate_all(self, postal_code: str, weight_grams: float) -> list[RateQuote]:
        results = await asyncio.gather(
            *(self._calculate_one(provider, postal_code, weight_grams) for provider in self.providers)
        )

        merged: list[RateQuote] = []
        for provider, quotes in zip(self.providers, results):
            merged.extend(quote.relabel(f"{provider.name} - {quote.carrier_label}") for quote in quotes)

        if not merged:
            log_event(
                shipping_logger,
                logging.INFO,
                "shipping.quote.fallback",
                reason="no_provider_quotes",
                postal_code=postal_code,
                weight_grams=weight_grams,
            )
            return fallback_rates(weight_grams)

        return sorted(merged, key=lambda quote: quote.price)

    async def _calculate_one(
        self,
        provider: RateProvider,
        postal_code: str,
        weight_grams: float,
    ) -> list[RateQuote]:
        try:
            quotes = await asyncio.wait_for(
                provider.calculate(postal_code, weight_grams),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            log_event(
                shipping_logger,
                logging.WARNING,
                "shipping.provider.timeout",
                provider=provider.name,
                timeout_seconds=self.timeout_seconds,
            )
            return []
        except Exception as exc:
            log_event(
                shipping_logger,
                logging.WARNING,
                "shipping.provider.failed",
                provider=provider.name,
                error=str(exc),
            )
            return []
        return list(quotes or [])
