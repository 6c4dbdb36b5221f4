import logging
import math
from dataclasses import dataclass, field

from storefront_shipping.core.observability import log_event, shipping_logger
from storefront_shipping.services.carrier_provider import RateQuote, strip_postal_code
from storefront_shipping.services.rate_aggregator import RateAggregator
from storefront_shipping.services.shipping_pricing import fallback_rates

MIN_POSTAL_CODE_LENGTH = 5


class ShippingQuoteError(ValueError):
    pass


class InvalidWeight(ShippingQuoteError):
    pass


class InvalidPostalCode(ShippingQuoteError):
    pass


@dataclass(frozen=True)
class QuoteRequest:
    destination_postal_code: str
    package_weight_grams: float


@dataclass(frozen=True)
class QuoteResponse:
    options: list[RateQuote] = field(default_factory=list)
    normalized_postal_code: str = ""


class ShippingQuoteService:
    def __init__(self, aggregator: RateAggregator):
        self.aggregator = aggregator

    def validate(self, request: QuoteRequest) -> str:
        """Returns the digits-only postal code, raising on malformed input."""
        weight_grams = request.package_weight_grams
        if weight_grams is None or not math.isfinite(weight_grams) or weight_grams <= 0:
            raise InvalidWeight("Total weight must be greater than zero")
        # Only a loose length check here; carriers enforce the 8-digit format.
        if not request.destination_postal_code or len(request.destination_postal_code) < MIN_POSTAL_CODE_LENGTH:
            raise InvalidPostalCode("Invalid postal code")
        return strip_postal_code(request.destination_postal_code)

    async def get_quote(self, request: QuoteRequest) -> QuoteResponse:
        normalized_postal_code = self.validate(request)
        weight_grams = request.package_weight_grams

        try:
            options = await self.aggregator.calculate_all(normalized_postal_code, weight_grams)
        except Exception as exc:
            log_event(
                shipping_logger,
                logging.ERROR,
                "shipping.quote.aggregator_failed",
                postal_code=normalized_postal_code,
                weight_grams=weight_grams,
                error=str(exc),
            )
            options = fallback_rates(weight_grams)

        return QuoteResponse(options=options, normalized_postal_code=normalized_postal_code)
