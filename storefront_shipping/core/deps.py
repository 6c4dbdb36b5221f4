from fastapi import Request

from storefront_shipping.services.carrier_provider import RateProvider
from storefront_shipping.services.quote_cache import QuoteCache
from storefront_shipping.services.shipping_quote_service import ShippingQuoteService


def get_quote_service(request: Request) -> ShippingQuoteService:
    return request.app.state.quote_service


def get_quote_cache(request: Request) -> QuoteCache | None:
    return getattr(request.app.state, "quote_cache", None)


def get_rate_providers(request: Request) -> list[RateProvider]:
    return request.app.state.rate_providers
