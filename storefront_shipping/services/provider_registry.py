import httpx

from storefront_shipping.core.config import Settings
from storefront_shipping.services.carrier_provider import JadlogProvider, RateProvider, TotalExpressProvider
from storefront_shipping.services.correios_provider import CorreiosProvider
from storefront_shipping.services.frenet_provider import FrenetProvider
from storefront_shipping.services.rate_aggregator import RateAggregator
from storefront_shipping.services.shipping_quote_service import ShippingQuoteService


def build_default_providers(client: httpx.AsyncClient, settings: Settings) -> list[RateProvider]:
    # Order matters: equal prices keep this order in the merged list.
    return [
        CorreiosProvider(
            client,
            api_url=settings.correios_api_url,
            origin_postal_code=settings.correios_origin_postal_code,
            company_code=settings.correios_company_code,
            company_password=settings.correios_company_password,
        ),
        JadlogProvider(),
        TotalExpressProvider(),
        FrenetProvider(
            client,
            api_token=settings.frenet_api_token,
            api_url=settings.frenet_api_url,
            seller_postal_code=settings.frenet_seller_postal_code,
        ),
    ]


def build_quote_service(providers: list[RateProvider], settings: Settings) -> ShippingQuoteService:
    aggregator = RateAggregator(
        providers,
        timeout_seconds=settings.shipping_provider_timeout_seconds,
    )
    return ShippingQuoteService(aggregator)


def find_provider(providers: list[RateProvider], name: str) -> RateProvider | None:
    normalized = (name or "").strip().lower()
    return next((provider for provider in providers if provider.name.lower() == normalized), None)
