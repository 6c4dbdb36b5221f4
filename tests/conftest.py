import os

os.environ.setdefault("FRENET_API_TOKEN", "")
os.environ.setdefault("SHIPPING_QUOTE_CACHE_ENABLED", "true")

import pytest
from fastapi.testclient import TestClient

from storefront_shipping.core.deps import get_quote_cache, get_quote_service, get_rate_providers
from storefront_shipping.main import app
from storefront_shipping.routers.shipping import quote_rate_limiter
from storefront_shipping.services.rate_aggregator import RateAggregator
from storefront_shipping.services.shipping_quote_service import ShippingQuoteService


@pytest.fixture()
def api_context():
    """Yields a function wiring the app to the given providers and cache."""
    quote_rate_limiter.clear()

    with TestClient(app) as client:

        def configure(providers, cache=None):
            service = ShippingQuoteService(RateAggregator(providers, timeout_seconds=0.5))
            app.dependency_overrides[get_quote_service] = lambda: service
            app.dependency_overrides[get_rate_providers] = lambda: providers
            app.dependency_overrides[get_quote_cache] = lambda: cache
            return client

        yield configure

    app.dependency_overrides.clear()
    quote_rate_limiter.clear()
