from decimal import Decimal

import httpx

from storefront_shipping.core.config import settings
from storefront_shipping.services.carrier_provider import RateQuote
from storefront_shipping.services.frenet_provider import FrenetProvider
from storefront_shipping.services.quote_cache import QuoteCache


class CountingProvider:
    def __init__(self, name: str, quotes: list[RateQuote]):
        self.name = name
        self.quotes = quotes
        self.calls = 0

    async def calculate(self, postal_code: str, weight_grams: float) -> list[RateQuote]:
        self.calls += 1
        return list(self.quotes)


class FailingProvider:
    def __init__(self, name: str):
        self.name = name

    async def calculate(self, postal_code: str, weight_grams: float) -> list[RateQuote]:
        raise RuntimeError(f"{self.name} is down")


def _quote(label: str, price: str, transit: str = "4-9 dias úteis") -> RateQuote:
    return RateQuote(carrier_label=label, price=Decimal(price), estimated_transit=transit)


def _correios_and_jadlog() -> list[CountingProvider]:
    return [
        CountingProvider("Correios", [_quote("SEDEX", "41.20", "1-3 dias úteis"), _quote("PAC", "24.50")]),
        CountingProvider("Jadlog", [_quote("Package", "30.00", "3-5 dias úteis")]),
    ]


def _frenet_provider(handler, *, api_token: str | None = "secret-token") -> FrenetProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return FrenetProvider(
        client,
        api_token=api_token,
        api_url="https://frenet.test",
        seller_postal_code="74591990",
    )


def test_quote_returns_camel_case_options_cheapest_first(api_context):
    client = api_context(_correios_and_jadlog())

    res = client.post("/shipping/quote", json={"postalCode": "01310-100", "weightGrams": 1500})

    assert res.status_code == 200, res.text
    assert res.headers["X-Request-ID"]
    body = res.json()
    assert body["normalizedPostalCode"] == "01310100"
    assert body["options"] == [
        {"carrierLabel": "Correios - PAC", "price": 24.5, "estimatedTransit": "4-9 dias úteis"},
        {"carrierLabel": "Jadlog - Package", "price": 30.0, "estimatedTransit": "3-5 dias úteis"},
        {"carrierLabel": "Correios - SEDEX", "price": 41.2, "estimatedTransit": "1-3 dias úteis"},
    ]


def test_quote_accepts_snake_case_field_names(api_context):
    client = api_context(_correios_and_jadlog())

    res = client.post("/shipping/quote", json={"postal_code": "01310100", "weight_grams": 500})

    assert res.status_code == 200, res.text


def test_quote_falls_back_when_every_carrier_fails(api_context):
    client = api_context([FailingProvider("Correios"), FailingProvider("Frenet")])

    res = client.post("/shipping/quote", json={"postalCode": "01310-100", "weightGrams": 1500})

    assert res.status_code == 200, res.text
    assert res.json()["options"] == [
        {"carrierLabel": "Economy", "price": 23.4, "estimatedTransit": "4-9 dias úteis"},
        {"carrierLabel": "Express", "price": 33.4, "estimatedTransit": "1-3 dias úteis"},
    ]


def test_quote_rejects_invalid_input_with_error_envelope(api_context):
    client = api_context(_correios_and_jadlog())

    short_postal = client.post("/shipping/quote", json={"postalCode": "0131", "weightGrams": 1500})
    assert short_postal.status_code == 400
    error = short_postal.json()["error"]
    assert error["code"] == "bad_request"
    assert error["message"] == "Invalid postal code"
    assert error["path"] == "/shipping/quote"
    assert error["request_id"] == short_postal.headers["X-Request-ID"]

    zero_weight = client.post("/shipping/quote", json={"postalCode": "01310-100", "weightGrams": 0})
    assert zero_weight.status_code == 400
    assert zero_weight.json()["error"]["message"] == "Total weight must be greater than zero"

    missing_field = client.post("/shipping/quote", json={"postalCode": "01310-100"})
    assert missing_field.status_code == 422
    assert missing_field.json()["error"]["code"] == "validation_error"
    assert missing_field.json()["error"]["details"][0]["field"] == "weightGrams"


def test_quote_applies_free_shipping_for_large_orders(api_context):
    client = api_context(_correios_and_jadlog())

    below = client.post(
        "/shipping/quote",
        json={"postalCode": "01310-100", "weightGrams": 1500, "orderTotal": 199.99},
    )
    assert below.json()["options"][0] == {
        "carrierLabel": "Correios - PAC",
        "price": 24.5,
        "estimatedTransit": "4-9 dias úteis",
    }

    above = client.post(
        "/shipping/quote",
        json={"postalCode": "01310-100", "weightGrams": 1500, "orderTotal": 250},
    )
    options = above.json()["options"]
    assert options[0] == {
        "carrierLabel": "Correios - PAC (Grátis)",
        "price": 0.0,
        "estimatedTransit": "4-9 dias úteis",
    }
    assert [option["price"] for option in options[1:]] == [30.0, 41.2]


def test_cached_quote_skips_carriers_and_keeps_free_shipping_per_request(api_context):
    providers = _correios_and_jadlog()
    cache = QuoteCache(ttl_seconds=60)
    client = api_context(providers, cache=cache)

    first = client.post("/shipping/quote", json={"postalCode": "01310-100", "weightGrams": 150})
    second = client.post(
        "/shipping/quote",
        json={"postalCode": "01310100", "weightGrams": 180, "orderTotal": 300},
    )

    assert first.status_code == 200 and second.status_code == 200
    assert [provider.calls for provider in providers] == [1, 1]
    assert second.json()["options"][0]["carrierLabel"] == "Correios - PAC (Grátis)"
    assert first.json()["options"][0]["carrierLabel"] == "Correios - PAC"

    stats = client.get("/shipping/cache/stats")
    assert stats.status_code == 200
    assert stats.json() == {"enabled": True, "totalEntries": 1, "validEntries": 1, "expiredEntries": 0}


def test_cache_stats_when_cache_disabled(api_context):
    client = api_context(_correios_and_jadlog(), cache=None)

    res = client.get("/shipping/cache/stats")

    assert res.status_code == 200
    assert res.json() == {"enabled": False, "totalEntries": 0, "validEntries": 0, "expiredEntries": 0}


def test_quote_rate_limit_blocks_after_window_is_full(api_context):
    client = api_context(_correios_and_jadlog())
    payload = {"postalCode": "01310-100", "weightGrams": 500}

    for _ in range(settings.shipping_quote_rate_limit_requests):
        assert client.post("/shipping/quote", json=payload).status_code == 200

    blocked = client.post("/shipping/quote", json=payload)
    assert blocked.status_code == 429
    assert int(blocked.headers["Retry-After"]) >= 1
    assert blocked.json()["error"]["code"] == "rate_limited"


def test_shipping_info_proxies_aggregator_account(api_context):
    frenet = _frenet_provider(lambda request: httpx.Response(200, json={"ShippingSeviceAvailableArray": []}))
    client = api_context([frenet])

    res = client.get("/shipping/info")

    assert res.status_code == 200
    assert res.json() == {"ShippingSeviceAvailableArray": []}


def test_shipping_info_unavailable_without_aggregator(api_context):
    client = api_context(_correios_and_jadlog())
    assert client.get("/shipping/info").status_code == 502

    untokened = _frenet_provider(lambda request: httpx.Response(200, json={}), api_token=None)
    client = api_context([untokened])
    res = client.get("/shipping/info")
    assert res.status_code == 502
    assert res.json()["error"]["code"] == "upstream_unavailable"


def test_health_and_root(api_context):
    client = api_context([])

    assert client.get("/health").json() == {"ok": True}
    assert client.get("/").json()["health"] == "/health"


def test_quote_rejects_out_of_range_and_non_finite_weights(api_context):
    client = api_context([FailingProvider("Correios")])

    too_heavy = client.post("/shipping/quote", json={"postalCode": "01310-100", "weightGrams": 1e30})
    assert too_heavy.status_code == 422
    assert too_heavy.json()["error"]["details"][0]["field"] == "weightGrams"

    for token in ("NaN", "Infinity"):
        res = client.post(
            "/shipping/quote",
            content=f'{{"postalCode": "01310-100", "weightGrams": {token}}}',
            headers={"Content-Type": "application/json"},
        )
        assert res.status_code == 422, token
        assert res.json()["error"]["code"] == "validation_error"


def test_quote_at_maximum_weight_falls_back(api_context):
    client = api_context([FailingProvider("Correios")])

    res = client.post("/shipping/quote", json={"postalCode": "01310-100", "weightGrams": 50_000})

    assert res.status_code == 200, res.text
    assert [option["carrierLabel"] for option in res.json()["options"]] == ["Economy", "Express"]
