from fastapi import APIRouter, Depends, HTTPException, Request, status

from storefront_shipping.core.api_docs import error_responses
from storefront_shipping.core.config import settings
from storefront_shipping.core.deps import get_quote_cache, get_quote_service, get_rate_providers
from storefront_shipping.core.rate_limit import SlidingWindowRateLimiter
from storefront_shipping.schemas.shipping import (
    QuoteCacheStatsOut,
    RateQuoteOut,
    ShippingQuoteIn,
    ShippingQuoteOut,
)
from storefront_shipping.services.carrier_provider import RateProvider, RateQuote
from storefront_shipping.services.frenet_provider import FrenetProvider
from storefront_shipping.services.provider_registry import find_provider
from storefront_shipping.services.quote_cache import QuoteCache
from storefront_shipping.services.shipping_pricing import apply_free_shipping
from storefront_shipping.services.shipping_quote_service import (
    QuoteRequest,
    ShippingQuoteError,
    ShippingQuoteService,
)

router = APIRouter(prefix="/shipping", tags=["shipping"])

quote_rate_limiter = SlidingWindowRateLimiter(
    max_requests=settings.shipping_quote_rate_limit_requests,
    window_seconds=settings.shipping_quote_rate_limit_window_seconds,
)


def _enforce_quote_rate_limit(request: Request) -> None:
    client_ip = (request.client.host if request.client else "unknown").strip() or "unknown"
    retry_after = quote_rate_limiter.check_and_consume(client_ip)
    if retry_after > 0:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many shipping quote requests",
            headers={"Retry-After": str(retry_after)},
        )


def _quote_out(options: list[RateQuote], normalized_postal_code: str) -> ShippingQuoteOut:
    return ShippingQuoteOut(
        options=[
            RateQuoteOut(
                carrier_label=option.carrier_label,
                price=float(option.price),
                estimated_transit=option.estimated_transit,
            )
            for option in options
        ],
        normalized_postal_code=normalized_postal_code,
    )


@router.post(
    "/quote",
    response_model=ShippingQuoteOut,
    summary="Quote shipping rates across carriers",
    responses=error_responses(400, 422, 429, 500),
)
async def quote_shipping_rates(
    payload: ShippingQuoteIn,
    request: Request,
    service: ShippingQuoteService = Depends(get_quote_service),
    cache: QuoteCache | None = Depends(get_quote_cache),
):
    _enforce_quote_rate_limit(request)

    quote_request = QuoteRequest(
        destination_postal_code=payload.postal_code,
        package_weight_grams=payload.weight_grams,
    )
    try:
        normalized_postal_code = service.validate(quote_request)
    except ShippingQuoteError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    quote = cache.get(normalized_postal_code, payload.weight_grams) if cache else None
    if quote is None:
        quote = await service.get_quote(quote_request)
        if cache:
            cache.set(normalized_postal_code, payload.weight_grams, quote)

    options = quote.options
    if payload.order_total is not None:
        options = apply_free_shipping(
            options,
            payload.order_total,
            threshold=settings.free_shipping_threshold,
            standard_label=settings.free_shipping_standard_label,
        )
    return _quote_out(options, quote.normalized_postal_code)


@router.get(
    "/info",
    summary="Rate aggregator account info",
    responses=error_responses(502, 500, path="/shipping/info"),
)
async def get_shipping_info(providers: list[RateProvider] = Depends(get_rate_providers)):
    provider = find_provider(providers, FrenetProvider.name)
    info = await provider.fetch_shipping_info() if isinstance(provider, FrenetProvider) else None
    if info is None:
        raise HTTPException(status_code=502, detail="Shipping info unavailable from rate aggregator")
    return info


@router.get(
    "/cache/stats",
    response_model=QuoteCacheStatsOut,
    summary="Shipping quote cache statistics",
    responses=error_responses(500, path="/shipping/cache/stats"),
)
def get_quote_cache_stats(cache: QuoteCache | None = Depends(get_quote_cache)):
    if cache is None:
        return QuoteCacheStatsOut(enabled=False, total_entries=0, valid_entries=0, expired_entries=0)
    return QuoteCacheStatsOut(enabled=True, **cache.stats())
