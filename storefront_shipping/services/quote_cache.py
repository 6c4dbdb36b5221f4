import asyncio
import logging
import math
import time
from dataclasses import dataclass
from threading import Lock

from storefront_shipping.core.observability import log_event, shipping_logger
from storefront_shipping.services.carrier_provider import strip_postal_code
from storefront_shipping.services.shipping_quote_service import QuoteResponse

DEFAULT_TTL_SECONDS = 3600
WEIGHT_BUCKET_GRAMS = 100
DEFAULT_CLEANUP_INTERVAL_SECONDS = 1800


@dataclass
class _CacheEntry:
    response: QuoteResponse
    stored_at: float
    ttl_seconds: float

    def is_valid(self, now: float) -> bool:
        return (now - self.stored_at) < self.ttl_seconds


class QuoteCache:
    """In-memory quote cache keyed by postal code and 100 g weight bucket."""

    def __init__(self, *, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock=time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}
        self._lock = Lock()

    @staticmethod
    def cache_key(postal_code: str, weight_grams: float) -> str:
        bucket = math.ceil(weight_grams / WEIGHT_BUCKET_GRAMS) * WEIGHT_BUCKET_GRAMS
        return f"{strip_postal_code(postal_code)}-{bucket}g"

    def get(self, postal_code: str, weight_grams: float) -> QuoteResponse | None:
        key = self.cache_key(postal_code, weight_grams)
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if not entry:
                return None
            if not entry.is_valid(now):
                self._entries.pop(key, None)
                return None
        log_event(shipping_logger, logging.INFO, "shipping.cache.hit", key=key)
        return entry.response

    def set(
        self,
        postal_code: str,
        weight_grams: float,
        response: QuoteResponse,
        ttl_seconds: float | None = None,
    ) -> None:
        key = self.cache_key(postal_code, weight_grams)
        with self._lock:
            self._entries[key] = _CacheEntry(
                response=response,
                stored_at=self._clock(),
                ttl_seconds=self.ttl_seconds if ttl_seconds is None else ttl_seconds,
            )

    def cleanup_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if not entry.is_valid(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            log_event(shipping_logger, logging.INFO, "shipping.cache.cleanup", removed=len(expired))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> dict[str, int]:
        now = self._clock()
        with self._lock:
            valid = sum(1 for entry in self._entries.values() if entry.is_valid(now))
            total = len(self._entries)
        return {
            "total_entries": total,
            "valid_entries": valid,
            "expired_entries": total - valid,
        }


async def purge_expired_periodically(
    cache: QuoteCache,
    interval_seconds: float = DEFAULT_CLEANUP_INTERVAL_SECONDS,
) -> None:
    """Drops expired entries every ``interval_seconds`` until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        cache.cleanup_expired()
