import logging
import math
import random
from decimal import Decimal
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from storefront_shipping.core.money import to_money
from storefront_shipping.core.observability import log_event, shipping_logger
from storefront_shipping.services.carrier_provider import RateQuote, is_full_postal_code, strip_postal_code

DECLARED_INVOICE_VALUE = 100
ITEM_CATEGORY = "Cosmetics"
RECIPIENT_COUNTRY = "BR"


class FrenetShippingService(BaseModel):
    carrier: str = Field(default="", alias="Carrier")
    service_description: str = Field(default="", alias="ServiceDescription")
    shipping_price: Decimal = Field(default=Decimal("0"), alias="ShippingPrice")
    delivery_time: str = Field(default="", alias="DeliveryTime")
    error: bool = Field(default=False, alias="Error")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("carrier", "service_description", "delivery_time", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip()

    @field_validator("shipping_price", mode="before")
    @classmethod
    def blank_price_is_zero(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return "0"
        return value


class FrenetQuoteResponse(BaseModel):
    # Upstream spells the field this way.
    services: list[FrenetShippingService] = Field(alias="ShippingSevicesArray")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def estimate_item_dimensions(weight_kg: float) -> dict[str, int]:
    return {
        "Height": max(2, math.ceil(weight_kg * 2)),
        "Length": max(15, math.ceil(weight_kg * 10)),
        "Width": max(10, math.ceil(weight_kg * 8)),
    }


def _synthetic_sku() -> str:
    return f"PROD_{random.randrange(10_000)}"


class FrenetProvider:
    name = "Frenet"

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        api_token: str | None,
        api_url: str,
        seller_postal_code: str,
    ):
        self.client = client
        self.api_token = api_token
        self.api_url = api_url.rstrip("/")
        self.seller_postal_code = strip_postal_code(seller_postal_code)

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "token": self.api_token or "",
        }

    def build_quote_payload(self, destination: str, weight_grams: float) -> dict[str, Any]:
        weight_kg = weight_grams / 1000
        item = {
            **estimate_item_dimensions(weight_kg),
            "Weight": weight_kg,
            "Quantity": 1,
            "SKU": _synthetic_sku(),
            "Category": ITEM_CATEGORY,
        }
        return {
            "SellerCEP": self.seller_postal_code,
            "RecipientCEP": destination,
            "ShipmentInvoiceValue": DECLARED_INVOICE_VALUE,
            "ShippingServiceCode": None,
            "ShippingItemArray": [item],
            "RecipientCountry": RECIPIENT_COUNTRY,
        }

    async def calculate(self, postal_code: str, weight_grams: float) -> list[RateQuote]:
        if not self.api_token:
            log_event(
                shipping_logger,
                logging.INFO,
                "shipping.provider.not_configured",
                provider=self.name,
            )
            return []

        destination = strip_postal_code(postal_code)
        if not is_full_postal_code(destination):
            log_event(
                shipping_logger,
                logging.WARNING,
                "shipping.provider.invalid_postal_code",
                provider=self.name,
                postal_code=postal_code,
            )
            return []

        payload = self.build_quote_payload(destination, weight_grams)
        try:
            response = await self.client.post(
                f"{self.api_url}/shipping/quote",
                json=payload,
                headers=self._headers(),
            )
            response.raise_for_status()
            parsed = FrenetQuoteResponse.model_validate(response.json())
        except (httpx.HTTPError, ValueError, ValidationError) as exc:
            log_event(
                shipping_logger,
                logging.WARNING,
                "shipping.provider.failed",
                provider=self.name,
                error=str(exc),
            )
            return []

        return [
            RateQuote(
                carrier_label=f"{service.carrier} - {service.service_description}",
                price=to_money(service.shipping_price),
                estimated_transit=f"{service.delivery_time} dias úteis",
            )
            for service in parsed.services
            if not service.error and service.shipping_price > 0
        ]

    async def fetch_shipping_info(self) -> dict[str, Any] | None:
        if not self.api_token:
            return None
        try:
            response = await self.client.get(
                f"{self.api_url}/shipping/info",
                headers={"Accept": "application/json", "token": self.api_token},
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            log_event(
                shipping_logger,
                logging.WARNING,
                "shipping.provider.info_failed",
                provider=self.name,
                error=str(exc),
            )
            return None
        return data if isinstance(data, dict) else None
