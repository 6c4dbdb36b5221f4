from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MAX_WEIGHT_GRAMS = 50_000


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ShippingQuoteIn(_CamelModel):
    # Loose bounds only; the quote service owns the business validation.
    postal_code: str = Field(max_length=20)
    weight_grams: float = Field(le=MAX_WEIGHT_GRAMS, allow_inf_nan=False)
    order_total: Decimal | None = Field(default=None, ge=0)

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {"postalCode": "01310-100", "weightGrams": 1500, "orderTotal": 189.9}
        },
    )


class RateQuoteOut(_CamelModel):
    carrier_label: str
    price: float
    estimated_transit: str


class ShippingQuoteOut(_CamelModel):
    options: list[RateQuoteOut]
    normalized_postal_code: str

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "options": [
                    {"carrierLabel": "Jadlog - Package", "price": 78.9, "estimatedTransit": "3-5 dias úteis"},
                    {"carrierLabel": "Jadlog - Com", "price": 89.9, "estimatedTransit": "1-2 dias úteis"},
                ],
                "normalizedPostalCode": "01310100",
            }
        },
    )


class QuoteCacheStatsOut(_CamelModel):
    enabled: bool
    total_entries: int
    valid_entries: int
    expired_entries: int
