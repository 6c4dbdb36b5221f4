import json
import re
from decimal import Decimal
from typing import List, Union
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Storefront Shipping"
    env: str = "dev"
    log_level: str = "INFO"

    # FRENET
    frenet_api_token: str | None = None
    frenet_api_url: str = "https://api.frenet.com.br"
    frenet_seller_postal_code: str = "74591990"

    # CORREIOS
    correios_api_url: str = "http://ws.correios.com.br/calculador/CalcPrecoPrazo.asmx/CalcPrecoPrazo"
    correios_origin_postal_code: str = "01310100"
    correios_company_code: str = ""
    correios_company_password: str = ""

    # QUOTING
    shipping_provider_timeout_seconds: float = Field(default=5.0, gt=0, le=60)
    shipping_http_timeout_seconds: float = Field(default=10.0, gt=0, le=120)
    shipping_quote_cache_enabled: bool = True
    shipping_quote_cache_ttl_seconds: int = Field(default=3600, ge=1, le=86_400)
    shipping_quote_cache_cleanup_interval_seconds: float = Field(default=1800, gt=0)
    shipping_quote_rate_limit_requests: int = Field(default=10, ge=1)
    shipping_quote_rate_limit_window_seconds: int = Field(default=60, ge=1)

    # PROMOTIONS
    free_shipping_threshold: Decimal = Field(default=Decimal("200"), ge=0)
    free_shipping_standard_label: str = "Correios - PAC"

    # CORS
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    cors_origin_regex: str | None = None

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        if v is None:
            return []
        if isinstance(v, str):
            if not v.strip():
                return []
            if v.startswith("["):
                parsed = json.loads(v)
                if not isinstance(parsed, list):
                    raise ValueError("CORS_ORIGINS JSON value must be a list")
                return [str(i).strip() for i in parsed if str(i).strip()]
            return [i.strip() for i in v.split(",") if i.strip()]
        if isinstance(v, list):
            return [str(i).strip() for i in v if str(i).strip()]
        raise ValueError(v)

    @field_validator("frenet_api_token", mode="before")
    @classmethod
    def normalize_optional_strings(cls, value: str | None) -> str | None:
        if value is None:
            return None
        cleaned = str(value).strip()
        return cleaned or None

    @field_validator("frenet_seller_postal_code", "correios_origin_postal_code", mode="before")
    @classmethod
    def normalize_postal_codes(cls, value: str) -> str:
        digits = re.sub(r"\D", "", str(value or ""))
        if len(digits) != 8:
            raise ValueError("Origin postal codes must have 8 digits")
        return digits

    @field_validator("frenet_api_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return str(value).strip().rstrip("/")

    @model_validator(mode="after")
    def validate_production_safety(self) -> "Settings":
        env_value = self.env.lower().strip()
        if env_value not in {"prod", "production"}:
            return self

        if "*" in self.cors_origins:
            raise ValueError("CORS_ORIGINS cannot contain '*' in production")
        if self.cors_origin_regex:
            raise ValueError("CORS_ORIGIN_REGEX cannot be set in production")

        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        enable_decoding=False,
    )


settings = Settings()
