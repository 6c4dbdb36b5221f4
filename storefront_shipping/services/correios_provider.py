"""
Correios rate provider.

Queries the public CalcPrecoPrazo calculator once per service level. The
calculator answers with a small XML document::

    <cResultado xmlns="http://tempuri.org/">
      <Servicos>
        <cServico>
          <Codigo>04510</Codigo>
          <Valor>1.234,56</Valor>
          <PrazoEntrega>5</PrazoEntrega>
          <Erro>0</Erro>
        </cServico>
      </Servicos>
    </cResultado>

Amounts use comma decimals and dot thousands. A non-zero ``Erro`` means the
service is not offered for the route and is left out of the result.
"""

import logging
import math
from dataclasses import dataclass
from xml.etree import ElementTree as ET

import httpx

from storefront_shipping.core.money import parse_brl_amount
from storefront_shipping.core.observability import log_event, shipping_logger
from storefront_shipping.services.carrier_provider import RateQuote, is_full_postal_code, strip_postal_code

SERVICE_PAC = "04510"
SERVICE_SEDEX = "04014"
SERVICE_SEDEX_10 = "04790"

SERVICE_NAMES = {
    SERVICE_PAC: "PAC",
    SERVICE_SEDEX: "SEDEX",
    SERVICE_SEDEX_10: "SEDEX 10",
}

SERVICE_TRANSIT = {
    SERVICE_PAC: "4-9 dias úteis",
    SERVICE_SEDEX: "1-3 dias úteis",
    SERVICE_SEDEX_10: "1 dia útil (até 10h)",
}

SEDEX_10_MAX_WEIGHT_KG = 10.0
MIN_WEIGHT_KG = 0.1


@dataclass(frozen=True)
class PackageDimensions:
    length_cm: int
    width_cm: int
    height_cm: int


MIN_PACKAGE_DIMENSIONS = PackageDimensions(length_cm=16, width_cm=11, height_cm=2)


@dataclass(frozen=True)
class CorreiosServiceResult:
    code: str
    price: str
    delivery_days: str
    error_code: str


def estimate_package_dimensions(weight_grams: float) -> PackageDimensions:
    weight_kg = weight_grams / 1000
    length = MIN_PACKAGE_DIMENSIONS.length_cm
    width = MIN_PACKAGE_DIMENSIONS.width_cm
    height = MIN_PACKAGE_DIMENSIONS.height_cm

    if weight_kg > 0.5:
        height = max(height, math.ceil(weight_kg * 2))
    if weight_kg > 2:
        width = max(width, math.ceil(weight_kg * 3))
        length = max(length, math.ceil(weight_kg * 4))

    return PackageDimensions(length_cm=length, width_cm=width, height_cm=height)


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child_text(element: ET.Element, name: str) -> str:
    for child in element:
        if _local_name(child.tag) == name:
            return (child.text or "").strip()
    return ""


def parse_calculator_response(payload: str | bytes) -> list[CorreiosServiceResult]:
    """Extracts every ``cServico`` block. Raises ValueError on malformed XML."""
    try:
        root = ET.fromstring(payload)
    except ET.ParseError as exc:
        raise ValueError(f"Malformed Correios payload: {exc}") from exc

    results = []
    for element in root.iter():
        if _local_name(element.tag) != "cServico":
            continue
        results.append(
            CorreiosServiceResult(
                code=_child_text(element, "Codigo"),
                price=_child_text(element, "Valor"),
                delivery_days=_child_text(element, "PrazoEntrega"),
                error_code=_child_text(element, "Erro"),
            )
        )
    if not results:
        raise ValueError("Correios payload has no cServico entries")
    return results


def _is_error(error_code: str) -> bool:
    try:
        return int(error_code or "0") != 0
    except ValueError:
        return True


class CorreiosProvider:
    name = "Correios"

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        api_url: str,
        origin_postal_code: str,
        company_code: str = "",
        company_password: str = "",
    ):
        self.client = client
        self.api_url = api_url
        self.origin_postal_code = strip_postal_code(origin_postal_code)
        self.company_code = company_code
        self.company_password = company_password

    def services_for(self, weight_kg: float) -> list[str]:
        services = [SERVICE_PAC, SERVICE_SEDEX]
        if weight_kg <= SEDEX_10_MAX_WEIGHT_KG:
            services.append(SERVICE_SEDEX_10)
        return services

    async def calculate(self, postal_code: str, weight_grams: float) -> list[RateQuote]:
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

        dimensions = estimate_package_dimensions(weight_grams)
        weight_kg = max(MIN_WEIGHT_KG, weight_grams / 1000)

        quotes: list[RateQuote] = []
        for service_code in self.services_for(weight_kg):
            try:
                quote = await self._quote_service(service_code, destination, weight_kg, dimensions)
            except Exception as exc:
                log_event(
                    shipping_logger,
                    logging.WARNING,
                    "shipping.provider.service_failed",
                    provider=self.name,
                    service_code=service_code,
                    error=str(exc),
                )
                continue
            if quote is not None:
                quotes.append(quote)

        if not quotes:
            log_event(
                shipping_logger,
                logging.INFO,
                "shipping.provider.empty",
                provider=self.name,
                postal_code=destination,
            )
        return quotes

    async def _quote_service(
        self,
        service_code: str,
        destination: str,
        weight_kg: float,
        dimensions: PackageDimensions,
    ) -> RateQuote | None:
        response = await self.client.post(
            self.api_url,
            data={
                "nCdEmpresa": self.company_code,
                "sDsSenha": self.company_password,
                "nCdServico": service_code,
                "sCepOrigem": self.origin_postal_code,
                "sCepDestino": destination,
                "nVlPeso": str(weight_kg),
                "nCdFormato": "1",
                "nVlComprimento": str(dimensions.length_cm),
                "nVlAltura": str(dimensions.height_cm),
                "nVlLargura": str(dimensions.width_cm),
                "nVlDiametro": "0",
                "sCdMaoPropria": "N",
                "nVlValorDeclarado": "0",
                "sCdAvisoRecebimento": "N",
            },
        )
        response.raise_for_status()

        results = parse_calculator_response(response.content)
        result = next((item for item in results if item.code == service_code), results[0])
        if _is_error(result.error_code):
            log_event(
                shipping_logger,
                logging.INFO,
                "shipping.provider.service_unavailable",
                provider=self.name,
                service_code=service_code,
                error_code=result.error_code,
            )
            return None

        return RateQuote(
            carrier_label=SERVICE_NAMES.get(service_code, f"Serviço {service_code}"),
            price=parse_brl_amount(result.price),
            estimated_transit=SERVICE_TRANSIT.get(service_code) or f"{result.delivery_days} dias úteis",
        )
