from storefront_shipping.core.observability import ERROR_CODES
from storefront_shipping.schemas.common import ErrorOut

_DESCRIPTIONS: dict[int, str] = {
    400: "Invalid postal code or package weight",
    404: "Resource not found",
    422: "Request body failed validation",
    429: "Too many quote requests from this client",
    500: "Internal server error",
    502: "Rate aggregator unavailable",
}


def error_responses(*status_codes: int, path: str = "/shipping/quote") -> dict[int, dict]:
    """OpenAPI `responses` entries rendering the shared error envelope."""
    responses: dict[int, dict] = {}
    for status_code in status_codes:
        description = _DESCRIPTIONS.get(status_code, "HTTP error")
        example = {
            "error": {
                "code": ERROR_CODES.get(status_code, "http_error"),
                "message": description,
                "request_id": "request-id",
                "path": path,
                "details": None,
            }
        }
        responses[status_code] = {
            "model": ErrorOut,
            "description": description,
            "content": {"application/json": {"example": example}},
        }
    return responses
