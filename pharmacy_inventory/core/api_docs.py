from pharmacy_inventory.schemas.common import ErrorOut

# status -> (error code, example message)
_ERROR_EXAMPLES: dict[int, tuple[str, str]] = {
    400: ("invalid_quantity", "Quantity must be greater than zero"),
    404: ("not_found", "Medication not found in catalog: 010.000.0104.00"),
    409: ("insufficient_stock", "Insufficient stock for 010.000.0104.00. Available: 15.000"),
    422: ("validation_error", "Validation failed"),
    500: ("internal_error", "Internal server error"),
}


def _example(status_code: int) -> dict:
    code, message = _ERROR_EXAMPLES.get(status_code, ("http_error", "HTTP error"))
    return {
        "error": {
            "code": code,
            "message": message,
            "request_id": "8d8f2b00-6c79-4a45-8ff4-b0a5f2bc4bc2",
            "path": "/api/inventory/movements/exits",
            "details": None,
        }
    }


def error_responses(*status_codes: int) -> dict[int, dict]:
    """OpenAPI `responses` entries sharing the error envelope schema."""
    return {
        status_code: {
            "model": ErrorOut,
            "description": _example(status_code)["error"]["code"].replace("_", " ").capitalize(),
            "content": {"application/json": {"example": _example(status_code)}},
        }
        for status_code in status_codes
    }
