from typing import Any

from pydantic import BaseModel, ConfigDict


class ErrorDetailOut(BaseModel):
    code: str
    message: str
    request_id: str
    path: str
    details: list[dict[str, Any]] | None = None


class ErrorOut(BaseModel):
    error: ErrorDetailOut

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": {
                    "code": "insufficient_stock",
                    "message": "Insufficient stock for 010.000.0104.00. Available: 15.000",
                    "request_id": "8d8f2b00-6c79-4a45-8ff4-b0a5f2bc4bc2",
                    "path": "/api/inventory/movements/exits",
                    "details": [
                        {
                            "medication_key": "010.000.0104.00",
                            "lot_id": None,
                            "requested": 20.0,
                            "available": 15.0,
                            "shortfall": 5.0,
                        }
                    ],
                }
            }
        }
    )
