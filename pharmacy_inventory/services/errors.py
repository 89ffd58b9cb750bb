from decimal import Decimal


class InventoryError(ValueError):
    status_code = 400
    code = "bad_request"

    def __init__(self, message: str, *, details: list[dict] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidQuantityError(InventoryError):
    status_code = 400
    code = "invalid_quantity"


class InsufficientStockError(InventoryError):
    status_code = 409
    code = "insufficient_stock"

    def __init__(
        self,
        *,
        medication_key: str,
        requested: Decimal,
        available: Decimal,
        lot_id: str | None = None,
    ):
        self.medication_key = medication_key
        self.requested = requested
        self.available = available
        self.shortfall = requested - available
        self.lot_id = lot_id
        if lot_id is None:
            message = f"Insufficient stock for {medication_key}. Available: {available}"
        else:
            message = f"Insufficient stock in lot {lot_id} of {medication_key}. Available: {available}"
        super().__init__(
            message,
            details=[
                {
                    "medication_key": medication_key,
                    "lot_id": lot_id,
                    "requested": float(requested),
                    "available": float(available),
                    "shortfall": float(self.shortfall),
                }
            ],
        )


class NotFoundError(InventoryError):
    status_code = 404
    code = "not_found"


class InventoryValidationError(InventoryError):
    status_code = 422
    code = "validation_error"

    def __init__(self, message: str, *, field: str | None = None):
        details = [{"field": field, "message": message, "type": "value_error"}] if field else None
        super().__init__(message, details=details)
        self.field = field


class ConflictError(InventoryError):
    status_code = 409
    code = "conflict"
