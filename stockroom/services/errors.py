"""
Domain errors raised by the services.

Endpoints translate them to HTTP statuses; services never build HTTP
responses themselves.
"""


class StockroomError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(StockroomError):
    status_code = 400


class InsufficientStockError(ValidationError):
    def __init__(self, sku: str, quantity: int, delta: int):
        super().__init__(f"Adjustment {delta:+d} would take {sku} below zero (on hand={quantity})")
        self.sku = sku
        self.quantity = quantity
        self.delta = delta


class InvalidTransitionError(ValidationError):
    pass


class NotFoundError(StockroomError):
    status_code = 404


class ConflictError(StockroomError):
    status_code = 409


class UpstreamError(StockroomError):
    """Shopify or a carrier API could not be reached or answered with an error."""

    status_code = 502

    def __init__(self, service: str, message: str):
        super().__init__(f"{service}: {message}")
        self.service = service
