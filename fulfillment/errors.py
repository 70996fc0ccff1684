"""
Error taxonomy for custody operations.

Every failure a caller can act on is a FulfillmentError subclass carrying a
stable ``kind`` and the HTTP status the service boundary maps it to.
"""


class FulfillmentError(Exception):
    """Base class for expected custody failures."""

    kind = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str = None):
        self.message = message or self.__class__.__doc__
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class NotFoundError(FulfillmentError):
    """Resource not found"""
    kind = "NOT_FOUND"
    status_code = 404


class ForbiddenError(FulfillmentError):
    """Caller does not own this resource"""
    kind = "FORBIDDEN"
    status_code = 403


class InvalidStateError(FulfillmentError):
    """Operation not allowed in the current state"""
    kind = "INVALID_STATE"
    status_code = 400


class InsufficientStockError(FulfillmentError):
    """Not enough stock to fulfil the order"""
    kind = "INSUFFICIENT_STOCK"
    status_code = 400


class SelfOrderDeniedError(FulfillmentError):
    """Suppliers cannot order their own products"""
    kind = "SELF_ORDER_DENIED"
    status_code = 400


class ValidationError(FulfillmentError):
    """Request input is invalid"""
    kind = "VALIDATION_ERROR"
    status_code = 400


class InvalidCredentialError(FulfillmentError):
    """Invalid private key"""
    kind = "INVALID_CREDENTIAL"
    status_code = 401


class TransactionConflictError(FulfillmentError):
    """Conflicting concurrent update"""
    kind = "CONFLICT"
    status_code = 409


class TransactionTimeoutError(FulfillmentError):
    """Transaction timed out"""
    kind = "TIMEOUT"
    status_code = 408


class ConfigurationError(FulfillmentError):
    """Required configuration is missing"""
    kind = "CONFIGURATION_ERROR"
    status_code = 500
