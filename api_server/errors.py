from typing import Optional


class InvoiceAPIError(Exception):
    """Base error rendered as an ``ErrorResponse`` by the app's exception handler"""

    status_code = 500
    error = "Internal server error"

    def __init__(self, error: Optional[str] = None, details: Optional[str] = None):
        self.error = error or self.error
        self.details = details
        super().__init__(self.error if details is None else f"{self.error}: {details}")


class ValidationError(InvoiceAPIError):
    status_code = 400
    error = "Validation error"


class ConflictError(InvoiceAPIError):
    status_code = 409
    error = "Invoice number already exists"


class NotFoundError(InvoiceAPIError):
    status_code = 404
    error = "Invoice not found"


class StoreError(InvoiceAPIError):
    status_code = 500
    error = "Internal server error"
