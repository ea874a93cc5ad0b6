from typing import Any, List, Optional

from pydantic import BaseModel, ValidationError as PydanticValidationError

from .models import InvoiceCreate

MISSING_REQUIRED_FIELDS = "Missing required fields: invoiceNumber and customerInfo.name"
MISSING_ITEMS = "At least one item is required"
NOT_AN_OBJECT = "Invoice payload must be a JSON object"
SCHEMA_VIOLATION = "Validation error"


class ValidationResult(BaseModel):
    invoice: Optional[InvoiceCreate] = None
    error: Optional[str] = None
    violations: List[str] = []

    @property
    def is_valid(self) -> bool:
        return self.invoice is not None

    @property
    def details(self) -> Optional[str]:
        return "; ".join(self.violations) if self.violations else None


def _format_violation(error: dict) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()))
    return f"{location}: {error.get('msg')}" if location else error.get("msg", "")


def validate_invoice(payload: Any) -> ValidationResult:
    """Check a raw invoice payload before it reaches the store"""
    if not isinstance(payload, dict):
        return ValidationResult(error=NOT_AN_OBJECT)

    customer = payload.get("customerInfo")
    if not payload.get("invoiceNumber") or not isinstance(customer, dict) or not customer.get("name"):
        return ValidationResult(error=MISSING_REQUIRED_FIELDS)

    items = payload.get("items")
    if not isinstance(items, list) or len(items) == 0:
        return ValidationResult(error=MISSING_ITEMS)

    try:
        invoice = InvoiceCreate.model_validate(payload)
    except PydanticValidationError as e:
        return ValidationResult(
            error=SCHEMA_VIOLATION,
            violations=[_format_violation(err) for err in e.errors()]
        )

    return ValidationResult(invoice=invoice)
