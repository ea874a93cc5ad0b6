from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Dict, Any


class _Document(BaseModel):
    # Unknown keys are dropped; the frontend sends numeric ids and fee values.
    # JSON numbers like 1e999 parse to inf, which the store cannot hold.
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True, allow_inf_nan=False)


class MerchantInfo(_Document):
    name: Optional[str] = None
    location: Optional[str] = None


class CustomerInfo(_Document):
    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class InvoiceDetails(_Document):
    invoiceNumber: Optional[str] = None
    date: Optional[str] = None
    dueDate: Optional[str] = None
    notes: Optional[str] = None


class LineItem(_Document):
    id: Optional[str] = None
    name: str
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0)
    total: float = Field(..., ge=0)


class InvoiceCreate(_Document):
    invoiceNumber: str = Field(..., min_length=1)
    merchantInfo: Optional[MerchantInfo] = None
    customerInfo: CustomerInfo
    invoiceDetails: Optional[InvoiceDetails] = None
    items: List[LineItem] = Field(..., min_length=1)
    serviceFee: Optional[str] = None
    feeType: Optional[str] = None
    feeValue: Optional[str] = None
    subtotal: float = Field(..., ge=0)
    serviceFeeAmount: float = Field(0, ge=0)
    total: float = Field(..., ge=0)
    dynamicQRCode: Optional[str] = None

    def to_document(self) -> Dict[str, Any]:
        """Plain dict ready for the store, without empty optional fields"""
        return self.model_dump(exclude_none=True)


class InvoiceCreatedResponse(BaseModel):
    success: bool = True
    message: str
    invoiceId: str
    invoiceNumber: str
    createdAt: str


class InvoiceResponse(BaseModel):
    success: bool = True
    invoice: Dict[str, Any]


class Pagination(BaseModel):
    total: int
    limit: int
    skip: int
    hasMore: bool


class InvoiceListResponse(BaseModel):
    success: bool = True
    invoices: List[Dict[str, Any]]
    pagination: Pagination


class DeletedInvoice(BaseModel):
    id: str
    invoiceNumber: str


class InvoiceDeletedResponse(BaseModel):
    success: bool = True
    message: str
    deletedInvoice: DeletedInvoice


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    details: Optional[str] = None
    message: Optional[str] = None
