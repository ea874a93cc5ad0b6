import logging
from datetime import datetime, timezone
from typing import List, Optional, Dict, Any, Tuple

from postgrest.exceptions import APIError
from supabase import AsyncClient, acreate_client

from .config import Settings
from .errors import ConflictError, ValidationError

logger = logging.getLogger(__name__)

# PostgreSQL / PostgREST error codes
UNIQUE_VIOLATION = "23505"
SCHEMA_VIOLATIONS = {"23502", "23514", "22P02"}
RANGE_NOT_SATISFIABLE = "PGRST103"

INVOICE_COLUMNS = [
    "id",
    "invoiceNumber",
    "merchantInfo",
    "customerInfo",
    "invoiceDetails",
    "items",
    "serviceFee",
    "feeType",
    "feeValue",
    "subtotal",
    "serviceFeeAmount",
    "total",
    "dynamicQRCode",
    "createdAt",
    "updatedAt",
]
# The QR image can be hundreds of KB, so list views leave it out
LIST_COLUMNS = ",".join(column for column in INVOICE_COLUMNS if column != "dynamicQRCode")

SORTABLE_FIELDS = {"createdAt", "updatedAt", "invoiceNumber", "subtotal", "total", "serviceFeeAmount"}
DEFAULT_SORT_FIELD = "createdAt"


def apply_timestamps(document: Dict[str, Any], created: bool = True, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Stamp server-side timestamps on a document before it is written.

    New documents get ``createdAt`` and ``updatedAt`` set to the same instant,
    overriding anything the client sent. With ``created=False`` only
    ``updatedAt`` is refreshed.
    """
    stamp = (now or datetime.now(timezone.utc)).isoformat()
    stamped = dict(document)
    if created:
        stamped["createdAt"] = stamp
    stamped["updatedAt"] = stamp
    return stamped


def resolve_sort_field(sort_by: Optional[str]) -> str:
    return sort_by if sort_by in SORTABLE_FIELDS else DEFAULT_SORT_FIELD


class DatabaseClient:
    """Invoice store backed by a Supabase table.

    The table's unique index on ``invoiceNumber`` is what guarantees a single
    invoice per number; duplicate-key and schema errors coming back from
    PostgREST are raised as ``ConflictError`` / ``ValidationError``. Anything
    else propagates unchanged.
    """

    def __init__(self, settings: Settings, client: Optional[AsyncClient] = None):
        self.url = settings.SUPABASE_URL
        self.key = settings.SUPABASE_SERVICE_ROLE_KEY
        self.table_name = settings.INVOICES_TABLE
        self._client = client

    async def connect(self) -> None:
        if self._client is not None:
            return
        self._client = await acreate_client(self.url, self.key)
        logger.info("Connected to Supabase at %s (table %s)", self.url, self.table_name)

    async def close(self) -> None:
        if self._client is None:
            return
        await self._client.postgrest.aclose()
        self._client = None
        logger.info("Supabase connection closed")

    def _table(self):
        if self._client is None:
            raise RuntimeError("DatabaseClient is not connected; call connect() first")
        return self._client.table(self.table_name)

    @staticmethod
    def _raise_known_error(error: APIError) -> None:
        if error.code == UNIQUE_VIOLATION:
            raise ConflictError() from error
        if error.code in SCHEMA_VIOLATIONS:
            raise ValidationError(details=error.message) from error

    async def invoice_exists(self, invoice_number: str) -> bool:
        response = await self._table().select("id").eq("invoiceNumber", invoice_number).limit(1).execute()
        return len(response.data) > 0

    async def insert_invoice(self, document: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a new invoice and return the stored row"""
        try:
            response = await self._table().insert(document).execute()
        except APIError as e:
            self._raise_known_error(e)
            raise
        return response.data[0]

    async def get_invoice(self, invoice_number: str) -> Optional[Dict[str, Any]]:
        response = await self._table().select("*").eq("invoiceNumber", invoice_number).limit(1).execute()
        if response.data:
            return response.data[0]
        return None

    async def list_invoices(self,
                            limit: int = 50,
                            skip: int = 0,
                            sort_by: Optional[str] = None,
                            descending: bool = True) -> Tuple[List[Dict[str, Any]], int]:
        """Return one page of invoices (without the QR image) and the total count"""
        sort_field = resolve_sort_field(sort_by)
        try:
            response = await (
                self._table()
                .select(LIST_COLUMNS, count="exact")
                .order(sort_field, desc=descending)
                .range(skip, skip + limit - 1)
                .execute()
            )
        except APIError as e:
            if e.code != RANGE_NOT_SATISFIABLE:
                raise
            # Offset past the last row: empty page, but the total is still needed
            response = await self._table().select("id", count="exact").limit(1).execute()
            return [], response.count or 0
        return response.data, response.count or 0

    async def delete_invoice(self, invoice_number: str) -> Optional[Dict[str, Any]]:
        """Delete by invoice number in one statement and return the removed row"""
        response = await self._table().delete().eq("invoiceNumber", invoice_number).execute()
        if response.data:
            return response.data[0]
        return None
