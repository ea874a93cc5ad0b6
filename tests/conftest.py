import copy
import uuid
from typing import Any, Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from api_server.config import Settings
from api_server.database import resolve_sort_field
from api_server.errors import ConflictError
from api_server.main import create_app


class InMemoryInvoiceStore:
    """Dict-backed stand-in for DatabaseClient with the same uniqueness rule"""

    def __init__(self):
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.connected = False
        self.closed = False
        self.insert_calls = 0

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.closed = True

    async def invoice_exists(self, invoice_number: str) -> bool:
        return invoice_number in self.rows

    async def insert_invoice(self, document: Dict[str, Any]) -> Dict[str, Any]:
        self.insert_calls += 1
        if document["invoiceNumber"] in self.rows:
            raise ConflictError()
        row = {"id": str(uuid.uuid4()), **copy.deepcopy(document)}
        self.rows[row["invoiceNumber"]] = row
        return copy.deepcopy(row)

    async def get_invoice(self, invoice_number: str) -> Optional[Dict[str, Any]]:
        row = self.rows.get(invoice_number)
        return copy.deepcopy(row) if row else None

    async def list_invoices(self, limit: int = 50, skip: int = 0, sort_by: Optional[str] = None,
                            descending: bool = True) -> Tuple[List[Dict[str, Any]], int]:
        field = resolve_sort_field(sort_by)
        ordered = sorted(self.rows.values(), key=lambda row: row.get(field), reverse=descending)
        page = [
            {key: value for key, value in row.items() if key != "dynamicQRCode"}
            for row in ordered[skip:skip + limit]
        ]
        return copy.deepcopy(page), len(self.rows)

    async def delete_invoice(self, invoice_number: str) -> Optional[Dict[str, Any]]:
        return self.rows.pop(invoice_number, None)


def make_invoice(invoice_number: str = "INV-20240101-001", **overrides) -> Dict[str, Any]:
    invoice = {
        "invoiceNumber": invoice_number,
        "merchantInfo": {"name": "Warung Kopi Senja", "location": "Bandung"},
        "customerInfo": {
            "name": "Budi Santoso",
            "email": "budi@example.com",
            "phone": "081234567890",
            "address": "Jl. Merdeka 10"
        },
        "items": [
            {"id": "1", "name": "Kopi Susu", "quantity": 2, "price": 18000, "total": 36000},
            {"id": "2", "name": "Roti Bakar", "quantity": 1, "price": 15000, "total": 15000}
        ],
        "serviceFee": "5%",
        "feeType": "percentage",
        "feeValue": "5",
        "subtotal": 51000,
        "serviceFeeAmount": 2550,
        "total": 53550,
        "dynamicQRCode": "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAA"
    }
    invoice.update(overrides)
    return invoice


@pytest.fixture
def settings():
    return Settings(_env_file=None, ENVIRONMENT="test", RATE_LIMIT_ENABLED=False)


@pytest.fixture
def store():
    return InMemoryInvoiceStore()


@pytest.fixture
def app(settings, store):
    return create_app(settings=settings, store=store)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
