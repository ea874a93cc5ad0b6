import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from postgrest.exceptions import APIError

from api_server.config import Settings
from api_server.database import LIST_COLUMNS, DatabaseClient, apply_timestamps, resolve_sort_field
from api_server.errors import ConflictError, ValidationError


def make_client(response=None, side_effect=None):
    query = MagicMock()
    for method in ("select", "eq", "limit", "order", "range", "insert", "delete"):
        getattr(query, method).return_value = query
    query.execute = AsyncMock(return_value=response, side_effect=side_effect)

    client = MagicMock()
    client.table.return_value = query
    client.postgrest.aclose = AsyncMock()
    return client, query


def make_store(client):
    settings = Settings(_env_file=None, INVOICES_TABLE="qris_invoices")
    return DatabaseClient(settings, client=client)


def api_error(code, message="error"):
    return APIError({"message": message, "code": code, "hint": None, "details": None})


def test_apply_timestamps_sets_both_on_create():
    now = datetime(2024, 1, 1, 8, 30, tzinfo=timezone.utc)

    stamped = apply_timestamps({"invoiceNumber": "INV-1", "createdAt": "1999"}, now=now)

    assert stamped["createdAt"] == "2024-01-01T08:30:00+00:00"
    assert stamped["updatedAt"] == "2024-01-01T08:30:00+00:00"


def test_apply_timestamps_update_keeps_created_at():
    original = {"invoiceNumber": "INV-1", "createdAt": "2024-01-01T08:30:00+00:00"}

    stamped = apply_timestamps(original, created=False, now=datetime(2024, 2, 1, tzinfo=timezone.utc))

    assert stamped["createdAt"] == original["createdAt"]
    assert stamped["updatedAt"] == "2024-02-01T00:00:00+00:00"
    assert "updatedAt" not in original


def test_resolve_sort_field():
    assert resolve_sort_field("total") == "total"
    assert resolve_sort_field("dynamicQRCode") == "createdAt"
    assert resolve_sort_field(None) == "createdAt"


def test_insert_returns_stored_row():
    row = {"id": "b6f1", "invoiceNumber": "INV-1", "createdAt": "2024-01-01T00:00:00+00:00"}
    client, query = make_client(MagicMock(data=[row]))

    saved = asyncio.run(make_store(client).insert_invoice({"invoiceNumber": "INV-1"}))

    assert saved == row
    client.table.assert_called_with("qris_invoices")
    query.insert.assert_called_once_with({"invoiceNumber": "INV-1"})


def test_insert_duplicate_key_raises_conflict():
    client, _ = make_client(side_effect=api_error("23505", "duplicate key value violates unique constraint"))

    with pytest.raises(ConflictError):
        asyncio.run(make_store(client).insert_invoice({"invoiceNumber": "INV-1"}))


def test_insert_check_violation_raises_validation_error():
    client, _ = make_client(side_effect=api_error("23514", "violates check constraint"))

    with pytest.raises(ValidationError) as exc_info:
        asyncio.run(make_store(client).insert_invoice({"invoiceNumber": "INV-1"}))

    assert exc_info.value.details == "violates check constraint"


def test_insert_other_errors_propagate():
    client, _ = make_client(side_effect=api_error("PGRST301", "JWT expired"))

    with pytest.raises(APIError):
        asyncio.run(make_store(client).insert_invoice({"invoiceNumber": "INV-1"}))


def test_invoice_exists():
    client, query = make_client(MagicMock(data=[{"id": "b6f1"}]))

    assert asyncio.run(make_store(client).invoice_exists("INV-1")) is True
    query.eq.assert_called_with("invoiceNumber", "INV-1")


def test_get_invoice_not_found():
    client, _ = make_client(MagicMock(data=[]))

    assert asyncio.run(make_store(client).get_invoice("INV-1")) is None


def test_list_invoices_selects_page_without_qr_code():
    rows = [{"id": "1", "invoiceNumber": "INV-1"}]
    client, query = make_client(MagicMock(data=rows, count=60))

    invoices, total = asyncio.run(make_store(client).list_invoices(limit=10, skip=50, sort_by="total", descending=False))

    assert invoices == rows
    assert total == 60
    query.select.assert_called_once_with(LIST_COLUMNS, count="exact")
    query.order.assert_called_once_with("total", desc=False)
    query.range.assert_called_once_with(50, 59)
    assert "dynamicQRCode" not in LIST_COLUMNS.split(",")


def test_list_invoices_unknown_sort_field_uses_created_at():
    client, query = make_client(MagicMock(data=[], count=0))

    asyncio.run(make_store(client).list_invoices(sort_by="password"))

    query.order.assert_called_once_with("createdAt", desc=True)


def test_list_invoices_past_last_page_returns_empty_with_total():
    client, _ = make_client(side_effect=[api_error("PGRST103", "Requested range not satisfiable"),
                                         MagicMock(data=[{"id": "1"}], count=7)])

    invoices, total = asyncio.run(make_store(client).list_invoices(limit=50, skip=100))

    assert invoices == []
    assert total == 7


def test_delete_invoice_returns_removed_row_or_none():
    row = {"id": "b6f1", "invoiceNumber": "INV-1"}
    client, query = make_client(MagicMock(data=[row]))
    store = make_store(client)

    assert asyncio.run(store.delete_invoice("INV-1")) == row
    query.delete.assert_called_once_with()

    query.execute.return_value = MagicMock(data=[])
    assert asyncio.run(store.delete_invoice("INV-1")) is None


def test_calls_before_connect_fail():
    store = DatabaseClient(Settings(_env_file=None))

    with pytest.raises(RuntimeError):
        asyncio.run(store.get_invoice("INV-1"))


def test_close_releases_client():
    client, _ = make_client()
    store = make_store(client)

    asyncio.run(store.close())

    client.postgrest.aclose.assert_awaited_once()
    with pytest.raises(RuntimeError):
        asyncio.run(store.invoice_exists("INV-1"))
