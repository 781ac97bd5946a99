"""
Shared test fixtures.

The mock Supabase client keeps rows per table, so services can write and
read back through the same chainable query API they use in production.
"""

import sys
from pathlib import Path

# Add project root to Python path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

import threading
import pytest
from unittest.mock import patch
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Generator, Optional
from uuid import uuid4

from services.catalog_service import VariantSeed

# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: Any = None, count: int = None):
        self.data = data if data is not None else []
        if count is not None:
            self.count = count
        else:
            self.count = len(self.data) if isinstance(self.data, list) else int(self.data is not None)


class MockSupabaseQuery:
    """Chainable query against one table of a MockSupabaseClient."""

    def __init__(self, client: "MockSupabaseClient", table: str, operation: str, payload: Any = None, **options):
        self._client = client
        self._table = table
        self._operation = operation
        self._payload = payload
        self._options = options
        self._filters: list[Callable[[dict], bool]] = []
        self._order: list[tuple[str, bool]] = []
        self._limit: Optional[int] = None
        self._is_single = False

    # Filters

    def eq(self, column, value):
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self._filters.append(lambda row: row.get(column) != value)
        return self

    def in_(self, column, values):
        allowed = list(values)
        self._filters.append(lambda row: row.get(column) in allowed)
        return self

    def is_(self, column, value):
        expected = None if value in (None, "null") else value
        self._filters.append(lambda row: row.get(column) is expected)
        return self

    def gte(self, column, value):
        self._filters.append(lambda row: row.get(column) is not None and row.get(column) >= value)
        return self

    def lte(self, column, value):
        self._filters.append(lambda row: row.get(column) is not None and row.get(column) <= value)
        return self

    # Modifiers

    def select(self, *args, **kwargs):
        return self

    def order(self, column, desc: bool = False, **kwargs):
        self._order.append((column, desc))
        return self

    def range(self, start, end):
        return self

    def limit(self, count):
        self._limit = count
        return self

    def single(self):
        self._is_single = True
        return self

    def _matches(self, row: dict) -> bool:
        return all(check(row) for check in self._filters)

    def execute(self) -> MockSupabaseResponse:
        return self._client._execute(self)


class MockSupabaseTable:
    """Entry point for queries on one table."""

    def __init__(self, client: "MockSupabaseClient", name: str):
        self._client = client
        self._name = name

    def select(self, *args, **kwargs):
        return MockSupabaseQuery(self._client, self._name, "select", count=kwargs.get("count"))

    def insert(self, data):
        return MockSupabaseQuery(self._client, self._name, "insert", data)

    def upsert(self, data, on_conflict: Optional[str] = None, **kwargs):
        return MockSupabaseQuery(self._client, self._name, "upsert", data, on_conflict=on_conflict)

    def update(self, data):
        return MockSupabaseQuery(self._client, self._name, "update", data)

    def delete(self):
        return MockSupabaseQuery(self._client, self._name, "delete")


class MockSupabaseClient:
    """
    In-memory stand-in for the Supabase client.

    Usage:
        mock_supabase.set_table_data("suppliers", [{"id": "sup-1", ...}])
        mock_supabase.fail_on("supplier_price_list_items", "upsert")
        mock_supabase.rows("supplier_price_lists")
    """

    def __init__(self):
        self._tables: dict[str, list[dict]] = {}
        self._failures: dict[tuple[str, str], str] = {}
        self._lock = threading.Lock()
        self._clock = datetime(2026, 1, 1, 12, 0, 0)
        self.calls: list[tuple[str, str]] = []

    def set_table_data(self, table_name: str, data: list, count: int = None):
        """Replace the rows of a table."""
        self._tables[table_name] = [dict(row) for row in data]

    def rows(self, table_name: str) -> list[dict]:
        """Current rows of a table (live list)."""
        return self._tables.setdefault(table_name, [])

    def fail_on(self, table_name: str, operation: str, message: str = "simulated database failure"):
        """Make every `operation` on `table_name` raise."""
        self._failures[(table_name, operation)] = message

    def table(self, name: str) -> MockSupabaseTable:
        return MockSupabaseTable(self, name)

    def _timestamp(self) -> str:
        self._clock += timedelta(seconds=1)
        return self._clock.isoformat() + "Z"

    def _new_row(self, data: dict) -> dict:
        row = dict(data)
        row.setdefault("id", str(uuid4()))
        now = self._timestamp()
        row.setdefault("created_at", now)
        row.setdefault("updated_at", now)
        return row

    def _execute(self, query: MockSupabaseQuery) -> MockSupabaseResponse:
        with self._lock:
            self.calls.append((query._table, query._operation))
            failure = self._failures.get((query._table, query._operation))
            if failure:
                raise Exception(failure)

            rows = self.rows(query._table)
            operation = query._operation

            if operation == "select":
                data = [dict(row) for row in rows if query._matches(row)]
                for column, desc in reversed(query._order):
                    data.sort(
                        key=lambda r: (r.get(column) is None, str(r.get(column) or "")),
                        reverse=desc,
                    )
                total = len(data)
                if query._limit is not None:
                    data = data[:query._limit]
                if query._is_single:
                    return MockSupabaseResponse(data=data[0] if data else None)
                return MockSupabaseResponse(data=data, count=total)

            if operation == "insert":
                payload = query._payload if isinstance(query._payload, list) else [query._payload]
                inserted = [self._new_row(item) for item in payload]
                rows.extend(inserted)
                return MockSupabaseResponse(data=[dict(row) for row in inserted])

            if operation == "upsert":
                payload = query._payload if isinstance(query._payload, list) else [query._payload]
                keys = (query._options.get("on_conflict") or "id").split(",")
                written = []
                for item in payload:
                    existing = next(
                        (row for row in rows if all(row.get(k) == item.get(k) for k in keys)),
                        None,
                    )
                    if existing is not None:
                        existing.update(item)
                        existing["updated_at"] = self._timestamp()
                        written.append(dict(existing))
                    else:
                        row = self._new_row(item)
                        rows.append(row)
                        written.append(dict(row))
                return MockSupabaseResponse(data=written)

            if operation == "update":
                updated = []
                for row in rows:
                    if query._matches(row):
                        row.update(query._payload)
                        updated.append(dict(row))
                return MockSupabaseResponse(data=updated)

            if operation == "delete":
                removed = [row for row in rows if query._matches(row)]
                self._tables[query._table] = [row for row in rows if not query._matches(row)]
                return MockSupabaseResponse(data=removed)

            raise ValueError(f"Unsupported operation {operation}")


# ===================
# IN-MEMORY CATALOG
# ===================

class InMemoryCatalog:
    """
    Catalog double for sync tests.

    Usage:
        catalog.add_variant("A1", price="10.00")
        catalog.fail_apply_for("A3")       # set_variant_price raises for A3
        catalog.fail_revert_for("A1")      # reverting A1 raises
    """

    def __init__(self, currency_code: str = "EUR"):
        self.currency_code = currency_code
        self.variants: dict[str, str] = {}                     # sku -> variant id
        self.prices: dict[tuple[str, str], Decimal] = {}       # (variant id, currency) -> amount
        self.created: list[VariantSeed] = []
        self.set_calls: list[tuple[str, Optional[Decimal]]] = []
        self._fail_apply: set[str] = set()
        self._fail_revert: set[str] = set()
        self._fail_create: set[str] = set()
        self._applied: set[str] = set()
        self._lock = threading.Lock()

    def add_variant(self, sku: str, variant_id: Optional[str] = None, price: Optional[str] = None) -> str:
        variant_id = variant_id or f"var-{sku}"
        self.variants[sku] = variant_id
        if price is not None:
            self.prices[(variant_id, self.currency_code)] = Decimal(price)
        return variant_id

    def price_of(self, variant_id: str) -> Optional[Decimal]:
        return self.prices.get((variant_id, self.currency_code))

    def fail_apply_for(self, variant_id: str):
        self._fail_apply.add(variant_id)

    def fail_revert_for(self, variant_id: str):
        self._fail_revert.add(variant_id)

    def fail_create_for(self, sku: str):
        self._fail_create.add(sku)

    # CatalogGateway

    def find_variant_by_sku(self, sku: str) -> Optional[str]:
        return self.variants.get(sku)

    def create_product_and_variant(self, seed: VariantSeed) -> str:
        with self._lock:
            if seed.part_number in self._fail_create:
                raise Exception(f"catalog rejected {seed.part_number}")
            self.created.append(seed)
            self.variants[seed.part_number] = seed.part_number
            self.prices[(seed.part_number, seed.currency_code)] = seed.amount
            return seed.part_number

    def get_variant_price(self, variant_id: str, currency_code: str) -> Optional[Decimal]:
        return self.prices.get((variant_id, currency_code))

    def set_variant_price(self, variant_id: str, amount: Optional[Decimal], currency_code: str) -> Optional[Decimal]:
        with self._lock:
            self.set_calls.append((variant_id, amount))
            reverting = variant_id in self._applied
            if reverting and variant_id in self._fail_revert:
                raise Exception(f"revert of {variant_id} timed out")
            if not reverting and variant_id in self._fail_apply:
                raise Exception(f"update of {variant_id} timed out")
            self._applied.add(variant_id)
            key = (variant_id, currency_code)
            previous = self.prices.get(key)
            if amount is None:
                self.prices.pop(key, None)
            else:
                self.prices[key] = amount
            return previous


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("suppliers", [
                {"id": "sup-1", "name": "Acme", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Usage:
        def test_something(mock_db, mock_supabase):
            mock_supabase.set_table_data("suppliers", [...])
            # Now any code using get_supabase_client() gets the mock
    """
    with patch("config.database.get_supabase_client", return_value=mock_supabase):
        with patch("services.price_list_service.get_supabase_client", return_value=mock_supabase):
            with patch("services.catalog_service.get_supabase_client", return_value=mock_supabase):
                yield mock_supabase


@pytest.fixture
def catalog() -> InMemoryCatalog:
    """In-memory catalog with EUR prices."""
    return InMemoryCatalog()


@pytest.fixture(autouse=True)
def reset_service_singletons(monkeypatch):
    """Drop cached service instances so each test builds its own."""
    import services.catalog_service
    import services.ingestion_service
    import services.preview_service
    import services.price_list_service
    import services.sync_service

    monkeypatch.setattr(services.catalog_service, "_service", None)
    monkeypatch.setattr(services.price_list_service, "_service", None)
    monkeypatch.setattr(services.preview_service, "_service", None)
    monkeypatch.setattr(services.sync_service, "_service", None)
    monkeypatch.setattr(services.ingestion_service, "_ingestion_service", None)


@pytest.fixture(autouse=True)
def no_telegram(monkeypatch):
    """Keep alerts off the network."""
    from config import settings
    monkeypatch.setattr(settings, "telegram_bot_token", None)
    monkeypatch.setattr(settings, "telegram_chat_id", None)


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client_with_mock_db(mock_db, mock_supabase):
    """
    Create FastAPI test client with mocked database.

    Usage:
        def test_endpoint(test_client_with_mock_db, mock_supabase):
            mock_supabase.set_table_data("suppliers", [...])
            response = test_client_with_mock_db.get("/api/suppliers/sup-1/price-lists")
    """
    from fastapi.testclient import TestClient
    from main import app

    with patch("main.check_connection", return_value={"status": "healthy", "suppliers_count": 0, "active_price_lists_count": 0}):
        yield TestClient(app)
