"""
Shared test fixtures.
"""

import os
import sys
from pathlib import Path

# Add project root to Python path
root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir))

# Settings need Supabase credentials at import time
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test.anon.key")

import pytest
from unittest.mock import patch
from datetime import datetime, timezone
from typing import Generator
from uuid import uuid4

from tests.factories import InMemoryCatalog, ProductFactory, StockFactory

# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data or []
        self.count = count if count is not None else len(self.data)


class MockSupabaseQuery:
    """
    Mock Supabase query builder with chainable methods.

    eq() filters rows; inserts and updates are written back to the table.
    """

    def __init__(self, table: "MockSupabaseTable"):
        self._table = table
        self._filters: list[tuple[str, object]] = []
        self._action = "select"
        self._payload = None
        self._exclude_null: list[str] = []
        self._negate_next = False

    def select(self, *args, **kwargs):
        return self

    def insert(self, data):
        self._action = "insert"
        self._payload = data
        return self

    def update(self, data):
        self._action = "update"
        self._payload = data
        return self

    def delete(self):
        self._action = "delete"
        return self

    def eq(self, column, value):
        self._filters.append((column, value))
        return self

    @property
    def not_(self):
        self._negate_next = True
        return self

    def is_(self, column, value):
        if self._negate_next and value == "null":
            self._exclude_null.append(column)
        self._negate_next = False
        return self

    def order(self, column, **kwargs):
        return self

    def limit(self, count):
        return self

    def _matches(self, row: dict) -> bool:
        if any(row.get(col) != value for col, value in self._filters):
            return False
        return all(row.get(col) is not None for col in self._exclude_null)

    def execute(self) -> MockSupabaseResponse:
        table = self._table
        if table.error is not None:
            raise table.error

        if self._action == "insert":
            items = self._payload if isinstance(self._payload, list) else [self._payload]
            created = []
            for item in items:
                row = {**item}
                row.setdefault("id", str(uuid4()))
                row["created_at"] = datetime.now(timezone.utc).isoformat()
                table.rows.append(row)
                created.append(row)
            table.calls.append(("insert", created))
            return MockSupabaseResponse(data=created)

        matched = [row for row in table.rows if self._matches(row)]

        if self._action == "update":
            for row in matched:
                row.update(self._payload)
            table.calls.append(("update", self._payload))
            return MockSupabaseResponse(data=[dict(r) for r in matched])

        if self._action == "delete":
            table.rows = [row for row in table.rows if not self._matches(row)]
            return MockSupabaseResponse(data=matched)

        return MockSupabaseResponse(data=[dict(r) for r in matched])


class MockSupabaseTable:
    """Mock Supabase table backed by a list of rows."""

    def __init__(self, rows: list = None):
        self.rows = rows or []
        self.calls: list = []
        self.error = None

    def select(self, *args, **kwargs):
        return MockSupabaseQuery(self).select(*args, **kwargs)

    def insert(self, data):
        return MockSupabaseQuery(self).insert(data)

    def update(self, data):
        return MockSupabaseQuery(self).update(data)

    def delete(self):
        return MockSupabaseQuery(self).delete()


class MockSupabaseClient:
    """Mock Supabase client."""

    def __init__(self):
        self._tables: dict[str, MockSupabaseTable] = {}

    def set_table_data(self, table_name: str, data: list):
        """Configure mock rows for a table."""
        self._tables[table_name] = MockSupabaseTable([dict(r) for r in data])

    def fail_table(self, table_name: str, error: Exception):
        """Make every query on a table raise `error`."""
        self.table(table_name).error = error

    def table(self, name: str) -> MockSupabaseTable:
        """Get mock table (created empty on first use)."""
        if name not in self._tables:
            self._tables[name] = MockSupabaseTable()
        return self._tables[name]


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("products", [
                {"id": "1", "sku": "TEST", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Usage:
        def test_something(mock_db, mock_supabase):
            mock_supabase.set_table_data("products", [...])
            # Now any code using get_supabase_client() gets the mock
    """
    with patch("config.database.get_supabase_client", return_value=mock_supabase):
        with patch("services.catalog_service.get_supabase_client", return_value=mock_supabase):
            yield mock_supabase


@pytest.fixture
def stocks() -> list[dict]:
    """Two stock locations: Paris and Lyon."""
    return [
        StockFactory.create(id="stock-paris", name="Paris"),
        StockFactory.create(id="stock-lyon", name="Lyon"),
    ]


@pytest.fixture
def catalog(stocks) -> InMemoryCatalog:
    """In-memory catalog with the Paris and Lyon stocks."""
    return InMemoryCatalog(stocks=stocks)


@pytest.fixture
def serial_parent(catalog) -> dict:
    """Serial-hosting parent product stored in the catalog."""
    return catalog.add_product(ProductFactory.create_serial_parent(sku="PARENT"))


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client_with_catalog(catalog):
    """
    FastAPI test client whose services use the in-memory catalog.

    Usage:
        def test_endpoint(test_client_with_catalog, catalog):
            response = test_client_with_catalog.get("/api/imports/templates/products")
    """
    from fastapi.testclient import TestClient
    from main import app
    from services.import_progress_service import get_import_session_store

    get_import_session_store().clear()

    with patch("services.product_import_service.get_catalog_service", return_value=catalog):
        with patch("services.serial_import_service.get_catalog_service", return_value=catalog):
            with patch("services.template_service.get_catalog_service", return_value=catalog):
                yield TestClient(app)
