"""
Unit tests for ProductImportService.

Run: pytest tests/unit/test_product_import_service.py -v
"""

from decimal import Decimal
import pytest

from services.product_import_service import ProductImportService
from services.import_progress_service import ImportSessionStore
from models.import_session import ImportEventType, ImportStatus
from exceptions import DatabaseError
from config import settings
from tests.factories import ProductFactory, ProductRowFactory

row = ProductRowFactory.create
make_csv = ProductRowFactory.to_csv


@pytest.fixture
def service(catalog) -> ProductImportService:
    return ProductImportService(catalog=catalog)


# ===================
# HAPPY PATH
# ===================

class TestImportProducts:
    """Whole-file imports that succeed."""

    def test_semicolon_file_creates_product(self, service, catalog):
        """Purchase 100, retail 150 (normal) -> margin 50.00 %"""
        session = service.import_csv(make_csv(row(), sep=";"))

        assert session.status == ImportStatus.SUCCESS
        assert session.success_message == "1 produits importés avec succès"
        product = catalog.product_by_sku("ABC-1")
        assert product["margin_percent"] == 50.0
        assert product["retail_price"] == 150.0
        assert product["pro_price"] == 120.0
        assert product["pro_margin_percent"] == 20.0
        assert product["is_parent"] is False
        assert product["parent_id"] is None

    def test_margin_regime_priced_from_margin(self, service, catalog):
        text = make_csv(row(vat_type="margin", retail_price="", margin_percent="25", pro_margin_percent="", pro_price="110"))

        service.import_csv(text)

        product = catalog.product_by_sku("ABC-1")
        assert product["retail_price"] == 130.0
        assert product["vat_type"] == "margin"

    def test_category_created_once_for_shared_triple(self, service, catalog):
        text = make_csv(row(sku="A-1"), row(sku="A-2", ean="3760000000024"))

        session = service.import_csv(text)

        assert session.status == ImportStatus.SUCCESS
        assert len(catalog.categories) == 1
        assert catalog.product_by_sku("A-1")["category_id"] == catalog.product_by_sku("A-2")["category_id"]

    def test_legacy_stock_column(self, service, catalog):
        service.import_csv(make_csv(row(stock="5")))

        product = catalog.product_by_sku("ABC-1")
        assert product["stock"] == 5
        assert catalog.allocations_for(product["id"]) == {}

    def test_listeners_receive_every_step(self, catalog):
        events = []
        service = ProductImportService(catalog=catalog, listeners=[events.append])

        service.import_csv(make_csv(row(), row(sku="ABC-2", ean="")))

        types = [e.type for e in events]
        assert types[0] == ImportEventType.STARTED
        assert types.count(ImportEventType.ROW_DONE) == 2
        assert types.count(ImportEventType.ROW_FAILED) == 1
        assert types[-1] == ImportEventType.FINISHED

    def test_session_saved_in_store(self, catalog):
        store = ImportSessionStore()
        service = ProductImportService(catalog=catalog, session_store=store)

        session = service.import_csv(make_csv(row()))

        assert store.get(session.id).status == ImportStatus.SUCCESS

    def test_prices_are_decimal_exact(self, service, catalog):
        """0.1 + 0.2 style inputs do not drift."""
        service.import_csv(make_csv(row(purchase_price_with_fees="0.3", retail_price="0.45", pro_margin_percent="10")))

        product = catalog.product_by_sku("ABC-1")
        assert Decimal(str(product["margin_percent"])) == Decimal("50.00")
        assert Decimal(str(product["pro_price"])) == Decimal("0.33")


# ===================
# PER-LOCATION STOCK
# ===================

class TestPerLocationStock:
    """stock_<location> columns."""

    def test_matching_total_allocates_each_location(self, service, catalog):
        service.import_csv(make_csv(row(stock_paris="5", stock_lyon="5", stock="10")))

        product = catalog.product_by_sku("ABC-1")
        assert product["stock"] == 10
        assert catalog.allocations_for(product["id"]) == {"stock-paris": 5, "stock-lyon": 5}

    def test_mismatch_is_row_error(self, service, catalog):
        session = service.import_csv(make_csv(row(stock_paris="5", stock_lyon="5", stock="11")))

        assert session.status == ImportStatus.ERROR
        message = session.errors[0].message
        assert message.startswith("Erreur avec le produit ABC-1 : ")
        assert "(10)" in message and "(11)" in message
        assert catalog.product_by_sku("ABC-1") is None

    def test_no_global_stock_uses_sum(self, service, catalog):
        service.import_csv(make_csv(row(stock_paris="2", stock_lyon="0")))

        product = catalog.product_by_sku("ABC-1")
        assert product["stock"] == 2
        assert catalog.allocations_for(product["id"]) == {"stock-paris": 2}

    def test_reimport_adds_stock_at_new_location(self, service, catalog):
        existing = catalog.add_product(ProductFactory.create(sku="ABC-1", stock=4))
        catalog.allocations[(existing["id"], "stock-paris")] = 4

        session = service.import_csv(make_csv(row(stock_lyon="3")))

        assert session.status == ImportStatus.SUCCESS
        product = catalog.product_by_sku("ABC-1")
        assert product["id"] == existing["id"]
        assert product["stock"] == 7
        assert catalog.allocations_for(existing["id"]) == {"stock-paris": 4, "stock-lyon": 3}

    def test_unknown_stock_column_aborts_before_rows(self, service, catalog):
        session = service.import_csv(make_csv(row(stock_marseille="2")))

        assert session.status == ImportStatus.ERROR
        assert session.aborted is True
        assert session.current == 0
        assert session.errors[0].line == 0
        assert "Lyon, Paris" in session.errors[0].message
        assert "upsert_product" not in catalog.calls


# ===================
# EXISTING PRODUCTS
# ===================

class TestExistingProducts:
    """Updates by SKU."""

    def test_existing_ean_kept_when_cell_empty(self, service, catalog):
        catalog.add_product(ProductFactory.create(sku="ABC-1", ean="1111111111111"))

        service.import_csv(make_csv(row(ean="")))

        assert catalog.product_by_sku("ABC-1")["ean"] == "1111111111111"

    def test_sku_matched_case_insensitively(self, service, catalog):
        catalog.add_product(ProductFactory.create(sku="ABC-1"))

        service.import_csv(make_csv(row(sku="abc-1")))

        assert len(catalog.products) == 1

    def test_parent_link_preserved(self, service, catalog):
        catalog.add_product(ProductFactory.create(sku="ABC-1", parent_id="parent-1"))

        service.import_csv(make_csv(row()))

        assert catalog.product_by_sku("ABC-1")["parent_id"] == "parent-1"

    def test_columns_outside_the_row_kept(self, service, catalog):
        catalog.add_product(ProductFactory.create(
            sku="ABC-1",
            serial_number="SN1",
            supplier="ACME",
            warranty_sticker="present",
            battery_level=90,
        ))

        service.import_csv(make_csv(row()))

        product = catalog.product_by_sku("ABC-1")
        assert product["serial_number"] == "SN1"
        assert product["supplier"] == "ACME"
        assert product["warranty_sticker"] == "present"
        assert product["battery_level"] == 90
        assert product["retail_price"] == 150.0


# ===================
# ROW ERRORS
# ===================

class TestRowErrors:
    """A failing row is recorded and the import continues."""

    def test_new_product_without_ean(self, service, catalog):
        session = service.import_csv(make_csv(row(ean="")))

        assert session.errors[0].line == 2
        assert "ean" in session.errors[0].message
        assert catalog.products == {}

    def test_error_row_does_not_stop_later_rows(self, service, catalog):
        text = make_csv(row(sku="A-1", name=""), row(sku="A-2"))

        session = service.import_csv(text)

        assert session.status == ImportStatus.ERROR
        assert session.current == session.total == 2
        assert [e.line for e in session.errors] == [2]
        assert session.success_message is None
        assert catalog.product_by_sku("A-2") is not None

    def test_unquoted_separator_fails_only_its_row(self, service, catalog):
        text = make_csv(row(sku="A-1"), row(sku="A-3", description="Coque, souple"), row(sku="A-2"))

        session = service.import_csv(text)

        assert session.aborted is False
        assert session.current == 3
        assert [e.line for e in session.errors] == [3]
        assert session.errors[0].message.startswith("Erreur avec le produit A-3 : Trop de valeurs")
        assert catalog.product_by_sku("A-1") is not None
        assert catalog.product_by_sku("A-2") is not None
        assert catalog.product_by_sku("A-3") is None

    def test_price_and_margin_both_given(self, service):
        session = service.import_csv(make_csv(row(margin_percent="50")))

        assert "retail" in session.errors[0].message

    def test_error_line_numbers_skip_comments(self, service):
        text = "# export du 12/03\n" + make_csv(row(weight_grams="lourd"))

        session = service.import_csv(text)

        assert session.errors[0].line == 3

    def test_database_error_is_row_error(self, service, catalog):
        catalog.fail_on["upsert_product"] = DatabaseError("insert", "timeout")

        session = service.import_csv(make_csv(row(sku="A-1"), row(sku="A-2")))

        assert len(session.errors) == 2
        assert "Database insert failed" in session.errors[0].message

    def test_allocation_failure_keeps_product(self, service, catalog):
        catalog.fail_on["insert_stock_allocation"] = DatabaseError("insert", "timeout")

        session = service.import_csv(make_csv(row(stock_paris="2")))

        assert session.status == ImportStatus.ERROR
        assert catalog.product_by_sku("ABC-1")["stock"] == 2

    def test_unexpected_error_gets_generic_message(self, service, catalog):
        catalog.fail_on["get_or_create_category"] = RuntimeError("bug")

        session = service.import_csv(make_csv(row()))

        assert session.errors[0].message == "Erreur inconnue à la ligne 2"
        assert session.current == 1


# ===================
# STRUCTURAL ERRORS
# ===================

class TestStructuralErrors:
    """Whole-file rejections: zero rows processed."""

    def test_empty_file(self, service):
        session = service.import_csv("")

        assert session.aborted is True
        assert session.errors[0].message == "Le fichier CSV est vide"
        assert session.total == 0

    def test_missing_required_headers(self, service):
        session = service.import_csv("name,sku\nCoque,ABC-1\n")

        assert session.aborted is True
        assert "purchase_price_with_fees" in session.errors[0].message

    def test_stock_list_unavailable(self, service, catalog):
        catalog.fail_on["list_stocks"] = DatabaseError("select", "timeout")

        session = service.import_csv(make_csv(row()))

        assert session.aborted is True
        assert catalog.products == {}

    def test_too_many_rows(self, service, catalog, monkeypatch):
        monkeypatch.setattr(settings, "import_max_rows", 1)

        session = service.import_csv(make_csv(row(sku="A-1"), row(sku="A-2")))

        assert session.aborted is True
        assert session.errors[0].message == "Trop de lignes (2, maximum 1)"
        assert catalog.products == {}
