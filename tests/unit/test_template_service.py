"""
Unit tests for import templates.

Run: pytest tests/unit/test_template_service.py -v
"""

from parsers.csv_parser import ImportMode, parse_import_csv
from services.template_service import (
    PRODUCT_TEMPLATE_COLUMNS,
    TemplateService,
    build_product_template,
    template_filename,
)
from services.product_import_service import PRODUCT_REQUIRED_COLUMNS, ProductImportService
from services.serial_import_service import SerialImportService
from models.import_session import ImportStatus
from models.product import StockLocation


class TestProductTemplate:
    """Product template generation."""

    def test_one_column_per_stock_location(self, catalog):
        text = TemplateService(catalog=catalog).product_template()

        header = text.splitlines()[0].split(",")
        assert header[:len(PRODUCT_TEMPLATE_COLUMNS)] == PRODUCT_TEMPLATE_COLUMNS
        assert header[len(PRODUCT_TEMPLATE_COLUMNS):] == ["stock_paris", "stock_lyon"]

    def test_lists_valid_stocks_as_comments(self, catalog):
        text = TemplateService(catalog=catalog).product_template()

        assert "# Stocks valides :\n#   Paris\n#   Lyon\n" in text

    def test_template_parses_as_per_location_file(self, catalog):
        text = TemplateService(catalog=catalog).product_template()

        parsed = parse_import_csv(text, stocks=catalog.stocks, required_columns=PRODUCT_REQUIRED_COLUMNS)

        assert parsed.mode == ImportMode.PER_LOCATION
        assert parsed.row_count == 2

    def test_template_imports_cleanly(self, catalog):
        text = TemplateService(catalog=catalog).product_template()

        session = ProductImportService(catalog=catalog).import_csv(text)

        assert session.status == ImportStatus.SUCCESS
        assert session.current == 2
        assert catalog.product_by_sku("SMART-RECO-64")["vat_type"] == "margin"

    def test_without_stock_locations(self):
        text = build_product_template([])

        parsed = parse_import_csv(text, stocks=[], required_columns=PRODUCT_REQUIRED_COLUMNS)
        assert parsed.mode == ImportMode.LEGACY
        assert "#   (aucun)" in text

    def test_location_names_are_normalized(self):
        text = build_product_template([StockLocation(id="s1", name="Entrepôt  Nord")])

        assert "stock_entrepôt nord" in text.splitlines()[0]


class TestSerialTemplate:
    """Serial template generation."""

    def test_parent_sku_prefilled(self, catalog, serial_parent):
        text, filename = TemplateService(catalog=catalog).serial_template(serial_parent["id"])

        data_rows = [line for line in text.splitlines()[1:] if not line.startswith("#")]
        assert len(data_rows) == 2
        assert all(line.startswith("PARENT,") for line in data_rows)
        assert filename == "serial_numbers_template_PARENT.csv"

    def test_known_suppliers_listed(self, catalog, serial_parent):
        catalog.suppliers = ["ACME", "Reboot"]

        text, _ = TemplateService(catalog=catalog).serial_template(serial_parent["id"])

        assert "# Fournisseurs connus :\n#   ACME\n#   Reboot\n" in text
        assert ",ACME," in text

    def test_template_imports_cleanly(self, catalog, serial_parent):
        text, _ = TemplateService(catalog=catalog).serial_template(serial_parent["id"])

        session = SerialImportService(catalog=catalog).import_csv(serial_parent["id"], text)

        assert session.status == ImportStatus.SUCCESS
        assert session.success_message == "Import numéros de série terminé : 2 succès, 0 erreurs."


class TestTemplateFilename:
    """Tests for template_filename()"""

    def test_products(self):
        assert template_filename("products") == "products_template.csv"

    def test_serial_sku_made_safe(self):
        assert template_filename("serials", "IPHONE 13/128") == "serial_numbers_template_IPHONE_13_128.csv"
