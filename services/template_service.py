"""
CSV templates for the two import modes.

Templates are advisory: the data rows are examples and the trailing
'#' lines list valid stock names (and suppliers for serial files). The
parser ignores comment lines, so a filled template can be uploaded as-is.
"""

from typing import Optional
import structlog

import pandas as pd

from models.product import ProductResponse, StockLocation
from services.catalog_service import get_catalog_service
from utils.text_utils import stock_column_name

logger = structlog.get_logger(__name__)

PRODUCT_TEMPLATE_COLUMNS = [
    "name",
    "sku",
    "purchase_price_with_fees",
    "retail_price",
    "pro_price",
    "weight_grams",
    "location",
    "ean",
    "stock",
    "stock_alert",
    "description",
    "width_cm",
    "height_cm",
    "depth_cm",
    "category_type",
    "category_brand",
    "category_model",
    "vat_type",
    "margin_percent",
    "pro_margin_percent",
]

SERIAL_TEMPLATE_COLUMNS = [
    "sku_parent",
    "serial_number",
    "purchase_price_with_fees",
    "retail_price",
    "pro_price",
    "raw_purchase_price",
    "vat_type",
    "stock_name",
    "supplier",
    "battery_percentage",
    "warranty_sticker",
    "product_note",
    "stock_alert",
]

EXAMPLE_SUPPLIER = "FOURNISSEUR-EXEMPLE"


def build_product_template(stocks: list[StockLocation]) -> str:
    """
    Product template: one stock_<name> column per location, a normal VAT
    row priced by sale price and a margin VAT row priced by margin.
    """
    stock_columns = [stock_column_name(s.name) for s in stocks]
    columns = PRODUCT_TEMPLATE_COLUMNS + stock_columns

    # Quantities: 2 units at the first location, none elsewhere
    per_location = ["2"] + ["0"] * (len(stock_columns) - 1) if stock_columns else []
    total = "2" if stock_columns else "5"

    normal_row = [
        "Coque silicone noire", "COQUE-SIL-NOIR", "4.50", "12.90", "9.90",
        "40", "A1", "3760000000017", total, "2", "Coque souple",
        "8", "16", "1", "ACCESSOIRE", "GENERIQUE", "SILICONE",
        "normal", "", "",
    ] + per_location

    margin_row = [
        "Smartphone reconditionné", "SMART-RECO-64", "180.00", "", "",
        "190", "B2", "3760000000024", total, "1", "Grade A, 64 Go",
        "7", "15", "1", "TELEPHONE", "GENERIQUE", "64GO",
        "margin", "25", "15",
    ] + per_location

    lines = [_to_csv(columns, [normal_row, margin_row])]
    lines.append(_comment_section("Stocks valides", [s.name for s in stocks]))

    logger.debug("product_template_built", stock_columns=len(stock_columns))
    return "".join(lines)


def build_serial_template(
    parent: ProductResponse,
    stocks: list[StockLocation],
    suppliers: Optional[list[str]] = None,
) -> str:
    """Serial template with the parent SKU pre-filled on every row."""
    first = stocks[0].name if stocks else "STOCK-1"
    second = stocks[1].name if len(stocks) > 1 else first
    supplier = suppliers[0] if suppliers else EXAMPLE_SUPPLIER

    normal_row = [
        parent.sku, "SN123456789", "900.00", "1000.00", "950.00", "850.00",
        "normal", first, supplier, "85", "present", "Notes optionnelles", "",
    ]
    margin_row = [
        parent.sku, "SN987654321", "900.00", "1150.00", "1050.00", "",
        "margin", second, supplier, "80", "present", "", "",
    ]

    lines = [_to_csv(SERIAL_TEMPLATE_COLUMNS, [normal_row, margin_row])]
    lines.append(_comment_section("Stocks valides", [s.name for s in stocks]))
    lines.append(_comment_section("Fournisseurs connus", suppliers or []))

    logger.debug("serial_template_built", parent_sku=parent.sku)
    return "".join(lines)


def template_filename(kind: str, parent_sku: Optional[str] = None) -> str:
    """'products_template.csv', or 'serial_numbers_template_<SKU>.csv'."""
    if parent_sku:
        safe = "".join(c if c.isalnum() else "_" for c in parent_sku)
        return f"serial_numbers_template_{safe}.csv"
    return f"{kind}_template.csv"


class TemplateService:
    """Builds templates from the current catalog."""

    def __init__(self, catalog=None):
        self.catalog = catalog or get_catalog_service()

    def product_template(self) -> str:
        return build_product_template(self.catalog.list_stocks())

    def serial_template(self, parent_id: str) -> tuple[str, str]:
        """
        Returns:
            Tuple of (csv text, file name)
        """
        parent = self.catalog.get_product(parent_id)
        text = build_serial_template(
            parent,
            self.catalog.list_stocks(),
            self.catalog.list_supplier_names()
        )
        return text, template_filename("serials", parent.sku)


# ===================
# HELPER FUNCTIONS
# ===================

def _to_csv(columns: list[str], rows: list[list[str]]) -> str:
    return pd.DataFrame(rows, columns=columns).to_csv(index=False, lineterminator="\n")


def _comment_section(title: str, names: list[str]) -> str:
    body = [f"# {title} :"]
    body.extend(f"#   {name}" for name in names)
    if not names:
        body.append("#   (aucun)")
    return "\n".join(body) + "\n"
