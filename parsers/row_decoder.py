"""
Decode raw CSV rows into typed import rows.

Each decode fails fast on the first problem with a field-level error:
missing required cells first, then unparsable numbers, then model
constraints.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from exceptions import InvalidFieldValueError, MissingFieldsError
from models.import_rows import ProductImportRow, SerialImportRow
from models.product import VatType
from parsers.csv_parser import GLOBAL_STOCK_COLUMN, ParsedCSV
from services.stock_reconciliation_service import parse_quantity
from utils.text_utils import clean_optional

PRODUCT_REQUIRED_FIELDS = [
    "name",
    "sku",
    "purchase_price_with_fees",
    "weight_grams",
    "location",
    "width_cm",
    "height_cm",
    "depth_cm",
    "description",
]

CATEGORY_FIELDS = ["category_type", "category_brand", "category_model"]

SERIAL_REQUIRED_FIELDS = [
    "serial_number",
    "purchase_price_with_fees",
    "supplier",
    "stock_name",
]

_VAT_ALIASES = {
    "": VatType.NORMAL,
    "normal": VatType.NORMAL,
    "margin": VatType.MARGIN,
}


def decode_product_row(parsed: ParsedCSV, line: int, cells: dict[str, str]) -> ProductImportRow:
    """
    Decode one product import row.

    EAN is not checked here: it is only required for products that do not
    exist yet.

    Raises:
        MissingFieldsError: Required cells are empty
        InvalidFieldValueError: A cell cannot be converted
        InvalidQuantityError: A stock cell is negative
    """
    sku = cells.get("sku", "") or None
    missing = [
        name for name in PRODUCT_REQUIRED_FIELDS + CATEGORY_FIELDS
        if not cells.get(name)
    ]
    if missing:
        raise MissingFieldsError(missing, sku=sku)

    location_quantities = {
        location.id: parse_quantity(cells.get(column), column)
        for column, location in parsed.stock_columns.items()
    }

    declared_stock = None
    if parsed.has_global_stock and cells.get(GLOBAL_STOCK_COLUMN):
        declared_stock = parse_quantity(cells[GLOBAL_STOCK_COLUMN], GLOBAL_STOCK_COLUMN)

    values = {
        "line": line,
        "name": cells["name"],
        "sku": cells["sku"],
        "purchase_price": _decimal("purchase_price_with_fees", cells["purchase_price_with_fees"]),
        "retail_price": _optional_decimal("retail_price", cells.get("retail_price")),
        "pro_price": _optional_decimal("pro_price", cells.get("pro_price")),
        "margin_percent": _optional_decimal("margin_percent", cells.get("margin_percent")),
        "pro_margin_percent": _optional_decimal("pro_margin_percent", cells.get("pro_margin_percent")),
        "vat_type": _vat_type(cells.get("vat_type")),
        "weight_grams": _integer("weight_grams", cells["weight_grams"]),
        "location": cells["location"],
        "ean": clean_optional(cells.get("ean"), max_length=64),
        "description": cells["description"],
        "width_cm": _decimal("width_cm", cells["width_cm"]),
        "height_cm": _decimal("height_cm", cells["height_cm"]),
        "depth_cm": _decimal("depth_cm", cells["depth_cm"]),
        "category_type": cells["category_type"],
        "category_brand": cells["category_brand"],
        "category_model": cells["category_model"],
        "stock_alert": _optional_integer("stock_alert", cells.get("stock_alert")),
        "declared_stock": declared_stock,
        "location_quantities": location_quantities,
    }
    return _build(ProductImportRow, values)


def decode_serial_row(line: int, cells: dict[str, str]) -> SerialImportRow:
    """
    Decode one serial import row.

    Raises:
        MissingFieldsError: serial_number, purchase price, supplier or stock_name empty
        InvalidFieldValueError: A cell cannot be converted
    """
    missing = [name for name in SERIAL_REQUIRED_FIELDS if not cells.get(name)]
    if missing:
        raise MissingFieldsError(missing, sku=cells.get("sku_parent") or None)

    values = {
        "line": line,
        "serial_number": cells["serial_number"],
        "purchase_price": _decimal("purchase_price_with_fees", cells["purchase_price_with_fees"]),
        "supplier": cells["supplier"],
        "stock_name": cells["stock_name"],
        "sku_parent": clean_optional(cells.get("sku_parent")),
        "retail_price": _optional_decimal("retail_price", cells.get("retail_price")),
        "pro_price": _optional_decimal("pro_price", cells.get("pro_price")),
        "raw_purchase_price": _optional_decimal("raw_purchase_price", cells.get("raw_purchase_price")),
        "vat_type": _vat_type(cells.get("vat_type")),
        "stock_alert": _optional_integer("stock_alert", cells.get("stock_alert")),
        "battery_percentage": _optional_integer("battery_percentage", cells.get("battery_percentage")),
        "warranty_sticker": clean_optional(cells.get("warranty_sticker")),
        "product_note": clean_optional(cells.get("product_note")),
    }
    return _build(SerialImportRow, values)


# ===================
# HELPER FUNCTIONS
# ===================

def _build(model, values: dict):
    """Instantiate a row model, turning the first pydantic error into a field error."""
    try:
        return model(**values)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = str(first["loc"][0]) if first.get("loc") else "row"
        raise InvalidFieldValueError(
            field=field,
            value=str(values.get(field, "")),
            expected=first.get("msg", "valeur valide")
        ) from e


def _decimal(field: str, raw: str) -> Decimal:
    """Parse a number, accepting ',' as decimal mark ('12,50')."""
    text = raw.replace(" ", "").replace("\u00a0", "")
    if "," in text and "." not in text:
        text = text.replace(",", ".")
    try:
        value = Decimal(text)
    except InvalidOperation:
        raise InvalidFieldValueError(field=field, value=raw, expected="nombre")
    if not value.is_finite():
        raise InvalidFieldValueError(field=field, value=raw, expected="nombre")
    return value


def _optional_decimal(field: str, raw: Optional[str]) -> Optional[Decimal]:
    if not raw:
        return None
    return _decimal(field, raw)


def _integer(field: str, raw: str) -> int:
    value = _decimal(field, raw)
    if value != value.to_integral_value():
        raise InvalidFieldValueError(field=field, value=raw, expected="nombre entier")
    return int(value)


def _optional_integer(field: str, raw: Optional[str]) -> Optional[int]:
    if not raw:
        return None
    return _integer(field, raw)


def _vat_type(raw: Optional[str]) -> VatType:
    vat = _VAT_ALIASES.get((raw or "").strip().lower())
    if vat is None:
        raise InvalidFieldValueError(field="vat_type", value=raw or "", expected="normal ou margin")
    return vat
