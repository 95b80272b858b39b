"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema, to_db_value
from models.product import (
    VatType,
    PriceTier,
    CategoryResponse,
    StockLocation,
    StockAllocation,
    ProductResponse,
    ProductWrite,
)
from models.import_rows import ProductImportRow, SerialImportRow
from models.import_session import (
    ImportStatus,
    ImportKind,
    ImportEventType,
    ImportLineError,
    ImportSession,
    ImportEvent,
    ImportSummaryResponse,
)

__all__ = [
    # Base
    "BaseSchema",
    "to_db_value",

    # Catalog
    "VatType",
    "PriceTier",
    "CategoryResponse",
    "StockLocation",
    "StockAllocation",
    "ProductResponse",
    "ProductWrite",

    # Import rows
    "ProductImportRow",
    "SerialImportRow",

    # Import session
    "ImportStatus",
    "ImportKind",
    "ImportEventType",
    "ImportLineError",
    "ImportSession",
    "ImportEvent",
    "ImportSummaryResponse",
]
