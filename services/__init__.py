"""
Business logic services.

Only the pure import building blocks are re-exported here. Importers,
templates and the catalog adapter are imported from their modules
(services.product_import_service, ...) since they pull in the parsers
and the database client.
"""

from services.pricing_service import (
    TierPrice,
    ResolvedPrices,
    resolve_tier,
    resolve_prices,
    margin_from_price,
    price_from_margin,
)
from services.stock_reconciliation_service import (
    StockReconciliation,
    parse_quantity,
    reconcile_stock,
)
from services.import_progress_service import (
    ImportProgressTracker,
    ImportSessionStore,
    get_import_session_store,
)
from services.import_pipeline import RowPipeline

__all__ = [
    "TierPrice",
    "ResolvedPrices",
    "resolve_tier",
    "resolve_prices",
    "margin_from_price",
    "price_from_margin",
    "StockReconciliation",
    "parse_quantity",
    "reconcile_stock",
    "ImportProgressTracker",
    "ImportSessionStore",
    "get_import_session_store",
    "RowPipeline",
]
