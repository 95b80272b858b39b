"""
Product CSV import.

Creates or updates one product per data row, in file order:
    1. decode the row (required fields, numbers)
    2. get-or-create the category
    3. resolve retail and pro prices
    4. reconcile per-location stock
    5. upsert the product (stock is added to the existing stock)
    6. allocate stock per location

A failing row is recorded on the session and skipped; rows already
committed stay committed. File-level problems abort the import before
the first row.
"""

from typing import Iterable, Optional
import structlog

from config import settings
from exceptions import (
    AppError,
    DatabaseError,
    ImportStructureError,
    MissingFieldsError,
)
from models.import_session import ImportKind, ImportLineError, ImportSession
from models.product import CategoryResponse, ProductResponse, ProductWrite
from parsers.csv_parser import ImportMode, ParsedCSV, parse_import_csv
from parsers.row_decoder import decode_product_row
from services.catalog_service import get_catalog_service
from services.import_pipeline import RowPipeline
from services.import_progress_service import (
    ImportListener,
    ImportProgressTracker,
    ImportSessionStore,
)
from services.pricing_service import ResolvedPrices, resolve_prices
from services.stock_reconciliation_service import (
    StockReconciliation,
    legacy_stock,
    reconcile_stock,
)

logger = structlog.get_logger(__name__)

PRODUCT_REQUIRED_COLUMNS = ["sku", "purchase_price_with_fees"]

SUCCESS_MESSAGE = "{count} produits importés avec succès"


class ProductImportService:
    """
    Bulk product import from CSV text.

    Args:
        catalog: Persistence collaborator (defaults to the Supabase CatalogService)
        listeners: Progress listeners receiving ImportEvent
        session_store: Registry keeping the session for polling
    """

    def __init__(
        self,
        catalog=None,
        listeners: Optional[Iterable[ImportListener]] = None,
        session_store: Optional[ImportSessionStore] = None,
    ):
        self.catalog = catalog or get_catalog_service()
        self.listeners = list(listeners or [])
        self.session_store = session_store

    def import_csv(self, text: str) -> ImportSession:
        """
        Run a full product import.

        Returns:
            The finished ImportSession (SUCCESS, or ERROR with every row error)
        """
        tracker = ImportProgressTracker(ImportKind.PRODUCTS, self.listeners)
        if self.session_store is not None:
            self.session_store.attach(tracker)

        try:
            stocks = self.catalog.list_stocks()
            parsed = parse_import_csv(
                text,
                stocks=stocks,
                required_columns=PRODUCT_REQUIRED_COLUMNS,
                max_rows=settings.import_max_rows
            )
        except (ImportStructureError, DatabaseError) as e:
            logger.warning("product_import_rejected", code=e.code, error=e.message)
            return tracker.abort([ImportLineError(line=0, message=e.message)])

        tracker.start(parsed.row_count)

        pipeline = RowPipeline(
            lambda line, cells: self._run_row(tracker, parsed, line, cells),
            capacity=settings.import_max_rows
        )
        for line, cells in parsed.records():
            pipeline.enqueue(line, cells)
        pipeline.drain()

        session = tracker.session
        message = None
        if not session.errors:
            message = SUCCESS_MESSAGE.format(count=session.succeeded)
        return tracker.finish(message)

    # ===================
    # ROW PROCESSING
    # ===================

    def _run_row(
        self,
        tracker: ImportProgressTracker,
        parsed: ParsedCSV,
        line: int,
        cells: dict[str, str],
    ) -> None:
        """Row boundary: nothing raised by a row escapes this method."""
        sku = cells.get("sku", "").upper()
        try:
            parsed.check_width(line)
            self.import_row(parsed, line, cells)
        except AppError as e:
            logger.info(
                "import_row_failed",
                line=line,
                sku=sku,
                code=e.code,
                error=e.message
            )
            message = f"Erreur avec le produit {sku} : {e.message}" if sku else e.message
            tracker.record_error(line, message)
        except Exception as e:
            logger.error(
                "import_row_unexpected_error",
                line=line,
                sku=sku,
                error=str(e),
                error_type=type(e).__name__
            )
            tracker.record_error(line, f"Erreur inconnue à la ligne {line}")
        else:
            tracker.record_success()
        finally:
            tracker.advance()

    def import_row(self, parsed: ParsedCSV, line: int, cells: dict[str, str]) -> ProductResponse:
        """
        Import one row.

        Raises:
            RowValidationError: Any business-rule failure
            DatabaseError: Store failure
        """
        row = decode_product_row(parsed, line, cells)

        category = self.catalog.get_or_create_category(
            row.category_type,
            row.category_brand,
            row.category_model
        )

        prices = resolve_prices(
            row.purchase_price,
            row.vat_type,
            retail_price=row.retail_price,
            retail_margin_percent=row.margin_percent,
            pro_price=row.pro_price,
            pro_margin_percent=row.pro_margin_percent,
        )

        if parsed.mode == ImportMode.PER_LOCATION:
            stock = reconcile_stock(row.sku, row.location_quantities, row.declared_stock)
        else:
            stock = legacy_stock(row.declared_stock)

        existing = self.catalog.find_product_by_sku(row.sku)
        if existing is None and not row.ean:
            raise MissingFieldsError(["ean"], sku=row.sku)

        product = self.catalog.upsert_product(
            build_product_write(row, category, prices, stock, existing)
        )

        for allocation in stock.allocations:
            self.catalog.insert_stock_allocation(
                product.id,
                allocation.stock_id,
                allocation.quantity
            )

        logger.debug(
            "import_row_done",
            line=line,
            sku=product.sku,
            product_id=product.id,
            created=existing is None,
            stock_added=stock.total,
            allocations=len(stock.allocations)
        )

        return product


def build_product_write(
    row,
    category: CategoryResponse,
    prices: ResolvedPrices,
    stock: StockReconciliation,
    existing: Optional[ProductResponse] = None,
) -> ProductWrite:
    """
    Product payload for one import row.

    New products are standalone (no parent). Existing products get their
    stock increased and keep their EAN when the row has none; their
    parent/child links are left as they are.
    """
    data = {
        "sku": row.sku,
        "name": row.name,
        "purchase_price_with_fees": row.purchase_price,
        "retail_price": prices.retail.price,
        "pro_price": prices.pro.price,
        "margin_percent": prices.retail.margin_percent,
        "pro_margin_percent": prices.pro.margin_percent,
        "vat_type": row.vat_type,
        "weight_grams": row.weight_grams,
        "width_cm": row.width_cm,
        "height_cm": row.height_cm,
        "depth_cm": row.depth_cm,
        "location": row.location,
        "ean": row.ean,
        "description": row.description,
        "category_id": category.id,
        "stock": stock.total,
        "stock_alert": row.stock_alert,
        "is_parent": False,
        "parent_id": None,
    }

    if existing is not None:
        data.update(
            id=existing.id,
            stock=existing.stock + stock.total,
            ean=row.ean or existing.ean,
            is_parent=existing.is_parent,
            parent_id=existing.parent_id,
        )

    return ProductWrite(**data)
