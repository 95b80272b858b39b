"""
Serial-number import.

Creates one child product per serial number under a serial-hosting
parent. Each child is a single unit: stock 1, allocated at the location
named on its row. Identity fields (category, dimensions, description,
EAN, images, variants) are copied from the parent.
"""

from decimal import Decimal
from typing import Iterable, Optional
import structlog

from config import settings
from exceptions import (
    AppError,
    DatabaseError,
    DuplicateSerialError,
    ImportStructureError,
    ParentSKUMismatchError,
    SerialImportNotAllowedError,
    UnknownStockNameError,
)
from models.import_rows import SerialImportRow
from models.import_session import ImportKind, ImportLineError, ImportSession
from models.product import ProductResponse, ProductWrite, StockLocation
from parsers.csv_parser import ParsedCSV, parse_import_csv
from parsers.row_decoder import SERIAL_REQUIRED_FIELDS, decode_serial_row
from services.catalog_service import get_catalog_service
from services.import_pipeline import RowPipeline
from services.import_progress_service import (
    ImportListener,
    ImportProgressTracker,
    ImportSessionStore,
)
from services.pricing_service import margin_from_price, stored_sale_price

logger = structlog.get_logger(__name__)

SERIAL_COLUMN = "serial_number"

SUMMARY_MESSAGE = "Import numéros de série terminé : {succeeded} succès, {failed} erreurs."


def child_sku(parent_sku: str, serial_number: str) -> str:
    """'iphone-13' + 'SN1' -> 'IPHONE-13-SN1'"""
    return f"{parent_sku.strip().upper()}-{serial_number.strip()}".upper()


class SerialImportService:
    """
    Serial child import under one parent product.

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

    def import_csv(self, parent_id: str, text: str) -> ImportSession:
        """
        Run a serial import for `parent_id`.

        Raises:
            ProductNotFoundError: Unknown parent

        Returns:
            The finished ImportSession, with the summary message set
        """
        parent = self.catalog.get_product(parent_id)
        tracker = ImportProgressTracker(ImportKind.SERIALS, self.listeners)
        if self.session_store is not None:
            self.session_store.attach(tracker)

        try:
            parsed = self.parse(parent, text)
            stocks = self.catalog.list_stocks()
        except (ImportStructureError, DatabaseError) as e:
            logger.warning(
                "serial_import_rejected",
                parent_id=parent.id,
                code=e.code,
                error=e.message
            )
            session = tracker.abort([ImportLineError(line=0, message=e.message)])
            session.success_message = SUMMARY_MESSAGE.format(succeeded=0, failed=1)
            return session

        stocks_by_name = {s.name.strip().lower(): s for s in stocks}

        tracker.start(parsed.row_count)

        pipeline = RowPipeline(
            lambda line, cells: self._run_row(tracker, parent, parsed, stocks_by_name, line, cells),
            capacity=settings.import_max_rows
        )
        for line, cells in parsed.records():
            pipeline.enqueue(line, cells)
        pipeline.drain()

        session = tracker.session
        return tracker.finish(
            SUMMARY_MESSAGE.format(
                succeeded=session.succeeded,
                failed=session.error_count
            )
        )

    def parse(self, parent: ProductResponse, text: str) -> ParsedCSV:
        """
        Parse a serial file for `parent`.

        Raises:
            SerialImportNotAllowedError: Parent not serial-hosting, or no serial_number column
            MissingColumnsError: Other required column absent
        """
        if not parent.is_serial_hosting:
            raise SerialImportNotAllowedError(
                parent.sku,
                "le produit n'est pas un parent avec variantes"
            )

        parsed = parse_import_csv(text, stocks=None, max_rows=settings.import_max_rows)

        if not parsed.has_column(SERIAL_COLUMN):
            raise SerialImportNotAllowedError(parent.sku, "colonne serial_number absente")

        parsed.require_columns(SERIAL_REQUIRED_FIELDS)
        return parsed

    # ===================
    # ROW PROCESSING
    # ===================

    def _run_row(
        self,
        tracker: ImportProgressTracker,
        parent: ProductResponse,
        parsed: ParsedCSV,
        stocks_by_name: dict[str, StockLocation],
        line: int,
        cells: dict[str, str],
    ) -> None:
        serial = cells.get(SERIAL_COLUMN, "")
        try:
            parsed.check_width(line)
            self.import_row(parent, stocks_by_name, line, cells)
        except AppError as e:
            logger.info(
                "serial_row_failed",
                line=line,
                serial_number=serial,
                code=e.code,
                error=e.message
            )
            message = f"Erreur avec le numéro de série {serial} : {e.message}" if serial else e.message
            tracker.record_error(line, message)
        except Exception as e:
            logger.error(
                "serial_row_unexpected_error",
                line=line,
                serial_number=serial,
                error=str(e),
                error_type=type(e).__name__
            )
            tracker.record_error(line, f"Erreur inconnue à la ligne {line}")
        else:
            tracker.record_success()
            tracker.advance()

    def import_row(
        self,
        parent: ProductResponse,
        stocks_by_name: dict[str, StockLocation],
        line: int,
        cells: dict[str, str],
    ) -> ProductResponse:
        """
        Create one serial child.

        Raises:
            MissingFieldsError, ParentSKUMismatchError, UnknownStockNameError,
            DuplicateSerialError, InvalidFieldValueError, DatabaseError
        """
        row = decode_serial_row(line, cells)

        if row.sku_parent and row.sku_parent.strip().upper() != parent.sku.upper():
            raise ParentSKUMismatchError(row.sku_parent, parent.sku)

        location = stocks_by_name.get(row.stock_name.strip().lower())
        if location is None:
            raise UnknownStockNameError(row.stock_name)

        sku = child_sku(parent.sku, row.serial_number)
        if self.catalog.find_product_by_sku(sku) is not None:
            raise DuplicateSerialError(sku)

        child = self.catalog.upsert_product(build_serial_child(parent, row, sku))
        self.catalog.insert_stock_allocation(child.id, location.id, 1)

        logger.info(
            "serial_child_created",
            parent_id=parent.id,
            product_id=child.id,
            sku=child.sku,
            stock_id=location.id
        )

        return child


def build_serial_child(parent: ProductResponse, row: SerialImportRow, sku: str) -> ProductWrite:
    """
    Child payload: row values for the unit, parent values for identity.

    Normal VAT prices arrive HT and are stored TTC; margin VAT prices are
    stored as given. Margins are computed from the prices as given.
    """
    retail_price = retail_margin = None
    if row.retail_price is not None:
        retail_price = stored_sale_price(row.retail_price, row.vat_type)
        retail_margin = margin_from_price(row.purchase_price, row.retail_price, row.vat_type)

    pro_price = pro_margin = None
    if row.pro_price is not None:
        pro_price = stored_sale_price(row.pro_price, row.vat_type)
        pro_margin = margin_from_price(row.purchase_price, row.pro_price, row.vat_type)

    return ProductWrite(
        sku=sku,
        name=parent.name or parent.sku,
        serial_number=row.serial_number,
        purchase_price_with_fees=row.purchase_price,
        raw_purchase_price=row.raw_purchase_price,
        retail_price=retail_price,
        pro_price=pro_price,
        margin_percent=retail_margin,
        pro_margin_percent=pro_margin,
        vat_type=row.vat_type,
        supplier=row.supplier,
        battery_level=row.battery_percentage,
        warranty_sticker=row.warranty_sticker,
        product_note=row.product_note,
        stock=1,
        stock_alert=row.stock_alert if row.stock_alert is not None else parent.stock_alert,
        is_parent=False,
        parent_id=parent.id,
        category_id=parent.category_id,
        weight_grams=parent.weight_grams,
        width_cm=_optional_decimal(parent.width_cm),
        height_cm=_optional_decimal(parent.height_cm),
        depth_cm=_optional_decimal(parent.depth_cm),
        location=parent.location,
        description=parent.description,
        ean=parent.ean,
        images=list(parent.images),
        variants=list(parent.variants),
    )


def _optional_decimal(value) -> Optional[Decimal]:
    return None if value is None else Decimal(str(value))
