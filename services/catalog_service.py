"""
Catalog persistence for imports.

Thin Supabase adapter over the products, product_categories, stocks and
stock_produit tables. Importers only call the methods below, so tests
swap in any object with the same methods.

Every store failure surfaces as DatabaseError.
"""

from typing import Optional
import structlog

from config import get_supabase_client
from exceptions import DatabaseError, ProductNotFoundError
from models.product import (
    CategoryResponse,
    ProductResponse,
    ProductWrite,
    StockAllocation,
    StockLocation,
)

logger = structlog.get_logger(__name__)

UNIQUE_VIOLATION = "23505"


class CatalogService:
    """
    Catalog reads and writes used by the import engine.
    """

    def __init__(self, client=None):
        self.db = client or get_supabase_client()
        self.products_table = "products"
        self.categories_table = "product_categories"
        self.stocks_table = "stocks"
        self.allocations_table = "stock_produit"

    # ===================
    # PRODUCTS
    # ===================

    def find_product_by_sku(self, sku: str) -> Optional[ProductResponse]:
        """
        Get a product by SKU (case-insensitive, SKUs are stored uppercase).

        Returns:
            ProductResponse or None if not found
        """
        logger.debug("finding_product_by_sku", sku=sku)

        try:
            result = (
                self.db.table(self.products_table)
                .select("*")
                .eq("sku", sku.upper())
                .execute()
            )

            if not result.data:
                return None

            return ProductResponse(**result.data[0])

        except Exception as e:
            logger.error(
                "find_product_by_sku_failed",
                sku=sku,
                error=str(e)
            )
            raise DatabaseError("select", str(e))

    def get_product(self, product_id: str) -> ProductResponse:
        """
        Get a single product by ID.

        Raises:
            ProductNotFoundError: If product doesn't exist
        """
        logger.debug("getting_product", product_id=product_id)

        try:
            result = (
                self.db.table(self.products_table)
                .select("*")
                .eq("id", product_id)
                .execute()
            )
        except Exception as e:
            logger.error(
                "get_product_failed",
                product_id=product_id,
                error=str(e)
            )
            raise DatabaseError("select", str(e))

        if not result.data:
            raise ProductNotFoundError(product_id)

        return ProductResponse(**result.data[0])

    def upsert_product(self, product: ProductWrite) -> ProductResponse:
        """
        Update the product when `product.id` is set, create it otherwise.

        Returns:
            Stored ProductResponse
        """
        record = product.to_record(exclude_unset=bool(product.id))
        operation = "update" if product.id else "insert"

        try:
            if product.id:
                result = (
                    self.db.table(self.products_table)
                    .update(record)
                    .eq("id", product.id)
                    .execute()
                )
            else:
                result = (
                    self.db.table(self.products_table)
                    .insert(record)
                    .execute()
                )
        except Exception as e:
            logger.error(
                "upsert_product_failed",
                sku=product.sku,
                operation=operation,
                error=str(e)
            )
            raise DatabaseError(operation, str(e))

        if not result.data:
            raise DatabaseError(operation, f"no row returned for {product.sku}")

        stored = ProductResponse(**result.data[0])

        logger.info(
            "product_updated" if product.id else "product_created",
            product_id=stored.id,
            sku=stored.sku
        )

        return stored

    def list_supplier_names(self) -> list[str]:
        """Distinct supplier names already used on products, sorted."""
        try:
            result = (
                self.db.table(self.products_table)
                .select("supplier")
                .not_.is_("supplier", "null")
                .execute()
            )
        except Exception as e:
            logger.error("list_suppliers_failed", error=str(e))
            raise DatabaseError("select", str(e))

        names = {
            row["supplier"].strip()
            for row in result.data
            if row.get("supplier") and row["supplier"].strip()
        }
        return sorted(names)

    # ===================
    # CATEGORIES
    # ===================

    def get_or_create_category(self, type_: str, brand: str, model: str) -> CategoryResponse:
        """
        Get the category (type, brand, model), creating it if needed.

        All three parts are stored uppercase. An insert that loses a
        race against another writer (unique violation) re-selects once.
        """
        key = {
            "type": type_.strip().upper(),
            "brand": brand.strip().upper(),
            "model": model.strip().upper(),
        }

        existing = self._find_category(key)
        if existing:
            return existing

        try:
            result = self.db.table(self.categories_table).insert(key).execute()
        except Exception as e:
            if _is_unique_violation(e):
                logger.warning("category_insert_conflict", **key)
                existing = self._find_category(key)
                if existing:
                    return existing
            logger.error("create_category_failed", error=str(e), **key)
            raise DatabaseError("insert", str(e))

        if not result.data:
            raise DatabaseError("insert", "no category returned")

        category = CategoryResponse(**result.data[0])
        logger.info("category_created", category_id=category.id, **key)
        return category

    def _find_category(self, key: dict) -> Optional[CategoryResponse]:
        try:
            result = (
                self.db.table(self.categories_table)
                .select("*")
                .eq("type", key["type"])
                .eq("brand", key["brand"])
                .eq("model", key["model"])
                .execute()
            )
        except Exception as e:
            logger.error("find_category_failed", error=str(e), **key)
            raise DatabaseError("select", str(e))

        if not result.data:
            return None
        return CategoryResponse(**result.data[0])

    # ===================
    # STOCKS
    # ===================

    def list_stocks(self) -> list[StockLocation]:
        """All stock locations, ordered by name."""
        try:
            result = (
                self.db.table(self.stocks_table)
                .select("id, name")
                .order("name")
                .execute()
            )
        except Exception as e:
            logger.error("list_stocks_failed", error=str(e))
            raise DatabaseError("select", str(e))

        return [StockLocation(**row) for row in result.data]

    def insert_stock_allocation(self, product_id: str, stock_id: str, quantity: int) -> StockAllocation:
        """
        Add `quantity` units of a product at a location.

        Keeps one stock_produit row per (product, location): an existing
        row is incremented instead of duplicated.
        """
        try:
            existing = (
                self.db.table(self.allocations_table)
                .select("id, quantite")
                .eq("produit_id", product_id)
                .eq("stock_id", stock_id)
                .execute()
            )

            if existing.data:
                row = existing.data[0]
                new_quantity = (row.get("quantite") or 0) + quantity
                (
                    self.db.table(self.allocations_table)
                    .update({"quantite": new_quantity})
                    .eq("id", row["id"])
                    .execute()
                )
            else:
                new_quantity = quantity
                (
                    self.db.table(self.allocations_table)
                    .insert({
                        "produit_id": product_id,
                        "stock_id": stock_id,
                        "quantite": quantity
                    })
                    .execute()
                )

        except Exception as e:
            logger.error(
                "insert_stock_allocation_failed",
                product_id=product_id,
                stock_id=stock_id,
                error=str(e)
            )
            raise DatabaseError("insert", str(e))

        logger.debug(
            "stock_allocated",
            product_id=product_id,
            stock_id=stock_id,
            quantity=new_quantity
        )

        return StockAllocation(product_id=product_id, stock_id=stock_id, quantity=new_quantity)


def _is_unique_violation(error: Exception) -> bool:
    code = getattr(error, "code", None)
    return code == UNIQUE_VIOLATION or "duplicate key" in str(error).lower()


# Singleton instance for convenience
_catalog_service: Optional[CatalogService] = None

def get_catalog_service() -> CatalogService:
    """Get or create CatalogService instance."""
    global _catalog_service
    if _catalog_service is None:
        _catalog_service = CatalogService()
    return _catalog_service
