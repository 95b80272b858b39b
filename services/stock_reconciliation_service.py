"""
Stock reconciliation: per-location quantities vs. declared global stock.

Rules:
1. Location quantities are non-negative integers; blank or non-numeric
   cells count as 0.
2. The product's stock is the sum of its location quantities.
3. If the file also declares a global stock for the row, it must equal
   that sum exactly.
4. Locations with quantity 0 produce no allocation.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Optional
import structlog

from exceptions import InvalidQuantityError, StockMismatchError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class LocationQuantity:
    """Quantity to allocate at one stock location."""
    stock_id: str
    quantity: int


@dataclass
class StockReconciliation:
    """Outcome of reconciling one row."""
    total: int
    allocations: list[LocationQuantity] = field(default_factory=list)


def parse_quantity(raw: Optional[str], column: str = "stock") -> int:
    """
    Parse a stock cell.

    - None, "" or non-numeric → 0
    - "5", "5.0", "5,0" → 5 (decimals truncated toward zero)

    Raises:
        InvalidQuantityError: Negative number
    """
    if raw is None:
        return 0
    text = str(raw).strip().replace(",", ".")
    if not text:
        return 0
    try:
        value = Decimal(text)
    except InvalidOperation:
        return 0
    if not value.is_finite():
        return 0
    if value < 0:
        raise InvalidQuantityError(column, str(raw))
    return int(value)


def reconcile_stock(
    sku: str,
    quantities: dict[str, int],
    declared_total: Optional[int] = None,
) -> StockReconciliation:
    """
    Reconcile per-location quantities for one product.

    Args:
        sku: Product SKU (for error messages)
        quantities: stock_id -> quantity, one entry per stock column
        declared_total: Value of the global 'stock' column, None if absent

    Returns:
        StockReconciliation with the total and the non-zero allocations

    Raises:
        StockMismatchError: declared_total present and different from the sum
    """
    computed = sum(quantities.values())

    if declared_total is not None and declared_total != computed:
        logger.info(
            "stock_mismatch",
            sku=sku,
            computed=computed,
            declared=declared_total
        )
        raise StockMismatchError(sku, computed, declared_total)

    allocations = [
        LocationQuantity(stock_id=stock_id, quantity=quantity)
        for stock_id, quantity in quantities.items()
        if quantity > 0
    ]

    return StockReconciliation(total=computed, allocations=allocations)


def legacy_stock(declared_total: Optional[int]) -> StockReconciliation:
    """Files without location columns: the global column is the whole stock."""
    return StockReconciliation(total=declared_total or 0)
