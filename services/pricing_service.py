"""
Pricing engine: sale price / margin conversions under two VAT regimes.

normal:
    Prices are HT. TTC = HT × 1.20.
    margin % = (HT − purchase) / purchase × 100
    HT       = purchase × (1 + margin / 100)

margin (VAT on margin):
    The single sale price is TTC.
    net margin = (price − purchase) / 1.20
    margin %   = net margin / purchase × 100
    price      = purchase + (purchase × margin / 100) × 1.20

Per price tier the caller supplies either a sale price or a margin percent,
never both; the engine derives the other. Derived values are rounded to
2 decimals (ROUND_HALF_UP).

All functions are pure and work on Decimal.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from exceptions import (
    InvalidPurchasePriceError,
    PriceInputConflictError,
    PriceInputMissingError,
)
from models.product import PriceTier, VatType

VAT_RATE = Decimal("0.20")
VAT_MULTIPLIER = Decimal("1") + VAT_RATE
HUNDRED = Decimal("100")
CENT = Decimal("0.01")

Number = Union[Decimal, float, int, str]


@dataclass(frozen=True)
class TierPrice:
    """Resolved price tier: both the sale price and its margin percent."""
    tier: PriceTier
    price: Decimal
    margin_percent: Decimal


@dataclass(frozen=True)
class ResolvedPrices:
    """Retail and pro tiers of one product."""
    retail: TierPrice
    pro: TierPrice


def to_decimal(value: Number) -> Decimal:
    """Convert without float artifacts (0.1 → Decimal('0.1'))."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: Number) -> Decimal:
    """Round to 2 decimals, half up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


# ===================
# VAT CONVERSIONS
# ===================

def ht_to_ttc(ht: Number) -> Decimal:
    """Price including tax from price excluding tax (normal regime)."""
    return round_money(to_decimal(ht) * VAT_MULTIPLIER)


def ttc_to_ht(ttc: Number) -> Decimal:
    """Price excluding tax from price including tax (normal regime)."""
    return round_money(to_decimal(ttc) / VAT_MULTIPLIER)


def net_margin(purchase: Number, price: Number, vat_type: VatType) -> Decimal:
    """
    Margin in currency units, after VAT where VAT applies to the margin.

    Args:
        purchase: Purchase price with fees
        price: Sale price (HT for normal, TTC for margin)
        vat_type: VAT regime

    Returns:
        Unrounded net margin
    """
    difference = to_decimal(price) - to_decimal(purchase)
    if vat_type == VatType.MARGIN:
        return difference / VAT_MULTIPLIER
    return difference


# ===================
# DERIVATIONS
# ===================

def margin_from_price(
    purchase: Number,
    price: Number,
    vat_type: VatType,
    rounded: bool = True,
) -> Decimal:
    """
    Margin percent earned by selling at `price`.

    Raises:
        InvalidPurchasePriceError: purchase <= 0
    """
    purchase_value = _checked_purchase(purchase)
    margin = net_margin(purchase_value, price, vat_type) / purchase_value * HUNDRED
    return round_money(margin) if rounded else margin


def price_from_margin(
    purchase: Number,
    margin_percent: Number,
    vat_type: VatType,
    rounded: bool = True,
) -> Decimal:
    """
    Sale price giving `margin_percent`.

    Returns HT for normal, TTC for margin.

    Raises:
        InvalidPurchasePriceError: purchase <= 0
    """
    purchase_value = _checked_purchase(purchase)
    margin = to_decimal(margin_percent)
    if vat_type == VatType.MARGIN:
        net = purchase_value * margin / HUNDRED
        price = purchase_value + net * VAT_MULTIPLIER
    else:
        price = purchase_value * (Decimal("1") + margin / HUNDRED)
    return round_money(price) if rounded else price


def resolve_tier(
    tier: PriceTier,
    purchase: Number,
    vat_type: VatType,
    price: Optional[Number] = None,
    margin_percent: Optional[Number] = None,
) -> TierPrice:
    """
    Resolve one price tier from exactly one of (price, margin_percent).

    Args:
        tier: RETAIL or PRO (used in error messages)
        purchase: Purchase price with fees
        vat_type: VAT regime
        price: Sale price, if given
        margin_percent: Margin percent, if given

    Returns:
        TierPrice with both values rounded to 2 decimals

    Raises:
        PriceInputConflictError: both given
        PriceInputMissingError: neither given
        InvalidPurchasePriceError: purchase <= 0
    """
    if price is not None and margin_percent is not None:
        raise PriceInputConflictError(tier.value)
    if price is None and margin_percent is None:
        raise PriceInputMissingError(tier.value)

    if price is not None:
        return TierPrice(
            tier=tier,
            price=round_money(price),
            margin_percent=margin_from_price(purchase, price, vat_type),
        )

    return TierPrice(
        tier=tier,
        price=price_from_margin(purchase, margin_percent, vat_type),
        margin_percent=round_money(margin_percent),
    )


def resolve_prices(
    purchase: Number,
    vat_type: VatType,
    retail_price: Optional[Number] = None,
    retail_margin_percent: Optional[Number] = None,
    pro_price: Optional[Number] = None,
    pro_margin_percent: Optional[Number] = None,
) -> ResolvedPrices:
    """Resolve the retail and pro tiers with the same rules."""
    return ResolvedPrices(
        retail=resolve_tier(PriceTier.RETAIL, purchase, vat_type, retail_price, retail_margin_percent),
        pro=resolve_tier(PriceTier.PRO, purchase, vat_type, pro_price, pro_margin_percent),
    )


def stored_sale_price(price: Number, vat_type: VatType) -> Decimal:
    """
    Price as stored for a serial child.

    Serial files give plain money amounts: HT for normal (stored TTC),
    TTC for margin (stored as given).
    """
    if vat_type == VatType.NORMAL:
        return ht_to_ttc(price)
    return round_money(price)


def _checked_purchase(purchase: Number) -> Decimal:
    value = to_decimal(purchase)
    if value <= 0:
        raise InvalidPurchasePriceError(purchase)
    return value
