"""
Catalog schemas: products, categories, stock locations and allocations.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import Field, field_validator

from models.base import BaseSchema, to_db_value


class VatType(str, Enum):
    """VAT regime of a product."""
    NORMAL = "normal"   # VAT on the full price, prices stored HT
    MARGIN = "margin"   # VAT on the seller's margin, price is TTC


class PriceTier(str, Enum):
    """Sale price tiers."""
    RETAIL = "retail"
    PRO = "pro"


class CategoryResponse(BaseSchema):
    """Product category (type, brand, model), always uppercase."""

    id: str = Field(..., description="Category UUID")
    type: str
    brand: str
    model: str


class StockLocation(BaseSchema):
    """A named storage location."""

    id: str = Field(..., description="Stock UUID")
    name: str = Field(..., min_length=1)


class StockAllocation(BaseSchema):
    """Quantity of one product at one location."""

    product_id: str
    stock_id: str
    quantity: int = Field(..., ge=0)


class ProductResponse(BaseSchema):
    """
    Product row as stored.

    Serial children carry serial_number, parent_id and the per-unit extras.
    """

    id: str = Field(..., description="Product UUID")
    sku: str
    name: str = ""
    purchase_price_with_fees: Optional[float] = None
    retail_price: Optional[float] = None
    pro_price: Optional[float] = None
    margin_percent: Optional[float] = None
    pro_margin_percent: Optional[float] = None
    vat_type: VatType = VatType.NORMAL
    weight_grams: Optional[int] = None
    width_cm: Optional[float] = None
    height_cm: Optional[float] = None
    depth_cm: Optional[float] = None
    location: Optional[str] = None
    ean: Optional[str] = None
    description: Optional[str] = None
    category_id: Optional[str] = None
    stock: int = 0
    stock_alert: Optional[int] = None
    is_parent: bool = False
    parent_id: Optional[str] = None
    serial_number: Optional[str] = None
    raw_purchase_price: Optional[float] = None
    supplier: Optional[str] = None
    battery_level: Optional[int] = None
    warranty_sticker: Optional[str] = None
    product_note: Optional[str] = None
    images: list[Any] = Field(default_factory=list)
    variants: list[Any] = Field(default_factory=list)

    @field_validator("stock", mode="before")
    @classmethod
    def stock_default(cls, v):
        return v or 0

    @field_validator("vat_type", mode="before")
    @classmethod
    def vat_type_default(cls, v):
        return v or VatType.NORMAL

    @field_validator("images", "variants", mode="before")
    @classmethod
    def list_default(cls, v):
        return v or []

    @property
    def is_serial_hosting(self) -> bool:
        """Parent product configured to receive serial-numbered children."""
        return self.is_parent and len(self.variants) > 0


class ProductWrite(BaseSchema):
    """
    Product payload for insert or update.

    When id is set the product is updated, otherwise created.
    """

    id: Optional[str] = None
    sku: str = Field(..., min_length=1, max_length=120)
    name: str = Field(..., min_length=1)
    purchase_price_with_fees: Decimal
    retail_price: Optional[Decimal] = None
    pro_price: Optional[Decimal] = None
    margin_percent: Optional[Decimal] = None
    pro_margin_percent: Optional[Decimal] = None
    vat_type: VatType = VatType.NORMAL
    weight_grams: Optional[int] = None
    width_cm: Optional[Decimal] = None
    height_cm: Optional[Decimal] = None
    depth_cm: Optional[Decimal] = None
    location: Optional[str] = None
    ean: Optional[str] = None
    description: Optional[str] = None
    category_id: Optional[str] = None
    stock: int = Field(default=0, ge=0)
    stock_alert: Optional[int] = None
    is_parent: bool = False
    parent_id: Optional[str] = None
    serial_number: Optional[str] = None
    raw_purchase_price: Optional[Decimal] = None
    supplier: Optional[str] = None
    battery_level: Optional[int] = None
    warranty_sticker: Optional[str] = None
    product_note: Optional[str] = None
    images: Optional[list[Any]] = None
    variants: Optional[list[Any]] = None

    @field_validator("sku")
    @classmethod
    def sku_uppercase(cls, v: str) -> str:
        """SKU must be uppercase and trimmed."""
        return v.upper().strip()

    def to_record(self, exclude_unset: bool = False) -> dict:
        """
        Column -> value mapping ready for Supabase (id excluded, None images/variants dropped).

        With exclude_unset only the fields passed at construction are kept,
        so an update leaves every other stored column untouched.
        """
        record = {}
        for name, value in self:
            if name == "id":
                continue
            if exclude_unset and name not in self.model_fields_set:
                continue
            if name in ("images", "variants") and value is None:
                continue
            record[name] = to_db_value(value)
        return record
