"""
Typed CSV rows.

Produced by parsers.row_decoder from raw cells; business logic never
sees the raw strings.
"""

from decimal import Decimal
from typing import Optional

from pydantic import Field, field_validator

from models.base import BaseSchema
from models.product import VatType


class ProductImportRow(BaseSchema):
    """
    One decoded line of a product import file.

    Required: name, sku, purchase price, weight, location, dimensions,
    description and the category triple.
    Prices: per tier either a sale price or a margin percent.
    """

    line: int = Field(..., ge=1, description="1-based line number in the source file")
    name: str = Field(..., min_length=1)
    sku: str = Field(..., min_length=1)
    purchase_price: Decimal = Field(..., gt=0)
    retail_price: Optional[Decimal] = Field(None, ge=0)
    pro_price: Optional[Decimal] = Field(None, ge=0)
    margin_percent: Optional[Decimal] = None
    pro_margin_percent: Optional[Decimal] = None
    vat_type: VatType = VatType.NORMAL
    weight_grams: int = Field(..., ge=0)
    location: str = Field(..., min_length=1)
    ean: Optional[str] = None
    description: str = Field(..., min_length=1)
    width_cm: Decimal = Field(..., ge=0)
    height_cm: Decimal = Field(..., ge=0)
    depth_cm: Decimal = Field(..., ge=0)
    category_type: str = Field(..., min_length=1)
    category_brand: str = Field(..., min_length=1)
    category_model: str = Field(..., min_length=1)
    stock_alert: Optional[int] = Field(None, ge=0)
    declared_stock: Optional[int] = Field(
        None,
        ge=0,
        description="Value of the plain 'stock' column, None when the cell is empty"
    )
    location_quantities: dict[str, int] = Field(
        default_factory=dict,
        description="stock_id -> quantity for every per-location stock column"
    )

    @field_validator("sku", "location", "category_type", "category_brand", "category_model")
    @classmethod
    def uppercase(cls, v: str) -> str:
        return v.upper()


class SerialImportRow(BaseSchema):
    """One decoded line of a serial-number import file."""

    line: int = Field(..., ge=1)
    serial_number: str = Field(..., min_length=1)
    purchase_price: Decimal = Field(..., gt=0)
    supplier: str = Field(..., min_length=1)
    stock_name: str = Field(..., min_length=1)
    sku_parent: Optional[str] = None
    retail_price: Optional[Decimal] = Field(None, ge=0)
    pro_price: Optional[Decimal] = Field(None, ge=0)
    raw_purchase_price: Optional[Decimal] = Field(None, ge=0)
    vat_type: VatType = VatType.NORMAL
    stock_alert: Optional[int] = Field(None, ge=0)
    battery_percentage: Optional[int] = Field(None, ge=0, le=100)
    warranty_sticker: Optional[str] = None
    product_note: Optional[str] = None
