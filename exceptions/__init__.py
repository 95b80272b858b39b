"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    DatabaseError,

    # Catalog
    ProductNotFoundError,
    ImportSessionNotFoundError,
    FileTooLargeError,

    # Structural
    ImportStructureError,
    CSVStructureError,
    EmptyImportFileError,
    MissingColumnsError,
    UnknownStockColumnsError,
    SerialImportNotAllowedError,
    TooManyRowsError,

    # Row-level
    RowValidationError,
    MissingFieldsError,
    InvalidFieldValueError,
    PriceInputConflictError,
    TooManyFieldsError,
    PriceInputMissingError,
    InvalidPurchasePriceError,
    InvalidQuantityError,
    StockMismatchError,
    UnknownStockNameError,
    DuplicateSerialError,
    ParentSKUMismatchError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "DatabaseError",

    # Catalog
    "ProductNotFoundError",
    "ImportSessionNotFoundError",
    "FileTooLargeError",

    # Structural
    "ImportStructureError",
    "CSVStructureError",
    "EmptyImportFileError",
    "MissingColumnsError",
    "UnknownStockColumnsError",
    "SerialImportNotAllowedError",
    "TooManyRowsError",

    # Row-level
    "RowValidationError",
    "MissingFieldsError",
    "InvalidFieldValueError",
    "PriceInputConflictError",
    "TooManyFieldsError",
    "PriceInputMissingError",
    "InvalidPurchasePriceError",
    "InvalidQuantityError",
    "StockMismatchError",
    "UnknownStockNameError",
    "DuplicateSerialError",
    "ParentSKUMismatchError",
]
