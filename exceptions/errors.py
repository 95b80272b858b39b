"""
Custom exception classes for the application.

Three families matter to the import engine:
    - ImportStructureError: the file shape is wrong, the whole import is rejected
    - RowValidationError: one row breaks a business rule, only that row is skipped
    - DatabaseError: the store rejected a write, handled like a row error
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "PRODUCT_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# CATALOG ERRORS
# ===================

class ProductNotFoundError(NotFoundError):
    """Product not found."""

    def __init__(self, product_id: str):
        super().__init__(
            resource="Product",
            identifier=product_id,
            code="PRODUCT_NOT_FOUND"
        )


class ImportSessionNotFoundError(NotFoundError):
    """Import session not found."""

    def __init__(self, session_id: str):
        super().__init__(
            resource="Import session",
            identifier=session_id,
            code="IMPORT_SESSION_NOT_FOUND"
        )


class FileTooLargeError(ValidationError):
    """Uploaded file exceeds the configured size limit."""

    def __init__(self, size: int, limit: int):
        super().__init__(
            code="IMPORT_FILE_TOO_LARGE",
            message=f"Fichier trop volumineux ({size} octets, maximum {limit})",
            details={"size": size, "limit": limit}
        )


# ===================
# STRUCTURAL (FILE-LEVEL) ERRORS
# ===================

class ImportStructureError(ValidationError):
    """
    The file cannot be imported at all.

    Raised before any row is processed; nothing is committed.
    """

    def __init__(
        self,
        message: str,
        code: str = "IMPORT_STRUCTURE_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(message=message, code=code, details=details)


class TooManyRowsError(ImportStructureError):
    """File holds more data rows than one import accepts."""

    def __init__(self, count: int, limit: int):
        super().__init__(
            code="IMPORT_TOO_MANY_ROWS",
            message=f"Trop de lignes ({count}, maximum {limit})",
            details={"count": count, "limit": limit}
        )


class CSVStructureError(ImportStructureError):
    """CSV text could not be tokenized."""

    def __init__(self, reason: str):
        super().__init__(
            code="CSV_MALFORMED",
            message=f"Fichier CSV invalide : {reason}",
            details={"reason": reason}
        )


class EmptyImportFileError(ImportStructureError):
    """No header or no data rows."""

    def __init__(self):
        super().__init__(
            code="IMPORT_FILE_EMPTY",
            message="Le fichier CSV est vide"
        )


class MissingColumnsError(ImportStructureError):
    """Required headers are absent."""

    def __init__(self, missing: list[str]):
        super().__init__(
            code="IMPORT_MISSING_COLUMNS",
            message="En-têtes CSV invalides. Champs requis manquants: " + ", ".join(missing),
            details={"missing": missing}
        )


class UnknownStockColumnsError(ImportStructureError):
    """Header references stock locations that do not exist."""

    def __init__(self, unknown: list[str], valid_names: list[str]):
        super().__init__(
            code="IMPORT_UNKNOWN_STOCK_COLUMNS",
            message=(
                "Colonnes de stock inconnues : " + ", ".join(unknown)
                + ". Stocks valides : " + (", ".join(valid_names) or "aucun")
            ),
            details={"unknown": unknown, "valid": valid_names}
        )


class SerialImportNotAllowedError(ImportStructureError):
    """Serial import requested on a product that cannot host serial children."""

    def __init__(self, sku: str, reason: str):
        super().__init__(
            code="SERIAL_IMPORT_NOT_ALLOWED",
            message=f"Import de numéros de série impossible pour {sku} : {reason}",
            details={"sku": sku, "reason": reason}
        )


# ===================
# ROW-LEVEL ERRORS
# ===================

class RowValidationError(ValidationError):
    """
    A single row breaks a business rule.

    The row is skipped and the import continues.
    """

    def __init__(
        self,
        message: str,
        code: str = "ROW_VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(message=message, code=code, details=details)


class MissingFieldsError(RowValidationError):
    """Required cells are empty."""

    def __init__(self, fields: list[str], sku: Optional[str] = None):
        super().__init__(
            code="ROW_MISSING_FIELDS",
            message="Champs obligatoires manquants: " + ", ".join(fields),
            details={"fields": fields, "sku": sku}
        )


class InvalidFieldValueError(RowValidationError):
    """A cell cannot be converted to the expected type."""

    def __init__(self, field: str, value: str, expected: str):
        super().__init__(
            code="ROW_INVALID_VALUE",
            message=f"Valeur invalide pour {field} : '{value}' ({expected} attendu)",
            details={"field": field, "value": value, "expected": expected}
        )


class TooManyFieldsError(RowValidationError):
    """Row carries more cells than the header, usually an unquoted separator."""

    def __init__(self, count: int, expected: int):
        super().__init__(
            code="ROW_TOO_MANY_FIELDS",
            message=f"Trop de valeurs sur la ligne ({count} pour {expected} colonnes), séparateur non protégé par des guillemets ?",
            details={"count": count, "expected": expected}
        )


class PriceInputConflictError(RowValidationError):
    """Both a sale price and a margin were given for one tier."""

    def __init__(self, tier: str):
        super().__init__(
            code="PRICE_INPUT_CONFLICT",
            message=f"Prix {tier} : choisissez soit le prix de vente, soit la marge, pas les deux",
            details={"tier": tier}
        )


class PriceInputMissingError(RowValidationError):
    """Neither a sale price nor a margin was given for one tier."""

    def __init__(self, tier: str):
        super().__init__(
            code="PRICE_INPUT_MISSING",
            message=f"Prix {tier} : le prix de vente ou la marge est obligatoire",
            details={"tier": tier}
        )


class InvalidPurchasePriceError(RowValidationError):
    """Purchase price must be strictly positive to derive margins."""

    def __init__(self, value: Any):
        super().__init__(
            code="INVALID_PURCHASE_PRICE",
            message=f"Prix d'achat invalide : {value} (doit être supérieur à 0)",
            details={"value": str(value)}
        )


class InvalidQuantityError(RowValidationError):
    """Stock quantity is negative."""

    def __init__(self, column: str, value: str):
        super().__init__(
            code="INVALID_QUANTITY",
            message=f"Quantité négative pour {column} : {value}",
            details={"column": column, "value": value}
        )


class StockMismatchError(RowValidationError):
    """Declared global stock differs from the sum of location quantities."""

    def __init__(self, sku: str, computed: int, declared: int):
        super().__init__(
            code="STOCK_MISMATCH",
            message=(
                f"Stock incohérent pour {sku} : la somme des stocks par emplacement "
                f"({computed}) ne correspond pas au stock global ({declared})"
            ),
            details={"sku": sku, "computed": computed, "declared": declared}
        )


class UnknownStockNameError(RowValidationError):
    """Row references a stock location by an unknown name."""

    def __init__(self, stock_name: str):
        super().__init__(
            code="UNKNOWN_STOCK_NAME",
            message=f'Stock "{stock_name}" non trouvé',
            details={"stock_name": stock_name}
        )


class DuplicateSerialError(RowValidationError):
    """A child product with this serial SKU already exists."""

    def __init__(self, sku: str):
        super().__init__(
            code="DUPLICATE_SERIAL",
            message=f"SKU enfant déjà existant : {sku}",
            details={"sku": sku}
        )


class ParentSKUMismatchError(RowValidationError):
    """Row targets another parent than the one being imported into."""

    def __init__(self, given: str, expected: str):
        super().__init__(
            code="PARENT_SKU_MISMATCH",
            message=f'SKU parent "{given}" ne correspond pas au parent courant "{expected}"',
            details={"given": given, "expected": expected}
        )
