"""
Text utilities for CSV headers and free-text cells.

Spreadsheet exports routinely carry non-breaking spaces, doubled spaces and
mixed case in headers; everything that compares names goes through here.
"""

import re
from typing import Optional

NBSP = "\u00a0"
STOCK_COLUMN_PREFIX = "stock_"

_WHITESPACE_RUN = re.compile(r"\s+")


def normalize_header(header: Optional[str]) -> str:
    """
    Normalize a header or location name for comparison.

    - " Stock_Paris " → "stock_paris"
    - "Stock_Entrepôt   Nord" → "stock_entrepôt nord"
    - None → ""

    Args:
        header: Raw header text

    Returns:
        Lowercase text with single inner spaces and no surrounding whitespace
    """
    if not header:
        return ""

    text = str(header).replace(NBSP, " ")
    text = _WHITESPACE_RUN.sub(" ", text.strip())
    return text.lower()


def stock_column_name(location_name: str) -> str:
    """Expected header for a stock location: 'stock_' + normalized name."""
    return normalize_header(STOCK_COLUMN_PREFIX + normalize_header(location_name))


def clean_cell(value: Optional[str]) -> str:
    """
    Clean a raw CSV cell.

    Strips surrounding whitespace (including non-breaking spaces).
    Returns "" for None.
    """
    if value is None:
        return ""
    return str(value).replace(NBSP, " ").strip()


def clean_optional(value: Optional[str], max_length: int = 500) -> Optional[str]:
    """
    Clean a free-text cell for storage.

    - Strips whitespace
    - Truncates to max length
    - Returns None for empty/whitespace-only strings
    """
    text = clean_cell(value)
    if not text:
        return None
    if len(text) > max_length:
        text = text[:max_length]
    return text


def decode_upload(content: bytes, encoding: str = "utf-8-sig") -> str:
    """
    Decode an uploaded CSV file.

    Spreadsheet exports are UTF-8 (often with BOM) or Windows-1252; the
    configured encoding is tried first, cp1252 second.
    """
    try:
        return content.decode(encoding)
    except UnicodeDecodeError:
        return content.decode("cp1252", errors="replace")
