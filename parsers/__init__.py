"""
CSV parsers for catalog imports.
"""

from parsers.csv_parser import (
    ImportMode,
    ParsedCSV,
    parse_import_csv,
)
from parsers.row_decoder import (
    decode_product_row,
    decode_serial_row,
)

__all__ = [
    "ImportMode",
    "ParsedCSV",
    "parse_import_csv",
    "decode_product_row",
    "decode_serial_row",
]
