"""
CSV parser for catalog imports.

Turns raw file text into a ParsedCSV: normalized header, separator, data
rows with their source line numbers, and the binding of every
'stock_<location>' column to a known stock location.

Everything here runs before the first row is imported, so every error
raised is structural (ImportStructureError).
"""

from dataclasses import dataclass, field
from enum import Enum
from io import StringIO
from typing import Iterator, Optional
import structlog

import pandas as pd

from exceptions import (
    CSVStructureError,
    EmptyImportFileError,
    MissingColumnsError,
    TooManyFieldsError,
    TooManyRowsError,
    UnknownStockColumnsError,
)
from models.product import StockLocation
from utils.text_utils import (
    STOCK_COLUMN_PREFIX,
    clean_cell,
    normalize_header,
    stock_column_name,
)

logger = structlog.get_logger(__name__)

COMMENT_PREFIX = "#"
GLOBAL_STOCK_COLUMN = "stock"
STOCK_ALERT_COLUMN = "stock_alert"


class ImportMode(str, Enum):
    """Where per-product quantities come from."""
    LEGACY = "legacy"              # plain 'stock' column only
    PER_LOCATION = "per_location"  # one 'stock_<location>' column per location


@dataclass
class ParsedCSV:
    """Result of reading an import file."""
    fields: list[str]
    separator: str
    rows: list[list[str]] = field(default_factory=list)
    line_numbers: list[int] = field(default_factory=list)
    stock_columns: dict[str, StockLocation] = field(default_factory=dict)
    overflow: dict[int, int] = field(default_factory=dict)  # line -> cells found beyond the header

    @property
    def mode(self) -> ImportMode:
        return ImportMode.PER_LOCATION if self.stock_columns else ImportMode.LEGACY

    @property
    def has_global_stock(self) -> bool:
        """True if the plain 'stock' column is present."""
        return GLOBAL_STOCK_COLUMN in self.fields

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def has_column(self, name: str) -> bool:
        return normalize_header(name) in self.fields

    def require_columns(self, required: list[str]) -> None:
        """
        Check the header contains every required column.

        Raises:
            MissingColumnsError: listing every absent column
        """
        missing = [col for col in required if normalize_header(col) not in self.fields]
        if missing:
            raise MissingColumnsError(missing)

    def check_width(self, line: int) -> None:
        """
        Reject a row that carries more cells than the header.

        Raises:
            TooManyFieldsError: The row at `line` overflows the header
        """
        if line in self.overflow:
            raise TooManyFieldsError(self.overflow[line], len(self.fields))

    def row_mapping(self, values: list[str]) -> dict[str, str]:
        """Map normalized header -> cleaned cell for one data row."""
        return {
            name: (values[i] if i < len(values) else "")
            for i, name in enumerate(self.fields)
        }

    def records(self) -> Iterator[tuple[int, dict[str, str]]]:
        """Yield (line number, row mapping) in file order."""
        for line, values in zip(self.line_numbers, self.rows):
            yield line, self.row_mapping(values)


def parse_import_csv(
    text: str,
    stocks: Optional[list[StockLocation]] = None,
    required_columns: Optional[list[str]] = None,
    max_rows: Optional[int] = None,
) -> ParsedCSV:
    """
    Parse an import file.

    Args:
        text: Raw file content
        stocks: Known stock locations. When given, 'stock_*' headers are
                bound to locations and unknown ones rejected. Pass None for
                formats where 'stock_*' headers carry other meanings.
        required_columns: Headers that must be present
        max_rows: Largest accepted number of data rows, None for no limit

    Returns:
        ParsedCSV

    Raises:
        EmptyImportFileError: No header or no data rows
        CSVStructureError: Text cannot be tokenized
        MissingColumnsError: A required header is absent
        UnknownStockColumnsError: A 'stock_*' header matches no location
        TooManyRowsError: More data rows than max_rows
    """
    kept = strip_comments(text.lstrip("\ufeff"))
    if not kept:
        raise EmptyImportFileError()

    header_line = kept[0][1]
    separator = detect_separator(header_line)
    lines = [line for _, line in kept]
    width = max_field_count(lines, separator)

    logger.info(
        "parsing_import_csv",
        separator=separator,
        line_count=len(kept),
        max_fields=width
    )

    # names wider than any record: extra cells are read, never rejected by pandas
    try:
        df = pd.read_csv(
            StringIO("\n".join(lines)),
            sep=separator,
            header=None,
            names=list(range(width)),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        logger.error("csv_tokenize_failed", error=str(e))
        raise CSVStructureError("texte illisible (guillemet non fermé ?)") from e

    df = df.fillna("")
    header = [normalize_header(col) for col in df.iloc[0].tolist()]
    fields = header[:filled_width(header)]
    duplicates = sorted({f for f in fields if f and fields.count(f) > 1})
    if duplicates:
        raise CSVStructureError("colonnes en double : " + ", ".join(duplicates))

    raw_rows = [[clean_cell(v) for v in values] for values in df.iloc[1:].values.tolist()]

    # Line numbers can only be mapped 1:1 when no quoted cell spans several lines
    if len(raw_rows) == len(kept) - 1:
        source_lines = [number for number, _ in kept[1:]]
    else:
        source_lines = [i + 2 for i in range(len(raw_rows))]

    rows, line_numbers, overflow = [], [], {}
    for line, values in zip(source_lines, raw_rows):
        if not any(values):
            continue
        count = filled_width(values)
        if count > len(fields):
            overflow[line] = count
        rows.append(values[:len(fields)])
        line_numbers.append(line)

    parsed = ParsedCSV(
        fields=fields,
        separator=separator,
        rows=rows,
        line_numbers=line_numbers,
        overflow=overflow,
    )

    if required_columns:
        parsed.require_columns(required_columns)

    if stocks is not None:
        parsed.stock_columns = classify_stock_columns(fields, stocks)

    if not rows:
        raise EmptyImportFileError()
    if max_rows is not None and len(rows) > max_rows:
        raise TooManyRowsError(len(rows), max_rows)

    logger.info(
        "import_csv_parsed",
        fields=len(fields),
        rows=len(rows),
        mode=parsed.mode.value,
        stock_columns=list(parsed.stock_columns.keys())
    )

    return parsed


def classify_stock_columns(
    fields: list[str],
    stocks: list[StockLocation],
) -> dict[str, StockLocation]:
    """
    Bind 'stock_<location>' headers to stock locations.

    'stock_alert' is reserved and never treated as a location.

    Returns:
        Dict header -> StockLocation, in header order

    Raises:
        UnknownStockColumnsError: Any other 'stock_*' header that matches no location
    """
    expected = {stock_column_name(s.name): s for s in stocks}

    bound: dict[str, StockLocation] = {}
    unknown: list[str] = []

    for name in fields:
        if not name.startswith(STOCK_COLUMN_PREFIX) or name == STOCK_ALERT_COLUMN:
            continue
        location = expected.get(name)
        if location is None:
            unknown.append(name)
        else:
            bound[name] = location

    if unknown:
        logger.warning(
            "unknown_stock_columns",
            unknown=unknown,
            valid=[s.name for s in stocks]
        )
        raise UnknownStockColumnsError(unknown, sorted(s.name for s in stocks))

    return bound


# ===================
# HELPER FUNCTIONS
# ===================

def strip_comments(text: str) -> list[tuple[int, str]]:
    """
    Drop comment and blank lines.

    Returns:
        List of (1-based source line number, line) for every kept line
    """
    kept = []
    for number, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith(COMMENT_PREFIX):
            continue
        kept.append((number, line.rstrip("\r")))
    return kept


def max_field_count(lines: list[str], separator: str) -> int:
    """
    Upper bound of the number of cells in any record.

    Separators inside quotes are counted too. A record continues on the
    next line while its quotes are unbalanced.
    """
    widest = count = 0
    in_quotes = False
    for line in lines:
        count += line.count(separator)
        if line.count('"') % 2:
            in_quotes = not in_quotes
        if not in_quotes:
            widest = max(widest, count + 1)
            count = 0
    return max(widest, count + 1)


def filled_width(values: list[str]) -> int:
    """Number of cells up to the last non-empty one."""
    for i in range(len(values), 0, -1):
        if values[i - 1]:
            return i
    return 0


def detect_separator(line: str) -> str:
    """';' only when strictly more frequent than ',' in the header line."""
    return ";" if line.count(";") > line.count(",") else ","

