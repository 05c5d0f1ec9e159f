"""
EXCEL — COLUMN MAPPING & ROW CLASSIFICATION

Portfolio sheets are hand-maintained, so column headers vary ("Qty" vs
"Quantity", "NSE/BSE" vs "Symbol") and sector headings are interleaved with
stock rows. Parsing happens in two phases:

1. Header row → ColumnMap (logical field → column index) via alias matching
2. Each data row → SectorDivider | StockRow | SkippedRow
"""

from __future__ import annotations

import math
import numbers
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from portfolio_tracker.core.exceptions import RowParseError


class ColumnField(str, Enum):
    NUMBER = "number"
    PARTICULARS = "particulars"
    PURCHASE_PRICE = "purchase_price"
    QUANTITY = "quantity"
    STOCK_CODE = "stock_code"
    PE = "pe"
    EARNINGS = "earnings"
    SECTOR = "sector"


HEADER_ALIASES: Dict[ColumnField, Tuple[str, ...]] = {
    ColumnField.NUMBER: ("No", "S.No", "Sr. No", "Sr No", "No.", "#"),
    ColumnField.PARTICULARS: ("Particulars", "Name", "Company"),
    ColumnField.PURCHASE_PRICE: ("Purchase Price", "Buy Price", "Avg Price", "Cost Price"),
    ColumnField.QUANTITY: ("Qty", "Quantity", "Shares", "Units"),
    ColumnField.STOCK_CODE: ("NSE/BSE", "Code", "Symbol", "Ticker"),
    ColumnField.PE: ("P/E", "PE Ratio", "PE"),
    ColumnField.EARNINGS: ("Latest Earnings", "Earnings"),
    ColumnField.SECTOR: ("Sector", "Category"),
}

# Too short to match as substrings without false positives
EXACT_ONLY_ALIASES = {"no", "#", "pe"}

# Most specific fields claim their column first
RESOLUTION_ORDER = (
    ColumnField.PURCHASE_PRICE,
    ColumnField.QUANTITY,
    ColumnField.STOCK_CODE,
    ColumnField.PE,
    ColumnField.EARNINGS,
    ColumnField.SECTOR,
    ColumnField.PARTICULARS,
    ColumnField.NUMBER,
)

NO_DATA_SENTINELS = {"", "#N/A", "N/A", "NA", "-", "--", "—", "#VALUE!", "#REF!"}

DIVIDER_KEYWORDS = re.compile(r"sector|total", re.IGNORECASE)
_DIVIDER_STRIP = re.compile(r"\b(sector|total)\b", re.IGNORECASE)


# ----------------------------------------------------------------------
# CELL HELPERS
# ----------------------------------------------------------------------

def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, float) and math.isnan(value):
        return True
    return False


def is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return False
    return not math.isnan(float(value))


def row_is_blank(row: Sequence[Any]) -> bool:
    return all(is_blank(cell) for cell in row)


def _normalize_header(value: Any) -> str:
    return " ".join(str(value).split()).lower()


def _parse_float(value: Any, label: str) -> float:
    if is_number(value):
        return float(value)
    if isinstance(value, str):
        cleaned = value.replace(",", "").replace("₹", "").strip()
        try:
            return float(cleaned)
        except ValueError:
            pass
    raise RowParseError(f"Invalid {label}: {value!r}")


def _format_code(value: Any) -> str:
    if is_number(value):
        number = float(value)
        return str(int(number)) if number.is_integer() else str(value)
    return str(value).strip()


# ----------------------------------------------------------------------
# PHASE 1: HEADER → COLUMN MAP
# ----------------------------------------------------------------------

@dataclass
class ColumnMap:
    columns: Dict[ColumnField, int] = field(default_factory=dict)

    def get(self, column: ColumnField) -> Optional[int]:
        return self.columns.get(column)

    def has(self, column: ColumnField) -> bool:
        return column in self.columns

    def missing(self) -> List[ColumnField]:
        return [c for c in ColumnField if c not in self.columns]

    def value(self, row: Sequence[Any], column: ColumnField) -> Any:
        index = self.columns.get(column)
        if index is None or index >= len(row):
            return None
        cell = row[index]
        return None if is_blank(cell) else cell

    def describe(self) -> Dict[str, Optional[int]]:
        return {c.value: self.columns.get(c) for c in ColumnField}


def _match_rank(header: str, aliases: Sequence[str]) -> Optional[Tuple[int, int]]:
    """(0, alias_index) for an exact match, (1, alias_index) for a substring match."""
    best: Optional[Tuple[int, int]] = None
    for alias_index, alias in enumerate(aliases):
        alias_norm = _normalize_header(alias)
        if header == alias_norm:
            rank = (0, alias_index)
        elif alias_norm not in EXACT_ONLY_ALIASES and alias_norm in header:
            rank = (1, alias_index)
        else:
            continue
        if best is None or rank < best:
            best = rank
    return best


def build_column_map(header_row: Sequence[Any]) -> ColumnMap:
    """
    Resolve each logical field to the best-matching header cell.

    Exact matches beat substring matches; earlier aliases beat later ones;
    leftmost column breaks ties. A column is claimed by at most one field.
    """
    headers = {
        index: _normalize_header(cell)
        for index, cell in enumerate(header_row)
        if isinstance(cell, str) and cell.strip()
    }

    columns: Dict[ColumnField, int] = {}
    claimed = set()

    for column_field in RESOLUTION_ORDER:
        aliases = HEADER_ALIASES[column_field]
        candidates = []
        for index, header in headers.items():
            if index in claimed:
                continue
            rank = _match_rank(header, aliases)
            if rank is not None:
                candidates.append((rank, index))
        if candidates:
            _, index = min(candidates)
            columns[column_field] = index
            claimed.add(index)

    return ColumnMap(columns=columns)


def find_header_row(rows: Sequence[Sequence[Any]], scan_limit: int = 5) -> Tuple[int, ColumnMap]:
    """
    Position of the header among `rows` (blank rows already removed).

    Normally the first row. Some sheets carry a title row above the header,
    so when the first row resolves neither the name nor the purchase price
    column, the next few rows are tried.
    """
    first = build_column_map(rows[0])
    if first.has(ColumnField.PARTICULARS) or first.has(ColumnField.PURCHASE_PRICE):
        return 0, first

    for position in range(1, min(scan_limit, len(rows))):
        candidate = build_column_map(rows[position])
        if candidate.has(ColumnField.PARTICULARS) and candidate.has(ColumnField.PURCHASE_PRICE):
            return position, candidate

    return 0, first


# ----------------------------------------------------------------------
# PHASE 2: ROW CLASSIFICATION
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class SectorDivider:
    label: str


@dataclass(frozen=True)
class StockRow:
    particulars: str
    purchase_price: float
    quantity: float
    nse_code: str
    bse_code: Optional[str]
    pe_ratio: Optional[float]
    latest_earnings: Optional[str]
    sector: Optional[str] = None


@dataclass(frozen=True)
class SkippedRow:
    reason: str
    is_error: bool = False


RowKind = Union[SectorDivider, StockRow, SkippedRow]


def parse_exchange_code(value: Any) -> Tuple[str, Optional[str]]:
    """
    Split an NSE/BSE cell into (nse_code, bse_code).

    532174        -> ("", "532174")
    "ICICIBANK/532174" -> ("ICICIBANK", "532174")
    "ICICIBANK"   -> ("ICICIBANK", None)
    """
    if is_blank(value):
        return "", None

    code = _format_code(value)
    if code.isdigit():
        return "", code

    if "/" in code:
        first, _, second = code.partition("/")
        primary, secondary = first.strip(), second.strip()
        if primary.isdigit() and secondary and not secondary.isdigit():
            primary, secondary = secondary, primary
        return primary.upper(), (secondary or None)

    return code.upper(), None


def parse_pe_ratio(value: Any) -> Optional[float]:
    if is_blank(value):
        return None
    try:
        pe = _parse_float(value, "P/E")
    except RowParseError:
        # "#N/A", "-" and friends
        return None
    return pe if pe > 0 else None


def parse_earnings(value: Any) -> Optional[str]:
    if is_blank(value):
        return None
    if is_number(value):
        number = float(value)
        return str(int(number)) if number.is_integer() else str(number)
    text = str(value).strip()
    if text.upper() in NO_DATA_SENTINELS:
        return None
    return text


def sector_label(particulars: str) -> str:
    label = _DIVIDER_STRIP.sub(" ", particulars)
    return " ".join(label.split()).strip(" :-")


def classify_row(row: Sequence[Any], columns: ColumnMap) -> RowKind:
    particulars = columns.value(row, ColumnField.PARTICULARS)
    if not isinstance(particulars, str):
        return SkippedRow("No particulars")
    particulars = particulars.strip()

    number = columns.value(row, ColumnField.NUMBER)
    has_number = is_number(number) or (isinstance(number, str) and number.strip().isdigit())
    stock_code = columns.value(row, ColumnField.STOCK_CODE)

    if not has_number and stock_code is None and DIVIDER_KEYWORDS.search(particulars):
        return SectorDivider(label=sector_label(particulars))

    try:
        return _parse_stock_row(row, columns, particulars, stock_code)
    except RowParseError as exc:
        return SkippedRow(f"Failed to create holding for {particulars}: {exc}", is_error=True)


def _parse_stock_row(
    row: Sequence[Any],
    columns: ColumnMap,
    particulars: str,
    stock_code: Any,
) -> StockRow:
    purchase_value = columns.value(row, ColumnField.PURCHASE_PRICE)
    if purchase_value is None:
        raise RowParseError("missing purchase price")
    if stock_code is None:
        raise RowParseError("missing NSE/BSE code")

    purchase_price = _parse_float(purchase_value, "purchase price")
    quantity_value = columns.value(row, ColumnField.QUANTITY)
    quantity = 0.0 if quantity_value is None else _parse_float(quantity_value, "quantity")

    if purchase_price < 0:
        raise RowParseError(f"negative purchase price {purchase_price}")
    if quantity < 0:
        raise RowParseError(f"negative quantity {quantity}")

    nse_code, bse_code = parse_exchange_code(stock_code)
    if not nse_code and not bse_code:
        raise RowParseError(f"unrecognised NSE/BSE code {stock_code!r}")

    sector_value = columns.value(row, ColumnField.SECTOR)
    sector = sector_value.strip() if isinstance(sector_value, str) else None

    return StockRow(
        particulars=particulars,
        purchase_price=purchase_price,
        quantity=quantity,
        nse_code=nse_code,
        bse_code=bse_code,
        pe_ratio=parse_pe_ratio(columns.value(row, ColumnField.PE)),
        latest_earnings=parse_earnings(columns.value(row, ColumnField.EARNINGS)),
        sector=sector or None,
    )
