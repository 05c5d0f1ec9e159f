"""
Provider symbol formats.

Yahoo: RELIANCE.NS (NSE), 532174.BO (BSE)
Google: NSE:RELIANCE, BOM:532174
"""

import re

from portfolio_tracker.core.exceptions import InvalidSymbolError

NSE_SUFFIX = ".NS"
BSE_SUFFIX = ".BO"

_SYMBOL_RE = re.compile(r"^[A-Za-z0-9^][A-Za-z0-9&.\-_=^]*$")


def validate_symbol(symbol: object) -> str:
    """Return the symbol unchanged, or raise InvalidSymbolError before any network access."""
    if not isinstance(symbol, str) or not symbol.strip():
        raise InvalidSymbolError("Invalid symbol: must be a non-empty string", symbol=None)
    if not _SYMBOL_RE.match(symbol):
        raise InvalidSymbolError(f"Invalid symbol: {symbol!r}", symbol=symbol)
    return symbol


def is_valid_symbol(symbol: object) -> bool:
    try:
        validate_symbol(symbol)
    except InvalidSymbolError:
        return False
    return True


def nse_symbol(code: str) -> str:
    return f"{code.strip().upper()}{NSE_SUFFIX}"


def bse_symbol(code: str) -> str:
    return f"{code.strip()}{BSE_SUFFIX}"


def to_google_symbol(symbol: str) -> str:
    if symbol.endswith(NSE_SUFFIX):
        return f"NSE:{symbol[:-len(NSE_SUFFIX)]}"
    if symbol.endswith(BSE_SUFFIX):
        return f"BOM:{symbol[:-len(BSE_SUFFIX)]}"
    return symbol
