"""
DOMAIN MODELS — OPERATIONAL ERRORS

Structured, non-fatal errors accumulated during ingestion and enrichment.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class ErrorSource(str, Enum):
    """Subsystem that produced the error"""
    YAHOO = "yahoo"
    GOOGLE = "google"
    EXCEL = "excel"
    SYSTEM = "system"


class ErrorCode(str, Enum):
    """What went wrong"""
    EXTERNAL_SERVICE = "EXTERNAL_SERVICE"
    RATE_LIMITED = "RATE_LIMITED"
    INVALID_SYMBOL = "INVALID_SYMBOL"
    MISSING_PRICE = "MISSING_PRICE"
    ROW_PARSE = "ROW_PARSE"
    MISSING_COLUMN = "MISSING_COLUMN"
    INVALID_INPUT = "INVALID_INPUT"


@dataclass(frozen=True)
class OperationalError:
    source: ErrorSource
    code: ErrorCode
    message: str
    symbol: Optional[str] = None
    row: Optional[int] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))
