"""
Exception taxonomy for the enrichment pipeline.

Row-level and symbol-level problems are never raised past the orchestrator;
they are converted into OperationalError records. The exceptions here are
what the individual components raise to their immediate caller.
"""

from typing import Optional


class PortfolioTrackerError(Exception):
    """Base class for all portfolio tracker errors"""


class InvalidSymbolError(PortfolioTrackerError):
    """Empty/malformed symbol, or a symbol the provider does not know. Never retried."""

    def __init__(self, message: str, symbol: Optional[str] = None):
        super().__init__(message)
        self.symbol = symbol


class InvalidTTLError(PortfolioTrackerError, ValueError):
    """Cache misuse: TTL must be a positive number of seconds"""


class ExternalServiceError(PortfolioTrackerError):
    """
    Provider unreachable, non-2xx or rate-limited.

    `source` is "yahoo" or "google". `transient` marks causes worth retrying
    (timeouts, 5xx, connection failures, rate limiting).
    """

    def __init__(
        self,
        message: str,
        source: str,
        symbol: Optional[str] = None,
        status_code: Optional[int] = None,
        transient: bool = True,
    ):
        super().__init__(message)
        self.source = source
        self.symbol = symbol
        self.status_code = status_code
        self.transient = transient


class RateLimitedError(ExternalServiceError):
    """Provider asked us to slow down. `retry_after` is the suggested wait in seconds."""

    def __init__(
        self,
        message: str,
        source: str,
        symbol: Optional[str] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message, source=source, symbol=symbol, status_code=429, transient=True)
        self.retry_after = retry_after


class PortfolioFileNotFoundError(PortfolioTrackerError, FileNotFoundError):
    """Spreadsheet path does not exist"""


class EmptyWorkbookError(PortfolioTrackerError):
    """Workbook has no sheets, or its first sheet has no data rows"""


class WorkbookReadError(PortfolioTrackerError):
    """Workbook exists but could not be opened/parsed"""


class RowParseError(PortfolioTrackerError):
    """A single spreadsheet row could not be turned into a holding"""

    def __init__(self, message: str, row: Optional[int] = None):
        super().__init__(message)
        self.row = row
