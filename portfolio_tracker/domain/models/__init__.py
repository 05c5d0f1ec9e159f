"""
Domain Models Package
Export all domain entities
"""

from .errors import (
    ErrorCode,
    ErrorSource,
    OperationalError,
)
from .holding import (
    DEFAULT_SECTOR,
    Holding,
    assign_portfolio_percentages,
    validate_holding,
    validate_portfolio_percentages,
)
from .results import (
    EnrichmentResult,
    IngestionResult,
    PortfolioTotals,
)
from .sector import (
    SectorSummary,
    group_by_sector,
    summarize_sectors,
)

__all__ = [
    # Enums
    "ErrorCode",
    "ErrorSource",

    # Entities
    "DEFAULT_SECTOR",
    "EnrichmentResult",
    "Holding",
    "IngestionResult",
    "OperationalError",
    "PortfolioTotals",
    "SectorSummary",

    # Calculations
    "assign_portfolio_percentages",
    "group_by_sector",
    "summarize_sectors",
    "validate_holding",
    "validate_portfolio_percentages",
]
