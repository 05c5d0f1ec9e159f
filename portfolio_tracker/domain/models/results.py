"""
DOMAIN MODELS — PIPELINE RESULTS

Best-effort results: a value plus the list of what went wrong on the way.
"""

from dataclasses import dataclass, field
from typing import Iterable, List

from .errors import OperationalError
from .holding import Holding
from .sector import SectorSummary


@dataclass(frozen=True)
class PortfolioTotals:
    """Portfolio-wide aggregates"""
    total_investment: float
    total_present_value: float
    total_gain_loss: float
    total_gain_loss_percentage: float
    holdings_count: int

    @classmethod
    def from_holdings(cls, holdings: Iterable[Holding]) -> "PortfolioTotals":
        holdings = list(holdings)
        total_investment = sum(h.investment for h in holdings)
        total_present_value = sum(h.present_value for h in holdings)
        total_gain_loss = total_present_value - total_investment
        return cls(
            total_investment=total_investment,
            total_present_value=total_present_value,
            total_gain_loss=total_gain_loss,
            total_gain_loss_percentage=(
                (total_gain_loss / total_investment) * 100.0
                if total_investment != 0
                else 0.0
            ),
            holdings_count=len(holdings),
        )


@dataclass
class IngestionResult:
    holdings: List[Holding] = field(default_factory=list)
    errors: List[OperationalError] = field(default_factory=list)
    total_rows: int = 0

    @property
    def valid_rows(self) -> int:
        return len(self.holdings)

    @property
    def invalid_rows(self) -> int:
        return len(self.errors)


@dataclass
class EnrichmentResult:
    holdings: List[Holding] = field(default_factory=list)
    sectors: List[SectorSummary] = field(default_factory=list)
    errors: List[OperationalError] = field(default_factory=list)

    @property
    def totals(self) -> PortfolioTotals:
        return PortfolioTotals.from_holdings(self.holdings)
