"""
DOMAIN MODELS — SECTOR SUMMARY

Per-sector aggregates. Summaries partition the holdings: every holding lands
in exactly one summary.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List

from .holding import Holding


@dataclass(frozen=True)
class SectorSummary:
    """Aggregate over one sector's holdings - Immutable"""
    sector: str
    total_investment: float
    total_present_value: float
    total_gain_loss: float
    gain_loss_percentage: float
    holdings_count: int

    @classmethod
    def from_holdings(cls, sector: str, holdings: Iterable[Holding]) -> "SectorSummary":
        holdings = list(holdings)
        total_investment = sum(h.investment for h in holdings)
        total_present_value = sum(h.present_value for h in holdings)
        total_gain_loss = total_present_value - total_investment
        gain_loss_pct = (
            (total_gain_loss / total_investment) * 100.0
            if total_investment != 0
            else 0.0
        )
        return cls(
            sector=sector,
            total_investment=total_investment,
            total_present_value=total_present_value,
            total_gain_loss=total_gain_loss,
            gain_loss_percentage=gain_loss_pct,
            holdings_count=len(holdings),
        )


def group_by_sector(holdings: Iterable[Holding]) -> Dict[str, List[Holding]]:
    """Group holdings by sector, keeping first-appearance order."""
    grouped: Dict[str, List[Holding]] = {}
    for holding in holdings:
        grouped.setdefault(holding.sector, []).append(holding)
    return grouped


def summarize_sectors(holdings: Iterable[Holding]) -> List[SectorSummary]:
    return [
        SectorSummary.from_holdings(sector, sector_holdings)
        for sector, sector_holdings in group_by_sector(holdings).items()
    ]
