"""
DOMAIN MODELS — HOLDING

One portfolio position. Static fields come from the spreadsheet, dynamic
fields from enrichment. Derived values are read-only properties so they can
never drift from the fields they are computed from.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Optional


DEFAULT_SECTOR = "Uncategorized"


def _new_holding_id() -> str:
    return f"holding_{uuid.uuid4().hex}"


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass(eq=False)
class Holding:
    """
    A single stock position.

    `nse_code` is the primary-exchange code (may be empty), `bse_code` the
    numeric secondary-exchange code (may be None).
    """
    particulars: str
    purchase_price: float
    quantity: float
    nse_code: str = ""
    bse_code: Optional[str] = None
    sector: str = DEFAULT_SECTOR

    cmp: float = 0.0
    pe_ratio: Optional[float] = None
    latest_earnings: Optional[str] = None
    last_updated: datetime = field(default_factory=_utcnow)

    id: str = field(default_factory=_new_holding_id)
    _portfolio_percentage: float = field(default=0.0, init=False, repr=False)

    def __post_init__(self):
        if not self.sector or not self.sector.strip():
            self.sector = DEFAULT_SECTOR

    # ------------------------------------------------------------------
    # DERIVED
    # ------------------------------------------------------------------

    @property
    def investment(self) -> float:
        return self.purchase_price * self.quantity

    @property
    def present_value(self) -> float:
        return self.cmp * self.quantity

    @property
    def gain_loss(self) -> float:
        return self.present_value - self.investment

    @property
    def gain_loss_percentage(self) -> float:
        if self.investment == 0:
            return 0.0
        return (self.gain_loss / self.investment) * 100.0

    @property
    def portfolio_percentage(self) -> float:
        """Share of total portfolio investment; set by assign_portfolio_percentages()"""
        return self._portfolio_percentage

    # ------------------------------------------------------------------
    # MUTATION
    # ------------------------------------------------------------------

    def apply_price(self, cmp: float, ts: Optional[datetime] = None) -> None:
        """Record a live market price; every derived value follows from it."""
        self.cmp = float(cmp)
        self.last_updated = ts or _utcnow()


def assign_portfolio_percentages(holdings: Iterable[Holding]) -> List[Holding]:
    """
    Weight every holding by its share of total investment.

    All weights are 0 when the total investment is 0.
    """
    holdings = list(holdings)
    total_investment = sum(h.investment for h in holdings)

    for holding in holdings:
        if total_investment == 0:
            holding._portfolio_percentage = 0.0
        else:
            holding._portfolio_percentage = (holding.investment / total_investment) * 100.0

    return holdings


def validate_portfolio_percentages(holdings: Iterable[Holding], tolerance: float = 0.01) -> bool:
    """True when weights sum to 100 (or to 0 for an empty / zero-investment portfolio)."""
    holdings = list(holdings)
    total = sum(h.portfolio_percentage for h in holdings)
    if abs(total - 100.0) <= tolerance:
        return True
    return total == 0 and sum(h.investment for h in holdings) == 0


def validate_holding(holding: Holding) -> List[str]:
    """Return a list of validation problems (empty when the holding is valid)."""
    problems: List[str] = []

    if not holding.id or not isinstance(holding.id, str):
        problems.append("Invalid or missing id")
    if not holding.particulars or not isinstance(holding.particulars, str):
        problems.append("Invalid or missing particulars")
    if holding.purchase_price < 0:
        problems.append("Invalid purchase_price: must be a non-negative number")
    if holding.quantity < 0:
        problems.append("Invalid quantity: must be a non-negative number")
    if holding.cmp < 0:
        problems.append("Invalid cmp: must be a non-negative number")
    if not holding.nse_code and not holding.bse_code:
        problems.append("Missing exchange code: need an NSE or BSE code")
    if not holding.sector:
        problems.append("Invalid or missing sector")
    if holding.pe_ratio is not None and not isinstance(holding.pe_ratio, (int, float)):
        problems.append("Invalid pe_ratio: must be a number or None")
    if holding.latest_earnings is not None and not isinstance(holding.latest_earnings, str):
        problems.append("Invalid latest_earnings: must be a string or None")

    return problems
