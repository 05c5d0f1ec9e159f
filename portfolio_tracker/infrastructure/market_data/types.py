"""
Market data client protocols for type hints.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol

from portfolio_tracker.domain.models import OperationalError


@dataclass(frozen=True)
class FinancialData:
    pe_ratio: Optional[float]
    latest_earnings: Optional[str]


class PriceQuoteClient(Protocol):
    async def get_price(self, symbol: str) -> float:
        ...

    async def get_batch_prices(self, symbols: List[str]) -> Dict[str, float]:
        ...

    def invalidate_cache(self) -> int:
        ...


class FundamentalsClient(Protocol):
    async def get_pe_ratio(self, symbol: str) -> Optional[float]:
        ...

    async def get_latest_earnings(self, symbol: str) -> Optional[str]:
        ...

    async def get_batch_financials(
        self,
        symbols: List[str],
        errors: Optional[List[OperationalError]] = None,
    ) -> Dict[str, FinancialData]:
        ...

    def invalidate_cache(self) -> int:
        ...

    async def close(self) -> None:
        ...
