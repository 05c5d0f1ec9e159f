"""
Portfolio facade.

Owns the shared cache, both market data clients and the enrichment service,
and decides when the spreadsheet is re-read and when a recent enriched
snapshot can be served instead of hitting the providers again.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Union

from portfolio_tracker.config import Settings, settings
from portfolio_tracker.core.exceptions import PortfolioFileNotFoundError
from portfolio_tracker.domain.models import EnrichmentResult, Holding, IngestionResult
from portfolio_tracker.domain.schemas.portfolio import PortfolioResponseSchema
from portfolio_tracker.infrastructure.cache.memory_cache import MemoryCache
from portfolio_tracker.infrastructure.excel.portfolio_loader import load_portfolio
from portfolio_tracker.infrastructure.market_data.google_finance_client import GoogleFinanceClient
from portfolio_tracker.infrastructure.market_data.request_queue import BoundedRequestQueue
from portfolio_tracker.infrastructure.market_data.types import FundamentalsClient, PriceQuoteClient
from portfolio_tracker.infrastructure.market_data.yahoo_quote_client import YahooQuoteClient
from portfolio_tracker.services.enrichment_service import EnrichmentService

logger = logging.getLogger(__name__)


class PortfolioState(str, Enum):
    EMPTY = "empty"      # nothing loaded yet
    LOADED = "loaded"    # spreadsheet loaded recently
    STALE = "stale"      # spreadsheet older than the reload interval


@dataclass
class _Snapshot:
    result: EnrichmentResult
    created_at: float
    last_updated: datetime


class PortfolioService:
    def __init__(
        self,
        excel_file_path: Optional[Union[str, Path]],
        price_client: PriceQuoteClient,
        fundamentals_client: FundamentalsClient,
        reload_interval: float = 300,
        snapshot_ttl: float = 30,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.excel_file_path = excel_file_path
        self.price_client = price_client
        self.fundamentals_client = fundamentals_client
        self.enrichment = EnrichmentService(price_client, fundamentals_client)
        self.reload_interval = reload_interval
        self.snapshot_ttl = snapshot_ttl
        self._clock = clock

        self._ingestion: Optional[IngestionResult] = None
        self._loaded_at: Optional[float] = None
        self._snapshot: Optional[_Snapshot] = None

    @classmethod
    def from_settings(
        cls,
        config: Settings = settings,
        excel_file_path: Optional[Union[str, Path]] = None,
    ) -> "PortfolioService":
        """Wire the production clients around one shared cache."""
        cache = MemoryCache()

        price_client = YahooQuoteClient(
            cache,
            cache_ttl_seconds=config.CACHE_TTL_CMP,
            max_retries=config.YAHOO_MAX_RETRIES,
            initial_retry_delay=config.YAHOO_INITIAL_RETRY_DELAY,
            timeout_seconds=config.YAHOO_TIMEOUT_SECONDS,
            max_retry_delay=config.RETRY_MAX_DELAY_SECONDS,
        )
        fundamentals_client = GoogleFinanceClient(
            cache,
            queue=BoundedRequestQueue(
                max_concurrent=config.GOOGLE_MAX_CONCURRENT,
                min_start_interval=config.GOOGLE_MIN_REQUEST_INTERVAL,
            ),
            cache_ttl_seconds=config.CACHE_TTL_FINANCIALS,
            max_retries=config.GOOGLE_MAX_RETRIES,
            initial_retry_delay=config.GOOGLE_INITIAL_RETRY_DELAY,
            timeout_seconds=config.GOOGLE_TIMEOUT_SECONDS,
            max_retry_delay=config.RETRY_MAX_DELAY_SECONDS,
        )

        return cls(
            excel_file_path or config.EXCEL_FILE_PATH,
            price_client,
            fundamentals_client,
            reload_interval=config.PORTFOLIO_RELOAD_SECONDS,
            snapshot_ttl=config.ENRICHED_SNAPSHOT_TTL_SECONDS,
        )

    # ------------------------------------------------------------------
    # STATE
    # ------------------------------------------------------------------

    @property
    def state(self) -> PortfolioState:
        if self._ingestion is None or self._loaded_at is None:
            return PortfolioState.EMPTY
        if self._clock() - self._loaded_at >= self.reload_interval:
            return PortfolioState.STALE
        return PortfolioState.LOADED

    @property
    def holdings(self) -> List[Holding]:
        return list(self._ingestion.holdings) if self._ingestion else []

    # ------------------------------------------------------------------
    # PIPELINE PASS-THROUGHS
    # ------------------------------------------------------------------

    async def ingest(self, file_path: Union[str, Path]) -> IngestionResult:
        # pandas/openpyxl are blocking
        return await asyncio.to_thread(load_portfolio, file_path)

    async def enrich(self, holdings: List[Holding]) -> EnrichmentResult:
        return await self.enrichment.enrich(holdings)

    def invalidate_price_cache(self) -> int:
        removed = self.price_client.invalidate_cache()
        logger.info(f"🧹 Cleared {removed} cached prices")
        return removed

    def invalidate_fundamentals_cache(self) -> int:
        removed = self.fundamentals_client.invalidate_cache()
        logger.info(f"🧹 Cleared {removed} cached fundamentals")
        return removed

    # ------------------------------------------------------------------
    # READ PATH
    # ------------------------------------------------------------------

    async def get_portfolio(self, refreshed: bool = False) -> PortfolioResponseSchema:
        if self.state is not PortfolioState.LOADED:
            await self._reload()

        snapshot = self._snapshot
        if snapshot is not None and self._clock() - snapshot.created_at < self.snapshot_ttl:
            logger.debug("Serving cached enriched snapshot")
            return PortfolioResponseSchema.from_result(
                snapshot.result,
                last_updated=snapshot.last_updated,
                cached=True,
                refreshed=refreshed,
            )

        result = await self._enrich_loaded()
        last_updated = datetime.now(tz=timezone.utc)

        # A snapshot without a single live price is not worth reusing
        if any(h.cmp > 0 for h in result.holdings):
            self._snapshot = _Snapshot(
                result=result,
                created_at=self._clock(),
                last_updated=last_updated,
            )

        return PortfolioResponseSchema.from_result(
            result,
            last_updated=last_updated,
            cached=False,
            refreshed=refreshed,
        )

    async def refresh_portfolio(self) -> PortfolioResponseSchema:
        """Drop every cached value and rebuild from the spreadsheet."""
        logger.info("🔄 Refreshing portfolio")
        self.invalidate_price_cache()
        self.invalidate_fundamentals_cache()
        self._snapshot = None
        self._ingestion = None
        self._loaded_at = None
        return await self.get_portfolio(refreshed=True)

    async def close(self) -> None:
        await self.fundamentals_client.close()

    # ------------------------------------------------------------------
    # INTERNALS
    # ------------------------------------------------------------------

    async def _reload(self) -> None:
        if not self.excel_file_path:
            raise PortfolioFileNotFoundError("No portfolio file configured (set EXCEL_FILE_PATH)")

        ingestion = await self.ingest(self.excel_file_path)

        self._ingestion = ingestion
        self._loaded_at = self._clock()
        self._snapshot = None
        logger.info(
            f"📂 Portfolio loaded | holdings={ingestion.valid_rows} "
            f"row_errors={ingestion.invalid_rows}"
        )

    async def _enrich_loaded(self) -> EnrichmentResult:
        ingestion = self._ingestion
        result = await self.enrich(list(ingestion.holdings))
        result.errors = list(ingestion.errors) + result.errors
        return result
