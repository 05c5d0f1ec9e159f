import asyncio
import logging
from typing import Dict, List, Optional

from portfolio_tracker.domain.models import (
    EnrichmentResult,
    ErrorCode,
    ErrorSource,
    Holding,
    OperationalError,
    assign_portfolio_percentages,
    summarize_sectors,
)
from portfolio_tracker.infrastructure.market_data.symbols import bse_symbol, nse_symbol
from portfolio_tracker.infrastructure.market_data.types import (
    FinancialData,
    FundamentalsClient,
    PriceQuoteClient,
)
from portfolio_tracker.services.bse_nse_registry import get_nse_from_bse

logger = logging.getLogger(__name__)


def resolve_yahoo_symbol(holding: Holding) -> Optional[str]:
    """
    Live-price symbol for a holding.

    NSE code → TICKER.NS; BSE-only code with a known NSE listing → TICKER.NS;
    any other BSE code → CODE.BO; no code at all → None.
    """
    if holding.nse_code:
        return nse_symbol(holding.nse_code)

    if holding.bse_code:
        mapped = get_nse_from_bse(holding.bse_code)
        if mapped:
            return nse_symbol(mapped)
        return bse_symbol(holding.bse_code)

    return None


class EnrichmentService:
    """
    Attaches live prices and fundamentals to holdings.

    Never raises for provider trouble: whatever could be fetched is applied
    and everything else is reported as an OperationalError.
    """

    def __init__(self, price_client: PriceQuoteClient, fundamentals_client: FundamentalsClient):
        self.price_client = price_client
        self.fundamentals_client = fundamentals_client

    async def enrich(self, holdings: List[Holding]) -> EnrichmentResult:
        if not isinstance(holdings, list):
            logger.error(f"Enrichment called with {type(holdings).__name__}, expected a list")
            return EnrichmentResult(errors=[OperationalError(
                source=ErrorSource.SYSTEM,
                code=ErrorCode.INVALID_INPUT,
                message="Holdings must be a list",
            )])

        result = EnrichmentResult(holdings=holdings)
        if not holdings:
            return result

        logger.info(f"🔍 Enriching {len(holdings)} holdings")

        # ------------------------------------------------------------
        # Resolve symbols
        # ------------------------------------------------------------
        symbol_by_id: Dict[str, str] = {}
        symbols: List[str] = []

        for holding in holdings:
            symbol = resolve_yahoo_symbol(holding)
            if symbol is None:
                result.errors.append(OperationalError(
                    source=ErrorSource.SYSTEM,
                    code=ErrorCode.MISSING_PRICE,
                    message=f"No NSE or BSE code for {holding.particulars}",
                ))
                continue
            symbol_by_id[holding.id] = symbol
            if symbol not in symbols:
                symbols.append(symbol)

        # ------------------------------------------------------------
        # Fetch prices and fundamentals concurrently
        # ------------------------------------------------------------
        prices, financials = await asyncio.gather(
            self._fetch_prices(symbols, result.errors),
            self._fetch_financials(symbols, result.errors),
        )

        # ------------------------------------------------------------
        # Apply
        # ------------------------------------------------------------
        for holding in holdings:
            symbol = symbol_by_id.get(holding.id)
            if symbol is None:
                continue

            price = prices.get(symbol)
            if price is not None:
                holding.apply_price(price)
            else:
                result.errors.append(OperationalError(
                    source=ErrorSource.YAHOO,
                    code=ErrorCode.MISSING_PRICE,
                    message=f"No live price for {holding.particulars} ({symbol})",
                    symbol=symbol,
                ))

            data = financials.get(symbol)
            if data is not None:
                if data.pe_ratio is not None:
                    holding.pe_ratio = data.pe_ratio
                if data.latest_earnings is not None:
                    holding.latest_earnings = data.latest_earnings

        assign_portfolio_percentages(holdings)
        result.sectors = summarize_sectors(holdings)

        totals = result.totals
        logger.info(
            f"✅ Enrichment done | prices={len(prices)}/{len(symbols)} "
            f"value=₹{totals.total_present_value:.2f} errors={len(result.errors)}"
        )
        return result

    # ------------------------------------------------------------------
    # PROVIDER FAN-OUT
    # ------------------------------------------------------------------

    async def _fetch_prices(
        self,
        symbols: List[str],
        errors: List[OperationalError],
    ) -> Dict[str, float]:
        if not symbols:
            return {}
        try:
            return await self.price_client.get_batch_prices(symbols)
        except Exception as exc:
            logger.warning(f"Price fetch failed: {exc}")
            errors.append(OperationalError(
                source=ErrorSource.YAHOO,
                code=ErrorCode.EXTERNAL_SERVICE,
                message=f"Failed to fetch prices: {exc}",
            ))
            return {}

    async def _fetch_financials(
        self,
        symbols: List[str],
        errors: List[OperationalError],
    ) -> Dict[str, FinancialData]:
        if not symbols:
            return {}
        try:
            return await self.fundamentals_client.get_batch_financials(symbols, errors=errors)
        except Exception as exc:
            logger.warning(f"Fundamentals fetch failed: {exc}")
            errors.append(OperationalError(
                source=ErrorSource.GOOGLE,
                code=ErrorCode.EXTERNAL_SERVICE,
                message=f"Failed to fetch financial metrics: {exc}",
            ))
            return {}
