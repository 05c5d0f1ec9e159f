"""
Yahoo Finance Quote Client
Current market prices for NSE/BSE listings, async-safe via thread offloading
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from decimal import Decimal
from typing import Dict, List, Optional

import pandas as pd
import yfinance as yf

from portfolio_tracker.core.exceptions import (
    ExternalServiceError,
    InvalidSymbolError,
    RateLimitedError,
)
from portfolio_tracker.infrastructure.cache.memory_cache import MISSING, MemoryCache
from portfolio_tracker.infrastructure.market_data.retry import Sleep, retry_with_backoff
from portfolio_tracker.infrastructure.market_data.symbols import is_valid_symbol, validate_symbol

logger = logging.getLogger(__name__)

PRICE_STEP = Decimal("0.01")


def quantize_price(value: float) -> float:
    # Rounded in decimal, so 2.675 becomes 2.68 rather than 2.67
    return float(Decimal(str(value)).quantize(PRICE_STEP))


class YahooQuoteClient:
    """
    Yahoo Finance price client.

    Prefers one batched download for all uncached symbols and falls back to
    per-symbol requests when the batch fails. Every network call is cached,
    retried with exponential backoff and bounded by a timeout.
    """

    SOURCE = "yahoo"
    CACHE_PREFIX = "price:"

    def __init__(
        self,
        cache: MemoryCache,
        cache_ttl_seconds: float = 120,
        max_retries: int = 2,
        initial_retry_delay: float = 1.0,
        timeout_seconds: float = 5.0,
        max_retry_delay: Optional[float] = 30.0,
        sleep: Sleep = asyncio.sleep,
    ):
        self.cache = cache
        self.cache_ttl_seconds = cache_ttl_seconds
        self.max_retries = max_retries
        self.initial_retry_delay = initial_retry_delay
        self.timeout_seconds = timeout_seconds
        self.max_retry_delay = max_retry_delay
        self._sleep = sleep
        # Served when the provider keeps rate limiting us
        self._last_good: Dict[str, float] = {}

    def _cache_key(self, symbol: str) -> str:
        return f"{self.CACHE_PREFIX}{symbol}"

    def _remember(self, symbol: str, price: float) -> None:
        self.cache.set(self._cache_key(symbol), price, self.cache_ttl_seconds)
        self._last_good[symbol] = price

    # ------------------------------------------------------------------
    # SINGLE SYMBOL
    # ------------------------------------------------------------------

    async def get_price(self, symbol: str) -> float:
        validate_symbol(symbol)

        cached = self.cache.get(self._cache_key(symbol), MISSING)
        if cached is not MISSING:
            return cached

        try:
            price = await retry_with_backoff(
                lambda: self._fetch_quote(symbol),
                max_retries=self.max_retries,
                initial_delay=self.initial_retry_delay,
                max_delay=self.max_retry_delay,
                description=f"Yahoo quote {symbol}",
                sleep=self._sleep,
            )
        except RateLimitedError:
            fallback = self._last_good.get(symbol)
            if fallback is None:
                raise
            logger.info(f"📦 Rate limited; using last good price for {symbol}: ₹{fallback}")
            return fallback

        self._remember(symbol, price)
        return price

    # ------------------------------------------------------------------
    # BATCH
    # ------------------------------------------------------------------

    async def get_batch_prices(self, symbols: List[str]) -> Dict[str, float]:
        """
        Prices for every symbol we could get one for. Missing symbols are
        simply absent from the result.
        """
        if not symbols:
            return {}

        valid: List[str] = []
        for symbol in symbols:
            if is_valid_symbol(symbol) and symbol not in valid:
                valid.append(symbol)

        prices: Dict[str, float] = {}
        uncached: List[str] = []
        for symbol in valid:
            cached = self.cache.get(self._cache_key(symbol), MISSING)
            if cached is not MISSING:
                prices[symbol] = cached
            else:
                uncached.append(symbol)

        if not uncached:
            return prices

        try:
            fetched = await self._fetch_batch_quotes(uncached)
        except Exception as exc:
            logger.warning(f"Batch quote failed, falling back to individual requests: {exc}")
            prices.update(await self._fetch_individually(uncached))
            return prices

        for symbol in uncached:
            price = fetched.get(symbol)
            if price is None:
                continue
            self._remember(symbol, price)
            prices[symbol] = price

        missing = len(uncached) - sum(1 for s in uncached if s in fetched)
        if missing:
            logger.warning(f"Yahoo batch returned no price for {missing} of {len(uncached)} symbols")

        return prices

    async def _fetch_individually(self, symbols: List[str]) -> Dict[str, float]:
        results = await asyncio.gather(
            *(self.get_price(symbol) for symbol in symbols),
            return_exceptions=True,
        )

        prices: Dict[str, float] = {}
        for symbol, result in zip(symbols, results):
            if isinstance(result, BaseException):
                logger.warning(f"Failed to get price for {symbol}: {result}")
                continue
            prices[symbol] = result
        return prices

    # ------------------------------------------------------------------
    # PROVIDER CALLS
    # ------------------------------------------------------------------

    async def _fetch_quote(self, symbol: str) -> float:
        try:
            hist = await asyncio.wait_for(
                asyncio.to_thread(self._download_history, symbol),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise ExternalServiceError(
                f"Timeout fetching price for symbol: {symbol}",
                source=self.SOURCE,
                symbol=symbol,
            )
        except Exception as exc:
            raise self._classify_error(exc, symbol)

        if hist is None or hist.empty or "Close" not in hist:
            raise InvalidSymbolError(f"Symbol not found: {symbol}", symbol=symbol)

        closes = hist["Close"].dropna()
        if closes.empty:
            raise InvalidSymbolError(f"Symbol not found: {symbol}", symbol=symbol)

        price = float(closes.iloc[-1])
        if price <= 0:
            raise ExternalServiceError(
                f"Unable to get price for symbol: {symbol}",
                source=self.SOURCE,
                symbol=symbol,
                transient=False,
            )
        return quantize_price(price)

    async def _fetch_batch_quotes(self, symbols: List[str]) -> Dict[str, float]:
        try:
            frame = await asyncio.wait_for(
                asyncio.to_thread(self._download_batch, symbols),
                timeout=self.timeout_seconds * 2,
            )
        except asyncio.TimeoutError:
            raise ExternalServiceError(
                f"Timeout fetching batch quote for {len(symbols)} symbols",
                source=self.SOURCE,
            )
        except Exception as exc:
            raise self._classify_error(exc, None)

        prices = self._extract_closes(frame, symbols)
        if not prices:
            raise ExternalServiceError(
                f"Batch quote returned no data for {len(symbols)} symbols",
                source=self.SOURCE,
            )
        return prices

    @staticmethod
    def _download_history(symbol: str) -> pd.DataFrame:
        # NSE listings often have no intraday bars; the last daily close is good enough
        return yf.Ticker(symbol).history(period="5d", interval="1d", auto_adjust=False)

    @staticmethod
    def _download_batch(symbols: List[str]) -> pd.DataFrame:
        return yf.download(
            tickers=symbols,
            period="5d",
            interval="1d",
            group_by="ticker",
            auto_adjust=False,
            progress=False,
            threads=False,
        )

    @staticmethod
    def _extract_closes(frame: Optional[pd.DataFrame], symbols: List[str]) -> Dict[str, float]:
        prices: Dict[str, float] = {}
        if frame is None or frame.empty:
            return prices

        for symbol in symbols:
            try:
                if isinstance(frame.columns, pd.MultiIndex):
                    if symbol not in frame.columns.get_level_values(0):
                        continue
                    closes = frame[symbol]["Close"]
                else:
                    if len(symbols) != 1 or "Close" not in frame.columns:
                        continue
                    closes = frame["Close"]
            except KeyError:
                continue

            closes = closes.dropna()
            if closes.empty:
                continue
            price = float(closes.iloc[-1])
            if price > 0:
                prices[symbol] = quantize_price(price)

        return prices

    def _classify_error(self, exc: Exception, symbol: Optional[str]) -> Exception:
        text = str(exc)
        lowered = text.lower()
        label = symbol or "batch"

        if type(exc).__name__ == "YFRateLimitError" or "too many requests" in lowered or "rate limit" in lowered:
            return RateLimitedError(
                f"Rate limit exceeded for symbol: {label}",
                source=self.SOURCE,
                symbol=symbol,
            )
        if symbol and ("not found" in lowered or "no data found" in lowered or "delisted" in lowered):
            return InvalidSymbolError(f"Symbol not found: {symbol}", symbol=symbol)
        return ExternalServiceError(
            f"Failed to fetch price for {label}: {text}",
            source=self.SOURCE,
            symbol=symbol,
        )

    # ------------------------------------------------------------------
    # MAINTENANCE
    # ------------------------------------------------------------------

    def invalidate_cache(self) -> int:
        """Clear cached prices (the last-good fallback is kept)."""
        return self.cache.delete_prefix(self.CACHE_PREFIX)

    def get_stats(self) -> Dict[str, object]:
        return {
            "cache": asdict(self.cache.stats()),
            "last_good_prices": len(self._last_good),
        }
