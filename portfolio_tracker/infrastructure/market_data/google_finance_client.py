"""
Google Finance Fundamentals Client
Scrapes P/E ratio and latest earnings from the public quote page

A missing value on the page is expected (many small caps have no P/E) and
is returned - and cached - as None rather than raised.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from typing import Dict, Iterable, List, Optional

import httpx
from bs4 import BeautifulSoup

from portfolio_tracker.core.exceptions import (
    ExternalServiceError,
    InvalidSymbolError,
    RateLimitedError,
)
from portfolio_tracker.domain.models import ErrorCode, ErrorSource, OperationalError
from portfolio_tracker.infrastructure.cache.memory_cache import MISSING, MemoryCache
from portfolio_tracker.infrastructure.market_data.request_queue import BoundedRequestQueue
from portfolio_tracker.infrastructure.market_data.retry import Sleep, retry_with_backoff
from portfolio_tracker.infrastructure.market_data.symbols import (
    is_valid_symbol,
    to_google_symbol,
    validate_symbol,
)
from portfolio_tracker.infrastructure.market_data.types import FinancialData

logger = logging.getLogger(__name__)

PE_LABELS = ("P/E ratio", "PE ratio")
EARNINGS_ROW_LABELS = ("Earnings", "EPS")
EARNINGS_FALLBACK_LABELS = ("Latest earnings", "Earnings date")
EMPTY_VALUES = {"", "-", "—", "--"}

ROW_SELECTOR = 'div[class*="gyFHrc"]'
LABEL_SELECTOR = '[class*="mfs7Fc"]'
VALUE_SELECTOR = 'div[class*="P6K39c"]'


def _parse_number(text: Optional[str]) -> Optional[float]:
    if text is None:
        return None
    cleaned = text.replace(",", "").strip()
    try:
        return float(cleaned)
    except ValueError:
        return None


def _row_label(row) -> str:
    # Label cell only; the row also carries a tooltip that mentions other metrics
    label = row.select_one(LABEL_SELECTOR)
    if label is None:
        label = row.find(True)
    if label is None:
        return ""
    return label.get_text(" ", strip=True)


def _label_value(
    soup: BeautifulSoup,
    row_labels: Iterable[str],
    exclude: Iterable[str] = (),
) -> Optional[str]:
    """Value next to the first stats row whose label mentions one of `row_labels`."""
    row_labels = tuple(row_labels)
    exclude = tuple(exclude)
    for row in soup.select(ROW_SELECTOR):
        label_text = _row_label(row)
        if not any(label in label_text for label in row_labels):
            continue
        if any(label in label_text for label in exclude):
            continue

        value = row.select_one(VALUE_SELECTOR)
        if value is None:
            value = row.find_next_sibling()
        if value is None:
            continue
        text = value.get_text(strip=True)
        if text not in EMPTY_VALUES:
            return text
    return None


def _exact_label_value(soup: BeautifulSoup, labels: Iterable[str], contains: bool = False) -> Optional[str]:
    """Fallback layout: a bare <div>label</div> whose parent's last <div> holds the value."""
    labels = tuple(labels)
    for div in soup.find_all("div"):
        if div.find("div") is not None:
            # Only leaf label cells; wrappers contain every label on the page
            continue
        text = div.get_text(strip=True)
        matched = (
            any(label in text for label in labels) if contains
            else text in labels
        )
        if not matched or div.parent is None:
            continue

        candidates = div.parent.find_all("div")
        if not candidates:
            continue
        value = candidates[-1].get_text(strip=True)
        if value and value not in EMPTY_VALUES and value != text:
            return value
    return None


def extract_pe_ratio(html: str) -> Optional[float]:
    soup = BeautifulSoup(html, "html.parser")

    pe = _parse_number(_label_value(soup, PE_LABELS))
    if pe is None:
        pe = _parse_number(_exact_label_value(soup, PE_LABELS))
    return pe


def extract_latest_earnings(html: str) -> Optional[str]:
    soup = BeautifulSoup(html, "html.parser")

    earnings = _label_value(soup, EARNINGS_ROW_LABELS, exclude=PE_LABELS)
    if earnings is None:
        earnings = _exact_label_value(soup, EARNINGS_FALLBACK_LABELS, contains=True)
    return earnings.strip() if earnings else None


class GoogleFinanceClient:
    """
    Google Finance fundamentals client.

    Every HTTP attempt goes through a BoundedRequestQueue so a large
    portfolio never hammers the site with more than `max_concurrent`
    requests at a time.
    """

    SOURCE = "google"
    BASE_URL = "https://www.google.com/finance/quote"
    PE_PREFIX = "pe:"
    EARNINGS_PREFIX = "earnings:"

    HEADERS = {
        "User-Agent": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
        ),
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
    }

    def __init__(
        self,
        cache: MemoryCache,
        queue: Optional[BoundedRequestQueue] = None,
        cache_ttl_seconds: float = 3600,
        max_retries: int = 2,
        initial_retry_delay: float = 0.5,
        timeout_seconds: float = 3.0,
        max_retry_delay: Optional[float] = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.cache = cache
        self.queue = queue or BoundedRequestQueue(max_concurrent=5, min_start_interval=0.05)
        self.cache_ttl_seconds = cache_ttl_seconds
        self.max_retries = max_retries
        self.initial_retry_delay = initial_retry_delay
        self.timeout_seconds = timeout_seconds
        self.max_retry_delay = max_retry_delay
        self._sleep = sleep
        self.session: Optional[httpx.AsyncClient] = http_client
        self._owns_session = http_client is None

    async def _get_session(self) -> httpx.AsyncClient:
        if self.session is None:
            self.session = httpx.AsyncClient(
                headers=self.HEADERS,
                timeout=self.timeout_seconds,
                follow_redirects=True,
            )
            self._owns_session = True
        return self.session

    async def close(self) -> None:
        if self.session is not None and self._owns_session:
            await self.session.aclose()
        self.session = None

    # ------------------------------------------------------------------
    # SINGLE SYMBOL
    # ------------------------------------------------------------------

    async def get_pe_ratio(self, symbol: str) -> Optional[float]:
        return await self._get_cached_field(symbol, self.PE_PREFIX, extract_pe_ratio, "P/E ratio")

    async def get_latest_earnings(self, symbol: str) -> Optional[str]:
        return await self._get_cached_field(
            symbol, self.EARNINGS_PREFIX, extract_latest_earnings, "earnings"
        )

    async def _get_cached_field(self, symbol: str, prefix: str, extractor, label: str):
        validate_symbol(symbol)

        cache_key = f"{prefix}{symbol}"
        cached = self.cache.get(cache_key, MISSING)
        if cached is not MISSING:
            return cached

        try:
            html = await retry_with_backoff(
                lambda: self.queue.submit(lambda: self._fetch_page(symbol)),
                max_retries=self.max_retries,
                initial_delay=self.initial_retry_delay,
                max_delay=self.max_retry_delay,
                description=f"Google {label} {symbol}",
                sleep=self._sleep,
            )
        except InvalidSymbolError:
            # Page does not exist: same as "no data"
            logger.debug(f"Google Finance has no page for {symbol}")
            html = None

        value = extractor(html) if html else None
        if value is None:
            logger.debug(f"No {label} on Google Finance for {symbol}")

        # None is cached too: missing fundamentals do not change quickly either
        self.cache.set(cache_key, value, self.cache_ttl_seconds)
        return value

    # ------------------------------------------------------------------
    # BATCH
    # ------------------------------------------------------------------

    async def get_batch_financials(
        self,
        symbols: List[str],
        errors: Optional[List[OperationalError]] = None,
    ) -> Dict[str, FinancialData]:
        """
        P/E and earnings for each symbol. Symbols whose fetch failed are left
        out and reported through `errors`.
        """
        if not symbols:
            return {}

        valid: List[str] = []
        for symbol in symbols:
            if is_valid_symbol(symbol) and symbol not in valid:
                valid.append(symbol)

        results = await asyncio.gather(
            *(self._get_financial_data(symbol) for symbol in valid),
            return_exceptions=True,
        )

        financials: Dict[str, FinancialData] = {}
        for symbol, result in zip(valid, results):
            if isinstance(result, BaseException):
                logger.warning(f"Failed to fetch financials for {symbol}: {result}")
                if errors is not None:
                    errors.append(self._to_operational_error(symbol, result))
                continue
            financials[symbol] = result

        return financials

    async def _get_financial_data(self, symbol: str) -> FinancialData:
        pe_ratio, latest_earnings = await asyncio.gather(
            self.get_pe_ratio(symbol),
            self.get_latest_earnings(symbol),
        )
        return FinancialData(pe_ratio=pe_ratio, latest_earnings=latest_earnings)

    def _to_operational_error(self, symbol: str, exc: BaseException) -> OperationalError:
        if isinstance(exc, RateLimitedError):
            code = ErrorCode.RATE_LIMITED
        elif isinstance(exc, InvalidSymbolError):
            code = ErrorCode.INVALID_SYMBOL
        else:
            code = ErrorCode.EXTERNAL_SERVICE
        return OperationalError(
            source=ErrorSource.GOOGLE,
            code=code,
            message=f"Failed to fetch financial metrics for {symbol}: {exc}",
            symbol=symbol,
        )

    # ------------------------------------------------------------------
    # PROVIDER CALL
    # ------------------------------------------------------------------

    async def _fetch_page(self, symbol: str) -> str:
        url = f"{self.BASE_URL}/{to_google_symbol(symbol)}"
        session = await self._get_session()

        try:
            response = await session.get(url, timeout=self.timeout_seconds)
        except httpx.TimeoutException:
            raise ExternalServiceError(
                f"Timeout fetching Google Finance page for symbol: {symbol}",
                source=self.SOURCE,
                symbol=symbol,
            )
        except httpx.TransportError as exc:
            raise ExternalServiceError(
                f"Failed to reach Google Finance for {symbol}: {exc}",
                source=self.SOURCE,
                symbol=symbol,
            )

        status = response.status_code
        if status == 200:
            return response.text
        if status == 404:
            raise InvalidSymbolError(f"Symbol not found: {symbol}", symbol=symbol)
        if status == 429:
            raise RateLimitedError(
                f"Rate limit exceeded for symbol: {symbol}",
                source=self.SOURCE,
                symbol=symbol,
                retry_after=_parse_number(response.headers.get("Retry-After")),
            )
        raise ExternalServiceError(
            f"HTTP error {status} for symbol: {symbol}",
            source=self.SOURCE,
            symbol=symbol,
            status_code=status,
            transient=status >= 500,
        )

    # ------------------------------------------------------------------
    # MAINTENANCE
    # ------------------------------------------------------------------

    def invalidate_cache(self) -> int:
        return (
            self.cache.delete_prefix(self.PE_PREFIX)
            + self.cache.delete_prefix(self.EARNINGS_PREFIX)
        )

    def get_stats(self) -> Dict[str, object]:
        return {
            "cache": asdict(self.cache.stats()),
            "queue": asdict(self.queue.stats()),
        }
