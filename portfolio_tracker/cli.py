"""
Command line entry point: load the portfolio spreadsheet, enrich it with
live market data and print sector summaries (or the full JSON payload).
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from portfolio_tracker.config import settings
from portfolio_tracker.core.exceptions import (
    EmptyWorkbookError,
    PortfolioFileNotFoundError,
    WorkbookReadError,
)
from portfolio_tracker.core.logging import get_logger, setup_logging
from portfolio_tracker.domain.schemas.portfolio import PortfolioResponseSchema
from portfolio_tracker.services.portfolio_service import PortfolioService

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="portfolio-tracker",
        description="Enrich an Excel stock portfolio with live prices and fundamentals",
    )
    parser.add_argument("--file", type=str, default=None, help="Portfolio workbook (defaults to EXCEL_FILE_PATH)")
    parser.add_argument("--refresh", action="store_true", help="Ignore cached prices and fundamentals")
    parser.add_argument("--json", action="store_true", help="Print the full portfolio as JSON")
    parser.add_argument("--log-level", type=str, default=None, help="Override LOG_LEVEL")
    return parser


def format_summary(response: PortfolioResponseSchema) -> str:
    lines = []
    for group in response.sectors:
        s = group.summary
        lines.append(
            f"{s.sector:<28} {s.holdings_count:>3} holdings  "
            f"invested ₹{s.total_investment:>12,.2f}  "
            f"value ₹{s.total_present_value:>12,.2f}  "
            f"P&L ₹{s.total_gain_loss:>11,.2f} ({s.gain_loss_percentage:+.2f}%)"
        )

    t = response.totals
    lines.append("-" * 100)
    lines.append(
        f"{'TOTAL':<28} {t.holdings_count:>3} holdings  "
        f"invested ₹{t.total_investment:>12,.2f}  "
        f"value ₹{t.total_present_value:>12,.2f}  "
        f"P&L ₹{t.total_gain_loss:>11,.2f} ({t.total_gain_loss_percentage:+.2f}%)"
    )

    if response.errors:
        lines.append("")
        lines.append(f"⚠️  {len(response.errors)} warnings:")
        for error in response.errors:
            lines.append(f"  [{error.source}/{error.code}] {error.message}")

    return "\n".join(lines)


async def run(args: argparse.Namespace) -> PortfolioResponseSchema:
    service = PortfolioService.from_settings(settings, excel_file_path=args.file)
    try:
        if args.refresh:
            return await service.refresh_portfolio()
        return await service.get_portfolio()
    finally:
        await service.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    # stdout is reserved for the report itself
    setup_logging(args.log_level or settings.LOG_LEVEL, stream=sys.stderr)

    try:
        response = asyncio.run(run(args))
    except (PortfolioFileNotFoundError, EmptyWorkbookError, WorkbookReadError) as exc:
        logger.error(f"❌ {exc}")
        return 1

    if args.json:
        print(response.model_dump_json(indent=2))
    else:
        print(format_summary(response))
    return 0


if __name__ == "__main__":
    sys.exit(main())
