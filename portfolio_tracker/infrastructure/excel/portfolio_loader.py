"""
EXCEL — PORTFOLIO LOADER

Reads the first sheet of a portfolio workbook and turns it into holdings.

Only whole-file problems raise (missing file, unreadable workbook, nothing
in it). Anything wrong with an individual row is recorded as an
OperationalError and the row is skipped.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Sequence, Union

import pandas as pd

from portfolio_tracker.core.exceptions import (
    EmptyWorkbookError,
    PortfolioFileNotFoundError,
    WorkbookReadError,
)
from portfolio_tracker.domain.models import (
    DEFAULT_SECTOR,
    ErrorCode,
    ErrorSource,
    Holding,
    IngestionResult,
    OperationalError,
    validate_holding,
)
from portfolio_tracker.infrastructure.excel.column_mapping import (
    ColumnField,
    SectorDivider,
    SkippedRow,
    classify_row,
    find_header_row,
    row_is_blank,
)

logger = logging.getLogger(__name__)


def read_first_sheet(file_path: Union[str, Path]) -> List[List[Any]]:
    """Raw cell values of the first sheet, NaN replaced by None."""
    path = Path(file_path)
    if not path.exists():
        raise PortfolioFileNotFoundError(f"Excel file not found: {path}")

    try:
        with pd.ExcelFile(path, engine="openpyxl") as workbook:
            if not workbook.sheet_names:
                raise EmptyWorkbookError(f"Excel file contains no sheets: {path}")
            frame = workbook.parse(
                workbook.sheet_names[0],
                header=None,
                dtype=object,
            )
    except EmptyWorkbookError:
        raise
    except Exception as exc:
        raise WorkbookReadError(f"Failed to parse Excel file {path}: {exc}") from exc

    frame = frame.astype(object).where(pd.notna(frame), None)
    return [list(row) for row in frame.itertuples(index=False, name=None)]


def parse_portfolio_rows(rows: Sequence[Sequence[Any]]) -> IngestionResult:
    """
    Turn raw sheet rows into holdings.

    Sector divider rows ("Technology Sector") set the sector of the stock rows
    that follow them. Row numbers in errors are 1-based sheet rows.
    """
    numbered = [
        (row_number, row)
        for row_number, row in enumerate(rows, start=1)
        if not row_is_blank(row)
    ]
    if not numbered:
        raise EmptyWorkbookError("Excel file contains no data rows")

    header_position, columns = find_header_row([row for _, row in numbered])
    header_row_number = numbered[header_position][0]
    data_rows = numbered[header_position + 1:]
    if not data_rows:
        raise EmptyWorkbookError("Excel file contains no data rows")

    logger.info(f"📋 Excel header at row {header_row_number}, columns: {columns.describe()}")
    missing = columns.missing()
    if missing:
        logger.debug(f"Unmapped columns: {[c.value for c in missing]}")

    result = IngestionResult(total_rows=len(data_rows))

    if not columns.has(ColumnField.PARTICULARS):
        result.errors.append(OperationalError(
            source=ErrorSource.EXCEL,
            code=ErrorCode.MISSING_COLUMN,
            message="Required column not found: Particulars/Name",
            row=header_row_number,
        ))
        logger.warning("❌ No Particulars/Name column; no holdings loaded")
        return result

    current_sector = DEFAULT_SECTOR

    for row_number, row in data_rows:
        kind = classify_row(row, columns)

        if isinstance(kind, SectorDivider):
            current_sector = kind.label or DEFAULT_SECTOR
            logger.debug(f"Row {row_number}: sector '{current_sector}'")
            continue

        if isinstance(kind, SkippedRow):
            if kind.is_error:
                logger.warning(f"Row {row_number}: {kind.reason}")
                result.errors.append(OperationalError(
                    source=ErrorSource.EXCEL,
                    code=ErrorCode.ROW_PARSE,
                    message=f"Row {row_number}: {kind.reason}",
                    row=row_number,
                ))
            continue

        holding = Holding(
            particulars=kind.particulars,
            purchase_price=kind.purchase_price,
            quantity=kind.quantity,
            nse_code=kind.nse_code,
            bse_code=kind.bse_code,
            sector=kind.sector or current_sector,
            pe_ratio=kind.pe_ratio,
            latest_earnings=kind.latest_earnings,
        )

        problems = validate_holding(holding)
        if problems:
            result.errors.append(OperationalError(
                source=ErrorSource.EXCEL,
                code=ErrorCode.ROW_PARSE,
                message=f"Row {row_number}: invalid holding {kind.particulars}: {'; '.join(problems)}",
                row=row_number,
            ))
            continue

        result.holdings.append(holding)

    logger.info(
        f"✅ Parsed {result.valid_rows} holdings from {result.total_rows} rows "
        f"({result.invalid_rows} invalid)"
    )
    return result


def load_portfolio(file_path: Union[str, Path]) -> IngestionResult:
    logger.info(f"📂 Loading portfolio from {file_path}")
    return parse_portfolio_rows(read_first_sheet(file_path))
