import pytest
from openpyxl import Workbook

from portfolio_tracker.core.exceptions import (
    EmptyWorkbookError,
    PortfolioFileNotFoundError,
    WorkbookReadError,
)
from portfolio_tracker.domain.models import DEFAULT_SECTOR, ErrorCode, ErrorSource
from portfolio_tracker.infrastructure.excel.portfolio_loader import (
    load_portfolio,
    parse_portfolio_rows,
)


def test_divider_sets_sector_for_following_stock(write_workbook):
    path = write_workbook([
        ["No", "Particulars", "Purchase Price", "Qty", "NSE/BSE"],
        [None, "Technology Sector", None, None, None],
        [1, "Acme", 50, 4, "ACME"],
    ])

    result = load_portfolio(path)

    assert len(result.holdings) == 1
    holding = result.holdings[0]
    assert holding.particulars == "Acme"
    assert holding.sector == "Technology"
    assert holding.investment == 200
    assert holding.nse_code == "ACME"
    assert holding.bse_code is None
    assert result.errors == []


def test_full_sheet(write_workbook, portfolio_rows):
    result = load_portfolio(write_workbook(portfolio_rows))

    assert result.total_rows == 6
    assert result.valid_rows == 4
    assert result.invalid_rows == 0

    by_name = {h.particulars: h for h in result.holdings}
    assert by_name["ICICI Bank"].sector == "Financial"
    assert by_name["ICICI Bank"].pe_ratio == 18.5
    assert by_name["ICICI Bank"].latest_earnings == "Q3 FY24"

    bajaj = by_name["Bajaj Housing"]
    assert (bajaj.nse_code, bajaj.bse_code) == ("", "544252")
    assert bajaj.pe_ratio is None
    assert bajaj.latest_earnings is None

    infy = by_name["Infosys"]
    assert infy.sector == "Technology"
    assert (infy.nse_code, infy.bse_code) == ("INFY", "500209")

    assert by_name["Happiest Minds"].pe_ratio == 45.0


def test_stocks_before_any_divider_are_uncategorized():
    result = parse_portfolio_rows([
        ["Particulars", "Buy Price", "Quantity", "Symbol"],
        ["Acme", 10, 1, "ACME"],
    ])

    assert result.holdings[0].sector == DEFAULT_SECTOR


def test_bad_rows_become_errors_with_row_numbers():
    result = parse_portfolio_rows([
        ["No", "Particulars", "Purchase Price", "Qty", "NSE/BSE"],
        [1, "Good", 10, 1, "GOOD"],
        [2, "No Price", None, 1, "NOPRICE"],
        [None, None, None, None, None],
        [3, "Bad Qty", 10, "lots", "BADQTY"],
        [None, None, 5, 1, "ORPHAN"],
    ])

    assert [h.particulars for h in result.holdings] == ["Good"]
    assert result.total_rows == 4
    assert [e.row for e in result.errors] == [3, 5]
    assert all(e.source == ErrorSource.EXCEL for e in result.errors)
    assert all(e.code == ErrorCode.ROW_PARSE for e in result.errors)
    assert "No Price" in result.errors[0].message


def test_missing_name_column_is_reported():
    result = parse_portfolio_rows([
        ["Purchase Price", "Qty", "NSE/BSE"],
        [10, 1, "ACME"],
    ])

    assert result.holdings == []
    assert len(result.errors) == 1
    assert result.errors[0].code == ErrorCode.MISSING_COLUMN


def test_header_only_sheet_is_empty():
    with pytest.raises(EmptyWorkbookError):
        parse_portfolio_rows([["No", "Particulars", "Purchase Price"]])


def test_blank_sheet_is_empty(tmp_path):
    path = tmp_path / "blank.xlsx"
    Workbook().save(path)

    with pytest.raises(EmptyWorkbookError):
        load_portfolio(path)


def test_missing_file(tmp_path):
    with pytest.raises(PortfolioFileNotFoundError):
        load_portfolio(tmp_path / "nope.xlsx")

    # still a FileNotFoundError for callers that only know the builtin
    with pytest.raises(FileNotFoundError):
        load_portfolio(tmp_path / "nope.xlsx")


def test_unreadable_workbook(tmp_path):
    path = tmp_path / "corrupt.xlsx"
    path.write_bytes(b"this is not a zip archive")

    with pytest.raises(WorkbookReadError):
        load_portfolio(path)
