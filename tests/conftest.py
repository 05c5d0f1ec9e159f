from pathlib import Path
from typing import Iterable, Sequence

import pytest
from openpyxl import Workbook


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Stands in for asyncio.sleep; records requested delays without waiting."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def sleeps():
    return RecordingSleep()


@pytest.fixture()
def write_workbook(tmp_path):
    def _write(rows: Iterable[Sequence], name: str = "portfolio.xlsx") -> Path:
        wb = Workbook()
        ws = wb.active
        ws.title = "Portfolio"
        for row in rows:
            ws.append(list(row))
        path = tmp_path / name
        wb.save(path)
        return path

    return _write


PORTFOLIO_ROWS = [
    ["No", "Particulars", "Purchase Price", "Qty", "NSE/BSE", "P/E", "Latest Earnings"],
    [None, "Financial Sector", None, None, None, None, None],
    [1, "ICICI Bank", 700, 10, "ICICIBANK", 18.5, "Q3 FY24"],
    [2, "Bajaj Housing", 130, 50, 544252, "#N/A", "-"],
    [None, "Technology Sector", None, None, None, None, None],
    [3, "Infosys", 1400, 5, "INFY/500209", None, None],
    [4, "Happiest Minds", 900, 8, 543237, 45, "Q2 FY24"],
]


@pytest.fixture()
def portfolio_rows():
    return [list(row) for row in PORTFOLIO_ROWS]
