import pytest

from portfolio_tracker.domain.models import (
    DEFAULT_SECTOR,
    Holding,
    PortfolioTotals,
    assign_portfolio_percentages,
    group_by_sector,
    summarize_sectors,
    validate_holding,
    validate_portfolio_percentages,
)


def _holding(name, price, qty, cmp=0.0, sector="Tech", code="ABC"):
    h = Holding(particulars=name, purchase_price=price, quantity=qty, nse_code=code, sector=sector)
    if cmp:
        h.apply_price(cmp)
    return h


def test_derived_values_follow_price():
    h = _holding("Acme", 100, 10, cmp=120)

    assert h.investment == 1000
    assert h.present_value == 1200
    assert h.gain_loss == 200
    assert h.gain_loss_percentage == pytest.approx(20.0)

    h.apply_price(90)
    assert h.present_value == 900
    assert h.gain_loss == -100
    assert h.gain_loss_percentage == pytest.approx(-10.0)


def test_zero_investment_has_zero_gain_percentage():
    h = _holding("Gift", 0, 10, cmp=50)
    assert h.investment == 0
    assert h.gain_loss == 500
    assert h.gain_loss_percentage == 0.0


def test_unpriced_holding_shows_full_loss():
    h = _holding("Acme", 100, 10)
    assert h.cmp == 0.0
    assert h.present_value == 0.0
    assert h.gain_loss == -1000


def test_portfolio_percentages_sum_to_100():
    holdings = [
        _holding("A", 100, 3),
        _holding("B", 250, 7),
        _holding("C", 33.3, 11),
    ]
    assign_portfolio_percentages(holdings)

    assert sum(h.portfolio_percentage for h in holdings) == pytest.approx(100.0, abs=0.01)
    assert validate_portfolio_percentages(holdings)
    assert holdings[0].portfolio_percentage == pytest.approx(300 / (300 + 1750 + 366.3) * 100)


def test_portfolio_percentages_zero_when_nothing_invested():
    holdings = [_holding("A", 0, 3), _holding("B", 10, 0)]
    assign_portfolio_percentages(holdings)

    assert all(h.portfolio_percentage == 0.0 for h in holdings)
    assert validate_portfolio_percentages(holdings)


def test_portfolio_percentage_is_read_only():
    h = _holding("A", 10, 1)
    with pytest.raises(AttributeError):
        h.portfolio_percentage = 50.0


def test_sector_aggregation_partitions_holdings():
    holdings = [
        _holding("A", 100, 10, cmp=110, sector="Tech"),
        _holding("B", 50, 4, cmp=40, sector="Finance"),
        _holding("C", 20, 5, cmp=30, sector="Tech"),
        _holding("D", 10, 1, cmp=10, sector=""),
    ]

    grouped = group_by_sector(holdings)
    assert list(grouped) == ["Tech", "Finance", DEFAULT_SECTOR]
    assert sum(len(v) for v in grouped.values()) == len(holdings)

    summaries = {s.sector: s for s in summarize_sectors(holdings)}
    tech = summaries["Tech"]
    assert tech.holdings_count == 2
    assert tech.total_investment == 1100
    assert tech.total_present_value == 1250
    assert tech.total_gain_loss == 150
    assert tech.gain_loss_percentage == pytest.approx(150 / 1100 * 100)

    totals = PortfolioTotals.from_holdings(holdings)
    assert totals.total_investment == sum(s.total_investment for s in summaries.values())
    assert totals.total_present_value == sum(s.total_present_value for s in summaries.values())
    assert totals.holdings_count == 4


def test_blank_sector_is_normalised_on_the_holding():
    blank = _holding("A", 10, 1, sector="  ")
    named = _holding("B", 20, 1, sector=DEFAULT_SECTOR)
    other = _holding("C", 30, 1, sector="Energy")

    assert blank.sector == DEFAULT_SECTOR

    for summary in summarize_sectors([blank, named, other]):
        members = [h for h in (blank, named, other) if h.sector == summary.sector]
        assert summary.holdings_count == len(members)

    assert group_by_sector([blank, named])[DEFAULT_SECTOR] == [blank, named]


def test_validate_holding_reports_problems():
    bad = Holding(particulars="", purchase_price=-1, quantity=2)
    problems = validate_holding(bad)

    assert any("particulars" in p for p in problems)
    assert any("purchase_price" in p for p in problems)
    assert any("exchange code" in p for p in problems)
    assert validate_holding(_holding("Fine", 1, 1)) == []


def test_holding_ids_are_unique():
    assert _holding("A", 1, 1).id != _holding("A", 1, 1).id
    assert _holding("A", 1, 1).id.startswith("holding_")
