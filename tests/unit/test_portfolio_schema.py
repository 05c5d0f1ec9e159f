from datetime import datetime, timezone

import pytest

from portfolio_tracker.domain.models import (
    EnrichmentResult,
    ErrorCode,
    ErrorSource,
    Holding,
    OperationalError,
    assign_portfolio_percentages,
    summarize_sectors,
)
from portfolio_tracker.domain.schemas.portfolio import PortfolioResponseSchema


def test_response_groups_holdings_by_sector():
    holdings = [
        Holding(particulars="A", purchase_price=100, quantity=1, nse_code="A", sector="Tech"),
        Holding(particulars="B", purchase_price=300, quantity=1, nse_code="B", sector="Power"),
        Holding(particulars="C", purchase_price=100, quantity=1, nse_code="C", sector="Tech"),
    ]
    holdings[0].apply_price(150)
    assign_portfolio_percentages(holdings)
    result = EnrichmentResult(
        holdings=holdings,
        sectors=summarize_sectors(holdings),
        errors=[OperationalError(
            source=ErrorSource.YAHOO,
            code=ErrorCode.MISSING_PRICE,
            message="No live price for B",
            symbol="B.NS",
        )],
    )
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    response = PortfolioResponseSchema.from_result(result, last_updated=now, cached=True)

    assert [g.sector for g in response.sectors] == ["Tech", "Power"]
    assert [h.particulars for h in response.sectors[0].holdings] == ["A", "C"]
    assert response.sectors[0].summary.total_investment == 200
    assert response.holdings[1].portfolio_percentage == pytest.approx(60.0)
    assert response.totals.total_present_value == 150
    assert response.errors[0].source == "yahoo"
    assert response.errors[0].code == "MISSING_PRICE"
    assert response.cached is True

    payload = response.model_dump(mode="json")
    assert payload["holdings"][0]["gain_loss"] == 50
