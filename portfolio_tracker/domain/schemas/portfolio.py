from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from portfolio_tracker.domain.models import (
    DEFAULT_SECTOR,
    EnrichmentResult,
    Holding,
    OperationalError,
    PortfolioTotals,
    SectorSummary,
)


class HoldingSchema(BaseModel):
    id: str
    particulars: str
    purchase_price: float
    quantity: float
    investment: float
    portfolio_percentage: float
    nse_code: str
    bse_code: Optional[str] = None
    cmp: float
    present_value: float
    gain_loss: float
    gain_loss_percentage: float
    pe_ratio: Optional[float] = None
    latest_earnings: Optional[str] = None
    sector: str
    last_updated: datetime

    @classmethod
    def from_holding(cls, holding: Holding) -> "HoldingSchema":
        return cls(
            id=holding.id,
            particulars=holding.particulars,
            purchase_price=holding.purchase_price,
            quantity=holding.quantity,
            investment=holding.investment,
            portfolio_percentage=holding.portfolio_percentage,
            nse_code=holding.nse_code,
            bse_code=holding.bse_code,
            cmp=holding.cmp,
            present_value=holding.present_value,
            gain_loss=holding.gain_loss,
            gain_loss_percentage=holding.gain_loss_percentage,
            pe_ratio=holding.pe_ratio,
            latest_earnings=holding.latest_earnings,
            sector=holding.sector,
            last_updated=holding.last_updated,
        )


class SectorSummarySchema(BaseModel):
    sector: str
    total_investment: float
    total_present_value: float
    total_gain_loss: float
    gain_loss_percentage: float
    holdings_count: int

    @classmethod
    def from_summary(cls, summary: SectorSummary) -> "SectorSummarySchema":
        return cls(
            sector=summary.sector,
            total_investment=summary.total_investment,
            total_present_value=summary.total_present_value,
            total_gain_loss=summary.total_gain_loss,
            gain_loss_percentage=summary.gain_loss_percentage,
            holdings_count=summary.holdings_count,
        )


class SectorGroupSchema(BaseModel):
    sector: str
    holdings: List[HoldingSchema]
    summary: SectorSummarySchema


class OperationalErrorSchema(BaseModel):
    source: str
    code: str
    message: str
    symbol: Optional[str] = None
    row: Optional[int] = None
    timestamp: datetime

    @classmethod
    def from_error(cls, error: OperationalError) -> "OperationalErrorSchema":
        return cls(
            source=error.source.value,
            code=error.code.value,
            message=error.message,
            symbol=error.symbol,
            row=error.row,
            timestamp=error.timestamp,
        )


class PortfolioTotalsSchema(BaseModel):
    total_investment: float
    total_present_value: float
    total_gain_loss: float
    total_gain_loss_percentage: float
    holdings_count: int

    @classmethod
    def from_totals(cls, totals: PortfolioTotals) -> "PortfolioTotalsSchema":
        return cls(
            total_investment=totals.total_investment,
            total_present_value=totals.total_present_value,
            total_gain_loss=totals.total_gain_loss,
            total_gain_loss_percentage=totals.total_gain_loss_percentage,
            holdings_count=totals.holdings_count,
        )


class PortfolioResponseSchema(BaseModel):
    holdings: List[HoldingSchema]
    sectors: List[SectorGroupSchema]
    totals: PortfolioTotalsSchema
    errors: List[OperationalErrorSchema]
    last_updated: datetime
    cached: bool = False
    refreshed: bool = False

    @classmethod
    def from_result(
        cls,
        result: EnrichmentResult,
        last_updated: datetime,
        cached: bool = False,
        refreshed: bool = False,
    ) -> "PortfolioResponseSchema":
        holdings = [HoldingSchema.from_holding(h) for h in result.holdings]
        by_sector = {}
        for schema in holdings:
            by_sector.setdefault(schema.sector or DEFAULT_SECTOR, []).append(schema)

        sectors = [
            SectorGroupSchema(
                sector=summary.sector,
                holdings=by_sector.get(summary.sector, []),
                summary=SectorSummarySchema.from_summary(summary),
            )
            for summary in result.sectors
        ]

        return cls(
            holdings=holdings,
            sectors=sectors,
            totals=PortfolioTotalsSchema.from_totals(result.totals),
            errors=[OperationalErrorSchema.from_error(e) for e in result.errors],
            last_updated=last_updated,
            cached=cached,
            refreshed=refreshed,
        )
