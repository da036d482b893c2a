"""API routes for the tax determination engine."""

import logging
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from config.settings import settings
from src.calculators.brackets import bracket_breakdown
from src.db.models import (
    CapitalGainEntryEdit,
    ComputedReturnSnapshot,
    FilingStatus,
    ScheduleResult,
    TaxYearSummary,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class BracketTaxRequest(BaseModel):
    """Request body for the stateless /tax/calculate endpoint."""

    taxable_income: Decimal = Field(ge=0)
    tax_year: int | None = None
    filing_status: FilingStatus = FilingStatus.SINGLE
    jurisdiction: str = "federal"


class CalculateReturnRequest(BaseModel):
    """Optional overrides for a return calculation."""

    filing_status: FilingStatus | None = None
    tax_year: int | None = None
    jurisdiction: str | None = None


class CapitalGainEditsRequest(BaseModel):
    entries: list[CapitalGainEntryEdit] = Field(min_length=1)


def _not_found(message: str) -> JSONResponse:
    return JSONResponse(
        {"error": {"kind": "not_found", "message": message}}, status_code=404
    )


@router.get("/health")
async def health() -> dict:  # type: ignore[type-arg]
    return {"status": "ok"}


@router.get("/tax-years", response_model=list[TaxYearSummary])
async def tax_years(request: Request) -> list[TaxYearSummary]:
    """Configured tax years, most recent first."""
    return await request.app.state.config_store.list_tax_years()


@router.post("/tax/calculate")
async def calculate_tax(body: BracketTaxRequest, request: Request) -> dict:  # type: ignore[type-arg]
    """Bracket tax on a taxable income, with a per-bracket breakdown."""
    year = body.tax_year or settings.default_tax_year
    brackets = await request.app.state.config_store.get_brackets(
        year, body.filing_status, body.jurisdiction
    )
    result = bracket_breakdown(body.taxable_income, brackets)
    result.update(tax_year=year, filing_status=body.filing_status.value)
    return result


@router.post("/returns/{return_id}/calculate", response_model=ComputedReturnSnapshot)
async def calculate_return(
    return_id: UUID, request: Request, body: CalculateReturnRequest | None = None
) -> ComputedReturnSnapshot:
    """Compute the return and replace its stored snapshot."""
    body = body or CalculateReturnRequest()
    return await request.app.state.return_orchestrator.calculate_return(
        return_id,
        filing_status=body.filing_status,
        tax_year=body.tax_year,
        jurisdiction=body.jurisdiction,
    )


@router.get("/returns/{return_id}/snapshot", response_model=ComputedReturnSnapshot)
async def get_snapshot(return_id: UUID, request: Request) -> ComputedReturnSnapshot | JSONResponse:
    snapshot = await request.app.state.repository.get_snapshot(return_id)
    if snapshot is None:
        return _not_found(f"No computed return for {return_id}")
    return snapshot


@router.post("/returns/{return_id}/schedule-d/calculate", response_model=ScheduleResult)
async def calculate_schedule(return_id: UUID, request: Request) -> ScheduleResult:
    """Recompute the capital-gains schedule.

    Replaces every previously generated transaction and the summary for the
    return. Edits made directly to generated transactions are not preserved;
    edit the source entries through PATCH /returns/{return_id}/capital-gains.
    """
    return await request.app.state.schedule_service.recalculate(return_id)


@router.get("/returns/{return_id}/schedule-d", response_model=ScheduleResult)
async def get_schedule(return_id: UUID, request: Request) -> ScheduleResult | JSONResponse:
    schedule = await request.app.state.schedule_service.get(return_id)
    if schedule is None:
        return _not_found(f"No capital gains schedule for {return_id}")
    return schedule


@router.patch("/returns/{return_id}/capital-gains")
async def edit_capital_gains(
    return_id: UUID, body: CapitalGainEditsRequest, request: Request
) -> dict:  # type: ignore[type-arg]
    """Apply entry edits atomically; recompute the schedule afterwards."""
    updated = await request.app.state.schedule_service.edit_entries(return_id, body.entries)
    return {"status": "ok", "updated": updated}
