"""
Financial calculation API endpoints.

These endpoints accept calculator inputs and return solved results.
"""

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from fincalc.calculations import amortization, tvm
from fincalc.calculations.amortization import AmortizationRow
from fincalc.calculations.tvm import TVMParameters, TVMResult
from fincalc.config import Settings, get_settings

logger = logging.getLogger(__name__)

router = APIRouter()


class TVMInput(TVMParameters):
    """Input for a TVM solve, optionally with a payment schedule."""

    include_schedule: bool = False
    start_date: Optional[date] = None


class TVMSummary(BaseModel):
    """Totals over the life of the solved cash flows."""

    total_payments: float
    total_interest: float


class TVMResponse(BaseModel):
    """Response with the solved variable, totals and optional schedule."""

    result: TVMResult
    summary: TVMSummary
    schedule: List[AmortizationRow] = []


def _summarize(result: TVMResult) -> TVMSummary:
    total_payments = abs(result.payment * result.period_count)
    total_interest = 0.0
    if abs(result.present_value) > 0:
        total_interest = total_payments - abs(result.present_value)
    return TVMSummary(total_payments=total_payments, total_interest=total_interest)


@router.post("/tvm", response_model=TVMResponse)
async def calculate_tvm_endpoint(
    inputs: TVMInput, settings: Settings = Depends(get_settings)
):
    """Solve for one TVM variable given the other four."""
    params = TVMParameters(**inputs.model_dump(exclude={"include_schedule", "start_date"}))

    try:
        result = tvm.calculate_tvm(params)
    except ValueError as e:
        logger.info("Rejected TVM solve for %s: %s", params.solve_for.value, e)
        raise HTTPException(status_code=400, detail=str(e))

    schedule = []
    if (
        inputs.include_schedule
        and 0 < result.period_count <= settings.max_schedule_periods
        and result.present_value != 0
    ):
        schedule = amortization.generate_amortization_schedule(
            present_value=result.present_value,
            payment=result.payment,
            annual_rate_percent=result.annual_rate_percent,
            period_count=round(result.period_count),
            payments_per_year=params.payments_per_year,
            compounding_per_year=params.compounding_per_year,
            payment_at_period_start=params.payment_at_period_start,
            start_date=inputs.start_date,
        )

    return TVMResponse(result=result, summary=_summarize(result), schedule=schedule)


class AmortizationInput(BaseModel):
    """Input for amortization calculation."""

    present_value: float
    payment: float
    annual_rate_percent: float
    period_count: float
    payments_per_year: int = 12
    compounding_per_year: int = 12
    payment_at_period_start: bool = False
    start_date: Optional[date] = None


class AmortizationResponse(BaseModel):
    """Amortization schedule with totals."""

    schedule: List[AmortizationRow]
    total_payments: float
    total_interest: float
    total_principal: float


@router.post("/amortization", response_model=AmortizationResponse)
async def calculate_amortization(
    inputs: AmortizationInput, settings: Settings = Depends(get_settings)
):
    """Generate a payment-by-payment amortization schedule."""
    if inputs.period_count > settings.max_schedule_periods:
        raise HTTPException(
            status_code=400,
            detail=f"period_count may not exceed {settings.max_schedule_periods}",
        )

    try:
        schedule = amortization.generate_amortization_schedule(
            present_value=inputs.present_value,
            payment=inputs.payment,
            annual_rate_percent=inputs.annual_rate_percent,
            period_count=inputs.period_count,
            payments_per_year=inputs.payments_per_year,
            compounding_per_year=inputs.compounding_per_year,
            payment_at_period_start=inputs.payment_at_period_start,
            start_date=inputs.start_date,
        )
    except ValueError as e:
        logger.info("Rejected amortization request: %s", e)
        raise HTTPException(status_code=400, detail=str(e))

    return AmortizationResponse(
        schedule=schedule,
        total_payments=amortization.calculate_total_payments(schedule),
        total_interest=amortization.calculate_total_interest(schedule),
        total_principal=amortization.calculate_total_principal(schedule),
    )
