"""
Loan Amortization Calculations

Splits each payment of a solved TVM loan into interest and principal,
for both end-of-period (ordinary annuity) and start-of-period
(annuity-due) payments.
"""

import math
from datetime import date
from typing import List, Optional

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel

from fincalc.calculations.exceptions import TVMInputError
from fincalc.calculations.rates import effective_rate


class AmortizationRow(BaseModel):
    """One payment period of an amortization schedule."""

    period: int
    payment: float
    principal_portion: float
    interest_portion: float
    remaining_balance: float
    payment_date: Optional[date] = None


def period_step(payments_per_year: int) -> relativedelta:
    """Calendar distance between two payments."""
    if 12 % payments_per_year == 0:
        return relativedelta(months=12 // payments_per_year)
    return relativedelta(days=round(365 / payments_per_year))


def generate_amortization_schedule(
    present_value: float,
    payment: float,
    annual_rate_percent: float,
    period_count: float,
    payments_per_year: int = 12,
    compounding_per_year: int = 12,
    payment_at_period_start: bool = False,
    start_date: Optional[date] = None,
) -> List[AmortizationRow]:
    """
    Generate a full amortization schedule.

    Signs are dropped: the balance starts at |PV| and each payment is |PMT|.
    With payments at period start, a payment is applied before the period
    accrues interest, so the first row is all principal.

    Args:
        present_value: Loan amount (signed)
        payment: Periodic payment (signed)
        annual_rate_percent: Nominal annual rate as a percentage
        period_count: Number of payments; a fractional count adds a final
            partial period
        payments_per_year: Payment periods per year (P/Y)
        compounding_per_year: Compounding periods per year (C/Y)
        payment_at_period_start: True for annuity-due
        start_date: Date of first payment, if rows should carry dates

    Returns:
        List of ceil(period_count) amortization rows

    Raises:
        TVMInputError: If the frequencies, rate or period count are invalid
    """
    rate = effective_rate(annual_rate_percent, payments_per_year, compounding_per_year)

    if not math.isfinite(period_count) or period_count < 0:
        raise TVMInputError("period_count must be a non-negative number")

    schedule = []
    balance = abs(present_value)
    scheduled_payment = abs(payment)
    step = period_step(payments_per_year)

    for period in range(1, math.ceil(period_count) + 1):
        if payment_at_period_start and period == 1:
            interest = 0.0
        else:
            interest = balance * rate

        principal = min(scheduled_payment - interest, balance)
        balance = balance - principal

        schedule.append(
            AmortizationRow(
                period=period,
                payment=principal + interest,
                principal_portion=principal,
                interest_portion=interest,
                remaining_balance=max(0.0, balance),
                payment_date=start_date + step * (period - 1) if start_date else None,
            )
        )

    return schedule


def calculate_total_interest(schedule: List[AmortizationRow]) -> float:
    """Calculate total interest paid over the schedule."""
    return sum(row.interest_portion for row in schedule)


def calculate_total_principal(schedule: List[AmortizationRow]) -> float:
    """Calculate total principal repaid over the schedule."""
    return sum(row.principal_portion for row in schedule)


def calculate_total_payments(schedule: List[AmortizationRow]) -> float:
    return sum(row.payment for row in schedule)
