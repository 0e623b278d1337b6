"""
Time Value of Money Calculations

Solves for any one of the five TVM variables (N, I/Y, PV, PMT, FV) given
the other four, following the cash-flow sign convention of BA II Plus
style financial calculators: money paid out is negative, money received
is positive.

All solvers work on the effective rate per payment period, so payment
(P/Y) and compounding (C/Y) frequencies may differ.
"""

import logging
import math
import random
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict

from fincalc.calculations.exceptions import TVMInputError
from fincalc.calculations.rates import (
    effective_rate_derivative,
    nominal_rate,
    periodic_rate,
    validate_frequencies,
)

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 100
TOLERANCE = 1e-6
DEFAULT_GUESS = 10.0  # annual percent
ZERO_RATE_TOLERANCE = 0.01
DERIVATIVE_FLOOR = 1e-10
MIN_RATE = -99.0
MAX_RATE = 10000.0

# Nominal annual percents probed for a sign change before iterating
SCAN_RATES = (
    -99.0, -90.0, -75.0, -50.0, -25.0, -10.0, -1.0,
    1.0, 2.5, 5.0, 10.0, 20.0, 35.0, 50.0, 75.0, 100.0,
    150.0, 250.0, 500.0, 1000.0, 2500.0, 5000.0, 10000.0,
)


class SolveFor(str, Enum):
    """TVM variable to solve for."""

    N = "N"
    IY = "IY"
    PV = "PV"
    PMT = "PMT"
    FV = "FV"


FIELD_BY_SOLVE_FOR = {
    SolveFor.N: "period_count",
    SolveFor.IY: "annual_rate_percent",
    SolveFor.PV: "present_value",
    SolveFor.PMT: "payment",
    SolveFor.FV: "future_value",
}


class TVMParameters(BaseModel):
    """Inputs for a TVM solve. The field named by solve_for is ignored."""

    solve_for: SolveFor
    period_count: float = 0.0
    annual_rate_percent: float = 0.0
    present_value: float = 0.0
    payment: float = 0.0
    future_value: float = 0.0
    payments_per_year: int = 12
    compounding_per_year: int = 12
    payment_at_period_start: bool = False

    model_config = ConfigDict(frozen=True)


class TVMResult(BaseModel):
    """Solved TVM variables; the four inputs are echoed back unchanged."""

    solved_for: SolveFor
    period_count: float
    annual_rate_percent: float
    present_value: float
    payment: float
    future_value: float
    converged: bool = True

    model_config = ConfigDict(frozen=True)

    @property
    def solved_value(self) -> float:
        return getattr(self, FIELD_BY_SOLVE_FOR[self.solved_for])


def _timing_factor(rate: float, payment_at_period_start: bool) -> float:
    return 1 + rate if payment_at_period_start else 1.0


def _annuity_factor(rate: float, period_count: float, payment_at_period_start: bool) -> float:
    """Future value of one unit paid each period for period_count periods."""
    growth = (1 + rate) ** period_count
    return (growth - 1) / rate * _timing_factor(rate, payment_at_period_start)


def solve_future_value(
    period_count: float,
    rate: float,
    present_value: float,
    payment: float,
    payment_at_period_start: bool = False,
) -> float:
    """
    Calculate future value.

    Args:
        period_count: Number of payment periods
        rate: Effective rate per payment period as decimal
        present_value: Present value (signed)
        payment: Periodic payment (signed)
        payment_at_period_start: True for annuity-due

    Returns:
        Future value (signed)
    """
    if rate == 0:
        return -(present_value + payment * period_count)

    growth = (1 + rate) ** period_count
    return -present_value * growth - payment * _annuity_factor(
        rate, period_count, payment_at_period_start
    )


def solve_present_value(
    period_count: float,
    rate: float,
    payment: float,
    future_value: float,
    payment_at_period_start: bool = False,
) -> float:
    """Calculate present value by discounting FV and the payment stream."""
    if rate == 0:
        return -(future_value + payment * period_count)

    discount = (1 + rate) ** -period_count
    annuity = (1 - discount) / rate * _timing_factor(rate, payment_at_period_start)
    return -future_value * discount - payment * annuity


def solve_payment(
    period_count: float,
    rate: float,
    present_value: float,
    future_value: float,
    payment_at_period_start: bool = False,
) -> float:
    """
    Calculate the periodic payment.

    Raises:
        TVMInputError: If period_count is zero
    """
    if period_count == 0:
        raise TVMInputError("cannot solve for payment with zero periods")

    if rate == 0:
        return -(present_value + future_value) / period_count

    growth = (1 + rate) ** period_count
    return -(present_value * growth + future_value) / _annuity_factor(
        rate, period_count, payment_at_period_start
    )


def solve_period_count(
    rate: float,
    present_value: float,
    payment: float,
    future_value: float,
    payment_at_period_start: bool = False,
) -> float:
    """
    Calculate the number of periods using logarithms.

    Raises:
        TVMInputError: If no finite number of periods satisfies the inputs
    """
    if rate == 0:
        if payment == 0:
            raise TVMInputError("cannot solve for N with zero rate and zero payment")
        return -(present_value + future_value) / payment

    adjusted_payment = payment * _timing_factor(rate, payment_at_period_start)

    numerator = adjusted_payment - future_value * rate
    denominator = adjusted_payment + present_value * rate

    if denominator == 0 or numerator / denominator <= 0:
        raise TVMInputError("no solution exists for these parameters")

    return math.log(numerator / denominator) / math.log(1 + rate)


def _rate_residual(
    guess: float,
    period_count: float,
    present_value: float,
    payment: float,
    future_value: float,
    payments_per_year: int,
    compounding_per_year: int,
    payment_at_period_start: bool,
) -> Tuple[float, float]:
    """
    Residual PV*(1+i)^N + PMT*annuity(i) + FV at a nominal rate guess, and
    its derivative with respect to the nominal annual percent.

    Raises OverflowError or ZeroDivisionError where the residual is not
    defined, including at an effective rate of exactly zero.
    """
    rate = periodic_rate(guess, payments_per_year, compounding_per_year)

    growth = (1 + rate) ** period_count
    annuity = (growth - 1) / rate
    timing = _timing_factor(rate, payment_at_period_start)

    residual = present_value * growth + payment * annuity * timing + future_value

    growth_derivative = period_count * (1 + rate) ** (period_count - 1)
    annuity_derivative = (growth_derivative * rate - (growth - 1)) / rate**2

    if payment_at_period_start:
        payment_derivative = payment * (annuity_derivative * (1 + rate) + annuity)
    else:
        payment_derivative = payment * annuity_derivative

    derivative = (
        present_value * growth_derivative + payment_derivative
    ) * effective_rate_derivative(guess, payments_per_year, compounding_per_year)

    return residual, derivative


def _find_bracket(seed, residual_at) -> Optional[Tuple[float, float, float]]:
    """
    Scan SCAN_RATES plus the seed for a sign change of the residual.

    Returns (low, residual at low, high) for the sign change closest to the
    seed, or None when every evaluable point has the same sign.
    """
    points = []
    for guess in sorted(set(SCAN_RATES + (seed,))):
        try:
            residual = residual_at(guess)[0]
        except (OverflowError, ZeroDivisionError):
            continue
        if math.isfinite(residual):
            points.append((guess, residual))

    brackets = [
        (low, low_residual, high)
        for (low, low_residual), (high, high_residual) in zip(points, points[1:])
        if (low_residual < 0) != (high_residual < 0)
    ]
    if not brackets:
        return None

    def distance(bracket):
        low, _, high = bracket
        if low <= seed <= high:
            return 0.0
        return min(abs(low - seed), abs(high - seed))

    return min(brackets, key=distance)


def solve_annual_rate(
    period_count: float,
    present_value: float,
    payment: float,
    future_value: float,
    payments_per_year: int = 12,
    compounding_per_year: int = 12,
    payment_at_period_start: bool = False,
    rng: Optional[random.Random] = None,
) -> Tuple[float, bool]:
    """
    Calculate the nominal annual rate using Newton-Raphson.

    There is no closed form for the rate, so the residual
    PV*(1+i)^N + PMT*annuity(i) + FV is driven to zero. The step is taken
    in nominal annual percent by chaining the derivative through the
    effective rate conversion.

    Before iterating, a coarse scan of rates looks for a sign change of the
    residual. When one is found, Newton steps are kept inside that bracket
    and any step that would leave it is replaced by bisection, so high-rate
    loans cannot be thrown toward a spurious minimum near -100%. Without a
    bracket the plain guarded Newton iteration runs.

    Args:
        period_count: Number of payment periods
        present_value: Present value (signed)
        payment: Periodic payment (signed)
        future_value: Future value (signed)
        payments_per_year: Payment periods per year (P/Y)
        compounding_per_year: Compounding periods per year (C/Y)
        payment_at_period_start: True for annuity-due
        rng: Random source for escaping out-of-bounds steps

    Returns:
        (annual rate percent, converged). When the iteration cap is hit the
        last guess is returned with converged=False.

    Raises:
        TVMInputError: If period_count is not positive
    """
    if period_count <= 0:
        raise TVMInputError("period_count must be positive to solve for the interest rate")

    if payment != 0:
        simple_sum = present_value + payment * period_count + future_value
        if abs(simple_sum) < ZERO_RATE_TOLERANCE:
            return 0.0, True

    guess = DEFAULT_GUESS

    # Lump sum only: invert compound growth directly
    if payment == 0 and present_value != 0 and future_value != 0:
        ratio = -future_value / present_value
        if ratio > 0:
            try:
                guess = nominal_rate(
                    ratio ** (1 / period_count) - 1, payments_per_year, compounding_per_year
                )
            except (OverflowError, ZeroDivisionError):
                guess = DEFAULT_GUESS
            guess = min(max(guess, MIN_RATE), MAX_RATE)

    if rng is None:
        rng = random.Random()

    def residual_at(value):
        return _rate_residual(
            value,
            period_count,
            present_value,
            payment,
            future_value,
            payments_per_year,
            compounding_per_year,
            payment_at_period_start,
        )

    bracket = _find_bracket(guess, residual_at)
    if bracket is not None:
        low, low_residual, high = bracket
        if not low <= guess <= high:
            guess = (low + high) / 2

    for iteration in range(MAX_ITERATIONS):
        rate = periodic_rate(guess, payments_per_year, compounding_per_year)

        if rate == 0:
            guess += 0.01
            continue

        try:
            residual, derivative = residual_at(guess)
        except (OverflowError, ZeroDivisionError):
            residual = derivative = math.nan

        if not (math.isfinite(residual) and math.isfinite(derivative)):
            logger.debug("Residual undefined at %.4f%%, perturbing guess", guess)
            guess = min(max(guess + rng.uniform(-5, 5), MIN_RATE), MAX_RATE)
            continue

        if abs(residual) < TOLERANCE:
            return guess, True

        if bracket is not None:
            if low < guess < high:
                if (residual < 0) == (low_residual < 0):
                    low, low_residual = guess, residual
                else:
                    high = guess
            new_guess = None
            if abs(derivative) >= DERIVATIVE_FLOOR:
                new_guess = guess - residual / derivative
            if new_guess is None or not low < new_guess < high:
                new_guess = (low + high) / 2
            guess = new_guess
            continue

        if abs(derivative) < DERIVATIVE_FLOOR:
            logger.debug("Flat derivative at %.6f%%, nudging guess", guess)
            guess += 0.1
            continue

        new_guess = guess - residual / derivative

        if new_guess < MIN_RATE or new_guess > MAX_RATE:
            logger.debug("Step to %.4f%% out of bounds, perturbing guess", new_guess)
            guess = min(max(guess + rng.uniform(-5, 5), MIN_RATE), MAX_RATE)
            continue

        guess = new_guess

    logger.warning(
        "Rate solve did not converge after %d iterations; returning %.6f%%",
        MAX_ITERATIONS,
        guess,
    )
    return guess, False


def _check_finite(params: TVMParameters) -> None:
    target = FIELD_BY_SOLVE_FOR[params.solve_for]
    for field in FIELD_BY_SOLVE_FOR.values():
        if field != target and not math.isfinite(getattr(params, field)):
            raise TVMInputError(f"{field} must be a finite number")


def calculate_tvm(params: TVMParameters, rng: Optional[random.Random] = None) -> TVMResult:
    """
    Solve for the variable named by params.solve_for.

    Args:
        params: The four known variables, frequencies and payment timing
        rng: Random source for the rate solver

    Returns:
        TVMResult with the solved field populated

    Raises:
        TVMInputError: If the inputs are invalid or have no finite solution
    """
    validate_frequencies(params.payments_per_year, params.compounding_per_year)
    _check_finite(params)

    values = {field: getattr(params, field) for field in FIELD_BY_SOLVE_FOR.values()}
    target = FIELD_BY_SOLVE_FOR[params.solve_for]
    converged = True

    n = params.period_count
    pv = params.present_value
    pmt = params.payment
    fv = params.future_value
    at_start = params.payment_at_period_start

    try:
        if params.solve_for == SolveFor.IY:
            values[target], converged = solve_annual_rate(
                n,
                pv,
                pmt,
                fv,
                params.payments_per_year,
                params.compounding_per_year,
                at_start,
                rng=rng,
            )
        else:
            if params.annual_rate_percent < 0:
                raise TVMInputError("annual_rate_percent must be non-negative")
            rate = periodic_rate(
                params.annual_rate_percent,
                params.payments_per_year,
                params.compounding_per_year,
            )

            if params.solve_for == SolveFor.FV:
                values[target] = solve_future_value(n, rate, pv, pmt, at_start)
            elif params.solve_for == SolveFor.PV:
                values[target] = solve_present_value(n, rate, pmt, fv, at_start)
            elif params.solve_for == SolveFor.PMT:
                values[target] = solve_payment(n, rate, pv, fv, at_start)
            else:
                values[target] = solve_period_count(rate, pv, pmt, fv, at_start)
    except (OverflowError, ZeroDivisionError) as e:
        raise TVMInputError(f"calculation failed: {e}") from e

    if not math.isfinite(values[target]):
        raise TVMInputError(f"calculation produced a non-finite {target}")

    return TVMResult(solved_for=params.solve_for, converged=converged, **values)
