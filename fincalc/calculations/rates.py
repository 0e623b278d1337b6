"""
Interest Rate Conversions

Converts a nominal annual rate (I/Y, as a percentage) into the effective
rate applied per payment period, reconciling payment (P/Y) and
compounding (C/Y) frequencies.
"""

from fincalc.calculations.exceptions import TVMInputError


def validate_frequencies(payments_per_year: int, compounding_per_year: int) -> None:
    """Reject frequencies that are not positive integers."""
    for name, value in (
        ("payments_per_year", payments_per_year),
        ("compounding_per_year", compounding_per_year),
    ):
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise TVMInputError(f"{name} must be a positive integer, got {value!r}")


def periodic_rate(
    annual_rate_percent: float, payments_per_year: int, compounding_per_year: int
) -> float:
    """Per-payment rate without input validation, for use inside solvers."""
    if annual_rate_percent == 0:
        return 0.0

    rate_per_compounding = annual_rate_percent / 100 / compounding_per_year

    if payments_per_year == compounding_per_year:
        return rate_per_compounding

    return (1 + rate_per_compounding) ** (
        compounding_per_year / payments_per_year
    ) - 1


def effective_rate(
    annual_rate_percent: float, payments_per_year: int, compounding_per_year: int
) -> float:
    """
    Calculate the effective interest rate per payment period.

    Args:
        annual_rate_percent: Nominal annual rate as a percentage (6 for 6%)
        payments_per_year: Payment periods per year (P/Y)
        compounding_per_year: Compounding periods per year (C/Y)

    Returns:
        Effective rate per payment period as decimal

    Raises:
        TVMInputError: If a frequency is not a positive integer or the
            rate is negative
    """
    validate_frequencies(payments_per_year, compounding_per_year)
    if annual_rate_percent < 0:
        raise TVMInputError("annual_rate_percent must be non-negative")
    return periodic_rate(annual_rate_percent, payments_per_year, compounding_per_year)


def nominal_rate(
    rate_per_payment: float, payments_per_year: int, compounding_per_year: int
) -> float:
    """Convert an effective per-payment rate back to a nominal annual percentage."""
    if payments_per_year == compounding_per_year:
        return rate_per_payment * compounding_per_year * 100

    rate_per_compounding = (1 + rate_per_payment) ** (
        payments_per_year / compounding_per_year
    ) - 1
    return rate_per_compounding * compounding_per_year * 100


def effective_rate_derivative(
    annual_rate_percent: float, payments_per_year: int, compounding_per_year: int
) -> float:
    """Derivative of the per-payment effective rate with respect to I/Y."""
    base = 1 + annual_rate_percent / 100 / compounding_per_year
    return base ** (compounding_per_year / payments_per_year - 1) / (
        100 * payments_per_year
    )
