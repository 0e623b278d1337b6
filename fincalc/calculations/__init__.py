"""
Financial Calculation Engine

Time-value-of-money solvers and loan amortization schedules.
All calculations follow the cash-flow sign convention of financial
calculators (outflows negative, inflows positive).
"""

from fincalc.calculations import amortization, rates, tvm
from fincalc.calculations.exceptions import TVMInputError

__all__ = ["amortization", "rates", "tvm", "TVMInputError"]
