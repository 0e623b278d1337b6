"""
Calculation errors.
"""


class TVMInputError(ValueError):
    """Raised when TVM inputs are degenerate or have no finite solution."""
