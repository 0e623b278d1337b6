"""
fincalc: time-value-of-money engine and calculation API.
"""

__version__ = "0.1.0"
