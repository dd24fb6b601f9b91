"""
Calculators Package

Provides the commission rules evaluated for each postback.
"""

from .commission import CommissionEvaluator
from .cpa import CPACalculator
from .rates import quantize_money, resolve_rate
from .revshare import RevShareCalculator

__all__ = [
    "CPACalculator",
    "RevShareCalculator",
    "CommissionEvaluator",
    "quantize_money",
    "resolve_rate",
]
