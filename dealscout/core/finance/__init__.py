# dealscout/core/finance/__init__.py

from .amortization import amortization_payment, annual_debt_service
from .underwrite import quick_underwrite

__all__ = [
    "amortization_payment",
    "annual_debt_service",
    "quick_underwrite",
]
