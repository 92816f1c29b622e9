# dealscout/core/finance/amortization.py

from __future__ import annotations


def amortization_payment(principal: float, rate: float, years: int, *, periods_per_year: int = 1) -> float:
    """
    Level P&I payment per period for a fully amortizing loan.

    `rate` is the annual fraction; it is divided evenly across `periods_per_year`
    (12 gives the usual monthly mortgage payment).
    """
    if principal < 0:
        raise ValueError("principal must be >= 0")
    if years < 0:
        raise ValueError("years must be >= 0")
    if periods_per_year < 1:
        raise ValueError("periods_per_year must be >= 1")
    n = years * periods_per_year
    if n == 0:
        return 0.0
    if rate <= 0:
        return principal / n
    r = rate / periods_per_year
    return r * principal / (1.0 - (1.0 + r) ** (-n))


def annual_debt_service(principal: float, rate: float, years: int) -> float:
    """Twelve monthly payments."""
    return 12.0 * amortization_payment(principal, rate, years, periods_per_year=12)
