# dealscout/core/finance/underwrite.py
"""
Quick underwriting for a single listing.

Given NOI and an asking price, compute cap rate, loan amount, annual debt
service and DSCR under simple acquisition assumptions (LTV, rate, amortization).
Any missing input leaves the dependent outputs as None.
"""

from __future__ import annotations

from dealscout.schemas.models import Underwrite

from .amortization import annual_debt_service

DEFAULT_RATE = 0.055
DEFAULT_AMORT_YEARS = 30
DEFAULT_LTV = 0.65


def quick_underwrite(
    noi: float | None,
    price: float | None,
    *,
    rate: float = DEFAULT_RATE,
    amort_years: int = DEFAULT_AMORT_YEARS,
    ltv: float = DEFAULT_LTV,
) -> Underwrite:
    cap_rate = noi / price if noi and price and price > 0 else None
    loan_amount = price * ltv if price else None

    debt_service: float | None = None
    dscr: float | None = None
    if loan_amount and noi:
        debt_service = annual_debt_service(loan_amount, rate, amort_years)
        dscr = noi / debt_service if debt_service > 0 else None

    return Underwrite(cap_rate=cap_rate, dscr=dscr, loan_amount=loan_amount, debt_service=debt_service)
