# tests/unit/test_amortization.py
import pytest

from dealscout.core.finance.amortization import amortization_payment, annual_debt_service


def test_amortization_payment_basic():
    # Annual payment for 300k @ 6% over 30 years
    pmt = amortization_payment(300_000, 0.06, 30)
    # ≈ 21,798
    assert 21_700 < pmt < 21_900


def test_monthly_payment():
    pmt = amortization_payment(300_000, 0.06, 30, periods_per_year=12)
    # ≈ 1,798.65
    assert 1_790 < pmt < 1_800


def test_annual_debt_service_is_twelve_monthly_payments():
    ds = annual_debt_service(100_000, 0.055, 30)
    assert ds == pytest.approx(12 * amortization_payment(100_000, 0.055, 30, periods_per_year=12))
    # ≈ 6,813
    assert 6_800 < ds < 6_830


def test_zero_interest_rate():
    # 2-year amortizing loan, zero rate → payment = principal / periods
    assert amortization_payment(24_000, 0.0, 2) == 12_000.0
    assert annual_debt_service(24_000, 0.0, 2) == pytest.approx(12_000.0)


def test_zero_term_or_principal():
    assert amortization_payment(100_000, 0.05, 0) == 0.0
    assert amortization_payment(0, 0.05, 10) == 0.0


@pytest.mark.parametrize(
    "kwargs",
    [
        {"principal": -1, "rate": 0.05, "years": 10},
        {"principal": 1, "rate": 0.05, "years": -1},
        {"principal": 1, "rate": 0.05, "years": 10, "periods_per_year": 0},
    ],
)
def test_invalid_inputs(kwargs):
    with pytest.raises(ValueError):
        amortization_payment(**kwargs)
