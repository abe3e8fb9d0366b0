"""Unit tests for installment plan expansion"""

import pytest
from datetime import date, timedelta
from invoice_gateway.domain.exceptions import InvalidAmountError
from invoice_gateway.domain.installments import charge_total, expand_installments, installment_date
from invoice_gateway.domain.models import Frequency


def test_expand_split_total_last_absorbs_remainder():
    """100.00 in 3 → 33.33, 33.33, 33.34"""
    installments = expand_installments(10000, 3, date(2025, 1, 10), amount_is_total=True)

    assert [inst.amount_cents for inst in installments] == [3333, 3333, 3334]
    assert sum(inst.amount_cents for inst in installments) == 10000


def test_expand_split_rounds_half_up():
    """100.00 in 6 → 16.67 x 5, last 16.65"""
    installments = expand_installments(10000, 6, date(2025, 1, 10), amount_is_total=True)

    assert [inst.amount_cents for inst in installments] == [1667] * 5 + [1665]
    assert sum(inst.amount_cents for inst in installments) == 10000


def test_expand_fixed_per_installment():
    """Without amount_is_total every installment charges the full amount"""
    installments = expand_installments(5000, 4, date(2025, 1, 10))

    assert len(installments) == 4
    assert all(inst.amount_cents == 5000 for inst in installments)
    assert [inst.number for inst in installments] == [1, 2, 3, 4]


@pytest.mark.parametrize("amount_is_total", [True, False])
def test_expand_single_installment(amount_is_total):
    """count=1 yields exactly (start_date, amount)"""
    start = date(2025, 3, 15)
    installments = expand_installments(5000, 1, start, Frequency.MONTHLY, amount_is_total)

    assert len(installments) == 1
    assert installments[0].transaction_date == start
    assert installments[0].amount_cents == 5000


def test_expand_monthly_dates_clamp_to_month_end():
    """Jan 31 monthly → Feb 28, Mar 31, Apr 30 (stepped from the start, no drift)"""
    installments = expand_installments(1000, 4, date(2025, 1, 31))

    assert [inst.transaction_date for inst in installments] == [
        date(2025, 1, 31),
        date(2025, 2, 28),
        date(2025, 3, 31),
        date(2025, 4, 30),
    ]


def test_expand_weekly_dates():
    start = date(2025, 12, 20)
    installments = expand_installments(1000, 3, start, Frequency.WEEKLY)

    assert [inst.transaction_date for inst in installments] == [
        start,
        start + timedelta(days=7),
        start + timedelta(days=14),
    ]


def test_installment_date_frequencies():
    start = date(2024, 2, 29)

    assert installment_date(start, 1, Frequency.QUARTERLY) == date(2024, 5, 29)
    assert installment_date(start, 1, Frequency.SEMIANNUALLY) == date(2024, 8, 29)
    assert installment_date(start, 1, Frequency.ANNUALLY) == date(2025, 2, 28)
    assert installment_date(start, 0, Frequency.ANNUALLY) == start


def test_expand_accepts_frequency_string():
    installments = expand_installments(1000, 2, date(2025, 1, 1), "quarterly")
    assert installments[1].transaction_date == date(2025, 4, 1)


def test_charge_total_modes():
    assert charge_total(10000, 3, amount_is_total=True) == 10000
    assert charge_total(10000, 3, amount_is_total=False) == 30000
    assert charge_total(10000, 1, amount_is_total=False) == 10000


def test_expand_rejects_invalid_input():
    with pytest.raises(InvalidAmountError):
        expand_installments(0, 3, date(2025, 1, 1))
    with pytest.raises(InvalidAmountError):
        expand_installments(1000, 0, date(2025, 1, 1))
    # 0.04 cannot be split into 6 positive parts
    with pytest.raises(InvalidAmountError):
        expand_installments(4, 6, date(2025, 1, 1), amount_is_total=True)


def test_expand_split_rejects_non_positive_last_part():
    # 100 cents over 40 parts rounds to 3 each, leaving a negative last part
    with pytest.raises(InvalidAmountError):
        expand_installments(100, 40, date(2025, 1, 1), amount_is_total=True)
    # Fixed per-part amounts have no such limit
    assert len(expand_installments(1, 40, date(2025, 1, 1))) == 40
