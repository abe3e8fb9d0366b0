"""Installment plan expansion for credit card purchases"""

from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import List

from dateutil.relativedelta import relativedelta

from invoice_gateway.domain.exceptions import InvalidAmountError
from invoice_gateway.domain.models import Frequency, Installment


def installment_date(start_date: date, index: int, frequency: Frequency) -> date:
    """Date of installment `index` (0-based), always stepped from start_date so month-end days don't drift"""
    if index == 0:
        return start_date

    if frequency == Frequency.WEEKLY:
        return start_date + timedelta(days=7 * index)
    if frequency == Frequency.QUARTERLY:
        return start_date + relativedelta(months=3 * index)
    if frequency == Frequency.SEMIANNUALLY:
        return start_date + relativedelta(months=6 * index)
    if frequency == Frequency.ANNUALLY:
        return start_date + relativedelta(years=index)
    return start_date + relativedelta(months=index)


def split_amount(amount_cents: int, count: int) -> int:
    """Per-installment share of a total, rounded half-up to the cent"""
    share = Decimal(amount_cents) / Decimal(count)
    return int(share.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def charge_total(amount_cents: int, count: int, amount_is_total: bool) -> int:
    """Total that a purchase consumes from the card limit"""
    if amount_is_total or count == 1:
        return amount_cents
    return amount_cents * count


def expand_installments(
    amount_cents: int,
    count: int,
    start_date: date,
    frequency: Frequency = Frequency.MONTHLY,
    amount_is_total: bool = False,
) -> List[Installment]:
    """
    Expand a purchase into installments.

    Modes:
    - amount_is_total=False: every installment charges amount_cents
    - amount_is_total=True: amount_cents is split; the last installment absorbs
      the rounding remainder so the parts sum exactly to the total

    Example:
        10000 cents in 3 → [3333, 3333, 3334]
        10000 cents in 6 → [1667 x 5, 1665]
    """
    if amount_cents <= 0:
        raise InvalidAmountError(f"Amount must be positive, got {amount_cents}")
    if count < 1:
        raise InvalidAmountError(f"Installment count must be at least 1, got {count}")

    frequency = Frequency(frequency)

    if count == 1:
        return [Installment(number=1, transaction_date=start_date, amount_cents=amount_cents)]

    per_installment = split_amount(amount_cents, count) if amount_is_total else amount_cents
    last_installment = per_installment
    if amount_is_total:
        last_installment = amount_cents - per_installment * (count - 1)
        if per_installment <= 0 or last_installment <= 0:
            raise InvalidAmountError(f"{amount_cents} cents cannot be split into {count} installments")

    installments = []
    for i in range(count):
        amount = last_installment if i == count - 1 else per_installment

        installments.append(
            Installment(
                number=i + 1,
                transaction_date=installment_date(start_date, i, frequency),
                amount_cents=amount,
            )
        )

    return installments
