"""Invoice paid-state rules used by payments, statements and amount-owed totals"""

from datetime import date
from typing import Iterable, Protocol, Tuple

from invoice_gateway.domain.models import InvoiceStatus
from invoice_gateway.utils.date_utils import first_of_month


class InvoiceLike(Protocol):
    reference_month: date
    total_amount_cents: int
    paid_amount_cents: int
    status: str


def derive_status(paid_cents: int, total_cents: int) -> InvoiceStatus:
    if paid_cents <= 0:
        return InvoiceStatus.OPEN
    if paid_cents >= total_cents:
        return InvoiceStatus.PAID
    return InvoiceStatus.PARTIAL


def apply_payment(paid_cents: int, total_cents: int, amount_cents: int) -> Tuple[int, InvoiceStatus]:
    """
    New paid amount and status after a payment.

    Any payment moves an invoice out of "open": it is "paid" once the paid
    amount reaches the total, "partial" otherwise.
    """
    new_paid = paid_cents + amount_cents
    status = InvoiceStatus.PAID if new_paid >= total_cents else InvoiceStatus.PARTIAL
    return new_paid, status


def is_settled(invoice: InvoiceLike) -> bool:
    if invoice.status == InvoiceStatus.PAID.value:
        return True
    total = invoice.total_amount_cents or 0
    paid = invoice.paid_amount_cents or 0
    return total > 0 and paid >= total


def outstanding_cents(invoice: InvoiceLike) -> int:
    return max(0, (invoice.total_amount_cents or 0) - (invoice.paid_amount_cents or 0))


def amount_owed(invoices: Iterable[InvoiceLike], reference_month: date) -> int:
    """Sum of what is still owed on unsettled invoices of one reference month"""
    month = first_of_month(reference_month)
    return sum(
        outstanding_cents(inv)
        for inv in invoices
        if first_of_month(inv.reference_month) == month and not is_settled(inv)
    )
