"""Invoice read endpoints - single invoice, card statement list, amount owed"""

import uuid
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from invoice_gateway.api.v1.schemas import (
    REFERENCE_MONTH_PATTERN,
    InvoiceListResponse,
    InvoiceSchema,
    OutstandingResponse,
)
from invoice_gateway.domain.invoice_status import amount_owed, is_settled, outstanding_cents
from invoice_gateway.infrastructure.database.models import CreditCardInvoice
from invoice_gateway.infrastructure.database.repositories import InvoiceRepository
from invoice_gateway.infrastructure.database.session import get_db
from invoice_gateway.utils.date_utils import format_reference_month, parse_reference_month

router = APIRouter()


def _to_schema(invoice: CreditCardInvoice) -> InvoiceSchema:
    return InvoiceSchema(
        invoice_id=invoice.id,
        credit_card_id=invoice.credit_card_id,
        reference_month=format_reference_month(invoice.reference_month),
        closing_date=invoice.closing_date,
        due_date=invoice.due_date,
        total_amount_cents=invoice.total_amount_cents or 0,
        paid_amount_cents=invoice.paid_amount_cents or 0,
        outstanding_cents=outstanding_cents(invoice),
        status=invoice.status,
        is_settled=is_settled(invoice),
    )


@router.get("/invoices/outstanding", response_model=OutstandingResponse)
def get_outstanding(
    user_id: str = Query(..., min_length=1),
    reference_month: str = Query(..., pattern=REFERENCE_MONTH_PATTERN, description="YYYY-MM"),
    db: Session = Depends(get_db),
):
    """Amount still owed on unpaid invoices of a reference month, across all cards"""
    month = parse_reference_month(reference_month)
    invoices = InvoiceRepository(db).list_by_reference_month(user_id, month)

    return OutstandingResponse(
        user_id=user_id,
        reference_month=reference_month,
        amount_owed_cents=amount_owed(invoices, month),
        unpaid_invoice_ids=[inv.id for inv in invoices if not is_settled(inv)],
    )


@router.get("/invoices/{invoice_id}", response_model=InvoiceSchema)
def get_invoice(
    invoice_id: uuid.UUID,
    user_id: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
):
    invoice = InvoiceRepository(db).get_invoice(invoice_id, user_id)
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return _to_schema(invoice)


@router.get("/cards/{card_id}/invoices", response_model=InvoiceListResponse)
def list_card_invoices(
    card_id: uuid.UUID,
    user_id: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
):
    """Invoices of one card, newest reference month first"""
    invoices = InvoiceRepository(db).list_by_card(card_id, user_id)
    return InvoiceListResponse(credit_card_id=card_id, invoices=[_to_schema(inv) for inv in invoices])
