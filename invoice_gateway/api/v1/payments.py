"""POST /v1/invoices/payments - pay a credit card invoice"""

import time
import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from invoice_gateway.api.v1.schemas import PaymentRequest, PaymentResponse
from invoice_gateway.api.dependencies import get_payment_service, get_request_id
from invoice_gateway.infrastructure.database.session import get_db
from invoice_gateway.services.invoice_payments import InvoicePaymentService
from invoice_gateway.domain.exceptions import (
    AlreadyPaid,
    InvalidAmountError,
    InvoiceNotFound,
    InvoiceReconciliationStale,
    LedgerWriteError,
)
from invoice_gateway.infrastructure.observability.metrics import record_payment
from invoice_gateway.infrastructure.observability.logging import log_payment

router = APIRouter()


@router.post("/invoices/payments", response_model=PaymentResponse, status_code=201)
def pay_invoice(
    request_body: PaymentRequest,
    request: Request,
    db: Session = Depends(get_db),
    service: InvoicePaymentService = Depends(get_payment_service),
):
    """
    Pay an invoice, addressed by id or by card + reference month.

    Returns the new paid amount and status. limit_stale=true means the payment
    was recorded but the card's available limit still needs reconciling.
    """
    start_time = time.time()
    request_id = get_request_id(request)

    if request_body.invoice_id is None and (
        request_body.credit_card_id is None or request_body.reference_month is None
    ):
        raise HTTPException(status_code=422, detail="invoice_id or credit_card_id + reference_month required")

    try:
        result = service.pay_invoice(
            user_id=request_body.user_id,
            account_id=request_body.account_id,
            amount_cents=request_body.amount_cents,
            payment_date=request_body.payment_date,
            invoice_id=request_body.invoice_id,
            card_id=request_body.credit_card_id,
            reference_month=request_body.reference_month_date(),
        )
        db.commit()

        record_payment(result.status.value)
        log_payment(
            request_id,
            request_body.user_id,
            str(result.invoice_id),
            request_body.amount_cents,
            result.status.value,
            result.limit_stale,
            (time.time() - start_time) * 1000,
        )

        return PaymentResponse(
            invoice_id=result.invoice_id,
            movement_id=result.movement_id,
            paid_amount_cents=result.paid_amount_cents,
            total_amount_cents=result.total_amount_cents,
            status=result.status,
            limit_stale=result.limit_stale,
        )

    except InvoiceNotFound as e:
        db.rollback()
        record_payment("not_found")
        raise HTTPException(status_code=404, detail=str(e))

    except AlreadyPaid as e:
        db.rollback()
        record_payment("already_paid")
        raise HTTPException(status_code=409, detail=str(e))

    except InvalidAmountError as e:
        db.rollback()
        raise HTTPException(status_code=422, detail=str(e))

    except InvoiceReconciliationStale as e:
        db.rollback()
        record_payment("failed")
        logging.error(
            f"Payment rolled back, invoice update failed: {e}",
            extra={"request_id": request_id, "invoice_id": str(e.invoice_id)},
        )
        raise HTTPException(status_code=500, detail="Invoice could not be updated; payment not recorded")

    except LedgerWriteError as e:
        db.rollback()
        record_payment("failed")
        logging.error(f"Ledger write error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Ledger storage unavailable")

    except Exception as e:
        db.rollback()
        record_payment("failed")
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")
