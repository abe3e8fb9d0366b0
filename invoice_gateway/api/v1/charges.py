"""Card charge endpoints - purchases and installment plan edits"""

import time
import logging
import uuid
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from invoice_gateway.api.v1.schemas import ChargeRequest, ChargeResponse, RescheduleRequest
from invoice_gateway.api.dependencies import get_charge_service, get_request_id
from invoice_gateway.infrastructure.database.session import get_db
from invoice_gateway.services.card_charges import CardChargeService
from invoice_gateway.domain.exceptions import (
    CardNotFoundError,
    InstallmentGroupNotFound,
    InsufficientLimit,
    InvalidAmountError,
    LedgerWriteError,
    PartialChargeFailure,
)
from invoice_gateway.domain.models import ChargeResult
from invoice_gateway.infrastructure.observability.metrics import record_charge
from invoice_gateway.infrastructure.observability.logging import log_charge

router = APIRouter()


def _to_response(result: ChargeResult) -> ChargeResponse:
    return ChargeResponse(
        installment_group_id=result.installment_group_id,
        movement_ids=result.movement_ids,
        invoice_ids=result.invoice_ids,
        total_charged_cents=result.total_charged_cents,
    )


@router.post("/cards/{card_id}/charges", response_model=ChargeResponse, status_code=201)
def create_charge(
    card_id: uuid.UUID,
    request_body: ChargeRequest,
    request: Request,
    db: Session = Depends(get_db),
    service: CardChargeService = Depends(get_charge_service),
):
    """
    Charge a purchase to a credit card.

    Flow:
    1. Check the purchase against the card's available limit
    2. Expand into installments (single purchase = 1 installment)
    3. Attach each installment to its invoice, creating invoices lazily
    4. Commit all movements in one transaction
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        result = service.charge_card(
            card_id=card_id,
            user_id=request_body.user_id,
            amount_cents=request_body.amount_cents,
            transaction_date=request_body.transaction_date,
            installments=request_body.installments,
            frequency=request_body.frequency,
            amount_is_total=request_body.amount_is_total,
            description=request_body.description,
            account_id=request_body.account_id,
            category_id=request_body.category_id,
        )
        db.commit()

        duration_ms = (time.time() - start_time) * 1000
        record_charge("committed", request_body.installments)
        log_charge(
            request_id,
            request_body.user_id,
            str(card_id),
            request_body.installments,
            result.total_charged_cents,
            duration_ms,
        )

        return _to_response(result)

    except CardNotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))

    except InsufficientLimit as e:
        db.rollback()
        record_charge("insufficient_limit")
        logging.info(f"Charge declined: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail="Insufficient card limit")

    except InvalidAmountError as e:
        db.rollback()
        raise HTTPException(status_code=422, detail=str(e))

    except PartialChargeFailure as e:
        db.rollback()
        record_charge("partial_failure")
        logging.error(
            f"Partial charge rolled back: {e}",
            extra={
                "request_id": request_id,
                "written_movements": [str(m) for m in e.written_movement_ids],
            },
        )
        raise HTTPException(status_code=500, detail="Charge failed midway and was rolled back")

    except LedgerWriteError as e:
        db.rollback()
        record_charge("failed")
        logging.error(f"Ledger write error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Ledger storage unavailable")

    except Exception as e:
        db.rollback()
        record_charge("failed")
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")


@router.put("/installment-groups/{group_id}", response_model=ChargeResponse)
def reschedule_installment_group(
    group_id: uuid.UUID,
    request_body: RescheduleRequest,
    request: Request,
    db: Session = Depends(get_db),
    service: CardChargeService = Depends(get_charge_service),
):
    """Apply amount/date changes to every installment of a plan"""
    request_id = get_request_id(request)

    try:
        result = service.reschedule_installments(
            installment_group_id=group_id,
            user_id=request_body.user_id,
            amount_cents=request_body.amount_cents,
            transaction_date=request_body.transaction_date,
            frequency=request_body.frequency,
            amount_is_total=request_body.amount_is_total,
            description=request_body.description,
        )
        db.commit()
        return _to_response(result)

    except (InstallmentGroupNotFound, CardNotFoundError) as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))

    except InsufficientLimit:
        db.rollback()
        raise HTTPException(status_code=422, detail="Insufficient card limit")

    except InvalidAmountError as e:
        db.rollback()
        raise HTTPException(status_code=422, detail=str(e))

    except (PartialChargeFailure, LedgerWriteError) as e:
        db.rollback()
        logging.error(f"Installment edit rolled back: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Installment edit failed and was rolled back")

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")
