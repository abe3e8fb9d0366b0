"""Invoice payments - ledger movement, invoice settlement and card limit restore"""

import logging
import uuid
from datetime import date
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from invoice_gateway.config import settings
from invoice_gateway.domain.exceptions import (
    AlreadyPaid,
    InvalidAmountError,
    InvoiceNotFound,
    InvoiceReconciliationStale,
    LedgerWriteError,
    LimitReconciliationStale,
)
from invoice_gateway.domain.invoice_status import apply_payment
from invoice_gateway.domain.models import InvoiceStatus, PaymentResult
from invoice_gateway.infrastructure.database.models import CreditCardInvoice
from invoice_gateway.infrastructure.database.repositories import InvoiceRepository, MovementRepository
from invoice_gateway.infrastructure.observability.metrics import reconciliation_failure_counter
from invoice_gateway.services.aggregation import LedgerAggregator
from invoice_gateway.utils.date_utils import first_of_month, format_reference_month

logger = logging.getLogger(__name__)


class InvoicePaymentService:
    """Applies payments to credit card invoices"""

    def __init__(self, db: Session):
        self.db = db
        self.invoices = InvoiceRepository(db)
        self.movements = MovementRepository(db)
        self.aggregator = LedgerAggregator(db)

    def resolve_invoice(
        self,
        user_id: str,
        invoice_id: Optional[uuid.UUID] = None,
        card_id: Optional[uuid.UUID] = None,
        reference_month: Optional[date] = None,
    ) -> CreditCardInvoice:
        """
        Find and lock the target invoice by id, or by (card, reference month) when no id is given.

        The row is re-read even when already loaded in the session, so paid
        amount and status reflect payments committed by other sessions.
        """
        if invoice_id is not None:
            invoice = self.invoices.get_invoice(invoice_id, user_id, for_update=True)
        elif card_id is not None and reference_month is not None:
            invoice = self.invoices.find_by_reference_month(
                card_id, first_of_month(reference_month), user_id, for_update=True
            )
        else:
            raise InvoiceNotFound("Invoice id or card and reference month required")

        if invoice is None:
            target = str(invoice_id) if invoice_id else f"{card_id}/{format_reference_month(reference_month)}"
            raise InvoiceNotFound(f"Invoice {target} not found")
        return invoice

    def pay_invoice(
        self,
        user_id: str,
        account_id: str,
        amount_cents: int,
        payment_date: date,
        invoice_id: Optional[uuid.UUID] = None,
        card_id: Optional[uuid.UUID] = None,
        reference_month: Optional[date] = None,
    ) -> PaymentResult:
        """
        Record a payment against an invoice.

        Write order: payment movement, invoice paid amount/status, card limit.
        A failed limit restore does not undo the payment; it is logged and
        reported through PaymentResult.limit_stale.

        Raises:
            InvoiceNotFound, AlreadyPaid, InvalidAmountError: nothing written
            LedgerWriteError: the payment movement could not be written
            InvoiceReconciliationStale: movement written, invoice not updated (including
                when its paid amount changed after it was read)
        """
        if amount_cents <= 0:
            raise InvalidAmountError(f"Payment amount must be positive, got {amount_cents}")

        invoice = self.resolve_invoice(user_id, invoice_id, card_id, reference_month)
        if invoice.status == InvoiceStatus.PAID.value:
            raise AlreadyPaid(invoice.id)

        total = invoice.total_amount_cents or 0
        read_paid = invoice.paid_amount_cents or 0
        new_paid, new_status = apply_payment(read_paid, total, amount_cents)

        # 1. Payment movement on the paying account
        try:
            movement = self.movements.create_movement(
                user_id=user_id,
                amount_cents=-abs(amount_cents),
                transaction_date=payment_date,
                invoice_id=invoice.id,
                account_id=account_id,
                description=settings.payment_description,
            )
        except SQLAlchemyError as e:
            raise LedgerWriteError(f"Payment movement could not be written: {e}") from e

        # 2. Invoice settlement
        try:
            affected = self.invoices.update_payment_state(invoice.id, user_id, read_paid, new_paid, new_status)
        except SQLAlchemyError as e:
            raise self._invoice_stale(invoice, movement.id, e) from e
        if affected != 1:
            raise self._invoice_stale(invoice, movement.id, None)

        # 3. Card limit restore, isolated so its failure keeps the payment
        limit_stale = False
        try:
            with self.db.begin_nested():
                self.aggregator.adjust_available_limit(invoice.credit_card_id, user_id, amount_cents)
        except LimitReconciliationStale as e:
            limit_stale = True
            reconciliation_failure_counter.labels(kind="limit").inc()
            logger.warning(
                f"Card limit not restored after payment: {e}",
                extra={
                    "invoice_id": str(invoice.id),
                    "card_id": str(invoice.credit_card_id),
                    "amount_cents": amount_cents,
                },
            )

        return PaymentResult(
            invoice_id=invoice.id,
            movement_id=movement.id,
            paid_amount_cents=new_paid,
            total_amount_cents=total,
            status=new_status,
            limit_stale=limit_stale,
        )

    def _invoice_stale(
        self,
        invoice: CreditCardInvoice,
        movement_id: uuid.UUID,
        cause: Exception | None,
    ) -> InvoiceReconciliationStale:
        reconciliation_failure_counter.labels(kind="invoice").inc()
        logger.error(
            "Payment recorded but invoice not updated",
            extra={"invoice_id": str(invoice.id), "movement_id": str(movement_id), "cause": str(cause)},
        )
        return InvoiceReconciliationStale(invoice.id, movement_id, cause)
