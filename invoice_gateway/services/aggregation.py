"""Invoice totals and card available-limit maintenance"""

import logging
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from invoice_gateway.domain.exceptions import LimitReconciliationStale
from invoice_gateway.domain.invoice_status import derive_status
from invoice_gateway.infrastructure.database.models import CreditCardInvoice, LedgerMovement
from invoice_gateway.infrastructure.database.repositories import CardRepository, MovementRepository

logger = logging.getLogger(__name__)


class LedgerAggregator:
    """
    Keeps derived invoice and card figures in step with the ledger.

    Called synchronously after each movement write instead of relying on
    database triggers.
    """

    def __init__(self, db: Session):
        self.db = db
        self.cards = CardRepository(db)
        self.movements = MovementRepository(db)

    def recompute_invoice_total(self, invoice: CreditCardInvoice) -> int:
        """Set total_amount_cents from the card movements attached to the invoice, refreshing status"""
        total = -self.movements.sum_card_amounts(invoice.id)
        invoice.total_amount_cents = total
        invoice.status = derive_status(invoice.paid_amount_cents or 0, total).value
        self.db.flush()
        return total

    def adjust_available_limit(self, card_id: uuid.UUID, user_id: str, delta_cents: int) -> None:
        """
        Apply delta_cents to the card's available limit.

        Raises:
            LimitReconciliationStale: the update failed or matched no card
        """
        try:
            affected = self.cards.adjust_available_limit(card_id, user_id, delta_cents)
        except SQLAlchemyError as e:
            raise LimitReconciliationStale(card_id, delta_cents, e) from e

        if affected != 1:
            raise LimitReconciliationStale(card_id, delta_cents)

    def apply_movement(self, movement: LedgerMovement) -> None:
        """Effects of a newly written card purchase: invoice total grows, available limit shrinks"""
        if movement.credit_card_id is None:
            return

        if movement.invoice is not None:
            self.recompute_invoice_total(movement.invoice)
        self.adjust_available_limit(movement.credit_card_id, movement.user_id, movement.amount_cents)
        logger.debug(
            "Movement aggregated",
            extra={
                "movement_id": str(movement.id),
                "invoice_id": str(movement.invoice_id),
                "amount_cents": movement.amount_cents,
            },
        )
