"""Data access layer for cards, invoices and ledger movements"""

import uuid
from datetime import date
from typing import Any, Dict, List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
from invoice_gateway.config import settings
from invoice_gateway.infrastructure.database.models import CreditCard, CreditCardInvoice, LedgerMovement
from invoice_gateway.domain.models import CardConfig, InvoiceStatus


class CardRepository:
    """Repository for credit cards (read billing config, adjust available limit)"""

    def __init__(self, db: Session):
        self.db = db

    def get_card(self, card_id: uuid.UUID, user_id: str) -> Optional[CreditCard]:
        return (
            self.db.query(CreditCard)
            .filter(CreditCard.id == card_id, CreditCard.user_id == user_id)
            .first()
        )

    def load_config(self, card_id: uuid.UUID, user_id: str) -> Optional[CardConfig]:
        """Billing configuration with defaults applied for cards missing closing/due days"""
        card = self.get_card(card_id, user_id)
        if card is None:
            return None

        return CardConfig(
            card_id=card.id,
            user_id=card.user_id,
            closing_day=card.closing_day if card.closing_day is not None else settings.default_closing_day,
            due_day=card.due_day if card.due_day is not None else settings.default_due_day,
            available_limit_cents=card.available_limit_cents or 0,
        )

    def adjust_available_limit(self, card_id: uuid.UUID, user_id: str, delta_cents: int) -> int:
        """Increment available limit in a single UPDATE; returns affected row count"""
        return (
            self.db.query(CreditCard)
            .filter(CreditCard.id == card_id, CreditCard.user_id == user_id)
            .update(
                {CreditCard.available_limit_cents: CreditCard.available_limit_cents + delta_cents},
                synchronize_session="fetch",
            )
        )


class InvoiceRepository:
    """Repository for credit card invoices"""

    def __init__(self, db: Session):
        self.db = db

    def _query(self, for_update: bool):
        query = self.db.query(CreditCardInvoice)
        if for_update:
            # Row lock plus fresh column values, even for invoices already in the session
            query = query.populate_existing().with_for_update()
        return query

    def get_invoice(
        self,
        invoice_id: uuid.UUID,
        user_id: str,
        for_update: bool = False,
    ) -> Optional[CreditCardInvoice]:
        return (
            self._query(for_update)
            .filter(CreditCardInvoice.id == invoice_id, CreditCardInvoice.user_id == user_id)
            .first()
        )

    def find_by_reference_month(
        self,
        card_id: uuid.UUID,
        reference_month: date,
        user_id: str | None = None,
        for_update: bool = False,
    ) -> Optional[CreditCardInvoice]:
        """Exact (card, reference month) lookup - at most one row exists"""
        query = self._query(for_update).filter(
            CreditCardInvoice.credit_card_id == card_id,
            CreditCardInvoice.reference_month == reference_month,
        )
        if user_id is not None:
            query = query.filter(CreditCardInvoice.user_id == user_id)
        return query.first()

    def create_invoice(
        self,
        user_id: str,
        card_id: uuid.UUID,
        reference_month: date,
        closing_date: date,
        due_date: date,
    ) -> CreditCardInvoice:
        """Insert a zeroed open invoice; raises IntegrityError if the (card, month) bucket exists"""
        db_invoice = CreditCardInvoice(
            user_id=user_id,
            credit_card_id=card_id,
            reference_month=reference_month,
            closing_date=closing_date,
            due_date=due_date,
            total_amount_cents=0,
            paid_amount_cents=0,
            status=InvoiceStatus.OPEN.value,
        )
        self.db.add(db_invoice)
        self.db.flush()  # Surface constraint violations now
        return db_invoice

    def list_by_card(self, card_id: uuid.UUID, user_id: str) -> List[CreditCardInvoice]:
        return (
            self.db.query(CreditCardInvoice)
            .filter(CreditCardInvoice.credit_card_id == card_id, CreditCardInvoice.user_id == user_id)
            .order_by(CreditCardInvoice.reference_month.desc())
            .all()
        )

    def list_by_reference_month(self, user_id: str, reference_month: date) -> List[CreditCardInvoice]:
        return (
            self.db.query(CreditCardInvoice)
            .filter(
                CreditCardInvoice.user_id == user_id,
                CreditCardInvoice.reference_month == reference_month,
            )
            .all()
        )

    def update_payment_state(
        self,
        invoice_id: uuid.UUID,
        user_id: str,
        expected_paid_cents: int,
        paid_amount_cents: int,
        status: InvoiceStatus,
    ) -> int:
        """Write the new paid state only if paid amount is still what the caller read"""
        return (
            self.db.query(CreditCardInvoice)
            .filter(
                CreditCardInvoice.id == invoice_id,
                CreditCardInvoice.user_id == user_id,
                CreditCardInvoice.paid_amount_cents == expected_paid_cents,
            )
            .update(
                {
                    CreditCardInvoice.paid_amount_cents: paid_amount_cents,
                    CreditCardInvoice.status: status.value,
                },
                synchronize_session="fetch",
            )
        )


class MovementRepository:
    """Repository for ledger movements (card purchases and invoice payments)"""

    def __init__(self, db: Session):
        self.db = db

    def create_movement(
        self,
        user_id: str,
        amount_cents: int,
        transaction_date: date,
        invoice_id: uuid.UUID | None = None,
        credit_card_id: uuid.UUID | None = None,
        account_id: str | None = None,
        category_id: str | None = None,
        description: str = "",
        installment_number: int = 1,
        total_installments: int = 1,
        installment_group_id: uuid.UUID | None = None,
    ) -> LedgerMovement:
        db_movement = LedgerMovement(
            user_id=user_id,
            account_id=account_id,
            category_id=category_id,
            credit_card_id=credit_card_id,
            invoice_id=invoice_id,
            description=description,
            amount_cents=amount_cents,
            transaction_date=transaction_date,
            type="expense",
            installment_number=installment_number,
            total_installments=total_installments,
            installment_group_id=installment_group_id,
        )
        self.db.add(db_movement)
        self.db.flush()
        return db_movement

    def list_group(self, installment_group_id: uuid.UUID, user_id: str) -> List[LedgerMovement]:
        return (
            self.db.query(LedgerMovement)
            .filter(
                LedgerMovement.installment_group_id == installment_group_id,
                LedgerMovement.user_id == user_id,
            )
            .order_by(LedgerMovement.installment_number)
            .all()
        )

    def sum_card_amounts(self, invoice_id: uuid.UUID) -> int:
        """Signed sum of card purchase movements attached to an invoice (payments excluded)"""
        total = (
            self.db.query(func.coalesce(func.sum(LedgerMovement.amount_cents), 0))
            .filter(
                LedgerMovement.invoice_id == invoice_id,
                LedgerMovement.credit_card_id.isnot(None),
            )
            .scalar()
        )
        return int(total or 0)

    def update_movement(self, movement_id: uuid.UUID, user_id: str, values: Dict[str, Any]) -> int:
        return (
            self.db.query(LedgerMovement)
            .filter(LedgerMovement.id == movement_id, LedgerMovement.user_id == user_id)
            .update(values, synchronize_session="fetch")
        )
