"""Card purchases - limit pre-check, installment expansion and invoice attachment"""

import logging
import uuid
from datetime import date
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from invoice_gateway.config import settings
from invoice_gateway.domain.billing_cycle import reference_month_for
from invoice_gateway.domain.exceptions import (
    CardNotFoundError,
    DomainException,
    InstallmentGroupNotFound,
    InsufficientLimit,
    InvoiceCreationFailed,
    LedgerWriteError,
    PartialChargeFailure,
)
from invoice_gateway.domain.installments import charge_total, expand_installments
from invoice_gateway.domain.models import BillingCycleRule, CardConfig, ChargeResult, Frequency
from invoice_gateway.infrastructure.database.repositories import CardRepository, InvoiceRepository, MovementRepository
from invoice_gateway.services.aggregation import LedgerAggregator
from invoice_gateway.services.invoice_ledger import InvoiceLedger

logger = logging.getLogger(__name__)


class CardChargeService:
    """
    Records card purchases on the ledger.

    The service flushes but never commits: the caller owns the transaction.
    When a step fails after movements were already written the caller gets a
    PartialChargeFailure listing them, so it can roll back or reconcile.
    """

    def __init__(self, db: Session, rule: BillingCycleRule | None = None):
        self.db = db
        self.rule = BillingCycleRule(rule or settings.billing_cycle_rule)
        self.cards = CardRepository(db)
        self.invoices = InvoiceRepository(db)
        self.movements = MovementRepository(db)
        self.ledger = InvoiceLedger(db)
        self.aggregator = LedgerAggregator(db)

    def _load_card(self, card_id: uuid.UUID, user_id: str) -> CardConfig:
        card = self.cards.load_config(card_id, user_id)
        if card is None:
            raise CardNotFoundError(f"Card {card_id} not found")
        return card

    def _resolve_invoice(self, card: CardConfig, transaction_date: date) -> uuid.UUID:
        reference_month = reference_month_for(transaction_date, card.closing_day, self.rule)
        return self.ledger.get_or_create_invoice(
            card.card_id,
            reference_month,
            card.user_id,
            card.closing_day,
            card.due_day,
        )

    def charge_card(
        self,
        card_id: uuid.UUID,
        user_id: str,
        amount_cents: int,
        transaction_date: date,
        installments: int = 1,
        frequency: Frequency = Frequency.MONTHLY,
        amount_is_total: bool = False,
        description: str = "",
        account_id: Optional[str] = None,
        category_id: Optional[str] = None,
    ) -> ChargeResult:
        """
        Charge a purchase (single or installment plan) to a card.

        Flow:
        1. Load card billing config
        2. Expand the plan and check the total against the available limit
        3. Per installment: resolve invoice, write movement, aggregate

        Raises:
            CardNotFoundError, InvalidAmountError, InsufficientLimit: nothing written
            InvoiceCreationFailed, LedgerWriteError: failed before the first movement
            PartialChargeFailure: failed after at least one movement was written
        """
        card = self._load_card(card_id, user_id)

        amount_cents = abs(amount_cents)
        plan = expand_installments(amount_cents, installments, transaction_date, frequency, amount_is_total)

        required = charge_total(amount_cents, installments, amount_is_total)
        if card.available_limit_cents < required:
            raise InsufficientLimit(card.available_limit_cents, required)

        group_id = uuid.uuid4() if installments > 1 else None
        result = ChargeResult(installment_group_id=group_id)

        for part in plan:
            try:
                invoice_id = self._resolve_invoice(card, part.transaction_date)
                movement = self.movements.create_movement(
                    user_id=user_id,
                    amount_cents=-abs(part.amount_cents),
                    transaction_date=part.transaction_date,
                    invoice_id=invoice_id,
                    credit_card_id=card.card_id,
                    account_id=account_id,
                    category_id=category_id,
                    description=description,
                    installment_number=part.number,
                    total_installments=installments,
                    installment_group_id=group_id,
                )
                result.movement_ids.append(movement.id)
                self.aggregator.apply_movement(movement)
            except (DomainException, SQLAlchemyError) as e:
                self._raise_charge_failure(result, card, e)

            if invoice_id not in result.invoice_ids:
                result.invoice_ids.append(invoice_id)
            result.total_charged_cents += abs(part.amount_cents)

        logger.info(
            "Card charged",
            extra={
                "card_id": str(card.card_id),
                "installment_group_id": str(group_id) if group_id else None,
                "installments": installments,
                "total_charged_cents": result.total_charged_cents,
            },
        )
        return result

    def reschedule_installments(
        self,
        installment_group_id: uuid.UUID,
        user_id: str,
        amount_cents: int,
        transaction_date: date,
        frequency: Frequency = Frequency.MONTHLY,
        amount_is_total: bool = False,
        description: Optional[str] = None,
    ) -> ChargeResult:
        """
        Apply an edit to every installment of a plan.

        Rewrites amount, date and invoice of each row sharing the group id,
        keeping the installment count. Invoices losing or gaining movements
        have their totals recomputed, and the card limit moves by the
        difference between the old and new plan totals.
        """
        rows = self.movements.list_group(installment_group_id, user_id)
        if not rows or rows[0].credit_card_id is None:
            raise InstallmentGroupNotFound(f"Installment group {installment_group_id} not found")

        card = self._load_card(rows[0].credit_card_id, user_id)
        count = len(rows)

        amount_cents = abs(amount_cents)
        plan = expand_installments(amount_cents, count, transaction_date, frequency, amount_is_total)

        old_total = sum(abs(row.amount_cents) for row in rows)
        new_total = sum(part.amount_cents for part in plan)
        delta = new_total - old_total
        if delta > 0 and card.available_limit_cents < delta:
            raise InsufficientLimit(card.available_limit_cents, delta)

        result = ChargeResult(installment_group_id=installment_group_id)
        touched_invoices = {row.invoice_id for row in rows if row.invoice_id is not None}

        try:
            for row, part in zip(rows, plan):
                invoice_id = self._resolve_invoice(card, part.transaction_date)
                values = {
                    "amount_cents": -abs(part.amount_cents),
                    "transaction_date": part.transaction_date,
                    "invoice_id": invoice_id,
                    "installment_number": part.number,
                    "total_installments": count,
                }
                if description is not None:
                    values["description"] = description
                self.movements.update_movement(row.id, user_id, values)

                touched_invoices.add(invoice_id)
                result.movement_ids.append(row.id)
                if invoice_id not in result.invoice_ids:
                    result.invoice_ids.append(invoice_id)
                result.total_charged_cents += part.amount_cents

            for invoice_id in touched_invoices:
                invoice = self.invoices.get_invoice(invoice_id, user_id)
                if invoice is not None:
                    self.aggregator.recompute_invoice_total(invoice)

            if delta:
                self.aggregator.adjust_available_limit(card.card_id, user_id, -delta)
        except (DomainException, SQLAlchemyError) as e:
            self._raise_charge_failure(result, card, e)

        logger.info(
            "Installment plan rescheduled",
            extra={
                "card_id": str(card.card_id),
                "installment_group_id": str(installment_group_id),
                "installments": count,
                "limit_delta_cents": -delta,
            },
        )
        return result

    def _raise_charge_failure(self, result: ChargeResult, card: CardConfig, error: Exception) -> None:
        if result.movement_ids:
            logger.error(
                f"Charge partially written: {error}",
                extra={
                    "card_id": str(card.card_id),
                    "installment_group_id": str(result.installment_group_id),
                    "written_movements": [str(m) for m in result.movement_ids],
                },
            )
            raise PartialChargeFailure(result.movement_ids, result.installment_group_id, error) from error
        if isinstance(error, InvoiceCreationFailed):
            raise error
        raise LedgerWriteError(f"Charge failed before any movement was written: {error}") from error
