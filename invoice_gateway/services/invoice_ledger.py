"""Get-or-create of the one invoice per card and reference month"""

import logging
import uuid
from datetime import date

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from invoice_gateway.domain.billing_cycle import closing_and_due_dates_for
from invoice_gateway.domain.exceptions import InvoiceCreationFailed
from invoice_gateway.infrastructure.database.repositories import InvoiceRepository
from invoice_gateway.infrastructure.observability.metrics import invoice_conflict_counter, invoice_created_counter
from invoice_gateway.utils.date_utils import first_of_month, format_reference_month

logger = logging.getLogger(__name__)


class InvoiceLedger:
    """Resolves the invoice bucket a movement is charged to"""

    def __init__(self, db: Session):
        self.db = db
        self.invoices = InvoiceRepository(db)

    def get_or_create_invoice(
        self,
        card_id: uuid.UUID,
        reference_month: date,
        user_id: str,
        closing_day: int,
        due_day: int,
    ) -> uuid.UUID:
        """
        Return the id of the invoice for (card, reference month), creating it if needed.

        The insert runs in a SAVEPOINT. Losing the race against a concurrent
        creator trips the unique constraint; the savepoint is rolled back and
        the winner's row is returned, so only one invoice ever exists per bucket.

        Raises:
            InvoiceCreationFailed: persistence failed for any other reason
        """
        reference_month = first_of_month(reference_month)

        try:
            existing = self.invoices.find_by_reference_month(card_id, reference_month)
        except SQLAlchemyError as e:
            raise InvoiceCreationFailed(f"Invoice lookup failed: {e}") from e
        if existing is not None:
            return existing.id

        closing_date, due_date = closing_and_due_dates_for(reference_month, closing_day, due_day)

        try:
            with self.db.begin_nested():
                invoice = self.invoices.create_invoice(
                    user_id=user_id,
                    card_id=card_id,
                    reference_month=reference_month,
                    closing_date=closing_date,
                    due_date=due_date,
                )
        except IntegrityError:
            invoice_conflict_counter.inc()
            logger.info(
                "Invoice created concurrently, using existing row",
                extra={"card_id": str(card_id), "reference_month": format_reference_month(reference_month)},
            )
            try:
                winner = self.invoices.find_by_reference_month(card_id, reference_month)
            except SQLAlchemyError as e:
                raise InvoiceCreationFailed(f"Invoice re-fetch failed: {e}") from e
            if winner is None:
                raise InvoiceCreationFailed(
                    f"Invoice insert conflicted but no invoice found for card {card_id} "
                    f"month {format_reference_month(reference_month)}"
                )
            return winner.id
        except SQLAlchemyError as e:
            logger.error(
                f"Invoice creation failed: {e}",
                extra={"card_id": str(card_id), "reference_month": format_reference_month(reference_month)},
            )
            raise InvoiceCreationFailed(f"Invoice creation failed: {e}") from e

        invoice_created_counter.inc()
        logger.info(
            "Invoice created",
            extra={
                "invoice_id": str(invoice.id),
                "card_id": str(card_id),
                "reference_month": format_reference_month(reference_month),
                "closing_date": closing_date.isoformat(),
                "due_date": due_date.isoformat(),
            },
        )
        return invoice.id
