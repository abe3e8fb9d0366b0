"""Domain-specific exceptions"""

import uuid
from typing import List, Optional


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidAmountError(DomainException):
    """Amount or installment count outside the accepted range"""

    pass


class CardNotFoundError(DomainException):
    """Credit card does not exist or is not owned by the user"""

    pass


class InsufficientLimit(DomainException):
    """Card available limit does not cover the purchase"""

    def __init__(self, available_cents: int, required_cents: int):
        super().__init__(
            f"Insufficient card limit: available {available_cents}, required {required_cents}"
        )
        self.available_cents = available_cents
        self.required_cents = required_cents


class InvoiceNotFound(DomainException):
    """Payment referenced an invoice that cannot be resolved"""

    pass


class AlreadyPaid(DomainException):
    """Payment attempted on an invoice that is already settled"""

    def __init__(self, invoice_id: uuid.UUID):
        super().__init__(f"Invoice {invoice_id} is already paid")
        self.invoice_id = invoice_id


class InstallmentGroupNotFound(DomainException):
    """No movements share the given installment group for this user"""

    pass


class LedgerWriteError(DomainException):
    """Persistence failure before any ledger row was written"""

    pass


class InvoiceCreationFailed(LedgerWriteError):
    """Invoice get-or-create failed for a reason other than the uniqueness race"""

    pass


class PartialChargeFailure(DomainException):
    """Some installments of a charge were written before a later step failed"""

    def __init__(
        self,
        written_movement_ids: List[uuid.UUID],
        installment_group_id: Optional[uuid.UUID],
        cause: Exception,
    ):
        super().__init__(
            f"Charge failed after {len(written_movement_ids)} movement(s) were written: {cause}"
        )
        self.written_movement_ids = written_movement_ids
        self.installment_group_id = installment_group_id
        self.cause = cause


class InvoiceReconciliationStale(DomainException):
    """Payment movement was written but the invoice could not be updated"""

    def __init__(self, invoice_id: uuid.UUID, movement_id: uuid.UUID, cause: Exception | None = None):
        super().__init__(
            f"Payment movement {movement_id} recorded but invoice {invoice_id} was not updated"
        )
        self.invoice_id = invoice_id
        self.movement_id = movement_id
        self.cause = cause


class LimitReconciliationStale(DomainException):
    """Card available limit could not be adjusted after the ledger was updated"""

    def __init__(self, card_id: uuid.UUID, delta_cents: int, cause: Exception | None = None):
        super().__init__(f"Available limit of card {card_id} not adjusted by {delta_cents}")
        self.card_id = card_id
        self.delta_cents = delta_cents
        self.cause = cause
