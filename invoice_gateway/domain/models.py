"""Domain models - pure Python dataclasses representing business entities"""

import uuid
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional


class Frequency(str, Enum):
    """Repetition frequency of an installment plan"""

    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMIANNUALLY = "semiannually"
    ANNUALLY = "annually"


class InvoiceStatus(str, Enum):
    OPEN = "open"
    PARTIAL = "partial"
    PAID = "paid"


class BillingCycleRule(str, Enum):
    """How a purchase date maps to an invoice reference month"""

    NEXT_CALENDAR_MONTH = "next_calendar_month"
    CLOSING_DAY_AWARE = "closing_day_aware"


@dataclass
class CardConfig:
    """Billing configuration of a credit card, as read from the account collaborator"""

    card_id: uuid.UUID
    user_id: str
    closing_day: int
    due_day: int
    available_limit_cents: int


@dataclass
class Installment:
    """Single part of an installment plan"""

    number: int
    transaction_date: date
    amount_cents: int


@dataclass
class ChargeResult:
    """Outcome of a committed card charge"""

    installment_group_id: Optional[uuid.UUID]
    movement_ids: List[uuid.UUID] = field(default_factory=list)
    invoice_ids: List[uuid.UUID] = field(default_factory=list)
    total_charged_cents: int = 0


@dataclass
class PaymentResult:
    """Outcome of an invoice payment"""

    invoice_id: uuid.UUID
    movement_id: uuid.UUID
    paid_amount_cents: int
    total_amount_cents: int
    status: InvoiceStatus
    limit_stale: bool = False
