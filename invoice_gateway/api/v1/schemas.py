"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field
from datetime import date
from typing import List, Optional
from uuid import UUID

from invoice_gateway.domain.models import Frequency, InvoiceStatus
from invoice_gateway.utils.date_utils import parse_reference_month

REFERENCE_MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


class ChargeRequest(BaseModel):
    """Request body for POST /v1/cards/{card_id}/charges"""

    user_id: str = Field(..., min_length=1, description="Card owner")
    amount_cents: int = Field(..., gt=0, description="Per-installment amount, or plan total when amount_is_total")
    transaction_date: date
    installments: int = Field(1, ge=1, le=480)
    frequency: Frequency = Frequency.MONTHLY
    amount_is_total: bool = False
    description: str = ""
    account_id: Optional[str] = None
    category_id: Optional[str] = None


class RescheduleRequest(BaseModel):
    """Request body for PUT /v1/installment-groups/{group_id}"""

    user_id: str = Field(..., min_length=1)
    amount_cents: int = Field(..., gt=0)
    transaction_date: date
    frequency: Frequency = Frequency.MONTHLY
    amount_is_total: bool = False
    description: Optional[str] = None


class ChargeResponse(BaseModel):
    installment_group_id: Optional[UUID] = None
    movement_ids: List[UUID]
    invoice_ids: List[UUID]
    total_charged_cents: int


class PaymentRequest(BaseModel):
    """Request body for POST /v1/invoices/payments - invoice_id, or credit_card_id + reference_month"""

    user_id: str = Field(..., min_length=1)
    account_id: str = Field(..., min_length=1, description="Account the payment leaves from")
    amount_cents: int = Field(..., gt=0)
    payment_date: date
    invoice_id: Optional[UUID] = None
    credit_card_id: Optional[UUID] = None
    reference_month: Optional[str] = Field(None, pattern=REFERENCE_MONTH_PATTERN, description="YYYY-MM")

    def reference_month_date(self) -> Optional[date]:
        return parse_reference_month(self.reference_month) if self.reference_month else None


class PaymentResponse(BaseModel):
    invoice_id: UUID
    movement_id: UUID
    paid_amount_cents: int
    total_amount_cents: int
    status: InvoiceStatus
    limit_stale: bool


class InvoiceSchema(BaseModel):
    """Single credit card invoice"""

    invoice_id: UUID
    credit_card_id: UUID
    reference_month: str
    closing_date: date
    due_date: date
    total_amount_cents: int
    paid_amount_cents: int
    outstanding_cents: int
    status: InvoiceStatus
    is_settled: bool


class InvoiceListResponse(BaseModel):
    credit_card_id: UUID
    invoices: List[InvoiceSchema]


class OutstandingResponse(BaseModel):
    """Response for GET /v1/invoices/outstanding"""

    user_id: str
    reference_month: str
    amount_owed_cents: int
    unpaid_invoice_ids: List[UUID]
