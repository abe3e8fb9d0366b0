"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session
from invoice_gateway.infrastructure.database.session import get_db
from invoice_gateway.services.card_charges import CardChargeService
from invoice_gateway.services.invoice_payments import InvoicePaymentService


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_charge_service(db: Session = Depends(get_db)) -> CardChargeService:
    """Card charge service bound to the request session"""
    return CardChargeService(db)


def get_payment_service(db: Session = Depends(get_db)) -> InvoicePaymentService:
    """Invoice payment service bound to the request session"""
    return InvoicePaymentService(db)
