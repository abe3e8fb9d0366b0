"""SQLAlchemy ORM models for cards, invoices and ledger movements"""

import uuid
from sqlalchemy import Column, String, BigInteger, Boolean, DateTime, Date, Integer, ForeignKey, Text, Uuid, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class CreditCard(Base):
    """Credit card owned by the account collaborator; only available_limit_cents is written here"""

    __tablename__ = "credit_card"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)
    name = Column(Text, nullable=False)
    last_digits = Column(String(4), nullable=True)
    closing_day = Column(Integer, nullable=True)
    due_day = Column(Integer, nullable=True)
    credit_limit_cents = Column(BigInteger, nullable=False, default=0)
    available_limit_cents = Column(BigInteger, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    invoices = relationship("CreditCardInvoice", back_populates="card")


class CreditCardInvoice(Base):
    """Monthly invoice bucket - one per card and reference month"""

    __tablename__ = "credit_card_invoice"
    __table_args__ = (
        UniqueConstraint("credit_card_id", "reference_month", name="uq_invoice_card_reference_month"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)
    credit_card_id = Column(Uuid, ForeignKey("credit_card.id", ondelete="CASCADE"), nullable=False)
    reference_month = Column(Date, nullable=False)  # first day of the month
    closing_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    total_amount_cents = Column(BigInteger, nullable=False, default=0)
    paid_amount_cents = Column(BigInteger, nullable=False, default=0)
    status = Column(Text, nullable=False, default="open")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    card = relationship("CreditCard", back_populates="invoices")
    movements = relationship("LedgerMovement", back_populates="invoice")


class LedgerMovement(Base):
    """
    Money movement row.

    Card purchases carry credit_card_id; invoice payments carry invoice_id with
    credit_card_id NULL and are excluded from invoice totals.
    """

    __tablename__ = "ledger_movement"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)
    account_id = Column(Text, nullable=True)
    category_id = Column(Text, nullable=True)
    credit_card_id = Column(Uuid, ForeignKey("credit_card.id", ondelete="CASCADE"), nullable=True, index=True)
    invoice_id = Column(Uuid, ForeignKey("credit_card_invoice.id"), nullable=True, index=True)
    description = Column(Text, nullable=False, default="")
    amount_cents = Column(BigInteger, nullable=False)
    transaction_date = Column(Date, nullable=False)
    type = Column(Text, nullable=False, default="expense")
    installment_number = Column(Integer, nullable=False, default=1)
    total_installments = Column(Integer, nullable=False, default=1)
    installment_group_id = Column(Uuid, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    invoice = relationship("CreditCardInvoice", back_populates="movements")
