"""Integration tests for invoice payments"""

import uuid
import pytest
from datetime import date
from sqlalchemy.exc import OperationalError
from invoice_gateway.domain.exceptions import (
    AlreadyPaid,
    InvalidAmountError,
    InvoiceNotFound,
    InvoiceReconciliationStale,
)
from invoice_gateway.domain.models import InvoiceStatus
from invoice_gateway.infrastructure.database.models import CreditCard, CreditCardInvoice, LedgerMovement
from invoice_gateway.infrastructure.database.repositories import CardRepository, InvoiceRepository
from invoice_gateway.services.card_charges import CardChargeService
from invoice_gateway.services.invoice_payments import InvoicePaymentService

pytestmark = pytest.mark.integration

USER_ID = "user_1"
ACCOUNT_ID = "checking_1"


@pytest.fixture
def charged_invoice(db, make_card) -> CreditCardInvoice:
    """February invoice of a 1,000.00-limit card holding a 200.00 purchase"""
    card = make_card(available_limit_cents=100000)
    result = CardChargeService(db).charge_card(card.id, USER_ID, 20000, date(2025, 1, 15))
    db.commit()
    return db.get(CreditCardInvoice, result.invoice_ids[0])


def _available(db, invoice) -> int:
    return db.get(CreditCard, invoice.credit_card_id).available_limit_cents


def test_full_payment_settles_invoice(db, charged_invoice):
    result = InvoicePaymentService(db).pay_invoice(
        USER_ID, ACCOUNT_ID, 20000, date(2025, 3, 5), invoice_id=charged_invoice.id
    )
    db.commit()

    assert result.status == InvoiceStatus.PAID
    assert result.paid_amount_cents == 20000
    assert result.limit_stale is False

    invoice = db.get(CreditCardInvoice, charged_invoice.id)
    assert invoice.status == "paid"
    assert invoice.paid_amount_cents == 20000
    assert invoice.total_amount_cents == 20000  # payments never count towards the total
    assert _available(db, invoice) == 100000


def test_partial_payment(db, charged_invoice):
    result = InvoicePaymentService(db).pay_invoice(
        USER_ID, ACCOUNT_ID, 5000, date(2025, 3, 5), invoice_id=charged_invoice.id
    )
    db.commit()

    assert result.status == InvoiceStatus.PARTIAL
    assert result.paid_amount_cents == 5000
    assert db.get(CreditCardInvoice, charged_invoice.id).status == "partial"
    assert _available(db, charged_invoice) == 100000 - 20000 + 5000


def test_payment_movement_is_outflow_on_account(db, charged_invoice):
    result = InvoicePaymentService(db).pay_invoice(
        USER_ID, ACCOUNT_ID, 5000, date(2025, 3, 5), invoice_id=charged_invoice.id
    )

    movement = db.get(LedgerMovement, result.movement_id)
    assert movement.amount_cents == -5000
    assert movement.type == "expense"
    assert movement.account_id == ACCOUNT_ID
    assert movement.invoice_id == charged_invoice.id
    assert movement.credit_card_id is None


def test_successive_payments_reach_paid(db, charged_invoice):
    service = InvoicePaymentService(db)

    service.pay_invoice(USER_ID, ACCOUNT_ID, 5000, date(2025, 3, 1), invoice_id=charged_invoice.id)
    result = service.pay_invoice(USER_ID, ACCOUNT_ID, 15000, date(2025, 3, 5), invoice_id=charged_invoice.id)

    assert result.status == InvoiceStatus.PAID
    assert result.paid_amount_cents == 20000


def test_pay_by_card_and_reference_month(db, charged_invoice):
    result = InvoicePaymentService(db).pay_invoice(
        USER_ID,
        ACCOUNT_ID,
        20000,
        date(2025, 3, 5),
        card_id=charged_invoice.credit_card_id,
        reference_month=date(2025, 2, 1),
    )

    assert result.invoice_id == charged_invoice.id
    assert result.status == InvoiceStatus.PAID


def test_payments_from_two_sessions_accumulate(db, second_session, charged_invoice):
    """Second session loaded the invoice before the first payment committed"""
    late_service = InvoicePaymentService(second_session)
    late_service.resolve_invoice(USER_ID, invoice_id=charged_invoice.id)
    second_session.commit()

    InvoicePaymentService(db).pay_invoice(USER_ID, ACCOUNT_ID, 5000, date(2025, 3, 1), invoice_id=charged_invoice.id)
    db.commit()
    result = late_service.pay_invoice(USER_ID, ACCOUNT_ID, 5000, date(2025, 3, 1), invoice_id=charged_invoice.id)
    second_session.commit()

    assert result.paid_amount_cents == 10000
    assert result.status == InvoiceStatus.PARTIAL

    db.expire_all()
    invoice = db.get(CreditCardInvoice, charged_invoice.id)
    assert invoice.paid_amount_cents == 10000
    assert invoice.status == "partial"
    assert db.query(LedgerMovement).filter(LedgerMovement.credit_card_id.is_(None)).count() == 2
    assert _available(db, invoice) == 100000 - 20000 + 10000


def test_second_session_sees_invoice_paid_elsewhere(db, second_session, charged_invoice):
    late_service = InvoicePaymentService(second_session)
    late_service.resolve_invoice(USER_ID, invoice_id=charged_invoice.id)
    second_session.commit()

    InvoicePaymentService(db).pay_invoice(USER_ID, ACCOUNT_ID, 20000, date(2025, 3, 1), invoice_id=charged_invoice.id)
    db.commit()

    with pytest.raises(AlreadyPaid):
        late_service.pay_invoice(USER_ID, ACCOUNT_ID, 20000, date(2025, 3, 2), invoice_id=charged_invoice.id)


def test_paid_state_write_requires_unchanged_paid_amount(db, charged_invoice):
    repo = InvoiceRepository(db)

    assert repo.update_payment_state(charged_invoice.id, USER_ID, 999, 5000, InvoiceStatus.PARTIAL) == 0
    assert repo.update_payment_state(charged_invoice.id, USER_ID, 0, 5000, InvoiceStatus.PARTIAL) == 1
    assert db.get(CreditCardInvoice, charged_invoice.id).paid_amount_cents == 5000


def test_already_paid_writes_nothing(db, charged_invoice):
    service = InvoicePaymentService(db)
    service.pay_invoice(USER_ID, ACCOUNT_ID, 20000, date(2025, 3, 5), invoice_id=charged_invoice.id)
    db.commit()
    movements_before = db.query(LedgerMovement).count()
    limit_before = _available(db, charged_invoice)

    with pytest.raises(AlreadyPaid):
        service.pay_invoice(USER_ID, ACCOUNT_ID, 100, date(2025, 3, 6), invoice_id=charged_invoice.id)

    assert db.query(LedgerMovement).count() == movements_before
    assert db.get(CreditCardInvoice, charged_invoice.id).paid_amount_cents == 20000
    assert _available(db, charged_invoice) == limit_before


def test_invoice_not_found(db, charged_invoice):
    service = InvoicePaymentService(db)

    with pytest.raises(InvoiceNotFound):
        service.pay_invoice(USER_ID, ACCOUNT_ID, 100, date(2025, 3, 5), invoice_id=uuid.uuid4())
    with pytest.raises(InvoiceNotFound):
        service.pay_invoice(
            USER_ID,
            ACCOUNT_ID,
            100,
            date(2025, 3, 5),
            card_id=charged_invoice.credit_card_id,
            reference_month=date(2030, 1, 1),
        )
    with pytest.raises(InvoiceNotFound):
        service.pay_invoice("intruder", ACCOUNT_ID, 100, date(2025, 3, 5), invoice_id=charged_invoice.id)
    with pytest.raises(InvoiceNotFound):
        service.pay_invoice(USER_ID, ACCOUNT_ID, 100, date(2025, 3, 5))


def test_non_positive_payment_rejected(db, charged_invoice):
    with pytest.raises(InvalidAmountError):
        InvoicePaymentService(db).pay_invoice(USER_ID, ACCOUNT_ID, 0, date(2025, 3, 5), invoice_id=charged_invoice.id)


def test_limit_failure_keeps_payment(db, charged_invoice, monkeypatch):
    """Card limit update fails: payment and invoice stay settled, limit reported stale"""
    limit_before = _available(db, charged_invoice)

    def broken_adjust(self, card_id, user_id, delta_cents):
        raise OperationalError("UPDATE credit_card", {}, Exception("lock timeout"))

    monkeypatch.setattr(CardRepository, "adjust_available_limit", broken_adjust)

    result = InvoicePaymentService(db).pay_invoice(
        USER_ID, ACCOUNT_ID, 20000, date(2025, 3, 5), invoice_id=charged_invoice.id
    )
    db.commit()

    assert result.limit_stale is True
    assert result.status == InvoiceStatus.PAID
    assert db.get(CreditCardInvoice, charged_invoice.id).status == "paid"
    assert db.get(LedgerMovement, result.movement_id) is not None
    assert _available(db, charged_invoice) == limit_before


def test_invoice_update_failure_is_surfaced(db, charged_invoice, monkeypatch):
    def broken_update(self, *args, **kwargs):
        raise OperationalError("UPDATE credit_card_invoice", {}, Exception("connection reset"))

    monkeypatch.setattr(InvoiceRepository, "update_payment_state", broken_update)

    with pytest.raises(InvoiceReconciliationStale) as exc_info:
        InvoicePaymentService(db).pay_invoice(
            USER_ID, ACCOUNT_ID, 20000, date(2025, 3, 5), invoice_id=charged_invoice.id
        )

    assert exc_info.value.invoice_id == charged_invoice.id
    assert exc_info.value.movement_id is not None
