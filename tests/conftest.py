"""Pytest fixtures for testing"""

import pytest
from typing import Callable, Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from invoice_gateway.api.main import create_app
from invoice_gateway.infrastructure.database.models import Base, CreditCard
from invoice_gateway.infrastructure.database.session import get_db


# Test database
TEST_DATABASE_URL = "sqlite:///./test_invoices.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})


# pysqlite manages transactions itself and breaks SAVEPOINT; let SQLAlchemy emit BEGIN instead
@event.listens_for(engine, "connect")
def _disable_pysqlite_transactions(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(engine, "begin")
def _emit_begin(conn):
    conn.exec_driver_sql("BEGIN")


TestingSessionLocal = sessionmaker(autoflush=False, expire_on_commit=False, bind=engine)

USER_ID = "user_1"


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def second_session(db: Session) -> Generator[Session, None, None]:
    """Independent session on the test database, for interleaved writers"""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def make_card(db: Session) -> Callable[..., CreditCard]:
    """Factory for credit cards owned by USER_ID"""

    def _make_card(
        available_limit_cents: int = 500_000,
        credit_limit_cents: int | None = None,
        closing_day: int | None = 25,
        due_day: int | None = 5,
        user_id: str = USER_ID,
    ) -> CreditCard:
        card = CreditCard(
            user_id=user_id,
            name="Test Card",
            last_digits="4242",
            closing_day=closing_day,
            due_day=due_day,
            credit_limit_cents=credit_limit_cents if credit_limit_cents is not None else available_limit_cents,
            available_limit_cents=available_limit_cents,
        )
        db.add(card)
        db.commit()
        return card

    return _make_card


@pytest.fixture
def card(make_card) -> CreditCard:
    """Card with a 5,000.00 limit, closing on the 25th and due on the 5th"""
    return make_card()
