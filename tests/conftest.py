"""
Pytest fixtures and configuration for LedgerFlow tests.

This module provides common fixtures used across all test modules,
including database setup, test client, users and ledger entries.
"""

import os

# Settings are cached on first import; point them at throwaway values first
os.environ.setdefault("LEDGERFLOW_DATABASE_URL", "sqlite://")
os.environ.setdefault("LEDGERFLOW_BCRYPT_ROUNDS", "4")

import pytest
from datetime import date, timedelta
from decimal import Decimal
from typing import Generator

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from app.main import app
from app.db import get_db, Base
from app.models.user import User
from app.models.income import Income
from app.models.expense import Expense
from app.models.invoice import Invoice, InvoiceItem
from app.services import sync
from app.utils.auth import hash_password


# Create in-memory SQLite database for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """
    Create a fresh database session for each test.

    Creates all tables before the test and drops them after.
    """
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """
    Create a test client with overridden database dependency.
    """
    app.dependency_overrides[get_db] = lambda: db_session
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _make_user(db_session: Session, username: str, name: str) -> User:
    user = User(
        username=username,
        password_hash=hash_password("testpassword123"),
        name=name,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def test_user(db_session: Session) -> User:
    """
    Create a test user in the database.
    """
    return _make_user(db_session, "testuser", "Test User")


@pytest.fixture
def other_user(db_session: Session) -> User:
    """
    A second user, for ownership isolation checks.
    """
    return _make_user(db_session, "otheruser", "Other User")


@pytest.fixture
def test_user_with_auth(client: TestClient, test_user: User) -> User:
    """
    Create a test user and set authentication cookie.
    """
    client.cookies.set("username", test_user.username)
    return test_user


def income_data(**overrides) -> dict:
    data = {
        "source": "Acme Corp",
        "amount": "1500.00",
        "date": date.today().isoformat(),
        "category": "salary",
    }
    data.update(overrides)
    return data


def expense_data(**overrides) -> dict:
    data = {
        "payee": "City Power",
        "amount": "120.50",
        "date": (date.today() + timedelta(days=10)).isoformat(),
        "status": "pending",
        "category": "utilities",
        "payment_method": "bank",
    }
    data.update(overrides)
    return data


def invoice_data(**overrides) -> dict:
    data = {
        "invoice_number": "INV-1001",
        "client_name": "Globex",
        "amount": "300.00",
        "due_date": (date.today() + timedelta(days=30)).isoformat(),
        "date": date.today().isoformat(),
        "type": "income",
        "status": "pending",
        "items": [
            {"description": "Consulting", "quantity": "2", "price": "150.00"},
        ],
        "subtotal": "300.00",
        "tax": "0.00",
        "total": "300.00",
    }
    data.update(overrides)
    return data


@pytest.fixture
def test_income(db_session: Session, test_user: User) -> Income:
    """
    Create a test income (and its linked invoice) through the sync flow.
    """
    return sync.create_income(db_session, test_user.id, income_data())["income"]


@pytest.fixture
def test_expense(db_session: Session, test_user: User) -> Expense:
    """
    Create a test expense (and its linked invoice) through the sync flow.
    """
    return sync.create_expense(db_session, test_user.id, expense_data())["expense"]


@pytest.fixture
def other_user_income(db_session: Session, other_user: User) -> Income:
    return sync.create_income(db_session, other_user.id, income_data(source="Other Co"))["income"]


@pytest.fixture
def unlinked_income(db_session: Session, test_user: User) -> Income:
    """
    An income stored without going through the sync flow (no invoice).
    """
    income = Income(
        user_id=test_user.id,
        source="Legacy Client",
        amount=Decimal("800.00"),
        date=date.today(),
        category="freelance",
    )
    db_session.add(income)
    db_session.commit()
    db_session.refresh(income)
    return income


@pytest.fixture
def legacy_invoice(db_session: Session, test_user: User) -> Invoice:
    """
    An unlinked income invoice that matches ``unlinked_income`` by name and amount.
    """
    invoice = Invoice(
        user_id=test_user.id,
        invoice_number="OLD-0001",
        client_name="Legacy Client",
        amount=Decimal("800.00"),
        due_date=date.today(),
        date=date.today(),
        status="paid",
        type="income",
        subtotal=Decimal("800.00"),
        tax=Decimal("0.00"),
        total=Decimal("800.00"),
        items=[InvoiceItem(description="Legacy work", quantity=1, price=Decimal("800.00"))],
    )
    db_session.add(invoice)
    db_session.commit()
    db_session.refresh(invoice)
    return invoice
