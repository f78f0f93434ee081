"""Shared test fixtures."""

import os

# Keep the app's own engine off disk; tests bind their own in-memory database
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient
from datetime import date, datetime, timedelta
from decimal import Decimal
import uuid

from app.database import Base
from app.dependencies import get_db
from app.main import app
from app.models.account import Account, AccountType
from app.models.category import Category
from app.models.transaction import Transaction
from app.models.recurring import RecurringExpense, ExpenseType, Priority, ConfidenceLevel, Trend
from app.services.pattern_detector import TransactionRecord


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database for each test using in-memory SQLite."""
    # Use StaticPool to ensure all connections use the same in-memory database
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    Base.metadata.create_all(bind=engine)

    # Create session
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def client(db_session):
    """Create a test client with database override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def sample_account(db_session):
    """Create a checking account with a balance on record."""
    account = Account(id=str(uuid.uuid4()), name="Test Checking")
    account.account_type = AccountType.bank
    account.balance = Decimal("1000.00")
    account.is_active = True

    db_session.add(account)
    db_session.commit()
    db_session.refresh(account)
    return account


@pytest.fixture
def sample_category(db_session):
    """Create a sample category."""
    category = Category(
        id=str(uuid.uuid4()),
        name="Subscriptions",
    )
    db_session.add(category)
    db_session.commit()
    db_session.refresh(category)
    return category


@pytest.fixture
def add_transactions(db_session, sample_account):
    """
    Factory that stores a merchant's charges.

    ``add_transactions("NETFLIX.COM", [15.99] * 4, start=date(2024, 1, 5), every=30)``
    """
    def _add(description, amounts, start=date(2024, 1, 5), every=30, dates=None, category_id=None):
        if dates is None:
            dates = [start + timedelta(days=every * i) for i in range(len(amounts))]
        created = []
        for txn_date, amount in zip(dates, amounts):
            txn = Transaction(
                id=str(uuid.uuid4()),
                date=txn_date,
                amount=-Decimal(str(amount)),
                raw_description=description,
                account_id=sample_account.id,
                category_id=category_id,
            )
            db_session.add(txn)
            created.append(txn)
        db_session.commit()
        return created

    return _add


@pytest.fixture
def sample_recurring_expense(db_session):
    """Create a persisted Netflix subscription pattern."""
    expense = RecurringExpense(
        id=str(uuid.uuid4()),
        merchant_key="netflix",
        merchant_display_name="Netflix",
        category="Subscriptions",
        expense_type=ExpenseType.subscription,
        priority=Priority.important,
        confidence=ConfidenceLevel.high,
        frequency_days=30.0,
        frequency_variance_days=0.0,
        typical_day_of_month=5,
        typical_amount=Decimal("15.99"),
        amount_variance_pct=0.0,
        min_amount=Decimal("15.99"),
        max_amount=Decimal("15.99"),
        last_amount=Decimal("15.99"),
        occurrence_count=4,
        first_occurrence_date=date(2024, 1, 5),
        last_occurrence_date=date(2024, 4, 4),
        sample_transaction_ids=[],
        next_predicted_date=date(2024, 5, 4),
        next_predicted_amount=Decimal("15.99"),
        prediction_confidence=ConfidenceLevel.high,
        trend=Trend.stable,
        tracked=True,
        user_confirmed=False,
        user_excluded=False,
        detected_at=datetime(2024, 4, 10),
        updated_at=datetime(2024, 4, 10),
    )
    db_session.add(expense)
    db_session.commit()
    db_session.refresh(expense)
    return expense


@pytest.fixture
def make_records():
    """Factory for TransactionRecord read models used by the pure detector functions."""
    def _make(description, amounts, start=date(2024, 1, 5), every=30, dates=None, category=None, prefix=None):
        if dates is None:
            dates = [start + timedelta(days=every * i) for i in range(len(amounts))]
        prefix = prefix or description.split()[0].lower()
        return [
            TransactionRecord(
                id=f"{prefix}-{i}",
                date=txn_date,
                amount=-float(amount),
                description=description,
                category=category,
            )
            for i, (txn_date, amount) in enumerate(zip(dates, amounts))
        ]

    return _make
