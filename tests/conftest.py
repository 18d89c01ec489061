"""Pytest fixtures for testing"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import pytest
from datetime import datetime
from typing import Callable, Generator, Optional
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker, Session

from reconciliation_gateway.api.main import create_app
from reconciliation_gateway.domain.models import BankFeedStatus, MatchStatus
from reconciliation_gateway.infrastructure.database.models import (
    Account,
    BankFeedTransaction,
    Base,
    Entity,
    Tenant,
    Transaction,
    TransactionMatch,
)
from reconciliation_gateway.infrastructure.database.session import build_engine, get_db

TENANT_ID = "tenant-abc-123"
OTHER_TENANT_ID = "tenant-xyz-999"
USER_ID = "user-test-456"


@pytest.fixture
def db(tmp_path) -> Generator[Session, None, None]:
    """Create test database and session"""
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def account(db: Session) -> Account:
    """Checking account owned by TENANT_ID"""
    tenant = Tenant(id=TENANT_ID, name="Acme Books")
    entity = Entity(tenant_id=TENANT_ID, name="Acme Inc")
    db.add_all([tenant, entity])
    db.flush()
    acct = Account(entity_id=entity.id, name="Checking", currency="CAD")
    db.add(acct)
    db.commit()
    return acct


@pytest.fixture
def other_account(db: Session) -> Account:
    """Account owned by a different tenant"""
    tenant = Tenant(id=OTHER_TENANT_ID, name="Other Books")
    entity = Entity(tenant_id=OTHER_TENANT_ID, name="Other Inc")
    db.add_all([tenant, entity])
    db.flush()
    acct = Account(entity_id=entity.id, name="Foreign Checking", currency="CAD")
    db.add(acct)
    db.commit()
    return acct


@pytest.fixture
def make_bank_feed(db: Session) -> Callable[..., BankFeedTransaction]:
    """Factory for bank feed transactions"""
    counter = {"n": 0}

    def _make(
        account: Account,
        amount: int = 550,
        date: datetime = datetime(2024, 1, 15),
        description: str = "STARBUCKS #1234",
        status: BankFeedStatus = BankFeedStatus.PENDING,
        deleted_at: Optional[datetime] = None,
    ) -> BankFeedTransaction:
        counter["n"] += 1
        bft = BankFeedTransaction(
            account_id=account.id,
            bank_transaction_id=f"bank-{counter['n']}",
            date=date,
            description=description,
            amount=amount,
            currency="CAD",
            status=status,
            deleted_at=deleted_at,
        )
        db.add(bft)
        db.commit()
        return bft

    return _make


@pytest.fixture
def make_transaction(db: Session) -> Callable[..., Transaction]:
    """Factory for ledger transactions"""

    def _make(
        account: Account,
        amount: int = 550,
        date: datetime = datetime(2024, 1, 15),
        description: str = "Coffee shop purchase",
        deleted_at: Optional[datetime] = None,
    ) -> Transaction:
        txn = Transaction(
            account_id=account.id,
            date=date,
            description=description,
            amount=amount,
            currency="CAD",
            deleted_at=deleted_at,
        )
        db.add(txn)
        db.commit()
        return txn

    return _make


@pytest.fixture
def make_match(db: Session) -> Callable[..., TransactionMatch]:
    """Insert a match row directly, bypassing the service"""

    def _make(
        bank_feed: BankFeedTransaction,
        transaction: Transaction,
        status: MatchStatus = MatchStatus.MATCHED,
        confidence: float = 1.0,
    ) -> TransactionMatch:
        match = TransactionMatch(
            bank_feed_transaction_id=bank_feed.id,
            transaction_id=transaction.id,
            status=status,
            confidence=confidence,
        )
        db.add(match)
        db.commit()
        return match

    return _make


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
def auth_headers() -> dict:
    return {"X-Tenant-ID": TENANT_ID, "X-User-ID": USER_ID}
