"""SQLAlchemy ORM models for the reconciliation schema"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import (
    Column,
    String,
    BigInteger,
    Integer,
    Float,
    DateTime,
    ForeignKey,
    Text,
    JSON,
    Index,
    Enum,
    text,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

from reconciliation_gateway.domain.models import BankFeedStatus, MatchStatus, AuditAction

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class Tenant(Base):
    """Top of the ownership chain"""

    __tablename__ = "tenant"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    entities = relationship("Entity", back_populates="tenant")


class Entity(Base):
    """Legal entity (business) owned by a tenant"""

    __tablename__ = "entity"

    id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(36), ForeignKey("tenant.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    tenant = relationship("Tenant", back_populates="entities")
    accounts = relationship("Account", back_populates="entity")


class Account(Base):
    """Bank account; bank feed and ledger transactions both hang off it"""

    __tablename__ = "account"

    id = Column(String(36), primary_key=True, default=new_id)
    entity_id = Column(String(36), ForeignKey("entity.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    entity = relationship("Entity", back_populates="accounts")


class BankFeedTransaction(Base):
    """Externally imported bank movement awaiting reconciliation"""

    __tablename__ = "bank_feed_transaction"

    id = Column(String(36), primary_key=True, default=new_id)
    account_id = Column(String(36), ForeignKey("account.id", ondelete="CASCADE"), nullable=False, index=True)
    bank_transaction_id = Column(Text, nullable=False)
    date = Column(DateTime, nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    amount = Column(BigInteger, nullable=False)  # cents
    currency = Column(String(3), nullable=False)
    status = Column(
        Enum(BankFeedStatus, name="bank_feed_status", native_enum=False),
        nullable=False,
        default=BankFeedStatus.PENDING,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    account = relationship("Account")
    matches = relationship("TransactionMatch", back_populates="bank_feed_transaction")


class Transaction(Base):
    """Ledger-side transaction (manual entry, invoice/bill posting, prior import)"""

    __tablename__ = "ledger_transaction"

    id = Column(String(36), primary_key=True, default=new_id)
    account_id = Column(String(36), ForeignKey("account.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(DateTime, nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    amount = Column(BigInteger, nullable=False)  # cents
    currency = Column(String(3), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    account = relationship("Account")


class TransactionMatch(Base):
    """Pairing of one bank feed transaction with one ledger transaction"""

    __tablename__ = "transaction_match"

    id = Column(String(36), primary_key=True, default=new_id)
    bank_feed_transaction_id = Column(
        String(36), ForeignKey("bank_feed_transaction.id", ondelete="CASCADE"), nullable=False, index=True
    )
    transaction_id = Column(String(36), ForeignKey("ledger_transaction.id", ondelete="SET NULL"), nullable=True, index=True)
    status = Column(Enum(MatchStatus, name="match_status", native_enum=False), nullable=False)
    confidence = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    bank_feed_transaction = relationship("BankFeedTransaction", back_populates="matches")
    transaction = relationship("Transaction")

    # At most one MATCHED row per side
    __table_args__ = (
        Index(
            "uq_match_bank_feed_matched",
            "bank_feed_transaction_id",
            unique=True,
            postgresql_where=text("status = 'MATCHED'"),
            sqlite_where=text("status = 'MATCHED'"),
        ),
        Index(
            "uq_match_transaction_matched",
            "transaction_id",
            unique=True,
            postgresql_where=text("status = 'MATCHED'"),
            sqlite_where=text("status = 'MATCHED'"),
        ),
    )


class AuditLog(Base):
    """Append-only, hash-chained audit trail (one chain per tenant)"""

    __tablename__ = "audit_log"

    id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(36), nullable=False, index=True)
    user_id = Column(Text, nullable=False)
    entity_id = Column(String(36), nullable=True)
    model = Column(Text, nullable=False)
    record_id = Column(Text, nullable=False)
    action = Column(Enum(AuditAction, name="audit_action", native_enum=False), nullable=False)
    before = Column(JSON, nullable=True)
    after = Column(JSON, nullable=True)
    sequence_number = Column(Integer, nullable=False)
    previous_hash = Column(String(64), nullable=False)
    integrity_hash = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (Index("uq_audit_tenant_sequence", "tenant_id", "sequence_number", unique=True),)
