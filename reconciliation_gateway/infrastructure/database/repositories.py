"""Data access layer for reconciliation entities.

Every query method takes ``tenant_id`` as its first, required argument and
filters through the account -> entity -> tenant chain, so an unscoped query
cannot be expressed through these repositories.
"""

import hashlib
import json
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import and_, or_
from sqlalchemy.orm import Query, Session, joinedload

from reconciliation_gateway.domain.models import (
    AuditAction,
    BankFeedStatus,
    ChainVerification,
    MatchStatus,
)
from reconciliation_gateway.infrastructure.database.models import (
    Account,
    AuditLog,
    BankFeedTransaction,
    Entity,
    Transaction,
    TransactionMatch,
)

GENESIS_HASH = "GENESIS"


class ReconciliationRepository:
    """Tenant-scoped repository for bank feed, ledger and match records"""

    def __init__(self, db: Session):
        self.db = db

    def _owned(self, query: Query, account_column: Any, tenant_id: str) -> Query:
        """Restrict a query to rows whose account belongs to the tenant"""
        return (
            query.join(Account, account_column == Account.id)
            .join(Entity, Account.entity_id == Entity.id)
            .filter(Entity.tenant_id == tenant_id)
        )

    def _matches(self, tenant_id: str) -> Query:
        query = self.db.query(TransactionMatch).join(
            BankFeedTransaction, TransactionMatch.bank_feed_transaction_id == BankFeedTransaction.id
        )
        return self._owned(query, BankFeedTransaction.account_id, tenant_id)

    # Finders

    def get_account(self, tenant_id: str, account_id: str) -> Optional[Account]:
        """Fetch a live account owned by the tenant"""
        return (
            self.db.query(Account)
            .join(Entity, Account.entity_id == Entity.id)
            .filter(
                Account.id == account_id,
                Account.deleted_at.is_(None),
                Entity.tenant_id == tenant_id,
            )
            .first()
        )

    def get_bank_feed_transaction(self, tenant_id: str, bank_feed_transaction_id: str) -> Optional[BankFeedTransaction]:
        """Fetch a live bank feed transaction owned by the tenant"""
        query = self.db.query(BankFeedTransaction).options(joinedload(BankFeedTransaction.account))
        return (
            self._owned(query, BankFeedTransaction.account_id, tenant_id)
            .filter(
                BankFeedTransaction.id == bank_feed_transaction_id,
                BankFeedTransaction.deleted_at.is_(None),
            )
            .first()
        )

    def get_transaction(self, tenant_id: str, transaction_id: str) -> Optional[Transaction]:
        """Fetch a live ledger transaction owned by the tenant"""
        query = self.db.query(Transaction).options(joinedload(Transaction.account))
        return (
            self._owned(query, Transaction.account_id, tenant_id)
            .filter(
                Transaction.id == transaction_id,
                Transaction.deleted_at.is_(None),
            )
            .first()
        )

    def get_match(self, tenant_id: str, match_id: str) -> Optional[TransactionMatch]:
        """Fetch a match whose bank feed transaction belongs to the tenant"""
        return self._matches(tenant_id).filter(TransactionMatch.id == match_id).first()

    def find_matched_for_bank_feed(self, tenant_id: str, bank_feed_transaction_id: str) -> Optional[TransactionMatch]:
        return (
            self._matches(tenant_id)
            .filter(
                TransactionMatch.bank_feed_transaction_id == bank_feed_transaction_id,
                TransactionMatch.status == MatchStatus.MATCHED,
            )
            .first()
        )

    def find_matched_for_transaction(self, tenant_id: str, transaction_id: str) -> Optional[TransactionMatch]:
        return (
            self._matches(tenant_id)
            .filter(
                TransactionMatch.transaction_id == transaction_id,
                TransactionMatch.status == MatchStatus.MATCHED,
            )
            .first()
        )

    def matched_transaction_ids(self, tenant_id: str) -> Set[str]:
        """Ledger transaction ids already held by a MATCHED record"""
        rows = (
            self._matches(tenant_id)
            .filter(
                TransactionMatch.status == MatchStatus.MATCHED,
                TransactionMatch.transaction_id.isnot(None),
            )
            .with_entities(TransactionMatch.transaction_id)
            .all()
        )
        return {row[0] for row in rows}

    def find_candidates(
        self,
        tenant_id: str,
        account_id: str,
        start: datetime,
        end: datetime,
        exclude_ids: Iterable[str] = (),
    ) -> List[Transaction]:
        """Live ledger transactions on the account dated within [start, end]"""
        query = self.db.query(Transaction).options(joinedload(Transaction.account))
        query = self._owned(query, Transaction.account_id, tenant_id).filter(
            Transaction.account_id == account_id,
            Transaction.deleted_at.is_(None),
            Transaction.date >= start,
            Transaction.date <= end,
        )
        exclude = list(exclude_ids)
        if exclude:
            query = query.filter(Transaction.id.notin_(exclude))
        return query.order_by(Transaction.date, Transaction.id).all()

    # Counts

    def count_bank_feed(self, tenant_id: str, account_id: str, status: Optional[BankFeedStatus] = None) -> int:
        """Count live bank feed transactions on the account"""
        query = self._owned(self.db.query(BankFeedTransaction), BankFeedTransaction.account_id, tenant_id).filter(
            BankFeedTransaction.account_id == account_id,
            BankFeedTransaction.deleted_at.is_(None),
        )
        if status is not None:
            query = query.filter(BankFeedTransaction.status == status)
        return query.count()

    def count_matches(self, tenant_id: str, account_id: str, status: MatchStatus) -> int:
        """Count match rows in `status` for the account's live bank feed transactions"""
        return (
            self._matches(tenant_id)
            .filter(
                BankFeedTransaction.account_id == account_id,
                BankFeedTransaction.deleted_at.is_(None),
                TransactionMatch.status == status,
            )
            .count()
        )

    # Listing

    def list_matches(
        self,
        tenant_id: str,
        limit: int,
        account_id: Optional[str] = None,
        status: Optional[MatchStatus] = None,
        cursor: Optional[str] = None,
    ) -> List[TransactionMatch]:
        """
        Newest-first page of matches, fetching `limit + 1` rows so the caller
        can tell whether another page exists.

        `cursor` is the id of the last row already returned. A cursor the
        tenant cannot see yields an empty page.
        """
        query = self._matches(tenant_id).options(
            joinedload(TransactionMatch.bank_feed_transaction),
            joinedload(TransactionMatch.transaction).joinedload(Transaction.account),
        )
        if account_id:
            query = query.filter(BankFeedTransaction.account_id == account_id)
        if status is not None:
            query = query.filter(TransactionMatch.status == status)

        if cursor:
            anchor = self.get_match(tenant_id, cursor)
            if anchor is None:
                return []
            query = query.filter(
                or_(
                    TransactionMatch.created_at < anchor.created_at,
                    and_(
                        TransactionMatch.created_at == anchor.created_at,
                        TransactionMatch.id < anchor.id,
                    ),
                )
            )

        return (
            query.order_by(TransactionMatch.created_at.desc(), TransactionMatch.id.desc())
            .limit(limit + 1)
            .all()
        )

    # Writes (caller owns the transaction)

    def create_match(
        self,
        bank_feed_transaction_id: str,
        transaction_id: str,
        status: MatchStatus,
        confidence: float,
    ) -> TransactionMatch:
        """Persist a match row"""
        match = TransactionMatch(
            bank_feed_transaction_id=bank_feed_transaction_id,
            transaction_id=transaction_id,
            status=status,
            confidence=confidence,
        )
        self.db.add(match)
        self.db.flush()  # Get ID without committing
        return match

    def delete_match(self, match: TransactionMatch) -> None:
        self.db.delete(match)
        self.db.flush()

    def set_bank_feed_status(self, bank_feed_txn: BankFeedTransaction, status: BankFeedStatus) -> None:
        bank_feed_txn.status = status
        self.db.flush()


def compute_integrity_hash(
    tenant_id: str,
    user_id: str,
    entity_id: Optional[str],
    model: str,
    record_id: str,
    action: str,
    before: Optional[Dict[str, Any]],
    after: Optional[Dict[str, Any]],
    previous_hash: str,
    sequence_number: int,
) -> str:
    """SHA-256 over the compact JSON of an audit entry and its chain position"""
    payload = json.dumps(
        {
            "tenantId": tenant_id,
            "userId": user_id,
            "entityId": entity_id,
            "model": model,
            "recordId": record_id,
            "action": action,
            "before": before,
            "after": after,
            "previousHash": previous_hash,
            "sequenceNumber": sequence_number,
        },
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class AuditRepository:
    """Repository for the tamper-evident audit log"""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        tenant_id: str,
        user_id: str,
        entity_id: Optional[str],
        model: str,
        record_id: str,
        action: AuditAction,
        before: Optional[Dict[str, Any]] = None,
        after: Optional[Dict[str, Any]] = None,
    ) -> AuditLog:
        """
        Append an entry to the tenant's audit chain inside the current session.

        Errors propagate so the surrounding unit of work rolls back together
        with the write being audited.
        """
        if entity_id is not None and not entity_id.strip():
            entity_id = None

        last = (
            self.db.query(AuditLog)
            .filter(AuditLog.tenant_id == tenant_id)
            .order_by(AuditLog.sequence_number.desc())
            .first()
        )
        sequence_number = last.sequence_number + 1 if last else 1
        previous_hash = last.integrity_hash if last else GENESIS_HASH

        entry = AuditLog(
            tenant_id=tenant_id,
            user_id=user_id,
            entity_id=entity_id,
            model=model,
            record_id=record_id,
            action=action,
            before=before,
            after=after,
            sequence_number=sequence_number,
            previous_hash=previous_hash,
            integrity_hash=compute_integrity_hash(
                tenant_id,
                user_id,
                entity_id,
                model,
                record_id,
                action.value,
                before,
                after,
                previous_hash,
                sequence_number,
            ),
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def verify_chain(self, tenant_id: str, batch_size: int = 500) -> ChainVerification:
        """Walk the tenant's chain in sequence order and check every link"""
        total = self.db.query(AuditLog).filter(AuditLog.tenant_id == tenant_id).count()
        if total == 0:
            return ChainVerification(valid=True, total_entries=0, checked_entries=0)

        expected_sequence = 1
        expected_previous = GENESIS_HASH
        checked = 0

        while True:
            batch = (
                self.db.query(AuditLog)
                .filter(
                    AuditLog.tenant_id == tenant_id,
                    AuditLog.sequence_number >= expected_sequence,
                )
                .order_by(AuditLog.sequence_number)
                .limit(batch_size)
                .all()
            )
            if not batch:
                break

            for entry in batch:
                error = None
                if entry.sequence_number != expected_sequence:
                    error = f"Sequence gap: expected {expected_sequence}, found {entry.sequence_number}"
                elif entry.previous_hash != expected_previous:
                    error = f"Chain break at sequence {entry.sequence_number}: previous hash does not match"
                else:
                    recomputed = compute_integrity_hash(
                        entry.tenant_id,
                        entry.user_id,
                        entry.entity_id,
                        entry.model,
                        entry.record_id,
                        entry.action.value,
                        entry.before,
                        entry.after,
                        entry.previous_hash,
                        entry.sequence_number,
                    )
                    if recomputed != entry.integrity_hash:
                        error = f"Integrity hash mismatch at sequence {entry.sequence_number}"

                if error:
                    return ChainVerification(
                        valid=False,
                        total_entries=total,
                        checked_entries=checked,
                        first_invalid_entry=entry.id,
                        error=error,
                    )

                checked += 1
                expected_sequence += 1
                expected_previous = entry.integrity_hash

        return ChainVerification(valid=True, total_entries=total, checked_entries=checked)
