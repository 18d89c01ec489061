"""Reconciliation service - match bank feed transactions to ledger transactions"""

from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from reconciliation_gateway.config import settings
from reconciliation_gateway.domain.exceptions import (
    ACCOUNT_NOT_FOUND,
    BANK_FEED_ALREADY_MATCHED,
    BANK_FEED_NOT_FOUND,
    MATCH_NOT_FOUND,
    TRANSACTION_ALREADY_MATCHED,
    TRANSACTION_NOT_FOUND,
    ConflictError,
    NotFoundError,
)
from reconciliation_gateway.domain.models import (
    AccountRef,
    AuditAction,
    BankFeedSnapshot,
    BankFeedStatus,
    ChainVerification,
    MatchDetails,
    MatchPage,
    MatchStatus,
    MatchSuggestion,
    ReconciliationStatus,
    TransactionSnapshot,
)
from reconciliation_gateway.domain.scoring import (
    FAR_DATE_WINDOW,
    SimilarityScorer,
    default_similarity,
    rank_suggestions,
    score_match,
)
from reconciliation_gateway.infrastructure.database.models import (
    BankFeedTransaction,
    Transaction,
    TransactionMatch,
)
from reconciliation_gateway.infrastructure.database.repositories import (
    AuditRepository,
    ReconciliationRepository,
)
from reconciliation_gateway.infrastructure.observability.logging import log_reconciliation_event
from reconciliation_gateway.infrastructure.observability.metrics import (
    conflict_counter,
    match_created_counter,
    record_suggestions,
    unmatch_counter,
)
from reconciliation_gateway.utils.date_utils import date_window

MANUAL_MATCH_CONFIDENCE = 1.0
AUDIT_MODEL = "TransactionMatch"


def transaction_snapshot(txn: Transaction) -> TransactionSnapshot:
    return TransactionSnapshot(
        id=txn.id,
        date=txn.date,
        description=txn.description,
        amount=txn.amount,
        currency=txn.currency,
        account=AccountRef(id=txn.account.id, name=txn.account.name),
    )


def bank_feed_snapshot(bft: BankFeedTransaction) -> BankFeedSnapshot:
    return BankFeedSnapshot(
        id=bft.id,
        account_id=bft.account_id,
        bank_transaction_id=bft.bank_transaction_id,
        date=bft.date,
        description=bft.description,
        amount=bft.amount,
        currency=bft.currency,
        status=bft.status,
    )


def match_details(match: TransactionMatch) -> MatchDetails:
    return MatchDetails(
        id=match.id,
        bank_feed_transaction_id=match.bank_feed_transaction_id,
        transaction_id=match.transaction_id,
        status=match.status,
        confidence=match.confidence,
        created_at=match.created_at,
        updated_at=match.updated_at,
        bank_feed_transaction=bank_feed_snapshot(match.bank_feed_transaction),
        transaction=transaction_snapshot(match.transaction) if match.transaction else None,
    )


def race_conflict_message(error: IntegrityError) -> str:
    """Name the side whose MATCHED unique index rejected the insert"""
    detail = str(error.orig)
    # PostgreSQL reports the index name, SQLite the indexed column
    if "uq_match_transaction_matched" in detail or "transaction_match.transaction_id" in detail:
        return TRANSACTION_ALREADY_MATCHED
    return BANK_FEED_ALREADY_MATCHED


def reconciliation_percent(matched: int, total: int) -> int:
    """round(matched / total * 100), half-up, in integer arithmetic; 100 for an empty account"""
    if total <= 0:
        return 100
    return (matched * 200 + total) // (2 * total)


class ReconciliationService:
    """
    Match bank feed transactions to posted ledger transactions.

    One instance serves one request: it is bound to the caller's tenant and
    user and to a single database session. Match and unmatch write the match
    row, the bank feed status and the audit entry in one commit.
    """

    def __init__(
        self,
        db: Session,
        tenant_id: str,
        user_id: str,
        similarity: SimilarityScorer = default_similarity,
    ):
        self.db = db
        self.tenant_id = tenant_id
        self.user_id = user_id
        self.similarity = similarity
        self.repo = ReconciliationRepository(db)
        self.audit = AuditRepository(db)

    def suggest_matches(
        self,
        bank_feed_transaction_id: str,
        limit: Optional[int] = None,
    ) -> List[MatchSuggestion]:
        """
        Suggest ledger transactions for a bank feed transaction.

        Candidates share the bank feed transaction's account, fall within
        +/-7 days of its date and are not already held by a MATCHED record.
        Returns up to `limit` suggestions sorted by confidence DESC; an empty
        list when nothing scores.
        """
        if limit is None:
            limit = settings.suggestion_default_limit

        bank_feed_txn = self.repo.get_bank_feed_transaction(self.tenant_id, bank_feed_transaction_id)
        if bank_feed_txn is None:
            raise NotFoundError(BANK_FEED_NOT_FOUND)

        if self.repo.find_matched_for_bank_feed(self.tenant_id, bank_feed_transaction_id):
            conflict_counter.labels(operation="suggest").inc()
            raise ConflictError(BANK_FEED_ALREADY_MATCHED)

        start, end = date_window(bank_feed_txn.date, FAR_DATE_WINDOW)
        exclude_ids = self.repo.matched_transaction_ids(self.tenant_id)
        candidates = self.repo.find_candidates(
            self.tenant_id,
            bank_feed_txn.account_id,
            start,
            end,
            exclude_ids=exclude_ids,
        )

        scored = []
        for candidate in candidates:
            result = score_match(bank_feed_txn, candidate, self.similarity)
            if result.confidence > 0:
                scored.append(
                    MatchSuggestion(
                        transaction_id=candidate.id,
                        confidence=result.confidence,
                        reasons=result.reasons,
                        transaction=transaction_snapshot(candidate),
                    )
                )

        suggestions = rank_suggestions(scored, limit)

        record_suggestions([s.confidence for s in suggestions])
        log_reconciliation_event(
            "suggest",
            self.tenant_id,
            self.user_id,
            bank_feed_transaction_id=bank_feed_transaction_id,
            candidate_count=len(candidates),
            suggestion_count=len(suggestions),
        )
        return suggestions

    def create_match(self, bank_feed_transaction_id: str, transaction_id: str) -> MatchDetails:
        """
        Manually pair a bank feed transaction with a ledger transaction.

        Manual matches always carry confidence 1.0. Raises NotFoundError for
        either side missing and ConflictError when either side is already
        matched, checked in that order.
        """
        bank_feed_txn = self.repo.get_bank_feed_transaction(self.tenant_id, bank_feed_transaction_id)
        if bank_feed_txn is None:
            raise NotFoundError(BANK_FEED_NOT_FOUND)

        transaction = self.repo.get_transaction(self.tenant_id, transaction_id)
        if transaction is None:
            raise NotFoundError(TRANSACTION_NOT_FOUND)

        if self.repo.find_matched_for_bank_feed(self.tenant_id, bank_feed_transaction_id):
            conflict_counter.labels(operation="create_match").inc()
            raise ConflictError(BANK_FEED_ALREADY_MATCHED)

        if self.repo.find_matched_for_transaction(self.tenant_id, transaction_id):
            conflict_counter.labels(operation="create_match").inc()
            raise ConflictError(TRANSACTION_ALREADY_MATCHED)

        try:
            match = self.repo.create_match(
                bank_feed_transaction_id,
                transaction_id,
                status=MatchStatus.MATCHED,
                confidence=MANUAL_MATCH_CONFIDENCE,
            )
            self.repo.set_bank_feed_status(bank_feed_txn, BankFeedStatus.POSTED)
            self.audit.record(
                tenant_id=self.tenant_id,
                user_id=self.user_id,
                entity_id=bank_feed_txn.account.entity_id,
                model=AUDIT_MODEL,
                record_id=match.id,
                action=AuditAction.CREATE,
                after={
                    "bank_feed_transaction_id": bank_feed_transaction_id,
                    "transaction_id": transaction_id,
                    "status": MatchStatus.MATCHED.value,
                },
            )
            self.db.commit()
        except IntegrityError as e:
            # A concurrent match on either side won the race
            self.db.rollback()
            conflict_counter.labels(operation="create_match").inc()
            raise ConflictError(race_conflict_message(e)) from e
        except Exception:
            self.db.rollback()
            raise

        match_created_counter.inc()
        log_reconciliation_event(
            "match_created",
            self.tenant_id,
            self.user_id,
            bank_feed_transaction_id=bank_feed_transaction_id,
            transaction_id=transaction_id,
            match_id=match.id,
        )
        return match_details(match)

    def unmatch(self, match_id: str) -> None:
        """
        Remove a match; the bank feed transaction returns to PENDING once no
        MATCHED row is left for it.

        Suggestions are not recomputed; callers ask again when they need them.
        """
        match = self.repo.get_match(self.tenant_id, match_id)
        if match is None:
            raise NotFoundError(MATCH_NOT_FOUND)

        bank_feed_txn = match.bank_feed_transaction
        before = {
            "bank_feed_transaction_id": match.bank_feed_transaction_id,
            "transaction_id": match.transaction_id,
            "status": match.status.value,
        }

        try:
            self.repo.delete_match(match)
            # A SUGGESTED row can sit beside the MATCHED one; POSTED stays while that remains
            if self.repo.find_matched_for_bank_feed(self.tenant_id, bank_feed_txn.id) is None:
                self.repo.set_bank_feed_status(bank_feed_txn, BankFeedStatus.PENDING)
            self.audit.record(
                tenant_id=self.tenant_id,
                user_id=self.user_id,
                entity_id=bank_feed_txn.account.entity_id,
                model=AUDIT_MODEL,
                record_id=match_id,
                action=AuditAction.DELETE,
                before=before,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        unmatch_counter.inc()
        log_reconciliation_event(
            "unmatched",
            self.tenant_id,
            self.user_id,
            bank_feed_transaction_id=before["bank_feed_transaction_id"],
            transaction_id=before["transaction_id"],
            match_id=match_id,
        )

    def get_reconciliation_status(self, account_id: str) -> ReconciliationStatus:
        """Counts of matched, unmatched and suggested bank feed rows for an account"""
        account = self.repo.get_account(self.tenant_id, account_id)
        if account is None:
            raise NotFoundError(ACCOUNT_NOT_FOUND)

        total = self.repo.count_bank_feed(self.tenant_id, account_id)
        matched = self.repo.count_bank_feed(self.tenant_id, account_id, status=BankFeedStatus.POSTED)
        suggested = self.repo.count_matches(self.tenant_id, account_id, MatchStatus.SUGGESTED)

        return ReconciliationStatus(
            account_id=account_id,
            total_bank_feed=total,
            matched=matched,
            unmatched=total - matched,
            suggested=suggested,
            reconciliation_percent=reconciliation_percent(matched, total),
        )

    def list_matches(
        self,
        account_id: Optional[str] = None,
        status: Optional[MatchStatus] = None,
        cursor: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> MatchPage:
        """Cursor-paginated match listing, newest first"""
        if limit is None:
            limit = settings.match_page_size
        page_size = max(1, min(limit, settings.match_max_page_size))

        rows = self.repo.list_matches(
            self.tenant_id,
            page_size,
            account_id=account_id,
            status=status,
            cursor=cursor,
        )
        has_more = len(rows) > page_size
        results = rows[:page_size]
        next_cursor = results[-1].id if has_more and results else None

        return MatchPage(
            matches=[match_details(m) for m in results],
            has_more=has_more,
            next_cursor=next_cursor,
        )

    def verify_audit_chain(self) -> ChainVerification:
        return self.audit.verify_chain(self.tenant_id, batch_size=settings.audit_verify_batch_size)
