"""Domain models - pure Python dataclasses representing business entities"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


class BankFeedStatus(str, enum.Enum):
    """Lifecycle of an imported bank feed transaction"""

    PENDING = "PENDING"
    POSTED = "POSTED"


class MatchStatus(str, enum.Enum):
    """State of a bank feed / ledger transaction pairing"""

    SUGGESTED = "SUGGESTED"
    MATCHED = "MATCHED"


class AuditAction(str, enum.Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass
class AccountRef:
    """Account summary carried alongside a transaction snapshot"""

    id: str
    name: str


@dataclass
class TransactionSnapshot:
    """Denormalized ledger transaction for display without a second fetch"""

    id: str
    date: datetime
    description: str
    amount: int  # cents
    currency: str
    account: AccountRef


@dataclass
class BankFeedSnapshot:
    """Denormalized bank feed transaction"""

    id: str
    account_id: str
    bank_transaction_id: str
    date: datetime
    description: str
    amount: int  # cents
    currency: str
    status: BankFeedStatus


@dataclass
class MatchScore:
    """Output of the confidence scorer for one candidate"""

    confidence: float
    reasons: List[str] = field(default_factory=list)


@dataclass
class MatchSuggestion:
    """Ranked candidate for a bank feed transaction"""

    transaction_id: str
    confidence: float
    reasons: List[str]
    transaction: TransactionSnapshot


@dataclass
class MatchDetails:
    """A persisted match with both sides denormalized"""

    id: str
    bank_feed_transaction_id: str
    transaction_id: Optional[str]
    status: MatchStatus
    confidence: float
    created_at: datetime
    updated_at: datetime
    bank_feed_transaction: BankFeedSnapshot
    transaction: Optional[TransactionSnapshot]


@dataclass
class MatchPage:
    """One page of a cursor-paginated match listing"""

    matches: List[MatchDetails]
    has_more: bool
    next_cursor: Optional[str] = None


@dataclass
class ReconciliationStatus:
    """Per-account reconciliation counts"""

    account_id: str
    total_bank_feed: int
    matched: int
    unmatched: int
    suggested: int
    reconciliation_percent: int


@dataclass
class ChainVerification:
    """Result of walking a tenant's audit hash chain"""

    valid: bool
    total_entries: int
    checked_entries: int
    first_invalid_entry: Optional[str] = None
    error: Optional[str] = None
