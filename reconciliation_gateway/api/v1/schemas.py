"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from reconciliation_gateway.domain.models import BankFeedStatus, MatchStatus


class CreateMatchRequest(BaseModel):
    """Request body for POST /v1/reconciliation/matches"""

    bank_feed_transaction_id: str = Field(..., min_length=1, description="Bank feed transaction identifier")
    transaction_id: str = Field(..., min_length=1, description="Ledger transaction identifier")


class AccountSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str


class TransactionSchema(BaseModel):
    """Ledger transaction snapshot"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    date: datetime
    description: str
    amount: int
    currency: str
    account: AccountSchema


class BankFeedTransactionSchema(BaseModel):
    """Bank feed transaction snapshot"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    account_id: str
    bank_transaction_id: str
    date: datetime
    description: str
    amount: int
    currency: str
    status: BankFeedStatus


class SuggestionSchema(BaseModel):
    """Single ranked match suggestion"""

    model_config = ConfigDict(from_attributes=True)

    transaction_id: str
    confidence: float
    reasons: List[str]
    transaction: TransactionSchema


class SuggestionsResponse(BaseModel):
    """Response for GET /v1/reconciliation/{bank_feed_transaction_id}/suggestions"""

    suggestions: List[SuggestionSchema]


class MatchResponse(BaseModel):
    """A match with both sides denormalized"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    bank_feed_transaction_id: str
    transaction_id: Optional[str] = None
    status: MatchStatus
    confidence: float
    created_at: datetime
    updated_at: datetime
    bank_feed_transaction: BankFeedTransactionSchema
    transaction: Optional[TransactionSchema] = None


class MatchPageResponse(BaseModel):
    """Response for GET /v1/reconciliation/matches"""

    model_config = ConfigDict(from_attributes=True)

    matches: List[MatchResponse]
    has_more: bool
    next_cursor: Optional[str] = None


class ReconciliationStatusResponse(BaseModel):
    """Response for GET /v1/reconciliation/status/{account_id}"""

    model_config = ConfigDict(from_attributes=True)

    account_id: str
    total_bank_feed: int
    matched: int
    unmatched: int
    suggested: int
    reconciliation_percent: int
