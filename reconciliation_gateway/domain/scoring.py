"""Match confidence scoring - core business logic for bank feed reconciliation"""

import math
import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, List, Protocol

from rapidfuzz.distance import Indel

from reconciliation_gateway.domain.models import MatchScore, MatchSuggestion
from reconciliation_gateway.utils.date_utils import DateLike, days_between

SimilarityScorer = Callable[[str, str], float]

# Date proximity windows (in days)
CLOSE_DATE_WINDOW = 3
FAR_DATE_WINDOW = 7

# Description similarity thresholds
NEAR_IDENTICAL_THRESHOLD = 0.90
DESCRIPTION_MATCH_THRESHOLD = 0.70

# Score components
AMOUNT_WEIGHT = Decimal("0.40")
CLOSE_DATE_WEIGHT = Decimal("0.40")
FAR_DATE_WEIGHT = Decimal("0.20")
NEAR_IDENTICAL_WEIGHT = Decimal("0.20")
SIMILAR_WEIGHT = Decimal("0.15")
MAX_CONFIDENCE = Decimal("1.00")

_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


class Scorable(Protocol):
    """Anything with the three signals the scorer reads"""

    date: DateLike
    description: str
    amount: int


def normalize_description(description: str) -> str:
    """Lowercase, drop punctuation, collapse whitespace"""
    text = (description or "").lower()
    text = _NON_ALPHANUMERIC.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def default_similarity(a: str, b: str) -> float:
    """Normalized Indel similarity in [0, 1]; symmetric and pure"""
    return Indel.normalized_similarity(a, b)


def score_match(
    bank_feed_txn: Scorable,
    candidate: Scorable,
    similarity: SimilarityScorer = default_similarity,
) -> MatchScore:
    """
    Score a candidate ledger transaction against a bank feed transaction.

    Scoring:
    - Exact amount match (integer cents): required, +0.40
    - Date within 3 days: +0.40; within 7 days: +0.20
    - Description similarity >= 0.90: +0.20; >= 0.70: +0.15
    - Capped at 1.0, rounded half-up to 2 decimals

    Reasons are always ordered amount, date, description. A candidate whose
    amount differs scores 0 with no reasons.
    """
    if bank_feed_txn.amount != candidate.amount:
        return MatchScore(confidence=0.0, reasons=[])

    score = AMOUNT_WEIGHT
    reasons = ["Exact amount match"]

    # Date proximity
    days_diff = days_between(bank_feed_txn.date, candidate.date)
    if days_diff <= CLOSE_DATE_WINDOW:
        score += CLOSE_DATE_WEIGHT
        reasons.append("Same date" if days_diff == 0 else f"Within {math.ceil(days_diff)} day(s)")
    elif days_diff <= FAR_DATE_WINDOW:
        score += FAR_DATE_WEIGHT
        reasons.append(f"Within {math.ceil(days_diff)} days")

    # Description similarity
    ratio = similarity(
        normalize_description(bank_feed_txn.description),
        normalize_description(candidate.description),
    )
    if ratio >= NEAR_IDENTICAL_THRESHOLD:
        score += NEAR_IDENTICAL_WEIGHT
        reasons.append("Description near-identical")
    elif ratio >= DESCRIPTION_MATCH_THRESHOLD:
        score += SIMILAR_WEIGHT
        reasons.append("Description similar")

    confidence = min(score, MAX_CONFIDENCE).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return MatchScore(confidence=float(confidence), reasons=reasons)


def rank_suggestions(suggestions: List[MatchSuggestion], limit: int) -> List[MatchSuggestion]:
    """Drop zero scores, sort by confidence DESC (stable), keep the top `limit`"""
    surviving = [s for s in suggestions if s.confidence > 0]
    surviving.sort(key=lambda s: s.confidence, reverse=True)
    return surviving[:limit]
