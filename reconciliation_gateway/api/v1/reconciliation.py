"""/v1/reconciliation - bank feed matching endpoints"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from reconciliation_gateway.api.dependencies import get_reconciliation_service, get_request_id
from reconciliation_gateway.api.v1.schemas import (
    CreateMatchRequest,
    MatchPageResponse,
    MatchResponse,
    ReconciliationStatusResponse,
    SuggestionsResponse,
)
from reconciliation_gateway.config import settings
from reconciliation_gateway.domain.exceptions import ConflictError, NotFoundError
from reconciliation_gateway.domain.models import MatchStatus
from reconciliation_gateway.services.reconciliation import ReconciliationService

router = APIRouter(prefix="/reconciliation")


def _raise_http(e: Exception, request_id: str) -> None:
    """Map domain failures onto status codes"""
    if isinstance(e, NotFoundError):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ConflictError):
        logging.warning(f"Reconciliation conflict: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=409, detail=str(e))
    logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
    raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/matches", response_model=MatchPageResponse)
def list_matches(
    request: Request,
    account_id: Optional[str] = Query(None, description="Filter by bank account"),
    match_status: Optional[MatchStatus] = Query(None, alias="status"),
    cursor: Optional[str] = Query(None, description="Id of the last match on the previous page"),
    limit: int = Query(settings.match_page_size, ge=1, le=settings.match_max_page_size),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    """List matches newest first with cursor pagination"""
    try:
        return service.list_matches(account_id=account_id, status=match_status, cursor=cursor, limit=limit)
    except Exception as e:
        _raise_http(e, get_request_id(request))


@router.post("/matches", response_model=MatchResponse, status_code=status.HTTP_201_CREATED)
def create_match(
    body: CreateMatchRequest,
    request: Request,
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    """
    Manually match a bank feed transaction to a ledger transaction.

    Flow:
    1. Verify both sides belong to the tenant
    2. Reject if either side is already matched
    3. Create match, mark bank feed POSTED and audit, in one commit
    """
    try:
        return service.create_match(body.bank_feed_transaction_id, body.transaction_id)
    except Exception as e:
        _raise_http(e, get_request_id(request))


@router.delete("/matches/{match_id}", status_code=status.HTTP_204_NO_CONTENT)
def unmatch(
    match_id: str,
    request: Request,
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    """Remove a match and reset the bank feed transaction to PENDING"""
    try:
        service.unmatch(match_id)
    except Exception as e:
        _raise_http(e, get_request_id(request))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/status/{account_id}", response_model=ReconciliationStatusResponse)
def get_reconciliation_status(
    account_id: str,
    request: Request,
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    """Matched / unmatched / suggested counts for an account"""
    try:
        return service.get_reconciliation_status(account_id)
    except Exception as e:
        _raise_http(e, get_request_id(request))


@router.get("/{bank_feed_transaction_id}/suggestions", response_model=SuggestionsResponse)
def suggest_matches(
    bank_feed_transaction_id: str,
    request: Request,
    limit: int = Query(settings.suggestion_default_limit, ge=1, le=settings.suggestion_max_limit),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    """
    Ranked match candidates for a bank feed transaction.

    Returns:
        Up to `limit` suggestions sorted by confidence, possibly empty
    """
    try:
        suggestions = service.suggest_matches(bank_feed_transaction_id, limit=limit)
    except Exception as e:
        _raise_http(e, get_request_id(request))
    return {"suggestions": suggestions}
