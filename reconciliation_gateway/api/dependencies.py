"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from reconciliation_gateway.domain.scoring import SimilarityScorer, default_similarity
from reconciliation_gateway.infrastructure.database.session import get_db
from reconciliation_gateway.services.reconciliation import ReconciliationService


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_tenant_id(x_tenant_id: str | None = Header(default=None)) -> str:
    """Tenant resolved upstream by the auth gateway"""
    if not x_tenant_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_tenant_id


def get_user_id(x_user_id: str | None = Header(default=None)) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_user_id


def get_similarity_scorer() -> SimilarityScorer:
    """Provide the description similarity function"""
    return default_similarity


def get_reconciliation_service(
    db: Session = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
    user_id: str = Depends(get_user_id),
    similarity: SimilarityScorer = Depends(get_similarity_scorer),
) -> ReconciliationService:
    """Provide a tenant-bound reconciliation service for the request"""
    return ReconciliationService(db, tenant_id, user_id, similarity=similarity)
