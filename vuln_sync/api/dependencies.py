"""
Dependency providers for API routes, resolved from application state
"""

from fastapi import HTTPException, Request

from ..orchestration.ingestion_service import IngestionService
from ..sources.osv_client import OsvClient


def get_ingestion_service(request: Request) -> IngestionService:
    service = getattr(request.app.state, "ingestion_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Ingestion service not initialized")
    return service


def get_osv_client(request: Request) -> OsvClient:
    client = getattr(request.app.state, "osv_client", None)
    if client is None:
        raise HTTPException(status_code=503, detail="OSV client not initialized")
    return client
