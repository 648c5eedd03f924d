"""
Admin API routes - ingestion status, dataset export and import
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import PlainTextResponse
from typing import AsyncIterator
import logging

from ...core.exceptions import VulnSyncException
from ..dependencies import get_ingestion_service
from ...orchestration.ingestion_service import IngestionService

logger = logging.getLogger(__name__)
router = APIRouter()


async def _collect(lines: AsyncIterator[str]) -> str:
    buffer = []
    async for line in lines:
        buffer.append(line + "\n")
    return "".join(buffer)


@router.get("/status")
async def get_status(svc: IngestionService = Depends(get_ingestion_service)):
    """Current ingestion run"""
    run = await svc.get_status()
    if run is None:
        raise HTTPException(status_code=404, detail="No ingestion run recorded")
    return run.to_dict()


@router.get("/export/cves", response_class=PlainTextResponse)
async def export_cves(svc: IngestionService = Depends(get_ingestion_service)):
    """Export every vulnerability record as a command script"""
    try:
        return PlainTextResponse(await _collect(svc.export_vulnerabilities()))
    except VulnSyncException as e:
        logger.error(f"Unable to export cves data: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/export/aliases", response_class=PlainTextResponse)
async def export_aliases(svc: IngestionService = Depends(get_ingestion_service)):
    """Export the alias index as a command script"""
    try:
        return PlainTextResponse(await _collect(svc.export_aliases()))
    except VulnSyncException as e:
        logger.error(f"Unable to export aliases data: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/export/ingestions", response_class=PlainTextResponse)
async def export_ingestions(svc: IngestionService = Depends(get_ingestion_service)):
    """Export the current ingestion run as a command script"""
    try:
        return PlainTextResponse(await svc.export_ingestion())
    except VulnSyncException as e:
        logger.error(f"Unable to export ingestions data: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/import", status_code=status.HTTP_202_ACCEPTED)
async def import_script(request: Request, svc: IngestionService = Depends(get_ingestion_service)):
    """Replay a script produced by the export endpoints"""
    data = await request.body()
    try:
        executed = await svc.import_script(data)
    except VulnSyncException as e:
        logger.error(f"Unable to import script: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return {"imported": executed}
