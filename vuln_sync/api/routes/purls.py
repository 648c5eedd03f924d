"""
Package URL lookup routes - pass-through to the OSV batch query
"""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import Dict, List, Optional
import logging

from ...core.exceptions import FetchException, ParseException
from ..dependencies import get_osv_client
from ...sources.osv_client import OsvClient

logger = logging.getLogger(__name__)
router = APIRouter()


class PurlsRequest(BaseModel):
    purls: Optional[List[str]] = None


@router.post("/cves")
async def find_cves(request: PurlsRequest, osv_client: OsvClient = Depends(get_osv_client)) -> Dict[str, List[str]]:
    """Vulnerability ids affecting each package URL"""
    if not request.purls:
        return {}
    try:
        return await osv_client.query_by_package_refs(request.purls)
    except (FetchException, ParseException) as e:
        logger.error(f"Failed to query OSV for {len(request.purls)} purls: {e}")
        raise HTTPException(status_code=502, detail="Failed to query vulnerability source")
