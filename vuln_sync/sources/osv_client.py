"""
OSV API client

- fetch_by_id:            GET /v1/vulns/{id}, the enrichment lookup used by ingestion
- query_by_package_refs:  POST /v1/querybatch, package URL to vulnerability ids
"""

from typing import Any, Dict, Iterator, List, Optional

import aiohttp

from ..core.config import settings
from ..core.exceptions import NotFoundException, ParseException
from ..models.vulnerability import EnrichedVulnerability, NormalizedRecord
from .base_client import BaseClient


def partition(items: List[str], size: int) -> Iterator[List[str]]:
    """Split items into consecutive chunks of at most size elements"""
    if size < 1:
        raise ValueError("Partition size must be positive")
    for pos in range(0, len(items or []), size):
        yield items[pos:pos + size]


class OsvClient(BaseClient):
    """Enrichment lookups against OSV"""

    def __init__(self, base_url: str = None, timeout: int = None,
                 batch_size: int = None, session: Optional[aiohttp.ClientSession] = None):
        super().__init__(
            source_name='osv',
            base_url=base_url or settings.OSV_API_URL,
            timeout=timeout or settings.HTTP_TIMEOUT,
            session=session,
        )
        self.batch_size = batch_size or settings.OSV_BATCH_SIZE

    def _get_auth_headers(self) -> Dict[str, str]:
        return {}

    async def fetch_by_id(self, vuln_id: str) -> Optional[EnrichedVulnerability]:
        """
        Look up one vulnerability by id

        Returns:
            The normalized record with its aliases, or None when OSV has no entry
        """
        try:
            data = await self._request('GET', f"{self.base_url}/v1/vulns/{vuln_id}")
        except NotFoundException:
            self.logger.debug(f"Not found vulnerability: {vuln_id} in OSV. Ignoring")
            return None
        return self._to_enriched(data, vuln_id)

    def _to_enriched(self, data: Any, requested_id: str) -> EnrichedVulnerability:
        if not isinstance(data, dict):
            raise ParseException(f"OSV response for {requested_id} is not a JSON object",
                                 self.source_name, raw_data_sample=str(data)[:200])
        record = NormalizedRecord(
            cve_id=data.get('id') or requested_id,
            summary=data.get('summary'),
            description=data.get('details'),
            affected=data.get('affected') or [],
            severities=data.get('severity') or [],
        )
        return EnrichedVulnerability(record=record, aliases=list(data.get('aliases') or []))

    async def query_by_package_refs(self, refs: List[str]) -> Dict[str, List[str]]:
        """
        Find vulnerability ids affecting each package URL

        Args:
            refs: Package URLs (purls)

        Returns:
            Mapping of purl to the ids OSV reports for it
        """
        results: Dict[str, List[str]] = {}
        for batch in partition(refs, self.batch_size):
            body = {'queries': [{'package': {'purl': purl}} for purl in batch]}
            data = await self._request('POST', f"{self.base_url}/v1/querybatch", json_body=body)
            batch_results = (data or {}).get('results') or []
            for purl, result in zip(batch, batch_results):
                vulns = (result or {}).get('vulns') or []
                results[purl] = [v['id'] for v in vulns if v.get('id')]
        return results
