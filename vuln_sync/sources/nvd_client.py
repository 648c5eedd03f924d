"""
NVD CVE API 2.0 client

Reads one page of the CVE feed at a time. When a ``since`` bound is given
the page is restricted to CVEs modified inside ``[since, until)``.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import aiohttp

from ..core.config import settings
from ..core.exceptions import ParseException
from .base_client import BaseClient


@dataclass(frozen=True)
class FeedItem:
    cve_id: str


@dataclass
class NvdPage:
    """One page of the NVD feed"""
    total_results: int
    start_index: int
    items: List[FeedItem] = field(default_factory=list)
    # raw entries in the response, id-less ones included
    entry_count: Optional[int] = None

    @property
    def exhausted(self) -> bool:
        """True when the feed has nothing at or after this page"""
        count = self.entry_count if self.entry_count is not None else len(self.items)
        return self.total_results == 0 or count == 0


def format_nvd_date(value: datetime) -> str:
    """ISO-8601 with milliseconds and offset, as the NVD API expects"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat(timespec='milliseconds')


class NvdClient(BaseClient):
    """Paginated access to the NVD CVE feed"""

    def __init__(self, base_url: str = None, api_key: Optional[str] = None,
                 timeout: int = None, session: Optional[aiohttp.ClientSession] = None):
        super().__init__(
            source_name='nvd',
            base_url=base_url or settings.NVD_API_URL,
            api_key=api_key if api_key is not None else settings.NVD_API_KEY,
            timeout=timeout or settings.HTTP_TIMEOUT,
            session=session,
        )

    def _get_auth_headers(self) -> Dict[str, str]:
        return {'apiKey': self.api_key}

    async def fetch_page(self, offset: int, page_size: int,
                         since: Optional[datetime] = None,
                         until: Optional[datetime] = None) -> NvdPage:
        """
        Fetch one page of CVEs

        Args:
            offset: startIndex of the page
            page_size: resultsPerPage
            since: Lower bound of the last-modified window, None for the full feed
            until: Upper bound of the window, defaults to now when since is set

        Returns:
            NvdPage with the reported total, start index and CVE ids
        """
        params = {
            'startIndex': offset,
            'resultsPerPage': page_size,
        }
        if since is not None:
            params['lastModStartDate'] = format_nvd_date(since)
            params['lastModEndDate'] = format_nvd_date(until or datetime.now(timezone.utc))

        self.logger.debug(f"Fetching NVD page startIndex={offset} resultsPerPage={page_size}")
        data = await self._request('GET', self.base_url, params=params)
        return self._parse_page(data, offset)

    def _parse_page(self, data: Any, offset: int) -> NvdPage:
        if not isinstance(data, dict):
            raise ParseException("NVD response is not a JSON object", self.source_name,
                                 raw_data_sample=str(data)[:200])
        try:
            total = int(data.get('totalResults', 0))
            start_index = int(data.get('startIndex', offset))
        except (TypeError, ValueError) as e:
            raise ParseException(f"Invalid pagination fields: {e}", self.source_name) from e

        entries = data.get('vulnerabilities') or []
        items = []
        for vuln in entries:
            cve_id = (vuln.get('cve') or {}).get('id')
            if cve_id:
                items.append(FeedItem(cve_id=cve_id))
            else:
                self.logger.warning(f"Skipping NVD entry without CVE id: {str(vuln)[:100]}")
        return NvdPage(total_results=total, start_index=start_index, items=items,
                       entry_count=len(entries))
