"""
Base HTTP client for upstream vulnerability sources

Wraps an aiohttp session and turns HTTP failures into the service's
exception types. Subclasses implement the source-specific calls.
"""

import abc
import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from ..core.exceptions import FetchException, NotFoundException, ParseException


class BaseClient(abc.ABC):
    """Abstract base class for upstream API clients"""

    def __init__(self, source_name: str, base_url: str, api_key: Optional[str] = None,
                 timeout: int = 60, session: Optional[aiohttp.ClientSession] = None):
        """
        Initialize client with source configuration

        Args:
            source_name: Name used in logs and exceptions
            base_url: API base URL
            api_key: Optional API key sent with every request
            timeout: Total request timeout in seconds
            session: Existing session to reuse, created lazily otherwise
        """
        self.source_name = source_name
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.timeout = timeout
        self.logger = logging.getLogger(f"client.{source_name}")
        self.session = session
        self._owns_session = session is None

    @abc.abstractmethod
    def _get_auth_headers(self) -> Dict[str, str]:
        """Return authentication headers for API requests"""

    async def __aenter__(self):
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            headers = {
                'User-Agent': 'vuln-sync/1.0',
                'Accept': 'application/json',
            }
            self.session = aiohttp.ClientSession(
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
            self._owns_session = True
        return self.session

    async def _request(self, method: str, url: str, params: Dict[str, Any] = None,
                       json_body: Any = None) -> Any:
        """
        Make an HTTP request and decode the JSON body

        Raises:
            NotFoundException: HTTP 404
            FetchException: Any other non-2xx status or connection failure
            ParseException: Body is not valid JSON
        """
        session = self._ensure_session()
        headers = self._get_auth_headers() if self.api_key else None
        try:
            async with session.request(method, url, params=params, json=json_body,
                                       headers=headers) as response:
                if response.status == 404:
                    raise NotFoundException(f"Not found: {url}", self.source_name,
                                            status_code=404, url=url)
                if response.status >= 400:
                    body = await response.text()
                    raise FetchException(f"HTTP {response.status}: {body[:200]}", self.source_name,
                                         status_code=response.status, url=url)
                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    raise ParseException(f"Invalid JSON from {url}: {e}", self.source_name) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchException(f"Request to {url} failed: {e}", self.source_name, url=url) from e

    async def close(self):
        """Clean up resources"""
        if self._owns_session and self.session and not self.session.closed:
            await self.session.close()
