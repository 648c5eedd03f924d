"""
Shared fixtures: in-memory store and scripted NVD / OSV clients
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Union

import pytest

from vuln_sync.core.commands import KeyValueCommands
from vuln_sync.core.exceptions import FetchException, StoreException
from vuln_sync.core.retry import RetryPolicy
from vuln_sync.models.vulnerability import EnrichedVulnerability, NormalizedRecord
from vuln_sync.orchestration.ingestion_service import IngestionService
from vuln_sync.repositories.dataset_store import DatasetStore
from vuln_sync.repositories.history_store import HistoryStore
from vuln_sync.sources.nvd_client import FeedItem, NvdPage


class InMemoryCommands(KeyValueCommands):
    """Dict-backed store with the same command semantics as the database"""

    def __init__(self):
        self.documents: Dict[str, Any] = {}
        self.values: Dict[str, str] = {}
        self.lists: Dict[str, List[str]] = {}
        self.fail_writes = 0

    def _maybe_fail(self, command: str):
        if self.fail_writes > 0:
            self.fail_writes -= 1
            raise StoreException("connection reset", command=command)

    async def json_set(self, key, doc):
        self._maybe_fail('JSON.SET')
        self.values.pop(key, None)
        self.documents[key] = doc

    async def json_get(self, key):
        return self.documents.get(key)

    async def set_value(self, key, value):
        self._maybe_fail('SET')
        self.documents.pop(key, None)
        self.values[key] = value

    async def get_value(self, key):
        return self.values.get(key)

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            for table in (self.documents, self.values, self.lists):
                if key in table:
                    del table[key]
                    removed += 1
        return removed

    async def scan(self, prefix, count=2000):
        for key in sorted(set(self.documents) | set(self.values)):
            if key.startswith(prefix):
                yield key

    async def lpush(self, key, *values):
        items = self.lists.setdefault(key, [])
        for value in values:
            items.insert(0, value)
        return len(items)

    async def rpop(self, key):
        items = self.lists.get(key)
        if not items:
            return None
        return items.pop()

    async def lindex(self, key, index):
        items = self.lists.get(key, [])
        if index >= len(items) or index < -len(items):
            return None
        return items[index]

    async def lset(self, key, index, value):
        items = self.lists.get(key)
        if not items or index >= len(items):
            raise StoreException("ERR index out of range", command='LSET')
        items[index] = value

    async def llen(self, key):
        return len(self.lists.get(key, []))

    async def flush_all(self):
        self.documents.clear()
        self.values.clear()
        self.lists.clear()


class ScriptedNvdClient:
    """
    Serves pages by offset. ``failures`` maps an offset to a list of
    exceptions raised one per call before the page is served, or to a single
    exception raised on every call. ``idless`` maps an offset to a number of
    entries that carry no CVE id.
    """

    def __init__(self, total: int, pages: Dict[int, List[str]],
                 failures: Optional[Dict[int, Union[BaseException, List[BaseException]]]] = None,
                 idless: Optional[Dict[int, int]] = None):
        self.total = total
        self.pages = pages
        self.failures = failures or {}
        self.idless = idless or {}
        self.calls: List[Dict[str, Any]] = []

    async def fetch_page(self, offset, page_size, since=None, until=None):
        self.calls.append({"offset": offset, "page_size": page_size, "since": since, "until": until})
        failure = self.failures.get(offset)
        if isinstance(failure, BaseException):
            raise failure
        if failure:
            raise failure.pop(0)
        items = [FeedItem(cve_id=c) for c in self.pages.get(offset, [])]
        return NvdPage(total_results=self.total, start_index=offset, items=items,
                       entry_count=len(items) + self.idless.get(offset, 0))


class ScriptedOsvClient:
    """Answers lookups from a dict; missing ids are not found, exceptions are raised"""

    def __init__(self, responses: Optional[Dict[str, Any]] = None):
        self.responses = responses or {}
        self.calls: List[str] = []

    async def fetch_by_id(self, vuln_id):
        self.calls.append(vuln_id)
        response = self.responses.get(vuln_id)
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response()
        return response


def enriched(cve_id: str, aliases: Optional[List[str]] = None, summary: str = None) -> EnrichedVulnerability:
    return EnrichedVulnerability(
        record=NormalizedRecord(cve_id=cve_id, summary=summary or f"{cve_id} summary",
                                description=f"{cve_id} details"),
        aliases=aliases or [],
    )


def flaky(failures: int, result: Any) -> Callable[[], Any]:
    """Raise a transient FetchException ``failures`` times, then return result"""
    state = {'left': failures}

    def respond():
        if state['left'] > 0:
            state['left'] -= 1
            raise FetchException("HTTP 503: unavailable", 'osv', status_code=503)
        return result
    return respond


class SteppingClock:
    """Deterministic wall clock advancing one second per reading"""

    def __init__(self, start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now += timedelta(seconds=1)
        return current


@pytest.fixture
def db():
    return InMemoryCommands()


@pytest.fixture
def history(db):
    return HistoryStore(db)


@pytest.fixture
def dataset(db):
    return DatasetStore(db)


@pytest.fixture
def fast_retry():
    # a few near-instant retries before the budget runs out
    return RetryPolicy(backoff_seconds=0.005, budget_seconds=0.2)


@pytest.fixture
def clock():
    return SteppingClock()


@pytest.fixture
def make_service(history, dataset, fast_retry, clock):
    def build(nvd, osv, page_size=1000, skip_ingestion=lambda: False):
        return IngestionService(history, dataset, nvd, osv, page_size=page_size,
                                retry_policy=fast_retry, skip_ingestion=skip_ingestion,
                                clock=clock)
    return build
