"""
Ingestion Service

OBJECTIVE:
Resumable synchronization of the NVD CVE feed into the vulnerability store,
enriching every CVE with its OSV record.

RUN LIFECYCLE:
1. Resume policy: the previous run decides the window (since) and cursor
2. Page loop: fetch a page, checkpoint it, enrich its CVEs concurrently
3. Finalize: COMPLETED with cursor = total, or COMPLETED_WITH_ERRORS

FAILURE HANDLING:
- Feed fetches, enrichment lookups and store writes share one retry policy
- A page fetch that fails for good records the failing offset
- An enrichment failure stops the run at the last checkpoint
- A run left PROCESSING by a crash is reconciled once at startup
"""

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import AsyncIterator, Callable, List, Optional

from ..core.retry import RetryPolicy
from ..models.ingestion import IngestionRun, IngestionStatus
from ..repositories import script_codec
from ..repositories.dataset_store import DatasetStore
from ..repositories.history_store import HistoryStore
from ..sources.nvd_client import NvdClient, NvdPage
from ..sources.osv_client import OsvClient

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def resume_run(previous: Optional[IngestionRun], page_size: int, now: datetime) -> IngestionRun:
    """
    Build the starting state of a new run from the previous one

    - no previous run or PROCESSING: full sync from cursor 0
    - COMPLETED: window starts at the previous run's start time, cursor 0
    - COMPLETED_WITH_ERRORS: same window, resume at the previous cursor
    """
    since = None
    cursor = 0
    if previous is not None:
        if previous.status == IngestionStatus.COMPLETED:
            since = previous.started
        elif previous.status == IngestionStatus.COMPLETED_WITH_ERRORS:
            since = previous.since
            cursor = previous.cursor or 0
    return IngestionRun(
        started=now,
        status=IngestionStatus.PROCESSING,
        page_size=page_size,
        since=since,
        cursor=cursor,
    )


class IngestionService:
    """Runs the NVD to OSV ingestion pipeline and exposes its admin operations"""

    def __init__(self, history: HistoryStore, dataset: DatasetStore,
                 nvd_client: NvdClient, osv_client: OsvClient,
                 page_size: int = 1000,
                 retry_policy: RetryPolicy = None,
                 skip_ingestion: Callable[[], bool] = lambda: False,
                 clock: Callable[[], datetime] = utcnow):
        if page_size < 1:
            raise ValueError("Page size must be positive")
        self.history = history
        self.dataset = dataset
        self.nvd_client = nvd_client
        self.osv_client = osv_client
        self.page_size = page_size
        self.retry_policy = retry_policy or RetryPolicy()
        self.skip_ingestion = skip_ingestion
        self.clock = clock

    async def recover_unfinished_run(self) -> Optional[IngestionRun]:
        """
        Reconcile a run left PROCESSING by a crash. Called once at startup
        before the scheduler is armed.
        """
        if self.skip_ingestion():
            return None
        current = await self.history.current_run()
        if current is None or current.status != IngestionStatus.PROCESSING:
            return current
        logger.warning(f"Found unfinished ingestion, marking it as completed with errors: {current}")
        return await self.history.replace_current_run(
            replace(current, status=IngestionStatus.COMPLETED_WITH_ERRORS))

    async def sync(self) -> IngestionRun:
        """Scheduled entry point: run one ingestion and return its final state"""
        logger.info("Loading vulnerabilities from NVD")
        previous = await self.history.current_run()
        run = await self.history.push_run(resume_run(previous, self.page_size, self.clock()))
        logger.info(f"Starting ingestion: {run}")

        try:
            run = await self._ingest(run)
        except Exception as e:
            logger.error(f"Unable to load vulnerabilities: {e}", exc_info=True)
            # keep the last page checkpoint
            checkpoint = await self.history.current_run() or run
            run = await self.history.replace_current_run(
                replace(checkpoint, status=IngestionStatus.COMPLETED_WITH_ERRORS))

        logger.info(f"Ingestion finished: {run}")
        return run

    async def _ingest(self, run: IngestionRun) -> IngestionRun:
        cursor = run.cursor
        while True:
            try:
                page = await self._read_page(run, cursor)
            except Exception as e:
                logger.error(f"Unable to read page from NVD at index {cursor}: {e}", exc_info=True)
                return await self.history.replace_current_run(
                    replace(run, status=IngestionStatus.COMPLETED_WITH_ERRORS,
                            completed=self.clock(), cursor=cursor))

            if page.exhausted:
                total = page.total_results or run.total
                break

            run = await self.history.replace_current_run(
                replace(run, status=IngestionStatus.PROCESSING, total=page.total_results,
                        cursor=page.start_index, completed=None, page_size=self.page_size))
            logger.info(f"Processing page at index {page.start_index}: "
                        f"{len(page.items)} CVEs of {page.total_results}")

            await self._process_page(page)
            cursor += self.page_size

        total = total or 0
        return await self.history.replace_current_run(
            replace(run, status=IngestionStatus.COMPLETED, completed=self.clock(),
                    total=total, cursor=total))

    async def _read_page(self, run: IngestionRun, cursor: int) -> NvdPage:
        return await self.retry_policy.run(
            lambda: self.nvd_client.fetch_page(cursor, self.page_size, run.since, self.clock()),
            description=f"NVD page {cursor}",
        )

    async def _process_page(self, page: NvdPage) -> None:
        """Enrich every CVE of a page concurrently, fail once all have finished"""
        cve_ids = [item.cve_id for item in page.items]
        results = await asyncio.gather(*(self._ingest_vulnerability(cve) for cve in cve_ids),
                                       return_exceptions=True)
        errors: List[BaseException] = [r for r in results if isinstance(r, BaseException)]
        if errors:
            logger.error(f"{len(errors)} of {len(cve_ids)} CVEs failed on page {page.start_index}")
            raise errors[0]

    async def _ingest_vulnerability(self, cve: str) -> bool:
        logger.debug(f"Ingest Vulnerability {cve}")
        enriched = await self.retry_policy.run(
            lambda: self.osv_client.fetch_by_id(cve),
            description=f"OSV lookup {cve}",
        )
        if enriched is None:
            return False

        async def persist():
            if enriched.aliases:
                await self.dataset.set_aliases(enriched.alias_entries())
            await self.dataset.save(enriched.record)

        await self.retry_policy.run(persist, description=f"Persist {enriched.record.cve_id}")
        return True

    async def get_status(self) -> Optional[IngestionRun]:
        return await self.history.current_run()

    async def delete_all(self) -> None:
        await self.history.clear()

    def export_vulnerabilities(self) -> AsyncIterator[str]:
        return script_codec.export_vulnerabilities(self.dataset)

    def export_aliases(self) -> AsyncIterator[str]:
        return script_codec.export_aliases(self.dataset)

    async def export_ingestion(self) -> str:
        return await script_codec.export_ingestion(self.history)

    async def import_script(self, data: bytes) -> int:
        return await script_codec.import_script(self.dataset.db, data)
