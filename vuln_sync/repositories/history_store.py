"""
Ingestion history store

Bounded, ordered list of ingestion runs. The head of the list is the
current run; pushing beyond capacity evicts the oldest run first.
"""

import json
import logging
from typing import Optional

from ..core.commands import KeyValueCommands
from ..models.ingestion import IngestionRun

logger = logging.getLogger(__name__)

SYNCS_KEY = "ingestions:updates"
MAX_HISTORY = 100


class HistoryStore:
    """Stores ingestion run snapshots, newest first"""

    def __init__(self, db: KeyValueCommands, capacity: int = MAX_HISTORY):
        if capacity < 1:
            raise ValueError("History capacity must be positive")
        self.db = db
        self.capacity = capacity

    async def current_run(self) -> Optional[IngestionRun]:
        """Return the most recently pushed run, or None if none exists"""
        raw = await self.db.lindex(SYNCS_KEY, 0)
        if raw is None:
            return None
        return IngestionRun.from_dict(json.loads(raw))

    async def replace_current_run(self, run: IngestionRun) -> IngestionRun:
        """Overwrite the current run in place, history length is unchanged"""
        await self.db.lset(SYNCS_KEY, 0, json.dumps(run.to_dict()))
        return run

    async def push_run(self, run: IngestionRun) -> IngestionRun:
        """Make run the current one, evicting the oldest entries at capacity"""
        length = await self.db.llen(SYNCS_KEY)
        while length >= self.capacity:
            evicted = await self.db.rpop(SYNCS_KEY)
            if evicted is None:
                break
            length -= 1
            logger.debug(f"Evicted oldest ingestion run from history: {evicted}")
        await self.db.lpush(SYNCS_KEY, json.dumps(run.to_dict()))
        return run

    async def size(self) -> int:
        return await self.db.llen(SYNCS_KEY)

    async def clear(self) -> None:
        """Discard all stored state, dataset included"""
        await self.db.flush_all()
