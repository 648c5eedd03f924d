"""
Dataset store for normalized vulnerability records and the alias index

Records live at ``cves:<canonical id>`` as JSON documents, aliases at
``alias:<alias id>`` with the canonical id as value. Both keyspaces are
independent and can be scanned separately for export.
"""

import logging
from typing import AsyncIterator, Iterable, Optional, Tuple

from ..core.commands import KeyValueCommands
from ..models.vulnerability import AliasEntry, NormalizedRecord

logger = logging.getLogger(__name__)

RECORD_PREFIX = "cves:"
ALIAS_PREFIX = "alias:"
SCAN_COUNT = 2000


def record_key(cve_id: str) -> str:
    return f"{RECORD_PREFIX}{cve_id}"


def alias_key(alias: str) -> str:
    return f"{ALIAS_PREFIX}{alias}"


class DatasetStore:
    """Persists normalized records and alias entries"""

    def __init__(self, db: KeyValueCommands):
        self.db = db

    async def save(self, record: NormalizedRecord) -> NormalizedRecord:
        """Store a record, overwriting any previous record with the same id"""
        await self.db.json_set(record_key(record.cve_id), record.to_dict())
        return record

    async def set_aliases(self, aliases: Iterable[AliasEntry]) -> None:
        for entry in aliases:
            await self.db.set_value(alias_key(entry.alias), entry.cve_id)

    async def get(self, cve_id: str) -> Optional[NormalizedRecord]:
        doc = await self.db.json_get(record_key(cve_id))
        if doc is None:
            return None
        return NormalizedRecord.from_dict(doc)

    async def get_alias(self, alias: str) -> Optional[str]:
        """Return the canonical id for an alias"""
        return await self.db.get_value(alias_key(alias))

    async def scan_records(self) -> AsyncIterator[Tuple[str, Optional[dict]]]:
        """Yield (key, raw document) for every stored record"""
        async for key in self.db.scan(RECORD_PREFIX, SCAN_COUNT):
            yield key, await self.db.json_get(key)

    async def scan_aliases(self) -> AsyncIterator[Tuple[str, Optional[str]]]:
        """Yield (key, canonical id) for every alias entry"""
        async for key in self.db.scan(ALIAS_PREFIX, SCAN_COUNT):
            yield key, await self.db.get_value(key)
