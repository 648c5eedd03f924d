"""
Export / import of the derived dataset as a replayable command script

Each exported line is one store command:

    JSON.SET cves:<id> $ '<record json>'
    SET alias:<alias> '<canonical id>'
    LPUSH ingestions:updates '<run json>'

Arguments are shell-quoted so JSON payloads survive the round trip. Lines
starting with ``--`` are comments; export writes one whenever an entity
cannot be serialized and import skips them.
"""

import json
import logging
import shlex
from typing import Any, AsyncIterator, List

from ..core.commands import KeyValueCommands
from ..core.exceptions import StoreException
from ..models.ingestion import IngestionRun
from .dataset_store import DatasetStore
from .history_store import SYNCS_KEY, HistoryStore

logger = logging.getLogger(__name__)

COMMENT_MARKER = "--"


def comment_line(message: str) -> str:
    # keep the comment on a single line
    return f"{COMMENT_MARKER} {' '.join(str(message).split())}"


def format_record_line(key: str, doc: Any) -> str:
    payload = json.dumps(doc, allow_nan=False)
    return f"JSON.SET {shlex.quote(key)} $ {shlex.quote(payload)}"


def format_alias_line(key: str, cve_id: str) -> str:
    return f"SET {shlex.quote(key)} {shlex.quote(cve_id)}"


def format_ingestion_line(run: IngestionRun) -> str:
    payload = json.dumps(run.to_dict(), allow_nan=False)
    return f"LPUSH {SYNCS_KEY} {shlex.quote(payload)}"


def parse_line(line: str) -> List[str]:
    """Split a script line into command and arguments"""
    try:
        return shlex.split(line)
    except ValueError as e:
        raise StoreException(f"ERR syntax error in line: {e}", command=line.split(' ', 1)[0]) from e


async def export_vulnerabilities(dataset: DatasetStore) -> AsyncIterator[str]:
    async for key, doc in dataset.scan_records():
        try:
            if doc is None:
                raise ValueError(f"record {key} disappeared during export")
            yield format_record_line(key, doc)
        except (TypeError, ValueError) as e:
            logger.warning(f"Unable to export record {key}: {e}")
            yield comment_line(f"{key}: {e}")


async def export_aliases(dataset: DatasetStore) -> AsyncIterator[str]:
    async for key, cve_id in dataset.scan_aliases():
        if cve_id is None:
            yield comment_line(f"{key}: alias disappeared during export")
            continue
        yield format_alias_line(key, cve_id)


async def export_ingestion(history: HistoryStore) -> str:
    try:
        run = await history.current_run()
        if run is None:
            return comment_line("no ingestion run recorded")
        return format_ingestion_line(run)
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"Unable to export ingestion run: {e}")
        return comment_line(str(e))


async def import_script(db: KeyValueCommands, data: bytes) -> int:
    """
    Replay a script produced by the export functions

    Args:
        db: Store command interface to replay against
        data: Script contents

    Returns:
        Number of commands executed
    """
    executed = 0
    for raw_line in data.decode('utf-8').splitlines():
        line = raw_line.strip()
        if not line or line.startswith(COMMENT_MARKER):
            continue
        command, *args = parse_line(line)
        await db.execute(command, *args)
        executed += 1
    logger.info(f"Imported {executed} commands")
    return executed
