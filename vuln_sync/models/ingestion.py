"""
Ingestion run model

One IngestionRun is one attempt to synchronize the NVD feed. Runs are
immutable values: checkpoints build a new run with ``dataclasses.replace``
and hand it to the history store.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class IngestionStatus(Enum):
    """Ingestion run status"""
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    COMPLETED_WITH_ERRORS = "COMPLETED_WITH_ERRORS"


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


def _format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class IngestionRun:
    started: Optional[datetime] = None
    completed: Optional[datetime] = None
    cursor: int = 0
    page_size: Optional[int] = None
    total: Optional[int] = None
    status: Optional[IngestionStatus] = None
    since: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['started'] = _format_timestamp(self.started)
        data['completed'] = _format_timestamp(self.completed)
        data['since'] = _format_timestamp(self.since)
        data['status'] = self.status.value if self.status else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IngestionRun":
        status = data.get('status')
        return cls(
            started=_parse_timestamp(data.get('started')),
            completed=_parse_timestamp(data.get('completed')),
            cursor=data.get('cursor') or 0,
            page_size=data.get('page_size'),
            total=data.get('total'),
            status=IngestionStatus(status) if status else None,
            since=_parse_timestamp(data.get('since')),
        )

    def __str__(self):
        return (f"IngestionRun [started: {self.started}, cursor: {self.cursor}, total: {self.total}, "
                f"status: {self.status.value if self.status else None}, completed: {self.completed}, "
                f"since: {self.since}]")
