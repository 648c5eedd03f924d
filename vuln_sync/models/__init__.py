from .ingestion import IngestionRun, IngestionStatus
from .vulnerability import AliasEntry, EnrichedVulnerability, NormalizedRecord

__all__ = [
    'IngestionRun',
    'IngestionStatus',
    'AliasEntry',
    'EnrichedVulnerability',
    'NormalizedRecord',
]
