"""
Normalized vulnerability records and alias entries
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class NormalizedRecord:
    """One vulnerability entry, keyed by its canonical identifier"""
    cve_id: str
    summary: Optional[str] = None
    description: Optional[str] = None
    affected: List[Dict[str, Any]] = field(default_factory=list)
    severities: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'cve_id': self.cve_id,
            'summary': self.summary,
            'description': self.description,
            'affected': self.affected,
            'severities': self.severities,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NormalizedRecord":
        return cls(
            cve_id=data['cve_id'],
            summary=data.get('summary'),
            description=data.get('description'),
            affected=data.get('affected') or [],
            severities=data.get('severities') or [],
        )


@dataclass(frozen=True)
class AliasEntry:
    """Maps an identifier assigned by the enrichment source to a canonical id"""
    alias: str
    cve_id: str


@dataclass
class EnrichedVulnerability:
    """Result of an enrichment lookup: the record plus its alias ids"""
    record: NormalizedRecord
    aliases: List[str] = field(default_factory=list)

    def alias_entries(self) -> List[AliasEntry]:
        return [AliasEntry(alias=a, cve_id=self.record.cve_id) for a in self.aliases]
