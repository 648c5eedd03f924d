"""
Upstream vulnerability sources

- NvdClient: paginated CVE feed (advisory source)
- OsvClient: per-id enrichment and package URL lookups
"""

from .base_client import BaseClient
from .nvd_client import FeedItem, NvdClient, NvdPage
from .osv_client import OsvClient

__all__ = [
    'BaseClient',
    'FeedItem',
    'NvdClient',
    'NvdPage',
    'OsvClient',
]
