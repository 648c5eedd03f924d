from .dataset_store import DatasetStore
from .history_store import HistoryStore

__all__ = ['DatasetStore', 'HistoryStore']
