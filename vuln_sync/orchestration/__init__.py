from .ingestion_service import IngestionService, resume_run
from .scheduler import IngestionScheduler

__all__ = ['IngestionService', 'IngestionScheduler', 'resume_run']
