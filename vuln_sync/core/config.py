"""
Configuration settings for the Vulnerability Sync Service
"""

from typing import List, Optional
from pydantic_settings import BaseSettings

from .exceptions import ConfigException

INGESTER_PROFILE = "ingester"


class Settings(BaseSettings):
    """Application settings"""

    # Server configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "vuln_sync.log"

    # Database configuration
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "vulnerability_db"
    DB_USER: str = "vuln_user"
    DB_PASSWORD: str = "vuln_pass"
    DB_POOL_SIZE: int = 10

    # Security
    API_KEYS: List[str] = ["your-secret-api-key"]

    # CORS
    ALLOWED_ORIGINS: List[str] = ["*"]

    # Deployment profile, the ingester only runs when it contains "ingester"
    PROFILE: str = INGESTER_PROFILE

    # Upstream sources
    NVD_API_URL: str = "https://services.nvd.nist.gov/rest/json/cves/2.0"
    NVD_API_KEY: Optional[str] = None
    OSV_API_URL: str = "https://api.osv.dev"
    HTTP_TIMEOUT: int = 60  # seconds
    OSV_BATCH_SIZE: int = 1000  # max queries per OSV querybatch call

    # Ingestion
    INGESTER_PAGE_SIZE: int = 1000
    INGESTER_SCHEDULE_EVERY: int = 3600  # 1 hour
    INGESTER_INITIAL_DELAY: int = 10
    RETRY_BACKOFF_SECONDS: float = 10.0
    RETRY_BUDGET_SECONDS: float = 300.0  # 5 minutes
    HISTORY_CAPACITY: int = 100

    @property
    def is_ingester(self) -> bool:
        return INGESTER_PROFILE in self.PROFILE

    class Config:
        env_file = ".env"
        case_sensitive = True


def validate_settings(config: Settings) -> None:
    """
    Reject settings the ingester cannot run with

    Raises:
        ConfigException: A size or interval is not positive, or a delay is negative
    """
    for key in ('INGESTER_PAGE_SIZE', 'HISTORY_CAPACITY', 'OSV_BATCH_SIZE', 'DB_POOL_SIZE'):
        if getattr(config, key) < 1:
            raise ConfigException(f"{key} must be positive", 'config', config_key=key)
    if config.RETRY_BACKOFF_SECONDS <= 0:
        raise ConfigException("RETRY_BACKOFF_SECONDS must be positive", 'config',
                              config_key='RETRY_BACKOFF_SECONDS')
    for key in ('RETRY_BUDGET_SECONDS', 'INGESTER_INITIAL_DELAY'):
        if getattr(config, key) < 0:
            raise ConfigException(f"{key} must not be negative", 'config', config_key=key)
    if config.INGESTER_SCHEDULE_EVERY <= 0:
        raise ConfigException("INGESTER_SCHEDULE_EVERY must be positive", 'config',
                              config_key='INGESTER_SCHEDULE_EVERY')


settings = Settings()
