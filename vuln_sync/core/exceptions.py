"""
Custom Exceptions for the Vulnerability Sync Service

Purpose: Standardized error handling across feed clients, stores and the ingester
Usage: Clients raise FetchException/ParseException, stores raise StoreException,
       the retry helper raises RetryBudgetExhausted

Exception Hierarchy:
- VulnSyncException (base)
  ├── FetchException (transient upstream errors)
  │   └── NotFoundException (HTTP 404, expected on enrichment lookups)
  ├── ParseException (malformed upstream payloads)
  ├── StoreException (transient store command errors)
  ├── ConfigException (configuration errors)
  └── RetryBudgetExhausted (retry time budget spent)
"""

from typing import Optional


class VulnSyncException(Exception):
    """Base exception for all vulnerability sync operations"""

    def __init__(self, message: str, source_name: str = None, details: dict = None):
        self.source_name = source_name
        self.details = details or {}
        super().__init__(message)

    def __str__(self):
        if self.source_name:
            return f"[{self.source_name}] {super().__str__()}"
        return super().__str__()


class FetchException(VulnSyncException):
    """Raised when an upstream request fails"""

    def __init__(self, message: str, source_name: str = None,
                 status_code: int = None, url: str = None, **kwargs):
        self.status_code = status_code
        self.url = url
        details = {'status_code': status_code, 'url': url, **kwargs}
        super().__init__(message, source_name, details)


class NotFoundException(FetchException):
    """Raised when the upstream answers 404 for an identifier"""


class ParseException(VulnSyncException):
    """Raised when an upstream payload cannot be understood"""

    def __init__(self, message: str, source_name: str = None,
                 raw_data_sample: str = None, **kwargs):
        self.raw_data_sample = raw_data_sample
        details = {'raw_data_sample': raw_data_sample, **kwargs}
        super().__init__(message, source_name, details)


class StoreException(VulnSyncException):
    """Raised when a store command fails"""

    def __init__(self, message: str, command: str = None, **kwargs):
        self.command = command
        details = {'command': command, **kwargs}
        super().__init__(message, 'store', details)


class ConfigException(VulnSyncException):
    """Raised when configuration is invalid"""

    def __init__(self, message: str, source_name: str = None,
                 config_key: str = None, **kwargs):
        self.config_key = config_key
        details = {'config_key': config_key, **kwargs}
        super().__init__(message, source_name, details)


class RetryBudgetExhausted(VulnSyncException):
    """Raised when an operation kept failing until its retry budget ran out"""

    def __init__(self, message: str, attempts: int = 0,
                 last_error: Optional[BaseException] = None):
        self.attempts = attempts
        self.last_error = last_error
        details = {'attempts': attempts, 'last_error': str(last_error) if last_error else None}
        super().__init__(message, None, details)
