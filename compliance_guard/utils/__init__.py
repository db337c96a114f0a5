"""
Utility modules for the ComplianceGuard screening engine.
"""

from .logger import get_logger, get_audit_logger, setup_logging, cleanup_logging, log_performance
from .error_handler import (
    ErrorHandler,
    ErrorContext,
    ComplianceGuardError,
    DataSourceError,
    PersistenceError,
    DataParsingError,
    ValidationError,
    ConfigurationError,
    SyncStateError,
)
from .concurrency import DeadlineExceeded, SingleFlight, call_with_timeout

__all__ = [
    'get_logger',
    'get_audit_logger',
    'setup_logging',
    'cleanup_logging',
    'log_performance',
    'ErrorHandler',
    'ErrorContext',
    'ComplianceGuardError',
    'DataSourceError',
    'PersistenceError',
    'DataParsingError',
    'ValidationError',
    'ConfigurationError',
    'SyncStateError',
    'DeadlineExceeded',
    'SingleFlight',
    'call_with_timeout',
]
