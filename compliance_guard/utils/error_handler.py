"""
Error taxonomy for the screening engine.

Every failure the engine can recover from is expressed as a
``ComplianceGuardError`` subclass. The subclass fixes the category and
severity; ``ErrorHandler`` turns foreign exceptions into the same shape and
logs them at a level derived from the severity.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """How loudly an error is reported."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Which part of the engine an error belongs to."""
    SOURCE = "source"
    STORE = "store"
    PARSING = "parsing"
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    STATE = "state"
    INTERNAL = "internal"


USER_MESSAGES = {
    ErrorCategory.SOURCE: "A sanctions list could not be fetched. Previously synced data stays in use.",
    ErrorCategory.STORE: "Sanctions data could not be saved or loaded. Screening continues from memory.",
    ErrorCategory.PARSING: "A sanctions list was delivered in an unexpected format.",
    ErrorCategory.VALIDATION: "The screening request is incomplete or malformed.",
    ErrorCategory.CONFIGURATION: "The engine configuration is invalid.",
    ErrorCategory.STATE: "The sanctions list is not in a state that allows this operation.",
    ErrorCategory.INTERNAL: "Unexpected internal error.",
}

LOG_LEVELS = {
    ErrorSeverity.LOW: logging.INFO,
    ErrorSeverity.MEDIUM: logging.WARNING,
    ErrorSeverity.HIGH: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}


@dataclass
class ErrorContext:
    """Where an error happened."""
    operation: Optional[str] = None
    component: Optional[str] = None
    additional_data: Optional[Dict[str, Any]] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def describe(self) -> str:
        parts = [p for p in (self.component, self.operation) if p]
        if self.additional_data:
            parts.extend(f"{k}={v}" for k, v in sorted(self.additional_data.items()))
        return " ".join(parts)


class ComplianceGuardError(Exception):
    """Base class for engine errors; subclasses set category and severity."""

    category = ErrorCategory.INTERNAL
    severity = ErrorSeverity.HIGH
    recoverable = True

    def __init__(self, message: str, user_message: Optional[str] = None,
                 context: Optional[ErrorContext] = None, recoverable: Optional[bool] = None,
                 original_exception: Optional[BaseException] = None,
                 category: Optional[ErrorCategory] = None, severity: Optional[ErrorSeverity] = None):
        super().__init__(message)
        self.message = message
        if category is not None:
            self.category = category
        if severity is not None:
            self.severity = severity
        if recoverable is not None:
            self.recoverable = recoverable
        self.user_message = user_message or USER_MESSAGES[self.category]
        self.context = context or ErrorContext()
        self.original_exception = original_exception
        self.error_id = f"CG-{self.category.value}-{self.context.timestamp:%Y%m%d%H%M%S}-{id(self) % 10000:04d}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_id": self.error_id,
            "category": self.category.value,
            "severity": self.severity.value,
            "message": self.message,
            "recoverable": self.recoverable,
            "context": self.context.describe(),
        }


class DataSourceError(ComplianceGuardError):
    """A list fetch failed or timed out."""
    category = ErrorCategory.SOURCE
    severity = ErrorSeverity.MEDIUM


class PersistenceError(ComplianceGuardError):
    """The key-value store could not be read or written."""
    category = ErrorCategory.STORE


class DataParsingError(ComplianceGuardError):
    """A fetched or stored record could not be decoded."""
    category = ErrorCategory.PARSING
    severity = ErrorSeverity.MEDIUM


class ValidationError(ComplianceGuardError):
    """Rejected caller input."""
    category = ErrorCategory.VALIDATION
    severity = ErrorSeverity.LOW
    recoverable = False


class ConfigurationError(ComplianceGuardError):
    category = ErrorCategory.CONFIGURATION
    recoverable = False


class SyncStateError(ComplianceGuardError):
    """A sync state change the lifecycle does not allow."""
    category = ErrorCategory.STATE
    recoverable = False


# Matched against the exception's class hierarchy, nearest class first
FOREIGN_CATEGORIES = {
    'TimeoutError': ErrorCategory.SOURCE,
    'RequestException': ErrorCategory.SOURCE,
    'ConnectionError': ErrorCategory.SOURCE,
    'SQLAlchemyError': ErrorCategory.STORE,
    'UnicodeDecodeError': ErrorCategory.PARSING,
    'JSONDecodeError': ErrorCategory.PARSING,
    'KeyError': ErrorCategory.PARSING,
    'ValueError': ErrorCategory.PARSING,
    'TypeError': ErrorCategory.INTERNAL,
}


class ErrorHandler:
    """Normalizes and logs errors raised inside the engine."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def handle_error(self, error: BaseException, context: Optional[ErrorContext] = None) -> ComplianceGuardError:
        """
        Log an error and return it as a ComplianceGuardError.

        Errors that are already engine errors are logged as they are; anything
        else is wrapped, keeping the original exception for the traceback.
        """
        if isinstance(error, ComplianceGuardError):
            handled = error
        else:
            handled = self.convert(error, context)

        where = handled.context.describe()
        self.logger.log(
            LOG_LEVELS[handled.severity],
            f"[{handled.error_id}] {handled.message}" + (f" ({where})" if where else ""),
            exc_info=handled.original_exception if handled.severity is ErrorSeverity.CRITICAL else None
        )
        return handled

    @staticmethod
    def convert(error: BaseException, context: Optional[ErrorContext] = None) -> ComplianceGuardError:
        category = ErrorCategory.INTERNAL
        for klass in type(error).__mro__:
            if klass.__name__ in FOREIGN_CATEGORIES:
                category = FOREIGN_CATEGORIES[klass.__name__]
                break

        severity = ErrorSeverity.HIGH if category in (ErrorCategory.STORE, ErrorCategory.INTERNAL) \
            else ErrorSeverity.MEDIUM
        return ComplianceGuardError(
            f"{type(error).__name__}: {error}",
            context=context,
            original_exception=error,
            category=category,
            severity=severity
        )
