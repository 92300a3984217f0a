"""
Enumeration types for the subdomain registrar.

These enums provide type-safe constants for queue states, status
resolution results, validation failures and logging.
"""

from enum import Enum


class QueueStatus(Enum):
    """Lifecycle state of a queued registration."""

    RECEIVED = "received"
    SUBMITTED = "submitted"
    ERROR = "error"


class SubdomainStatusKind(Enum):
    """Outcome of a status lookup for a subdomain."""

    PROPAGATED = "propagated"
    QUEUED = "queued"
    SUBMITTED = "submitted"
    NOT_FOUND = "not_found"
    OTHER = "other"


class InvalidOperationReason(Enum):
    """Why a subdomain operation failed validation."""

    SEQUENCE = "invalid_sequence"
    OWNER = "invalid_owner"
    NAME = "invalid_name"
    NAME_LENGTH = "name_length"
    ALREADY_REGISTERED = "already_registered"


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
