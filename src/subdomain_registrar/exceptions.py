"""
Exception classes for the subdomain registrar.

All exceptions inherit from RegistrarError and provide structured
error information with codes, messages, and optional details.
"""

from typing import Optional

from .enums import InvalidOperationReason


class RegistrarError(Exception):
    """Base exception for all registrar errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(RegistrarError):
    """Raised when a domain name or configuration value is malformed."""

    pass


class InvalidOperationError(RegistrarError):
    """Raised when a subdomain operation is malformed or ineligible."""

    def __init__(
        self,
        reason: InvalidOperationReason,
        message: str = "Requested subdomain operation is invalid.",
        details: Optional[dict] = None,
    ) -> None:
        self.reason = reason
        super().__init__(reason.value, message, details)

    @property
    def is_name_length(self) -> bool:
        """True when the only problem is the configured minimum name length."""
        return self.reason == InvalidOperationReason.NAME_LENGTH


class AlreadyQueuedError(RegistrarError):
    """Raised when a live queue record already exists for the name."""

    def __init__(self, subdomain_name: str) -> None:
        super().__init__(
            code="already_queued",
            message="Subdomain operation already queued for this name.",
            details={"subdomain_name": subdomain_name},
        )


class SpamRejectedError(RegistrarError):
    """Raised when the anti-abuse policy rejects a registration."""

    def __init__(self, reason: str, details: Optional[dict] = None) -> None:
        self.reason = reason
        super().__init__("spam_rejected", reason, details)


class LockTimeoutError(RegistrarError):
    """Raised when the queue lock could not be obtained in time. Safe to retry."""

    pass


class PersistenceError(RegistrarError):
    """Raised when queue store operations fail."""

    pass


class ChainError(RegistrarError):
    """Raised when a blockchain collaborator call fails."""

    pass


class NetworkError(ChainError):
    """Raised when the chain API cannot be reached or times out."""

    pass


class ChainRejectedError(ChainError):
    """Raised when the chain explicitly rejects a submitted transaction."""

    def __init__(self, reason: str, details: Optional[dict] = None) -> None:
        self.reason = reason
        super().__init__("tx_rejected", reason, details)


class ChainHeightRegressionError(ChainError):
    """Raised when a freshly fetched chain height is below the last one seen."""

    pass


class StaleChainSourceError(ChainError):
    """Raised when the chain indexer lags too far behind the chain tip."""

    pass
