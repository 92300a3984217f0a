"""
Data models for the subdomain registrar.

This module defines the records held by the queue store, the values passed
to and from the chain client, and the results of batch and status
operations.
"""

from dataclasses import dataclass, field
from typing import Optional

from .enums import QueueStatus, SubdomainStatusKind


@dataclass
class SubdomainOperation:
    """A requested registration of a subdomain under the registrar's domain."""

    subdomain_name: str
    owner: str
    sequence_number: int
    zonefile: str
    signature: Optional[str] = None


@dataclass(frozen=True)
class RecordStatus:
    """
    Status of a queue record.

    Closed variant: ``received``, ``submitted`` (detail = tx id) or
    ``error`` (detail = reason). ``render`` gives the stored string form.
    """

    kind: QueueStatus
    detail: Optional[str] = None

    @classmethod
    def received(cls) -> "RecordStatus":
        return cls(QueueStatus.RECEIVED)

    @classmethod
    def submitted(cls, tx_hash: str) -> "RecordStatus":
        return cls(QueueStatus.SUBMITTED, tx_hash)

    @classmethod
    def error(cls, detail: str) -> "RecordStatus":
        return cls(QueueStatus.ERROR, detail)

    def render(self) -> str:
        if self.kind == QueueStatus.ERROR:
            return f"error:{self.detail or ''}"
        return self.kind.value

    @classmethod
    def parse(cls, status: str, detail: Optional[str] = None) -> "RecordStatus":
        """Parse a stored status string (plus the stored detail column)."""
        if status.startswith("error"):
            _, _, reason = status.partition(":")
            return cls(QueueStatus.ERROR, reason or detail)
        return cls(QueueStatus(status), detail)


@dataclass
class QueueRecord:
    """A persisted registration attempt."""

    queue_index: int
    operation: SubdomainOperation
    status: RecordStatus
    received_at: str

    @property
    def subdomain_name(self) -> str:
        return self.operation.subdomain_name


@dataclass
class SubmitterRecord:
    """Who submitted a queued registration, for rate limiting."""

    ip_address: Optional[str]
    owner: str
    queue_index: int


@dataclass
class TrackedTransaction:
    """A batch transaction awaiting confirmation."""

    tx_hash: str
    zonefile: str
    block_height: int = 0


@dataclass
class UriEntry:
    """An informational URI record placed in the domain's zone file."""

    name: str
    target: str
    priority: int = 10
    weight: int = 1


@dataclass
class ZonefileUpdate:
    """A rendered batch zone file and the names packed into it."""

    zonefile: str
    included_names: list[str] = field(default_factory=list)


@dataclass
class NameInfo:
    """What the chain knows about a (sub)domain name."""

    exists: bool
    owner: Optional[str] = None
    status: Optional[str] = None
    last_txid: Optional[str] = None


@dataclass
class TransactionCheck:
    """Outcome of checking one tracked transaction."""

    tx_hash: str
    confirmed: bool
    block_height: int  # -1 while unconfirmed


@dataclass
class BatchResult:
    """A successfully submitted batch."""

    tx_hash: str
    included_names: list[str]
    zonefile: str


@dataclass
class SubdomainStatus:
    """Resolved status of a subdomain, ready for presentation."""

    kind: SubdomainStatusKind
    message: str
    tx_id: Optional[str] = None
    status_code: int = 200

    def to_dict(self) -> dict:
        out = {"status": self.message}
        if self.status_code != 200:
            out["statusCode"] = self.status_code
        return out
