"""
Configuration dataclasses for the subdomain registrar.

This module defines all configuration structures used throughout the system:
the registrar's domain and credentials, anti-spam policy, batching,
chain access, persistence, locking, retries and logging.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .models import UriEntry
from .zonefile import DEFAULT_ZONEFILE_SIZE


@dataclass
class RegistrarConfig:
    """The parent domain and the credentials that pay for its updates."""

    domain_name: str
    owner_key: str
    payment_key: str
    domain_uri: Optional[str] = None
    uri_entries: list[UriEntry] = field(default_factory=list)
    zonefile_size: int = DEFAULT_ZONEFILE_SIZE

    def effective_uri_entries(self) -> list[UriEntry]:
        """URI records for the batch zone file, including the domain URI."""
        entries = list(self.uri_entries)
        if self.domain_uri:
            entries.append(UriEntry(name="_http._tcp", target=self.domain_uri))
        return entries


@dataclass
class SpamConfig:
    """Anti-abuse policy applied at admission."""

    ip_limit: int = 0
    ip_whitelist: list[str] = field(default_factory=list)
    api_keys: list[str] = field(default_factory=list)
    proofs_required: int = 0
    disable_registrations_without_key: bool = False
    name_min_length: int = 0


@dataclass
class BatchConfig:
    """Batching and confirmation behaviour."""

    min_batch_size: int = 1
    check_core_on_admission: bool = True
    check_core_on_batching: bool = True
    batch_delay_minutes: float = 15.0
    check_transaction_period_minutes: float = 5.0
    publish_twice: bool = True


@dataclass
class ChainConfig:
    """Access to the naming blockchain's API."""

    api_url: str = "https://api.mainnet.hiro.so"
    timeout_seconds: float = 10.0
    max_indexer_lag: int = 10
    simulation_mode: bool = False
    transaction_builder: Optional[str] = None  # "package.module:ClassName"


@dataclass
class PersistenceConfig:
    """Queue store location. ``:memory:`` keeps everything in process."""

    db_path: Path = Path("subdomain_registrar.db")


@dataclass
class LockConfig:
    """Queue lock behaviour."""

    timeout_seconds: float = 30.0


@dataclass
class RetryConfig:
    """Retry behavior for chain read queries."""

    max_retries: int = 2
    base_delay_seconds: float = 0.5
    max_delay_seconds: float = 5.0
    retryable_errors: list[str] = field(
        default_factory=lambda: ["timeout", "server_error", "network_error"]
    )


@dataclass
class LoggingConfig:
    """Logging and audit configuration."""

    level: str = "info"
    audit_mode: bool = False
    audit_signing_key: Optional[str] = None
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class SystemConfig:
    """Main system configuration combining all sub-configurations."""

    registrar: RegistrarConfig
    spam: SpamConfig = field(default_factory=SpamConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)
    chain: ChainConfig = field(default_factory=ChainConfig)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    lock: LockConfig = field(default_factory=LockConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
