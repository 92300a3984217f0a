"""
Subdomain Registrar - batching subdomain registrar for a blockchain naming system.

This package queues subdomain registration requests, packs them into zone
files under a parent domain, submits them as name update transactions and
announces the zone files once the transactions are confirmed.
"""

__version__ = "0.1.0"
__author__ = "Subdomain Registrar Team"

from subdomain_registrar.exceptions import (
    RegistrarError,
    ValidationError,
    InvalidOperationError,
    AlreadyQueuedError,
    SpamRejectedError,
    LockTimeoutError,
    PersistenceError,
    ChainError,
    NetworkError,
    ChainRejectedError,
    ChainHeightRegressionError,
    StaleChainSourceError,
)
from subdomain_registrar.enums import (
    QueueStatus,
    SubdomainStatusKind,
    InvalidOperationReason,
    LogLevel,
)
from subdomain_registrar.models import (
    SubdomainOperation,
    RecordStatus,
    QueueRecord,
    SubmitterRecord,
    TrackedTransaction,
    UriEntry,
    ZonefileUpdate,
    NameInfo,
    TransactionCheck,
    BatchResult,
    SubdomainStatus,
)
from subdomain_registrar.config import (
    RegistrarConfig,
    SpamConfig,
    BatchConfig,
    ChainConfig,
    PersistenceConfig,
    LockConfig,
    RetryConfig,
    LoggingConfig,
    SystemConfig,
)
from subdomain_registrar.zonefile import (
    destruct_zonefile,
    reassemble_zonefile,
    subdomain_op_to_record,
    make_zonefile,
    make_update_zonefile,
)
from subdomain_registrar.subdomain_validator import (
    SubdomainValidator,
    SubdomainValidationResult,
    is_valid_address,
    normalize_domain,
)
from subdomain_registrar.audit_logger import (
    AuditLogger,
    LogEntry,
    create_logger,
)
from subdomain_registrar.retry_manager import (
    RetryManager,
    RetryResult,
)
from subdomain_registrar.queue_store import QueueStore
from subdomain_registrar.queue_lock import QueueLock
from subdomain_registrar.chain_client import (
    ChainClient,
    HTTPChainClient,
    TransactionBuilder,
    SimulatedTransactionBuilder,
)
from subdomain_registrar.chain_cursor import ChainCursor
from subdomain_registrar.admission import AdmissionController
from subdomain_registrar.batch_engine import BatchEngine
from subdomain_registrar.confirmation import (
    ConfirmationTracker,
    CONFIRMATION_DEPTH,
)
from subdomain_registrar.status import StatusResolver
from subdomain_registrar.registrar import SubdomainRegistrar
from subdomain_registrar.scheduler import (
    IntervalScheduler,
    ScheduledTask,
)
from subdomain_registrar.config_io import (
    create_default_config,
    load_config_from_file,
    save_config_to_file,
)
from subdomain_registrar.cli import (
    main as cli_main,
    create_parser,
)

__all__ = [
    # Exceptions
    "RegistrarError",
    "ValidationError",
    "InvalidOperationError",
    "AlreadyQueuedError",
    "SpamRejectedError",
    "LockTimeoutError",
    "PersistenceError",
    "ChainError",
    "NetworkError",
    "ChainRejectedError",
    "ChainHeightRegressionError",
    "StaleChainSourceError",
    # Enums
    "QueueStatus",
    "SubdomainStatusKind",
    "InvalidOperationReason",
    "LogLevel",
    # Models
    "SubdomainOperation",
    "RecordStatus",
    "QueueRecord",
    "SubmitterRecord",
    "TrackedTransaction",
    "UriEntry",
    "ZonefileUpdate",
    "NameInfo",
    "TransactionCheck",
    "BatchResult",
    "SubdomainStatus",
    # Configuration
    "RegistrarConfig",
    "SpamConfig",
    "BatchConfig",
    "ChainConfig",
    "PersistenceConfig",
    "LockConfig",
    "RetryConfig",
    "LoggingConfig",
    "SystemConfig",
    # Zone files
    "destruct_zonefile",
    "reassemble_zonefile",
    "subdomain_op_to_record",
    "make_zonefile",
    "make_update_zonefile",
    # Validation
    "SubdomainValidator",
    "SubdomainValidationResult",
    "is_valid_address",
    "normalize_domain",
    # Audit Logger
    "AuditLogger",
    "LogEntry",
    "create_logger",
    # Retry Manager
    "RetryManager",
    "RetryResult",
    # Storage and locking
    "QueueStore",
    "QueueLock",
    # Chain
    "ChainClient",
    "HTTPChainClient",
    "TransactionBuilder",
    "SimulatedTransactionBuilder",
    "ChainCursor",
    # Core components
    "AdmissionController",
    "BatchEngine",
    "ConfirmationTracker",
    "CONFIRMATION_DEPTH",
    "StatusResolver",
    "SubdomainRegistrar",
    # Scheduler
    "IntervalScheduler",
    "ScheduledTask",
    # Configuration files and CLI
    "create_default_config",
    "load_config_from_file",
    "save_config_to_file",
    "cli_main",
    "create_parser",
]
