"""
Subdomain registrar facade.

Wires the queue store, queue lock, chain cursor and the four core
components (admission, batching, confirmation and status) into a single
object that an HTTP layer, the CLI or the scheduler can drive.
"""

from dataclasses import replace
from typing import Optional

from .admission import AdmissionController
from .audit_logger import AuditLogger, create_logger
from .batch_engine import BatchEngine
from .chain_client import ChainClient
from .chain_cursor import ChainCursor
from .config import SystemConfig
from .confirmation import ConfirmationTracker
from .models import (
    BatchResult,
    QueueRecord,
    RecordStatus,
    SubdomainOperation,
    SubdomainStatus,
    TransactionCheck,
)
from .queue_lock import QueueLock
from .queue_store import QueueStore
from .status import StatusResolver
from .subdomain_validator import normalize_domain


COMPONENT = "SubdomainRegistrar"


def build_logger(config: SystemConfig) -> AuditLogger:
    """Audit logger from ``config.logging`` that scrubs the registrar keys."""
    return create_logger(
        level=config.logging.level,
        output_format=config.logging.output_format,
        audit_signing_key=(
            config.logging.audit_signing_key if config.logging.audit_mode else None
        ),
        secrets=[
            config.registrar.owner_key,
            config.registrar.payment_key,
            *config.spam.api_keys,
        ],
    )


class SubdomainRegistrar:
    """
    Entry point for running a subdomain registrar.

    Usage:
        async with SubdomainRegistrar(config, chain) as registrar:
            await registrar.queue_registration(op, ip_address="10.0.0.1")
            await registrar.submit_batch()
    """

    def __init__(
        self,
        config: SystemConfig,
        chain: ChainClient,
        store: Optional[QueueStore] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Args:
            config: System configuration
            chain: Chain client used by every component
            store: Queue store; opened from ``config.persistence`` if omitted
            logger: Audit logger; built from ``config.logging`` if omitted
        """
        self._config = config
        self._chain = chain
        self._domain_name = normalize_domain(config.registrar.domain_name)
        registrar_config = replace(config.registrar, domain_name=self._domain_name)

        self._logger = logger or build_logger(config)
        self._store = store or QueueStore(config.persistence.db_path)
        self._lock = QueueLock("queue", config.lock.timeout_seconds)
        self._cursor = ChainCursor(config.chain.max_indexer_lag)

        self._admission = AdmissionController(
            domain_name=self._domain_name,
            store=self._store,
            lock=self._lock,
            chain=chain,
            spam_config=config.spam,
            batch_config=config.batch,
            logger=self._logger,
        )
        validator = self._admission.validator
        self._batch_engine = BatchEngine(
            registrar_config=registrar_config,
            batch_config=config.batch,
            store=self._store,
            lock=self._lock,
            chain=chain,
            cursor=self._cursor,
            validator=validator,
            logger=self._logger,
        )
        self._tracker = ConfirmationTracker(
            store=self._store,
            lock=self._lock,
            chain=chain,
            cursor=self._cursor,
            logger=self._logger,
            publish_twice=config.batch.publish_twice,
        )
        self._status = StatusResolver(
            domain_name=self._domain_name,
            store=self._store,
            chain=chain,
            validator=validator,
            logger=self._logger,
        )

    async def __aenter__(self) -> "SubdomainRegistrar":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.shutdown()

    @property
    def domain_name(self) -> str:
        return self._domain_name

    @property
    def store(self) -> QueueStore:
        return self._store

    @property
    def lock(self) -> QueueLock:
        return self._lock

    @property
    def cursor(self) -> ChainCursor:
        return self._cursor

    @property
    def logger(self) -> AuditLogger:
        return self._logger

    async def queue_registration(
        self,
        operation: SubdomainOperation,
        ip_address: Optional[str] = None,
        auth_token: Optional[str] = None,
    ) -> int:
        return await self._admission.admit(operation, ip_address, auth_token)

    async def spam_check(
        self,
        operation: SubdomainOperation,
        ip_address: Optional[str] = None,
        auth_token: Optional[str] = None,
    ) -> Optional[str]:
        return await self._admission.spam_check(operation, ip_address, auth_token)

    async def submit_batch(self) -> Optional[BatchResult]:
        return await self._batch_engine.submit_batch()

    async def check_zonefiles(self) -> list[TransactionCheck]:
        return await self._tracker.check_zonefiles()

    async def get_subdomain_status(self, subdomain_name: str) -> SubdomainStatus:
        return await self._status.get_subdomain_status(subdomain_name)

    async def get_subdomain_info(self, fq_name: str) -> tuple[int, dict]:
        return await self._status.get_subdomain_info(fq_name)

    def list_subdomains(self, cursor: int = 0) -> list[QueueRecord]:
        return self._status.list_subdomains(cursor)

    async def update_queue_status(self, subdomain_names: list[str], tx_hash: str) -> None:
        """Mark names as submitted in ``tx_hash`` (manual recovery)."""
        async with self._lock.hold("update_queue_status"):
            self._store.update_status(subdomain_names, RecordStatus.submitted(tx_hash))
        self._logger.info(COMPONENT, "Updated queue status", {
            "msg_type": "queue_status_updated",
            "names": subdomain_names,
            "tx_hash": tx_hash,
        })

    async def shutdown(self) -> None:
        await self._chain.close()
        self._store.close()
