"""
Batch Engine module.

Packs queued registrations into a single zone file and submits it to the
chain as one name update transaction.
"""

from typing import Optional

from .audit_logger import AuditLogger
from .chain_client import ChainClient
from .chain_cursor import ChainCursor
from .config import BatchConfig, RegistrarConfig
from .exceptions import ChainError, PersistenceError
from .models import BatchResult, QueueRecord
from .queue_lock import QueueLock
from .queue_store import QueueStore
from .subdomain_validator import SubdomainValidator, fully_qualified
from .zonefile import make_update_zonefile


COMPONENT = "BatchEngine"


class BatchEngine:
    """
    Issues batch transactions for the registration queue.

    A whole cycle runs under the queue lock. Records that fail revalidation
    are skipped but keep their ``received`` status, so they are looked at
    again next cycle.
    """

    def __init__(
        self,
        registrar_config: RegistrarConfig,
        batch_config: BatchConfig,
        store: QueueStore,
        lock: QueueLock,
        chain: ChainClient,
        cursor: ChainCursor,
        validator: SubdomainValidator,
        logger: AuditLogger,
    ) -> None:
        self._registrar = registrar_config
        self._batch = batch_config
        self._store = store
        self._lock = lock
        self._chain = chain
        self._cursor = cursor
        self._validator = validator
        self._logger = logger

    async def _still_valid(self, record: QueueRecord) -> bool:
        result = self._validator.validate(record.operation)
        if not result.valid:
            self._logger.warn(COMPONENT, "Queued operation no longer valid", {
                "msg_type": "invalid_queued_op",
                "subdomain_name": record.subdomain_name,
                "reason": result.message,
            })
            return False

        if not self._batch.check_core_on_batching:
            return True

        fq_name = fully_qualified(record.subdomain_name, self._registrar.domain_name)
        try:
            registered = await self._chain.is_subdomain_registered(fq_name)
        except ChainError as e:
            self._logger.log_error(COMPONENT, "Could not revalidate queued operation", e, {
                "msg_type": "revalidation_failed",
                "subdomain_name": record.subdomain_name,
            })
            return False

        if registered:
            self._logger.warn(COMPONENT, "Queued name already registered on chain", {
                "msg_type": "invalid_queued_op",
                "subdomain_name": record.subdomain_name,
            })
        return not registered

    async def submit_batch(self) -> Optional[BatchResult]:
        """
        Submit one batch of queued registrations.

        Returns:
            The submitted batch, or None when there was nothing (or too
            little) to submit

        Raises:
            LockTimeoutError: If the queue lock was not obtained in time
            ChainError: If the chain is stale or the submission failed;
                a ChainRejectedError carries the chain's own reason
            PersistenceError: If the store could not be read or updated
        """
        async with self._lock.hold("submit_batch"):
            queued = self._store.fetch_queue()
            valid = [record for record in queued if await self._still_valid(record)]

            if not valid or len(valid) < self._batch.min_batch_size:
                self._logger.debug(COMPONENT, "Not enough queued operations to batch", {
                    "msg_type": "batch_skipped",
                    "queued": len(queued),
                    "valid": len(valid),
                    "min_batch_size": self._batch.min_batch_size,
                })
                return None

            update = make_update_zonefile(
                self._registrar.domain_name,
                self._registrar.effective_uri_entries(),
                [record.operation for record in valid],
                self._registrar.zonefile_size,
            )
            if not update.included_names:
                self._logger.warn(COMPONENT, "No queued operation fits in a zone file", {
                    "msg_type": "batch_skipped",
                    "zonefile_size": self._registrar.zonefile_size,
                })
                return None

            await self._cursor.refresh(self._chain)
            self._store.backup_zonefile(update.zonefile)

            try:
                tx_hash = await self._chain.submit_update_transaction(
                    self._registrar.domain_name,
                    update.zonefile,
                    self._registrar.owner_key,
                    self._registrar.payment_key,
                )
            except ChainError as e:
                self._logger.log_error(COMPONENT, "Batch submission failed", e, {
                    "msg_type": "batch_failed",
                    "names": update.included_names,
                })
                raise

            try:
                self._store.record_submission(update.included_names, tx_hash, update.zonefile)
            except PersistenceError as e:
                # already on chain; the names stay received and are checked again
                self._logger.log_error(COMPONENT, "Failed to record submitted batch", e, {
                    "msg_type": "batch_record_failed",
                    "tx_hash": tx_hash,
                    "names": update.included_names,
                })
                raise

        self._logger.info(COMPONENT, "Submitted batch update", {
            "msg_type": "batch_submitted",
            "tx_hash": tx_hash,
            "names": update.included_names,
            "zonefile_bytes": len(update.zonefile.encode("utf-8")),
        })
        return BatchResult(
            tx_hash=tx_hash,
            included_names=update.included_names,
            zonefile=update.zonefile,
        )
