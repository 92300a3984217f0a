"""
Admission Controller module.

Decides whether a registration request may join the queue: duplicate
check, operation validity, the anti-abuse policy, and finally the locked
re-check and insert.
"""

from typing import NoReturn, Optional

from .audit_logger import AuditLogger
from .chain_client import ChainClient
from .config import BatchConfig, SpamConfig
from .enums import InvalidOperationReason
from .exceptions import (
    AlreadyQueuedError,
    ChainError,
    InvalidOperationError,
    PersistenceError,
    SpamRejectedError,
)
from .models import RecordStatus, SubdomainOperation, SubmitterRecord
from .queue_lock import QueueLock
from .queue_store import QueueStore
from .subdomain_validator import SubdomainValidator, fully_qualified


COMPONENT = "AdmissionController"

OWNER_LIMIT_REASON = "Owner already requested subdomain"


def bearer_key(auth_token: Optional[str]) -> Optional[str]:
    """Strip an optional ``bearer`` prefix from an authorization value."""
    if not auth_token:
        return None
    token = auth_token.strip()
    if token.lower().startswith("bearer "):
        token = token[len("bearer "):].strip()
    return token or None


class AdmissionController:
    """
    Admits registration requests into the queue.

    Validation, chain queries and proof checks run without the queue lock;
    only the final duplicate re-check and the inserts are done while holding
    it, so two concurrent requests for one name can never both be admitted.
    """

    def __init__(
        self,
        domain_name: str,
        store: QueueStore,
        lock: QueueLock,
        chain: ChainClient,
        spam_config: SpamConfig,
        batch_config: BatchConfig,
        logger: AuditLogger,
    ) -> None:
        self._domain_name = domain_name
        self._store = store
        self._lock = lock
        self._chain = chain
        self._spam = spam_config
        self._batch = batch_config
        self._logger = logger
        self._validator = SubdomainValidator(spam_config.name_min_length)

    @property
    def validator(self) -> SubdomainValidator:
        return self._validator

    def _check_not_queued(self, subdomain_name: str) -> None:
        if self._store.get_status_record(subdomain_name) is not None:
            raise AlreadyQueuedError(subdomain_name)

    def _reject(
        self,
        operation: SubdomainOperation,
        ip_address: Optional[str],
        reason: str,
    ) -> NoReturn:
        self._logger.warn(COMPONENT, "Registration rejected by spam policy", {
            "msg_type": "spam_fail",
            "subdomain_name": operation.subdomain_name,
            "owner": operation.owner,
            "ip_address": ip_address,
            "reason": reason,
        })
        raise SpamRejectedError(reason, {"subdomain_name": operation.subdomain_name})

    async def check_operation(self, operation: SubdomainOperation) -> None:
        """
        Validate an operation, optionally against the live chain.

        Raises:
            InvalidOperationError: If the operation is malformed or the name
                is already registered on chain
            ChainError: If the chain lookup itself fails
        """
        result = self._validator.validate(operation)
        if not result.valid:
            raise InvalidOperationError(
                reason=result.reason,
                details={"subdomain_name": operation.subdomain_name, "reason": result.message},
            )

        if self._batch.check_core_on_admission:
            fq_name = fully_qualified(operation.subdomain_name, self._domain_name)
            if await self._chain.is_subdomain_registered(fq_name):
                raise InvalidOperationError(
                    reason=InvalidOperationReason.ALREADY_REGISTERED,
                    details={
                        "subdomain_name": operation.subdomain_name,
                        "reason": f"{fq_name} is already registered",
                    },
                )

    async def spam_check(
        self,
        operation: SubdomainOperation,
        ip_address: Optional[str],
        auth_token: Optional[str],
    ) -> Optional[str]:
        """
        Apply the anti-abuse policy.

        Returns:
            The rejection reason, or None when the request is acceptable
        """
        if self._store.owner_count(operation.owner) >= 1:
            return OWNER_LIMIT_REASON

        key = bearer_key(auth_token)
        if key and key in self._spam.api_keys:
            return None

        if self._spam.disable_registrations_without_key:
            return "Registrations without an API key are disabled"

        if self._spam.ip_limit > 0:
            if not ip_address:
                return "IP address could not be determined"
            if ip_address not in self._spam.ip_whitelist:
                if self._store.ip_count(ip_address) >= self._spam.ip_limit:
                    return "IP limit reached"

        if self._spam.proofs_required > 0:
            try:
                profile = await self._chain.resolve_profile(operation.zonefile, operation.owner)
                proofs = await self._chain.validate_proofs(profile, operation.owner)
            except ChainError as e:
                self._logger.warn(COMPONENT, "Proof resolution failed", {
                    "msg_type": "proof_resolution_failed",
                    "owner": operation.owner,
                    "error_code": e.code,
                })
                return "Proof validation failed"
            valid = [proof for proof in proofs if proof.get("valid")]
            if len(valid) < self._spam.proofs_required:
                return (
                    f"Proof validation failed: {len(valid)} valid proofs, "
                    f"{self._spam.proofs_required} required"
                )

        return None

    async def admit(
        self,
        operation: SubdomainOperation,
        ip_address: Optional[str] = None,
        auth_token: Optional[str] = None,
    ) -> int:
        """
        Queue a registration request.

        Args:
            operation: The requested registration
            ip_address: Requesting client's address, if known
            auth_token: Authorization value, ``bearer <key>`` or a bare key

        Returns:
            The queue index of the new record

        Raises:
            AlreadyQueuedError: If the name already has a queue record
            InvalidOperationError: If the operation is invalid
            SpamRejectedError: If the anti-abuse policy rejects the request
            LockTimeoutError: If the queue lock was not obtained in time
            PersistenceError: If the records could not be written
        """
        name = operation.subdomain_name
        self._check_not_queued(name)
        await self.check_operation(operation)

        reason = await self.spam_check(operation, ip_address, auth_token)
        if reason:
            self._reject(operation, ip_address, reason)

        async with self._lock.hold("queue_registration"):
            # other requests may have been admitted while we were unlocked
            self._check_not_queued(name)
            if self._store.owner_count(operation.owner) >= 1:
                self._reject(operation, ip_address, OWNER_LIMIT_REASON)

            queue_index = self._store.add_to_queue(operation)
            try:
                self._store.log_submitter(SubmitterRecord(
                    ip_address=ip_address,
                    owner=operation.owner,
                    queue_index=queue_index,
                ))
            except PersistenceError as e:
                self._logger.log_error(COMPONENT, "Failed to record submitter", e, {
                    "msg_type": "submitter_log_failed",
                    "subdomain_name": name,
                    "queue_index": queue_index,
                })
                self._store.set_record_status(queue_index, RecordStatus.error(e.message))
                raise

        self._logger.info(COMPONENT, "Queued subdomain registration", {
            "msg_type": "queued_update",
            "subdomain_name": name,
            "owner": operation.owner,
            "queue_index": queue_index,
        })
        return queue_index
