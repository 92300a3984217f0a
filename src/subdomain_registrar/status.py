"""
Status Resolver module.

Answers "what happened to my subdomain?" by combining on-chain truth with
the local queue. These are plain reads and do not take the queue lock.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from .audit_logger import AuditLogger
from .chain_client import ChainClient
from .enums import QueueStatus, SubdomainStatusKind
from .exceptions import ChainError
from .models import QueueRecord, SubdomainStatus
from .queue_store import QueueStore
from .subdomain_validator import SubdomainValidator, fully_qualified


COMPONENT = "StatusResolver"

LIST_WINDOW = timedelta(days=7)

PROPAGATED_MESSAGE = "Subdomain propagated"
QUEUED_MESSAGE = (
    "Subdomain is queued for update and should be announced within the next few blocks."
)
SUBMITTED_MESSAGE = (
    "Your subdomain was registered in transaction {tx_id} -- it should propagate "
    "on the network once it has 6 confirmations."
)
NOT_FOUND_MESSAGE = "Subdomain not registered with this registrar"


class StatusResolver:
    """Resolves subdomain status; on-chain state wins over the local queue."""

    def __init__(
        self,
        domain_name: str,
        store: QueueStore,
        chain: ChainClient,
        validator: SubdomainValidator,
        logger: AuditLogger,
    ) -> None:
        self._domain_name = domain_name
        self._store = store
        self._chain = chain
        self._validator = validator
        self._logger = logger

    async def _is_propagated(self, subdomain_name: str) -> bool:
        fq_name = fully_qualified(subdomain_name, self._domain_name)
        try:
            return await self._chain.is_subdomain_registered(fq_name)
        except ChainError as e:
            # fall back to the local queue when the chain cannot be asked
            self._logger.log_error(COMPONENT, "Chain lookup failed during status check", e, {
                "msg_type": "status_lookup_failed",
                "subdomain_name": subdomain_name,
            })
            return False

    async def get_subdomain_status(self, subdomain_name: str) -> SubdomainStatus:
        if await self._is_propagated(subdomain_name):
            return SubdomainStatus(SubdomainStatusKind.PROPAGATED, PROPAGATED_MESSAGE)

        record = self._store.get_status_record(subdomain_name)
        if record is None:
            return SubdomainStatus(
                SubdomainStatusKind.NOT_FOUND, NOT_FOUND_MESSAGE, status_code=404
            )

        status = record.status
        if status.kind == QueueStatus.RECEIVED:
            return SubdomainStatus(SubdomainStatusKind.QUEUED, QUEUED_MESSAGE)
        if status.kind == QueueStatus.SUBMITTED:
            return SubdomainStatus(
                SubdomainStatusKind.SUBMITTED,
                SUBMITTED_MESSAGE.format(tx_id=status.detail),
                tx_id=status.detail,
            )
        return SubdomainStatus(SubdomainStatusKind.OTHER, status.render())

    async def get_subdomain_info(self, fq_name: str) -> tuple[int, dict]:
        """
        Describe a queued name the way the naming API describes names.

        Returns:
            ``(http_status_code, body)``: 400 for names this registrar cannot
            hold, 404 for names it has no pending record of
        """
        suffix = f".{self._domain_name}"
        subdomain_name = fq_name[:-len(suffix)] if fq_name.endswith(suffix) else ""
        if not subdomain_name or not self._validator.is_valid_name(subdomain_name):
            return 400, {"error": "Invalid name"}

        record = self._store.get_status_record(subdomain_name)
        if record is None or record.status.kind == QueueStatus.ERROR:
            return 404, {"error": NOT_FOUND_MESSAGE}

        if record.status.kind == QueueStatus.SUBMITTED:
            status, last_txid = "submitted_subdomain", record.status.detail
        else:
            status, last_txid = "received_subdomain", None

        return 200, {
            "status": status,
            "address": record.operation.owner,
            "last_txid": last_txid,
            "zonefile_txt": record.operation.zonefile,
        }

    def list_subdomains(
        self,
        cursor: int = 0,
        now: Optional[datetime] = None,
    ) -> list[QueueRecord]:
        """A page of recent queue records starting at queue index ``cursor``."""
        now = now or datetime.now(timezone.utc)
        return self._store.list_subdomains(cursor, now - LIST_WINDOW)
