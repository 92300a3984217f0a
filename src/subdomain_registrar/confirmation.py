"""
Confirmation Tracker module.

Watches submitted batch transactions until they are buried deep enough,
then announces their zone files to the naming network and stops tracking
them.
"""

from .audit_logger import AuditLogger
from .chain_client import ChainClient
from .chain_cursor import ChainCursor
from .exceptions import ChainError
from .models import TrackedTransaction, TransactionCheck
from .queue_lock import QueueLock
from .queue_store import QueueStore


COMPONENT = "ConfirmationTracker"

CONFIRMATION_DEPTH = 7


def is_confirmed(block_height: int, chain_tip: int) -> bool:
    return block_height > 0 and block_height + CONFIRMATION_DEPTH <= chain_tip


class ConfirmationTracker:
    """Checks tracked transactions and finalizes the confirmed ones."""

    def __init__(
        self,
        store: QueueStore,
        lock: QueueLock,
        chain: ChainClient,
        cursor: ChainCursor,
        logger: AuditLogger,
        publish_twice: bool = True,
    ) -> None:
        self._store = store
        self._lock = lock
        self._chain = chain
        self._cursor = cursor
        self._logger = logger
        self._publish_times = 2 if publish_twice else 1

    async def _finalize(self, tx: TrackedTransaction) -> bool:
        """Announce a confirmed zone file; False leaves it tracked for next cycle."""
        try:
            # announcing is idempotent; repeating it works around peers that drop the first
            for _ in range(self._publish_times):
                await self._chain.publish_zonefile(tx.zonefile)
        except ChainError as e:
            self._logger.log_error(COMPONENT, "Failed to publish zone file", e, {
                "msg_type": "publish_failed",
                "tx_hash": tx.tx_hash,
            })
            return False

        self._logger.info(COMPONENT, "Published zone file", {
            "msg_type": "zonefile_published",
            "tx_hash": tx.tx_hash,
            "block_height": tx.block_height,
        })
        return True

    async def check_zonefiles(self) -> list[TransactionCheck]:
        """
        Run one confirmation cycle.

        Returns:
            One check per tracked transaction; ``block_height`` is -1 while
            the transaction is not yet included in a block

        Raises:
            LockTimeoutError: If the queue lock was not obtained in time
            ChainError: If a height lookup fails or the chain source is stale
        """
        async with self._lock.hold("check_zonefiles"):
            tracked = self._store.get_tracked_transactions()
            if not tracked:
                return []

            new_heights: dict[str, int] = {}
            for tx in tracked:
                if tx.block_height > 0:
                    continue
                height = await self._chain.get_tx_inclusion_height(tx.tx_hash)
                if height:
                    tx.block_height = height
                    new_heights[tx.tx_hash] = height
                else:
                    self._logger.debug(COMPONENT, "Transaction still pending", {
                        "msg_type": "tx_pending",
                        "tx_hash": tx.tx_hash,
                    })

            chain_tip = await self._cursor.refresh(self._chain)

            checks = []
            finalized = []
            for tx in tracked:
                confirmed = is_confirmed(tx.block_height, chain_tip)
                checks.append(TransactionCheck(
                    tx_hash=tx.tx_hash,
                    confirmed=confirmed,
                    block_height=tx.block_height or -1,
                ))
                if confirmed and await self._finalize(tx):
                    finalized.append(tx.tx_hash)

            self._store.update_transaction_heights(new_heights)
            self._store.flush_tracked_transactions(finalized)

        self._logger.info(COMPONENT, "Checked tracked transactions", {
            "msg_type": "zonefiles_checked",
            "chain_tip": chain_tip,
            "tracked": len(tracked),
            "finalized": finalized,
        })
        return checks
