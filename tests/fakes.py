"""
In-memory stand-ins shared by the registrar tests.
"""

import asyncio
import io
from typing import Optional

from subdomain_registrar.audit_logger import AuditLogger
from subdomain_registrar.chain_client import REGISTERED_SUBDOMAIN, ChainClient
from subdomain_registrar.config import RegistrarConfig, SystemConfig, PersistenceConfig
from subdomain_registrar.exceptions import ChainError, ChainRejectedError
from subdomain_registrar.models import NameInfo, SubdomainOperation


TEST_ADDRESS = "SP2ZRX0K27GW0SP3GJCEMHD95TQGJMKB7GB36ZAR0"
TEST_ADDRESS_2 = "ST26FVX16539KKXZKJN098Q08HRX3XBAP541MFS0P"


def run_async(coro):
    """Helper to run async code in tests."""
    return asyncio.new_event_loop().run_until_complete(coro)


def quiet_logger() -> AuditLogger:
    return AuditLogger(output_format="json", output_stream=io.StringIO(), keep_entries=True)


def make_config(domain_name: str = "bar.id", **sections) -> SystemConfig:
    return SystemConfig(
        registrar=RegistrarConfig(
            domain_name=domain_name,
            owner_key="owner-secret",
            payment_key="payment-secret",
        ),
        persistence=PersistenceConfig(db_path=":memory:"),
        **sections,
    )


def make_operation(name: str, owner: str = TEST_ADDRESS, zonefile: str = "hello-world") -> SubdomainOperation:
    return SubdomainOperation(
        subdomain_name=name,
        owner=owner,
        sequence_number=0,
        zonefile=zonefile,
    )


class FakeChainClient(ChainClient):
    """Scriptable chain; every call is recorded."""

    def __init__(self, chain_tip: int = 100, indexer_height: Optional[int] = None) -> None:
        self.chain_tip = chain_tip
        self.indexer_height = indexer_height
        self.registered: set[str] = set()
        self.failing_names: set[str] = set()
        self.tx_heights: dict[str, int] = {}
        self.failing_tx_lookups: set[str] = set()
        self.reject_reason: Optional[str] = None
        self.submit_error: Optional[ChainError] = None
        self.failing_zonefiles: set[str] = set()
        self.profile: Optional[dict] = None
        self.proofs: list[dict] = []
        self.lookup_delay = 0.0

        self.name_lookups: list[str] = []
        self.submissions: list[tuple[str, str, str, str]] = []
        self.published: list[str] = []
        self.closed = False
        self._tx_counter = 0

    async def get_name_info(self, fq_name: str) -> NameInfo:
        self.name_lookups.append(fq_name)
        if self.lookup_delay:
            await asyncio.sleep(self.lookup_delay)
        if fq_name in self.failing_names:
            raise ChainError(code="server_error", message=f"lookup of {fq_name} failed")
        if fq_name in self.registered:
            return NameInfo(exists=True, owner=TEST_ADDRESS, status=REGISTERED_SUBDOMAIN)
        return NameInfo(exists=False)

    async def get_chain_tip(self) -> int:
        return self.chain_tip

    async def get_indexer_height(self) -> int:
        return self.chain_tip if self.indexer_height is None else self.indexer_height

    async def get_tx_inclusion_height(self, tx_hash: str) -> Optional[int]:
        if tx_hash in self.failing_tx_lookups:
            raise ChainError(code="server_error", message=f"lookup of {tx_hash} failed")
        return self.tx_heights.get(tx_hash)

    async def submit_update_transaction(
        self,
        domain_name: str,
        zonefile: str,
        owner_key: str,
        payment_key: str,
    ) -> str:
        if self.submit_error is not None:
            raise self.submit_error
        if self.reject_reason is not None:
            raise ChainRejectedError(self.reject_reason)
        self.submissions.append((domain_name, zonefile, owner_key, payment_key))
        self._tx_counter += 1
        return f"txhash-{self._tx_counter}"

    async def publish_zonefile(self, zonefile: str) -> None:
        if zonefile in self.failing_zonefiles:
            raise ChainError(code="publish_failed", message="peer refused zone file")
        self.published.append(zonefile)

    async def resolve_profile(self, zonefile: str, owner: str) -> dict:
        if self.profile is None:
            raise ChainError(code="no_profile", message="no profile")
        return self.profile

    async def validate_proofs(self, profile: dict, owner: str) -> list[dict]:
        return list(self.proofs)

    async def close(self) -> None:
        self.closed = True
