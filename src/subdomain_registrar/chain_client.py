"""
Chain client for the naming blockchain.

This module defines the narrow interface the registrar core uses to talk to
the chain (name lookups, heights, update submission, zone file announcement
and profile proofs), and an async HTTP implementation of it backed by a
Stacks node / API server.

Transaction construction and signing stay outside this package: the HTTP
client is handed a TransactionBuilder that turns an update into raw
transaction bytes, and only broadcasts the result.
"""

import hashlib
import importlib
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from .audit_logger import AuditLogger
from .config import ChainConfig, RetryConfig
from .exceptions import ChainError, ChainRejectedError, NetworkError
from .models import NameInfo
from .retry_manager import RetryManager
from .zonefile import parse_uri_records


REGISTERED_SUBDOMAIN = "registered_subdomain"


class ChainClient(ABC):
    """Everything the registrar core needs from the blockchain."""

    @abstractmethod
    async def get_name_info(self, fq_name: str) -> NameInfo:
        """Look up a name; an unknown name is ``exists=False``, not an error."""

    @abstractmethod
    async def get_chain_tip(self) -> int:
        """Current height of the underlying chain."""

    @abstractmethod
    async def get_indexer_height(self) -> int:
        """Height the API's own index has processed up to."""

    @abstractmethod
    async def get_tx_inclusion_height(self, tx_hash: str) -> Optional[int]:
        """Block height a transaction was mined in, or None if unconfirmed."""

    @abstractmethod
    async def submit_update_transaction(
        self,
        domain_name: str,
        zonefile: str,
        owner_key: str,
        payment_key: str,
    ) -> str:
        """Submit a name update carrying ``zonefile`` and return the tx hash."""

    @abstractmethod
    async def publish_zonefile(self, zonefile: str) -> None:
        """Announce a zone file to the naming network."""

    @abstractmethod
    async def resolve_profile(self, zonefile: str, owner: str) -> dict:
        """Resolve the profile a registrant's zone file points to."""

    @abstractmethod
    async def validate_proofs(self, profile: dict, owner: str) -> list[dict]:
        """Check the social proofs of a profile; each result has a ``valid`` key."""

    async def is_subdomain_registered(self, fq_name: str) -> bool:
        info = await self.get_name_info(fq_name)
        return info.exists and info.status == REGISTERED_SUBDOMAIN

    async def close(self) -> None:
        pass


class TransactionBuilder(ABC):
    """Builds and signs name update transactions."""

    @abstractmethod
    def owner_address(self, owner_key: str) -> str:
        """Address controlled by ``owner_key``."""

    @abstractmethod
    async def make_update(
        self,
        domain_name: str,
        owner_key: str,
        payment_key: str,
        zonefile: str,
    ) -> str:
        """Return the signed update transaction, hex encoded."""


class SimulatedTransactionBuilder(TransactionBuilder):
    """Builder for dry runs: produces a deterministic, unsigned payload."""

    def owner_address(self, owner_key: str) -> str:
        return ""

    async def make_update(
        self,
        domain_name: str,
        owner_key: str,
        payment_key: str,
        zonefile: str,
    ) -> str:
        payload = f"{domain_name}\n{zonefile}".encode("utf-8")
        return hashlib.sha256(payload).hexdigest()


def load_transaction_builder(spec: str) -> TransactionBuilder:
    """
    Instantiate a builder from a ``package.module:ClassName`` string.

    Raises:
        ChainError: If the target cannot be imported or is not a builder
    """
    module_name, _, attr = spec.partition(":")
    try:
        target = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError, ValueError) as e:
        raise ChainError(
            code="builder_not_found",
            message=f"Cannot load transaction builder {spec!r}: {e}",
            details={"builder": spec},
        )
    builder = target()
    if not isinstance(builder, TransactionBuilder):
        raise ChainError(
            code="builder_not_found",
            message=f"{spec!r} is not a TransactionBuilder",
            details={"builder": spec},
        )
    return builder


class HTTPChainClient(ChainClient):
    """
    Async chain client speaking to a Stacks node and API server.

    Read queries are retried on transient failures; every request is bounded
    by the configured timeout. In simulation mode nothing is broadcast:
    submissions return a deterministic fake tx hash and zone file
    announcements are skipped.
    """

    def __init__(
        self,
        config: ChainConfig,
        transaction_builder: Optional[TransactionBuilder] = None,
        retry_config: Optional[RetryConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Args:
            config: API location, timeout and simulation flag
            transaction_builder: Signs update transactions; defaults to the
                simulated builder in simulation mode
            retry_config: Retry policy for read queries
            transport: Optional httpx transport (used by tests)
            logger: Receives a ``chain_retry`` entry for every retried query
        """
        self._api_url = config.api_url.rstrip("/")
        self._timeout = config.timeout_seconds
        self._simulation_mode = config.simulation_mode
        if transaction_builder is None and config.simulation_mode:
            transaction_builder = SimulatedTransactionBuilder()
        self._builder = transaction_builder
        self._retry = RetryManager(retry_config or RetryConfig(), logger)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "HTTPChainClient":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        client = self._ensure_client()
        try:
            return await client.request(method, url, **kwargs)
        except httpx.TimeoutException:
            raise NetworkError(
                code="timeout",
                message=f"Chain API request timed out after {self._timeout}s",
                details={"url": url},
            )
        except httpx.HTTPError as e:
            raise NetworkError(
                code="network_error",
                message=f"Connection error: {e}",
                details={"url": url},
            )

    async def _get_json(self, path: str) -> tuple[int, Any]:
        """GET with retries; 5xx responses count as transient."""
        url = f"{self._api_url}{path}"

        async def attempt() -> tuple[int, Any]:
            response = await self._request("GET", url)
            if response.status_code >= 500:
                raise ChainError(
                    code="server_error",
                    message=f"Chain API server error: {response.status_code}",
                    details={"url": url, "http_status_code": response.status_code},
                )
            try:
                body = response.json()
            except ValueError:
                body = None
            return response.status_code, body

        return await self._retry.call(attempt, f"GET {path}")

    async def get_name_info(self, fq_name: str) -> NameInfo:
        url = f"{self._api_url}/v1/names/{fq_name}"
        response = await self._request("GET", url)

        # the API answers 500 for some unknown subdomains
        if response.status_code in (404, 500):
            return NameInfo(exists=False)

        if response.status_code != 200:
            raise ChainError(
                code="server_error",
                message=f"Bad response status: {response.status_code}",
                details={"url": url, "http_status_code": response.status_code},
            )

        try:
            body = response.json()
        except ValueError:
            raise ChainError(
                code="parse_error",
                message="Name lookup returned invalid JSON",
                details={"url": url},
            )

        return NameInfo(
            exists=True,
            owner=body.get("address"),
            status=body.get("status"),
            last_txid=body.get("last_txid"),
        )

    async def get_chain_tip(self) -> int:
        _, body = await self._get_json("/v2/info")
        return self._read_height(body, ("burn_block_height",), "/v2/info")

    async def get_indexer_height(self) -> int:
        _, body = await self._get_json("/extended/v1/status")
        chain_tip = body.get("chain_tip") if isinstance(body, dict) else None
        return self._read_height(chain_tip, ("burn_block_height",), "/extended/v1/status")

    @staticmethod
    def _read_height(body: Any, keys: tuple[str, ...], source: str) -> int:
        for key in keys:
            if isinstance(body, dict) and isinstance(body.get(key), int):
                return body[key]
        raise ChainError(
            code="parse_error",
            message=f"No block height in response from {source}",
            details={"source": source},
        )

    async def get_tx_inclusion_height(self, tx_hash: str) -> Optional[int]:
        status_code, body = await self._get_json(f"/extended/v1/tx/{tx_hash}")
        if status_code == 404 or not isinstance(body, dict):
            return None
        height = body.get("block_height")
        if not height or height <= 0:
            return None
        return int(height)

    async def submit_update_transaction(
        self,
        domain_name: str,
        zonefile: str,
        owner_key: str,
        payment_key: str,
    ) -> str:
        if self._builder is None:
            raise ChainError(
                code="no_builder",
                message="No transaction builder configured",
                details={"domain_name": domain_name},
            )

        if not self._simulation_mode:
            owner_address = self._builder.owner_address(owner_key)
            info = await self.get_name_info(domain_name)
            if not info.exists or info.owner != owner_address:
                raise ChainError(
                    code="not_owner",
                    message=f"Domain name {domain_name} not owned by address {owner_address}",
                    details={"domain_name": domain_name, "owner": info.owner},
                )

        tx_hex = await self._builder.make_update(domain_name, owner_key, payment_key, zonefile)

        if self._simulation_mode:
            return hashlib.sha256(bytes.fromhex(tx_hex)).hexdigest()

        url = f"{self._api_url}/v2/transactions"
        response = await self._request(
            "POST",
            url,
            content=bytes.fromhex(tx_hex),
            headers={"Content-Type": "application/octet-stream"},
        )

        if not 200 <= response.status_code <= 299:
            raise ChainRejectedError(
                reason=self._rejection_reason(response),
                details={"http_status_code": response.status_code, "body": response.text},
            )

        return response.text.strip().strip('"')

    @staticmethod
    def _rejection_reason(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text
        if isinstance(body, dict):
            reason = body.get("reason") or body.get("error")
            if reason:
                return str(reason)
        return response.text

    async def publish_zonefile(self, zonefile: str) -> None:
        if self._simulation_mode:
            return

        url = f"{self._api_url}/v1/zonefile"
        response = await self._request("POST", url, json={"zonefile": zonefile})
        if not 200 <= response.status_code <= 299:
            raise ChainError(
                code="publish_failed",
                message=f"Failed to publish zonefile: HTTP {response.status_code}",
                details={"http_status_code": response.status_code, "body": response.text},
            )

        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and "error" in body:
            raise ChainError(
                code="publish_failed",
                message=str(body["error"]),
                details={"body": body},
            )

    async def resolve_profile(self, zonefile: str, owner: str) -> dict:
        entries = sorted(parse_uri_records(zonefile), key=lambda e: (e.priority, -e.weight))
        if not entries:
            raise ChainError(
                code="no_profile",
                message="Zone file does not point to a profile",
                details={"owner": owner},
            )

        last_error: Optional[Exception] = None
        for entry in entries:
            try:
                response = await self._request("GET", entry.target)
                if response.status_code != 200:
                    raise ChainError(
                        code="no_profile",
                        message=f"Profile fetch returned {response.status_code}",
                        details={"url": entry.target},
                    )
                return self._extract_profile(response.json())
            except (ChainError, ValueError) as e:
                last_error = e

        raise ChainError(
            code="no_profile",
            message=f"Could not resolve profile: {last_error}",
            details={"owner": owner},
        )

    @staticmethod
    def _extract_profile(document: Any) -> dict:
        # profile files are a list of token records, or a bare profile
        if isinstance(document, dict):
            return document
        if not isinstance(document, list) or not document:
            raise ValueError("Unrecognised profile document")

        claim: Any = document[0]
        for key in ("decodedToken", "payload", "claim"):
            if not isinstance(claim, dict):
                raise ValueError(f"Profile token has no {key}")
            claim = claim.get(key)
        if not isinstance(claim, dict):
            raise ValueError("Profile claim is not an object")
        return claim

    async def validate_proofs(self, profile: dict, owner: str) -> list[dict]:
        accounts = profile.get("account", []) if isinstance(profile, dict) else None
        if not isinstance(accounts, list):
            raise ChainError(
                code="no_profile",
                message="Profile has no account list",
                details={"owner": owner},
            )

        results = []
        for account in accounts:
            if not isinstance(account, dict):
                continue
            proof_url = account.get("proofUrl")
            result = {
                "service": account.get("service"),
                "identifier": account.get("identifier"),
                "proof_url": proof_url,
                "valid": False,
            }
            if proof_url:
                try:
                    response = await self._request("GET", proof_url)
                    result["valid"] = response.status_code == 200 and owner in response.text
                except NetworkError:
                    result["valid"] = False
            results.append(result)
        return results

