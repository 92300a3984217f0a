"""
Subdomain operation validation.

Checks the syntax of requested subdomain names and owner addresses and
normalizes the registrar's parent domain to its canonical form.
"""

import re
from dataclasses import dataclass
from typing import Optional

import idna

from .enums import InvalidOperationReason
from .exceptions import ValidationError
from .models import SubdomainOperation


SUBDOMAIN_NAME_PATTERN = re.compile(r"^[a-z0-9\-_+]{1,37}$")

# c32check alphabet (no I, L, O, U); version chars P/M mainnet, T/N testnet
STACKS_ADDRESS_PATTERN = re.compile(r"^S[PMTN][0-9A-HJKMNP-TV-Z]{38,39}$")

# Legacy base58check addresses
BASE58_ADDRESS_PATTERN = re.compile(r"^[13mn2][1-9A-HJ-NP-Za-km-z]{25,34}$")


@dataclass
class SubdomainValidationResult:
    """Result of validating a subdomain operation."""

    valid: bool
    reason: Optional[InvalidOperationReason] = None
    message: Optional[str] = None


def is_valid_address(address: str) -> bool:
    """Check that an owner address has the chain's address format."""
    if not address:
        return False
    return bool(
        STACKS_ADDRESS_PATTERN.match(address)
        or BASE58_ADDRESS_PATTERN.match(address)
    )


def normalize_domain(domain: str) -> str:
    """
    Convert a domain to canonical form (lowercase, IDNA-encoded).

    Raises:
        ValidationError: If the domain is empty or IDNA encoding fails
    """
    if not domain or not domain.strip():
        raise ValidationError(
            code="empty_input",
            message="Domain name is empty",
            details={"domain": domain},
        )

    domain_lower = domain.strip().lower()
    if all(ord(c) < 128 for c in domain_lower):
        return domain_lower

    try:
        return idna.encode(domain_lower, uts46=True).decode("ascii")
    except idna.IDNAError as e:
        raise ValidationError(
            code="idna_error",
            message=f"IDNA encoding failed: {e}",
            details={"domain": domain, "idna_error": str(e)},
        )


def fully_qualified(subdomain_name: str, domain_name: str) -> str:
    return f"{subdomain_name}.{domain_name}"


class SubdomainValidator:
    """
    Validates the syntax of subdomain operations.

    Only new registrations (sequence number 0) are accepted. Chain-state
    checks are layered on top by the admission controller.
    """

    def __init__(self, name_min_length: int = 0) -> None:
        """
        Args:
            name_min_length: Minimum subdomain name length; 0 disables the check
        """
        self._name_min_length = name_min_length

    def validate(self, operation: SubdomainOperation) -> SubdomainValidationResult:
        if operation.sequence_number != 0:
            return SubdomainValidationResult(
                valid=False,
                reason=InvalidOperationReason.SEQUENCE,
                message=f"seqn: {operation.sequence_number} failed validation",
            )

        if not is_valid_address(operation.owner):
            return SubdomainValidationResult(
                valid=False,
                reason=InvalidOperationReason.OWNER,
                message=f"owner: {operation.owner} failed validation",
            )

        name = operation.subdomain_name
        if not isinstance(name, str) or not SUBDOMAIN_NAME_PATTERN.match(name):
            return SubdomainValidationResult(
                valid=False,
                reason=InvalidOperationReason.NAME,
                message=f"subdomainName: {name} failed validation",
            )

        if self._name_min_length and len(name) < self._name_min_length:
            return SubdomainValidationResult(
                valid=False,
                reason=InvalidOperationReason.NAME_LENGTH,
                message=f"subdomainName: {name} is shorter than {self._name_min_length}",
            )

        return SubdomainValidationResult(valid=True)

    def is_valid_name(self, name: str) -> bool:
        """Name syntax and length only."""
        if not SUBDOMAIN_NAME_PATTERN.match(name):
            return False
        return not (self._name_min_length and len(name) < self._name_min_length)

    @property
    def name_min_length(self) -> int:
        return self._name_min_length
