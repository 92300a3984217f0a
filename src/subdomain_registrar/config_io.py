"""
Loading and saving the registrar configuration as JSON.

Registrar keys may be left out of the file and supplied through the
environment instead (``SUBDOMAIN_REGISTRAR_OWNER_KEY`` and
``SUBDOMAIN_REGISTRAR_PAYMENT_KEY``); the CLI loads a ``.env`` file first.
"""

import json
import os
import sys
from pathlib import Path
from typing import Mapping, Optional

from .config import (
    BatchConfig,
    ChainConfig,
    LockConfig,
    LoggingConfig,
    PersistenceConfig,
    RegistrarConfig,
    RetryConfig,
    SpamConfig,
    SystemConfig,
)
from .models import UriEntry


CONFIG_ENV_VAR = "SUBDOMAIN_REGISTRAR_CONFIG"
OWNER_KEY_ENV_VAR = "SUBDOMAIN_REGISTRAR_OWNER_KEY"
PAYMENT_KEY_ENV_VAR = "SUBDOMAIN_REGISTRAR_PAYMENT_KEY"

DEFAULT_CONFIG_PATH = Path.home() / ".subdomain_registrar" / "config.json"


def default_config_path(environ: Optional[Mapping[str, str]] = None) -> Path:
    environ = os.environ if environ is None else environ
    configured = environ.get(CONFIG_ENV_VAR)
    return Path(configured) if configured else DEFAULT_CONFIG_PATH


def create_default_config(
    domain_name: str = "example.id",
    simulation_mode: bool = False,
    db_path: Optional[Path] = None,
) -> SystemConfig:
    """
    Create a default system configuration.

    Args:
        domain_name: Parent domain the registrar hands out names under
        simulation_mode: Never broadcast transactions or zone files
        db_path: Queue database location

    Returns:
        SystemConfig with default settings and empty keys
    """
    if db_path is None:
        db_path = Path.home() / ".subdomain_registrar" / "queue.db"

    return SystemConfig(
        registrar=RegistrarConfig(
            domain_name=domain_name,
            owner_key="",
            payment_key="",
        ),
        chain=ChainConfig(simulation_mode=simulation_mode),
        persistence=PersistenceConfig(db_path=db_path),
    )


def apply_env_overrides(
    config: SystemConfig,
    environ: Optional[Mapping[str, str]] = None,
) -> SystemConfig:
    """Fill registrar keys from the environment when present."""
    environ = os.environ if environ is None else environ
    if environ.get(OWNER_KEY_ENV_VAR):
        config.registrar.owner_key = environ[OWNER_KEY_ENV_VAR]
    if environ.get(PAYMENT_KEY_ENV_VAR):
        config.registrar.payment_key = environ[PAYMENT_KEY_ENV_VAR]
    return config


def load_config_from_file(config_path: Path) -> Optional[SystemConfig]:
    """
    Load configuration from a JSON file.

    Args:
        config_path: Path to the configuration file

    Returns:
        SystemConfig if successful, None otherwise
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        registrar_data = data["registrar"]
        registrar = RegistrarConfig(
            domain_name=registrar_data["domain_name"],
            owner_key=registrar_data.get("owner_key", ""),
            payment_key=registrar_data.get("payment_key", ""),
            domain_uri=registrar_data.get("domain_uri"),
            uri_entries=[
                UriEntry(
                    name=entry["name"],
                    target=entry["target"],
                    priority=entry.get("priority", 10),
                    weight=entry.get("weight", 1),
                )
                for entry in registrar_data.get("uri_entries", [])
            ],
            zonefile_size=registrar_data.get("zonefile_size", RegistrarConfig.zonefile_size),
        )

        spam_data = data.get("spam", {})
        spam = SpamConfig(
            ip_limit=spam_data.get("ip_limit", 0),
            ip_whitelist=spam_data.get("ip_whitelist", []),
            api_keys=spam_data.get("api_keys", []),
            proofs_required=spam_data.get("proofs_required", 0),
            disable_registrations_without_key=spam_data.get(
                "disable_registrations_without_key", False
            ),
            name_min_length=spam_data.get("name_min_length", 0),
        )

        batch_data = data.get("batch", {})
        batch = BatchConfig(
            min_batch_size=batch_data.get("min_batch_size", 1),
            check_core_on_admission=batch_data.get("check_core_on_admission", True),
            check_core_on_batching=batch_data.get("check_core_on_batching", True),
            batch_delay_minutes=batch_data.get("batch_delay_minutes", 15.0),
            check_transaction_period_minutes=batch_data.get(
                "check_transaction_period_minutes", 5.0
            ),
            publish_twice=batch_data.get("publish_twice", True),
        )

        chain_data = data.get("chain", {})
        chain = ChainConfig(
            api_url=chain_data.get("api_url", ChainConfig.api_url),
            timeout_seconds=chain_data.get("timeout_seconds", 10.0),
            max_indexer_lag=chain_data.get("max_indexer_lag", 10),
            simulation_mode=chain_data.get("simulation_mode", False),
            transaction_builder=chain_data.get("transaction_builder"),
        )

        persistence_data = data.get("persistence", {})
        db_path = persistence_data.get("db_path")
        persistence = PersistenceConfig(
            db_path=Path(db_path) if db_path else PersistenceConfig().db_path,
        )

        lock = LockConfig(timeout_seconds=data.get("lock", {}).get("timeout_seconds", 30.0))

        retry_data = data.get("retry", {})
        retry = RetryConfig(
            max_retries=retry_data.get("max_retries", 2),
            base_delay_seconds=retry_data.get("base_delay_seconds", 0.5),
            max_delay_seconds=retry_data.get("max_delay_seconds", 5.0),
        )
        if "retryable_errors" in retry_data:
            retry.retryable_errors = list(retry_data["retryable_errors"])

        logging_data = data.get("logging", {})
        logging_config = LoggingConfig(
            level=logging_data.get("level", "info"),
            audit_mode=logging_data.get("audit_mode", False),
            audit_signing_key=logging_data.get("audit_signing_key"),
            output_format=logging_data.get("output_format", "text"),
        )

        return SystemConfig(
            registrar=registrar,
            spam=spam,
            batch=batch,
            chain=chain,
            persistence=persistence,
            lock=lock,
            retry=retry,
            logging=logging_config,
        )

    except (json.JSONDecodeError, KeyError, TypeError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return None
    except FileNotFoundError:
        return None


def save_config_to_file(config: SystemConfig, config_path: Path) -> bool:
    """
    Save configuration to a JSON file.

    Args:
        config: SystemConfig to save
        config_path: Path to save the configuration

    Returns:
        True if successful, False otherwise
    """
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)

        registrar = config.registrar
        data = {
            "registrar": {
                "domain_name": registrar.domain_name,
                "owner_key": registrar.owner_key,
                "payment_key": registrar.payment_key,
                "domain_uri": registrar.domain_uri,
                "uri_entries": [
                    {
                        "name": entry.name,
                        "target": entry.target,
                        "priority": entry.priority,
                        "weight": entry.weight,
                    }
                    for entry in registrar.uri_entries
                ],
                "zonefile_size": registrar.zonefile_size,
            },
            "spam": {
                "ip_limit": config.spam.ip_limit,
                "ip_whitelist": config.spam.ip_whitelist,
                "api_keys": config.spam.api_keys,
                "proofs_required": config.spam.proofs_required,
                "disable_registrations_without_key": config.spam.disable_registrations_without_key,
                "name_min_length": config.spam.name_min_length,
            },
            "batch": {
                "min_batch_size": config.batch.min_batch_size,
                "check_core_on_admission": config.batch.check_core_on_admission,
                "check_core_on_batching": config.batch.check_core_on_batching,
                "batch_delay_minutes": config.batch.batch_delay_minutes,
                "check_transaction_period_minutes": config.batch.check_transaction_period_minutes,
                "publish_twice": config.batch.publish_twice,
            },
            "chain": {
                "api_url": config.chain.api_url,
                "timeout_seconds": config.chain.timeout_seconds,
                "max_indexer_lag": config.chain.max_indexer_lag,
                "simulation_mode": config.chain.simulation_mode,
                "transaction_builder": config.chain.transaction_builder,
            },
            "persistence": {
                "db_path": str(config.persistence.db_path),
            },
            "lock": {
                "timeout_seconds": config.lock.timeout_seconds,
            },
            "retry": {
                "max_retries": config.retry.max_retries,
                "base_delay_seconds": config.retry.base_delay_seconds,
                "max_delay_seconds": config.retry.max_delay_seconds,
                "retryable_errors": config.retry.retryable_errors,
            },
            "logging": {
                "level": config.logging.level,
                "audit_mode": config.logging.audit_mode,
                "audit_signing_key": config.logging.audit_signing_key,
                "output_format": config.logging.output_format,
            },
        }

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        return True

    except (OSError, TypeError) as e:
        print(f"Error saving config: {e}", file=sys.stderr)
        return False
