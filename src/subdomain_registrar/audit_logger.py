"""
Audit Logger module for the subdomain registrar.

Every entry names the component that emitted it and the kind of event
(``msg_type``: ``queued_update``, ``spam_fail``, ``batch_submitted``...), so
log consumers can follow a registration from admission to announcement.

Output is JSON lines, ``key=value`` text, or both. The registrar's keys and
API tokens never reach the output: fields with sensitive names are masked,
and the configured secret values are scrubbed from every string, including
exception messages. Audit mode signs each entry with HMAC-SHA256.
"""

import hmac
import hashlib
import json
import re
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional, TextIO

from .enums import LogLevel


LEVELS = list(LogLevel)

BEARER_PATTERN = re.compile(r"(?i)\bbearer\s+\S+")


@dataclass
class LogEntry:
    """A single log event."""

    timestamp: str
    level: LogLevel
    component: str
    msg_type: Optional[str]
    message: str
    data: dict = field(default_factory=dict)
    signature: Optional[str] = None

    def signable(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "level": self.level.value,
            "component": self.component,
            "msg_type": self.msg_type,
            "message": self.message,
            "data": self.data,
        }


class AuditLogger:
    """
    Structured logger for registrar events.

    ``data`` may carry a ``msg_type`` key; it is lifted onto the entry itself
    and the rest of the dict is kept as event details.
    """

    SENSITIVE_KEYS = frozenset({
        'owner_key', 'payment_key', 'private_key', 'api_key', 'secret',
        'password', 'auth', 'token', 'signing_key', 'credential',
    })

    MASK_VALUE = "***MASKED***"

    def __init__(
        self,
        output_format: str = "text",
        output_stream: Optional[TextIO] = None,
        min_level: LogLevel = LogLevel.DEBUG,
        secrets: Iterable[str] = (),
        keep_entries: bool = False,
    ):
        """
        Args:
            output_format: 'json', 'text', or 'both'
            output_stream: Where entries are written (defaults to sys.stderr)
            min_level: Entries below this level are dropped
            secrets: Values scrubbed from every logged string
            keep_entries: Also retain written entries in memory (see ``entries``)
        """
        if output_format not in ("json", "text", "both"):
            raise ValueError(f"Invalid output_format: {output_format}")

        self._output_format = output_format
        self._output_stream = output_stream or sys.stderr
        self._min_level = min_level
        self._signing_key: Optional[bytes] = None
        self._secrets: set[str] = set()
        self._keep_entries = keep_entries
        self._entries: list[LogEntry] = []
        for secret in secrets:
            self.add_secret(secret)

    @property
    def audit_mode(self) -> bool:
        return self._signing_key is not None

    @property
    def entries(self) -> list[LogEntry]:
        """Entries logged so far; always empty unless built with ``keep_entries``."""
        return self._entries.copy()

    def enable_audit_mode(self, signing_key: str) -> None:
        """Sign every following entry with HMAC-SHA256 under ``signing_key``."""
        if not signing_key:
            raise ValueError("Signing key cannot be empty")
        self._signing_key = signing_key.encode('utf-8')
        self.add_secret(signing_key)

    def add_secret(self, value: Optional[str]) -> None:
        # very short values would scrub ordinary text
        if value and len(value) >= 4:
            self._secrets.add(value)

    def log(
        self,
        level: LogLevel,
        component: str,
        message: str,
        data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Record an event.

        Returns:
            The entry, or None if it is below the minimum level
        """
        if LEVELS.index(level) < LEVELS.index(self._min_level):
            return None

        details = dict(data or {})
        msg_type = details.pop("msg_type", None)

        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=level,
            component=component,
            msg_type=msg_type,
            message=self._scrub(message),
            data=self.mask_sensitive_data(details),
        )
        if self._signing_key:
            entry.signature = self._sign_entry(entry)

        if self._keep_entries:
            self._entries.append(entry)
        self._write(entry)
        return entry

    def debug(self, component: str, message: str, data: Optional[dict] = None) -> None:
        self.log(LogLevel.DEBUG, component, message, data)

    def info(self, component: str, message: str, data: Optional[dict] = None) -> None:
        self.log(LogLevel.INFO, component, message, data)

    def warn(self, component: str, message: str, data: Optional[dict] = None) -> None:
        self.log(LogLevel.WARN, component, message, data)

    def log_error(
        self,
        component: str,
        message: str,
        error: Optional[Exception] = None,
        additional_data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """Log an error, adding the exception's type, message and registrar error code."""
        data = dict(additional_data or {})
        if error is not None:
            data["error_type"] = type(error).__name__
            data["error_message"] = str(error)
            code = getattr(error, "code", None)
            if code is not None:
                data["error_code"] = code
        return self.log(LogLevel.ERROR, component, message, data)

    def mask_sensitive_data(self, data: dict) -> dict:
        """Mask sensitive fields and scrub secret values, at any depth."""
        return {key: self._mask(key, value) for key, value in data.items()}

    def _mask(self, key: str, value):
        key_lower = key.lower()
        if any(sensitive in key_lower for sensitive in self.SENSITIVE_KEYS):
            return self.MASK_VALUE
        return self._mask_value(value)

    def _mask_value(self, value):
        if isinstance(value, dict):
            return self.mask_sensitive_data(value)
        if isinstance(value, (list, tuple)):
            return [self._mask_value(item) for item in value]
        if isinstance(value, str):
            return self._scrub(value)
        return value

    def _scrub(self, text: str) -> str:
        text = BEARER_PATTERN.sub(f"bearer {self.MASK_VALUE}", text)
        for secret in self._secrets:
            if secret in text:
                text = text.replace(secret, self.MASK_VALUE)
        return text

    def _sign_entry(self, entry: LogEntry) -> str:
        content = json.dumps(entry.signable(), sort_keys=True, ensure_ascii=False, default=str)
        return hmac.new(self._signing_key, content.encode('utf-8'), hashlib.sha256).hexdigest()

    def verify_signature(self, entry: LogEntry) -> bool:
        if not entry.signature or not self._signing_key:
            return False
        return hmac.compare_digest(entry.signature, self._sign_entry(entry))

    def _write(self, entry: LogEntry) -> None:
        if self._output_format in ("json", "both"):
            self._output_stream.write(self._format_json(entry) + "\n")
        if self._output_format in ("text", "both"):
            self._output_stream.write(self._format_text(entry) + "\n")
        self._output_stream.flush()

    def _format_json(self, entry: LogEntry) -> str:
        obj = entry.signable()
        if obj["msg_type"] is None:
            del obj["msg_type"]
        if entry.signature:
            obj["signature"] = entry.signature
        return json.dumps(obj, ensure_ascii=False, default=str)

    def _format_text(self, entry: LogEntry) -> str:
        # 2024-05-01T12:00:00+00:00 INFO BatchEngine batch_submitted: Batch submitted tx_hash=0xabc
        head = f"{entry.timestamp} {entry.level.value.upper()} {entry.component}"
        if entry.msg_type:
            head += f" {entry.msg_type}"
        parts = [f"{head}: {entry.message}"]
        for key, value in entry.data.items():
            rendered = value if isinstance(value, (str, int, float, bool)) else json.dumps(
                value, ensure_ascii=False, default=str
            )
            parts.append(f"{key}={rendered}")
        if entry.signature:
            parts.append(f"sig={entry.signature[:16]}")
        return " ".join(str(part) for part in parts)


def create_logger(
    level: str = "info",
    output_format: str = "text",
    audit_signing_key: Optional[str] = None,
    output_stream: Optional[TextIO] = None,
    secrets: Iterable[str] = (),
    keep_entries: bool = False,
) -> AuditLogger:
    """Build an AuditLogger from logging configuration values."""
    logger = AuditLogger(
        output_format=output_format,
        output_stream=output_stream,
        min_level=LogLevel(level),
        secrets=secrets,
        keep_entries=keep_entries,
    )
    if audit_signing_key:
        logger.enable_audit_mode(audit_signing_key)
    return logger
