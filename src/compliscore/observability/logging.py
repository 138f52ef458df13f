"""
Logging setup for compliscore.

Modules log through `logging.getLogger(__name__)`, so every record ends
up on the `compliscore` logger configured here. Two output styles are
supported: a terminal-friendly line format and JSON lines for log
shipping. Compliance events (assessments, rule evaluations, trend
snapshots) go through `ComplianceLogger`, which stamps each record with
an `event_type` and the identifiers involved.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

ROOT_LOGGER = "compliscore"

# Attributes set by LogRecord itself; everything else arrived through `extra`
_BUILTIN_FIELDS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime"}

# ANSI SGR codes per level
_LEVEL_COLORS = {
    logging.DEBUG: 36,
    logging.INFO: 32,
    logging.WARNING: 33,
    logging.ERROR: 31,
    logging.CRITICAL: 35,
}


def _created_at(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _BUILTIN_FIELDS
    }


class StructuredFormatter(logging.Formatter):
    """
    Render each record as one JSON object.

    Attributes passed through `extra` (event_type, framework_id, score,
    ...) become top-level keys, followed by any constant `extra_fields`.
    """

    def __init__(
        self,
        include_timestamp: bool = True,
        include_level: bool = True,
        include_logger: bool = True,
        include_location: bool = False,
        extra_fields: dict[str, Any] | None = None,
    ):
        """
        Args:
            include_timestamp: Emit an ISO-8601 UTC `timestamp`
            include_level: Emit the lower-cased `level`
            include_logger: Emit the `logger` name
            include_location: Emit a `location` object (file, line, function)
            extra_fields: Constant fields added to every line
        """
        super().__init__()
        self.include_timestamp = include_timestamp
        self.include_level = include_level
        self.include_logger = include_logger
        self.include_location = include_location
        self.extra_fields = dict(extra_fields or {})

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {}
        if self.include_timestamp:
            payload["timestamp"] = _created_at(record).isoformat().replace("+00:00", "Z")
        if self.include_level:
            payload["level"] = record.levelname.lower()
        if self.include_logger:
            payload["logger"] = record.name
        payload["message"] = record.getMessage()

        if self.include_location:
            payload["location"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        payload.update(_extra_fields(record))
        payload.update(self.extra_fields)
        return json.dumps(payload, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Render records as `[time] LEVEL logger: message` lines."""

    def __init__(
        self,
        use_colors: bool = True,
        include_timestamp: bool = True,
        include_level: bool = True,
    ):
        """
        Args:
            use_colors: Colorize the level name; ignored unless stderr is a TTY
            include_timestamp: Prefix lines with the UTC time
            include_level: Include the right-aligned level name
        """
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty()
        self.include_timestamp = include_timestamp
        self.include_level = include_level

    def _level(self, record: logging.LogRecord) -> str:
        label = f"{record.levelname:>8}"
        code = _LEVEL_COLORS.get(record.levelno)
        if self.use_colors and code is not None:
            return f"\033[{code}m{label}\033[0m"
        return label

    def format(self, record: logging.LogRecord) -> str:
        prefix = []
        if self.include_timestamp:
            prefix.append(f"[{_created_at(record):%Y-%m-%d %H:%M:%S}]")
        if self.include_level:
            prefix.append(self._level(record))

        line = " ".join([*prefix, f"{record.name}:", record.getMessage()])
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class ComplianceLogger:
    """
    Logger facade that attaches context fields and emits typed
    compliance events.

    Context set with `set_context` is merged into the `extra` of every
    subsequent record until `clear_context` is called.
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
        self._context: dict[str, Any] = {}

    def set_context(self, **fields: Any) -> None:
        self._context.update(fields)

    def clear_context(self) -> None:
        self._context.clear()

    def log(self, level: int, message: str, exc_info: bool = False, **fields: Any) -> None:
        """Log `message` with the current context plus `fields` as extras."""
        self.logger.log(level, message, exc_info=exc_info, extra={**self._context, **fields})

    def debug(self, message: str, **fields: Any) -> None:
        self.log(logging.DEBUG, message, **fields)

    def info(self, message: str, **fields: Any) -> None:
        self.log(logging.INFO, message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        self.log(logging.WARNING, message, **fields)

    def error(self, message: str, exc_info: bool = False, **fields: Any) -> None:
        self.log(logging.ERROR, message, exc_info=exc_info, **fields)

    # Compliance events

    def assessment_completed(
        self,
        framework_id: str,
        account_id: str,
        scan_id: str | None,
        score: float,
        zero_basis: bool,
    ) -> None:
        self.info(
            f"Assessment completed for {framework_id} / {account_id}: {score:.1f}",
            event_type="assessment.completed",
            framework_id=framework_id,
            account_id=account_id,
            scan_id=scan_id,
            score=score,
            zero_basis=zero_basis,
        )

    def assessment_failed(self, framework_id: str, account_id: str, error: str) -> None:
        """One framework of a batch operation could not be assessed."""
        self.warning(
            f"Assessment failed for {framework_id} / {account_id}: {error}",
            event_type="assessment.failed",
            framework_id=framework_id,
            account_id=account_id,
            error=error,
        )

    def evaluation_failed(self, rule_id: str, asset_id: str, error: str) -> None:
        """A rule failed closed against an asset."""
        self.warning(
            f"Rule {rule_id} failed closed against asset {asset_id}: {error}",
            event_type="evaluation.failed",
            rule_id=rule_id,
            asset_id=asset_id,
            error=error,
        )

    def snapshot_recorded(self, framework_id: str, account_id: str, score: float) -> None:
        self.debug(
            f"Snapshot recorded for {framework_id} / {account_id}",
            event_type="snapshot.recorded",
            framework_id=framework_id,
            account_id=account_id,
            score=score,
        )


def configure_logging(
    level: str = "INFO",
    format: str = "human",
    output: str = "stderr",
    extra_fields: dict[str, Any] | None = None,
) -> None:
    """
    Install a single handler on the `compliscore` logger.

    Calling this again replaces the previous handler. Unknown level
    names fall back to INFO.

    Args:
        level: Level name such as DEBUG or WARNING
        format: "human" or "json"
        output: "stderr" or "stdout"
        extra_fields: Constant fields for JSON output
    """
    package_logger = logging.getLogger(ROOT_LOGGER)
    package_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    package_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout if output == "stdout" else sys.stderr)
    if format == "json":
        handler.setFormatter(StructuredFormatter(extra_fields=extra_fields))
    else:
        handler.setFormatter(HumanReadableFormatter())
    package_logger.addHandler(handler)


def get_logger(name: str) -> ComplianceLogger:
    """Return a ComplianceLogger for `name`, nested under the package logger."""
    if name != ROOT_LOGGER and not name.startswith(f"{ROOT_LOGGER}."):
        name = f"{ROOT_LOGGER}.{name}"
    return ComplianceLogger(name)


configure_logging(
    level=os.getenv("COMPLISCORE_LOG_LEVEL", "INFO"),
    format=os.getenv("COMPLISCORE_LOG_FORMAT", "human"),
)
