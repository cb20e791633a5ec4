"""
Centralized logging for Stratum.

Provides:
- File logging with rotation, retention and compression
- Optional JSON lines output
- Console logging in verbose mode
- Redaction of secrets and credential-like values in every record
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger

from stratum.utils.security import redact_sensitive_info

if TYPE_CHECKING:
    from stratum.config.models import LoggingConfig


def use_emoji_logs() -> bool:
    """
    Check if emoji prefixes should be used in log messages.

    Returns True unless STRATUM_EMOJI_LOGS is set to "0" or "false".
    """
    value = os.environ.get("STRATUM_EMOJI_LOGS", "1").lower()
    return value not in ("0", "false", "no", "off")


_EMOJI_TO_ASCII = {
    "🔄": "[RETRY]",
    "⚠️": "[WARN]",
    "⏱️": "[TIMEOUT]",
    "✅": "[OK]",
    "❌": "[ERROR]",
    "⏭️": "[SKIP]",
    "🛑": "[CANCEL]",
    "🗄️": "[STATE]",
    "📋": "[PLAN]",
    "🚀": "[APPLY]",
}


def log_prefix(emoji: str) -> str:
    """
    Return the appropriate log prefix based on STRATUM_EMOJI_LOGS.

    Args:
        emoji: The emoji to use when emoji logs are enabled.

    Returns:
        The emoji, or its ASCII equivalent when emoji logs are disabled.
    """
    if use_emoji_logs():
        return emoji
    return _EMOJI_TO_ASCII.get(emoji, "")


def _redact_value(value: Any) -> Any:
    """Recursively redact sensitive info from an extra value."""
    if isinstance(value, str):
        return redact_sensitive_info(value)
    if isinstance(value, dict):
        return {k: _redact_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_redact_value(v) for v in value]
    return value


def _redaction_patcher(record: Any) -> None:
    """Redact sensitive info from all logs."""
    record["message"] = redact_sensitive_info(record["message"])
    for key in list(record["extra"].keys()):
        record["extra"][key] = _redact_value(record["extra"][key])


def setup_logger(verbose: bool = False, config: LoggingConfig | None = None) -> None:
    """
    Configure loguru sinks.

    Rules:
    1. FILE: Log to <log_dir>/stratum.log (rotated) when a log_dir is set.
    2. CONSOLE: Log to stderr at DEBUG when verbose, otherwise at the
       configured console level (WARNING by default) so the rich UI
       stays readable.

    Args:
        verbose: Enable debug console logging
        config: LoggingConfig override; defaults are used when None
    """
    if config is None:
        from stratum.config.models import LoggingConfig

        config = LoggingConfig()

    logger.remove()

    def format_record(record: Any) -> str:
        if config.json_logs:
            entry = {
                "timestamp": record["time"].isoformat(),
                "level": record["level"].name,
                "message": record["message"],
                "module": record["name"],
                "function": record["function"],
                "line": record["line"],
            }
            if record["extra"]:
                entry["extra"] = record["extra"]
            # Escape braces: loguru formats the returned string again
            return json.dumps(entry, default=str).replace("{", "{{").replace("}", "}}") + "\n"
        return "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}\n"

    if config.log_dir is not None:
        log_dir = Path(config.log_dir).expanduser()
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_dir / config.file_name,
            rotation=config.rotation,
            retention=config.retention,
            compression=config.compression,
            level=config.file_level.upper(),
            format=format_record,
            enqueue=True,
        )

    logger.add(
        sys.stderr,
        format=(
            "<green>{time:HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<level>{message}</level>"
        ),
        level="DEBUG" if verbose else config.console_level.upper(),
        colorize=True,
    )

    logger.configure(patcher=_redaction_patcher)
