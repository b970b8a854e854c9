"""Centralized logging configuration for svcman.

This module provides a single point of truth for logging setup.
The CLI calls configure_logging() once at startup; library users may
configure logging however they like.

Logging Levels:
- DEBUG: Every external command, rendered artifacts, probe results
- INFO: Completed operations (installed, started, ...)
- WARNING: Best-effort steps that failed (rollback, stop before uninstall)
- ERROR: Failures that abort an operation

Command lines can carry environment values and arguments supplied by the
caller, so everything logged about a command goes through the redactor.
"""

import logging
import os
import re
from dataclasses import dataclass, field

ENV_VAR = "SVCMAN_LOG_LEVEL"

# Default patterns for secret detection and redaction
DEFAULT_REDACT_PATTERNS: list[str] = [
    # API key prefixes (Anthropic, OpenAI, GitHub, Slack, etc.)
    r"\b(sk-[A-Za-z0-9_-]{20,})\b",
    r"\b(ghp_[A-Za-z0-9]{20,})\b",
    r"\b(github_pat_[A-Za-z0-9_]{20,})\b",
    r"\b(xox[baprs]-[A-Za-z0-9-]{10,})\b",
    r"\b(AKIA[0-9A-Z]{16})\b",
    # ENV-style assignments: API_KEY=secret, DB_PASSWORD=secret
    r"\b[A-Z0-9_]*(?:KEY|TOKEN|SECRET|PASSWORD|PASSWD)\s*[=:]\s*([^\s\"'\\]{8,})",
    # Credentials in --password=... style flags
    r"--(?:password|token|secret)[= ]([^\s\"']{4,})",
    # Bearer tokens in headers
    r"\bBearer\s+([A-Za-z0-9._\-+=]{20,})\b",
]


@dataclass
class SecretRedactor:
    """Redacts sensitive information from log messages.

    Patterns match common secret formats (API keys, tokens, passwords)
    and replace them with partially masked versions for debuggability.
    """

    patterns: list[re.Pattern[str]] = field(default_factory=list)
    enabled: bool = True

    def __post_init__(self) -> None:
        if not self.patterns:
            self.patterns = [
                re.compile(p, re.IGNORECASE) for p in DEFAULT_REDACT_PATTERNS
            ]

    def redact(self, text: str) -> str:
        """Redact secrets from text, preserving partial info for debugging."""
        if not self.enabled or not text:
            return text
        result = text
        for pattern in self.patterns:
            result = pattern.sub(self._mask_match, result)
        return result

    def _mask_match(self, match: re.Match[str]) -> str:
        """Mask a matched secret, preserving start/end for identification."""
        full = match.group(0)
        token = match.group(1) if match.lastindex else full

        # Already masked by an earlier pattern
        if "..." in token:
            return full

        if len(token) < 12:
            return full.replace(token, "***") if token != full else "***"

        masked = f"{token[:4]}...{token[-4:]}"
        return full.replace(token, masked) if token != full else masked


_redactor = SecretRedactor()


def redact(text: str) -> str:
    """Redact secrets using the module-level redactor."""
    return _redactor.redact(text)


class ComponentFormatter(logging.Formatter):
    """Formatter that extracts component name from logger path.

    Converts full module paths to short component names:
    - svcman.service.backends.systemd -> backends
    - svcman.service.manager -> service
    - svcman.cli.commands.service -> cli
    """

    def format(self, record: logging.LogRecord) -> str:
        parts = record.name.split(".")
        if len(parts) >= 3 and parts[0] == "svcman" and parts[2] == "backends":
            record.component = "backends"
        elif len(parts) >= 2 and parts[0] == "svcman":
            record.component = parts[1]
        else:
            record.component = parts[0]
        return super().format(record)


def resolve_level(level: str | None = None) -> str:
    """Resolve a log level name from the argument or SVCMAN_LOG_LEVEL."""
    if level is None:
        level = os.environ.get(ENV_VAR, "WARNING")
    level = level.upper()
    if level not in ("DEBUG", "INFO", "WARNING", "ERROR"):
        level = "WARNING"
    return level


def configure_logging(level: str | None = None, use_rich: bool = False) -> None:
    """Configure logging for svcman.

    Call this once at application startup.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
            If None, uses SVCMAN_LOG_LEVEL env var or WARNING.
        use_rich: Use Rich handler for colorful output.
    """
    log_level = getattr(logging, resolve_level(level))

    if use_rich:
        from rich.console import Console
        from rich.logging import RichHandler

        handler: logging.Handler = RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=False,
            show_path=False,
            show_time=True,
            markup=False,
        )
        handler.setFormatter(ComponentFormatter("%(component)s | %(message)s"))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(
            ComponentFormatter(
                "%(asctime)s | %(levelname)-8s | %(component)s | %(message)s",
                datefmt="%H:%M:%S",
            )
        )

    logging.basicConfig(level=log_level, handlers=[handler], force=True)
