from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

from bespoke.core.events import redact


class Severity(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class BespokeError(Exception):
    code: str
    user_message: str
    severity: Severity = Severity.ERROR
    recoverable: bool = True
    context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.code)

    def __str__(self) -> str:
        return f"{self.code}: {self.user_message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "user_message": self.user_message,
            "severity": self.severity.value,
            "recoverable": bool(self.recoverable),
            "context": redact(self.context or {}),
        }


# ---- Core types ----
class NetworkError(BespokeError):
    def __init__(self, user_message: str = "Network request failed.", **ctx: Any):
        super().__init__("network_error", user_message, severity=Severity.ERROR, recoverable=True, context=ctx)


class ParseError(BespokeError):
    def __init__(self, user_message: str = "Could not parse input.", **ctx: Any):
        super().__init__("parse_error", user_message, severity=Severity.ERROR, recoverable=False, context=ctx)


class NotFoundError(BespokeError):
    def __init__(self, user_message: str = "Not found.", **ctx: Any):
        super().__init__("not_found", user_message, severity=Severity.WARN, recoverable=False, context=ctx)


class FilesystemError(BespokeError):
    def __init__(self, user_message: str = "Filesystem operation failed.", **ctx: Any):
        super().__init__("filesystem_error", user_message, severity=Severity.ERROR, recoverable=True, context=ctx)


class UnsupportedError(BespokeError):
    def __init__(self, user_message: str = "Operation is not supported.", **ctx: Any):
        super().__init__("unsupported", user_message, severity=Severity.WARN, recoverable=False, context=ctx)


class ConfigError(BespokeError):
    def __init__(self, user_message: str = "Configuration error.", **ctx: Any):
        super().__init__("config_error", user_message, severity=Severity.CRITICAL, recoverable=False, context=ctx)


class CancelledError(BespokeError):
    def __init__(self, user_message: str = "Operation cancelled.", **ctx: Any):
        super().__init__("cancelled", user_message, severity=Severity.WARN, recoverable=True, context=ctx)
