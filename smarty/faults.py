"""
Smarty - Fault taxonomy.

Every error the engine raises is a structured fault object rather than a
bare exception:
- Stable machine-readable code
- Human-readable message
- Severity level and domain classification
- Metadata describing where in the template it happened

Fault kinds:
- TemplateSyntaxError: malformed or unterminated directive markers
- CompileError: the generated renderer source could not be compiled
- ResolutionError: an include (or template file) could not be found
- ConfigurationError: invalid or contradictory options
- RenderError: a runtime failure while executing a compiled renderer
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional, Sequence


# ============================================================================
# Severity & Domain
# ============================================================================

class Severity(str, Enum):
    """Fault severity levels."""
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"


class FaultDomain:
    """
    Fault domains (taxonomy).

    Identifies the functional area where a fault occurred.
    """

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.value = name
        self.description = description

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"FaultDomain(name='{self.name}')"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, FaultDomain):
            return self.name == other.name
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash(self.name)


FaultDomain.CONFIG = FaultDomain("config", "Configuration errors")
FaultDomain.IO = FaultDomain("io", "I/O operations")
FaultDomain.TEMPLATE = FaultDomain("template", "Template compilation and rendering")


DOMAIN_DEFAULTS = {
    FaultDomain.CONFIG: {"severity": Severity.FATAL, "retryable": False},
    FaultDomain.IO: {"severity": Severity.WARN, "retryable": True},
    FaultDomain.TEMPLATE: {"severity": Severity.ERROR, "retryable": False},
}


# ============================================================================
# Fault - Base Class
# ============================================================================

class Fault(Exception):
    """
    Base fault class - structured, typed fault object.

    Attributes:
        code: Stable machine-readable identifier (e.g., "TEMPLATE_SYNTAX_ERROR")
        message: Human-readable summary
        severity: Fault severity
        domain: Fault domain
        retryable: Whether retrying the operation could succeed
        metadata: Additional context data
    """

    def __init__(
        self,
        code: str,
        message: str,
        *,
        domain: FaultDomain,
        severity: Optional[Severity] = None,
        retryable: Optional[bool] = None,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.domain = domain

        defaults = DOMAIN_DEFAULTS.get(domain, {"severity": Severity.ERROR, "retryable": False})
        self.severity = severity or defaults["severity"]
        self.retryable = retryable if retryable is not None else defaults["retryable"]
        self.metadata = metadata or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(code={self.code!r}, domain={self.domain.value}, "
            f"severity={self.severity.value})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize fault to a dictionary suitable for logging."""
        return {
            "code": self.code,
            "message": self.message,
            "domain": self.domain.value,
            "severity": self.severity.value,
            "retryable": self.retryable,
            "metadata": self.metadata,
        }


class SmartyFault(Fault):
    """Base class for all template engine faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        domain: FaultDomain = FaultDomain.TEMPLATE,
        severity: Optional[Severity] = None,
        retryable: bool = False,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=domain,
            severity=severity,
            retryable=retryable,
            metadata=metadata,
        )

    @property
    def filename(self) -> Optional[str]:
        return self.metadata.get("filename")

    @property
    def line(self) -> Optional[int]:
        return self.metadata.get("line")


def _location(filename: Optional[str], line: Optional[int]) -> str:
    if line is None:
        return f" in {filename}" if filename else ""
    return f" ({filename or 'template'}:{line})"


class TemplateSyntaxError(SmartyFault):
    """Malformed, unterminated or mis-nested directive markers."""

    def __init__(
        self,
        message: str,
        *,
        line: Optional[int] = None,
        filename: Optional[str] = None,
        snippet: Optional[str] = None,
    ):
        super().__init__(
            code="TEMPLATE_SYNTAX_ERROR",
            message=f"{message}{_location(filename, line)}",
            metadata={"line": line, "filename": filename, "snippet": snippet},
        )


class CompileError(SmartyFault):
    """The generated renderer source failed to compile."""

    def __init__(
        self,
        message: str,
        *,
        line: Optional[int] = None,
        filename: Optional[str] = None,
        snippet: Optional[str] = None,
    ):
        text = f"{message}{_location(filename, line)}"
        if snippet:
            text = f"{text}\n    {snippet}"
        super().__init__(
            code="TEMPLATE_COMPILE_FAILED",
            message=text,
            metadata={"line": line, "filename": filename, "snippet": snippet},
        )

    @property
    def snippet(self) -> Optional[str]:
        return self.metadata.get("snippet")


class ResolutionError(SmartyFault):
    """An include target or template file could not be located."""

    def __init__(
        self,
        name: str,
        *,
        searched: Sequence[str] = (),
        reason: Optional[str] = None,
    ):
        message = reason or f"Could not find include file '{name}'"
        if searched:
            message = f"{message} (searched: {', '.join(searched)})"
        super().__init__(
            code="TEMPLATE_INCLUDE_NOT_FOUND",
            message=message,
            domain=FaultDomain.IO,
            severity=Severity.ERROR,
            metadata={"name": name, "searched": list(searched)},
        )


class ConfigurationError(SmartyFault):
    """Invalid options, e.g. caching requested without a filename."""

    def __init__(self, reason: str, **metadata: Any):
        super().__init__(
            code="TEMPLATE_CONFIG_INVALID",
            message=f"Invalid template configuration: {reason}",
            domain=FaultDomain.CONFIG,
            metadata={"reason": reason, **metadata},
        )


class RenderError(SmartyFault):
    """A compiled renderer failed while executing against a data context."""

    def __init__(
        self,
        message: str,
        *,
        line: Optional[int] = None,
        filename: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            code="TEMPLATE_RENDER_FAILED",
            message=message,
            metadata={
                "line": line,
                "filename": filename,
                "cause": type(cause).__name__ if cause is not None else None,
            },
        )
