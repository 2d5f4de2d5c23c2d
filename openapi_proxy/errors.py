"""Error taxonomy for the proxy.

Load-time structural failures (DocumentError, registry misuse) abort startup.
Per-call failures are caught by the dispatcher and turned into text.
"""

from __future__ import annotations

from typing import Any


class ProxyError(Exception):
    """Base class for every error raised by openapi_proxy."""


class DocumentError(ProxyError):
    """The API document is structurally unusable."""


class SchemaResolutionError(ProxyError):
    """A $ref points to a named schema that does not exist."""

    def __init__(self, ref: str) -> None:
        self.ref = ref
        super().__init__(f"Unresolvable schema reference: {ref}")


class ValidationError(ProxyError):
    """Supplied arguments failed the tool's input model."""

    def __init__(self, errors: list[dict[str, Any]]) -> None:
        self.errors = errors
        super().__init__(self._format(errors))

    @staticmethod
    def _format(errors: list[dict[str, Any]]) -> str:
        lines = []
        for err in errors:
            loc = ".".join(str(part) for part in err.get("loc", ())) or "<root>"
            lines.append(f"{loc}: {err.get('msg', 'invalid value')}")
        return "Invalid arguments; " + "; ".join(lines)


class InvocationError(ProxyError):
    """The HTTP call failed or returned a non-2xx status."""

    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        super().__init__(message)


class SerializationError(ProxyError):
    """A response body claimed to be JSON but did not parse."""


class ToolNameConflictError(ProxyError):
    """Two operations derived the same tool name under the 'error' policy."""


class RegistryFrozenError(ProxyError):
    """register() was called after the startup pass completed."""
