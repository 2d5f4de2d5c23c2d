"""Run tool invocations: placeholders, validation, request, response.

Every call ends in a ToolResult. Nothing raised while handling a call
escapes dispatch(); failures are reported as text prefixed with the tool
name.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Mapping

import httpx
import pydantic

from .config import ProxyConfig
from .errors import InvocationError, ProxyError, ValidationError
from .models import DispatchState, PreparedRequest, ToolDefinition, ToolResult
from .placeholders import resolve_placeholders
from .registry import ToolRegistry
from .request_builder import build_request
from .responses import normalize_response

logger = logging.getLogger(__name__)


def error_text(tool_name: str, message: str) -> str:
    return f"Error in tool {tool_name}: {message}"


class Dispatcher:
    """Invoke registered tools over HTTP.

    Owns an httpx.AsyncClient unless one is passed in. Use as an async
    context manager, or call aclose() when done.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        config: ProxyConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.registry = registry
        self.config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url, timeout=config.timeout,
        )

    async def __aenter__(self) -> Dispatcher:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def validate(self, tool: ToolDefinition, arguments: Mapping[str, Any]) -> dict[str, Any]:
        """Check arguments against the tool's input model.

        Returns only the fields the caller supplied, keyed by their names in
        the API document.
        """
        try:
            validated = tool.input_model.model_validate(dict(arguments))
        except pydantic.ValidationError as exc:
            raise ValidationError(exc.errors(include_url=False)) from exc
        return validated.model_dump(by_alias=True, exclude_unset=True)

    async def send(self, request: PreparedRequest) -> httpx.Response:
        kwargs: dict[str, Any] = {"headers": dict(request.headers)}
        if request.query:
            kwargs["params"] = dict(request.query)
        if request.has_body and request.body is not None:
            kwargs["json"] = request.body
        try:
            return await self._client.request(request.method, request.path, **kwargs)
        except httpx.TimeoutException as exc:
            raise InvocationError(f"{request.method} {request.path} timed out") from exc
        except httpx.HTTPError as exc:
            raise InvocationError(f"{request.method} {request.path} failed: {exc}") from exc

    async def dispatch(self, name: str, arguments: Mapping[str, Any] | None = None) -> ToolResult:
        """Invoke tool ``name`` with ``arguments``; never raises."""
        state = DispatchState.IDLE
        status: int | None = None
        try:
            tool = self.registry.lookup(name)
            if tool is None:
                raise InvocationError(f"Unknown tool: {name!r}")

            args = resolve_placeholders(dict(arguments or {}))
            state = DispatchState.PLACEHOLDER_SUBSTITUTED

            validated = self.validate(tool, args)
            state = DispatchState.VALIDATED

            request = build_request(tool, validated, self.config)
            state = DispatchState.REQUEST_BUILT
            logger.debug("%s -> %s %s", name, request.method, request.path)

            response = await self.send(request)
            status = response.status_code
            state = DispatchState.INVOKED

            text = normalize_response(status, response.headers, response.text)
            state = DispatchState.NORMALIZED

            if not response.is_success:
                # empty error bodies are already rendered as "HTTP <status> <reason>"
                message = f"HTTP {status}: {text}" if response.text.strip() else (text or f"HTTP {status}")
                raise InvocationError(message, status=status)
        except ProxyError as exc:
            logger.warning("Tool %s failed after %s: %s", name, state.value, exc)
            return ToolResult(
                tool=name,
                text=error_text(name, str(exc)),
                is_error=True,
                error_kind=type(exc).__name__,
                state=DispatchState.FAILED,
                status=status,
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("Tool %s raised unexpectedly after %s", name, state.value)
            return ToolResult(
                tool=name,
                text=error_text(name, f"{type(exc).__name__}: {exc}"),
                is_error=True,
                error_kind="InvocationError",
                state=DispatchState.FAILED,
                status=status,
            )

        return ToolResult(tool=name, text=text, state=DispatchState.DONE, status=status)

    def bind(self, name: str) -> Callable[..., Awaitable[str]]:
        """Return an async callable that invokes ``name`` and yields its text."""
        if name not in self.registry:
            raise KeyError(f"Unknown tool: {name!r}")

        async def invoke(**kwargs: Any) -> str:
            result = await self.dispatch(name, kwargs)
            return result.text

        invoke.__name__ = name
        tool = self.registry.lookup(name)
        invoke.__doc__ = tool.description if tool else None
        return invoke
