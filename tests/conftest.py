"""Shared fixtures for openapi_proxy tests.

HTTP never leaves the process: dispatchers are wired to an
httpx.MockTransport that records every request it sees.
"""

from __future__ import annotations

import copy
from typing import Any, Callable

import httpx
import pytest

from openapi_proxy.config import ProxyConfig
from openapi_proxy.context_builder import build_registry
from openapi_proxy.dispatcher import Dispatcher
from openapi_proxy.models import OperationDescriptor, ToolDefinition
from openapi_proxy.schema_parser import ArgumentsModel


BASE_URL = "https://api.example.test/v1"
ORG_ID = "org-123"


# ---------------------------------------------------------------------------
# API document
# ---------------------------------------------------------------------------

_SPEC: dict[str, Any] = {
    "openapi": "3.0.3",
    "info": {"title": "Shop", "version": "1.2.3"},
    "paths": {
        "/items/{id}": {
            "get": {
                "operationId": "getItem",
                "summary": "Fetch one item.",
                "tags": ["items"],
                "parameters": [
                    {"name": "id", "in": "path", "required": True, "schema": {"type": "string"}},
                ],
                "responses": {
                    "200": {
                        "description": "OK",
                        "content": {
                            "application/json": {"schema": {"$ref": "#/components/schemas/Item"}},
                        },
                    },
                    "404": {"description": "Missing"},
                },
            },
            "delete": {
                "operationId": "deleteItem",
                "tags": ["items", "admin"],
                "parameters": [
                    {"name": "id", "in": "path", "required": True, "schema": {"type": "string"}},
                ],
                "responses": {"204": {"description": "Deleted"}},
            },
        },
        "/items": {
            "get": {
                "operationId": "listItems",
                "tags": ["items"],
                "parameters": [
                    {
                        "name": "limit",
                        "in": "query",
                        "schema": {"type": "integer", "minimum": 1, "maximum": 100},
                    },
                    {"name": "inStock", "in": "query", "schema": {"type": "boolean"}},
                    {"name": "X-Org-Id", "in": "header", "required": True, "schema": {"type": "string"}},
                ],
                "responses": {
                    "200": {
                        "content": {
                            "application/json": {
                                "schema": {
                                    "type": "array",
                                    "items": {"$ref": "#/components/schemas/Item"},
                                },
                            },
                        },
                    },
                },
            },
        },
        "/orders": {
            "post": {
                "operationId": "createOrder",
                "tags": ["orders"],
                "requestBody": {
                    "required": True,
                    "content": {
                        "application/json": {"schema": {"$ref": "#/components/schemas/Order"}},
                    },
                },
                "responses": {"201": {"content": {"application/json": {}}}},
            },
        },
        "/events": {
            "post": {
                "operationId": "createEvent",
                "requestBody": {
                    "content": {
                        "application/json": {
                            "schema": {
                                "type": "object",
                                "properties": {
                                    "eventId": {"type": "string", "format": "uuid"},
                                    "occurredAt": {"type": "string", "format": "date-time"},
                                    "day": {"type": "string", "format": "date"},
                                    "at": {"type": "string", "format": "time"},
                                },
                                "required": ["eventId", "occurredAt"],
                            },
                        },
                    },
                },
                "responses": {"200": {"content": {"text/plain": {}}}},
            },
        },
        "/health": {
            "get": {
                "responses": {"200": {"content": {"text/plain": {}}}},
            },
        },
    },
    "components": {
        "schemas": {
            "Item": {
                "type": "object",
                "properties": {
                    "id": {"type": "string", "readOnly": True},
                    "name": {"type": "string"},
                },
            },
            "Currency": {"type": "string", "enum": ["USD", "EUR"]},
            "Order": {
                "type": "object",
                "properties": {
                    "amount": {"type": "number"},
                    "currency": {"$ref": "#/components/schemas/Currency"},
                    "note": {"type": "string"},
                },
                "required": ["amount", "currency"],
            },
        },
    },
}


@pytest.fixture
def spec() -> dict[str, Any]:
    """A fresh copy of the sample document, safe to mutate."""
    return copy.deepcopy(_SPEC)


@pytest.fixture
def config() -> ProxyConfig:
    return ProxyConfig(base_url=BASE_URL, org_id=ORG_ID)


@pytest.fixture
def registry(spec, config):
    return build_registry(spec, config)


# ---------------------------------------------------------------------------
# Tool factory: minimal ToolDefinitions for registry tests
# ---------------------------------------------------------------------------

@pytest.fixture
def make_tool() -> Callable[..., ToolDefinition]:
    """Return a callable building a bare ToolDefinition.

    Usage in tests::

        tool = make_tool("get_item", path="/items/{id}")
    """
    def _make(name: str, path: str = "/things", method: str = "get") -> ToolDefinition:
        return ToolDefinition(
            name=name,
            operation=OperationDescriptor(path=path, method=method),
            input_model=ArgumentsModel,
        )
    return _make


# ---------------------------------------------------------------------------
# Dispatcher wired to a recording mock transport
# ---------------------------------------------------------------------------

class Recorder:
    """httpx.MockTransport handler that records requests."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response] | None = None) -> None:
        self.requests: list[httpx.Request] = []
        self.handler = handler or (lambda request: httpx.Response(200, json={"ok": True}))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


@pytest.fixture
async def make_dispatcher(registry, config):
    """Return a callable building (dispatcher, recorder) pairs.

    Usage in tests::

        dispatcher, recorder = make_dispatcher(lambda req: httpx.Response(200, text="hi"))
    """
    clients: list[httpx.AsyncClient] = []

    def _make(handler=None, reg=None):
        recorder = Recorder(handler)
        client = httpx.AsyncClient(
            base_url=config.base_url, transport=httpx.MockTransport(recorder),
        )
        clients.append(client)
        return Dispatcher(reg or registry, config, client=client), recorder

    yield _make

    for client in clients:
        await client.aclose()
