"""Tests for the context_builder module."""

import logging

from openapi_proxy.config import ProxyConfig
from openapi_proxy.context_builder import build_context, build_registry
from openapi_proxy.naming import TOOL_NAME_PATTERN


class TestBuildRegistry:
    """Test the full startup pass with the sample spec."""

    def test_tool_count(self, registry):
        assert len(registry) == 6

    def test_tool_names(self, registry):
        assert registry.names() == [
            "getItem", "deleteItem", "listItems", "createOrder", "createEvent", "get_health",
        ]

    def test_all_tool_names_valid(self, registry):
        for tool in registry.list():
            assert TOOL_NAME_PATTERN.match(tool.name), tool.name

    def test_registry_frozen(self, registry):
        assert registry.frozen

    def test_descriptions(self, registry):
        assert registry.lookup("getItem").description == "Fetch one item. Calls GET /items/{id}."
        assert "Returns plain text" in registry.lookup("get_health").description

    def test_body_mode(self, registry):
        assert registry.lookup("createOrder").body_mode == "fields"
        assert registry.lookup("getItem").body_mode == "none"

    def test_input_schema(self, registry):
        schema = registry.lookup("createOrder").input_schema()
        assert set(schema["required"]) == {"amount", "currency"}

    def test_org_header_optional_when_configured(self, registry):
        schema = registry.lookup("listItems").input_schema()
        assert "required" not in schema or "X-Org-Id" not in schema["required"]

    def test_tag_prefix(self, spec):
        config = ProxyConfig(base_url="https://x.test", tag_prefix=True)
        names = build_registry(spec, config).names()
        assert "items_getItem" in names
        assert "items_deleteItem" in names
        assert "admin_deleteItem" in names
        assert "get_health" in names

    def test_degraded_tool_still_registered(self, spec, config, caplog):
        spec["components"]["schemas"]["Order"]["properties"]["currency"] = {
            "$ref": "#/components/schemas/Gone",
        }
        with caplog.at_level(logging.WARNING):
            registry = build_registry(spec, config)
        tool = registry.lookup("createOrder")
        assert tool.degraded
        assert tool.input_model.model_validate({"amount": 1, "currency": 12345})
        assert "Gone" in caplog.text

    def test_colliding_names_overwrite(self, config):
        spec = {"paths": {
            "/items/{id}": {"get": {"operationId": "get item"}},
            "/legacy/items/{id}": {"get": {"operationId": "get_item"}},
        }}
        registry = build_registry(spec, config)
        assert registry.names() == ["get_item"]
        assert registry.lookup("get_item").operation.path == "/legacy/items/{id}"

    def test_colliding_names_suffix(self):
        config = ProxyConfig(base_url="https://x.test", on_conflict="suffix")
        spec = {"paths": {
            "/items/{id}": {"get": {"operationId": "get item"}},
            "/legacy/items/{id}": {"get": {"operationId": "get_item"}},
        }}
        assert build_registry(spec, config).names() == ["get_item", "get_item_2"]

    def test_family_policy_bound(self, spec):
        from openapi_proxy.models import FamilyPolicy

        policy = FamilyPolicy(prefix="/orders", inject_org_header=True)
        config = ProxyConfig(base_url="https://x.test", family_policies=(policy,))
        registry = build_registry(spec, config)
        assert registry.lookup("createOrder").policy is policy
        assert registry.lookup("getItem").policy is None


class TestBuildContext:
    """Template context for the catalog."""

    def test_context_keys(self, spec, config):
        ctx = build_context(spec, config)
        assert ctx["title"] == "Shop"
        assert ctx["version"] == "1.2.3"
        assert ctx["tool_count"] == 6
        assert ctx["base_url"] == config.base_url

    def test_field_rows(self, spec, config):
        ctx = build_context(spec, config)
        tools = {t["name"]: t for t in ctx["tools"]}
        rows = {r["name"]: r for r in tools["createOrder"]["fields"]}
        assert rows["currency"]["type"] == "enum[USD, EUR]"
        assert rows["currency"]["location"] == "body"
        assert rows["currency"]["required"] is True
        assert rows["note"]["required"] is False

        rows = {r["name"]: r for r in tools["listItems"]["fields"]}
        assert rows["X-Org-Id"]["location"] == "header"
        assert rows["limit"]["type"] == "integer"

    def test_single_string_tag_with_prefix(self):
        config = ProxyConfig(base_url="https://x.test", tag_prefix=True)
        spec = {"paths": {"/o": {"get": {"operationId": "c", "tags": "orders"}}}}
        assert build_registry(spec, config).names() == ["orders_c"]

    def test_null_components(self, config):
        spec = {"paths": {"/o": {"get": {"operationId": "listOrders"}}}, "components": None}
        assert build_registry(spec, config).names() == ["listOrders"]
