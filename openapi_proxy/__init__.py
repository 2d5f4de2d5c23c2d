"""Expose the operations of an OpenAPI document as validated tools."""

from .config import ProxyConfig
from .context_builder import build_registry
from .dispatcher import Dispatcher
from .models import FamilyPolicy, ToolDefinition, ToolResult
from .placeholders import DATETIME_PLACEHOLDER, GUID_PLACEHOLDER
from .registry import ToolRegistry

__all__ = [
    "DATETIME_PLACEHOLDER",
    "Dispatcher",
    "FamilyPolicy",
    "GUID_PLACEHOLDER",
    "ProxyConfig",
    "ToolDefinition",
    "ToolRegistry",
    "ToolResult",
    "build_registry",
]
