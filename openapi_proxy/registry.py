"""Registry of generated tools, keyed by name.

Filled once by the startup pass and frozen before any invocation.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Iterator, Literal

from .errors import RegistryFrozenError, ToolNameConflictError
from .models import ToolDefinition
from .naming import MAX_TOOL_NAME_LENGTH

logger = logging.getLogger(__name__)

ConflictPolicy = Literal["overwrite", "error", "suffix"]


class ToolRegistry:
    """Registry of all tools derived from the API document."""

    def __init__(self, on_conflict: ConflictPolicy = "overwrite") -> None:
        if on_conflict not in ("overwrite", "error", "suffix"):
            raise ValueError(f"Unknown conflict policy: {on_conflict!r}")
        self.on_conflict = on_conflict
        self._tools: dict[str, ToolDefinition] = {}
        self._frozen = False

    def register(self, tool: ToolDefinition) -> ToolDefinition:
        """Insert ``tool`` and return the entry actually stored.

        Under the "suffix" policy the stored entry may carry a new name.
        """
        if self._frozen:
            raise RegistryFrozenError(f"Cannot register {tool.name!r}: registry is frozen")

        existing = self._tools.get(tool.name)
        if existing is not None:
            where = f"{tool.operation.method.upper()} {tool.operation.path}"
            previous = f"{existing.operation.method.upper()} {existing.operation.path}"
            if self.on_conflict == "error":
                raise ToolNameConflictError(
                    f"Tool name {tool.name!r} for {where} already used by {previous}"
                )
            if self.on_conflict == "suffix":
                tool = dataclasses.replace(tool, name=self._free_name(tool.name))
                logger.info("Tool name for %s taken by %s; registered as %s", where, previous, tool.name)
            else:
                logger.warning("Tool %s for %s overwrites the one for %s", tool.name, where, previous)

        self._tools[tool.name] = tool
        return tool

    def _free_name(self, name: str) -> str:
        n = 2
        while True:
            suffix = f"_{n}"
            candidate = name[:MAX_TOOL_NAME_LENGTH - len(suffix)] + suffix
            if candidate not in self._tools:
                return candidate
            n += 1

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def lookup(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def list(self) -> list[ToolDefinition]:
        """All tools, in registration order."""
        return list(self._tools.values())

    def names(self) -> list[str]:
        return list(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[ToolDefinition]:
        return iter(self.list())
