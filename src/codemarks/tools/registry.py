"""Named tool handlers with deterministic listing order."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

ToolHandler = Callable[[dict[str, object]], dict[str, object]]


@dataclass(slots=True, frozen=True)
class ToolDispatchError(Exception):
    """Dispatch failure carrying an envelope error code."""

    code: str
    message: str


@dataclass(slots=True, frozen=True)
class ToolEntry:
    """Registered handler plus the summary shown by `tools/list`."""

    name: str
    description: str
    handler: ToolHandler


@dataclass(slots=True)
class ToolRegistry:
    """Tool table keyed by name, listed in registration order."""

    _tools: dict[str, ToolEntry] = field(default_factory=dict)

    def register(self, name: str, handler: ToolHandler, description: str = "") -> None:
        """Register a named handler; re-registering a name is an error."""
        if name in self._tools:
            raise ValueError(f"Tool already registered: {name}")
        self._tools[name] = ToolEntry(name=name, description=description, handler=handler)

    def get(self, name: str) -> ToolHandler | None:
        entry = self._tools.get(name)
        return entry.handler if entry is not None else None

    def names(self) -> tuple[str, ...]:
        return tuple(self._tools.keys())

    def describe(self) -> list[dict[str, str]]:
        """Return name/description pairs in registration order."""
        return [
            {"name": entry.name, "description": entry.description} for entry in self._tools.values()
        ]

    def dispatch(self, name: str, arguments: dict[str, object]) -> dict[str, object]:
        """Run the handler registered for `name`."""
        handler = self.get(name)
        if handler is None:
            raise ToolDispatchError(code="UNKNOWN_TOOL", message=f"Unknown tool: {name}")
        return handler(arguments)
