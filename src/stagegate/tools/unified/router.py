"""Action routing for unified tools.

A unified tool takes an ``action`` argument and forwards the remaining
keyword arguments to the handler registered for that action.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Sequence, Tuple


class ActionRouterError(ValueError):
    """Raised when an unsupported action is requested."""

    def __init__(self, message: str, *, allowed_actions: Sequence[str]) -> None:
        super().__init__(message)
        self.allowed_actions = tuple(allowed_actions)


@dataclass(frozen=True)
class ActionDefinition:
    """One action of a unified tool."""

    name: str
    handler: Callable[..., dict]
    summary: str = ""
    aliases: Tuple[str, ...] = field(default_factory=tuple)


class ActionRouter:
    """Case-insensitive dispatch from action names to handlers."""

    def __init__(self, tool_name: str, actions: Iterable[ActionDefinition]) -> None:
        self.tool_name = tool_name
        self._definitions: Dict[str, ActionDefinition] = {}
        self._lookup: Dict[str, ActionDefinition] = {}
        for definition in actions:
            if definition.name in self._definitions:
                raise ValueError(f"Duplicate action '{definition.name}' for {tool_name}")
            self._definitions[definition.name] = definition
            for key in (definition.name, *definition.aliases):
                self._lookup[key.lower()] = definition

    def allowed_actions(self) -> Tuple[str, ...]:
        return tuple(sorted(self._definitions))

    def describe(self) -> Dict[str, str]:
        return {name: d.summary for name, d in sorted(self._definitions.items())}

    def dispatch(self, action: str, **kwargs: Any) -> dict:
        definition = self._lookup.get((action or "").lower())
        if definition is None:
            raise ActionRouterError(
                f"Unsupported {self.tool_name} action '{action}'",
                allowed_actions=self.allowed_actions(),
            )
        return definition.handler(**kwargs)
