"""Host command menu: registrar protocol, an in-memory registry and the shield's menu."""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol

import structlog

from privacy_shield.models import SessionStats
from privacy_shield.stats import StatsCounter

logger = structlog.get_logger(__name__)

Action = Callable[[], Any]


class CommandRegistrar(Protocol):
    def register(self, label: str, action: Action) -> int: ...

    def unregister(self, command_id: int) -> None: ...


@dataclass(frozen=True)
class Command:
    id: int
    label: str
    action: Action


class MenuRegistry:
    """Minimal command surface: labelled callbacks with numeric ids."""

    def __init__(self) -> None:
        self._next_id = 1
        self.commands: dict[int, Command] = {}

    def register(self, label: str, action: Action) -> int:
        command = Command(self._next_id, label, action)
        self.commands[command.id] = command
        self._next_id += 1
        return command.id

    def unregister(self, command_id: int) -> None:
        if command_id not in self.commands:
            raise KeyError(command_id)
        del self.commands[command_id]

    def labels(self) -> list[str]:
        return [c.label for c in self.commands.values()]

    def find(self, label_prefix: str) -> Command:
        for command in self.commands.values():
            if command.label.startswith(label_prefix):
                return command
        raise LookupError(f"no command labelled {label_prefix!r}")

    async def invoke(self, label_prefix: str) -> Any:
        """Run the command whose label starts with *label_prefix*, awaiting if needed."""
        result = self.find(label_prefix).action()
        if inspect.isawaitable(result):
            result = await result
        return result


class ShieldActionSet(Protocol):
    def clear_all(self) -> Awaitable[None]: ...

    def clear_basic(self) -> None: ...

    def clear_cookies(self) -> None: ...

    def clear_databases(self) -> Awaitable[None]: ...

    def clear_caches_and_workers(self) -> Awaitable[None]: ...

    def show_stats(self) -> None: ...

    def open_project_page(self) -> None: ...


def menu_entries(actions: ShieldActionSet, stats: SessionStats) -> list[tuple[str, Action]]:
    """The fixed seven commands, in display order, with live stats in the label."""
    return [
        ("🗑️  Clear All Site Data...", actions.clear_all),
        ("📦  Clear Storage (Local & Session)...", actions.clear_basic),
        ("🍪  Clear Cookies...", actions.clear_cookies),
        ("🗄️  Clear Databases (IndexedDB & Web SQL)...", actions.clear_databases),
        ("⚡  Clear Caches & Service Workers...", actions.clear_caches_and_workers),
        (f"📊  Session Stats (stripped: {stats.tokens_stripped})", actions.show_stats),
        ("🔗  PrivacyShield on GitHub", actions.open_project_page),
    ]


class ShieldMenu:
    """Registers the shield's commands and re-registers them when stats change.

    Args:
        registrar: Host command surface.
        actions:   Object exposing the seven action callbacks.
        stats:     Counter whose values appear in the labels.
    """

    def __init__(self, registrar: CommandRegistrar, actions: ShieldActionSet, stats: StatsCounter) -> None:
        self._registrar = registrar
        self._actions = actions
        self._stats = stats
        self._ids: list[int] = []

    def register(self) -> None:
        self._ids = [
            self._registrar.register(label, action)
            for label, action in menu_entries(self._actions, self._stats.snapshot())
        ]

    def unregister(self) -> None:
        """Remove every command this menu registered; unknown ids are skipped."""
        for command_id in self._ids:
            try:
                self._registrar.unregister(command_id)
            except Exception as exc:  # noqa: BLE001
                logger.debug("menu.unregister_failed", command_id=command_id, error=str(exc))
        self._ids = []

    def refresh(self) -> None:
        """Unregister everything, then register again with fresh labels."""
        self.unregister()
        self.register()

    def on_stats_changed(self, _stats: SessionStats) -> None:
        self.refresh()
