"""User-facing toasts.  Display only; nothing here can fail the caller."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import structlog

logger = structlog.get_logger(__name__)


class Notifier(Protocol):
    def show(self, message: str, success: bool = True, warning: bool = False) -> None: ...


@dataclass(frozen=True)
class Toast:
    message: str
    kind: str  # "success", "warning" or "error"
    duration_ms: int


def toast_kind(success: bool, warning: bool) -> str:
    if success:
        return "success"
    return "warning" if warning else "error"


class LogNotifier:
    """Notifier that writes toasts to the structured log and remembers them.

    Only the most recent toast is "on screen"; a new one replaces it.

    Args:
        duration_ms: How long a toast stays visible.
    """

    def __init__(self, duration_ms: int = 3500) -> None:
        self._duration_ms = duration_ms
        self.shown: list[Toast] = []

    @property
    def current(self) -> Toast | None:
        return self.shown[-1] if self.shown else None

    def show(self, message: str, success: bool = True, warning: bool = False) -> None:
        toast = Toast(message=message, kind=toast_kind(success, warning), duration_ms=self._duration_ms)
        self.shown.append(toast)
        log = logger.bind(kind=toast.kind, duration_ms=toast.duration_ms)
        if toast.kind == "error":
            log.error("toast.shown", message=message)
        elif toast.kind == "warning":
            log.warning("toast.shown", message=message)
        else:
            log.info("toast.shown", message=message)
