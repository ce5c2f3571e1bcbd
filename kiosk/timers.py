from __future__ import annotations

import asyncio
from typing import Any, Callable


class ScheduledCallbacks:
    """Named one-shot callbacks on the running event loop.

    At most one callback is pending per key; scheduling a key again replaces
    the previous callback.
    """

    def __init__(self) -> None:
        self._handles: dict[str, asyncio.TimerHandle] = {}

    def schedule(self, key: str, delay: float, callback: Callable[..., Any], *args: Any) -> None:
        self.cancel(key)
        loop = asyncio.get_running_loop()
        self._handles[key] = loop.call_later(delay, self._fire, key, callback, args)

    def _fire(self, key: str, callback: Callable[..., Any], args: tuple[Any, ...]) -> None:
        self._handles.pop(key, None)
        callback(*args)

    def cancel(self, key: str) -> bool:
        handle = self._handles.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> None:
        for key in list(self._handles):
            self.cancel(key)

    def pending(self, key: str) -> bool:
        return key in self._handles


__all__ = ["ScheduledCallbacks"]
