"""
Observable state shared between services and views.

Services publish values under well-known keys; views subscribe and
re-render when a value changes.
"""
from collections import defaultdict
from typing import Any, Callable, Dict, List

from rumori.logger import get_logger

logger = get_logger("state")

Listener = Callable[[str, Any], None]

# Well-known keys
AUTH_STATE = "auth_state"
CURRENT_USER = "current_user"
CURRENT_PROFILE = "current_profile"
COIN_BALANCE = "coin_balance"
UNREAD_FEEDBACK_COUNT = "unread_feedback_count"

SESSION_SCOPED_KEYS = (CURRENT_USER, CURRENT_PROFILE, COIN_BALANCE, UNREAD_FEEDBACK_COUNT)


class StateStore:
    """Key/value state container with change notification.

    Single-threaded: listeners run synchronously on the event loop
    thread that called ``set``.
    """

    def __init__(self) -> None:
        self._values: Dict[str, Any] = {}
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` and notify subscribers if it changed."""
        if key in self._values and self._values[key] == value:
            return
        self._values[key] = value
        self._notify(key, value)

    def clear(self, key: str) -> None:
        if key in self._values:
            del self._values[key]
            self._notify(key, None)

    def reset(self, keys=None) -> None:
        """Clear the given keys, or everything when ``keys`` is None."""
        for key in list(keys if keys is not None else self._values.keys()):
            self.clear(key)

    def subscribe(self, key: str, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for ``key``; returns an unsubscribe callable."""
        self._listeners[key].append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners[key]:
                self._listeners[key].remove(listener)
        return unsubscribe

    def _notify(self, key: str, value: Any) -> None:
        for listener in list(self._listeners.get(key, ())):
            try:
                listener(key, value)
            except Exception as e:
                logger.error(f"State listener for '{key}' failed: {e}")
