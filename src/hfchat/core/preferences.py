"""Persisted user preferences with change notification.

Preferences are independent key-value scalars stored as one JSON object.
Reads inside a ``track()`` block are recorded so observers can register the
keys they depend on; every write notifies the key's subscribers.
"""

from __future__ import annotations

import contextlib
import json

from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

from hfchat.core.constants import DEFAULT_EXTERNAL_MODEL, NO_LOCAL_MODEL
from hfchat.utils.logger import logger

KEY_USE_WEB_SEARCH = "useWebSearch"
KEY_USE_CONTEXT = "useContext"
KEY_EXTERNAL_MODEL = "externalModel"
KEY_LOCAL_MODEL = "localModel"
KEY_IS_LOCAL_GENERATION = "isLocalGeneration"
KEY_CHAT_CLEAR_INTERVAL = "chatClearInterval"

#: Wildcard key: subscribers are notified of every write.
ANY_KEY = "*"

PreferenceListener = Callable[[str, Any], None]

DEFAULTS: dict[str, Any] = {
    KEY_USE_WEB_SEARCH: False,
    KEY_USE_CONTEXT: False,
    KEY_EXTERNAL_MODEL: DEFAULT_EXTERNAL_MODEL,
    KEY_LOCAL_MODEL: NO_LOCAL_MODEL,
    KEY_IS_LOCAL_GENERATION: False,
    KEY_CHAT_CLEAR_INTERVAL: "never",
}


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


class PreferencesStore:
    """Typed accessor over persisted key-value preferences."""

    def __init__(self, path: str | Path | None = None):
        """Initialize the store.

        Args:
            path: JSON file backing the store (None keeps values in memory)
        """
        self.path = Path(path) if path is not None else None
        self._values: dict[str, Any] = {}
        self._listeners: dict[str, list[PreferenceListener]] = {}
        self._tracking: list[set[str]] = []
        self._load()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> None:
        """Load preferences from disk."""
        if self.path is None or not self.path.exists():
            return

        try:
            with open(self.path) as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("preferences file must contain a JSON object")
            self._values = data
            logger.info(f"Loaded {len(self._values)} preferences from {self.path}")
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load preferences: {e}", exc_info=True)
            self._values = {}

    def _save(self) -> None:
        """Save preferences to disk."""
        if self.path is None:
            return

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w") as f:
                json.dump(self._values, f, indent=2)
        except OSError as e:
            logger.error(f"Failed to save preferences: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Raw access and observation
    # ------------------------------------------------------------------

    def get(self, key: str) -> Any:
        """Read a raw value, falling back to the key's default."""
        for deps in self._tracking:
            deps.add(key)
        return self._values.get(key, DEFAULTS.get(key))

    def set(self, key: str, value: Any) -> None:
        """Write a raw value, persist it and notify subscribers."""
        self._values[key] = value
        self._save()
        for listener in [*self._listeners.get(key, []), *self._listeners.get(ANY_KEY, [])]:
            try:
                listener(key, value)
            except Exception as e:
                logger.warning(f"Preference listener error for {key}: {e}")

    def subscribe(self, key: str, listener: PreferenceListener) -> Callable[[], None]:
        """Register ``listener`` for writes to ``key`` (or ``ANY_KEY``).

        Returns:
            Callable that removes the subscription
        """
        self._listeners.setdefault(key, []).append(listener)

        def unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._listeners[key].remove(listener)

        return unsubscribe

    @contextlib.contextmanager
    def track(self) -> Iterator[set[str]]:
        """Record the keys read inside the block.

        Usage:
            with store.track() as deps:
                render(store.use_web_search)
            for key in deps:
                store.subscribe(key, rerender)
        """
        deps: set[str] = set()
        self._tracking.append(deps)
        try:
            yield deps
        finally:
            self._tracking.remove(deps)

    # ------------------------------------------------------------------
    # Typed properties
    # ------------------------------------------------------------------

    @property
    def use_web_search(self) -> bool:
        return _coerce_bool(self.get(KEY_USE_WEB_SEARCH))

    @use_web_search.setter
    def use_web_search(self, value: bool) -> None:
        self.set(KEY_USE_WEB_SEARCH, bool(value))

    @property
    def use_context(self) -> bool:
        return _coerce_bool(self.get(KEY_USE_CONTEXT))

    @use_context.setter
    def use_context(self, value: bool) -> None:
        self.set(KEY_USE_CONTEXT, bool(value))

    @property
    def external_model(self) -> str:
        value = self.get(KEY_EXTERNAL_MODEL)
        return str(value) if value else DEFAULT_EXTERNAL_MODEL

    @external_model.setter
    def external_model(self, value: str) -> None:
        self.set(KEY_EXTERNAL_MODEL, str(value))

    @property
    def local_model(self) -> str:
        value = self.get(KEY_LOCAL_MODEL)
        return str(value) if value else NO_LOCAL_MODEL

    @local_model.setter
    def local_model(self, value: str) -> None:
        self.set(KEY_LOCAL_MODEL, str(value))

    @property
    def is_local_generation(self) -> bool:
        return _coerce_bool(self.get(KEY_IS_LOCAL_GENERATION))

    @is_local_generation.setter
    def is_local_generation(self, value: bool) -> None:
        self.set(KEY_IS_LOCAL_GENERATION, bool(value))

    @property
    def chat_clear_interval(self) -> str:
        return str(self.get(KEY_CHAT_CLEAR_INTERVAL))

    @chat_clear_interval.setter
    def chat_clear_interval(self, value: str) -> None:
        self.set(KEY_CHAT_CLEAR_INTERVAL, str(value))


__all__ = [
    "ANY_KEY",
    "DEFAULTS",
    "KEY_CHAT_CLEAR_INTERVAL",
    "KEY_EXTERNAL_MODEL",
    "KEY_IS_LOCAL_GENERATION",
    "KEY_LOCAL_MODEL",
    "KEY_USE_CONTEXT",
    "KEY_USE_WEB_SEARCH",
    "PreferencesStore",
]
