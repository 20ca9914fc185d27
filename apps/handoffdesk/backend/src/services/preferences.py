"""
Preference Store
================

Persisted operator/user toggles. Two keys are used by the session manager:

- ``push_to_talk`` (default ``DEFAULT_PUSH_TO_TALK``, False): manual turn-taking instead of server VAD
- ``audio_playback`` (default ``DEFAULT_AUDIO_PLAYBACK``, True): play agent audio; False mutes the transport
"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Dict, Protocol

from apps.handoffdesk.backend.config.settings import DEFAULT_AUDIO_PLAYBACK, DEFAULT_PUSH_TO_TALK
from utils.ml_logging import get_logger

logger = get_logger("services.preferences")

PUSH_TO_TALK = "push_to_talk"
AUDIO_PLAYBACK = "audio_playback"

DEFAULTS: Dict[str, bool] = {
    PUSH_TO_TALK: DEFAULT_PUSH_TO_TALK,
    AUDIO_PLAYBACK: DEFAULT_AUDIO_PLAYBACK,
}


class PreferenceStore(Protocol):
    def get_bool(self, key: str, default: bool | None = None) -> bool: ...

    def set_bool(self, key: str, value: bool) -> None: ...


def _default_for(key: str, default: bool | None) -> bool:
    if default is not None:
        return default
    return DEFAULTS.get(key, False)


class InMemoryPreferenceStore:
    """Process-local store; used in tests and when no file is configured."""

    def __init__(self, initial: Dict[str, bool] | None = None):
        self._values: Dict[str, bool] = dict(initial or {})

    def get_bool(self, key: str, default: bool | None = None) -> bool:
        return self._values.get(key, _default_for(key, default))

    def set_bool(self, key: str, value: bool) -> None:
        self._values[key] = bool(value)


class JsonFilePreferenceStore:
    """
    Stores preferences as a flat JSON object on disk.

    A missing or corrupt file reads as defaults; the next write replaces it.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._values = self._read()

    def _read(self) -> Dict[str, bool]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Preferences file unreadable, using defaults | path=%s error=%s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Preferences file is not an object, ignoring | path=%s", self.path)
            return {}
        return {k: bool(v) for k, v in data.items()}

    def get_bool(self, key: str, default: bool | None = None) -> bool:
        return self._values.get(key, _default_for(key, default))

    def set_bool(self, key: str, value: bool) -> None:
        with self._lock:
            self._values[key] = bool(value)
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.write_text(json.dumps(self._values, indent=2, sort_keys=True), encoding="utf-8")
            except OSError as e:
                logger.warning("Preferences file not written | path=%s error=%s", self.path, e)
                return
        logger.debug("Preference saved | key=%s value=%s", key, value)


def create_preference_store(path: str | None = None) -> PreferenceStore:
    """File-backed store when a path is configured, in-memory otherwise."""
    if path is None:
        from apps.handoffdesk.backend.config.settings import PREFERENCES_FILE

        path = PREFERENCES_FILE
    if path:
        return JsonFilePreferenceStore(path)
    return InMemoryPreferenceStore()


__all__ = [
    "AUDIO_PLAYBACK",
    "DEFAULTS",
    "PUSH_TO_TALK",
    "InMemoryPreferenceStore",
    "JsonFilePreferenceStore",
    "PreferenceStore",
    "create_preference_store",
]
