"""
Transcript
==========

User-visible transcript of system messages and breadcrumbs (e.g. "Session
handed off to: haikuWriter"). Rendering is someone else's job; this only
keeps the ordered items.
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

from utils.ml_logging import get_logger

logger = get_logger("services.transcript")


@dataclass
class TranscriptItem:
    item_id: str
    kind: str  # "message" or "breadcrumb"
    role: str = "assistant"
    text: str = ""
    title: str = ""
    data: dict[str, Any] | None = None
    hidden: bool = False
    created_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "kind": self.kind,
            "role": self.role,
            "text": self.text,
            "title": self.title,
            "data": self.data,
            "hidden": self.hidden,
            "created_at": self.created_at,
        }


class TranscriptLog:
    """Ordered transcript items."""

    def __init__(self) -> None:
        self._items: list[TranscriptItem] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._items)

    def add_message(self, text: str, role: str = "assistant", hidden: bool = False) -> TranscriptItem:
        item = TranscriptItem(
            item_id=uuid.uuid4().hex,
            kind="message",
            role=role,
            text=text,
            hidden=hidden,
        )
        with self._lock:
            self._items.append(item)
        return item

    def add_breadcrumb(self, title: str, data: dict[str, Any] | None = None) -> TranscriptItem:
        item = TranscriptItem(
            item_id=uuid.uuid4().hex,
            kind="breadcrumb",
            role="system",
            title=title,
            data=data,
        )
        with self._lock:
            self._items.append(item)
        logger.debug("Breadcrumb | title=%s", title)
        return item

    def items(self, include_hidden: bool = False) -> list[TranscriptItem]:
        with self._lock:
            return [i for i in self._items if include_hidden or not i.hidden]

    def messages(self) -> list[str]:
        return [i.text for i in self.items() if i.kind == "message"]

    def breadcrumbs(self) -> list[str]:
        return [i.title for i in self.items() if i.kind == "breadcrumb"]

    def clear(self) -> None:
        with self._lock:
            self._items.clear()


__all__ = ["TranscriptItem", "TranscriptLog"]
