"""History of decoded transmissions, oldest first, capped in size."""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from typing import Callable, Optional, Protocol

from .base import FlipperFormat, RadioPreset

HISTORY_MAX = 50
DUPLICATE_WINDOW_MS = 500
EMPTY_TEXT = "---"


class Decoder(Protocol):
    def get_hash_data(self) -> int: ...

    def get_string(self) -> str: ...

    def serialize(self, flipper_format: FlipperFormat, preset: Optional[RadioPreset]) -> None: ...


@dataclass
class HistoryItem:
    """One stored transmission."""

    text: str
    flipper_format: FlipperFormat
    preset: RadioPreset


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


class History:
    """Decoded transmissions, dropping repeats and the oldest entry when full."""

    def __init__(
        self,
        max_items: int = HISTORY_MAX,
        clock: Callable[[], int] = _monotonic_ms,
    ) -> None:
        self.max_items = max_items
        self._clock = clock
        self._items: list[HistoryItem] = []
        self._last_index = 0
        self._last_hash: Optional[int] = None
        self._last_update = 0

    def __len__(self) -> int:
        return len(self._items)

    def reset(self) -> None:
        """Drop every item and restart the index."""
        self._items.clear()
        self._last_index = 0

    def add(self, decoder: Decoder, preset: RadioPreset) -> bool:
        """Store what the decoder holds; False if it repeats the last one too soon."""
        hash_data = decoder.get_hash_data()
        now = self._clock()
        if self._last_hash == hash_data and now - self._last_update < DUPLICATE_WINDOW_MS:
            self._last_update = now
            return False

        if len(self._items) >= self.max_items:
            self._items.pop(0)

        self._last_hash = hash_data
        self._last_update = now

        flipper_format = FlipperFormat()
        decoder.serialize(flipper_format, preset)
        flipper_format.rewind()
        self._items.append(
            HistoryItem(
                text=decoder.get_string(),
                flipper_format=flipper_format,
                preset=replace(preset),
            )
        )
        self._last_index += 1
        return True

    def item_count(self) -> int:
        return len(self._items)

    def last_index(self) -> int:
        return self._last_index

    def text_item_menu(self, idx: int) -> str:
        """Numbered first line of an item, or '---' when out of range."""
        if not 0 <= idx < len(self._items):
            return EMPTY_TEXT
        text = self._items[idx].text
        if "\r" in text:
            first_line = text.split("\r", 1)[0]
        else:
            first_line = text.split("\n", 1)[0]
        return f"{idx + 1}. {first_line}"

    def text_item(self, idx: int) -> str:
        """Full text of an item, or '---' when out of range."""
        if not 0 <= idx < len(self._items):
            return EMPTY_TEXT
        return self._items[idx].text

    def raw_data(self, idx: int) -> Optional[FlipperFormat]:
        """Serialized form of an item, or None when out of range."""
        if not 0 <= idx < len(self._items):
            return None
        return self._items[idx].flipper_format

    def preset(self, idx: int) -> Optional[RadioPreset]:
        """Preset an item was received on, or None when out of range."""
        if not 0 <= idx < len(self._items):
            return None
        return self._items[idx].preset