"""Subaru key-fob encoder: rebuilds the PWM bursts for a stored key."""

from __future__ import annotations

from typing import Iterator, Optional

from .base import FlipperFormat, LevelDuration, ProtocolError
from .subaru import (
    GAP_US,
    INTER_BURST_GAP,
    PREAMBLE_PAIRS,
    PROTOCOL_NAME,
    SYNC_US,
    TE_LONG,
    TE_SHORT,
    TOTAL_BURSTS,
)

DEFAULT_REPEAT = 10
_KEY_NIBBLES = 16


def _read_string(flipper_format: FlipperFormat, key: str) -> Optional[str]:
    value = flipper_format.read_string(key)
    if value is None:
        flipper_format.rewind()
        value = flipper_format.read_string(key)
    return value


def _read_uint32(flipper_format: FlipperFormat, key: str) -> Optional[int]:
    value = flipper_format.read_uint32(key)
    if value is None:
        flipper_format.rewind()
        value = flipper_format.read_uint32(key)
    return value


def _parse_key(text: str) -> int:
    """Hex digits up to the first invalid character, spaces skipped, at most 16 nibbles."""
    key = 0
    nibbles = 0
    for char in text:
        if nibbles >= _KEY_NIBBLES:
            break
        if char == " ":
            continue
        if char not in "0123456789abcdefABCDEF":
            break
        key = (key << 4) | int(char, 16)
        nibbles += 1
    return key


class SubaruEncoder:
    """Produces the level/duration stream that transmits a Subaru key."""

    def __init__(self) -> None:
        self.key = 0
        self.serial = 0
        self.btn = 0
        self.cnt = 0
        self.repeat = DEFAULT_REPEAT
        self.front = 0
        self.is_running = False
        self._upload: list[LevelDuration] = []

    def _build_upload(self) -> None:
        upload: list[LevelDuration] = []
        for burst in range(TOTAL_BURSTS):
            if burst > 0:
                upload.append(LevelDuration(False, INTER_BURST_GAP))
            for _ in range(PREAMBLE_PAIRS):
                upload.append(LevelDuration(True, TE_LONG))
                upload.append(LevelDuration(False, TE_LONG))
            # The last preamble low becomes the gap so two lows never run together.
            upload[-1] = LevelDuration(False, GAP_US)
            upload.append(LevelDuration(True, SYNC_US))
            upload.append(LevelDuration(False, TE_LONG))
            for bit in range(63, -1, -1):
                high = TE_SHORT if (self.key >> bit) & 1 else TE_LONG
                upload.append(LevelDuration(True, high))
                upload.append(LevelDuration(False, TE_SHORT))
            upload.append(LevelDuration(False, TE_LONG * 2))
        self._upload = upload
        self.front = 0

    def deserialize(self, flipper_format: FlipperFormat) -> None:
        """Load a stored key and prepare it for transmission."""
        self.is_running = False
        self.front = 0
        self.repeat = DEFAULT_REPEAT
        flipper_format.rewind()

        protocol = _read_string(flipper_format, "Protocol")
        if protocol is None:
            raise ProtocolError("missing Protocol")
        if protocol != PROTOCOL_NAME:
            raise ProtocolError(f"wrong protocol: {protocol}")
        if _read_uint32(flipper_format, "Bit") is None:
            raise ProtocolError("missing Bit")

        raw_high = _read_uint32(flipper_format, "DataHi")
        raw_low = _read_uint32(flipper_format, "DataLo") if raw_high is not None else None
        if raw_high is not None and raw_low is not None:
            self.key = (raw_high << 32) | raw_low
        else:
            key_text = _read_string(flipper_format, "Key")
            if key_text is None:
                raise ProtocolError("missing Key")
            self.key = _parse_key(key_text)

        serial = _read_uint32(flipper_format, "Serial")
        self.serial = serial if serial is not None else (self.key >> 32) & 0xFFFFFF

        btn = _read_uint32(flipper_format, "Btn")
        self.btn = btn & 0xFF if btn is not None else (self.key >> 56) & 0x0F

        cnt = _read_uint32(flipper_format, "Cnt")
        self.cnt = cnt & 0xFFFF if cnt is not None else 0

        repeat = _read_uint32(flipper_format, "Repeat")
        self.repeat = repeat if repeat is not None else DEFAULT_REPEAT

        self._build_upload()
        self.is_running = True

    def stop(self) -> None:
        """Stop transmitting."""
        self.is_running = False

    def yield_level(self) -> LevelDuration:
        """Next level to send, or the reset marker once transmission is over."""
        if not self.is_running or self.repeat == 0 or not self._upload:
            self.is_running = False
            return LevelDuration.reset()
        result = self._upload[self.front]
        self.front += 1
        if self.front == len(self._upload):
            self.repeat -= 1
            self.front = 0
        return result

    def __iter__(self) -> Iterator[LevelDuration]:
        while True:
            level = self.yield_level()
            if level.is_reset:
                return
            yield level

    def upload(self) -> tuple[LevelDuration, ...]:
        """One full repetition of the signal."""
        return tuple(self._upload)