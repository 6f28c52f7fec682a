"""Suzuki key-fob decoder and encoder: 64-bit PWM frames behind a long preamble."""

from __future__ import annotations

from enum import IntEnum
from typing import Callable, Iterator, Optional

from .base import (
    BlockDecoder,
    BlockGeneric,
    FlipperFormat,
    LevelDuration,
    RadioPreset,
    UINT64_MASK,
    duration_diff,
)

PROTOCOL_NAME = "Suzuki"

TE_SHORT = 250
TE_LONG = 500
TE_DELTA = 99
MIN_COUNT_BIT = 64

PREAMBLE_COUNT = 350
GAP_TIME = 2000
GAP_DELTA = 399

DEFAULT_REPEAT = 10
_MIN_PREAMBLE = 300

_BUTTON_NAMES = {
    1: "Panic",
    2: "Trunk",
    3: "Lock",
    4: "Unlock",
}


class _Step(IntEnum):
    RESET = 0
    COUNT_PREAMBLE = 1
    DECODE_DATA = 2


def button_name(btn: int) -> str:
    """Human-readable name of a Suzuki button code."""
    return _BUTTON_NAMES.get(btn, "Unknown")


def _near_short(duration: int) -> bool:
    return duration_diff(duration, TE_SHORT) <= TE_DELTA


def _near_long(duration: int) -> bool:
    return duration_diff(duration, TE_LONG) <= TE_DELTA


class SuzukiDecoder:
    """Decodes Suzuki frames: short-pulse preamble, then 64 PWM bits and a gap."""

    def __init__(self, callback: Optional[Callable[["SuzukiDecoder"], None]] = None) -> None:
        self.callback = callback
        self.decoder = BlockDecoder()
        self.generic = BlockGeneric(protocol_name=PROTOCOL_NAME)
        self.header_count = 0

    @property
    def crc(self) -> int:
        return (self.generic.data >> 4) & 0xFF

    def reset(self) -> None:
        self.decoder.parser_step = _Step.RESET

    def _complete(self) -> None:
        data = self.decoder.decode_data & UINT64_MASK
        self.generic.data = data
        self.generic.data_count_bit = MIN_COUNT_BIT
        data_high = (data >> 32) & 0xFFFFFFFF
        data_low = data & 0xFFFFFFFF
        self.generic.serial = ((data_high & 0xFFF) << 16) | (data_low >> 16)
        self.generic.btn = (data_low >> 12) & 0xF
        self.generic.cnt = ((data_high << 4) & 0xFFFFFFFF) >> 16
        if self.callback is not None:
            self.callback(self)

    def feed(self, level: bool, duration: int) -> None:
        """Process one received level and its duration in microseconds."""
        dec = self.decoder
        step = dec.parser_step

        if step == _Step.RESET:
            if level and _near_short(duration):
                dec.decode_data = 0
                dec.decode_count_bit = 0
                dec.parser_step = _Step.COUNT_PREAMBLE
                self.header_count = 0

        elif step == _Step.COUNT_PREAMBLE:
            if level:
                if self.header_count >= _MIN_PREAMBLE and _near_long(duration):
                    dec.parser_step = _Step.DECODE_DATA
                    dec.add_bit(1)
            elif _near_short(duration):
                dec.te_last = duration
                self.header_count = (self.header_count + 1) & 0xFFFF
            else:
                dec.parser_step = _Step.RESET

        elif step == _Step.DECODE_DATA:
            if level:
                if _near_long(duration):
                    dec.add_bit(1)
                elif duration < TE_LONG and _near_short(duration):
                    dec.add_bit(0)
            elif duration_diff(duration, GAP_TIME) <= GAP_DELTA:
                if dec.decode_count_bit == MIN_COUNT_BIT:
                    self._complete()
                dec.decode_data = 0
                dec.decode_count_bit = 0
                dec.parser_step = _Step.RESET

    def get_hash_data(self) -> int:
        return self.decoder.hash_data(self.generic.data_count_bit // 8 + 1)

    def serialize(self, flipper_format: FlipperFormat, preset: Optional[RadioPreset]) -> None:
        """Write the generic fields, then CRC, serial, button and counter."""
        self.generic.serialize(flipper_format, preset)
        flipper_format.write("CRC", self.crc)
        flipper_format.write("Serial", self.generic.serial)
        flipper_format.write("Btn", self.generic.btn)
        flipper_format.write("Cnt", self.generic.cnt)

    def deserialize(self, flipper_format: FlipperFormat) -> None:
        self.generic.deserialize(flipper_format)

    def get_string(self) -> str:
        g = self.generic
        key_high = (g.data >> 32) & 0xFFFFFFFF
        key_low = g.data & 0xFFFFFFFF
        return (
            f"{g.protocol_name} {g.data_count_bit}bit\r\n"
            f"Key:{key_high:08X}{key_low:08X}\r\n"
            f"Sn:{g.serial:07X} Btn:{g.btn:X} {button_name(g.btn)}\r\n"
            f"Cnt:{g.cnt:04X} CRC:{self.crc:02X}\r\n"
        )


class SuzukiEncoder:
    """Produces the level/duration stream that transmits a Suzuki key."""

    def __init__(self) -> None:
        self.generic = BlockGeneric(protocol_name=PROTOCOL_NAME)
        self.repeat = DEFAULT_REPEAT
        self.front = 0
        self.is_running = False
        self._upload: list[LevelDuration] = []

    def _build_upload(self) -> None:
        upload: list[LevelDuration] = []
        for _ in range(PREAMBLE_COUNT):
            upload.append(LevelDuration(True, TE_SHORT))
            upload.append(LevelDuration(False, TE_SHORT))
        for bit in range(63, -1, -1):
            high = TE_LONG if (self.generic.data >> bit) & 1 else TE_SHORT
            upload.append(LevelDuration(True, high))
            upload.append(LevelDuration(False, TE_SHORT))
        upload.append(LevelDuration(False, GAP_TIME))
        self._upload = upload
        self.front = 0

    def deserialize(self, flipper_format: FlipperFormat) -> None:
        """Load a stored key and prepare it for transmission."""
        self.generic.deserialize(flipper_format)
        self._build_upload()
        self.is_running = True
        self.repeat = DEFAULT_REPEAT

    def stop(self) -> None:
        """Stop transmitting."""
        self.is_running = False

    def yield_level(self) -> LevelDuration:
        """Next level to send, or the reset marker once transmission is over."""
        if self.repeat == 0 or not self.is_running or not self._upload:
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