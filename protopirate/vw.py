"""VW key-fob decoder: 80-bit Manchester frames."""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Callable, Optional

from .base import (
    BlockDecoder,
    BlockGeneric,
    FlipperFormat,
    RadioPreset,
    duration_diff,
)

PROTOCOL_NAME = "VW"

TE_SHORT = 500
TE_LONG = 1000
TE_DELTA = 120
MIN_COUNT_BIT = 80


class ManchesterState(Enum):
    START1 = 0
    MID1 = 1
    MID0 = 2
    START0 = 3


class ManchesterEvent(Enum):
    SHORT_LOW = 0
    SHORT_HIGH = 2
    LONG_LOW = 4
    LONG_HIGH = 6
    RESET = 8


class _Step(IntEnum):
    RESET = 0
    FOUND_SYNC = 1
    FOUND_START1 = 2
    FOUND_START2 = 3
    FOUND_START3 = 4
    FOUND_DATA = 5


def manchester_advance(
    state: ManchesterState, event: ManchesterEvent
) -> tuple[ManchesterState, Optional[bool]]:
    """Advance the Manchester state machine; returns the new state and a decoded bit or None."""
    if event is ManchesterEvent.RESET:
        return ManchesterState.MID1, None
    if state in (ManchesterState.MID0, ManchesterState.MID1):
        if event is ManchesterEvent.SHORT_HIGH:
            return ManchesterState.START1, None
        if event is ManchesterEvent.SHORT_LOW:
            return ManchesterState.START0, None
        return ManchesterState.MID1, None
    if state is ManchesterState.START1:
        if event is ManchesterEvent.SHORT_LOW:
            return ManchesterState.MID1, True
        if event is ManchesterEvent.LONG_LOW:
            return ManchesterState.START0, True
        return ManchesterState.MID1, None
    if event is ManchesterEvent.SHORT_HIGH:
        return ManchesterState.MID0, False
    if event is ManchesterEvent.LONG_HIGH:
        return ManchesterState.START1, False
    return ManchesterState.MID1, None


_BUTTON_NAMES = {
    0x1: "UNLOCK",
    0x2: "LOCK",
    0x3: "Un+Lk",
    0x4: "TRUNK",
    0x5: "Un+Tr",
    0x6: "Lk+Tr",
    0x7: "Un+Lk+Tr",
    0x8: "PANIC",
}


def button_name(btn: int) -> str:
    """Human-readable name of a VW button code."""
    return _BUTTON_NAMES.get(btn, "Unknown")


def _bit_slot(bit: int) -> tuple[bool, int]:
    """Where frame bit `bit` (79 = first received) is stored: (in data_2, index)."""
    if 8 <= bit < 72:
        return False, bit - 8
    if bit >= 72:
        return True, bit - 64
    return True, bit


class VwDecoder:
    """Decodes VW frames: type byte, 64-bit key and check byte."""

    def __init__(self, callback: Optional[Callable[["VwDecoder"], None]] = None) -> None:
        self.callback = callback
        self.decoder = BlockDecoder()
        self.generic = BlockGeneric(protocol_name=PROTOCOL_NAME)
        self.manchester_state = ManchesterState.MID1
        self.data_2 = 0

    @property
    def type_byte(self) -> int:
        return (self.data_2 >> 8) & 0xFF

    @property
    def check_byte(self) -> int:
        return self.data_2 & 0xFF

    @property
    def button(self) -> int:
        return (self.check_byte >> 4) & 0xF

    def reset(self) -> None:
        self.decoder.parser_step = _Step.RESET
        self.generic.data_count_bit = 0
        self.generic.data = 0
        self.data_2 = 0
        self.manchester_state = ManchesterState.MID1

    def _add_bit(self, level: bool) -> None:
        if self.generic.data_count_bit >= MIN_COUNT_BIT:
            return
        in_data_2, index = _bit_slot(MIN_COUNT_BIT - 1 - self.generic.data_count_bit)
        mask = 1 << index
        if in_data_2:
            self.data_2 = (self.data_2 | mask) if level else (self.data_2 & ~mask)
        else:
            self.generic.data = (self.generic.data | mask) if level else (self.generic.data & ~mask)
        self.generic.data_count_bit += 1
        if self.generic.data_count_bit >= MIN_COUNT_BIT and self.callback is not None:
            self.callback(self)

    def feed(self, level: bool, duration: int) -> None:
        """Process one received level and its duration in microseconds."""
        te_med = (TE_LONG + TE_SHORT) // 2
        te_end = TE_LONG * 5
        is_short = duration_diff(duration, TE_SHORT) < TE_DELTA
        is_long = duration_diff(duration, TE_LONG) < TE_DELTA
        is_med = duration_diff(duration, te_med) < TE_DELTA
        step = self.decoder.parser_step

        if step == _Step.RESET:
            if is_short:
                self.decoder.parser_step = _Step.FOUND_SYNC
        elif step == _Step.FOUND_SYNC:
            if is_short:
                return
            self.decoder.parser_step = (
                _Step.FOUND_START1 if level and is_long else _Step.RESET
            )
        elif step == _Step.FOUND_START1:
            self.decoder.parser_step = (
                _Step.FOUND_START2 if not level and is_short else _Step.RESET
            )
        elif step == _Step.FOUND_START2:
            self.decoder.parser_step = _Step.FOUND_START3 if level and is_med else _Step.RESET
        elif step == _Step.FOUND_START3:
            if is_med:
                return
            if level and is_short:
                state, _ = manchester_advance(self.manchester_state, ManchesterEvent.RESET)
                self.manchester_state, _ = manchester_advance(
                    state, ManchesterEvent.SHORT_HIGH
                )
                self.generic.data_count_bit = 0
                self.generic.data = 0
                self.data_2 = 0
                self.decoder.parser_step = _Step.FOUND_DATA
            else:
                self.decoder.parser_step = _Step.RESET
        elif step == _Step.FOUND_DATA:
            event = ManchesterEvent.RESET
            if is_short:
                event = ManchesterEvent.SHORT_HIGH if level else ManchesterEvent.SHORT_LOW
            if is_long:
                event = ManchesterEvent.LONG_HIGH if level else ManchesterEvent.LONG_LOW
            if (
                self.generic.data_count_bit == MIN_COUNT_BIT - 1
                and not level
                and duration > te_end
            ):
                event = ManchesterEvent.SHORT_LOW
            if event is ManchesterEvent.RESET:
                self.reset()
            else:
                self.manchester_state, bit = manchester_advance(self.manchester_state, event)
                if bit is not None:
                    self._add_bit(bit)

    def get_hash_data(self) -> int:
        return self.decoder.hash_data(self.decoder.decode_count_bit // 8 + 1)

    def serialize(self, flipper_format: FlipperFormat, preset: Optional[RadioPreset]) -> None:
        self.generic.serialize(flipper_format, preset)
        flipper_format.write("Type", self.type_byte)
        flipper_format.write("Check", self.check_byte)
        flipper_format.write("Btn", self.button)

    def deserialize(self, flipper_format: FlipperFormat) -> None:
        self.generic.deserialize_check_count_bit(flipper_format, MIN_COUNT_BIT)

    def get_string(self) -> str:
        key_high = (self.generic.data >> 32) & 0xFFFFFFFF
        key_low = self.generic.data & 0xFFFFFFFF
        return (
            f"{self.generic.protocol_name} {self.generic.data_count_bit}bit\r\n"
            f"Key:{self.type_byte:02X}{key_high:08X}{key_low:08X}{self.check_byte:02X}\r\n"
            f"Type:{self.type_byte:02X} Btn:{self.button:X} {button_name(self.button)}\r\n"
        )