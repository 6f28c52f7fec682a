"""Scher-Khan / Magicar alarm remote decoder."""

from __future__ import annotations

from enum import IntEnum
from typing import Callable, Optional

from .base import (
    BlockDecoder,
    BlockGeneric,
    FlipperFormat,
    RadioPreset,
    UINT64_MASK,
    duration_diff,
)

PROTOCOL_NAME = "Scher-Khan"

TE_SHORT = 750
TE_LONG = 1100
TE_DELTA = 160
MIN_COUNT_BIT = 35

_REMOTE_NAMES = {
    35: "MAGIC CODE, Static",
    51: "MAGIC CODE, Dynamic",
    57: "MAGIC CODE PRO/PRO2",
    63: "MAGIC CODE, Response",
    64: "MAGICAR, Response",
    81: "MAGIC CODE PRO,\n Response",
    82: "MAGIC CODE PRO,\n Response",
}


class _Step(IntEnum):
    RESET = 0
    CHECK_PREAMBLE = 1
    SAVE_DURATION = 2
    CHECK_DURATION = 3


def identify_remote(generic: BlockGeneric) -> str:
    """Name the remote variant from the bit count and fill in serial, button and counter."""
    name = _REMOTE_NAMES.get(generic.data_count_bit, "Unknown")
    if generic.data_count_bit == 51:
        data = generic.data
        generic.serial = ((data >> 24) & 0xFFFFFF0) | ((data >> 20) & 0x0F)
        generic.btn = (data >> 24) & 0x0F
        generic.cnt = data & 0xFFFF
    else:
        generic.serial = 0
        generic.btn = 0
        generic.cnt = 0
    return name


def _near(duration: int, target: int) -> bool:
    return duration_diff(duration, target) < TE_DELTA


class ScherKhanDecoder:
    """Decodes Scher-Khan PWM frames of 35 bits and more."""

    def __init__(
        self, callback: Optional[Callable[["ScherKhanDecoder"], None]] = None
    ) -> None:
        self.callback = callback
        self.decoder = BlockDecoder()
        self.generic = BlockGeneric(protocol_name=PROTOCOL_NAME)
        self.header_count = 0
        self.remote_name = ""

    def reset(self) -> None:
        self.decoder.parser_step = _Step.RESET

    def feed(self, level: bool, duration: int) -> None:
        """Process one received level and its duration in microseconds."""
        dec = self.decoder
        step = dec.parser_step

        if step == _Step.RESET:
            if level and _near(duration, TE_SHORT * 2):
                dec.parser_step = _Step.CHECK_PREAMBLE
                dec.te_last = duration
                self.header_count = 0

        elif step == _Step.CHECK_PREAMBLE:
            header_like = _near(duration, TE_SHORT * 2) or _near(duration, TE_SHORT)
            if level:
                if header_like:
                    dec.te_last = duration
                else:
                    dec.parser_step = _Step.RESET
            elif header_like:
                if _near(dec.te_last, TE_SHORT * 2):
                    self.header_count += 1
                elif _near(dec.te_last, TE_SHORT):
                    if self.header_count >= 2:
                        dec.parser_step = _Step.SAVE_DURATION
                        dec.decode_data = 0
                        dec.decode_count_bit = 1
                    else:
                        dec.parser_step = _Step.RESET
                else:
                    dec.parser_step = _Step.RESET
            else:
                dec.parser_step = _Step.RESET

        elif step == _Step.SAVE_DURATION:
            if not level:
                dec.parser_step = _Step.RESET
            elif duration >= TE_DELTA * 2 + TE_LONG:
                dec.parser_step = _Step.RESET
                if dec.decode_count_bit >= MIN_COUNT_BIT:
                    self.generic.data = dec.decode_data & UINT64_MASK
                    self.generic.data_count_bit = dec.decode_count_bit
                    if self.callback is not None:
                        self.callback(self)
                dec.decode_data = 0
                dec.decode_count_bit = 0
            else:
                dec.te_last = duration
                dec.parser_step = _Step.CHECK_DURATION

        elif step == _Step.CHECK_DURATION:
            if level:
                dec.parser_step = _Step.RESET
            elif _near(dec.te_last, TE_SHORT) and _near(duration, TE_SHORT):
                dec.add_bit(0)
                dec.parser_step = _Step.SAVE_DURATION
            elif _near(dec.te_last, TE_LONG) and _near(duration, TE_LONG):
                dec.add_bit(1)
                dec.parser_step = _Step.SAVE_DURATION
            else:
                dec.parser_step = _Step.RESET

    def get_hash_data(self) -> int:
        return self.decoder.hash_data(self.decoder.decode_count_bit // 8 + 1)

    def serialize(self, flipper_format: FlipperFormat, preset: Optional[RadioPreset]) -> None:
        """Write the preset and decoded fields."""
        if preset is not None:
            flipper_format.insert_or_update("Frequency", preset.frequency)
            flipper_format.insert_or_update("Preset", preset.name)
        flipper_format.insert_or_update("Protocol", self.generic.protocol_name)
        flipper_format.insert_or_update("Bit", self.generic.data_count_bit)
        flipper_format.insert_or_update("Key", f"{self.generic.data & UINT64_MASK:016X}")
        flipper_format.insert_or_update("Serial", self.generic.serial)
        flipper_format.insert_or_update("Btn", self.generic.btn)
        flipper_format.insert_or_update("Cnt", self.generic.cnt)

    def deserialize(self, flipper_format: FlipperFormat) -> None:
        self.generic.deserialize(flipper_format)

    def get_string(self) -> str:
        self.remote_name = identify_remote(self.generic)
        g = self.generic
        return (
            f"{g.protocol_name} {g.data_count_bit}bit\r\n"
            f"Key:0x{(g.data >> 32) & 0xFFFFFFFF:X}{g.data & 0xFFFFFFFF:08X}\r\n"
            f"Sn:{g.serial:07X} Btn:{g.btn:X}\r\n"
            f"Cntr:{g.cnt:04X}\r\n"
            f"Pt: {self.remote_name}\r\n"
        )