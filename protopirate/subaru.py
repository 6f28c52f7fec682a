"""Subaru key-fob decoder: 64-bit PWM frames behind a long preamble."""

from __future__ import annotations

from enum import IntEnum
from typing import Callable, Optional

from .base import (
    BlockDecoder,
    BlockGeneric,
    FlipperFormat,
    ProtocolError,
    RadioPreset,
    duration_diff,
)

PROTOCOL_NAME = "Subaru"

TE_SHORT = 800
TE_LONG = 1600
TE_DELTA = 200
MIN_COUNT_BIT = 64

PREAMBLE_PAIRS = 80
GAP_US = 2800
SYNC_US = 2800
TOTAL_BURSTS = 3
INTER_BURST_GAP = 25000

_GAP_MIN = 2000
_GAP_MAX = 3500
_END_OF_PACKET = 3000
_MIN_HEADER = 20

# (byte index, mask) pairs whose clear bit sets successive bits of the low counter byte.
_LO_BITS = (
    (4, 0x40, 0x01),
    (4, 0x80, 0x02),
    (5, 0x01, 0x04),
    (5, 0x02, 0x08),
    (6, 0x01, 0x10),
    (6, 0x02, 0x20),
    (5, 0x40, 0x40),
    (5, 0x80, 0x80),
)

# (register, mask, output bit) for the high counter byte; register 1 is T1, 2 is T2.
_HI_BITS = (
    (1, 0x10, 0x04),
    (1, 0x20, 0x08),
    (2, 0x80, 0x02),
    (2, 0x40, 0x01),
    (1, 0x01, 0x40),
    (1, 0x02, 0x80),
    (2, 0x08, 0x20),
    (2, 0x04, 0x10),
)


class _Step(IntEnum):
    RESET = 0
    CHECK_PREAMBLE = 1
    FOUND_GAP = 2
    FOUND_SYNC = 3
    SAVE_DURATION = 4
    CHECK_DURATION = 5


def decode_count(data: bytes) -> int:
    """Recover the rolling counter from the eight frame bytes."""
    kb = bytes(data)
    if len(kb) != 8:
        raise ValueError(f"expected 8 bytes, got {len(kb)}")

    lo = 0
    for index, mask, out in _LO_BITS:
        if not kb[index] & mask:
            lo |= out

    reg_sh1 = (kb[7] << 4) & 0xF0
    if kb[5] & 0x04:
        reg_sh1 |= 0x04
    if kb[5] & 0x08:
        reg_sh1 |= 0x08
    if kb[6] & 0x80:
        reg_sh1 |= 0x02
    if kb[6] & 0x40:
        reg_sh1 |= 0x01

    reg_sh2 = ((kb[6] << 2) & 0xF0) | ((kb[7] >> 4) & 0x0F)

    register = (kb[3] << 16) | (kb[1] << 8) | kb[2]
    rotation = ((4 + lo) & 0xFF) % 24
    if rotation:
        register = ((register << rotation) | (register >> (24 - rotation))) & 0xFFFFFF
    ser1 = (register >> 8) & 0xFF
    ser2 = register & 0xFF

    registers = {1: ser1 ^ reg_sh1, 2: ser2 ^ reg_sh2}
    hi = 0
    for which, mask, out in _HI_BITS:
        if not registers[which] & mask:
            hi |= out

    return ((hi << 8) | lo) & 0xFFFF


def _near(duration: int, target: int) -> bool:
    return duration_diff(duration, target) < TE_DELTA


def _is_gap(duration: int) -> bool:
    return _GAP_MIN < duration < _GAP_MAX


class SubaruDecoder:
    """Decodes Subaru frames: preamble, gap, sync, then 64 PWM bits."""

    def __init__(self, callback: Optional[Callable[["SubaruDecoder"], None]] = None) -> None:
        self.callback = callback
        self.decoder = BlockDecoder()
        self.generic = BlockGeneric(protocol_name=PROTOCOL_NAME)
        self.header_count = 0
        self.bit_count = 0
        self.data = bytearray(8)
        self.key = 0
        self.serial = 0
        self.btn = 0
        self.cnt = 0

    def reset(self) -> None:
        self.decoder.parser_step = _Step.RESET
        self.decoder.te_last = 0
        self.header_count = 0
        self.bit_count = 0
        self.data = bytearray(8)

    def _add_bit(self, bit: bool) -> None:
        if self.bit_count >= MIN_COUNT_BIT:
            return
        byte_idx, offset = divmod(self.bit_count, 8)
        mask = 1 << (7 - offset)
        if bit:
            self.data[byte_idx] |= mask
        else:
            self.data[byte_idx] &= ~mask & 0xFF
        self.bit_count += 1

    def _process_data(self) -> bool:
        if self.bit_count < MIN_COUNT_BIT:
            return False
        b = self.data
        self.key = int.from_bytes(b, "big")
        self.serial = (b[1] << 16) | (b[2] << 8) | b[3]
        self.btn = b[0] & 0x0F
        self.cnt = decode_count(b)
        return True

    def _finish_packet(self) -> None:
        if self.bit_count >= MIN_COUNT_BIT and self._process_data():
            self.generic.data = self.key
            self.generic.data_count_bit = MIN_COUNT_BIT
            self.generic.serial = self.serial
            self.generic.btn = self.btn
            self.generic.cnt = self.cnt
            if self.callback is not None:
                self.callback(self)
        self.decoder.parser_step = _Step.RESET

    def feed(self, level: bool, duration: int) -> None:
        """Process one received level and its duration in microseconds."""
        dec = self.decoder
        step = dec.parser_step

        if step == _Step.RESET:
            if level and _near(duration, TE_LONG):
                dec.parser_step = _Step.CHECK_PREAMBLE
                dec.te_last = duration
                self.header_count = 1

        elif step == _Step.CHECK_PREAMBLE:
            if not level:
                if _near(duration, TE_LONG):
                    self.header_count += 1
                elif _is_gap(duration):
                    dec.parser_step = (
                        _Step.FOUND_GAP if self.header_count > _MIN_HEADER else _Step.RESET
                    )
                else:
                    dec.parser_step = _Step.RESET
            elif _near(duration, TE_LONG):
                dec.te_last = duration
                self.header_count += 1
            else:
                dec.parser_step = _Step.RESET

        elif step == _Step.FOUND_GAP:
            dec.parser_step = _Step.FOUND_SYNC if level and _is_gap(duration) else _Step.RESET

        elif step == _Step.FOUND_SYNC:
            if not level and _near(duration, TE_LONG):
                dec.parser_step = _Step.SAVE_DURATION
                self.bit_count = 0
                self.data = bytearray(8)
            else:
                dec.parser_step = _Step.RESET

        elif step == _Step.SAVE_DURATION:
            if not level:
                dec.parser_step = _Step.RESET
            elif _near(duration, TE_SHORT):
                self._add_bit(True)
                dec.te_last = duration
                dec.parser_step = _Step.CHECK_DURATION
            elif _near(duration, TE_LONG):
                self._add_bit(False)
                dec.te_last = duration
                dec.parser_step = _Step.CHECK_DURATION
            elif duration > _END_OF_PACKET:
                self._finish_packet()
            else:
                dec.parser_step = _Step.RESET

        elif step == _Step.CHECK_DURATION:
            if level:
                dec.parser_step = _Step.RESET
            elif _near(duration, TE_SHORT) or _near(duration, TE_LONG):
                dec.parser_step = _Step.SAVE_DURATION
            elif duration > _END_OF_PACKET:
                self._finish_packet()
            else:
                dec.parser_step = _Step.RESET

    def get_hash_data(self) -> int:
        return self.decoder.hash_data(self.decoder.decode_count_bit // 8 + 1)

    def serialize(self, flipper_format: FlipperFormat, preset: Optional[RadioPreset]) -> None:
        """Write the preset, decoded fields and the raw key halves."""
        if preset is None:
            raise ProtocolError("a preset is required to serialize")
        key_hi = (self.key >> 32) & 0xFFFFFFFF
        key_lo = self.key & 0xFFFFFFFF
        flipper_format.write("Frequency", preset.frequency)
        flipper_format.write("Preset", preset.name)
        flipper_format.write("Protocol", self.generic.protocol_name)
        flipper_format.write("Bit", MIN_COUNT_BIT)
        flipper_format.write("Key", f"{key_hi:08X}{key_lo:08X}")
        flipper_format.write("Serial", self.serial)
        flipper_format.write("Btn", self.btn)
        flipper_format.write("Cnt", self.cnt)
        flipper_format.write("DataHi", key_hi)
        flipper_format.write("DataLo", key_lo)

    def deserialize(self, flipper_format: FlipperFormat) -> None:
        self.generic.deserialize_check_count_bit(flipper_format, MIN_COUNT_BIT)

    def get_string(self) -> str:
        key_hi = (self.key >> 32) & 0xFFFFFFFF
        key_lo = self.key & 0xFFFFFFFF
        return (
            f"{self.generic.protocol_name} {self.generic.data_count_bit}bit\r\n"
            f"Key:{key_hi:08X}{key_lo:08X}\r\n"
            f"Sn:{self.serial:06X} Btn:{self.btn:X} Cnt:{self.cnt:04X}\r\n"
        )