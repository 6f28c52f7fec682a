"""Shared building blocks for the sub-GHz protocol decoders and encoders."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Optional, Union

UINT32_MAX = 0xFFFFFFFF
UINT64_MASK = 0xFFFFFFFFFFFFFFFF

Value = Union[str, int]


class ProtocolError(Exception):
    """Raised when protocol data cannot be serialized or deserialized."""


@dataclass(frozen=True)
class LevelDuration:
    """One signal level held for a duration in microseconds."""

    level: bool
    duration: int

    @classmethod
    def reset(cls) -> "LevelDuration":
        """The marker that ends a transmission."""
        return cls(False, 0)

    @property
    def is_reset(self) -> bool:
        return self.duration == 0


@dataclass
class RadioPreset:
    """Modulation preset and frequency a signal was received on."""

    name: str
    frequency: int
    data: bytes = b""


class FlipperFormat:
    """An ordered key/value document read with a forward-moving cursor."""

    def __init__(self) -> None:
        self._entries: list[tuple[str, Value]] = []
        self._cursor = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[tuple[str, Value]]:
        return iter(list(self._entries))

    def __contains__(self, key: object) -> bool:
        return any(name == key for name, _ in self._entries)

    def keys(self) -> list[str]:
        return [name for name, _ in self._entries]

    @staticmethod
    def _check(value: Value) -> Value:
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, int):
            if not 0 <= value <= UINT32_MAX:
                raise ValueError(f"value {value} does not fit in 32 bits")
            return value
        if isinstance(value, str):
            return value
        raise TypeError(f"unsupported value type: {type(value).__name__}")

    def rewind(self) -> None:
        """Move the read cursor back to the first entry."""
        self._cursor = 0

    def write(self, key: str, value: Value) -> None:
        """Append an entry."""
        self._entries.append((key, self._check(value)))

    def insert_or_update(self, key: str, value: Value) -> None:
        """Replace the value of an existing key, or append it."""
        value = self._check(value)
        for position, (name, _) in enumerate(self._entries):
            if name == key:
                self._entries[position] = (key, value)
                return
        self._entries.append((key, value))

    def _read(self, key: str) -> Optional[Value]:
        for position in range(self._cursor, len(self._entries)):
            name, value = self._entries[position]
            if name == key:
                self._cursor = position + 1
                return value
        return None

    def read_string(self, key: str) -> Optional[str]:
        """Read the next value under key as text, or None if there is none."""
        value = self._read(key)
        return None if value is None else str(value)

    def read_uint32(self, key: str) -> Optional[int]:
        """Read the next value under key as an unsigned 32-bit number."""
        value = self._read(key)
        if value is None:
            return None
        if isinstance(value, int):
            return value
        try:
            number = int(value.strip())
        except ValueError:
            return None
        return number if 0 <= number <= UINT32_MAX else None

    def to_text(self) -> str:
        return "".join(f"{name}: {value}\n" for name, value in self._entries)


@dataclass
class BlockDecoder:
    """Bit accumulator and parser state shared by the decoders."""

    parser_step: int = 0
    te_last: int = 0
    decode_data: int = 0
    decode_count_bit: int = 0

    def add_bit(self, bit: int) -> None:
        """Shift one bit into the accumulated data."""
        self.decode_data = ((self.decode_data << 1) | (1 if bit else 0)) & UINT64_MASK
        self.decode_count_bit += 1

    def hash_data(self, byte_count: int) -> int:
        """XOR of the lowest byte_count bytes of the accumulated data."""
        raw = self.decode_data.to_bytes(8, "little")[: max(0, min(byte_count, 8))]
        result = 0
        for byte in raw:
            result ^= byte
        return result


@dataclass
class BlockGeneric:
    """Decoded fields common to all protocols."""

    protocol_name: str = ""
    data: int = 0
    data_count_bit: int = 0
    serial: int = 0
    btn: int = 0
    cnt: int = 0

    def serialize(self, flipper_format: FlipperFormat, preset: Optional[RadioPreset]) -> None:
        """Write the preset, protocol, bit count and key."""
        if preset is not None:
            flipper_format.insert_or_update("Frequency", preset.frequency)
            flipper_format.insert_or_update("Preset", preset.name)
        flipper_format.insert_or_update("Protocol", self.protocol_name)
        flipper_format.insert_or_update("Bit", self.data_count_bit)
        key = (self.data & UINT64_MASK).to_bytes(8, "big")
        flipper_format.insert_or_update("Key", " ".join(f"{byte:02X}" for byte in key))

    def deserialize(self, flipper_format: FlipperFormat) -> None:
        """Read the bit count and key back."""
        flipper_format.rewind()
        bits = flipper_format.read_uint32("Bit")
        if bits is None:
            raise ProtocolError("missing Bit")
        key = flipper_format.read_string("Key")
        if key is None:
            raise ProtocolError("missing Key")
        digits = key.replace(" ", "")
        if not digits or len(digits) > 16:
            raise ProtocolError(f"invalid Key: {key!r}")
        try:
            data = int(digits, 16)
        except ValueError as exc:
            raise ProtocolError(f"invalid Key: {key!r}") from exc
        self.data_count_bit = bits
        self.data = data

    def deserialize_check_count_bit(self, flipper_format: FlipperFormat, count_bit: int) -> None:
        """Deserialize and require an exact bit count."""
        self.deserialize(flipper_format)
        if self.data_count_bit != count_bit:
            raise ProtocolError(
                f"wrong bit count {self.data_count_bit}, expected {count_bit}"
            )


def duration_diff(a: int, b: int) -> int:
    """Absolute difference between two durations."""
    return abs(a - b)


def reverse_key(key: int, bit_count: int) -> int:
    """Reverse the order of the lowest bit_count bits of key."""
    result = 0
    for position in range(bit_count):
        result = (result << 1) | ((key >> position) & 1)
    return result