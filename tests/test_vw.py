from itertools import groupby

import pytest

from protopirate.base import FlipperFormat, ProtocolError, RadioPreset
from protopirate.vw import (
    ManchesterEvent,
    ManchesterState,
    VwDecoder,
    button_name,
    manchester_advance,
)

TYPE = 0xC3
KEY = 0x0123456789ABCDEF
CHECK = 0x2F


def _bits(value, count):
    return [(value >> i) & 1 for i in range(count - 1, -1, -1)]


def _frame(type_byte=TYPE, key=KEY, check=CHECK):
    bits = _bits(type_byte, 8) + _bits(key, 64) + _bits(check, 8)
    halves = []
    for bit in bits:
        halves.extend([True, False] if bit else [False, True])
    assert halves[0] is True
    rest = [(level, 500 * len(list(group))) for level, group in groupby(halves[1:])]
    preamble = [(True, 500), (False, 500)] * 5
    start = [(True, 1000), (False, 500), (True, 750), (False, 750), (True, 500)]
    return preamble + start + rest


def _decode(pulses):
    captured = []
    decoder = VwDecoder(callback=lambda d: captured.append(
        (d.generic.data, d.data_2, d.generic.data_count_bit, d.get_string())
    ))
    for level, duration in pulses:
        decoder.feed(level, duration)
    return decoder, captured


def test_button_names():
    assert button_name(0x1) == "UNLOCK"
    assert button_name(0x8) == "PANIC"
    assert button_name(0xF) == "Unknown"


def test_manchester_short_high_then_short_low_gives_one():
    state, bit = manchester_advance(ManchesterState.MID1, ManchesterEvent.SHORT_HIGH)
    assert bit is None
    state, bit = manchester_advance(state, ManchesterEvent.SHORT_LOW)
    assert bit is True
    assert state is ManchesterState.MID1


def test_manchester_start0_long_high_gives_zero():
    state, bit = manchester_advance(ManchesterState.START0, ManchesterEvent.LONG_HIGH)
    assert bit is False
    assert state is ManchesterState.START1


def test_manchester_reset_event():
    state, bit = manchester_advance(ManchesterState.START1, ManchesterEvent.RESET)
    assert state is ManchesterState.MID1
    assert bit is None


def test_decode_full_frame():
    decoder, captured = _decode(_frame())
    assert len(captured) == 1
    data, data_2, count, _ = captured[0]
    assert data == KEY
    assert data_2 == (TYPE << 8) | CHECK
    assert count == 80
    assert decoder.type_byte == TYPE
    assert decoder.check_byte == CHECK


def test_get_string_lists_fields():
    _, captured = _decode(_frame())
    text = captured[0][3]
    assert text.startswith("VW 80bit\r\n")
    assert "Key:C30123456789ABCDEF2F" in text
    assert "LOCK" in text


def test_long_final_gap_completes_frame():
    pulses = _frame()
    assert pulses[-1] == (False, 500)
    pulses[-1] = (False, 10000)
    _, captured = _decode(pulses)
    assert len(captured) == 1
    assert captured[0][1] == (TYPE << 8) | CHECK


def test_bad_pulse_resets_decoder():
    pulses = _frame()[:40] + [(True, 3000)]
    decoder, captured = _decode(pulses)
    assert captured == []
    assert decoder.generic.data_count_bit == 0
    assert decoder.data_2 == 0


def test_serialize_and_deserialize():
    decoder, _ = _decode(_frame())
    ff = FlipperFormat()
    decoder.serialize(ff, RadioPreset(name="AM650", frequency=433920000))
    ff.rewind()
    assert ff.read_uint32("Type") == TYPE
    ff.rewind()
    assert ff.read_uint32("Check") == CHECK
    ff.rewind()
    assert ff.read_uint32("Btn") == CHECK >> 4
    restored = VwDecoder()
    restored.deserialize(ff)
    assert restored.generic.data == KEY
    assert restored.generic.data_count_bit == 80


def test_deserialize_wrong_bit_count():
    ff = FlipperFormat()
    ff.write("Protocol", "VW")
    ff.write("Bit", 64)
    ff.write("Key", "01 23 45 67 89 AB CD EF")
    with pytest.raises(ProtocolError):
        VwDecoder().deserialize(ff)