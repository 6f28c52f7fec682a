# protopirate

Pure-Python decoders and encoders for several sub-GHz car key fob
protocols. It also has a history of captured packets and a radio state
machine with frequency hopping. It has no dependencies outside the
standard library.

A decoder takes a stream of `(level, duration)` pairs. The level is
`True` for high and `False` for low, and the duration is in
microseconds. The decoder fills in its fields each time a complete
packet arrives.

## Protocols

| Module                    | Protocol   | Decoder            | Encoder          |
|---------------------------|------------|--------------------|------------------|
| `protopirate.vw`          | VW         | `VwDecoder`        | none             |
| `protopirate.scher_khan`  | Scher-Khan | `ScherKhanDecoder` | none             |
| `protopirate.subaru`      | Subaru     | `SubaruDecoder`    | `protopirate.subaru_encoder.SubaruEncoder` |
| `protopirate.suzuki`      | Suzuki     | `SuzukiDecoder`    | `SuzukiEncoder`  |

## Installing

```
pip install .
```

The tests need pytest, which the `test` extra installs:

```
pip install .[test]
pytest
```

## Decoding

Every decoder takes an optional `callback` argument. The decoder calls
it with itself each time a packet is complete. Call `feed(level,
duration)` once for each pulse, and `reset()` to return the parser to
its first state.

```python
from protopirate.suzuki import SuzukiDecoder

def on_packet(decoder):
    print(decoder.get_string())

decoder = SuzukiDecoder(callback=on_packet)
for level, duration in pulses:
    decoder.feed(level, duration)
```

The decoded fields are in `decoder.generic`, a `protopirate.base.BlockGeneric`
with the members `data`, `data_count_bit`, `serial`, `btn` and `cnt`.
`get_string()` returns a short text summary with `\r\n` line endings.
`get_hash_data()` returns a one-byte hash that the history uses to spot
repeats.

Some helpers per protocol:

- `protopirate.vw`: `button_name(btn)`, the `manchester_advance(state, event)`
  state machine, and the `type_byte`, `check_byte` and `button` properties
  of `VwDecoder`.
- `protopirate.scher_khan`: `identify_remote(generic)` names the remote
  variant from the bit count. For 51-bit codes it also fills in the
  serial, button and counter.
- `protopirate.subaru`: `decode_count(data)` recovers the rolling counter
  from the eight frame bytes.
- `protopirate.suzuki`: `button_name(btn)` and the `crc` property of
  `SuzukiDecoder`.

## Capture documents

`protopirate.base.FlipperFormat` is an in-memory ordered key/value
document that is read with a forward-moving cursor. It has the methods
`write`, `insert_or_update`, `read_string`, `read_uint32` and `rewind`.
Values are text or unsigned 32-bit numbers. `to_text()` renders the
document as `Key: value` lines.

A decoder writes into a document with `serialize(flipper_format, preset)`
and reads it back with `deserialize(flipper_format)`. A missing or
malformed field raises `protopirate.base.ProtocolError`. So does a bit
count that the protocol does not accept, where the protocol checks it.
`SubaruDecoder.serialize` needs a preset.

`protopirate.base.RadioPreset` holds the preset name, the frequency in Hz
and the preset data.

## Transmitting

`SuzukiEncoder` and `SubaruEncoder` are loaded from a document with
`deserialize(flipper_format)`.

- `yield_level()` returns one `protopirate.base.LevelDuration` at a time.
  It repeats the packet `repeat` times, then returns the reset marker,
  which has a duration of 0.
- Iterating over an encoder yields the levels until that marker.
- `upload()` returns one full repetition.
- `stop()` ends the transmission early.

`SubaruEncoder` reads the key from `DataHi`/`DataLo` when both are
present, and from `Key` otherwise. It takes the repeat count from
`Repeat`, which defaults to 10. `SuzukiEncoder` always repeats 10 times.

## History

`protopirate.history.History` keeps the most recent decoded packets,
50 by default, oldest first.

- `add(decoder, preset)` stores the decoder's text and serialized data,
  and drops the oldest item when the history is full. It returns `False`
  when the same hash arrives again within 500 ms.
- `text_item_menu(idx)` gives a numbered first line and `text_item(idx)`
  the full text. Both return `"---"` when the index is out of range.
- `raw_data(idx)` and `preset(idx)` return `None` when the index is out
  of range.
- `item_count()`, `last_index()` and `reset()` complete the interface.

## Radio control

`protopirate.radio.Transceiver` drives a radio device that you supply.
The device is any object with the methods of the `RadioDevice` protocol
in that module. The transceiver tracks the states `IDLE`, `RX`, `TX`
and `SLEEP`, and raises `RadioStateError` on a transition that is not
allowed.

`hopper_update()` steps through `hopper_frequencies`. When the RSSI
rises above -90 dBm it holds the current frequency for 10 ticks.

The module also has these helpers:

- `preset_name_from_firmware(preset)` maps a firmware preset identifier
  to its short name, such as `AM650`.
- `format_frequency(frequency)` gives a label such as `433.92`.
- `format_modulation(preset_name)` gives the two-letter modulation tag.

## What this package does not do

- It does not talk to radio hardware; you supply the device object.
- It has no command-line program and no user interface.
- It does not read or write capture files on disk. `FlipperFormat` lives
  in memory, and nothing parses text back into it.
- VW and Scher-Khan packets can only be decoded, not transmitted.