import pytest

from protopirate.base import RadioPreset
from protopirate.radio import (
    HopperState,
    RadioStateError,
    Transceiver,
    TxRxState,
    format_frequency,
    format_modulation,
    preset_name_from_firmware,
)


class FakeDevice:
    def __init__(self, rssi=-120.0, valid=None):
        self.calls = []
        self.rssi = rssi
        self.valid = valid
        self.frequency = None

    def reset(self):
        self.calls.append("reset")

    def idle(self):
        self.calls.append("idle")

    def sleep(self):
        self.calls.append("sleep")

    def load_preset(self, preset_data):
        self.calls.append(("load_preset", preset_data))

    def is_frequency_valid(self, frequency):
        return self.valid is None or frequency in self.valid

    def set_frequency(self, frequency):
        self.frequency = frequency
        self.calls.append(("set_frequency", frequency))
        return frequency

    def flush_rx(self):
        self.calls.append("flush_rx")

    def set_rx(self):
        self.calls.append("set_rx")

    def set_tx(self):
        self.calls.append("set_tx")

    def start_async_rx(self, callback):
        self.calls.append("start_async_rx")

    def stop_async_rx(self):
        self.calls.append("stop_async_rx")

    def get_rssi(self):
        return self.rssi


class FakeReceiver:
    def __init__(self):
        self.resets = 0

    def reset(self):
        self.resets += 1


FREQS = [310000000, 315000000, 433920000]


def make(device=None, **kwargs):
    device = device or FakeDevice()
    preset = RadioPreset(name="AM650", frequency=433920000)
    return Transceiver(device, preset, **kwargs), device


def test_preset_names():
    assert preset_name_from_firmware("FuriHalSubGhzPresetOok270Async") == "AM270"
    assert preset_name_from_firmware("FuriHalSubGhzPreset2FSKDev476Async") == "FM476"
    assert preset_name_from_firmware("FuriHalSubGhzPresetCustom") == "CUSTOM"


def test_unknown_preset_raises():
    with pytest.raises(ValueError):
        preset_name_from_firmware("Bogus")


def test_format_frequency():
    assert format_frequency(433920000) == "433.92"
    assert format_frequency(315000000) == "315.00"


def test_format_modulation():
    assert format_modulation("AM650") == "AM"
    assert format_modulation("FM238") == "FM"


def test_begin_loads_preset():
    radio, device = make()
    radio.begin(b"\x01\x02")
    assert device.calls == ["reset", "idle", ("load_preset", b"\x01\x02")]
    assert radio.state is TxRxState.IDLE


def test_rx_and_rx_end():
    radio, device = make()
    assert radio.rx(315000000) == 315000000
    assert radio.state is TxRxState.RX
    assert radio.worker_running
    radio.rx_end()
    assert radio.state is TxRxState.IDLE
    assert not radio.worker_running
    assert "stop_async_rx" in device.calls


def test_rx_invalid_frequency():
    radio, _ = make(FakeDevice(valid={433920000}))
    with pytest.raises(ValueError):
        radio.rx(1)


def test_rx_twice_raises():
    radio, _ = make()
    radio.rx(315000000)
    with pytest.raises(RadioStateError):
        radio.rx(315000000)


def test_rx_end_when_idle_raises():
    radio, _ = make()
    with pytest.raises(RadioStateError):
        radio.rx_end()


def test_sleep_blocks_idle_and_rx():
    radio, _ = make()
    radio.sleep()
    assert radio.state is TxRxState.SLEEP
    with pytest.raises(RadioStateError):
        radio.idle()
    with pytest.raises(RadioStateError):
        radio.rx(315000000)


def test_tx_and_stop():
    radio, device = make()
    assert radio.tx(433920000)
    assert radio.state is TxRxState.TX
    assert device.calls[-1] == "set_tx"
    radio.tx_stop()
    assert radio.state is TxRxState.IDLE


def test_tx_invalid_frequency_is_ignored():
    radio, _ = make(FakeDevice(valid={433920000}))
    assert radio.tx(1) is False
    assert radio.state is TxRxState.IDLE


def test_tx_stop_without_tx_raises():
    radio, _ = make()
    with pytest.raises(RadioStateError):
        radio.tx_stop()


def test_hopper_off_does_nothing():
    radio, device = make(hopper_frequencies=FREQS)
    radio.hopper_update()
    assert radio.hopper_idx_frequency == 0
    assert device.calls == []


def test_hopper_advances_and_wraps():
    receiver = FakeReceiver()
    radio, device = make(
        hopper_frequencies=FREQS, receiver=receiver, hopper_state=HopperState.RUNNING
    )
    radio.hopper_update()
    assert radio.hopper_idx_frequency == 1
    assert radio.preset.frequency == FREQS[1]
    assert radio.state is TxRxState.RX
    radio.hopper_update()
    radio.hopper_update()
    assert radio.hopper_idx_frequency == 0
    assert device.frequency == FREQS[0]
    assert receiver.resets == 3


def test_hopper_holds_on_strong_signal():
    device = FakeDevice(rssi=-50.0)
    radio, _ = make(device, hopper_frequencies=FREQS, hopper_state=HopperState.RUNNING)
    radio.hopper_update()
    assert radio.hopper_state is HopperState.RSSI_TIMEOUT
    assert radio.hopper_timeout == 10
    assert radio.hopper_idx_frequency == 0
    for _ in range(10):
        radio.hopper_update()
    assert radio.hopper_timeout == 0
    assert radio.hopper_idx_frequency == 0
    radio.hopper_update()
    assert radio.hopper_state is HopperState.RUNNING
    assert radio.hopper_idx_frequency == 1


def test_hopper_without_frequencies_raises():
    radio, _ = make(hopper_state=HopperState.RUNNING)
    with pytest.raises(RadioStateError):
        radio.hopper_update()