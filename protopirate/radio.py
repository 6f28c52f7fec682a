"""Receive/transmit state machine and frequency hopping over a radio device."""

from __future__ import annotations

from enum import Enum
from typing import Callable, Optional, Protocol, Sequence

from .base import RadioPreset

RSSI_THRESHOLD = -90.0
RSSI_TIMEOUT_TICKS = 10

_FIRMWARE_PRESETS = {
    "FuriHalSubGhzPresetOok270Async": "AM270",
    "FuriHalSubGhzPresetOok650Async": "AM650",
    "FuriHalSubGhzPreset2FSKDev238Async": "FM238",
    "FuriHalSubGhzPreset2FSKDev12KAsync": "FM12K",
    "FuriHalSubGhzPreset2FSKDev476Async": "FM476",
    "FuriHalSubGhzPresetCustom": "CUSTOM",
}


class TxRxState(Enum):
    IDLE = 0
    RX = 1
    TX = 2
    SLEEP = 3


class HopperState(Enum):
    OFF = 0
    RUNNING = 1
    PAUSE = 2
    RSSI_TIMEOUT = 3


class RadioStateError(RuntimeError):
    """Raised when the radio is asked to do something its state forbids."""


class RadioDevice(Protocol):
    def reset(self) -> None: ...

    def idle(self) -> None: ...

    def sleep(self) -> None: ...

    def load_preset(self, preset_data: bytes) -> None: ...

    def is_frequency_valid(self, frequency: int) -> bool: ...

    def set_frequency(self, frequency: int) -> int: ...

    def flush_rx(self) -> None: ...

    def set_rx(self) -> None: ...

    def set_tx(self) -> None: ...

    def start_async_rx(self, callback: Optional[Callable[[bool, int], None]]) -> None: ...

    def stop_async_rx(self) -> None: ...

    def get_rssi(self) -> float: ...


class Receiver(Protocol):
    def reset(self) -> None: ...


def preset_name_from_firmware(preset: str) -> str:
    """Short preset name for a firmware preset identifier."""
    try:
        return _FIRMWARE_PRESETS[preset]
    except KeyError:
        raise ValueError(f"unknown preset: {preset!r}") from None


def format_frequency(frequency: int) -> str:
    """Frequency in Hz as 'MMM.kk' megahertz text."""
    return f"{frequency // 1000000 % 1000:03d}.{frequency // 10000 % 100:02d}"


def format_modulation(preset_name: str) -> str:
    """The two-letter modulation tag of a preset name."""
    return preset_name[:2]


class Transceiver:
    """Drives a radio device through idle, receive, transmit and sleep."""

    def __init__(
        self,
        device: RadioDevice,
        preset: RadioPreset,
        hopper_frequencies: Sequence[int] = (),
        receiver: Optional[Receiver] = None,
        hopper_state: HopperState = HopperState.OFF,
        on_signal: Optional[Callable[[bool, int], None]] = None,
    ) -> None:
        self.device = device
        self.preset = preset
        self.hopper_frequencies = list(hopper_frequencies)
        self.receiver = receiver
        self.on_signal = on_signal
        self.state = TxRxState.IDLE
        self.hopper_state = hopper_state
        self.hopper_idx_frequency = 0
        self.hopper_timeout = 0
        self.worker_running = False

    def begin(self, preset_data: bytes) -> None:
        """Reset the device and load a preset."""
        self.device.reset()
        self.device.idle()
        self.device.load_preset(preset_data)
        self.state = TxRxState.IDLE

    def rx(self, frequency: int) -> int:
        """Start receiving on frequency; returns the frequency actually set."""
        if not self.device.is_frequency_valid(frequency):
            raise ValueError(f"incorrect RX frequency: {frequency}")
        if self.state in (TxRxState.RX, TxRxState.SLEEP):
            raise RadioStateError(f"cannot start receiving while {self.state.name}")
        self.device.idle()
        value = self.device.set_frequency(frequency)
        self.device.flush_rx()
        self.device.set_rx()
        self.device.start_async_rx(self.on_signal)
        self.worker_running = True
        self.state = TxRxState.RX
        return value

    def idle(self) -> None:
        if self.state is TxRxState.SLEEP:
            raise RadioStateError("cannot go idle while asleep")
        self.device.idle()
        self.state = TxRxState.IDLE

    def rx_end(self) -> None:
        """Stop receiving and go idle."""
        if self.state is not TxRxState.RX:
            raise RadioStateError(f"not receiving ({self.state.name})")
        if self.worker_running:
            self.worker_running = False
            self.device.stop_async_rx()
        self.device.idle()
        self.state = TxRxState.IDLE

    def sleep(self) -> None:
        self.device.sleep()
        self.state = TxRxState.SLEEP

    def hopper_update(self) -> None:
        """One hopper tick: hold on a strong signal, otherwise move to the next frequency."""
        if self.hopper_state in (HopperState.OFF, HopperState.PAUSE):
            return
        if self.hopper_state is HopperState.RSSI_TIMEOUT:
            if self.hopper_timeout != 0:
                self.hopper_timeout -= 1
                return
            self.hopper_state = HopperState.RUNNING
        else:
            if self.device.get_rssi() > RSSI_THRESHOLD:
                self.hopper_timeout = RSSI_TIMEOUT_TICKS
                self.hopper_state = HopperState.RSSI_TIMEOUT
                return

        if not self.hopper_frequencies:
            raise RadioStateError("no hopper frequencies configured")
        if self.hopper_idx_frequency < len(self.hopper_frequencies) - 1:
            self.hopper_idx_frequency += 1
        else:
            self.hopper_idx_frequency = 0

        if self.state is TxRxState.RX:
            self.rx_end()
        if self.state is TxRxState.IDLE:
            if self.receiver is not None:
                self.receiver.reset()
            self.preset.frequency = self.hopper_frequencies[self.hopper_idx_frequency]
            self.rx(self.preset.frequency)

    def tx(self, frequency: int) -> bool:
        """Switch to transmit on frequency; False if the frequency is not valid."""
        if not self.device.is_frequency_valid(frequency):
            return False
        if self.state is not TxRxState.IDLE:
            raise RadioStateError(f"cannot transmit while {self.state.name}")
        self.device.idle()
        self.device.set_frequency(frequency)
        self.device.set_tx()
        self.state = TxRxState.TX
        return True

    def tx_stop(self) -> None:
        if self.state is not TxRxState.TX:
            raise RadioStateError(f"not transmitting ({self.state.name})")
        self.device.idle()
        self.state = TxRxState.IDLE