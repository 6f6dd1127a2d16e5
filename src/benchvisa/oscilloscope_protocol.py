"""Oscilloscope protocol interface."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from benchvisa.codec import CalibrationMetadata
    from benchvisa.waveform_data import WaveformData


class TriggerStatus(Enum):
    """Trigger system state as reported by the scope."""

    TRIGGERED = "TD"
    WAITING = "WAIT"
    RUNNING = "RUN"
    AUTO = "AUTO"
    STOPPED = "STOP"


class OscilloscopeProtocol(Protocol):
    """Protocol defining the interface for oscilloscope implementations."""

    def run(self) -> None:
        """Start acquiring, unfreezing the display."""
        ...

    def stop(self) -> None:
        """Stop acquiring, freezing the display."""
        ...

    def single(self) -> None:
        """Arm a single-shot trigger."""
        ...

    def enable_channel(self, channel: int) -> None: ...

    def disable_channel(self, channel: int) -> None: ...

    def is_channel_enabled(self, channel: int) -> bool: ...

    def get_wave_data(self, channel: int) -> bytes:
        """Return the on-screen waveform of a channel as raw sample bytes.

        Args:
            channel: Channel number (1-4)
        """
        ...

    def get_wave_voltages(self, channel: int) -> list[float]:
        """Return the on-screen waveform of a channel in volts."""
        ...

    def get_deep_mem_data(self, channel: int) -> bytes:
        """Return the full acquisition memory of a channel as raw sample bytes.

        Raises:
            InvalidStateError: If the memory depth is AUTO.
        """
        ...

    def get_deep_mem_voltages(self, channel: int) -> list[float]:
        """Return the full acquisition memory of a channel in volts."""
        ...

    def get_calibration(self, channel: int) -> CalibrationMetadata:
        """Select a channel as waveform source and query its scaling."""
        ...

    def get_waveform(self, channel: int, deep: bool = False) -> WaveformData:
        """Capture a channel as WaveformData, on-screen or from deep memory."""
        ...

    def get_mem_depth(self) -> int:
        """Return the memory depth in points, or 0 for AUTO."""
        ...

    def set_mem_depth(self, points: int) -> None:
        """Set the memory depth; 0 selects AUTO."""
        ...

    def get_allowed_mem_depths(self) -> tuple[int, ...]: ...

    def get_trigger_status(self) -> TriggerStatus: ...
