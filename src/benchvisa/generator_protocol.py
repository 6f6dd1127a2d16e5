"""Function generator protocol interface."""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from benchvisa.response import WaveformParameters


class WaveformType(Enum):
    """Built-in output shapes; ``ARB`` plays a stored arbitrary waveform."""

    SINE = "SINE"
    SQUARE = "SQUARE"
    RAMP = "RAMP"
    PULSE = "PULSE"
    NOISE = "NOISE"
    DC = "DC"
    ARB = "ARB"


class FunctionGeneratorProtocol(Protocol):
    """Protocol defining the interface for function generator implementations."""

    def get_parameters(self, channel: int) -> WaveformParameters:
        """Return every basic-wave parameter the channel reports."""
        ...

    def set_waveform_type(self, waveform_type: WaveformType, channel: int) -> None: ...

    def get_waveform_type(self, channel: int) -> WaveformType: ...

    def set_frequency(self, frequency: float, channel: int) -> None: ...

    def get_frequency(self, channel: int) -> float: ...

    def set_amplitude(self, amplitude: float, channel: int) -> None: ...

    def get_amplitude(self, channel: int) -> float: ...

    def set_dc_offset(self, dc_offset: float, channel: int) -> None: ...

    def get_dc_offset(self, channel: int) -> float: ...

    def set_phase(self, phase: float, channel: int) -> None: ...

    def get_phase(self, channel: int) -> float: ...

    def set_high_level(self, high_level: float, channel: int) -> None: ...

    def get_high_level(self, channel: int) -> float: ...

    def set_low_level(self, low_level: float, channel: int) -> None: ...

    def get_low_level(self, channel: int) -> float: ...

    def set_sample_rate(self, sample_rate: float, channel: int) -> None: ...

    def get_sample_rate(self, channel: int) -> float:
        """Return the TrueArb sample rate, or -1 outside direct sample-rate mode."""
        ...

    def set_output_on(self, channel: int) -> None: ...

    def set_output_off(self, channel: int) -> None: ...

    def set_all_outputs_off(self) -> None: ...

    def get_valid_memory_locations(self) -> list[str]: ...

    def load_waveform(self, name: str, channel: int) -> None:
        """Load a stored arbitrary waveform into the channel's active memory."""
        ...

    def upload_waveform(
        self,
        voltages: Sequence[float],
        sample_rate: float,
        dc_offset: float,
        phase: float,
        memory_location: str,
    ) -> None:
        """Scale a voltage array to the instrument encoding and store it."""
        ...

    def upload_samples(
        self,
        samples: Sequence[int],
        sample_rate: float,
        low_level: float,
        high_level: float,
        dc_offset: float,
        phase: float,
        memory_location: str,
    ) -> None:
        """Store already-encoded signed 16-bit samples."""
        ...
