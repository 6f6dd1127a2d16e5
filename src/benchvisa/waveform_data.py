"""Captured waveform value type."""

from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass
class WaveformData:
    """Voltages of one oscilloscope channel, sampled at a uniform rate.

    Sample ``i`` was taken at ``start_time + i / sample_rate`` seconds
    relative to the trigger.
    """

    voltages: list[float]
    sample_rate: float
    start_time: float
    channel: int = 1

    def __len__(self) -> int:
        return len(self.voltages)

    @property
    def x_increment(self) -> float:
        """Seconds between samples."""
        return 1.0 / self.sample_rate

    @property
    def duration(self) -> float:
        """Time covered by the samples, in seconds."""
        return len(self.voltages) / self.sample_rate

    @property
    def peak_to_peak(self) -> float:
        if not self.voltages:
            return 0.0
        return max(self.voltages) - min(self.voltages)

    def get_times(self) -> list[float]:
        return [self.start_time + i / self.sample_rate for i in range(len(self.voltages))]

    def index_at(self, time: float) -> int:
        """Index of the sample at ``time``, clamped to ``0..len(self)``."""
        index = int((time - self.start_time) * self.sample_rate)
        return min(max(index, 0), len(self.voltages))

    def trim(self, start_time: float, end_time: float) -> WaveformData:
        """Copy of the samples taken between ``start_time`` and ``end_time``."""
        first = self.index_at(start_time)
        last = max(first, self.index_at(end_time))
        return replace(
            self,
            voltages=self.voltages[first:last],
            start_time=self.start_time + first / self.sample_rate,
        )
