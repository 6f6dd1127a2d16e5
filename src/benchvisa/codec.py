"""Waveform sample encoding and decoding.

Read path: oscilloscopes return samples as an IEEE 488.2 definite-length
block, ``#`` + one width digit ``w`` + ``w`` length digits + payload + a
terminator byte. Each payload byte is one unsigned 8-bit sample, converted
to volts with the per-channel calibration the scope reports.

Write path: arbitrary waveform generators take signed 16-bit little-endian
samples spanning the full integer range, preceded by a textual preamble.
"""

from __future__ import annotations

import sys
from array import array
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from benchvisa.errors import FramingError, RangeError

SAMPLE_MIN = -32768
SAMPLE_SPAN = 65535


@dataclass(frozen=True)
class CalibrationMetadata:
    """Per-channel scaling reported by the oscilloscope for the current source.

    Queried fresh for every transfer; never cached.
    """

    y_origin: float
    y_increment: float
    y_reference: float
    x_increment: float = 0.0

    def to_volts(self, sample: int) -> float:
        """Convert one raw sample byte to volts."""
        return (sample - self.y_origin - self.y_reference) * self.y_increment


def decode_voltages(samples: Iterable[int], calibration: CalibrationMetadata) -> list[float]:
    """Convert raw unsigned sample bytes to calibrated voltages.

    ``voltage = (sample - y_origin - y_reference) * y_increment``
    """
    return [calibration.to_volts(sample) for sample in samples]


def frame_header_length(frame: bytes) -> int:
    """Return the length of a block header, ``2 + width digit``.

    Raises:
        FramingError: If the frame does not start with ``#<digit>``.
    """
    if len(frame) < 2 or frame[0:1] != b"#" or not frame[1:2].isdigit():
        raise FramingError(f"Missing block header in {bytes(frame[:12])!r}")
    return 2 + int(frame[1:2])


def strip_frame(frame: bytes) -> bytes:
    """Return the payload of a definite-length block, without header or terminator.

    The payload is the bytes between the header and the final terminator
    byte, bounded by the length the header declares.

    Raises:
        FramingError: If the header is malformed or the buffer is shorter than
            the header plus terminator.
    """
    header_length = frame_header_length(frame)
    if len(frame) < header_length + 1:
        raise FramingError(
            f"Frame of {len(frame)} bytes is shorter than its "
            f"{header_length}-byte header plus terminator"
        )
    digits = frame[2:header_length]
    if not digits.isdigit():
        raise FramingError(f"Invalid block length field {bytes(digits)!r}")
    declared = int(digits)
    return bytes(frame[header_length:-1][:declared])


def wrap_frame(payload: bytes, width: int = 9, terminator: bytes = b"\n") -> bytes:
    """Wrap ``payload`` in a definite-length block header and terminator.

    Raises:
        FramingError: If the payload length does not fit in ``width`` digits.
    """
    if not 1 <= width <= 9 or len(payload) >= 10**width:
        raise FramingError(f"Payload of {len(payload)} bytes does not fit width {width}")
    return b"#" + str(width).encode("ascii") + f"{len(payload):0{width}d}".encode("ascii") + payload + terminator


def scale_to_samples(
    voltages: Sequence[float],
    *,
    min_voltage: float,
    max_voltage: float,
    min_points: int,
    max_points: int,
) -> tuple[list[int], float, float]:
    """Map voltages onto the full signed 16-bit range.

    The lowest voltage maps to -32768 and the highest to 32767. A flat
    waveform maps to 0.

    Args:
        voltages: Waveform points in volts.
        min_voltage: Lowest voltage the instrument can output.
        max_voltage: Highest voltage the instrument can output.
        min_points: Fewest points the instrument accepts.
        max_points: Most points the instrument accepts.

    Returns:
        The encoded samples, the waveform's low level and its high level.

    Raises:
        RangeError: If a bound is violated.
    """
    if len(voltages) < min_points:
        raise RangeError(f"Too few points: {len(voltages)} < minimum {min_points}")
    if len(voltages) > max_points:
        raise RangeError(f"Too many points: {len(voltages)} > maximum {max_points}")
    low = min(voltages)
    high = max(voltages)
    if high > max_voltage:
        raise RangeError(f"Maximum voltage {high} V exceeds upper bound {max_voltage} V")
    if low < min_voltage:
        raise RangeError(f"Minimum voltage {low} V is below lower bound {min_voltage} V")

    span = high - low
    if span == 0:
        return [0] * len(voltages), low, high
    samples = [round(SAMPLE_MIN + ((v - low) / span) * SAMPLE_SPAN) for v in voltages]
    return samples, low, high


def samples_to_voltages(samples: Iterable[int], low: float, high: float) -> list[float]:
    """Inverse of :func:`scale_to_samples`, within one quantisation step."""
    span = high - low
    return [((s - SAMPLE_MIN) / SAMPLE_SPAN) * span + low for s in samples]


def encode_samples(samples: Sequence[int]) -> bytes:
    """Pack signed 16-bit samples little-endian, regardless of host byte order.

    Raises:
        RangeError: If a sample does not fit in 16 bits.
    """
    try:
        packed = array("h", samples)
    except OverflowError as exc:
        raise RangeError(f"Sample out of signed 16-bit range: {exc}") from exc
    if sys.byteorder == "big":
        packed.byteswap()
    return packed.tobytes()


def build_upload_payload(
    samples: Sequence[int],
    *,
    channel: int,
    name: str,
    sample_rate: float,
    amplitude: float,
    dc_offset: float,
    phase: float,
) -> bytes:
    """Compose the arbitrary-waveform upload message.

    The textual preamble carries the slot name and playback metadata
    (frequency is ``sample_rate / len(samples)``); the binary samples follow
    it directly so the whole message goes out in one raw write.
    """
    frequency = sample_rate / len(samples)
    preamble = (
        f"C{channel}:WVDT WVNM,{name},FREQ,{frequency},AMPL,{amplitude},"
        f"OFST,{dc_offset},PHASE,{phase},WAVEDATA,"
    )
    return preamble.encode("ascii") + encode_samples(samples)
