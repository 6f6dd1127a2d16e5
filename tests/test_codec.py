"""Tests for waveform framing, voltage decoding and upload encoding."""

import struct

import pytest

from benchvisa.codec import (
    SAMPLE_SPAN,
    CalibrationMetadata,
    build_upload_payload,
    decode_voltages,
    encode_samples,
    frame_header_length,
    samples_to_voltages,
    scale_to_samples,
    strip_frame,
    wrap_frame,
)
from benchvisa.errors import FramingError, RangeError

UPLOAD_LIMITS = {
    "min_voltage": -10.0,
    "max_voltage": 10.0,
    "min_points": 8,
    "max_points": 8000000,
}


# Frame tests


def test_strip_frame_screen_capture() -> None:
    """Verify a 1200-point block yields exactly its payload."""
    payload = bytes(i % 256 for i in range(1200))
    frame = b"#9000001200" + payload + b"\n"

    assert frame_header_length(frame) == 11
    assert strip_frame(frame) == payload


def test_strip_frame_payload_may_contain_terminator() -> None:
    """Verify 0x0A bytes inside the payload are kept."""
    payload = b"\n\x00\n\xff"

    assert strip_frame(b"#14" + payload + b"\n") == payload


@pytest.mark.parametrize("length", [0, 1, 9, 10, 255, 1200, 5000])
@pytest.mark.parametrize("width", [4, 9])
def test_strip_frame_inverts_wrap_frame(length: int, width: int) -> None:
    """Verify strip(wrap(payload)) == payload for lengths the width can express."""
    payload = bytes((i * 7) % 256 for i in range(length))

    assert strip_frame(wrap_frame(payload, width=width)) == payload


def test_strip_frame_cuts_to_declared_length() -> None:
    """Verify trailing bytes beyond the declared length are dropped."""
    assert strip_frame(b"#13abcXYZ\n") == b"abc"


def test_strip_frame_too_short() -> None:
    """Verify a frame shorter than header plus terminator is rejected."""
    with pytest.raises(FramingError, match="shorter"):
        strip_frame(b"#9000001")


@pytest.mark.parametrize("frame", [b"", b"#", b"9000001200abc\n", b"#x123\n"])
def test_strip_frame_missing_header(frame: bytes) -> None:
    """Verify frames without a '#<digit>' prefix are rejected."""
    with pytest.raises(FramingError):
        strip_frame(frame)


def test_strip_frame_invalid_length_digits() -> None:
    """Verify non-digit length characters are rejected."""
    with pytest.raises(FramingError, match="length"):
        strip_frame(b"#3a12xyz\n")


def test_wrap_frame_payload_too_long_for_width() -> None:
    """Verify a payload that does not fit the width is rejected."""
    with pytest.raises(FramingError):
        wrap_frame(b"x" * 10, width=1)


# Voltage decode tests


def test_decode_voltages_formula() -> None:
    """Verify (sample - origin - reference) * increment."""
    calibration = CalibrationMetadata(y_origin=0.0, y_increment=0.04, y_reference=127.0)

    voltages = decode_voltages(bytes([127, 152, 102]), calibration)

    assert voltages == pytest.approx([0.0, 1.0, -1.0])


def test_decode_voltages_with_origin() -> None:
    """Verify the origin shifts every sample."""
    calibration = CalibrationMetadata(y_origin=-25.0, y_increment=0.04, y_reference=127.0)

    assert decode_voltages([102], calibration) == pytest.approx([0.0])


def test_decode_voltages_linear_and_monotonic() -> None:
    """Verify each byte step adds exactly one increment."""
    calibration = CalibrationMetadata(y_origin=3.0, y_increment=0.02, y_reference=121.0)

    voltages = decode_voltages(bytes(range(256)), calibration)

    assert len(voltages) == 256
    for lower, upper in zip(voltages, voltages[1:]):
        assert upper - lower == pytest.approx(0.02)


# Upload encoding tests


def test_scale_to_samples_endpoints() -> None:
    """Verify min maps to -32768 and max to 32767."""
    voltages = [-1.0, 0.0, 1.0, 0.5, -0.5, 1.0, -1.0, 0.0]

    samples, low, high = scale_to_samples(voltages, **UPLOAD_LIMITS)

    assert (low, high) == (-1.0, 1.0)
    assert samples[0] == -32768
    assert samples[2] == 32767
    assert min(samples) == -32768
    assert max(samples) == 32767


def test_scale_to_samples_round_trip_within_quantisation() -> None:
    """Verify decoding the samples reproduces the voltages within one step."""
    voltages = [(-3.0 + i * 0.37) % 5.0 - 2.0 for i in range(100)]

    samples, low, high = scale_to_samples(voltages, **UPLOAD_LIMITS)
    decoded = samples_to_voltages(samples, low, high)

    step = (high - low) / SAMPLE_SPAN
    for original, restored in zip(voltages, decoded):
        assert abs(original - restored) <= step


def test_scale_to_samples_flat_waveform() -> None:
    """Verify a constant waveform encodes as zeros instead of dividing by zero."""
    samples, low, high = scale_to_samples([2.5] * 8, **UPLOAD_LIMITS)

    assert samples == [0] * 8
    assert low == high == 2.5


def test_scale_to_samples_above_max_voltage() -> None:
    """Verify the upper bound is named when exceeded."""
    with pytest.raises(RangeError, match="upper bound"):
        scale_to_samples([0.0] * 7 + [10.5], **UPLOAD_LIMITS)


def test_scale_to_samples_below_min_voltage() -> None:
    """Verify the lower bound is named when exceeded."""
    with pytest.raises(RangeError, match="lower bound"):
        scale_to_samples([-10.5] + [0.0] * 7, **UPLOAD_LIMITS)


def test_scale_to_samples_too_few_points() -> None:
    """Verify the point-count minimum."""
    with pytest.raises(RangeError, match="Too few points"):
        scale_to_samples([0.0, 1.0], **UPLOAD_LIMITS)


def test_scale_to_samples_too_many_points() -> None:
    """Verify the point-count maximum."""
    limits = dict(UPLOAD_LIMITS, max_points=16)
    with pytest.raises(RangeError, match="Too many points"):
        scale_to_samples([0.0] * 17, **limits)


def test_range_error_is_value_error() -> None:
    """Verify RangeError can be caught as ValueError."""
    with pytest.raises(ValueError):
        scale_to_samples([], **UPLOAD_LIMITS)


def test_encode_samples_little_endian() -> None:
    """Verify samples are packed as little-endian signed 16-bit."""
    data = encode_samples([-32768, -1, 0, 1, 32767])

    assert data == struct.pack("<5h", -32768, -1, 0, 1, 32767)
    assert data[:2] == b"\x00\x80"


def test_encode_samples_out_of_range() -> None:
    """Verify values outside 16 bits are rejected."""
    with pytest.raises(RangeError):
        encode_samples([40000])


def test_build_upload_payload() -> None:
    """Verify the textual preamble is followed directly by the sample bytes."""
    samples = [0, 1, -1, 32767, -32768, 0, 0, 0]

    payload = build_upload_payload(
        samples,
        channel=1,
        name="WAVE3",
        sample_rate=800.0,
        amplitude=2.0,
        dc_offset=0.5,
        phase=0.0,
    )

    preamble = b"C1:WVDT WVNM,WAVE3,FREQ,100.0,AMPL,2.0,OFST,0.5,PHASE,0.0,WAVEDATA,"
    assert payload.startswith(preamble)
    assert payload[len(preamble):] == struct.pack("<8h", *samples)
