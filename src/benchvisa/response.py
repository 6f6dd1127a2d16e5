"""Decoding of waveform-generator status lines.

A basic-wave query (``C1:BSWV?``) answers with one line such as::

    C1:BSWV WVTP,SINE,FRQ,60HZ,PERI,0.0166667S,AMP,4V,AMPVRMS,1.414Vrms,OFST,0V,HLEV,2V,LLEV,-2V,PHSE,0

The set of keys depends on the waveform mode and the order is not fixed, so
the line is decoded pair by pair through a key table rather than by position.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, fields

from benchvisa.errors import ParseError
from benchvisa.generator_protocol import WaveformType

UNSET = -1.0
"""Value of a parameter the instrument did not report in its current mode."""

# Optional command echo before the first key, "C1:BSWV " or "C1:BSWV,"
_ECHO_RE = re.compile(r"^\s*C(?P<channel>\d+):[A-Z]+\s*[\s,]", re.IGNORECASE)


@dataclass(frozen=True)
class _Field:
    attribute: str
    suffix: str = ""


# Response key -> parameter attribute and the unit suffix its value carries.
_BASIC_WAVE_KEYS: dict[str, _Field] = {
    "FRQ": _Field("frequency", "HZ"),
    "PERI": _Field("period", "S"),
    "AMP": _Field("amplitude", "V"),
    "OFST": _Field("dc_offset", "V"),
    "SYM": _Field("symmetry", "%"),
    "DUTY": _Field("duty_cycle", "%"),
    "PHSE": _Field("phase"),
    "STDEV": _Field("stdev", "V"),
    "MEAN": _Field("mean", "V"),
    "WIDTH": _Field("width", "S"),
    "RISE": _Field("rise", "S"),
    "FALL": _Field("fall", "S"),
    "DLY": _Field("delay", "S"),
    "HLEV": _Field("high_level", "V"),
    "LLEV": _Field("low_level", "V"),
    "BANDWIDTH": _Field("bandwidth", "HZ"),
}


@dataclass
class WaveformParameters:
    """Decoded basic-wave parameters of one generator channel.

    Numeric parameters absent from the response stay at :data:`UNSET` (-1),
    which callers must read as "not applicable in the current mode".
    """

    channel: int | None = None
    wavetype: WaveformType | None = None
    frequency: float = UNSET
    period: float = UNSET
    amplitude: float = UNSET
    dc_offset: float = UNSET
    symmetry: float = UNSET
    duty_cycle: float = UNSET
    phase: float = UNSET
    stdev: float = UNSET
    mean: float = UNSET
    width: float = UNSET
    rise: float = UNSET
    fall: float = UNSET
    delay: float = UNSET
    high_level: float = UNSET
    low_level: float = UNSET
    bandwidth: float = UNSET
    band_state: str | None = None
    reported: set[str] = field(default_factory=set)

    def is_set(self, attribute: str) -> bool:
        """Return True if ``attribute`` was present in the decoded response.

        Needed for signed quantities such as ``dc_offset``, where -1 is also
        a legitimate reading.
        """
        return attribute in self.reported

    def as_dict(self) -> dict[str, object]:
        """Return the parameters that were reported, keyed by attribute name."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name in self.reported
        }


def parse_unit_value(key: str, value: str, suffix: str = "") -> float:
    """Parse ``value`` as a float after removing a trailing unit ``suffix``.

    The suffix match is case-insensitive (instruments report both ``HZ`` and
    ``Hz``). Scientific notation such as ``1.6e-08S`` is accepted.

    Raises:
        ParseError: If the remainder is not a number.
    """
    text = value.strip()
    if suffix and text.upper().endswith(suffix.upper()):
        text = text[: -len(suffix)]
    try:
        return float(text)
    except ValueError:
        raise ParseError(key, value, "not a number") from None


def parse_basic_wave(response: str) -> WaveformParameters:
    """Decode a basic-wave status line into :class:`WaveformParameters`.

    A leading command echo (``C<n>:BSWV `` or ``C<n>:BSWV,``) is consumed and
    its channel number kept; the remainder is read as ``KEY,VALUE`` pairs in
    any order. Keys not in the table are ignored.

    Raises:
        ParseError: If a known key carries a value that cannot be decoded.
    """
    params = WaveformParameters()
    body = response.strip()
    echo = _ECHO_RE.match(body)
    if echo is not None:
        params.channel = int(echo.group("channel"))
        body = body[echo.end():]

    tokens = [token.strip() for token in body.split(",")] if body else []
    for key, value in zip(tokens[0::2], tokens[1::2]):
        key = key.upper()
        if key == "WVTP":
            try:
                params.wavetype = WaveformType[value.upper()]
            except KeyError:
                raise ParseError(key, value, "unknown waveform type") from None
            params.reported.add("wavetype")
        elif key == "BANDSTATE":
            params.band_state = value.upper()
            params.reported.add("band_state")
        elif key in _BASIC_WAVE_KEYS:
            entry = _BASIC_WAVE_KEYS[key]
            setattr(params, entry.attribute, parse_unit_value(key, value, entry.suffix))
            params.reported.add(entry.attribute)
    return params


def parse_sample_rate(response: str) -> float:
    """Decode a sample-rate query response (``C1:SRATE MODE,TARB,VALUE,1e+06Sa/s``).

    Returns:
        The sample rate in samples per second, or :data:`UNSET` when the
        channel is not in TrueArb mode (short response or ``DDS`` mode).

    Raises:
        ParseError: If the value field is not a number.
    """
    body = response.strip()
    echo = _ECHO_RE.match(body)
    if echo is not None:
        body = body[echo.end():]
    tokens = [token.strip() for token in body.split(",")]
    if len(tokens) < 4 or tokens[1].upper() == "DDS":
        return UNSET
    return parse_unit_value("VALUE", tokens[3], "Sa/s")
