"""Siglent SDG2000X arbitrary waveform generator implementation."""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence

from benchvisa.codec import build_upload_payload, scale_to_samples
from benchvisa.device import DeviceKind, InstrumentDevice
from benchvisa.errors import InstrumentTimeoutError, ParseError, RangeError
from benchvisa.generator_protocol import WaveformType
from benchvisa.response import WaveformParameters, parse_basic_wave, parse_sample_rate

logger = logging.getLogger(__name__)


class SiglentSDG2000X(InstrumentDevice):
    """Siglent SDG2000X series (SDG2042X) generator using SCPI over VISA.

    The instrument has no SCPI command to delete stored waveforms, so a fixed
    set of user memory slots (``WAVE1`` .. ``WAVE10``) is reused.
    """

    kind = DeviceKind.FUNCTION_GENERATOR
    model_string = "Siglent Technologies,SDG2042X"
    num_channels = 2

    NUM_MEMORY_SLOTS = 10
    MAX_SUPPORTED_VOLTAGE = 10.0
    MIN_SUPPORTED_VOLTAGE = -10.0
    MAX_AMPLITUDE = 20.0
    MIN_POINTS = 8
    MAX_POINTS = 8000000
    # Sample rate assumed for restoring state when the channel was not in ARB
    DEFAULT_SAMPLE_RATE = 400.0
    UPLOAD_CHANNEL = 1
    NORMAL_TIMEOUT_MS = 2000
    UPLOAD_TIMEOUT_MS = 30000
    LOAD_POLL_INTERVAL = 0.5
    ADDITIONAL_DATA_READ_BYTES = 1 << 20

    def get_valid_memory_locations(self) -> list[str]:
        return [f"WAVE{i}" for i in range(1, self.NUM_MEMORY_SLOTS + 1)]

    def get_waveform_list(self) -> list[str]:
        return self.get_valid_memory_locations()

    def _check_memory_location(self, name: str) -> None:
        if name not in self.get_valid_memory_locations():
            raise RangeError(f"Memory location {name!r} does not exist on {self.model_string}")

    def get_max_supported_voltage(self) -> float:
        return self.MAX_SUPPORTED_VOLTAGE

    def get_min_supported_voltage(self) -> float:
        return self.MIN_SUPPORTED_VOLTAGE

    # -- Outputs -------------------------------------------------------------

    def set_output_on(self, channel: int) -> None:
        self.check_channel(channel)
        self._write(f"C{channel}:OUTP ON")

    def set_output_off(self, channel: int) -> None:
        self.check_channel(channel)
        self._write(f"C{channel}:OUTP OFF")

    def set_all_outputs_off(self) -> None:
        for channel in range(1, self.num_channels + 1):
            self.set_output_off(channel)

    def calibrate_waveform(self, channel: int) -> None:
        """Output the reference sine (25 Hz, 0.5 Vpp, no offset) on a channel."""
        self.check_channel(channel)
        self._write(f"C{channel}:BSWV WVTP,SINE,AMP,.5V,FRQ,25,OFST,0V,PHSE,0")
        self.set_output_on(channel)

    # -- Basic wave parameters -----------------------------------------------

    def get_parameters(self, channel: int) -> WaveformParameters:
        """Query ``C<n>:BSWV?`` and decode every parameter it reports."""
        self.check_channel(channel)
        return parse_basic_wave(self._query(f"C{channel}:BSWV?"))

    def _set_basic_wave(self, channel: int, key: str, value: object) -> None:
        self.check_channel(channel)
        self._write(f"C{channel}:BSWV {key},{value}")

    def set_waveform_type(self, waveform_type: WaveformType, channel: int) -> None:
        self._set_basic_wave(channel, "WVTP", waveform_type.value)

    def get_waveform_type(self, channel: int) -> WaveformType:
        params = self.get_parameters(channel)
        if params.wavetype is None:
            raise ParseError("WVTP", "", f"channel {channel} reported no waveform type")
        return params.wavetype

    def set_frequency(self, frequency: float, channel: int) -> None:
        self._set_basic_wave(channel, "FRQ", frequency)

    def get_frequency(self, channel: int) -> float:
        return self.get_parameters(channel).frequency

    def set_amplitude(self, amplitude: float, channel: int) -> None:
        self._set_basic_wave(channel, "AMP", amplitude)

    def get_amplitude(self, channel: int) -> float:
        return self.get_parameters(channel).amplitude

    def set_dc_offset(self, dc_offset: float, channel: int) -> None:
        self._set_basic_wave(channel, "OFST", dc_offset)

    def get_dc_offset(self, channel: int) -> float:
        return self.get_parameters(channel).dc_offset

    def set_phase(self, phase: float, channel: int) -> None:
        self._set_basic_wave(channel, "PHSE", phase)

    def get_phase(self, channel: int) -> float:
        return self.get_parameters(channel).phase

    def set_high_level(self, high_level: float, channel: int) -> None:
        self._set_basic_wave(channel, "HLEV", f"{high_level}V")

    def get_high_level(self, channel: int) -> float:
        return self.get_parameters(channel).high_level

    def set_low_level(self, low_level: float, channel: int) -> None:
        self._set_basic_wave(channel, "LLEV", f"{low_level}V")

    def get_low_level(self, channel: int) -> float:
        return self.get_parameters(channel).low_level

    # -- TrueArb sample rate -------------------------------------------------

    def set_sample_rate(self, sample_rate: float, channel: int) -> None:
        """Switch a channel to TrueArb mode playing at ``sample_rate``."""
        self.check_channel(channel)
        self._write(f"C{channel}:SRATE MODE,TARB,VALUE,{sample_rate}")

    def get_sample_rate(self, channel: int) -> float:
        """Return the TrueArb sample rate, or -1 when the channel is in DDS mode."""
        self.check_channel(channel)
        return parse_sample_rate(self._query(f"C{channel}:SRATE?"))

    # -- Arbitrary waveform memory -------------------------------------------

    def load_waveform(self, name: str, channel: int) -> None:
        """Load a stored waveform into a channel in TrueArb mode.

        Blocks until the instrument reports operation complete.

        Raises:
            RangeError: If ``name`` is not a valid memory location.
            InstrumentTimeoutError: If loading does not finish within the
                upload timeout.
        """
        self.check_channel(channel)
        self._check_memory_location(name)
        with self._lock:
            self._set_timeout(self.UPLOAD_TIMEOUT_MS)
            try:
                self._write(f"C{channel}:SRATE MODE,TARB")
                self._write(f"C{channel}:ARWV NAME,{name}")
                self._write("*CLS")
                self._write("*OPC")
                self._wait_operation_complete(self.UPLOAD_TIMEOUT_MS / 1000)
            finally:
                self._set_timeout(self.NORMAL_TIMEOUT_MS)
        logger.info("Loaded %s into channel %d", name, channel)

    def _wait_operation_complete(self, timeout_s: float) -> None:
        deadline = time.monotonic() + timeout_s
        while True:
            response = self._query("*ESR?").strip()
            try:
                status = int(response)
            except ValueError:
                raise ParseError("*ESR?", response, "not an integer") from None
            if status & 1:
                return
            if time.monotonic() >= deadline:
                raise InstrumentTimeoutError(
                    f"Operation did not complete within {timeout_s} s"
                )
            time.sleep(self.LOAD_POLL_INTERVAL)

    def upload_waveform(
        self,
        voltages: Sequence[float],
        sample_rate: float,
        dc_offset: float,
        phase: float,
        memory_location: str,
    ) -> None:
        """Scale ``voltages`` onto the 16-bit sample range and store them.

        The waveform's own minimum and maximum become its low and high level.

        Raises:
            RangeError: If a voltage, the peak-to-peak amplitude, the point
                count or the memory location is out of bounds.
        """
        self._check_memory_location(memory_location)
        samples, low, high = scale_to_samples(
            voltages,
            min_voltage=self.MIN_SUPPORTED_VOLTAGE,
            max_voltage=self.MAX_SUPPORTED_VOLTAGE,
            min_points=self.MIN_POINTS,
            max_points=self.MAX_POINTS,
        )
        if high - low > self.MAX_AMPLITUDE:
            raise RangeError(
                f"Amplitude {high - low} Vpp exceeds maximum {self.MAX_AMPLITUDE} Vpp"
            )
        self.upload_samples(samples, sample_rate, low, high, dc_offset, phase, memory_location)

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
        """Store signed 16-bit samples in a memory slot.

        Uploading makes the instrument adopt the frequency, offset and phase
        stored with the waveform, so the basic-wave state of the upload
        channel (and its TrueArb sample rate) is captured first and restored
        afterwards.

        Raises:
            RangeError: If the point count, levels or memory location are out
                of bounds.
        """
        if len(samples) > self.MAX_POINTS:
            raise RangeError(f"Too many points: {len(samples)} > maximum {self.MAX_POINTS}")
        if len(samples) < self.MIN_POINTS:
            raise RangeError(f"Too few points: {len(samples)} < minimum {self.MIN_POINTS}")
        self._check_memory_location(memory_location)
        if high_level < low_level:
            raise RangeError("high_level must be greater than low_level")

        payload = build_upload_payload(
            samples,
            channel=self.UPLOAD_CHANNEL,
            name=memory_location,
            sample_rate=sample_rate,
            amplitude=high_level - low_level,
            dc_offset=dc_offset,
            phase=phase,
        )
        channel = self.UPLOAD_CHANNEL
        with self._lock:
            saved_state = self._query(f"C{channel}:BSWV?").strip()
            was_arb = parse_basic_wave(saved_state).wavetype is WaveformType.ARB
            saved_rate = self.get_sample_rate(channel) if was_arb else self.DEFAULT_SAMPLE_RATE

            self._write_raw(payload, self.UPLOAD_TIMEOUT_MS)
            self._write(saved_state)
            if was_arb and saved_rate > 0:
                self.set_sample_rate(saved_rate, channel)
        logger.info("Uploaded %d points to %s", len(samples), memory_location)

    def store_additional_data(self, data: bytes, memory_location: str) -> None:
        """Store an opaque byte blob alongside a memory slot."""
        self._check_memory_location(memory_location)
        preamble = f"C{self.UPLOAD_CHANNEL}:WVDT WVNM,{memory_location}_data,WAVEDATA,"
        self._write_raw(preamble.encode("ascii") + data, self.UPLOAD_TIMEOUT_MS)

    def get_additional_data(self, memory_location: str) -> bytes:
        """Read back a blob written by :meth:`store_additional_data`.

        Raises:
            ParseError: If the response carries no ``WAVEDATA`` field.
        """
        self._check_memory_location(memory_location)
        response = self._read_raw(
            f"WVDT? USER,{memory_location}_data", self.ADDITIONAL_DATA_READ_BYTES
        )
        marker = response.find(b"WAVEDATA,")
        if marker < 0:
            raise ParseError("WVDT?", response[:40].decode("ascii", "replace"), "no WAVEDATA field")
        return response[marker + len(b"WAVEDATA,"):].rstrip(b"\n")
