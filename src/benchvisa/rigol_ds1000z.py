"""Rigol DS1000Z oscilloscope implementation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from benchvisa.codec import CalibrationMetadata, decode_voltages, strip_frame
from benchvisa.device import DeviceKind, InstrumentDevice
from benchvisa.errors import InvalidStateError, ParseError, RangeError
from benchvisa.memory import DeepMemoryReader
from benchvisa.oscilloscope_protocol import TriggerStatus
from benchvisa.waveform_data import WaveformData

if TYPE_CHECKING:
    from benchvisa.transport import ResourceBus

logger = logging.getLogger(__name__)


class RigolDS1000Z(InstrumentDevice):
    """Rigol DS1000Z series (DS1054Z, DS1104Z) oscilloscope using SCPI over VISA."""

    kind = DeviceKind.OSCILLOSCOPE
    model_string = "RIGOL TECHNOLOGIES,DS1104Z"
    num_channels = 4

    MIN_VOLTAGE_SCALE = 0.01
    MAX_VOLTAGE_SCALE = 100.0
    MIN_TIME_SCALE = 5e-9
    MAX_TIME_SCALE = 50.0
    VOLTAGE_SCALE_PRESETS = (0.01, 0.02, 0.05, 0.1, 0.2, 0.5, 1, 2, 5, 10, 20, 50, 100)
    VOLTAGE_SCALE_PRESET_STRINGS = (
        "10mV", "20mV", "50mV", "100mV", "200mV", "500mV",
        "1V", "2V", "5V", "10V", "20V", "50V", "100V",
    )
    TIME_SCALE_PRESETS = (
        5e-9, 10e-9, 20e-9, 50e-9, 100e-9, 200e-9, 500e-9,
        1e-6, 2e-6, 5e-6, 10e-6, 20e-6, 50e-6, 100e-6, 200e-6, 500e-6,
        1e-3, 2e-3, 5e-3, 10e-3, 20e-3, 50e-3, 100e-3, 200e-3, 500e-3,
        1, 2, 5, 10, 20, 50,
    )
    TIME_SCALE_PRESET_STRINGS = (
        "5ns", "10ns", "20ns", "50ns", "100ns", "200ns", "500ns",
        "1us", "2us", "5us", "10us", "20us", "50us", "100us", "200us", "500us",
        "1ms", "2ms", "5ms", "10ms", "20ms", "50ms", "100ms", "200ms", "500ms",
        "1s", "2s", "5s", "10s", "20s", "50s",
    )
    # Offset limits are +/- these constants times the current scale
    VOLTAGE_OFFSET_SCALE_CONSTANT = 8.0
    TRIGGER_POSITION_SCALE_CONSTANT = 5.0
    TIME_OFFSET_SCALE_CONSTANT = 10.0
    HORIZONTAL_DIVISIONS = 12
    VERTICAL_DIVISIONS = 8
    CHANNEL_COLORS = {1: "#D4AA00", 2: "#00CCCC", 3: "#CC00CC", 4: "#4169E1"}

    # Valid memory depths depend on which channels are enabled
    CHANNEL_ONE_ONLY_MEM_DEPTHS = (12000, 120000, 1200000, 12000000, 24000000)
    DUAL_CHANNEL_MEM_DEPTHS = (6000, 60000, 600000, 6000000, 12000000)
    MULTI_CHANNEL_MEM_DEPTHS = (3000, 30000, 300000, 3000000, 6000000)

    SCREEN_POINTS = 1200
    SCREEN_READ_BYTES = 3000
    # Most points the scope returns for one :WAV:DATA? in BYTE format
    DEEP_MEMORY_WINDOW = 250000
    DEEP_MEMORY_READ_BYTES = DEEP_MEMORY_WINDOW + 12

    @classmethod
    def auto_connect(cls, bus: ResourceBus | None = None) -> RigolDS1000Z:
        """Find the first Rigol DS1000Z on the VISA bus and return it.

        Raises:
            ConnectionError: If no Rigol DS1000Z oscilloscope is found.
        """
        # discovery imports the registry, which imports this module
        from benchvisa.discovery import discover

        result = discover(DeviceKind.OSCILLOSCOPE, bus=bus)
        scope = next((d for d in result.devices if isinstance(d, cls)), None)
        for device in result.devices:
            if device is not scope:
                device.close()
        if scope is None:
            raise ConnectionError("No Rigol DS1000Z oscilloscope found")
        return scope

    # -- Acquisition control -------------------------------------------------

    def run(self) -> None:
        self._write(":RUN")

    def stop(self) -> None:
        self._write(":STOP")

    def single(self) -> None:
        self._write(":SINGle")

    def auto_scale(self) -> None:
        """Press AUTO; also enables every channel that carries a signal."""
        self._write(":AUToscale")

    def get_trigger_status(self) -> TriggerStatus:
        response = self._query(":TRIGger:STATus?").strip().upper()
        try:
            return TriggerStatus(response)
        except ValueError:
            raise ParseError(":TRIGger:STATus?", response, "unknown trigger status") from None

    # -- Channels ------------------------------------------------------------

    def enable_channel(self, channel: int) -> None:
        self.check_channel(channel)
        self._write(f":CHANnel{channel}:DISPlay ON")

    def disable_channel(self, channel: int) -> None:
        self.check_channel(channel)
        self._write(f":CHANnel{channel}:DISPlay OFF")

    def is_channel_enabled(self, channel: int) -> bool:
        self.check_channel(channel)
        return self._query(f":CHANnel{channel}:DISPlay?").strip() == "1"

    def get_enabled_channels(self) -> set[int]:
        return {
            channel
            for channel in range(1, self.num_channels + 1)
            if self.is_channel_enabled(channel)
        }

    def get_channel_color(self, channel: int) -> str:
        """Trace colour of a channel as shown on the scope, as a hex string."""
        self.check_channel(channel)
        return self.CHANNEL_COLORS[channel]

    def set_active_channel(self, channel: int) -> None:
        """Select the waveform source that data and calibration queries refer to."""
        self.check_channel(channel)
        self._write(f":WAVeform:SOURce CHAN{channel}")

    def get_active_channel(self) -> int:
        # Response looks like "CHAN2"
        response = self._query(":WAVeform:SOURce?").strip().upper()
        if not response.startswith("CHAN") or not response[4:].isdigit():
            raise ParseError(":WAVeform:SOURce?", response, "not a channel source")
        return int(response[4:])

    # -- Vertical ------------------------------------------------------------

    def get_y_scale(self, channel: int) -> float:
        self.check_channel(channel)
        return self._query_float(f":CHANnel{channel}:SCALe?")

    def set_y_scale(self, channel: int, voltage_scale: float) -> None:
        self.check_channel(channel)
        if not self.MIN_VOLTAGE_SCALE <= voltage_scale <= self.MAX_VOLTAGE_SCALE:
            raise RangeError(
                f"Voltage scale {voltage_scale} V/div outside "
                f"{self.MIN_VOLTAGE_SCALE}..{self.MAX_VOLTAGE_SCALE}"
            )
        self._write(f":CHANnel{channel}:SCALe {voltage_scale}")

    def get_y_offset(self, channel: int) -> float:
        self.check_channel(channel)
        return self._query_float(f":CHANnel{channel}:OFFSet?")

    def set_y_offset(self, channel: int, offset: float) -> None:
        self.check_channel(channel)
        limit = self.get_y_scale(channel) * self.VOLTAGE_OFFSET_SCALE_CONSTANT
        if abs(offset) > limit:
            raise RangeError(f"Offset {offset} V outside +/-{limit} V at the current scale")
        self._write(f":CHANnel{channel}:OFFSet {offset}")

    # -- Horizontal and trigger ----------------------------------------------

    def get_time_scale(self) -> float:
        return self._query_float(":TIMebase:MAIN:SCALe?")

    def set_time_scale(self, time_scale: float) -> None:
        if not self.MIN_TIME_SCALE <= time_scale <= self.MAX_TIME_SCALE:
            raise RangeError(
                f"Time scale {time_scale} s/div outside "
                f"{self.MIN_TIME_SCALE}..{self.MAX_TIME_SCALE}"
            )
        self._write(f":TIMebase:MAIN:SCALe {time_scale}")

    def get_time_offset(self) -> float:
        return self._query_float(":TIMebase:MAIN:OFFSet?")

    def set_time_offset(self, offset: float) -> None:
        self._write(f":TIMebase:MAIN:OFFSet {offset}")

    def get_trigger_level(self) -> float:
        return self._query_float(":TRIGger:EDGe:LEVel?")

    def set_trigger_level(self, level: float) -> None:
        self._write(f":TRIGger:EDGe:LEVel {level}")

    # -- Memory depth --------------------------------------------------------

    def get_mem_depth(self) -> int:
        """Return the memory depth in points, or 0 when it is AUTO."""
        response = self._query(":ACQuire:MDEPth?").strip()
        if response.upper() == "AUTO":
            return 0
        try:
            return int(float(response))
        except ValueError:
            raise ParseError(":ACQuire:MDEPth?", response, "not a memory depth") from None

    def set_mem_depth(self, points: int) -> None:
        """Set the memory depth; 0 selects AUTO.

        Raises:
            RangeError: If ``points`` is not allowed for the enabled channels.
        """
        if points == 0:
            self._write(":ACQuire:MDEPth AUTO")
            return
        allowed = self.get_allowed_mem_depths()
        if points not in allowed:
            raise RangeError(f"Memory depth {points} not in allowed depths {allowed}")
        self._write(f":ACQuire:MDEPth {points}")

    def get_allowed_mem_depths(self) -> tuple[int, ...]:
        """Memory depths valid for the channels currently enabled.

        Channel 1 shares its memory differently from the other channels:
        alone it gets the largest depths, and with one other channel it still
        gets the dual-channel depths.
        """
        enabled = self.get_enabled_channels()
        if len(enabled) <= 1:
            if enabled == {1}:
                return self.CHANNEL_ONE_ONLY_MEM_DEPTHS
            return self.DUAL_CHANNEL_MEM_DEPTHS
        if len(enabled) == 2 and 1 in enabled:
            return self.DUAL_CHANNEL_MEM_DEPTHS
        return self.MULTI_CHANNEL_MEM_DEPTHS

    # -- Waveform transfer ---------------------------------------------------

    def _query_calibration(self) -> CalibrationMetadata:
        return CalibrationMetadata(
            y_origin=self._query_float(":WAVeform:YORigin?"),
            y_increment=self._query_float(":WAVeform:YINCrement?"),
            y_reference=self._query_float(":WAVeform:YREFerence?"),
            x_increment=self._query_float(":WAVeform:XINCrement?"),
        )

    def get_calibration(self, channel: int) -> CalibrationMetadata:
        """Select ``channel`` as waveform source and query its scaling."""
        with self._lock:
            self.set_active_channel(channel)
            return self._query_calibration()

    def get_wave_data(self, channel: int) -> bytes:
        """Retrieve the on-screen waveform of a channel as raw sample bytes.

        Args:
            channel: Channel number (1-4)
        """
        self.check_channel(channel)
        with self._lock:
            self.set_active_channel(channel)
            self._write(":WAVeform:MODE NORMal")
            self._write(":WAVeform:FORMat BYTE")
            self._write(":WAVeform:STARt 1")
            self._write(f":WAVeform:STOP {self.SCREEN_POINTS}")
            frame = self._read_raw(":WAVeform:DATA?", self.SCREEN_READ_BYTES)
        return strip_frame(frame)

    def get_wave_voltages(self, channel: int) -> list[float]:
        with self._lock:
            raw = self.get_wave_data(channel)
            calibration = self._query_calibration()
        return decode_voltages(raw, calibration)

    def get_deep_mem_data(self, channel: int) -> bytes:
        """Download the whole acquisition memory of a channel in RAW mode.

        Acquisition is stopped first. The download is windowed; a timeout in
        any window aborts the whole transfer.

        Raises:
            InvalidStateError: If the memory depth is AUTO.
        """
        self.check_channel(channel)
        with self._lock:
            self.set_active_channel(channel)
            self.stop()
            depth = self.get_mem_depth()
            if depth == 0:
                raise InvalidStateError(
                    "Cannot download deep memory while memory depth is AUTO"
                )
            self._write(":WAVeform:MODE RAW")
            self._write(":WAVeform:FORMat BYTE")
            reader = DeepMemoryReader(
                self._transport,
                window_points=self.DEEP_MEMORY_WINDOW,
                read_bytes=self.DEEP_MEMORY_READ_BYTES,
            )
            data = reader.read(depth)
        logger.info("Read %d points of deep memory from channel %d", len(data), channel)
        return data

    def get_deep_mem_voltages(self, channel: int) -> list[float]:
        with self._lock:
            raw = self.get_deep_mem_data(channel)
            calibration = self._query_calibration()
        return decode_voltages(raw, calibration)

    def get_waveform(self, channel: int, deep: bool = False) -> WaveformData:
        """Capture a channel as WaveformData, from the screen or from deep memory.

        Screen captures take timing from the waveform preamble. Deep-memory
        captures take the sample rate from the acquisition system, since the
        preamble x-increment is unreliable in RAW mode, and place the start of
        memory half the record before the trigger offset.
        """
        with self._lock:
            if not deep:
                voltages = self.get_wave_voltages(channel)
                x_increment = self._query_float(":WAVeform:XINCrement?")
                x_origin = self._query_float(":WAVeform:XORigin?")
                return WaveformData(
                    voltages=voltages,
                    sample_rate=1.0 / x_increment,
                    start_time=x_origin,
                    channel=channel,
                )

            voltages = self.get_deep_mem_voltages(channel)
            sample_rate = self._query_float(":ACQuire:SRATe?")
            trigger_offset = self.get_time_offset()
        total_duration = len(voltages) / sample_rate
        return WaveformData(
            voltages=voltages,
            sample_rate=sample_rate,
            start_time=-(total_duration / 2) + trigger_offset,
            channel=channel,
        )

    def get_waveforms(self, channels: list[int], deep: bool = False) -> dict[int, WaveformData]:
        """Retrieve waveform data from multiple channels.

        Downloads each channel sequentially; all share the same trigger when
        acquisition is stopped.
        """
        waveforms = {}
        for channel in channels:
            waveforms[channel] = self.get_waveform(channel, deep=deep)
        return waveforms
