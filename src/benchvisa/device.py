"""Shared base for all instrument drivers."""

from __future__ import annotations

import logging
import threading
from enum import Enum
from types import TracebackType
from typing import TYPE_CHECKING, ClassVar, Self

from benchvisa.errors import ParseError, ProtocolError, RangeError
from benchvisa.identity import IDN_QUERY, InstrumentIdentity, parse_idn_response
from benchvisa.transport import VisaBus

if TYPE_CHECKING:
    from benchvisa.registry import DriverRegistry
    from benchvisa.transport import InstrumentTransport, ResourceBus

logger = logging.getLogger(__name__)


class DeviceKind(Enum):
    """Category of instrument; discovery searches one kind at a time."""

    FUNCTION_GENERATOR = "function_generator"
    OSCILLOSCOPE = "oscilloscope"


class ConnectionType(Enum):
    """How the instrument is attached."""

    VISA_USB = "visa_usb"
    VISA_GPIB = "visa_gpib"
    VISA_SERIAL = "visa_serial"
    VXI_LAN = "vxi_lan"

    @classmethod
    def from_resource_id(cls, resource_id: str) -> ConnectionType:
        """Infer the connection type from a VISA resource string prefix."""
        prefix = resource_id.upper()
        if prefix.startswith("GPIB"):
            return cls.VISA_GPIB
        if prefix.startswith("ASRL"):
            return cls.VISA_SERIAL
        if prefix.startswith("TCPIP"):
            return cls.VXI_LAN
        return cls.VISA_USB


class InstrumentDevice:
    """One connected instrument with its own session and I/O lock.

    All I/O goes through :meth:`_write`, :meth:`_query` and friends, which
    hold the instance lock so command/response pairs never interleave.
    Multi-step operations hold the lock for their whole sequence.

    Args:
        transport: Open session to the instrument; owned by the device.
    """

    kind: ClassVar[DeviceKind]
    model_string: ClassVar[str]
    num_channels: ClassVar[int]

    def __init__(self, transport: InstrumentTransport) -> None:
        self._transport = transport
        self._lock = threading.RLock()

    @classmethod
    def open(
        cls,
        resource_id: str,
        bus: ResourceBus | None = None,
        registry: DriverRegistry | None = None,
    ) -> Self:
        """Open ``resource_id`` directly with this driver, skipping discovery.

        The instrument must identify as a model that ``registry`` (the
        built-in table by default) maps to this driver.

        Raises:
            TransportError: If the resource cannot be opened or identified.
            ProtocolError: If the identification is malformed or names a model
                this driver does not handle.
        """
        if registry is None:
            # the registry imports every driver module
            from benchvisa.registry import default_registry

            registry = default_registry()
        if bus is None:
            bus = VisaBus()

        transport = bus.open(resource_id)
        try:
            identity = parse_idn_response(transport.query_line(IDN_QUERY))
            if registry.resolve(identity.model, cls.kind) is not cls:
                raise ProtocolError(
                    f"{identity.model_string} at {resource_id!r} is not handled by "
                    f"{cls.__name__}"
                )
        except Exception:
            transport.close()
            raise
        logger.info("Opened %s at %s", identity.model_string, resource_id)
        return cls(transport)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.resource_id!r})"

    def __enter__(self) -> InstrumentDevice:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def resource_id(self) -> str:
        return self._transport.resource_id

    @property
    def connection_type(self) -> ConnectionType:
        return ConnectionType.from_resource_id(self.resource_id)

    def identify(self) -> InstrumentIdentity:
        """Query and parse ``*IDN?``."""
        return parse_idn_response(self._query(IDN_QUERY))

    def get_identification_string(self) -> str:
        """Manufacturer, model and serial number concatenated."""
        return self.identify().identification_string

    def reset(self) -> None:
        """Send ``*RST``; the instrument returns to its power-on state."""
        self._write("*RST")

    def close(self) -> None:
        logger.debug("Closing %r", self)
        with self._lock:
            self._transport.close()

    def check_channel(self, channel: int) -> None:
        """Raise :class:`RangeError` unless ``1 <= channel <= num_channels``."""
        if not 1 <= channel <= self.num_channels:
            raise RangeError(
                f"Channel {channel} does not exist on {self.model_string}; "
                f"valid channels are 1 to {self.num_channels}"
            )

    # -- I/O -----------------------------------------------------------------

    def _write(self, command: str) -> None:
        with self._lock:
            self._transport.write_line(command)

    def _query(self, query: str) -> str:
        with self._lock:
            return self._transport.query_line(query)

    def _query_float(self, query: str) -> float:
        response = self._query(query)
        try:
            return float(response)
        except ValueError:
            raise ParseError(query, response, "not a number") from None

    def _read_raw(self, query: str, max_bytes: int) -> bytes:
        with self._lock:
            self._transport.write_line(query)
            return self._transport.read_raw(max_bytes)

    def _write_raw(self, data: bytes, timeout_ms: int) -> None:
        with self._lock:
            self._transport.write_raw(data, timeout_ms)

    def _set_timeout(self, timeout_ms: int | None) -> None:
        with self._lock:
            self._transport.set_timeout(timeout_ms)
