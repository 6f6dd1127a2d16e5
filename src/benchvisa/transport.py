"""Transport layer for VISA instruments.

Defines the :class:`InstrumentTransport` and :class:`ResourceBus` protocols the
drivers and discovery are written against, and their PyVISA implementations.

Supported resource string formats include:
- USB: ``USB0::0x1AB1::0x04CE::DS1ZA000000001::INSTR``
- TCPIP: ``TCPIP::192.168.1.100::INSTR``
- GPIB: ``GPIB0::22::INSTR``
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Protocol

import pyvisa
from pyvisa.constants import StatusCode
from pyvisa.errors import VisaIOError, VisaTypeError

from benchvisa.errors import (
    BackendMissingError,
    InstrumentTimeoutError,
    ProtocolError,
    TransportError,
)

if TYPE_CHECKING:
    from pyvisa.resources import MessageBasedResource

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 2000
ALL_RESOURCES = "?*"


class InstrumentTransport(Protocol):
    """A line-oriented and raw-byte session with one instrument."""

    @property
    def resource_id(self) -> str:
        """The resource identifier this session is connected to."""
        ...

    def write_line(self, text: str) -> None:
        """Send one command line."""
        ...

    def query_line(self, text: str) -> str:
        """Send one line and return the response line without its terminator."""
        ...

    def read_raw(self, max_bytes: int) -> bytes:
        """Read up to ``max_bytes`` of raw data (stops at the end of the message)."""
        ...

    def write_raw(self, data: bytes, timeout_ms: int | None = None) -> None:
        """Write raw bytes, blocking for at most ``timeout_ms`` milliseconds."""
        ...

    def set_timeout(self, timeout_ms: int | None) -> None:
        """Set the I/O timeout in milliseconds (``None`` or negative waits forever)."""
        ...

    def close(self) -> None:
        """Close the session."""
        ...


class ResourceBus(Protocol):
    """Enumerates resources and opens sessions to them."""

    def list_resources(self, pattern: str = ALL_RESOURCES) -> tuple[str, ...]:
        """Return the resource identifiers visible on the bus."""
        ...

    def open(self, resource_id: str) -> InstrumentTransport:
        """Open a session to ``resource_id``."""
        ...


@contextmanager
def _visa_errors(resource_id: str, operation: str) -> Iterator[None]:
    """Translate PyVISA I/O errors into benchvisa exceptions."""
    try:
        yield
    except VisaIOError as exc:
        if exc.error_code == StatusCode.error_timeout:
            raise InstrumentTimeoutError(
                f"Timeout during {operation} on {resource_id!r}"
            ) from exc
        raise TransportError(f"{operation} failed on {resource_id!r}: {exc}") from exc
    except UnicodeDecodeError as exc:
        # Serial ports and non-SCPI devices may answer with arbitrary bytes
        raise ProtocolError(
            f"{operation} on {resource_id!r} returned undecodable data: {exc}"
        ) from exc


class VisaTransport:
    """Session with one instrument, backed by a PyVISA message-based resource.

    Args:
        resource: An open PyVISA resource.
        resource_id: The resource identifier it was opened with.
        timeout_ms: I/O timeout applied immediately.
    """

    def __init__(
        self,
        resource: MessageBasedResource,
        resource_id: str,
        *,
        timeout_ms: int | None = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self._resource: MessageBasedResource | None = resource
        self._resource_id = resource_id
        self.set_timeout(timeout_ms)

    @property
    def resource_id(self) -> str:
        return self._resource_id

    @property
    def is_open(self) -> bool:
        return self._resource is not None

    def _session(self) -> MessageBasedResource:
        if self._resource is None:
            raise TransportError(f"Session to {self._resource_id!r} is closed")
        return self._resource

    def write_line(self, text: str) -> None:
        resource = self._session()
        logger.debug("%s <- %s", self._resource_id, text)
        with _visa_errors(self._resource_id, f"write {text!r}"):
            resource.write(text)

    def query_line(self, text: str) -> str:
        resource = self._session()
        logger.debug("%s <- %s", self._resource_id, text)
        with _visa_errors(self._resource_id, f"query {text!r}"):
            response = resource.query(text)
        response = response.rstrip("\r\n")
        logger.debug("%s -> %s", self._resource_id, response)
        return response

    def read_raw(self, max_bytes: int) -> bytes:
        """Read up to ``max_bytes`` bytes with the termination character disabled.

        Binary block data may legitimately contain the line terminator, so the
        read ends only on the END indicator or the byte count.
        """
        resource = self._session()
        previous = resource.read_termination
        resource.read_termination = None
        try:
            with _visa_errors(self._resource_id, "raw read"):
                data, _status = resource.visalib.read(resource.session, max_bytes)
        finally:
            resource.read_termination = previous
        logger.debug("%s -> %d raw bytes", self._resource_id, len(data))
        return bytes(data)

    def write_raw(self, data: bytes, timeout_ms: int | None = None) -> None:
        """Write raw bytes, temporarily applying ``timeout_ms`` if given."""
        resource = self._session()
        previous = resource.timeout
        if timeout_ms is not None:
            self.set_timeout(timeout_ms)
        logger.debug("%s <- %d raw bytes", self._resource_id, len(data))
        try:
            with _visa_errors(self._resource_id, "raw write"):
                resource.write_raw(data)
        finally:
            resource.timeout = previous

    def set_timeout(self, timeout_ms: int | None) -> None:
        resource = self._session()
        if timeout_ms is None or timeout_ms < 0:
            resource.timeout = None
        else:
            resource.timeout = timeout_ms

    def close(self) -> None:
        """Close the session. Safe to call multiple times."""
        if self._resource is None:
            return
        try:
            self._resource.close()
        except VisaIOError as exc:
            logger.warning("Error closing %s: %s", self._resource_id, exc)
        self._resource = None


class VisaBus:
    """Resource enumeration and session factory backed by ``pyvisa.ResourceManager``.

    The resource manager is created lazily on first use and shared by every
    session this bus opens.

    Args:
        visa_library: PyVISA backend selector; ``""`` for the system default,
            ``"@py"`` for pyvisa-py.
        timeout_ms: Timeout applied to every session opened.
        read_termination: Line terminator for reads.
        write_termination: Line terminator appended to writes.
    """

    def __init__(
        self,
        visa_library: str = "",
        *,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        read_termination: str = "\n",
        write_termination: str = "\n",
    ) -> None:
        self._visa_library = visa_library
        self._timeout_ms = timeout_ms
        self._read_termination = read_termination
        self._write_termination = write_termination
        self._rm: pyvisa.ResourceManager | None = None

    @property
    def resource_manager(self) -> pyvisa.ResourceManager:
        """The shared resource manager.

        Raises:
            BackendMissingError: If PyVISA cannot locate a VISA implementation.
        """
        if self._rm is None:
            try:
                self._rm = pyvisa.ResourceManager(self._visa_library)
            except (ValueError, OSError) as exc:
                raise BackendMissingError(
                    "No VISA implementation found. Install NI-VISA or "
                    "pyvisa-py (pip install benchvisa[py]) and retry."
                ) from exc
        return self._rm

    def list_resources(self, pattern: str = ALL_RESOURCES) -> tuple[str, ...]:
        rm = self.resource_manager
        try:
            return tuple(rm.list_resources(pattern))
        except VisaIOError as exc:
            if exc.error_code == StatusCode.error_resource_not_found:
                return ()
            raise TransportError(f"Resource enumeration failed: {exc}") from exc

    def open(self, resource_id: str) -> VisaTransport:
        rm = self.resource_manager
        try:
            with _visa_errors(resource_id, "open"):
                resource = rm.open_resource(
                    resource_id,
                    read_termination=self._read_termination,
                    write_termination=self._write_termination,
                )
        except (VisaTypeError, ValueError) as exc:
            raise TransportError(f"Cannot open {resource_id!r}: {exc}") from exc
        return VisaTransport(resource, resource_id, timeout_ms=self._timeout_ms)

    def close(self) -> None:
        """Close the resource manager and every session it opened."""
        if self._rm is not None:
            self._rm.close()
            self._rm = None
