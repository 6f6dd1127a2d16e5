"""Chunked deep-memory acquisition.

A single waveform data query returns at most a window of points, so the
full acquisition memory is read window by window and reassembled in order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from benchvisa.codec import strip_frame
from benchvisa.errors import RangeError, TransportError

if TYPE_CHECKING:
    from benchvisa.transport import InstrumentTransport

logger = logging.getLogger(__name__)


@dataclass
class ReadWindow:
    """Progress of a deep-memory read: the next window and bytes received so far.

    Positions are 1-based and inclusive, as the instrument numbers them.
    """

    start: int
    stop: int
    received: int = 0

    def advance(self, count: int, depth: int) -> None:
        """Move past ``count`` newly received points."""
        self.received += count
        self.start += count
        if self.stop + count > depth:
            self.stop = depth
        else:
            self.stop += count


@dataclass(frozen=True)
class MemoryCommands:
    """SCPI vocabulary for windowed waveform reads."""

    start: str = ":WAVeform:STARt {position}"
    stop: str = ":WAVeform:STOP {position}"
    data: str = ":WAVeform:DATA?"


class DeepMemoryReader:
    """Reads ``depth`` sample bytes through repeated windowed block transfers.

    The caller must have selected the source channel, stopped acquisition and
    put the instrument in raw byte mode before calling :meth:`read`.

    Args:
        transport: Session to the instrument.
        window_points: Most points requested per window.
        read_bytes: Byte budget of each raw read (payload plus framing).
        commands: Window and data command templates.
    """

    def __init__(
        self,
        transport: InstrumentTransport,
        *,
        window_points: int,
        read_bytes: int,
        commands: MemoryCommands | None = None,
    ) -> None:
        if window_points < 1 or read_bytes < 1:
            raise RangeError("window_points and read_bytes must be positive")
        self._transport = transport
        self._window_points = window_points
        self._read_bytes = read_bytes
        self._commands = commands or MemoryCommands()

    def read(self, depth: int) -> bytes:
        """Read exactly ``depth`` sample bytes, in acquisition order.

        Raises:
            RangeError: If ``depth`` is not positive.
            TransportError: If a window returns no payload.
            InstrumentTimeoutError: If any transfer times out. The partial
                buffer is discarded.
        """
        if depth < 1:
            raise RangeError(f"Memory depth must be positive, got {depth}")

        window = ReadWindow(start=1, stop=min(depth, self._window_points))
        buffer = bytearray()
        while window.received < depth:
            logger.debug(
                "Deep memory window %d..%d (%d/%d received)",
                window.start,
                window.stop,
                window.received,
                depth,
            )
            self._transport.write_line(self._commands.start.format(position=window.start))
            self._transport.write_line(self._commands.stop.format(position=window.stop))
            self._transport.write_line(self._commands.data)
            payload = strip_frame(self._transport.read_raw(self._read_bytes))
            if not payload:
                raise TransportError(
                    f"Empty waveform block at position {window.start} of {depth}"
                )
            buffer += payload
            window.advance(len(payload), depth)

        return bytes(buffer[:depth])
