"""Shared test fixtures for benchvisa tests."""

from __future__ import annotations

import pytest

from benchvisa.codec import wrap_frame


class FakeTransport:
    """Fake instrument session that records commands and returns configured responses.

    ``query_responses`` values may be a string, a list of strings served in
    order (the last one repeats), or an exception to raise.
    """

    def __init__(self, resource_id: str = "TEST::RESOURCE") -> None:
        self._resource_id = resource_id
        self.commands: list[tuple[str, str]] = []
        self.query_responses: dict[str, object] = {}
        self.raw_reads: list[bytes] = []
        self.raw_writes: list[tuple[bytes, int | None]] = []
        self.timeouts: list[int | None] = []
        self.closed = False

    @property
    def resource_id(self) -> str:
        return self._resource_id

    def write_line(self, text: str) -> None:
        self.commands.append(("write", text))

    def query_line(self, text: str) -> str:
        self.commands.append(("query", text))
        response = self.query_responses.get(text, "")
        if isinstance(response, Exception):
            raise response
        if isinstance(response, list):
            return response.pop(0) if len(response) > 1 else response[0]
        return response

    def read_raw(self, max_bytes: int) -> bytes:
        self.commands.append(("read_raw", str(max_bytes)))
        return self.raw_reads.pop(0)

    def write_raw(self, data: bytes, timeout_ms: int | None = None) -> None:
        self.commands.append(("write_raw", data[:40].decode("ascii", "replace")))
        self.raw_writes.append((data, timeout_ms))

    def set_timeout(self, timeout_ms: int | None) -> None:
        self.timeouts.append(timeout_ms)

    def close(self) -> None:
        self.closed = True

    def writes(self) -> list[str]:
        """Command lines written, in order."""
        return [cmd for op, cmd in self.commands if op == "write"]

    def queries(self) -> list[str]:
        """Queries sent, in order."""
        return [cmd for op, cmd in self.commands if op == "query"]


class PagedMemoryTransport(FakeTransport):
    """Fake scope whose data query returns at most ``page_size`` points per read.

    Tracks the ``:WAVeform:STARt``/``:WAVeform:STOP`` window the way the
    instrument does and frames each reply as a definite-length block.
    """

    def __init__(self, memory: bytes, page_size: int) -> None:
        super().__init__()
        self.memory = memory
        self.page_size = page_size
        self.start = 1
        self.stop = len(memory)
        self.data_reads = 0

    def write_line(self, text: str) -> None:
        super().write_line(text)
        if text.startswith(":WAVeform:STARt "):
            self.start = int(text.split()[1])
        elif text.startswith(":WAVeform:STOP "):
            self.stop = int(text.split()[1])

    def read_raw(self, max_bytes: int) -> bytes:
        self.commands.append(("read_raw", str(max_bytes)))
        self.data_reads += 1
        payload = self.memory[self.start - 1 : self.stop][: self.page_size]
        return wrap_frame(payload)[:max_bytes]


class FakeBus:
    """Fake resource bus serving a fixed set of resources.

    ``resources`` maps resource identifiers to the transport ``open`` returns,
    or to an exception ``open`` raises.
    """

    def __init__(self, resources: dict[str, object] | None = None) -> None:
        self.resources: dict[str, object] = resources or {}
        self.list_error: Exception | None = None
        self.opened: list[str] = []
        self.closed = False

    def list_resources(self, pattern: str = "?*") -> tuple[str, ...]:
        if self.list_error is not None:
            raise self.list_error
        return tuple(self.resources)

    def open(self, resource_id: str) -> FakeTransport:
        self.opened.append(resource_id)
        target = self.resources[resource_id]
        if isinstance(target, Exception):
            raise target
        assert isinstance(target, FakeTransport)
        return target

    def close(self) -> None:
        self.closed = True


def make_instrument(idn: str, resource_id: str = "TEST::RESOURCE") -> FakeTransport:
    """Fake transport that answers ``*IDN?`` with ``idn``."""
    transport = FakeTransport(resource_id)
    transport.query_responses["*IDN?"] = idn
    return transport


RIGOL_IDN = "RIGOL TECHNOLOGIES,DS1104Z,DS1ZA000000001,00.04.04.SP4"
RIGOL_MISREPORTED_IDN = "RIGOL TECHNOLOGIES,DS1054Z,DS1ZA000000002,00.04.04.SP4"
SIGLENT_IDN = "Siglent Technologies,SDG2042X,SDG2XCAX000001,2.01.01.35R3"
UNKNOWN_IDN = "Keysight Technologies,34465A,MY00000001,A.03.01"


@pytest.fixture
def transport() -> FakeTransport:
    """Provide a fake instrument session."""
    return FakeTransport()
