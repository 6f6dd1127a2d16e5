"""Exception types for benchvisa.

Exception hierarchy:
    InstrumentError (base)
    +-- TransportError: connection and VISA backend failures
    |   +-- InstrumentTimeoutError: a bounded wait was exceeded
    |   +-- BackendMissingError: no VISA implementation is installed
    +-- ProtocolError: response did not match the expected grammar
    |   +-- ParseError: a field of a response could not be decoded
    |   +-- FramingError: a binary block frame is malformed
    +-- RangeError: caller-supplied value outside the instrument's bounds
    +-- InvalidStateError: operation invalid in the current instrument mode
"""

from __future__ import annotations


class InstrumentError(Exception):
    """Base exception for all benchvisa errors."""


class TransportError(InstrumentError):
    """Raised when the bus connection or VISA backend fails."""


class InstrumentTimeoutError(TransportError, TimeoutError):
    """Raised when a blocking transport call exceeds its timeout.

    Also a builtin :class:`TimeoutError`, so callers may catch either.
    """


class BackendMissingError(TransportError):
    """Raised when no VISA implementation can be loaded.

    Applications should catch this and tell the user to install a VISA
    library (NI-VISA, Keysight IO Libraries) or ``pyvisa-py``.
    """


class ProtocolError(InstrumentError):
    """Raised when an instrument response does not match the expected grammar."""


class ParseError(ProtocolError):
    """Raised when one field of a response cannot be decoded.

    Attributes:
        key: The response key or field name that failed to parse.
        value: The offending raw value.
    """

    def __init__(self, key: str, value: str, reason: str = "") -> None:
        self.key = key
        self.value = value
        message = f"Cannot parse {key} value {value!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class FramingError(ProtocolError):
    """Raised when a binary block frame has a malformed or truncated header."""


class RangeError(InstrumentError, ValueError):
    """Raised when a value falls outside the bounds an instrument supports."""


class InvalidStateError(InstrumentError):
    """Raised when an operation is not valid in the instrument's current mode."""
