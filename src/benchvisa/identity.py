"""Instrument identification (``*IDN?``) parsing."""

from __future__ import annotations

from dataclasses import dataclass

from benchvisa.errors import ParseError

IDN_QUERY = "*IDN?"


@dataclass(frozen=True)
class InstrumentIdentity:
    """Parsed ``*IDN?`` response.

    Attributes:
        manufacturer: Vendor name, e.g. ``"RIGOL TECHNOLOGIES"``.
        model: Model designation used to select a driver, e.g. ``"DS1104Z"``.
        serial: Instrument serial number.
        firmware: Remaining fields joined with commas (may be empty).
    """

    manufacturer: str
    model: str
    serial: str
    firmware: str = ""

    @property
    def identification_string(self) -> str:
        """Manufacturer, model and serial concatenated without separators."""
        return self.manufacturer + self.model + self.serial

    @property
    def model_string(self) -> str:
        """Manufacturer and model in ``*IDN?`` form."""
        return f"{self.manufacturer},{self.model}"


def parse_idn_response(response: str) -> InstrumentIdentity:
    """Parse an ``*IDN?`` response of the form ``manufacturer,model,serial[,...]``.

    Fields are taken verbatim apart from the trailing line terminator, so
    :attr:`InstrumentIdentity.identification_string` is exactly fields 0, 1
    and 2 of the response concatenated.

    Args:
        response: The raw identification line.

    Returns:
        The parsed identity.

    Raises:
        ParseError: If the response has fewer than three fields.
    """
    parts = response.rstrip("\r\n").split(",")
    if len(parts) < 3:
        raise ParseError(
            "*IDN?",
            response,
            f"expected at least 3 comma-separated fields, got {len(parts)}",
        )
    return InstrumentIdentity(
        manufacturer=parts[0],
        model=parts[1],
        serial=parts[2],
        firmware=",".join(parts[3:]),
    )
