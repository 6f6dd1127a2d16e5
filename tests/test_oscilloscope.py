"""Tests for instrument protocols and their implementations."""

import inspect

import pytest
from conftest import FakeTransport

from benchvisa.generator_protocol import FunctionGeneratorProtocol
from benchvisa.oscilloscope_protocol import OscilloscopeProtocol
from benchvisa.rigol_ds1000z import RigolDS1000Z
from benchvisa.siglent_sdg2000x import SiglentSDG2000X
from benchvisa.waveform_data import WaveformData


def _protocol_methods(protocol: type) -> dict[str, inspect.Signature]:
    return {
        name: inspect.signature(member)
        for name, member in vars(protocol).items()
        if inspect.isfunction(member) and not name.startswith("_")
    }


@pytest.mark.parametrize(
    ("protocol", "driver"),
    [
        (OscilloscopeProtocol, RigolDS1000Z),
        (FunctionGeneratorProtocol, SiglentSDG2000X),
    ],
)
def test_driver_implements_protocol(protocol: type, driver: type) -> None:
    """Verify every protocol method exists on the driver with the same parameters."""
    methods = _protocol_methods(protocol)
    assert methods

    for name, signature in methods.items():
        implementation = getattr(driver, name, None)
        assert implementation is not None, f"{driver.__name__} lacks {name}"
        assert list(inspect.signature(implementation).parameters) == list(
            signature.parameters
        ), name


def test_waveform_data_dataclass() -> None:
    """Verify WaveformData stores voltages, sample_rate, start_time correctly."""
    voltages = [1.0, 2.0, 3.0]
    sample_rate = 1e6
    start_time = -0.001

    waveform = WaveformData(
        voltages=voltages, sample_rate=sample_rate, start_time=start_time
    )

    assert waveform.voltages == voltages
    assert waveform.sample_rate == sample_rate
    assert waveform.start_time == start_time
    assert waveform.channel == 1


def test_drivers_are_independent_instances() -> None:
    """Verify two scopes on different resources keep separate sessions."""
    first = RigolDS1000Z(FakeTransport("A"))
    second = RigolDS1000Z(FakeTransport("B"))

    first.run()

    assert first._transport.commands == [("write", ":RUN")]
    assert second._transport.commands == []
