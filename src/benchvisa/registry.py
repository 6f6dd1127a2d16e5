"""Static table mapping reported model strings to driver factories."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING

from benchvisa.device import DeviceKind, InstrumentDevice
from benchvisa.rigol_ds1000z import RigolDS1000Z
from benchvisa.siglent_sdg2000x import SiglentSDG2000X

if TYPE_CHECKING:
    from benchvisa.transport import InstrumentTransport

DeviceFactory = Callable[["InstrumentTransport"], InstrumentDevice]


class DriverRegistry:
    """Maps ``(model, kind)`` to a factory that builds a driver from an open session.

    Model keys are matched exactly against field 1 of the ``*IDN?`` response.
    A unit that reports more than one model string is registered once per
    string.
    """

    def __init__(self) -> None:
        self._factories: dict[tuple[str, DeviceKind], DeviceFactory] = {}

    def register(self, model_key: str, kind: DeviceKind, factory: DeviceFactory) -> None:
        """Register ``factory`` for ``model_key`` within ``kind``.

        Raises:
            ValueError: If the key is already registered for that kind.
        """
        key = (model_key, kind)
        if key in self._factories:
            raise ValueError(f"Model {model_key!r} is already registered as {kind.value}")
        self._factories[key] = factory

    def resolve(self, model_key: str, kind: DeviceKind) -> DeviceFactory | None:
        """Return the factory for ``model_key`` within ``kind``, or ``None``."""
        return self._factories.get((model_key, kind))

    def models(self, kind: DeviceKind | None = None) -> list[str]:
        """Registered model keys, optionally restricted to one kind."""
        return sorted(model for model, k in self._factories if kind is None or k is kind)

    def __contains__(self, key: tuple[str, DeviceKind]) -> bool:
        return key in self._factories

    def __iter__(self) -> Iterator[tuple[str, DeviceKind]]:
        return iter(self._factories)

    def __len__(self) -> int:
        return len(self._factories)


def default_registry() -> DriverRegistry:
    """Registry of every driver shipped with benchvisa."""
    registry = DriverRegistry()
    # Some DS1104Z units report themselves as DS1054Z
    registry.register("DS1054Z", DeviceKind.OSCILLOSCOPE, RigolDS1000Z)
    registry.register("DS1104Z", DeviceKind.OSCILLOSCOPE, RigolDS1000Z)
    registry.register("SDG2042X", DeviceKind.FUNCTION_GENERATOR, SiglentSDG2000X)
    return registry
