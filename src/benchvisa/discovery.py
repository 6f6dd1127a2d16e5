"""Device discovery and classification.

Every resource on the bus is opened and asked for ``*IDN?``; the model field
of the answer selects a driver from the registry. Resources that fail to
answer or match no driver are skipped, never fatal.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from functools import cache

from benchvisa.device import DeviceKind, InstrumentDevice
from benchvisa.errors import BackendMissingError, TransportError
from benchvisa.identity import IDN_QUERY, parse_idn_response
from benchvisa.registry import DriverRegistry, default_registry
from benchvisa.transport import ResourceBus, VisaBus

logger = logging.getLogger(__name__)


@dataclass
class ConnectedDevices:
    """Result of one discovery scan.

    The caller owns every device in :attr:`devices` and must close them.

    Attributes:
        devices: Classified drivers, in enumeration order.
        unknown_device_connected: True if at least one resource failed to
            identify or matched no model registered for the requested kind.
            It does not say how many or which ones; see the log records for
            that.
    """

    devices: list[InstrumentDevice] = field(default_factory=list)
    unknown_device_connected: bool = False

    def __iter__(self) -> Iterator[InstrumentDevice]:
        return iter(self.devices)

    def __len__(self) -> int:
        return len(self.devices)


@cache
def _shared_registry() -> DriverRegistry:
    return default_registry()


def discover(
    kind: DeviceKind,
    bus: ResourceBus | None = None,
    registry: DriverRegistry | None = None,
) -> ConnectedDevices:
    """Find every connected instrument of ``kind`` with a registered driver.

    Resources are probed one after another. Any resource without a driver
    of ``kind``, including one whose model is registered only under another
    kind, is closed and raises the unknown-device flag.

    Args:
        kind: Which registry partition to match against.
        bus: Where to enumerate and open resources; a default :class:`VisaBus`
            when omitted.
        registry: Model table; the built-in drivers when omitted.

    Returns:
        The classified devices and the unknown-device flag. Empty when the
        bus has no resources or cannot be enumerated.

    Raises:
        BackendMissingError: If no VISA implementation is installed.
    """
    if bus is None:
        bus = VisaBus()
    if registry is None:
        registry = _shared_registry()

    try:
        resource_ids = bus.list_resources()
    except BackendMissingError:
        raise
    except TransportError as exc:
        logger.warning("Could not enumerate VISA resources: %s", exc)
        return ConnectedDevices()

    result = ConnectedDevices()
    for resource_id in resource_ids:
        try:
            device = _probe(bus, resource_id, kind, registry)
        except BackendMissingError:
            raise
        except Exception as exc:
            # One misbehaving resource must not hide the others
            logger.warning("Skipping %s: %s", resource_id, exc)
            result.unknown_device_connected = True
            continue
        if device is None:
            result.unknown_device_connected = True
            continue
        logger.info("Found %s at %s", device.model_string, resource_id)
        result.devices.append(device)
    return result


def _probe(
    bus: ResourceBus, resource_id: str, kind: DeviceKind, registry: DriverRegistry
) -> InstrumentDevice | None:
    """Identify one resource; return its driver or ``None`` if none matches.

    The session is handed to the driver on a match and closed otherwise.
    """
    transport = bus.open(resource_id)
    try:
        identity = parse_idn_response(transport.query_line(IDN_QUERY))
    except Exception:
        transport.close()
        raise

    factory = registry.resolve(identity.model, kind)
    if factory is not None:
        try:
            return factory(transport)
        except Exception:
            transport.close()
            raise

    transport.close()
    if any(model == identity.model for model, _kind in registry):
        logger.debug("%s at %s is not a %s", identity.model_string, resource_id, kind.value)
    else:
        logger.warning(
            "No %s driver for %r at %s", kind.value, identity.model_string, resource_id
        )
    return None
