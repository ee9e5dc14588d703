# State.py
# In-memory live state: latest sensor values, device on/off, system flags.
#
# One StateStore instance is shared by the Router (inbound messages) and the
# Dispatcher (user commands). All writes go through a single lock and readers
# only ever see whole snapshots.

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional

_LOGGER = logging.getLogger(__name__)


class Channel(str, Enum):
    AIR_TEMPERATURE = "air_temperature"
    AIR_HUMIDITY = "air_humidity"
    CO2 = "co2"
    WATER_TEMPERATURE = "water_temperature"
    PH = "ph"
    EC = "ec"


class Device(str, Enum):
    AQUARIUM_LIGHT = "aquarium_light"
    PLANT_LIGHT_1 = "plant_light_1"
    PLANT_LIGHT_2 = "plant_light_2"
    UP_MOTOR = "up_motor"


class Flag(str, Enum):
    EMERGENCY = "emergency"
    RECOVERY = "recovery"


@dataclass(frozen=True)
class SystemFlags:
    """The two system flags. At most one may be set."""

    emergency: bool = False
    recovery: bool = False

    def __post_init__(self) -> None:
        if self.emergency and self.recovery:
            raise ValueError("emergency and recovery cannot both be set")

    def to_dict(self) -> Dict[str, bool]:
        return {"emergency": self.emergency, "recovery": self.recovery}


@dataclass(frozen=True)
class StateSnapshot:
    """Immutable view of the store at one point in time."""

    sensors: Mapping[Channel, Optional[float]]
    devices: Mapping[Device, bool]
    flags: SystemFlags
    pending: FrozenSet[Device] = field(default_factory=frozenset)
    last_update: Optional[str] = None
    version: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sensors": {c.value: v for c, v in self.sensors.items()},
            "devices": {d.value: on for d, on in self.devices.items()},
            "pending": sorted(d.value for d in self.pending),
            "system": self.flags.to_dict(),
            "lastUpdate": self.last_update,
        }


Listener = Callable[[StateSnapshot], None]


def now_iso() -> str:
    return datetime.now().astimezone().isoformat()


def _check_flags(flags: SystemFlags) -> None:
    if not isinstance(flags, SystemFlags):
        raise TypeError("flags must be a SystemFlags instance")
    if flags.emergency and flags.recovery:
        raise ValueError("emergency and recovery cannot both be set")


class StateStore:
    """Latest known value for every channel, device and system flag.

    Sensors start Unknown (None), devices and flags start off. Sensor writes
    are last-write-wins in arrival order. Device writes are either
    authoritative (from the device's status topic) or optimistic; an
    optimistic value stays marked pending until an authoritative write for
    the same device lands, which always wins.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sensors: Dict[Channel, Optional[float]] = {c: None for c in Channel}
        self._devices: Dict[Device, bool] = {d: False for d in Device}
        self._pending: set = set()
        self._flags = SystemFlags()
        self._last_update: Optional[str] = None
        self._listeners: List[Listener] = []
        self._version = 0
        # Held across write + notify so listeners see snapshots in write order
        self._delivery = threading.RLock()

    def add_listener(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    # ----------------------------
    # WRITES
    # ----------------------------
    def set_sensor(self, channel: Channel, value: Optional[float]) -> None:
        self.set_sensors({channel: value})

    def set_sensors(self, values: Mapping[Channel, Optional[float]]) -> None:
        """Write several channels as one update."""
        with self._delivery:
            with self._lock:
                for channel, value in values.items():
                    self._sensors[Channel(channel)] = value
                self._last_update = now_iso()
                snap = self._commit_locked()
            _LOGGER.debug("Sensors updated: %s", dict(values))
            self._notify(snap)

    def set_device(self, device: Device, on: bool, authoritative: bool) -> None:
        device = Device(device)
        with self._delivery:
            with self._lock:
                self._devices[device] = bool(on)
                if authoritative:
                    self._pending.discard(device)
                else:
                    self._pending.add(device)
                snap = self._commit_locked()
            _LOGGER.debug(
                "Device %s -> %s (%s)", device.value, "on" if on else "off",
                "authoritative" if authoritative else "predicted",
            )
            self._notify(snap)

    def set_flags(self, flags: SystemFlags) -> None:
        _check_flags(flags)
        with self._delivery:
            with self._lock:
                self._flags = flags
                snap = self._commit_locked()
            _LOGGER.debug("System flags -> %s", flags.to_dict())
            self._notify(snap)

    def update_flags(self, rule: Callable[[SystemFlags], SystemFlags]) -> SystemFlags:
        """Read-modify-write the flags atomically with a reconciliation rule."""
        with self._delivery:
            with self._lock:
                new_flags = rule(self._flags)
                _check_flags(new_flags)
                self._flags = new_flags
                snap = self._commit_locked()
            _LOGGER.debug("System flags -> %s", new_flags.to_dict())
            self._notify(snap)
        return new_flags

    # ----------------------------
    # READS
    # ----------------------------
    @property
    def flags(self) -> SystemFlags:
        with self._lock:
            return self._flags

    def device(self, device: Device) -> bool:
        with self._lock:
            return self._devices[Device(device)]

    def snapshot(self) -> StateSnapshot:
        with self._lock:
            return self._snapshot_locked()

    def _commit_locked(self) -> StateSnapshot:
        self._version += 1
        return self._snapshot_locked()

    def _snapshot_locked(self) -> StateSnapshot:
        return StateSnapshot(
            sensors=MappingProxyType(dict(self._sensors)),
            devices=MappingProxyType(dict(self._devices)),
            flags=self._flags,
            pending=frozenset(self._pending),
            last_update=self._last_update,
            version=self._version,
        )

    def _notify(self, snap: StateSnapshot) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(snap)
            except Exception:
                _LOGGER.exception("State listener %r failed", listener)
