# Dispatcher.py
# User actions -> outbound control messages and local flag changes.

import logging
import threading
from typing import Optional

import Config
import Reconcile
import Topics
from Errors import NotConnected
from State import Device, Flag, StateStore, SystemFlags

_LOGGER = logging.getLogger(__name__)


class CommandDispatcher:
    """Turns device toggles into control messages.

    Publishing is fire-and-forget: no retry and no acknowledgement tracking.
    The device confirms by echoing its state on its status topic, which the
    router applies as the authoritative value.

    Args:
        store: shared state store
        transport: object with a ``connected`` flag and
            ``publish(topic, payload, qos=0)``; None while the bus is not set up
        optimistic: also write the predicted device state on every toggle
    """

    def __init__(self, store: StateStore, transport=None, optimistic: Optional[bool] = None) -> None:
        self._store = store
        self.transport = transport
        self.optimistic = Config.OPTIMISTIC_DEVICES if optimistic is None else optimistic
        # One toggle at a time: read state, publish, then apply local effects
        self._lock = threading.Lock()

    def toggle(self, device: Device) -> bool:
        """Request the opposite of the device's current state.

        Returns the requested state. Raises NotConnected, without publishing
        or touching state, when the transport is down. A TransportError from
        the publish propagates with state likewise untouched.
        """
        device = Device(device)
        transport = self.transport
        if transport is None or not transport.connected:
            raise NotConnected("Not connected to the MQTT broker")

        with self._lock:
            new_state = not self._store.device(device)
            qos = 1 if device is Device.UP_MOTOR else 0
            transport.publish(Topics.control_topic(device), "1" if new_state else "0", qos=qos)
            _LOGGER.info("Sent %s %s command", device.value, "on" if new_state else "off")

            if self.optimistic:
                self._store.set_device(device, new_state, authoritative=False)

            if device is Device.UP_MOTOR and new_state:
                before = self._store.flags
                after = self._store.update_flags(Reconcile.on_motor_on)
                if before.recovery and not after.recovery:
                    _LOGGER.info("Up motor started; recovery cleared")

        return new_state

    def toggle_flag(self, flag: Flag) -> SystemFlags:
        """Flip a system flag locally. Nothing is published."""
        flag = Flag(flag)
        flags = self._store.update_flags(lambda current: Reconcile.toggle_flag(current, flag))
        _LOGGER.info("%s toggled -> %s", flag.value, flags.to_dict())
        return flags
