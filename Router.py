# Router.py
# Inbound MQTT message -> state update.
#
# route() is called once per message, in arrival order, from the transport's
# network thread. It never raises: anything that cannot be interpreted is
# logged and dropped.

import json
import logging
from typing import Any, Callable, Dict, Optional, Union

from pydantic import ValidationError

import Config
import MSG
import Reconcile
import Topics
from Errors import ParseFailure
from Normalizer import normalize
from State import Channel, Device, StateStore

_LOGGER = logging.getLogger(__name__)

Payload = Union[bytes, bytearray, str]


def _text(payload: Payload) -> str:
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload).decode("utf-8", errors="replace")
    return str(payload)


class MessageRouter:
    """Dispatches (topic, payload) pairs to the StateStore.

    Args:
        store: state shared with the dispatcher and the HTTP layer
        strict_aquarium: drop a combined aquarium reading unless all three
            fields are numeric, instead of storing Unknown for the bad ones
    """

    def __init__(self, store: StateStore, strict_aquarium: Optional[bool] = None) -> None:
        self._store = store
        self.strict_aquarium = Config.STRICT_AQUARIUM if strict_aquarium is None else strict_aquarium
        self._handlers: Dict[str, Callable[[Any], None]] = {
            Topics.AIR_QUALITY: self._handle_air_quality,
            Topics.WATER_TEMPERATURE: self._single(Channel.WATER_TEMPERATURE),
            Topics.PH: self._single(Channel.PH),
            Topics.EC: self._single(Channel.EC),
            Topics.AQUARIUM: self._handle_aquarium,
        }

    def route(self, topic: str, payload: Payload) -> None:
        text = _text(payload)
        _LOGGER.debug("MQTT message: %s %r", topic, text)

        # System status is always JSON and has no plain-text fallback
        if topic == Topics.SYSTEM_STATUS:
            self._handle_system_status(text)
            return

        device = Topics.DEVICE_BY_STATUS_TOPIC.get(topic)
        handler = self._handlers.get(topic)
        if device is None and handler is None:
            _LOGGER.debug("Ignoring message on unconfigured topic %s", topic)
            return

        try:
            data = json.loads(text)
        except (ValueError, RecursionError):
            if device is not None:
                self._set_device_from_text(device, text)
            else:
                _LOGGER.warning("Dropping non-JSON payload on %s: %r", topic, text)
            return

        if device is not None:
            # "1" and "0" decode as JSON numbers; the state comes from the text
            self._set_device_from_text(device, text)
            return

        try:
            handler(data)
        except ParseFailure as err:
            _LOGGER.warning("Dropping message on %s: %s", topic, err)

    # ----------------------------
    # HANDLERS
    # ----------------------------
    def _handle_air_quality(self, data: Any) -> None:
        fields = data if isinstance(data, dict) else {}
        self._store.set_sensors(
            {
                Channel.AIR_TEMPERATURE: normalize(Channel.AIR_TEMPERATURE, fields.get("temperature")),
                Channel.AIR_HUMIDITY: normalize(Channel.AIR_HUMIDITY, fields.get("humidity")),
                Channel.CO2: normalize(Channel.CO2, fields.get("co2")),
            }
        )

    def _single(self, channel: Channel) -> Callable[[Any], None]:
        def handle(data: Any) -> None:
            self._store.set_sensor(channel, normalize(channel, data))

        return handle

    def _handle_aquarium(self, data: Any) -> None:
        # Aquarium readings arrive in display units: round only, no divisor.
        if self.strict_aquarium:
            try:
                reading = MSG.validate_aquarium(data)
            except ValidationError as err:
                raise ParseFailure(f"invalid aquarium reading: {err.errors()}") from err
            fields = reading.model_dump()
        else:
            fields = data if isinstance(data, dict) else {}

        self._store.set_sensors(
            {
                Channel.WATER_TEMPERATURE: normalize(
                    Channel.WATER_TEMPERATURE, fields.get("temperature"), scaled=False
                ),
                Channel.PH: normalize(Channel.PH, fields.get("ph"), scaled=False),
                Channel.EC: normalize(Channel.EC, fields.get("ec"), scaled=False),
            }
        )

    def _set_device_from_text(self, device: Device, text: str) -> None:
        self._store.set_device(device, text == "1", authoritative=True)

    def _handle_system_status(self, text: str) -> None:
        try:
            message = MSG.validate_system_status(json.loads(text))
        except (ValueError, RecursionError, ValidationError) as err:
            _LOGGER.warning("Dropping malformed system status %r: %s", text, err)
            return

        requested = Reconcile.flag_from_status(message.status)
        flags = self._store.update_flags(lambda current: Reconcile.apply_flag(current, requested))
        _LOGGER.info(
            "System status %r (timestamp %s) -> %s", message.status, message.timestamp, flags.to_dict()
        )
