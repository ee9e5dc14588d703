# Transport.py
# paho-mqtt connection used by the host.
#
# - Subscribes to every sensor/status topic on each (re)connect
# - Publishes a status request on each (re)connect, since messages missed
#   while offline are not replayed
# - Hands inbound messages to the MessageRouter
# - Exposes a connection status for the UI; paho handles reconnect backoff

import logging
import threading
import uuid
from typing import Callable, Optional

import paho.mqtt.client as mqtt

import Config
import Topics
from Errors import TransportError
from Router import MessageRouter

_LOGGER = logging.getLogger(__name__)

STATUS_DISCONNECTED = "disconnected"
STATUS_CONNECTING = "connecting"
STATUS_CONNECTED = "connected"
STATUS_RECONNECTING = "reconnecting"
STATUS_ERROR = "error"


def _build_client(client_id: str) -> mqtt.Client:
    client = mqtt.Client(
        mqtt.CallbackAPIVersion.VERSION2,
        client_id=client_id,
        clean_session=True,
        transport=Config.MQTT_TRANSPORT,
    )
    if Config.MQTT_TRANSPORT == "websockets":
        client.ws_set_options(path=Config.MQTT_WS_PATH)
    if Config.MQTT_USE_TLS:
        client.tls_set()
    if Config.MQTT_USERNAME:
        client.username_pw_set(Config.MQTT_USERNAME, Config.MQTT_PASSWORD)
    client.reconnect_delay_set(min_delay=Config.MQTT_RECONNECT_MIN_S, max_delay=Config.MQTT_RECONNECT_MAX_S)
    return client


class MqttTransport:
    """Publish/subscribe connection to the farm broker.

    Args:
        router: receives every inbound message
        host: broker hostname
        port: broker port
        client: optional pre-built paho client (one is created if omitted)
        on_status: optional callback invoked with the new status string
    """

    def __init__(
        self,
        router: MessageRouter,
        host: Optional[str] = None,
        port: Optional[int] = None,
        client=None,
        on_status: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._router = router
        self.host = host or Config.MQTT_HOST
        self.port = port or Config.MQTT_PORT
        self._on_status = on_status
        self._lock = threading.Lock()
        self._connected = False
        self.status = STATUS_DISCONNECTED
        self.last_error: Optional[str] = None

        self._client = client or _build_client(f"farmsmart_{uuid.uuid4().hex[:8]}")
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_message = self._on_message

    @property
    def connected(self) -> bool:
        with self._lock:
            return self._connected

    def start(self) -> None:
        """Connect in the background; paho keeps reconnecting on its own."""
        _LOGGER.info("Connecting to MQTT broker %s:%s (%s)", self.host, self.port, Config.MQTT_TRANSPORT)
        self._set_status(STATUS_CONNECTING)
        self._client.connect_async(self.host, self.port, keepalive=Config.MQTT_KEEPALIVE_S)
        self._client.loop_start()

    def stop(self) -> None:
        self._client.disconnect()
        self._client.loop_stop()
        with self._lock:
            self._connected = False
        self._set_status(STATUS_DISCONNECTED)

    def publish(self, topic: str, payload: str, qos: int = 0) -> None:
        info = self._client.publish(topic, payload, qos=qos)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise TransportError(f"Publish to {topic} failed: {mqtt.error_string(info.rc)}")
        _LOGGER.debug("Published %s %r (qos %s)", topic, payload, qos)

    def request_status(self) -> None:
        """Ask the controller to republish every device and system status."""
        self.publish(Topics.REQUEST_STATUS, Topics.REQUEST_ALL)

    # ----------------------------
    # PAHO CALLBACKS
    # ----------------------------
    def _on_connect(self, client, userdata, flags, reason_code, properties=None) -> None:
        if reason_code != 0:
            _LOGGER.warning("MQTT connection refused: %s", reason_code)
            self.last_error = str(reason_code)
            self._set_status(STATUS_ERROR)
            return

        with self._lock:
            self._connected = True
        self.last_error = None
        _LOGGER.info("Connected to MQTT broker %s:%s", self.host, self.port)

        client.subscribe([(topic, 0) for topic in Topics.SUBSCRIPTIONS])
        self._set_status(STATUS_CONNECTED)
        try:
            self.request_status()
        except TransportError as err:
            _LOGGER.warning("Status request after connect failed: %s", err)

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties=None) -> None:
        with self._lock:
            self._connected = False
        if reason_code != 0:
            _LOGGER.warning("Unexpected MQTT disconnection (%s); reconnecting", reason_code)
            self.last_error = str(reason_code)
            self._set_status(STATUS_RECONNECTING)
        else:
            _LOGGER.info("Disconnected from MQTT broker")
            self._set_status(STATUS_DISCONNECTED)

    def _on_message(self, client, userdata, msg) -> None:
        self._router.route(msg.topic, msg.payload)

    def _set_status(self, status: str) -> None:
        self.status = status
        if self._on_status is not None:
            self._on_status(status)
