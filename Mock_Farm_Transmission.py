#The Mock Farm Transmission script simulates the farm controller:
#it publishes sensor readings to the broker at regular intervals, records
#them to the database the way the controller's logger does, switches
#simulated devices on control commands and echoes their state, and answers
#status requests from dashboards.

# Mock_Farm_Transmission.py
import json
import logging
import time
import uuid
from typing import Dict

import paho.mqtt.client as mqtt

import Config
import DB
import Topics
from Mock_Sensor_Generation import FarmSensorGenerator
from State import Device

_LOGGER = logging.getLogger(__name__)


class FarmSimulator:
    """Device side of the FarmSmart topics."""

    def __init__(self, client, record: bool = True):
        self._client = client
        self.record = record
        self.devices: Dict[Device, bool] = {d: False for d in Device}
        self.system_status = "normal"
        self.generator = FarmSensorGenerator()

        client.on_connect = self._on_connect
        client.on_message = self._on_message

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code != 0:
            _LOGGER.warning("[FARM-MOCK] connection refused: %s", reason_code)
            return
        topics = list(Topics.DEVICE_BY_CONTROL_TOPIC) + [Topics.REQUEST_STATUS]
        client.subscribe([(t, 0) for t in topics])
        _LOGGER.info("[FARM-MOCK] connected; listening on %d topics", len(topics))
        self.publish_all_status()

    def _on_message(self, client, userdata, msg):
        text = msg.payload.decode("utf-8", errors="replace")
        device = Topics.DEVICE_BY_CONTROL_TOPIC.get(msg.topic)
        if device is not None:
            self.devices[device] = text == "1"
            _LOGGER.info("[FARM-MOCK] %s -> %s", device.value, "on" if self.devices[device] else "off")
            self.publish_device_status(device)
        elif msg.topic == Topics.REQUEST_STATUS:
            _LOGGER.info("[FARM-MOCK] status request %r", text)
            self.publish_all_status()

    def publish_device_status(self, device: Device) -> None:
        self._client.publish(Topics.status_topic(device), "1" if self.devices[device] else "0", qos=1)

    def publish_all_status(self) -> None:
        for device in Device:
            self.publish_device_status(device)
        self._client.publish(
            Topics.SYSTEM_STATUS,
            json.dumps({"status": self.system_status, "timestamp": int(time.time() * 1000)}),
        )

    def tick(self) -> None:
        readings, messages = self.generator.generate()
        for topic, payload in messages:
            self._client.publish(topic, payload)
        if self.record:
            DB.insert_air_record(readings["temperature"], readings["humidity"], readings["co2"], time=readings["time"])
            DB.insert_water_record(readings["water_temperature"], readings["ph"], readings["ec"], time=readings["time"])
        _LOGGER.info(
            "[OK] seq=%s t=%s rh=%s co2=%s wt=%s ph=%s ec=%s",
            self.generator.sequence, readings["temperature"], readings["humidity"], readings["co2"],
            readings["water_temperature"], readings["ph"], readings["ec"],
        )


def main():
    logging.basicConfig(
        level=Config.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    period_s = Config.MOCK_PERIOD_S
    DB.init_db()

    client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=f"farmmock_{uuid.uuid4().hex[:8]}")
    if Config.MQTT_USERNAME:
        client.username_pw_set(Config.MQTT_USERNAME, Config.MQTT_PASSWORD)
    client.reconnect_delay_set(min_delay=Config.MQTT_RECONNECT_MIN_S, max_delay=Config.MQTT_RECONNECT_MAX_S)
    sim = FarmSimulator(client)

    _LOGGER.info("[FARM-MOCK] Broker: %s:%s  Period: %ss", Config.MQTT_HOST, Config.MQTT_PORT, period_s)
    client.connect_async(Config.MQTT_HOST, Config.MQTT_PORT, keepalive=Config.MQTT_KEEPALIVE_S)
    client.loop_start()
    try:
        while True:
            if client.is_connected():
                sim.tick()
            time.sleep(period_s)
    except KeyboardInterrupt:
        pass
    finally:
        client.disconnect()
        client.loop_stop()


if __name__ == "__main__":
    main()
