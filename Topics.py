# Topics.py
# MQTT topic names used by the farm controller and the dashboard.
#
#   <prefix>/<sensor>/pub    sensor readings
#   <prefix>/<device>/sub    control commands ("1" / "0")
#   <prefix>/<device>/status device state echo ("1" / "0")
#   <prefix>/system/status   {"status": "emergency"|"recovery"|..., "timestamp": ...}
#   <prefix>/request/status  ask the controller to republish every status

from typing import Dict, List

import Config
from State import Device

PREFIX = Config.TOPIC_PREFIX

AIR_QUALITY = f"{PREFIX}/SCDsensor/pub"
WATER_TEMPERATURE = f"{PREFIX}/watertemp/pub"
PH = f"{PREFIX}/ph/pub"
EC = f"{PREFIX}/ec/pub"
AQUARIUM = f"{PREFIX}/aquariumSensor/pub"

SYSTEM_STATUS = f"{PREFIX}/system/status"
REQUEST_STATUS = f"{PREFIX}/request/status"
REQUEST_ALL = "all"

DEVICE_SEGMENTS: Dict[Device, str] = {
    Device.AQUARIUM_LIGHT: "aquariumLight",
    Device.PLANT_LIGHT_1: "plantLight1",
    Device.PLANT_LIGHT_2: "plantLight2",
    Device.UP_MOTOR: "upMotor",
}


def control_topic(device: Device) -> str:
    return f"{PREFIX}/{DEVICE_SEGMENTS[Device(device)]}/sub"


def status_topic(device: Device) -> str:
    return f"{PREFIX}/{DEVICE_SEGMENTS[Device(device)]}/status"


DEVICE_BY_STATUS_TOPIC: Dict[str, Device] = {status_topic(d): d for d in Device}
DEVICE_BY_CONTROL_TOPIC: Dict[str, Device] = {control_topic(d): d for d in Device}

SENSOR_TOPICS: List[str] = [AIR_QUALITY, WATER_TEMPERATURE, PH, EC, AQUARIUM]

# Everything the dashboard listens to.
SUBSCRIPTIONS: List[str] = SENSOR_TOPICS + list(DEVICE_BY_STATUS_TOPIC) + [SYSTEM_STATUS]
