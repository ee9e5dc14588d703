#This program creates realistic farm sensor readings with normal statistical distributions,
#encoded the way the farm controller publishes them over MQTT.

import json
import random
from datetime import datetime
from typing import Any, Dict, List, Tuple

import Topics


class FarmSensorGenerator:
    """Generates FarmSmart sensor messages using normal distributions.

    Water temperature is sent as an integer in tenths of a degree, pH in
    hundredths, EC as an integer in uS/cm. Single-channel payloads vary
    between a bare number, {"value": n} and {"<field>": n}, as the
    controller firmware has done over time.
    """

    def __init__(self, seed=None):
        self._random = random.Random(seed)
        self.sequence = 0

        # Means and standard deviations for a healthy aquaponics setup
        self.sensor_params = {
            "air_temp": {"mean": 24.0, "stddev": 1.5},
            "air_humidity": {"mean": 55.0, "stddev": 7.0},
            "co2": {"mean": 650.0, "stddev": 80.0},
            "water_temp": {"mean": 22.0, "stddev": 1.2},
            "water_ph": {"mean": 7.0, "stddev": 0.25},
            "water_ec": {"mean": 900.0, "stddev": 120.0},
        }
        self.bounds = {
            "air_temp": (15.0, 35.0),
            "air_humidity": (30.0, 90.0),
            "co2": (400.0, 2000.0),
            "water_temp": (15.0, 30.0),
            "water_ph": (5.5, 8.5),
            "water_ec": (300.0, 2000.0),
        }

    def _timestamp(self):
        """Returns ISO8601 timestamp in local time with timezone offset."""
        return datetime.now().astimezone().isoformat()

    def _clamp(self, value, min_val, max_val):
        return max(min_val, min(max_val, value))

    def _sample(self, name):
        params = self.sensor_params[name]
        low, high = self.bounds[name]
        return self._clamp(self._random.gauss(params["mean"], params["stddev"]), low, high)

    def readings(self) -> Dict[str, float]:
        """One set of readings in physical units."""
        return {
            "temperature": round(self._sample("air_temp"), 1),
            "humidity": round(self._sample("air_humidity"), 1),
            "co2": round(self._sample("co2")),
            "water_temperature": round(self._sample("water_temp"), 1),
            "ph": round(self._sample("water_ph"), 2),
            "ec": round(self._sample("water_ec")),
        }

    def _wrap(self, field, raw):
        shape = self._random.choice(("bare", "value", "field"))
        if shape == "bare":
            return json.dumps(raw)
        if shape == "value":
            return json.dumps({"value": raw})
        return json.dumps({field: raw})

    def encode(self, readings: Dict[str, float]) -> List[Tuple[str, str]]:
        """(topic, payload) messages for one set of readings."""
        return [
            (
                Topics.AIR_QUALITY,
                json.dumps(
                    {
                        "temperature": readings["temperature"],
                        "humidity": readings["humidity"],
                        "co2": readings["co2"],
                    }
                ),
            ),
            (Topics.WATER_TEMPERATURE, self._wrap("temperature", int(round(readings["water_temperature"] * 10)))),
            (Topics.PH, self._wrap("ph", int(round(readings["ph"] * 100)))),
            (Topics.EC, self._wrap("ec", int(readings["ec"]))),
        ]

    def generate(self) -> Tuple[Dict[str, Any], List[Tuple[str, str]]]:
        """Generate readings plus the MQTT messages that carry them."""
        self.sequence += 1
        readings = self.readings()
        readings["time"] = self._timestamp()
        return readings, self.encode(readings)
