# Config.py
# Runtime settings, read once from the environment.
import os

BASE_DIR = os.path.dirname(os.path.abspath(__file__))


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


APP_TITLE = "FarmSmart Host"
ENV = os.environ.get("FARMSMART_ENV", "production")
LOG_LEVEL = os.environ.get("FARMSMART_LOG_LEVEL", "INFO")

# ----------------------------
# DATABASE
# ----------------------------
DB_PATH = os.environ.get("FARMSMART_DB_PATH", os.path.join(BASE_DIR, "data", "farmsmart.db"))
RECORDS_DEFAULT_LIMIT = 100
HISTORY_DEFAULT_LIMIT = 500

# ----------------------------
# HTTP
# ----------------------------
HTTP_HOST = os.environ.get("FARMSMART_HTTP_HOST", "0.0.0.0")
HTTP_PORT = int(os.environ.get("FARMSMART_HTTP_PORT", "3000"))

# ----------------------------
# MQTT
# ----------------------------
MQTT_ENABLED = _env_bool("FARMSMART_MQTT_ENABLED", True)
MQTT_HOST = os.environ.get("FARMSMART_MQTT_HOST", "localhost")
MQTT_PORT = int(os.environ.get("FARMSMART_MQTT_PORT", "1883"))
MQTT_TRANSPORT = os.environ.get("FARMSMART_MQTT_TRANSPORT", "tcp")  # tcp | websockets
MQTT_WS_PATH = os.environ.get("FARMSMART_MQTT_WS_PATH", "/mqtt")
MQTT_USE_TLS = _env_bool("FARMSMART_MQTT_TLS", False)
MQTT_USERNAME = os.environ.get("FARMSMART_MQTT_USER")
MQTT_PASSWORD = os.environ.get("FARMSMART_MQTT_PASSWORD")
MQTT_KEEPALIVE_S = 60
MQTT_RECONNECT_MIN_S = 1
MQTT_RECONNECT_MAX_S = 120

TOPIC_PREFIX = os.environ.get("FARMSMART_TOPIC_PREFIX", "FarmSmart")

# ----------------------------
# STATE HANDLING
# ----------------------------
# Strict mode drops a combined aquarium message unless all three fields parse.
STRICT_AQUARIUM = _env_bool("FARMSMART_STRICT_AQUARIUM", False)
# Apply a predicted device state on every toggle, not only the motor side effect.
OPTIMISTIC_DEVICES = _env_bool("FARMSMART_OPTIMISTIC_DEVICES", False)

# ----------------------------
# SIMULATOR
# ----------------------------
MOCK_PERIOD_S = float(os.environ.get("FARMSMART_MOCK_PERIOD_S", "5.0"))
