import os

# Never reach for a real broker from the test suite
os.environ.setdefault("FARMSMART_MQTT_ENABLED", "0")

import time
from types import SimpleNamespace

import pytest

import DB
from Errors import TransportError
from Router import MessageRouter
from State import StateStore


class FakeTransport:
    """Stands in for MqttTransport: records publishes."""

    def __init__(self, connected=True, refuse=False, delay=0.0):
        self.connected = connected
        self.refuse = refuse
        self.delay = delay
        self.published = []

    def publish(self, topic, payload, qos=0):
        if self.refuse:
            raise TransportError(f"Publish to {topic} failed: no connection")
        if self.delay:
            time.sleep(self.delay)
        self.published.append((topic, payload, qos))


class FakeClient:
    """Stands in for a paho client."""

    def __init__(self, publish_rc=0):
        self.on_connect = None
        self.on_disconnect = None
        self.on_message = None
        self.publish_rc = publish_rc
        self.published = []
        self.subscriptions = []
        self.calls = []

    def publish(self, topic, payload=None, qos=0, retain=False):
        self.published.append((topic, payload, qos))
        return SimpleNamespace(rc=self.publish_rc)

    def subscribe(self, topics, qos=0):
        self.subscriptions.append(topics)
        return (0, len(self.subscriptions))

    def connect_async(self, host, port, keepalive=60):
        self.calls.append(("connect_async", host, port, keepalive))

    def loop_start(self):
        self.calls.append(("loop_start",))

    def loop_stop(self):
        self.calls.append(("loop_stop",))

    def disconnect(self):
        self.calls.append(("disconnect",))


def mqtt_message(topic, payload):
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    return SimpleNamespace(topic=topic, payload=payload)


@pytest.fixture
def store():
    return StateStore()


@pytest.fixture
def router(store):
    return MessageRouter(store, strict_aquarium=False)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def db(tmp_path, monkeypatch):
    monkeypatch.setattr(DB, "DB_PATH", str(tmp_path / "farmsmart.db"))
    DB.init_db()
    return DB
