import json

import Topics
from Router import MessageRouter
from State import Channel, Device, SystemFlags


def sensors(store):
    return store.snapshot().sensors


def test_air_quality_reading(store, router):
    router.route(Topics.AIR_QUALITY, b'{"temperature": 24.26, "humidity": 55.04, "co2": 812.7}')
    values = sensors(store)
    assert values[Channel.AIR_TEMPERATURE] == 24.3
    assert values[Channel.AIR_HUMIDITY] == 55.0
    assert values[Channel.CO2] == 813


def test_air_quality_writes_unknown_for_bad_fields(store, router):
    router.route(Topics.AIR_QUALITY, b'{"temperature": 20, "humidity": 40, "co2": 500}')
    router.route(Topics.AIR_QUALITY, b'{"temperature": "abc", "co2": 600}')
    values = sensors(store)
    assert values[Channel.AIR_TEMPERATURE] is None
    assert values[Channel.AIR_HUMIDITY] is None
    assert values[Channel.CO2] == 600


def test_single_channel_readings(store, router):
    router.route(Topics.WATER_TEMPERATURE, b"235")
    router.route(Topics.PH, b'{"ph": 742}')
    router.route(Topics.EC, b'{"value": 812.4}')
    values = sensors(store)
    assert values[Channel.WATER_TEMPERATURE] == 23.5
    assert values[Channel.PH] == 7.42
    assert values[Channel.EC] == 812


def test_water_temperature_named_field(store, router):
    router.route(Topics.WATER_TEMPERATURE, '{"temperature": 240}')
    assert sensors(store)[Channel.WATER_TEMPERATURE] == 24.0


def test_unrecognised_object_is_unknown(store, router):
    router.route(Topics.PH, b"742")
    router.route(Topics.PH, b'{"reading": 700}')
    assert sensors(store)[Channel.PH] is None


def test_non_json_sensor_payload_is_dropped(store, router):
    router.route(Topics.EC, b"800")
    router.route(Topics.EC, b"not a number")
    assert sensors(store)[Channel.EC] == 800


def test_aquarium_reading_is_not_rescaled(store, router):
    router.route(Topics.AQUARIUM, b'{"temperature": 23.46, "ph": 7.421, "ec": 800}')
    values = sensors(store)
    assert values[Channel.WATER_TEMPERATURE] == 23.5
    assert values[Channel.PH] == 7.42
    assert values[Channel.EC] == 800


def test_aquarium_lenient_mode_stores_unknown(store, router):
    router.route(Topics.AQUARIUM, b'{"temperature": 23.4, "ph": 7.1, "ec": 800}')
    router.route(Topics.AQUARIUM, b'{"temperature": 22.0, "ec": 700}')
    values = sensors(store)
    assert values[Channel.WATER_TEMPERATURE] == 22.0
    assert values[Channel.PH] is None
    assert values[Channel.EC] == 700


def test_aquarium_strict_mode_drops_whole_message(store):
    router = MessageRouter(store, strict_aquarium=True)
    router.route(Topics.AQUARIUM, b'{"temperature": 23.4, "ph": 7.1, "ec": 800}')
    router.route(Topics.AQUARIUM, b'{"temperature": 22.0, "ph": "acidic", "ec": 700}')
    router.route(Topics.AQUARIUM, b'{"temperature": 22.0, "ec": 700}')
    values = sensors(store)
    assert values[Channel.WATER_TEMPERATURE] == 23.4
    assert values[Channel.PH] == 7.1
    assert values[Channel.EC] == 800


def test_device_status_text(store, router):
    topic = Topics.status_topic(Device.AQUARIUM_LIGHT)
    router.route(topic, b"1")
    assert store.device(Device.AQUARIUM_LIGHT) is True
    router.route(topic, b"0")
    assert store.device(Device.AQUARIUM_LIGHT) is False
    router.route(topic, b"1")
    router.route(topic, b"on")
    assert store.device(Device.AQUARIUM_LIGHT) is False
    router.route(topic, b"1")
    router.route(topic, b"true")
    assert store.device(Device.AQUARIUM_LIGHT) is False


def test_device_status_overrides_prediction(store, router):
    store.set_device(Device.UP_MOTOR, True, authoritative=False)
    router.route(Topics.status_topic(Device.UP_MOTOR), b"0")
    snap = store.snapshot()
    assert snap.devices[Device.UP_MOTOR] is False
    assert snap.pending == frozenset()


def test_system_status_sets_one_flag(store, router):
    router.route(Topics.SYSTEM_STATUS, json.dumps({"status": "emergency", "timestamp": 1}))
    assert store.flags == SystemFlags(emergency=True)
    router.route(Topics.SYSTEM_STATUS, json.dumps({"status": "recovery", "timestamp": 2}))
    assert store.flags == SystemFlags(recovery=True)


def test_system_status_bogus_clears_both(store, router):
    store.set_flags(SystemFlags(emergency=True))
    router.route(Topics.SYSTEM_STATUS, b'{"status": "bogus"}')
    assert store.flags == SystemFlags()


def test_malformed_system_status_is_ignored(store, router):
    store.set_flags(SystemFlags(recovery=True))
    router.route(Topics.SYSTEM_STATUS, b"emergency")
    assert store.flags == SystemFlags(recovery=True)


def test_unknown_topic_is_ignored(store, router):
    before = store.snapshot()
    router.route("FarmSmart/lightSensor/pub", b"1")
    router.route("Other/thing", b'{"value": 3}')
    assert store.snapshot() == before


def test_route_never_raises_on_garbage(store, router):
    for topic in Topics.SUBSCRIPTIONS:
        router.route(topic, b"\xff\xfe\x00")
        router.route(topic, b"null")
        router.route(topic, b"[1, 2, 3]")
        router.route(topic, b"[" * 200000)
    assert not (store.flags.emergency and store.flags.recovery)


def test_deeply_nested_payload_is_dropped(store, router):
    store.set_flags(SystemFlags(recovery=True))
    store.set_sensor(Channel.PH, 7.0)
    nested = b"[" * 200000

    router.route(Topics.PH, nested)
    router.route(Topics.AIR_QUALITY, nested)
    router.route(Topics.SYSTEM_STATUS, nested)

    snap = store.snapshot()
    assert snap.sensors[Channel.PH] == 7.0
    assert snap.flags == SystemFlags(recovery=True)


def test_deeply_nested_device_status_reads_as_off(store, router):
    store.set_device(Device.UP_MOTOR, True, authoritative=True)
    router.route(Topics.status_topic(Device.UP_MOTOR), b"[" * 200000)
    assert store.device(Device.UP_MOTOR) is False
