import math

import pytest

from Normalizer import CHANNEL_SPECS, UNKNOWN, decode_payload, format_value, normalize
from State import Channel

UNKNOWN_SHAPED = [
    None,
    "abc",
    "",
    {},
    {"other": 12},
    {"value": "n/a"},
    {"value": None},
    float("nan"),
    float("inf"),
    True,
    [1, 2],
]


@pytest.mark.parametrize("channel", list(Channel))
@pytest.mark.parametrize("payload", UNKNOWN_SHAPED)
def test_unusable_payload_is_unknown(channel, payload):
    assert normalize(channel, payload) is UNKNOWN


def test_water_temperature_value_field_is_tenths():
    assert normalize(Channel.WATER_TEMPERATURE, {"value": 235}) == 23.5


def test_water_temperature_named_field():
    assert normalize(Channel.WATER_TEMPERATURE, {"temperature": 240}) == 24.0


def test_ph_named_field_is_hundredths():
    assert normalize(Channel.PH, {"ph": 742}) == 7.42


def test_co2_rounds_to_whole_number():
    assert normalize(Channel.CO2, {"co2": 812.7}) == 813


def test_bare_number_and_numeric_string():
    assert normalize(Channel.WATER_TEMPERATURE, 235) == 23.5
    assert normalize(Channel.WATER_TEMPERATURE, "235") == 23.5
    assert normalize(Channel.EC, " 812 ") == 812


def test_value_field_takes_priority_over_channel_field():
    assert normalize(Channel.PH, {"value": 700, "ph": 742}) == 7.0


def test_first_present_field_wins_even_if_not_numeric():
    # "value" is present, so "ph" is never consulted
    assert normalize(Channel.PH, {"value": "bad", "ph": 742}) is UNKNOWN


def test_rounding_is_half_up():
    assert normalize(Channel.EC, 0.5) == 1
    assert normalize(Channel.EC, 2.5) == 3
    assert normalize(Channel.AIR_TEMPERATURE, 24.25) == 24.3


def test_unscaled_payload_only_rounds():
    assert normalize(Channel.WATER_TEMPERATURE, 23.46, scaled=False) == 23.5
    assert normalize(Channel.PH, 7.421, scaled=False) == 7.42


def test_huge_values_do_not_blow_up():
    assert normalize(Channel.EC, 10 ** 400) is UNKNOWN
    assert normalize(Channel.PH, 1e300) is UNKNOWN


def test_results_are_finite_floats():
    for channel in Channel:
        value = normalize(channel, 1234)
        assert isinstance(value, float)
        assert math.isfinite(value)


def test_decode_payload_tags_the_source():
    assert decode_payload(Channel.PH, {"value": 1}).source == "value"
    assert decode_payload(Channel.PH, {"ph": 1}).source == "ph"
    assert decode_payload(Channel.PH, 742) == ("bare", 742)
    assert decode_payload(Channel.PH, {"x": 1}) == ("missing", None)


def test_channel_table():
    assert CHANNEL_SPECS[Channel.WATER_TEMPERATURE].divisor == 10
    assert CHANNEL_SPECS[Channel.PH].divisor == 100
    assert CHANNEL_SPECS[Channel.EC].divisor == 1
    assert {spec.precision for spec in CHANNEL_SPECS.values()} == {0, 1, 2}


def test_format_value():
    assert format_value(Channel.PH, 7.4) == "7.40"
    assert format_value(Channel.CO2, 813.0) == "813"
    assert format_value(Channel.WATER_TEMPERATURE, 23.5) == "23.5"
    assert format_value(Channel.CO2, UNKNOWN) == "--"
