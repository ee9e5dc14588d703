# Normalizer.py
# Raw sensor payload -> display-ready value.
#
# Sensors publish integer-scaled numbers, either bare ("235") or wrapped in an
# object ({"value": 235} or {"temperature": 235}). decode_payload() turns the
# payload into a tagged Reading, normalize() scales and rounds it.

import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, NamedTuple, Optional

from State import Channel

# Returned when a payload carries no usable number.
UNKNOWN = None
UNKNOWN_DISPLAY = "--"


class ChannelSpec(NamedTuple):
    field: str       # payload field named after the channel
    divisor: int     # raw value / divisor = physical value
    precision: int   # decimal places shown


CHANNEL_SPECS: Dict[Channel, ChannelSpec] = {
    Channel.AIR_TEMPERATURE: ChannelSpec("temperature", 1, 1),
    Channel.AIR_HUMIDITY: ChannelSpec("humidity", 1, 1),
    Channel.CO2: ChannelSpec("co2", 1, 0),
    Channel.WATER_TEMPERATURE: ChannelSpec("temperature", 10, 1),
    Channel.PH: ChannelSpec("ph", 100, 2),
    Channel.EC: ChannelSpec("ec", 1, 0),
}


class Reading(NamedTuple):
    """Decoded payload: where the raw value came from, and the value itself.

    source is "value", the channel's field name, "bare" for a payload that is
    itself the value, or "missing" for an object with no recognised field.
    """

    source: str
    raw: Any


def decode_payload(channel: Channel, payload: Any) -> Reading:
    """Pick the raw value out of a payload.

    Objects are searched for "value" first, then the channel's own field
    name; the first field present wins even if it is not numeric.
    """
    spec = CHANNEL_SPECS[Channel(channel)]
    if isinstance(payload, dict):
        for name in ("value", spec.field):
            if name in payload:
                return Reading(name, payload[name])
        return Reading("missing", None)
    return Reading("bare", payload)


def to_number(raw: Any) -> Optional[Decimal]:
    """Finite number from an int, float or numeric string, else None."""
    if raw is None or isinstance(raw, bool):
        return None
    if not isinstance(raw, (int, float, str)):
        return None
    if isinstance(raw, str):
        raw = raw.strip()
        if not raw:
            return None
    try:
        number = float(raw)
    except (ValueError, OverflowError):
        return None
    if not math.isfinite(number):
        return None
    return Decimal(repr(number))


def normalize(channel: Channel, payload: Any, scaled: bool = True) -> Optional[float]:
    """Display value for a channel, or UNKNOWN.

    The raw number is divided by the channel's divisor (unless scaled is
    False, for payloads already in physical units) and rounded half-up to the
    channel's precision.
    """
    channel = Channel(channel)
    spec = CHANNEL_SPECS[channel]
    number = to_number(decode_payload(channel, payload).raw)
    if number is None:
        return UNKNOWN
    if scaled and spec.divisor != 1:
        number = number / spec.divisor
    quantum = Decimal(1).scaleb(-spec.precision)
    try:
        return float(number.quantize(quantum, rounding=ROUND_HALF_UP))
    except InvalidOperation:
        # too many digits for the decimal context
        return UNKNOWN


def format_value(channel: Channel, value: Optional[float]) -> str:
    if value is UNKNOWN:
        return UNKNOWN_DISPLAY
    precision = CHANNEL_SPECS[Channel(channel)].precision
    return f"{value:.{precision}f}"
