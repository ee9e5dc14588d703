from pydantic import BaseModel, ConfigDict
from typing import Any, Dict, List, Optional


class SystemStatusMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: Optional[Any] = None
    timestamp: Optional[Any] = None


class AquariumReading(BaseModel):
    """Combined aquarium payload, already in display units."""

    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)

    temperature: float
    ph: float
    ec: float


class EnvironmentRecord(BaseModel):
    time: Optional[Any] = None
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    co2: Optional[float] = None
    waterTemp: Optional[float] = None
    ph: Optional[float] = None
    ec: Optional[float] = None


class Pagination(BaseModel):
    total: int
    page: int
    limit: int


class RecordsPage(BaseModel):
    records: List[Dict[str, Any]]
    pagination: Pagination
    error: Optional[Dict[str, Any]] = None


def validate_system_status(data) -> SystemStatusMessage:
    """Validate a decoded system-status payload.

    Anything that is not a JSON object carries no status, which clears both
    flags downstream.
    """
    if not isinstance(data, dict):
        return SystemStatusMessage()
    return SystemStatusMessage.model_validate(data)


def validate_aquarium(data) -> AquariumReading:
    """Validate a combined aquarium reading. Raises pydantic.ValidationError."""
    return AquariumReading.model_validate(data)
