"""Pydantic models for imagery layer definitions and their temporal coverage."""

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from utility.date_math import to_utc


class Period(str, Enum):
    YEARLY = "yearly"
    MONTHLY = "monthly"
    DAILY = "daily"
    SUBDAILY = "subdaily"


def _coerce_utc(value: Any) -> Any:
    if value is None or not isinstance(value, (str, date)):
        return value
    return to_utc(value)


class DateRange(BaseModel):
    """One contiguous span of availability, stepped every ``date_interval`` periods."""

    start_date: datetime
    end_date: datetime
    date_interval: int = Field(1, ge=1, description="Step size in period units")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _normalize_dates(cls, value: Any) -> Any:
        return _coerce_utc(value)


class Availability(BaseModel):
    """Rolling availability window for layers that only keep recent imagery."""

    rolling_window: Optional[int] = Field(None, ge=0, description="Window length in days")
    historical_ranges: List[DateRange] = Field(default_factory=list)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class LayerDefinition(BaseModel):
    """Catalog entry for a layer."""

    id: str
    title: Optional[str] = None
    group: str = "overlays"
    layergroup: Optional[str] = None
    type: Optional[str] = None
    period: Optional[Period] = None
    ongoing: bool = False
    future_time: Optional[str] = None
    availability: Optional[Availability] = None
    date_ranges: List[DateRange] = Field(default_factory=list)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    palette: Optional[Dict[str, Any]] = None
    vector_style: Optional[Dict[str, Any]] = None
    track: Optional[str] = None
    daynight: Optional[List[str]] = None
    break_point_layer: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        extra="ignore",
    )

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _normalize_dates(cls, value: Any) -> Any:
        return _coerce_utc(value)
