"""
Parameter sets accepted by each report, validated with pydantic.

Window and sensitivity bounds are read from the validation context so the
service can enforce the limits in its configuration; the defaults below apply
when no context is given.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError, ValidationInfo, field_validator, model_validator

from .errors import InvalidParameterError
from .models import EntityType, MetricType, PeriodType

Q = TypeVar("Q", bound=BaseModel)

DEFAULT_LIMITS = {
    "max_series_months": 24,
    "max_months": 36,
    "min_anomaly_months": 3,
    "min_sensitivity": 1.0,
    "max_sensitivity": 4.0,
}


def _limit(info: ValidationInfo, name: str) -> Any:
    context = info.context or {}
    return context.get(name, DEFAULT_LIMITS[name])


def _check_between(value: Any, low: Any, high: Any) -> Any:
    if value < low or value > high:
        raise ValueError(f"must be between {low} and {high}")
    return value


class EntityQuery(BaseModel):
    entity_type: EntityType
    entity_id: str = Field(min_length=1)


class SeriesQuery(BaseModel):
    months: int = 12

    @field_validator("months")
    @classmethod
    def _months_in_window(cls, value: int, info: ValidationInfo) -> int:
        return _check_between(value, 1, _limit(info, "max_series_months"))


class TrendQuery(BaseModel):
    metric_type: MetricType = "donations"
    months: int = 12

    @field_validator("months")
    @classmethod
    def _months_in_window(cls, value: int, info: ValidationInfo) -> int:
        return _check_between(value, 1, _limit(info, "max_months"))


class AnomalyQuery(BaseModel):
    metric_type: MetricType = "donations"
    months: int = 12
    sensitivity: float = 2.0

    @field_validator("months")
    @classmethod
    def _months_in_window(cls, value: int, info: ValidationInfo) -> int:
        return _check_between(value, _limit(info, "min_anomaly_months"), _limit(info, "max_months"))

    @field_validator("sensitivity")
    @classmethod
    def _sensitivity_in_range(cls, value: float, info: ValidationInfo) -> float:
        return _check_between(value, _limit(info, "min_sensitivity"), _limit(info, "max_sensitivity"))


class ComparativeQuery(BaseModel):
    period_type: PeriodType = "month"


class SummaryQuery(BaseModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @model_validator(mode="after")
    def _check_range(self) -> "SummaryQuery":
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


def validate_query(model: Type[Q], limits: Optional[Mapping[str, Any]] = None, **params: Any) -> Q:
    """Build ``model`` from ``params``; ``None`` values fall back to the model defaults."""
    try:
        return model.model_validate(
            {name: value for name, value in params.items() if value is not None},
            context=dict(limits or {}),
        )
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ())) or None
        raise InvalidParameterError(f"Invalid {location or 'parameters'}: {first.get('msg')}", field=location) from exc
