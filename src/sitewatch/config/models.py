"""
Pydantic models for the monitor configuration.

These models mirror the JSON configuration file. Field aliases are the
camelCase names used in the file (checkDelay, computeDelay); Python code
uses the snake_case attribute names.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from sitewatch.metrics import AggregationType


class ConfigurationError(ValueError):
    """Invalid configuration or a lifecycle event that was rejected."""
    pass


class AggregatorSettings(BaseModel):
    """Periodic aggregation of some metrics of a website."""

    model_config = ConfigDict(populate_by_name=True)

    timeframe: int = Field(gt=0, description="Window length in ms")
    compute_delay: int = Field(gt=0, alias="computeDelay", description="Delay between ticks in ms")
    display: bool = False
    metrics: Dict[str, List[AggregationType]] = Field(default_factory=dict)

    @field_validator("metrics")
    @classmethod
    def _dedupe_types(cls, value: Dict[str, List[AggregationType]]) -> Dict[str, List[AggregationType]]:
        return {name: list(dict.fromkeys(types)) for name, types in value.items()}


class AlertThresholds(BaseModel):
    """
    Thresholds of an alert.

    The alert watches the metric named like the alert unless `metric` is
    given.
    """

    model_config = ConfigDict(populate_by_name=True)

    min: Optional[float] = None
    max: Optional[float] = None
    metric: Optional[str] = None

    @model_validator(mode="after")
    def _require_threshold(self) -> "AlertThresholds":
        if self.min is None and self.max is None:
            raise ValueError("at least one of min or max is required")
        return self


class WebsiteSettings(BaseModel):
    """Everything configured for one website."""

    model_config = ConfigDict(populate_by_name=True)

    check_delay: int = Field(gt=0, alias="checkDelay", description="Delay between checks in ms")
    metrics: Dict[str, bool] = Field(default_factory=dict)
    aggregators: Dict[str, AggregatorSettings] = Field(default_factory=dict)
    alerts: Dict[str, AlertThresholds] = Field(default_factory=dict)
