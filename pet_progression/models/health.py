"""Pydantic models for inbound daily health metrics"""
from pydantic import BaseModel, Field
from datetime import date
from typing import Optional


class HealthMetrics(BaseModel):
    """Metrics for a single day as reported by the health-data source"""

    steps: int = Field(default=0, ge=0)
    sleep_hours: Optional[float] = Field(None, ge=0, le=24)
    hrv: Optional[float] = Field(None, ge=0)  # milliseconds


class DailyHealthRecord(HealthMetrics):
    """Metrics keyed by their UTC calendar day"""

    date: date
