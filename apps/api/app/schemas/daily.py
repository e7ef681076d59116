# apps/api/app/schemas/daily.py

from pydantic import BaseModel, Field
from typing import Dict, List, Optional


class RecomputeRequest(BaseModel):
    days: int = Field(default=30, ge=1, le=365)


class RecomputeResponse(BaseModel):
    couple_id: str
    timezone: str
    start_day_key: str
    end_day_key_exclusive: str
    metrics_upserts: int
    signal_upserts: int


class DailyMetricPoint(BaseModel):
    day: str  # YYYY-MM-DD (couple-local)
    bond_score: Optional[int] = None
    connection_score: Optional[int] = None
    stability_score: Optional[int] = None
    checkin_count: int = 0
    avg_rating: Optional[float] = None
    top_tags: List[str] = []


class EmotionSignalPoint(BaseModel):
    day: str
    state: str
    intensity: int = Field(ge=0, le=100)
    reason_code: str
    note: Optional[str] = None


class TimelineRange(BaseModel):
    start_day_key: str
    end_day_key_exclusive: str


class DailyTimelineResponse(BaseModel):
    couple_id: str
    timezone: str
    days: int
    range: TimelineRange
    metrics: List[DailyMetricPoint]
    signals: Dict[str, List[EmotionSignalPoint]]
