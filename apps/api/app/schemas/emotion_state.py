from pydantic import BaseModel, Field
from typing import List, Optional


class EmotionMetrics(BaseModel):
    days_considered: int
    days_checked_in: int
    avg_rating: Optional[float] = None
    last_rating: Optional[float] = None
    trend_slope: float
    volatility: float
    missing_days: int
    top_tags: List[str] = []


class PartnerEmotionResult(BaseModel):
    user_id: str
    state: str
    emoji: str
    confidence: float = Field(ge=0, le=1)
    reasons: List[str] = []
    metrics: EmotionMetrics


class EmotionStateResponse(BaseModel):
    couple_id: str
    timezone: str
    days: int
    since: str
    per_partner: List[PartnerEmotionResult]


class EmotionSnapshot(BaseModel):
    day_key: str  # YYYY-MM-DD (couple-local)
    window_days: int
    state: str
    emoji: str
    confidence: float
    reasons: List[str] = []
    metrics: EmotionMetrics


class EmotionHistoryResponse(BaseModel):
    couple_id: str
    user_id: str
    snapshots: List[EmotionSnapshot]
