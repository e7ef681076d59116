# apps/api/app/schemas/insights.py

from pydantic import BaseModel
from typing import List, Optional


class DaySummary(BaseModel):
    day_key: str  # YYYY-MM-DD
    dow: int      # 0..6 = Sun..Sat
    avg: float


class MidWeekDip(DaySummary):
    baseline: float
    delta: float  # avg - baseline (negative is a dip)


class RecoveryTrigger(BaseModel):
    tag: str
    hits: int


class PatternStats(BaseModel):
    days_checked_in: int
    avg: float
    volatility: float


class PatternReport(BaseModel):
    stats: PatternStats
    best_day: Optional[DaySummary] = None
    hardest_day: Optional[DaySummary] = None
    mid_week_dips: List[MidWeekDip] = []
    recovery_triggers: List[RecoveryTrigger] = []


class PartnerPatternReport(PatternReport):
    user_id: str


class InsightsResponse(BaseModel):
    couple_id: str
    window_days: int
    timezone: str
    since: str
    couple: PatternReport
    per_partner: List[PartnerPatternReport]
    cached: bool = False
