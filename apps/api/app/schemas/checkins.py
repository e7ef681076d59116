from datetime import datetime
from pydantic import BaseModel, Field
from typing import List, Optional

from app.schemas.daily import RecomputeResponse


class CreateCheckinRequest(BaseModel):
    user_id: str
    rating: int = Field(..., ge=1, le=5)
    tags: List[str] = []
    note: Optional[str] = None
    # defaults to "now"; mainly for imports/backfills
    created_at: Optional[datetime] = None


class CheckinResponse(BaseModel):
    id: str
    couple_id: str
    user_id: str
    rating: int
    tags: List[str]
    note: Optional[str] = None
    created_at: str
    day_key: str
    recompute: RecomputeResponse
