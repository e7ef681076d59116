from pydantic import BaseModel, Field
from typing import List, Optional

class CreateCoupleRequest(BaseModel):
    member_ids: List[str] = Field(..., min_length=1, max_length=2)
    timezone: Optional[str] = None
    couple_id: Optional[str] = None

class CreateCoupleResponse(BaseModel):
    couple_id: str
    member_ids: List[str]
    timezone: str
