import logging
from typing import Optional
from fastapi import APIRouter, Request, HTTPException

from app.schemas.daily import DailyTimelineResponse, RecomputeRequest, RecomputeResponse
from app.services.daily_aggregation_service import get_daily_timeline, recompute_recent_days

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["daily"])


@router.post("/couples/{couple_id}/daily/recompute", response_model=RecomputeResponse)
def recompute_route(couple_id: str, request: Request, body: Optional[RecomputeRequest] = None):
    """
    Recomputes daily metrics + emotion signals for the last N days including
    today (couple timezone). Safe to call repeatedly.
    """
    try:
        engine = request.app.state.engine
        days = body.days if body else 30
        return recompute_recent_days(engine, couple_id=couple_id, days=days)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("daily recompute failed")
        raise HTTPException(status_code=500, detail=f"{type(e).__name__}: {str(e)}")


@router.get("/couples/{couple_id}/daily/timeline", response_model=DailyTimelineResponse)
def timeline_route(couple_id: str, request: Request, days: int = 30):
    try:
        engine = request.app.state.engine
        days = max(1, min(int(days), 90))
        return get_daily_timeline(engine, couple_id=couple_id, days=days)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("daily timeline failed")
        raise HTTPException(status_code=500, detail=f"{type(e).__name__}: {str(e)}")
