import logging
from fastapi import APIRouter, Request, HTTPException

from app.schemas.insights import InsightsResponse
from app.services.patterns_service import get_insights

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["insights"])


@router.get("/couples/{couple_id}/insights", response_model=InsightsResponse)
def insights_route(couple_id: str, request: Request, window_days: int = 28, refresh: bool = False):
    """
    Weekday patterns, mid-week dips and recovery triggers.
    Cached per couple per local day per window; refresh=true recomputes.
    """
    try:
        engine = request.app.state.engine
        return get_insights(engine, couple_id=couple_id, window_days=window_days, use_cache=not refresh)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("insights failed")
        raise HTTPException(status_code=500, detail=f"{type(e).__name__}: {str(e)}")
