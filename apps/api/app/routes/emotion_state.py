import logging
from fastapi import APIRouter, Request, HTTPException

from app.schemas.emotion_state import EmotionHistoryResponse, EmotionStateResponse
from app.services.emotion_state_service import get_emotion_history, get_partner_emotion_states

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["emotion-state"])


@router.get("/couples/{couple_id}/emotion-state", response_model=EmotionStateResponse)
def emotion_state_route(couple_id: str, request: Request, days: int = 14):
    """
    Per-partner emotional state over the last N days (default 14).
    Also stores a snapshot per partner for today's date.
    """
    try:
        engine = request.app.state.engine
        return get_partner_emotion_states(engine, couple_id=couple_id, days=days)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("emotion state failed")
        raise HTTPException(status_code=500, detail=f"{type(e).__name__}: {str(e)}")


@router.get("/couples/{couple_id}/emotion-state/history", response_model=EmotionHistoryResponse)
def emotion_history_route(couple_id: str, user_id: str, request: Request, limit: int = 30):
    try:
        engine = request.app.state.engine
        return get_emotion_history(engine, couple_id=couple_id, user_id=user_id, limit=limit)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("emotion history failed")
        raise HTTPException(status_code=500, detail=f"{type(e).__name__}: {str(e)}")
