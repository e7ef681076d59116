import logging
from fastapi import APIRouter, Request, HTTPException

from app.schemas.checkins import CreateCheckinRequest, CheckinResponse
from app.schemas.couples import CreateCoupleRequest, CreateCoupleResponse
from app.services.checkins_service import create_checkin
from app.services.couples_service import create_couple

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["couples"])


@router.post("/couples", response_model=CreateCoupleResponse)
def create_couple_route(body: CreateCoupleRequest, request: Request):
    try:
        engine = request.app.state.engine
        couple_id, member_ids, tz_name = create_couple(
            engine,
            body.member_ids,
            timezone_name=body.timezone,
            couple_id=body.couple_id,
        )
        return CreateCoupleResponse(couple_id=couple_id, member_ids=member_ids, timezone=tz_name)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("create couple failed")
        raise HTTPException(status_code=500, detail=f"{type(e).__name__}: {str(e)}")


@router.post("/couples/{couple_id}/checkins", response_model=CheckinResponse)
def create_checkin_route(couple_id: str, body: CreateCheckinRequest, request: Request):
    """
    Records a check-in, then recomputes that local day's metrics + signals.
    """
    try:
        engine = request.app.state.engine
        return create_checkin(
            engine,
            couple_id=couple_id,
            user_id=body.user_id,
            rating=body.rating,
            tags=body.tags,
            note=body.note,
            created_at=body.created_at,
        )

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("create check-in failed")
        raise HTTPException(status_code=500, detail=f"{type(e).__name__}: {str(e)}")
