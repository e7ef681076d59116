import logging
from fastapi import APIRouter, HTTPException, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import default_timezone

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

# tables every analytics read touches
CORE_TABLES = ("couples", "checkins", "daily_couple_metrics")


@router.get("/health")
def health():
    return {"ok": True, "project": "tether", "default_timezone": default_timezone()}


@router.get("/health/db")
def health_db(request: Request):
    engine = request.app.state.engine
    try:
        with engine.connect() as conn:
            conn.execute(text("select 1"))
            for table in CORE_TABLES:
                conn.execute(text(f"select 1 from {table} limit 1"))
        return {"db": "ok", "tables": list(CORE_TABLES)}
    except SQLAlchemyError as e:
        logger.exception("db health check failed")
        raise HTTPException(status_code=500, detail=f"{type(e).__name__}: {str(e)}")
