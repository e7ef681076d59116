import logging
from fastapi import FastAPI
from urllib.parse import urlparse

from app.core.config import load_env, getenv_required, getenv_default
from app.core.db import make_engine
from app.core.logging_config import configure_logging
from app.core.schema import init_schema
from app.routes.health import router as health_router
from app.routes.couples import router as couples_router
from app.routes.daily import router as daily_router
from app.routes.emotion_state import router as emotion_state_router
from app.routes.insights import router as insights_router

logger = logging.getLogger(__name__)


def create_app(engine=None) -> FastAPI:
    env_path = load_env()
    configure_logging(getenv_default("LOG_LEVEL", "INFO"))

    if engine is None:
        db_url = getenv_required("DATABASE_URL")
        engine = make_engine(db_url)

        # Safe debug (no password)
        u = urlparse(db_url)
        logger.info("env file: %s", env_path)
        logger.info("db host: %s user: %s", u.hostname, u.username)

    if getenv_default("AUTO_CREATE_SCHEMA", "1") == "1":
        init_schema(engine)

    app = FastAPI(title="Tether API", version="0.1.0")

    app.state.engine = engine

    app.include_router(health_router)
    app.include_router(couples_router)
    app.include_router(daily_router)
    app.include_router(emotion_state_router)
    app.include_router(insights_router)

    return app

app = create_app()
