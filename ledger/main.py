import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .api import api_router
from .config import get_settings
from .db import SessionLocal, init_db
from .services import create_backup, ensure_default_user, sync_installments
from .services.mirror import close_remote_mirror

logger = logging.getLogger(__name__)


async def prepare_ledger() -> None:
    """Startup housekeeping: default login, schedule resync and the daily backup."""
    async with SessionLocal() as session:
        await ensure_default_user(session)
        if await sync_installments(session):
            logger.info("Installment schedules were out of date and have been resynced")
        await create_backup(session, automatic=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    await prepare_ledger()
    try:
        yield
    finally:
        await close_remote_mirror()


settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
_docs_enabled = settings.environment.lower() != "production"
app = FastAPI(
    title=settings.app_name,
    lifespan=lifespan,
    docs_url="/docs" if _docs_enabled else None,
    redoc_url="/redoc" if _docs_enabled else None,
)
app.include_router(api_router, prefix="/api")


@app.get("/health", tags=["system"])
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}
