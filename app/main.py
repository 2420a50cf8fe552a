from fastapi import FastAPI

from app.config import settings
from app.database import create_tables
from app.logging_config import get_logger, setup_logging
from app.routers import webhook

setup_logging(settings.log_level)

logger = get_logger("main")

app = FastAPI(
    title="Quizline API",
    description="Multi-tenant WhatsApp webhook router: quiz engine with auto-reply and AI fallback",
    version="0.1.0",
)

app.include_router(webhook.router)


@app.on_event("startup")
async def ensure_schema() -> None:
    if settings.create_tables:
        create_tables()
        logger.info("Database tables ensured")


@app.get("/health")
async def health():
    return {"status": "ok"}
