from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from inbox_api.config import settings
from inbox_api.database import get_db, init_db
from inbox_api.dependencies import get_dispatcher
from inbox_api.logging_config import get_logger, setup_logging
from inbox_api.models import Conversation, Message, Page, WebhookLog
from inbox_api.routers import dashboard, facebook_webhook

setup_logging(settings.log_level)

logger = get_logger("main")

app = FastAPI(
    title="Inbox API",
    description="Facebook Messenger webhook ingestion and agent inbox",
    version="0.1.0",
)

cors_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()]
if not cors_origins:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(facebook_webhook.router)
app.include_router(dashboard.router)


@app.on_event("startup")
def create_schema() -> None:
    if not settings.auto_create_schema:
        return
    init_db()
    logger.info("Database schema ready")


@app.on_event("shutdown")
def stop_dispatcher() -> None:
    # Only shut down an executor that was actually created.
    if get_dispatcher.cache_info().currsize:
        get_dispatcher().shutdown(wait=True)
        get_dispatcher.cache_clear()
        logger.info("Dispatcher stopped")


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/db-check")
def db_check(db: Session = Depends(get_db)):
    return {
        "status": "ok",
        "pages": db.query(Page).count(),
        "conversations": db.query(Conversation).count(),
        "messages": db.query(Message).count(),
        "webhook_logs": db.query(WebhookLog).count(),
    }
