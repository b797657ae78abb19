"""Process-wide collaborators handed to the routers through ``Depends``.

Built lazily on first use; tests swap them with ``app.dependency_overrides``.
"""

import hmac
from concurrent.futures import ThreadPoolExecutor
from functools import lru_cache
from typing import Optional

from fastapi import Header, HTTPException

from inbox_api.config import settings
from inbox_api.database import SessionLocal
from inbox_api.logging_config import get_logger
from inbox_api.repositories import MessageTableDedup, RedisDedupStore, SqlStore
from inbox_api.services.dispatcher import Dispatcher
from inbox_api.services.facebook_client import FacebookClient
from inbox_api.services.panic_mode import PanicMode
from inbox_api.services.ports import DedupRepository

logger = get_logger("dependencies")


@lru_cache
def get_store() -> SqlStore:
    return SqlStore(SessionLocal)


@lru_cache
def get_dedup_store() -> DedupRepository:
    if settings.redis_url:
        logger.info("Using Redis dedup store")
        return RedisDedupStore.from_url(settings.redis_url)
    logger.info("REDIS_URL not set, deduplicating against the messages table")
    return MessageTableDedup(get_store())


@lru_cache
def get_dispatcher() -> Dispatcher:
    store = get_store()
    return Dispatcher(
        webhook_logs=store,
        messages=store,
        conversations=store,
        dedup=get_dedup_store(),
        default_tenant_id=settings.default_tenant_id,
        dedup_ttl_seconds=settings.dedup_ttl_seconds,
        executor=ThreadPoolExecutor(max_workers=settings.dispatch_workers, thread_name_prefix="dispatch"),
    )


@lru_cache
def get_facebook_client() -> FacebookClient:
    return FacebookClient(
        graph_url=settings.fb_graph_url,
        api_version=settings.fb_api_version,
        timeout_seconds=settings.send_timeout_seconds,
        max_attempts=settings.send_max_attempts,
        backoff_seconds=settings.send_backoff_seconds,
    )


@lru_cache
def get_panic_mode() -> PanicMode:
    return PanicMode()


def require_admin_token(x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token")) -> None:
    expected = settings.admin_token
    if not expected:
        raise HTTPException(status_code=500, detail="ADMIN_TOKEN not configured")
    if not x_admin_token or not hmac.compare_digest(x_admin_token.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(status_code=401, detail="Invalid admin token")
