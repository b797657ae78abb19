import hmac
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from fastapi.responses import PlainTextResponse

from inbox_api.config import settings
from inbox_api.dependencies import get_dispatcher
from inbox_api.logging_config import get_logger
from inbox_api.services.dispatcher import Dispatcher
from inbox_api.services.signature_service import SIGNATURE_HEADER, verify_signature

logger = get_logger("facebook_webhook")

router = APIRouter()

PLATFORM = "facebook"


@router.get("/webhook/facebook", response_class=PlainTextResponse)
def verify_webhook(
    hub_mode: Optional[str] = Query(default=None, alias="hub.mode"),
    hub_verify_token: Optional[str] = Query(default=None, alias="hub.verify_token"),
    hub_challenge: Optional[str] = Query(default=None, alias="hub.challenge"),
):
    """Subscription handshake: echo the challenge when the verify token matches."""
    expected = settings.fb_verify_token
    if (
        hub_mode == "subscribe"
        and expected
        and hub_verify_token
        and hmac.compare_digest(hub_verify_token.encode("utf-8"), expected.encode("utf-8"))
    ):
        logger.info("Webhook verified")
        return PlainTextResponse(hub_challenge or "")

    logger.warning("Webhook verification failed", extra={"context": {"mode": hub_mode}})
    return PlainTextResponse("Forbidden", status_code=403)


@router.post("/webhook/facebook", response_class=PlainTextResponse)
async def receive_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    """
    Receive Messenger events:
    - Signature checked against the raw body before anything else
    - 200 EVENT_RECEIVED right away, processing runs after the response
    """
    body = await request.body()
    if not verify_signature(body, request.headers.get(SIGNATURE_HEADER), settings.fb_app_secret):
        return PlainTextResponse("Forbidden", status_code=403)

    logger.info("Webhook received", extra={"context": {"platform": PLATFORM, "content_length": len(body)}})
    background_tasks.add_task(dispatcher.dispatch_safely, PLATFORM, body)
    return PlainTextResponse("EVENT_RECEIVED")
