"""Bot API webhook endpoint.

Telegram redelivers an update until it gets a 2xx, so handler failures are
answered with 500 on purpose.
"""

import hmac
import logging
from typing import Annotated

from fastapi import APIRouter, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse

from ..core.dependencies import SettingsDep, UpdateRouterDep

logger = logging.getLogger(__name__)


async def receive_update(
    request: Request,
    router: UpdateRouterDep,
    settings: SettingsDep,
    x_telegram_bot_api_secret_token: Annotated[str | None, Header()] = None,
):
    """Verify the secret header and dispatch one update."""
    secret = settings.webhook_secret_token
    if secret and not hmac.compare_digest(x_telegram_bot_api_secret_token or "", secret):
        logger.warning("Rejected webhook call with missing or wrong secret token")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid secret token")

    update = await request.json()

    try:
        await router.handle(update)
    except Exception:
        logger.exception(f"Error handling update {update.get('update_id')}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"ok": False},
        )

    return {"ok": True}


async def webhook_health(settings: SettingsDep):
    return {"status": "ok", "storage": settings.resolved_storage_type}


def build_webhook_router(webhook_path: str) -> APIRouter:
    """Mount the webhook at the configured path."""
    router = APIRouter(tags=["webhook"])
    router.add_api_route(webhook_path, receive_update, methods=["POST"])
    router.add_api_route(webhook_path, webhook_health, methods=["GET"])
    return router
