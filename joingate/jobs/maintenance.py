"""
Maintenance jobs: webhook registration and state store housekeeping.

Run as a one-off command or on a schedule:

    python -m joingate.jobs.maintenance set-webhook --drop-pending-updates
    python -m joingate.jobs.maintenance purge-expired        # e.g. daily
    python -m joingate.jobs.maintenance cleanup-stale --confirm
"""

import argparse
import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from ..core.config import Settings, get_settings
from ..core.database import close_db, create_engine, create_session_factory, init_db
from ..core.logging import configure_logging
from ..integrations.telegram.client import TelegramAPIError, TelegramBotClient
from ..storage.repository import JoinRequestRepository
from ..storage.state import StateStore, StoreError, create_state_store

logger = logging.getLogger(__name__)

ALLOWED_UPDATES = ["message", "callback_query", "chat_join_request"]


# =============================================================================
# WEBHOOK
# =============================================================================


async def set_webhook(settings: Settings, bot: TelegramBotClient, drop_pending_updates: bool = False) -> dict[str, Any]:
    if not settings.webhook_url:
        raise ValueError("PUBLIC_BASE_URL is required to register the webhook")

    await bot.set_webhook(
        settings.webhook_url,
        secret_token=settings.webhook_secret_token,
        drop_pending_updates=drop_pending_updates,
        allowed_updates=ALLOWED_UPDATES,
    )
    logger.info(f"Webhook registered at {settings.webhook_path}")
    return await bot.get_webhook_info()


async def webhook_info(bot: TelegramBotClient) -> dict[str, Any]:
    return await bot.get_webhook_info()


async def delete_webhook(bot: TelegramBotClient) -> bool:
    result = await bot.delete_webhook()
    logger.info("Webhook deleted")
    return result


# =============================================================================
# STORE HOUSEKEEPING
# =============================================================================


@asynccontextmanager
async def open_store(settings: Settings) -> AsyncGenerator[StateStore, None]:
    """The configured state store, with its engine disposed afterwards."""
    if settings.resolved_storage_type != "sql":
        logger.warning("Memory storage configured; housekeeping only affects this process")
        yield create_state_store(settings)
        return

    engine = create_engine(
        settings.database_url_async,
        echo=settings.database_echo,
        require_ssl=settings.database_require_ssl,
    )
    try:
        await init_db(engine)
        yield create_state_store(settings, create_session_factory(engine))
    finally:
        await close_db(engine)


async def purge_expired(store: StateStore) -> int:
    purged = await store.purge_expired()
    logger.info(f"Purge completed: {purged} expired request(s) removed")
    return purged


async def cleanup_stale(
    repo: JoinRequestRepository,
    confirm: bool = False,
    limit: int = 100,
) -> dict[str, Any]:
    """List undecided requests; with `confirm`, resolve them as declined by "system"."""
    pending = await repo.find_recent_by_status("pending", limit)
    request_ids = [request.request_id for request in pending]

    results = {"pending": len(request_ids), "request_ids": request_ids, "marked": 0}
    if confirm and request_ids:
        results["marked"] = await repo.mark_pending_as_stale_resolved(request_ids, "system")

    logger.info(f"Stale cleanup: {results['pending']} pending, {results['marked']} marked")
    return results


# =============================================================================
# CLI ENTRY POINT
# =============================================================================


async def run(args: argparse.Namespace, settings: Settings) -> Any:
    bot = TelegramBotClient(settings.bot_token)

    if args.command == "set-webhook":
        return await set_webhook(settings, bot, drop_pending_updates=args.drop_pending_updates)
    if args.command == "webhook-info":
        return await webhook_info(bot)
    if args.command == "delete-webhook":
        return await delete_webhook(bot)

    async with open_store(settings) as store:
        if args.command == "purge-expired":
            return await purge_expired(store)
        repo = JoinRequestRepository(store, settings.reason_limits)
        return await cleanup_stale(repo, confirm=args.confirm, limit=args.limit)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="joingate maintenance jobs")
    subparsers = parser.add_subparsers(dest="command", required=True)

    set_hook = subparsers.add_parser("set-webhook", help="Register PUBLIC_BASE_URL + WEBHOOK_PATH with Telegram")
    set_hook.add_argument(
        "--drop-pending-updates",
        action="store_true",
        help="Discard updates queued while no webhook was set",
    )
    subparsers.add_parser("webhook-info", help="Show the current webhook registration")
    subparsers.add_parser("delete-webhook", help="Remove the webhook registration")
    subparsers.add_parser("purge-expired", help="Delete requests older than REASON_TTL_SECONDS")

    cleanup = subparsers.add_parser("cleanup-stale", help="Resolve undecided requests as declined")
    cleanup.add_argument("--confirm", action="store_true", help="Actually mark them (default: list only)")
    cleanup.add_argument("--limit", type=int, default=100, help="Maximum number of requests to handle")

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point. Returns the process exit status."""
    args = build_parser().parse_args(argv)

    settings = get_settings()
    configure_logging(settings)

    try:
        result = asyncio.run(run(args, settings))
    except (TelegramAPIError, StoreError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Job failed: {e}")
        return 1

    print(f"Job completed: {result}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
