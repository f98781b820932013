"""FastAPI dependencies that assemble the request-scoped collaborators."""

from typing import Annotated

from fastapi import Depends, Request

from ..integrations.telegram.client import TelegramBotClient
from ..integrations.telegram.router import UpdateRouter
from ..services.admin_commands import AdminCommands
from ..services.join_request_service import JoinRequestService
from ..storage.repository import JoinRequestRepository
from ..storage.state import StateStore
from .config import Settings


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> StateStore:
    return request.app.state.store


def get_bot(request: Request) -> TelegramBotClient:
    return request.app.state.bot


SettingsDep = Annotated[Settings, Depends(get_app_settings)]
StoreDep = Annotated[StateStore, Depends(get_store)]
BotDep = Annotated[TelegramBotClient, Depends(get_bot)]


def get_repository(store: StoreDep, settings: SettingsDep) -> JoinRequestRepository:
    return JoinRequestRepository(store, settings.reason_limits)


RepositoryDep = Annotated[JoinRequestRepository, Depends(get_repository)]


def get_update_router(repo: RepositoryDep, settings: SettingsDep, bot: BotDep) -> UpdateRouter:
    """One router (and service) per delivery; nothing is shared between updates."""
    service = JoinRequestService(repo, settings, bot)
    admin = AdminCommands(repo, settings, bot)
    return UpdateRouter(service, admin, settings, bot)


UpdateRouterDep = Annotated[UpdateRouter, Depends(get_update_router)]
