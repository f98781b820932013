"""Shared fixtures: settings, a recording fake Bot API, stores and services."""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
import ulid

from joingate.core.config import Settings
from joingate.core.database import close_db, create_engine, create_session_factory, init_db
from joingate.domain.join_request import JoinRequest, JoinRequestInput
from joingate.integrations.telegram.client import TelegramAPIError
from joingate.messages import set_locale
from joingate.services.admin_commands import AdminCommands
from joingate.services.join_request_service import JoinRequestService
from joingate.storage.repository import JoinRequestRepository
from joingate.storage.sql_store import SQLStateStore
from joingate.storage.state import MemoryStateStore

TARGET_CHAT_ID = -1001111111111
ADMIN_CHAT_ID = -1002222222222
ADMIN_ID = 4242
REQUESTER_ID = 777

VALID_REASON = "I would like to join because I am interested in the topic and want to participate."


# =============================================================================
# FAKE BOT API
# =============================================================================


class FakeBot:
    """
    In-memory stand-in for the Bot API client.

    Records every call. Failures are injected per method via `errors`
    (method name -> exception) or per recipient via `unreachable`.
    """

    def __init__(self):
        self.calls: list[tuple[str, dict]] = []
        self.errors: dict[str, Exception] = {}
        self.unreachable: set[int] = set()
        self.admins: set[tuple[int, int]] = set()
        self._next_message_id = 500

    def calls_to(self, method: str) -> list[dict]:
        return [params for name, params in self.calls if name == method]

    def _record(self, method: str, **params) -> None:
        self.calls.append((method, params))
        if method in self.errors:
            raise self.errors[method]

    async def send_message(self, chat_id, text, parse_mode="HTML", reply_markup=None):
        self._record("send_message", chat_id=chat_id, text=text, parse_mode=parse_mode, reply_markup=reply_markup)
        if chat_id in self.unreachable:
            raise TelegramAPIError("Forbidden: bot can't initiate conversation with a user", 403)
        self._next_message_id += 1
        return {"message_id": self._next_message_id, "chat": {"id": chat_id}, "text": text}

    async def edit_message_text(self, chat_id, message_id, text, parse_mode="HTML", reply_markup=None):
        self._record(
            "edit_message_text",
            chat_id=chat_id,
            message_id=message_id,
            text=text,
            parse_mode=parse_mode,
            reply_markup=reply_markup,
        )
        return True

    async def answer_callback_query(self, callback_query_id, text=None, show_alert=False):
        self._record("answer_callback_query", callback_query_id=callback_query_id, text=text, show_alert=show_alert)
        return True

    async def get_chat_member(self, chat_id, user_id):
        self._record("get_chat_member", chat_id=chat_id, user_id=user_id)
        status = "administrator" if (chat_id, user_id) in self.admins else "member"
        return {"status": status, "user": {"id": user_id}}

    async def approve_chat_join_request(self, chat_id, user_id):
        self._record("approve_chat_join_request", chat_id=chat_id, user_id=user_id)
        return True

    async def decline_chat_join_request(self, chat_id, user_id):
        self._record("decline_chat_join_request", chat_id=chat_id, user_id=user_id)
        return True


# =============================================================================
# HELPERS
# =============================================================================


def make_request_id(created_at: datetime | None = None) -> str:
    """A ULID whose time component is `created_at`, so ordering is deterministic."""
    return str(ulid.from_timestamp(created_at or datetime.now(timezone.utc)))


def make_input(user_id: int = REQUESTER_ID, seconds_ago: int = 0, **overrides) -> JoinRequestInput:
    created_at = datetime.now(timezone.utc) - timedelta(seconds=seconds_ago)
    values = {
        "request_id": make_request_id(created_at),
        "user_id": user_id,
        "target_chat_id": TARGET_CHAT_ID,
        "display_name": "Max Mustermann",
        "username": "maxm",
        "timestamp": created_at,
    }
    values.update(overrides)
    return JoinRequestInput(**values)


async def start_request(repo: JoinRequestRepository, input: JoinRequestInput | None = None) -> JoinRequest:
    """Create a request and move it to collecting_reason, as the service does."""
    request = await repo.create(input or make_input())
    request.start_collection()
    await repo.save(request)
    return request


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def default_locale():
    set_locale("de")
    yield
    set_locale("de")


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        bot_token="123456:TEST-TOKEN",
        target_chat_id=TARGET_CHAT_ID,
        admin_review_chat_id=ADMIN_CHAT_ID,
        storage_type="memory",
        join_link="https://t.me/+invite",
        environment="test",
    )


@pytest.fixture
def bot() -> FakeBot:
    fake = FakeBot()
    fake.admins = {(TARGET_CHAT_ID, ADMIN_ID), (ADMIN_CHAT_ID, ADMIN_ID)}
    return fake


@pytest.fixture
def memory_store(settings: Settings) -> MemoryStateStore:
    return MemoryStateStore(ttl_seconds=settings.reason_ttl_seconds)


@pytest.fixture
def repo(memory_store: MemoryStateStore, settings: Settings) -> JoinRequestRepository:
    return JoinRequestRepository(memory_store, settings.reason_limits)


@pytest.fixture
def service(repo: JoinRequestRepository, settings: Settings, bot: FakeBot) -> JoinRequestService:
    return JoinRequestService(repo, settings, bot)


@pytest.fixture
def admin_commands(repo: JoinRequestRepository, settings: Settings, bot: FakeBot) -> AdminCommands:
    return AdminCommands(repo, settings, bot)


@pytest_asyncio.fixture
async def sql_engine():
    engine = create_engine("sqlite+aiosqlite:///:memory:")
    await init_db(engine)
    try:
        yield engine
    finally:
        await close_db(engine)


@pytest.fixture
def session_factory(sql_engine):
    return create_session_factory(sql_engine)


@pytest.fixture
def sql_store(session_factory, settings: Settings) -> SQLStateStore:
    return SQLStateStore(session_factory, ttl_seconds=settings.reason_ttl_seconds)


@pytest.fixture(params=["memory", "sql"])
def any_store(request, memory_store, sql_store):
    """Runs a test once per storage backend."""
    return memory_store if request.param == "memory" else sql_store
