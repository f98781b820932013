"""
Tests for UpdateRouter - dispatch of raw Bot API updates.
"""

import pytest

from joingate.domain.join_request import JoinRequestState
from joingate.integrations.telegram.router import UpdateRouter, parse_command
from joingate.messages import get_message
from joingate.storage.repository import JoinRequestRepository
from joingate.storage.state import StoreError

from .conftest import ADMIN_CHAT_ID, ADMIN_ID, REQUESTER_ID, TARGET_CHAT_ID, VALID_REASON, FakeBot

REQUESTER = {"id": REQUESTER_ID, "is_bot": False, "first_name": "Max", "username": "maxm"}
MODERATOR = {"id": ADMIN_ID, "is_bot": False, "first_name": "Alice", "username": "alice"}


@pytest.fixture
def router(service, admin_commands, settings, bot) -> UpdateRouter:
    return UpdateRouter(service, admin_commands, settings, bot)


def join_request_update(chat_id: int = TARGET_CHAT_ID) -> dict:
    return {
        "update_id": 1,
        "chat_join_request": {
            "chat": {"id": chat_id, "type": "supergroup"},
            "from": REQUESTER,
            "user_chat_id": REQUESTER_ID,
            "date": 1700000000,
        },
    }


def private_message(text: str, sender: dict = REQUESTER) -> dict:
    return {
        "update_id": 2,
        "message": {
            "message_id": 10,
            "from": sender,
            "chat": {"id": sender["id"], "type": "private"},
            "text": text,
        },
    }


def group_message(text: str, chat_id: int, sender: dict = MODERATOR) -> dict:
    return {
        "update_id": 3,
        "message": {
            "message_id": 11,
            "from": sender,
            "chat": {"id": chat_id, "type": "supergroup"},
            "text": text,
        },
    }


def callback(data: str, sender: dict = MODERATOR, chat_id: int = ADMIN_CHAT_ID) -> dict:
    return {
        "update_id": 4,
        "callback_query": {
            "id": "cbq-1",
            "from": sender,
            "data": data,
            "message": {"message_id": 77, "chat": {"id": chat_id, "type": "supergroup"}},
        },
    }


class TestParseCommand:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("/pending", ("pending", "")),
            ("/pending 5", ("pending", "5")),
            ("/Pending@JoinGateBot 5 ", ("pending", "5")),
            ("/cleanup confirm", ("cleanup", "confirm")),
        ],
    )
    def test_parse(self, text, expected):
        assert parse_command(text) == expected


class TestJoinRequests:
    async def test_target_chat_opens_request(self, router: UpdateRouter, repo: JoinRequestRepository):
        await router.handle(join_request_update())

        request = await repo.find_by_user_id(REQUESTER_ID)
        assert request.state == JoinRequestState.COLLECTING_REASON

    async def test_other_chat_is_ignored(self, router: UpdateRouter, repo: JoinRequestRepository, bot: FakeBot):
        await router.handle(join_request_update(chat_id=-100555))

        assert await repo.find_by_user_id(REQUESTER_ID) is None
        assert bot.calls == []

    async def test_store_failure_propagates(self, router: UpdateRouter, repo: JoinRequestRepository):
        async def broken_set(request_id, state):
            raise StoreError("set failed")

        repo.store.set = broken_set

        with pytest.raises(StoreError):
            await router.handle(join_request_update())


class TestMessages:
    async def test_reason_gets_reply(self, router: UpdateRouter, bot: FakeBot):
        await router.handle(join_request_update())
        bot.calls.clear()

        await router.handle(private_message(VALID_REASON))

        replies = [c for c in bot.calls_to("send_message") if c["chat_id"] == REQUESTER_ID]
        assert [r["text"] for r in replies] == [get_message("thank-you")]

    async def test_group_text_is_ignored(self, router: UpdateRouter, bot: FakeBot):
        await router.handle(group_message("hello everyone", TARGET_CHAT_ID, sender=REQUESTER))

        assert bot.calls == []

    async def test_unknown_command_is_ignored(self, router: UpdateRouter, bot: FakeBot):
        await router.handle(private_message("/start"))

        assert bot.calls == []

    async def test_non_text_message_is_ignored(self, router: UpdateRouter, bot: FakeBot):
        update = private_message("x")
        del update["message"]["text"]

        await router.handle(update)

        assert bot.calls == []


class TestAdminCommandRouting:
    async def test_admin_dashboard_in_moderator_chat(self, router: UpdateRouter, bot: FakeBot):
        await router.handle(group_message("/admin", ADMIN_CHAT_ID))

        [dashboard] = bot.calls_to("send_message")
        assert dashboard["chat_id"] == ADMIN_CHAT_ID
        assert dashboard["text"] == get_message("admin-dashboard")

    async def test_pending_in_private_for_moderator(self, router: UpdateRouter, bot: FakeBot):
        await router.handle(private_message("/pending 3", sender=MODERATOR))

        texts = [c["text"] for c in bot.calls_to("send_message")]
        assert texts[0] == get_message("admin-fetching", limit=3)

    async def test_commands_refused_for_non_moderators(self, router: UpdateRouter, bot: FakeBot):
        await router.handle(private_message("/pending", sender=REQUESTER))

        assert bot.calls_to("send_message") == []


class TestCallbackRouting:
    async def test_approve_button(self, router: UpdateRouter, repo: JoinRequestRepository, bot: FakeBot):
        await router.handle(join_request_update())
        await router.handle(private_message(VALID_REASON))
        request = await repo.find_by_user_id(REQUESTER_ID)
        bot.calls.clear()

        await router.handle(callback(f"approve_{request.request_id}"))

        assert (await repo.find_by_id(request.request_id)).state == JoinRequestState.APPROVED
        [answer] = bot.calls_to("answer_callback_query")
        assert answer["text"] == get_message("action-success-approved")
        assert answer["show_alert"] is False

    async def test_failure_is_shown_as_alert(self, router: UpdateRouter, bot: FakeBot):
        await router.handle(callback("decline_01HZZZZZZZZZZZZZZZZZZZZZZZ"))

        [answer] = bot.calls_to("answer_callback_query")
        assert answer["text"] == get_message("request-not-found")
        assert answer["show_alert"] is True

    async def test_malformed_request_id(self, router: UpdateRouter, bot: FakeBot):
        await router.handle(callback("approve_not-a-ulid"))

        [answer] = bot.calls_to("answer_callback_query")
        assert answer["text"] == get_message("invalid-request-id", request_id="not-a-ulid")
        assert answer["show_alert"] is True

    async def test_unknown_action(self, router: UpdateRouter, bot: FakeBot):
        await router.handle(callback("ban_01HZZZZZZZZZZZZZZZZZZZZZZZ"))

        [answer] = bot.calls_to("answer_callback_query")
        assert answer["text"] == get_message("invalid-callback")

    async def test_dashboard_button_edits_listing(self, router: UpdateRouter, bot: FakeBot):
        await router.handle(callback("admin:completed"))

        [edit] = bot.calls_to("edit_message_text")
        assert edit["chat_id"] == ADMIN_CHAT_ID
        assert edit["message_id"] == 77
        assert get_message("admin-title-completed") in edit["text"]

    async def test_dashboard_button_refused_elsewhere(self, router: UpdateRouter, bot: FakeBot):
        await router.handle(callback("admin:pending", sender=REQUESTER, chat_id=TARGET_CHAT_ID))

        [answer] = bot.calls_to("answer_callback_query")
        assert answer["text"] == get_message("not-authorized")
        assert bot.calls_to("edit_message_text") == []


class TestReplyFailures:
    async def test_failed_reply_does_not_fail_the_update(
        self, router: UpdateRouter, repo: JoinRequestRepository, bot: FakeBot
    ):
        await router.handle(join_request_update())
        bot.unreachable.add(REQUESTER_ID)

        # Must not raise: an error here would make the webhook answer 500 and
        # Telegram would redeliver the reason as a follow-up message
        await router.handle(private_message(VALID_REASON))

        request = await repo.find_by_user_id(REQUESTER_ID)
        assert request.state == JoinRequestState.AWAITING_REVIEW
        assert request.context.reason == VALID_REASON
        assert request.context.additional_messages == []
        assert bot.calls_to("edit_message_text") == []

    async def test_failed_admin_reply_is_swallowed(self, router: UpdateRouter, bot: FakeBot):
        bot.unreachable.add(ADMIN_CHAT_ID)

        await router.handle(group_message("/pending", ADMIN_CHAT_ID))
        await router.handle(group_message("/cleanup", ADMIN_CHAT_ID))
        await router.handle(group_message("/admin", ADMIN_CHAT_ID))

        assert len(bot.calls_to("send_message")) == 4
