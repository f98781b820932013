"""
Join request workflow service.

Translates the three inbound event kinds into entity calls:
- join requested      -> initialize_request
- requester text      -> handle_user_message
- moderator decision  -> handle_admin_action

Keeps the chat platform and the stored entity convergent across partial
failures. Store errors propagate; chat API errors are handled here.
"""

import logging
from dataclasses import dataclass

import ulid

from ..core.config import Settings
from ..domain.join_request import AdminAction, JoinRequest, JoinRequestInput, JoinRequestState
from ..integrations.telegram.client import ChatApi, TelegramAPIError
from ..integrations.telegram.errors import send_error_to_admin_group
from ..messages import get_message
from ..storage.repository import JoinRequestRepository
from .authz import is_admin_in_both_chats
from .review_card import (
    ReviewCardData,
    append_message_to_review_card,
    post_review_card,
    update_review_card,
)

logger = logging.getLogger(__name__)


# Chat API errors meaning the platform already reflects the desired outcome
ALREADY_APPROVED_MARKERS = ("USER_ALREADY_PARTICIPANT", "HIDE_REQUESTER_MISSING")
ALREADY_DECLINED_MARKERS = ("USER_NOT_PARTICIPANT", "user not found", "HIDE_REQUESTER_MISSING")


@dataclass
class AdminActionResult:
    """Outcome of a moderator decision, shown to the moderator as-is."""
    ok: bool
    message: str
    already_handled: bool = False


def display_name_for(user: dict) -> str:
    first = user.get("first_name") or ""
    last = user.get("last_name")
    name = f"{first} {last}" if last else first
    return name.strip() or "User"


class JoinRequestService:
    """Workflow orchestration over a repository and a chat API."""

    def __init__(self, repo: JoinRequestRepository, settings: Settings, bot: ChatApi):
        self.repo = repo
        self.settings = settings
        self.bot = bot

    # =========================================================================
    # JOIN REQUESTED
    # =========================================================================

    async def initialize_request(
        self,
        user: dict,
        target_chat_id: int,
        user_chat_id: int | None = None,
    ) -> JoinRequest:
        """
        Open a new request and ask the requester for a reason.

        If the requester cannot be messaged, the request is moved to review
        with a placeholder reason so moderators still see it.
        """
        user_id = user["id"]
        request_id = str(ulid.new())

        logger.info(
            f"Join request received: user_id={user_id} request_id={request_id} "
            f"target_chat_id={target_chat_id}"
        )

        request = await self.repo.create(
            JoinRequestInput(
                request_id=request_id,
                user_id=user_id,
                target_chat_id=target_chat_id,
                display_name=display_name_for(user),
                username=user.get("username"),
            )
        )
        request.start_collection()
        await self.repo.save(request)

        limits = self.settings.reason_limits
        try:
            await self.bot.send_message(
                user_chat_id or user_id,
                get_message(
                    "welcome",
                    min_words=limits.min_reason_words,
                    max_chars=limits.max_reason_chars,
                ),
                parse_mode=None,
            )
            return request
        except TelegramAPIError as e:
            logger.error(f"Failed to send DM to user {user_id}: {e}")

        placeholder = get_message("dm-failed")
        result = request.submit_placeholder_reason(placeholder)
        if not result.success:
            logger.error(f"Could not record placeholder reason for {request_id}: {result.error}")
            return request

        await self.repo.save(request)
        await self._post_card(request)
        return request

    # =========================================================================
    # REQUESTER MESSAGES
    # =========================================================================

    async def handle_user_message(self, user_id: int, text: str) -> str | None:
        """Route free text from a requester. Returns the reply to send, if any."""
        request = await self.repo.find_by_user_id(user_id)
        if request is None:
            return get_message("no-active-request")

        context = request.context
        if context.user_id != user_id or context.target_chat_id != self.settings.target_chat_id:
            logger.warning(
                f"Request mismatch: user_id={user_id} request_user_id={context.user_id} "
                f"request_target_chat_id={context.target_chat_id}"
            )
            return None

        if request.is_processed():
            return get_message("request-already-decided")

        if request.state == JoinRequestState.COLLECTING_REASON:
            result = request.submit_reason(text)
            if not result.success:
                return result.error or get_message("invalid-input")

            await self.repo.save(request)

            admin_msg_id = await self._post_card(request)
            if admin_msg_id is None:
                return get_message("saved-manual-follow-up")
            return get_message("thank-you")

        if request.state == JoinRequestState.AWAITING_REVIEW:
            result = request.add_message(text)
            if not result.success:
                return result.error or get_message("error-adding-msg")

            await self.repo.save(request)

            context = request.context
            if context.admin_msg_id is not None:
                await append_message_to_review_card(
                    self.bot,
                    context.admin_msg_id,
                    ReviewCardData.from_context(context),
                    self.settings,
                )
            return get_message("msg-added")

        return None

    # =========================================================================
    # MODERATOR DECISIONS
    # =========================================================================

    async def handle_admin_action(
        self,
        request_id: str,
        admin_id: int,
        admin_name: str,
        action: AdminAction,
    ) -> AdminActionResult:
        """
        Apply a moderator's approve/decline.

        Already-decided requests short-circuit before any chat API call. A chat
        API error leaves the entity untouched, so the moderator can retry.
        """
        action = AdminAction(action)

        request = await self.repo.find_by_id(request_id)
        if request is None:
            return AdminActionResult(ok=False, message=get_message("request-not-found"))

        if request.is_processed():
            return AdminActionResult(ok=True, message=get_message("request-processed"), already_handled=True)

        if not await is_admin_in_both_chats(self.bot, admin_id, self.settings):
            logger.warning(f"Unauthorized {action.value} attempt on {request_id} by user {admin_id}")
            return AdminActionResult(ok=False, message=get_message("not-authorized"))

        context = request.context

        try:
            already_applied = await self._apply_membership_decision(
                action, context.target_chat_id, context.user_id
            )
        except TelegramAPIError as e:
            logger.error(f"Admin action {action.value} failed for {request_id}: {e}")
            await send_error_to_admin_group(
                self.bot, self.settings.admin_review_chat_id, e, f"{action.value} {request_id}"
            )
            error_key = "error-approving" if action == AdminAction.APPROVE else "error-declining"
            return AdminActionResult(ok=False, message=get_message(error_key))

        result = request.decide(action, admin_id, admin_name)
        if not result.success:
            return AdminActionResult(ok=False, message=result.error or get_message("error-generic"))

        await self.repo.save(request)

        await self._notify_requester(action, context.user_id)

        context = request.context
        if context.admin_msg_id is not None:
            await update_review_card(
                self.bot,
                context.admin_msg_id,
                context.decision.status.value,
                admin_name,
                ReviewCardData.from_context(context),
                self.settings,
            )

        if action == AdminAction.APPROVE:
            key = "already-approved" if already_applied else "action-success-approved"
        else:
            key = "already-declined" if already_applied else "action-success-declined"
        return AdminActionResult(ok=True, message=get_message(key))

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _apply_membership_decision(
        self, action: AdminAction, chat_id: int, user_id: int
    ) -> bool:
        """Call the platform. Returns True if it already reflected the outcome."""
        if action == AdminAction.APPROVE:
            call, markers = self.bot.approve_chat_join_request, ALREADY_APPROVED_MARKERS
        else:
            call, markers = self.bot.decline_chat_join_request, ALREADY_DECLINED_MARKERS

        try:
            await call(chat_id, user_id)
        except TelegramAPIError as e:
            if any(marker in e.description for marker in markers):
                logger.info(f"{action.value}: platform already in end state for user {user_id} ({e.description})")
                return True
            raise

        return False

    async def _notify_requester(self, action: AdminAction, user_id: int) -> None:
        try:
            if action == AdminAction.APPROVE:
                await self.bot.send_message(user_id, get_message("approved-user"), parse_mode=None)
                if self.settings.join_link:
                    await self.bot.send_message(
                        user_id,
                        get_message("approved-user-intro", join_link=self.settings.join_link),
                        parse_mode=None,
                    )
            else:
                await self.bot.send_message(user_id, get_message("declined-user"), parse_mode=None)
        except TelegramAPIError as e:
            logger.error(f"Failed to notify user {user_id}: {e}")

    async def _post_card(self, request: JoinRequest) -> int | None:
        """Post the review card and record its message id on the request."""
        admin_msg_id = await post_review_card(
            self.bot, ReviewCardData.from_context(request.context), self.settings
        )
        if admin_msg_id is None:
            logger.warning(f"Review card not posted for {request.request_id}; needs manual follow-up")
            return None

        result = request.set_admin_msg_id(admin_msg_id)
        if not result.success:
            logger.warning(f"Could not record review card for {request.request_id}: {result.error}")
            return admin_msg_id

        await self.repo.save(request)
        return admin_msg_id
