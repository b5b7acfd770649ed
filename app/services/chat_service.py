"""
Chat Service

The send / join / history flows shared by the socket gateway and the REST
routes. Everything that talks to the outside world is injected, so several
instances (one per worker process) can share the same stores and lock.
"""
import logging
from typing import Dict, List, Optional

from app.config.settings import settings
from app.core.errors import ForbiddenError, InvalidRequestError, MatchAccessDenied, NotFoundError
from app.core.metrics import CHAT_MESSAGES_TOTAL
from app.models.enums import ReplyTrigger, ServerEvent
from app.models.schemas import ChatMessage, Match, MatchSummary, ParticipantProfile
from app.repositories.match_repository import MatchRepository
from app.repositories.preview_repository import PreviewRepository
from app.repositories.user_repository import UserRepository
from app.services.auto_reply_service import (
    AutoReplyService,
    qualifies_for_first_reply,
    qualifies_for_followup,
)
from app.services.background_task_service import BackgroundTaskService
from app.services.conversation_repository import ConversationRepository
from app.services.notification_service import NotificationService
from app.services.realtime_service import RealtimeService

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 5000


class ChatService:
    def __init__(
        self,
        conversations: ConversationRepository,
        matches: MatchRepository,
        users: UserRepository,
        realtime: RealtimeService,
        notifier: NotificationService,
        auto_replies: AutoReplyService,
        tasks: BackgroundTaskService,
        previews: Optional[PreviewRepository] = None,
        notify_offline_only: Optional[bool] = None,
    ) -> None:
        self.conversations = conversations
        self.matches = matches
        self.users = users
        self.realtime = realtime
        self.notifier = notifier
        self.auto_replies = auto_replies
        self.tasks = tasks
        self.previews = previews
        self.notify_offline_only = settings.NOTIFY_OFFLINE_ONLY if notify_offline_only is None else notify_offline_only

    async def authorize(self, match_id: int, user_id: int) -> Match:
        """Return the match if ``user_id`` participates in it.

        Unknown matches are reported the same way as foreign ones.
        """
        match = await self.matches.get_match_for_participant(match_id, user_id)
        if match is None:
            raise MatchAccessDenied(match_id)
        return match

    async def list_matches(self, user_id: int) -> List[MatchSummary]:
        return await self.matches.list_matches_for_user(user_id)

    async def get_history(self, match_id: int, reader_id: int) -> List[ChatMessage]:
        """Ascending history; the other party's messages are then marked read."""
        await self.authorize(match_id, reader_id)
        messages = await self.conversations.list_messages(match_id)
        updated = await self.conversations.mark_read(match_id, reader_id)
        if updated:
            logger.debug("Marked %s message(s) read in match %s for user %s", updated, match_id, reader_id)
        return messages

    async def send_message(self, sender_id: int, match_id: int, content: str) -> ChatMessage:
        if not isinstance(content, str) or not content.strip():
            raise InvalidRequestError("Message content is required")
        if len(content) > MAX_MESSAGE_LENGTH:
            raise InvalidRequestError(
                "Message is too long",
                details={"max_length": MAX_MESSAGE_LENGTH},
            )

        match = await self.authorize(match_id, sender_id)
        message = await self.conversations.append_message(match.id, sender_id, content)
        CHAT_MESSAGES_TOTAL.labels(origin="human").inc()

        wire = message.to_wire()
        recipient_id = match.other_participant(sender_id)
        await self.realtime.emit_to_room(match.id, ServerEvent.MESSAGE, wire)
        await self.realtime.emit_to_user(recipient_id, ServerEvent.NOTIFICATION, {"matchId": match.id, "message": wire})

        try:
            await self._after_send(match, message, recipient_id)
        except Exception:
            # The message is already stored and delivered at this point.
            logger.error("Post-send side effects failed for message %s", message.id, exc_info=True)
        return message

    async def _after_send(self, match: Match, message: ChatMessage, recipient_id: int) -> None:
        profiles = await self.users.get_profiles([message.sender_id, recipient_id])
        sender = profiles.get(message.sender_id)
        recipient = profiles.get(recipient_id)

        if qualifies_for_followup(sender, recipient):
            if self.auto_replies.enabled:
                self.tasks.spawn(f"auto_reply:{match.id}", self.auto_replies.reply(match, ReplyTrigger.FOLLOWUP))
            # Simulated ambassadors have no inbox to notify.
            return

        if recipient is None:
            logger.warning("Recipient %s of match %s has no profile; skipping e-mail", recipient_id, match.id)
            return
        if self.notify_offline_only and self.realtime.is_user_online(recipient_id):
            logger.debug("Recipient %s is connected; skipping e-mail", recipient_id)
            return

        sender_name = (sender.name if sender else None) or message.sender_name or "Someone"
        self.tasks.spawn(
            f"notify:{match.id}",
            self.notifier.notify(recipient, sender_name, message.content, match.id),
        )

    async def maybe_first_reply(self, match: Match, joiner_id: int) -> bool:
        """Schedule the simulated ambassador's opening reply when the join qualifies."""
        if not self.auto_replies.enabled or joiner_id != match.initiator_id:
            return False

        profiles = await self.users.get_profiles([match.brand_id, match.ambassador_id])
        brand = profiles.get(match.brand_id)
        ambassador = profiles.get(match.ambassador_id)
        if not (brand and ambassador and brand.is_preview and ambassador.is_preview_ambassador):
            return False

        sent = await self.conversations.count_messages_by_sender(match.id, ambassador.id)
        if not qualifies_for_first_reply(match, joiner_id, brand, ambassador, sent):
            return False

        self.tasks.spawn(f"auto_reply:{match.id}", self.auto_replies.reply(match, ReplyTrigger.FIRST))
        return True

    async def reset_preview(self, user_id: int) -> Dict[str, int]:
        if self.previews is None:
            raise RuntimeError("Preview repository is not configured")
        profile: Optional[ParticipantProfile] = await self.users.get_profile(user_id)
        if profile is None:
            raise NotFoundError("user", user_id)
        if not profile.is_preview:
            raise ForbiddenError("Only preview accounts can reset")
        removed = await self.previews.reset_preview_data(user_id)
        logger.info("Preview data reset for user %s: %s", user_id, removed)
        return removed
