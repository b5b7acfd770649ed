"""
Automated replies on behalf of simulated preview ambassadors.

Both triggers funnel into :meth:`AutoReplyService.reply`, which runs under
the cross-process single-flight lock for the match. The sequence inside
the lock is fixed: typing start, generation, human-like delay, typing stop,
then the persisted reply is broadcast. A generation failure leaves nothing
behind except the typing stop.
"""
import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from app.config.settings import settings
from app.core.metrics import AUTO_REPLY_TOTAL, CHAT_MESSAGES_TOTAL
from app.models.enums import HistoryRole, ReplyTrigger, ServerEvent
from app.models.schemas import ChatMessage, HistoryTurn, Match, ParticipantProfile
from app.repositories.user_repository import UserRepository
from app.services.conversation_repository import ConversationRepository
from app.services.persona_service import PersonaReplyGenerator
from app.services.realtime_service import RealtimeService
from app.services.reply_lock import ReplyLock, single_flight

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DelayConfig:
    min_ms: int
    max_ms: int

    @classmethod
    def from_settings(cls) -> "DelayConfig":
        return cls(min_ms=settings.AUTO_REPLY_MIN_DELAY_MS, max_ms=settings.AUTO_REPLY_MAX_DELAY_MS)

    def pick_seconds(self) -> float:
        if self.max_ms <= 0:
            return 0.0
        return random.uniform(self.min_ms, self.max_ms) / 1000.0


def qualifies_for_first_reply(
    match: Match,
    joiner_id: int,
    brand: Optional[ParticipantProfile],
    ambassador: Optional[ParticipantProfile],
    counterpart_message_count: int,
) -> bool:
    return (
        joiner_id == match.initiator_id
        and brand is not None
        and ambassador is not None
        and brand.is_preview
        and ambassador.is_preview_ambassador
        and counterpart_message_count == 0
    )


def qualifies_for_followup(sender: Optional[ParticipantProfile], recipient: Optional[ParticipantProfile]) -> bool:
    return bool(sender and recipient and sender.is_preview and recipient.is_preview_ambassador)


class AutoReplyService:
    def __init__(
        self,
        conversations: ConversationRepository,
        users: UserRepository,
        lock: ReplyLock,
        realtime: RealtimeService,
        generator: PersonaReplyGenerator,
        delay: Optional[DelayConfig] = None,
        history_limit: Optional[int] = None,
        enabled: Optional[bool] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._conversations = conversations
        self._users = users
        self._lock = lock
        self._realtime = realtime
        self._generator = generator
        self._delay = delay or DelayConfig.from_settings()
        self._history_limit = history_limit or settings.AUTO_REPLY_HISTORY_LIMIT
        self._enabled = settings.AUTO_REPLY_ENABLED if enabled is None else enabled
        self._sleep = sleep

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def reply(self, match: Match, trigger: ReplyTrigger) -> Optional[ChatMessage]:
        """Generate and deliver one reply for ``match`` unless another holder is active.

        Returns the persisted reply, or None when skipped, contended or failed.
        Never raises.
        """
        if not self._enabled:
            AUTO_REPLY_TOTAL.labels(trigger=trigger.value, outcome="skipped").inc()
            return None

        async with single_flight(self._lock, match.id) as acquired:
            if not acquired:
                logger.info("Auto reply for match %s already in flight; skipping (%s)", match.id, trigger.value)
                AUTO_REPLY_TOTAL.labels(trigger=trigger.value, outcome="lock_busy").inc()
                return None
            try:
                message = await self._reply_locked(match, trigger)
            except Exception:
                logger.warning(
                    "Auto reply for match %s failed (%s)", match.id, trigger.value, exc_info=True
                )
                AUTO_REPLY_TOTAL.labels(trigger=trigger.value, outcome="failed").inc()
                return None

        outcome = "sent" if message is not None else "skipped"
        AUTO_REPLY_TOTAL.labels(trigger=trigger.value, outcome=outcome).inc()
        return message

    async def _reply_locked(self, match: Match, trigger: ReplyTrigger) -> Optional[ChatMessage]:
        profiles = await self._users.get_profiles([match.brand_id, match.ambassador_id])
        brand = profiles.get(match.brand_id)
        ambassador = profiles.get(match.ambassador_id)
        if not qualifies_for_followup(brand, ambassador):
            logger.debug("Match %s is not a preview conversation; no auto reply", match.id)
            return None

        if trigger == ReplyTrigger.FIRST:
            # Re-checked under the lock: a reply persisted by an earlier holder
            # must suppress this one.
            sent = await self._conversations.count_messages_by_sender(match.id, ambassador.id)
            if sent:
                logger.debug("Ambassador already replied in match %s", match.id)
                return None

        recent = await self._conversations.recent_messages(match.id, self._history_limit)
        history = [
            HistoryTurn(
                role=HistoryRole.COUNTERPART if message.sender_id == ambassador.id else HistoryRole.OTHER,
                text=message.content,
            )
            for message in recent
        ]

        typing_payload = {"matchId": match.id, "userId": ambassador.id}
        await self._realtime.emit_to_room(match.id, ServerEvent.TYPING, typing_payload)
        try:
            reply_text = await self._generator.generate(ambassador, history, brand_name=brand.name)
            await self._sleep(self._delay.pick_seconds())
        finally:
            await self._realtime.emit_to_room(match.id, ServerEvent.STOP_TYPING, typing_payload)

        message = await self._conversations.append_message(match.id, ambassador.id, reply_text)
        CHAT_MESSAGES_TOTAL.labels(origin="auto_reply").inc()
        wire = message.to_wire()
        # Persisted replies count as sent; clients that miss the push read them from history.
        try:
            await self._realtime.emit_to_room(match.id, ServerEvent.MESSAGE, wire)
            await self._realtime.emit_to_user(brand.id, ServerEvent.NOTIFICATION, {"matchId": match.id, "message": wire})
        except Exception:
            logger.warning("Auto reply %s persisted but not broadcast in match %s", message.id, match.id, exc_info=True)
            return message
        logger.info("Auto reply %s delivered in match %s (%s)", message.id, match.id, trigger.value)
        return message
