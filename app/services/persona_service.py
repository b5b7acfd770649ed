"""
Persona Reply Generator

Voices a simulated ambassador in a preview conversation. The persona is
assembled from the stored profile and the recent match history is replayed
as chat turns, the ambassador's own lines as ``assistant``.
"""
import logging
import uuid
from typing import Dict, List, Optional, Sequence

from app.core.errors import LLMError, LLMErrorCode
from app.models.enums import HistoryRole
from app.models.schemas import HistoryTurn, ParticipantProfile
from app.services.llm_service import LLMService, get_llm_service

logger = logging.getLogger(__name__)

OPENING_CUE = (
    "(The brand has just opened this chat and has not said anything yet. "
    "Send a short, friendly first message introducing yourself.)"
)
TRUNCATED_CUE = "(Earlier messages omitted.)"


def build_persona_prompt(profile: ParticipantProfile, brand_name: Optional[str] = None) -> str:
    """Compose the system prompt; missing profile fields are simply left out."""
    intro = f"You are {profile.name}"
    details = []
    if profile.age:
        details.append(f"{profile.age} years old")
    if profile.location:
        details.append(f"based in {profile.location}")
    if details:
        intro += ", " + ", ".join(details)
    intro += ", a brand ambassador on the BroughtBy marketplace."

    lines = [intro]
    if profile.bio:
        lines.append(f"About you: {profile.bio}")
    if profile.skills:
        lines.append(f"Your skills: {', '.join(profile.skills)}.")

    counterpart = brand_name or "a brand"
    lines.append(
        f"You are chatting with {counterpart} that matched with you and may want to hire you. "
        "Reply the way a real person would in a messaging app: warm, professional, and brief "
        "(one to three sentences). Ask a question now and then to keep the conversation going. "
        "Stay in character and never say that you are an AI or a language model."
    )
    return "\n".join(lines)


def to_chat_turns(history: Sequence[HistoryTurn]) -> List[Dict[str, str]]:
    turns = [
        {
            "role": "assistant" if turn.role == HistoryRole.COUNTERPART else "user",
            "content": turn.text,
        }
        for turn in history
        if turn.text and turn.text.strip()
    ]
    if not turns:
        return [{"role": "user", "content": OPENING_CUE}]
    # Chat APIs expect the exchange to start with the other party.
    if turns[0]["role"] == "assistant":
        turns.insert(0, {"role": "user", "content": TRUNCATED_CUE})
    return turns


class PersonaReplyGenerator:
    def __init__(self, llm_service: Optional[LLMService] = None) -> None:
        self._llm = llm_service or get_llm_service()

    async def generate(
        self,
        profile: ParticipantProfile,
        history: Sequence[HistoryTurn],
        brand_name: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> str:
        """Return the reply text; raises LLMError on any failure or empty output."""
        request_id = request_id or uuid.uuid4().hex
        system_prompt = build_persona_prompt(profile, brand_name)
        content, _ = await self._llm.invoke(system_prompt, to_chat_turns(history), request_id)

        reply = (content or "").strip()
        if not reply:
            raise LLMError(
                error_code=LLMErrorCode.EMPTY_RESPONSE,
                provider="persona",
                retryable=False,
                error_message="Generated reply was empty",
                metadata={"request_id": request_id, "profile_id": profile.id},
            )
        logger.debug("Generated persona reply for user %s (%s chars)", profile.id, len(reply))
        return reply
