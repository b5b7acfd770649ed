import pytest
from unittest.mock import AsyncMock, Mock

from app.core.errors import LLMError, LLMErrorCode
from app.models.enums import HistoryRole
from app.models.schemas import HistoryTurn, ParticipantProfile
from app.services.persona_service import (
    OPENING_CUE,
    TRUNCATED_CUE,
    PersonaReplyGenerator,
    build_persona_prompt,
    to_chat_turns,
)


@pytest.fixture
def ambassador():
    return ParticipantProfile(
        id=2,
        name="Riley",
        role="ambassador",
        bio="Trail runner and weekend photographer",
        location="Denver",
        age=27,
        skills=["photography", "running"],
        is_preview_ambassador=True,
    )


def test_prompt_includes_profile_fields(ambassador):
    prompt = build_persona_prompt(ambassador, brand_name="Acme")

    assert "You are Riley, 27 years old, based in Denver" in prompt
    assert "Trail runner" in prompt
    assert "photography, running" in prompt
    assert "Acme" in prompt
    assert "never say that you are an AI" in prompt


def test_prompt_skips_missing_fields():
    sparse = ParticipantProfile(id=5, name="Sam", role="ambassador")

    prompt = build_persona_prompt(sparse)

    assert prompt.startswith("You are Sam, a brand ambassador")
    assert "About you" not in prompt
    assert "skills" not in prompt
    assert "a brand that matched" in prompt


def test_history_roles_map_to_chat_roles():
    history = [
        HistoryTurn(role=HistoryRole.OTHER, text="Hi Riley"),
        HistoryTurn(role=HistoryRole.COUNTERPART, text="Hey!"),
        HistoryTurn(role=HistoryRole.OTHER, text="Want to work together?"),
    ]

    assert to_chat_turns(history) == [
        {"role": "user", "content": "Hi Riley"},
        {"role": "assistant", "content": "Hey!"},
        {"role": "user", "content": "Want to work together?"},
    ]


def test_empty_history_gets_opening_cue():
    assert to_chat_turns([]) == [{"role": "user", "content": OPENING_CUE}]


def test_history_starting_with_counterpart_is_prefixed():
    turns = to_chat_turns([HistoryTurn(role=HistoryRole.COUNTERPART, text="Still there?")])

    assert turns[0] == {"role": "user", "content": TRUNCATED_CUE}
    assert turns[1]["role"] == "assistant"


@pytest.mark.asyncio
async def test_generate_returns_trimmed_reply(ambassador):
    llm = Mock()
    llm.invoke = AsyncMock(return_value=("  Sounds great!  ", {}))
    generator = PersonaReplyGenerator(llm)

    reply = await generator.generate(ambassador, [HistoryTurn(role=HistoryRole.OTHER, text="Hi")], brand_name="Acme")

    assert reply == "Sounds great!"
    system_prompt, messages, request_id = llm.invoke.await_args[0]
    assert "Riley" in system_prompt
    assert messages == [{"role": "user", "content": "Hi"}]
    assert request_id


@pytest.mark.asyncio
async def test_blank_reply_is_an_error(ambassador):
    llm = Mock()
    llm.invoke = AsyncMock(return_value=("   ", {}))

    with pytest.raises(LLMError) as exc_info:
        await PersonaReplyGenerator(llm).generate(ambassador, [])

    assert exc_info.value.error_code == LLMErrorCode.EMPTY_RESPONSE


@pytest.mark.asyncio
async def test_llm_failure_propagates(ambassador):
    llm = Mock()
    llm.invoke = AsyncMock(side_effect=LLMError(error_code=LLMErrorCode.TIMEOUT, provider="openai", retryable=True))

    with pytest.raises(LLMError):
        await PersonaReplyGenerator(llm).generate(ambassador, [])
