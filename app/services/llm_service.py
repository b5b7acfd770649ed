"""
LLM Service - Unified interface for the text-generation providers used to
voice simulated counterparts.

Every provider takes a system prompt plus a list of ``{"role", "content"}``
chat turns (roles ``user`` / ``assistant``) and returns ``(text, usage)``.
The service applies the configured timeout and records call metrics.
"""
import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

import google.generativeai as genai
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from app.config.settings import settings
from app.core.errors import LLMError, LLMErrorCode
from app.core.metrics import LLM_CALLS_TOTAL, LLM_LATENCY_SECONDS
from app.core.secrets import SecretProvider
from app.services.provider_errors import map_anthropic_error, map_gemini_error, map_openai_error

logger = logging.getLogger(__name__)

ChatTurns = List[Dict[str, str]]


class LLMProvider(ABC):
    name: str = "base"
    default_model: str = ""

    @abstractmethod
    async def invoke(
        self, model: str, system_prompt: str, messages: ChatTurns, request_id: str
    ) -> Tuple[str, Dict[str, Any]]:
        pass

    def map_error(self, error: Exception) -> LLMError:
        return LLMError(
            error_code=LLMErrorCode.UNKNOWN_ERROR,
            provider=self.name,
            retryable=False,
            original_error=error,
        )


class OpenAIProvider(LLMProvider):
    name = "openai"
    default_model = "gpt-4o-mini"

    def __init__(self, secret_provider: SecretProvider):
        super().__init__()
        api_key = secret_provider.get("OPENAI_API_KEY")
        if not api_key:
            raise ValueError("OpenAI API key not found in secret provider.")
        self.async_client = AsyncOpenAI(api_key=api_key)

    async def invoke(
        self, model: str, system_prompt: str, messages: ChatTurns, request_id: str
    ) -> Tuple[str, Dict[str, Any]]:
        response = await self.async_client.chat.completions.create(
            model=model,
            messages=[{"role": "system", "content": system_prompt}, *messages],
            temperature=settings.LLM_TEMPERATURE,
            max_tokens=settings.LLM_MAX_TOKENS,
        )
        usage_data = response.usage
        content = response.choices[0].message.content or ""
        metrics = {
            "prompt_tokens": usage_data.prompt_tokens if usage_data else 0,
            "completion_tokens": usage_data.completion_tokens if usage_data else 0,
            "total_tokens": usage_data.total_tokens if usage_data else 0,
        }
        return content, metrics

    def map_error(self, error: Exception) -> LLMError:
        return map_openai_error(error, self.name)


class ClaudeProvider(LLMProvider):
    name = "claude"
    default_model = "claude-3-5-haiku-latest"

    def __init__(self, secret_provider: SecretProvider):
        super().__init__()
        api_key = secret_provider.get("ANTHROPIC_API_KEY")
        if not api_key:
            raise ValueError("Anthropic API key not found.")
        self.async_client = AsyncAnthropic(api_key=api_key)

    async def invoke(
        self, model: str, system_prompt: str, messages: ChatTurns, request_id: str
    ) -> Tuple[str, Dict[str, Any]]:
        response = await self.async_client.messages.create(
            model=model,
            system=system_prompt,
            messages=messages,
            max_tokens=settings.LLM_MAX_TOKENS,
            temperature=settings.LLM_TEMPERATURE,
        )
        content = "".join(block.text for block in response.content if getattr(block, "type", "text") == "text")
        metrics = {
            "prompt_tokens": response.usage.input_tokens,
            "completion_tokens": response.usage.output_tokens,
            "total_tokens": response.usage.input_tokens + response.usage.output_tokens,
        }
        return content, metrics

    def map_error(self, error: Exception) -> LLMError:
        return map_anthropic_error(error, self.name)


class GeminiProvider(LLMProvider):
    name = "gemini"
    default_model = "gemini-1.5-flash"

    def __init__(self, secret_provider: SecretProvider):
        super().__init__()
        api_key = secret_provider.get("GEMINI_API_KEY")
        if not api_key:
            raise ValueError("Gemini API key not found.")
        genai.configure(api_key=api_key)

    async def invoke(
        self, model: str, system_prompt: str, messages: ChatTurns, request_id: str
    ) -> Tuple[str, Dict[str, Any]]:
        gemini_model = genai.GenerativeModel(model, system_instruction=system_prompt)
        contents = [
            {"role": "model" if turn["role"] == "assistant" else "user", "parts": [turn["content"]]}
            for turn in messages
        ]
        response = await gemini_model.generate_content_async(
            contents,
            generation_config=genai.types.GenerationConfig(
                temperature=settings.LLM_TEMPERATURE,
                max_output_tokens=settings.LLM_MAX_TOKENS,
            ),
        )
        content = response.text
        metrics = {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0}
        return content, metrics

    def map_error(self, error: Exception) -> LLMError:
        return map_gemini_error(error, self.name)


_PROVIDER_CLASSES = {
    "openai": ("OPENAI_API_KEY", OpenAIProvider),
    "claude": ("ANTHROPIC_API_KEY", ClaudeProvider),
    "gemini": ("GEMINI_API_KEY", GeminiProvider),
}


class LLMService:
    def __init__(self, secret_provider: SecretProvider, timeout: Optional[float] = None):
        super().__init__()
        self.secret_provider = secret_provider
        self.timeout = timeout if timeout is not None else settings.LLM_TIMEOUT
        self.providers: Dict[str, LLMProvider] = {}
        self._initialized = False
        self._initialization_errors: Dict[str, str] = {}

    def _initialize_providers(self):
        if self._initialized:
            return

        self.providers = {}
        self._initialization_errors = {}

        for name, (key_name, provider_cls) in _PROVIDER_CLASSES.items():
            if not self.secret_provider.get(key_name):
                self._initialization_errors[name] = f"{key_name} is not configured."
                continue
            try:
                self.providers[name] = provider_cls(self.secret_provider)
                logger.info("%s provider initialized.", name)
            except ValueError as exc:
                logger.error("Failed to initialize %s provider: %s", name, exc, exc_info=True)
                self._initialization_errors[name] = str(exc)

        self._initialized = True
        logger.info("LLM service initialized with providers: %s", list(self.providers.keys()))

    def get_provider(self, provider_name: Optional[str] = None) -> LLMProvider:
        self._initialize_providers()
        provider_name = provider_name or settings.LLM_PROVIDER

        if provider_name in self.providers:
            return self.providers[provider_name]

        if self.providers:
            fallback = next(iter(self.providers))
            logger.warning("Provider '%s' unavailable; falling back to '%s'.", provider_name, fallback)
            return self.providers[fallback]

        issues = "; ".join(
            f"{name}: {reason}" for name, reason in sorted(self._initialization_errors.items())
        ) or "No provider configuration detected."
        raise LLMError(
            error_code=LLMErrorCode.PROVIDER_UNAVAILABLE,
            provider=provider_name,
            retryable=False,
            error_message=f"Provider '{provider_name}' is not configured. {issues}",
        )

    def resolve_model(self, provider: LLMProvider) -> str:
        """LLM_MODEL names a model of LLM_PROVIDER; any fallback provider uses its own default."""
        if provider.name == settings.LLM_PROVIDER and settings.LLM_MODEL:
            return settings.LLM_MODEL
        return provider.default_model

    def get_available_providers(self) -> List[str]:
        """Return a list of provider identifiers that are ready to serve requests."""
        self._initialize_providers()
        return list(self.providers.keys())

    async def invoke(
        self,
        system_prompt: str,
        messages: ChatTurns,
        request_id: str,
        model: Optional[str] = None,
        provider_name: Optional[str] = None,
    ) -> Tuple[str, Dict[str, Any]]:
        provider = self.get_provider(provider_name)
        model = model or self.resolve_model(provider)
        start_time = time.time()
        try:
            content, metrics = await asyncio.wait_for(
                provider.invoke(model, system_prompt, messages, request_id),
                timeout=self.timeout,
            )
        except Exception as e:
            llm_error = provider.map_error(e)
            latency_ms = (time.time() - start_time) * 1000
            LLM_CALLS_TOTAL.labels(provider=provider.name, outcome="failure").inc()
            logger.error(
                "LLM API call failed",
                extra={
                    "req_id": request_id,
                    "provider": provider.name,
                    "model": model,
                    "latency_ms": latency_ms,
                    **llm_error.to_dict(),
                },
            )
            raise llm_error from e

        latency = time.time() - start_time
        LLM_CALLS_TOTAL.labels(provider=provider.name, outcome="success").inc()
        LLM_LATENCY_SECONDS.labels(provider=provider.name).observe(latency)
        logger.info(
            "LLM API call successful",
            extra={
                "req_id": request_id,
                "provider": provider.name,
                "model": model,
                "latency_ms": latency * 1000,
                "tokens_used": metrics.get("total_tokens", 0),
            },
        )
        return content, metrics


# Global service instance
llm_service: Optional[LLMService] = None

def get_llm_service() -> LLMService:
    global llm_service
    if llm_service is None:
        from app.core.secrets import env_secrets_provider
        llm_service = LLMService(secret_provider=env_secrets_provider)
    return llm_service
