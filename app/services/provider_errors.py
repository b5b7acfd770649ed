"""
LLM Provider Error Mapping
"""

import asyncio

import anthropic
import openai

from app.core.errors import LLMError, LLMErrorCode


def map_openai_error(error: Exception, provider: str = "openai") -> LLMError:
    """Map an OpenAI SDK exception onto LLMError"""

    if isinstance(error, LLMError):
        return error

    if isinstance(error, openai.RateLimitError):
        code = LLMErrorCode.INSUFFICIENT_QUOTA if "insufficient_quota" in str(error) else LLMErrorCode.RATE_LIMIT
        return LLMError(
            error_code=code,
            provider=provider,
            retryable=code == LLMErrorCode.RATE_LIMIT,
            original_error=error,
            error_message=f"OpenAI rate limit exceeded: {error.message}",
        )

    elif isinstance(error, openai.AuthenticationError):
        return LLMError(
            error_code=LLMErrorCode.AUTH_FAILED,
            provider=provider,
            retryable=False,
            original_error=error,
            error_message=f"OpenAI authentication failed: {error.message}"
        )

    elif isinstance(error, openai.BadRequestError):
        if "context_length_exceeded" in str(error).lower():
            return LLMError(
                error_code=LLMErrorCode.CONTEXT_LENGTH_EXCEEDED,
                provider=provider,
                retryable=False,
                original_error=error,
                error_message=f"OpenAI context length exceeded: {error.message}"
            )
        return LLMError(
            error_code=LLMErrorCode.INVALID_REQUEST,
            provider=provider,
            retryable=False,
            original_error=error,
            error_message=f"OpenAI invalid request: {error.message}"
        )

    elif isinstance(error, (openai.APITimeoutError, asyncio.TimeoutError)):
        return LLMError(
            error_code=LLMErrorCode.TIMEOUT,
            provider=provider,
            retryable=True,
            original_error=error,
            error_message="OpenAI request timeout"
        )

    elif isinstance(error, (openai.APIConnectionError, ConnectionError)):
        return LLMError(
            error_code=LLMErrorCode.NETWORK_ERROR,
            provider=provider,
            retryable=True,
            original_error=error,
            error_message=f"OpenAI network error: {str(error)}"
        )

    elif isinstance(error, openai.APIError):
        return LLMError(
            error_code=LLMErrorCode.API_ERROR,
            provider=provider,
            retryable=True,
            original_error=error,
            error_message=f"OpenAI API error: {error.message}"
        )

    return LLMError(
        error_code=LLMErrorCode.UNKNOWN_ERROR,
        provider=provider,
        retryable=False,
        original_error=error,
        error_message=f"OpenAI unknown error: {str(error)}"
    )


def map_anthropic_error(error: Exception, provider: str = "claude") -> LLMError:
    """Map an Anthropic SDK exception onto LLMError"""

    if isinstance(error, LLMError):
        return error

    if isinstance(error, anthropic.RateLimitError):
        return LLMError(
            error_code=LLMErrorCode.RATE_LIMIT,
            provider=provider,
            retryable=True,
            original_error=error,
            error_message=f"Anthropic rate limit exceeded: {error.message}",
        )

    elif isinstance(error, anthropic.AuthenticationError):
        return LLMError(
            error_code=LLMErrorCode.AUTH_FAILED,
            provider=provider,
            retryable=False,
            original_error=error,
            error_message=f"Anthropic authentication failed: {error.message}"
        )

    elif isinstance(error, anthropic.BadRequestError):
        code = (
            LLMErrorCode.CONTEXT_LENGTH_EXCEEDED
            if "context_length" in str(error).lower()
            else LLMErrorCode.INVALID_REQUEST
        )
        return LLMError(
            error_code=code,
            provider=provider,
            retryable=False,
            original_error=error,
            error_message=f"Anthropic invalid request: {error.message}"
        )

    elif isinstance(error, (anthropic.APITimeoutError, asyncio.TimeoutError)):
        return LLMError(
            error_code=LLMErrorCode.TIMEOUT,
            provider=provider,
            retryable=True,
            original_error=error,
            error_message="Anthropic request timeout"
        )

    elif isinstance(error, (anthropic.APIConnectionError, ConnectionError)):
        return LLMError(
            error_code=LLMErrorCode.NETWORK_ERROR,
            provider=provider,
            retryable=True,
            original_error=error,
            error_message=f"Anthropic network error: {str(error)}"
        )

    elif isinstance(error, anthropic.APIError):
        return LLMError(
            error_code=LLMErrorCode.API_ERROR,
            provider=provider,
            retryable=True,
            original_error=error,
            error_message=f"Anthropic API error: {error.message}"
        )

    return LLMError(
        error_code=LLMErrorCode.UNKNOWN_ERROR,
        provider=provider,
        retryable=False,
        original_error=error,
        error_message=f"Anthropic unknown error: {str(error)}"
    )


def map_gemini_error(error: Exception, provider: str = "gemini") -> LLMError:
    """Map a Google Gemini exception onto LLMError"""

    if isinstance(error, LLMError):
        return error

    # google.api_core exceptions expose an HTTP-style ``code``
    status_code = getattr(error, "code", None) or getattr(error, "status_code", None)
    if isinstance(status_code, int):
        if status_code == 429:
            return LLMError(
                error_code=LLMErrorCode.RATE_LIMIT,
                provider=provider,
                retryable=True,
                original_error=error,
                error_message=f"Gemini rate limit exceeded: {str(error)}"
            )
        if status_code in (401, 403):
            return LLMError(
                error_code=LLMErrorCode.AUTH_FAILED,
                provider=provider,
                retryable=False,
                original_error=error,
                error_message=f"Gemini authentication failed: {str(error)}"
            )
        if status_code == 400:
            return LLMError(
                error_code=LLMErrorCode.INVALID_REQUEST,
                provider=provider,
                retryable=False,
                original_error=error,
                error_message=f"Gemini invalid request: {str(error)}"
            )
        return LLMError(
            error_code=LLMErrorCode.API_ERROR,
            provider=provider,
            retryable=True,
            original_error=error,
            error_message=f"Gemini API error: {str(error)}"
        )

    if isinstance(error, asyncio.TimeoutError):
        return LLMError(
            error_code=LLMErrorCode.TIMEOUT,
            provider=provider,
            retryable=True,
            original_error=error,
            error_message="Gemini request timeout"
        )

    if isinstance(error, ConnectionError):
        return LLMError(
            error_code=LLMErrorCode.NETWORK_ERROR,
            provider=provider,
            retryable=True,
            original_error=error,
            error_message=f"Gemini network error: {str(error)}"
        )

    return LLMError(
        error_code=LLMErrorCode.UNKNOWN_ERROR,
        provider=provider,
        retryable=False,
        original_error=error,
        error_message=f"Gemini unknown error: {str(error)}"
    )
