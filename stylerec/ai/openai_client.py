"""Shared OpenAI client construction and error classification."""

import logging
from typing import Optional

import openai
from openai import AsyncOpenAI

from stylerec.config import settings

logger = logging.getLogger(__name__)

# Status codes worth a fallback rather than a hard failure
TRANSIENT_STATUS_CODES = {408, 409, 429, 500, 502, 503, 504}

_client: Optional[AsyncOpenAI] = None


def get_openai_client() -> AsyncOpenAI:
    """Get or create the process-wide OpenAI client."""
    global _client
    if _client is None:
        if not settings.openai_api_key:
            raise ValueError("OpenAI API key not configured")
        _client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
        )
    return _client


async def close_openai_client():
    """Close the shared client, if one was created."""
    global _client
    if _client is not None:
        await _client.close()
        _client = None


def is_transient_error(exc: BaseException) -> bool:
    """
    Whether an OpenAI SDK error is worth treating as a temporary outage.

    Timeouts, connection failures, rate limits and 5xx responses are
    transient. Auth, permission and bad-request errors are not.
    """
    if isinstance(exc, (openai.APITimeoutError, openai.APIConnectionError)):
        return True
    if isinstance(exc, openai.APIStatusError):
        return exc.status_code in TRANSIENT_STATUS_CODES
    return False
