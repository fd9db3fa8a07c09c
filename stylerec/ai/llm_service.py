"""LLM service for OpenAI integration and structured generation."""

import hashlib
import json
import logging
from typing import Any, Dict, Optional

import openai
import redis.asyncio as redis
from redis.exceptions import RedisError

from stylerec import metrics
from stylerec.ai.openai_client import get_openai_client, is_transient_error
from stylerec.config import settings

logger = logging.getLogger(__name__)


class LLMServiceError(RuntimeError):
    """Raised when the generation call itself fails."""

    def __init__(self, message: str, transient: bool = False):
        super().__init__(message)
        self.transient = transient


class LLMResponseError(ValueError):
    """Raised when the model answered but the answer is not the expected JSON."""

    pass


class LLMService:
    """
    Service for LLM interactions with OpenAI.

    Features:
    - Chat completions with optional JSON mode
    - Structured JSON output with schema instructions
    - Optional Redis response cache
    - Bounded call time
    """

    def __init__(self):
        self._redis: Optional[redis.Redis] = None
        self._call_count: int = 0

    async def _get_redis(self) -> Optional[redis.Redis]:
        """Get or create Redis connection for caching."""
        if not settings.llm_cache_enabled:
            return None

        if self._redis is None:
            try:
                self._redis = await redis.from_url(
                    settings.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                )
            except (RedisError, OSError) as e:
                logger.warning(f"Failed to connect to Redis for LLM cache: {e}")
                return None
        return self._redis

    def _get_cache_key(self, prompt: str, system_prompt: str, model: str) -> str:
        """Generate cache key for prompt."""
        combined = f"{system_prompt}:{prompt}:{model}"
        key_hash = hashlib.sha256(combined.encode('utf-8')).hexdigest()
        return f"llm_cache:{key_hash}"

    async def _cache_get(self, key: str) -> Optional[str]:
        redis_client = await self._get_redis()
        if redis_client is None:
            return None
        try:
            return await redis_client.get(key)
        except (RedisError, OSError) as e:
            logger.warning(f"LLM cache read failed: {e}")
            return None

    async def _cache_set(self, key: str, value: str):
        redis_client = await self._get_redis()
        if redis_client is None:
            return
        try:
            await redis_client.setex(key, settings.llm_cache_ttl_seconds, value)
        except (RedisError, OSError) as e:
            logger.warning(f"LLM cache write failed: {e}")

    async def call_llm(
        self,
        prompt: str,
        system_prompt: str = "",
        temperature: Optional[float] = None,
        model: Optional[str] = None,
        use_cache: bool = True,
        json_mode: bool = False,
    ) -> str:
        """
        Call LLM with a prompt and return text response.

        Args:
            prompt: User prompt
            system_prompt: System prompt/instructions
            temperature: Temperature (defaults to settings.llm_temperature)
            model: Model name (defaults to settings.llm_model)
            use_cache: Whether to use cache
            json_mode: Ask the API for a JSON object response

        Returns:
            LLM response text

        Raises:
            LLMServiceError: If the client is not configured or the API call fails
        """
        model = model or settings.llm_model
        temperature = temperature if temperature is not None else settings.llm_temperature

        cache_key = self._get_cache_key(prompt, system_prompt, model)
        if use_cache:
            cached = await self._cache_get(cache_key)
            if cached:
                logger.debug(f"LLM cache hit for prompt: {prompt[:50]}...")
                metrics.llm_requests_total.labels(status="cache_hit").inc()
                self._call_count += 1
                return cached

        try:
            client = get_openai_client()
        except ValueError as e:
            raise LLMServiceError(str(e), transient=False) from e

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        request: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": settings.llm_max_tokens,
            "timeout": settings.llm_timeout_seconds,
        }
        if json_mode:
            request["response_format"] = {"type": "json_object"}

        try:
            response = await client.chat.completions.create(**request)
        except openai.OpenAIError as e:
            transient = is_transient_error(e)
            metrics.llm_requests_total.labels(status="error").inc()
            logger.error(f"LLM API call failed (transient={transient}): {e}")
            raise LLMServiceError(f"LLM API call failed: {e}", transient=transient) from e

        result = response.choices[0].message.content or ""
        metrics.llm_requests_total.labels(status="success").inc()
        self._call_count += 1

        if use_cache and result:
            await self._cache_set(cache_key, result)

        return result

    async def call_llm_structured(
        self,
        prompt: str,
        response_schema: Optional[Dict[str, Any]] = None,
        system_prompt: str = "",
        temperature: Optional[float] = None,
        model: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Call LLM with structured JSON output.

        Args:
            prompt: User prompt
            response_schema: JSON schema describing expected response structure
            system_prompt: System prompt/instructions
            temperature: Temperature (defaults to settings.llm_temperature)
            model: Model name (defaults to settings.llm_model)

        Returns:
            Parsed JSON object

        Raises:
            LLMServiceError: If the API call fails
            LLMResponseError: If the response is not a JSON object
        """
        enhanced_system = system_prompt
        if response_schema:
            if enhanced_system:
                enhanced_system += "\n\n"
            enhanced_system += (
                f"Respond with valid JSON matching this schema: {json.dumps(response_schema, indent=2)}\n"
                "Return only the JSON object, no additional text."
            )

        response_text = await self.call_llm(
            prompt=prompt,
            system_prompt=enhanced_system,
            temperature=temperature,
            model=model,
            json_mode=True,
        )
        return self.parse_json_object(response_text)

    @staticmethod
    def parse_json_object(response_text: str) -> Dict[str, Any]:
        """Parse a model response into a JSON object, tolerating markdown fences."""
        text = (response_text or "").strip()
        if text.startswith("```json"):
            text = text[7:]
        if text.startswith("```"):
            text = text[3:]
        if text.endswith("```"):
            text = text[:-3]
        text = text.strip()

        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse LLM JSON response: {e}\nResponse: {text[:200]}")
            raise LLMResponseError(f"Invalid JSON response from LLM: {e}") from e

        if not isinstance(parsed, dict):
            raise LLMResponseError(f"Expected a JSON object, got {type(parsed).__name__}")
        return parsed

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Generative capability: system + user prompt in, JSON object out."""
        return await self.call_llm_structured(
            prompt=user_prompt,
            response_schema=response_schema,
            system_prompt=system_prompt,
        )

    def get_stats(self) -> Dict[str, Any]:
        """
        Get LLM service statistics.

        Returns:
            Dictionary with call count and cache flag
        """
        return {
            "call_count": self._call_count,
            "cache_enabled": settings.llm_cache_enabled,
        }

    async def close(self):
        """Close connections."""
        if self._redis:
            await self._redis.close()
            self._redis = None


# Global LLM service instance
llm_service = LLMService()
