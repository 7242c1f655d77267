"""LLM client for repertory generation.

Sends a GenerationRequest to an OpenAI-compatible chat completion endpoint
(OpenRouter by default) and returns the raw answer text. Parsing and
validation of the answer belong to the validator.
"""

import json
import os
from typing import Optional

import openai

from louveai.app.logging_config import get_logger
from louveai.core.config import DEFAULT_API_BASE, DEFAULT_MODEL, AppConfig
from louveai.errors import ExternalCallFailure
from louveai.generation.composer import GenerationRequest, ResponseShape

logger = get_logger(__name__)

API_KEY_ENV_VARS = ("LOUVEAI_API_KEY", "OPENROUTER_API_KEY")


class GenerationClient:
    """Generate song candidates using an LLM."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        temperature: float = 0.8,
        timeout: float = 60.0,
    ):
        """Initialize the generation client.

        Args:
            model: LLM model identifier (default: openai/gpt-4o-mini)
            api_key: API key (if None, reads LOUVEAI_API_KEY or OPENROUTER_API_KEY)
            api_base: Custom API base URL (defaults to https://openrouter.ai/api/v1)
            temperature: Sampling temperature
            timeout: Request timeout in seconds
        """
        self.model = model
        self.api_key = api_key
        self.api_base = api_base or DEFAULT_API_BASE
        self.temperature = temperature
        self.timeout = timeout
        self._client: Optional[openai.AsyncOpenAI] = None

    @classmethod
    def from_config(cls, config: AppConfig) -> "GenerationClient":
        """Create a client from application configuration."""
        return cls(
            model=config.model,
            api_base=config.api_base,
            temperature=config.temperature,
            timeout=config.timeout_seconds,
        )

    @property
    def client(self) -> openai.AsyncOpenAI:
        """Get or create LLM client."""
        if self._client is None:
            key = self.api_key
            if key is None:
                for var in API_KEY_ENV_VARS:
                    key = os.environ.get(var)
                    if key:
                        break
            if not key:
                raise ValueError(
                    "API key required. Set LOUVEAI_API_KEY or OPENROUTER_API_KEY "
                    "environment variable or pass api_key parameter."
                )
            self._client = openai.AsyncOpenAI(
                api_key=key, base_url=self.api_base, timeout=self.timeout
            )
        return self._client

    def build_messages(self, request: GenerationRequest) -> list[dict[str, str]]:
        """Build chat messages for a request.

        The response schema travels in the system message.

        Args:
            request: Composed generation request

        Returns:
            List of chat messages
        """
        answer = "a JSON array of song objects" if request.shape == ResponseShape.ARRAY else "a single JSON song object"
        system = (
            f"{request.system_instruction.strip()}\n\n"
            f"## Output Format\n"
            f"Return ONLY {answer} matching this JSON Schema:\n"
            f"{json.dumps(request.response_schema, ensure_ascii=False)}\n"
            f"Do not include any markdown code blocks or extra text."
        )
        return [
            {"role": "system", "content": system},
            {"role": "user", "content": request.contents},
        ]

    async def complete(self, request: GenerationRequest) -> str:
        """Send a request to the model and return the answer text.

        Args:
            request: Composed generation request

        Returns:
            Raw answer text (may be empty if the model returned nothing)

        Raises:
            ExternalCallFailure: On missing credentials or any provider error
        """
        logger.info(f"Calling {self.model} ({request.shape.value} response)")
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=self.build_messages(request),
                temperature=self.temperature,
            )
        except ValueError as e:
            raise ExternalCallFailure(str(e)) from e
        except openai.OpenAIError as e:
            logger.error(f"Generation call failed: {e}")
            raise ExternalCallFailure(f"Generation call failed: {e}") from e

        if not response.choices:
            raise ExternalCallFailure("Model returned no choices")

        content = response.choices[0].message.content or ""
        logger.debug(f"Model answered with {len(content)} characters")
        return content
