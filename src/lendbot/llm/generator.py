"""Text generation service interface and the OpenAI-backed implementation."""

from abc import ABC, abstractmethod

from openai import AsyncOpenAI

from lendbot.config import LLMSettings
from lendbot.logging import get_logger

logger = get_logger(__name__)

_SYSTEM_PROMPT = (
    "You are a DeFi lending analyst for stablecoin reserves. "
    "You base every statement on the data provided. "
    "When asked for JSON, return only valid JSON with no markdown fences."
)


class TextGenerator(ABC):
    """Turns a prompt into text. Callers validate the text before use."""

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        ...


class OpenAITextGenerator(TextGenerator):
    """Chat-completions client.

    The request timeout is enforced by the client; a stalled completion
    raises instead of hanging the calling job.
    """

    def __init__(self, settings: LLMSettings, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._client = client or AsyncOpenAI(
            api_key=settings.api_key.get_secret_value(),
            base_url=settings.base_url,
            timeout=settings.timeout,
            max_retries=2,
        )

    async def generate(self, prompt: str) -> str:
        resp = await self._client.chat.completions.create(
            model=self._settings.model,
            temperature=self._settings.temperature,
            max_tokens=self._settings.max_tokens,
            messages=[
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
        )
        text = resp.choices[0].message.content or ""
        logger.debug(
            "llm_completion",
            model=self._settings.model,
            prompt_chars=len(prompt),
            response_chars=len(text),
        )
        return text

    async def close(self) -> None:
        await self._client.close()
