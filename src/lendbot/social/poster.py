"""Social-post sender interface.

Posting is fire-and-forget for the pipelines: a failed post is logged and
never retried or raised.
"""

from abc import ABC, abstractmethod

from lendbot.logging import get_logger

logger = get_logger(__name__)

MAX_POST_LENGTH = 280


class SocialPoster(ABC):
    """Publishes short text updates."""

    @abstractmethod
    async def post(self, text: str) -> None:
        ...


async def post_safely(poster: SocialPoster | None, text: str) -> bool:
    """Post text, truncated to MAX_POST_LENGTH. Returns True on success."""
    if poster is None or not text.strip():
        return False

    text = text.strip()
    if len(text) > MAX_POST_LENGTH:
        text = text[: MAX_POST_LENGTH - 1].rstrip() + "…"

    try:
        await poster.post(text)
    except Exception as e:
        logger.error("social_post_failed", error=str(e), chars=len(text))
        return False

    logger.info("social_post_sent", chars=len(text))
    return True
