"""Thin Anthropic / Claude client helpers.

The assistant flows only need non-streaming completions; this wrapper keeps
the SDK details (model name, content block extraction) in one place.
"""
import logging
from functools import lru_cache

from anthropic import Anthropic

from ... import config

logger = logging.getLogger(__name__)


class ClaudeClient:
    """Minimal Claude client wrapper.

    Methods:
      - create_text(user_text, system, max_tokens=1024) -> str
    """

    def __init__(self, api_key: str | None = None, model: str | None = None) -> None:
        self.api_key = api_key or config.ANTHROPIC_API_KEY or config.require("ANTHROPIC_API_KEY")
        self.model = model or config.ANTHROPIC_MODEL
        self._client = Anthropic(api_key=self.api_key)

    def create_text(self, user_text: str, system: str | None = None, max_tokens: int = 1024) -> str:
        """Non-streaming completion: returns the concatenated text blocks."""
        msg = self._client.messages.create(
            model=self.model,
            system=(system or ""),
            messages=[{"role": "user", "content": user_text}],
            max_tokens=max_tokens,
        )
        text = "".join(b.text for b in msg.content if getattr(b, "type", "") == "text")
        logger.debug("Claude replied with %d characters (stop_reason=%s)", len(text), msg.stop_reason)
        return text


@lru_cache(maxsize=1)
def get_claude_client() -> ClaudeClient:
    return ClaudeClient()


__all__ = ["ClaudeClient", "get_claude_client"]
