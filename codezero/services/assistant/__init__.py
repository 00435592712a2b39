"""
Assistant package: Claude-backed flows for the code playground.
"""

from .claude_client import ClaudeClient, get_claude_client
from .flows import Assistant, AssistantError
from .input_detection import looks_like_input_prompt
from .starters import starter_code

__all__ = [
    "Assistant",
    "AssistantError",
    "ClaudeClient",
    "get_claude_client",
    "looks_like_input_prompt",
    "starter_code",
]
