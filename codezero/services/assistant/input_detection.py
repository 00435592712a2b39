"""
Guessing whether a simulated program stopped to wait for input.

The model only returns text, so there is no real signal; the default
heuristic looks at the last line of output for words like "enter" or
"input". Callers can pass any ``(output) -> bool`` callable instead.
"""

from __future__ import annotations

import re
from typing import Callable

InputDetector = Callable[[str], bool]

INPUT_PROMPT_PATTERN = re.compile(r"\b(enter|input)\b", re.IGNORECASE)


def looks_like_input_prompt(output: str) -> bool:
    lines = [line for line in (output or "").splitlines() if line.strip()]
    if not lines:
        return False
    return bool(INPUT_PROMPT_PATTERN.search(lines[-1]))


__all__ = ["INPUT_PROMPT_PATTERN", "InputDetector", "looks_like_input_prompt"]
