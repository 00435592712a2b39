"""
AI flows behind the playground: simulated runs, code assistance and naming.

Each flow builds a prompt, asks Claude, and turns the reply into one of the
response models. Replies are plain text, so structured answers are pulled out
of the first JSON object in the text.
"""

from __future__ import annotations

import json
import logging
import re

from pydantic import ValidationError

from ...models import AssistResponse, NameResponse, RunResult
from .claude_client import ClaudeClient
from .input_detection import InputDetector, looks_like_input_prompt
from .prompts import (
    ASSIST_SYSTEM_PROMPT,
    NAME_SYSTEM_PROMPT,
    RUN_SYSTEM_PROMPT,
    build_assist_prompt,
    build_name_prompt,
    build_run_prompt,
)

logger = logging.getLogger(__name__)

UNTITLED_NAME = "Untitled Snippet"
MAX_NAME_WORDS = 5

FENCE_PATTERN = re.compile(r"^```[\w+-]*\n(.*?)\n?```$", re.DOTALL)
JSON_OBJECT_PATTERN = re.compile(r"\{.*\}", re.DOTALL)


class AssistantError(RuntimeError):
    """The model replied with something the flow cannot use."""


def strip_code_fence(text: str) -> str:
    text = text.strip("\n")
    match = FENCE_PATTERN.match(text.strip())
    return match.group(1) if match else text


def _first_json_object(text: str) -> dict:
    match = JSON_OBJECT_PATTERN.search(text or "")
    if not match:
        raise AssistantError("Assistant reply did not contain a JSON object")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise AssistantError(f"Assistant reply was not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise AssistantError("Assistant reply JSON was not an object")
    return data


class Assistant:
    def __init__(self, claude: ClaudeClient, input_detector: InputDetector = looks_like_input_prompt) -> None:
        self.claude = claude
        self.input_detector = input_detector

    def simulate_run(
        self,
        code: str,
        language: str,
        stdin: str | None = None,
        prior_conversation: str | None = None,
    ) -> RunResult:
        prompt = build_run_prompt(code, language, stdin=stdin, prior_conversation=prior_conversation)
        output = strip_code_fence(self.claude.create_text(prompt, system=RUN_SYSTEM_PROMPT, max_tokens=2048))
        awaiting = self.input_detector(output)
        logger.info("Simulated %s run: %d chars, awaiting input=%s", language, len(output), awaiting)
        return RunResult(output=output, awaiting_input=awaiting)

    def assist_with_code(self, code: str, language: str, request: str) -> AssistResponse:
        reply = self.claude.create_text(
            build_assist_prompt(code, language, request), system=ASSIST_SYSTEM_PROMPT, max_tokens=4096
        )
        data = _first_json_object(reply)
        try:
            response = AssistResponse.model_validate(data)
        except ValidationError as exc:
            raise AssistantError(f"Assistant reply did not match the expected shape: {exc}") from exc
        if response.code is not None:
            response.code = strip_code_fence(response.code)
        return response

    def name_code(self, code: str, language: str) -> NameResponse:
        if not code.strip():
            return NameResponse(name=UNTITLED_NAME)
        reply = self.claude.create_text(build_name_prompt(code, language), system=NAME_SYSTEM_PROMPT, max_tokens=32)
        cleaned = re.sub(r"[`*_#\"']", "", reply).strip()
        first_line = cleaned.splitlines()[0] if cleaned else ""
        words = first_line.split()[:MAX_NAME_WORDS]
        return NameResponse(name=" ".join(words) or UNTITLED_NAME)


__all__ = ["Assistant", "AssistantError", "UNTITLED_NAME", "strip_code_fence"]
