import logging

from fastapi import APIRouter, Depends, HTTPException

from ..models import (
    AssistRequest,
    AssistResponse,
    NameRequest,
    NameResponse,
    RunRequest,
    RunResult,
    StarterResponse,
)
from ..services.assistant import Assistant, AssistantError, get_claude_client, starter_code

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["assistant"])


def get_assistant() -> Assistant:
    try:
        return Assistant(get_claude_client())
    except RuntimeError as exc:
        raise HTTPException(503, str(exc)) from exc


@router.post("/run", response_model=RunResult)
def run_code(payload: RunRequest, assistant: Assistant = Depends(get_assistant)) -> RunResult:
    """
    Simulate compiling and running the snippet.

    The output is predicted by the model; ``awaitingInput`` is a heuristic
    guess that the program stopped at an input prompt.
    """
    if not payload.code.strip():
        raise HTTPException(400, "Field 'code' is required")
    try:
        return assistant.simulate_run(
            payload.code,
            payload.language,
            stdin=payload.stdin,
            prior_conversation=payload.prior_conversation,
        )
    except AssistantError as exc:
        raise HTTPException(502, str(exc)) from exc
    except Exception as exc:
        logger.error("Simulated run failed: %s", exc)
        raise HTTPException(500, f"Failed to run code: {exc}") from exc


@router.post("/assist", response_model=AssistResponse, response_model_exclude_none=True)
def assist(payload: AssistRequest, assistant: Assistant = Depends(get_assistant)) -> AssistResponse:
    if not payload.request.strip():
        raise HTTPException(400, "Field 'request' is required")
    try:
        return assistant.assist_with_code(payload.code, payload.language, payload.request)
    except AssistantError as exc:
        raise HTTPException(502, str(exc)) from exc
    except Exception as exc:
        logger.error("Code assist failed: %s", exc)
        raise HTTPException(500, f"Failed to assist with code: {exc}") from exc


@router.post("/name", response_model=NameResponse)
def name(payload: NameRequest, assistant: Assistant = Depends(get_assistant)) -> NameResponse:
    try:
        return assistant.name_code(payload.code, payload.language)
    except Exception as exc:
        logger.error("Naming code failed: %s", exc)
        raise HTTPException(500, f"Failed to name code: {exc}") from exc


@router.get("/starters/{language}", response_model=StarterResponse)
def starter(language: str) -> StarterResponse:
    entry = starter_code(language)
    if entry is None:
        raise HTTPException(404, f"Unknown language '{language}'")
    return StarterResponse(language=language.strip().lower(), **entry)
