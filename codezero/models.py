from __future__ import annotations
from typing import Any, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator


Language = Literal["python", "java", "cpp", "c"]


# --- Run (simulated) ---
class RunRequest(BaseModel):
    code: str
    language: Language
    stdin: Optional[str] = None
    prior_conversation: Optional[str] = Field(default=None, alias="priorConversation")

    model_config = ConfigDict(populate_by_name=True)


class RunResult(BaseModel):
    output: str
    awaiting_input: bool = Field(default=False, alias="awaitingInput")

    model_config = ConfigDict(populate_by_name=True)


# --- Assist ---
class AssistRequest(BaseModel):
    code: str
    language: str
    request: str


class AssistResponse(BaseModel):
    responseType: Literal["code", "answer"]
    code: Optional[str] = None
    answer: Optional[str] = None

    @model_validator(mode="after")
    def _check_payload(self) -> "AssistResponse":
        if self.responseType == "code" and not self.code:
            raise ValueError("a 'code' response must include code")
        if self.responseType == "answer" and not self.answer:
            raise ValueError("an 'answer' response must include answer")
        return self


# --- Name ---
class NameRequest(BaseModel):
    code: str
    language: str


class NameResponse(BaseModel):
    name: str


# --- Starters ---
class StarterResponse(BaseModel):
    language: Language
    code: str
    filename: str


# --- Relay websocket ---
class RelayClientMessage(BaseModel):
    op: Literal["subscribe", "unsubscribe", "set", "remove", "onDisconnectRemove"]
    id: int
    path: Optional[str] = None
    value: Any = None
    target: Optional[int] = None

    @model_validator(mode="after")
    def _check_fields(self) -> "RelayClientMessage":
        if self.op == "unsubscribe":
            if self.target is None:
                raise ValueError("unsubscribe needs 'target'")
        elif not self.path:
            raise ValueError(f"{self.op} needs 'path'")
        return self
