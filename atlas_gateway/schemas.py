from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

MAX_TURN_LENGTH = 20000


class ConversationTurn(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str = Field(min_length=1, max_length=MAX_TURN_LENGTH)

    model_config = ConfigDict(extra="ignore")


class ChatRequest(BaseModel):
    messages: list[ConversationTurn] = Field(min_length=1)
    model: str | None = None

    # Remaining fields (temperature, max_tokens, ...) go to the chat provider as-is
    model_config = ConfigDict(extra="allow")


class SimpleRequest(BaseModel):
    messages: list[ConversationTurn] = Field(min_length=1)

    model_config = ConfigDict(extra="ignore")


class Syllabus(BaseModel):
    subject: str = ""
    topic: str = ""
    level: str = ""

    model_config = ConfigDict(extra="ignore")


class ScriptRequest(BaseModel):
    content: str | None = None
    topics: str | list[str] | None = None
    mode: Literal["content", "syllabus"]
    syllabus: Syllabus | None = None
    provider: Literal["auto", "gemini", "groq"] = "auto"

    model_config = ConfigDict(extra="ignore")
