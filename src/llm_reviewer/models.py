"""Data models for llm-reviewer."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Conversation turn roles."""

    USER = "user"
    MODEL = "model"
    TOOL = "tool"


class LoopState(str, Enum):
    """States of the review loop."""

    AWAITING_MODEL_TURN = "awaiting_model_turn"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    FAILED = "failed"


class ToolCall(BaseModel):
    """A tool invocation requested by the model."""

    name: str = Field(..., description="Tool name")
    args: dict[str, Any] = Field(default_factory=dict, description="Tool arguments")
    id: str | None = Field(None, description="Back-end supplied call id")


class ToolResult(BaseModel):
    """Text produced by executing one tool call."""

    name: str = Field(..., description="Name of the tool that produced the result")
    content: str = Field(..., description="Result text fed back to the model")
    call_id: str | None = Field(None, description="Id of the originating call")
    is_error: bool = Field(False, description="Whether the tool call failed")


class SymbolLocation(BaseModel):
    """Where a symbol is defined."""

    file_path: str = Field(..., description="Path relative to the project root")
    line: int = Field(..., description="1-based line")
    character: int = Field(..., description="1-based column")

    def __str__(self) -> str:
        return f"{self.file_path}:{self.line}:{self.character}"


class ReferenceLocation(BaseModel):
    """Where a symbol is referenced."""

    file_path: str = Field(..., description="Path relative to the project root")
    line: int = Field(..., description="1-based line")
    character: int = Field(1, description="1-based column")

    def __str__(self) -> str:
        return f"{self.file_path}:{self.line}"


class Persona(BaseModel):
    """A reviewer identity and review perspective."""

    name: str = Field(..., description="Persona name")
    description: str = Field("", description="Short description")
    system_prompt: str = Field(..., description="System instruction for the model")
