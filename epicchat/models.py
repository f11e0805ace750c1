"""Data models for epic chat sessions."""

from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class CommandType(str, Enum):
    """Selects the instruction block interposed in the system prompt."""

    INTERVIEW = "interview"
    REVIEW = "review"
    CHAT = "chat"


class ErrorKind(str, Enum):
    """User-facing failure taxonomy."""

    RATE_LIMIT = "rate_limit"
    AUTH = "auth"
    NETWORK = "network"
    INVALID_RESPONSE = "invalid_response"


def stream_key(workspace_root: str, epic_id: str) -> str:
    """Build the conversation key for a workspace + epic pair."""
    return f"{workspace_root}:{epic_id}"


class ChatMessage(BaseModel):
    """One conversational turn."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"] = Field(description="Who produced the turn")
    content: str = Field(description="Message text")


class RegisteredProject(BaseModel):
    """Another project whose learnings may be shared with this one."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(description="Absolute project root")
    name: str = Field(description="Display name")


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    def to_payload(self, epic_id: str) -> dict[str, Any]:
        """Flatten the event into the dict pushed to display surfaces."""
        return {"epic_id": epic_id, **self.model_dump(mode="json")}


class TextDelta(_Event):
    """An incremental fragment of assistant text."""

    type: Literal["text_delta"] = "text_delta"
    text: str


class TextComplete(_Event):
    """The assistant finished its reply."""

    type: Literal["text_complete"] = "text_complete"


class ErrorEvent(_Event):
    """A classified session failure."""

    type: Literal["error"] = "error"
    kind: ErrorKind
    message: str


SessionEvent = Union[TextDelta, TextComplete, ErrorEvent]


class ContextBundle(BaseModel):
    """Auxiliary text used to build one system prompt. Never cached."""

    spec: Optional[str] = Field(None, description="Epic specification markdown")
    tasks: str = Field(description="Task summary, or a 'no data' sentinel")
    project_name: str = Field(description="Project display name")
    learnings: Optional[str] = Field(None, description="Project learnings")
    extra_context: Optional[str] = Field(
        None, description="Current project memory and cross-project knowledge"
    )


class ChatRequest(BaseModel):
    """Input to one epic chat turn."""

    workspace_root: str = Field(description="Workspace holding the .flow directory")
    epic_id: str = Field(description="Epic identifier, e.g. fn-1")
    command_type: CommandType = Field(CommandType.CHAT)
    message: str = Field(description="New user message")
    history: list[ChatMessage] = Field(
        default_factory=list, description="Prior turns, oldest first"
    )
    registered_projects: list[RegisteredProject] = Field(
        default_factory=list,
        description="Projects to draw cross-project learnings from",
    )

    @property
    def key(self) -> str:
        return stream_key(self.workspace_root, self.epic_id)

    def to_messages(self) -> list[dict[str, str]]:
        """History plus the new user turn, in LLM message format."""
        turns = [*self.history, ChatMessage(role="user", content=self.message)]
        return [turn.model_dump() for turn in turns]
