"""
Chat message types shared by the API client, sessions and the chat loop.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class MessageRole(str, Enum):
    """Message roles in a chat completions conversation."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"

    @classmethod
    def from_value(cls, value: str) -> "MessageRole":
        """Map a stored role name to a role, treating unknown roles as user."""
        try:
            return cls(value)
        except ValueError:
            return cls.USER


class Message(BaseModel):
    """A single chat message."""
    role: MessageRole
    content: str = ""

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(role=MessageRole.ASSISTANT, content=content)

    def to_api(self) -> Dict[str, str]:
        """Wire format for the chat completions endpoint."""
        return {"role": self.role.value, "content": self.content}


class ChatCompletionRequest(BaseModel):
    """Request body for ``POST /chat/completions``."""
    model: str
    messages: List[Dict[str, str]]
    stream: bool = False


class ChatCompletionMessage(BaseModel):
    role: str = "assistant"
    content: Optional[str] = None


class ChatCompletionChoice(BaseModel):
    index: int = 0
    message: ChatCompletionMessage = Field(default_factory=ChatCompletionMessage)
    finish_reason: Optional[str] = None


class ChatCompletionUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatCompletion(BaseModel):
    """Response body of a non-streaming chat completion."""
    id: Optional[str] = None
    model: Optional[str] = None
    choices: List[ChatCompletionChoice] = Field(default_factory=list)
    usage: Optional[ChatCompletionUsage] = None

    @property
    def text(self) -> str:
        if not self.choices:
            return ""
        return self.choices[0].message.content or ""


class ChatCompletionDelta(BaseModel):
    """One decoded chunk of a streaming chat completion."""
    content: str = ""
    role: Optional[str] = None
    finish_reason: Optional[str] = None

    @classmethod
    def from_chunk(cls, chunk: Dict[str, Any]) -> "ChatCompletionDelta":
        choices = chunk.get("choices") or []
        if not choices:
            return cls()
        choice = choices[0]
        delta = choice.get("delta") or {}
        content = delta.get("content")
        return cls(
            content=content if isinstance(content, str) else "",
            role=delta.get("role"),
            finish_reason=choice.get("finish_reason"),
        )


def merge_deltas(deltas: List[ChatCompletionDelta]) -> Message:
    """Fold streamed deltas into the final assistant message."""
    return Message.assistant("".join(delta.content for delta in deltas))
