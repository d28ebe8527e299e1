"""
Conversation state for the chat commands.

A ``Conversation`` holds the messages sent with every request and the
initial state that ``reset`` returns to.
"""

from pathlib import Path
from typing import List, Optional, Sequence

from .client.errors import FerriteError
from .client.messages import Message, MessageRole
from .models import ChatModel
from .session import SessionMessage

SEED_PROMPT = """
You are an engineer's assistant.
The user can reset the current state of the chat by inputting '/reset'.
The user can activate the editor by entering 'v', allowing them to input multiple lines of prompts.
To terminate, the user needs to input "exit".
"""

TRANSLATE_PROMPT = "次の文章を、日本語の場合は英語に、日本語以外の場合は日本語に翻訳してください。"


def read_context_file(path: Path) -> str:
    """Read a ``-f/--file`` context file."""
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise FerriteError(f"Can't read context file {path}", original_error=e)


def seed_messages(
    model: ChatModel,
    system_prompt: Optional[str],
    context: Optional[str] = None,
) -> List[Message]:
    """
    Opening messages for a conversation.

    The system prompt is sent with the user role for models that reject the
    system role. File context follows as a user message.
    """
    messages = []
    if system_prompt:
        role = MessageRole.SYSTEM if model.uses_system_role else MessageRole.USER
        messages.append(Message(role=role, content=system_prompt))
    if context is not None:
        messages.append(Message.user(context))
    return messages


class Conversation:
    """Messages of an ongoing chat and the state ``reset`` restores."""

    def __init__(self, initial: Sequence[Message] = ()):
        self.initial_state: List[Message] = [message.model_copy() for message in initial]
        self.messages: List[Message] = [message.model_copy() for message in initial]

    def reset(self) -> None:
        self.messages = [message.model_copy() for message in self.initial_state]

    def add_user(self, content: str) -> Message:
        message = Message.user(content)
        self.messages.append(message)
        return message

    def add_assistant(self, content: str) -> Message:
        message = Message.assistant(content)
        self.messages.append(message)
        return message

    def replace(self, messages: Sequence[Message]) -> None:
        """Switch to another conversation; it also becomes the reset point."""
        self.messages = [message.model_copy() for message in messages]
        self.initial_state = [message.model_copy() for message in messages]

    def to_session_messages(self) -> List[SessionMessage]:
        return [SessionMessage.from_message(message) for message in self.messages]

    def transcript(self) -> str:
        """Text written by ``/save``: non-system messages, assistant lines prefixed."""
        lines = []
        for message in self.messages:
            if message.role == MessageRole.SYSTEM:
                continue
            if message.role == MessageRole.ASSISTANT:
                lines.append(f"Assistant:{message.content}")
            else:
                lines.append(message.content)
        return "\n".join(lines)

    def history(self) -> List[str]:
        """Lines printed by ``/history``."""
        return [f"[{message.role.value.upper()}] {message.content}" for message in self.messages]

    def __len__(self) -> int:
        return len(self.messages)
