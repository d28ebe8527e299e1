"""
Persisted chat sessions.

Each session is a JSON file ``<id>.json`` in the sessions directory holding
the session name, an optional one-sentence summary and the message list.
Ids are positive integers assigned in creation order.
"""

import json
import logging
import random
import string
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field, ValidationError

from .client.errors import SessionError
from .client.messages import Message, MessageRole
from .client.openai_client import OpenAIClient

logger = logging.getLogger(__name__)

SUMMARY_PROMPT = "次の会話内容を一文で簡潔に日本語で要約してください："
NAME_SUFFIX_LENGTH = 6


class SessionMessage(BaseModel):
    role: str
    content: str = ""

    @classmethod
    def from_message(cls, message: Message) -> "SessionMessage":
        return cls(role=message.role.value, content=message.content)

    def to_message(self) -> Message:
        return Message(role=MessageRole.from_value(self.role), content=self.content)


class SessionFile(BaseModel):
    name: str = ""
    summary: Optional[str] = None
    messages: List[SessionMessage] = Field(default_factory=list)


class SessionInfo(BaseModel):
    """Listing entry: id, name and cached summary."""
    id: int
    name: str
    summary: Optional[str] = None


class SessionManager:
    """Reads and writes session files in a single directory."""

    def __init__(self, sessions_dir: Path):
        self.sessions_dir = Path(sessions_dir)
        try:
            self.sessions_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SessionError(
                f"Failed to create sessions directory at {self.sessions_dir}", original_error=e
            )

    def _path(self, session_id: int) -> Path:
        return self.sessions_dir / f"{session_id}.json"

    def _read(self, path: Path, session_id: Optional[int] = None) -> SessionFile:
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise SessionError(f"Failed to read session file {path}", session_id=session_id, original_error=e)
        try:
            return SessionFile.model_validate_json(content)
        except ValidationError as e:
            raise SessionError(f"Failed to parse JSON in {path}", session_id=session_id, original_error=e)

    def _write(self, path: Path, session: SessionFile, session_id: Optional[int] = None) -> None:
        try:
            path.write_text(
                json.dumps(session.model_dump(), ensure_ascii=False),
                encoding="utf-8",
            )
        except OSError as e:
            raise SessionError(f"Failed to write session file {path}", session_id=session_id, original_error=e)

    def list_sessions(self) -> List[SessionInfo]:
        """List sessions sorted by id."""
        sessions = []
        for path in self.sessions_dir.glob("*.json"):
            try:
                session_id = int(path.stem)
            except ValueError:
                raise SessionError(f"Failed to parse session id from file name {path.stem}")
            session = self._read(path, session_id)
            sessions.append(SessionInfo(id=session_id, name=session.name, summary=session.summary))
        sessions.sort(key=lambda info: info.id)
        return sessions

    def load_session(self, session_id: int) -> List[SessionMessage]:
        """Load the messages of a session."""
        return self._read(self._path(session_id), session_id).messages

    def create_session(self, name: str, messages: Sequence[SessionMessage]) -> int:
        """Create a session and return its id. A taken name gets a random suffix."""
        sessions = self.list_sessions()
        existing_names = {info.name for info in sessions}
        final_name = name
        if final_name in existing_names:
            alphabet = string.ascii_letters + string.digits
            while True:
                suffix = "".join(random.choices(alphabet, k=NAME_SUFFIX_LENGTH))
                candidate = f"{name}-{suffix}"
                if candidate not in existing_names:
                    final_name = candidate
                    break

        new_id = max((info.id for info in sessions), default=0) + 1
        self._write(
            self._path(new_id),
            SessionFile(name=final_name, summary=None, messages=list(messages)),
            new_id,
        )
        logger.debug(f"Created session {new_id} ({final_name!r})")
        return new_id

    def update_session(self, session_id: int, messages: Sequence[SessionMessage]) -> None:
        """Replace the messages of an existing session."""
        path = self._path(session_id)
        session = self._read(path, session_id)
        session.messages = list(messages)
        self._write(path, session, session_id)

    def update_summary(self, session_id: int, summary: str) -> None:
        """Store the summary of an existing session."""
        path = self._path(session_id)
        session = self._read(path, session_id)
        session.summary = summary
        self._write(path, session, session_id)

    def delete_session(self, session_id: int) -> None:
        path = self._path(session_id)
        try:
            path.unlink()
        except OSError as e:
            raise SessionError(f"Failed to delete session file {path}", session_id=session_id, original_error=e)


def summary_messages(session_messages: Sequence[SessionMessage]) -> List[Message]:
    """Build the summary request: instruction plus the user and assistant turns."""
    messages = [Message.system(SUMMARY_PROMPT)]
    for index, message in enumerate(session_messages):
        # the stored seed prompt is not part of the conversation
        if index == 0 and message.role == MessageRole.SYSTEM.value:
            continue
        if message.role not in (MessageRole.USER.value, MessageRole.ASSISTANT.value):
            continue
        messages.append(message.to_message())
    return messages


async def generate_summary(
    client: OpenAIClient,
    model: str,
    session_messages: Sequence[SessionMessage],
) -> str:
    """Ask the model for a one-sentence summary of a session."""
    completion = await client.create_chat_completion(model, summary_messages(session_messages))
    return completion.text


def session_labels(
    manager: SessionManager,
) -> List[Tuple[SessionInfo, List[SessionMessage]]]:
    """Sessions newest first, skipping those that hold only system messages."""
    selectable = []
    for info in sorted(manager.list_sessions(), key=lambda item: item.id, reverse=True):
        messages = manager.load_session(info.id)
        if all(message.role == MessageRole.SYSTEM.value for message in messages):
            continue
        selectable.append((info, messages))
    return selectable
