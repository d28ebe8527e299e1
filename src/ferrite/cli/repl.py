"""
Interactive chat loop behind ``fchat``.

Lines typed at the prompt are either commands (``exit``, ``/reset``, ``v``,
``/save``, ``/session``, ``/history``, ``/img``, ``/edit``, ``/help``) or a
message for the model. Every turn is written to a session file so it can be
resumed later with ``/session``.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Protocol, Sequence

from rich.console import Console
from rich.panel import Panel

from ..core.client.errors import FerriteError, create_user_friendly_message
from ..core.client.openai_client import OpenAIClient
from ..core.completion import Responder
from ..core.conversation import Conversation
from ..core.image import build_image_request, chat_image_path, edit, generate
from ..core.models import DEFAULT_IMAGE_EDIT_MODEL, DEFAULT_IMAGE_MODEL, DEFAULT_IMAGE_SIZE
from ..core.session import SessionManager, generate_summary, session_labels
from ..ui.console import AnswerPrinter, console as default_console, print_error, print_plain

logger = logging.getLogger(__name__)

BYE_MESSAGE = "Bye!"
EMPTY_MESSAGE = "Empty message received. :("
NO_IMAGE_MESSAGE = "No image available for editing. Use /img first."
NO_SESSIONS_MESSAGE = "No sessions available."

HELP_TEXT = """[bold]Chat Commands:[/bold]

[cyan]v[/cyan]               - Write a multi-line prompt in $EDITOR
[cyan]/reset[/cyan]          - Restore the conversation to its initial state
[cyan]/save[/cyan]           - Save the conversation to a file
[cyan]/session[/cyan]        - Switch to a saved session
[cyan]/history[/cyan]        - Show every message of the conversation
[cyan]/img <prompt>[/cyan]   - Generate an image
[cyan]/edit <prompt>[/cyan]  - Edit the last generated image
[cyan]/help[/cyan]           - Show this help message
[cyan]exit[/cyan]            - Exit the chat session"""


class ChatPrompts(Protocol):
    def line(self) -> str: ...

    def text(self, label: str) -> str: ...

    def confirm(self, question: str, default: bool = False) -> bool: ...

    def select(self, title: str, options: Sequence[str]) -> int: ...

    def editor(self) -> Optional[str]: ...


class ChatRepl:
    """Reads chat input, dispatches commands and keeps the session file current."""

    def __init__(
        self,
        client: OpenAIClient,
        responder: Responder,
        conversation: Conversation,
        sessions: SessionManager,
        prompts: ChatPrompts,
        console: Optional[Console] = None,
        image_path: Optional[Path] = None,
    ):
        self.client = client
        self.responder = responder
        self.conversation = conversation
        self.sessions = sessions
        self.prompts = prompts
        self.console = console or default_console
        self.image_path = image_path or chat_image_path()
        self.session_id: Optional[int] = None
        self.last_image: Optional[Path] = None

    async def run(self) -> None:
        """Loop until ``exit``, end of input or Ctrl-C."""
        while True:
            try:
                line = self.prompts.line()
            except (EOFError, KeyboardInterrupt):
                print_plain("", self.console)
                self.say(BYE_MESSAGE)
                return

            try:
                if not await self.handle(line):
                    return
            except (asyncio.CancelledError, KeyboardInterrupt):
                # asyncio.run turns Ctrl-C into a cancellation of the main task
                self._uncancel()
                self.say(BYE_MESSAGE)
                return

    @staticmethod
    def _uncancel() -> None:
        task = asyncio.current_task()
        uncancel = getattr(task, "uncancel", None)
        if uncancel is not None:
            uncancel()

    async def handle(self, line: str) -> bool:
        """Process one line of input. Returns False when the chat should end."""
        command = line.strip()

        if command == "exit":
            self.say(BYE_MESSAGE)
            return False
        if command in ("/reset", "reset"):
            self.conversation.reset()
            self.say("Conversation reset.")
            return True
        if command == "v":
            await self.send(self.prompts.editor() or "")
            return True
        if command == "/save":
            return self.save()
        if command == "/session":
            await self.switch_session()
            return True
        if command == "/history":
            for entry in self.conversation.history():
                self.say(entry)
            return True
        if command == "/help":
            self.console.print(Panel(HELP_TEXT, title="Help", border_style="blue"))
            return True
        if command == "/img" or command.startswith("/img "):
            await self.generate_image(command[len("/img"):].strip())
            return True
        if command == "/edit" or command.startswith("/edit "):
            await self.edit_image(command[len("/edit"):].strip())
            return True

        await self.send(line)
        return True

    def say(self, text: str) -> None:
        print_plain(text, self.console)

    # Messages

    async def send(self, content: str) -> None:
        if not content.strip():
            self.say(EMPTY_MESSAGE)
            return

        self.conversation.add_user(content)
        self.persist()

        printer = AnswerPrinter(self.console)
        try:
            answer = await self.responder.respond(self.conversation.messages, printer.write)
        except FerriteError as e:
            self.drop_unanswered(printer)
            print_error(e.message, create_user_friendly_message(e))
            return
        except (asyncio.CancelledError, KeyboardInterrupt):
            self.drop_unanswered(printer)
            raise

        printer.finish(answer)
        self.conversation.add_assistant(answer.text)
        self.persist()

    def drop_unanswered(self, printer: AnswerPrinter) -> None:
        """Remove the user message whose answer never completed, on screen and on disk."""
        if printer.wrote_delta:
            print_plain("", self.console)
        # the next request must not carry a question without its answer
        self.conversation.messages.pop()
        self.persist()

    def persist(self) -> None:
        """Write the conversation to its session file, creating it on first use."""
        session_messages = self.conversation.to_session_messages()
        try:
            if self.session_id is None:
                self.session_id = self.sessions.create_session("", session_messages)
                logger.debug(f"Started session {self.session_id}")
            else:
                self.sessions.update_session(self.session_id, session_messages)
        except FerriteError as e:
            print_error(e.message)

    # Transcript and sessions

    def save(self) -> bool:
        path = Path(self.prompts.text("path:").strip()).expanduser()
        try:
            path.write_text(self.conversation.transcript(), encoding="utf-8")
        except OSError as e:
            print_error(f"Failed to save conversation to {path}: {e}")
            return True

        if self.prompts.confirm("Context successfully saved!\nexit?", default=False):
            self.say(BYE_MESSAGE)
            return False
        return True

    async def switch_session(self) -> None:
        try:
            candidates = session_labels(self.sessions)
        except FerriteError as e:
            print_error(e.message)
            return
        if not candidates:
            self.say(NO_SESSIONS_MESSAGE)
            return

        labels = []
        for info, messages in candidates:
            summary = info.summary
            if not summary:
                summary = await self._summarize(info.id, messages)
            labels.append(summary or info.name or f"Session {info.id}")

        index = self.prompts.select("Choose a session:", labels)
        info, messages = candidates[index]
        self.conversation.replace([message.to_message() for message in messages])
        self.session_id = info.id
        self.say(f"Switched to session: {labels[index]}")

    async def _summarize(self, session_id: int, messages) -> Optional[str]:
        """Generate and cache the summary of a session."""
        try:
            summary = (await generate_summary(self.client, self.responder.model.value, messages)).strip()
            self.sessions.update_summary(session_id, summary)
        except FerriteError as e:
            logger.warning(f"Failed to summarize session {session_id}: {e}")
            return None
        return summary

    # Images

    async def generate_image(self, prompt: str) -> None:
        if not prompt:
            self.say("Usage: /img <prompt>")
            return
        request = build_image_request(DEFAULT_IMAGE_MODEL, prompt, 1, DEFAULT_IMAGE_SIZE, "url")
        try:
            paths = await generate(self.client, request, self.image_path)
        except FerriteError as e:
            self.say(f"Image generation error: {e.message}")
            return
        self._remember_image(paths)

    async def edit_image(self, prompt: str) -> None:
        if self.last_image is None:
            self.say(NO_IMAGE_MESSAGE)
            return
        if not prompt:
            self.say("Usage: /edit <prompt>")
            return
        request = build_image_request(DEFAULT_IMAGE_EDIT_MODEL, prompt, 1, DEFAULT_IMAGE_SIZE, None)
        try:
            paths = await edit(self.client, request, self.last_image, output=self.image_path)
        except FerriteError as e:
            self.say(f"Image edit error: {e.message}")
            return
        self._remember_image(paths)

    def _remember_image(self, paths: Sequence[Path]) -> None:
        if not paths:
            self.say("No image data returned")
            return
        self.last_image = paths[-1]
        self.say(f"Saved to {self.last_image}")
