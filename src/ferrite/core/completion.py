"""
Answer generation shared by fchat, fask and ftrans.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence

from .client.messages import ChatCompletionDelta, Message, merge_deltas
from .client.openai_client import OpenAIClient
from .models import ChatModel
from .web import Citation, WebSearchClient

logger = logging.getLogger(__name__)


class ResponseMode(str, Enum):
    """How an answer is delivered to the terminal."""
    STREAM = "stream"
    BATCH = "batch"


@dataclass
class Answer:
    text: str
    citations: List[Citation] = field(default_factory=list)
    # True when the text already reached the delta callback
    streamed: bool = False


class Responder:
    """Sends a conversation and returns the assistant's answer."""

    def __init__(
        self,
        client: OpenAIClient,
        model: ChatModel,
        mode: ResponseMode = ResponseMode.STREAM,
        web: bool = False,
    ):
        self.client = client
        self.model = model
        self.mode = mode
        self.web = web

    async def respond(
        self,
        messages: Sequence[Message],
        on_delta: Optional[Callable[[str], None]] = None,
    ) -> Answer:
        """
        Produce the answer to ``messages``.

        In stream mode and web mode, text is passed to ``on_delta`` as it
        arrives. Batch mode never calls ``on_delta``.
        """
        callback = on_delta or (lambda _text: None)

        if self.web:
            result = await WebSearchClient(self.client).stream_response(
                self.model.value, messages, callback
            )
            return Answer(text=result.message, citations=result.citations, streamed=result.displayed)

        if self.mode == ResponseMode.STREAM:
            deltas: List[ChatCompletionDelta] = []
            async for delta in self.client.stream_chat_completion(self.model.value, messages):
                if delta.content:
                    callback(delta.content)
                deltas.append(delta)
            answer = merge_deltas(deltas)
            logger.debug(f"Streamed {len(deltas)} chunks, {len(answer.content)} characters")
            return Answer(text=answer.content, streamed=bool(answer.content))

        completion = await self.client.create_chat_completion(self.model.value, messages)
        if completion.usage:
            logger.debug(f"Token usage: {completion.usage.total_tokens}")
        return Answer(text=completion.text)
