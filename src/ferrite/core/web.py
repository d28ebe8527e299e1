"""
Web-search augmented answers.

``--web`` routes a conversation through the responses endpoint with the
``web_search`` tool enabled (or, for ``*-search-preview`` chat models, through
streaming chat completions). Text is streamed to a callback as it arrives and
the cited sources are collected from wherever they appear in the events.

The event shapes vary between providers and API revisions, so text and
citations are extracted by walking the JSON rather than by fixed paths.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from .client.errors import FerriteError
from .client.messages import Message, MessageRole
from .client.openai_client import OpenAIClient

logger = logging.getLogger(__name__)

DeltaCallback = Callable[[str], None]

URL_KEYS = ("url", "source_url", "href", "uri")
TITLE_KEYS = ("title", "name", "source", "page_title")
TEXT_TYPES = {"output_text", "text", "summary_text", "output"}


@dataclass
class Citation:
    url: str
    title: Optional[str] = None


@dataclass
class WebSearchResult:
    """Final text of a web-augmented answer and its sources."""
    message: str
    citations: List[Citation] = field(default_factory=list)
    displayed: bool = False


class CitationCollector:
    """Accumulates citations in discovery order, deduplicated by URL."""

    def __init__(self) -> None:
        self.citations: List[Citation] = []
        self._seen: Set[str] = set()

    def collect(self, value: Any) -> None:
        if isinstance(value, dict):
            url = _first_str(value, URL_KEYS)
            if url is not None and url not in self._seen:
                self._seen.add(url)
                self.citations.append(Citation(url=url, title=_first_str(value, TITLE_KEYS)))
            for item in value.values():
                self.collect(item)
        elif isinstance(value, list):
            for item in value:
                self.collect(item)


def _first_str(mapping: Dict[str, Any], keys: Sequence[str]) -> Optional[str]:
    # First present key wins, even when its value is not a string
    for key in keys:
        if key in mapping:
            value = mapping[key]
            return value if isinstance(value, str) else None
    return None


def _collect_text_segments(value: Any, segments: List[str]) -> None:
    if isinstance(value, dict):
        text = value.get("text")
        if isinstance(text, str):
            kind = value.get("type")
            kind = kind if isinstance(kind, str) else ""
            if not kind or kind in TEXT_TYPES:
                segments.append(text)
        text_delta = value.get("text_delta")
        if isinstance(text_delta, str):
            segments.append(text_delta)
        for key, item in value.items():
            if key in ("text", "text_delta"):
                continue
            if isinstance(item, (dict, list)):
                _collect_text_segments(item, segments)
    elif isinstance(value, list):
        for item in value:
            _collect_text_segments(item, segments)


def extract_text_segments(value: Any) -> List[str]:
    """All non-empty text fragments found anywhere inside ``value``."""
    segments: List[str] = []
    _collect_text_segments(value, segments)
    return [segment for segment in segments if segment]


def extract_text_from_response(value: Any) -> Optional[str]:
    segments = extract_text_segments(value)
    return "\n\n".join(segments) if segments else None


def extract_text_from_message(message: Any) -> Optional[str]:
    """Text of a chat ``message`` object whose content is a string or a list of parts."""
    if not isinstance(message, dict) or "content" not in message:
        return None
    content = message["content"]
    if isinstance(content, str):
        return content
    segments = extract_text_segments(content)
    return "\n\n".join(segments) if segments else None


def parse_response_output(value: Any, collector: CitationCollector) -> str:
    """Concatenate the text of the ``message`` items in a responses ``output`` array."""
    text = ""
    output = value.get("output") if isinstance(value, dict) else None
    if not isinstance(output, list):
        return text

    for item in output:
        if not isinstance(item, dict) or item.get("type") != "message":
            continue
        content = item.get("content")
        if not isinstance(content, list):
            continue
        for part in content:
            if isinstance(part, dict):
                part_text = part.get("text")
                if isinstance(part_text, str):
                    text += part_text
                if part.get("type") == "output_text" and isinstance(part.get("text_delta"), str):
                    text += part["text_delta"]
            elif isinstance(part, str):
                text += part
            collector.collect(part)
    return text


def to_response_input(messages: Sequence[Message]) -> List[Dict[str, Any]]:
    """Convert chat messages into the responses ``input`` format."""
    return [
        {
            "role": message.role.value,
            "content": [
                {
                    "type": "output_text" if message.role == MessageRole.ASSISTANT else "input_text",
                    "text": message.content,
                }
            ],
        }
        for message in messages
    ]


def uses_responses_tool(model: str) -> bool:
    """Search-preview chat models search on their own; everything else needs the tool."""
    return "search-preview" not in model


class _StreamState:
    """Text accumulated while a stream is consumed."""

    def __init__(self, on_delta: DeltaCallback) -> None:
        self.on_delta = on_delta
        self.buffer = ""
        self.displayed = False
        self.collector = CitationCollector()

    def emit(self, text: str) -> None:
        if text:
            self.on_delta(text)
            self.buffer += text
            self.displayed = True

    def emit_delta_value(self, value: Any) -> None:
        if isinstance(value, str):
            self.emit(value)
        else:
            for segment in extract_text_segments(value):
                self.emit(segment)


class WebSearchClient:
    """Streams web-search augmented answers through an ``OpenAIClient``."""

    def __init__(self, client: OpenAIClient):
        self.client = client

    async def stream_response(
        self,
        model: str,
        messages: Sequence[Message],
        on_delta: DeltaCallback,
        use_tools: Optional[bool] = None,
    ) -> WebSearchResult:
        """
        Send ``messages`` and stream the answer to ``on_delta``.

        Args:
            model: Model id
            messages: Conversation so far, ending with the user's question
            on_delta: Called with each piece of text as it arrives
            use_tools: Force the responses endpoint on or off; by default it is
                used unless the model is a search-preview chat model

        Returns:
            The final text, its citations and whether anything was displayed
        """
        if use_tools is None:
            use_tools = uses_responses_tool(model)
        if use_tools:
            return await self._stream_responses(model, messages, on_delta)
        return await self._stream_chat_model(model, messages, on_delta)

    async def _stream_responses(
        self,
        model: str,
        messages: Sequence[Message],
        on_delta: DeltaCallback,
    ) -> WebSearchResult:
        body = {
            "model": model,
            "input": to_response_input(messages),
            "tools": [{"type": "web_search"}],
        }
        state = _StreamState(on_delta)
        final_response: Optional[Dict[str, Any]] = None
        final_text = ""

        async for event in self.client.stream_json("responses", body, params={"stream": "true"}):
            state.collector.collect(event)
            event_type = event.get("type")

            if isinstance(event_type, str):
                logger.debug(f"[responses event type] {event_type}")
                if event_type == "response.output_text.delta":
                    if "delta" in event:
                        state.emit_delta_value(event["delta"])
                elif event_type.startswith("response.output_text.annotation"):
                    logger.debug(f"[responses annotation] {event.get('annotation')}")
                elif event_type == "response.output_text":
                    for segment in extract_text_segments(event.get("output")):
                        state.emit(segment)
                elif event_type == "response.completed":
                    if isinstance(event.get("response"), dict):
                        final_response = event["response"]
                elif event_type == "message":
                    aggregated = self._aggregate_message_event(event)
                    if aggregated:
                        if not state.buffer:
                            state.buffer = aggregated
                        final_text = aggregated
                    if final_response is None:
                        final_response = event
                elif event_type == "response.error":
                    error = event.get("error")
                    message = error.get("message") if isinstance(error, dict) else None
                    raise FerriteError(message or "Unknown error")
            elif "output" in event:
                parsed = parse_response_output(event, state.collector)
                logger.debug(f"[responses full parsed text len={len(parsed)}]")
                if parsed:
                    final_text = parsed
                final_response = event

        if not final_text:
            if not state.buffer.strip():
                if final_response is not None:
                    parsed = parse_response_output(final_response, state.collector)
                    if parsed:
                        final_text = parsed
                    else:
                        final_text = extract_text_from_response(final_response) or ""
                    state.collector.collect(final_response)
            else:
                final_text = state.buffer

        if not final_text and final_response is not None:
            segments = extract_text_segments(final_response)
            final_text = "\n\n".join(segments) if segments else json.dumps(final_response)

        logger.debug(f"[responses debug] final_text len={len(final_text)} displayed={state.displayed}")
        return WebSearchResult(
            message=final_text,
            citations=state.collector.citations,
            displayed=state.displayed,
        )

    @staticmethod
    def _aggregate_message_event(event: Dict[str, Any]) -> str:
        aggregated = ""
        content = event.get("content")
        if isinstance(content, list):
            for part in content:
                if not isinstance(part, dict):
                    continue
                if isinstance(part.get("text"), str):
                    aggregated += part["text"]
                if isinstance(part.get("text_delta"), str):
                    aggregated += part["text_delta"]
        if not aggregated:
            aggregated = extract_text_from_response(event) or ""
        if not aggregated:
            aggregated = json.dumps(event)
        return aggregated

    async def _stream_chat_model(
        self,
        model: str,
        messages: Sequence[Message],
        on_delta: DeltaCallback,
    ) -> WebSearchResult:
        body = {
            "model": model,
            "messages": [message.to_api() for message in messages],
            "stream": True,
        }
        state = _StreamState(on_delta)
        final_message: Optional[Dict[str, Any]] = None

        async for event in self.client.stream_json("chat/completions", body):
            state.collector.collect(event)
            choices = event.get("choices")
            if isinstance(choices, list):
                if choices and isinstance(choices[0], dict):
                    choice = choices[0]
                    if isinstance(choice.get("delta"), dict):
                        self._process_chat_delta(choice["delta"], state)
                    if isinstance(choice.get("message"), dict):
                        final_message = choice["message"]
            elif not state.buffer:
                state.buffer = extract_text_from_response(event) or ""

        if final_message is not None:
            if not state.buffer:
                state.buffer = extract_text_from_message(final_message) or ""
            if not state.buffer:
                segments = extract_text_segments(final_message)
                state.buffer = "\n\n".join(segments) if segments else json.dumps(final_message)
            state.collector.collect(final_message)

        logger.debug(f"[chat debug] text_buffer len={len(state.buffer)} displayed={state.displayed}")
        return WebSearchResult(
            message=state.buffer,
            citations=state.collector.citations,
            displayed=state.displayed,
        )

    @staticmethod
    def _process_chat_delta(delta: Dict[str, Any], state: _StreamState) -> None:
        if "content" in delta:
            content = delta["content"]
            if isinstance(content, list):
                for item in content:
                    state.emit_delta_value(item)
                    state.collector.collect(item)
            elif isinstance(content, str):
                state.emit(content)
            elif content is not None:
                state.emit_delta_value(content)
                state.collector.collect(content)

        for key in ("citations", "annotations", "metadata"):
            if key in delta:
                state.collector.collect(delta[key])
