"""Tests for web-search augmented answers."""

import json
from typing import List

import pytest
from httpx import Response
from respx import MockRouter

from ferrite.core.client import FerriteError, Message, OpenAIClient
from ferrite.core.web import (
    Citation,
    CitationCollector,
    WebSearchClient,
    extract_text_segments,
    parse_response_output,
    to_response_input,
    uses_responses_tool,
)
from helpers.payloads import SSE_HEADERS, sse_body

BASE_URL = "https://api.test/v1"


class TestCitationCollector:
    def test_collects_nested_citations_once(self) -> None:
        collector = CitationCollector()
        collector.collect({
            "annotations": [
                {"type": "url_citation", "url": "https://a.test", "title": "A"},
                {"type": "url_citation", "url": "https://a.test", "title": "A again"},
            ],
            "nested": {"sources": [{"href": "https://b.test", "name": "B"}]},
        })
        collector.collect([{"uri": "https://c.test"}])

        assert collector.citations == [
            Citation(url="https://a.test", title="A"),
            Citation(url="https://b.test", title="B"),
            Citation(url="https://c.test", title=None),
        ]

    def test_non_string_url_is_ignored(self) -> None:
        collector = CitationCollector()
        collector.collect({"url": 42, "inner": {"source_url": "https://d.test", "page_title": "D"}})
        assert collector.citations == [Citation(url="https://d.test", title="D")]


class TestTextExtraction:
    def test_segments_follow_text_types(self) -> None:
        value = {
            "output": [
                {"type": "reasoning", "text": "hidden"},
                {"content": [{"type": "output_text", "text": "Hello"}, {"text_delta": " world"}]},
            ]
        }
        assert extract_text_segments(value) == ["Hello", " world"]

    def test_parse_response_output(self) -> None:
        collector = CitationCollector()
        response = {
            "output": [
                {"type": "web_search_call", "status": "completed"},
                {
                    "type": "message",
                    "content": [
                        {
                            "type": "output_text",
                            "text": "Answer",
                            "annotations": [{"url": "https://src.test", "title": "Src"}],
                        }
                    ],
                },
            ]
        }
        assert parse_response_output(response, collector) == "Answer"
        assert collector.citations == [Citation(url="https://src.test", title="Src")]

    def test_to_response_input(self) -> None:
        messages = [Message.system("seed"), Message.user("q"), Message.assistant("a")]
        assert to_response_input(messages) == [
            {"role": "system", "content": [{"type": "input_text", "text": "seed"}]},
            {"role": "user", "content": [{"type": "input_text", "text": "q"}]},
            {"role": "assistant", "content": [{"type": "output_text", "text": "a"}]},
        ]

    def test_uses_responses_tool(self) -> None:
        assert uses_responses_tool("gpt-4o")
        assert not uses_responses_tool("gpt-4o-search-preview")


class TestWebSearchClient:
    @pytest.mark.asyncio
    async def test_streams_deltas_and_citations(self, client: OpenAIClient, respx_mock: MockRouter) -> None:
        route = respx_mock.post(f"{BASE_URL}/responses").mock(
            return_value=Response(
                200,
                text=sse_body(
                    {"type": "response.created", "response": {"id": "resp_1"}},
                    {"type": "response.output_text.delta", "delta": "Tokyo is "},
                    {"type": "response.output_text.delta", "delta": "sunny."},
                    {
                        "type": "response.output_text.annotation.added",
                        "annotation": {"type": "url_citation", "url": "https://weather.test", "title": "Weather"},
                    },
                    {"type": "response.completed", "response": {"id": "resp_1", "output": []}},
                ),
                headers=SSE_HEADERS,
            )
        )
        received: List[str] = []

        result = await WebSearchClient(client).stream_response(
            "gpt-4o", [Message.user("weather in Tokyo?")], received.append
        )

        assert received == ["Tokyo is ", "sunny."]
        assert result.message == "Tokyo is sunny."
        assert result.displayed
        assert result.citations == [Citation(url="https://weather.test", title="Weather")]

        request = route.calls.last.request
        assert request.url.params["stream"] == "true"
        body = json.loads(request.content)
        assert body["tools"] == [{"type": "web_search"}]
        assert body["input"][0]["content"][0] == {"type": "input_text", "text": "weather in Tokyo?"}

    @pytest.mark.asyncio
    async def test_falls_back_to_completed_response(self, client: OpenAIClient, respx_mock: MockRouter) -> None:
        completed = {
            "id": "resp_2",
            "output": [{"type": "message", "content": [{"type": "output_text", "text": "Full answer"}]}],
        }
        respx_mock.post(f"{BASE_URL}/responses").mock(
            return_value=Response(
                200,
                text=sse_body({"type": "response.completed", "response": completed}),
                headers=SSE_HEADERS,
            )
        )
        received: List[str] = []

        result = await WebSearchClient(client).stream_response("gpt-4o", [Message.user("q")], received.append)

        assert received == []
        assert result.message == "Full answer"
        assert not result.displayed

    @pytest.mark.asyncio
    async def test_response_error_event(self, client: OpenAIClient, respx_mock: MockRouter) -> None:
        respx_mock.post(f"{BASE_URL}/responses").mock(
            return_value=Response(
                200,
                text=sse_body({"type": "response.error", "error": {"message": "tool unavailable"}}),
                headers=SSE_HEADERS,
            )
        )

        with pytest.raises(FerriteError, match="tool unavailable"):
            await WebSearchClient(client).stream_response("gpt-4o", [Message.user("q")], lambda _text: None)

    @pytest.mark.asyncio
    async def test_search_preview_models_use_chat_completions(
        self, client: OpenAIClient, respx_mock: MockRouter
    ) -> None:
        route = respx_mock.post(f"{BASE_URL}/chat/completions").mock(
            return_value=Response(
                200,
                text=sse_body(
                    {"choices": [{"delta": {"content": "It is "}}]},
                    {
                        "choices": [{
                            "delta": {
                                "content": "rainy.",
                                "annotations": [{"url_citation": {"url": "https://rain.test", "title": "Rain"}}],
                            }
                        }]
                    },
                ),
                headers=SSE_HEADERS,
            )
        )
        received: List[str] = []

        result = await WebSearchClient(client).stream_response(
            "gpt-4o-search-preview", [Message.user("weather?")], received.append
        )

        assert "".join(received) == "It is rainy."
        assert result.message == "It is rainy."
        assert result.citations == [Citation(url="https://rain.test", title="Rain")]
        assert json.loads(route.calls.last.request.content)["stream"] is True
