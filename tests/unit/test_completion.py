"""Tests for answer generation."""

import json
from typing import List

import pytest
from httpx import Response
from respx import MockRouter

from ferrite.core.client import Message, OpenAIClient
from ferrite.core.completion import Responder, ResponseMode
from ferrite.core.models import ChatModel
from helpers.payloads import SSE_HEADERS, chat_chunk, chat_completion, sse_body

BASE_URL = "https://api.test/v1"


class TestResponder:
    @pytest.mark.asyncio
    async def test_stream_mode(self, client: OpenAIClient, respx_mock: MockRouter) -> None:
        respx_mock.post(f"{BASE_URL}/chat/completions").mock(
            return_value=Response(200, text=sse_body(chat_chunk("Hi "), chat_chunk("there")), headers=SSE_HEADERS)
        )
        received: List[str] = []

        answer = await Responder(client, ChatModel.GPT_4O, ResponseMode.STREAM).respond(
            [Message.user("hello")], received.append
        )

        assert received == ["Hi ", "there"]
        assert answer.text == "Hi there"
        assert answer.streamed

    @pytest.mark.asyncio
    async def test_batch_mode(self, client: OpenAIClient, respx_mock: MockRouter) -> None:
        route = respx_mock.post(f"{BASE_URL}/chat/completions").mock(
            return_value=Response(200, json=chat_completion("  Whole answer \n"))
        )
        received: List[str] = []

        answer = await Responder(client, ChatModel.O3_MINI, ResponseMode.BATCH).respond(
            [Message.user("hello")], received.append
        )

        assert received == []
        assert answer.text == "  Whole answer \n"
        assert not answer.streamed
        assert json.loads(route.calls.last.request.content)["model"] == "o3-mini"

    @pytest.mark.asyncio
    async def test_web_mode(self, client: OpenAIClient, respx_mock: MockRouter) -> None:
        respx_mock.post(f"{BASE_URL}/responses").mock(
            return_value=Response(
                200,
                text=sse_body(
                    {"type": "response.output_text.delta", "delta": "Found it."},
                    {"type": "response.output_text.annotation.added", "annotation": {"url": "https://x.test"}},
                ),
                headers=SSE_HEADERS,
            )
        )

        answer = await Responder(client, ChatModel.GPT_4O, ResponseMode.BATCH, web=True).respond(
            [Message.user("search")]
        )

        assert answer.text == "Found it."
        assert answer.streamed
        assert [citation.url for citation in answer.citations] == ["https://x.test"]
