"""
HTTP client for OpenAI-compatible APIs.

This module wraps an ``httpx.AsyncClient`` configured with the base URL and
bearer key, and exposes the endpoints Ferrite uses: chat completions (batch
and streaming), the responses stream used by web search, model listing and
the images endpoints.
"""

import json
import logging
import mimetypes
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, List, Optional, Sequence

import httpx
from pydantic import BaseModel, Field

from ferrite import USER_AGENT
from .errors import (
    ApiResponseError,
    AuthenticationError,
    FerriteError,
    classify_error,
    error_from_status,
)
from .images import ImageData, ImageRequest, parse_image_response
from .messages import (
    ChatCompletion,
    ChatCompletionDelta,
    ChatCompletionRequest,
    Message,
)
from .retry import RetryConfig, RetryManager
from .sse import SSEDecoder, SSEEvent

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"


class ClientConfig(BaseModel):
    """Connection settings for ``OpenAIClient``."""
    api_key: str
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = Field(default=120.0, gt=0)
    max_retries: int = Field(default=3, ge=1)


class OpenAIClient:
    """Async client for the chat, responses, models and images endpoints."""

    def __init__(self, config: ClientConfig, http_client: Optional[httpx.AsyncClient] = None):
        if not config.api_key:
            raise AuthenticationError("You need to set API key to the OPENAI_API_KEY")
        self.config = config
        self.retry_manager = RetryManager(RetryConfig(max_attempts=config.max_retries))
        self._client = http_client or httpx.AsyncClient(
            base_url=config.base_url,
            headers=self._default_headers(),
            timeout=httpx.Timeout(config.timeout_seconds),
        )
        self._owns_client = http_client is None

    def _default_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "User-Agent": USER_AGENT,
        }

    @property
    def base_url(self) -> str:
        return self.config.base_url.rstrip("/")

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def __aenter__(self) -> "OpenAIClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # Chat completions

    async def create_chat_completion(self, model: str, messages: Sequence[Message]) -> ChatCompletion:
        """Send the conversation and wait for the whole answer."""
        request = ChatCompletionRequest(
            model=model,
            messages=[message.to_api() for message in messages],
            stream=False,
        )

        async def _send() -> ChatCompletion:
            response = await self._client.post(
                self._url("chat/completions"),
                headers=self._default_headers(),
                json=request.model_dump(),
            )
            data = self._json_or_raise(response)
            completion = ChatCompletion.model_validate(data)
            if not completion.choices:
                raise ApiResponseError("Can't read ChatGPT output")
            return completion

        return await self.retry_manager.retry(_send, operation="chat completion")

    async def stream_chat_completion(
        self,
        model: str,
        messages: Sequence[Message],
    ) -> AsyncGenerator[ChatCompletionDelta, None]:
        """Send the conversation and yield content deltas as they arrive."""
        request = ChatCompletionRequest(
            model=model,
            messages=[message.to_api() for message in messages],
            stream=True,
        )
        async for payload in self.stream_json("chat/completions", request.model_dump()):
            yield ChatCompletionDelta.from_chunk(payload)

    # Generic streaming

    async def stream_json(
        self,
        path: str,
        body: Dict[str, Any],
        params: Optional[Dict[str, str]] = None,
    ) -> AsyncGenerator[Dict[str, Any], None]:
        """
        POST ``body`` to ``path`` and yield the JSON payload of each SSE event.

        Events without ``data:`` lines are parsed as bare JSON and skipped when
        they are not. A ``data:`` payload that is not JSON is an error.
        """
        headers = {
            **self._default_headers(),
            "Accept": "text/event-stream",
        }
        try:
            async with self._client.stream(
                "POST",
                self._url(path),
                params=params,
                headers=headers,
                json=body,
            ) as response:
                if response.is_error:
                    await response.aread()
                    raise error_from_status(response.status_code, response.text, response.headers)

                decoder = SSEDecoder()
                async for chunk in response.aiter_text():
                    logger.debug(f"[{path} chunk] {chunk}")
                    for event in decoder.feed(chunk):
                        payload = self._decode_event(path, event)
                        if payload is not None:
                            yield payload
                    if decoder.finished:
                        return

                for event in decoder.flush():
                    payload = self._decode_event(path, event)
                    if payload is not None:
                        yield payload

        except FerriteError:
            raise
        except httpx.HTTPError as e:
            raise classify_error(e) from e

    def _decode_event(self, path: str, event: SSEEvent) -> Optional[Dict[str, Any]]:
        if event.done:
            return None
        logger.debug(f"[{path} raw event] {event.data}")
        try:
            payload = json.loads(event.data)
        except ValueError as e:
            if event.raw:
                logger.debug(f"[{path} warn] direct event parse failed: {e}")
                return None
            raise ApiResponseError(f"Invalid JSON chunk: {event.data}", original_error=e)
        return payload if isinstance(payload, dict) else None

    # Models

    async def list_models(self) -> List[str]:
        """Return the ids reported by ``GET /models``."""
        async def _send() -> List[str]:
            response = await self._client.get(self._url("models"), headers=self._default_headers())
            data = self._json_or_raise(response)
            items = data.get("data")
            if not isinstance(items, list):
                raise ApiResponseError("Failed to parse models list")
            return [item["id"] for item in items if isinstance(item, dict) and isinstance(item.get("id"), str)]

        return await self.retry_manager.retry(_send, operation="model listing")

    # Images

    async def generate_images(self, request: ImageRequest) -> List[ImageData]:
        """Create new images with ``POST /images/generations``."""
        try:
            response = await self._client.post(
                self._url("images/generations"),
                headers=self._default_headers(),
                json=request.model_dump(exclude_none=True),
            )
        except httpx.HTTPError as e:
            raise classify_error(e) from e
        return self._images_or_raise(response)

    async def edit_images(
        self,
        request: ImageRequest,
        image_path: Path,
        mask_path: Optional[Path] = None,
    ) -> List[ImageData]:
        """Edit an existing image with ``POST /images/edits`` (multipart form)."""
        files = {"image": self._read_upload(image_path, "image.png", "image")}
        if mask_path is not None:
            files["mask"] = self._read_upload(mask_path, "mask.png", "mask")

        try:
            response = await self._client.post(
                self._url("images/edits"),
                headers=self._default_headers(),
                data=request.form_fields(),
                files=files,
            )
        except httpx.HTTPError as e:
            raise classify_error(e) from e
        return self._images_or_raise(response)

    async def download(self, url: str) -> bytes:
        """
        Fetch a generated image from its URL.

        Image URLs point at storage hosts, so the request goes out without the
        API key.
        """
        try:
            async with httpx.AsyncClient(
                headers={"User-Agent": USER_AGENT},
                timeout=httpx.Timeout(self.config.timeout_seconds),
                follow_redirects=True,
            ) as http:
                response = await http.get(url)
        except httpx.HTTPError as e:
            raise classify_error(e) from e
        if response.is_error:
            raise error_from_status(response.status_code, response.text, response.headers)
        return response.content

    # Helpers

    @staticmethod
    def _read_upload(path: Path, default_name: str, kind: str) -> tuple:
        try:
            content = Path(path).read_bytes()
        except OSError as e:
            raise FerriteError(f"Failed to read {kind} file {path}", original_error=e)
        content_type = mimetypes.guess_type(Path(path).name)[0] or "image/png"
        return (Path(path).name or default_name, content, content_type)

    @staticmethod
    def _json_or_raise(response: httpx.Response) -> Dict[str, Any]:
        if response.is_error:
            raise error_from_status(response.status_code, response.text, response.headers)
        try:
            data = response.json()
        except ValueError as e:
            raise ApiResponseError(f"Invalid JSON response:\n{response.text}", original_error=e)
        if not isinstance(data, dict):
            raise ApiResponseError(f"Unexpected response:\n{response.text}")
        return data

    @staticmethod
    def _images_or_raise(response: httpx.Response) -> List[ImageData]:
        if response.is_error:
            raise error_from_status(response.status_code, response.text, response.headers)
        return parse_image_response(response.text)
