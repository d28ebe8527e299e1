"""
Image generation and editing on top of the images endpoints.
"""

import base64
import binascii
import logging
import tempfile
from pathlib import Path
from typing import List, Optional

from .client.errors import ContentFilterError, FerriteError
from .client.images import ImageData, ImageRequest
from .client.openai_client import OpenAIClient
from .models import DEFAULT_IMAGE_SIZE, is_gpt_image_model

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT = Path("fimg.png")
CHAT_IMAGE_NAME = "fchat_image.png"


def build_image_request(
    model: str,
    prompt: str,
    n: int = 1,
    size: str = DEFAULT_IMAGE_SIZE,
    response_format: Optional[str] = "url",
) -> ImageRequest:
    """Build a request, dropping ``response_format`` for GPT Image models."""
    return ImageRequest(
        model=model,
        prompt=prompt,
        n=n,
        size=size,
        response_format=None if is_gpt_image_model(model) else response_format,
    )


def output_paths(base: Optional[Path], count: int) -> List[Path]:
    """
    File names for ``count`` images.

    A single image is written to ``base``; several become
    ``<stem>_<i>.<ext>`` with a 1-based index, next to ``base``.
    """
    base = Path(base) if base is not None else DEFAULT_OUTPUT
    if count <= 1:
        return [base]
    stem = base.stem or "fimg"
    suffix = base.suffix or ".png"
    return [base.with_name(f"{stem}_{index}{suffix}") for index in range(1, count + 1)]


def is_safety_rejection(error: Exception) -> bool:
    return isinstance(error, ContentFilterError) or "safety_violations" in str(error)


async def image_bytes(client: OpenAIClient, item: ImageData) -> Optional[bytes]:
    """Bytes of a returned image, downloading URLs and decoding base64."""
    if item.url:
        return await client.download(item.url)
    if item.b64_json:
        try:
            return base64.b64decode(item.b64_json)
        except (binascii.Error, ValueError) as e:
            raise FerriteError("Failed to decode image data", original_error=e)
    return None


def write_image(path: Path, data: bytes) -> Path:
    try:
        Path(path).write_bytes(data)
    except OSError as e:
        raise FerriteError(f"Failed to write image to {path}", original_error=e)
    logger.debug(f"Wrote {len(data)} bytes to {path}")
    return Path(path)


async def save_images(
    client: OpenAIClient,
    items: List[ImageData],
    output: Optional[Path] = None,
) -> List[Path]:
    """Write every returned image to disk; items without data are skipped."""
    paths = output_paths(output, len(items))
    saved = []
    for path, item in zip(paths, items):
        data = await image_bytes(client, item)
        if data is None:
            continue
        saved.append(write_image(path, data))
    return saved


async def generate(
    client: OpenAIClient,
    request: ImageRequest,
    output: Optional[Path] = None,
) -> List[Path]:
    items = await client.generate_images(request)
    return await save_images(client, items, output)


async def edit(
    client: OpenAIClient,
    request: ImageRequest,
    image_path: Path,
    mask_path: Optional[Path] = None,
    output: Optional[Path] = None,
) -> List[Path]:
    items = await client.edit_images(request, image_path, mask_path)
    return await save_images(client, items, output)


async def edit_in_place(
    client: OpenAIClient,
    request: ImageRequest,
    image_path: Path,
    mask_path: Optional[Path] = None,
) -> Optional[Path]:
    """Apply an edit and overwrite ``image_path`` with the last returned image."""
    items = await client.edit_images(request, image_path, mask_path)
    if not items:
        return None
    data = await image_bytes(client, items[-1])
    if data is None:
        return None
    return write_image(image_path, data)


def chat_image_path() -> Path:
    """Where ``/img`` and ``/edit`` in fchat keep the current image."""
    return Path(tempfile.gettempdir()) / CHAT_IMAGE_NAME
