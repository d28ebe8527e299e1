"""
Request and response models for the images endpoints.
"""

import json
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ValidationError

from .errors import ApiResponseError, FerriteError


class ImageRequest(BaseModel):
    """Body of ``POST /images/generations``; also the text fields of an edit form."""
    model: str
    prompt: str
    n: int = 1
    size: str = "1024x1024"
    # GPT Image models do not support response_format
    response_format: Optional[str] = None

    def form_fields(self) -> Dict[str, str]:
        """Text parts of the multipart form used by ``/images/edits``."""
        fields = {
            "model": self.model,
            "prompt": self.prompt,
            "n": str(self.n),
            "size": self.size,
        }
        if self.response_format:
            fields["response_format"] = self.response_format
        return fields


class ImageData(BaseModel):
    """One generated image, delivered either as a URL or base64 PNG."""
    url: Optional[str] = None
    b64_json: Optional[str] = None
    revised_prompt: Optional[str] = None


def parse_image_response(body: str) -> List[ImageData]:
    """Decode the ``data`` array of an images response body."""
    try:
        payload: Any = json.loads(body)
    except ValueError as e:
        raise ApiResponseError(f"Invalid JSON response:\n{body}", original_error=e)

    if isinstance(payload, dict) and payload.get("error"):
        error = payload["error"]
        message = error.get("message") if isinstance(error, dict) else str(error)
        raise FerriteError(f"OpenAI Images API error: {message or 'Unknown error'}")

    if not isinstance(payload, dict) or "data" not in payload:
        raise ApiResponseError(f"Missing 'data':\n{body}")

    try:
        return [ImageData.model_validate(item) for item in payload["data"]]
    except (TypeError, ValidationError) as e:
        raise ApiResponseError(f"Failed to parse 'data':\n{payload['data']}", original_error=e)
