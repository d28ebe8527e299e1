"""
API client for Ferrite.

This package provides the HTTP client for OpenAI-compatible endpoints along
with its message types, SSE decoding, retry logic and error hierarchy.
"""

from .errors import (
    FerriteError,
    AuthenticationError,
    AuthorizationError,
    QuotaExceededError,
    ModelUnavailableError,
    InvalidRequestError,
    ContentFilterError,
    ServerError,
    NetworkError,
    TimeoutError,
    ApiResponseError,
    ConfigurationError,
    SessionError,
    classify_error,
    create_user_friendly_message,
)
from .images import ImageData, ImageRequest
from .messages import (
    ChatCompletion,
    ChatCompletionDelta,
    Message,
    MessageRole,
    merge_deltas,
)
from .openai_client import ClientConfig, OpenAIClient, DEFAULT_BASE_URL
from .retry import RetryConfig, RetryManager
from .sse import SSEDecoder, SSEEvent

__all__ = [
    # Errors
    "FerriteError",
    "AuthenticationError",
    "AuthorizationError",
    "QuotaExceededError",
    "ModelUnavailableError",
    "InvalidRequestError",
    "ContentFilterError",
    "ServerError",
    "NetworkError",
    "TimeoutError",
    "ApiResponseError",
    "ConfigurationError",
    "SessionError",
    "classify_error",
    "create_user_friendly_message",
    # Images
    "ImageData",
    "ImageRequest",
    # Messages
    "ChatCompletion",
    "ChatCompletionDelta",
    "Message",
    "MessageRole",
    "merge_deltas",
    # Client
    "ClientConfig",
    "OpenAIClient",
    "DEFAULT_BASE_URL",
    # Retry
    "RetryConfig",
    "RetryManager",
    # Streaming
    "SSEDecoder",
    "SSEEvent",
]
