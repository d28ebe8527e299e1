"""
Structured error system for the Ferrite API client.

Every failure that reaches the command line is a ``FerriteError``. HTTP and
transport exceptions raised by httpx are classified into the subclasses below
so retry logic and user-facing messages can branch on the type.
"""

from typing import Any, Dict, Optional
import json
import logging

import httpx

logger = logging.getLogger(__name__)


class FerriteError(Exception):
    """Base exception for all Ferrite errors."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code
        self.details = details or {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        return {
            "message": self.message,
            "status": self.status,
            "code": self.code,
            "details": self.details,
            "type": self.__class__.__name__
        }

    def __str__(self) -> str:
        parts = [self.message]
        if self.status:
            parts.append(f"(Status: {self.status})")
        if self.code:
            parts.append(f"(Code: {self.code})")
        return " ".join(parts)


class AuthenticationError(FerriteError):
    """Missing or rejected API key."""

    def __init__(self, message: str = "Authentication failed", **kwargs):
        kwargs.setdefault("status", 401)
        super().__init__(message, code="AUTHENTICATION_ERROR", **kwargs)


class AuthorizationError(FerriteError):
    """The key is valid but not allowed to use the resource."""

    def __init__(self, message: str = "Authorization failed", **kwargs):
        kwargs.setdefault("status", 403)
        super().__init__(message, code="AUTHORIZATION_ERROR", **kwargs)


class QuotaExceededError(FerriteError):
    """Rate limit or quota exhausted."""

    def __init__(
        self,
        message: str = "API quota exceeded",
        retry_after: Optional[int] = None,
        **kwargs
    ):
        kwargs.setdefault("status", 429)
        super().__init__(message, code="QUOTA_EXCEEDED", **kwargs)
        if retry_after:
            self.details["retry_after"] = retry_after


class ModelUnavailableError(FerriteError):
    """Requested model is unknown to the API."""

    def __init__(
        self,
        message: str = "Model unavailable",
        model: Optional[str] = None,
        **kwargs
    ):
        kwargs.setdefault("status", 404)
        super().__init__(message, code="MODEL_UNAVAILABLE", **kwargs)
        if model:
            self.details["model"] = model


class InvalidRequestError(FerriteError):
    """Error for invalid API requests."""

    def __init__(self, message: str = "Invalid request", **kwargs):
        kwargs.setdefault("status", 400)
        super().__init__(message, code="INVALID_REQUEST", **kwargs)


class ContentFilterError(FerriteError):
    """Content rejected by the provider's safety system."""

    def __init__(self, message: str = "Content filtered", **kwargs):
        kwargs.setdefault("status", 400)
        super().__init__(message, code="CONTENT_FILTERED", **kwargs)


class ServerError(FerriteError):
    """Error for server-side issues."""

    def __init__(self, message: str = "Server error", **kwargs):
        kwargs.setdefault("status", 500)
        super().__init__(message, code="SERVER_ERROR", **kwargs)


class NetworkError(FerriteError):
    """Error for network-related issues."""

    def __init__(self, message: str = "Network error", **kwargs):
        super().__init__(message, code="NETWORK_ERROR", **kwargs)


class TimeoutError(FerriteError):
    """Error for request timeouts."""

    def __init__(
        self,
        message: str = "Request timeout",
        timeout_seconds: Optional[float] = None,
        **kwargs
    ):
        super().__init__(message, code="TIMEOUT_ERROR", **kwargs)
        if timeout_seconds:
            self.details["timeout_seconds"] = timeout_seconds


class ApiResponseError(FerriteError):
    """The API answered with a body Ferrite cannot interpret."""

    def __init__(self, message: str = "Unexpected API response", **kwargs):
        super().__init__(message, code="API_RESPONSE_ERROR", **kwargs)


class ConfigurationError(FerriteError):
    """Error related to configuration files, settings or credentials."""

    def __init__(
        self,
        message: str = "Configuration error",
        config_field: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, code="CONFIGURATION_ERROR", **kwargs)
        if config_field:
            self.details["config_field"] = config_field


class SessionError(FerriteError):
    """Error reading or writing a saved chat session."""

    def __init__(
        self,
        message: str = "Session error",
        session_id: Optional[int] = None,
        **kwargs
    ):
        super().__init__(message, code="SESSION_ERROR", **kwargs)
        if session_id is not None:
            self.details["session_id"] = session_id


def extract_api_error_message(body: str) -> Optional[str]:
    """Pull ``error.message`` out of an OpenAI-style error body."""
    try:
        payload = json.loads(body)
    except (TypeError, ValueError):
        return None
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        return message if isinstance(message, str) and message else "Unknown error"
    if isinstance(error, str):
        return error
    return None


def error_from_status(status: int, body: str, headers: Optional[httpx.Headers] = None) -> FerriteError:
    """
    Build the error matching an HTTP status code and response body.

    Args:
        status: HTTP status code of the failed response
        body: Raw response body
        headers: Response headers, used for ``Retry-After``

    Returns:
        Classified FerriteError instance
    """
    api_message = extract_api_error_message(body)
    message = f"OpenAI API error ({status})\n{api_message or body}".rstrip()
    lower = message.lower()

    if status == 401:
        return AuthenticationError(message, status=status)
    if status == 403:
        return AuthorizationError(message, status=status)
    if status == 404:
        return ModelUnavailableError(message, status=status)
    if status == 429:
        retry_after = None
        if headers is not None and headers.get("Retry-After"):
            try:
                retry_after = int(headers["Retry-After"])
            except ValueError:
                retry_after = None
        return QuotaExceededError(message, status=status, retry_after=retry_after)
    if status == 400:
        if "safety" in lower or "content_policy" in lower or "moderation" in lower:
            return ContentFilterError(message, status=status)
        return InvalidRequestError(message, status=status)
    if 500 <= status < 600:
        return ServerError(message, status=status)
    return FerriteError(message, status=status)


def classify_error(error: Exception) -> FerriteError:
    """
    Classify a generic exception into a structured FerriteError.

    Args:
        error: The original exception

    Returns:
        Classified FerriteError instance
    """
    if isinstance(error, FerriteError):
        return error

    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        try:
            body = response.text
        except httpx.ResponseNotRead:
            body = ""
        classified = error_from_status(response.status_code, body, response.headers)
        classified.original_error = error
        return classified

    if isinstance(error, httpx.TimeoutException):
        return TimeoutError(str(error) or "Request timeout", original_error=error)

    if isinstance(error, httpx.TransportError):
        return NetworkError(str(error) or "Network error", original_error=error)

    error_message = str(error)
    error_lower = error_message.lower()

    if "timeout" in error_lower:
        return TimeoutError(error_message, original_error=error)
    elif "network" in error_lower or "connection" in error_lower:
        return NetworkError(error_message, original_error=error)

    return FerriteError(error_message, original_error=error)


def is_retryable_error(error: Exception) -> bool:
    """
    Check if an error is retryable.

    Args:
        error: The error to check

    Returns:
        True if the error is retryable
    """
    if isinstance(error, (QuotaExceededError, ServerError, NetworkError, TimeoutError)):
        return True

    status = getattr(error, "status", None)
    if status:
        # 5xx server errors and 429 (too many requests) are retryable
        return status == 429 or (500 <= status < 600)

    return False


def get_retry_delay(error: Exception) -> Optional[int]:
    """
    Get the retry delay from an error if available.

    Args:
        error: The error to check

    Returns:
        Retry delay in seconds, or None if not specified
    """
    details = getattr(error, "details", None)
    if isinstance(details, dict) and "retry_after" in details:
        return details["retry_after"]
    return None


def create_user_friendly_message(error: FerriteError) -> str:
    """
    Create a user-friendly error message.

    Args:
        error: The FerriteError to convert

    Returns:
        User-friendly error message
    """
    if isinstance(error, AuthenticationError):
        return "Authentication failed. Check --key, OPENAI_API_KEY or openai_api_key in ferriteconf.yaml."

    elif isinstance(error, AuthorizationError):
        return "You don't have permission to access this resource. Please check your account permissions."

    elif isinstance(error, QuotaExceededError):
        retry_after = error.details.get("retry_after")
        if retry_after:
            return f"API quota exceeded. Please try again in {retry_after} seconds."
        return "API quota exceeded. Please try again later or check your quota limits."

    elif isinstance(error, ModelUnavailableError):
        model = error.details.get("model")
        if model:
            return f"The model '{model}' is not available. Please try a different model."
        return "The requested model is not available. Please try a different model."

    elif isinstance(error, NetworkError):
        return "Network error occurred. Please check your internet connection and base URL."

    elif isinstance(error, TimeoutError):
        return "The request timed out. Please try again."

    elif isinstance(error, ContentFilterError):
        return "Content was filtered by safety systems. Please modify your request and try again."

    elif isinstance(error, ServerError):
        return "A server error occurred. Please try again later."

    else:
        return error.message
