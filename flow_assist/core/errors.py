"""
Error taxonomy for inference provider failures.

Every provider or transport failure is turned into an AIServiceError carrying
a closed ErrorKind, a user-facing message and an optional raw diagnostic.
"""

from enum import Enum
from typing import Any, Dict, Optional

import openai


class ErrorKind(str, Enum):
    """Closed set of failure categories surfaced to callers."""

    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    NETWORK = "network"
    QUOTA = "quota"
    INVALID_INPUT = "invalid_input"
    SERVICE_UNAVAILABLE = "service_unavailable"
    TIMEOUT = "timeout"
    FILE_SYSTEM = "file_system"
    UNKNOWN = "unknown"


class AIServiceError(Exception):
    """
    Raised when a provider request fails.

    Attributes:
        kind: Failure category
        message: User-facing explanation
        details: Raw diagnostic (provider message, HTTP status, exception text)
    """

    def __init__(self, kind: ErrorKind, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details

    def __str__(self) -> str:
        return self.message


def _provider_message(body: Any, fallback: str) -> str:
    """Pull the provider's error message out of an error body."""
    if isinstance(body, dict):
        error = body.get("error", body)
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
        if body.get("message"):
            return str(body["message"])
    elif isinstance(body, str) and body:
        return body
    return fallback


def _provider_code(body: Any) -> str:
    if isinstance(body, dict):
        error = body.get("error", body)
        if isinstance(error, dict):
            return str(error.get("code") or "")
        return str(body.get("code") or "")
    return ""


def classify_status(status_code: int, body: Optional[Dict[str, Any]] = None, service: str = "AI") -> AIServiceError:
    """
    Map an HTTP status code (plus optional error body) to an AIServiceError.

    401 -> authentication, 429 -> rate limit (quota when the provider reports
    ``insufficient_quota``), 400 -> invalid input, 503 -> service unavailable,
    408 -> timeout, anything else -> unknown with the status in the details.
    """
    detail = _provider_message(body, f"{service} request failed")

    if status_code == 401:
        return AIServiceError(ErrorKind.AUTHENTICATION, "Invalid API key. Please check your OpenAI API key.", detail)
    if status_code == 429:
        if _provider_code(body) == "insufficient_quota":
            return AIServiceError(ErrorKind.QUOTA, "Quota exceeded. Please check your OpenAI account.", detail)
        return AIServiceError(ErrorKind.RATE_LIMIT, "Rate limit exceeded. Please try again later.", detail)
    if status_code == 400:
        return AIServiceError(ErrorKind.INVALID_INPUT, f"Invalid input for {service} request.", detail)
    if status_code == 503:
        return AIServiceError(ErrorKind.SERVICE_UNAVAILABLE, f"{service} service is temporarily unavailable. Please try again later.", detail)
    if status_code == 408:
        return AIServiceError(ErrorKind.TIMEOUT, f"{service} request timed out. Please try again.", detail)
    return AIServiceError(ErrorKind.UNKNOWN, detail, f"HTTP {status_code}")


def classify_message(text: str, service: str = "AI") -> AIServiceError:
    """Keyword-based classification for failures that carry neither a response nor a known type."""
    lowered = text.lower()

    if "401" in lowered or "unauthorized" in lowered:
        return AIServiceError(ErrorKind.AUTHENTICATION, "Invalid API key. Please check your OpenAI API key.", text)
    if "429" in lowered or "rate limit" in lowered:
        return AIServiceError(ErrorKind.RATE_LIMIT, "Rate limit exceeded. Please try again later.", text)
    if "network" in lowered or "connection" in lowered:
        return AIServiceError(ErrorKind.NETWORK, "Network error. Please check your connection and try again.", text)
    if "quota" in lowered or "insufficient" in lowered:
        return AIServiceError(ErrorKind.QUOTA, "Quota exceeded. Please check your OpenAI account.", text)
    if "timeout" in lowered or "timed out" in lowered:
        return AIServiceError(ErrorKind.TIMEOUT, f"{service} request timed out. Please try again.", text)
    if "503" in lowered or "service unavailable" in lowered:
        return AIServiceError(ErrorKind.SERVICE_UNAVAILABLE, f"{service} service is temporarily unavailable. Please try again later.", text)
    if "invalid" in lowered or "400" in lowered:
        return AIServiceError(ErrorKind.INVALID_INPUT, f"Invalid input for {service} request.", text)
    return AIServiceError(ErrorKind.UNKNOWN, f"{service} request failed: {text}", text)


def classify_exception(exc: BaseException, service: str = "AI") -> AIServiceError:
    """
    Map any exception raised while talking to the provider to an AIServiceError.

    Connection failures (no response received, timeouts included) are always
    NETWORK; status errors go through classify_status; anything else falls
    back to keyword classification of the message.
    """
    if isinstance(exc, AIServiceError):
        return exc
    if isinstance(exc, openai.APIConnectionError):
        return AIServiceError(ErrorKind.NETWORK, "Network error. Please check your connection and try again.", str(exc))
    if isinstance(exc, openai.APIStatusError):
        return classify_status(exc.status_code, exc.body if isinstance(exc.body, dict) else {"message": exc.message}, service)
    if isinstance(exc, OSError):
        return AIServiceError(ErrorKind.FILE_SYSTEM, "Error accessing local files. Please check disk space and permissions.", str(exc))
    return classify_message(str(exc), service)
