"""
Centralized LLM handler for all chat completion requests in flow_assist.

This module provides a single interface for talking to the chat completions
endpoint with automatic reasoning-model fallback, debug tracing and typed
error classification.
"""

import logging
from typing import Any, Dict, List, Optional

from .config import Config
from .debug_log import DebugLogger
from .errors import classify_exception

logger = logging.getLogger(__name__)


class ReasoningModelError(Exception):
    """Raised when a request fails even after adjusting parameters for a reasoning model."""

    pass


def is_reasoning_model_error(exception: Exception) -> bool:
    """
    Check if the exception indicates that the model is a reasoning model.

    Detects error code 400 with:
    - type: 'invalid_request_error'
    - code: 'unsupported_value' or 'unsupported_parameter'
    - param: 'temperature' or 'max_tokens'

    Args:
        exception: Exception from LLM API call

    Returns:
        True if this is a reasoning model error that needs parameter adjustment
    """
    try:
        if getattr(exception, "status_code", None) != 400:
            return False

        error_data = None
        response = getattr(exception, "response", None)
        if response is not None and hasattr(response, "json"):
            try:
                error_data = response.json()
            except ValueError:
                error_data = None
        if error_data is None:
            error_data = getattr(exception, "body", None)

        if not isinstance(error_data, dict):
            return False

        error_info = error_data.get("error", error_data)
        if not isinstance(error_info, dict):
            return False

        error_type = str(error_info.get("type") or "").lower()
        error_code = str(error_info.get("code") or "").lower()
        error_param = str(error_info.get("param") or "").lower()

        return (
            error_type == "invalid_request_error"
            and error_code in ("unsupported_value", "unsupported_parameter")
            and error_param in ("temperature", "max_tokens")
        )

    except Exception as e:
        logger.debug(f"Error checking reasoning model error pattern: {e}")
        return False


def adjust_llm_params_for_reasoning_model(original_params: Dict[str, Any], request_type: str) -> Dict[str, Any]:
    """
    Adjust LLM request parameters for reasoning model compatibility.

    Args:
        original_params: Original parameters dict
        request_type: Kind of request, used for logging

    Returns:
        Adjusted parameters dict suitable for a reasoning model
    """
    adjusted_params = original_params.copy()

    for param in ("temperature", "max_tokens"):
        adjusted_params.pop(param, None)

    if "max_tokens" in original_params:
        adjusted_params["max_completion_tokens"] = original_params["max_tokens"]

    logger.info(f"Adjusted parameters for reasoning model ({request_type}): {sorted(adjusted_params)}")

    return adjusted_params


def make_llm_request_with_reasoning_fallback(client: Any, original_params: Dict[str, Any], request_type: str) -> Any:
    """
    Make an LLM request, retrying once with reasoning-model parameters if needed.

    Args:
        client: OpenAI client instance
        original_params: Original request parameters
        request_type: Kind of request, used for logging

    Returns:
        Response from the successful call

    Raises:
        ReasoningModelError: If the retry with adjusted parameters also fails
    """
    try:
        return client.chat.completions.create(**original_params)

    except Exception as e:
        if not is_reasoning_model_error(e):
            raise

        logger.info(f"Detected reasoning model error, adjusting parameters for {request_type}")
        adjusted_params = adjust_llm_params_for_reasoning_model(original_params, request_type)

        try:
            return client.chat.completions.create(**adjusted_params)
        except Exception as retry_error:
            raise ReasoningModelError(f"Failed to make LLM request even after adjusting for reasoning model: {retry_error}") from retry_error


def message_to_payload(message: Any) -> Dict[str, Any]:
    """Convert a provider response message into the assistant record sent back on the next request."""
    payload: Dict[str, Any] = {"role": "assistant", "content": getattr(message, "content", None) or ""}
    tool_calls = getattr(message, "tool_calls", None) or []
    if tool_calls:
        payload["tool_calls"] = [
            {
                "id": call.id,
                "type": "function",
                "function": {"name": call.function.name, "arguments": call.function.arguments or ""},
            }
            for call in tool_calls
        ]
    return payload


class LLMHandler:
    """
    Single gateway to the chat completions endpoint.

    Every failure is converted into an AIServiceError by the error classifier
    before it leaves this class.

    Args:
        client: OpenAI client (or anything exposing ``chat.completions.create``)
        config: Model and sampling settings
        debug_logger: Optional JSON trace logger
    """

    def __init__(self, client: Any, config: Config, debug_logger: Optional[DebugLogger] = None):
        self.client = client
        self.config = config
        self.debug_logger = debug_logger

    def _request_params(self, messages: List[Dict[str, Any]], max_tokens: Optional[int] = None) -> Dict[str, Any]:
        params: Dict[str, Any] = {"model": self.config.llm_model, "messages": messages}

        if self.config.is_reasoning_model:
            if max_tokens is not None:
                params["max_completion_tokens"] = max_tokens
        else:
            params["temperature"] = self.config.model_temperature
            if max_tokens is not None:
                params["max_tokens"] = max_tokens
        return params

    def _call(self, params: Dict[str, Any], request_type: str, service: str) -> Any:
        if self.debug_logger:
            self.debug_logger.log_llm_request(request_type, params["messages"], len(params.get("tools", [])))
        try:
            response = make_llm_request_with_reasoning_fallback(self.client, params, request_type)
        except ReasoningModelError as e:
            error = classify_exception(e.__cause__ or e, service)
            if self.debug_logger:
                self.debug_logger.log_error(request_type, error)
            raise error from e
        except Exception as e:
            error = classify_exception(e, service)
            if self.debug_logger:
                self.debug_logger.log_error(request_type, error)
            raise error from e

        message = response.choices[0].message
        if self.debug_logger:
            payload = message_to_payload(message)
            self.debug_logger.log_llm_response(request_type, payload["content"], payload.get("tool_calls"))
        return message

    def chat(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        request_type: str = "command",
    ) -> Any:
        """
        Send a conversation, optionally offering tools.

        Args:
            messages: Conversation in provider wire format
            tools: Tool definitions; when given, ``tool_choice`` is "auto"
            request_type: Label used in logs and debug traces

        Returns:
            The response message (``content`` and optional ``tool_calls``)

        Raises:
            AIServiceError: On any provider or transport failure
        """
        params = self._request_params(messages)
        if tools:
            params["tools"] = tools
            params["tool_choice"] = "auto"
        return self._call(params, request_type, "AI")

    def complete_text(
        self,
        system_prompt: Optional[str],
        user_prompt: str,
        request_type: str,
        service: str = "AI",
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Single-shot completion returning the stripped text.

        The system message is omitted when ``system_prompt`` is empty.

        Raises:
            AIServiceError: On any provider or transport failure
        """
        messages = [{"role": "system", "content": system_prompt}] if system_prompt else []
        messages.append({"role": "user", "content": user_prompt})
        message = self._call(self._request_params(messages, max_tokens), request_type, service)
        return (message.content or "").strip()
