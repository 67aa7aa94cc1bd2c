"""OpenAI-compatible chat-completions client.

Deep module: callers pass system and user instructions in, get text back.
Auth headers, timeouts, response parsing, and circuit-breaker bookkeeping
are handled internally. Every failure surfaces as ``GenerationError`` with
a human-readable message; nothing is retried here.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from circuit_breaker import CircuitBreaker, CircuitBreakerOpen, get_breaker
from guide_config import GuideConfig
from model_config import ModelConfigError, resolve_model_config

logger = logging.getLogger("aiguide.generation_client")


class GenerationError(Exception):
    """Raised when a completion request fails for any reason."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class ChatCompletionClient:
    """Client for a ``/chat/completions`` endpoint.

    Safe to share between writer threads: each call builds its own request
    and ``requests.post`` holds no per-call state on the client.

    Args:
        endpoint: Full chat-completions URL.
        api_key: Bearer token sent in the ``Authorization`` header.
        model: Model identifier sent with every request.
        temperature: Sampling temperature.
        timeout: Per-request timeout in seconds.
        breaker: Optional circuit breaker; ``None`` disables it.
        max_tokens: Completion limit; ``None`` leaves it to the provider.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        model: str,
        temperature: float = 0.7,
        timeout: int = 120,
        breaker: Optional[CircuitBreaker] = None,
        max_tokens: Optional[int] = None,
    ):
        self.endpoint = endpoint
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.timeout = timeout
        self.breaker = breaker
        self.max_tokens = max_tokens

    @classmethod
    def from_config(cls, config: GuideConfig) -> "ChatCompletionClient":
        """Build a client from a validated GuideConfig."""
        breaker = None
        if config.failure_threshold > 0:
            breaker = get_breaker(
                config.completions_url,
                failure_threshold=config.failure_threshold,
                cooldown_seconds=config.cooldown_seconds,
            )

        max_tokens = None
        try:
            model_cfg = resolve_model_config(config.model)
            max_tokens = model_cfg.max_output_tokens
            logger.info("Model %s: %s", config.model, model_cfg)
        except ModelConfigError as exc:
            logger.warning("%s; sending requests without max_tokens", exc)

        return cls(
            endpoint=config.completions_url,
            api_key=config.api_key,
            model=config.model,
            temperature=config.temperature,
            timeout=config.request_timeout,
            breaker=breaker,
            max_tokens=max_tokens,
        )

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def _payload(self, system_prompt: str, user_prompt: str) -> Dict[str, Any]:
        messages: List[Dict[str, str]] = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
        }
        if self.max_tokens:
            payload["max_tokens"] = self.max_tokens
        return payload

    # ----- public ----------------------------------------------------------

    def generate(self, system_prompt: str, user_prompt: str) -> str:
        """Run one completion and return the assistant message text.

        Raises:
            GenerationError: on transport errors, non-200 responses, API
                error objects, malformed bodies, or an open circuit.
        """
        if self.breaker is None:
            return self._post(system_prompt, user_prompt)
        try:
            with self.breaker.guard():
                return self._post(system_prompt, user_prompt)
        except CircuitBreakerOpen as exc:
            raise GenerationError(str(exc)) from exc

    __call__ = generate

    # ----- internal --------------------------------------------------------

    def _post(self, system_prompt: str, user_prompt: str) -> str:
        try:
            response = requests.post(
                self.endpoint,
                json=self._payload(system_prompt, user_prompt),
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as exc:
            raise GenerationError(f"request timed out after {self.timeout}s") from exc
        except requests.exceptions.RequestException as exc:
            raise GenerationError(f"{type(exc).__name__}: {exc}") from exc

        if response.status_code != 200:
            logger.warning("HTTP %d from %s", response.status_code, self.endpoint)
            raise GenerationError(
                f"API error: {response.status_code} {response.reason} - {response.text}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise GenerationError(f"invalid JSON in response: {exc}") from exc

        error = body.get("error") if isinstance(body, dict) else None
        if error:
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise GenerationError(f"API returned error: {message}")

        choices = body.get("choices") if isinstance(body, dict) else None
        if not choices:
            raise GenerationError("no choices returned")

        choice = choices[0] if isinstance(choices, list) else None
        message = choice.get("message") if isinstance(choice, dict) else None
        if not isinstance(message, dict):
            raise GenerationError("malformed choice in response")

        content = message.get("content")
        if content is None:
            raise GenerationError("first choice has no message content")
        return content
