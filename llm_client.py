"""Minimal chat-completions client for AI-assisted subskill generation."""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

import requests

from env_validation import get_env_float, get_env_int

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:4891/v1/chat/completions"
DEFAULT_MODEL = "local-model"


class LLMClientError(RuntimeError):
    """Raised when the completions endpoint fails or returns an unusable payload."""


@dataclass(frozen=True)
class LLMConfig:
    api_url: str = DEFAULT_API_URL
    model: str = DEFAULT_MODEL
    api_key: Optional[str] = None
    timeout: int = 120
    max_tokens: int = 2000
    temperature: float = 0.7

    @classmethod
    def from_env(cls) -> "LLMConfig":
        return cls(
            api_url=os.getenv("LLM_API_URL", DEFAULT_API_URL),
            model=os.getenv("LLM_MODEL", DEFAULT_MODEL),
            api_key=os.getenv("LLM_API_KEY") or None,
            timeout=get_env_int("LLM_TIMEOUT", 120),
            max_tokens=get_env_int("LLM_MAX_TOKENS", 2000),
            temperature=get_env_float("LLM_TEMPERATURE", 0.7),
        )


class LLMClient:
    """Post OpenAI-style chat payloads; configuration is injected, never global."""

    def __init__(self, config: LLMConfig) -> None:
        self.config = config

    def _headers(self) -> Dict[str, str]:
        headers = {"content-type": "application/json"}
        if self.config.api_key:
            headers["authorization"] = f"Bearer {self.config.api_key}"
        return headers

    def _payload(self, messages: Sequence[Mapping[str, str]], *, minimal: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.config.model,
            "messages": [dict(message) for message in messages],
            "max_tokens": self.config.max_tokens,
        }
        if not minimal:
            payload["temperature"] = self.config.temperature
        return payload

    def complete(self, messages: Sequence[Mapping[str, str]]) -> str:
        """Return the assistant message content for ``messages``."""

        start = time.perf_counter()
        try:
            response = requests.post(
                self.config.api_url,
                json=self._payload(messages),
                headers=self._headers(),
                timeout=self.config.timeout,
            )
            if response.status_code == 400:
                # Some local servers reject sampling parameters; retry bare.
                response = requests.post(
                    self.config.api_url,
                    json=self._payload(messages, minimal=True),
                    headers=self._headers(),
                    timeout=self.config.timeout,
                )
            response.raise_for_status()
            data = response.json()
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else "?"
            body = exc.response.text[:300] if exc.response is not None else ""
            raise LLMClientError(f"LLM-HTTP {status}: {body}") from exc
        except (requests.RequestException, ValueError) as exc:
            raise LLMClientError(f"LLM error: {exc}") from exc
        finally:
            logger.debug(
                "LLM call to %s took %d ms",
                self.config.api_url,
                int((time.perf_counter() - start) * 1000),
            )

        return self._extract_content(data)

    @staticmethod
    def _extract_content(data: Any) -> str:
        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            pass
        try:
            return data["choices"][0]["text"]
        except (KeyError, IndexError, TypeError):
            pass
        try:
            blocks: List[Mapping[str, Any]] = data["content"]
            return "".join(str(block.get("text", "")) for block in blocks)
        except (KeyError, TypeError, AttributeError) as exc:
            raise LLMClientError(f"Unexpected LLM response: {str(data)[:300]}") from exc
