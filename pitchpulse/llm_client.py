from __future__ import annotations

import logging
import os
from typing import Any, Optional

from openai import APIConnectionError, APIStatusError, APITimeoutError, OpenAI

from .errors import GenerationError, truncate_message


logger = logging.getLogger("uvicorn.error")
DEFAULT_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_MODEL = "llama-3.3-70b-versatile"
DEFAULT_TIMEOUT_SECONDS = 60.0


def _api_key() -> str:
    return os.getenv("GROQ_API_KEY", "").strip()


def _base_url() -> str:
    return os.getenv("GROQ_BASE_URL", DEFAULT_BASE_URL).strip() or DEFAULT_BASE_URL


def _model_name() -> str:
    return os.getenv("GROQ_MODEL", DEFAULT_MODEL).strip() or DEFAULT_MODEL


def _timeout_seconds() -> float:
    raw = os.getenv("GROQ_TIMEOUT_SECONDS", "").strip()
    try:
        return float(raw) if raw else DEFAULT_TIMEOUT_SECONDS
    except ValueError:
        return DEFAULT_TIMEOUT_SECONDS


def _extract_content(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        parts: list[str] = []
        for item in value:
            if isinstance(item, dict):
                text = item.get("text")
                if text:
                    parts.append(str(text))
        return "\n".join(parts).strip()
    return str(value or "").strip()


def _is_temperature_unsupported(exc: APIStatusError) -> bool:
    message = (getattr(exc, "message", "") or str(exc)).lower()
    return "temperature" in message and "default (1)" in message


class GenerationClient:
    """Chat-completion wrapper for any OpenAI-compatible provider.

    One instance is built per application and passed to the scorer and the
    suggester; nothing in this module holds a client at import time.
    """

    def __init__(
        self,
        client: OpenAI,
        *,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.3,
        max_tokens: int = 600,
    ) -> None:
        self._client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    @classmethod
    def from_env(cls) -> Optional["GenerationClient"]:
        api_key = _api_key()
        if not api_key:
            return None
        client = OpenAI(base_url=_base_url(), api_key=api_key, timeout=_timeout_seconds())
        return cls(client, model=_model_name())

    def complete(self, *, system_prompt: str, user_prompt: str) -> str:
        request_kwargs = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": self.max_tokens,
        }

        try:
            response = self._client.chat.completions.create(**request_kwargs, temperature=self.temperature)
        except APIStatusError as exc:
            if not _is_temperature_unsupported(exc):
                raise _status_error(exc) from exc
            # The rejected request produced no completion; resend once with the provider default.
            logger.info("generation_retry_without_temperature status=%s", getattr(exc, "status_code", None))
            response = self._create_without_temperature(request_kwargs)
        except APITimeoutError as exc:
            raise GenerationError("Generation request timed out.") from exc
        except APIConnectionError as exc:
            raise GenerationError(f"Failed to connect to generation provider: {exc}") from exc
        except Exception as exc:
            raise GenerationError(f"Unexpected generation error: {truncate_message(str(exc))}") from exc

        choice = response.choices[0] if getattr(response, "choices", None) else None
        if choice is None:
            raise GenerationError("Generation response did not contain choices.")
        content = _extract_content(choice.message.content)
        if not content:
            raise GenerationError("Generation response content is empty.")
        return content

    def _create_without_temperature(self, request_kwargs: dict) -> Any:
        try:
            return self._client.chat.completions.create(**request_kwargs)
        except APIStatusError as exc:
            raise _status_error(exc) from exc
        except APITimeoutError as exc:
            raise GenerationError("Generation request timed out.") from exc
        except APIConnectionError as exc:
            raise GenerationError(f"Failed to connect to generation provider: {exc}") from exc
        except Exception as exc:
            raise GenerationError(f"Unexpected generation error: {truncate_message(str(exc))}") from exc


def _status_error(exc: APIStatusError) -> GenerationError:
    status_code = getattr(exc, "status_code", None)
    detail = truncate_message(getattr(exc, "message", None) or str(exc))
    if status_code is not None:
        return GenerationError(f"Generation request failed ({status_code}): {detail}")
    return GenerationError(f"Generation request failed: {detail}")


def build_generation_client() -> Optional[GenerationClient]:
    client = GenerationClient.from_env()
    if client is None:
        logger.info("generation_client_disabled reason=missing_GROQ_API_KEY mode=heuristic")
    else:
        logger.info("generation_client_ready model=%s base_url=%s", client.model, _base_url())
    return client
