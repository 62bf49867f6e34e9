"""Tests for pitchpulse.llm_client."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Dict, List

import httpx
import openai
import pytest

from pitchpulse.errors import GenerationError
from pitchpulse.llm_client import DEFAULT_MODEL, GenerationClient, build_generation_client

_REQUEST = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")


def _reply(content: Any) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _status_error(cls, status_code: int, message: str):
    return cls(message, response=httpx.Response(status_code, request=_REQUEST), body=None)


class FakeCompletions:
    def __init__(self, outcomes: List[Any]) -> None:
        self._outcomes = list(outcomes)
        self.calls: List[Dict[str, Any]] = []

    def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _client(outcomes: List[Any]) -> tuple[GenerationClient, FakeCompletions]:
    completions = FakeCompletions(outcomes)
    fake_openai = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return GenerationClient(fake_openai, model="test-model"), completions


class TestComplete:
    def test_returns_content(self) -> None:
        client, completions = _client([_reply('{"ok": true}')])
        assert client.complete(system_prompt="sys", user_prompt="user") == '{"ok": true}'
        call = completions.calls[0]
        assert call["model"] == "test-model"
        assert call["messages"][0] == {"role": "system", "content": "sys"}
        assert call["messages"][1] == {"role": "user", "content": "user"}
        assert call["temperature"] == 0.3
        assert "response_format" not in call

    def test_list_content_is_joined(self) -> None:
        client, _ = _client([_reply([{"type": "text", "text": "part one"}, {"type": "text", "text": "part two"}])])
        assert client.complete(system_prompt="s", user_prompt="u") == "part one\npart two"

    def test_retries_once_without_temperature(self) -> None:
        unsupported = _status_error(
            openai.BadRequestError,
            400,
            "Unsupported value: 'temperature' does not support 0.3 with this model. Only the default (1) value is supported.",
        )
        client, completions = _client([unsupported, _reply("plain")])
        assert client.complete(system_prompt="s", user_prompt="u") == "plain"
        assert len(completions.calls) == 2
        assert "temperature" not in completions.calls[-1]

    def test_second_rejection_is_not_retried(self) -> None:
        unsupported = _status_error(openai.BadRequestError, 400, "temperature: only the default (1) value is supported")
        client, completions = _client([unsupported, unsupported, _reply("never sent")])
        with pytest.raises(GenerationError, match="400"):
            client.complete(system_prompt="s", user_prompt="u")
        assert len(completions.calls) == 2

    def test_other_bad_request_is_not_retried(self) -> None:
        rejected = _status_error(openai.BadRequestError, 400, "response_format json_object is not supported")
        client, completions = _client([rejected, _reply("never sent")])
        with pytest.raises(GenerationError, match="400"):
            client.complete(system_prompt="s", user_prompt="u")
        assert len(completions.calls) == 1

    def test_server_error_is_wrapped(self) -> None:
        failure = _status_error(openai.InternalServerError, 500, "upstream exploded")
        client, completions = _client([failure])
        with pytest.raises(GenerationError, match="500"):
            client.complete(system_prompt="s", user_prompt="u")
        assert len(completions.calls) == 1

    def test_timeout_is_wrapped(self) -> None:
        client, _ = _client([openai.APITimeoutError(request=_REQUEST)])
        with pytest.raises(GenerationError, match="timed out"):
            client.complete(system_prompt="s", user_prompt="u")

    def test_connection_error_is_wrapped(self) -> None:
        client, _ = _client([openai.APIConnectionError(message="refused", request=_REQUEST)])
        with pytest.raises(GenerationError, match="connect"):
            client.complete(system_prompt="s", user_prompt="u")

    def test_empty_content(self) -> None:
        client, _ = _client([_reply("")])
        with pytest.raises(GenerationError, match="empty"):
            client.complete(system_prompt="s", user_prompt="u")

    def test_no_choices(self) -> None:
        client, _ = _client([SimpleNamespace(choices=[])])
        with pytest.raises(GenerationError, match="choices"):
            client.complete(system_prompt="s", user_prompt="u")


class TestFromEnv:
    def test_disabled_without_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("GROQ_API_KEY", raising=False)
        assert GenerationClient.from_env() is None
        assert build_generation_client() is None

    def test_enabled_with_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GROQ_API_KEY", "test-key")
        monkeypatch.delenv("GROQ_MODEL", raising=False)
        client = GenerationClient.from_env()
        assert client is not None
        assert client.model == DEFAULT_MODEL

    def test_model_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GROQ_API_KEY", "test-key")
        monkeypatch.setenv("GROQ_MODEL", "llama-3.1-8b-instant")
        assert GenerationClient.from_env().model == "llama-3.1-8b-instant"
