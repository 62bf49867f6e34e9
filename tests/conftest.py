"""
Test configuration and shared fixtures.
"""

from __future__ import annotations

from typing import Callable, List, Sequence, Tuple

import pytest

from pitchpulse.models import Transcript, Word


class FakeGenerationClient:
    """Stands in for GenerationClient; replies are served in order."""

    def __init__(self, replies: Sequence[object]) -> None:
        self._replies = list(replies)
        self.calls: List[Tuple[str, str]] = []

    def complete(self, *, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        reply = self._replies.pop(0) if len(self._replies) > 1 else self._replies[0]
        if isinstance(reply, Exception):
            raise reply
        return str(reply)


class RecordingThrottle:
    def __init__(self) -> None:
        self.waits = 0

    def wait(self) -> None:
        self.waits += 1


def make_words(entries: Sequence[Tuple[str, int, int]]) -> List[Word]:
    return [Word(text=text, start=start, end=end) for text, start, end in entries]


def evenly_spaced_words(count: int, *, spacing_ms: int, duration_ms: int = 200, start_ms: int = 0) -> List[Word]:
    return [
        Word(text=f"word{index}", start=start_ms + index * spacing_ms, end=start_ms + index * spacing_ms + duration_ms)
        for index in range(count)
    ]


@pytest.fixture
def fixed_jitter() -> Callable[[], float]:
    return lambda: 0.0


@pytest.fixture
def recording_throttle() -> RecordingThrottle:
    return RecordingThrottle()


@pytest.fixture
def fake_client_factory() -> Callable[[Sequence[object]], FakeGenerationClient]:
    return FakeGenerationClient


@pytest.fixture
def three_word_transcript() -> Transcript:
    return Transcript(
        text="hello there world",
        words=make_words([("hello", 0, 500), ("there", 600, 20500), ("world", 20500, 21000)]),
    )


@pytest.fixture
def long_transcript() -> Transcript:
    # 3 words per second for 50 seconds: three segments at 0, 20000 and 40000 ms.
    words = evenly_spaced_words(150, spacing_ms=333, duration_ms=250)
    return Transcript(text=" ".join(word.text for word in words), words=words)


@pytest.fixture
def model_scores_json() -> str:
    return (
        '{"sentiment": 0.8, "energy": 0.5, "clarity": 0.7, "personaFit": 0.6, '
        '"reason": "Clear metrics and a confident close."}'
    )


@pytest.fixture
def model_suggestion_json() -> str:
    return (
        '{"rewrite": "We grew revenue 40% last quarter.", '
        '"slideTip": "Show the growth chart.", '
        '"coachingTip": "Pause after the number."}'
    )
