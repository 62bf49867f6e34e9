"""Tests for pitchpulse.throttle."""

from __future__ import annotations

import pytest

from pitchpulse.throttle import FixedDelayThrottle, NoThrottle, build_throttle, call_delay_seconds


class TestFixedDelayThrottle:
    def test_first_call_is_immediate(self) -> None:
        sleeps = []
        throttle = FixedDelayThrottle(2.1, sleep=sleeps.append)
        throttle.wait()
        assert sleeps == []

    def test_every_later_call_waits(self) -> None:
        sleeps = []
        throttle = FixedDelayThrottle(2.1, sleep=sleeps.append)
        for _ in range(4):
            throttle.wait()
        assert sleeps == [2.1, 2.1, 2.1]

    def test_zero_interval_never_sleeps(self) -> None:
        sleeps = []
        throttle = FixedDelayThrottle(0, sleep=sleeps.append)
        throttle.wait()
        throttle.wait()
        assert sleeps == []

    def test_negative_interval_clamped(self) -> None:
        assert FixedDelayThrottle(-3).interval_seconds == 0.0


class TestNoThrottle:
    def test_wait_returns(self) -> None:
        assert NoThrottle().wait() is None


class TestConfiguration:
    def test_default_delay(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("PITCH_CALL_DELAY_SECONDS", raising=False)
        assert call_delay_seconds() == pytest.approx(2.1)

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PITCH_CALL_DELAY_SECONDS", "0.5")
        assert build_throttle().interval_seconds == pytest.approx(0.5)

    def test_invalid_env_uses_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PITCH_CALL_DELAY_SECONDS", "soon")
        assert call_delay_seconds() == pytest.approx(2.1)
