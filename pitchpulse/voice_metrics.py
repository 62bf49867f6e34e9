from __future__ import annotations

import logging
from typing import List, Sequence

from .errors import InputError
from .models import Pause, RateWindow, TimingStats, VoiceAnalysis, VoiceIssue, Word


logger = logging.getLogger("uvicorn.error")

PAUSE_THRESHOLD_MS = 1000
LONG_PAUSE_THRESHOLD_MS = 2000
WINDOW_MS = 10_000
FAST_WPS = 3.5
SLOW_WPS = 1.5
TOO_FAST_AVG_WPS = 3.2
TOO_SLOW_AVG_WPS = 1.8
MAX_ISSUES = 5
MAX_ISSUES_PER_KIND = 2
HESITANT_PAUSE_COUNT = 5


def analyze_word_timings(words: Sequence[Word]) -> TimingStats:
    pauses: List[Pause] = []
    fast_windows: List[RateWindow] = []
    slow_windows: List[RateWindow] = []

    for previous, current in zip(words, words[1:]):
        gap = current.start - previous.end
        if gap > PAUSE_THRESHOLD_MS:
            pauses.append(Pause(start=previous.end, duration=gap))

    last_end = words[-1].end if words else 0
    window_start = 0
    while window_start < last_end:
        window_end = window_start + WINDOW_MS
        count = sum(1 for word in words if word.start >= window_start and word.end <= window_end)
        if count > 0:
            wps = count / (WINDOW_MS / 1000.0)
            if wps > FAST_WPS:
                fast_windows.append(RateWindow(start=window_start, end=window_end, words_per_second=wps))
            elif wps < SLOW_WPS:
                slow_windows.append(RateWindow(start=window_start, end=window_end, words_per_second=wps))
        window_start = window_end

    total_duration_seconds = ((words[-1].end - words[0].start) / 1000.0) if words else 0.0
    avg_wps = len(words) / total_duration_seconds if total_duration_seconds > 0 else 0.0

    return TimingStats(
        avg_words_per_second=avg_wps,
        pauses=pauses,
        fast_windows=fast_windows,
        slow_windows=slow_windows,
    )


def classify_rhythm(stats: TimingStats) -> str:
    if stats.avg_words_per_second > TOO_FAST_AVG_WPS:
        return "too fast"
    if stats.avg_words_per_second < TOO_SLOW_AVG_WPS:
        return "too slow"
    if stats.fast_windows and stats.slow_windows:
        return "inconsistent"
    return "balanced"


def _window_label(window: RateWindow) -> str:
    return f"{window.start // 1000}-{window.end // 1000}s"


def analyze_voice(words: Sequence[Word]) -> VoiceAnalysis:
    """Pacing and pause feedback derived from word timestamps alone.

    Tone is inferred from pause counts only; no prosody is measured.
    """
    if not words:
        raise InputError("Words array required.")

    stats = analyze_word_timings(words)
    issues: List[VoiceIssue] = []

    for window in stats.fast_windows[:MAX_ISSUES_PER_KIND]:
        issues.append(
            VoiceIssue(
                time=_window_label(window),
                type="rhythm",
                problem="speaking too fast",
                advice="Slow down and add pauses to let key points land with your audience",
            )
        )
    for window in stats.slow_windows[:MAX_ISSUES_PER_KIND]:
        issues.append(
            VoiceIssue(
                time=_window_label(window),
                type="rhythm",
                problem="speaking too slow",
                advice="Pick up the pace slightly to maintain audience engagement",
            )
        )

    # Tone is decided on rhythm issues only, before the pause issue is added.
    if not issues:
        overall_tone = "confident"
    elif len(stats.pauses) > HESITANT_PAUSE_COUNT:
        overall_tone = "hesitant"
    else:
        overall_tone = "mixed"

    long_pauses = [pause for pause in stats.pauses if pause.duration > LONG_PAUSE_THRESHOLD_MS]
    if len(long_pauses) > 2:
        issues.append(
            VoiceIssue(
                time=f"{long_pauses[0].start // 1000}s",
                type="tone",
                problem="hesitant pause",
                advice="Fill long pauses with transitional phrases or eliminate them entirely",
            )
        )

    logger.info(
        "voice_analysis_done words=%s avg_wps=%.2f pauses=%s fast_windows=%s slow_windows=%s issues=%s",
        len(words),
        stats.avg_words_per_second,
        len(stats.pauses),
        len(stats.fast_windows),
        len(stats.slow_windows),
        len(issues),
    )
    return VoiceAnalysis(
        overall_tone=overall_tone,
        overall_rhythm=classify_rhythm(stats),
        issues=issues[:MAX_ISSUES],
    )
