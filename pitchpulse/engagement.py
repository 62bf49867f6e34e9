from __future__ import annotations

import math
from typing import Sequence

from .constants import WEAK_MOMENT_THRESHOLD
from .errors import InputError
from .models import Segment, SegmentAnalysis, SegmentScores, ScoreSource


SENTIMENT_WEIGHT = 0.3
ENERGY_WEIGHT = 0.2
CLARITY_WEIGHT = 0.3
PERSONA_FIT_WEIGHT = 0.2


def engagement_score(scores: SegmentScores) -> float:
    return (
        SENTIMENT_WEIGHT * scores.sentiment
        + ENERGY_WEIGHT * scores.energy
        + CLARITY_WEIGHT * scores.clarity
        + PERSONA_FIT_WEIGHT * scores.persona_fit
    )


def is_weak_moment(score: float, threshold: float = WEAK_MOMENT_THRESHOLD) -> bool:
    return score < threshold


def build_segment_analysis(
    segment: Segment,
    scores: SegmentScores,
    *,
    source: ScoreSource = "heuristic",
) -> SegmentAnalysis:
    score = engagement_score(scores)
    return SegmentAnalysis(
        index=segment.index,
        start=segment.start,
        end=segment.end,
        text=segment.text,
        sentiment=scores.sentiment,
        energy=scores.energy,
        clarity=scores.clarity,
        persona_fit=scores.persona_fit,
        reason=scores.reason,
        engagement_score=score,
        weak_moment=is_weak_moment(score),
        source=source,
    )


def overall_score(segments: Sequence[SegmentAnalysis]) -> float:
    if not segments:
        raise InputError("Cannot compute an overall score without segments.")
    return math.fsum(segment.engagement_score for segment in segments) / len(segments)


def weak_moments(segments: Sequence[SegmentAnalysis]) -> list[SegmentAnalysis]:
    return [segment for segment in segments if segment.weak_moment]
