from __future__ import annotations

import logging
import random
import time
from typing import List, Optional, Sequence

from .chunking import segments_for_transcript
from .engagement import build_segment_analysis, overall_score
from .errors import InputError
from .llm_client import GenerationClient
from .models import PitchResult, SegmentAnalysis, Suggestion, Transcript, WeakSegment
from .outcomes import Fallback, Fatal, outcome_source, unwrap
from .personas import resolve_persona
from .prompts.scoring import SCORING_PROMPT_VERSION
from .prompts.suggestions import SUGGESTION_PROMPT_VERSION
from .scoring import JitterSource, score_segment
from .suggestions import suggest_for_segment
from .throttle import FixedDelayThrottle, NoThrottle, Throttle


logger = logging.getLogger("uvicorn.error")


def _effective_throttle(client: Optional[GenerationClient], throttle: Optional[Throttle]) -> Throttle:
    if client is None:
        return NoThrottle()
    return throttle if throttle is not None else FixedDelayThrottle()


def _validate_transcript(transcript: Optional[Transcript]) -> Transcript:
    if transcript is None:
        raise InputError("Missing transcript.")
    if not transcript.words and not transcript.text.strip():
        raise InputError("Transcript is empty.")
    return transcript


def analyze_pitch(
    transcript: Optional[Transcript],
    persona_id: Optional[str],
    *,
    client: Optional[GenerationClient] = None,
    throttle: Optional[Throttle] = None,
    jitter: JitterSource = random.random,
) -> PitchResult:
    """Chunk, score and aggregate a transcript for one persona.

    Segments are scored one at a time in order.  A segment whose model call
    fails is scored by the heuristic; a Fatal outcome aborts the whole request.
    """
    transcript = _validate_transcript(transcript)
    persona = resolve_persona(persona_id)
    throttle = _effective_throttle(client, throttle)
    start_ts = time.monotonic()

    segments = segments_for_transcript(transcript)
    logger.info(
        "pitch_analysis_started persona=%s segments=%s words=%s mode=%s prompt_version=%s",
        persona.id,
        len(segments),
        len(transcript.words),
        "model" if client is not None else "heuristic",
        SCORING_PROMPT_VERSION,
    )

    analyzed: List[SegmentAnalysis] = []
    fallbacks = 0
    for segment in segments:
        throttle.wait()
        outcome = score_segment(segment, persona, client=client, jitter=jitter)
        if isinstance(outcome, Fatal):
            logger.error("pitch_analysis_aborted index=%s error=%s", segment.index, outcome.error)
        if isinstance(outcome, Fallback):
            fallbacks += 1
        scores = unwrap(outcome)
        logger.info(
            "segment_scored index=%s source=%s reason=%s",
            segment.index,
            outcome_source(outcome),
            outcome.reason if isinstance(outcome, Fallback) else "-",
        )
        analyzed.append(build_segment_analysis(segment, scores, source=outcome_source(outcome)))

    result = PitchResult(persona=persona.id, segments=analyzed, overall_score=overall_score(analyzed))
    logger.info(
        "pitch_analysis_done persona=%s segments=%s weak=%s fallbacks=%s overall=%.3f elapsed_ms=%s",
        persona.id,
        len(analyzed),
        sum(1 for item in analyzed if item.weak_moment),
        fallbacks,
        result.overall_score,
        int((time.monotonic() - start_ts) * 1000),
    )
    return result


def generate_suggestions(
    weak_segments: Optional[Sequence[WeakSegment]],
    persona_id: Optional[str],
    *,
    client: Optional[GenerationClient] = None,
    throttle: Optional[Throttle] = None,
) -> List[Suggestion]:
    if weak_segments is None:
        raise InputError("Missing weak segments.")
    persona = resolve_persona(persona_id)
    throttle = _effective_throttle(client, throttle)

    suggestions: List[Suggestion] = []
    for segment in weak_segments:
        throttle.wait()
        outcome = suggest_for_segment(segment, persona, client=client)
        if isinstance(outcome, Fatal):
            logger.error("suggestions_aborted index=%s error=%s", segment.index, outcome.error)
        text = unwrap(outcome)
        suggestions.append(
            Suggestion(
                segment_index=segment.index,
                rewrite=text.rewrite,
                slide_tip=text.slide_tip,
                coaching_tip=text.coaching_tip,
                source=outcome_source(outcome),
            )
        )

    logger.info(
        "suggestions_done persona=%s count=%s model=%s prompt_version=%s",
        persona.id,
        len(suggestions),
        sum(1 for item in suggestions if item.source == "model"),
        SUGGESTION_PROMPT_VERSION,
    )
    return suggestions


def weak_segments_from_result(result: PitchResult) -> List[WeakSegment]:
    return [
        WeakSegment(index=item.index, start=item.start, end=item.end, text=item.text, reason=item.reason)
        for item in result.segments
        if item.weak_moment
    ]
