from __future__ import annotations

import logging
import math
import random
import re
from typing import Callable, Optional

from .errors import GenerationError, ResponseFormatError
from .llm_client import GenerationClient
from .llm_parsing import clamp_unit, parse_json_object, require_number, require_string
from .models import Segment, SegmentScores
from .outcomes import Fallback, Fatal, Ok, Outcome
from .personas import Persona
from .prompts.scoring import SYSTEM_PROMPT_TEMPLATE, USER_PROMPT_TEMPLATE


logger = logging.getLogger("uvicorn.error")

JitterSource = Callable[[], float]
_DIGIT_RE = re.compile(r"\d")


def _round2(value: float) -> float:
    # Half-up, so 0.625 -> 0.63 like the scores shown in the UI.
    return math.floor(value * 100.0 + 0.5) / 100.0


def count_keyword_matches(text: str, persona: Persona) -> int:
    lowered = text.lower()
    return sum(1 for keyword in persona.keywords if keyword in lowered)


def _reason_for(persona: Persona, keyword_matches: int) -> str:
    if keyword_matches > 2:
        return f"Strong alignment with {persona.id} priorities. Good use of relevant terminology."
    if keyword_matches > 0:
        return f"Some relevant points for {persona.id} investors, but could emphasize key metrics more."
    return f"Consider adding more {persona.reason_focus} to resonate better."


def heuristic_scores(text: str, persona: Persona, *, jitter: JitterSource = random.random) -> SegmentScores:
    lowered = (text or "").lower()
    tokens = lowered.split()
    word_count = len(tokens)
    avg_word_length = (sum(len(token) for token in tokens) / word_count) if word_count else 0.0
    has_digit = bool(_DIGIT_RE.search(lowered))
    keyword_matches = count_keyword_matches(lowered, persona)

    sentiment = min(0.9, 0.4 + keyword_matches * 0.08 + (0.1 if has_digit else 0.0))
    energy = min(
        0.9,
        0.45
        + (0.15 if "!" in lowered else 0.0)
        + (0.1 if word_count > 30 else 0.0)
        + jitter() * 0.1,
    )
    clarity = min(
        0.9,
        0.5
        + (0.15 if avg_word_length < 6 else -0.05)
        + (0.1 if 15 < word_count < 50 else 0.0)
        + jitter() * 0.1,
    )
    persona_fit = min(
        0.9,
        0.35 + keyword_matches * 0.1 + (0.15 if has_digit and persona.values_numbers else 0.0),
    )

    return SegmentScores(
        sentiment=_round2(sentiment),
        energy=_round2(energy),
        clarity=_round2(clarity),
        persona_fit=_round2(persona_fit),
        reason=_reason_for(persona, keyword_matches),
    )


def parse_model_scores(raw_content: str) -> SegmentScores:
    payload = parse_json_object(raw_content)
    return SegmentScores(
        sentiment=clamp_unit(require_number(payload, "sentiment")),
        energy=clamp_unit(require_number(payload, "energy")),
        clarity=clamp_unit(require_number(payload, "clarity")),
        persona_fit=clamp_unit(require_number(payload, "personaFit")),
        reason=require_string(payload, "reason"),
    )


def request_model_scores(client: GenerationClient, segment: Segment, persona: Persona) -> SegmentScores:
    system_prompt = SYSTEM_PROMPT_TEMPLATE.replace("{persona_description}", persona.description)
    user_prompt = USER_PROMPT_TEMPLATE.replace("{segment_text}", segment.text)
    raw_content = client.complete(system_prompt=system_prompt, user_prompt=user_prompt)
    return parse_model_scores(raw_content)


def score_segment(
    segment: Segment,
    persona: Persona,
    *,
    client: Optional[GenerationClient] = None,
    jitter: JitterSource = random.random,
) -> Outcome[SegmentScores]:
    """Score one segment with the model, degrading to the heuristic.

    Provider errors and unusable output never escape: they become a
    ``Fallback``.  Only a failure of the heuristic itself is ``Fatal``.
    """
    if client is not None:
        try:
            return Ok(request_model_scores(client, segment, persona))
        except (GenerationError, ResponseFormatError) as exc:
            fallback_reason = f"{type(exc).__name__}: {exc}"
            logger.warning(
                "segment_model_scoring_failed index=%s persona=%s error=%s",
                segment.index,
                persona.id,
                exc,
            )
    else:
        fallback_reason = "generation client not configured"

    try:
        return Fallback(heuristic_scores(segment.text, persona, jitter=jitter), reason=fallback_reason)
    except Exception as exc:
        logger.error("segment_heuristic_scoring_failed index=%s", segment.index, exc_info=True)
        return Fatal(exc)
