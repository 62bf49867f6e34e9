from __future__ import annotations

import logging
import re
from typing import Dict, Optional

from .errors import GenerationError, ResponseFormatError
from .llm_client import GenerationClient
from .llm_parsing import parse_json_object, require_string
from .models import SuggestionText, WeakSegment
from .outcomes import Fallback, Fatal, Ok, Outcome
from .personas import Persona
from .prompts.suggestions import SYSTEM_PROMPT_TEMPLATE, USER_PROMPT_TEMPLATE


logger = logging.getLogger("uvicorn.error")

_NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9\s]")
_WHITESPACE_RE = re.compile(r"\s+")
_ALPHA_WORD_RE = re.compile(r"[a-zA-Z]+")

RUSHED_NOTE = " This section feels rushed - expand with more detail and examples."
UNCLEAR_AUDIO_NOTE = (
    "Note: The audio transcription for this segment was unclear. "
    "Consider re-recording or speaking more clearly in this section. "
)
METRICS_REWRITE = (
    "Add specific numbers followed by concrete metrics like percentages, dollar amounts, or user counts."
)

# Per persona: readable rewrite, unclear-transcript rewrite, slide tip, coaching tip.
SUGGESTION_TEMPLATES: Dict[str, Dict[str, str]] = {
    "angel": {
        "rewrite": (
            'Start with your personal "why" - what drove you to solve this problem? Share the moment '
            "that sparked your mission. Make it a story about the people you're helping."
        ),
        "unclear_rewrite": (
            "[Transcription unclear] Restate your personal connection to the problem. "
            "Share a specific moment that made you commit to solving this."
        ),
        "slide_tip": (
            "Add a founder photo or team slide. Include a quote from an early customer that shows "
            "the human impact of your solution."
        ),
        "coaching_tip": (
            "Slow down and make eye contact when delivering this section. Let your genuine passion "
            "show through your voice and body language."
        ),
    },
    "vc": {
        "rewrite": (
            'Quantify this section: "We\'ve achieved [X metric] with [Y customers], representing [Z%] '
            "month-over-month growth. Our unit economics show [CAC] acquisition cost with [LTV] "
            'lifetime value..."'
        ),
        "unclear_rewrite": (
            "[Transcription unclear] Restructure with specific metrics: revenue numbers, growth "
            "percentages, customer counts, and unit economics (CAC/LTV)."
        ),
        "slide_tip": (
            "Replace text with a data visualization. Show your hockey stick growth chart or unit "
            "economics breakdown in a clean, scannable format."
        ),
        "coaching_tip": (
            "Lead with the numbers, then explain them. VCs process metrics quickly - give them the "
            "data point first, context second."
        ),
    },
    "product": {
        "rewrite": (
            'Focus on the user journey: "When users first encounter [problem], they typically '
            "[pain point]. Our solution provides [key feature] that results in [measurable "
            'improvement in user experience]..."'
        ),
        "unclear_rewrite": (
            "[Transcription unclear] Restructure around the user: describe the specific pain point, "
            "your solution's key feature, and the measurable UX improvement."
        ),
        "slide_tip": (
            "Add a product screenshot or user flow diagram. Show, don't tell - let the UI demonstrate "
            "the value proposition."
        ),
        "coaching_tip": (
            "Consider a quick demo moment here. Even a 10-second screen recording can be more powerful "
            "than describing the feature."
        ),
    },
}


def is_readable_text(text: str) -> bool:
    """Reject garbled transcription before anyone writes a rewrite for it."""
    if not text:
        return False
    alphanumeric = _NON_ALNUM_RE.sub("", text)
    ratio = len(alphanumeric) / len(text)
    words = _WHITESPACE_RE.split(text)
    avg_word_length = sum(len(word) for word in words) / len(words)
    has_real_words = any(len(word) > 2 and _ALPHA_WORD_RE.fullmatch(word) for word in words)
    return ratio > 0.7 and avg_word_length > 1.5 and has_real_words


def heuristic_suggestion(segment: WeakSegment, persona: Persona) -> SuggestionText:
    template = SUGGESTION_TEMPLATES[persona.id]
    word_count = len(_WHITESPACE_RE.split(segment.text.lower()))
    readable = is_readable_text(segment.text)

    rewrite = template["rewrite"] if readable else template["unclear_rewrite"]
    coaching_tip = template["coaching_tip"]

    if readable and word_count < 20:
        coaching_tip += RUSHED_NOTE
    if not readable:
        coaching_tip = UNCLEAR_AUDIO_NOTE + coaching_tip
    if readable and ("metric" in segment.reason or "quantitative" in segment.reason):
        rewrite = METRICS_REWRITE

    return SuggestionText(rewrite=rewrite, slide_tip=template["slide_tip"], coaching_tip=coaching_tip)


def parse_model_suggestion(raw_content: str) -> SuggestionText:
    payload = parse_json_object(raw_content)
    return SuggestionText(
        rewrite=require_string(payload, "rewrite"),
        slide_tip=require_string(payload, "slideTip"),
        coaching_tip=require_string(payload, "coachingTip"),
    )


def request_model_suggestion(client: GenerationClient, segment: WeakSegment, persona: Persona) -> SuggestionText:
    system_prompt = SYSTEM_PROMPT_TEMPLATE.replace("{persona_description}", persona.short_description)
    user_prompt = USER_PROMPT_TEMPLATE.replace("{segment_text}", segment.text).replace(
        "{reason}",
        segment.reason or "low engagement",
    )
    raw_content = client.complete(system_prompt=system_prompt, user_prompt=user_prompt)
    return parse_model_suggestion(raw_content)


def suggest_for_segment(
    segment: WeakSegment,
    persona: Persona,
    *,
    client: Optional[GenerationClient] = None,
) -> Outcome[SuggestionText]:
    if client is not None:
        try:
            return Ok(request_model_suggestion(client, segment, persona))
        except (GenerationError, ResponseFormatError) as exc:
            fallback_reason = f"{type(exc).__name__}: {exc}"
            logger.warning(
                "segment_model_suggestion_failed index=%s persona=%s error=%s",
                segment.index,
                persona.id,
                exc,
            )
    else:
        fallback_reason = "generation client not configured"

    try:
        return Fallback(heuristic_suggestion(segment, persona), reason=fallback_reason)
    except Exception as exc:
        logger.error("segment_heuristic_suggestion_failed index=%s", segment.index, exc_info=True)
        return Fatal(exc)
