from __future__ import annotations

from typing import List, Sequence

from .constants import SEGMENT_DURATION_MS
from .models import Segment, Transcript, Word


def _close_segment(index: int, words: List[Word], end: int) -> Segment:
    return Segment(
        index=index,
        start=words[0].start,
        end=end,
        text=" ".join(word.text for word in words),
        words=list(words),
    )


def create_segments(
    words: Sequence[Word],
    full_text: str = "",
    *,
    segment_duration_ms: int = SEGMENT_DURATION_MS,
) -> List[Segment]:
    """Group a word timeline into consecutive segments of under *segment_duration_ms*.

    A segment closes at the start of the word that would overflow it; the last
    one closes at the end of the final word.  Without timestamps (pasted text)
    the whole transcript becomes a single ``[0, segment_duration_ms)`` segment.
    """
    if not words:
        return [Segment(index=0, start=0, end=segment_duration_ms, text=full_text)]

    segments: List[Segment] = []
    current: List[Word] = []
    segment_start = words[0].start

    for word in words:
        if current and word.start - segment_start >= segment_duration_ms:
            segments.append(_close_segment(len(segments), current, word.start))
            segment_start = word.start
            current = []
        current.append(word)

    segments.append(_close_segment(len(segments), current, words[-1].end))
    return segments


def segments_for_transcript(transcript: Transcript) -> List[Segment]:
    return create_segments(transcript.words, transcript.text)
