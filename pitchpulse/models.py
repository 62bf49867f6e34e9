from datetime import datetime, timezone
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def seconds_to_ms(value) -> int:
    if value is None:
        return 0
    return int(round(float(value) * 1000.0))


def duration_to_ms(duration) -> int:
    if duration is None:
        return 0
    # proto-plus hands back datetime.timedelta; raw protobuf has seconds/nanos.
    if hasattr(duration, "total_seconds"):
        return seconds_to_ms(duration.total_seconds())
    seconds = getattr(duration, "seconds", 0) or 0
    nanos = getattr(duration, "nanos", 0) or 0
    return int(seconds) * 1000 + int(round(nanos / 1_000_000))


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Word(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    text: str
    start: int
    end: int

    @field_validator("start", "end", mode="before")
    @classmethod
    def _round_ms(cls, value: Any) -> Any:
        if isinstance(value, float):
            return int(round(value))
        return value


class Transcript(CamelModel):
    text: str = ""
    words: List[Word] = Field(default_factory=list)


class Segment(CamelModel):
    index: int
    start: int
    end: int
    text: str
    words: List[Word] = Field(default_factory=list, exclude=True)


class SegmentScores(CamelModel):
    sentiment: float
    energy: float
    clarity: float
    persona_fit: float
    reason: str


ScoreSource = Literal["model", "heuristic"]


class SegmentAnalysis(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    index: int
    start: int
    end: int
    text: str
    sentiment: float
    energy: float
    clarity: float
    persona_fit: float
    reason: str
    engagement_score: float
    weak_moment: bool
    source: ScoreSource = "heuristic"


class PitchResult(CamelModel):
    persona: str
    segments: List[SegmentAnalysis]
    overall_score: float


class WeakSegment(CamelModel):
    index: int
    start: int = 0
    end: int = 0
    text: str
    reason: str = ""


class SuggestionText(CamelModel):
    rewrite: str
    slide_tip: str
    coaching_tip: str


class Suggestion(CamelModel):
    segment_index: int
    rewrite: str
    slide_tip: str
    coaching_tip: str
    source: ScoreSource = "heuristic"


class Pause(CamelModel):
    start: int
    duration: int


class RateWindow(CamelModel):
    start: int
    end: int
    words_per_second: float


class TimingStats(CamelModel):
    avg_words_per_second: float
    pauses: List[Pause]
    fast_windows: List[RateWindow]
    slow_windows: List[RateWindow]


class VoiceIssue(CamelModel):
    time: str
    type: Literal["tone", "rhythm"]
    problem: str
    advice: str


class VoiceAnalysis(CamelModel):
    overall_tone: Literal["confident", "hesitant", "mixed"]
    overall_rhythm: Literal["too fast", "too slow", "balanced", "inconsistent"]
    issues: List[VoiceIssue]


class HistoryItem(CamelModel):
    id: str
    title: str
    date: str
    persona: str
    overall_score: float
    weak_moments_count: int
    transcript_preview: str
    serialized_result: str


# Request / response bodies


class TranscribeRequest(CamelModel):
    audio_data: Optional[str] = None
    audio_url: Optional[str] = None
    file_type: Optional[str] = None


class TranscribeResponse(CamelModel):
    text: str
    words: List[Word]
    source: str


class ParsedDocumentResponse(CamelModel):
    text: str


class AnalyzeRequest(CamelModel):
    transcript: Optional[Transcript] = None
    persona: Optional[str] = None


class SuggestRequest(CamelModel):
    weak_segments: Optional[List[WeakSegment]] = None
    persona: Optional[str] = None


class VoiceAnalyzeRequest(CamelModel):
    words: Optional[List[Word]] = None


class SaveHistoryRequest(CamelModel):
    transcript: Transcript
    analysis: PitchResult
    persona: str
    suggestions: Optional[List[Suggestion]] = None
    voice_analysis: Optional[VoiceAnalysis] = None

    def serialized(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


class HealthResponse(BaseModel):
    status: str
    storage: str
    generation: str
    transcription: str


class DeleteResponse(BaseModel):
    deleted: bool


class ClearResponse(BaseModel):
    cleared: int

