"""Call analytics Pydantic schemas — transcript, per-call analysis and fleet rollup.

Serialized documents use camelCase keys (``model_dump(by_alias=True)``) so stored
analyses stay compatible with dashboard consumers. Either spelling is accepted on input.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class _Document(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── ENUMS ──

class SentimentLabel(str, Enum):
    POSITIVE = "Positive"
    NEUTRAL = "Neutral"
    NEGATIVE = "Negative"


class PayloadSource(str, Enum):
    """Which interpretation path produced the backend payload."""
    JSON = "json"
    TEXT = "text"
    NONE = "none"


# ── TRANSCRIPT ──

class TranscriptMessage(_Document):
    """One attributed utterance. Immutable once produced by the segmenter."""
    model_config = ConfigDict(frozen=True)

    speaker: str = Field(description="Lower-cased speaker tag: 'agent' or anything else")
    text: str
    timestamp: float = Field(default=0.0, ge=0, description="Seconds from call start")
    duration: Optional[float] = Field(None, ge=0, description="Utterance length in seconds")
    sentiment: Optional[float] = Field(None, ge=-1, le=1)
    loudness: Optional[float] = Field(None, ge=0, le=1)

    @property
    def is_agent(self) -> bool:
        return self.speaker.lower() == "agent"


# ── PER-CALL ANALYSIS ──

class SentimentScore(_Document):
    overall: SentimentLabel
    score: float = Field(ge=0, le=1)

    @field_validator("overall", mode="before")
    @classmethod
    def _normalize_label(cls, value):
        if isinstance(value, str):
            return value.strip().capitalize()
        return value


class KeyHighlights(_Document):
    issue: str = Field(min_length=1)
    resolution: str = Field(min_length=1)
    summary: str = Field(min_length=1)


class AgentScore(_Document):
    rating: int = Field(ge=1, le=10)
    professionalism: str
    efficiency: str


class SentimentDataPoint(_Document):
    timestamp: float = Field(ge=0, description="Seconds from call start")
    sentiment: float = Field(ge=-1, le=1)


class SentimentTrend(_Document):
    data_points: list[SentimentDataPoint] = Field(
        min_length=3, description="Charting needs at least three points"
    )


class TalkTimeRatio(_Document):
    agent_percentage: float = Field(ge=0, le=100)
    customer_percentage: float = Field(ge=0, le=100)


class TopicMention(_Document):
    category: str = Field(min_length=1)
    count: int = Field(ge=1)
    percentage: float = Field(ge=0, le=100)


class AgentPerformance(_Document):
    greeting: float = Field(ge=0, le=10)
    problem_solving: float = Field(ge=0, le=10)
    closing: float = Field(ge=0, le=10)

    @property
    def average(self) -> float:
        return (self.greeting + self.problem_solving + self.closing) / 3.0


class WordFrequency(_Document):
    word: str
    frequency: int = Field(ge=1)
    weight: float = Field(default=1.0, gt=0, le=1, description="frequency / max frequency")


class LoudnessDataPoint(_Document):
    timestamp: float = Field(ge=0)
    loudness: float = Field(ge=0, le=1, description="Text-derived proxy, not acoustic amplitude")


class CallAnalysis(_Document):
    """Complete analytics record for one call. Always replaced wholesale."""

    sentiment_score: SentimentScore
    key_highlights: KeyHighlights
    agent_score: AgentScore
    sentiment_trend: SentimentTrend
    talk_time_ratio: TalkTimeRatio
    topics: list[TopicMention] = Field(min_length=1)
    agent_performance: AgentPerformance

    agent_talk_seconds: float = Field(default=0.0, ge=0)
    customer_talk_seconds: float = Field(default=0.0, ge=0)
    detected_language: Optional[str] = "English"
    agent_sentiment: Optional[str] = "Neutral"
    word_cloud: list[WordFrequency] = Field(default_factory=list, max_length=30)
    loudness_trend: list[LoudnessDataPoint] = Field(default_factory=list)
    first_call_resolution: Optional[bool] = None


# ── RECORDINGS ──

class CallRecording(_Document):
    """A recorded call owned by the caller. The engine only replaces ``analysis``."""

    id: str
    file_name: str = ""
    file_path: str = Field(default="", description="Audio reference (path or URL)")
    duration: float = Field(default=0.0, ge=0, description="Call length in seconds")
    created_at: datetime
    transcript: Optional[str] = None
    analysis: Optional[CallAnalysis] = None

    # Call metadata
    language: Optional[str] = None
    department: Optional[str] = None
    agent_name: Optional[str] = None
    status: Optional[str] = Field(None, description="'Resolved', 'Pending', 'Escalated', 'Closed'")
    first_call_resolution: Optional[bool] = None
    loudness: Optional[float] = None
    metadata: Optional[dict] = None


# ── FLEET ROLLUP ──

class AggregateMetrics(_Document):
    """Fleet-level statistics, recomputed on demand from a set of recordings."""

    total_calls: int = Field(ge=0)
    avg_agent_talk_sec: float = 0.0
    avg_customer_talk_sec: float = 0.0
    first_call_resolution_rate: float = Field(default=0.0, ge=0, le=1)
    calls_over_50_sec: int = 0
    calls_under_50_sec: int = 0
    duration_buckets: dict[str, int] = Field(default_factory=dict)

    calls_by_language: dict[str, int] = Field(default_factory=dict)
    calls_by_department: dict[str, int] = Field(default_factory=dict)
    calls_by_week: dict[str, int] = Field(default_factory=dict, description="ISO week, e.g. '2026-W42'")
    calls_by_agent: dict[str, int] = Field(default_factory=dict)
    calls_by_status: dict[str, int] = Field(default_factory=dict)
    agent_performance: dict[str, float] = Field(
        default_factory=dict, description="Mean of greeting/problemSolving/closing per agent"
    )
    sentiment_distribution: dict[str, int] = Field(default_factory=dict)

    talk_time_sentiment: dict[str, float] = Field(
        default_factory=dict,
        description="Mean sentiment score for agent-dominant / customer-dominant / balanced calls",
    )
    talk_time_sentiment_counts: dict[str, int] = Field(default_factory=dict)
