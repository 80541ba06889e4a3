"""Completeness validator & heuristic fallback engine.

Every CallAnalysis field is owned by exactly one ``FieldResolver``: an ordered
tuple of steps, each tagged with where its value comes from. Steps run in order
and the first one that returns a value wins:

    backend payload (typed + range-checked)  ->  transcript heuristic  ->  fixed default

Fields the backend is never trusted with (talk time, word cloud, loudness) have a
single ``local`` step. The last step of every resolver always returns, so the
resulting CallAnalysis is complete no matter what the backend sent. Which step
won is kept in ``Resolution.sources`` so completeness can be audited per field.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from loguru import logger
from pydantic import BaseModel, ValidationError

from config.lexicon import Lexicon
from config.schemas import (
    AgentPerformance,
    AgentScore,
    CallAnalysis,
    KeyHighlights,
    PayloadSource,
    SentimentDataPoint,
    SentimentScore,
    SentimentTrend,
    TopicMention,
    TranscriptMessage,
)
from analysis.metrics import (
    TalkTime,
    generate_loudness_trend,
    generate_word_cloud,
)
from analysis.reconstruction import (
    default_topics,
    extract_issue,
    extract_resolution,
    extract_summary,
    extract_topics,
    generate_sentiment_trend,
    is_placeholder,
    pad_trend,
    topics_with_percentages,
)


class Provenance(str, Enum):
    BACKEND = "backend"
    HEURISTIC = "heuristic"
    LOCAL = "local"
    DEFAULT = "default"


GENERIC_PROFESSIONALISM = "Professional service provided"
GENERIC_EFFICIENCY = "Efficient problem resolution"
UNASSESSED = "Unable to assess"

DEFAULT_ISSUE = "Analysis unavailable"
DEFAULT_RESOLUTION = "Unable to extract resolution"
DEFAULT_SUMMARY = "Call analysis could not be completed. Please try again."

DEFAULT_LANGUAGE = "English"
DEFAULT_AGENT_SENTIMENT = "Neutral"


@dataclass(frozen=True)
class ResolutionContext:
    """Everything a resolver step may read. Nothing in here is mutated."""
    payload: dict
    source: PayloadSource
    transcript: str
    messages: tuple[TranscriptMessage, ...]
    talk_time: TalkTime
    lexicon: Lexicon
    default_seconds: float

    @property
    def total_failure(self) -> bool:
        return self.source == PayloadSource.NONE

    def get(self, name: str) -> Any:
        """Payload value by camelCase key, tolerating snake_case replies."""
        if name in self.payload:
            return self.payload[name]
        snake = "".join(f"_{c.lower()}" if c.isupper() else c for c in name)
        return self.payload.get(snake)


Step = Callable[[ResolutionContext, dict], Any]


@dataclass(frozen=True)
class FieldResolver:
    name: str
    steps: tuple[tuple[Provenance, Step], ...]

    def resolve(self, ctx: ResolutionContext, resolved: dict) -> tuple[Any, Provenance]:
        for provenance, step in self.steps:
            value = step(ctx, resolved)
            if value is not None:
                return value, provenance
        raise RuntimeError(f"Resolver '{self.name}' has no terminal default step")


@dataclass
class Resolution:
    analysis: CallAnalysis
    sources: dict[str, Provenance] = field(default_factory=dict)


# ── COERCION HELPERS ──

def _number(value: Any) -> float | None:
    """Finite float or None. NaN, infinities and ints past float range count as missing."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        value = value.strip().rstrip("%")
    elif not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _validated(model: type[BaseModel], data: dict) -> BaseModel | None:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Discarding backend {model.__name__}: {e.error_count()} validation error(s)")
        return None


# ── SENTIMENT SCORE ──

def _backend_sentiment_score(ctx: ResolutionContext, resolved: dict) -> SentimentScore | None:
    data = ctx.get("sentimentScore")
    if not isinstance(data, dict):
        return None
    score = _number(data.get("score"))
    if score is None:
        return None
    if 1.0 < score <= 100.0:
        # Percent scale
        score = score / 100.0
    return _validated(SentimentScore, {"overall": data.get("overall"), "score": _clamp(score, 0.0, 1.0)})


def _default_sentiment_score(ctx: ResolutionContext, resolved: dict) -> SentimentScore:
    return SentimentScore(overall="Neutral", score=0.5)


# ── AGENT SCORE ──

def _backend_agent_score(ctx: ResolutionContext, resolved: dict) -> AgentScore | None:
    data = ctx.get("agentScore")
    if not isinstance(data, dict):
        return None
    rating = _number(data.get("rating"))
    if rating is None:
        return None
    return _validated(AgentScore, {
        "rating": int(_clamp(round(rating), 1, 10)),
        "professionalism": _text(data.get("professionalism")) or GENERIC_PROFESSIONALISM,
        "efficiency": _text(data.get("efficiency")) or GENERIC_EFFICIENCY,
    })


def _default_agent_score(ctx: ResolutionContext, resolved: dict) -> AgentScore:
    if ctx.total_failure:
        return AgentScore(rating=5, professionalism=UNASSESSED, efficiency=UNASSESSED)
    return AgentScore(rating=7, professionalism=GENERIC_PROFESSIONALISM, efficiency=GENERIC_EFFICIENCY)


# ── KEY HIGHLIGHTS ──

def _backend_highlight_parts(ctx: ResolutionContext) -> dict[str, str]:
    data = ctx.get("keyHighlights")
    if not isinstance(data, dict):
        return {}
    placeholders = {
        "issue": ctx.lexicon.placeholder_issue,
        "resolution": ctx.lexicon.placeholder_resolution,
        "summary": ctx.lexicon.placeholder_summary,
    }
    parts = {}
    for key, placeholder in placeholders.items():
        value = data.get(key)
        if isinstance(value, str) and not is_placeholder(value, placeholder):
            parts[key] = value.strip()
    return parts


def _backend_highlights(ctx: ResolutionContext, resolved: dict) -> KeyHighlights | None:
    parts = _backend_highlight_parts(ctx)
    if len(parts) < 3:
        return None
    return KeyHighlights(**parts)


def _reconstructed_highlights(ctx: ResolutionContext, resolved: dict) -> KeyHighlights | None:
    parts = _backend_highlight_parts(ctx)
    if not parts and not ctx.transcript.strip():
        return None

    missing = [key for key in ("issue", "resolution", "summary") if key not in parts]
    logger.info(f"Rebuilding key highlights from transcript: {', '.join(missing)}")
    issue = parts.get("issue") or extract_issue(ctx.transcript, ctx.lexicon)
    resolution = parts.get("resolution") or extract_resolution(ctx.transcript, ctx.lexicon)
    summary = parts.get("summary") or extract_summary(ctx.transcript)
    return KeyHighlights(
        issue=issue or DEFAULT_ISSUE,
        resolution=resolution or DEFAULT_RESOLUTION,
        summary=summary or DEFAULT_SUMMARY,
    )


def _default_highlights(ctx: ResolutionContext, resolved: dict) -> KeyHighlights:
    return KeyHighlights(issue=DEFAULT_ISSUE, resolution=DEFAULT_RESOLUTION, summary=DEFAULT_SUMMARY)


# ── SENTIMENT TREND ──

def _backend_trend(ctx: ResolutionContext, resolved: dict) -> SentimentTrend | None:
    data = ctx.get("sentimentTrend")
    raw_points = data.get("dataPoints") if isinstance(data, dict) else data
    if not isinstance(raw_points, list):
        return None

    points = []
    for item in raw_points:
        if not isinstance(item, dict):
            continue
        timestamp = _number(item.get("timestamp"))
        sentiment = _number(item.get("sentiment"))
        if timestamp is None or sentiment is None:
            continue
        points.append(SentimentDataPoint(
            timestamp=max(0.0, timestamp),
            sentiment=_clamp(sentiment, -1.0, 1.0),
        ))

    if not points:
        return None
    return SentimentTrend(data_points=pad_trend(points))


def _synthesized_trend(ctx: ResolutionContext, resolved: dict) -> SentimentTrend:
    points = generate_sentiment_trend(list(ctx.messages), ctx.talk_time.total_seconds, ctx.lexicon)
    return SentimentTrend(data_points=points)


# ── TOPICS ──

def _backend_topics(ctx: ResolutionContext, resolved: dict) -> list[TopicMention] | None:
    data = ctx.get("topics")
    if not isinstance(data, list):
        return None

    counts = []
    for item in data:
        if not isinstance(item, dict):
            continue
        category = _text(item.get("category"))
        count = _number(item.get("count"))
        if category is None or count is None or round(count) < 1:
            continue
        counts.append((category, int(round(count))))

    # Percentages are always recomputed from counts
    return topics_with_percentages(counts) or None


def _transcript_topics(ctx: ResolutionContext, resolved: dict) -> list[TopicMention] | None:
    return extract_topics(ctx.transcript, ctx.lexicon) or None


def _default_topics(ctx: ResolutionContext, resolved: dict) -> list[TopicMention]:
    return default_topics(ctx.lexicon)


# ── AGENT PERFORMANCE ──

def _backend_performance(ctx: ResolutionContext, resolved: dict) -> AgentPerformance | None:
    data = ctx.get("agentPerformance")
    if not isinstance(data, dict):
        return None
    values = {}
    for key, snake in (("greeting", "greeting"), ("problemSolving", "problem_solving"), ("closing", "closing")):
        number = _number(data.get(key, data.get(snake)))
        if number is None:
            return None
        values[snake] = _clamp(number, 0.0, 10.0)
    return _validated(AgentPerformance, values)


def _default_performance(ctx: ResolutionContext, resolved: dict) -> AgentPerformance:
    value = 5.0 if ctx.total_failure else 7.0
    return AgentPerformance(greeting=value, problem_solving=value, closing=value)


# ── FIRST CALL RESOLUTION ──

def _backend_fcr(ctx: ResolutionContext, resolved: dict) -> bool | None:
    value = ctx.get("firstCallResolution")
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false", "yes", "no"):
        return value.strip().lower() in ("true", "yes")
    return None


def _inferred_fcr(ctx: ResolutionContext, resolved: dict) -> bool:
    resolution = resolved["key_highlights"].resolution.lower()
    return any(marker in resolution for marker in ctx.lexicon.fcr_markers)


# ── PASS-THROUGH STRINGS ──

def _backend_text(key: str) -> Step:
    def _step(ctx: ResolutionContext, resolved: dict) -> str | None:
        return _text(ctx.get(key))
    return _step


def _constant(value: Any) -> Step:
    def _step(ctx: ResolutionContext, resolved: dict) -> Any:
        return value
    return _step


# ── LOCAL METRICS ──

def _local_talk_ratio(ctx: ResolutionContext, resolved: dict):
    return ctx.talk_time.ratio


def _local_agent_seconds(ctx: ResolutionContext, resolved: dict) -> float:
    return ctx.talk_time.agent_seconds


def _local_customer_seconds(ctx: ResolutionContext, resolved: dict) -> float:
    return ctx.talk_time.customer_seconds


def _local_word_cloud(ctx: ResolutionContext, resolved: dict):
    return generate_word_cloud(ctx.transcript, ctx.lexicon)


def _local_loudness(ctx: ResolutionContext, resolved: dict):
    return generate_loudness_trend(list(ctx.messages), ctx.default_seconds)


# Order matters: first_call_resolution reads the resolved key_highlights.
RESOLVERS: tuple[FieldResolver, ...] = (
    FieldResolver("sentiment_score", (
        (Provenance.BACKEND, _backend_sentiment_score),
        (Provenance.DEFAULT, _default_sentiment_score),
    )),
    FieldResolver("agent_score", (
        (Provenance.BACKEND, _backend_agent_score),
        (Provenance.DEFAULT, _default_agent_score),
    )),
    FieldResolver("key_highlights", (
        (Provenance.BACKEND, _backend_highlights),
        (Provenance.HEURISTIC, _reconstructed_highlights),
        (Provenance.DEFAULT, _default_highlights),
    )),
    FieldResolver("sentiment_trend", (
        (Provenance.BACKEND, _backend_trend),
        (Provenance.HEURISTIC, _synthesized_trend),
    )),
    FieldResolver("topics", (
        (Provenance.BACKEND, _backend_topics),
        (Provenance.HEURISTIC, _transcript_topics),
        (Provenance.DEFAULT, _default_topics),
    )),
    FieldResolver("agent_performance", (
        (Provenance.BACKEND, _backend_performance),
        (Provenance.DEFAULT, _default_performance),
    )),
    FieldResolver("talk_time_ratio", ((Provenance.LOCAL, _local_talk_ratio),)),
    FieldResolver("agent_talk_seconds", ((Provenance.LOCAL, _local_agent_seconds),)),
    FieldResolver("customer_talk_seconds", ((Provenance.LOCAL, _local_customer_seconds),)),
    FieldResolver("word_cloud", ((Provenance.LOCAL, _local_word_cloud),)),
    FieldResolver("loudness_trend", ((Provenance.LOCAL, _local_loudness),)),
    FieldResolver("first_call_resolution", (
        (Provenance.BACKEND, _backend_fcr),
        (Provenance.HEURISTIC, _inferred_fcr),
    )),
    FieldResolver("detected_language", (
        (Provenance.BACKEND, _backend_text("detectedLanguage")),
        (Provenance.DEFAULT, _constant(DEFAULT_LANGUAGE)),
    )),
    FieldResolver("agent_sentiment", (
        (Provenance.BACKEND, _backend_text("agentSentiment")),
        (Provenance.DEFAULT, _constant(DEFAULT_AGENT_SENTIMENT)),
    )),
)


def resolve_analysis(
    ctx: ResolutionContext,
    resolvers: tuple[FieldResolver, ...] = RESOLVERS,
) -> Resolution:
    """Run every resolver and assemble a complete, range-valid CallAnalysis.

    Args:
        ctx: Interpreted backend payload plus the transcript-derived inputs.
        resolvers: Field resolvers in evaluation order. Later resolvers may
            read values already resolved by earlier ones.

    Returns:
        Resolution with the analysis and the Provenance of every field.
    """
    resolved: dict[str, Any] = {}
    sources: dict[str, Provenance] = {}
    for resolver in resolvers:
        value, provenance = resolver.resolve(ctx, resolved)
        resolved[resolver.name] = value
        sources[resolver.name] = provenance

    analysis = CallAnalysis(**resolved)

    by_source: dict[str, list[str]] = {}
    for name, provenance in sources.items():
        by_source.setdefault(provenance.value, []).append(name)
    logger.info(
        f"Analysis resolved (payload={ctx.source.value}): "
        + "; ".join(f"{src}={','.join(names)}" for src, names in sorted(by_source.items()))
    )
    return Resolution(analysis=analysis, sources=sources)
