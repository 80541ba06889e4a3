"""Transcript-derived reconstruction of fields the backend failed to provide.

Every function here is deterministic and depends only on the transcript, the
messages and the injected lexicon.
"""

import re

from config.lexicon import Lexicon
from config.schemas import SentimentDataPoint, TopicMention, TranscriptMessage
from analysis.metrics import message_sentiment

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]\s+")

MIN_TREND_POINTS = 3
MAX_TREND_POINTS = 20


# ── KEY HIGHLIGHTS ──

def is_placeholder(value: str | None, placeholder: str) -> bool:
    """Empty, whitespace, or the backend's literal filler string."""
    if value is None:
        return True
    text = str(value).strip()
    return not text or text.lower() == placeholder.lower()


def _keyword_window(transcript: str, keywords: tuple[str, ...]) -> str | None:
    """Text around the first keyword (in keyword order) that yields a usable snippet."""
    lower = transcript.lower()
    for keyword in keywords:
        index = lower.find(keyword)
        if index == -1:
            continue
        start = max(index - 50, 0)
        end = min(index + 100, len(transcript))
        snippet = transcript[start:end].strip()
        if len(snippet) > 20:
            return snippet
    return None


def extract_issue(transcript: str, lexicon: Lexicon) -> str:
    snippet = _keyword_window(transcript, lexicon.issue_keywords)
    if snippet:
        return snippet
    if len(transcript) > 150:
        return f"{transcript[:150].strip()}..."
    return transcript.strip()


def extract_resolution(transcript: str, lexicon: Lexicon) -> str:
    snippet = _keyword_window(transcript, lexicon.resolution_keywords)
    if snippet:
        return snippet
    mid = len(transcript) // 2
    if len(transcript) > 150:
        return f"{transcript[mid - 75:mid + 75].strip()}..."
    return transcript[mid:].strip()


def extract_summary(transcript: str) -> str:
    sentences = [s for s in _SENTENCE_SPLIT_RE.split(transcript.strip()) if s.strip()]
    if len(sentences) > 3:
        first = ". ".join(s.strip() for s in sentences[:2])
        last = sentences[-1].strip().rstrip(".!?")
        summary = f"{first}. {last}."
        if len(summary) > 300:
            summary = f"{summary[:300].strip()}..."
        return summary
    if len(transcript) > 200:
        return f"{transcript[:150].strip()}... {transcript[-100:].strip()}"
    return transcript.strip()


# ── TOPICS ──

def extract_topics(transcript: str, lexicon: Lexicon) -> list[TopicMention]:
    """Whole-word keyword counts per taxonomy category. Empty list when nothing matches."""
    lower = transcript.lower()
    counts: dict[str, int] = {}
    for category, keywords in lexicon.topic_taxonomy:
        count = sum(
            len(re.findall(rf"\b{re.escape(keyword.lower())}\b", lower))
            for keyword in keywords
        )
        if count > 0:
            counts[category] = count

    return topics_with_percentages(list(counts.items()))


def topics_with_percentages(counts: list[tuple[str, int]]) -> list[TopicMention]:
    total = sum(count for _, count in counts)
    if total <= 0:
        return []
    return [
        TopicMention(category=category, count=count, percentage=count / total * 100)
        for category, count in counts
    ]


def default_topics(lexicon: Lexicon) -> list[TopicMention]:
    return [TopicMention(category=lexicon.fallback_topic, count=1, percentage=100.0)]


# ── SENTIMENT TREND ──

def pad_trend(points: list[SentimentDataPoint]) -> list[SentimentDataPoint]:
    """Guarantee the minimum point count by repeating the last value 10s apart."""
    if not points:
        return [SentimentDataPoint(timestamp=t, sentiment=0.0) for t in (0.0, 10.0, 20.0)]

    padded = list(points)
    while len(padded) < MIN_TREND_POINTS:
        last = padded[-1]
        padded.append(SentimentDataPoint(timestamp=last.timestamp + 10, sentiment=last.sentiment))
    return padded


def generate_sentiment_trend(
    messages: list[TranscriptMessage],
    total_duration: float,
    lexicon: Lexicon,
) -> list[SentimentDataPoint]:
    """Sample per-message keyword sentiment evenly across the call duration."""
    if not messages or total_duration <= 0:
        return pad_trend([])

    target = max(MIN_TREND_POINTS, min(len(messages), MAX_TREND_POINTS))
    interval = total_duration / target
    per_message = total_duration / len(messages)
    scores = [message_sentiment(m, lexicon) for m in messages]

    # index advances at most once per step, so past MAX_TREND_POINTS messages
    # the points span the whole call but only the leading messages are sampled.
    points: list[SentimentDataPoint] = []
    current = 0.0
    index = 0
    while current <= total_duration and index < len(messages):
        points.append(SentimentDataPoint(
            timestamp=current,
            sentiment=max(-1.0, min(1.0, scores[index])),
        ))
        current += interval
        if current >= (index + 1) * per_message:
            index += 1

    return pad_trend(points)
