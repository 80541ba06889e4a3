"""Locally synthesized call metrics. None of these are taken from the generation backend.

Talk time is computed once per call and reused by the prompt, the ratio, the
absolute seconds and the sentiment-trend timeline so every displayed number agrees.
"""

import re
from collections import Counter
from dataclasses import dataclass

from config.lexicon import Lexicon
from config.schemas import (
    LoudnessDataPoint,
    TalkTimeRatio,
    TranscriptMessage,
    WordFrequency,
)
from config.settings import DEFAULT_MESSAGE_SECONDS

WORD_CLOUD_SIZE = 30
_NON_WORD_RE = re.compile(r"[^\w\s]")


@dataclass(frozen=True)
class TalkTime:
    agent_seconds: float
    customer_seconds: float

    @property
    def total_seconds(self) -> float:
        return self.agent_seconds + self.customer_seconds

    @property
    def ratio(self) -> TalkTimeRatio:
        total = self.total_seconds
        if total <= 0:
            return TalkTimeRatio(agent_percentage=50.0, customer_percentage=50.0)
        return TalkTimeRatio(
            agent_percentage=self.agent_seconds / total * 100,
            customer_percentage=self.customer_seconds / total * 100,
        )


def message_seconds(message: TranscriptMessage, default_seconds: float = DEFAULT_MESSAGE_SECONDS) -> float:
    return message.duration if message.duration is not None else default_seconds


def compute_talk_time(
    messages: list[TranscriptMessage],
    default_seconds: float = DEFAULT_MESSAGE_SECONDS,
) -> TalkTime:
    """Sum message durations per side. Anything not tagged ``agent`` counts as customer."""
    agent = 0.0
    customer = 0.0
    for message in messages:
        seconds = message_seconds(message, default_seconds)
        if message.is_agent:
            agent += seconds
        else:
            customer += seconds
    return TalkTime(agent_seconds=agent, customer_seconds=customer)


def generate_word_cloud(transcript: str, lexicon: Lexicon, limit: int = WORD_CLOUD_SIZE) -> list[WordFrequency]:
    """Top ``limit`` non-trivial words weighted by count / max count."""
    words = [
        word
        for word in _NON_WORD_RE.sub(" ", transcript.lower()).split()
        if len(word) > 2 and word not in lexicon.stop_words
    ]
    if not words:
        return []

    # most_common keeps first-seen order among equal counts
    top = Counter(words).most_common(limit)
    max_freq = float(top[0][1])
    return [
        WordFrequency(word=word, frequency=count, weight=count / max_freq)
        for word, count in top
    ]


def keyword_sentiment(text: str, lexicon: Lexicon) -> float:
    """Keyword polarity for one message in [-1, 1]; the majority side wins, ties are 0."""
    lower = text.lower()
    positive = sum(1 for word in lexicon.positive_words if word in lower)
    negative = sum(1 for word in lexicon.negative_words if word in lower)

    if positive > negative:
        score = 0.5 + min(positive * 0.1, 0.5)
    elif negative > positive:
        score = -0.5 - min(negative * 0.1, 0.5)
    else:
        score = 0.0
    return max(-1.0, min(1.0, score))


def message_sentiment(message: TranscriptMessage, lexicon: Lexicon) -> float:
    """Explicit per-message sentiment if the caller supplied one, else the keyword score."""
    if message.sentiment is not None:
        return message.sentiment
    return keyword_sentiment(message.text, lexicon)


def generate_loudness_trend(
    messages: list[TranscriptMessage],
    default_seconds: float = DEFAULT_MESSAGE_SECONDS,
) -> list[LoudnessDataPoint]:
    """Text-derived loudness proxy, one start/end pair per message (step rendering)."""
    points: list[LoudnessDataPoint] = []
    current = 0.0

    for message in messages:
        loudness = 0.3
        if len(message.text) > 100:
            loudness += 0.2
        if message.sentiment is not None and message.sentiment < 0:
            loudness += 0.3
        if not message.is_agent:
            loudness += 0.1
        loudness = max(0.0, min(1.0, loudness))

        points.append(LoudnessDataPoint(timestamp=current, loudness=loudness))
        current += message_seconds(message, default_seconds)
        points.append(LoudnessDataPoint(timestamp=current, loudness=loudness))

    return points
