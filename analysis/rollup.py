"""Fleet-level rollup over analyzed call recordings.

Pure read-side computation: nothing is cached or maintained incrementally, the
full metric set is rebuilt from the recordings on every call.
"""

from collections import Counter, defaultdict
from typing import Iterable

from loguru import logger

from config.schemas import AggregateMetrics, CallRecording

UNKNOWN = "Unknown"

DURATION_BUCKETS = (
    ("<30s", 30.0),
    ("30-50s", 50.0),
    ("50-90s", 90.0),
    ("90-120s", 120.0),
    (">120s", float("inf")),
)
SHORT_CALL_SECONDS = 50.0
DOMINANCE_MARGIN = 10.0

AGENT_DOMINANT = "agent-dominant"
CUSTOMER_DOMINANT = "customer-dominant"
BALANCED = "balanced"


def duration_bucket(seconds: float) -> str:
    """Histogram label for a call length; lower bounds are inclusive."""
    for label, upper in DURATION_BUCKETS:
        if seconds < upper:
            return label
    return DURATION_BUCKETS[-1][0]


def iso_week(recording: CallRecording) -> str:
    year, week, _ = recording.created_at.isocalendar()
    return f"{year}-W{week:02d}"


def talk_time_bucket(agent_percentage: float, customer_percentage: float) -> str:
    if agent_percentage > customer_percentage + DOMINANCE_MARGIN:
        return AGENT_DOMINANT
    if customer_percentage > agent_percentage + DOMINANCE_MARGIN:
        return CUSTOMER_DOMINANT
    return BALANCED


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def aggregate(recordings: Iterable[CallRecording]) -> AggregateMetrics:
    """Roll a set of recordings up into fleet-level dashboard metrics.

    Args:
        recordings: Recordings to summarize. Unanalyzed ones count only toward
            the totals, duration buckets and metadata group-bys.

    Returns:
        AggregateMetrics. An empty input gives zeroed metrics.
    """
    recordings = list(recordings)
    total = len(recordings)

    agent_seconds: list[float] = []
    customer_seconds: list[float] = []
    resolved = 0
    buckets = Counter({label: 0 for label, _ in DURATION_BUCKETS})
    over_50 = 0

    by_language: Counter = Counter()
    by_department: Counter = Counter()
    by_week: Counter = Counter()
    by_agent: Counter = Counter()
    by_status: Counter = Counter()
    sentiment_labels: Counter = Counter()

    performance: dict[str, list[float]] = defaultdict(list)
    talk_sentiment: dict[str, list[float]] = {AGENT_DOMINANT: [], CUSTOMER_DOMINANT: [], BALANCED: []}

    for recording in recordings:
        analysis = recording.analysis

        buckets[duration_bucket(recording.duration)] += 1
        if recording.duration > SHORT_CALL_SECONDS:
            over_50 += 1

        language = recording.language or (analysis.detected_language if analysis else None) or UNKNOWN
        by_language[language] += 1
        by_department[recording.department or UNKNOWN] += 1
        by_week[iso_week(recording)] += 1
        by_agent[recording.agent_name or UNKNOWN] += 1
        by_status[recording.status or UNKNOWN] += 1

        if analysis is None:
            continue

        if analysis.agent_talk_seconds > 0:
            agent_seconds.append(analysis.agent_talk_seconds)
        if analysis.customer_talk_seconds > 0:
            customer_seconds.append(analysis.customer_talk_seconds)

        if analysis.first_call_resolution or recording.first_call_resolution:
            resolved += 1

        performance[recording.agent_name or UNKNOWN].append(analysis.agent_performance.average)
        sentiment_labels[analysis.sentiment_score.overall.value] += 1

        ratio = analysis.talk_time_ratio
        bucket = talk_time_bucket(ratio.agent_percentage, ratio.customer_percentage)
        talk_sentiment[bucket].append(analysis.sentiment_score.score)

    analyzed = sum(1 for r in recordings if r.analysis is not None)
    logger.info(f"Aggregated {total} recordings ({analyzed} analyzed, {resolved} resolved on first call)")

    return AggregateMetrics(
        total_calls=total,
        avg_agent_talk_sec=_mean(agent_seconds),
        avg_customer_talk_sec=_mean(customer_seconds),
        first_call_resolution_rate=resolved / total if total else 0.0,
        calls_over_50_sec=over_50,
        calls_under_50_sec=total - over_50,
        duration_buckets=dict(buckets),
        calls_by_language=dict(by_language),
        calls_by_department=dict(by_department),
        calls_by_week=dict(sorted(by_week.items())),
        calls_by_agent=dict(by_agent),
        calls_by_status=dict(by_status),
        agent_performance={agent: _mean(scores) for agent, scores in performance.items()},
        sentiment_distribution=dict(sentiment_labels),
        talk_time_sentiment={bucket: _mean(scores) for bucket, scores in talk_sentiment.items()},
        talk_time_sentiment_counts={bucket: len(scores) for bucket, scores in talk_sentiment.items()},
    )
