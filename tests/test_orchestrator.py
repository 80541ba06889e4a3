"""End-to-end tests for the analysis engine with scripted backends (no network)."""

import asyncio
import json
import math
from datetime import datetime

import pytest

from config.schemas import CallAnalysis, CallRecording, TopicMention, TranscriptMessage
from analysis.fallback import Provenance
from pipeline.orchestrator import CallAnalyzer, analyze, segment
from services.llm.client import GenerationError, OfflineGenerator

SCENARIO_TRANSCRIPT = (
    "AGENT: Thank you for calling. CUSTOMER: I have a problem with my order. "
    "AGENT: I understand, let me fix that for you."
)

TIMED_TRANSCRIPT = (
    "[00:00:00] Agent: Good morning, thank you for calling. How can I help?\n"
    "[00:00:06] Customer: My delivery is delayed again and I am frustrated.\n"
    "[00:00:15] Agent: I am sorry. I have escalated the shipping and the issue is resolved now.\n"
    "[00:00:24] Customer: Perfect, thanks."
)


class ScriptedGenerator:
    """Returns a fixed reply and records every prompt it was given."""

    name = "scripted"

    def __init__(self, reply: str = "", error: Exception | None = None, delay: float = 0.0):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.prompts: list[str] = []
        self.active = 0
        self.max_active = 0

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error:
                raise self.error
            return self.reply
        finally:
            self.active -= 1


def _make_recording(call_id: str, transcript: str = TIMED_TRANSCRIPT) -> CallRecording:
    return CallRecording(id=call_id, file_name=f"{call_id}.wav", created_at=datetime(2026, 3, 2, 10, 0), transcript=transcript)


def _valid_reply(**overrides) -> str:
    payload = {
        "sentimentScore": {"overall": "Positive", "score": 0.75},
        "keyHighlights": {
            "issue": "Repeated delivery delay",
            "resolution": "Shipping escalated, issue resolved",
            "summary": "Customer reported a delayed delivery which the agent escalated.",
        },
        "agentScore": {"rating": 8, "professionalism": "Polite", "efficiency": "Fast"},
        "sentimentTrend": {"dataPoints": [{"timestamp": 0, "sentiment": 0.1}, {"timestamp": 12, "sentiment": -0.5},
                                          {"timestamp": 24, "sentiment": 0.8}]},
        "topics": [{"category": "Delivery Time", "count": 4, "percentage": 100}],
        "agentPerformance": {"greeting": 9, "problemSolving": 8, "closing": 8},
        "detectedLanguage": "English",
        "agentSentiment": "Positive",
        "firstCallResolution": True,
    }
    payload.update(overrides)
    return json.dumps(payload)


def _assert_complete(analysis: CallAnalysis):
    assert 0.0 <= analysis.sentiment_score.score <= 1.0
    assert 1 <= analysis.agent_score.rating <= 10
    perf = analysis.agent_performance
    assert all(0.0 <= v <= 10.0 for v in (perf.greeting, perf.problem_solving, perf.closing))
    assert len(analysis.sentiment_trend.data_points) >= 3
    assert all(-1.0 <= p.sentiment <= 1.0 for p in analysis.sentiment_trend.data_points)
    assert analysis.topics
    assert sum(t.percentage for t in analysis.topics) == pytest.approx(100.0)
    assert len(analysis.word_cloud) <= 30
    assert analysis.key_highlights.issue and analysis.key_highlights.resolution and analysis.key_highlights.summary
    assert analysis.first_call_resolution is not None
    assert all(math.isfinite(p.timestamp) and p.timestamp >= 0 for p in analysis.sentiment_trend.data_points)
    assert CallAnalysis.model_validate_json(analysis.model_dump_json(by_alias=True)) == analysis


# ── Completeness for any backend behavior ──

REPLIES = [
    _valid_reply(),
    "```json\n" + _valid_reply() + "\n```",
    "Here you go: " + _valid_reply() + " Let me know!",
    _valid_reply()[:120],
    _valid_reply(agentScore={"rating": 42}, sentimentScore={"overall": "POSITIVE", "score": 7},
                 agentPerformance={"greeting": 15, "problemSolving": -2, "closing": 3}),
    json.dumps({"keyHighlights": {"issue": "Issue identified in call", "resolution": "Resolution discussed",
                                  "summary": "Call summary"}, "topics": []}),
    "sentiment: Negative\nrating: 3\nsummary: Customer upset about delays",
    "I'm sorry, I can't help with that.",
    "",
    "null",
    "[]",
    # json.dumps writes NaN / Infinity literals, which json.loads accepts back
    _valid_reply(agentScore={"rating": float("nan")}),
    _valid_reply(agentScore={"rating": float("inf")}),
    _valid_reply(agentScore={"rating": 10 ** 400}),
    _valid_reply(sentimentScore={"overall": "Positive", "score": float("-inf")}),
    _valid_reply(topics=[{"category": "Billing", "count": float("nan")}]),
    _valid_reply(topics=[{"category": "Billing", "count": 10 ** 400}]),
    _valid_reply(agentPerformance={"greeting": float("nan"), "problemSolving": 8, "closing": 8}),
    _valid_reply(sentimentTrend={"dataPoints": [{"timestamp": float("inf"), "sentiment": 0.1}]}),
    _valid_reply(sentimentTrend={"dataPoints": [{"timestamp": 3, "sentiment": float("nan")}]}),
]


class TestCompleteness:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", REPLIES)
    async def test_always_complete_and_in_range(self, reply):
        analysis = await CallAnalyzer(ScriptedGenerator(reply)).analyze(TIMED_TRANSCRIPT)
        _assert_complete(analysis)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", REPLIES)
    async def test_degenerate_transcript_complete(self, reply):
        analysis = await CallAnalyzer(ScriptedGenerator(reply)).analyze("   ")
        _assert_complete(analysis)

    @pytest.mark.asyncio
    async def test_deterministic(self):
        reply = "sentiment: Positive\nrating: 7"
        first = await CallAnalyzer(ScriptedGenerator(reply)).analyze(TIMED_TRANSCRIPT)
        second = await CallAnalyzer(ScriptedGenerator(reply)).analyze(TIMED_TRANSCRIPT)
        assert first == second

    @pytest.mark.asyncio
    async def test_round_trip(self):
        analysis = await CallAnalyzer(ScriptedGenerator(_valid_reply())).analyze(TIMED_TRANSCRIPT)
        restored = CallAnalysis.model_validate_json(analysis.model_dump_json(by_alias=True))
        assert restored == analysis

    @pytest.mark.asyncio
    async def test_serialized_keys_are_camel_case(self):
        analysis = await CallAnalyzer(OfflineGenerator()).analyze(TIMED_TRANSCRIPT)
        data = analysis.model_dump(by_alias=True)
        assert {"sentimentScore", "keyHighlights", "talkTimeRatio", "wordCloud", "firstCallResolution"} <= set(data)
        assert "problemSolving" in data["agentPerformance"]


# ── Behavioral scenarios ──

class TestScenarios:
    @pytest.mark.asyncio
    async def test_text_reply_without_timestamps(self):
        gen = ScriptedGenerator("sentiment: Positive\nThe agent handled it well.\nrating: 8")
        analysis = await CallAnalyzer(gen).analyze(SCENARIO_TRANSCRIPT)

        assert analysis.sentiment_score.overall.value == "Positive"
        assert analysis.agent_score.rating == 8
        assert "problem" in analysis.key_highlights.issue
        assert analysis.topics

    @pytest.mark.asyncio
    async def test_placeholder_summary_rejected(self):
        highlights = {"issue": "Delayed delivery", "resolution": "Escalated", "summary": "Call summary"}
        analysis = await CallAnalyzer(ScriptedGenerator(_valid_reply(keyHighlights=highlights))).analyze(TIMED_TRANSCRIPT)
        assert analysis.key_highlights.summary != "Call summary"
        assert "thank you for calling" in analysis.key_highlights.summary.lower()

    @pytest.mark.asyncio
    async def test_empty_transcript_definitional_defaults(self):
        analysis = await CallAnalyzer(OfflineGenerator()).analyze("")

        assert analysis.topics == [TopicMention(category="Customer Service", count=1, percentage=100.0)]
        assert analysis.word_cloud == []
        points = analysis.sentiment_trend.data_points
        assert len(points) == 3
        assert all(p.sentiment == 0.0 for p in points)
        assert analysis.loudness_trend == []

    @pytest.mark.asyncio
    async def test_backend_talk_time_ignored(self):
        reply = _valid_reply(talkTimeRatio={"agentPercentage": 95, "customerPercentage": 5})
        analysis = await CallAnalyzer(ScriptedGenerator(reply)).analyze(TIMED_TRANSCRIPT)
        assert analysis.talk_time_ratio.agent_percentage == pytest.approx(50.0)
        assert analysis.agent_talk_seconds == 10.0
        assert analysis.customer_talk_seconds == 10.0

    @pytest.mark.asyncio
    async def test_talk_time_sent_to_backend(self):
        gen = ScriptedGenerator()
        messages = [
            TranscriptMessage(speaker="agent", text="Hello there", duration=30),
            TranscriptMessage(speaker="customer", text="Hi", duration=10),
        ]
        analysis = await CallAnalyzer(gen).analyze("", messages)
        assert "Agent: 75.0%" in gen.prompts[0]
        assert "Customer: 25.0%" in gen.prompts[0]
        assert analysis.agent_talk_seconds == 30
        # Transcript text falls back to the messages
        assert [w.word for w in analysis.word_cloud] == ["hello"]

    @pytest.mark.asyncio
    async def test_default_message_seconds_configurable(self):
        analysis = await CallAnalyzer(OfflineGenerator(), default_message_seconds=2.0).analyze(TIMED_TRANSCRIPT)
        assert analysis.agent_talk_seconds == 4.0
        assert analysis.loudness_trend[-1].timestamp == 8.0

    @pytest.mark.asyncio
    async def test_report_provenance(self):
        resolution = await CallAnalyzer(OfflineGenerator()).analyze_with_report(TIMED_TRANSCRIPT)
        assert resolution.sources["word_cloud"] == Provenance.LOCAL
        assert resolution.sources["agent_score"] == Provenance.DEFAULT
        assert resolution.sources["key_highlights"] == Provenance.HEURISTIC
        assert resolution.analysis.first_call_resolution is True


# ── Infrastructure failures ──

class TestFailures:
    @pytest.mark.asyncio
    async def test_generation_error_propagates(self):
        gen = ScriptedGenerator(error=GenerationError("timeout"))
        with pytest.raises(GenerationError):
            await CallAnalyzer(gen).analyze(TIMED_TRANSCRIPT)

    @pytest.mark.asyncio
    async def test_batch_aborts_on_generation_error(self):
        gen = ScriptedGenerator(error=GenerationError("down"))
        with pytest.raises(GenerationError):
            await CallAnalyzer(gen).analyze_batch([_make_recording("a"), _make_recording("b")])


# ── Recordings & batches ──

class TestRecordings:
    @pytest.mark.asyncio
    async def test_analyze_recording_returns_new_record(self):
        original = _make_recording("call-1")
        updated = await CallAnalyzer(ScriptedGenerator(_valid_reply())).analyze_recording(original)

        assert original.analysis is None
        assert updated.analysis is not None
        assert updated.id == "call-1"
        assert updated.transcript == original.transcript

    @pytest.mark.asyncio
    async def test_reanalysis_replaces_wholesale(self):
        first = await CallAnalyzer(ScriptedGenerator(_valid_reply())).analyze_recording(_make_recording("c"))
        second = await CallAnalyzer(OfflineGenerator()).analyze_recording(first)
        assert second.analysis.agent_score.rating == 5
        assert first.analysis.agent_score.rating == 8

    @pytest.mark.asyncio
    async def test_missing_transcript(self):
        recording = CallRecording(id="empty", created_at=datetime(2026, 1, 1))
        updated = await CallAnalyzer(OfflineGenerator()).analyze_recording(recording)
        _assert_complete(updated.analysis)

    @pytest.mark.asyncio
    async def test_batch_preserves_order_and_limits_concurrency(self):
        gen = ScriptedGenerator(_valid_reply(), delay=0.01)
        recordings = [_make_recording(f"call-{i}") for i in range(6)]
        results = await CallAnalyzer(gen).analyze_batch(recordings, concurrency=2)

        assert [r.id for r in results] == [f"call-{i}" for i in range(6)]
        assert all(r.analysis is not None for r in results)
        assert gen.max_active <= 2
        assert len(gen.prompts) == 6


# ── Module-level API ──

class TestModuleApi:
    def test_segment(self):
        assert len(segment(TIMED_TRANSCRIPT)) == 4

    @pytest.mark.asyncio
    async def test_analyze_with_explicit_generator(self):
        analysis = await analyze(TIMED_TRANSCRIPT, generator=OfflineGenerator())
        _assert_complete(analysis)
