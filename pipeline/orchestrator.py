"""Engine facade — segment, analyze, aggregate.

Per call, stages run in order:
  1. Segment the transcript (unless the caller already has messages)
  2. Compute talk time locally, once
  3. Build the request and await the generation backend (the only suspension point)
  4. Interpret the reply: JSON, embedded object, text anchors or nothing
  5. Resolve every field through the fallback chain

Only stage 3 can raise (``GenerationError``). Everything after it is pure and
absorbs malformed content, so a reply always turns into a complete analysis.
"""

import asyncio
import time
from typing import Iterable, Optional

from loguru import logger

from config import settings
from config.lexicon import DEFAULT_LEXICON, Lexicon
from config.schemas import AggregateMetrics, CallAnalysis, CallRecording, TranscriptMessage
from analysis.fallback import Resolution, ResolutionContext, resolve_analysis
from analysis.metrics import compute_talk_time
from analysis.rollup import aggregate as _aggregate
from analysis.segmenter import segment as _segment
from pipeline.interpreter import interpret_response
from pipeline.prompt import build_analysis_prompt
from services.llm.client import TextGenerator, get_generator


class CallAnalyzer:
    """Runs the analysis pipeline against one generation backend and lexicon."""

    def __init__(
        self,
        generator: TextGenerator,
        lexicon: Lexicon = DEFAULT_LEXICON,
        default_message_seconds: float | None = None,
    ):
        self.generator = generator
        self.lexicon = lexicon
        self.default_message_seconds = (
            default_message_seconds if default_message_seconds is not None
            else settings.DEFAULT_MESSAGE_SECONDS
        )

    async def analyze_with_report(
        self,
        transcript: str,
        messages: Optional[list[TranscriptMessage]] = None,
    ) -> Resolution:
        """Analyze one transcript and return the analysis with per-field provenance.

        Args:
            transcript: Raw transcript text. May be empty when messages are given.
            messages: Pre-segmented messages. Segmented from the transcript when None.

        Returns:
            Resolution holding the complete CallAnalysis and the source of each field.

        Raises:
            GenerationError: If the backend cannot be reached or fails.
        """
        t0 = time.perf_counter()
        transcript = transcript or ""
        if messages is None:
            messages = _segment(transcript)
        if not transcript.strip() and messages:
            transcript = " ".join(m.text for m in messages)

        talk = compute_talk_time(messages, self.default_message_seconds)
        logger.info(
            f"Analyzing transcript: {len(transcript)} chars, {len(messages)} messages, "
            f"talk time {talk.agent_seconds:.0f}s agent / {talk.customer_seconds:.0f}s customer"
        )

        prompt = build_analysis_prompt(transcript, messages, talk.ratio, self.lexicon)
        reply = await self.generator.generate(prompt)
        interpreted = interpret_response(reply)

        ctx = ResolutionContext(
            payload=interpreted.payload,
            source=interpreted.source,
            transcript=transcript,
            messages=tuple(messages),
            talk_time=talk,
            lexicon=self.lexicon,
            default_seconds=self.default_message_seconds,
        )
        resolution = resolve_analysis(ctx)
        logger.info(f"Analysis complete via {self.generator.name} in {time.perf_counter() - t0:.2f}s")
        return resolution

    async def analyze(
        self,
        transcript: str,
        messages: Optional[list[TranscriptMessage]] = None,
    ) -> CallAnalysis:
        resolution = await self.analyze_with_report(transcript, messages)
        return resolution.analysis

    async def analyze_recording(self, recording: CallRecording) -> CallRecording:
        """Return a copy of ``recording`` with its analysis replaced wholesale.

        The input is never mutated. Re-running on the same transcript and reply
        gives the same record, so concurrent runs resolve as last-write-wins.
        """
        logger.info(f"[{recording.id}] Analyzing recording {recording.file_name or recording.id}")
        analysis = await self.analyze(recording.transcript or "")
        return recording.model_copy(update={"analysis": analysis})

    async def analyze_batch(
        self,
        recordings: Iterable[CallRecording],
        concurrency: int | None = None,
    ) -> list[CallRecording]:
        """Analyze recordings concurrently, results in input order.

        Backend failures propagate; the first ``GenerationError`` aborts the batch.
        """
        recordings = list(recordings)
        limit = max(1, concurrency or settings.ANALYSIS_CONCURRENCY)
        semaphore = asyncio.Semaphore(limit)

        async def _run(recording: CallRecording) -> CallRecording:
            async with semaphore:
                return await self.analyze_recording(recording)

        logger.info(f"Analyzing {len(recordings)} recordings (concurrency={limit})")
        return list(await asyncio.gather(*(_run(r) for r in recordings)))


# ── MODULE-LEVEL API ──

def segment(transcript: str) -> list[TranscriptMessage]:
    return _segment(transcript)


async def analyze(
    transcript: str,
    messages: Optional[list[TranscriptMessage]] = None,
    generator: TextGenerator | None = None,
    lexicon: Lexicon = DEFAULT_LEXICON,
) -> CallAnalysis:
    """One-shot analysis using the configured backend unless one is given."""
    analyzer = CallAnalyzer(generator or get_generator(), lexicon=lexicon)
    return await analyzer.analyze(transcript, messages)


def aggregate(recordings: Iterable[CallRecording]) -> AggregateMetrics:
    return _aggregate(recordings)
