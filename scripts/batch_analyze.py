"""Batch analyze every transcript in a directory and print the fleet rollup.

Each ``<name>.txt`` becomes one recording. An optional ``<name>.json`` sidecar
supplies call metadata (department, agentName, language, status, ...).

Usage:
    python scripts/batch_analyze.py --input-dir data/transcripts [--output-dir data/analyzed] [--csv]
"""

import sys
import json
import time
import asyncio
import argparse
from datetime import datetime
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from dotenv import load_dotenv
load_dotenv()

from loguru import logger

from config import settings
from config.lexicon import load_lexicon
from config.schemas import CallRecording
from analysis.metrics import message_seconds
from pipeline.orchestrator import CallAnalyzer, aggregate, segment
from pipeline.output_generator import export_to_csv, export_to_jsonl
from services.llm.client import GenerationError, get_generator


def estimate_duration(transcript: str) -> float:
    """Call length from the last message's start plus its duration."""
    messages = segment(transcript)
    if not messages:
        return 0.0
    last = messages[-1]
    return last.timestamp + message_seconds(last, settings.DEFAULT_MESSAGE_SECONDS)


def load_recording(path: Path) -> CallRecording:
    transcript = path.read_text(encoding="utf-8")
    sidecar = path.with_suffix(".json")
    metadata = json.loads(sidecar.read_text(encoding="utf-8")) if sidecar.exists() else {}

    fields = {
        "id": path.stem,
        "fileName": path.name,
        "filePath": str(path),
        "duration": estimate_duration(transcript),
        "createdAt": datetime.fromtimestamp(path.stat().st_mtime),
        "transcript": transcript,
    }
    fields.update(metadata)
    return CallRecording.model_validate(fields)


def find_transcripts(input_dir: str) -> list[Path]:
    return sorted(Path(input_dir).glob("*.txt"))


async def analyze_all(analyzer: CallAnalyzer, recordings: list[CallRecording], concurrency: int) -> list[CallRecording]:
    """Analyze concurrently. A backend failure leaves that recording unanalyzed."""
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _one(recording: CallRecording) -> CallRecording:
        async with semaphore:
            start = time.time()
            try:
                analyzed = await analyzer.analyze_recording(recording)
            except GenerationError as e:
                logger.error(f"[{recording.id}] FAILED after {time.time() - start:.1f}s: {e}")
                return recording
            logger.info(f"[{recording.id}] Completed in {time.time() - start:.1f}s")
            return analyzed

    return list(await asyncio.gather(*(_one(r) for r in recordings)))


def main():
    parser = argparse.ArgumentParser(description="Batch analyze call transcripts")
    parser.add_argument("--input-dir", required=True, help="Directory of *.txt transcripts")
    parser.add_argument("--output-dir", default="data/analyzed", help="Output directory")
    parser.add_argument("--provider", default=None, help="Backend override: gemini, openai or offline")
    parser.add_argument("--concurrency", type=int, default=settings.ANALYSIS_CONCURRENCY)
    parser.add_argument("--csv", action="store_true", help="Also write a flat CSV summary")
    args = parser.parse_args()

    logger.remove()
    logger.add(sys.stderr, level=settings.LOG_LEVEL)

    paths = find_transcripts(args.input_dir)
    logger.info(f"Found {len(paths)} transcripts in {args.input_dir}")
    if not paths:
        return

    recordings = [load_recording(p) for p in paths]
    analyzer = CallAnalyzer(get_generator(args.provider), lexicon=load_lexicon(settings.LEXICON_PATH))

    total_start = time.time()
    results = asyncio.run(analyze_all(analyzer, recordings, args.concurrency))
    total_elapsed = time.time() - total_start

    output_dir = Path(args.output_dir)
    jsonl_path = export_to_jsonl(results, str(output_dir / "recordings.jsonl"))
    if args.csv:
        export_to_csv(results, str(output_dir / "recordings.csv"))

    metrics = aggregate(results)
    rollup_path = output_dir / "rollup.json"
    with open(rollup_path, "w") as f:
        json.dump(metrics.model_dump(mode="json", by_alias=True), f, indent=2)

    # Print results table
    print(f"\n{'='*80}")
    print(f"BATCH ANALYSIS COMPLETE — {len(results)} calls in {total_elapsed:.0f}s")
    print(f"{'='*80}")
    print(f"{'Call':<36} {'Dur':>6} {'Sentiment':>10} {'Rating':>6} {'FCR':>5} {'Status':>7}")
    print("-" * 80)
    for r in results:
        a = r.analysis
        sentiment = a.sentiment_score.overall.value if a else "?"
        rating = str(a.agent_score.rating) if a else "?"
        fcr = ("yes" if a.first_call_resolution else "no") if a else "?"
        status = "success" if a else "failed"
        print(f"{r.id[:35]:<36} {r.duration:>5.0f}s {sentiment:>10} {rating:>6} {fcr:>5} {status:>7}")

    print(f"\nCalls: {metrics.total_calls}  FCR rate: {metrics.first_call_resolution_rate:.0%}")
    print(f"Avg talk time: agent {metrics.avg_agent_talk_sec:.1f}s / customer {metrics.avg_customer_talk_sec:.1f}s")
    print(f"Duration buckets: {metrics.duration_buckets}")
    print(f"Sentiment: {metrics.sentiment_distribution}")
    print(f"\nRecords saved to: {jsonl_path}")
    print(f"Rollup saved to: {rollup_path}")


if __name__ == "__main__":
    main()
