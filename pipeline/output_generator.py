"""Record export — analyzed recordings to JSONL and flat CSV.

- JSONL: one camelCase CallRecording document per line, loadable back with
         ``load_recordings_jsonl``
- CSV:   one flat summary row per call (for spreadsheets / BI tools)
- Topics CSV: one row per (call, topic)

Accepts both CallRecording objects and raw camelCase dicts.
"""

import json
from pathlib import Path

import pandas as pd
from loguru import logger

from config.schemas import CallRecording


def _to_dict(record) -> dict:
    if isinstance(record, CallRecording):
        return record.model_dump(mode="json", by_alias=True)
    return record


def export_to_jsonl(recordings: list, output_path: str) -> str:
    """Export recordings as JSON Lines (one record per line)."""
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        for record in recordings:
            f.write(json.dumps(_to_dict(record), default=str) + "\n")
    logger.info(f"JSONL exported: {output_path} ({len(recordings)} records)")
    return output_path


def load_recordings_jsonl(input_path: str) -> list[CallRecording]:
    recordings = []
    with open(input_path, encoding="utf-8") as f:
        for line in f:
            if line.strip():
                recordings.append(CallRecording.model_validate_json(line))
    logger.info(f"Loaded {len(recordings)} recordings from {input_path}")
    return recordings


def export_to_csv(recordings: list, output_path: str) -> str:
    """Export recordings as a flat CSV summary."""
    rows = [_flatten_record(_to_dict(r)) for r in recordings]
    df = pd.DataFrame(rows)
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, index=False)
    logger.info(f"CSV exported: {output_path} ({len(rows)} calls)")
    return output_path


def export_topics_csv(recordings: list, output_path: str) -> str:
    """One row per topic mention across all analyzed calls."""
    rows = []
    for record in recordings:
        r = _to_dict(record)
        for topic in (r.get("analysis") or {}).get("topics", []):
            rows.append({
                "call_id": r.get("id"),
                "category": topic.get("category"),
                "count": topic.get("count"),
                "percentage": round(topic.get("percentage", 0.0), 2),
            })

    if not rows:
        return ""

    df = pd.DataFrame(rows)
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, index=False)
    logger.info(f"Topics CSV: {output_path} ({len(rows)} topic rows)")
    return output_path


def _flatten_record(r: dict) -> dict:
    """Flatten a recording (camelCase dict) into a single CSV row."""
    analysis = r.get("analysis") or {}
    sentiment = analysis.get("sentimentScore") or {}
    agent_score = analysis.get("agentScore") or {}
    performance = analysis.get("agentPerformance") or {}
    talk = analysis.get("talkTimeRatio") or {}
    highlights = analysis.get("keyHighlights") or {}
    topics = analysis.get("topics") or []
    words = analysis.get("wordCloud") or []

    top_topic = max(topics, key=lambda t: t.get("count", 0))["category"] if topics else ""

    return {
        "call_id": r.get("id"),
        "file_name": r.get("fileName"),
        "created_at": r.get("createdAt"),
        "duration_sec": r.get("duration"),
        "language": r.get("language") or analysis.get("detectedLanguage"),
        "department": r.get("department"),
        "agent_name": r.get("agentName"),
        "status": r.get("status"),
        "analyzed": bool(analysis),
        "sentiment": sentiment.get("overall"),
        "sentiment_score": sentiment.get("score"),
        "agent_rating": agent_score.get("rating"),
        "greeting": performance.get("greeting"),
        "problem_solving": performance.get("problemSolving"),
        "closing": performance.get("closing"),
        "agent_talk_pct": talk.get("agentPercentage"),
        "customer_talk_pct": talk.get("customerPercentage"),
        "agent_talk_sec": analysis.get("agentTalkSeconds"),
        "customer_talk_sec": analysis.get("customerTalkSeconds"),
        "first_call_resolution": analysis.get("firstCallResolution", r.get("firstCallResolution")),
        "agent_sentiment": analysis.get("agentSentiment"),
        "top_topic": top_topic,
        "num_topics": len(topics),
        "top_words": " ".join(w.get("word", "") for w in words[:5]),
        "issue": highlights.get("issue"),
        "resolution": highlights.get("resolution"),
        "summary": highlights.get("summary"),
    }
