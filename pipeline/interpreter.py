"""Turns freeform backend text into a candidate payload.

Order of attempts:
1. Fenced block (```json ... ``` or bare ```), else the whole text, decoded as JSON
2. First balanced ``{...}`` object embedded in the text
3. ``label: value`` anchors scraped from the raw text

Nothing here raises on bad content. When all three come up empty the result is
``PayloadSource.NONE`` and the fallback engine rebuilds every field itself.
"""

import json
import re
from dataclasses import dataclass, field

from loguru import logger

from config.schemas import PayloadSource
from analysis.fallback import GENERIC_EFFICIENCY, GENERIC_PROFESSIONALISM

_FENCE_RE = re.compile(r"```[A-Za-z0-9_-]*[ \t]*\n?(.*?)```", re.DOTALL)

_LABELS = r"(positive|neutral|negative)"
_NUMBER = r"(\d+(?:\.\d+)?)"

SENTIMENT_RE = re.compile(
    rf"(?<!agent )(?<!agent_)\b(?:overall|sentiment)\b[\"'\s:=]+{_LABELS}\b", re.IGNORECASE
)
SENTIMENT_SCORE_RE = re.compile(rf"\bsentiment[ _]?score\b[\"'\s:=]+{_NUMBER}", re.IGNORECASE)
RATING_RE = re.compile(rf"\brating\b[\"'\s:=]+{_NUMBER}", re.IGNORECASE)
ISSUE_RE = re.compile(r"\b(?:issue|problem)\b\s*[:=]\s*(.+?)\s*(?:\n|$)", re.IGNORECASE)
RESOLUTION_RE = re.compile(r"\b(?:resolution|solution)\b\s*[:=]\s*(.+?)\s*(?:\n|$)", re.IGNORECASE)
SUMMARY_RE = re.compile(r"\bsummary\b\s*[:=]\s*(.+?)\s*(?:\n\n|$)", re.IGNORECASE | re.DOTALL)
TOPIC_RE = re.compile(
    r"\b(?:topic|category)\b\s*[:=]\s*([A-Za-z][A-Za-z &/-]*?)\s*[:(,-]\s*(\d+)", re.IGNORECASE
)
GREETING_RE = re.compile(rf"\bgreeting\b[\"'\s:=]+{_NUMBER}", re.IGNORECASE)
PROBLEM_SOLVING_RE = re.compile(rf"\bproblem[\s_-]?solving\b[\"'\s:=]+{_NUMBER}", re.IGNORECASE)
CLOSING_RE = re.compile(rf"\bclosing\b[\"'\s:=]+{_NUMBER}", re.IGNORECASE)
LANGUAGE_RE = re.compile(r"\b(?:detected[ _]?)?language\b[\"'\s]*[:=]\s*\"?([A-Za-z]+)", re.IGNORECASE)
AGENT_SENTIMENT_RE = re.compile(rf"\bagent[ _]?sentiment\b[\"'\s:=]+{_LABELS}\b", re.IGNORECASE)
FCR_RE = re.compile(
    r"\bfirst[ _-]?call[ _-]?resolution\b[\"'\s]*[:=]\s*\"?(true|false|yes|no)\b", re.IGNORECASE
)


@dataclass
class InterpretedResponse:
    payload: dict = field(default_factory=dict)
    source: PayloadSource = PayloadSource.NONE
    raw_text: str = ""


def extract_candidate(text: str) -> str:
    """Fenced block content if the reply has one, else the whole reply."""
    m = _FENCE_RE.search(text)
    if m:
        return m.group(1).strip()
    return text.strip()


def _find_balanced_object(text: str) -> str | None:
    start = text.find("{")
    if start == -1:
        return None
    depth = 0
    in_string = False
    escaped = False
    for i, char in enumerate(text[start:], start):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def decode_payload(text: str) -> dict | None:
    """Structural decode. Returns None unless a JSON object comes out."""
    candidate = extract_candidate(text)
    if not candidate:
        return None

    try:
        data = json.loads(candidate)
        if isinstance(data, dict):
            return data
    except json.JSONDecodeError:
        pass

    embedded = _find_balanced_object(candidate)
    if embedded:
        try:
            data = json.loads(embedded)
            if isinstance(data, dict):
                return data
        except json.JSONDecodeError:
            pass
    return None


def _to_bool(value: str) -> bool:
    return value.lower() in ("true", "yes")


def extract_from_text(content: str) -> dict:
    """Scrape ``label: value`` anchors into a partial payload shaped like the JSON one."""
    payload: dict = {}

    sentiment = SENTIMENT_RE.search(content)
    score = SENTIMENT_SCORE_RE.search(content)
    if sentiment or score:
        payload["sentimentScore"] = {
            "overall": sentiment.group(1) if sentiment else "Neutral",
            "score": float(score.group(1)) if score else 0.5,
        }

    rating = RATING_RE.search(content)
    if rating:
        payload["agentScore"] = {
            "rating": float(rating.group(1)),
            "professionalism": GENERIC_PROFESSIONALISM,
            "efficiency": GENERIC_EFFICIENCY,
        }

    highlights = {}
    for key, pattern in (("issue", ISSUE_RE), ("resolution", RESOLUTION_RE), ("summary", SUMMARY_RE)):
        m = pattern.search(content)
        if m and m.group(1).strip():
            highlights[key] = m.group(1).strip()
    if highlights:
        payload["keyHighlights"] = highlights

    topics = [
        {"category": m.group(1).strip(), "count": int(m.group(2))}
        for m in TOPIC_RE.finditer(content)
    ]
    if topics:
        payload["topics"] = topics

    performance = {}
    for key, pattern in (("greeting", GREETING_RE), ("problemSolving", PROBLEM_SOLVING_RE), ("closing", CLOSING_RE)):
        m = pattern.search(content)
        if m:
            performance[key] = float(m.group(1))
    if performance:
        payload["agentPerformance"] = {"greeting": 7.0, "problemSolving": 7.0, "closing": 7.0, **performance}

    language = LANGUAGE_RE.search(content)
    if language:
        payload["detectedLanguage"] = language.group(1).capitalize()

    agent_sentiment = AGENT_SENTIMENT_RE.search(content)
    if agent_sentiment:
        payload["agentSentiment"] = agent_sentiment.group(1).capitalize()

    fcr = FCR_RE.search(content)
    if fcr:
        payload["firstCallResolution"] = _to_bool(fcr.group(1))

    return payload


def interpret_response(content: str | None) -> InterpretedResponse:
    """Turn the backend's reply into a payload plus the path that produced it."""
    raw = content or ""
    if not raw.strip():
        logger.warning("Backend returned an empty reply, rebuilding analysis from transcript")
        return InterpretedResponse(payload={}, source=PayloadSource.NONE, raw_text=raw)

    decoded = decode_payload(raw)
    if decoded is not None:
        logger.info(f"Decoded JSON payload with {len(decoded)} top-level fields")
        return InterpretedResponse(payload=decoded, source=PayloadSource.JSON, raw_text=raw)

    logger.warning("Backend reply is not valid JSON, falling back to text anchors")
    scraped = extract_from_text(raw)
    if scraped:
        logger.info(f"Text anchors recovered: {', '.join(sorted(scraped))}")
        return InterpretedResponse(payload=scraped, source=PayloadSource.TEXT, raw_text=raw)

    logger.warning("No usable content in backend reply, using heuristics and defaults")
    return InterpretedResponse(payload={}, source=PayloadSource.NONE, raw_text=raw)
