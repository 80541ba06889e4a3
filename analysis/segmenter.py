"""Transcript segmentation — raw speaker-tagged text to ordered messages.

Recognised marker: ``[hh:mm:ss] SPEAKER: text`` (hours optional). Lines without a
marker continue the current message. Text with no markers at all becomes a single
message attributed to the default speaker.
"""

import re

from loguru import logger

from config.schemas import TranscriptMessage

LINE_RE = re.compile(
    r"^\[(?:(\d{1,2}):)?(\d{1,2}):(\d{2})\]\s*([A-Za-z][\w .'-]*?)\s*:\s*(.*)$"
)

DEFAULT_SPEAKER = "agent"


def parse_timestamp(hh: str | None, mm: str, ss: str) -> float:
    return float(int(hh or 0) * 3600 + int(mm) * 60 + int(ss))


def segment(transcript: str) -> list[TranscriptMessage]:
    """Split a transcript into messages.

    Returns an empty list for empty input and a single ``agent`` message when the
    text carries no timestamp/speaker markers.
    """
    if not transcript or not transcript.strip():
        return []

    messages: list[TranscriptMessage] = []
    speaker: str | None = None
    start = 0.0
    parts: list[str] = []

    def _flush():
        text = " ".join(parts).strip()
        if speaker is not None and text:
            messages.append(TranscriptMessage(speaker=speaker, text=text, timestamp=start))

    for line in transcript.splitlines():
        stripped = line.strip()
        if not stripped:
            continue

        m = LINE_RE.match(stripped)
        if m:
            _flush()
            hh, mm, ss, tag, content = m.groups()
            speaker = tag.strip().lower()
            start = parse_timestamp(hh, mm, ss)
            parts = [content.strip()] if content.strip() else []
        elif speaker is not None:
            parts.append(stripped)

    _flush()

    if not messages:
        logger.info("No speaker markers found, treating transcript as a single message")
        return [TranscriptMessage(speaker=DEFAULT_SPEAKER, text=transcript.strip(), timestamp=0.0)]

    logger.info(f"Segmented transcript into {len(messages)} messages")
    return messages
