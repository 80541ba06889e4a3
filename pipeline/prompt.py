"""Builds the single analysis instruction sent to the generation backend.

Talk-time percentages are computed locally and handed to the model as fixed facts.
"""

from config.lexicon import Lexicon
from config.schemas import TalkTimeRatio, TranscriptMessage


RESPONSE_SCHEMA = """{
  "sentimentScore": {"overall": "Positive|Neutral|Negative", "score": 0.0-1.0},
  "keyHighlights": {
    "issue": "Brief description of the main issue",
    "resolution": "How the issue was resolved",
    "summary": "Overall summary of the call"
  },
  "agentScore": {"rating": 1-10, "professionalism": "Brief assessment", "efficiency": "Brief assessment"},
  "sentimentTrend": {"dataPoints": [{"timestamp": 0.0, "sentiment": -1.0 to 1.0}, ...]},
  "topics": [{"category": "Billing", "count": 3}, ...],
  "agentPerformance": {"greeting": 0-10, "problemSolving": 0-10, "closing": 0-10},
  "detectedLanguage": "English|Spanish|French|etc",
  "agentSentiment": "Positive|Neutral|Negative",
  "firstCallResolution": true|false
}"""


def format_timestamp(seconds: float) -> str:
    total = int(seconds)
    return f"{total // 3600:02d}:{total % 3600 // 60:02d}:{total % 60:02d}"


def format_breakdown(messages: list[TranscriptMessage]) -> str:
    return "\n".join(
        f"{m.speaker.upper()}: {m.text} [{format_timestamp(m.timestamp)}]"
        for m in messages
    )


def build_analysis_prompt(
    transcript: str,
    messages: list[TranscriptMessage],
    talk_time: TalkTimeRatio,
    lexicon: Lexicon,
) -> str:
    categories = ", ".join(category for category, _ in lexicon.topic_taxonomy)
    return (
        "Analyze the following customer service call transcript and provide a "
        "comprehensive analysis in JSON format.\n\n"
        f"TRANSCRIPT:\n{transcript}\n\n"
        f"MESSAGES BREAKDOWN:\n{format_breakdown(messages)}\n\n"
        "TALK TIME (measured, do not recompute):\n"
        f"Agent: {talk_time.agent_percentage:.1f}%\n"
        f"Customer: {talk_time.customer_percentage:.1f}%\n\n"
        "Respond with a single JSON object in exactly this format:\n"
        f"{RESPONSE_SCHEMA}\n\n"
        "Generate sentiment trend data points at regular intervals throughout the call (timestamps in seconds).\n"
        f"Identify all topics mentioned and categorize them ({categories}, or another short label).\n"
        "Rate agent performance on greeting, problem solving, and closing skills.\n"
        "Write the issue, resolution and summary from what was actually said; never leave them generic.\n"
        "Detect the language of the conversation and the agent's overall sentiment.\n"
        "Determine if this was a first call resolution (issue resolved in a single call).\n"
        "Output ONLY the JSON object, nothing else."
    )
