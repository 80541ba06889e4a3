"""Immutable keyword lists read by every heuristic.

The engine never reaches for module constants directly; it receives a ``Lexicon``
so tests and other locales can substitute their own lists. ``load_lexicon`` reads
a JSON file with any subset of the fields and fills the rest from the defaults.
"""

import json
from pathlib import Path

from loguru import logger
from pydantic import BaseModel, ConfigDict


class Lexicon(BaseModel):
    model_config = ConfigDict(frozen=True)

    positive_words: tuple[str, ...]
    negative_words: tuple[str, ...]
    issue_keywords: tuple[str, ...]
    resolution_keywords: tuple[str, ...]
    # Words in a resolution text that mark the call as resolved on first contact
    fcr_markers: tuple[str, ...]
    stop_words: frozenset[str]
    # Ordered (category, keywords) pairs; order is the output order of topics
    topic_taxonomy: tuple[tuple[str, tuple[str, ...]], ...]
    fallback_topic: str
    # Literal filler the backend returns instead of real highlights
    placeholder_issue: str
    placeholder_resolution: str
    placeholder_summary: str


_STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "with", "by", "from", "as", "is", "was", "are", "were", "been", "be", "have",
    "has", "had", "do", "does", "did", "will", "would", "should", "could", "may",
    "might", "must", "can", "this", "that", "these", "those", "i", "you", "he",
    "she", "it", "we", "they", "me", "him", "her", "us", "them", "my", "your",
    "his", "its", "our", "their", "what", "which", "who", "whom", "whose", "where",
    "when", "why", "how", "all", "each", "every", "both", "few", "more", "most",
    "other", "some", "such", "no", "nor", "not", "only", "own", "same", "so",
    "than", "too", "very", "just", "now", "then", "here", "there",
})


DEFAULT_LEXICON = Lexicon(
    positive_words=(
        "thank", "great", "perfect", "happy", "good", "excellent",
        "satisfied", "pleased", "appreciate",
    ),
    negative_words=(
        "problem", "issue", "delayed", "urgent", "angry", "frustrated",
        "disappointed", "wrong", "bad", "terrible",
    ),
    issue_keywords=("problem", "issue", "complaint", "concern", "wrong", "error", "mistake"),
    resolution_keywords=("resolved", "fixed", "solved", "completed", "done", "agreed", "confirmed"),
    fcr_markers=("resolved", "fixed", "solved"),
    stop_words=_STOP_WORDS,
    topic_taxonomy=(
        ("Product Quality", ("quality", "defect", "broken", "damaged", "faulty", "issue with product")),
        ("Delivery Time", ("delivery", "shipping", "arrive", "late", "delay", "timeframe")),
        ("Price", ("price", "cost", "expensive", "cheap", "discount", "refund", "payment")),
        ("Billing", ("bill", "invoice", "charge", "billing", "payment", "transaction")),
        ("Technical Support", ("technical", "support", "help", "assistance", "troubleshoot", "error")),
        ("Customer Service", ("service", "complaint", "satisfaction", "experience", "support")),
        ("Warranty", ("warranty", "guarantee", "return", "exchange", "replacement")),
        ("Account", ("account", "login", "password", "access", "profile")),
    ),
    fallback_topic="Customer Service",
    placeholder_issue="Issue identified in call",
    placeholder_resolution="Resolution discussed",
    placeholder_summary="Call summary",
)


def load_lexicon(path: str | None = None) -> Lexicon:
    """Load a lexicon override from JSON, merged over ``DEFAULT_LEXICON``.

    ``topic_taxonomy`` may be given either as ``{"Category": [keywords]}`` or as a
    list of ``[category, [keywords]]`` pairs.
    """
    if not path:
        return DEFAULT_LEXICON

    data = json.loads(Path(path).read_text(encoding="utf-8"))
    taxonomy = data.get("topic_taxonomy")
    if isinstance(taxonomy, dict):
        data["topic_taxonomy"] = [(name, tuple(words)) for name, words in taxonomy.items()]

    merged = {**DEFAULT_LEXICON.model_dump(), **data}
    lexicon = Lexicon.model_validate(merged)
    logger.info(
        f"Lexicon loaded from {path} "
        f"({len(lexicon.topic_taxonomy)} topics, {len(lexicon.stop_words)} stop words)"
    )
    return lexicon
