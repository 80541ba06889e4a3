"""Tests for the injectable keyword lexicon."""

import json

import pydantic
import pytest

from config.lexicon import DEFAULT_LEXICON, load_lexicon
from analysis.reconstruction import extract_topics


class TestLexicon:
    def test_default_when_no_path(self):
        assert load_lexicon("") is DEFAULT_LEXICON
        assert load_lexicon(None) is DEFAULT_LEXICON

    def test_frozen(self):
        with pytest.raises(pydantic.ValidationError):
            DEFAULT_LEXICON.fallback_topic = "Other"

    def test_override_merges_with_defaults(self, tmp_path):
        path = tmp_path / "lexicon.json"
        path.write_text(json.dumps({
            "fallback_topic": "General",
            "topic_taxonomy": {"Roaming": ["roaming", "abroad"]},
        }))
        lexicon = load_lexicon(str(path))

        assert lexicon.fallback_topic == "General"
        assert lexicon.topic_taxonomy == (("Roaming", ("roaming", "abroad")),)
        assert lexicon.stop_words == DEFAULT_LEXICON.stop_words
        assert [t.category for t in extract_topics("charged for roaming abroad", lexicon)] == ["Roaming"]

    def test_list_form_taxonomy(self, tmp_path):
        path = tmp_path / "lexicon.json"
        path.write_text(json.dumps({"topic_taxonomy": [["Fees", ["fee"]]]}))
        assert load_lexicon(str(path)).topic_taxonomy == (("Fees", ("fee",)),)
