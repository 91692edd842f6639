import json
from types import SimpleNamespace

import llm_analyzer
from llm_analyzer import analyze_open_text, lexicon_sentiment

ANSWERS = [
    {"text": "Great support, very helpful", "response_id": "r1"},
    {"text": "The export is slow and confusing", "response_id": "r2"},
    {"text": "It works", "response_id": "r3"},
]


class FakeCompletions:
    def __init__(self, content=None, exc=None):
        self.content = content
        self.exc = exc
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.exc:
            raise self.exc
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=self.content))])


def _fake_client(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def test_no_answers_no_topics():
    assert analyze_open_text([]) == []


def test_lexicon_sentiment():
    assert lexicon_sentiment("Great support, very helpful") == "positive"
    assert lexicon_sentiment("slow and confusing") == "negative"
    assert lexicon_sentiment("It works") == "neutral"


def test_fallback_without_api_key(monkeypatch):
    monkeypatch.setattr(llm_analyzer, "_client", None)
    topics = analyze_open_text(ANSWERS)
    assert len(topics) == 1
    assert topics[0]["topic"] == "General Feedback"
    assert topics[0]["count"] == 3
    assert [r["sentiment"] for r in topics[0]["responses"]] == ["positive", "negative", "neutral"]


def test_model_output_is_used_and_cleaned(monkeypatch):
    content = json.dumps({"topics": [
        {"topic": "Support", "count": 9, "responses": [
            {"text": "Great support, very helpful", "response_id": "r1", "sentiment": "positive"},
            {"text": "made up", "response_id": "r99", "sentiment": "negative"},
        ]},
        {"topic": "Export speed", "responses": [
            {"text": "The export is slow and confusing", "response_id": "r2", "sentiment": "angry"},
        ]},
        {"topic": "", "responses": [{"response_id": "r3"}]},
    ]})
    completions = FakeCompletions(content=content)
    monkeypatch.setattr(llm_analyzer, "_client", _fake_client(completions))

    topics = analyze_open_text(ANSWERS)
    assert [t["topic"] for t in topics] == ["Support", "Export speed"]
    assert topics[0]["count"] == 1
    assert topics[1]["responses"][0]["sentiment"] == "neutral"
    assert completions.calls[0]["response_format"] == {"type": "json_object"}


def test_unparseable_model_output_falls_back(monkeypatch):
    monkeypatch.setattr(llm_analyzer, "_client", _fake_client(FakeCompletions(content="not json")))
    topics = analyze_open_text(ANSWERS)
    assert topics[0]["topic"] == "General Feedback"


def test_api_error_falls_back(monkeypatch):
    completions = FakeCompletions(exc=ValueError("boom"))
    monkeypatch.setattr(llm_analyzer, "_client", _fake_client(completions))
    assert analyze_open_text(ANSWERS)[0]["count"] == 3
