# LLM-based topic and sentiment grouping of open-text answers
from __future__ import annotations

import json
import logging
import re

from openai import OpenAI, APIConnectionError, APIStatusError, RateLimitError

from config import settings

logger = logging.getLogger(__name__)

_client = None
if settings.openai_api_key:
    _client = OpenAI(api_key=settings.openai_api_key)

SENTIMENTS = ("positive", "neutral", "negative")
FALLBACK_TOPIC = "General Feedback"

_POSITIVE_WORDS = {
    "good", "great", "excellent", "love", "loved", "like", "helpful", "happy", "easy",
    "fast", "friendly", "amazing", "awesome", "perfect", "nice", "recommend", "satisfied",
}
_NEGATIVE_WORDS = {
    "bad", "poor", "terrible", "hate", "slow", "difficult", "hard", "confusing", "broken",
    "awful", "worst", "rude", "expensive", "disappointed", "unhappy", "bug", "problem",
}

_SYSTEM_PROMPT = (
    "You group survey answers by topic and rate sentiment. Output ONLY JSON: "
    '{"topics": [{"topic": string, "count": number, "responses": '
    '[{"text": string, "response_id": string, "sentiment": "positive"|"neutral"|"negative"}]}]}. '
    "Topics are 2-4 words, 3-7 topics at most. "
    "An answer may appear under several topics; every answer appears at least once."
)


def lexicon_sentiment(text: str) -> str:
    """Rough word-list sentiment used when no model is available."""
    words = re.findall(r"[a-z']+", (text or "").lower())
    score = sum(w in _POSITIVE_WORDS for w in words) - sum(w in _NEGATIVE_WORDS for w in words)
    if score > 0:
        return "positive"
    if score < 0:
        return "negative"
    return "neutral"


def _fallback(text_responses: list[dict]) -> list[dict]:
    return [{
        "topic": FALLBACK_TOPIC,
        "count": len(text_responses),
        "responses": [
            {"text": r["text"], "response_id": r["response_id"], "sentiment": lexicon_sentiment(r["text"])}
            for r in text_responses
        ],
    }]


def _clean_topics(raw_topics, known_ids: set[str]) -> list[dict]:
    """Keep only well-formed topics that reference answers we sent."""
    topics = []
    for t in raw_topics or []:
        name = str(t.get("topic", "")).strip()
        if not name:
            continue
        responses = []
        for r in t.get("responses") or []:
            rid = str(r.get("response_id", ""))
            if rid not in known_ids:
                continue
            sentiment = r.get("sentiment")
            responses.append({
                "text": str(r.get("text", "")),
                "response_id": rid,
                "sentiment": sentiment if sentiment in SENTIMENTS else "neutral",
            })
        if responses:
            topics.append({"topic": name, "count": len(responses), "responses": responses})
    return topics


def analyze_open_text(text_responses: list[dict]) -> list[dict]:
    """
    Group answers ({"text", "response_id"}) into topics with per-answer sentiment.
    Falls back to a single "General Feedback" topic if:
    - no OPENAI_API_KEY
    - API errors / rate limits
    - the model returns unusable JSON
    """
    if not text_responses:
        return []

    if not _client:
        return _fallback(text_responses)

    combined = "\n\n".join(f"Response {r['response_id']}: {r['text']}" for r in text_responses)
    try:
        resp = _client.chat.completions.create(
            model=settings.llm_model,
            temperature=0.3,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": f"Analyze these survey responses:\n\n{combined}"},
            ],
        )
        data = json.loads(resp.choices[0].message.content)
        topics = _clean_topics(data.get("topics"), {r["response_id"] for r in text_responses})
        if topics:
            return topics
        logger.warning("LLM analysis returned no usable topics; using fallback")
    except (RateLimitError, APIStatusError, APIConnectionError, KeyError, ValueError, AttributeError, TypeError) as e:
        # json.JSONDecodeError is a ValueError
        logger.warning("LLM analysis failed, using fallback: %s", e)
    return _fallback(text_responses)
