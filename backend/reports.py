"""Aggregations over stored responses for the admin report views."""
from __future__ import annotations

import pandas as pd

from models import Survey, SurveyResponse


def _answer_cell(answer) -> str:
    if isinstance(answer, list):
        return "; ".join(str(a) for a in answer)
    if answer is None:
        return ""
    return str(answer)


def responses_frame(survey: Survey, responses: list[SurveyResponse]) -> pd.DataFrame:
    """One row per response; one column per survey question, in question order."""
    questions = survey.questions or []
    columns = ["response_id", "submitted_at"] + [
        f"Q{i + 1}: {q.get('title', '')}" for i, q in enumerate(questions)
    ]
    rows = []
    for r in responses:
        data = r.response_data or {}
        rows.append(
            [r.id, r.submitted_at.isoformat() if r.submitted_at else ""]
            + [_answer_cell(data.get(q.get("id"))) for q in questions]
        )
    return pd.DataFrame(rows, columns=columns)


def export_csv_bytes(survey: Survey, responses: list[SurveyResponse]) -> bytes:
    return responses_frame(survey, responses).to_csv(index=False).encode("utf-8")


def question_breakdown(question_id: str, responses: list[SurveyResponse]) -> list[dict]:
    """Count each distinct answer to one question; list answers count each choice."""
    values = pd.Series([(r.response_data or {}).get(question_id) for r in responses], dtype=object)
    values = values.explode().dropna()
    values = values[values.astype(str) != ""]
    if values.empty:
        return []
    counts = values.astype(str).value_counts()
    total = int(counts.sum())
    return [
        {"name": name, "value": int(n), "percentage": round(int(n) * 100 / total)}
        for name, n in counts.items()
    ]


def survey_summary(survey: Survey, responses: list[SurveyResponse]) -> dict:
    last = max((r.submitted_at for r in responses if r.submitted_at), default=None)
    return {
        "survey_id": survey.id,
        "total_responses": len(responses),
        "last_response": last,
        "questions": [
            {
                "id": q.get("id"),
                "title": q.get("title"),
                "type": q.get("type"),
                "answers": question_breakdown(q.get("id"), responses),
            }
            for q in (survey.questions or [])
        ],
    }
