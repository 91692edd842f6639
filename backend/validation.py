"""Shape and size checks for untrusted submission bodies.

Every problem found is reported, not just the first, so the client gets a
complete list of `{field, message}` entries in one round trip.
"""
from __future__ import annotations

import json
import re
from typing import Any

from errors import ValidationFailed
from schemas import (
    MAX_CHOICE_LENGTH,
    MAX_CHOICES,
    MAX_TEXT_LENGTH,
    MAX_USER_AGENT_LENGTH,
    ChoiceListAnswer,
    SurveyResponseSubmission,
    TextAnswer,
)


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, list):
        return "array"
    return type(value).__name__


def _too_long(limit: int) -> str:
    return f"String must contain at most {limit} character(s)"


_UUID_RE = re.compile(r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}")


def _is_uuid(value: str) -> bool:
    # canonical 8-4-4-4-12 form only; uuid.UUID alone also takes braces, urns and stray hyphens
    return _UUID_RE.fullmatch(value) is not None


def parse_body(raw: bytes) -> Any:
    """Decode a raw request body as JSON.

    Raises:
        ValidationFailed: If the bytes are not valid UTF-8 JSON.
    """
    try:
        return json.loads(raw)
    except ValueError:
        # JSONDecodeError and UnicodeDecodeError are both ValueErrors
        raise ValidationFailed([{"field": "body", "message": "Malformed JSON"}])


def _check_answer(key: str, value: Any, errors: list[dict]):
    field = f"response_data.{key}"
    if isinstance(value, str):
        if len(value) > MAX_TEXT_LENGTH:
            errors.append({"field": field, "message": _too_long(MAX_TEXT_LENGTH)})
            return None
        return TextAnswer(value=value)
    if isinstance(value, list):
        ok = True
        if len(value) > MAX_CHOICES:
            errors.append({"field": field, "message": f"Array must contain at most {MAX_CHOICES} element(s)"})
            ok = False
        for i, item in enumerate(value):
            if not isinstance(item, str):
                errors.append({"field": f"{field}.{i}", "message": f"Expected string, received {_type_name(item)}"})
                ok = False
            elif len(item) > MAX_CHOICE_LENGTH:
                errors.append({"field": f"{field}.{i}", "message": _too_long(MAX_CHOICE_LENGTH)})
                ok = False
        return ChoiceListAnswer(values=value) if ok else None
    errors.append({
        "field": field,
        "message": f"Expected string or array of strings, received {_type_name(value)}",
    })
    return None


def validate_submission(body: Any) -> SurveyResponseSubmission:
    """Check a decoded JSON body and return the normalized submission.

    Raises:
        ValidationFailed: With one detail entry per offending field.
    """
    if not isinstance(body, dict):
        raise ValidationFailed([{"field": "body", "message": f"Expected object, received {_type_name(body)}"}])

    errors: list[dict] = []

    survey_id = body.get("survey_id")
    if survey_id is None:
        errors.append({"field": "survey_id", "message": "Required"})
    elif not isinstance(survey_id, str):
        errors.append({"field": "survey_id", "message": f"Expected string, received {_type_name(survey_id)}"})
    elif not _is_uuid(survey_id):
        errors.append({"field": "survey_id", "message": "Invalid uuid"})

    answers = {}
    raw_data = body.get("response_data")
    if raw_data is None:
        errors.append({"field": "response_data", "message": "Required"})
    elif not isinstance(raw_data, dict):
        errors.append({"field": "response_data", "message": f"Expected object, received {_type_name(raw_data)}"})
    else:
        for key, value in raw_data.items():
            answer = _check_answer(key, value, errors)
            if answer is not None:
                answers[key] = answer

    # optional means absent; an explicit null is rejected like any other non-string
    if "user_agent" in body:
        user_agent = body["user_agent"]
        if not isinstance(user_agent, str):
            errors.append({"field": "user_agent", "message": f"Expected string, received {_type_name(user_agent)}"})
        elif len(user_agent) > MAX_USER_AGENT_LENGTH:
            errors.append({"field": "user_agent", "message": _too_long(MAX_USER_AGENT_LENGTH)})
    else:
        user_agent = None

    if errors:
        raise ValidationFailed(errors)

    return SurveyResponseSubmission(
        survey_id=survey_id.lower(),
        response_data=answers,
        user_agent=user_agent,
    )
