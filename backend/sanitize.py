from typing import Any, Mapping

# Order matters: none of the replacements introduces a character handled later.
_REPLACEMENTS = (
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&#x27;"),
    ("/", "&#x2F;"),
)


def sanitize_text(text: str) -> str:
    """Escape HTML-significant characters. Not idempotent: call once."""
    for raw, entity in _REPLACEMENTS:
        text = text.replace(raw, entity)
    return text


def sanitize_response_data(data: Mapping[str, Any]) -> dict:
    """Escape every string answer and every string inside list answers.

    Other values are returned untouched.
    """
    sanitized = {}
    for key, value in data.items():
        if isinstance(value, str):
            sanitized[key] = sanitize_text(value)
        elif isinstance(value, list):
            sanitized[key] = [sanitize_text(v) if isinstance(v, str) else v for v in value]
        else:
            sanitized[key] = value
    return sanitized
