"""Outcome taxonomy for the public submission endpoint.

Each error carries the HTTP status, the machine-readable code and a message
that is safe to show an anonymous caller.
"""
from __future__ import annotations

from typing import Optional


class SubmissionError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"
    message = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        if message:
            self.message = message

    def to_body(self) -> dict:
        return {"error": self.message, "code": self.code}


class RateLimitExceeded(SubmissionError):
    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"
    message = "Rate limit exceeded. Please try again later."


class ValidationFailed(SubmissionError):
    status_code = 400
    code = "VALIDATION_ERROR"
    message = "Invalid input data"

    def __init__(self, details: list[dict], message: Optional[str] = None):
        super().__init__(message)
        self.details = details

    def to_body(self) -> dict:
        return {"error": self.message, "details": self.details, "code": self.code}


class TargetNotFound(SubmissionError):
    status_code = 404
    code = "SURVEY_NOT_FOUND"
    message = "Survey not found or not available"


class InternalError(SubmissionError):
    pass
