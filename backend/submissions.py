"""Public submission pipeline.

rate limit -> validate -> sanitize -> verify survey -> persist. Persisting is
the last step, so any earlier failure leaves nothing behind.
"""
from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from errors import InternalError, RateLimitExceeded, SubmissionError, TargetNotFound, ValidationFailed
from gateway import get_published_survey, insert_response
from rate_limit import RateLimiter
from sanitize import sanitize_response_data
from validation import parse_body, validate_submission

logger = logging.getLogger(__name__)


def process_submission(raw_body: bytes, client_key: str, limiter: RateLimiter, db: Session) -> str:
    """Run one submission through the pipeline and return the new response id.

    Raises:
        RateLimitExceeded: The client used up its window.
        ValidationFailed: The body is not JSON, or is malformed or oversized.
        TargetNotFound: The survey is missing or not published.
        InternalError: Anything else; the cause is logged, not returned.
    """
    try:
        if not limiter.try_consume(client_key):
            logger.warning("Rate limit exceeded for client %s", client_key)
            raise RateLimitExceeded()

        try:
            submission = validate_submission(parse_body(raw_body))
        except ValidationFailed as e:
            logger.info("Rejected submission from %s: %s", client_key, e.details)
            raise

        sanitized = sanitize_response_data(submission.response_data_json())

        if get_published_survey(db, submission.survey_id) is None:
            logger.info("Survey %s not found or not published", submission.survey_id)
            raise TargetNotFound()

        response_id = insert_response(db, submission.survey_id, sanitized, submission.user_agent)
        logger.info("Stored response %s for survey %s", response_id, submission.survey_id)
        return response_id
    except SubmissionError:
        raise
    except Exception as e:
        logger.exception("Unexpected error while processing submission")
        raise InternalError() from e
