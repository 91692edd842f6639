from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from models import Survey, SurveyResponse


def get_published_survey(db: Session, survey_id: str) -> Optional[Survey]:
    """Return the survey only if it is accepting responses.

    Unpublished and missing surveys both come back as None.
    """
    return db.execute(
        select(Survey).where(Survey.id == survey_id, Survey.is_published == True)
    ).scalar_one_or_none()


def insert_response(db: Session, survey_id: str, sanitized_data: dict, user_agent: Optional[str]) -> str:
    """Store one sanitized response and return its id.

    The IP address column is always written as NULL.
    """
    row = SurveyResponse(
        survey_id=survey_id,
        response_data=sanitized_data,
        user_agent=user_agent or None,
        ip_address=None,
    )
    db.add(row)
    try:
        db.flush()
        response_id = row.id
        db.commit()
    except Exception:
        db.rollback()
        raise
    return response_id
