import logging

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from client_identity import get_client_key
from config import settings
from db import Base, engine, get_db
from errors import SubmissionError, TargetNotFound, ValidationFailed
from llm_analyzer import analyze_open_text
from logging_setup import configure_logging
from models import Survey, SurveyResponse
from rate_limit import RateLimiter, get_rate_limiter
from reports import export_csv_bytes, survey_summary
from schemas import OpenTextAnalysisRequest, PublicSurveyOut, ResponseOut, SurveyCreate, SurveyOut
from security import verify_admin
from submissions import process_submission

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Survey Response API")

# public respondents post from any origin; the browser client sends no cookies
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

Base.metadata.create_all(bind=engine)


@app.exception_handler(SubmissionError)
def submission_error_handler(request: Request, exc: SubmissionError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(RequestValidationError)
def request_validation_handler(request: Request, exc: RequestValidationError):
    """Render FastAPI's own validation failures in the public error envelope."""
    details = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ())]
        if loc and loc[0] == "body":
            loc = loc[1:]
        # json_invalid locations carry a character offset, not a field
        field = "body" if err.get("type") == "json_invalid" or not loc else ".".join(loc)
        details.append({"field": field, "message": err.get("msg", "Invalid value")})
    return submission_error_handler(request, ValidationFailed(details))


def _get_survey_or_404(db: Session, survey_id: str) -> Survey:
    s = db.get(Survey, survey_id)
    if not s:
        raise HTTPException(404, "Survey not found")
    return s


def _survey_responses(db: Session, survey_id: str) -> list[SurveyResponse]:
    return db.execute(
        select(SurveyResponse)
        .where(SurveyResponse.survey_id == survey_id)
        .order_by(SurveyResponse.submitted_at.desc())
    ).scalars().all()


@app.get("/health")
def health():
    """Basic readiness probe.

    Returns:
        dict: {"ok": True}
    """
    return {"ok": True}

# ------------------------
# Public: respond to a survey
# ------------------------
@app.get("/public/surveys/{survey_id}", response_model=PublicSurveyOut)
def load_public_survey(survey_id: str, db: Session = Depends(get_db)):
    """Load a published survey for respondents.

    Unpublished surveys answer exactly like missing ones.

    Args:
        survey_id (str): Survey UUID.
        db (Session): DB session.

    Raises:
        TargetNotFound: 404 if the survey is missing or unpublished.
    """
    s = db.execute(
        select(Survey).where(Survey.id == survey_id, Survey.is_published == True)
    ).scalar_one_or_none()
    if not s:
        raise TargetNotFound()
    return s


@app.post("/functions/validate-survey-response")
@app.post("/public/responses")
async def submit_response(
    request: Request,
    client_key: str = Depends(get_client_key),
    limiter: RateLimiter = Depends(get_rate_limiter),
    db: Session = Depends(get_db),
):
    """Validate, sanitize and store one anonymous survey response.

    Args:
        request (Request): Raw JSON body {survey_id, response_data, user_agent?},
            decoded only after the rate limit check.
        client_key (str): Rate-limit bucket derived from proxy headers.
        limiter (RateLimiter): Shared submission limiter.
        db (Session): DB session.

    Returns:
        dict: {"success": True, "message": str, "response_id": str}

    Raises:
        SubmissionError: 429, 400, 404 or 500, rendered as {error, code[, details]}.
    """
    raw_body = await request.body()
    response_id = await run_in_threadpool(process_submission, raw_body, client_key, limiter, db)
    return {
        "success": True,
        "message": "Response submitted successfully",
        "response_id": response_id,
    }

# ------------------------
# Admin: survey directory
# ------------------------
@app.post("/admin/surveys", dependencies=[Depends(verify_admin)])
def create_survey(payload: SurveyCreate, db: Session = Depends(get_db)):
    """Create a survey from a title and an ordered question list.

    Args:
        payload (SurveyCreate): Title (required), description, questions[], is_published.
        db (Session): DB session.

    Returns:
        dict: {"id": <new_survey_uuid>}

    Raises:
        HTTPException: 400 if the title is blank or question ids repeat.
    """
    title = (payload.title or "").strip()
    if not title:
        raise HTTPException(status_code=400, detail="Title is required")
    ids = [q.id for q in payload.questions]
    if len(ids) != len(set(ids)):
        raise HTTPException(status_code=400, detail="Question ids must be unique")

    survey = Survey(
        title=title,
        description=(payload.description or "").strip() or None,
        questions=[q.model_dump() for q in payload.questions],
        is_published=payload.is_published,
    )
    db.add(survey)
    db.commit()
    logger.info("Created survey %s (published=%s)", survey.id, survey.is_published)
    return {"id": survey.id}


@app.get("/admin/surveys", dependencies=[Depends(verify_admin)])
def list_surveys(db: Session = Depends(get_db)):
    """List all surveys with their response counts.

    Returns:
        list[dict]: [{id, title, description, is_published, created_at, response_count}]
    """
    counts = dict(db.execute(
        select(SurveyResponse.survey_id, func.count()).group_by(SurveyResponse.survey_id)
    ).all())
    rows = db.execute(select(Survey).order_by(Survey.created_at.desc())).scalars().all()
    return [{
        "id": s.id,
        "title": s.title,
        "description": s.description,
        "is_published": bool(s.is_published),
        "created_at": s.created_at,
        "response_count": counts.get(s.id, 0),
    } for s in rows]


@app.get("/admin/surveys/{survey_id}", response_model=SurveyOut, dependencies=[Depends(verify_admin)])
def survey_detail(survey_id: str, db: Session = Depends(get_db)):
    return _get_survey_or_404(db, survey_id)


def _set_published(survey_id: str, published: bool, db: Session) -> dict:
    s = _get_survey_or_404(db, survey_id)
    s.is_published = published
    db.commit()
    logger.info("Survey %s published=%s", survey_id, published)
    return {"id": s.id, "is_published": published}


@app.post("/admin/surveys/{survey_id}/publish", dependencies=[Depends(verify_admin)])
def publish_survey(survey_id: str, db: Session = Depends(get_db)):
    """Open a survey for public responses."""
    return _set_published(survey_id, True, db)


@app.post("/admin/surveys/{survey_id}/unpublish", dependencies=[Depends(verify_admin)])
def unpublish_survey(survey_id: str, db: Session = Depends(get_db)):
    """Stop accepting responses; the public endpoints then answer 404."""
    return _set_published(survey_id, False, db)


@app.delete("/admin/surveys/{survey_id}", dependencies=[Depends(verify_admin)])
def delete_survey(survey_id: str, db: Session = Depends(get_db)):
    """Hard-delete a survey and its responses (via FKs).

    Raises:
        HTTPException: 404 if survey not found.
    """
    s = _get_survey_or_404(db, survey_id)
    db.delete(s)
    db.commit()
    return {"ok": True}

# ------------------------
# Admin: view/export/analyze responses
# ------------------------
@app.get("/admin/surveys/{survey_id}/responses", response_model=list[ResponseOut],
         dependencies=[Depends(verify_admin)])
def survey_responses(survey_id: str, db: Session = Depends(get_db)):
    """Return stored responses for a survey, newest first."""
    _get_survey_or_404(db, survey_id)
    return _survey_responses(db, survey_id)


@app.get("/admin/surveys/{survey_id}/summary", dependencies=[Depends(verify_admin)])
def survey_report(survey_id: str, db: Session = Depends(get_db)):
    """Totals and per-question answer counts.

    Returns:
        dict: {survey_id, total_responses, last_response, questions: [{id, title, type, answers}]}
    """
    s = _get_survey_or_404(db, survey_id)
    return survey_summary(s, _survey_responses(db, survey_id))


@app.get("/admin/surveys/{survey_id}/export.csv", dependencies=[Depends(verify_admin)])
def export_csv(survey_id: str, db: Session = Depends(get_db)):
    """Export survey responses as CSV, one row per response, newest first.

    Returns:
        Response: text/csv attachment `survey_<id>_responses.csv`.
    """
    s = _get_survey_or_404(db, survey_id)
    csv_bytes = export_csv_bytes(s, _survey_responses(db, survey_id))
    return Response(content=csv_bytes, media_type="text/csv",
                    headers={"Content-Disposition": f"attachment; filename=survey_{survey_id}_responses.csv"})


@app.post("/admin/surveys/{survey_id}/analyze-open-text", dependencies=[Depends(verify_admin)])
def analyze_survey_open_text(survey_id: str, body: OpenTextAnalysisRequest, db: Session = Depends(get_db)):
    """Group one question's text answers into topics with sentiment.

    Args:
        survey_id (str): Survey UUID.
        body (OpenTextAnalysisRequest): {question_id}
        db (Session): DB session.

    Returns:
        dict: {"topics": [{topic, count, responses: [{text, response_id, sentiment}]}]}

    Raises:
        HTTPException: 404 if the survey or question does not exist.
    """
    s = _get_survey_or_404(db, survey_id)
    if not any(q.get("id") == body.question_id for q in (s.questions or [])):
        raise HTTPException(404, "Question not found")
    text_responses = []
    for r in _survey_responses(db, survey_id):
        answer = (r.response_data or {}).get(body.question_id)
        if isinstance(answer, str) and answer.strip():
            text_responses.append({"text": answer, "response_id": r.id})
    return {"topics": analyze_open_text(text_responses)}
