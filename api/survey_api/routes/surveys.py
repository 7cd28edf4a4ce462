from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query

from .. import repo
from ..database import SessionLocal
from ..deps import get_now, parse_survey_id
from ..http_helpers import domain_errors
from ..schemas import Survey, SurveyCreate, SurveyResponse, SurveyUpdate, TransitionRequest
from ..services import surveys as survey_service
from ..services.responses import respondent_progress

router = APIRouter()


def _survey_out(survey: Survey) -> dict[str, Any]:
    return survey.model_dump(mode="json", by_alias=True)


@router.post("/surveys", status_code=201)
def create_survey(payload: SurveyCreate, now: datetime = Depends(get_now)) -> dict[str, Any]:
    with SessionLocal() as db:
        survey = survey_service.create_survey(db, payload, now)
    return _survey_out(survey)


@router.get("/surveys/{survey_id}")
def get_survey(survey_id: str, now: datetime = Depends(get_now)) -> dict[str, Any]:
    sid = parse_survey_id(survey_id)
    with SessionLocal() as db, domain_errors():
        survey = survey_service.load_survey(db, sid, now)
    return _survey_out(survey)


@router.patch("/surveys/{survey_id}")
def update_survey(survey_id: str, payload: SurveyUpdate, now: datetime = Depends(get_now)) -> dict[str, Any]:
    sid = parse_survey_id(survey_id)
    with SessionLocal() as db, domain_errors():
        survey = survey_service.update_survey(db, sid, payload, now)
    return _survey_out(survey)


@router.post("/surveys/{survey_id}/transition")
def transition_survey(survey_id: str, payload: TransitionRequest, now: datetime = Depends(get_now)) -> dict[str, Any]:
    sid = parse_survey_id(survey_id)
    with SessionLocal() as db, domain_errors():
        survey = survey_service.transition_survey(db, sid, payload.status, now)
    return _survey_out(survey)


@router.get("/surveys/{survey_id}/progress")
def survey_progress(
    survey_id: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    now: datetime = Depends(get_now),
) -> dict[str, Any]:
    sid = parse_survey_id(survey_id)
    with SessionLocal() as db, domain_errors():
        survey = survey_service.load_survey(db, sid, now)
        responses = [SurveyResponse.model_validate(doc) for doc in repo.list_responses(db, sid)]

    rows = respondent_progress(survey, responses)
    start = (page - 1) * limit
    total = len(rows)
    return {
        "survey": {
            "id": survey.id,
            "title": survey.title,
            "totalPages": len(survey.pages),
            "totalRespondents": total,
        },
        "respondentProgress": rows[start : start + limit],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": (total + limit - 1) // limit,
            "hasNext": page * limit < total,
            "hasPrev": page > 1,
        },
    }
