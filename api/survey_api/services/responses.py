from __future__ import annotations

import hashlib
import logging
from datetime import datetime
from typing import Any

from .. import repo
from ..errors import RespondentNotAllowedError, ResponseRejectedError
from ..schemas import ResponsePayload, ResponseStatus, Survey, SurveyResponse, SurveyStatus

logger = logging.getLogger(__name__)

_OPEN_STATUSES = (SurveyStatus.PUBLISHED, SurveyStatus.LIVE)
_PROGRESS_PRIORITY = {
    ResponseStatus.COMPLETED: 3,
    ResponseStatus.IN_PROGRESS: 2,
    ResponseStatus.NOT_STARTED: 1,
}


def email_hash(email: str) -> str:
    return hashlib.sha256(email.strip().lower().encode("utf-8")).hexdigest()[:12]


def check_respondent_allowed(survey: Survey, email: str) -> None:
    # An empty list means the survey is open to anyone with the link.
    if survey.allowed_respondents and email.strip().lower() not in survey.allowed_respondents:
        raise RespondentNotAllowedError("Email not authorized for this survey")


def check_can_autosave(existing: SurveyResponse | None) -> None:
    if existing is not None and existing.status == ResponseStatus.COMPLETED:
        raise ResponseRejectedError("Survey already submitted")


def check_can_submit(survey: Survey, existing: SurveyResponse | None, now: datetime) -> None:
    if survey.status not in _OPEN_STATUSES:
        raise ResponseRejectedError("Survey is not available for responses")
    if survey.end_date is not None and survey.end_date <= now:
        raise ResponseRejectedError("Survey has closed")
    check_can_autosave(existing)


def _write(
    db,
    survey: Survey,
    email: str,
    payload: ResponsePayload,
    status: ResponseStatus,
    now: datetime,
    existing: SurveyResponse | None,
) -> SurveyResponse:
    response = existing or SurveyResponse(survey_id=survey.id, respondent_email=email)
    response.status = status
    response.answers = payload.answers
    response.metadata = payload.metadata
    if response.started_at is None:
        response.started_at = now
    if status == ResponseStatus.COMPLETED:
        response.submitted_at = now
    repo.upsert_response(db, response)
    db.commit()
    return response


def autosave_response(db, survey: Survey, email: str, payload: ResponsePayload, now: datetime) -> SurveyResponse:
    check_respondent_allowed(survey, email)
    existing = repo.get_response(db, survey.id, email)
    try:
        check_can_autosave(existing)
    except ResponseRejectedError:
        logger.warning("[RESPONSES] autosave blocked survey=%s email=%s: already completed", survey.id, email_hash(email))
        raise
    response = _write(db, survey, email, payload, ResponseStatus.IN_PROGRESS, now, existing)
    logger.info(
        "[RESPONSES] autosaved survey=%s email=%s last_page=%s",
        survey.id,
        email_hash(email),
        response.metadata.last_page_index,
    )
    return response


def submit_response(db, survey: Survey, email: str, payload: ResponsePayload, now: datetime) -> SurveyResponse:
    check_respondent_allowed(survey, email)
    existing = repo.get_response(db, survey.id, email)
    try:
        check_can_submit(survey, existing, now)
    except ResponseRejectedError as exc:
        logger.warning("[RESPONSES] submit rejected survey=%s email=%s: %s", survey.id, email_hash(email), exc.reason)
        raise
    response = _write(db, survey, email, payload, ResponseStatus.COMPLETED, now, existing)
    logger.info("[RESPONSES] submitted survey=%s email=%s response=%s", survey.id, email_hash(email), response.id)
    return response


def _last_updated(response: SurveyResponse | None) -> datetime | None:
    if response is None:
        return None
    return response.submitted_at or response.started_at


def respondent_progress(survey: Survey, responses: list[SurveyResponse]) -> list[dict[str, Any]]:
    """One row per invited respondent, completed first, then most recently active."""
    by_email = {r.respondent_email: r for r in responses}
    total_pages = len(survey.pages)
    rows: list[tuple[SurveyResponse | None, dict[str, Any]]] = []

    for email in survey.allowed_respondents:
        response = by_email.get(email)
        status = response.status if response else ResponseStatus.NOT_STARTED
        if status == ResponseStatus.COMPLETED:
            progress = total_pages
            completion = 100
        elif status == ResponseStatus.IN_PROGRESS:
            progress = max(0, min(response.metadata.last_page_index + 1, total_pages))
            completion = round(progress / total_pages * 100) if total_pages else 0
        else:
            progress = 0
            completion = 0
        last_updated = _last_updated(response)
        rows.append(
            (
                response,
                {
                    "email": email,
                    "status": status.value,
                    "startedAt": response.started_at.isoformat() if response and response.started_at else None,
                    "lastUpdated": last_updated.isoformat() if last_updated else None,
                    "progress": progress,
                    "totalPages": total_pages,
                    "timeSpent": response.metadata.time_spent if response else 0,
                    "pagesVisited": list(response.metadata.pages_visited) if response else [],
                    "completionPercentage": completion,
                },
            )
        )

    def _sort_key(item: tuple[SurveyResponse | None, dict[str, Any]]) -> tuple[int, int, float]:
        response, row = item
        last_updated = _last_updated(response)
        return (
            -_PROGRESS_PRIORITY[ResponseStatus(row["status"])],
            0 if last_updated else 1,
            -last_updated.timestamp() if last_updated else 0.0,
        )

    rows.sort(key=_sort_key)
    return [row for _, row in rows]
