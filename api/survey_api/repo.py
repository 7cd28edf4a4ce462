from __future__ import annotations

import json
from typing import Any

from sqlalchemy import text

from .schemas import Survey, SurveyResponse, SurveyStatus


def _document(model: Survey | SurveyResponse) -> str:
    return json.dumps(model.model_dump(mode="json", by_alias=True))


def _load_document(raw: Any) -> dict[str, Any]:
    if isinstance(raw, str):
        raw = json.loads(raw)
    return dict(raw or {})


def insert_survey(db, survey: Survey) -> None:
    db.execute(
        text(
            """
            INSERT INTO survey (id, status, document)
            VALUES (CAST(:id AS uuid), :status, CAST(:document AS jsonb))
            """
        ),
        {"id": survey.id, "status": survey.status.value, "document": _document(survey)},
    )


def get_survey(db, survey_id: str) -> Survey | None:
    row = db.execute(
        text("SELECT id, status, document FROM survey WHERE id = CAST(:id AS uuid)"),
        {"id": survey_id},
    ).mappings().first()
    if not row:
        return None
    document = _load_document(row["document"])
    document["id"] = str(row["id"])
    return Survey.model_validate(document)


def save_survey(db, survey: Survey, expected_status: SurveyStatus | None = None) -> bool:
    """Write the survey back; with ``expected_status`` only if the stored status still matches.

    Returns whether a row was written. The conditional form is what keeps two
    concurrent reconciles of the same survey from overwriting each other.
    """
    status_clause = "AND status = :expected_status" if expected_status is not None else ""
    result = db.execute(
        text(
            f"""
            UPDATE survey
            SET status = :status,
                document = CAST(:document AS jsonb),
                updated_at = NOW()
            WHERE id = CAST(:id AS uuid)
              {status_clause}
            """
        ),
        {
            "id": survey.id,
            "status": survey.status.value,
            "document": _document(survey),
            "expected_status": expected_status.value if expected_status is not None else None,
        },
    )
    return (result.rowcount or 0) > 0


def list_responses(db, survey_id: str) -> list[dict[str, Any]]:
    rows = db.execute(
        text(
            """
            SELECT document
            FROM survey_response
            WHERE survey_id = CAST(:survey_id AS uuid)
            ORDER BY created_at
            """
        ),
        {"survey_id": survey_id},
    ).mappings().all()
    return [_load_document(r["document"]) for r in rows]


def get_response(db, survey_id: str, respondent_email: str) -> SurveyResponse | None:
    row = db.execute(
        text(
            """
            SELECT id, document
            FROM survey_response
            WHERE survey_id = CAST(:survey_id AS uuid)
              AND respondent_email = :respondent_email
            LIMIT 1
            """
        ),
        {"survey_id": survey_id, "respondent_email": respondent_email.strip().lower()},
    ).mappings().first()
    if not row:
        return None
    document = _load_document(row["document"])
    document["id"] = str(row["id"])
    return SurveyResponse.model_validate(document)


def upsert_response(db, response: SurveyResponse) -> None:
    db.execute(
        text(
            """
            INSERT INTO survey_response (id, survey_id, respondent_email, status, document)
            VALUES (
              CAST(:id AS uuid),
              CAST(:survey_id AS uuid),
              :respondent_email,
              :status,
              CAST(:document AS jsonb)
            )
            ON CONFLICT (survey_id, respondent_email) DO UPDATE
            SET status = EXCLUDED.status,
                document = EXCLUDED.document,
                updated_at = NOW()
            """
        ),
        {
            "id": response.id,
            "survey_id": response.survey_id,
            "respondent_email": response.respondent_email,
            "status": response.status.value,
            "document": _document(response),
        },
    )
