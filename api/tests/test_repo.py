import json

from survey_api import repo
from survey_api.schemas import Answer, Survey, SurveyResponse, SurveyStatus


class FakeResult:
    def __init__(self, rows=None, rowcount=0):
        self._rows = rows or []
        self.rowcount = rowcount

    def mappings(self):
        return self

    def first(self):
        return self._rows[0] if self._rows else None

    def all(self):
        return list(self._rows)


class FakeDB:
    def __init__(self, result=None):
        self.calls = []
        self.result = result or FakeResult()

    def execute(self, stmt, params):
        self.calls.append((str(stmt), params))
        return self.result


def test_insert_survey_stores_camel_case_document():
    db = FakeDB()
    survey = Survey(title="Pulse", allowed_respondents=["a@example.com"])

    repo.insert_survey(db, survey)

    sql, params = db.calls[0]
    assert "INSERT INTO survey" in sql
    assert params["id"] == survey.id
    assert params["status"] == "draft"
    document = json.loads(params["document"])
    assert document["title"] == "Pulse"
    assert document["allowedRespondents"] == ["a@example.com"]


def test_get_survey_takes_id_from_row_and_parses_json_text():
    stored = {"id": "stale", "title": "Pulse", "status": "published", "endDate": "2026-03-01T10:00:00Z"}
    db = FakeDB(FakeResult(rows=[{"id": "11111111-1111-1111-1111-111111111111", "status": "published", "document": json.dumps(stored)}]))

    survey = repo.get_survey(db, "11111111-1111-1111-1111-111111111111")

    assert survey.id == "11111111-1111-1111-1111-111111111111"
    assert survey.status == SurveyStatus.PUBLISHED
    assert survey.end_date.year == 2026


def test_get_survey_returns_none_when_missing():
    assert repo.get_survey(FakeDB(), "11111111-1111-1111-1111-111111111111") is None


def test_save_survey_without_expectation_is_unconditional():
    db = FakeDB(FakeResult(rowcount=1))

    assert repo.save_survey(db, Survey(title="Pulse", status="live")) is True

    sql, params = db.calls[0]
    assert "UPDATE survey" in sql
    assert "expected_status" not in sql
    assert params["status"] == "live"


def test_save_survey_guards_on_expected_status():
    db = FakeDB(FakeResult(rowcount=0))
    survey = Survey(title="Pulse", status="live")

    written = repo.save_survey(db, survey, expected_status=SurveyStatus.PUBLISHED)

    assert written is False
    sql, params = db.calls[0]
    assert "AND status = :expected_status" in sql
    assert params["expected_status"] == "published"
    assert params["status"] == "live"


def test_list_responses_returns_documents_in_stored_order():
    rows = [{"document": {"answers": [{"questionId": "q1", "value": 1}]}}, {"document": '{"answers": []}'}]
    db = FakeDB(FakeResult(rows=rows))

    documents = repo.list_responses(db, "11111111-1111-1111-1111-111111111111")

    assert documents == [{"answers": [{"questionId": "q1", "value": 1}]}, {"answers": []}]
    assert "ORDER BY created_at" in db.calls[0][0]


def test_get_response_normalizes_email_lookup():
    db = FakeDB()

    assert repo.get_response(db, "s", "  Someone@Example.COM ") is None
    assert db.calls[0][1]["respondent_email"] == "someone@example.com"


def test_upsert_response_conflicts_on_survey_and_respondent():
    db = FakeDB()
    response = SurveyResponse(
        survey_id="11111111-1111-1111-1111-111111111111",
        respondent_email="Someone@Example.com",
        status="InProgress",
        answers=[Answer(question_id="q1", value="hi")],
    )

    repo.upsert_response(db, response)

    sql, params = db.calls[0]
    assert "ON CONFLICT (survey_id, respondent_email) DO UPDATE" in sql
    assert params["respondent_email"] == "someone@example.com"
    assert params["status"] == "InProgress"
    assert json.loads(params["document"])["answers"] == [{"questionId": "q1", "value": "hi", "pageIndex": 0}]
