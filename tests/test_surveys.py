"""
Tests for survey submission endpoints and services.

Covered:
  - SCALE feedback stored once per (email, session); 409 on repeat
  - sessions of other employees are 404
  - GROW surveys write parent + competency scores together (pre / post)
  - unknown competencies rejected, scores outside 1-5 rejected
  - context / competencies / competency-scores reads
"""
from __future__ import annotations

from datetime import date

from coaching_portal.models.survey import SurveyCompetencyScore, SurveySubmission
from coaching_portal.services.surveys import CORE_COMPETENCIES, seed_core_competencies

from helpers import make_employee, make_session

_COMPETENCIES = [name for name, _ in CORE_COMPETENCIES]


def _h(email: str) -> dict:
    return {"X-Employee-Email": email}


def _scale_payload(session_id: int, **overrides) -> dict:
    payload = {
        "session_id": session_id,
        "coach_satisfaction": 9,
        "wants_rematch": False,
        "coach_qualities": ["listened_well", "challenged_me"],
        "has_booked_next_session": True,
        "nps": 10,
        "feedback_text": "Very useful",
    }
    payload.update(overrides)
    return payload


class TestScaleFeedback:

    def test_submit_then_conflict(self, client, db):
        emp = make_employee(db)
        session = make_session(db, emp, date(2095, 1, 10), appointment_number=1)

        r = client.post("/surveys/scale-feedback", json=_scale_payload(session.id), headers=_h(emp.company_email))
        assert r.status_code == 201, r.text
        body = r.json()
        assert body["survey_type"] == "scale_feedback"
        assert body["session_id"] == session.id
        assert body["session_number"] == 1
        assert body["competency_scores"] == 0

        again = client.post("/surveys/scale-feedback", json=_scale_payload(session.id), headers=_h(emp.company_email))
        assert again.status_code == 409
        assert again.json()["code"] == "SURVEY_ALREADY_SUBMITTED"

    def test_submission_clears_pending_survey(self, client, db):
        emp = make_employee(db)
        session = make_session(db, emp, date(2095, 1, 11), appointment_number=1)
        pending = client.get("/surveys/pending", headers=_h(emp.company_email)).json()["pending"]
        assert pending["session_id"] == session.id

        client.post("/surveys/scale-feedback", json=_scale_payload(session.id), headers=_h(emp.company_email))
        assert client.get("/surveys/pending", headers=_h(emp.company_email)).json() == {"pending": None}

    def test_stores_coach_from_session(self, client, db):
        emp = make_employee(db)
        session = make_session(db, emp, date(2095, 1, 12), appointment_number=3, coach_name="Robin")
        client.post("/surveys/scale-feedback", json=_scale_payload(session.id, survey_type="scale_end"), headers=_h(emp.company_email))
        row = db.query(SurveySubmission).filter_by(session_id=session.id).one()
        assert row.coach_name == "Robin"
        assert row.survey_type == "scale_end"
        assert row.coach_qualities == ["listened_well", "challenged_me"]

    def test_other_employees_session_is_404(self, client, db):
        owner, other = make_employee(db), make_employee(db)
        session = make_session(db, owner, date(2095, 1, 13), appointment_number=1)
        r = client.post("/surveys/scale-feedback", json=_scale_payload(session.id), headers=_h(other.company_email))
        assert r.status_code == 404
        assert r.json()["code"] == "SESSION_NOT_FOUND"

    def test_nps_out_of_range_is_422(self, client, db):
        emp = make_employee(db)
        session = make_session(db, emp, date(2095, 1, 14), appointment_number=1)
        r = client.post("/surveys/scale-feedback", json=_scale_payload(session.id, nps=11), headers=_h(emp.company_email))
        assert r.status_code == 422
        assert r.json()["code"] == "VALIDATION_ERROR"

    def test_missing_identity_is_401(self, client):
        r = client.post("/surveys/scale-feedback", json=_scale_payload(1))
        assert r.status_code == 401
        assert r.json()["code"] == "MISSING_IDENTITY"


class TestGrowSurveys:

    def test_baseline_writes_pre_scores(self, client, db):
        emp = make_employee(db, program="GROW")
        scores = {_COMPETENCIES[0]: 2, _COMPETENCIES[1]: 4}
        r = client.post(
            "/surveys/grow-baseline",
            json={"competency_scores": scores, "focus_areas": [_COMPETENCIES[0]]},
            headers=_h(emp.company_email),
        )
        assert r.status_code == 201, r.text
        assert r.json()["competency_scores"] == 2

        rows = client.get("/surveys/competency-scores", headers=_h(emp.company_email)).json()
        assert {row["competency_name"]: row["score"] for row in rows} == scores
        assert {row["score_type"] for row in rows} == {"pre"}

    def test_baseline_only_once(self, client, db):
        emp = make_employee(db, program="GROW")
        body = {"competency_scores": {_COMPETENCIES[2]: 3}}
        assert client.post("/surveys/grow-baseline", json=body, headers=_h(emp.company_email)).status_code == 201
        r = client.post("/surveys/grow-baseline", json=body, headers=_h(emp.company_email))
        assert r.status_code == 409

    def test_end_writes_post_scores(self, client, db):
        emp = make_employee(db, program="GROW")
        client.post("/surveys/grow-baseline", json={"competency_scores": {_COMPETENCIES[3]: 2}}, headers=_h(emp.company_email))
        r = client.post(
            "/surveys/grow-end",
            json={"competency_scores": {_COMPETENCIES[3]: 4}, "nps": 9, "outcomes": "Promoted", "open_to_testimonial": True},
            headers=_h(emp.company_email),
        )
        assert r.status_code == 201, r.text

        post = client.get("/surveys/competency-scores?score_type=post", headers=_h(emp.company_email)).json()
        assert [(row["competency_name"], row["score"]) for row in post] == [(_COMPETENCIES[3], 4)]

    def test_midpoint_linked_to_session(self, client, db):
        emp = make_employee(db, program="GROW")
        session = make_session(db, emp, date(2095, 2, 1), appointment_number=6)
        r = client.post(
            "/surveys/grow-midpoint",
            json={"competency_scores": {_COMPETENCIES[4]: 3}, "session_id": session.id},
            headers=_h(emp.company_email),
        )
        assert r.status_code == 201, r.text
        assert r.json()["session_id"] == session.id
        assert r.json()["session_number"] == 6

    def test_unknown_competency_rejected_without_writes(self, client, db):
        emp = make_employee(db, program="GROW")
        r = client.post(
            "/surveys/grow-baseline",
            json={"competency_scores": {"Juggling": 3}},
            headers=_h(emp.company_email),
        )
        assert r.status_code == 422
        assert r.json()["code"] == "UNKNOWN_COMPETENCY"
        assert db.query(SurveySubmission).filter_by(email=emp.company_email).count() == 0

    def test_score_out_of_range_rejected(self, client, db):
        emp = make_employee(db, program="GROW")
        r = client.post(
            "/surveys/grow-baseline",
            json={"competency_scores": {_COMPETENCIES[0]: 6}},
            headers=_h(emp.company_email),
        )
        assert r.status_code == 422
        assert db.query(SurveyCompetencyScore).filter_by(email=emp.company_email).count() == 0


class TestSurveyReads:

    def test_competencies_in_display_order(self, client):
        r = client.get("/surveys/competencies")
        assert r.status_code == 200
        assert [c["name"] for c in r.json()] == _COMPETENCIES

    def test_seed_competencies_is_idempotent(self, db):
        assert seed_core_competencies(db) == 0

    def test_context(self, client, db):
        emp = make_employee(db)
        session = make_session(db, emp, date(2095, 3, 1), appointment_number=12, coach_name=None)
        r = client.get(f"/surveys/context/{session.id}", headers=_h(emp.company_email))
        assert r.status_code == 200
        assert r.json() == {
            "session_id": session.id,
            "session_number": 12,
            "session_date": "2095-03-01",
            "coach_name": "Your Coach",
            "employee_email": emp.company_email,
        }

    def test_context_missing_session(self, client, db):
        emp = make_employee(db)
        r = client.get("/surveys/context/99999999", headers=_h(emp.company_email))
        assert r.status_code == 404
