"""
Tests for survey progression: which survey an employee owes next.

Covered:
  - milestone sessions only (1, 3, 6, 12, ...), completed only
  - oldest unanswered milestone wins, regardless of recency
  - GROW participants owe a baseline first
  - configured GROW milestone types once the baseline exists
  - program label resolution
"""
from __future__ import annotations

from datetime import date

import pytest

from coaching_portal.core.config import settings
from coaching_portal.models.survey import SurveySubmission
from coaching_portal.services.survey_progression import (
    get_pending_survey,
    has_completed_baseline,
    resolve_program_type,
)

from helpers import make_employee, make_session


def _answer(db, email: str, session_id: int | None, survey_type: str = "scale_feedback") -> None:
    db.add(SurveySubmission(email=email, survey_type=survey_type, session_id=session_id))
    db.commit()


class TestResolveProgramType:
    @pytest.mark.parametrize("label,expected", [
        ("GROW", "GROW"),
        ("grow - Cohort 1", "GROW"),
        ("GROW-2026", "GROW"),
        ("SCALE", "SCALE"),
        ("Exec Coaching", "EXEC"),
        ("GROWTH", None),
        ("Scaled", None),
        ("", None),
        (None, None),
    ])
    def test_labels(self, label, expected):
        assert resolve_program_type(label) == expected


class TestPendingSurvey:

    def test_none_without_milestone_sessions(self, db):
        emp = make_employee(db)
        make_session(db, emp, date(2094, 1, 5), appointment_number=2)
        assert get_pending_survey(db, emp.company_email) is None

    def test_non_completed_milestones_ignored(self, db):
        emp = make_employee(db)
        make_session(db, emp, date(2094, 1, 5), appointment_number=1, status="Upcoming")
        make_session(db, emp, date(2094, 1, 6), appointment_number=3, status="Cancelled")
        assert get_pending_survey(db, emp.company_email) is None

    def test_oldest_unanswered_first(self, db):
        emp = make_employee(db)
        s1 = make_session(db, emp, date(2094, 2, 1), appointment_number=1)
        s3 = make_session(db, emp, date(2094, 3, 1), appointment_number=3)
        s6 = make_session(db, emp, date(2094, 4, 1), appointment_number=6)

        pending = get_pending_survey(db, emp.company_email)
        assert pending.session_id == s1.id
        assert pending.session_number == 1

        _answer(db, emp.company_email, s1.id)
        assert get_pending_survey(db, emp.company_email).session_id == s3.id

        _answer(db, emp.company_email, s6.id)
        assert get_pending_survey(db, emp.company_email).session_id == s3.id

        _answer(db, emp.company_email, s3.id)
        assert get_pending_survey(db, emp.company_email) is None

    def test_scale_program_gets_scale_feedback(self, db):
        emp = make_employee(db, program="SCALE")
        make_session(db, emp, date(2094, 5, 1), appointment_number=1, coach_name=None)
        pending = get_pending_survey(db, emp.company_email)
        assert pending.survey_type == "scale_feedback"
        assert pending.coach_name == "Your Coach"
        assert pending.session_date == date(2094, 5, 1)

    def test_email_match_is_case_insensitive(self, db):
        emp = make_employee(db)
        make_session(db, emp, date(2094, 5, 2), appointment_number=1)
        assert get_pending_survey(db, emp.company_email.upper()) is not None

    def test_grow_owes_baseline_first(self, db):
        emp = make_employee(db, program="GROW - Cohort 3")
        make_session(db, emp, date(2094, 6, 1), appointment_number=1)
        assert get_pending_survey(db, emp.company_email).survey_type == "grow_baseline"
        assert has_completed_baseline(db, emp.company_email) is False

    def test_session_program_overrides_employee_program(self, db):
        emp = make_employee(db, program="SCALE")
        make_session(db, emp, date(2094, 6, 2), appointment_number=1, program_name="GROW")
        assert get_pending_survey(db, emp.company_email).survey_type == "grow_baseline"

    def test_explicit_program_argument(self, db):
        emp = make_employee(db)
        make_session(db, emp, date(2094, 6, 3), appointment_number=1)
        assert get_pending_survey(db, emp.company_email, program="GROW").survey_type == "grow_baseline"

    def test_grow_after_baseline_uses_milestone_map(self, db, monkeypatch):
        monkeypatch.setattr(settings, "GROW_MILESTONE_SURVEYS", {6: "grow_midpoint", 12: "grow_end"})
        emp = make_employee(db, program="GROW")
        make_session(db, emp, date(2094, 7, 1), appointment_number=6)
        _answer(db, emp.company_email, None, survey_type="grow_baseline")

        assert has_completed_baseline(db, emp.company_email) is True
        assert get_pending_survey(db, emp.company_email).survey_type == "grow_midpoint"

    def test_grow_after_baseline_defaults_to_scale_feedback(self, db, monkeypatch):
        monkeypatch.setattr(settings, "GROW_MILESTONE_SURVEYS", {})
        emp = make_employee(db, program="GROW")
        make_session(db, emp, date(2094, 7, 2), appointment_number=3)
        _answer(db, emp.company_email, None, survey_type="grow_baseline")
        assert get_pending_survey(db, emp.company_email).survey_type == "scale_feedback"
