"""
Tests for settings validation.
"""
import pytest
from pydantic import ValidationError

from coaching_portal.core.config import SURVEY_TYPES, Settings
from coaching_portal.models.survey import SurveyType


class TestGrowMilestoneSurveys:

    def test_default_is_empty(self):
        assert Settings().GROW_MILESTONE_SURVEYS == {}

    def test_json_string_is_parsed_once(self):
        s = Settings(GROW_MILESTONE_SURVEYS='{"6": "grow_midpoint", "12": "grow_end"}')
        assert s.GROW_MILESTONE_SURVEYS == {6: "grow_midpoint", 12: "grow_end"}

    def test_read_from_environment(self, monkeypatch):
        monkeypatch.setenv("GROW_MILESTONE_SURVEYS", '{"18": "grow_end"}')
        assert Settings().GROW_MILESTONE_SURVEYS == {18: "grow_end"}

    @pytest.mark.parametrize("raw", [
        "not json",
        "[6, 12]",
        '{"6": "grow_midpont"}',
        '{"5": "grow_midpoint"}',
        '{"six": "grow_midpoint"}',
    ])
    def test_bad_map_fails_at_startup(self, raw):
        with pytest.raises(ValidationError):
            Settings(GROW_MILESTONE_SURVEYS=raw)

    def test_known_survey_types_match_model(self):
        assert set(SURVEY_TYPES) == {t.value for t in SurveyType}
