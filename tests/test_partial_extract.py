"""Tests for field-by-field partial extraction."""

import pytest

from src.models.defaults import get_default_shape
from src.tools.partial_extract import (
    FieldExtractionRule,
    FieldKind,
    conform_to_default,
    extract_partial,
    kind_of,
    rules_for,
    same_kind,
)


class TestRules:
    def test_rules_follow_default_keys(self):
        rules = rules_for({"title": "", "tags": [], "meta": {}, "score": 0})
        assert [r.name for r in rules] == ["title", "tags", "meta", "score"]
        assert [r.kind for r in rules] == [
            FieldKind.STRING, FieldKind.ARRAY, FieldKind.OBJECT, FieldKind.SCALAR,
        ]

    def test_pattern_matches_both_quote_styles(self):
        rule = FieldExtractionRule(name="summary", kind=FieldKind.STRING, default="")
        assert rule.pattern.search('"summary" : "x"')
        assert rule.pattern.search("'summary':'x'")
        assert not rule.pattern.search("summary: x")

    def test_kind_of(self):
        assert kind_of(None) == FieldKind.SCALAR
        assert kind_of(True) == FieldKind.SCALAR
        assert kind_of("") == FieldKind.STRING


class TestSameKind:
    @pytest.mark.parametrize("value,template,expected", [
        ({}, {"a": 1}, True),
        ([1], [], True),
        ("x", "", True),
        (3.5, 0, True),
        (True, 0, False),
        (1, False, False),
        ("85", 0, False),
        ([], {}, False),
        ("anything", None, True),
    ])
    def test_same_kind(self, value, template, expected):
        assert same_kind(value, template) is expected


class TestExtractPartial:
    def test_recovers_good_field_next_to_bad_one(self, skills_default):
        result = extract_partial('{"technical": ["Python", "Go"], "soft": oops}', skills_default)
        assert result.value == {"technical": ["Python", "Go"], "soft": []}
        assert result.recovered == ["technical"]

    def test_unclosed_array_salvaged(self, skills_default):
        text = '{"technical": ["Python", "Go" "soft": ["Teamwork"]}'
        result = extract_partial(text, skills_default)
        assert result.value["technical"] == ["Python", "Go"]
        assert result.value["soft"] == ["Teamwork"]

    def test_nested_object(self, resume_default):
        text = '{"skills": {"technical": ["SQL"], "soft": [}, "summary": "Strong"'
        result = extract_partial(text, resume_default)
        assert result.value["skills"]["technical"] == ["SQL"]
        assert result.value["summary"] == "Strong"
        assert result.value["experience"] == []
        assert set(result.value) == set(resume_default)

    def test_nested_object_completed_with_default_keys(self, resume_default):
        text = '{"skills": {"technical": ["SQL"]}, "summary": broken "'
        result = extract_partial(text, resume_default)
        assert result.value["skills"] == {"technical": ["SQL"], "soft": []}

    def test_unterminated_string(self):
        result = extract_partial('{"summary": "Cut off mid', {"summary": "", "title": ""})
        assert result.value == {"summary": "Cut off mid", "title": ""}
        assert result.recovered == ["summary"]

    def test_single_quoted_fields(self):
        result = extract_partial("{'summary': 'ok', 'title': ", {"summary": "", "title": ""})
        assert result.value["summary"] == "ok"

    def test_wrong_kind_rejected(self, skills_default):
        result = extract_partial('{"technical": "Python"}', skills_default)
        assert result.value == skills_default
        assert result.recovered == []

    def test_scalar_field(self):
        default = get_default_shape("skill_gap_analysis")
        result = extract_partial('{"matchPercentage": 72, "summary": ', default)
        assert result.value["matchPercentage"] == 72

    def test_prefers_least_nested_key(self):
        text = '{"data": {"summary": "inner"}, "summary": "outer"'
        result = extract_partial(text, {"summary": ""})
        assert result.value == {"summary": "outer"}

    def test_defaults_are_copies(self, skills_default):
        result = extract_partial("nothing here", skills_default)
        assert result.value == skills_default
        assert result.value["technical"] is not skills_default["technical"]
        assert result.recovered == []

    def test_non_dict_default(self):
        default = ["a"]
        result = extract_partial('["b"', default)
        assert result.value == ["a"]
        assert result.value is not default
        assert result.recovered == []

    def test_empty_text(self, skills_default):
        assert extract_partial("", skills_default).value == skills_default

    def test_nested_key_not_taken_for_missing_top_level_key(self):
        text = '{"projects": [{"name": "skill0", "url": "x"}]'
        result = extract_partial(text, {"name": "", "projects": []})
        assert result.value == {"name": "", "projects": [{"name": "skill0", "url": "x"}]}
        assert result.recovered == ["projects"]

    def test_key_after_mismatched_closer_is_top_level(self, resume_default):
        text = '{"skills": {"technical": ["SQL"], "soft": [}, "summary": "Strong", "projects": ['
        result = extract_partial(text, resume_default)
        assert result.value["summary"] == "Strong"

    def test_document_wrapped_in_array(self):
        result = extract_partial('[{"summary": "ok", "title": ', {"summary": "", "title": ""})
        assert result.value == {"summary": "ok", "title": ""}

    def test_nested_object_conformed(self):
        default = {"skills": {"technical": [], "soft": []}}
        result = extract_partial('{"skills": {"technical": "SQL", "extra": 1}, oops', default)
        assert result.value == {"skills": {"technical": [], "soft": []}}


class TestConformToDefault:
    def test_fills_replaces_and_drops(self, resume_default):
        value = {"skills": {"technical": ["Go"], "level": 3}, "summary": 3, "hobbies": ["chess"]}
        conformed, filled = conform_to_default(value, resume_default)
        assert conformed == {
            "skills": {"technical": ["Go"], "soft": []},
            "experience": [],
            "education": [],
            "summary": "",
            "strengths": [],
            "weaknesses": [],
            "projects": [],
        }
        assert filled == [
            "skills.soft", "experience", "education", "summary",
            "strengths", "weaknesses", "projects",
        ]

    def test_complete_value_unchanged(self, skills_default):
        value = {"technical": ["Go"], "soft": ["Teamwork"]}
        assert conform_to_default(value, skills_default) == (value, [])

    def test_empty_default_accepts_anything(self):
        value = {"anything": [1, 2]}
        assert conform_to_default(value, {}) == (value, [])

    def test_filled_values_are_copies(self, skills_default):
        conformed, _ = conform_to_default({}, skills_default)
        conformed["soft"].append("x")
        assert skills_default["soft"] == []
