"""Tests for locating the JSON block in a model response."""

from src.tools.extractor import extract_json_block


class TestExtractJsonBlock:
    def test_prose_around_object(self):
        text = 'Here is the result: {"summary": "ok"} Hope this helps!'
        assert extract_json_block(text) == '{"summary": "ok"}'

    def test_markdown_fence(self):
        text = '```json\n{"a": 1}\n```'
        assert extract_json_block(text) == '{"a": 1}'

    def test_already_clean(self):
        assert extract_json_block('{"a": [1, 2]}') == '{"a": [1, 2]}'

    def test_earliest_opener_wins(self):
        text = 'Skills: ["a", "b"] and also {"x": 1}'
        assert extract_json_block(text) == '["a", "b"]'

    def test_prefer_object(self):
        text = 'Skills: ["a", "b"] and also {"x": 1}'
        assert extract_json_block(text, prefer="{") == '{"x": 1}'

    def test_prefer_absent_opener_falls_back(self):
        assert extract_json_block('list: [1, 2]', prefer="{") == "[1, 2]"

    def test_spans_to_last_closer(self):
        text = 'A {"a": {"b": 1}} B {"c": 2} C'
        assert extract_json_block(text) == '{"a": {"b": 1}} B {"c": 2}'

    def test_truncated_runs_to_end(self):
        text = 'Result: {"a": [1, 2   \n'
        assert extract_json_block(text) == '{"a": [1, 2'

    def test_no_structure(self):
        assert extract_json_block("no json here") is None

    def test_empty(self):
        assert extract_json_block("") is None
