"""Unit tests for tolerant model-output parsing."""

import pytest

from qa_extractor.llm.parsing import (
    JSONParseError,
    as_object_list,
    parse_json_response,
    parse_object_list,
)


class TestParseJsonResponse:
    """Tests for parse_json_response."""

    def test_plain_json(self):
        assert parse_json_response('{"a": 1}') == {"a": 1}

    def test_code_fence(self):
        text = 'Here you go:\n```json\n[{"question_text": "Q"}]\n```\nThanks'
        assert parse_json_response(text) == [{"question_text": "Q"}]

    def test_embedded_object_with_prose(self):
        text = 'Sure! {"questions": [{"question_text": "What is {x}?"}]} Hope that helps.'
        assert parse_json_response(text) == {"questions": [{"question_text": "What is {x}?"}]}

    def test_trailing_commas_removed(self):
        assert parse_json_response('{"a": [1, 2,],}') == {"a": [1, 2]}

    def test_bom_stripped(self):
        assert parse_json_response('\ufeff{"ok": true}') == {"ok": True}

    @pytest.mark.parametrize("text", ["", "   ", "no json here"])
    def test_unparseable_raises(self, text):
        with pytest.raises(JSONParseError):
            parse_json_response(text)


class TestAsObjectList:
    """Tests for list coercion."""

    def test_list_keeps_objects(self):
        assert as_object_list([{"a": 1}, "x", 3, {"b": 2}]) == [{"a": 1}, {"b": 2}]

    def test_object_uses_first_list_field(self):
        parsed = {"meta": "x", "items": [{"q": 1}], "other": [{"q": 2}]}
        assert as_object_list(parsed) == [{"q": 1}]

    def test_object_without_list_is_wrapped(self):
        assert as_object_list({"q": 1}) == [{"q": 1}]

    def test_scalar_is_empty(self):
        assert as_object_list("text") == []


class TestParseObjectList:
    """Tests for parse_object_list."""

    def test_returns_empty_on_garbage(self):
        assert parse_object_list("I could not find any questions.") == []

    def test_wrapped_questions(self):
        assert parse_object_list('{"questions": [{"question_text": "Q1"}]}') == [{"question_text": "Q1"}]
