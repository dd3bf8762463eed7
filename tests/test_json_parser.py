"""Tests for JSON extraction utility."""

import pytest

from resume_pipeline.utils.json_parser import extract_json


class TestExtractJson:
    def test_direct_json(self):
        assert extract_json('{"name": "test"}') == {"name": "test"}

    def test_fenced_code_block(self):
        text = 'Here is the result:\n```json\n{"name": "test"}\n```\nDone.'
        assert extract_json(text) == {"name": "test"}

    def test_fenced_without_json_tag(self):
        text = '```\n{"key": "value"}\n```'
        assert extract_json(text) == {"key": "value"}

    def test_embedded_json(self):
        text = 'The analysis is: {"score": 90, "pass": true} as shown above.'
        assert extract_json(text) == {"score": 90, "pass": True}

    def test_array_response(self):
        text = 'Requirements:\n[{"name": "Python"}, {"name": "SQL"}]'
        assert extract_json(text, expect=list) == [{"name": "Python"}, {"name": "SQL"}]

    def test_expect_dict_rejects_array(self):
        with pytest.raises(ValueError):
            extract_json("[1, 2, 3]", expect=dict)

    def test_expect_list_rejects_object(self):
        with pytest.raises(ValueError):
            extract_json('{"a": 1}', expect=list)

    def test_invalid_json_raises(self):
        with pytest.raises(ValueError):
            extract_json("This is not JSON at all")

    def test_empty_text_raises(self):
        with pytest.raises(ValueError):
            extract_json("")
