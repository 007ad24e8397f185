"""
Tests for tolerant JSON parsing of model output.
"""

import unittest
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from weave.extraction.response_parser import (
    ParseResult,
    find_json_object,
    parse_model_json,
    strip_code_fence,
)


class TestStripCodeFence(unittest.TestCase):

    def test_json_fence_removed(self):
        self.assertEqual(strip_code_fence('```json\n{"a": 1}\n```'), '{"a": 1}')

    def test_bare_fence_removed(self):
        self.assertEqual(strip_code_fence('```\n{"a": 1}\n```'), '{"a": 1}')

    def test_text_without_fence_untouched(self):
        self.assertEqual(strip_code_fence('  {"a": 1}  '), '{"a": 1}')

    def test_none_is_empty(self):
        self.assertEqual(strip_code_fence(None), "")


class TestFindJsonObject(unittest.TestCase):

    def test_object_inside_prose(self):
        text = 'Here you go: {"patterns": []} hope that helps'
        self.assertEqual(find_json_object(text), '{"patterns": []}')

    def test_braces_inside_strings_ignored(self):
        text = 'Sure {"context": "a } tricky { value", "n": 1} done'
        self.assertEqual(find_json_object(text), '{"context": "a } tricky { value", "n": 1}')

    def test_escaped_quote_inside_string(self):
        text = '{"title": "She said \\"hi}\\"", "x": 2}'
        self.assertEqual(find_json_object(text), text)

    def test_unbalanced_returns_none(self):
        self.assertIsNone(find_json_object('{"a": [1, 2'))

    def test_depth_limit(self):
        # Too-deep outer candidates are abandoned; the first inner span within the limit wins
        deep = "{" * 40 + "}" * 40
        self.assertEqual(find_json_object(deep, max_depth=32), "{" * 32 + "}" * 32)
        self.assertIsNone(find_json_object("{{{}}}", max_depth=0))


class TestParseModelJson(unittest.TestCase):

    def test_plain_object(self):
        result = parse_model_json('{"artifacts": [{"title": "Dune"}]}')
        self.assertTrue(result.ok)
        self.assertEqual(result.data["artifacts"][0]["title"], "Dune")

    def test_fenced_object(self):
        result = parse_model_json('```json\n{"recommendations": []}\n```')
        self.assertTrue(result.ok)
        self.assertEqual(result.data, {"recommendations": []})

    def test_object_with_preamble(self):
        result = parse_model_json('Here is the analysis:\n{"patterns": [{"pattern": "x"}]}\nLet me know!')
        self.assertTrue(result.ok)
        self.assertEqual(result.data["patterns"][0]["pattern"], "x")

    def test_refusal_is_failure(self):
        result = parse_model_json("I cannot help with that.")
        self.assertFalse(result.ok)
        self.assertIsNone(result.data)
        self.assertEqual(result.error, "no JSON object found")

    def test_empty_is_failure(self):
        self.assertEqual(parse_model_json("").error, "empty response")
        self.assertEqual(parse_model_json(None).error, "empty response")

    def test_top_level_array_is_failure(self):
        result = parse_model_json("[1, 2, 3]")
        self.assertFalse(result.ok)
        self.assertIn("list", result.error)

    def test_skips_invalid_span_and_uses_next(self):
        text = 'Example: {not json} Actual: {"ok": true}'
        result = parse_model_json(text)
        self.assertTrue(result.ok)
        self.assertEqual(result.data, {"ok": True})

    def test_parse_result_helpers(self):
        self.assertTrue(ParseResult.success({}).ok)
        self.assertFalse(ParseResult.failure("nope").ok)


if __name__ == '__main__':
    unittest.main()
