"""
Tests for LiteLLM service integration.
"""

import unittest
import os
from unittest.mock import patch, MagicMock
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from weave.errors import LLMConfigurationError, UpstreamServiceError
from weave.llm.litellm_service import call_llm, ensure_api_key

MODEL = "anthropic/claude-3-5-haiku-20241022"
VALID_KEY = {"ANTHROPIC_API_KEY": "sk-ant-test-key"}


def _completion_response(content):
    resp = MagicMock()
    resp.choices = [MagicMock()]
    resp.choices[0].message.content = content
    return resp


class TestEnsureApiKey(unittest.TestCase):

    def test_missing_key(self):
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(LLMConfigurationError) as ctx:
                ensure_api_key(MODEL)
        self.assertEqual(ctx.exception.public_message, "AI service not configured. Please contact support.")
        self.assertIn("not set", ctx.exception.detail)

    def test_malformed_key(self):
        with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "test-key"}, clear=True):
            with self.assertRaises(LLMConfigurationError):
                ensure_api_key(MODEL)

    def test_valid_key(self):
        with patch.dict(os.environ, VALID_KEY, clear=True):
            ensure_api_key(MODEL)

    def test_other_providers_not_checked(self):
        with patch.dict(os.environ, {}, clear=True):
            ensure_api_key("openai/gpt-4o")


class TestCallLLM(unittest.TestCase):
    """Test call_llm function."""

    @patch('weave.llm.litellm_service.completion')
    def test_call_llm_success(self, mock_completion):
        mock_completion.return_value = _completion_response("Test response")

        with patch.dict(os.environ, VALID_KEY, clear=False):
            result = call_llm(
                messages=[{"role": "user", "content": "Hello"}],
                model=MODEL,
                max_tokens=300,
            )

        self.assertEqual(result, "Test response")
        kwargs = mock_completion.call_args.kwargs
        self.assertEqual(kwargs["model"], MODEL)
        self.assertEqual(kwargs["max_tokens"], 300)
        self.assertNotIn("temperature", kwargs)

    @patch('weave.llm.litellm_service.completion')
    def test_call_llm_passes_temperature(self, mock_completion):
        mock_completion.return_value = _completion_response("ok")

        with patch.dict(os.environ, VALID_KEY, clear=False):
            call_llm([{"role": "user", "content": "Hi"}], MODEL, max_tokens=10, temperature=0.2)

        self.assertEqual(mock_completion.call_args.kwargs["temperature"], 0.2)

    @patch('weave.llm.litellm_service.completion')
    def test_call_llm_error(self, mock_completion):
        mock_completion.side_effect = Exception("API Error")

        with patch.dict(os.environ, VALID_KEY, clear=False):
            with self.assertRaises(UpstreamServiceError) as ctx:
                call_llm([{"role": "user", "content": "Hello"}], MODEL, max_tokens=100)

        self.assertIn("LLM call failed", ctx.exception.detail)
        self.assertIn("API Error", ctx.exception.detail)
        # Exactly one attempt, no retry
        self.assertEqual(mock_completion.call_count, 1)

    @patch('weave.llm.litellm_service.completion')
    def test_missing_key_skips_call(self, mock_completion):
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(LLMConfigurationError):
                call_llm([{"role": "user", "content": "Hello"}], MODEL, max_tokens=100)
        mock_completion.assert_not_called()

    @patch('weave.llm.litellm_service.completion')
    def test_empty_content_is_empty_string(self, mock_completion):
        mock_completion.return_value = _completion_response(None)

        with patch.dict(os.environ, VALID_KEY, clear=False):
            self.assertEqual(call_llm([{"role": "user", "content": "x"}], MODEL, max_tokens=5), "")


if __name__ == '__main__':
    unittest.main()
