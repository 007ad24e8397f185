"""
Integration tests for chat API endpoints.
"""

import unittest
from unittest.mock import patch
import sys
import os
import tempfile
from contextlib import closing
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from fastapi.testclient import TestClient

from weave import storage
from weave.db import get_db_connection
from weave.errors import LLMConfigurationError, UpstreamServiceError
from weave.main import app

CHAT_BODY = {
    "message": "What is this poem really about?",
    "scrap": {"type": "text", "content": "Hope is the thing with feathers", "source": "Emily Dickinson"},
    "chatHistory": [
        {"sender": "user", "content": "I saved this yesterday"},
        {"sender": "bobbin", "content": "It's a lovely one."},
    ],
}


class TestChatAPI(unittest.TestCase):
    """Test chat API endpoints."""

    @classmethod
    def setUpClass(cls):
        cls.client = TestClient(app)

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.env = patch.dict(os.environ, {
            "WEAVE_DATA_DIR": self.tmpdir.name,
            "WEAVE_DB_PATH": os.path.join(self.tmpdir.name, "weave.db"),
            "ANTHROPIC_API_KEY": "sk-ant-test-key",
        })
        self.env.start()
        app.state.rate_limiter.reset()

        with closing(get_db_connection()) as conn:
            token = storage.create_session(conn, "user-1")
        self.auth = {"Authorization": f"Bearer {token}"}

    def tearDown(self):
        self.env.stop()
        self.tmpdir.cleanup()

    @patch('weave.routes.chat.call_llm')
    def test_chat_success(self, mock_llm):
        mock_llm.return_value = "It's about resilience."

        response = self.client.post("/api/chat", json=CHAT_BODY, headers=self.auth)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"success": True, "response": "It's about resilience."})

        messages = mock_llm.call_args.args[0]
        prompt = messages[0]["content"]
        self.assertIn('A quote/thought: "Hope is the thing with feathers" from Emily Dickinson', prompt)
        self.assertIn("Human: I saved this yesterday", prompt)
        self.assertIn("Assistant: It's a lovely one.", prompt)
        self.assertIn("Human: What is this poem really about?", prompt)
        self.assertEqual(mock_llm.call_args.kwargs["max_tokens"], 300)

    @patch('weave.routes.chat.call_llm')
    def test_session_cookie_accepted(self, mock_llm):
        mock_llm.return_value = "ok"
        token = self.auth["Authorization"].split(" ", 1)[1]

        response = self.client.post("/api/chat", json=CHAT_BODY, headers={"Cookie": f"weave_session={token}"})

        self.assertEqual(response.status_code, 200)

    @patch('weave.routes.chat.call_llm')
    def test_unauthenticated(self, mock_llm):
        response = self.client.post("/api/chat", json=CHAT_BODY)
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"success": False, "error": "Unauthorized"})

        response = self.client.post("/api/chat", json=CHAT_BODY, headers={"Authorization": "Bearer nope"})
        self.assertEqual(response.status_code, 401)
        mock_llm.assert_not_called()

    @patch('weave.routes.chat.call_llm')
    def test_rate_limit(self, mock_llm):
        mock_llm.return_value = "ok"

        for _ in range(10):
            response = self.client.post("/api/chat", json=CHAT_BODY, headers=self.auth)
            self.assertEqual(response.status_code, 200)

        response = self.client.post("/api/chat", json=CHAT_BODY, headers=self.auth)
        self.assertEqual(response.status_code, 429)
        self.assertFalse(response.json()["success"])
        self.assertEqual(response.json()["error"], "Too many requests. Please wait a moment and try again.")
        self.assertGreaterEqual(int(response.headers["Retry-After"]), 1)
        self.assertEqual(mock_llm.call_count, 10)

    @patch('weave.routes.chat.call_llm')
    def test_rate_limit_is_per_user(self, mock_llm):
        mock_llm.return_value = "ok"
        for _ in range(10):
            self.client.post("/api/chat", json=CHAT_BODY, headers=self.auth)

        with closing(get_db_connection()) as conn:
            other = storage.create_session(conn, "user-2")
        response = self.client.post("/api/chat", json=CHAT_BODY, headers={"Authorization": f"Bearer {other}"})
        self.assertEqual(response.status_code, 200)

    @patch('weave.routes.chat.call_llm')
    def test_llm_failure(self, mock_llm):
        mock_llm.side_effect = UpstreamServiceError(detail="LLM call failed: timeout")

        response = self.client.post("/api/chat", json=CHAT_BODY, headers=self.auth)

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"success": False, "error": "Failed to process chat request"})

    @patch('weave.routes.chat.call_llm')
    def test_llm_not_configured(self, mock_llm):
        mock_llm.side_effect = LLMConfigurationError(detail="ANTHROPIC_API_KEY environment variable is not set")

        response = self.client.post("/api/chat", json=CHAT_BODY, headers=self.auth)

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["error"], "AI service not configured. Please contact support.")

    def test_invalid_body(self):
        response = self.client.post("/api/chat", json={"scrap": {"type": "text"}}, headers=self.auth)
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.json()["success"])

    def test_chat_history_lifecycle(self):
        response = self.client.get("/api/chat-history/scrap-1", headers=self.auth)
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.json()["history"])

        body = {"messages": [
            {"sender": "user", "content": "hello"},
            {"role": "ai", "content": "hi there"},
        ]}
        response = self.client.post("/api/chat-history/scrap-1", json=body, headers=self.auth)
        self.assertEqual(response.status_code, 200)
        history = response.json()["history"]
        self.assertEqual(history["scrap_id"], "scrap-1")
        self.assertEqual([m["sender"] for m in history["messages"]], ["user", "assistant"])

        response = self.client.get("/api/chat-history/scrap-1", headers=self.auth)
        self.assertEqual(response.json()["history"]["messages"][1]["content"], "hi there")

        response = self.client.delete("/api/chat-history/scrap-1", headers=self.auth)
        self.assertEqual(response.json(), {"success": True, "deleted": True})
        response = self.client.get("/api/chat-history/scrap-1", headers=self.auth)
        self.assertIsNone(response.json()["history"])

    def test_health(self):
        response = self.client.get("/api/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")

    def test_setup_check(self):
        # setUp created a session, which creates every table
        response = self.client.get("/api/setup/check")
        self.assertEqual(response.json(), {"initialized": True})

        os.environ["WEAVE_DB_PATH"] = os.path.join(self.tmpdir.name, "fresh.db")
        response = self.client.get("/api/setup/check")
        self.assertEqual(response.json(), {"initialized": False})

    @patch('weave.routes.chat.call_llm')
    def test_invalid_requests_not_counted(self, mock_llm):
        mock_llm.return_value = "ok"

        for _ in range(12):
            response = self.client.post("/api/chat", json={"scrap": {"type": "text"}}, headers=self.auth)
            self.assertEqual(response.status_code, 400)

        response = self.client.post("/api/chat", json=CHAT_BODY, headers=self.auth)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.headers["X-RateLimit-Remaining"], "9")

    @patch('weave.routes.chat.call_llm')
    def test_logout(self, mock_llm):
        mock_llm.return_value = "ok"

        response = self.client.post("/api/logout", headers=self.auth)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"success": True})

        response = self.client.post("/api/chat", json=CHAT_BODY, headers=self.auth)
        self.assertEqual(response.status_code, 401)
        response = self.client.post("/api/logout", headers=self.auth)
        self.assertEqual(response.status_code, 401)


if __name__ == '__main__':
    unittest.main()
