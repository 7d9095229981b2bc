"""
Commentary Service Test Suite

The hosted model is replaced by in-process backends. Verifies the
never-raise contract: every failure turns into the fixed fallbacks.
"""

import json
import os
import unittest
from unittest import mock

from fheclinic import (
    AgentRole,
    CommentaryService,
    LogEntry,
    ProtocolAnalysis,
    analyze_protocol_step,
    generate_agent_message,
)
from fheclinic.commentary import (
    FALLBACK_AGENT_MESSAGE,
    FALLBACK_ANALYSIS,
    FALLBACK_SECURITY_SCORE,
    CommentaryBackend,
    format_log_context,
)
from fheclinic.config import commentary_enabled, get_api_key


class FakeBackend(CommentaryBackend):
    """Returns canned replies and records prompts."""

    def __init__(self, analysis_reply=None, message_reply=None):
        self.analysis_reply = analysis_reply
        self.message_reply = message_reply
        self.calls = []

    def generate(self, prompt, system_instruction=None, json_mode=False):
        self.calls.append((prompt, system_instruction, json_mode))
        return self.analysis_reply if json_mode else self.message_reply


class FailingBackend(CommentaryBackend):
    def generate(self, prompt, system_instruction=None, json_mode=False):
        raise ConnectionError("network unreachable")


def sample_entries():
    return [
        LogEntry("1", "2026-01-01T00:00:00.000Z", AgentRole.PATIENT,
                 "ENCRYPT_VITALS", "Encrypted Patient Vitals Vector."),
        LogEntry("2", "2026-01-01T00:00:01.000Z", AgentRole.SPECIALIST,
                 "NN_INFERENCE", "Specialist executed an encrypted inference."),
    ]


class TestAnalyzeProtocolStep(unittest.TestCase):

    def test_parses_reply(self):
        backend = FakeBackend(analysis_reply=json.dumps({
            "analysis": "Inference ran on ciphertext only.",
            "securityScore": 92,
        }))
        result = CommentaryService(backend).analyze_protocol_step(sample_entries())

        self.assertIsInstance(result, ProtocolAnalysis)
        self.assertEqual(result.analysis, "Inference ran on ciphertext only.")
        self.assertEqual(result.security_score, 92)
        self.assertEqual(result.to_dict(), {
            "analysis": "Inference ran on ciphertext only.",
            "securityScore": 92,
        })

    def test_prompt_contains_log_lines(self):
        backend = FakeBackend(analysis_reply='{"analysis": "ok", "securityScore": 80}')
        CommentaryService(backend).analyze_protocol_step(sample_entries())

        prompt, system_instruction, json_mode = backend.calls[0]
        self.assertIn("[PATIENT] ENCRYPT_VITALS: Encrypted Patient Vitals Vector.", prompt)
        self.assertIn("[SPECIALIST] NN_INFERENCE:", prompt)
        self.assertTrue(json_mode)
        self.assertIsNotNone(system_instruction)

    def test_empty_reply_is_absent(self):
        result = CommentaryService(FakeBackend(analysis_reply="")).analyze_protocol_step([])
        self.assertIsNone(result)

    def test_backend_failure_falls_back(self):
        result = CommentaryService(FailingBackend()).analyze_protocol_step(sample_entries())

        self.assertEqual(result.analysis, FALLBACK_ANALYSIS)
        self.assertEqual(result.security_score, FALLBACK_SECURITY_SCORE)

    def test_unparseable_reply_falls_back(self):
        for reply in ["not json", '{"analysis": "x"}', '{"analysis": "x", "securityScore": 150}']:
            result = CommentaryService(FakeBackend(analysis_reply=reply)).analyze_protocol_step([])
            self.assertEqual(result.analysis, FALLBACK_ANALYSIS, reply)

    def test_fallback_is_logged(self):
        with self.assertLogs("fheclinic", level="WARNING") as logs:
            CommentaryService(FailingBackend()).analyze_protocol_step([])
        self.assertTrue(any("COMMENTARY_FALLBACK" in line for line in logs.output))

    @mock.patch.dict(os.environ, {}, clear=True)
    def test_missing_credential_falls_back(self):
        result = CommentaryService().analyze_protocol_step(sample_entries())
        self.assertEqual(result.analysis, FALLBACK_ANALYSIS)


class TestGenerateAgentMessage(unittest.TestCase):

    def test_reply_is_stripped(self):
        backend = FakeBackend(message_reply="  Ciphertext routed. Zero knowledge.\n")
        message = CommentaryService(backend).generate_agent_message("BILLING (E)", "GENERATE_BILL")

        self.assertEqual(message, "Ciphertext routed. Zero knowledge.")
        prompt, _, json_mode = backend.calls[0]
        self.assertIn("BILLING (E)", prompt)
        self.assertIn("GENERATE_BILL", prompt)
        self.assertFalse(json_mode)

    def test_empty_reply_falls_back(self):
        message = CommentaryService(FakeBackend(message_reply=None)).generate_agent_message("X", "Y")
        self.assertEqual(message, FALLBACK_AGENT_MESSAGE)

    def test_failure_falls_back(self):
        message = CommentaryService(FailingBackend()).generate_agent_message("X", "Y")
        self.assertEqual(message, FALLBACK_AGENT_MESSAGE)

    @mock.patch.dict(os.environ, {"API_KEY": "dummy"}, clear=True)
    def test_placeholder_credential_falls_back(self):
        self.assertEqual(CommentaryService().generate_agent_message("X", "Y"), FALLBACK_AGENT_MESSAGE)

    @mock.patch.dict(os.environ, {}, clear=True)
    def test_module_functions_fall_back(self):
        self.assertEqual(analyze_protocol_step(sample_entries()).analysis, FALLBACK_ANALYSIS)
        self.assertEqual(generate_agent_message("X", "Y"), FALLBACK_AGENT_MESSAGE)


class TestCredentials(unittest.TestCase):

    @mock.patch.dict(os.environ, {"GEMINI_API_KEY": "g-key", "API_KEY": "other"}, clear=True)
    def test_gemini_key_preferred(self):
        self.assertEqual(get_api_key(), "g-key")
        self.assertTrue(commentary_enabled())

    @mock.patch.dict(os.environ, {"API_KEY": "other"}, clear=True)
    def test_api_key_fallback(self):
        self.assertEqual(get_api_key(), "other")

    @mock.patch.dict(os.environ, {"API_KEY": "dummy"}, clear=True)
    def test_dummy_means_unset(self):
        self.assertIsNone(get_api_key())
        self.assertFalse(commentary_enabled())


class TestLogContext(unittest.TestCase):

    def test_one_line_per_entry(self):
        text = format_log_context(sample_entries())
        self.assertEqual(len(text.splitlines()), 2)
        self.assertEqual(format_log_context([]), "")


if __name__ == "__main__":
    unittest.main()
