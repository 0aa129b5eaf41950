"""Tests for settings, mentor configuration and CLI logging."""

import logging

from click.testing import CliRunner

from rethoric.cli import SecretRedactingFilter, cli
from rethoric.config import Settings
from rethoric.conversations.context import ConversationContext, ConversationStage, QuestionContext
from rethoric.conversations.mentor import MentorConfig


def test_defaults(monkeypatch):
    monkeypatch.delenv("GENERATION_MAX_ATTEMPTS", raising=False)
    settings = Settings(_env_file=None, DEBUG=True)

    assert settings.GENERATION_MAX_ATTEMPTS == 3
    assert settings.GENERATION_BASE_DELAY == 1.0
    assert settings.AUTH_SUBJECT_HEADER == "X-Auth-Subject"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("GENERATION_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("MENTOR_NAME", "Gadfly")

    config = MentorConfig.from_settings(Settings(_env_file=None, DEBUG=True))

    assert config.max_attempts == 5
    assert config.name == "Gadfly"


def test_instructions_follow_stage():
    context = ConversationContext(
        conversation_id=1,
        question=QuestionContext(title="Is luck fair?"),
        stage=ConversationStage.SYNTHESIZING,
    )

    instructions = MentorConfig().build_instructions(context)

    assert "Topic: Is luck fair?" in instructions
    assert "Details:" not in instructions
    assert "Conversation stage: synthesizing" in instructions


class TestSecretRedactingFilter:
    def redact(self, message: str) -> str:
        record = logging.LogRecord("test", logging.INFO, __file__, 1, message, None, None)
        SecretRedactingFilter().filter(record)
        return record.msg

    def test_redacts_webhook_secret(self):
        assert "abc123" not in self.redact("secret whsec_abc123==")

    def test_redacts_api_key(self):
        redacted = self.redact("api_key=sk-ant-REDACTED")
        assert "abcdefghijklmnop" not in redacted
        assert "[REDACTED]" in redacted

    def test_plain_messages_untouched(self):
        assert self.redact("Conversation 4 completed") == "Conversation 4 completed"


def test_import_questions_rejects_non_list(tmp_path):
    path = tmp_path / "questions.json"
    path.write_text('{"title": "not a list"}', encoding="utf-8")

    result = CliRunner().invoke(cli, ["import-questions", str(path)])

    assert result.exit_code == 1
    assert "expected a JSON list" in result.output
