"""Tests for xhs_assist.messages."""

import pytest

from xhs_assist.envelope import GenerationResult, Kind, Mode, Role
from xhs_assist.llm import AIError, ErrorKind
from xhs_assist.messages import (
    APPLY_COMMENT_TO_PAGE,
    APPLY_CONTENT_TO_PAGE,
    apply_message,
    chat_message,
    envelope_from_collected,
    envelope_from_user_input,
    message_mode,
)
from xhs_assist.service import DegradedReply


class TestIncoming:
    """Tests for payloads arriving from the page."""

    def test_message_modes(self):
        assert message_mode("postContentCollected") is Mode.POST
        assert message_mode("commentContentCollected") is Mode.COMMENT
        assert message_mode("replyContentCollected") is Mode.COMMENT

    def test_unknown_action(self):
        with pytest.raises(ValueError, match="Unknown message action"):
            message_mode("openSidePanel")

    def test_envelope_from_collected(self):
        env = envelope_from_collected(
            {"title": "Hot pot night", "content": "Spicy!", "images": ["https://img.example.com/1.jpg"]},
            Mode.COMMENT,
        )
        assert env.role is Role.USER
        assert env.kind is Kind.COLLECTED_CONTENT
        assert env.mode is Mode.COMMENT
        assert env.collected.images == ("https://img.example.com/1.jpg",)

    def test_envelope_from_collected_missing_fields(self):
        env = envelope_from_collected({"images": None}, "post")
        assert env.collected.title == ""
        assert env.collected.content == ""
        assert env.collected.images == ()

    def test_envelope_from_user_input(self):
        env = envelope_from_user_input({"content": "Make it funnier", "mode": "comment"})
        assert env.kind is Kind.PLAIN_TEXT
        assert env.text == "Make it funnier"
        assert env.mode is Mode.COMMENT


class TestApplyMessage:

    def test_post_fills_title_and_content(self):
        message = apply_message(GenerationResult(mode=Mode.POST, title="T", content="C"), "msg_1")
        assert message["action"] == APPLY_CONTENT_TO_PAGE
        assert message["data"]["title"] == "T"
        assert message["data"]["content"] == "C"
        assert message["data"]["messageId"] == "msg_1"
        assert isinstance(message["data"]["timestamp"], int)

    def test_comment_fills_comment_box(self):
        message = apply_message(GenerationResult(mode=Mode.COMMENT, content="Nice!"))
        assert message["action"] == APPLY_COMMENT_TO_PAGE
        assert "title" not in message["data"]


class TestChatMessage:

    def test_result(self):
        message = chat_message(GenerationResult(mode=Mode.POST, title="T", content="C"))
        assert message["type"] == "result"
        assert message["sender"] == "assistant"
        assert message["showApplyButton"] is True
        assert message["generatedData"] == {"mode": "post", "title": "T", "content": "C"}
        assert message["id"].startswith("msg_")

    def test_degraded_reply(self):
        degraded = DegradedReply(mode=Mode.POST, kind=ErrorKind.MALFORMED_RESPONSE, raw_text="hello")
        message = chat_message(degraded)
        assert message["type"] == "ai"
        assert message["sender"] == "assistant"
        assert message["content"] == "Response format error, raw reply: hello"

    def test_error(self):
        error = AIError(ErrorKind.RATE_LIMITED, "OpenAI", "OpenAI API rate limit reached, please try again later")
        message = chat_message(error)
        assert message["sender"] == "system"
        assert message["content"] == (
            "Sorry, something went wrong: OpenAI API rate limit reached, please try again later"
        )
