"""Tests for xhs_assist.service."""

import asyncio
import json

import pytest
from unittest.mock import Mock

from conftest import anthropic_reply, error_response, make_response, openai_reply
from xhs_assist.envelope import ContentEnvelope, GenerationResult, Mode
from xhs_assist.llm import AIError, ErrorKind, ProviderConfig
from xhs_assist.service import AIService, DegradedReply, ServiceState
from xhs_assist.validator import ContentLimits


def _service(session, **config):
    config.setdefault("api_key", "sk-test")
    return AIService(ProviderConfig(**config), session_factory=lambda: session)


def _session(*payloads):
    session = Mock()
    session.post.side_effect = [make_response(payload) for payload in payloads]
    return session


class TestConfiguration:
    """Tests for service state and config swaps."""

    def test_unconfigured_without_key(self):
        factory = Mock()
        service = AIService(ProviderConfig(), session_factory=factory)
        assert service.state is ServiceState.UNCONFIGURED
        assert not service.is_configured()
        assert service.client is None
        factory.assert_not_called()

    def test_ready_with_key(self, mock_session):
        service = _service(mock_session)
        assert service.state is ServiceState.READY
        assert service.client.config is service.config
        assert service.provider == "openai_compatible"

    def test_not_configured_fails_before_network(self, collected_envelope):
        factory = Mock()
        service = AIService(ProviderConfig(provider="claude"), session_factory=factory)

        with pytest.raises(AIError) as exc_info:
            service.generate([collected_envelope], Mode.POST)

        assert exc_info.value.kind is ErrorKind.NOT_CONFIGURED
        assert exc_info.value.message == "Claude API key is not configured, please set one in the settings"
        factory.assert_not_called()

    def test_update_config_replaces_client(self, mock_session):
        service = _service(mock_session)
        old_client = service.client

        service.update_config(ProviderConfig(provider="claude", api_key="sk-ant"))

        assert service.provider == "anthropic_compatible"
        assert service.client is not old_client
        assert service.client.config.api_key == "sk-ant"
        # The old client is left intact for calls already in flight
        assert old_client.config.api_key == "sk-test"

    def test_update_config_to_unconfigured(self, mock_session):
        service = _service(mock_session)
        service.update_config(ProviderConfig(api_key=""))
        assert service.state is ServiceState.UNCONFIGURED

    def test_update_config_from_unconfigured(self, mock_session):
        service = AIService(ProviderConfig(), session_factory=lambda: mock_session)
        service.update_config(ProviderConfig(api_key="sk-new"))
        assert service.is_configured()


class TestGenerate:
    """Tests for AIService.generate()."""

    def test_post_success(self, mock_session, collected_envelope):
        result = _service(mock_session).generate([collected_envelope], "post")
        assert result == GenerationResult(
            mode=Mode.POST,
            title="Brunch heaven",
            content="Eggs benedict worth the queue!",
        )
        mock_session.post.assert_called_once()

    def test_history_not_modified(self, mock_session, long_history):
        before = list(long_history)
        _service(mock_session).generate(long_history, Mode.POST)
        assert long_history == before

    def test_long_history_is_windowed(self, mock_session, long_history):
        _service(mock_session).generate(long_history, Mode.POST)
        payload = mock_session.post.call_args.kwargs["json"]
        # System message plus five windowed turns
        assert len(payload["messages"]) == 6

    def test_custom_instructions(self, mock_session, collected_envelope):
        _service(mock_session).generate([collected_envelope], Mode.POST, instructions="Be brief.")
        payload = mock_session.post.call_args.kwargs["json"]
        assert payload["messages"][0] == {"role": "system", "content": "Be brief."}

    def test_post_then_comment(self, collected_envelope):
        """Test that sequential calls use each mode's own contract."""
        session = _session(
            openai_reply(json.dumps({"title": "Brunch heaven", "content": "So good"})),
            openai_reply(json.dumps({"content": "Where is this cafe?"})),
        )
        service = _service(session, model="gpt-4o")

        post = service.generate([collected_envelope], Mode.POST)
        comment = service.generate([collected_envelope], Mode.COMMENT)

        assert post.title == "Brunch heaven"
        assert comment == GenerationResult(mode=Mode.COMMENT, content="Where is this cafe?")

        first, second = (c.kwargs["json"]["response_format"]["json_schema"] for c in session.post.call_args_list)
        assert first["name"] == "xhs_content"
        assert second["name"] == "xhs_comment"
        assert "title" not in second["schema"]["properties"]

    def test_anthropic_tool_names_follow_mode(self, collected_envelope):
        session = _session(
            anthropic_reply({"type": "tool_use", "name": "generate_xhs_comment", "input": {"content": "Love it"}}),
        )
        service = _service(session, provider="claude")

        result = service.generate([collected_envelope], "reply")

        assert result == GenerationResult(mode=Mode.COMMENT, content="Love it")
        payload = session.post.call_args.kwargs["json"]
        assert payload["tool_choice"] == {"type": "tool", "name": "generate_xhs_comment"}

    def test_transport_error_propagates(self, collected_envelope):
        session = Mock()
        session.post.return_value = error_response(429)

        with pytest.raises(AIError) as exc_info:
            _service(session).generate([collected_envelope], Mode.POST)

        assert exc_info.value.kind is ErrorKind.RATE_LIMITED
        session.post.assert_called_once()


    def test_openai_token_usage(self, collected_envelope):
        session = _session(openai_reply(
            '{"title": "T", "content": "C"}',
            usage={"prompt_tokens": 120, "completion_tokens": 30, "total_tokens": 150},
        ))

        result = _service(session).generate([collected_envelope], Mode.POST)

        assert result.tokens_used == 150
        assert result.to_dict()["tokens_used"] == 150

    def test_anthropic_token_usage(self, collected_envelope):
        session = _session(anthropic_reply(
            {"type": "tool_use", "name": "generate_xhs_comment", "input": {"content": "Love it"}},
            usage={"input_tokens": 200, "output_tokens": 25},
        ))

        result = _service(session, provider="claude").generate([collected_envelope], Mode.COMMENT)

        assert result.tokens_used == 225

    def test_missing_usage(self, mock_session, collected_envelope):
        result = _service(mock_session).generate([collected_envelope], Mode.POST)
        assert result.tokens_used is None
        assert "tokens_used" not in result.to_dict()


class TestDegradedReplies:
    """Malformed and invalid replies still reach the user."""

    def test_malformed_json(self, collected_envelope):
        session = _session(openai_reply("Here is a lovely title: Brunch!"))

        outcome = _service(session).generate([collected_envelope], Mode.POST)

        assert isinstance(outcome, DegradedReply)
        assert outcome.kind is ErrorKind.MALFORMED_RESPONSE
        assert outcome.raw_text == "Here is a lovely title: Brunch!"
        assert outcome.message == "Response format error, raw reply: Here is a lovely title: Brunch!"

    def test_missing_title(self, collected_envelope):
        session = _session(openai_reply('{"content": "No title here"}'))

        outcome = _service(session).generate([collected_envelope], Mode.POST)

        assert isinstance(outcome, DegradedReply)
        assert outcome.kind is ErrorKind.VALIDATION_FAILURE
        assert outcome.problems == ("missing title",)
        assert json.loads(outcome.raw_text) == {"content": "No title here"}

    def test_content_too_long(self, collected_envelope):
        session = _session(openai_reply(json.dumps({"content": "a" * 1001})))

        outcome = _service(session).generate([collected_envelope], Mode.COMMENT)

        assert isinstance(outcome, DegradedReply)
        assert outcome.problems == ("content too long (1001 > 1000 characters)",)

    def test_custom_limits(self, collected_envelope):
        session = _session(openai_reply('{"title": "A long title", "content": "ok"}'))
        service = AIService(
            ProviderConfig(api_key="k"),
            limits=ContentLimits(max_title_length=5),
            session_factory=lambda: session,
        )

        outcome = service.generate([collected_envelope], Mode.POST)

        assert isinstance(outcome, DegradedReply)
        assert outcome.problems == ("title too long (12 > 5 characters)",)


class TestAsync:

    def test_agenerate(self, mock_session, collected_envelope):
        service = _service(mock_session)
        result = asyncio.run(service.agenerate([collected_envelope], Mode.POST))
        assert result.title == "Brunch heaven"

    def test_agenerate_propagates_errors(self, collected_envelope):
        service = AIService(ProviderConfig())
        with pytest.raises(AIError) as exc_info:
            asyncio.run(service.agenerate([collected_envelope], Mode.COMMENT))
        assert exc_info.value.kind is ErrorKind.NOT_CONFIGURED

    def test_concurrent_calls(self, collected_envelope):
        session = _session(
            openai_reply('{"title": "One", "content": "first"}'),
            openai_reply('{"title": "Two", "content": "second"}'),
        )
        service = _service(session)

        async def run_both():
            return await asyncio.gather(
                service.agenerate([collected_envelope], Mode.POST),
                service.agenerate([ContentEnvelope.user_text("again")], Mode.POST),
            )

        results = asyncio.run(run_both())
        assert {r.title for r in results} == {"One", "Two"}
