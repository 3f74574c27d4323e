"""Shared test fixtures for xhs-assist tests."""

import json
from unittest.mock import Mock

import pytest
import requests
import structlog

from xhs_assist.envelope import ContentEnvelope, GenerationResult, Mode

# Smallest valid PNG header, enough for media type sniffing
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop logging config bound to a captured stream by an earlier test."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def png_bytes():
    return PNG_BYTES


@pytest.fixture
def collected_envelope():
    """Scraped page content as the opening turn."""
    return ContentEnvelope.collected_from(
        title="Weekend brunch in Shanghai",
        content="Found a tiny cafe on Wukang Road with the best eggs benedict.",
        images=["data:image/png;base64,iVBORw0KGgo="],
    )


@pytest.fixture
def long_history(collected_envelope):
    """A ten-turn conversation alternating user and assistant."""
    history = [collected_envelope]
    for i in range(1, 10):
        if i % 2:
            history.append(ContentEnvelope.from_result(
                GenerationResult(mode=Mode.POST, title=f"Title {i}", content=f"Version {i}")
            ))
        else:
            history.append(ContentEnvelope.user_text(f"Make version {i} funnier"))
    return history


def make_response(payload=None, *, status_error=None, json_error=None):
    """Build a mock requests.Response."""
    response = Mock()
    response.raise_for_status = Mock(side_effect=status_error)
    if json_error is not None:
        response.json = Mock(side_effect=json_error)
    else:
        response.json = Mock(return_value=payload)
    return response


def error_response(status_code, body="", url="https://api.openai.com/v1/chat/completions"):
    """Build a real requests.Response whose raise_for_status() fails."""
    response = requests.Response()
    response.status_code = status_code
    response.url = url
    response.reason = "Error"
    response._content = body.encode("utf-8")
    return response


def openai_reply(content=None, *, tool_arguments=None, usage=None):
    """Chat completions reply with text content or a tool call."""
    message = {"role": "assistant", "content": content}
    if tool_arguments is not None:
        message["content"] = None
        message["tool_calls"] = [{
            "id": "call_1",
            "type": "function",
            "function": {"name": "generate_xhs_content", "arguments": tool_arguments},
        }]
    reply = {"choices": [{"index": 0, "message": message, "finish_reason": "stop"}]}
    if usage is not None:
        reply["usage"] = usage
    return reply


def anthropic_reply(*blocks, usage=None):
    reply = {"id": "msg_1", "type": "message", "role": "assistant", "content": list(blocks)}
    if usage is not None:
        reply["usage"] = usage
    return reply


@pytest.fixture
def mock_session():
    """A mock requests.Session answering with a valid post."""
    session = Mock()
    session.post.return_value = make_response(
        openai_reply(json.dumps({"title": "Brunch heaven", "content": "Eggs benedict worth the queue!"}))
    )
    return session


@pytest.fixture
def tmp_config(tmp_path, monkeypatch):
    """Create a temporary config file and patch the config path."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    config_file = config_dir / "config.yaml"

    monkeypatch.setattr("xhs_assist.config.DEFAULT_CONFIG_FILE", config_file)
    monkeypatch.setattr("xhs_assist.config.DEFAULT_CONFIG_DIR", config_dir)

    # Keep the developer's environment out of the tests
    for var in (
        "XHS_ASSIST_CONFIG",
        "XHS_ASSIST_API_KEY",
        "XHS_ASSIST_BASE_URL",
        "XHS_ASSIST_MODEL",
        "OPENAI_API_KEY",
        "ANTHROPIC_API_KEY",
        "DASHSCOPE_API_KEY",
    ):
        monkeypatch.delenv(var, raising=False)

    return config_file
