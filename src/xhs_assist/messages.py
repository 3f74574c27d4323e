"""Message shapes exchanged with the browser extension surfaces.

The relay between content script, service worker and side panel is not
part of this package; these helpers only convert its payloads to and from
envelopes and generation outcomes.
"""

import time
import uuid
from typing import Any

from .envelope import ContentEnvelope, GenerationResult, Mode
from .llm import AIError
from .service import DegradedReply

POST_CONTENT_COLLECTED = "postContentCollected"
COMMENT_CONTENT_COLLECTED = "commentContentCollected"
REPLY_CONTENT_COLLECTED = "replyContentCollected"
APPLY_CONTENT_TO_PAGE = "applyContentToPage"
APPLY_COMMENT_TO_PAGE = "applyCommentToPage"

COLLECTED_ACTIONS: dict[str, Mode] = {
    POST_CONTENT_COLLECTED: Mode.POST,
    COMMENT_CONTENT_COLLECTED: Mode.COMMENT,
    REPLY_CONTENT_COLLECTED: Mode.COMMENT,
}


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


def message_mode(action: str) -> Mode:
    """Get the generation mode for a content-collected action."""
    if action not in COLLECTED_ACTIONS:
        available = ", ".join(COLLECTED_ACTIONS)
        raise ValueError(f"Unknown message action: {action}. Available: {available}")
    return COLLECTED_ACTIONS[action]


def envelope_from_collected(data: dict[str, Any], mode: Mode | str) -> ContentEnvelope:
    """Build a user envelope from scraped page content {images, title, content}."""
    return ContentEnvelope.collected_from(
        title=data.get("title") or "",
        content=data.get("content") or "",
        images=tuple(data.get("images") or ()),
        mode=mode,
    )


def envelope_from_user_input(data: dict[str, Any]) -> ContentEnvelope:
    """Build a user envelope from chat input {content, images?, mode?}."""
    return ContentEnvelope.user_text(
        data.get("content") or "",
        images=tuple(data.get("images") or ()),
        mode=Mode.parse(data.get("mode")),
    )


def apply_message(result: GenerationResult, message_id: str | None = None) -> dict[str, Any]:
    """Build the message asking the content script to fill the page fields.

    Posts fill the title input and the editor; comments fill the comment box.
    """
    data: dict[str, Any] = {
        "content": result.content,
        "messageId": message_id,
        "timestamp": _timestamp_ms(),
    }
    if result.mode is Mode.POST:
        data["title"] = result.title or ""
        return {"action": APPLY_CONTENT_TO_PAGE, "data": data}
    return {"action": APPLY_COMMENT_TO_PAGE, "data": data}


def chat_message(outcome: GenerationResult | DegradedReply | AIError) -> dict[str, Any]:
    """Render a generation outcome as a chat message for the side panel.

    Results get an apply button, degraded replies show the raw text as an
    assistant message, and errors become a system message.
    """
    message: dict[str, Any] = {
        "id": f"msg_{uuid.uuid4().hex}",
        "timestamp": _timestamp_ms(),
    }
    if isinstance(outcome, GenerationResult):
        message.update(
            type="result",
            sender="assistant",
            generatedData=outcome.to_dict(),
            showApplyButton=True,
        )
    elif isinstance(outcome, DegradedReply):
        message.update(type="ai", sender="assistant", content=outcome.message)
    else:
        message.update(type="ai", sender="system", content=f"Sorry, something went wrong: {outcome.message}")
    return message
