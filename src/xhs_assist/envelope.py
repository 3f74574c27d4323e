"""Provider-independent conversation model for xhs-assist.

A conversation is a list of ContentEnvelope turns owned by the caller. The
core only reads them for the duration of one generation call.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .utils import image_to_data_uri

ImagePayload = bytes | str


class Role(str, Enum):
    """Who produced a turn. System instructions are never stored as turns."""

    USER = "user"
    ASSISTANT = "assistant"


class Kind(str, Enum):
    """What a turn carries."""

    PLAIN_TEXT = "plain_text"
    COLLECTED_CONTENT = "collected_content"
    GENERATED_RESULT = "generated_result"


class Mode(str, Enum):
    """Generation contract: posts need title + content, comments content only."""

    POST = "post"
    COMMENT = "comment"

    @classmethod
    def parse(cls, value: "Mode | str | None") -> "Mode":
        """Parse a mode name. 'reply' uses the comment contract; None means post."""
        if isinstance(value, Mode):
            return value
        if value is None or value == "":
            return cls.POST
        normalized = str(value).strip().lower()
        if normalized == "reply":
            return cls.COMMENT
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"Unknown mode: {value}. Available: post, comment, reply") from None


@dataclass(frozen=True)
class CollectedContent:
    """Title, body and images scraped from a page."""

    title: str
    content: str
    images: tuple[ImagePayload, ...] = ()


@dataclass(frozen=True)
class GeneratedContent:
    """A previous generation shown back to the model."""

    content: str
    title: str | None = None


@dataclass(frozen=True)
class GenerationResult:
    """Validated output of one generation call."""

    mode: Mode
    content: str
    title: str | None = None
    tokens_used: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"mode": self.mode.value, "content": self.content}
        if self.title is not None:
            data["title"] = self.title
        if self.tokens_used is not None:
            data["tokens_used"] = self.tokens_used
        return data


def _new_id() -> str:
    return uuid.uuid4().hex


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ContentEnvelope:
    """One normalized conversation turn.

    Exactly one of text, collected and generated is set, matching kind.
    """

    role: Role
    kind: Kind
    mode: Mode = Mode.POST
    text: str | None = None
    images: tuple[ImagePayload, ...] = ()
    collected: CollectedContent | None = None
    generated: GeneratedContent | None = None
    id: str = field(default_factory=_new_id)
    timestamp: datetime = field(default_factory=_now)

    def __post_init__(self):
        # Coerce plain strings and lists coming from callers
        object.__setattr__(self, "role", Role(self.role))
        object.__setattr__(self, "kind", Kind(self.kind))
        object.__setattr__(self, "mode", Mode.parse(self.mode))
        object.__setattr__(self, "images", tuple(self.images))

        populated = {
            Kind.PLAIN_TEXT: self.text is not None,
            Kind.COLLECTED_CONTENT: self.collected is not None,
            Kind.GENERATED_RESULT: self.generated is not None,
        }
        if sum(populated.values()) != 1 or not populated[self.kind]:
            raise ValueError(
                f"{self.kind.value} envelope must carry exactly one payload matching its kind"
            )

        if self.kind is Kind.GENERATED_RESULT and self.mode is Mode.POST:
            title = self.generated.title
            if not title or not title.strip():
                raise ValueError("post-mode generated_result envelope requires a non-empty title")

    @property
    def attached_images(self) -> tuple[ImagePayload, ...]:
        """Images to send with this turn, in order."""
        if self.collected is not None:
            return tuple(self.collected.images) + self.images
        return self.images

    # Factories

    @classmethod
    def user_text(
        cls,
        text: str,
        images: tuple[ImagePayload, ...] | list[ImagePayload] = (),
        mode: Mode | str = Mode.POST,
    ) -> "ContentEnvelope":
        return cls(role=Role.USER, kind=Kind.PLAIN_TEXT, mode=mode, text=text, images=tuple(images))

    @classmethod
    def assistant_text(cls, text: str, mode: Mode | str = Mode.POST) -> "ContentEnvelope":
        return cls(role=Role.ASSISTANT, kind=Kind.PLAIN_TEXT, mode=mode, text=text)

    @classmethod
    def collected_from(
        cls,
        title: str,
        content: str,
        images: tuple[ImagePayload, ...] | list[ImagePayload] = (),
        mode: Mode | str = Mode.POST,
    ) -> "ContentEnvelope":
        return cls(
            role=Role.USER,
            kind=Kind.COLLECTED_CONTENT,
            mode=mode,
            collected=CollectedContent(title=title, content=content, images=tuple(images)),
        )

    @classmethod
    def from_result(cls, result: GenerationResult) -> "ContentEnvelope":
        return cls(
            role=Role.ASSISTANT,
            kind=Kind.GENERATED_RESULT,
            mode=result.mode,
            generated=GeneratedContent(content=result.content, title=result.title),
        )

    # Serialization

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-safe dict. Bytes images become data URIs."""
        data: dict[str, Any] = {
            "id": self.id,
            "role": self.role.value,
            "kind": self.kind.value,
            "mode": self.mode.value,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.text is not None:
            data["text"] = self.text
        if self.images:
            data["images"] = [image_to_data_uri(img) for img in self.images]
        if self.collected is not None:
            data["collected"] = {
                "title": self.collected.title,
                "content": self.collected.content,
                "images": [image_to_data_uri(img) for img in self.collected.images],
            }
        if self.generated is not None:
            data["generated"] = {"content": self.generated.content}
            if self.generated.title is not None:
                data["generated"]["title"] = self.generated.title
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ContentEnvelope":
        """Build an envelope from a dict produced by to_dict().

        Raises:
            ValueError: If the dict violates the envelope invariants.
        """
        kwargs: dict[str, Any] = {
            "role": data["role"],
            "kind": data["kind"],
            "mode": data.get("mode"),
            "text": data.get("text"),
            "images": tuple(data.get("images") or ()),
        }
        if data.get("id"):
            kwargs["id"] = data["id"]
        if data.get("timestamp"):
            kwargs["timestamp"] = datetime.fromisoformat(data["timestamp"])

        collected = data.get("collected")
        if collected is not None:
            kwargs["collected"] = CollectedContent(
                title=collected.get("title", ""),
                content=collected.get("content", ""),
                images=tuple(collected.get("images") or ()),
            )
        generated = data.get("generated")
        if generated is not None:
            kwargs["generated"] = GeneratedContent(
                content=generated.get("content", ""),
                title=generated.get("title"),
            )
        return cls(**kwargs)


def envelopes_from_dicts(records: list[dict[str, Any]]) -> list[ContentEnvelope]:
    """Load a stored conversation, skipping turns that are not user/assistant."""
    roles = {role.value for role in Role}
    return [ContentEnvelope.from_dict(r) for r in records if r.get("role") in roles]
