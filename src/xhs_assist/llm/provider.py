"""Base provider adapter interface for xhs-assist."""

import dataclasses
import json
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import requests
import structlog

from ..envelope import ContentEnvelope, ImagePayload, Kind, Mode, Role
from ..utils import strip_code_fence
from ..validator import ContentLimits

logger = structlog.get_logger()


class ProviderKind(str, Enum):
    """Supported provider families."""

    OPENAI_COMPATIBLE = "openai_compatible"
    ANTHROPIC_COMPATIBLE = "anthropic_compatible"
    ALIBABA_COMPATIBLE = "alibaba_compatible"

    @classmethod
    def parse(cls, value: "ProviderKind | str") -> "ProviderKind":
        """Parse a provider name, including the names older settings used."""
        if isinstance(value, ProviderKind):
            return value
        normalized = str(value).strip().lower().replace("-", "_")
        if normalized in PROVIDER_ALIASES:
            return PROVIDER_ALIASES[normalized]
        try:
            return cls(normalized)
        except ValueError:
            available = ", ".join(kind.value for kind in cls)
            raise ValueError(f"Unknown provider: {value}. Available: {available}") from None

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def default_model(self) -> str:
        return _DEFAULT_MODELS[self]

    @property
    def default_base_url(self) -> str:
        return _DEFAULT_BASE_URLS[self]


PROVIDER_ALIASES: dict[str, ProviderKind] = {
    "openai": ProviderKind.OPENAI_COMPATIBLE,
    "chatgpt": ProviderKind.OPENAI_COMPATIBLE,
    "custom": ProviderKind.OPENAI_COMPATIBLE,
    "claude": ProviderKind.ANTHROPIC_COMPATIBLE,
    "anthropic": ProviderKind.ANTHROPIC_COMPATIBLE,
    "alibaba": ProviderKind.ALIBABA_COMPATIBLE,
    "qwen": ProviderKind.ALIBABA_COMPATIBLE,
    "dashscope": ProviderKind.ALIBABA_COMPATIBLE,
}

_DISPLAY_NAMES = {
    ProviderKind.OPENAI_COMPATIBLE: "OpenAI",
    ProviderKind.ANTHROPIC_COMPATIBLE: "Claude",
    ProviderKind.ALIBABA_COMPATIBLE: "Qwen",
}

_DEFAULT_MODELS = {
    ProviderKind.OPENAI_COMPATIBLE: "gpt-3.5-turbo",
    ProviderKind.ANTHROPIC_COMPATIBLE: "claude-sonnet-4-20250514",
    ProviderKind.ALIBABA_COMPATIBLE: "qwen-vl-plus",
}

_DEFAULT_BASE_URLS = {
    ProviderKind.OPENAI_COMPATIBLE: "https://api.openai.com/v1",
    ProviderKind.ANTHROPIC_COMPATIBLE: "https://api.anthropic.com",
    ProviderKind.ALIBABA_COMPATIBLE: "https://dashscope.aliyuncs.com/compatible-mode/v1",
}


class StructuredOutput(str, Enum):
    """How OpenAI-compatible requests constrain the reply shape."""

    AUTO = "auto"
    JSON_SCHEMA = "json_schema"
    TOOL = "tool"
    PROMPT = "prompt"


@dataclass(frozen=True)
class ProviderConfig:
    """Connection settings for one provider."""

    provider: ProviderKind = ProviderKind.OPENAI_COMPATIBLE
    api_key: str = ""
    model: str = ""
    base_url: str | None = None
    temperature: float = 0.7
    max_tokens: int = 1000
    timeout: float = 60.0
    structured_output: StructuredOutput = StructuredOutput.AUTO

    def __post_init__(self):
        provider = ProviderKind.parse(self.provider)
        object.__setattr__(self, "provider", provider)
        object.__setattr__(self, "structured_output", StructuredOutput(self.structured_output))
        object.__setattr__(self, "api_key", (self.api_key or "").strip())
        if not self.model:
            object.__setattr__(self, "model", provider.default_model)
        if not self.base_url:
            object.__setattr__(self, "base_url", None)

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    @property
    def effective_base_url(self) -> str:
        return (self.base_url or self.provider.default_base_url).rstrip("/")

    def replace(self, **changes: Any) -> "ProviderConfig":
        """Return a copy with some fields changed."""
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ProviderConfig":
        """Build a config from stored settings.

        Accepts both snake_case keys and the camelCase keys of the browser
        extension's storage (apiKey, baseUrl).
        """
        data = data or {}
        kwargs: dict[str, Any] = {
            "provider": data.get("provider") or ProviderKind.OPENAI_COMPATIBLE,
            "api_key": data.get("api_key", data.get("apiKey", "")) or "",
            "model": data.get("model") or "",
            "base_url": data.get("base_url", data.get("baseUrl")),
        }
        for key in ("temperature", "max_tokens", "timeout", "structured_output"):
            if data.get(key) is not None:
                kwargs[key] = data[key]
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "provider": self.provider.value,
            "api_key": self.api_key,
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "timeout": self.timeout,
            "structured_output": self.structured_output.value,
        }
        if self.base_url:
            data["base_url"] = self.base_url
        return data


class ErrorKind(str, Enum):
    """Failure taxonomy for generation calls."""

    NOT_CONFIGURED = "not_configured"
    AUTH_INVALID = "auth_invalid"
    RATE_LIMITED = "rate_limited"
    PERMISSION_DENIED = "permission_denied"
    QUOTA_EXCEEDED = "quota_exceeded"
    TRANSPORT_FAILURE = "transport_failure"
    MALFORMED_RESPONSE = "malformed_response"
    VALIDATION_FAILURE = "validation_failure"


class AIError(Exception):
    """Error from an AI provider call, tagged with its kind."""

    def __init__(
        self,
        kind: ErrorKind,
        provider: str,
        message: str,
        *,
        raw_text: str | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.provider = provider
        self.message = message
        self.raw_text = raw_text

    def __repr__(self) -> str:
        return f"AIError(kind={self.kind.value!r}, provider={self.provider!r}, message={self.message!r})"


def classify_error(detail: str) -> ErrorKind:
    """Classify a failure description by the status codes or keywords it mentions."""
    if "401" in detail:
        return ErrorKind.AUTH_INVALID
    if "429" in detail:
        return ErrorKind.RATE_LIMITED
    if "403" in detail:
        return ErrorKind.PERMISSION_DENIED
    if "quota" in detail.lower():
        return ErrorKind.QUOTA_EXCEEDED
    return ErrorKind.TRANSPORT_FAILURE


_ERROR_MESSAGES = {
    ErrorKind.AUTH_INVALID: "{provider} API key is invalid, please check your configuration",
    ErrorKind.RATE_LIMITED: "{provider} API rate limit reached, please try again later",
    ErrorKind.PERMISSION_DENIED: "{provider} API permission denied, please check your account status",
    ErrorKind.QUOTA_EXCEEDED: "{provider} API quota exhausted, please check your account balance",
    ErrorKind.TRANSPORT_FAILURE: "{provider} request failed: {detail}",
}


STATUS_ERROR_KINDS = {
    401: ErrorKind.AUTH_INVALID,
    429: ErrorKind.RATE_LIMITED,
    403: ErrorKind.PERMISSION_DENIED,
}


def classify_response(status_code: int | None, body: str = "") -> ErrorKind:
    """Classify an HTTP error reply by its status code, then by its body."""
    if status_code in STATUS_ERROR_KINDS:
        return STATUS_ERROR_KINDS[status_code]
    return classify_error(body or "")


def provider_error(provider: str, detail: str, kind: ErrorKind | None = None) -> AIError:
    """Build a classified, provider-qualified AIError from a failure description."""
    if kind is None:
        kind = classify_error(detail)
    return AIError(kind, provider, _ERROR_MESSAGES[kind].format(provider=provider, detail=detail))


# Message parts

SOURCE_TITLE_LABEL = "Source title"
SOURCE_CONTENT_LABEL = "Source content"
RESULT_TITLE_LABEL = "Title"
RESULT_CONTENT_LABEL = "Content"


@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class ImagePart:
    image: ImagePayload


def envelope_parts(envelope: ContentEnvelope) -> list[TextPart | ImagePart]:
    """Break an envelope into ordered text and image parts.

    Structured turns become labelled text fragments so the model can tell
    the fields apart. Images are only attached to user turns.
    """
    parts: list[TextPart | ImagePart] = []

    if envelope.kind is Kind.COLLECTED_CONTENT:
        parts.append(TextPart(f"{SOURCE_TITLE_LABEL}: {envelope.collected.title}"))
        parts.append(TextPart(f"{SOURCE_CONTENT_LABEL}: {envelope.collected.content}"))
    elif envelope.kind is Kind.GENERATED_RESULT:
        if envelope.generated.title:
            parts.append(TextPart(f"{RESULT_TITLE_LABEL}: {envelope.generated.title}"))
        parts.append(TextPart(f"{RESULT_CONTENT_LABEL}: {envelope.generated.content}"))
    elif envelope.text and envelope.text.strip():
        parts.append(TextPart(envelope.text))

    if envelope.role is Role.USER:
        parts.extend(ImagePart(image) for image in envelope.attached_images)
    elif envelope.attached_images:
        logger.debug("Dropping images from assistant turn", envelope_id=envelope.id)

    return parts


def joined_text(parts: Sequence[TextPart | ImagePart]) -> str:
    """Join the text parts of a turn into one string."""
    return "\n".join(part.text for part in parts if isinstance(part, TextPart))


@dataclass
class ProviderRequest:
    """A ready-to-send HTTP request for a provider."""

    url: str
    payload: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict)


class ProviderAdapter(ABC):
    """Abstract base class for provider adapters.

    An adapter turns windowed history into one provider's wire format,
    performs the HTTP call and pulls the JSON candidate out of the reply.
    Adapters never let requests exceptions escape; every failure becomes
    an AIError.
    """

    kind: ProviderKind

    def __init__(
        self,
        config: ProviderConfig,
        *,
        session: requests.Session | None = None,
        limits: ContentLimits | None = None,
    ):
        self.config = config
        self.session = session if session is not None else requests.Session()
        self.limits = limits or ContentLimits()

    @property
    def name(self) -> str:
        """Human-readable provider name used in error messages."""
        return self.kind.display_name

    @property
    def base_url(self) -> str:
        return self.config.effective_base_url

    @property
    def model(self) -> str:
        return self.config.model

    @abstractmethod
    def instructions(self, mode: Mode) -> str:
        """Default system instructions for this provider and mode."""
        ...

    @abstractmethod
    def build_request(
        self,
        history: Sequence[ContentEnvelope],
        mode: Mode,
        instructions: str,
    ) -> ProviderRequest:
        """Translate history into this provider's request."""
        ...

    @abstractmethod
    def extract(self, raw: dict[str, Any], mode: Mode) -> Any:
        """Pull the JSON candidate out of a raw provider reply.

        Raises:
            AIError: MALFORMED_RESPONSE if the reply text is not JSON, or a
                classified error if the reply lacks the expected fields.
        """
        ...

    def tokens_used(self, raw: dict[str, Any]) -> int | None:
        """Total tokens billed for a reply, if the provider reports it."""
        return None

    def execute(self, request: ProviderRequest) -> dict[str, Any]:
        """Send the request and return the decoded reply body unmodified."""
        logger.debug(
            "Sending provider request",
            provider=self.kind.value,
            url=request.url,
            model=self.model,
        )
        try:
            response = self.session.post(
                request.url,
                headers=request.headers,
                json=request.payload,
                timeout=self.config.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise self.request_failed(e) from e

        try:
            return response.json()
        except ValueError as e:
            raise self.error(f"Unexpected API response format: {e}") from e

    def request_failed(self, exc: requests.RequestException) -> AIError:
        """Convert a requests exception into a classified AIError."""
        detail = str(exc)
        response = getattr(exc, "response", None)
        if response is None:
            # No reply at all; the text only names the URL, host and port
            kind = ErrorKind.TRANSPORT_FAILURE
        else:
            body = response.text if isinstance(response.text, str) else ""
            body = body.strip()[:500]
            if body:
                detail = f"{detail} - {body}"
            kind = classify_response(response.status_code, body)
        error = provider_error(self.name, detail, kind)
        logger.warning(
            "Provider request failed",
            provider=self.kind.value,
            kind=error.kind.value,
            detail=detail,
        )
        return error

    def error(self, detail: str) -> AIError:
        """An unclassified failure, such as a reply missing expected fields."""
        return provider_error(self.name, detail, ErrorKind.TRANSPORT_FAILURE)

    def parse_json_text(self, text: str) -> Any:
        """Parse a JSON candidate from reply text, tolerating code fences."""
        cleaned = strip_code_fence(text or "")
        try:
            return json.loads(cleaned)
        except json.JSONDecodeError as e:
            raise AIError(
                ErrorKind.MALFORMED_RESPONSE,
                self.name,
                f"{self.name} returned invalid JSON: {e}",
                raw_text=text or "",
            ) from e
