"""AI service facade.

Holds the provider configuration and the client built from it, and runs
one generation call end to end: window the history, build and send the
provider request, extract and validate the reply.
"""

import asyncio
import dataclasses
import json
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

import requests
import structlog

from .envelope import ContentEnvelope, GenerationResult, Mode
from .history import window_history
from .llm import AIError, ErrorKind, ProviderAdapter, ProviderConfig, get_adapter
from .validator import ContentLimits, ResponseValidator, ValidationFailure

logger = structlog.get_logger()

DEGRADED_PREFIX = "Response format error, raw reply: "


class ServiceState(str, Enum):
    UNCONFIGURED = "unconfigured"
    READY = "ready"


@dataclass(frozen=True)
class ProviderClient:
    """An adapter bound to one configuration. Replaced, never mutated."""

    config: ProviderConfig
    adapter: ProviderAdapter


@dataclass(frozen=True)
class DegradedReply:
    """Fallback for replies that could not be parsed or validated.

    The raw reply is still shown to the user instead of being dropped.
    """

    mode: Mode
    kind: ErrorKind  # MALFORMED_RESPONSE or VALIDATION_FAILURE
    raw_text: str
    problems: tuple[str, ...] = ()

    @property
    def message(self) -> str:
        return f"{DEGRADED_PREFIX}{self.raw_text}"


GenerationOutcome = GenerationResult | DegradedReply


def _render_candidate(candidate: Any) -> str:
    if isinstance(candidate, str):
        return candidate
    try:
        return json.dumps(candidate, ensure_ascii=False)
    except (TypeError, ValueError):
        return repr(candidate)


class AIService:
    """Single entry point for generation calls.

    Without an API key the service stays unconfigured and generate()
    fails fast with NOT_CONFIGURED before touching the network.
    """

    def __init__(
        self,
        config: ProviderConfig,
        *,
        limits: ContentLimits | None = None,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ):
        self.limits = limits or ContentLimits()
        self.validator = ResponseValidator(self.limits)
        self._session_factory = session_factory
        self._binding = self._bind(config)

    def _bind(self, config: ProviderConfig) -> tuple[ProviderConfig, ProviderClient | None]:
        if not config.has_api_key:
            logger.info("AI service unconfigured", provider=config.provider.value)
            return config, None

        adapter = get_adapter(config, session=self._session_factory(), limits=self.limits)
        logger.info(
            "Provider client initialized",
            provider=config.provider.value,
            model=config.model,
        )
        return config, ProviderClient(config=config, adapter=adapter)

    @property
    def config(self) -> ProviderConfig:
        return self._binding[0]

    @property
    def client(self) -> ProviderClient | None:
        return self._binding[1]

    @property
    def provider(self) -> str:
        return self.config.provider.value

    @property
    def state(self) -> ServiceState:
        return ServiceState.READY if self.client is not None else ServiceState.UNCONFIGURED

    def is_configured(self) -> bool:
        return self.client is not None

    def update_config(self, new_config: ProviderConfig) -> None:
        """Replace the configuration and the client built from it.

        The new client is built before the swap, and the swap is a single
        assignment. Calls already in flight finish on the old client.
        """
        self._binding = self._bind(new_config)

    def generate(
        self,
        history: Sequence[ContentEnvelope],
        mode: Mode | str,
        *,
        instructions: str | None = None,
    ) -> GenerationOutcome:
        """Generate a post or comment from the conversation history.

        Args:
            history: Conversation turns, oldest first. Not modified.
            mode: 'post' (title + content) or 'comment' (content only).
            instructions: System instructions replacing the provider default.

        Returns:
            GenerationResult on success, or DegradedReply when the reply was
            not valid JSON or did not match the mode's shape.

        Raises:
            AIError: NOT_CONFIGURED without an API key, or a classified
                provider failure. Nothing is retried.
        """
        mode = Mode.parse(mode)
        config, client = self._binding
        if client is None:
            name = config.provider.display_name
            raise AIError(
                ErrorKind.NOT_CONFIGURED,
                name,
                f"{name} API key is not configured, please set one in the settings",
            )

        adapter = client.adapter
        windowed = window_history(history)
        logger.info(
            "Generation requested",
            provider=config.provider.value,
            mode=mode.value,
            turns=len(history),
            sent_turns=len(windowed),
        )

        if instructions is None:
            instructions = adapter.instructions(mode)
        request = adapter.build_request(windowed, mode, instructions)
        raw = adapter.execute(request)

        try:
            candidate = adapter.extract(raw, mode)
        except AIError as e:
            if e.kind is not ErrorKind.MALFORMED_RESPONSE:
                raise
            logger.warning("Provider returned malformed JSON", provider=config.provider.value, error=e.message)
            return DegradedReply(
                mode=mode,
                kind=ErrorKind.MALFORMED_RESPONSE,
                raw_text=e.raw_text or "",
                problems=(e.message,),
            )

        outcome = self.validator.validate(candidate, mode)
        if isinstance(outcome, ValidationFailure):
            logger.warning(
                "Provider reply failed validation",
                provider=config.provider.value,
                problems=outcome.describe(),
            )
            return DegradedReply(
                mode=mode,
                kind=ErrorKind.VALIDATION_FAILURE,
                raw_text=_render_candidate(candidate),
                problems=tuple(problem.message for problem in outcome.problems),
            )

        tokens_used = adapter.tokens_used(raw)
        logger.info(
            "Generation succeeded",
            provider=config.provider.value,
            mode=mode.value,
            tokens_used=tokens_used,
        )
        return dataclasses.replace(outcome, tokens_used=tokens_used)

    async def agenerate(
        self,
        history: Sequence[ContentEnvelope],
        mode: Mode | str,
        *,
        instructions: str | None = None,
    ) -> GenerationOutcome:
        """Async variant of generate(); the HTTP call runs in a worker thread."""
        return await asyncio.to_thread(self.generate, history, mode, instructions=instructions)
