"""OpenAI-compatible provider adapter.

Works with:
- OpenAI API
- Azure-style and self-hosted gateways exposing /chat/completions
- Ollama, vLLM and other OpenAI-compatible servers
"""

from collections.abc import Sequence
from typing import Any

from ..envelope import ContentEnvelope, Mode, Role
from ..utils import image_to_data_uri
from .prompts import SCHEMA_NAMES, TOOL_DESCRIPTIONS, TOOL_NAMES, build_instructions, content_schema
from .provider import (
    AIError,
    ErrorKind,
    ImagePart,
    ProviderAdapter,
    ProviderKind,
    ProviderRequest,
    StructuredOutput,
    TextPart,
    envelope_parts,
    joined_text,
)

# Models known to accept response_format: json_schema
STRUCTURED_OUTPUT_MODELS = ("gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-4.1")


def supports_structured_outputs(model: str) -> bool:
    """Check if a model accepts strict JSON-schema response formats."""
    return any(name in (model or "") for name in STRUCTURED_OUTPUT_MODELS)


class OpenAICompatAdapter(ProviderAdapter):
    """Adapter for the OpenAI chat completions API format.

    The reply shape is constrained by, in order of preference, a strict
    json_schema response format, a forced function call, or the schema
    spelled out in the system prompt. The last one needs code-fence
    cleanup on the way back, which extract() handles for all three.
    """

    kind = ProviderKind.OPENAI_COMPATIBLE

    @property
    def structured_output(self) -> StructuredOutput:
        """The structured-output mechanism in effect for the configured model."""
        configured = self.config.structured_output
        if configured is StructuredOutput.AUTO:
            if supports_structured_outputs(self.model):
                return StructuredOutput.JSON_SCHEMA
            return StructuredOutput.PROMPT
        return configured

    def instructions(self, mode: Mode) -> str:
        return build_instructions(
            mode,
            embed_schema=self.structured_output is not StructuredOutput.TOOL,
            limits=self.limits,
        )

    def headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    def serialize(self, envelope: ContentEnvelope) -> dict[str, Any] | None:
        """Convert one envelope to a chat message, or None if it has no content."""
        parts = envelope_parts(envelope)
        if not parts:
            return None

        if envelope.role is Role.ASSISTANT:
            return {"role": "assistant", "content": joined_text(parts)}

        content: list[dict[str, Any]] = []
        for part in parts:
            if isinstance(part, TextPart):
                content.append({"type": "text", "text": part.text})
            elif isinstance(part, ImagePart):
                content.append({"type": "image_url", "image_url": {"url": image_to_data_uri(part.image)}})
        return {"role": "user", "content": content}

    def serialize_history(self, history: Sequence[ContentEnvelope]) -> list[dict[str, Any]]:
        messages = []
        for envelope in history:
            message = self.serialize(envelope)
            if message is not None:
                messages.append(message)
        return messages

    def build_request(
        self,
        history: Sequence[ContentEnvelope],
        mode: Mode,
        instructions: str,
    ) -> ProviderRequest:
        mode = Mode.parse(mode)
        messages = [{"role": "system", "content": instructions}]
        messages.extend(self.serialize_history(history))

        payload: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
        }

        strategy = self.structured_output
        if strategy is StructuredOutput.JSON_SCHEMA:
            payload["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": SCHEMA_NAMES[mode],
                    "description": TOOL_DESCRIPTIONS[mode],
                    "schema": content_schema(mode, self.limits, length_keywords=False),
                    "strict": True,
                },
            }
        elif strategy is StructuredOutput.TOOL:
            payload["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": TOOL_NAMES[mode],
                        "description": TOOL_DESCRIPTIONS[mode],
                        "parameters": content_schema(mode, self.limits),
                    },
                }
            ]
            payload["tool_choice"] = {"type": "function", "function": {"name": TOOL_NAMES[mode]}}

        return ProviderRequest(
            url=f"{self.base_url}/chat/completions",
            headers=self.headers(),
            payload=payload,
        )

    def tokens_used(self, raw: dict[str, Any]) -> int | None:
        usage = raw.get("usage") if isinstance(raw, dict) else None
        if not isinstance(usage, dict):
            return None
        return usage.get("total_tokens")

    def extract(self, raw: dict[str, Any], mode: Mode) -> Any:
        try:
            message = raw["choices"][0]["message"]
        except (KeyError, IndexError, TypeError) as e:
            raise self.error(f"Unexpected API response format: missing {e}") from e
        if not isinstance(message, dict):
            raise self.error("Unexpected API response format: message is not an object")

        tool_calls = message.get("tool_calls") or []
        if tool_calls:
            arguments = (tool_calls[0].get("function") or {}).get("arguments")
            if isinstance(arguments, dict):
                return arguments
            return self.parse_json_text(arguments or "")

        refusal = message.get("refusal")
        if refusal:
            raise AIError(
                ErrorKind.MALFORMED_RESPONSE,
                self.name,
                f"{self.name} refused to answer",
                raw_text=refusal,
            )

        return self.parse_json_text(message.get("content") or "")
