"""Shape and length checks for generation candidates."""

from dataclasses import dataclass
from typing import Any

from .envelope import GenerationResult, Mode

DEFAULT_MAX_TITLE_LENGTH = 20
DEFAULT_MAX_CONTENT_LENGTH = 1000


@dataclass(frozen=True)
class ContentLimits:
    """Length ceilings for generated fields, in characters."""

    max_title_length: int = DEFAULT_MAX_TITLE_LENGTH
    max_content_length: int = DEFAULT_MAX_CONTENT_LENGTH


@dataclass(frozen=True)
class ValidationProblem:
    """One violated rule."""

    field: str
    code: str  # not_object, missing, wrong_type, too_long
    message: str


@dataclass(frozen=True)
class ValidationFailure:
    """A well-formed candidate with the wrong shape or length."""

    mode: Mode
    problems: tuple[ValidationProblem, ...]
    candidate: Any = None

    @property
    def fields(self) -> set[str]:
        return {problem.field for problem in self.problems}

    def describe(self) -> str:
        return "; ".join(problem.message for problem in self.problems)


class ResponseValidator:
    """Check a parsed candidate against the post or comment contract.

    Posts need a title and content; comments need content only. Every
    violated rule is reported, not just the first one.
    """

    def __init__(self, limits: ContentLimits | None = None):
        self.limits = limits or ContentLimits()

    def validate(self, candidate: Any, mode: Mode | str) -> GenerationResult | ValidationFailure:
        mode = Mode.parse(mode)

        if not isinstance(candidate, dict):
            problem = ValidationProblem(
                field="response",
                code="not_object",
                message=f"response must be a JSON object, got {type(candidate).__name__}",
            )
            return ValidationFailure(mode=mode, problems=(problem,), candidate=candidate)

        problems = self._check_field(candidate, "content", self.limits.max_content_length)
        if mode is Mode.POST:
            problems = self._check_field(candidate, "title", self.limits.max_title_length) + problems

        if problems:
            return ValidationFailure(mode=mode, problems=tuple(problems), candidate=candidate)

        return GenerationResult(
            mode=mode,
            content=candidate["content"],
            title=candidate["title"] if mode is Mode.POST else None,
        )

    @staticmethod
    def _check_field(candidate: dict[str, Any], name: str, max_length: int) -> list[ValidationProblem]:
        value = candidate.get(name)
        if value is None:
            return [ValidationProblem(name, "missing", f"missing {name}")]
        if not isinstance(value, str):
            return [ValidationProblem(name, "wrong_type", f"{name} must be a string, got {type(value).__name__}")]
        if not value.strip():
            return [ValidationProblem(name, "missing", f"missing {name}")]
        if len(value) > max_length:
            return [ValidationProblem(name, "too_long", f"{name} too long ({len(value)} > {max_length} characters)")]
        return []
