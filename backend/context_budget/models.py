from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


TURN_ROLES = {"user", "assistant"}
SUMMARY_PREFIX = "Previous conversation summary: "


@dataclass(frozen=True)
class ConversationTurn:
    role: str
    content: str
    timestamp: datetime | None = None

    def __post_init__(self) -> None:
        if self.role not in TURN_ROLES:
            raise ValueError(f"Unsupported conversation role: {self.role}")

    def as_message(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}

    def transcript_line(self) -> str:
        return f"{self.role}: {self.content}"


@dataclass(frozen=True)
class Budget:
    max_total_tokens: int = 12000
    reserved_for_response: int = 1000
    history_fraction: float = 0.7

    def __post_init__(self) -> None:
        if self.reserved_for_response >= self.max_total_tokens:
            raise ValueError("reserved_for_response must be smaller than max_total_tokens.")
        if not (0.0 < self.history_fraction <= 1.0):
            raise ValueError("history_fraction must be in (0, 1].")

    @property
    def input_tokens(self) -> int:
        return self.max_total_tokens - self.reserved_for_response


@dataclass(frozen=True)
class PlanResult:
    system_messages: tuple[str, ...]
    history_messages: tuple[ConversationTurn, ...]
    was_summarized: bool
    estimated_input_tokens: int
    summary_fallback: bool = False


@dataclass(frozen=True)
class SummaryOutcome:
    """Result of one summarization attempt.

    ``fallback_applied`` is set when the model call failed and ``text`` holds the
    degraded-but-safe substitute instead of a model summary.
    """

    text: str
    fallback_applied: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return not self.fallback_applied


@dataclass(frozen=True)
class DocumentFit:
    text: str
    original_tokens: int
    processed_tokens: int
    summarized: bool = False
    fallback_applied: bool = False


@dataclass(frozen=True)
class CompletionParams:
    model: str = "sonar-pro"
    temperature: float = 0.2
    max_tokens: int = 1000
    top_p: float | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    search_mode: str | None = None
    search_domain_filter: tuple[str, ...] = ()
    search_recency_filter: str | None = None

    def as_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "stream": False,
        }
        optional = {
            "top_p": self.top_p,
            "presence_penalty": self.presence_penalty,
            "frequency_penalty": self.frequency_penalty,
            "search_mode": self.search_mode,
            "search_recency_filter": self.search_recency_filter,
        }
        payload.update({key: value for key, value in optional.items() if value is not None})
        if self.search_domain_filter:
            payload["search_domain_filter"] = list(self.search_domain_filter)
        return payload


@dataclass
class CompletionRequest:
    messages: list[dict[str, str]]
    params: CompletionParams

    def as_payload(self) -> dict[str, Any]:
        payload = self.params.as_payload()
        payload["messages"] = [dict(message) for message in self.messages]
        return payload


@dataclass
class Completion:
    content: str
    model: str
    usage: dict[str, int] = field(
        default_factory=lambda: {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0}
    )
    search_results: list[dict[str, str]] = field(default_factory=list)

    def as_response(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "model": self.model,
            "usage": dict(self.usage),
            "search_results": [dict(result) for result in self.search_results],
        }
