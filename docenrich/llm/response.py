"""LLM request, response and analysis result data structures."""

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from typing import Any


@dataclass
class CallRequest:
    """Description of an outbound call, used for call tracking."""

    url: str
    method: str = "POST"
    model: str | None = None


@dataclass
class ChatResponse:
    """Raw HTTP exchange returned by a transport."""

    status_code: int | None
    headers: dict[str, str] = field(default_factory=dict)
    body: dict[str, Any] = field(default_factory=dict)
    started_at: datetime | None = None
    completed_at: datetime | None = None

    def with_headers(self, headers: dict[str, str]) -> "ChatResponse":
        return replace(self, headers=dict(headers))

    @property
    def content(self) -> str | None:
        """Text of the first choice, if the body has one."""
        choices = self.body.get("choices") or []
        if not choices:
            return None
        message = choices[0].get("message") or {}
        return message.get("content")

    @property
    def usage(self) -> "UsageMetrics | None":
        return UsageMetrics.from_payload(self.body.get("usage"))


@dataclass
class UsageMetrics:
    """Token usage of a completed call."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_payload(cls, usage: dict[str, Any] | None) -> "UsageMetrics | None":
        if not usage:
            return None
        prompt = int(usage.get("prompt_tokens") or 0)
        completion = int(usage.get("completion_tokens") or 0)
        total = int(usage.get("total_tokens") or prompt + completion)
        return cls(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)


@dataclass
class AnalysisResult:
    """Canonical output of a document analysis.

    ``error`` is ``None`` on success. On failure ``document`` holds the
    empty sentinel (no tags, no correspondent) and ``metrics`` is ``None``.
    """

    document: dict[str, Any]
    metrics: UsageMetrics | None = None
    truncated: bool = False
    error: str | None = None

    @classmethod
    def failure(cls, message: str) -> "AnalysisResult":
        return cls(
            document={"tags": [], "correspondent": None},
            metrics=None,
            truncated=False,
            error=message,
        )

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if self.error is None:
            data.pop("error")
        return data


@dataclass
class PlaygroundResult:
    """Raw completion text returned by a playground call."""

    content: str | None
    usage: UsageMetrics | None = None
    truncated: bool = False
    error: str | None = None

    @classmethod
    def failure(cls, message: str) -> "PlaygroundResult":
        return cls(content=None, usage=None, truncated=False, error=message)

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if self.error is None:
            data.pop("error")
        return data
