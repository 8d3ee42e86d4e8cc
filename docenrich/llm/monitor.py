"""Outbound call monitoring.

Keeps a bounded, most-recent-first history of provider calls and derives
aggregate statistics for the status report.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from docenrich.logger import get_logger

from .ratelimit import USAGE_TOTAL_HEADER, header_value, lookup_header, parse_int
from .response import CallRequest, ChatResponse

logger = get_logger(__name__)

DEFAULT_HISTORY_SIZE = 50


@dataclass(frozen=True)
class CallRecord:
    """A single tracked provider call."""

    timestamp: datetime
    endpoint: str
    method: str
    status: int | str
    latency: int | None
    rate_limit: dict[str, int | None]
    error_message: str | None = None
    full_headers: dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return isinstance(self.status, int) and 200 <= self.status < 300

    @property
    def failed(self) -> bool:
        return self.status == "error" or (isinstance(self.status, int) and self.status >= 400)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "endpoint": self.endpoint,
            "method": self.method,
            "status": self.status,
            "latency": self.latency,
            "rate_limit": dict(self.rate_limit),
            "error_message": self.error_message,
            "full_headers": dict(self.full_headers),
        }


@dataclass
class CallStats:
    """Aggregate statistics over the tracked history."""

    total_calls: int = 0
    success_calls: int = 0
    error_calls: int = 0
    rate_limited_calls: int = 0
    avg_latency: float | None = None


def _response_status(response: Any) -> int | None:
    if isinstance(response, ChatResponse):
        return response.status_code
    if isinstance(response, Mapping):
        return response.get("status")
    return None


def _response_headers(response: Any) -> Mapping[str, Any] | None:
    if isinstance(response, ChatResponse):
        return response.headers
    if isinstance(response, Mapping):
        return response.get("headers")
    return None


def _response_body(response: Any) -> Mapping[str, Any]:
    if isinstance(response, ChatResponse):
        return response.body
    if isinstance(response, Mapping):
        return response
    return {}


def _latency_ms(response: Any, headers: Mapping[str, Any]) -> int | None:
    latency = parse_int(header_value(headers, "x-response-time"))
    if isinstance(response, ChatResponse) and response.started_at and response.completed_at:
        latency = int((response.completed_at - response.started_at).total_seconds() * 1000)
    return latency


class ApiCallTracker:
    """Bounded history of outbound calls."""

    def __init__(self, max_history_size: int = DEFAULT_HISTORY_SIZE):
        self.max_history_size = max_history_size
        self.calls: list[CallRecord] = []

    def track_api_call(
        self,
        request: CallRequest | None,
        response: ChatResponse | Mapping[str, Any] | None,
        error: BaseException | None = None,
    ) -> CallRecord:
        """Record one call outcome and return the stored record.

        Status is taken from the response, then from the error, then
        "error" for any failure, then 200 for a body that looks like a
        completed chat response, and finally "unknown".
        """
        status: int | str | None = _response_status(response)
        if status is None:
            error_status = getattr(error, "status", None)
            body = _response_body(response)
            if error_status is not None:
                status = error_status
            elif error is not None:
                status = "error"
            elif body.get("choices") and body.get("usage"):
                status = 200
            else:
                status = "unknown"

        headers = _response_headers(response) or getattr(error, "headers", None) or {}

        remaining_requests = lookup_header(headers, "remaining_requests")
        remaining_tokens = lookup_header(
            headers, "remaining_tokens", extra_names=(USAGE_TOTAL_HEADER,)
        )

        record = CallRecord(
            timestamp=datetime.now(timezone.utc),
            endpoint=request.url if request else "unknown",
            method=request.method if request else "unknown",
            status=status,
            latency=_latency_ms(response, headers),
            rate_limit={
                "remaining_requests": parse_int(remaining_requests),
                "remaining_tokens": parse_int(remaining_tokens),
            },
            error_message=str(error) if error is not None else None,
            full_headers={str(k): str(v) for k, v in headers.items()},
        )

        logger.debug(
            "llm.call.tracked",
            endpoint=record.endpoint,
            status=record.status,
            latency_ms=record.latency,
            error_message=record.error_message,
        )

        self.calls.insert(0, record)
        del self.calls[self.max_history_size:]
        return record

    def get_recent_calls(self) -> list[CallRecord]:
        return list(self.calls)

    def get_call_stats(self) -> CallStats | None:
        """Summarize the tracked history, or None when nothing was tracked."""
        if not self.calls:
            return None

        stats = CallStats(total_calls=len(self.calls))
        latencies = []
        for call in self.calls:
            if call.succeeded:
                stats.success_calls += 1
            if call.failed:
                stats.error_calls += 1
            if call.status == 429:
                stats.rate_limited_calls += 1
            if call.latency is not None:
                latencies.append(call.latency)

        if latencies:
            stats.avg_latency = sum(latencies) / len(latencies)
        return stats
