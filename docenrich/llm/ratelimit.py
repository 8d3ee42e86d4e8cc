"""Rate limit state tracking and retry with exponential backoff.

Providers report quota through response headers under several naming
conventions (OpenAI, generic gateways, Azure). The lookup table below lists
the candidate names for each logical quantity in priority order.
"""

import random
import re
import time
from dataclasses import asdict, dataclass, fields, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping, TypeVar

from docenrich.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

RATE_LIMIT_HEADERS: dict[str, tuple[str, ...]] = {
    "remaining_requests": (
        "x-ratelimit-remaining-requests",
        "x-ratelimit-remaining",
        "x-ms-ratelimit-remaining-requests",
    ),
    "remaining_tokens": (
        "x-ratelimit-remaining-tokens",
        "x-ms-ratelimit-remaining-tokens",
        "x-ratelimit-tokens-remaining",
    ),
    "reset_seconds": (
        "x-ratelimit-reset",
        "x-ratelimit-reset-seconds",
        "x-ms-ratelimit-reset",
    ),
}

# Synthesized by providers that report usage in the body instead of headers
USAGE_TOTAL_HEADER = "x-usage-tokens-total"
USAGE_PROMPT_HEADER = "x-usage-tokens-prompt"
USAGE_COMPLETION_HEADER = "x-usage-tokens-completion"

DEFAULT_REQUEST_CEILING = 1000
DEFAULT_TOKEN_CEILING = 100000
DEFAULT_RESET_WINDOW = timedelta(hours=1)
THROTTLE_LOW_WATER_MARK = 10

_LEADING_INT = re.compile(r"^\s*(-?\d+)")


def parse_int(value: Any) -> int | None:
    """Parse the leading integer of a header value, or None."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return int(value)
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else None


def header_value(headers: Mapping[str, Any] | None, name: str) -> Any:
    """Case-insensitive lookup of a single header."""
    if not headers:
        return None
    name = name.lower()
    for key, value in headers.items():
        if str(key).lower() == name:
            return value
    return None


def lookup_header(
    headers: Mapping[str, Any] | None,
    quantity: str,
    extra_names: tuple[str, ...] = (),
) -> Any:
    """Return the first header value present for a logical quantity.

    Candidate names are tried in table order, then extra_names. Header
    names are matched case-insensitively and empty values are skipped.

    Raises:
        KeyError: If the quantity is not in RATE_LIMIT_HEADERS
    """
    candidates = RATE_LIMIT_HEADERS[quantity] + extra_names
    if not headers:
        return None
    normalized = {str(k).lower(): v for k, v in headers.items()}
    for name in candidates:
        value = normalized.get(name)
        if value not in (None, ""):
            return value
    return None


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RateLimitState:
    """Last known quota state of a provider."""

    remaining_requests: int = DEFAULT_REQUEST_CEILING
    remaining_tokens: int = DEFAULT_TOKEN_CEILING
    reset_at: datetime | None = None
    last_updated: datetime | None = None
    total_tokens_used: int = 0
    requests_made: int = 0
    last_token_usage: int | None = None


class RateLimitTracker:
    """Maintains RateLimitState from response headers or injected usage."""

    def __init__(self):
        self.state = RateLimitState()

    @property
    def limits(self) -> dict[str, Any]:
        return asdict(self.state)

    def update_from_headers(self, headers: Mapping[str, Any] | None) -> None:
        """Update quota state from response headers.

        Missing request counts are estimated by decrementing from a fixed
        ceiling, missing token counts from accumulated usage when a usage
        header is present, and a missing reset time defaults to one hour.
        """
        headers = headers or {}
        state = self.state

        remaining_requests = parse_int(lookup_header(headers, "remaining_requests"))
        if remaining_requests is not None:
            state.remaining_requests = remaining_requests
        else:
            state.requests_made += 1
            state.remaining_requests = max(0, DEFAULT_REQUEST_CEILING - state.requests_made)

        remaining_tokens = parse_int(lookup_header(headers, "remaining_tokens"))
        if remaining_tokens is not None:
            state.remaining_tokens = remaining_tokens
        else:
            usage_total = parse_int(header_value(headers, USAGE_TOTAL_HEADER))
            if usage_total is not None:
                state.total_tokens_used += usage_total
                state.remaining_tokens = max(0, DEFAULT_TOKEN_CEILING - state.total_tokens_used)

        now = _now()
        reset_seconds = parse_int(lookup_header(headers, "reset_seconds"))
        if reset_seconds is not None:
            state.reset_at = now + timedelta(seconds=reset_seconds)
        else:
            state.reset_at = now + DEFAULT_RESET_WINDOW

        state.last_updated = now
        logger.debug(
            "llm.ratelimit.updated",
            remaining_requests=state.remaining_requests,
            remaining_tokens=state.remaining_tokens,
            total_tokens_used=state.total_tokens_used,
        )

    def update_limits(self, **values: Any) -> None:
        """Merge known state fields directly.

        Raises:
            TypeError: If a field name is not part of RateLimitState
        """
        known = {f.name for f in fields(RateLimitState)}
        unknown = set(values) - known
        if unknown:
            raise TypeError(f"Unknown rate limit fields: {', '.join(sorted(unknown))}")
        self.state = replace(self.state, **values)

    def should_throttle(self) -> bool:
        remaining = self.state.remaining_requests
        return remaining is not None and remaining < THROTTLE_LOW_WATER_MARK


def error_status(error: BaseException) -> int | None:
    """HTTP status carried by an exception, if any."""
    status = getattr(error, "status", None)
    if status is None:
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def error_headers(error: BaseException) -> Mapping[str, Any]:
    headers = getattr(error, "headers", None)
    if not headers:
        response = getattr(error, "response", None)
        headers = getattr(response, "headers", None)
    return headers or {}


class RateLimitHandler:
    """Retries operations that fail with HTTP 429 using exponential backoff."""

    def __init__(
        self,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        max_attempts: int = 6,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.max_attempts = max_attempts
        self._sleep = sleep

    def calculate_delay(self, attempt: int) -> float:
        """Exponential backoff capped at max_delay with +/-25% jitter."""
        delay = min(self.max_delay, self.base_delay * (2 ** attempt))
        return delay * random.uniform(0.75, 1.25)

    def retry_with_backoff(self, operation: Callable[[], T]) -> T:
        """Run operation, retrying only on rate limit failures.

        Raises:
            The last rate limit failure once max_attempts is reached, or any
            other failure immediately
        """
        attempt = 0
        while True:
            try:
                return operation()
            except Exception as e:
                if error_status(e) != 429:
                    raise

                attempt += 1
                if attempt >= self.max_attempts:
                    logger.error(
                        "llm.ratelimit.exhausted",
                        attempt=attempt,
                        max_attempts=self.max_attempts,
                    )
                    raise

                retry_after = parse_int(header_value(error_headers(e), "retry-after"))
                delay = retry_after if retry_after else self.calculate_delay(attempt)

                logger.warning(
                    "llm.ratelimit.retry",
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    delay_s=round(delay, 3),
                )
                self._sleep(delay)
