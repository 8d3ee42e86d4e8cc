"""
Provider status report - rate limits, queue state and recent calls.

Usage:
    python -m docenrich.llm.status --config config/docenrich.yaml
    python -m docenrich.llm.status --env-file .env --provider azure
    python -m docenrich.llm.status --probe --json
"""

import argparse
import json
import sys
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from docenrich.logger import get_logger

from .monitor import CallStats
from .ratelimit import DEFAULT_REQUEST_CEILING, DEFAULT_TOKEN_CEILING

logger = get_logger(__name__)

PROBE_PROMPT = "Respond with the single word: OK"


@dataclass
class ProviderStatus:
    """Operational status of one provider."""

    provider: str
    status: str = "ok"
    rate_limits: dict[str, Any] = field(default_factory=dict)
    throttling: dict[str, Any] = field(default_factory=dict)
    rate_limit_handler: dict[str, Any] = field(default_factory=dict)
    recent_calls: list[dict[str, Any]] = field(default_factory=list)
    call_stats: CallStats | None = None
    should_throttle: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def collect_status(provider) -> ProviderStatus:
    """Snapshot the trackers, queue and retry settings of a provider.

    Args:
        provider: ChatProvider instance
    """
    state = provider.rate_limit_tracker.state
    now = datetime.now(timezone.utc)

    return ProviderStatus(
        provider=provider.id,
        rate_limits={
            "remaining_requests": (
                state.remaining_requests
                if state.remaining_requests is not None
                else DEFAULT_REQUEST_CEILING
            ),
            "remaining_tokens": (
                state.remaining_tokens
                if state.remaining_tokens is not None
                else DEFAULT_TOKEN_CEILING
            ),
            "total_tokens_used": state.total_tokens_used or 0,
            "last_token_usage": state.last_token_usage,
            "reset_at": _iso(state.reset_at or now + timedelta(hours=1)),
            "last_updated": _iso(state.last_updated or now),
        },
        throttling={
            "queued_requests": provider.throttle_manager.queue_depth,
            "is_processing": provider.throttle_manager.is_processing,
            "min_request_gap": provider.throttle_manager.min_request_gap,
        },
        rate_limit_handler={
            "base_delay": provider.rate_limit_handler.base_delay,
            "max_delay": provider.rate_limit_handler.max_delay,
            "max_attempts": provider.rate_limit_handler.max_attempts,
        },
        recent_calls=[call.to_dict() for call in provider.api_call_tracker.get_recent_calls()],
        call_stats=provider.api_call_tracker.get_call_stats(),
        should_throttle=provider.rate_limit_tracker.should_throttle(),
    )


def print_status_report(status: ProviderStatus) -> None:
    """Print a human readable status report."""
    print("Provider Status")
    print("=" * 60)
    print()
    print(f"Provider: {status.provider} ({status.status})")
    print()

    limits = status.rate_limits
    print("Rate limits:")
    print(f"  Remaining requests: {limits['remaining_requests']}")
    print(f"  Remaining tokens:   {limits['remaining_tokens']}")
    print(f"  Tokens used:        {limits['total_tokens_used']}")
    print(f"  Resets at:          {limits['reset_at']}")
    if status.should_throttle:
        print("  ✗ Remaining requests below low-water mark")
    print()

    throttling = status.throttling
    print(
        f"Queue: {throttling['queued_requests']} queued, "
        f"{'processing' if throttling['is_processing'] else 'idle'}, "
        f"gap {throttling['min_request_gap']}s"
    )
    handler = status.rate_limit_handler
    print(
        f"Retry: {handler['max_attempts']} attempts, "
        f"base {handler['base_delay']}s, cap {handler['max_delay']}s"
    )
    print()

    stats = status.call_stats
    if stats is None:
        print("No calls recorded.")
        return

    avg = f"{stats.avg_latency:.0f}ms" if stats.avg_latency is not None else "N/A"
    print(
        f"Calls: {stats.total_calls} total, {stats.success_calls} ok, "
        f"{stats.error_calls} failed, {stats.rate_limited_calls} rate limited "
        f"(avg latency: {avg})"
    )
    for call in status.recent_calls[:10]:
        error = f" - {call['error_message']}" if call["error_message"] else ""
        print(f"  {call['timestamp']} {call['method']} {call['endpoint']} -> {call['status']}{error}")


def print_status_json(status: ProviderStatus) -> None:
    print(json.dumps(status.to_dict(), indent=2, default=str))


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    from .client import DocumentAnalyzer
    from .config import load_config, load_config_from_env

    parser = argparse.ArgumentParser(
        description="Show rate limit, queue and call status of an analysis provider"
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--config",
        help="Path to YAML configuration file",
    )
    source.add_argument(
        "--env-file",
        help="Read configuration from environment variables, loading this .env file first",
    )
    parser.add_argument(
        "--provider",
        help="Report on this provider instead of the active one",
    )
    parser.add_argument(
        "--probe",
        action="store_true",
        help="Send a minimal playground request before reporting",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output status as JSON",
    )

    args = parser.parse_args(argv)

    try:
        config = load_config(args.config) if args.config else load_config_from_env(args.env_file)
    except (FileNotFoundError, ValueError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    analyzer = DocumentAnalyzer(config)
    if args.provider:
        try:
            analyzer.switch_provider(args.provider)
        except ValueError as e:
            print(str(e), file=sys.stderr)
            return 2

    exit_code = 0
    if args.probe:
        result = analyzer.analyze_playground("OK", PROBE_PROMPT)
        if result.error:
            logger.error("llm.status.probe_failed", error=result.error)
            exit_code = 1

    status = analyzer.provider_status()
    if args.json:
        print_status_json(status)
    else:
        print_status_report(status)

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
