"""Provider protocol and the shared chat-completion workflow."""

from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, Protocol, TypeVar, runtime_checkable

from docenrich.logger import get_logger

from ..config import AppConfig, ProviderSettings
from ..errors import ClientNotInitialized, InvalidResponseStructure
from ..json_repair import parse_document_response
from ..monitor import ApiCallTracker
from ..prompts import build_system_prompt
from ..ratelimit import RateLimitHandler, RateLimitTracker
from ..response import (
    AnalysisResult,
    CallRequest,
    ChatResponse,
    PlaygroundResult,
)
from ..throttle import ThrottleManager
from ..tokens import TokenBudgeter
from ..trace import cache_thumbnail, record_prompt, record_response
from ..transport import CHAT_COMPLETIONS_PATH, ChatTransport

logger = get_logger(__name__)

T = TypeVar("T")


@runtime_checkable
class Provider(Protocol):
    """Protocol for document analysis providers."""

    id: str

    def validate_config(self) -> None:
        """Validate provider-specific settings.

        Raises:
            ClientNotInitialized: If configuration is missing or invalid
        """
        ...

    def analyze_document(
        self,
        content: str,
        existing_tags: Iterable[Any],
        existing_correspondents: Iterable[Any],
        document_id: int | str,
        custom_prompt: str | None = None,
    ) -> AnalysisResult:
        ...

    def analyze_playground(self, content: str, prompt: str) -> PlaygroundResult:
        ...


class ChatProvider(ABC):
    """Shared workflow for OpenAI-compatible chat providers.

    Each instance owns its own rate limit tracker, retry handler, call
    tracker and request queue. Subclasses supply transport construction
    and may normalize response headers.
    """

    id = "base"

    def __init__(
        self,
        settings: ProviderSettings,
        config: AppConfig,
        backend=None,
        budgeter: TokenBudgeter | None = None,
        rate_limit_handler: RateLimitHandler | None = None,
        throttle_manager: ThrottleManager | None = None,
    ):
        self.settings = settings
        self.config = config
        self.backend = backend
        self.budgeter = budgeter or TokenBudgeter(config.budget.tokenizer_model)
        self.rate_limit_tracker = RateLimitTracker()
        self.rate_limit_handler = rate_limit_handler or RateLimitHandler()
        self.throttle_manager = throttle_manager or ThrottleManager(name=self.id)
        self.api_call_tracker = ApiCallTracker()
        self._transport: ChatTransport | None = None

    # --- Provider-specific hooks ---

    @property
    def model(self) -> str | None:
        return self.settings.model

    @abstractmethod
    def validate_config(self) -> None:
        """Raise ClientNotInitialized if required settings are missing."""

    @abstractmethod
    def build_transport(self) -> ChatTransport:
        """Transport for this provider's endpoint and authentication."""

    def normalize_headers(self, response: ChatResponse) -> dict[str, str]:
        """Headers handed to the trackers for a successful response."""
        return dict(response.headers)

    # --- Shared workflow ---

    def initialize(self) -> ChatTransport:
        """Build the transport on first use.

        Raises:
            ClientNotInitialized: If required settings are missing
        """
        if self._transport is None:
            self.validate_config()
            self._transport = self.build_transport()
            logger.info(
                "llm.provider.initialized",
                provider=self.id,
                model=self.model,
                url=self._transport.url,
            )
        return self._transport

    def build_payload(self, messages: list[dict[str, str]]) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": messages,
            "temperature": self.settings.temperature,
        }

    def _throttled(self, operation: Callable[[], T]) -> T:
        """Run an operation through the queue and the rate limit retry loop."""
        if self.rate_limit_tracker.should_throttle():
            logger.warning(
                "llm.ratelimit.low",
                provider=self.id,
                remaining_requests=self.rate_limit_tracker.state.remaining_requests,
            )
        future = self.throttle_manager.enqueue(
            lambda: self.rate_limit_handler.retry_with_backoff(operation)
        )
        return future.result()

    def _call(
        self,
        transport: ChatTransport,
        payload: dict[str, Any],
        handle: Callable[[ChatResponse], T],
    ) -> T:
        """Send one request and handle its response, tracking the outcome.

        The call is recorded whether the request, the rate limit update or
        the response handling fails.
        """
        request = CallRequest(url=CHAT_COMPLETIONS_PATH, method="POST", model=self.model)
        response = None
        error = None
        try:
            response = transport.post_chat(payload)
            response = response.with_headers(self.normalize_headers(response))
            self.rate_limit_tracker.update_from_headers(response.headers)
            return handle(response)
        except Exception as e:
            error = e
            if getattr(e, "status", None) == 429:
                logger.warning(
                    "llm.request.rate_limited",
                    provider=self.id,
                    error=str(e),
                    limits=self.rate_limit_tracker.limits,
                )
            else:
                logger.error("llm.request.failed", provider=self.id, error=str(e))
            raise
        finally:
            self.api_call_tracker.track_api_call(request, response, error)

    def analyze_document(
        self,
        content: str,
        existing_tags: Iterable[Any] = (),
        existing_correspondents: Iterable[Any] = (),
        document_id: int | str | None = None,
        custom_prompt: str | None = None,
    ) -> AnalysisResult:
        """Extract document metadata from content.

        Never raises: any failure is returned as a result with an empty
        document and the error message.
        """
        try:
            transport = self.initialize()

            if document_id is not None:
                cache_thumbnail(self.backend, document_id, self.config.storage.thumbnail_dir)

            prompt = build_system_prompt(
                self.config.prompts,
                existing_tags=existing_tags,
                existing_correspondents=existing_correspondents,
                custom_prompt=custom_prompt,
            )
            if custom_prompt:
                logger.debug("llm.prompt.custom", provider=self.id, document_id=document_id)

            prompt_tokens = self.budgeter.count_prompt_tokens(
                prompt.system_prompt, prompt.additional_prompts
            )
            budget = self.config.budget
            available_tokens = budget.context_window - prompt_tokens - budget.reserved_tokens
            truncated_content = self.budgeter.truncate(content, available_tokens)
            truncated = len(truncated_content) < len(content)

            record_prompt(
                self.config.storage.log_dir,
                prompt.system_prompt,
                truncated_content,
                self.config.storage.max_log_bytes,
            )

            payload = self.build_payload(prompt.messages(truncated_content))

            def handle(response: ChatResponse) -> AnalysisResult:
                text = response.content
                if not text:
                    raise InvalidResponseStructure("Invalid API response structure")
                document, cleaned = parse_document_response(text)
                record_response(self.config.storage.log_dir, cleaned)
                return AnalysisResult(
                    document=document,
                    metrics=response.usage,
                    truncated=truncated,
                )

            logger.info(
                "llm.analyze.start",
                provider=self.id,
                model=self.model,
                document_id=document_id,
                prompt_tokens=prompt_tokens,
                truncated=truncated,
            )
            result = self._throttled(lambda: self._call(transport, payload, handle))
            logger.info(
                "llm.analyze.success",
                provider=self.id,
                document_id=document_id,
                total_tokens=result.metrics.total_tokens if result.metrics else None,
            )
            return result

        except Exception as e:
            logger.error(
                "llm.analyze.error",
                provider=self.id,
                document_id=document_id,
                error_type=type(e).__name__,
                error_message=str(e),
            )
            return AnalysisResult.failure(str(e))

    def analyze_playground(self, content: str, prompt: str) -> PlaygroundResult:
        """Run a free-form prompt against content and return the raw text.

        Never raises: failures are returned in the result's error field.
        """
        try:
            transport = self.initialize()

            content_tokens = self.budgeter.count_tokens(content)
            prompt_tokens = self.budgeter.count_tokens(prompt)
            budget = self.config.budget
            max_tokens = budget.context_window - budget.reserved_tokens

            truncated_content = content
            if content_tokens + prompt_tokens > max_tokens:
                truncated_content = self.budgeter.truncate(content, max_tokens - prompt_tokens)
                logger.info(
                    "llm.playground.truncated",
                    provider=self.id,
                    content_tokens=content_tokens,
                    prompt_tokens=prompt_tokens,
                    max_tokens=max_tokens,
                )
            truncated = len(truncated_content) < len(content)

            payload = self.build_payload([
                {"role": "system", "content": prompt},
                {"role": "user", "content": truncated_content},
            ])

            def handle(response: ChatResponse) -> PlaygroundResult:
                text = response.content
                if not text:
                    raise InvalidResponseStructure("Invalid API response structure")
                return PlaygroundResult(content=text, usage=response.usage, truncated=truncated)

            return self._throttled(lambda: self._call(transport, payload, handle))

        except Exception as e:
            logger.error(
                "llm.playground.error",
                provider=self.id,
                error_type=type(e).__name__,
                error_message=str(e),
            )
            return PlaygroundResult.failure(str(e))


def require(settings: ProviderSettings, *names: str) -> None:
    """Check that settings fields are set.

    Raises:
        ClientNotInitialized: Naming every missing field
    """
    missing = [name for name in names if not getattr(settings, name)]
    if missing:
        raise ClientNotInitialized(
            f"{settings.provider_id} client not initialized: "
            f"missing {', '.join(missing)}"
        )
