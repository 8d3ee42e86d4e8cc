"""Main analysis interface."""

from pathlib import Path
from typing import Any, Iterable

from docenrich.logger import get_logger

from .config import AppConfig, load_config
from .providers import ChatProvider, get_provider_class
from .response import AnalysisResult, PlaygroundResult
from .status import ProviderStatus, collect_status
from .tokens import TokenBudgeter

logger = get_logger(__name__)


class DocumentAnalyzer:
    """Routes analysis calls to the active provider.

    Provider instances are created on first use and kept for the lifetime of
    the analyzer, so each provider keeps its own queue and rate limit state
    across provider switches.
    """

    def __init__(
        self,
        config: AppConfig,
        backend=None,
        metrics_sink=None,
        budgeter: TokenBudgeter | None = None,
    ):
        """Initialize analyzer with configuration.

        Args:
            config: Analysis configuration
            backend: Optional document backend (thumbnails, taxonomy)
            metrics_sink: Optional store receiving token usage per document
            budgeter: Optional shared token budgeter
        """
        self.config = config
        self.backend = backend
        self.metrics_sink = metrics_sink
        self.budgeter = budgeter or TokenBudgeter(config.budget.tokenizer_model)
        self._providers: dict[str, ChatProvider] = {}

    @classmethod
    def from_config(cls, config_path: str | Path, **kwargs: Any) -> "DocumentAnalyzer":
        """Load analyzer from YAML config file.

        Raises:
            FileNotFoundError: If config file not found
            ValueError: If configuration is invalid
        """
        return cls(load_config(config_path), **kwargs)

    @property
    def active_provider_id(self) -> str:
        return self.config.active_provider

    def get_provider(self, provider_id: str | None = None) -> ChatProvider:
        """Provider instance for an id, defaulting to the active provider.

        Raises:
            ValueError: If the provider is unknown
        """
        provider_id = provider_id or self.config.active_provider
        if provider_id not in self._providers:
            provider_cls = get_provider_class(provider_id)
            self._providers[provider_id] = provider_cls(
                self.config.provider_settings(provider_id),
                self.config,
                backend=self.backend,
                budgeter=self.budgeter,
            )
        return self._providers[provider_id]

    def switch_provider(self, provider_id: str) -> ChatProvider:
        """Make another provider active without resetting any provider state.

        Raises:
            ValueError: If the provider is unknown
        """
        provider = self.get_provider(provider_id)
        self.config.active_provider = provider_id
        logger.info("llm.provider.switched", provider=provider_id)
        return provider

    def _taxonomy(self, items: Iterable[Any] | None, fetch: str) -> list[Any]:
        if items is not None:
            return list(items)
        if self.backend is None or not hasattr(self.backend, fetch):
            return []
        try:
            return list(getattr(self.backend, fetch)() or [])
        except Exception as e:
            logger.warning("llm.taxonomy.fetch_failed", source=fetch, error=str(e))
            return []

    def analyze_document(
        self,
        content: str,
        existing_tags: Iterable[Any] | None = None,
        existing_correspondents: Iterable[Any] | None = None,
        document_id: int | str | None = None,
        custom_prompt: str | None = None,
    ) -> AnalysisResult:
        """Analyze a document with the active provider.

        Taxonomy lists left as None are fetched from the backend when one is
        configured. Usage of successful analyses is forwarded to the metrics
        sink.

        Returns:
            Analysis result; ``error`` is set instead of raising on failure
        """
        provider = self.get_provider()
        result = provider.analyze_document(
            content,
            self._taxonomy(existing_tags, "get_tags"),
            self._taxonomy(existing_correspondents, "get_correspondents"),
            document_id,
            custom_prompt=custom_prompt,
        )

        if result.ok and result.metrics and self.metrics_sink is not None:
            try:
                self.metrics_sink.record_metrics(document_id, result.metrics)
            except Exception as e:
                logger.error(
                    "llm.metrics.record_failed",
                    document_id=document_id,
                    error=str(e),
                )

        return result

    def analyze_playground(self, content: str, prompt: str) -> PlaygroundResult:
        """Run a free-form prompt with the active provider."""
        return self.get_provider().analyze_playground(content, prompt)

    def provider_status(self, provider_id: str | None = None) -> ProviderStatus:
        """Operational status of a provider, defaulting to the active one."""
        return collect_status(self.get_provider(provider_id))
