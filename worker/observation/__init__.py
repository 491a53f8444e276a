"""Answer collection for visibility runs.

Questions are dispatched to a question-answering provider with bounded
concurrency, per-request timeouts and retries. Failed questions are
recorded and excluded rather than aborting the run.

Use explicit imports:
    from worker.observation.providers import AnswerProvider, get_provider
    from worker.observation.models import Response, CollectionResult
    from worker.observation.collector import ResponseCollector, collect_responses
"""

__all__ = [
    # Providers
    "AnswerProvider",
    "PerplexityProvider",
    "OpenRouterProvider",
    "OpenAIProvider",
    "MockAnswerProvider",
    "ProviderConfig",
    "get_provider",
    # Models
    "Citation",
    "CollectionResult",
    "ProviderAnswer",
    "ProviderError",
    "ProviderType",
    "Response",
    "UsageStats",
    # Collector
    "ResponseCollector",
    "CollectorConfig",
    "collect_responses",
]
