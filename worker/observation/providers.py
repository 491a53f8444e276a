"""Answer providers - unified interface to the assistants being probed."""

import asyncio
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

from worker.observation.models import (
    Citation,
    ProviderAnswer,
    ProviderError,
    ProviderType,
    UsageStats,
)


URL_PATTERN = re.compile(r'https?://[^\s<>"{}|\\^`\[\]()]+')


@dataclass
class ProviderConfig:
    """Configuration for an answer provider."""

    api_key: str = ""
    base_url: str = ""
    model: str = ""
    timeout_seconds: float = 30.0
    max_tokens: int = 1024
    temperature: float = 0.2

    # Injected transport (tests use httpx.MockTransport)
    transport: httpx.AsyncBaseTransport | None = None


def classify_http_error(provider: ProviderType, status_code: int, body: str) -> ProviderError:
    """Map an HTTP failure to a ProviderError with the right retry policy."""
    if status_code == 429:
        return ProviderError(
            provider=provider,
            error_type="rate_limited",
            message=f"HTTP 429: {body[:200]}",
            retryable=True,
            status_code=status_code,
        )
    return ProviderError(
        provider=provider,
        error_type="api_error",
        message=f"HTTP {status_code}: {body[:200]}",
        retryable=status_code >= 500,
        status_code=status_code,
    )


def extract_text_urls(content: str) -> list[Citation]:
    """Citations for bare URLs written into the answer text."""
    return [Citation(url=url.rstrip(".,;:")) for url in URL_PATTERN.findall(content)]


def dedupe_citations(citations: list[Citation]) -> list[Citation]:
    """Drop repeated URLs, keeping the first (titled) occurrence order."""
    by_url: dict[str, Citation] = {}
    for citation in citations:
        key = citation.url.rstrip("/")
        existing = by_url.get(key)
        if existing is None:
            by_url[key] = citation
        elif not existing.title and citation.title:
            by_url[key] = Citation(url=existing.url, title=citation.title)
    return list(by_url.values())


class AnswerProvider(ABC):
    """Abstract base class for question-answering services."""

    provider_type: ProviderType

    def __init__(self, config: ProviderConfig):
        self.config = config

    @abstractmethod
    async def ask(self, question: str) -> ProviderAnswer:
        """Ask one question. Failures are reported on the answer, not raised."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the provider is available."""
        ...


class ChatCompletionProvider(AnswerProvider):
    """Shared client for OpenAI-compatible chat completion endpoints."""

    default_base_url = ""
    default_model = ""

    def __init__(self, config: ProviderConfig):
        super().__init__(config)
        if not config.base_url:
            config.base_url = self.default_base_url
        if not config.model:
            config.model = self.default_model

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

    def _payload(self, question: str) -> dict:
        return {
            "model": self.config.model,
            "messages": [{"role": "user", "content": question}],
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }

    def _extract_citations(self, data: dict, content: str) -> list[Citation]:
        """Collect url_citation annotations plus URLs in the text."""
        citations: list[Citation] = []
        message = data["choices"][0].get("message") or {}
        for annotation in message.get("annotations") or []:
            if not isinstance(annotation, dict) or annotation.get("type") != "url_citation":
                continue
            info = annotation.get("url_citation") or {}
            if info.get("url"):
                citations.append(Citation(url=info["url"], title=info.get("title") or ""))
        citations.extend(extract_text_urls(content))
        return dedupe_citations(citations)

    def _failure(self, error: ProviderError, started: float) -> ProviderAnswer:
        return ProviderAnswer(
            provider=self.provider_type,
            model=self.config.model,
            success=False,
            latency_ms=(time.perf_counter() - started) * 1000,
            error=error,
        )

    async def ask(self, question: str) -> ProviderAnswer:
        """Run one chat completion and parse text plus citations."""
        started = time.perf_counter()

        try:
            async with httpx.AsyncClient(
                timeout=self.config.timeout_seconds,
                transport=self.config.transport,
            ) as client:
                response = await client.post(
                    f"{self.config.base_url}/chat/completions",
                    headers=self._headers(),
                    json=self._payload(question),
                )
        except httpx.TimeoutException:
            return self._failure(
                ProviderError(
                    provider=self.provider_type,
                    error_type="timeout",
                    message=f"Request timed out after {self.config.timeout_seconds}s",
                    retryable=True,
                ),
                started,
            )
        except httpx.HTTPError as e:
            return self._failure(
                ProviderError(
                    provider=self.provider_type,
                    error_type="transport",
                    message=str(e) or type(e).__name__,
                    retryable=True,
                ),
                started,
            )

        if response.status_code != 200:
            return self._failure(
                classify_http_error(self.provider_type, response.status_code, response.text),
                started,
            )

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"] or ""
            citations = self._extract_citations(data, content)
        except (ValueError, KeyError, IndexError, TypeError) as e:
            return self._failure(
                ProviderError(
                    provider=self.provider_type,
                    error_type="invalid_response",
                    message=f"Malformed completion payload: {e}",
                    retryable=False,
                    status_code=response.status_code,
                ),
                started,
            )

        usage_data = data.get("usage") or {}
        return ProviderAnswer(
            provider=self.provider_type,
            model=data.get("model") or self.config.model,
            content=content,
            citations=citations,
            raw_response=data,
            usage=UsageStats(
                prompt_tokens=usage_data.get("prompt_tokens", 0),
                completion_tokens=usage_data.get("completion_tokens", 0),
                total_tokens=usage_data.get("total_tokens", 0),
            ),
            latency_ms=(time.perf_counter() - started) * 1000,
            success=True,
        )

    async def health_check(self) -> bool:
        """Check if the endpoint answers the model listing."""
        try:
            async with httpx.AsyncClient(timeout=5.0, transport=self.config.transport) as client:
                response = await client.get(
                    f"{self.config.base_url}/models",
                    headers=self._headers(),
                )
                is_healthy: bool = response.status_code == 200
                return is_healthy
        except httpx.HTTPError:
            return False


class PerplexityProvider(ChatCompletionProvider):
    """Perplexity search-grounded answers - primary provider."""

    provider_type = ProviderType.PERPLEXITY
    default_base_url = "https://api.perplexity.ai"
    default_model = "sonar"

    def _extract_citations(self, data: dict, content: str) -> list[Citation]:
        """Prefer titled search results, then bare citation URLs."""
        citations: list[Citation] = []
        for result in data.get("search_results") or []:
            if isinstance(result, dict) and result.get("url"):
                citations.append(Citation(url=result["url"], title=result.get("title") or ""))
        for url in data.get("citations") or []:
            if isinstance(url, str) and url:
                citations.append(Citation(url=url))
        citations.extend(super()._extract_citations(data, content))
        return dedupe_citations(citations)

    async def health_check(self) -> bool:
        """Perplexity has no model listing endpoint; a configured key is enough."""
        return bool(self.config.api_key)


class OpenRouterProvider(ChatCompletionProvider):
    """OpenRouter aggregator provider."""

    provider_type = ProviderType.OPENROUTER
    default_base_url = "https://openrouter.ai/api/v1"
    default_model = "openai/gpt-4o-mini:online"

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["X-Title"] = "AI Visibility Scoring"
        return headers


class OpenAIProvider(ChatCompletionProvider):
    """Direct OpenAI provider."""

    provider_type = ProviderType.OPENAI
    default_base_url = "https://api.openai.com/v1"
    default_model = "gpt-4o-mini-search-preview"

    def _payload(self, question: str) -> dict:
        payload = super()._payload(question)
        # Search models reject sampling parameters
        if "search" in self.config.model:
            payload.pop("temperature", None)
        model = self.config.model
        if model.startswith("openai/"):
            payload["model"] = model.replace("openai/", "")
        return payload


class MockAnswerProvider(AnswerProvider):
    """Mock provider for testing."""

    provider_type = ProviderType.MOCK

    def __init__(self, config: ProviderConfig | None = None):
        super().__init__(config or ProviderConfig(model="mock-model"))
        self.responses: dict[str, ProviderAnswer | str] = {}
        self.failing_questions: dict[str, ProviderError] = {}
        self.should_fail: bool = False
        self.fail_count: int = 0
        self.fail_retryable: bool = True
        self.delay_seconds: float = 0.0
        self.calls: list[str] = []

    def set_response(
        self,
        question: str,
        content: str,
        citations: list[Citation] | None = None,
    ) -> None:
        """Set a specific answer for a question text."""
        self.responses[question] = ProviderAnswer(
            provider=self.provider_type,
            model=self.config.model,
            content=content,
            citations=list(citations or []),
        )

    def set_failure_mode(
        self,
        should_fail: bool,
        fail_count: int = 1,
        retryable: bool = True,
    ) -> None:
        """Fail the next ``fail_count`` calls, whatever the question."""
        self.should_fail = should_fail
        self.fail_count = fail_count
        self.fail_retryable = retryable

    def fail_question(self, question: str, retryable: bool = False, status_code: int = 400) -> None:
        """Make every call for one question fail."""
        self.failing_questions[question] = ProviderError(
            provider=self.provider_type,
            error_type="mock_failure",
            message=f"Simulated HTTP {status_code}",
            retryable=retryable,
            status_code=status_code,
        )

    async def ask(self, question: str) -> ProviderAnswer:
        """Return a mock answer."""
        self.calls.append(question)

        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)

        if question in self.failing_questions:
            return ProviderAnswer(
                provider=self.provider_type,
                model=self.config.model,
                success=False,
                latency_ms=50.0,
                error=self.failing_questions[question],
            )

        if self.should_fail and self.fail_count > 0:
            self.fail_count -= 1
            return ProviderAnswer(
                provider=self.provider_type,
                model=self.config.model,
                success=False,
                latency_ms=50.0,
                error=ProviderError(
                    provider=self.provider_type,
                    error_type="mock_failure",
                    message="Simulated failure",
                    retryable=self.fail_retryable,
                    status_code=503 if self.fail_retryable else 400,
                ),
            )

        preset = self.responses.get(question)
        if isinstance(preset, ProviderAnswer):
            return preset
        content = preset if isinstance(preset, str) else self._generate_mock_answer(question)

        return ProviderAnswer(
            provider=self.provider_type,
            model=self.config.model,
            content=content,
            citations=extract_text_urls(content),
            usage=UsageStats(
                prompt_tokens=len(question.split()) * 4,
                completion_tokens=len(content.split()) * 4,
                total_tokens=(len(question.split()) + len(content.split())) * 4,
            ),
            latency_ms=50.0,
            success=True,
        )

    def _generate_mock_answer(self, question: str) -> str:
        """Generic answer that names no company."""
        return (
            f"Good question. When people ask \"{question}\" the usual advice is to compare "
            "a few established options against your requirements and budget.\n\n"
            "A good overview is available at https://en.wikipedia.org/wiki/Software"
        )

    async def health_check(self) -> bool:
        """Mock provider is always healthy."""
        return True


def get_provider(
    provider_type: ProviderType,
    config: ProviderConfig | None = None,
) -> AnswerProvider:
    """Factory function to get an answer provider."""
    if config is None:
        config = ProviderConfig()

    providers: dict[ProviderType, type[AnswerProvider]] = {
        ProviderType.PERPLEXITY: PerplexityProvider,
        ProviderType.OPENROUTER: OpenRouterProvider,
        ProviderType.OPENAI: OpenAIProvider,
        ProviderType.MOCK: MockAnswerProvider,
    }

    provider_class = providers.get(provider_type)
    if provider_class is None:
        raise ValueError(f"Unknown provider type: {provider_type}")

    return provider_class(config)
