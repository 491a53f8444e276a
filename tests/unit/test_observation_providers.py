"""Tests for answer providers."""

import json

import httpx
import pytest

from worker.observation.models import (
    Citation,
    CollectionResult,
    ProviderAnswer,
    ProviderError,
    ProviderType,
    Response,
    UsageStats,
)
from worker.observation.providers import (
    MockAnswerProvider,
    OpenAIProvider,
    OpenRouterProvider,
    PerplexityProvider,
    ProviderConfig,
    classify_http_error,
    dedupe_citations,
    extract_text_urls,
    get_provider,
)


def completion(content: str, **extra: object) -> dict:
    """A minimal chat completion payload."""
    return {
        "model": "test-model",
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 10, "completion_tokens": 20, "total_tokens": 30},
        **extra,
    }


def transport_returning(status_code: int, payload: dict | str) -> httpx.MockTransport:
    """Transport that answers every request with one response."""

    def handler(request: httpx.Request) -> httpx.Response:
        if isinstance(payload, str):
            return httpx.Response(status_code, text=payload)
        return httpx.Response(status_code, json=payload)

    return httpx.MockTransport(handler)


class TestUsageStats:
    """Tests for UsageStats dataclass."""

    def test_add_usage_stats(self) -> None:
        """Can add usage stats together."""
        a = UsageStats(prompt_tokens=100, completion_tokens=50, total_tokens=150)
        b = UsageStats(prompt_tokens=200, completion_tokens=100, total_tokens=300)

        combined = a.add(b)

        assert combined.prompt_tokens == 300
        assert combined.total_tokens == 450

    def test_to_dict(self) -> None:
        """Converts to dict."""
        d = UsageStats(prompt_tokens=1, completion_tokens=2, total_tokens=3).to_dict()
        assert d == {"prompt_tokens": 1, "completion_tokens": 2, "total_tokens": 3}


class TestObservationModels:
    """Tests for citation and collection models."""

    def test_citation_domain(self) -> None:
        """Citation domains are normalized hosts."""
        assert Citation(url="https://www.Forbes.com/a/b").domain == "forbes.com"

    def test_collection_ratio(self) -> None:
        """Success ratio uses dispatched questions as denominator."""
        result = CollectionResult(total_questions=4)
        result.responses["q1"] = Response(question_id="q1", text="x")
        assert result.success_ratio == 0.25
        assert CollectionResult().success_ratio == 0.0

    def test_provider_answer_truncates_content(self) -> None:
        """Long content is truncated in serialized output."""
        answer = ProviderAnswer(provider=ProviderType.MOCK, model="m", content="x" * 600)
        assert answer.to_dict()["content"].endswith("...")


class TestHelpers:
    """Tests for provider helper functions."""

    def test_classify_rate_limit(self) -> None:
        """429 is retryable and labelled rate_limited."""
        error = classify_http_error(ProviderType.OPENAI, 429, "slow down")
        assert error.error_type == "rate_limited"
        assert error.retryable is True

    def test_classify_client_error(self) -> None:
        """4xx errors are not retried."""
        error = classify_http_error(ProviderType.OPENAI, 401, "bad key")
        assert error.error_type == "api_error"
        assert error.retryable is False

    def test_classify_server_error(self) -> None:
        """5xx errors are retried."""
        assert classify_http_error(ProviderType.OPENAI, 503, "").retryable is True

    def test_extract_text_urls(self) -> None:
        """Bare URLs are pulled out of text without trailing punctuation."""
        citations = extract_text_urls("See https://acme.io/docs. Also (https://g2.com/x)")
        assert [c.url for c in citations] == ["https://acme.io/docs", "https://g2.com/x"]

    def test_dedupe_keeps_title(self) -> None:
        """Repeated URLs collapse, keeping a title when one is known."""
        citations = dedupe_citations(
            [Citation(url="https://a.com/"), Citation(url="https://a.com", title="A")]
        )
        assert len(citations) == 1
        assert citations[0].title == "A"


class TestChatCompletionProviders:
    """Tests for HTTP providers using a mock transport."""

    @pytest.mark.asyncio
    async def test_openrouter_success(self) -> None:
        """Content, annotations and usage are parsed."""
        payload = completion("Acme is great https://acme.io")
        payload["choices"][0]["message"]["annotations"] = [
            {"type": "url_citation", "url_citation": {"url": "https://g2.com/acme", "title": "G2"}}
        ]
        provider = OpenRouterProvider(
            ProviderConfig(api_key="k", transport=transport_returning(200, payload))
        )

        answer = await provider.ask("Who is Acme?")

        assert answer.success is True
        assert answer.content == "Acme is great https://acme.io"
        assert [c.url for c in answer.citations] == ["https://g2.com/acme", "https://acme.io"]
        assert answer.usage.total_tokens == 30
        assert answer.model == "test-model"

    @pytest.mark.asyncio
    async def test_request_payload(self) -> None:
        """The question is sent as a single user message."""
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=completion("ok"))

        provider = OpenRouterProvider(
            ProviderConfig(api_key="secret", transport=httpx.MockTransport(handler))
        )
        await provider.ask("Hello?")

        assert seen["url"] == "https://openrouter.ai/api/v1/chat/completions"
        assert seen["auth"] == "Bearer secret"
        assert seen["body"]["messages"] == [{"role": "user", "content": "Hello?"}]

    @pytest.mark.asyncio
    async def test_perplexity_citations(self) -> None:
        """Search results and citation URLs are both collected."""
        payload = completion(
            "Answer",
            search_results=[{"url": "https://forbes.com/a", "title": "Forbes"}],
            citations=["https://forbes.com/a", "https://acme.io/blog"],
        )
        provider = PerplexityProvider(
            ProviderConfig(api_key="k", transport=transport_returning(200, payload))
        )

        answer = await provider.ask("Q")

        assert [c.url for c in answer.citations] == ["https://forbes.com/a", "https://acme.io/blog"]
        assert answer.citations[0].title == "Forbes"

    @pytest.mark.asyncio
    async def test_http_error_is_reported_not_raised(self) -> None:
        """Non-200 responses become failed answers."""
        provider = OpenRouterProvider(
            ProviderConfig(api_key="k", transport=transport_returning(500, "boom"))
        )

        answer = await provider.ask("Q")

        assert answer.success is False
        assert answer.error is not None
        assert answer.error.status_code == 500
        assert answer.error.retryable is True

    @pytest.mark.asyncio
    async def test_malformed_payload(self) -> None:
        """A payload without choices is a non-retryable failure."""
        provider = OpenRouterProvider(
            ProviderConfig(api_key="k", transport=transport_returning(200, {"nope": 1}))
        )

        answer = await provider.ask("Q")

        assert answer.success is False
        assert answer.error is not None
        assert answer.error.error_type == "invalid_response"
        assert answer.error.retryable is False

    @pytest.mark.asyncio
    async def test_transport_timeout(self) -> None:
        """Client timeouts are retryable failures."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        provider = OpenRouterProvider(
            ProviderConfig(api_key="k", transport=httpx.MockTransport(handler))
        )

        answer = await provider.ask("Q")

        assert answer.error is not None
        assert answer.error.error_type == "timeout"
        assert answer.error.retryable is True

    def test_openai_strips_prefix_and_temperature(self) -> None:
        """Search models get no temperature and a bare model name."""
        provider = OpenAIProvider(ProviderConfig(model="openai/gpt-4o-mini-search-preview"))
        payload = provider._payload("Q")

        assert payload["model"] == "gpt-4o-mini-search-preview"
        assert "temperature" not in payload

    def test_defaults_applied(self) -> None:
        """Missing base URL and model fall back to provider defaults."""
        provider = PerplexityProvider(ProviderConfig())
        assert provider.config.base_url == "https://api.perplexity.ai"
        assert provider.config.model == "sonar"

    @pytest.mark.asyncio
    async def test_perplexity_health_needs_key(self) -> None:
        """Perplexity is healthy only with a key."""
        assert await PerplexityProvider(ProviderConfig()).health_check() is False
        assert await PerplexityProvider(ProviderConfig(api_key="k")).health_check() is True


class TestMockAnswerProvider:
    """Tests for MockAnswerProvider."""

    @pytest.mark.asyncio
    async def test_default_answer(self) -> None:
        """Unconfigured questions get a generic answer with a citation."""
        provider = MockAnswerProvider()

        answer = await provider.ask("What is analytics?")

        assert answer.success is True
        assert "What is analytics?" in answer.content
        assert answer.citations[0].domain == "en.wikipedia.org"
        assert provider.calls == ["What is analytics?"]

    @pytest.mark.asyncio
    async def test_set_response(self) -> None:
        """Preset answers are returned as given."""
        provider = MockAnswerProvider()
        provider.set_response("Q", "Acme.", [Citation(url="https://acme.io")])

        answer = await provider.ask("Q")

        assert answer.content == "Acme."
        assert answer.citations == [Citation(url="https://acme.io")]

    @pytest.mark.asyncio
    async def test_failure_mode_counts_down(self) -> None:
        """Failure mode fails a fixed number of calls."""
        provider = MockAnswerProvider()
        provider.set_failure_mode(True, fail_count=1)

        first = await provider.ask("Q")
        second = await provider.ask("Q")

        assert first.success is False
        assert first.error is not None
        assert first.error.retryable is True
        assert second.success is True

    @pytest.mark.asyncio
    async def test_fail_question(self) -> None:
        """A failing question always fails."""
        provider = MockAnswerProvider()
        provider.fail_question("bad", status_code=400)

        answer = await provider.ask("bad")

        assert answer.success is False
        assert isinstance(answer.error, ProviderError)
        assert answer.error.retryable is False


class TestGetProvider:
    """Tests for get_provider factory."""

    @pytest.mark.parametrize(
        ("provider_type", "provider_class"),
        [
            (ProviderType.PERPLEXITY, PerplexityProvider),
            (ProviderType.OPENROUTER, OpenRouterProvider),
            (ProviderType.OPENAI, OpenAIProvider),
            (ProviderType.MOCK, MockAnswerProvider),
        ],
    )
    def test_factory(self, provider_type: ProviderType, provider_class: type) -> None:
        """Factory returns the matching provider class."""
        assert isinstance(get_provider(provider_type), provider_class)
