"""Response collector with retries, bounded concurrency and cancellation."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from api.exceptions import ResponseCollectionFailure
from worker.concurrency import BoundedTaskGroup
from worker.observation.models import (
    CollectionResult,
    ProviderAnswer,
    ProviderError,
    Response,
)
from worker.observation.providers import AnswerProvider
from worker.questions.generator import Question

logger = structlog.get_logger(__name__)


@dataclass
class CollectorConfig:
    """Configuration for a collection stage."""

    concurrency: int = 5

    # Retry settings (retries after the first attempt)
    max_retries: int = 2
    retry_delay_seconds: float = 1.0
    retry_backoff_multiplier: float = 2.0

    # Timeouts
    request_timeout_seconds: float = 60.0
    stage_timeout_seconds: float = 600.0
    cancel_grace_seconds: float = 10.0


# Progress callback type: (settled, total)
ProgressCallback = Callable[[int, int], None]


class ResponseCollector:
    """Dispatches questions to an answer provider and gathers responses."""

    def __init__(
        self,
        provider: AnswerProvider,
        config: CollectorConfig | None = None,
        progress_callback: ProgressCallback | None = None,
    ):
        self.provider = provider
        self.config = config or CollectorConfig()
        self.progress_callback = progress_callback

    async def collect(
        self,
        questions: list[Question],
        cancel_event: asyncio.Event | None = None,
    ) -> CollectionResult:
        """
        Collect answers for every question.

        A failed question is recorded in ``failures`` and excluded; it never
        aborts the stage.

        Args:
            questions: Questions to dispatch
            cancel_event: Run-level cancellation signal

        Returns:
            CollectionResult keyed by question id

        Raises:
            ResponseCollectionFailure: If no question produced a response
        """
        group: BoundedTaskGroup[Response | ProviderError] = BoundedTaskGroup(
            limit=self.config.concurrency,
            cancel_event=cancel_event,
            deadline_seconds=self.config.stage_timeout_seconds,
            grace_seconds=self.config.cancel_grace_seconds,
            on_settled=self.progress_callback,
        )
        for question in questions:
            group.spawn(question.id, lambda q=question: self._ask_with_retry(q))

        joined = await group.join()
        result = CollectionResult(
            total_questions=len(questions),
            cancelled=joined.cancelled,
            timed_out=joined.timed_out,
        )

        for question in questions:
            outcome = joined.outcomes[question.id]
            if isinstance(outcome.result, Response):
                result.responses[question.id] = outcome.result
                continue

            if isinstance(outcome.result, ProviderError):
                error = outcome.result
            elif outcome.error is not None:
                error = ProviderError(
                    provider=self.provider.provider_type,
                    error_type="exception",
                    message=f"{type(outcome.error).__name__}: {outcome.error}",
                    retryable=False,
                )
            else:
                error = ProviderError(
                    provider=self.provider.provider_type,
                    error_type="skipped" if outcome.skipped else "cancelled",
                    message="Run cancelled before the question settled",
                    retryable=False,
                )

            result.failures[question.id] = error
            logger.warning(
                "response_collection_failed",
                question_id=question.id,
                question_type=question.type.value,
                error_type=error.error_type,
                message=error.message,
            )

        logger.info(
            "responses_collected",
            total=result.total_questions,
            succeeded=result.success_count,
            failed=len(result.failures),
            cancelled=result.cancelled,
            timed_out=result.timed_out,
        )

        if result.success_count == 0:
            raise ResponseCollectionFailure(
                f"All {len(questions)} response collections failed"
                if questions
                else "No questions were dispatched"
            )

        return result

    async def _ask_with_retry(self, question: Question) -> Response | ProviderError:
        """Ask one question with timeout, retries and exponential backoff."""
        delay = self.config.retry_delay_seconds
        attempts = self.config.max_retries + 1
        last_error: ProviderError | None = None

        for attempt in range(1, attempts + 1):
            answer = await self._ask_once(question)

            if answer.success and answer.content.strip():
                return Response(
                    question_id=question.id,
                    text=answer.content,
                    citations=list(answer.citations),
                    provider=answer.provider,
                    model=answer.model,
                    latency_ms=answer.latency_ms,
                    attempts=attempt,
                    usage=answer.usage,
                )

            last_error = answer.error or ProviderError(
                provider=answer.provider,
                error_type="empty_answer",
                message="Provider returned an empty answer",
                retryable=True,
            )

            # Don't retry if not retryable
            if not last_error.retryable:
                break

            if attempt < attempts:
                logger.debug(
                    "response_retry",
                    question_id=question.id,
                    attempt=attempt,
                    delay_seconds=delay,
                    error_type=last_error.error_type,
                )
                await asyncio.sleep(delay)
                delay *= self.config.retry_backoff_multiplier

        assert last_error is not None
        return last_error

    async def _ask_once(self, question: Question) -> ProviderAnswer:
        """One provider call bounded by the request timeout."""
        try:
            return await asyncio.wait_for(
                self.provider.ask(question.text),
                timeout=self.config.request_timeout_seconds,
            )
        except TimeoutError:
            return ProviderAnswer(
                provider=self.provider.provider_type,
                model=self.provider.config.model,
                success=False,
                error=ProviderError(
                    provider=self.provider.provider_type,
                    error_type="timeout",
                    message=f"No answer within {self.config.request_timeout_seconds}s",
                    retryable=True,
                ),
            )


async def collect_responses(
    provider: AnswerProvider,
    questions: list[Question],
    config: CollectorConfig | None = None,
) -> CollectionResult:
    """Convenience function to collect responses."""
    collector = ResponseCollector(provider, config=config)
    return await collector.collect(questions)
