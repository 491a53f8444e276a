"""Visibility pipeline - runs one company through every stage.

Stages run strictly forward:

    context -> questions -> collection -> analysis -> competitive -> scoring

Collection and analysis fan out on bounded task groups and join before the
next stage starts. Fatal errors mark the run failed and are re-raised here,
at the run boundary; recoverable ones are recorded on the run and the
pipeline carries on with what it has.
"""

import asyncio
from dataclasses import dataclass, field

import structlog

from api.config import Settings, get_settings
from api.exceptions import (
    PipelineError,
    QuestionGenerationFailure,
    ResponseCollectionFailure,
)
from api.logging import bind_run_context, clear_run_context
from worker.analysis.analyzer import AnalyzerConfig, ResponseAnalyzer
from worker.analysis.judgment import (
    JudgmentService,
    LLMJudgmentConfig,
    get_judgment_service,
)
from worker.context.builder import CompanyContextBuilder
from worker.context.models import CompanyContext
from worker.context.store import CompanyStore
from worker.observation.collector import CollectorConfig, ResponseCollector
from worker.observation.models import ProviderType
from worker.observation.providers import AnswerProvider, ProviderConfig, get_provider
from worker.pipeline.repository import RunRepository
from worker.pipeline.run import ProgressCallback, RunContext, RunRecord, RunStatus, Stage
from worker.questions.generator import Question, QuestionGenerator
from worker.questions.templates import QuestionType
from worker.scoring.competitive import CompetitiveMetricsExtractor
from worker.scoring.engine import ScoreResult, ScoringEngine

logger = structlog.get_logger(__name__)

# Attempts at question generation before the run fails
QUESTION_GENERATION_ATTEMPTS = 2


@dataclass
class PipelineConfig:
    """Configuration for a visibility pipeline."""

    question_count: int = 15
    min_questions: int = 5
    max_questions: int = 50

    # Bounded concurrency
    concurrency: int = 5

    # Retry settings
    max_retries: int = 2
    retry_delay_seconds: float = 1.0
    retry_backoff_multiplier: float = 2.0

    # Timeouts
    request_timeout_seconds: float = 60.0
    judge_timeout_seconds: float = 45.0
    stage_timeout_seconds: float = 600.0
    cancel_grace_seconds: float = 10.0

    # Providers
    answer_provider: str = "mock"
    answer_model: str = ""
    answer_api_key: str = ""
    answer_max_tokens: int = 1024
    judge_provider: str = "mock"
    judge_model: str = "openai/gpt-4o-mini"
    judge_api_key: str = ""

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "PipelineConfig":
        """Build a pipeline config from application settings."""
        settings = settings or get_settings()
        answer_keys = {
            "perplexity": settings.perplexity_api_key,
            "openrouter": settings.openrouter_api_key,
            "openai": settings.openai_api_key,
        }
        judge_key = (
            settings.openai_api_key
            if settings.judge_provider == "openai"
            else settings.openrouter_api_key
        )
        return cls(
            question_count=settings.visibility_question_count,
            max_questions=settings.visibility_max_questions,
            concurrency=settings.visibility_concurrency,
            max_retries=settings.visibility_max_retries,
            retry_delay_seconds=settings.visibility_retry_delay_seconds,
            retry_backoff_multiplier=settings.visibility_retry_backoff_multiplier,
            request_timeout_seconds=settings.visibility_request_timeout_seconds,
            judge_timeout_seconds=settings.judge_timeout_seconds,
            stage_timeout_seconds=settings.visibility_stage_timeout_seconds,
            cancel_grace_seconds=settings.visibility_cancel_grace_seconds,
            answer_provider=settings.answer_provider,
            answer_model=settings.answer_model,
            answer_api_key=answer_keys.get(settings.answer_provider) or "",
            answer_max_tokens=settings.answer_max_tokens,
            judge_provider=settings.judge_provider,
            judge_model=settings.judge_model,
            judge_api_key=judge_key or "",
        )

    def clamp_question_count(self, requested: int | None) -> int:
        """Clamp a requested question count to the configured bounds."""
        count = requested or self.question_count
        return max(self.min_questions, min(count, self.max_questions))

    def collector_config(self) -> CollectorConfig:
        return CollectorConfig(
            concurrency=self.concurrency,
            max_retries=self.max_retries,
            retry_delay_seconds=self.retry_delay_seconds,
            retry_backoff_multiplier=self.retry_backoff_multiplier,
            request_timeout_seconds=self.request_timeout_seconds,
            stage_timeout_seconds=self.stage_timeout_seconds,
            cancel_grace_seconds=self.cancel_grace_seconds,
        )

    def analyzer_config(self) -> AnalyzerConfig:
        return AnalyzerConfig(
            concurrency=self.concurrency,
            judge_timeout_seconds=self.judge_timeout_seconds,
            stage_timeout_seconds=self.stage_timeout_seconds,
            cancel_grace_seconds=self.cancel_grace_seconds,
        )

    def build_provider(self) -> AnswerProvider:
        """Answer provider described by this config."""
        return get_provider(
            ProviderType(self.answer_provider),
            ProviderConfig(
                api_key=self.answer_api_key,
                model="mock-model" if self.answer_provider == "mock" else self.answer_model,
                timeout_seconds=self.request_timeout_seconds,
                max_tokens=self.answer_max_tokens,
            ),
        )

    def build_judge(self) -> JudgmentService:
        """Judgment service described by this config."""
        return get_judgment_service(
            self.judge_provider,
            LLMJudgmentConfig(
                api_key=self.judge_api_key,
                model=self.judge_model,
                timeout_seconds=self.judge_timeout_seconds,
            ),
        )


@dataclass
class PipelineOutcome:
    """What a completed run produced."""

    run: RunRecord
    score: ScoreResult
    context: CompanyContext
    questions: list[Question] = field(default_factory=list)


class VisibilityPipeline:
    """Orchestrates a visibility run from company id to ScoreResult."""

    def __init__(
        self,
        company_store: CompanyStore,
        repository: RunRepository,
        config: PipelineConfig | None = None,
        provider: AnswerProvider | None = None,
        judge: JudgmentService | None = None,
        question_generator: QuestionGenerator | None = None,
        scoring_engine: ScoringEngine | None = None,
    ):
        self.config = config or PipelineConfig()
        self.company_store = company_store
        self.repository = repository
        self.provider = provider or self.config.build_provider()
        self.judge = judge or self.config.build_judge()
        self.question_generator = question_generator or QuestionGenerator()
        self.scoring_engine = scoring_engine or ScoringEngine()

    async def run(
        self,
        company_id: str,
        question_count: int | None = None,
        options: dict | None = None,
        progress_callback: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> PipelineOutcome:
        """
        Create a run and execute it.

        Args:
            company_id: Company to score
            question_count: Requested questions (clamped to 5-50)
            options: Run options; ``question_types`` filters the mix
            progress_callback: Receives {stage, percent, message} events
            cancel_event: Run-level cancellation signal

        Returns:
            PipelineOutcome with the completed run and its score

        Raises:
            PipelineError: Any fatal stage error, after the run is marked failed
        """
        run = await self.repository.create(
            company_id,
            self.config.clamp_question_count(question_count),
            options,
        )
        return await self.execute(run, progress_callback, cancel_event)

    async def execute(
        self,
        run: RunRecord,
        progress_callback: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> PipelineOutcome:
        """Execute a pending run created earlier."""
        ctx = RunContext(
            run_id=run.id,
            company_id=run.company_id,
            cancel_event=cancel_event or asyncio.Event(),
            progress_callback=progress_callback,
        )
        bind_run_context(run.id, run.company_id)
        logger.info("visibility_run_started", question_count=run.question_count)

        try:
            await self.repository.update_status(run.id, RunStatus.RUNNING)
            outcome = await self._execute_stages(run, ctx)
        except PipelineError as e:
            await self._fail(run, ctx, e.code, e.message)
            e.details.setdefault("run_id", run.id)
            raise
        except Exception as e:
            logger.exception("visibility_run_crashed", error=str(e))
            await self._fail(run, ctx, "internal_error", f"{type(e).__name__}: {e}")
            raise
        finally:
            clear_run_context()

        return outcome

    async def _execute_stages(self, run: RunRecord, ctx: RunContext) -> PipelineOutcome:
        # =========================================================
        # Step 1: Company context
        # =========================================================
        ctx.report(Stage.CONTEXT, 5, "Building company context")
        builder = CompanyContextBuilder(self.company_store)
        context = await builder.build(run.company_id)

        # =========================================================
        # Step 2: Questions
        # =========================================================
        ctx.report(Stage.QUESTIONS, 10, "Generating questions")
        questions = self._generate_questions(context, run)
        ctx.report(Stage.QUESTIONS, 15, f"Generated {len(questions)} questions")

        # =========================================================
        # Step 3: Response collection (bounded fan-out, join)
        # =========================================================
        collector = ResponseCollector(
            self.provider,
            config=self.config.collector_config(),
            progress_callback=ctx.stage_reporter(Stage.COLLECTION, 15, 60, "Collected"),
        )
        collection = await collector.collect(questions, cancel_event=ctx.cancel_event)
        for question_id, error in collection.failures.items():
            ctx.record_error(
                ResponseCollectionFailure(
                    error.message,
                    question_id=question_id,
                    error_type=error.error_type,
                )
            )

        # =========================================================
        # Step 4: Analysis (bounded fan-out, join)
        # =========================================================
        analyzer = ResponseAnalyzer(
            self.judge,
            config=self.config.analyzer_config(),
            progress_callback=ctx.stage_reporter(Stage.ANALYSIS, 60, 85, "Analyzed"),
        )
        # Answers collected before a cancellation are still analyzed and scored
        analysis_cancel = asyncio.Event() if collection.cancelled else ctx.cancel_event
        if collection.cancelled:
            logger.info(
                "analyzing_partial_collection",
                responses=collection.success_count,
                questions=len(questions),
            )
        analysis = await analyzer.analyze(
            questions, collection, context, cancel_event=analysis_cancel
        )
        for failure in analysis.failures:
            ctx.record_error(failure)

        # =========================================================
        # Step 5: Competitive metrics
        # =========================================================
        ctx.report(Stage.COMPETITIVE, 90, "Extracting competitive metrics")
        competitive = CompetitiveMetricsExtractor().extract(analysis.analyzed)

        # =========================================================
        # Step 6: Scoring
        # =========================================================
        ctx.report(Stage.SCORING, 95, "Calculating score")
        previous = await self.repository.latest_completed(
            run.company_id, exclude_run_id=run.id
        )
        score = self.scoring_engine.score(
            analysis.analyzed,
            competitive,
            previous_score=previous.overall_score if previous else None,
        )

        result = score.to_dict()
        result["competitive"] = competitive.to_dict()
        result["collection"] = collection.to_dict()
        result["questions"] = [q.to_dict() for q in questions]
        result["context"] = context.to_dict()

        saved = await self.repository.save_result(
            run.id,
            score.overall_score,
            result,
            warnings=[e.to_dict() for e in ctx.errors],
        )
        ctx.report(Stage.COMPLETE, 100, f"Score {score.score_100:.1f}/100 ({score.grade})")

        logger.info(
            "visibility_run_completed",
            overall_score=round(score.overall_score, 4),
            grade=score.grade,
            responses=collection.success_count,
            questions=len(questions),
            recoverable_errors=len(ctx.errors),
            cancelled=ctx.cancelled,
        )
        return PipelineOutcome(run=saved, score=score, context=context, questions=questions)

    def _generate_questions(self, context: CompanyContext, run: RunRecord) -> list[Question]:
        """Generate questions, retrying once before failing the run."""
        question_types = self._question_types(run.options)
        last_error: QuestionGenerationFailure | None = None

        for attempt in range(1, QUESTION_GENERATION_ATTEMPTS + 1):
            try:
                return self.question_generator.generate(
                    context, run.question_count, question_types
                )
            except QuestionGenerationFailure as e:
                last_error = e
                logger.warning(
                    "question_generation_retry",
                    attempt=attempt,
                    message=e.message,
                )

        raise QuestionGenerationFailure(
            last_error.message if last_error else "Question generation failed",
            attempts=QUESTION_GENERATION_ATTEMPTS,
        )

    @staticmethod
    def _question_types(options: dict) -> list[QuestionType] | None:
        raw = options.get("question_types")
        if not raw:
            return None
        try:
            return [QuestionType(t) for t in raw]
        except ValueError as e:
            raise QuestionGenerationFailure(f"Unknown question type: {e}") from e

    async def _fail(self, run: RunRecord, ctx: RunContext, code: str, message: str) -> None:
        logger.error("visibility_run_failed", code=code, message=message)
        ctx.report(Stage.FAILED, 100, message)
        current = await self.repository.get(run.id)
        if current is not None and current.status.is_terminal:
            return
        await self.repository.update_status(
            run.id,
            RunStatus.FAILED,
            error_code=code,
            error_message=message,
        )


async def run_visibility(
    company_store: CompanyStore,
    repository: RunRepository,
    company_id: str,
    question_count: int | None = None,
    config: PipelineConfig | None = None,
) -> PipelineOutcome:
    """Convenience function to run the pipeline once."""
    pipeline = VisibilityPipeline(company_store, repository, config=config)
    return await pipeline.run(company_id, question_count)
