"""Question generator for visibility probes.

Produces a weighted mixture of conversational questions across the five
difficulty classes. The mix is allocated from a fixed share table rather
than a random draw, and the output is deterministic for a given context.
"""

import hashlib
import re
from dataclasses import dataclass, field

import structlog

from api.exceptions import QuestionGenerationFailure
from worker.context.models import CompanyContext
from worker.questions.templates import (
    DIFFICULTY_WEIGHTS,
    QUESTION_MIX,
    QuestionTemplate,
    QuestionType,
    get_templates_by_type,
)

logger = structlog.get_logger(__name__)

# How many context values each template variable cycles through
MAX_VARIANTS = 4

# Longest knowledge phrase substituted into a template
MAX_PHRASE_WORDS = 8

COMPANY_SIZE_TEXT = {
    "startup": "early-stage startup",
    "small": "small business",
    "medium": "mid-sized company",
    "enterprise": "large enterprise",
}


@dataclass
class Question:
    """A generated probe question."""

    text: str
    type: QuestionType
    position: int = 0
    template_id: str = ""
    confidence: float = 1.0  # Share of variables filled from real context
    metadata: dict = field(default_factory=dict)

    @property
    def id(self) -> str:
        """Deterministic ID from question text."""
        return hashlib.md5(self.text.encode()).hexdigest()[:12]

    @property
    def weight(self) -> float:
        """Difficulty weight of this question's type."""
        return DIFFICULTY_WEIGHTS[self.type]

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "text": self.text,
            "type": self.type.value,
            "weight": self.weight,
            "position": self.position,
            "template_id": self.template_id,
            "confidence": round(self.confidence, 2),
            "metadata": self.metadata,
        }


@dataclass
class GeneratorConfig:
    """Configuration for question generator."""

    question_count: int = 15
    question_types: list[QuestionType] | None = None  # None means all five


def allocate_question_counts(
    total: int,
    question_types: list[QuestionType] | None = None,
) -> dict[QuestionType, int]:
    """
    Split a question budget across types using the fixed mix table.

    Uses largest-remainder rounding so counts always sum to ``total``.
    When the budget allows, every requested type gets at least one question.
    """
    types = [t for t in QUESTION_MIX if question_types is None or t in question_types]
    if not types or total <= 0:
        return {}

    share_total = sum(QUESTION_MIX[t] for t in types)
    # Rounded so 15 * 0.1 lands on 1.5 and ties break by table order
    exact = {t: round(total * QUESTION_MIX[t] / share_total, 9) for t in types}
    counts = {t: int(exact[t]) for t in types}

    order = {t: i for i, t in enumerate(types)}
    by_remainder = sorted(types, key=lambda t: (-(exact[t] - counts[t]), order[t]))
    for t in by_remainder[: total - sum(counts.values())]:
        counts[t] += 1

    if total >= len(types):
        for t in types:
            if counts[t] == 0:
                donor = max(types, key=lambda d: (counts[d], -order[d]))
                counts[donor] -= 1
                counts[t] = 1

    return counts


def _normalize(text: str) -> str:
    return re.sub(r"\s+", " ", text.lower().strip()).rstrip("?.! ")


def _short_phrase(text: str) -> str:
    """Trim a knowledge snippet to a phrase that fits inside a question."""
    first = re.split(r"[.;:!?\n]", text.strip(), maxsplit=1)[0]
    words = first.split()[:MAX_PHRASE_WORDS]
    if not words:
        return ""
    # Sentence-case the first word only (keeps "HubSpot", "CRM")
    if words[0][1:].islower():
        words[0] = words[0].lower()
    return " ".join(words)


class QuestionGenerator:
    """Generates probe questions for a company context."""

    def __init__(self, config: GeneratorConfig | None = None):
        self.config = config or GeneratorConfig()

    def generate(
        self,
        context: CompanyContext,
        question_count: int | None = None,
        question_types: list[QuestionType] | None = None,
    ) -> list[Question]:
        """
        Generate an ordered question set.

        Args:
            context: Company context to ground the questions in
            question_count: Number of questions (defaults to config)
            question_types: Optional type filter (defaults to all types)

        Returns:
            Questions with positions 1..n, types interleaved

        Raises:
            QuestionGenerationFailure: If no questions could be produced
        """
        count = question_count or self.config.question_count
        types = question_types or self.config.question_types
        allocation = allocate_question_counts(count, types)
        if not allocation:
            raise QuestionGenerationFailure(
                f"No question types to generate from (count={count}, types={types})"
            )

        values = self._variable_values(context)
        seen: set[str] = set()
        by_type: dict[QuestionType, list[Question]] = {}

        for qtype, wanted in allocation.items():
            by_type[qtype] = self._generate_for_type(qtype, wanted, values, seen)
            if len(by_type[qtype]) < wanted:
                logger.warning(
                    "question_pool_exhausted",
                    question_type=qtype.value,
                    wanted=wanted,
                    generated=len(by_type[qtype]),
                )

        questions = self._interleave(by_type)
        if not questions:
            raise QuestionGenerationFailure(
                f"Template rendering produced no questions for {context.name}"
            )

        for position, question in enumerate(questions, start=1):
            question.position = position

        logger.info(
            "questions_generated",
            company=context.name,
            requested=count,
            generated=len(questions),
            allocation={t.value: n for t, n in allocation.items()},
        )
        return questions

    def _generate_for_type(
        self,
        qtype: QuestionType,
        wanted: int,
        values: dict[str, tuple[list[str], bool]],
        seen: set[str],
    ) -> list[Question]:
        """Render templates of one type, rotating context values per variant."""
        templates = get_templates_by_type(qtype)
        questions: list[Question] = []

        for variant in range(MAX_VARIANTS):
            for template in templates:
                if len(questions) >= wanted:
                    return questions
                question = self._render(template, values, variant)
                if question is None:
                    continue
                key = _normalize(question.text)
                if key in seen:
                    continue
                seen.add(key)
                questions.append(question)

        return questions

    def _render(
        self,
        template: QuestionTemplate,
        values: dict[str, tuple[list[str], bool]],
        variant: int,
    ) -> Question | None:
        """Fill one template; None when the variant would repeat variant 0."""
        filled: dict[str, str] = {}
        grounded = 0
        rotates = False

        for variable in template.variables:
            options, from_context = values[variable]
            if len(options) > 1:
                rotates = True
            filled[variable] = options[variant % len(options)]
            if from_context:
                grounded += 1

        if variant > 0 and not rotates:
            return None

        confidence = grounded / len(template.variables) if template.variables else 1.0
        return Question(
            text=template.template.format(**filled),
            type=template.type,
            template_id=template.id,
            confidence=confidence,
            metadata={"variant": variant, "variables": filled},
        )

    def _variable_values(self, context: CompanyContext) -> dict[str, tuple[list[str], bool]]:
        """Candidate values per template variable, and whether they are grounded."""
        industry = context.industry or "technology"

        def pick(items: tuple[str, ...], fallback: str) -> tuple[list[str], bool]:
            phrases = [_short_phrase(i) for i in items[:MAX_VARIANTS]]
            phrases = [p for p in phrases if p]
            if phrases:
                return phrases, True
            return [fallback], False

        size_text = COMPANY_SIZE_TEXT.get(context.size)
        return {
            "company": ([context.name], True),
            "category": pick(context.keywords, f"{industry.lower()} software"),
            "use_case": pick(context.use_cases, f"{industry.lower()} teams"),
            "competitor": (
                (list(context.competitors[:MAX_VARIANTS]), True)
                if context.competitors
                else (["the market leader"], False)
            ),
            "audience": pick(context.target_audience, "growing teams"),
            "problem": pick(context.pain_points, f"common {industry.lower()} challenges"),
            "company_size": ([size_text], True) if size_text else (["growing company"], False),
        }

    def _interleave(self, by_type: dict[QuestionType, list[Question]]) -> list[Question]:
        """Round-robin across types so no class clusters at the start or end."""
        ordered: list[Question] = []
        queues = [list(qs) for qs in by_type.values()]
        while any(queues):
            for queue in queues:
                if queue:
                    ordered.append(queue.pop(0))
        return ordered


def generate_questions(
    context: CompanyContext,
    question_count: int = 15,
    question_types: list[QuestionType] | None = None,
) -> list[Question]:
    """Convenience function to generate questions for a context."""
    return QuestionGenerator().generate(context, question_count, question_types)
