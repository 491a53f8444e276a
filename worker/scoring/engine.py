"""Visibility scoring engine with "Show the Math" functionality.

Combines the analyzed responses of a run and its competitive metrics into a
single 0-1 visibility score. Every sub-score feeding the composite is kept
on the result together with the calculation steps, so a score can always be
explained.

The composite is a weighted sum of five components followed by a
toughening curve (``raw ** CURVE_EXPONENT``) that pushes typical scores down
and leaves room at the top for companies that dominate their answers.
"""

import math
import statistics
from dataclasses import dataclass, field

import structlog

from api.exceptions import ScoringInputInsufficient
from worker.analysis.models import (
    AnalyzedResponse,
    CitationBucket,
    MentionPosition,
    Sentiment,
)
from worker.questions.templates import QuestionType
from worker.scoring.competitive import CompetitiveMetrics

logger = structlog.get_logger(__name__)

# Composite weights (sum to 1.0)
COMPONENT_WEIGHTS: dict[str, float] = {
    "mention_rate": 0.40,
    "mention_quality": 0.25,
    "source_influence": 0.20,
    "competitive_positioning": 0.10,
    "consistency": 0.05,
}

COMPONENT_LABELS: dict[str, str] = {
    "mention_rate": "Mention Rate",
    "mention_quality": "Mention Quality",
    "source_influence": "Source Influence",
    "competitive_positioning": "Competitive Positioning",
    "consistency": "Consistency",
}

# Toughening curve: overall = raw ** CURVE_EXPONENT
CURVE_EXPONENT = 1.2

POSITION_WEIGHTS: dict[MentionPosition, float] = {
    MentionPosition.PRIMARY: 1.0,
    MentionPosition.SECONDARY: 0.6,
    MentionPosition.PASSING: 0.3,
    MentionPosition.NONE: 0.0,
}

SENTIMENT_WEIGHTS: dict[Sentiment, float] = {
    Sentiment.VERY_POSITIVE: 1.0,
    Sentiment.POSITIVE: 0.8,
    Sentiment.NEUTRAL: 0.5,
    Sentiment.NEGATIVE: 0.2,
    Sentiment.VERY_NEGATIVE: 0.0,
}

# Largest possible population std-dev of rates in [0, 1]
MAX_RATE_DISPERSION = 0.5

# (minimum score out of 100, grade, description)
GRADE_THRESHOLDS: list[tuple[float, str, str]] = [
    (80, "A", "Exceptional - the company dominates AI answers in its space"),
    (60, "B", "Strong - consistently named and well sourced"),
    (40, "C", "Good - visible, with clear room to grow"),
    (20, "D", "Fair - occasionally surfaced by AI assistants"),
    (0, "F", "Poor - largely invisible in AI answers"),
]

# Recommendation triggers
MENTION_RATE_TARGET = 0.3
MENTION_QUALITY_TARGET = 0.5
SOURCE_INFLUENCE_TARGET = 0.4
COMPETITIVE_POSITIONING_TARGET = 0.5
CONSISTENCY_TARGET = 0.7

# Changes smaller than this (0-1 scale) count as stable
TREND_THRESHOLD = 0.01


def grade_for(score_100: float) -> tuple[str, str]:
    """Letter grade and description for a 0-100 score."""
    for minimum, grade, description in GRADE_THRESHOLDS:
        if score_100 >= minimum:
            return grade, description
    return GRADE_THRESHOLDS[-1][1], GRADE_THRESHOLDS[-1][2]


def apply_curve(raw: float, exponent: float = CURVE_EXPONENT) -> float:
    """Toughening transform, clamped to [0, 1]."""
    bounded = min(1.0, max(0.0, raw))
    return min(1.0, max(0.0, bounded**exponent))


@dataclass
class QuestionScore:
    """Score detail for a single analyzed response."""

    question_id: str
    question_text: str
    question_type: QuestionType
    difficulty_weight: float
    mention_detected: bool
    position: MentionPosition
    sentiment: Sentiment
    confidence: float
    quality: float  # position x sentiment x confidence, 0 when not mentioned
    citation_count: int
    owned_citation_count: int
    fallback: bool

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "question_id": self.question_id,
            "question_text": self.question_text,
            "question_type": self.question_type.value,
            "difficulty_weight": self.difficulty_weight,
            "mention_detected": self.mention_detected,
            "position": self.position.value,
            "sentiment": self.sentiment.value,
            "confidence": round(self.confidence, 4),
            "quality": round(self.quality, 4),
            "citation_count": self.citation_count,
            "owned_citation_count": self.owned_citation_count,
            "fallback": self.fallback,
        }


@dataclass
class CitationSource:
    """All citations of one domain across the run."""

    domain: str
    bucket: CitationBucket
    count: int
    total_influence: float

    @property
    def average_influence(self) -> float:
        return self.total_influence / self.count if self.count else 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "domain": self.domain,
            "bucket": self.bucket.value,
            "count": self.count,
            "average_influence": round(self.average_influence, 4),
        }


@dataclass
class HistoricalComparison:
    """Change against the previous completed run of the same company."""

    previous_score: float  # 0-1
    change: float
    change_percent: float | None
    trend: str  # "improving" | "declining" | "stable"

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "previous_score": round(self.previous_score, 4),
            "change": round(self.change, 4),
            "change_percent": (
                round(self.change_percent, 2) if self.change_percent is not None else None
            ),
            "trend": self.trend,
        }


@dataclass
class ScoreResult:
    """Complete visibility score with full transparency."""

    # Final results
    overall_score: float  # 0-1, after the curve
    raw_score: float  # 0-1, before the curve
    grade: str
    grade_description: str

    # Sub-scores (all 0-1)
    mention_rate: float
    difficulty_weighted_mention: float
    mention_quality: float
    source_influence: float
    competitive_positioning: float
    consistency: float

    # Competitive context
    niche_size: str
    share_of_voice: float
    competitor_count: int

    # Counts
    analyzed_count: int
    mention_count: int
    citation_count: int
    fallback_count: int

    # Details
    question_scores: list[QuestionScore] = field(default_factory=list)
    citation_sources: list[CitationSource] = field(default_factory=list)
    type_mention_rates: dict[str, float] = field(default_factory=dict)
    explanations: dict[str, str] = field(default_factory=dict)
    recommendations: list[str] = field(default_factory=list)
    historical: HistoricalComparison | None = None

    # The math - step by step calculation
    calculation_summary: list[str] = field(default_factory=list)
    formula_used: str = ""
    breakdown: str = ""

    @property
    def score_100(self) -> float:
        """Overall score on a 0-100 display scale."""
        return round(self.overall_score * 100, 1)

    @property
    def sub_scores(self) -> dict[str, float]:
        """The five components of the composite."""
        return {
            "mention_rate": self.mention_rate,
            "mention_quality": self.mention_quality,
            "source_influence": self.source_influence,
            "competitive_positioning": self.competitive_positioning,
            "consistency": self.consistency,
        }

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "overall_score": round(self.overall_score, 4),
            "score_100": self.score_100,
            "raw_score": round(self.raw_score, 4),
            "grade": self.grade,
            "grade_description": self.grade_description,
            "mention_rate": round(self.mention_rate, 4),
            "difficulty_weighted_mention": round(self.difficulty_weighted_mention, 4),
            "mention_quality": round(self.mention_quality, 4),
            "source_influence": round(self.source_influence, 4),
            "competitive_positioning": round(self.competitive_positioning, 4),
            "consistency": round(self.consistency, 4),
            "niche_size": self.niche_size,
            "share_of_voice": round(self.share_of_voice, 4),
            "competitor_count": self.competitor_count,
            "analyzed_count": self.analyzed_count,
            "mention_count": self.mention_count,
            "citation_count": self.citation_count,
            "fallback_count": self.fallback_count,
            "type_mention_rates": {k: round(v, 4) for k, v in self.type_mention_rates.items()},
            "question_scores": [q.to_dict() for q in self.question_scores],
            "citation_sources": [c.to_dict() for c in self.citation_sources],
            "explanations": self.explanations,
            "recommendations": self.recommendations,
            "historical": self.historical.to_dict() if self.historical else None,
            "calculation_summary": self.calculation_summary,
            "formula_used": self.formula_used,
            "breakdown": self.breakdown,
        }

    def show_the_math(self) -> str:
        """Generate human-readable calculation breakdown."""
        lines = [
            "=" * 60,
            "AI VISIBILITY SCORE CALCULATION BREAKDOWN",
            "=" * 60,
            "",
            f"Final Score: {self.score_100:.1f}/100 (Grade: {self.grade})",
            f"Grade Description: {self.grade_description}",
            "",
            "-" * 60,
            "FORMULA",
            "-" * 60,
            self.formula_used,
            "",
            "-" * 60,
            "CALCULATION STEPS",
            "-" * 60,
        ]

        for i, step in enumerate(self.calculation_summary, 1):
            lines.append(f"{i}. {step}")

        lines.extend(["", "-" * 60, "COMPONENT BREAKDOWN", "-" * 60])
        for key, value in self.sub_scores.items():
            weight = COMPONENT_WEIGHTS[key]
            lines.append(
                f"  {COMPONENT_LABELS[key]}: {value:.3f} x {weight:.2f} "
                f"= {value * weight:.4f}"
            )
            if key in self.explanations:
                lines.append(f"    → {self.explanations[key]}")

        lines.extend(["", "-" * 60, "QUESTION TYPES", "-" * 60])
        for type_name, rate in self.type_mention_rates.items():
            lines.append(f"  {type_name}: {rate:.0%} mentioned")

        if self.citation_sources:
            lines.extend(["", "-" * 60, "TOP CITED SOURCES", "-" * 60])
            for source in self.citation_sources[:10]:
                lines.append(
                    f"  {source.domain} ({source.bucket.value}): {source.count}x, "
                    f"avg influence {source.average_influence:.2f}"
                )

        if self.historical:
            lines.extend(
                [
                    "",
                    "-" * 60,
                    "TREND",
                    "-" * 60,
                    f"  Previous: {self.historical.previous_score * 100:.1f}/100",
                    f"  Change: {self.historical.change * 100:+.1f} ({self.historical.trend})",
                ]
            )

        lines.extend(
            [
                "",
                "-" * 60,
                "COVERAGE",
                "-" * 60,
                f"  Responses Analyzed: {self.analyzed_count}",
                f"  Mentions: {self.mention_count}",
                f"  Default Analyses: {self.fallback_count}",
                "",
                "=" * 60,
            ]
        )

        return "\n".join(lines)


class ScoringEngine:
    """Calculates visibility scores with full transparency."""

    def __init__(self, curve_exponent: float = CURVE_EXPONENT):
        self.curve_exponent = curve_exponent

    def score(
        self,
        analyzed: list[AnalyzedResponse],
        competitive: CompetitiveMetrics,
        previous_score: float | None = None,
    ) -> ScoreResult:
        """
        Score a run.

        Args:
            analyzed: Analyzed responses of the run
            competitive: Competitive metrics for the same responses
            previous_score: Overall score (0-1) of the previous completed run

        Returns:
            ScoreResult with complete transparency

        Raises:
            ScoringInputInsufficient: If there are no analyzed responses
        """
        if not analyzed:
            raise ScoringInputInsufficient()

        mentioned = [a for a in analyzed if a.mention.mention_detected]

        mention_rate = len(mentioned) / len(analyzed)
        weighted_mention = self._difficulty_weighted_mention(analyzed)
        mention_quality = self._mention_quality(mentioned)
        source_influence = self._source_influence(analyzed)
        competitive_positioning = min(
            1.0, competitive.share_of_voice * competitive.niche_multiplier
        )
        type_rates = self._type_mention_rates(analyzed)
        consistency = self._consistency(type_rates)

        components = {
            "mention_rate": mention_rate,
            "mention_quality": mention_quality,
            "source_influence": source_influence,
            "competitive_positioning": competitive_positioning,
            "consistency": consistency,
        }
        raw = sum(COMPONENT_WEIGHTS[k] * v for k, v in components.items())
        raw = min(1.0, max(0.0, raw))
        overall = apply_curve(raw, self.curve_exponent)
        grade, grade_description = grade_for(overall * 100)

        historical = self._historical(overall, previous_score)
        citation_count = sum(len(a.citations) for a in analyzed)

        result = ScoreResult(
            overall_score=overall,
            raw_score=raw,
            grade=grade,
            grade_description=grade_description,
            mention_rate=mention_rate,
            difficulty_weighted_mention=weighted_mention,
            mention_quality=mention_quality,
            source_influence=source_influence,
            competitive_positioning=competitive_positioning,
            consistency=consistency,
            niche_size=competitive.niche_size.value,
            share_of_voice=competitive.share_of_voice,
            competitor_count=competitive.total_competitors,
            analyzed_count=len(analyzed),
            mention_count=len(mentioned),
            citation_count=citation_count,
            fallback_count=sum(1 for a in analyzed if a.mention.fallback),
            question_scores=[self._question_score(a) for a in analyzed],
            citation_sources=self._citation_sources(analyzed),
            type_mention_rates={t.value: r for t, r in type_rates.items()},
            explanations=self._explanations(components, competitive, len(mentioned), len(analyzed)),
            recommendations=self._recommendations(components, historical),
            historical=historical,
            calculation_summary=self._calculation_summary(components, raw, overall),
            formula_used=self._get_formula(),
        )
        result.breakdown = self._breakdown(result)

        logger.info(
            "visibility_score_calculated",
            overall_score=round(overall, 4),
            raw_score=round(raw, 4),
            grade=grade,
            analyzed=len(analyzed),
            mentions=len(mentioned),
            niche_size=result.niche_size,
        )
        return result

    # ------------------------------------------------------------------
    # Sub-scores
    # ------------------------------------------------------------------

    @staticmethod
    def _difficulty_weighted_mention(analyzed: list[AnalyzedResponse]) -> float:
        total_weight = sum(a.difficulty_weight for a in analyzed)
        if total_weight == 0:
            return 0.0
        mentioned_weight = sum(
            a.difficulty_weight for a in analyzed if a.mention.mention_detected
        )
        return mentioned_weight / total_weight

    @staticmethod
    def _quality(item: AnalyzedResponse) -> float:
        mention = item.mention
        if not mention.mention_detected:
            return 0.0
        return (
            POSITION_WEIGHTS[mention.position]
            * SENTIMENT_WEIGHTS[mention.sentiment]
            * mention.confidence
        )

    def _mention_quality(self, mentioned: list[AnalyzedResponse]) -> float:
        if not mentioned:
            return 0.0
        return sum(self._quality(a) for a in mentioned) / len(mentioned)

    @staticmethod
    def _source_influence(analyzed: list[AnalyzedResponse]) -> float:
        """Average owned/operated influence relative to the average of all citations.

        Bounded to [0, 1]; 0 when nothing is cited or nothing cited is owned.
        """
        all_scores: list[float] = []
        own_scores: list[float] = []
        for item in analyzed:
            for citation in item.citations:
                all_scores.append(citation.influence_score)
                if citation.bucket in (CitationBucket.OWNED, CitationBucket.OPERATED):
                    own_scores.append(citation.influence_score)
        if not own_scores:
            return 0.0
        average_all = statistics.fmean(all_scores)
        if average_all <= 0:
            return 0.0
        return min(1.0, max(0.0, statistics.fmean(own_scores) / average_all))

    @staticmethod
    def _type_mention_rates(analyzed: list[AnalyzedResponse]) -> dict[QuestionType, float]:
        """Mention rate per question type, for types with analyzed responses."""
        rates: dict[QuestionType, float] = {}
        for question_type in QuestionType:
            group = [a for a in analyzed if a.question_type == question_type]
            if group:
                rates[question_type] = sum(
                    1 for a in group if a.mention.mention_detected
                ) / len(group)
        return rates

    @staticmethod
    def _consistency(rates: dict[QuestionType, float]) -> float:
        """1 - normalised spread of mention rates across question types.

        Uniform rates, including all-zero ones, have no spread and score 1.
        """
        if not rates:
            return 0.0
        dispersion = statistics.pstdev(rates.values()) if len(rates) > 1 else 0.0
        return min(1.0, max(0.0, 1.0 - dispersion / MAX_RATE_DISPERSION))

    @staticmethod
    def _historical(overall: float, previous: float | None) -> HistoricalComparison | None:
        if previous is None or math.isnan(previous):
            return None
        change = overall - previous
        if change > TREND_THRESHOLD:
            trend = "improving"
        elif change < -TREND_THRESHOLD:
            trend = "declining"
        else:
            trend = "stable"
        return HistoricalComparison(
            previous_score=previous,
            change=change,
            change_percent=change / previous * 100 if previous > 0 else None,
            trend=trend,
        )

    # ------------------------------------------------------------------
    # Details
    # ------------------------------------------------------------------

    def _question_score(self, item: AnalyzedResponse) -> QuestionScore:
        return QuestionScore(
            question_id=item.question_id,
            question_text=item.question_text,
            question_type=item.question_type,
            difficulty_weight=item.difficulty_weight,
            mention_detected=item.mention.mention_detected,
            position=item.mention.position,
            sentiment=item.mention.sentiment,
            confidence=item.mention.confidence,
            quality=self._quality(item),
            citation_count=len(item.citations),
            owned_citation_count=sum(
                1
                for c in item.citations
                if c.bucket in (CitationBucket.OWNED, CitationBucket.OPERATED)
            ),
            fallback=item.mention.fallback,
        )

    @staticmethod
    def _citation_sources(analyzed: list[AnalyzedResponse]) -> list[CitationSource]:
        sources: dict[str, CitationSource] = {}
        for item in analyzed:
            for citation in item.citations:
                source = sources.get(citation.domain)
                if source is None:
                    source = CitationSource(
                        domain=citation.domain,
                        bucket=citation.bucket,
                        count=0,
                        total_influence=0.0,
                    )
                    sources[citation.domain] = source
                source.count += 1
                source.total_influence += citation.influence_score
        return sorted(sources.values(), key=lambda s: (-s.count, s.domain))

    @staticmethod
    def _explanations(
        components: dict[str, float],
        competitive: CompetitiveMetrics,
        mention_count: int,
        analyzed_count: int,
    ) -> dict[str, str]:
        mr = components["mention_rate"]
        mq = components["mention_quality"]
        si = components["source_influence"]
        cons = components["consistency"]

        explanations = {
            "mention_rate": (
                f"Mentioned in {mention_count} of {analyzed_count} answers ({mr:.0%})."
            ),
            "mention_quality": (
                "No mentions to assess."
                if mention_count == 0
                else f"Average prominence x sentiment x confidence of {mq:.2f} per mention."
            ),
            "source_influence": (
                f"Owned and operated citations carry {si:.0%} of the average cited authority."
            ),
            "competitive_positioning": (
                f"Share of voice {competitive.share_of_voice:.0%} against "
                f"{competitive.total_competitors} competitors in a {competitive.niche_size.value} "
                f"market (x{competitive.niche_multiplier})."
            ),
            "consistency": (
                "Never mentioned on any question type, so there is no spread between types."
                if mention_count == 0
                else f"Mention rates across question types are {cons:.0%} consistent."
            ),
        }
        return explanations

    @staticmethod
    def _recommendations(
        components: dict[str, float],
        historical: HistoricalComparison | None,
    ) -> list[str]:
        recommendations = []
        if components["mention_rate"] < MENTION_RATE_TARGET:
            recommendations.append(
                "Increase overall visibility: publish answer-style content for the "
                "questions buyers ask assistants about your category."
            )
        if components["mention_quality"] < MENTION_QUALITY_TARGET:
            recommendations.append(
                "Improve how you are described: strengthen reviews, case studies and "
                "clear positioning so assistants recommend you rather than list you."
            )
        if components["source_influence"] < SOURCE_INFLUENCE_TARGET:
            recommendations.append(
                "Build authoritative owned sources: documentation, research and "
                "comparison pages that assistants can cite directly."
            )
        if components["competitive_positioning"] < COMPETITIVE_POSITIONING_TARGET:
            recommendations.append(
                "Win share of voice from competitors: target comparison and "
                "alternative queries where competitors are named instead of you."
            )
        if components["consistency"] < CONSISTENCY_TARGET:
            recommendations.append(
                "Broaden coverage: you surface for some question types but not "
                "others, so fill the gaps in indirect and explanatory content."
            )
        if historical is not None and historical.trend == "declining":
            recommendations.append(
                "Visibility is declining since the last run: review recent changes "
                "to content and competitor activity."
            )
        return recommendations

    def _calculation_summary(
        self,
        components: dict[str, float],
        raw: float,
        overall: float,
    ) -> list[str]:
        steps = []
        for key, value in components.items():
            weight = COMPONENT_WEIGHTS[key]
            steps.append(
                f"{COMPONENT_LABELS[key]}: {value:.3f} x {weight:.2f} = {value * weight:.4f}"
            )
        steps.append(f"Raw composite: {raw:.4f}")
        steps.append(f"Toughening curve: {raw:.4f} ^ {self.curve_exponent} = {overall:.4f}")
        steps.append(f"Display score: {overall * 100:.1f}/100")
        return steps

    def _get_formula(self) -> str:
        return (
            "raw = 0.40 x mention_rate + 0.25 x mention_quality + 0.20 x source_influence\n"
            "      + 0.10 x competitive_positioning + 0.05 x consistency\n"
            f"overall = raw ^ {self.curve_exponent}  (clamped to 0-1)"
        )

    @staticmethod
    def _breakdown(result: ScoreResult) -> str:
        return (
            f"{result.score_100:.1f}/100 ({result.grade}): mentioned in "
            f"{result.mention_count}/{result.analyzed_count} answers, quality "
            f"{result.mention_quality:.2f}, source influence {result.source_influence:.2f}, "
            f"positioning {result.competitive_positioning:.2f} ({result.niche_size}), "
            f"consistency {result.consistency:.2f}."
        )


def calculate_visibility_score(
    analyzed: list[AnalyzedResponse],
    competitive: CompetitiveMetrics,
    previous_score: float | None = None,
) -> ScoreResult:
    """
    Convenience function to score a run.

    Args:
        analyzed: Analyzed responses
        competitive: Competitive metrics for the same responses
        previous_score: Optional previous overall score (0-1)

    Returns:
        ScoreResult
    """
    engine = ScoringEngine()
    return engine.score(analyzed, competitive, previous_score)
