"""Scoring package for AI visibility.

Use explicit imports:
    from worker.scoring.competitive import CompetitiveMetricsExtractor, extract_competitive_metrics
    from worker.scoring.engine import ScoringEngine, ScoreResult, calculate_visibility_score
"""

__all__ = [
    # Competitive metrics
    "CompetitiveMetricsExtractor",
    "CompetitiveMetrics",
    "CompetitorRecord",
    "NicheSize",
    "classify_niche",
    "niche_multiplier",
    "extract_competitive_metrics",
    # Engine
    "ScoringEngine",
    "ScoreResult",
    "QuestionScore",
    "CitationSource",
    "HistoricalComparison",
    "grade_for",
    "apply_curve",
    "calculate_visibility_score",
]
