"""Response analysis for visibility runs.

Each collected answer is graded by a pluggable judge for whether, how
prominently and how favourably the target company is mentioned, and each
cited source is placed in an ownership bucket with an influence score.

Use explicit imports:
    from worker.analysis.analyzer import ResponseAnalyzer, parse_judgment
    from worker.analysis.judgment import JudgmentService, get_judgment_service
    from worker.analysis.citations import classify_citation
    from worker.analysis.models import AnalyzedResponse, MentionAnalysis
"""

__all__ = [
    # Analyzer
    "ResponseAnalyzer",
    "AnalyzerConfig",
    "AnalysisResult",
    "parse_judgment",
    # Judges
    "JudgmentService",
    "LLMJudgmentService",
    "LLMJudgmentConfig",
    "HeuristicJudgmentService",
    "MockJudgmentService",
    "get_judgment_service",
    # Citations
    "classify_citation",
    "classify_citations",
    # Models
    "AnalyzedResponse",
    "CitationBucket",
    "CitationClassification",
    "MentionAnalysis",
    "MentionPosition",
    "Sentiment",
    "TargetDescriptor",
]
