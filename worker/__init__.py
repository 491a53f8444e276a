"""AI visibility scoring - worker package.

Stage packages are imported explicitly:
    from worker.pipeline.runner import VisibilityPipeline, PipelineConfig
    from worker.context.builder import CompanyContextBuilder
    from worker.scoring.engine import ScoringEngine
"""
