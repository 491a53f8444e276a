"""Visibility run orchestration.

Use explicit imports:
    from worker.pipeline.runner import VisibilityPipeline, PipelineConfig
    from worker.pipeline.repository import RunRepository, InMemoryRunRepository
    from worker.pipeline.run import RunRecord, RunStatus, ProgressEvent
"""

__all__ = [
    "VisibilityPipeline",
    "PipelineConfig",
    "PipelineOutcome",
    "run_visibility",
    "RunRepository",
    "InMemoryRunRepository",
    "RunRecord",
    "RunStatus",
    "RunContext",
    "ProgressEvent",
    "Stage",
]
