# =============================================================================
# Application Entry Points
# =============================================================================
# Thin transport adapter that hands raw events to the runtime pipeline.
# =============================================================================

from task_service.app.unified_handler import build_pipeline, get_pipeline, reset_pipeline, unified_handler

__all__ = [
    "build_pipeline",
    "get_pipeline",
    "reset_pipeline",
    "unified_handler",
]
