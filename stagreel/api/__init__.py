"""HTTP endpoints for submitting renders and following their progress."""

from .router import get_orchestrator, router

__all__ = ["router", "get_orchestrator"]
