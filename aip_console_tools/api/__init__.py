"""API router modules."""

from .steps import router as steps_router

__all__ = ["steps_router"]
