"""Shared FastAPI dependencies for the build-step endpoints."""

from typing import Any, Awaitable, Callable

from fastapi import Depends

from ..commands import run_command
from ..config import Settings, get_settings
from ..exceptions import ExitCode

StepRunner = Callable[[Settings, Callable[..., Awaitable[ExitCode]], Any], Awaitable[ExitCode]]


def get_step_runner() -> StepRunner:
    """Dependency returning the coroutine that runs a command against the console."""
    return run_command


def get_step_settings(settings: Settings = Depends(get_settings)) -> Settings:
    """Settings used by build steps; requests may override the connection fields."""
    return settings
