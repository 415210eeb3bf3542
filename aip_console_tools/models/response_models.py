"""Response models for the build-step endpoints."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from ..exceptions import ExitCode

NOT_BUILT_EXIT_CODES = frozenset(
    {
        ExitCode.NO_PASSWORD,
        ExitCode.APPLICATION_INFO_MISSING,
        ExitCode.INVALID_PARAMETERS,
    }
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BuildResult(str, Enum):
    """Result reported to the calling build."""

    SUCCESS = "SUCCESS"
    UNSTABLE = "UNSTABLE"
    FAILURE = "FAILURE"
    ABORTED = "ABORTED"
    NOT_BUILT = "NOT_BUILT"

    @classmethod
    def from_exit_code(cls, exit_code: ExitCode, failure_ignored: bool = False) -> "BuildResult":
        if exit_code == ExitCode.OK:
            return cls.SUCCESS
        if exit_code == ExitCode.JOB_ABORTED:
            return cls.ABORTED
        if exit_code in NOT_BUILT_EXIT_CODES:
            return cls.NOT_BUILT
        return cls.UNSTABLE if failure_ignored else cls.FAILURE


class StepResponse(BaseModel):
    """Outcome of a build step."""

    step: str
    result: BuildResult
    exit_code: int
    exit_code_name: str
    message: str
    finished_at: datetime = Field(default_factory=_utcnow)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    timestamp: datetime = Field(default_factory=_utcnow)
    version: Optional[str] = None
    console_url: Optional[str] = None
    console_status: str = "unknown"
    console_api_version: Optional[str] = None


class ErrorResponse(BaseModel):
    """Standardized error response."""

    error: str
    message: str
    details: Optional[Dict[str, Any]] = None
    error_code: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)
