"""Build-step endpoints: run a console command and report a build result."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from .. import commands
from ..config import Settings
from ..exceptions import ExitCode
from ..models.command_models import (
    AnalyzeOptions,
    DeepAnalyzeOptions,
    DeliverOptions,
    FastScanOptions,
    SnapshotOptions,
)
from ..models.response_models import BuildResult, StepResponse
from .dependencies import StepRunner, get_step_runner, get_step_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/steps", tags=["steps"])


class StepSettings(BaseModel):
    """Connection overrides and result handling shared by every build step."""

    failure_ignored: bool = Field(False, description="Report UNSTABLE instead of FAILURE")
    server_url: Optional[str] = Field(None, description="AIP Console root URL")
    api_key: Optional[str] = Field(None, description="AIP Console API key")
    username: Optional[str] = None
    timeout: Optional[int] = Field(None, gt=0, description="HTTP timeout in seconds")
    sleep_duration: Optional[float] = Field(None, gt=0, description="Seconds between job checks")

    def apply_to(self, settings: Settings) -> Settings:
        return settings.with_overrides(
            console_url=self.server_url,
            api_key=self.api_key,
            username=self.username,
            http_timeout_seconds=self.timeout,
            poll_interval_seconds=self.sleep_duration,
        )


class AnalyzeStep(StepSettings, AnalyzeOptions):
    pass


class DeliverStep(StepSettings, DeliverOptions):
    pass


class SnapshotStep(StepSettings, SnapshotOptions):
    pass


class FastScanStep(StepSettings, FastScanOptions):
    pass


class DeepAnalyzeStep(StepSettings, DeepAnalyzeOptions):
    pass


_MESSAGES = {
    BuildResult.SUCCESS: "{step} completed successfully",
    BuildResult.UNSTABLE: "{step} failed with {code}; failure ignored",
    BuildResult.FAILURE: "{step} failed with {code}",
    BuildResult.ABORTED: "{step} was aborted",
    BuildResult.NOT_BUILT: "{step} was not run: {code}",
}


async def run_step(
    step: str,
    command,
    request: StepSettings,
    settings: Settings,
    runner: StepRunner,
) -> StepResponse:
    """Run one command and turn its exit code into a build result."""
    logger.info(f"Running build step '{step}' for application '{getattr(request, 'app_name', '')}'")
    exit_code = ExitCode(await runner(request.apply_to(settings), command, request))
    result = BuildResult.from_exit_code(exit_code, request.failure_ignored)
    logger.info(f"Build step '{step}' finished: {exit_code.name} -> {result.value}")
    return StepResponse(
        step=step,
        result=result,
        exit_code=int(exit_code),
        exit_code_name=exit_code.name,
        message=_MESSAGES[result].format(step=step, code=exit_code.name),
    )


@router.post("/analyze", response_model=StepResponse, summary="Analyze a version")
async def analyze_step(
    request: AnalyzeStep,
    settings: Settings = Depends(get_step_settings),
    runner: StepRunner = Depends(get_step_runner),
) -> StepResponse:
    return await run_step("analyze", commands.analyze, request, settings, runner)


@router.post("/deliver", response_model=StepResponse, summary="Deliver a new version")
async def deliver_step(
    request: DeliverStep,
    settings: Settings = Depends(get_step_settings),
    runner: StepRunner = Depends(get_step_runner),
) -> StepResponse:
    return await run_step("deliver", commands.deliver, request, settings, runner)


@router.post("/snapshot", response_model=StepResponse, summary="Take a snapshot")
async def snapshot_step(
    request: SnapshotStep,
    settings: Settings = Depends(get_step_settings),
    runner: StepRunner = Depends(get_step_runner),
) -> StepResponse:
    return await run_step("snapshot", commands.snapshot, request, settings, runner)


@router.post("/fast-scan", response_model=StepResponse, summary="Run a fast scan")
async def fast_scan_step(
    request: FastScanStep,
    settings: Settings = Depends(get_step_settings),
    runner: StepRunner = Depends(get_step_runner),
) -> StepResponse:
    return await run_step("fast-scan", commands.fast_scan, request, settings, runner)


@router.post("/deep-analyze", response_model=StepResponse, summary="Run a deep analysis")
async def deep_analyze_step(
    request: DeepAnalyzeStep,
    settings: Settings = Depends(get_step_settings),
    runner: StepRunner = Depends(get_step_runner),
) -> StepResponse:
    return await run_step("deep-analyze", commands.deep_analyze, request, settings, runner)
