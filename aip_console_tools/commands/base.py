"""Shared plumbing for console commands."""

import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional, TypeVar

from ..config import Settings
from ..exceptions import (
    ApiCallException,
    ApiKeyMissingException,
    ApplicationServiceException,
    AuthenticationException,
    ConfigurationException,
    ConsoleToolsException,
    ExitCode,
    JobAbortedException,
    JobServiceException,
    PackagePathInvalidException,
    UploadException,
)
from ..models.job_models import JobState, JobStatus, JobStep
from ..services.application_service import ApplicationService
from ..services.architecture_service import ArchitectureStudioService
from ..services.console_client import ConsoleClient
from ..services.jobs_service import JobsService
from ..services.polling import CancellationToken
from ..services.upload_service import UploadService

logger = logging.getLogger(__name__)

O = TypeVar("O")

Command = Callable[["ConsoleSession", O], Awaitable[ExitCode]]


def default_snapshot_name(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return "Snapshot-" + now.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3]


class ConsoleSession:
    """Services bound to one console connection for a single command run."""

    def __init__(
        self,
        settings: Settings,
        client: Optional[ConsoleClient] = None,
        token: Optional[CancellationToken] = None,
    ):
        self.settings = settings
        self.client = client or ConsoleClient(settings)
        self.token = token or CancellationToken()
        self.jobs = JobsService(self.client, settings)
        self.applications = ApplicationService(self.client, self.jobs, settings)
        self.uploads = UploadService(self.client)
        self.architecture = ArchitectureStudioService(self.client)

    async def __aenter__(self):
        await self.client.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.client.close()

    async def connect(self) -> Optional[ExitCode]:
        """Validate URL and credentials; returns an exit code on failure."""
        try:
            await self.client.validate_url_and_key()
        except ApiKeyMissingException as e:
            logger.error(e.message)
            return ExitCode.NO_PASSWORD
        except ConfigurationException as e:
            logger.error(e.message)
            return ExitCode.INVALID_PARAMETERS
        except ApiCallException as e:
            logger.error(f"Unable to log in to AIP Console: {e.message}")
            return ExitCode.LOGIN_ERROR
        return None

    async def wait_for(self, job_guid: str, verbose: Optional[bool] = None) -> JobStatus:
        """Poll a job until it ends, logging each step change with the app name."""

        def step_changed(old_step, new_step, status: JobStatus) -> None:
            if status.app_name and new_step:
                logger.debug(f"{status.app_name} - step changed to {JobStep.translate(new_step)}")

        return await self.jobs.poll_and_wait_for_job_finished(
            job_guid, on_step_change=step_changed, verbose=verbose, token=self.token
        )


def job_outcome(status: JobStatus, action: str) -> ExitCode:
    """Turn a terminal job status into an exit code."""
    if status.state == JobState.COMPLETED:
        logger.info(f"{action} completed successfully.")
        return ExitCode.OK
    logger.error(
        f"{action} did not complete. Status is '{status.state.value}' "
        f"on step '{status.failure_step or status.current_step}'"
    )
    return ExitCode.JOB_FAILED


def exit_code_for(error: Exception) -> ExitCode:
    """Map an exception escaping a command to its exit code."""
    if isinstance(error, JobAbortedException):
        return ExitCode.JOB_ABORTED
    if isinstance(error, PackagePathInvalidException):
        return ExitCode.PACKAGE_PATH_INVALID
    if isinstance(error, UploadException):
        return ExitCode.UPLOAD_ERROR
    if isinstance(error, ApplicationServiceException):
        return ExitCode.APPLICATION_INFO_MISSING
    if isinstance(error, JobServiceException):
        return ExitCode.JOB_POLL_ERROR
    if isinstance(error, AuthenticationException):
        return ExitCode.LOGIN_ERROR
    if isinstance(error, ApiKeyMissingException):
        return ExitCode.NO_PASSWORD
    if isinstance(error, ConfigurationException):
        return ExitCode.INVALID_PARAMETERS
    if isinstance(error, ApiCallException):
        return ExitCode.JOB_POLL_ERROR
    return ExitCode.UNKNOWN_ERROR


async def run_command(
    settings: Settings,
    command: Command,
    options: O,
    token: Optional[CancellationToken] = None,
    session: Optional[ConsoleSession] = None,
) -> ExitCode:
    """Open a session, log in and run ``command`` with ``options``.

    Args:
        settings: Settings carrying URL, credentials and polling intervals
        command: Async command function
        options: Options model for the command
        token: Cancellation token, set on SIGINT / SIGTERM
        session: Pre-built session (tests)

    Returns:
        The command exit code
    """
    session = session or ConsoleSession(settings, token=token)
    async with session:
        exit_code = await session.connect()
        if exit_code is not None:
            return exit_code
        try:
            return await command(session, options)
        except JobAbortedException as e:
            logger.warning(f"{e.message}; remote cancel {'sent' if e.cancelled else 'not confirmed'}")
            return ExitCode.JOB_ABORTED
        except ConsoleToolsException as e:
            logger.error(e.message)
            return exit_code_for(e)
