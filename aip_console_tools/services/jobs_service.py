"""Job submission and polling service."""

import logging
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from . import endpoints
from ..config import Settings
from ..exceptions import ApiCallException, JobServiceException
from ..models.application_models import CssServer
from ..models.job_models import JobRequest, JobStatus, JobStep, JobType, LogContent
from .console_client import ConsoleClient
from .polling import CancellationToken, JobPoller

logger = logging.getLogger(__name__)

LOG_CHUNK_SIZE = 500


class JobsService:
    """Starts jobs on AIP Console and waits for them to finish."""

    def __init__(
        self,
        client: ConsoleClient,
        settings: Settings,
        poller: Optional[JobPoller] = None,
    ):
        """Initialize the jobs service.

        Args:
            client: Console REST client
            settings: Application settings
            poller: Poll loop; built from ``poll_interval_seconds`` when omitted
        """
        self.client = client
        self.settings = settings
        self.poller = poller or JobPoller(interval=settings.poll_interval_seconds)

    async def start_job(self, request: JobRequest) -> str:
        """Submit a job and return its GUID.

        Raises:
            JobServiceException: If the job could not be created
        """
        payload = request.to_payload()
        logger.debug(f"Starting {request.job_type.value} job: {payload}")

        try:
            data = await self.client.post(endpoints.JOBS, payload)
        except ApiCallException as e:
            logger.error(f"Failed to start {request.job_type.value} job: {e}")
            raise JobServiceException(f"Unable to start job: {e.message}")

        job_guid = None
        if isinstance(data, dict):
            job_guid = data.get("jobGuid") or data.get("guid")
        if not job_guid:
            raise JobServiceException(f"No job GUID in response: {data}")

        logger.info(f"Started {request.job_type.value} job with GUID {job_guid}")
        return job_guid

    async def start_create_application(
        self,
        app_name: str,
        node_name: Optional[str] = None,
        domain_name: Optional[str] = None,
        in_place_mode: bool = False,
        caip_version: Optional[str] = None,
        css_guid: Optional[str] = None,
    ) -> str:
        request = JobRequest(
            job_type=JobType.CREATE_APPLICATION,
            app_name=app_name,
            target_node=node_name,
            domain_name=domain_name,
            in_place_mode=in_place_mode,
            caip_version=caip_version,
            css_guid=css_guid,
        )
        return await self.start_job(request)

    async def start_fast_scan(
        self,
        app_guid: str,
        source_path: str,
        version_name: Optional[str] = None,
        delivery_config_guid: Optional[str] = None,
        caip_version: Optional[str] = None,
        target_node: Optional[str] = None,
    ) -> str:
        request = JobRequest(
            job_type=JobType.FAST_SCAN,
            app_guid=app_guid,
            source_path=source_path,
            version_name=version_name,
            delivery_config_guid=delivery_config_guid,
            caip_version=caip_version,
            target_node=target_node,
        ).set_release_and_snapshot_date()
        return await self.start_job(request)

    async def start_discover_application(
        self,
        app_guid: str,
        source_path: str,
        version_name: Optional[str] = None,
        caip_version: Optional[str] = None,
        target_node: Optional[str] = None,
    ) -> str:
        request = JobRequest(
            job_type=JobType.DISCOVER_APPLICATION,
            app_guid=app_guid,
            source_path=source_path,
            version_name=version_name,
            caip_version=caip_version,
            target_node=target_node,
        )
        return await self.start_job(request)

    async def start_deep_analysis(
        self,
        app_guid: str,
        snapshot_name: Optional[str] = None,
        module_generation_type: Optional[str] = None,
        caip_version: Optional[str] = None,
        target_node: Optional[str] = None,
        process_imaging: bool = False,
        publish_to_engineering: bool = False,
    ) -> str:
        request = JobRequest(
            job_type=JobType.DEEP_ANALYSIS,
            app_guid=app_guid,
            snapshot_name=snapshot_name,
            module_generation_type=module_generation_type,
            caip_version=caip_version,
            target_node=target_node,
            process_imaging=process_imaging,
            publish_to_engineering=publish_to_engineering,
            upload_application=publish_to_engineering,
        ).set_release_and_snapshot_date()
        return await self.start_job(request)

    async def start_onboard_application(
        self,
        app_name: str,
        domain_name: Optional[str] = None,
        source_path: Optional[str] = None,
        caip_version: Optional[str] = None,
        target_node: Optional[str] = None,
    ) -> str:
        request = JobRequest(
            job_type=JobType.ONBOARD_APPLICATION,
            app_name=app_name,
            domain_name=domain_name,
            source_path=source_path,
            caip_version=caip_version,
            target_node=target_node,
        )
        return await self.start_job(request)

    async def start_publish_to_imaging(
        self,
        app_guid: str,
        caip_version: Optional[str] = None,
        target_node: Optional[str] = None,
    ) -> str:
        request = JobRequest(
            job_type=JobType.PUBLISH_TO_IMAGING,
            app_guid=app_guid,
            caip_version=caip_version,
            target_node=target_node,
        )
        return await self.start_job(request)

    async def start_compute_function_points(self, app_guid: str) -> str:
        request = JobRequest(job_type=JobType.COMPUTE_FUNCTION_POINTS, app_guid=app_guid)
        return await self.start_job(request)

    async def get_job_status(self, job_guid: str) -> JobStatus:
        """Fetch the current status of a job."""
        data = await self.client.get(endpoints.job(job_guid))
        try:
            return JobStatus.model_validate(data)
        except ValidationError as e:
            logger.error(f"Failed to parse status of job {job_guid}: {e}")
            raise JobServiceException(f"Invalid job status format: {e}", job_guid=job_guid)

    async def cancel_job(self, job_guid: str) -> None:
        """Ask the console to cancel a running job."""
        logger.info(f"Cancelling job {job_guid}")
        await self.client.post(endpoints.job_cancel(job_guid))

    async def get_job_logs(self, job_guid: str, step: str, offset: int = 0) -> LogContent:
        """Fetch the log lines of a job step, starting at ``offset``."""
        data = await self.client.get(
            endpoints.job_step_logs(job_guid, step),
            params={"startOffset": offset, "maxNbLogLines": LOG_CHUNK_SIZE},
        )
        if not data:
            return LogContent()
        return LogContent.model_validate(data)

    async def get_css_guid(self, css_server_name: Optional[str] = None) -> Optional[str]:
        """Resolve a CSS server GUID by database name or ``host:port``.

        Without a name the console picks its default server, so None is returned.
        """
        if not css_server_name:
            return None
        try:
            data = await self.client.get(endpoints.CSS_SETTINGS) or []
            servers: List[CssServer] = [CssServer.model_validate(item) for item in data]
        except (ApiCallException, ValidationError) as e:
            raise JobServiceException(f"Unable to get css server list: {e}")

        wanted = css_server_name.lower()
        for server in servers:
            labels = {f"{server.host}:{server.port}".lower()}
            if server.database_name:
                labels.add(server.database_name.lower())
            if wanted in labels:
                return server.guid
        return None

    async def poll_and_wait_for_job_finished(
        self,
        job_guid: str,
        result_fn: Optional[Callable[[JobStatus], Any]] = None,
        on_step_change: Optional[Callable[[Optional[str], Optional[str], JobStatus], Any]] = None,
        verbose: Optional[bool] = None,
        token: Optional[CancellationToken] = None,
    ) -> Any:
        """Wait for a job to reach a terminal state.

        Args:
            job_guid: GUID of the job to wait for
            result_fn: Maps the terminal status to the returned value
            on_step_change: Extra callback run on every step change
            verbose: Stream job step logs while polling
            token: Cancellation token (SIGINT / SIGTERM)

        Returns:
            ``result_fn(status)``, or the terminal status itself

        Raises:
            JobAbortedException: If polling was interrupted
        """
        verbose = self.settings.verbose if verbose is None else verbose
        log_offsets: Dict[str, int] = {}

        def step_changed(old_step, new_step, status: JobStatus) -> None:
            if new_step:
                logger.info(f"Current step: {JobStep.translate(new_step)}")
            if on_step_change is not None:
                on_step_change(old_step, new_step, status)

        async def stream_logs(status: JobStatus) -> None:
            if verbose and status.current_step:
                await self._print_new_logs(job_guid, status.current_step, log_offsets)

        status = await self.poller.poll(
            lambda: self.get_job_status(job_guid),
            is_terminal=lambda s: s.is_terminal,
            step_of=lambda s: s.current_step,
            on_step_change=step_changed,
            on_poll=stream_logs,
            cancel=lambda: self.cancel_job(job_guid),
            token=token,
            job_guid=job_guid,
        )

        logger.info(f"Job {job_guid} finished with state {status.state.value}")
        return result_fn(status) if result_fn else status

    async def _print_new_logs(self, job_guid: str, step: str, offsets: Dict[str, int]) -> None:
        offset = offsets.get(step, 0)
        try:
            content = await self.get_job_logs(job_guid, step, offset)
        except (ApiCallException, ValidationError) as e:
            logger.warning(f"Unable to read logs of step {step}: {e}")
            return

        for line in content.lines:
            logger.info(line.content)
        if content.next_offset is not None:
            offsets[step] = content.next_offset
        else:
            offsets[step] = offset + len(content.lines)
