"""Analyze and snapshot commands."""

import logging

from ..exceptions import ExitCode
from ..models.application_models import VersionStatus
from ..models.command_models import AnalyzeOptions, SnapshotOptions
from ..models.job_models import JobRequest, JobStep, JobType, format_release_date
from ..utils.selection import select_version
from .base import ConsoleSession, default_snapshot_name, job_outcome

logger = logging.getLogger(__name__)

# Consoles up to this API version end snapshots with a consolidation step
LAST_CONSOLIDATE_API_VERSION = (1, 15)


async def analyze(session: ConsoleSession, options: AnalyzeOptions) -> ExitCode:
    """Analyze a delivered version and optionally take a snapshot."""
    if not options.app_name:
        logger.error("No application name provided. Exiting.")
        return ExitCode.APPLICATION_INFO_MISSING

    applications = session.applications
    logger.info(f"Searching for application '{options.app_name}' on AIP Console")
    application = await applications.get_application_from_name(options.app_name)
    if application is None:
        logger.error(f"Application '{options.app_name}' was not found on AIP Console")
        return ExitCode.APPLICATION_NOT_FOUND

    versions = await applications.get_application_versions(application.guid)
    if not versions:
        logger.error("No version for the given application. Make sure at least one version has been delivered")
        return ExitCode.APPLICATION_NO_VERSION

    version = select_version(versions, options.version_name, VersionStatus.DELIVERED)
    if version is None:
        if options.version_name:
            logger.error(f"No version named '{options.version_name}' for application '{options.app_name}'")
        else:
            logger.error("No delivered version found. Make sure at least one version has been delivered")
        return ExitCode.APPLICATION_VERSION_NOT_FOUND

    start_step = JobStep.ACCEPTANCE if version.status == VersionStatus.DELIVERED else JobStep.ANALYZE
    request = JobRequest(
        job_type=JobType.ANALYZE,
        app_guid=application.guid,
        caip_version=application.caip_version,
        target_node=application.target_node,
        start_step=start_step,
    )

    if options.snapshot:
        forced_consolidation = options.process_imaging or options.consolidation
        snapshot_name = options.snapshot_name or default_snapshot_name()
        request.process_imaging = options.process_imaging
        request.end_step = JobStep.UPLOAD_APP_SNAPSHOT
        request.snapshot_name = snapshot_name
        request.upload_application = forced_consolidation
        if not forced_consolidation:
            request.end_step = JobStep.SNAPSHOT_INDICATOR
            logger.info(
                f"The snapshot {snapshot_name} for application {options.app_name} "
                "will be taken but will not be published."
            )
    else:
        request.end_step = JobStep.ANALYZE

    request.version_name = version.name
    request.version_guid = version.guid
    request.set_release_and_snapshot_date()

    if options.module_generation_type:
        await applications.update_module_generation_type(
            application.guid, request, options.module_generation_type, first_version=False
        )

    previous_debug_options = None
    if options.show_sql or options.amt_profiling:
        previous_debug_options = await applications.get_debug_options(application.guid)
        await applications.update_show_sql_debug_option(application.guid, options.show_sql)
        await applications.update_amt_profile_debug_option(application.guid, options.amt_profiling)

    logger.info(f"Running analysis of version '{version.name}' ({' -> '.join(request.steps)})")
    try:
        job_guid = await session.jobs.start_job(request)
        status = await session.wait_for(job_guid, options.verbose)
    finally:
        if previous_debug_options is not None:
            await applications.reset_debug_options(application.guid, previous_debug_options)
    return job_outcome(status, "Analysis")


async def snapshot(session: ConsoleSession, options: SnapshotOptions) -> ExitCode:
    """Take a snapshot of the latest (or named) analyzed version."""
    if not options.app_name:
        logger.error("No application name provided. Exiting.")
        return ExitCode.APPLICATION_INFO_MISSING

    api_info = await session.client.get_api_info()
    applications = session.applications

    logger.info(f"Searching for application '{options.app_name}' on AIP Console")
    application = await applications.get_application_from_name(options.app_name)
    if application is None:
        logger.error(f"Application '{options.app_name}' was not found on AIP Console")
        return ExitCode.APPLICATION_NOT_FOUND

    versions = await applications.get_application_versions(application.guid)
    if not versions:
        logger.error("No version for the given application. Cannot run Snapshot without an analyzed version")
        return ExitCode.APPLICATION_NO_VERSION
    if not any(v.status.is_at_least(VersionStatus.ANALYSIS_DONE) for v in versions):
        logger.error(f"No analysis done for application '{options.app_name}'. Cannot create snapshot.")
        return ExitCode.APPLICATION_NO_VERSION

    version = select_version(versions, options.version_name, VersionStatus.ANALYSIS_DONE)
    if version is None:
        if options.version_name:
            logger.error(f"No version found with name {options.version_name}")
        else:
            logger.error(
                "No analyzed version found to create a snapshot for. "
                "Make sure you have at least one version that has been analyzed"
            )
        return ExitCode.APPLICATION_VERSION_NOT_FOUND

    end_step = JobStep.UPLOAD_APP_SNAPSHOT
    if api_info.version_tuple[:2] <= LAST_CONSOLIDATE_API_VERSION:
        end_step = JobStep.CONSOLIDATE_SNAPSHOT

    request = JobRequest(
        job_type=JobType.ANALYZE,
        app_guid=application.guid,
        caip_version=application.caip_version,
        target_node=application.target_node,
        start_step=JobStep.SNAPSHOT,
        end_step=end_step,
        version_guid=version.guid,
        snapshot_name=options.snapshot_name or format_release_date(),
    ).set_release_and_snapshot_date()

    logger.info(f"Running Snapshot Job on application '{options.app_name}'")
    job_guid = await session.jobs.start_job(request)
    status = await session.wait_for(job_guid, options.verbose)
    return job_outcome(status, "Snapshot Creation")
