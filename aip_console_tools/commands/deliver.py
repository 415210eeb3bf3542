"""Deliver (add-version / clone-version) and create-application commands."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..exceptions import ApplicationServiceException, ExitCode
from ..models.command_models import CreateApplicationOptions, DeliverOptions
from ..models.delivery_models import Exclusions
from ..models.job_models import JobRequest, JobStep, JobType, VersionObjective
from ..services import endpoints
from ..services.upload_service import server_folder_source_path
from ..utils.selection import find_by_name
from .base import ConsoleSession, job_outcome

logger = logging.getLogger(__name__)


def default_version_name(now: Optional[datetime] = None) -> str:
    return (now or datetime.now()).strftime("v%y%m%d.%H%M%S")


async def create_application(session: ConsoleSession, options: CreateApplicationOptions) -> ExitCode:
    """Create an application unless one with the same name exists."""
    if not options.app_name:
        logger.error("No application name provided. Exiting.")
        return ExitCode.APPLICATION_INFO_MISSING

    applications = session.applications
    existing = await applications.get_application_guid_from_name(options.app_name)
    if existing:
        logger.info(f"Application '{options.app_name}' already exists: GUID={existing}")
        return ExitCode.OK

    if options.domain_name and await applications.get_domain_from_name(options.domain_name) is None:
        logger.info(f"Domain '{options.domain_name}' does not exist and will be created")

    css_guid = await session.jobs.get_css_guid(options.css_server_name)
    if options.css_server_name and not css_guid:
        logger.error(f"No CSS server named '{options.css_server_name}'")
        return ExitCode.INVALID_PARAMETERS

    logger.info(f"Creating application '{options.app_name}'")
    job_guid = await session.jobs.start_create_application(
        options.app_name,
        node_name=options.node_name,
        domain_name=options.domain_name,
        in_place_mode=options.in_place_mode,
        css_guid=css_guid,
    )
    status = await session.wait_for(job_guid, options.verbose)
    exit_code = job_outcome(status, "Application creation")
    if exit_code == ExitCode.OK:
        logger.info(f"Application '{options.app_name}' created: GUID={status.created_app_guid}")
    return exit_code


async def deliver(session: ConsoleSession, options: DeliverOptions) -> ExitCode:
    """Deliver a new version of an application from an archive or a server folder."""
    if not options.app_name or not options.file_path:
        logger.error("Application name and file path are required. Exiting.")
        return ExitCode.APPLICATION_INFO_MISSING

    applications = session.applications
    release_date = applications.get_version_date(options.version_date)

    logger.info(f"Searching for application '{options.app_name}' on AIP Console")
    app_guid = await applications.get_application_guid_from_name(options.app_name)
    if app_guid is None:
        if not options.auto_create:
            logger.error(
                f"Application '{options.app_name}' was not found and 'auto create' is disabled"
            )
            return ExitCode.APPLICATION_NOT_FOUND
        app_guid = await applications.get_or_create_application_from_name(
            options.app_name,
            auto_create=True,
            node_name=options.node_name,
            domain_name=options.domain_name,
            css_server_name=options.css_server_name,
            verbose=options.verbose,
            token=session.token,
        )
        if not app_guid:
            logger.error(f"Application '{options.app_name}' could not be created")
            return ExitCode.JOB_FAILED
        # Nothing to clone from a brand new application
        has_version = False
    else:
        has_version = options.clone_version and await applications.application_has_version(app_guid)

    local_file = Path(options.file_path)
    if local_file.is_file():
        source_path = await session.uploads.upload_file_and_get_source_path(
            options.app_name, app_guid, local_file
        )
    else:
        if not await applications.check_server_folders_exists(options.file_path):
            logger.error(f"Unable to find the folder {options.file_path} in the source folder location")
            return ExitCode.SOURCE_FOLDER_NOT_FOUND
        source_path = server_folder_source_path(options.file_path)

    version_name = options.version_name or default_version_name()
    application = await applications.get_application_details(app_guid)

    request = JobRequest(
        job_type=JobType.CLONE_VERSION if has_version else JobType.ADD_VERSION,
        app_guid=app_guid,
        source_path=source_path,
        caip_version=application.caip_version,
        target_node=application.target_node,
        end_step=JobStep.DELIVER_VERSION,
        version_name=version_name,
        backup_application=options.backup,
        backup_name=options.backup_name if options.backup else None,
        auto_discover=options.auto_discover,
    ).set_release_and_snapshot_date(release_date)
    if options.in_place_mode or options.set_as_current:
        request.end_step = JobStep.SET_CURRENT
    request.set_objective(VersionObjective.DATA_SAFETY.value, options.data_safety)
    request.set_objective(VersionObjective.SECURITY.value, options.security_dataflow)
    request.set_objective(VersionObjective.BLUEPRINT.value, options.blueprint)

    exclusions = Exclusions(
        exclude_patterns=options.exclusion_patterns,
        initial_exclusion_rules=options.exclusion_rules,
    )
    request.delivery_config_guid = await applications.create_delivery_configuration(
        app_guid, source_path, exclusions, rescan=has_version
    )

    logger.info(f"Updating security dataflow settings to {options.security_dataflow}")
    for technology_path in (endpoints.JEE_TECHNOLOGY_PATH, endpoints.DOTNET_TECHNOLOGY_PATH):
        await applications.update_security_dataflow(app_guid, options.security_dataflow, technology_path)

    if options.module_generation_type:
        await applications.update_module_generation_type(
            app_guid, request, options.module_generation_type, first_version=not has_version
        )

    action = "clone" if has_version else "add"
    logger.info(f"Starting {action} version job for '{options.app_name}', version '{version_name}'")
    job_guid = await session.jobs.start_job(request)
    status = await session.wait_for(job_guid, options.verbose)
    exit_code = job_outcome(status, "Delivery")

    if exit_code == ExitCode.OK and options.report_dir:
        try:
            await download_delivery_report(session, app_guid, version_name, Path(options.report_dir))
        except ApplicationServiceException as e:
            logger.warning(f"Delivery succeeded but the report is unavailable: {e.message}")
    return exit_code


async def download_delivery_report(
    session: ConsoleSession, app_guid: str, version_name: str, report_dir: Path
) -> Optional[Path]:
    """Save the delivery report of a version into ``report_dir``."""
    logger.info("Downloading delivery report...")
    versions = await session.applications.get_application_versions(app_guid)
    version = find_by_name(versions, version_name)
    if version is None:
        raise ApplicationServiceException(f"Version '{version_name}' not found")

    content = await session.applications.download_delivery_report(app_guid, version.guid)
    report_file = report_dir / f"{version_name}-report-{datetime.now():%Y%m%d%H%M}.xml"
    try:
        report_dir.mkdir(parents=True, exist_ok=True)
        report_file.write_text(content, encoding="utf-8")
    except OSError as e:
        logger.error(f"Failed to save the delivery report: {e}")
        return None
    logger.info(f"Version delivery report saved in {report_file}")
    return report_file
