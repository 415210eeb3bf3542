"""Onboarding workflow commands: fast scan, deep analysis, publish and onboard."""

import logging
from typing import Optional, Tuple

from ..exceptions import ExitCode
from ..models.application_models import PUBLISHABLE_STATUSES
from ..models.command_models import (
    DeepAnalyzeOptions,
    FastScanOptions,
    OnboardOptions,
    PublishToImagingOptions,
)
from ..models.delivery_models import Exclusions
from ..models.job_models import JobState, ModuleGenerationType
from .base import ConsoleSession, default_snapshot_name, job_outcome

logger = logging.getLogger(__name__)

# Module generation types the deep analysis job expects to receive
_JOB_MODULE_TYPES = frozenset({ModuleGenerationType.ONE_PER_AU, ModuleGenerationType.ONE_PER_TECHNO})


async def fast_scan(session: ConsoleSession, options: FastScanOptions) -> ExitCode:
    """Upload sources and run a fast scan, onboarding the application if needed."""
    if not options.app_name or not options.file_path:
        logger.error("Application name and file path are required. Exiting.")
        return ExitCode.APPLICATION_INFO_MISSING

    applications = session.applications
    if not await applications.is_onboarding_settings_enabled():
        logger.error("The 'Onboard Application' mode is OFF on CAST Imaging Console: set it ON before proceeding")
        return ExitCode.ONBOARD_APPLICATION_DISABLED

    logger.info(f"Searching for application '{options.app_name}' on CAST Imaging Console")
    details = await applications.get_application_details_from_name(options.app_name)
    if details is None:
        logger.info("Application not found, starting new upload")
    source_path = await session.uploads.upload_file_for_onboarding(
        options.file_path, details.guid if details else None
    )
    logger.info(f"Uploaded sources successfully, source path: {source_path}")

    if details is None:
        job_guid = await session.jobs.start_onboard_application(
            options.app_name, domain_name=options.domain_name
        )
        status = await session.wait_for(job_guid, options.verbose)
        if status.state != JobState.COMPLETED or not status.created_app_guid:
            return job_outcome(status, "Onboard Application")
        app_guid = status.created_app_guid
        logger.info(f"Onboard Application job finished, application GUID: {app_guid}")
    else:
        app_guid = details.guid

    onboarding = await applications.get_application_onboarding(app_guid)

    logger.info("Preparing the Application Delivery Configuration")
    exclusions = Exclusions(
        exclude_patterns=options.exclusion_patterns,
        initial_exclusion_rules=options.exclusion_rules,
    )
    delivery_config_guid = await applications.create_delivery_configuration(
        app_guid, source_path, exclusions, rescan=True, fail_on_invalid_path=True
    )
    logger.info(f"Application Delivery Configuration done: GUID={delivery_config_guid}")

    job_guid = await session.jobs.start_fast_scan(
        app_guid,
        source_path,
        version_name="",
        delivery_config_guid=delivery_config_guid,
        caip_version=onboarding.caip_version,
        target_node=onboarding.target_node,
    )
    status = await session.wait_for(job_guid, options.verbose)
    return job_outcome(status, "Fast-Scan")


async def _start_deep_analysis(
    session: ConsoleSession,
    app_guid: str,
    options: DeepAnalyzeOptions,
    caip_version: Optional[str],
    target_node: Optional[str],
) -> ExitCode:
    snapshot_name = options.snapshot_name
    if options.publish_to_engineering and not snapshot_name:
        snapshot_name = default_snapshot_name()
        logger.info(f"A default snapshot name has been given: {snapshot_name}")

    module_type = options.module_generation_type
    logger.info(f"About to trigger deep-analysis for application: {options.app_name}")
    job_guid = await session.jobs.start_deep_analysis(
        app_guid,
        snapshot_name=snapshot_name,
        module_generation_type=module_type.value if module_type in _JOB_MODULE_TYPES else None,
        caip_version=caip_version,
        target_node=target_node,
        process_imaging=options.process_imaging,
        publish_to_engineering=options.publish_to_engineering,
    )
    status = await session.wait_for(job_guid, options.verbose)
    return job_outcome(status, "Deep-Analyze")


async def deep_analyze(session: ConsoleSession, options: DeepAnalyzeOptions) -> ExitCode:
    """Run the deep analysis of an application that went through a fast scan."""
    if not options.app_name:
        logger.error("No application name provided. Exiting.")
        return ExitCode.APPLICATION_INFO_MISSING

    applications = session.applications
    logger.info(f"Searching for application '{options.app_name}' on CAST Imaging Console")
    details = await applications.get_application_details_from_name(options.app_name)
    if details is None:
        logger.error("Unable to trigger Deep-Analysis. Fast-Scan has to be run first.")
        return ExitCode.ONBOARD_FAST_SCAN_REQUIRED

    onboarding = await applications.get_application_onboarding(details.guid)
    return await _start_deep_analysis(
        session, details.guid, options, onboarding.caip_version, onboarding.target_node
    )


async def publish_to_imaging(session: ConsoleSession, options: PublishToImagingOptions) -> ExitCode:
    """Publish the data of an analyzed application to Imaging."""
    applications = session.applications
    logger.info(f"Searching for application '{options.app_name}' on CAST Imaging Console")
    application = await applications.get_application_from_name(options.app_name)
    if application is None:
        logger.error(f"No action to perform: application '{options.app_name}' does not exist.")
        return ExitCode.APPLICATION_NOT_FOUND

    if not await applications.is_onboarding_settings_enabled():
        logger.error("The 'Onboard Application' mode is OFF on CAST Imaging Console: set it ON before proceeding")
        return ExitCode.ONBOARD_APPLICATION_DISABLED

    if not await applications.application_has_version(application.guid):
        logger.error("No version for the given application. Make sure at least one version has been delivered")
        return ExitCode.APPLICATION_NO_VERSION

    application = await applications.get_application_details(application.guid)
    version = application.version
    if version is None or version.status not in PUBLISHABLE_STATUSES:
        actual = version.status.value if version else "none"
        logger.error(
            "Application version not in a status that allows publishing to CAST Imaging: "
            f"actual status is {actual}"
        )
        return ExitCode.ONBOARD_VERSION_STATUS_INVALID

    if application.onboarded:
        logger.info("Triggering Publish to Imaging for an application using Fast-Scan workflow.")
        job_guid = await session.jobs.start_deep_analysis(
            application.guid,
            caip_version=application.caip_version or None,
            target_node=application.target_node or None,
            process_imaging=True,
        )
    else:
        job_guid = await session.jobs.start_publish_to_imaging(application.guid)

    status = await session.wait_for(job_guid, options.verbose)
    return job_outcome(status, "Publish to CAST Imaging")


async def _first_scan(
    session: ConsoleSession, options: OnboardOptions, existing_guid: Optional[str]
) -> Tuple[Optional[str], ExitCode]:
    """Upload sources, onboard the application if new, then discover its content.

    Returns:
        (application GUID, OK), or (None, exit code) when a job did not complete
    """
    applications = session.applications
    action = "refresh sources content" if existing_guid else "onboard sources"
    logger.info(f"Prepare to {action} for application {options.app_name}")
    source_path = await session.uploads.upload_file_for_onboarding(options.file_path, existing_guid)
    logger.info(f"Prepare to onboard application {options.app_name} with sources: {source_path}")

    app_guid = existing_guid
    if app_guid is None:
        job_guid = await session.jobs.start_onboard_application(
            options.app_name, domain_name=options.domain_name, source_path=source_path
        )
        status = await session.wait_for(job_guid, options.verbose)
        if status.state != JobState.COMPLETED:
            return None, job_outcome(status, "Onboard Application")
        if not status.created_app_guid:
            logger.error("Onboard Application job completed without an application GUID")
            return None, ExitCode.JOB_FAILED
        app_guid = status.created_app_guid
        logger.info(f"Onboard Application job finished: application GUID= {app_guid}")

    # Node and CAIP version are only known once the application exists
    application = await applications.get_application_from_name(options.app_name)
    job_guid = await session.jobs.start_discover_application(
        app_guid,
        source_path,
        version_name="",
        caip_version=application.caip_version if application else None,
        target_node=application.target_node if application else None,
    )
    status = await session.wait_for(job_guid, options.verbose)
    if status.state != JobState.COMPLETED:
        return None, job_outcome(status, "Discover Application")

    logger.info(f"Application {options.app_name} onboarded/refreshed successfully: GUID= {app_guid}")
    return app_guid, ExitCode.OK


async def onboard(session: ConsoleSession, options: OnboardOptions) -> ExitCode:
    """Onboard an application and run its deep analysis.

    An application that is new, or was never published to Imaging, goes
    through a first scan (upload, onboarding, discovery). An application that
    already has an Imaging version is rescanned with its current settings.
    The onboarding mode is forced on for the duration of the command.
    """
    if not options.app_name or not options.file_path:
        logger.error("Application name and file path are required. Exiting.")
        return ExitCode.APPLICATION_INFO_MISSING

    applications = session.applications
    was_enabled = await applications.is_onboarding_settings_enabled()
    if not was_enabled:
        logger.info("Setting the 'On-boarding mode ON' on CAST Imaging Console")
        await applications.set_enable_onboarding(True)

    try:
        logger.info(f"Searching for application '{options.app_name}' on CAST Imaging Console")
        application = await applications.get_application_from_name(options.app_name)
        existing_guid = None
        first_scan = True
        if application is not None:
            existing_guid = application.guid
            application = await applications.get_application_details(existing_guid)
            first_scan = application.version is None or not application.imaging_tenant
        workflow = "First-scan/Refresh" if first_scan else "Rescan"
        logger.info(f"About to trigger on-boarding workflow for: '{workflow}' application")

        if first_scan:
            app_guid, exit_code = await _first_scan(session, options, existing_guid)
            if app_guid is None:
                return exit_code
            onboarding = await applications.get_application_onboarding(app_guid)
            caip_version, target_node = onboarding.caip_version, onboarding.target_node
        else:
            app_guid = existing_guid
            caip_version, target_node = application.caip_version, application.target_node

        if not await applications.is_imaging_available():
            logger.error(
                "The 'Run-Analysis' action is disabled because Imaging settings are missing "
                "from CAST Imaging Console."
            )
            return ExitCode.RUN_ANALYSIS_DISABLED

        return await _start_deep_analysis(session, app_guid, options, caip_version, target_node)
    finally:
        if not was_enabled:
            logger.info("Setting the 'On-boarding mode OFF' on CAST Imaging Console")
            await applications.set_enable_onboarding(False)
