"""Import applications from CSS servers."""

import logging
from typing import Dict, List

from ..exceptions import ExitCode
from ..models.application_models import ImportableApplication
from ..models.command_models import ImportApplicationsOptions
from .base import ConsoleSession

logger = logging.getLogger(__name__)

SEPARATOR = "=" * 80


async def list_importable_applications(session: ConsoleSession, options=None) -> ExitCode:
    """Log, per CSS server, the applications that can be imported."""
    applications = session.applications
    for server in await applications.get_css_servers():
        importable = await applications.get_importable_applications(server.guid)
        logger.info(f"CSS GUID: {server.guid}")
        logger.info(f"CSS Name: {server.database_name}")
        logger.info("Importable applications: [")
        for app in importable:
            logger.info(f"    {app}")
        logger.info("]")
    return ExitCode.OK


async def import_applications(session: ConsoleSession, options: ImportApplicationsOptions) -> ExitCode:
    """Import the named applications, or all of them, from every CSS server."""
    wanted = list(dict.fromkeys(name for name in options.app_names if name))
    if not wanted and not options.import_all:
        logger.error("At least one application name or the import all flag should be specified.")
        return ExitCode.INVALID_PARAMETERS

    applications = session.applications
    per_server: Dict[str, List[ImportableApplication]] = {}
    found = 0
    for server in await applications.get_css_servers():
        importable = await applications.get_importable_applications(server.guid)
        if not options.import_all:
            importable = [app for app in importable if app.app_name in wanted]
            found += len(importable)
        per_server[server.guid] = importable

    if not options.import_all and found != len(wanted):
        logger.error("Invalid application names provided.")
        return ExitCode.INVALID_PARAMETERS

    failures = 0
    for server_guid, apps in per_server.items():
        if not apps:
            continue
        results = await applications.import_applications(server_guid, apps)
        logger.info(SEPARATOR)
        logger.info(f"From css server guid: {server_guid}")
        for result in results:
            if result.imported:
                logger.info(f'Application "{result.app_name}" was successfully imported.')
                continue
            failures += 1
            logger.error(f'Application "{result.app_name}" was not imported.')
            if result.error is not None:
                logger.error(f"Error code: {result.error.code}")
                logger.error(f"Error message: {result.error.default_message}")
        logger.info(SEPARATOR)

    return ExitCode.JOB_FAILED if failures else ExitCode.OK
