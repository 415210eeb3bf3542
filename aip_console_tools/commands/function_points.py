"""Function point commands: compute, list rules, show rule content and update settings."""

import logging
import re
from typing import Dict, List, Optional, Tuple

from ..exceptions import ExitCode, JobAbortedException, JobServiceException
from ..models.application_models import Application
from ..models.command_models import (
    CheckRuleContentOptions,
    ComputeFunctionPointsOptions,
    ListFunctionPointRulesOptions,
    UpdateSettingsOptions,
)
from .base import ConsoleSession, job_outcome

logger = logging.getLogger(__name__)

SETTINGS_PATTERN = re.compile(
    r"^([a-zA-Z_][a-zA-Z0-9_]*=[a-zA-Z0-9 ]+)(,[a-zA-Z_][a-zA-Z0-9_]*=[a-zA-Z0-9 ]+)*$"
)

VALID_SETTING_VALUES: Dict[str, List[str]] = {
    "FILTER_LOOKUP_TABLES": ["true", "false"],
    "DEFAULT_DATA_FUNCTION_TYPE": ["ILF", "EIF"],
    "DEFAULT_TRANSACTION_FUNCTION_TYPE": ["EI", "EO", "EQ"],
}

SETTINGS_USAGE = (
    'Use the format Eg. update-settings --new-settings '
    '"FILTER_LOOKUP_TABLES=true,DEFAULT_DATA_FUNCTION_TYPE=EIF"'
)


def parse_settings(value: str) -> Tuple[Optional[Dict[str, str]], Optional[str]]:
    """Parse ``KEY=value,...`` into a mapping.

    Returns:
        (settings, None) when valid, or (None, error message)
    """
    if not value or not SETTINGS_PATTERN.match(value):
        return None, "Invalid value given for --new-settings option."

    parsed: Dict[str, str] = {}
    for pair in value.split(","):
        key, val = pair.split("=", 1)
        if key not in VALID_SETTING_VALUES:
            return None, (
                f"Invalid setting key provided, no setting available with name {key}. "
                f"Valid keys are: [ {', '.join(VALID_SETTING_VALUES)} ]"
            )
        if val not in VALID_SETTING_VALUES[key]:
            return None, (
                f"Invalid setting value provided for key {key}. "
                f"Valid values are: [ {', '.join(VALID_SETTING_VALUES[key])} ]"
            )
        parsed[key] = val
    return parsed, None


async def _managed_application(session: ConsoleSession, app_name: str) -> Tuple[Optional[Application], ExitCode]:
    logger.info(f"Searching for application '{app_name}' on CAST Imaging Console.")
    details = await session.applications.get_application_details_from_name(app_name)
    if details is None:
        logger.error("Application not found.")
        return None, ExitCode.APPLICATION_NOT_FOUND

    application = await session.applications.get_application_details(details.guid)
    if not application.managed:
        logger.error(
            "Action not available for this application. The application may not have "
            "been analyzed yet, or its analysis is in progress."
        )
        return None, ExitCode.APPLICATION_INFO_MISSING
    return application, ExitCode.OK


async def compute_function_points(
    session: ConsoleSession, options: ComputeFunctionPointsOptions
) -> ExitCode:
    """Start a function point computation and optionally wait for it."""
    application, exit_code = await _managed_application(session, options.app_name)
    if application is None:
        return exit_code

    try:
        logger.info(f"Starting Compute function points job for application GUID = '{application.guid}'.")
        job_guid = await session.jobs.start_compute_function_points(application.guid)
        logger.info(f"Compute function points job is ongoing: GUID= '{job_guid}'.")

        if not options.wait:
            logger.info("Exiting as wait flag is set to false.")
            return ExitCode.OK

        status = await session.wait_for(job_guid, options.verbose)
    except JobAbortedException:
        raise
    except JobServiceException as e:
        logger.error(f"Compute function points failed: {e.message}")
        return ExitCode.JOB_FAILED
    return job_outcome(status, "Compute function points")


async def list_function_point_rules(
    session: ConsoleSession, options: ListFunctionPointRulesOptions
) -> ExitCode:
    """Log the function point rules of an application, grouped by type."""
    application, exit_code = await _managed_application(session, options.app_name)
    if application is None:
        return exit_code

    grouped = await session.applications.list_function_point_rules(application.guid)
    rule_type = options.rule_type.lower() if options.rule_type else None
    if rule_type and rule_type not in grouped:
        logger.error(f"Invalid rule type: {options.rule_type}")
        return ExitCode.INVALID_PARAMETERS

    for type_name, rules in grouped.items():
        if rule_type and type_name != rule_type:
            continue
        logger.info(f"Type: {type_name}")
        logger.info(",\n".join(str(rule) for rule in rules))
    return ExitCode.OK


async def check_rule_content(session: ConsoleSession, options: CheckRuleContentOptions) -> ExitCode:
    """Log the content of the function point rules matching an id or a type."""
    application, exit_code = await _managed_application(session, options.app_name)
    if application is None:
        return exit_code

    factor, value = ("id", options.rule_id) if options.rule_id else ("type", options.rule_type)
    logger.info(f"Finding content for rule with {factor} '{value}'.")
    contents = await session.applications.check_rule_content(
        application.guid, rule_id=options.rule_id, rule_type=options.rule_type
    )
    if not contents:
        logger.info(f"No content available for rule with {factor} '{value}'.")
        return ExitCode.OK

    logger.info(f"Printing the content for rule with {factor} '{value}'.")
    logger.info(",\n".join(str(content) for content in contents))
    return ExitCode.OK


async def update_settings(session: ConsoleSession, options: UpdateSettingsOptions) -> ExitCode:
    """Update function point computation settings of an application."""
    values, error = parse_settings(options.new_settings)
    if values is None:
        logger.error(error)
        logger.info(SETTINGS_USAGE)
        return ExitCode.INVALID_PARAMETERS

    application, exit_code = await _managed_application(session, options.app_name)
    if application is None:
        return exit_code

    await session.applications.update_function_point_settings(application.guid, values)
    logger.info("Updated settings successfully.")
    return ExitCode.OK
