"""Architecture Studio command."""

import logging

from ..exceptions import ExitCode
from ..models.command_models import ArchitectureStudioOptions
from .base import ConsoleSession

logger = logging.getLogger(__name__)

MIN_API_VERSION = (2, 8, 0)


async def architecture_studio(session: ConsoleSession, options: ArchitectureStudioOptions) -> ExitCode:
    """Resolve an architecture model and an application, then log the model path."""
    if not options.model_name:
        logger.error("Model name should not be empty.")
        return ExitCode.APPLICATION_INFO_MISSING

    api_info = await session.client.get_api_info()
    if api_info.version_tuple < MIN_API_VERSION:
        logger.error(
            f"Architecture Studio needs AIP Console API 2.8.0 or later; "
            f"the console runs {api_info.api_version}"
        )
        return ExitCode.SERVER_VERSION_NOT_COMPATIBLE

    logger.info(f"Getting model: {options.model_name}")
    model = await session.architecture.get_architecture_model(options.model_name)
    if model is None:
        logger.error(f"Architecture model '{options.model_name}' could not be found.")
        return ExitCode.ARCHITECTURE_MODEL_NOT_FOUND

    application = await session.applications.get_application_from_name(options.app_name)
    if application is None:
        logger.error(f"Application '{options.app_name}' could not be found.")
        return ExitCode.APPLICATION_NOT_FOUND

    logger.info(f"Application '{application.name}' found, architecture model '{model.name}'")
    logger.info(model.path or "")
    return ExitCode.OK
