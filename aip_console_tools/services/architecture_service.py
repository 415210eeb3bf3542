"""Architecture Studio lookups."""

import logging
from typing import List, Optional

from pydantic import ValidationError

from . import endpoints
from ..exceptions import ApiCallException, ApplicationServiceException
from ..models.application_models import ArchitectureModel
from ..utils.selection import find_by_name
from .console_client import ConsoleClient

logger = logging.getLogger(__name__)


class ArchitectureStudioService:
    """Reads the architecture models defined on the console."""

    def __init__(self, client: ConsoleClient):
        self.client = client

    async def get_architecture_models(self) -> List[ArchitectureModel]:
        try:
            data = await self.client.get(endpoints.ARCHITECTURE_MODELS) or []
            return [ArchitectureModel.model_validate(item) for item in data]
        except (ApiCallException, ValidationError) as e:
            raise ApplicationServiceException(f"Unable to get architecture models: {e}")

    async def get_architecture_model(self, name: str) -> Optional[ArchitectureModel]:
        models = await self.get_architecture_models()
        logger.debug(f"{len(models)} architecture models available")
        return find_by_name(models, name)
