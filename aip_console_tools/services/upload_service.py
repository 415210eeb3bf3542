"""Source archive upload service."""

import logging
from pathlib import Path
from typing import Optional, Union

import aiohttp

from . import endpoints
from ..exceptions import ApiCallException, UploadException
from .console_client import ConsoleClient

logger = logging.getLogger(__name__)

SUPPORTED_ARCHIVE_EXTENSIONS = (".zip", ".tgz", ".tar.gz")


def is_supported_archive(file_path: Union[str, Path]) -> bool:
    """Check whether a file name carries a supported archive extension."""
    return str(file_path).lower().endswith(SUPPORTED_ARCHIVE_EXTENSIONS)


def server_folder_source_path(folder: str) -> str:
    """Reference a folder of the server's source root."""
    return f"sources:{folder.strip('/')}"


class UploadService:
    """Uploads source archives to AIP Console."""

    def __init__(self, client: ConsoleClient):
        """Initialize the upload service.

        Args:
            client: Console REST client
        """
        self.client = client

    def _check_archive(self, file_path: Union[str, Path]) -> Path:
        path = Path(file_path)
        if not path.is_file():
            raise UploadException(f"File not found: {path}", file_path=str(path))
        if not is_supported_archive(path):
            raise UploadException(
                f"Unsupported archive type: {path.name}. Expected one of "
                + ", ".join(SUPPORTED_ARCHIVE_EXTENSIONS),
                file_path=str(path),
            )
        return path

    async def _post_archive(self, endpoint: str, path: Path):
        logger.info(f"Uploading {path.name} ({path.stat().st_size} bytes)")
        try:
            with path.open("rb") as archive:
                form = aiohttp.FormData()
                form.add_field(
                    "file",
                    archive,
                    filename=path.name,
                    content_type="application/octet-stream",
                )
                return await self.client.request("POST", endpoint, data=form)
        except ApiCallException as e:
            logger.error(f"Upload of {path.name} failed: {e}")
            raise UploadException(f"Unable to upload {path.name}: {e.message}", file_path=str(path))
        except OSError as e:
            raise UploadException(f"Unable to read {path}: {e}", file_path=str(path))

    async def upload_file_and_get_source_path(
        self, app_name: str, app_guid: str, file_path: Union[str, Path]
    ) -> str:
        """Upload an archive for an existing application.

        Returns:
            The server-side source path, ``upload:<app>/<file>``
        """
        path = self._check_archive(file_path)
        await self._post_archive(endpoints.application_upload(app_guid), path)
        source_path = f"upload:{app_name}/{path.name}"
        logger.info(f"Uploaded sources successfully, source path: {source_path}")
        return source_path

    async def upload_file_for_onboarding(
        self, file_path: Union[str, Path], app_guid: Optional[str] = None
    ) -> str:
        """Upload an archive for the fast-scan workflow.

        The application may not exist yet; the console then answers with the
        source path to use when onboarding it.
        """
        path = self._check_archive(file_path)
        endpoint = (
            endpoints.application_upload(app_guid) if app_guid else endpoints.onboarding_upload()
        )
        data = await self._post_archive(endpoint, path)
        if isinstance(data, dict) and data.get("sourcePath"):
            return data["sourcePath"]
        return f"upload:{path.name}"
