"""AIP Console REST API client."""

import asyncio
import json
import logging
import os
from typing import Any, Dict, Optional

import aiohttp
from pydantic import BaseModel, ValidationError

from . import endpoints
from ..config import Settings
from ..exceptions import (
    ApiCallException,
    AuthenticationException,
    ConfigurationException,
)
from ..models.application_models import ApiInfo
from .auth_service import AuthService, Credentials

logger = logging.getLogger(__name__)


class ApiResponse(BaseModel):
    """Raw status and decoded body of a console response."""

    status: int
    data: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class ConsoleClient:
    """Client for the AIP Console REST API."""

    def __init__(self, settings: Settings, auth_service: Optional[AuthService] = None):
        """Initialize the console client.

        Args:
            settings: Application settings
            auth_service: Authentication service instance
        """
        self.settings = settings
        self.auth_service = auth_service or AuthService(settings)
        self.timeout_seconds = settings.http_timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None
        self._credentials: Optional[Credentials] = None
        self._proxy_url: Optional[str] = None

    async def __aenter__(self):
        """Async context manager entry."""
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def _ensure_session(self) -> None:
        """Ensure aiohttp session is created."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

            https_proxy = os.getenv("HTTPS_PROXY") or os.getenv("https_proxy")
            if https_proxy:
                self._proxy_url = https_proxy
                logger.debug(f"Using proxy: {https_proxy}")

            self._session = aiohttp.ClientSession(
                timeout=timeout,
                headers={"User-Agent": "AIP-Console-Tools/0.1"},
            )
            logger.debug("Created new aiohttp session")

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
            logger.debug("Closed aiohttp session")

    async def set_timeout(self, seconds: int) -> None:
        """Change the HTTP timeout; recreates the session if one is open."""
        if seconds == self.timeout_seconds:
            return
        self.timeout_seconds = seconds
        await self.close()
        self._session = None

    async def _get_credentials(self) -> Credentials:
        if self._credentials is None:
            self._credentials = await self.auth_service.get_credentials()
        return self._credentials

    def _build_url(self, endpoint: str) -> str:
        """Build full URL for a console API endpoint.

        Args:
            endpoint: API endpoint path

        Returns:
            Full URL
        """
        base_url = self.settings.console_url.rstrip("/")
        return f"{base_url}/{endpoint.lstrip('/')}"

    async def exchange(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Any = None,
        data: Any = None,
    ) -> ApiResponse:
        """Send a request and return its status and body without judging it.

        Args:
            method: HTTP method
            endpoint: API endpoint
            params: Query parameters
            json_data: JSON body data
            data: Raw or multipart body

        Returns:
            Response status and decoded body

        Raises:
            ApiCallException: On network failure or timeout
        """
        await self._ensure_session()
        credentials = await self._get_credentials()

        url = self._build_url(endpoint)
        headers = {"Accept": "application/json"}
        request_kwargs: Dict[str, Any] = {
            "method": method,
            "url": url,
            "params": params,
            "headers": headers,
        }
        if json_data is not None:
            request_kwargs["json"] = json_data
        if data is not None:
            request_kwargs["data"] = data
        if self._proxy_url:
            request_kwargs["proxy"] = self._proxy_url

        if credentials.uses_basic_auth:
            request_kwargs["auth"] = aiohttp.BasicAuth(
                credentials.username, credentials.api_key or ""
            )
        else:
            headers["X-API-KEY"] = credentials.api_key or ""

        try:
            logger.debug(f"Making {method} request to {url} {params or ''}")
            async with self._session.request(**request_kwargs) as response:
                text = await response.text()
                return ApiResponse(status=response.status, data=_decode_body(text))

        except aiohttp.ClientError as e:
            logger.error(f"Network error for {method} {url}: {e}")
            raise ApiCallException(f"Network error: {e}")
        except asyncio.TimeoutError:
            logger.error(f"Timeout for {method} {url}")
            raise ApiCallException("Request timeout")

    async def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Any = None,
        data: Any = None,
    ) -> Any:
        """Make a request and map error statuses to exceptions.

        Returns:
            Decoded response body

        Raises:
            AuthenticationException: On 401 / 403
            ApiCallException: On any other 4xx / 5xx status
        """
        response = await self.exchange(method, endpoint, params, json_data, data)

        if response.status in (401, 403):
            raise AuthenticationException(
                "Authentication failed, check the API key",
                status_code=response.status,
                response_data=response.data,
            )
        if response.status == 404:
            raise ApiCallException(
                f"Resource not found: {endpoint}",
                status_code=404,
                response_data=response.data,
            )
        if response.status >= 400:
            raise ApiCallException(
                f"Request failed with status {response.status}: {response.data}",
                status_code=response.status,
                response_data=response.data,
            )

        logger.debug(f"Request successful for {method} {endpoint}")
        return response.data

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", endpoint, params=params)

    async def post(self, endpoint: str, json_data: Any = None, **kwargs) -> Any:
        return await self.request("POST", endpoint, json_data=json_data, **kwargs)

    async def put(self, endpoint: str, json_data: Any = None, **kwargs) -> Any:
        return await self.request("PUT", endpoint, json_data=json_data, **kwargs)

    async def validate_url_and_key(self) -> None:
        """Check the console URL and credentials before anything else runs.

        Raises:
            ConfigurationException: If no console URL is configured
            ApiKeyMissingException: If no API key can be resolved
            ApiCallException: If the console rejects the credentials
        """
        if not self.settings.console_url:
            raise ConfigurationException("No AIP Console URL provided")
        await self._get_credentials()
        await self.get(endpoints.USER)
        logger.debug(f"Connected to AIP Console at {self.settings.console_url}")

    async def get_api_info(self) -> ApiInfo:
        """Get the console API information."""
        data = await self.get(endpoints.API_INFO)
        try:
            return ApiInfo.model_validate(data or {})
        except ValidationError as e:
            logger.error(f"Failed to parse API info: {e}")
            raise ApiCallException(f"Invalid API info format: {e}")


def _decode_body(text: str) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text
