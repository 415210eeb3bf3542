"""Credential resolution, from settings or AWS Secrets Manager."""

import json
import logging
from typing import Optional

import boto3
from pydantic import BaseModel

from ..config import Settings
from ..exceptions import ApiKeyMissingException, AuthenticationError, ConfigurationError

logger = logging.getLogger(__name__)


class Credentials(BaseModel):
    """Credentials used to call AIP Console."""

    api_key: Optional[str] = None
    username: Optional[str] = None

    @property
    def uses_basic_auth(self) -> bool:
        return bool(self.username)


class AuthService:
    """Service for resolving AIP Console credentials."""

    def __init__(self, settings: Settings):
        """Initialize the authentication service.

        Args:
            settings: Application settings
        """
        self.settings = settings
        self._client = None
        self._cached_credentials: Optional[Credentials] = None

    @property
    def client(self):
        """Get or create the Secrets Manager client."""
        if self._client is None:
            try:
                session = boto3.Session(region_name=self.settings.aws_region)
                self._client = session.client("secretsmanager")
                logger.debug("Initialized AWS Secrets Manager client")
            except Exception as e:
                logger.error(f"Failed to initialize AWS client: {e}")
                raise ConfigurationError(f"AWS configuration error: {e}")

        return self._client

    async def get_credentials(self, force_refresh: bool = False) -> Credentials:
        """Resolve the API key (and optional user name).

        An API key given in the settings wins; otherwise the key is read from
        the secret named by ``api_key_secret_name``.

        Raises:
            ApiKeyMissingException: If no key is configured anywhere
            AuthenticationError: If the secret cannot be read
        """
        if self._cached_credentials and not force_refresh:
            return self._cached_credentials

        if self.settings.api_key:
            credentials = Credentials(
                api_key=self.settings.api_key, username=self.settings.username
            )
        elif self.settings.api_key_secret_name:
            credentials = self._load_secret(self.settings.api_key_secret_name)
        else:
            raise ApiKeyMissingException(
                "No API key provided. Set API_KEY or API_KEY_SECRET_NAME."
            )

        self._cached_credentials = credentials
        if credentials.username:
            logger.debug(f"Using credentials of user: {credentials.username}")
        return credentials

    def _load_secret(self, secret_name: str) -> Credentials:
        logger.info(f"Retrieving AIP Console credentials from secret: {secret_name}")
        try:
            response = self.client.get_secret_value(SecretId=secret_name)
            secret_data = json.loads(response["SecretString"])
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in secret {secret_name}: {e}")
            raise AuthenticationError(f"Invalid credential format: {e}")
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(f"Failed to retrieve credentials: {e}")
            raise AuthenticationError(f"Credential retrieval failed: {e}")

        api_key = secret_data.get("api_key") or secret_data.get("apiKey")
        if not api_key:
            raise ApiKeyMissingException(f"Secret {secret_name} has no 'api_key' entry")

        return Credentials(
            api_key=api_key,
            username=secret_data.get("username") or self.settings.username,
        )
