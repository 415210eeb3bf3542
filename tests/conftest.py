"""Test configuration and fixtures."""

import logging
import os
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

# Keep asyncio teardown noise out of the test output
logging.getLogger("asyncio").setLevel(logging.CRITICAL)

from aip_console_tools.commands.base import ConsoleSession
from aip_console_tools.config import Settings
from aip_console_tools.main import app
from aip_console_tools.models.application_models import (
    ApiInfo,
    Application,
    ApplicationCommonDetails,
    ApplicationOnboarding,
    ArchitectureModel,
    VersionStatus,
)
from aip_console_tools.services.polling import CancellationToken

from .test_utils import make_status, make_version


@pytest.fixture
def mock_settings() -> Settings:
    """Settings pointing at a fake console, with near-zero poll intervals."""
    return Settings(
        console_url="http://console.test:8081/",
        api_key="test-api-key",
        poll_interval_seconds=0.01,
        pending_result_interval_seconds=0.01,
        import_pending_interval_seconds=0.01,
        pending_result_max_attempts=3,
        http_timeout_seconds=5,
        verbose=False,
        app_env="test",
        log_level="DEBUG",
    )


@pytest.fixture
def app_client() -> TestClient:
    """Test client for the build-step service."""
    return TestClient(app)


@pytest.fixture
def mock_client():
    """Mock console client."""
    mock = AsyncMock()
    mock.get_api_info.return_value = ApiInfo(apiVersion="2.5.0", enablePackagePathCheck=False)
    mock.validate_url_and_key.return_value = None
    mock.__aenter__.return_value = mock
    mock.__aexit__.return_value = None
    return mock


@pytest.fixture
def sample_application() -> Application:
    return Application(
        guid="app-guid-1",
        name="MyApp",
        caipVersion="8.3.50",
        targetNode="node-1",
        managed=True,
    )


@pytest.fixture
def sample_versions():
    """Two versions: v1 delivered first, v2 analyzed later."""
    return [
        make_version("v1", VersionStatus.DELIVERED, datetime(2024, 1, 1, tzinfo=timezone.utc)),
        make_version("v2", VersionStatus.ANALYSIS_DONE, datetime(2024, 2, 1, tzinfo=timezone.utc)),
    ]


@pytest.fixture
def session(mock_settings, mock_client, sample_application):
    """Console session whose services are mocks, for command tests."""
    console_session = ConsoleSession(mock_settings, client=mock_client, token=CancellationToken())

    jobs = AsyncMock()
    jobs.start_job.return_value = "job-guid-1"
    jobs.poll_and_wait_for_job_finished.return_value = make_status("completed")
    jobs.get_css_guid.return_value = None

    applications = AsyncMock()
    applications.get_application_from_name.return_value = sample_application
    applications.get_application_guid_from_name.return_value = sample_application.guid
    applications.get_application_details.return_value = sample_application
    applications.get_application_details_from_name.return_value = ApplicationCommonDetails(
        guid=sample_application.guid, name=sample_application.name
    )
    applications.get_application_onboarding.return_value = ApplicationOnboarding(
        caipVersion="8.3.50", targetNode="node-1"
    )
    applications.is_onboarding_settings_enabled.return_value = True
    applications.is_imaging_available.return_value = True
    applications.create_delivery_configuration.return_value = "delivery-config-guid"
    applications.check_server_folders_exists.return_value = True
    # Synchronous helper on the real service
    applications.get_version_date = MagicMock(return_value=datetime(2024, 3, 1, tzinfo=timezone.utc))

    uploads = AsyncMock()
    uploads.upload_file_and_get_source_path.return_value = "upload:MyApp/sources.zip"
    uploads.upload_file_for_onboarding.return_value = "upload:sources.zip"

    console_session.jobs = jobs
    console_session.applications = applications
    console_session.uploads = uploads

    architecture = AsyncMock()
    architecture.get_architecture_model.return_value = ArchitectureModel(
        modelName="Layers", path="/models/layers.CASTArchitect"
    )
    console_session.architecture = architecture
    return console_session


@pytest.fixture
def clean_env(monkeypatch):
    """Remove console related variables so Settings() sees only defaults."""
    for name in list(os.environ):
        if name.upper() in {
            "CONSOLE_URL",
            "API_KEY",
            "AIP_CONSOLE_USER",
            "LOG_LEVEL",
            "APP_ENV",
            "HOST",
            "PORT",
            "POLL_INTERVAL_SECONDS",
            "VERBOSE",
        }:
            monkeypatch.delenv(name, raising=False)
    return monkeypatch
