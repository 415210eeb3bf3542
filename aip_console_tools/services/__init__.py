"""Service modules for the AIP Console REST API."""

from .application_service import ApplicationService
from .auth_service import AuthService, Credentials
from .console_client import ApiResponse, ConsoleClient
from .jobs_service import JobsService
from .polling import CancellationToken, JobPoller, PendingResultPoller
from .upload_service import UploadService

__all__ = [
    "ApiResponse",
    "ApplicationService",
    "AuthService",
    "CancellationToken",
    "ConsoleClient",
    "Credentials",
    "JobPoller",
    "JobsService",
    "PendingResultPoller",
    "UploadService",
]
