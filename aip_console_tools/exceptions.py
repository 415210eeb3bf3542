"""
Custom exception classes and exit codes for AIP Console Tools.
"""

from enum import IntEnum
from typing import Any, Dict, Iterable, Optional


class ExitCode(IntEnum):
    """Process exit codes returned by every command."""

    OK = 0
    NO_PASSWORD = 1
    LOGIN_ERROR = 2
    UPLOAD_ERROR = 3
    JOB_POLL_ERROR = 4
    JOB_FAILED = 5
    APPLICATION_INFO_MISSING = 6
    APPLICATION_NOT_FOUND = 7
    SOURCE_FOLDER_NOT_FOUND = 8
    APPLICATION_NO_VERSION = 9
    APPLICATION_VERSION_NOT_FOUND = 10
    RUN_ANALYSIS_DISABLED = 11
    ONBOARD_APPLICATION_DISABLED = 12
    ONBOARD_VERSION_STATUS_INVALID = 13
    ONBOARD_FAST_SCAN_REQUIRED = 14
    INVALID_PARAMETERS = 15
    PACKAGE_PATH_INVALID = 16
    JOB_ABORTED = 17
    ARCHITECTURE_MODEL_NOT_FOUND = 18
    SERVER_VERSION_NOT_COMPATIBLE = 19
    UNKNOWN_ERROR = 1000


class ConsoleToolsException(Exception):
    """Base exception for all AIP Console Tools errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class ConfigurationException(ConsoleToolsException):
    """Exception raised when configuration is invalid or incomplete."""

    pass


class ApiKeyMissingException(ConfigurationException):
    """Exception raised when no API key could be resolved."""

    def __init__(self, message: str = "No API key provided", **kwargs):
        super().__init__(message, **kwargs)


class ApiCallException(ConsoleToolsException):
    """Exception raised when an AIP Console API call fails."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_data: Optional[Any] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.response_data = response_data

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class AuthenticationException(ApiCallException):
    """Exception raised when the console rejects the credentials."""

    pass


class ApplicationServiceException(ConsoleToolsException):
    """Exception raised when an application lookup or update fails."""

    pass


class JobServiceException(ConsoleToolsException):
    """Exception raised when starting or polling a job fails."""

    def __init__(self, message: str, job_guid: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.job_guid = job_guid


class JobAbortedException(JobServiceException):
    """Exception raised when polling was interrupted locally."""

    def __init__(self, job_guid: Optional[str] = None, cancelled: bool = False, **kwargs):
        message = "Job polling was interrupted"
        if job_guid:
            message += f" (job {job_guid})"
        super().__init__(message, job_guid=job_guid, **kwargs)
        self.cancelled = cancelled


class PendingResultTimeoutException(ApiCallException):
    """Exception raised when a pending result never became available."""

    def __init__(self, pending_guid: str, attempts: int, **kwargs):
        message = f"Pending result {pending_guid} not available after {attempts} attempts"
        super().__init__(message, status_code=202, **kwargs)
        self.pending_guid = pending_guid
        self.attempts = attempts


class PackagePathInvalidException(ConsoleToolsException):
    """Exception raised when discovered packages have no resolvable path."""

    def __init__(self, packages: Iterable[Any], **kwargs):
        self.packages = list(packages)
        names = ", ".join(str(getattr(p, "name", p)) for p in self.packages)
        super().__init__(f"Invalid package path for: {names}", **kwargs)


class UploadException(ConsoleToolsException):
    """Exception raised when a source upload fails."""

    def __init__(self, message: str, file_path: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.file_path = file_path


# Aliases for common exception patterns
ConfigurationError = ConfigurationException
AuthenticationError = AuthenticationException
ApiCallError = ApiCallException
ApplicationServiceError = ApplicationServiceException
JobServiceError = JobServiceException
UploadError = UploadException
