"""Job-related data models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

RELEASE_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S.%f"


class JobType(str, Enum):
    """Job types supported by AIP Console."""

    ANALYZE = "analyze"
    ADD_VERSION = "add_version"
    CLONE_VERSION = "clone_version"
    CREATE_APPLICATION = "create_application"
    FAST_SCAN = "fast_scan"
    DEEP_ANALYSIS = "deep_analysis"
    ONBOARD_APPLICATION = "onboard_application"
    DISCOVER_APPLICATION = "discover_application"
    PUBLISH_TO_IMAGING = "publish_to_imaging"
    COMPUTE_FUNCTION_POINTS = "compute_function_points"


class JobState(str, Enum):
    """Job execution states reported by AIP Console."""

    QUEUED = "queued"
    STARTING = "starting"
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized == "cancelled":
                normalized = "canceled"
            elif normalized == "running":
                normalized = "started"
            for member in cls:
                if member.value == normalized:
                    return member
        return None

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({JobState.COMPLETED, JobState.FAILED, JobState.CANCELED})


class JobStep:
    """Workflow step names used as start and end steps of a job."""

    UNZIP_SOURCE = "unzip_source"
    CODE_SCANNER = "code_scanner"
    DELIVER_VERSION = "deliver_version"
    SET_CURRENT = "set_as_current"
    ACCEPTANCE = "accept"
    ANALYZE = "analyze"
    SNAPSHOT = "snapshot"
    SNAPSHOT_INDICATOR = "snapshot_indicator"
    CONSOLIDATE_SNAPSHOT = "consolidate_snapshot"
    UPLOAD_APP_SNAPSHOT = "upload_application"
    PROCESS_IMAGING = "process_imaging"

    TRANSLATIONS = {
        UNZIP_SOURCE: "Extracting source code",
        CODE_SCANNER: "Scanning source code",
        DELIVER_VERSION: "Delivering version",
        SET_CURRENT: "Setting version as current",
        ACCEPTANCE: "Accepting version",
        ANALYZE: "Analyzing application",
        SNAPSHOT: "Taking snapshot",
        SNAPSHOT_INDICATOR: "Computing snapshot indicators",
        CONSOLIDATE_SNAPSHOT: "Consolidating snapshot",
        UPLOAD_APP_SNAPSHOT: "Publishing snapshot to the dashboards",
        PROCESS_IMAGING: "Processing imaging data",
    }

    @classmethod
    def translate(cls, step: Optional[str]) -> str:
        """Return a human readable label for a step name."""
        if not step:
            return "No step"
        return cls.TRANSLATIONS.get(step, step.replace("_", " ").capitalize())


class JobStatus(BaseModel):
    """Snapshot of a remote job, as returned by the job status endpoint."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    guid: str = Field(..., alias="guid")
    job_type: Optional[str] = Field(None, alias="jobType")
    state: JobState
    current_step: Optional[str] = Field(None, alias="currentStep")
    failure_step: Optional[str] = Field(None, alias="failureStep")
    app_guid: Optional[str] = Field(None, alias="appGuid")
    app_name: Optional[str] = Field(None, alias="appName")
    job_parameters: Dict[str, Any] = Field(default_factory=dict, alias="jobParameters")
    created_date: Optional[datetime] = Field(None, alias="createdDate")

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def created_app_guid(self) -> Optional[str]:
        """Application GUID reported by a create-application job."""
        return self.job_parameters.get("appGuid") or self.app_guid


class LogLine(BaseModel):
    """A single job log line."""

    content: str = ""
    line_number: Optional[int] = Field(None, alias="lineNumber")

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class LogContent(BaseModel):
    """A chunk of job step log lines."""

    lines: List[LogLine] = Field(default_factory=list)
    next_offset: Optional[int] = Field(None, alias="nextOffset")

    model_config = ConfigDict(extra="allow", populate_by_name=True)


def format_release_date(value: Optional[datetime] = None) -> str:
    """Format a date the way the job parameters expect it (UTC, millis, 'Z')."""
    value = value or datetime.now(timezone.utc)
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(RELEASE_DATE_FORMAT)[:-3] + "Z"


class JobRequest(BaseModel):
    """Request body used to start a job on AIP Console.

    Only fields that were set are sent as job parameters, so one model can
    describe every job type.
    """

    model_config = ConfigDict(populate_by_name=True)

    job_type: JobType
    app_guid: Optional[str] = Field(None, alias="appGuid")
    app_name: Optional[str] = Field(None, alias="appName")
    caip_version: Optional[str] = Field(None, alias="caipVersion")
    target_node: Optional[str] = Field(None, alias="targetNode")
    domain_name: Optional[str] = Field(None, alias="domainName")
    css_guid: Optional[str] = Field(None, alias="cssGuid")
    in_place_mode: Optional[bool] = Field(None, alias="inPlaceMode")

    # Workflow steps
    start_step: Optional[str] = Field(None, alias="startStep")
    end_step: Optional[str] = Field(None, alias="endStep")

    # Version and snapshot
    version_name: Optional[str] = Field(None, alias="versionName")
    version_guid: Optional[str] = Field(None, alias="versionGuid")
    release_date: Optional[str] = Field(None, alias="releaseDateStr")
    snapshot_name: Optional[str] = Field(None, alias="snapshotName")
    snapshot_date: Optional[str] = Field(None, alias="snapshotCaptureDate")

    # Sources
    source_path: Optional[str] = Field(None, alias="sourcePath")
    delivery_config_guid: Optional[str] = Field(None, alias="deliveryConfigGuid")
    auto_discover: Optional[bool] = Field(None, alias="autoDiscover")

    # Options
    objectives: List[str] = Field(default_factory=list)
    backup_application: Optional[bool] = Field(None, alias="backupApplication")
    backup_name: Optional[str] = Field(None, alias="backupName")
    process_imaging: Optional[bool] = Field(None, alias="processImaging")
    upload_application: Optional[bool] = Field(None, alias="uploadApplication")
    publish_to_engineering: Optional[bool] = Field(None, alias="publishToEngineering")
    module_generation_type: Optional[str] = Field(None, alias="moduleGenerationType")

    @property
    def steps(self) -> List[str]:
        """Ordered workflow steps requested for this job."""
        return [step for step in (self.start_step, self.end_step) if step]

    def set_release_and_snapshot_date(self, value: Optional[datetime] = None) -> "JobRequest":
        formatted = format_release_date(value)
        self.release_date = formatted
        self.snapshot_date = formatted
        return self

    def set_objective(self, objective: str, enabled: bool) -> "JobRequest":
        if enabled and objective not in self.objectives:
            self.objectives.append(objective)
        elif not enabled and objective in self.objectives:
            self.objectives.remove(objective)
        return self

    def to_payload(self) -> Dict[str, Any]:
        """Build the JSON body for the job creation endpoint."""
        parameters = self.model_dump(
            by_alias=True, exclude_none=True, exclude={"job_type", "objectives"}
        )
        if self.objectives:
            parameters["objectives"] = ",".join(self.objectives)
        return {"jobType": self.job_type.value, "jobParameters": parameters}


class VersionObjective(str, Enum):
    """Objectives that can be enabled on a delivered version."""

    GLOBAL_RISK = "GLOBAL_RISK"
    FUNCTIONAL_POINTS = "FUNCTIONAL_POINTS"
    SECURITY = "SECURITY"
    BLUEPRINT = "BLUEPRINT"
    DATA_SAFETY = "DATA_SAFETY"


class ModuleGenerationType(str, Enum):
    """How modules are generated for an analyzed version."""

    FULL_CONTENT = "full_content"
    ONE_PER_AU = "one_per_analysis_unit"
    ONE_PER_TECHNO = "one_per_techno"
    PRESERVE_CONFIGURED = "preserve_configured"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            normalized = value.strip().lower().replace("-", "_")
            for member in cls:
                if member.value == normalized or member.name.lower() == normalized:
                    return member
        return None
