"""Application, version and server related data models."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class VersionStatus(str, Enum):
    """Version statuses, declared in workflow order."""

    OPENED = "opened"
    DELIVERING = "delivering"
    DELIVERED = "delivered"
    ACCEPTED = "accepted"
    ANALYSIS_DATA_PREPARED = "analysis_data_prepared"
    ANALYSIS_DONE = "analysis_done"
    ANALYZED = "analyzed"
    IMAGING_PROCESSED = "imaging_processed"
    SNAPSHOT_DONE = "snapshot_done"
    FULLY_ANALYZED = "fully_analyzed"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            normalized = value.strip().lower()
            for member in cls:
                if member.value == normalized:
                    return member
        return None

    @property
    def ordinal(self) -> int:
        return _VERSION_STATUS_ORDER.index(self)

    def is_at_least(self, other: "VersionStatus") -> bool:
        return self.ordinal >= other.ordinal


_VERSION_STATUS_ORDER = list(VersionStatus)

PUBLISHABLE_STATUSES = frozenset(
    {
        VersionStatus.ANALYSIS_DATA_PREPARED,
        VersionStatus.IMAGING_PROCESSED,
        VersionStatus.SNAPSHOT_DONE,
        VersionStatus.FULLY_ANALYZED,
        VersionStatus.ANALYZED,
    }
)


class Version(BaseModel):
    """An application version."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    guid: str
    name: str
    status: VersionStatus
    version_date: Optional[datetime] = Field(None, alias="versionDate")
    current_version: bool = Field(False, alias="currentVersion")


class Application(BaseModel):
    """An application as returned by the applications endpoints."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    guid: str
    name: str
    domain: Optional[str] = None
    caip_version: Optional[str] = Field(None, alias="caipVersion")
    target_node: Optional[str] = Field(None, alias="targetNode")
    in_place_mode: bool = Field(False, alias="inPlaceMode")
    onboarded: bool = False
    managed: bool = False
    imaging_tenant: Optional[str] = Field(None, alias="imagingTenant")
    version: Optional[Version] = None


class Applications(BaseModel):
    """Wrapper returned by the application list endpoint."""

    applications: List[Application] = Field(default_factory=list)


class ApplicationCommonDetails(BaseModel):
    """Lightweight application entry used for name lookups."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    guid: str
    name: str
    onboarded: bool = False


class ApplicationOnboarding(BaseModel):
    """On-boarding details of an application."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    guid: Optional[str] = None
    caip_version: Optional[str] = Field(None, alias="caipVersion")
    target_node: Optional[str] = Field(None, alias="targetNode")


class Domain(BaseModel):
    """A group of applications."""

    guid: str
    name: str


class ApiInfo(BaseModel):
    """Information about the console API."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    api_version: str = Field("0.0.0", alias="apiVersion")
    enable_package_path_check: bool = Field(False, alias="enablePackagePathCheck")

    @property
    def version_tuple(self) -> tuple:
        parts = []
        for chunk in self.api_version.split("-")[0].split(".")[:3]:
            try:
                parts.append(int(chunk))
            except ValueError:
                parts.append(0)
        while len(parts) < 3:
            parts.append(0)
        return tuple(parts)


class CssServer(BaseModel):
    """A CSS (storage) server registered on the console."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    guid: str
    database_name: Optional[str] = Field(None, alias="databaseName")
    host: Optional[str] = None
    port: Optional[int] = None


class ImportableApplication(BaseModel):
    """An application that can be imported from a CSS server."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    app_name: str = Field(..., alias="appName")
    mngt_schema_name: Optional[str] = Field(None, alias="mngtSchemaName")

    def __str__(self) -> str:
        return f"{{ appName: '{self.app_name}', mngtSchemaName: '{self.mngt_schema_name}' }}"


class ImportFailure(BaseModel):
    """Error reported for an application that was not imported."""

    code: Optional[str] = None
    default_message: Optional[str] = Field(None, alias="defaultMessage")

    model_config = ConfigDict(populate_by_name=True)


class ImportedApplication(BaseModel):
    """Outcome of importing one application."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    app_name: str = Field(..., alias="appName")
    imported: bool = False
    error: Optional[ImportFailure] = None


class FunctionPointRule(BaseModel):
    """A function point computation rule."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[str] = None
    name: Optional[str] = None
    type: str = ""

    def __str__(self) -> str:
        return f"{{ id: '{self.id}', name: '{self.name}' }}"


class RuleContent(BaseModel):
    """Content attached to a function point rule."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[str] = None
    name: Optional[str] = None
    type: Optional[str] = None

    def __str__(self) -> str:
        fields = self.model_dump(exclude_none=True)
        return "{ " + ", ".join(f"{key}: '{value}'" for key, value in fields.items()) + " }"


class ArchitectureModel(BaseModel):
    """An architecture model defined in Architecture Studio."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str = Field(..., alias="modelName")
    path: Optional[str] = None
