"""Options accepted by the console commands.

The same models back the CLI flags and the build-step request bodies.
"""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .job_models import ModuleGenerationType


class CommandOptions(BaseModel):
    """Options shared by every command."""

    app_name: str = Field(..., description="Application name on AIP Console")
    verbose: Optional[bool] = Field(None, description="Stream job logs while polling")

    @field_validator("app_name")
    @classmethod
    def strip_app_name(cls, v: str) -> str:
        return v.strip()


class AnalyzeOptions(CommandOptions):
    """Analyze an existing version, optionally taking a snapshot."""

    version_name: Optional[str] = None
    snapshot: bool = False
    snapshot_name: Optional[str] = None
    process_imaging: bool = False
    consolidation: bool = True
    module_generation_type: Optional[ModuleGenerationType] = None
    show_sql: bool = False
    amt_profiling: bool = False


class DeliverOptions(CommandOptions):
    """Add (or clone) a version from an archive or a server folder."""

    file_path: str = Field(..., description="Local archive or folder under the server source root")
    version_name: Optional[str] = None
    version_date: Optional[str] = Field(None, description="Release date, YYYY-MM-DDTHH:MM:SS")
    auto_create: bool = False
    clone_version: bool = False
    node_name: Optional[str] = None
    domain_name: Optional[str] = None
    css_server_name: Optional[str] = None
    in_place_mode: bool = False
    exclusion_patterns: Optional[str] = None
    exclusion_rules: List[str] = Field(default_factory=list)
    blueprint: bool = False
    security_dataflow: bool = False
    data_safety: bool = False
    backup: bool = False
    backup_name: Optional[str] = None
    auto_discover: bool = True
    set_as_current: bool = False
    module_generation_type: Optional[ModuleGenerationType] = None
    report_dir: Optional[str] = Field(None, description="Where to save the delivery report")


class SnapshotOptions(CommandOptions):
    """Take a snapshot of an analyzed version."""

    version_name: Optional[str] = None
    snapshot_name: Optional[str] = None


class CreateApplicationOptions(CommandOptions):
    """Create an application."""

    node_name: Optional[str] = None
    domain_name: Optional[str] = None
    css_server_name: Optional[str] = None
    in_place_mode: bool = False


class FastScanOptions(CommandOptions):
    """Onboard or refresh an application with a fast scan."""

    file_path: str
    domain_name: Optional[str] = None
    exclusion_patterns: Optional[str] = None
    exclusion_rules: List[str] = Field(default_factory=list)


class DeepAnalyzeOptions(CommandOptions):
    """Run a deep analysis on an onboarded application."""

    snapshot_name: Optional[str] = None
    module_generation_type: Optional[ModuleGenerationType] = None
    process_imaging: bool = True
    publish_to_engineering: bool = False


class PublishToImagingOptions(CommandOptions):
    """Publish application data to Imaging."""


class OnboardOptions(DeepAnalyzeOptions):
    """First scan (or rescan) of the sources followed by a deep analysis."""

    file_path: str
    domain_name: Optional[str] = None


class ComputeFunctionPointsOptions(CommandOptions):
    """Compute function points of a managed application."""

    wait: bool = True


class ListFunctionPointRulesOptions(CommandOptions):
    """List the function point rules of an application."""

    rule_type: Optional[str] = None


class UpdateSettingsOptions(CommandOptions):
    """Update the function point computation settings."""

    new_settings: str = ""


class ImportApplicationsOptions(BaseModel):
    """Import applications from the registered CSS servers."""

    app_names: List[str] = Field(default_factory=list)
    import_all: bool = False
    verbose: Optional[bool] = None


class CheckRuleContentOptions(CommandOptions):
    """Show the content of a function point rule, by id or by type."""

    rule_id: Optional[str] = None
    rule_type: Optional[str] = None

    @model_validator(mode="after")
    def require_rule(self) -> "CheckRuleContentOptions":
        if not self.rule_id and not self.rule_type:
            raise ValueError("A rule id or a rule type is required")
        return self


class ArchitectureStudioOptions(CommandOptions):
    """Look up an Architecture Studio model for an application."""

    model_name: str = Field(..., description="Architecture model name")

    @field_validator("model_name")
    @classmethod
    def strip_model_name(cls, v: str) -> str:
        return v.strip()
