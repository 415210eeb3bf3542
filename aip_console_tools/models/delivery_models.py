"""Delivery configuration data models."""

from typing import List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_serializer

DEFAULT_IGNORE_PATTERNS = [
    "tmp/",
    "temp/",
    "*test",
    "tests",
    "target/",
    ".svn/",
    ".git/",
    "_Macosx/",
]


class ExclusionRule(BaseModel):
    """A project exclusion rule applied during delivery."""

    rule: str
    enabled: bool = True


class Exclusions(BaseModel):
    """User provided exclusions for a delivery."""

    exclude_patterns: Optional[str] = None
    initial_exclusion_rules: List[str] = Field(default_factory=list)

    def ignore_patterns(self, defaults: Optional[List[str]] = None) -> List[str]:
        """Split the comma-separated patterns, falling back to the defaults."""
        if not self.exclude_patterns or not self.exclude_patterns.strip():
            return list(defaults or DEFAULT_IGNORE_PATTERNS)
        patterns = [p.strip() for p in self.exclude_patterns.split(",") if p.strip()]
        # Keep first occurrence order, drop duplicates
        return list(dict.fromkeys(patterns))

    def exclusion_rules(self) -> List[ExclusionRule]:
        return [ExclusionRule(rule=rule) for rule in self.initial_exclusion_rules]


class DeliveryPackage(BaseModel):
    """A source package discovered on the server."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    guid: Optional[str] = None
    name: str
    type: Optional[str] = None
    path: Optional[str] = None

    def __hash__(self) -> int:
        return hash((self.guid, self.name, self.path))


class DeliveryConfiguration(BaseModel):
    """Delivery configuration posted before an add-version job."""

    model_config = ConfigDict(populate_by_name=True)

    guid: Optional[str] = None
    ignore_patterns: List[str] = Field(default_factory=list, alias="ignorePatterns")
    exclusion_rules: List[ExclusionRule] = Field(default_factory=list, alias="exclusionRules")
    packages: List[DeliveryPackage] = Field(default_factory=list)

    @field_serializer("ignore_patterns")
    def _serialize_patterns(self, patterns: List[str]) -> List[str]:
        return sorted(set(patterns))

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude={"guid"})


class PendingResult(BaseModel):
    """Body of a 202 response, pointing at the result to poll."""

    model_config = ConfigDict(extra="allow")

    guid: str


class DiscoverPackageRequest(BaseModel):
    """Request body of the package discovery endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    source_path: str = Field(..., alias="sourcePath")
    previous_version_guid: Optional[str] = Field(None, alias="previousVersionGuid")

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


def invalid_packages(packages: List[DeliveryPackage]) -> Set[DeliveryPackage]:
    """Packages without a path cannot be delivered."""
    return {package for package in packages if package.path is None}
