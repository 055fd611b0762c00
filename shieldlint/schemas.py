"""Report schemas for serializing scan results."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from shieldlint.analyzers.results import Category, Severity, Status


class LocationSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    file_path: str
    line_number: int
    column_number: Optional[int] = None


class FindingSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    severity: Severity
    message: str
    location: LocationSchema
    recommendation: str
    code_snippet: Optional[str] = None
    metadata: dict[str, Any] = {}


class OutcomeSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: Status
    summary: str
    findings: list[FindingSchema] = []


class RuleMetadataSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str
    category: Category
    default_severity: Severity
    tags: list[str] = []
    docs_url: Optional[str] = None
    time_to_fix: Optional[int] = None

    @field_validator("tags", mode="before")
    @classmethod
    def sort_tags(cls, v):
        return sorted(v)


class RuleResultSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    metadata: RuleMetadataSchema
    outcome: OutcomeSchema
    duration: float


class ScanReportSchema(BaseModel):
    """Full scan as handed to report writers."""

    root: str
    failed: bool
    counts: dict[Status, int]
    results: list[RuleResultSchema]
