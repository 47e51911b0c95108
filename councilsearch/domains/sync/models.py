"""
Sync Models - Connector configuration and validation outcomes.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, computed_field

from councilsearch.config.errors import ErrorCode


class BuiltQuery(NamedTuple):
    """Sync query with positional markers and its ordered parameters."""

    query: str
    params: list[str]


class StructureComparison(BaseModel):
    """Remote query vs. the canonical query for a scope set."""

    structure_matches: bool
    scope_ids_match: bool
    actual_scope_ids: list[str]
    expected_scope_ids: list[str]
    remote_query: str = ""
    expected_query: str = ""

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_valid(self) -> bool:
        return self.structure_matches and self.scope_ids_match


# --- Connector configuration (remote source of truth) ---


class SnippetEntry(BaseModel):
    tables: list[str] = Field(default_factory=list)
    query: str = ""

    model_config = ConfigDict(extra="allow")


class AdvancedSnippet(BaseModel):
    value: list[SnippetEntry] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(extra="allow")


class FilteringState(BaseModel):
    advanced_snippet: AdvancedSnippet | None = None
    rules: list[dict[str, Any]] = Field(default_factory=list)
    validation: dict[str, Any] | None = None

    model_config = ConfigDict(extra="allow")


class FilteringRule(BaseModel):
    domain: str = "DEFAULT"
    draft: FilteringState | None = None
    active: FilteringState | None = None

    model_config = ConfigDict(extra="allow")


class ConnectorConfig(BaseModel):
    """Live connector document. Never cached between requests."""

    id: str
    name: str | None = None
    index_name: str | None = None
    filtering: list[FilteringRule] = Field(default_factory=list)
    status: str | None = None
    last_seen: datetime | None = None
    service_type: str | None = None
    last_sync_status: str | None = None
    last_indexed_document_count: int | None = None
    last_deleted_document_count: int | None = None

    model_config = ConfigDict(extra="allow")

    def _snippet(self) -> AdvancedSnippet | None:
        """Active snippet first, then the draft."""
        if not self.filtering:
            return None
        rule = self.filtering[0]
        for state in (rule.active, rule.draft):
            if state and state.advanced_snippet and state.advanced_snippet.value:
                if state.advanced_snippet.value[0].query:
                    return state.advanced_snippet
        return None

    @property
    def current_query(self) -> str | None:
        snippet = self._snippet()
        return snippet.value[0].query if snippet else None

    @property
    def query_updated_at(self) -> datetime | None:
        snippet = self._snippet()
        return snippet.updated_at if snippet else None


class ConnectorStatus(BaseModel):
    current_scope_ids: list[str]
    current_query: str | None = None
    query_updated_at: datetime | None = None
    is_valid: bool
    is_connected: bool
    last_seen: datetime | None = None
    status: str | None = None


class SyncJob(BaseModel):
    """Most recent connector sync run."""

    id: str | None = None
    status: str | None = None
    job_type: str | None = None
    trigger_method: str | None = None
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    indexed_document_count: int | None = None
    deleted_document_count: int | None = None
    error: str | None = None

    model_config = ConfigDict(extra="allow")


# --- Validation ---


class ValidationResult(BaseModel):
    """Outcome of one safety check. Built fresh per check, never persisted."""

    is_valid: bool
    row_count: int | None = None
    execution_time_ms: int | None = None
    error_message: str | None = None
    error_code: ErrorCode | None = None
    missing_scope_ids: list[str] = Field(default_factory=list)
    query_mismatch: StructureComparison | None = None


class ValidationStage(str, Enum):
    START = "start"
    CHECK_EXISTENCE = "check_existence"
    CHECK_REMOTE_HEALTH = "check_remote_health"
    CHECK_PROPOSED = "check_proposed"
    COMPARE_STRUCTURAL = "compare_structural"
    DONE = "done"


class SyncValidationReport(BaseModel):
    """All checks of one validation run."""

    scope_ids: list[str]
    stage: ValidationStage = ValidationStage.START
    existence: ValidationResult | None = None
    remote: ValidationResult | None = None
    proposed: ValidationResult | None = None
    comparison: ValidationResult | None = None
    require_remote_health: bool = False
    applied: bool = False

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_safe(self) -> bool:
        """Safe to push: scope exists, proposed returns rows, remote healthy if required."""
        if not (self.existence and self.existence.is_valid):
            return False
        if not (self.proposed and self.proposed.is_valid):
            return False
        if self.require_remote_health and not (self.remote and self.remote.is_valid):
            return False
        return True


# --- Preview and index status ---


class SyncPreview(BaseModel):
    query: str
    scope_ids: list[str]
    sample_documents: list[dict[str, Any]]
    total_documents: int
    execution_time_ms: int
    filters: dict[str, str | None] = Field(default_factory=dict)


class CityIndexStatus(BaseModel):
    city_id: str
    city_name: str
    is_listed: bool = True
    total_meetings_db: int = 0
    latest_meeting_id_db: str | None = None
    total_meetings_index: int = 0
    total_subjects_index: int = 0
    latest_meeting_id_index: str | None = None
    is_in_index: bool = False

    @computed_field  # type: ignore[prop-decorator]
    @property
    def in_sync(self) -> bool:
        return (
            self.total_meetings_db == self.total_meetings_index
            and self.latest_meeting_id_db == self.latest_meeting_id_index
        )


class IndexStatusReport(BaseModel):
    last_sync: datetime | None = None
    cities: list[CityIndexStatus]
