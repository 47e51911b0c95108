"""
Sync Validator - Safety checks before a connector configuration goes live.

A run moves through ``Start -> CheckExistence -> CheckRemoteHealth ->
CheckProposed -> CompareStructural -> Done``:

- Existence gates everything. Unknown city IDs fail before any query runs.
- Remote health and the proposed check are independent and run concurrently.
  Both wrap a query in ``COUNT(*)``. Zero rows is a failed result, not an
  exception: a sync with an empty result would delete the indexed data.
- The structural comparison is advisory and never fails a run.

Unsafe outcomes are returned as ``ValidationResult`` values; callers branch on
them. Only ``InputError`` (empty scope) and ``ConfigurationError`` (connector
missing) are raised.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable

from councilsearch.config.errors import ErrorCode, InputError
from councilsearch.domains.search.retry import RetryPolicy

from .connector import ConnectorConfigService
from .contracts import SyncStore
from .models import SyncValidationReport, ValidationResult, ValidationStage
from .template import SyncQueryTemplate

logger = logging.getLogger(__name__)

__all__ = ["SyncValidator", "classify_query_error", "normalize_scope"]

UNDEFINED_COLUMN_SQLSTATE = "42703"
UNDEFINED_TABLE_SQLSTATE = "42P01"


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def normalize_scope(scope_ids: Iterable[str]) -> list[str]:
    """Stripped, deduplicated, sorted scope IDs; raises InputError when none remain."""
    ids = sorted({s.strip() for s in scope_ids if s and s.strip()})
    if not ids:
        raise InputError(
            "At least one city must be selected for the proposed configuration",
            code=ErrorCode.SYNC_SCOPE_EMPTY,
        )
    return ids


def classify_query_error(error: BaseException) -> tuple[ErrorCode, str]:
    """Map a failed proposed query to an error code and an actionable message."""
    message = str(error)
    sqlstate = getattr(error, "sqlstate", None)
    lowered = message.lower()

    if sqlstate == UNDEFINED_COLUMN_SQLSTATE or (
        "column" in lowered and "does not exist" in lowered
    ):
        return (
            ErrorCode.SYNC_SCHEMA_COLUMN_MISSING,
            f"Database schema error: {message}. The proposed query may need to be "
            "updated for the current database schema.",
        )
    if sqlstate == UNDEFINED_TABLE_SQLSTATE or (
        "relation" in lowered and "does not exist" in lowered
    ):
        return (
            ErrorCode.SYNC_SCHEMA_TABLE_MISSING,
            f"Database table error: {message}. Please ensure all required tables exist.",
        )
    return ErrorCode.SYNC_QUERY_FAILED, f"Proposed configuration validation failed: {message}"


class SyncValidator:
    """
    Guards connector updates against emptying or desynchronizing the index.

    Example:
        >>> validator = SyncValidator(repo, SyncQueryTemplate(), connector, RetryPolicy())
        >>> report = await validator.validate(["athens", "chania"])
        >>> report.is_safe
        True
    """

    def __init__(
        self,
        store: SyncStore,
        template: SyncQueryTemplate,
        connector: ConnectorConfigService,
        retry: RetryPolicy,
        count_timeout: float | None = None,
        deadline: float | None = None,
    ) -> None:
        """
        Initialize validator.

        Args:
            store: Relational store the connector reads from
            template: Sync query template
            connector: Live connector service
            retry: Retry policy for count queries
            count_timeout: Per-query timeout in seconds for count queries
            deadline: Overall deadline in seconds for each count, retries included
        """
        self._store = store
        self._template = template
        self._connector = connector
        self._retry = retry
        self._count_timeout = count_timeout
        self._deadline = deadline

    async def check_existence(self, scope_ids: list[str]) -> ValidationResult:
        """Every proposed city must exist in the catalog."""
        ids = normalize_scope(scope_ids)
        start = time.perf_counter()
        try:
            existing = await self._store.find_existing_city_ids(ids, timeout=self._count_timeout)
        except Exception as e:
            logger.error("City existence check failed: error=%s", e)
            return ValidationResult(
                is_valid=False,
                execution_time_ms=_elapsed_ms(start),
                error_message=f"City validation failed: {e}",
                error_code=ErrorCode.SYNC_QUERY_FAILED,
            )

        missing = [city_id for city_id in ids if city_id not in existing]
        if missing:
            return ValidationResult(
                is_valid=False,
                execution_time_ms=_elapsed_ms(start),
                error_message=f"The following cities do not exist: {', '.join(missing)}",
                error_code=ErrorCode.SYNC_SCOPE_UNKNOWN,
                missing_scope_ids=missing,
            )
        return ValidationResult(
            is_valid=True,
            row_count=len(existing),
            execution_time_ms=_elapsed_ms(start),
        )

    async def check_remote(self, remote_query: str | None) -> ValidationResult:
        """The deployed query must still return rows."""
        if not remote_query or not remote_query.strip():
            return ValidationResult(
                is_valid=False,
                error_message=(
                    "No remote query found. The Elasticsearch connector may not be "
                    "properly configured."
                ),
                error_code=ErrorCode.SYNC_REMOTE_QUERY_MISSING,
            )

        start = time.perf_counter()
        try:
            row_count = await self._retry.execute(
                lambda: self._store.count(remote_query, timeout=self._count_timeout),
                context="Remote query count",
                timeout=self._deadline,
            )
        except Exception as e:
            logger.warning("Remote query validation failed: error=%s", e)
            return ValidationResult(
                is_valid=False,
                execution_time_ms=_elapsed_ms(start),
                error_message=f"Remote query validation failed: {e}",
                error_code=ErrorCode.SYNC_QUERY_FAILED,
            )

        if row_count == 0:
            return ValidationResult(
                is_valid=False,
                row_count=0,
                execution_time_ms=_elapsed_ms(start),
                error_message=(
                    "Remote query returned no results. The current Elasticsearch "
                    "configuration may be filtering out all data or pointing to "
                    "non-existent cities. The next sync could delete all indexed data."
                ),
                error_code=ErrorCode.SYNC_EMPTY_RESULT,
            )
        return ValidationResult(
            is_valid=True,
            row_count=row_count,
            execution_time_ms=_elapsed_ms(start),
        )

    async def check_proposed(self, scope_ids: list[str]) -> ValidationResult:
        """The candidate query for ``scope_ids`` must return rows."""
        built = self._template.build(normalize_scope(scope_ids))
        start = time.perf_counter()
        try:
            row_count = await self._retry.execute(
                lambda: self._store.count(
                    built.query, *built.params, timeout=self._count_timeout
                ),
                context="Proposed query count",
                timeout=self._deadline,
            )
        except Exception as e:
            code, message = classify_query_error(e)
            logger.warning("Proposed query validation failed: code=%s error=%s", code.value, e)
            return ValidationResult(
                is_valid=False,
                execution_time_ms=_elapsed_ms(start),
                error_message=message,
                error_code=code,
            )

        if row_count == 0:
            return ValidationResult(
                is_valid=False,
                row_count=0,
                execution_time_ms=_elapsed_ms(start),
                error_message=(
                    "Proposed configuration would return no results. This would delete "
                    "all existing data in Elasticsearch. Please check your city selection "
                    "and ensure the cities have released council meetings with subjects."
                ),
                error_code=ErrorCode.SYNC_EMPTY_RESULT,
            )
        return ValidationResult(
            is_valid=True,
            row_count=row_count,
            execution_time_ms=_elapsed_ms(start),
        )

    def compare(self, remote_query: str | None, scope_ids: list[str]) -> ValidationResult:
        """
        Diff the deployed query against the canonical query for ``scope_ids``.

        ``is_valid`` is False when the two differ. That is information for the
        operator, not a failure.
        """
        if not remote_query or not remote_query.strip():
            return ValidationResult(
                is_valid=False,
                error_message=(
                    "No remote query available for comparison. Cannot compare configurations."
                ),
                error_code=ErrorCode.SYNC_REMOTE_QUERY_MISSING,
            )

        start = time.perf_counter()
        comparison = self._template.validate_structure(remote_query, normalize_scope(scope_ids))
        if comparison.is_valid:
            return ValidationResult(
                is_valid=True,
                execution_time_ms=_elapsed_ms(start),
                query_mismatch=comparison,
            )

        lines = ["Configuration differences detected:"]
        if not comparison.structure_matches:
            lines.append("• Query structure differs from expected template")
        if not comparison.scope_ids_match:
            lines.append(
                f"• City configuration: Current [{', '.join(comparison.actual_scope_ids)}] "
                f"→ Proposed [{', '.join(comparison.expected_scope_ids)}]"
            )
        lines.append("")
        lines.append(
            "Applying the proposed configuration will update the remote system "
            "to match your selection."
        )
        return ValidationResult(
            is_valid=False,
            execution_time_ms=_elapsed_ms(start),
            error_message="\n".join(lines),
            query_mismatch=comparison,
        )

    async def check_deployed(self) -> tuple[str | None, ValidationResult]:
        """Fetch the live connector query and check its health."""
        config = await self._connector.get_config()
        remote_query = config.current_query
        return remote_query, await self.check_remote(remote_query)

    async def validate(
        self,
        scope_ids: list[str],
        require_remote_health: bool = False,
    ) -> SyncValidationReport:
        """
        Run every check for a proposed scope.

        Raises:
            InputError: Empty scope
            ConfigurationError: The connector does not exist
        """
        ids = normalize_scope(scope_ids)
        report = SyncValidationReport(scope_ids=ids, require_remote_health=require_remote_health)
        logger.info("Sync validation started: cities=%s", ids)

        report.stage = ValidationStage.CHECK_EXISTENCE
        report.existence = await self.check_existence(ids)
        if not report.existence.is_valid:
            logger.warning(
                "Sync validation stopped: stage=%s missing=%s",
                report.stage.value,
                report.existence.missing_scope_ids,
            )
            return report

        deployed = asyncio.ensure_future(self.check_deployed())
        proposed = asyncio.ensure_future(self.check_proposed(ids))
        try:
            (remote_query, report.remote), report.proposed = await asyncio.gather(
                deployed, proposed
            )
        except BaseException:
            # gather leaves the sibling running when one side fails
            for task in (deployed, proposed):
                task.cancel()
            await asyncio.gather(deployed, proposed, return_exceptions=True)
            raise

        if remote_query:
            report.comparison = self.compare(remote_query, ids)

        if require_remote_health and not report.remote.is_valid:
            report.stage = ValidationStage.CHECK_REMOTE_HEALTH
        elif not report.proposed.is_valid:
            report.stage = ValidationStage.CHECK_PROPOSED
        else:
            report.stage = ValidationStage.DONE

        logger.info(
            "Sync validation completed: cities=%s stage=%s safe=%s remote_rows=%s "
            "proposed_rows=%s",
            ids,
            report.stage.value,
            report.is_safe,
            report.remote.row_count,
            report.proposed.row_count,
        )
        return report

    async def validate_and_apply(
        self,
        scope_ids: list[str],
        require_remote_health: bool = False,
    ) -> SyncValidationReport:
        """Validate, and push the new query to the connector only when safe."""
        report = await self.validate(scope_ids, require_remote_health=require_remote_health)
        if not report.is_safe:
            logger.warning(
                "Connector update skipped: cities=%s stage=%s",
                report.scope_ids,
                report.stage.value,
            )
            return report

        await self._connector.update_filtering_query(report.scope_ids)
        report.applied = True
        return report
