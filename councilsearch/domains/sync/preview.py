"""
Sync Preview - Sample the documents a proposed scope would index.
"""

from __future__ import annotations

import logging
import time

from councilsearch.config.errors import ErrorCode, InputError

from .contracts import SyncStore
from .models import SyncPreview
from .template import SyncQueryTemplate
from .validator import SyncValidator, normalize_scope

logger = logging.getLogger(__name__)

__all__ = ["SyncPreviewService", "MAX_PREVIEW_LIMIT"]

MAX_PREVIEW_LIMIT = 10

# Narrowing filters and the template columns they apply to
PREVIEW_CONDITIONS = {
    "city_id": 'm."cityId"',
    "meeting_id": "m.id",
    "subject_id": "s.id",
}


class SyncPreviewService:
    """Runs the canonical sync query with a small limit."""

    def __init__(
        self,
        store: SyncStore,
        template: SyncQueryTemplate,
        validator: SyncValidator,
        timeout: float | None = None,
    ) -> None:
        self._store = store
        self._template = template
        self._validator = validator
        self._timeout = timeout

    async def preview(
        self,
        scope_ids: list[str],
        limit: int = 5,
        city_id: str | None = None,
        meeting_id: str | None = None,
        subject_id: str | None = None,
    ) -> SyncPreview:
        """
        Sample documents for ``scope_ids``, optionally narrowed to one city,
        meeting or subject.

        Raises:
            InputError: Empty scope or unknown city IDs
        """
        ids = normalize_scope(scope_ids)
        existence = await self._validator.check_existence(ids)
        if not existence.is_valid:
            raise InputError(
                existence.error_message or "Unknown city IDs",
                details={"missing_scope_ids": existence.missing_scope_ids},
                code=existence.error_code or ErrorCode.SYNC_SCOPE_UNKNOWN,
            )

        filters = {"city_id": city_id, "meeting_id": meeting_id, "subject_id": subject_id}
        conditions = {
            PREVIEW_CONDITIONS[name]: value for name, value in filters.items() if value
        }
        built = self._template.with_extra_conditions(self._template.build(ids), conditions)
        sample_size = max(1, min(limit, MAX_PREVIEW_LIMIT))

        start = time.perf_counter()
        rows = await self._store.fetch(
            f"{built.query} LIMIT {sample_size}",
            *built.params,
            timeout=self._timeout,
        )
        execution_time_ms = int((time.perf_counter() - start) * 1000)
        total = await self._store.count(built.query, *built.params, timeout=self._timeout)

        logger.info(
            "Sync preview: cities=%s filters=%s sample=%d total=%d",
            ids,
            {k: v for k, v in filters.items() if v},
            len(rows),
            total,
        )
        return SyncPreview(
            query=self._template.materialize(built.query, built.params),
            scope_ids=ids,
            sample_documents=rows,
            total_documents=total,
            execution_time_ms=execution_time_ms,
            filters=filters,
        )
