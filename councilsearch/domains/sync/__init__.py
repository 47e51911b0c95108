"""
Sync Domain - Keeps the search index connector pointed at the right cities.

This domain handles:
- The canonical sync query and its scope-ID round trip
- Reading and updating the live connector configuration
- Safety checks before a new configuration goes live
- Previews and per-city index status
"""

from .connector import ConnectorConfigService
from .contracts import ConnectorClient, SyncStore
from .models import (
    BuiltQuery,
    CityIndexStatus,
    ConnectorConfig,
    ConnectorStatus,
    IndexStatusReport,
    StructureComparison,
    SyncJob,
    SyncPreview,
    SyncValidationReport,
    ValidationResult,
    ValidationStage,
)
from .preview import SyncPreviewService
from .status import IndexStatusService
from .template import SYNC_QUERY_TEMPLATE, SyncQueryTemplate
from .validator import SyncValidator, classify_query_error

__all__ = [
    # Contracts
    "SyncStore",
    "ConnectorClient",
    # Models
    "BuiltQuery",
    "StructureComparison",
    "ConnectorConfig",
    "ConnectorStatus",
    "SyncJob",
    "ValidationResult",
    "ValidationStage",
    "SyncValidationReport",
    "SyncPreview",
    "CityIndexStatus",
    "IndexStatusReport",
    # Implementations
    "SYNC_QUERY_TEMPLATE",
    "SyncQueryTemplate",
    "ConnectorConfigService",
    "SyncValidator",
    "classify_query_error",
    "SyncPreviewService",
    "IndexStatusService",
]
