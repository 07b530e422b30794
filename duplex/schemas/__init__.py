"""Duplex schema definitions.

All Pydantic v2 models used across providers, the orchestrator,
consensus, progress tracking, and result history.
"""

from duplex.schemas.domains import (
    AudioPayload,
    CastingPayload,
    CharacterProfile,
    Domain,
    ImagePayload,
)
from duplex.schemas.history import HistoryQuery, HistoryRecord, HistorySummary
from duplex.schemas.orchestration import (
    EngineConfig,
    JitterKind,
    MetricsComparison,
    OrchestrationRequest,
    OrchestrationResult,
    RetryPolicy,
)
from duplex.schemas.progress import ProgressState, ProviderProgress, ProviderStatus
from duplex.schemas.provider import (
    HealthStatus,
    OutputItem,
    ProviderConfig,
    ProviderHealth,
    ProviderKind,
    ProviderOutput,
    ValidationResult,
)
from duplex.schemas.quality import (
    Agreement,
    CrossValidationReport,
    ProviderAssessment,
    QualityMetrics,
    Recommendation,
    SelectionResult,
)

__all__ = [
    "Agreement",
    "AudioPayload",
    "CastingPayload",
    "CharacterProfile",
    "CrossValidationReport",
    "Domain",
    "EngineConfig",
    "HealthStatus",
    "HistoryQuery",
    "HistoryRecord",
    "HistorySummary",
    "ImagePayload",
    "JitterKind",
    "MetricsComparison",
    "OrchestrationRequest",
    "OrchestrationResult",
    "OutputItem",
    "ProgressState",
    "ProviderAssessment",
    "ProviderConfig",
    "ProviderHealth",
    "ProviderKind",
    "ProviderOutput",
    "ProviderProgress",
    "ProviderStatus",
    "QualityMetrics",
    "Recommendation",
    "RetryPolicy",
    "SelectionResult",
    "ValidationResult",
]
