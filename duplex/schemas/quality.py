"""Quality and cross-validation schemas.

QualityMetrics is the per-output score produced by a QualityScorer.
CrossValidationReport captures how two successful outputs compare and
what the cross-validator recommends doing with them.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class QualityMetrics(BaseModel):
    """Derived quality subscores for one provider output."""

    model_config = ConfigDict(frozen=True)

    relevance: float = Field(ge=0.0, le=1.0, description="Mean item confidence")
    diversity: float = Field(ge=0.0, le=1.0, description="Diversity / variety signal")
    reasoning: float = Field(ge=0.0, le=1.0, description="Reasoning or coherence quality")
    completeness: float = Field(ge=0.0, le=1.0, description="Supporting detail coverage")
    overall: float = Field(ge=0.0, le=1.0, description="Unweighted mean of the four subscores")
    issues: list[str] = Field(default_factory=list, description="Advisory quality issues")


class Recommendation(StrEnum):
    """What the cross-validator suggests doing with two outputs."""

    USE_A = "use_a"
    USE_B = "use_b"
    MERGE = "merge"
    MANUAL_REVIEW = "manual_review"


class ProviderAssessment(BaseModel):
    """One side of a cross-validation report."""

    model_config = ConfigDict(frozen=True)

    provider_id: str
    quality_score: float = Field(ge=0.0, le=1.0, description="QualityMetrics.overall")
    secondary_score: float = Field(
        ge=0.0, le=1.0, description="Domain secondary score (diversity-like)"
    )


class Agreement(BaseModel):
    """How much the two outputs agree."""

    model_config = ConfigDict(frozen=True)

    overlap_count: int = Field(ge=0, description="Items both providers produced")
    similarity: float = Field(ge=0.0, le=1.0, description="Jaccard similarity of item names")
    alignment: float = Field(ge=0.0, le=1.0, description="Auxiliary metric alignment")


class CrossValidationReport(BaseModel):
    """Immutable comparison of two successful provider outputs."""

    model_config = ConfigDict(frozen=True)

    request_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    provider_a: ProviderAssessment
    provider_b: ProviderAssessment
    agreement: Agreement
    recommendation: Recommendation
    confidence: float = Field(ge=0.0, le=1.0)
    issues: list[str] = Field(default_factory=list)


class SelectionResult(BaseModel):
    """The Selector's final choice of provider."""

    model_config = ConfigDict(frozen=True)

    provider_id: str = Field(description="The selected provider")
    reason: str = Field(description="Human-readable justification")
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    quality_scores: dict[str, QualityMetrics] = Field(default_factory=dict)
