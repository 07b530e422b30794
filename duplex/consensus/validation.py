"""Cross-validation of two successful provider outputs.

Compares item overlap (Jaccard similarity over canonical item names) and
auxiliary metric alignment, then recommends what to do with the pair.
The decision rule is evaluated in order:

1. quality A − quality B > 0.15 → use_a (confidence 0.8)
2. quality B − quality A > 0.15 → use_b (confidence 0.8)
3. similarity > 0.5            → merge (confidence 0.9)
4. otherwise                   → manual_review (confidence 0.5)

Metric alignment below 0.6 adds an issue but never changes the
recommendation.
"""

from __future__ import annotations

import logging
from statistics import fmean

from duplex.schemas.provider import ProviderOutput
from duplex.schemas.quality import (
    Agreement,
    CrossValidationReport,
    ProviderAssessment,
    QualityMetrics,
    Recommendation,
)

logger = logging.getLogger(__name__)

QUALITY_MARGIN = 0.15
MERGE_SIMILARITY = 0.5
ALIGNMENT_FLOOR = 0.6

LOW_AGREEMENT_ISSUE = "Low agreement between providers"
METRIC_DIVERGENCE_ISSUE = "Significant metric divergence between providers"

# Aggregate metric; excluded from per-dimension alignment
_AGGREGATE_METRIC = "overall"


def item_keys(output: ProviderOutput) -> set[str]:
    """Canonical (trimmed, lower-cased) item names of an output."""
    return {item.key for item in output.items if item.key}


def jaccard_similarity(a: set[str], b: set[str]) -> float:
    """|a ∩ b| / |a ∪ b|, or 0.0 when both sets are empty."""
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def metric_alignment(a: dict[str, float], b: dict[str, float]) -> float:
    """1 − mean absolute difference over dimensions both outputs report."""
    shared = sorted((set(a) & set(b)) - {_AGGREGATE_METRIC})
    if not shared:
        return 1.0
    return 1.0 - fmean(abs(a[dim] - b[dim]) for dim in shared)


def cross_validate(
    output_a: ProviderOutput,
    output_b: ProviderOutput,
    quality_a: QualityMetrics,
    quality_b: QualityMetrics,
    *,
    request_id: str = "",
) -> CrossValidationReport:
    """Compare two outputs and recommend use_a / use_b / merge / manual_review."""
    keys_a = item_keys(output_a)
    keys_b = item_keys(output_b)
    similarity = jaccard_similarity(keys_a, keys_b)
    alignment = max(0.0, min(1.0, metric_alignment(output_a.metrics, output_b.metrics)))

    issues: list[str] = []
    if quality_a.overall > quality_b.overall + QUALITY_MARGIN:
        recommendation, confidence = Recommendation.USE_A, 0.8
    elif quality_b.overall > quality_a.overall + QUALITY_MARGIN:
        recommendation, confidence = Recommendation.USE_B, 0.8
    elif similarity > MERGE_SIMILARITY:
        recommendation, confidence = Recommendation.MERGE, 0.9
    else:
        recommendation, confidence = Recommendation.MANUAL_REVIEW, 0.5
        issues.append(LOW_AGREEMENT_ISSUE)

    if alignment < ALIGNMENT_FLOOR:
        issues.append(METRIC_DIVERGENCE_ISSUE)

    logger.info(
        "Cross-validation %s vs %s: %s (quality %.2f/%.2f, similarity %.2f, alignment %.2f)",
        output_a.provider_id,
        output_b.provider_id,
        recommendation.value,
        quality_a.overall,
        quality_b.overall,
        similarity,
        alignment,
    )

    return CrossValidationReport(
        request_id=request_id,
        provider_a=ProviderAssessment(
            provider_id=output_a.provider_id,
            quality_score=quality_a.overall,
            secondary_score=quality_a.diversity,
        ),
        provider_b=ProviderAssessment(
            provider_id=output_b.provider_id,
            quality_score=quality_b.overall,
            secondary_score=quality_b.diversity,
        ),
        agreement=Agreement(
            overlap_count=len(keys_a & keys_b),
            similarity=similarity,
            alignment=alignment,
        ),
        recommendation=recommendation,
        confidence=confidence,
        issues=issues,
    )
