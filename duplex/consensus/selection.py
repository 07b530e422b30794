"""Selector: turn a cross-validation report into exactly one provider."""

from __future__ import annotations

import logging

from duplex.schemas.provider import ProviderOutput
from duplex.schemas.quality import (
    CrossValidationReport,
    QualityMetrics,
    Recommendation,
    SelectionResult,
)

logger = logging.getLogger(__name__)


def select_provider(
    report: CrossValidationReport | None,
    output_a: ProviderOutput | None,
    output_b: ProviderOutput | None,
    quality_a: QualityMetrics | None = None,
    quality_b: QualityMetrics | None = None,
    *,
    provider_a: str | None = None,
    provider_b: str | None = None,
    preferred: str | None = None,
) -> SelectionResult:
    """Choose one provider.

    Without a report: whichever side succeeded, else ``preferred``, else A.
    use_a / use_b map directly. merge and manual_review pick the side with
    the higher secondary (diversity) score; ties go to A.

    Args:
        report: Cross-validation report, or None when validation did not run.
        output_a: Provider A's output, or None if it failed.
        output_b: Provider B's output, or None if it failed.
        quality_a: Provider A's quality metrics, if scored.
        quality_b: Provider B's quality metrics, if scored.
        provider_a: Provider A's id, needed when output_a is None.
        provider_b: Provider B's id, needed when output_b is None.
        preferred: Provider to select when no report is available.
    """
    id_a = provider_a or (output_a.provider_id if output_a else "")
    id_b = provider_b or (output_b.provider_id if output_b else "")

    quality_scores: dict[str, QualityMetrics] = {}
    if quality_a is not None:
        quality_scores[id_a] = quality_a
    if quality_b is not None:
        quality_scores[id_b] = quality_b

    if report is None:
        if output_a is not None and output_b is None:
            chosen, reason = id_a, f"{id_b} failed; {id_a} is the only successful provider"
        elif output_b is not None and output_a is None:
            chosen, reason = id_b, f"{id_a} failed; {id_b} is the only successful provider"
        elif preferred in (id_a, id_b):
            chosen, reason = preferred, f"Preferred provider {preferred} selected"
        else:
            chosen, reason = id_a, f"Default provider {id_a} selected"
        return SelectionResult(provider_id=chosen, reason=reason, quality_scores=quality_scores)

    recommendation = report.recommendation
    if recommendation == Recommendation.USE_A:
        chosen = report.provider_a.provider_id
        reason = f"{chosen} provided higher quality output"
    elif recommendation == Recommendation.USE_B:
        chosen = report.provider_b.provider_id
        reason = f"{chosen} provided higher quality output"
    else:
        if report.provider_b.secondary_score > report.provider_a.secondary_score:
            chosen = report.provider_b.provider_id
        else:
            chosen = report.provider_a.provider_id
        reason = f"Selected based on diversity metrics ({recommendation.value})"

    logger.info("Selected %s: %s", chosen, reason)
    return SelectionResult(
        provider_id=chosen,
        reason=reason,
        confidence=report.confidence,
        quality_scores=quality_scores,
    )
