"""Scoring, cross-validation, selection and merging of provider outputs."""

from duplex.consensus.merge import combine_metrics, merge_items
from duplex.consensus.scoring import (
    AudioQualityScorer,
    CastingQualityScorer,
    DefaultQualityScorer,
    ImageQualityScorer,
    QualityScorer,
    scorer_for,
)
from duplex.consensus.selection import select_provider
from duplex.consensus.validation import cross_validate

__all__ = [
    "AudioQualityScorer",
    "CastingQualityScorer",
    "DefaultQualityScorer",
    "ImageQualityScorer",
    "QualityScorer",
    "combine_metrics",
    "cross_validate",
    "merge_items",
    "scorer_for",
    "select_provider",
]
