"""Quality scorers: derive QualityMetrics from a provider output.

Scorers are pure and idempotent. Each produces four subscores in [0,1]
(relevance, diversity, reasoning, completeness); ``overall`` is their
unweighted mean. Absent data scores the neutral 0.5. Any subscore below
0.5 appends an advisory issue, which never blocks selection.

The cross-validator uses ``overall`` as the quality score and
``diversity`` as the secondary score for tie-breaking.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from statistics import fmean

from duplex.schemas.domains import Domain
from duplex.schemas.provider import ProviderOutput
from duplex.schemas.quality import QualityMetrics

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 0.5

# Summaries longer than this count as substantive reasoning
_SUBSTANTIVE_SUMMARY_CHARS = 100


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class QualityScorer(ABC):
    """Base class: subclasses compute the four subscores."""

    domain: Domain | None = None

    def score(self, output: ProviderOutput) -> QualityMetrics:
        """Score one provider output."""
        subscores = {
            "relevance": _clamp(self.relevance(output)),
            "diversity": _clamp(self.diversity(output)),
            "reasoning": _clamp(self.reasoning(output)),
            "completeness": _clamp(self.completeness(output)),
        }
        issues = [
            f"Low {name} score ({value:.2f})"
            for name, value in subscores.items()
            if value < NEUTRAL_SCORE
        ]
        return QualityMetrics(
            **subscores,
            overall=fmean(subscores.values()),
            issues=issues,
        )

    @abstractmethod
    def relevance(self, output: ProviderOutput) -> float: ...

    @abstractmethod
    def diversity(self, output: ProviderOutput) -> float: ...

    @abstractmethod
    def reasoning(self, output: ProviderOutput) -> float: ...

    @abstractmethod
    def completeness(self, output: ProviderOutput) -> float: ...


class DefaultQualityScorer(QualityScorer):
    """Generic rules for item-list outputs.

    - relevance: mean item confidence (unreported confidence counts 0.5)
    - diversity: the aggregate metric if reported, else the mean of the
      other metric dimensions
    - reasoning: 0.8 for a substantive summary, 0.5 otherwise
    - completeness: 0.9 when any item carries supporting detail, 0.6 when
      none do, 0.5 with no items
    """

    diversity_keys: tuple[str, ...] = ("overall",)
    detail_keys: tuple[str, ...] = ("notable_roles", "evidence")

    def relevance(self, output: ProviderOutput) -> float:
        if not output.items:
            return NEUTRAL_SCORE
        return fmean(
            NEUTRAL_SCORE if item.confidence is None else item.confidence
            for item in output.items
        )

    def diversity(self, output: ProviderOutput) -> float:
        for key in self.diversity_keys:
            if key in output.metrics:
                return output.metrics[key]
        dimensions = [
            value for key, value in output.metrics.items()
            if key not in self.diversity_keys
        ]
        return fmean(dimensions) if dimensions else NEUTRAL_SCORE

    def reasoning(self, output: ProviderOutput) -> float:
        return 0.8 if len(output.summary) > _SUBSTANTIVE_SUMMARY_CHARS else NEUTRAL_SCORE

    def completeness(self, output: ProviderOutput) -> float:
        if not output.items:
            return NEUTRAL_SCORE
        for item in output.items:
            if any(item.attributes.get(key) for key in self.detail_keys):
                return 0.9
        return 0.6


class CastingQualityScorer(DefaultQualityScorer):
    """Casting recommendations: default rules, diversity from the
    overall diversity score when a provider reports it under its long
    name."""

    domain = Domain.CASTING
    diversity_keys = ("overall_diversity_score", "overall")


class AudioQualityScorer(QualityScorer):
    """Heuristics for generated audio clips.

    Scores the first clip: asset presence, generation latency (under a
    minute scores above zero), sample rate and whether the encoded size
    is plausible for the reported duration.
    """

    domain = Domain.AUDIO
    latency_ceiling_ms = 60_000.0

    def relevance(self, output: ProviderOutput) -> float:
        return 1.0 if output.items else 0.0

    def diversity(self, output: ProviderOutput) -> float:
        if not output.latency_ms:
            return NEUTRAL_SCORE
        return max(0.0, 1 - output.latency_ms / self.latency_ceiling_ms)

    def reasoning(self, output: ProviderOutput) -> float:
        if not output.items:
            return NEUTRAL_SCORE
        rate = output.items[0].attributes.get("sample_rate_hz")
        if not rate:
            return NEUTRAL_SCORE
        if rate >= 44_100:
            return 1.0
        if rate >= 16_000:
            return 0.8
        return 0.3

    def completeness(self, output: ProviderOutput) -> float:
        if not output.items:
            return NEUTRAL_SCORE
        attributes = output.items[0].attributes
        duration = attributes.get("duration_ms") or 0
        size = attributes.get("content_length_bytes") or 0
        if duration <= 0:
            return NEUTRAL_SCORE
        # ~32 bytes per millisecond for 16 kHz mono WAV
        return 0.9 if size >= duration * 32 else 0.7


class ImageQualityScorer(QualityScorer):
    """Heuristics for generated images: presence, latency, resolution."""

    domain = Domain.IMAGE
    latency_ceiling_ms = 30_000.0

    def relevance(self, output: ProviderOutput) -> float:
        return 1.0 if output.items else 0.0

    def diversity(self, output: ProviderOutput) -> float:
        if not output.latency_ms:
            return NEUTRAL_SCORE
        return max(0.0, 1 - output.latency_ms / self.latency_ceiling_ms)

    def reasoning(self, output: ProviderOutput) -> float:
        sizes = [
            min(item.attributes["width"], item.attributes["height"])
            for item in output.items
            if item.attributes.get("width") and item.attributes.get("height")
        ]
        if not sizes:
            return NEUTRAL_SCORE
        smallest = min(sizes)
        if smallest >= 1024:
            return 0.9
        if smallest >= 512:
            return 0.7
        return 0.4

    def completeness(self, output: ProviderOutput) -> float:
        if not output.items:
            return NEUTRAL_SCORE
        sized = all(
            item.attributes.get("width") and item.attributes.get("height")
            for item in output.items
        )
        return 0.9 if sized else 0.6


DEFAULT_SCORERS: dict[Domain, QualityScorer] = {
    Domain.AUDIO: AudioQualityScorer(),
    Domain.CASTING: CastingQualityScorer(),
    Domain.IMAGE: ImageQualityScorer(),
}


def scorer_for(domain: Domain, overrides: dict[Domain, QualityScorer] | None = None) -> QualityScorer:
    """Pick the scorer for a domain, falling back to the default rules."""
    if overrides and domain in overrides:
        return overrides[domain]
    return DEFAULT_SCORERS.get(domain) or DefaultQualityScorer()
