"""Merger: build the consensus item list from two outputs.

Items are matched by canonical name. The primary's copy of a shared item
is kept, with a confidence bonus for agreement:
``min(1, (c_primary + c_secondary) / 2 + 0.1)``. Unreported confidence
counts as 0.5. The result is sorted by descending confidence (stable, so
primary order breaks ties) and truncated to ``cap``. Inputs are never
mutated.
"""

from __future__ import annotations

from duplex.schemas.provider import OutputItem, ProviderOutput

AGREEMENT_BONUS = 0.1
DEFAULT_CONFIDENCE = 0.5
DEFAULT_CAP = 5


def _confidence(item: OutputItem) -> float:
    return DEFAULT_CONFIDENCE if item.confidence is None else item.confidence


def merge_items(
    primary: ProviderOutput,
    secondary: ProviderOutput | None,
    cap: int = DEFAULT_CAP,
) -> list[OutputItem]:
    """Merge primary and secondary items into a ranked consensus list."""
    if cap <= 0:
        return []
    if secondary is None:
        return list(primary.items[:cap])

    merged: dict[str, OutputItem] = {}
    for item in primary.items:
        merged.setdefault(item.key, item)

    seen: set[str] = set()
    for item in secondary.items:
        if item.key in seen:
            continue
        seen.add(item.key)
        existing = merged.get(item.key)
        if existing is None:
            merged[item.key] = item
            continue
        boosted = min(1.0, (_confidence(existing) + _confidence(item)) / 2 + AGREEMENT_BONUS)
        merged[item.key] = existing.model_copy(update={"confidence": boosted})

    ranked = sorted(merged.values(), key=_confidence, reverse=True)
    return ranked[:cap]


def combine_metrics(a: dict[str, float], b: dict[str, float]) -> dict[str, float]:
    """Average the metric dimensions both outputs report."""
    return {key: (a[key] + b[key]) / 2 for key in a if key in b}
