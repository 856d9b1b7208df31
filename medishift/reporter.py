"""
reporter.py — Violation Reporter

Merges the day-scoped violations of the daily engine with the block-scoped
violations of the rotation planner. Nothing is dropped or deduplicated;
the only transformation is a stable sort by scope index.
"""

from collections import Counter
from typing import Dict, Iterable, List

from medishift.constraints import ConstraintViolation


def merge_violations(
    daily: Iterable[ConstraintViolation],
    block: Iterable[ConstraintViolation],
) -> List[ConstraintViolation]:
    """Concatenate daily then block violations, stable-sorted by day/block index."""
    merged = list(daily) + list(block)
    merged.sort(key=lambda v: v.scope.index)
    return merged


def summarize_violations(violations: Iterable[ConstraintViolation]) -> Dict[str, int]:
    """Violation type → count, most frequent first."""
    return dict(Counter(v.constraint_type for v in violations).most_common())


def format_violations(violations: List[ConstraintViolation], verbose: bool = False) -> List[str]:
    """
    Render violations as display lines.

    verbose=False gives the plain description ("Day 5: no eligible resident
    for Night Call"); verbose=True prefixes the type code and person.
    """
    if verbose:
        return [str(v) for v in violations]
    return [v.description for v in violations]
