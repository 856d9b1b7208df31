"""
skills.py — Staff specialty matching for staff call slots

Staff call is split by specialty: a Cranial Staff Call slot may only go to
staff tagged "cranial", a Spine Staff Call slot only to staff tagged "spine".
Staff may carry both tags (or others, e.g. "other", "vascular") and are then
eligible for both slots.

Specialty tags (lower-case): cranial, spine, other
"""

from typing import Dict, List, Optional, Sequence

from medishift.models import ActivityKind, Staff

# ---------------------------------------------------------------------------
# Staff call slot → required specialty tag
# ---------------------------------------------------------------------------
SLOT_SPECIALTY_MAP: Dict[ActivityKind, str] = {
    ActivityKind.CRANIAL_STAFF_CALL: "cranial",
    ActivityKind.SPINE_STAFF_CALL:   "spine",
}


def required_specialty(kind: ActivityKind) -> Optional[str]:
    """Specialty tag a staff slot requires (None for resident activities)."""
    return SLOT_SPECIALTY_MAP.get(kind)


def get_qualified_staff(
    staff: Sequence[Staff],
    kind: ActivityKind,
) -> List[Staff]:
    """
    Filter staff to those qualified for a staff call slot.

    Returns:
        Filtered list (preserves roster order for tie-breaking)
    """
    tag = required_specialty(kind)
    if tag is None:
        return []
    return [s for s in staff if s.has_specialty(tag)]


def check_slot_qualification(person: Staff, kind: ActivityKind) -> bool:
    """True if the staff member carries the tag the slot requires."""
    tag = required_specialty(kind)
    if tag is None:
        return False
    return person.has_specialty(tag)


def get_specialty_summary(staff: Sequence[Staff]) -> Dict[str, List[str]]:
    """Return specialty tag → staff names, for audit printing."""
    summary: Dict[str, List[str]] = {}
    for s in staff:
        for tag in sorted(s.specialties):
            summary.setdefault(tag, []).append(s.name)
    return summary


def validate_slot_coverage(
    staff: Sequence[Staff],
    slots: Optional[Sequence[ActivityKind]] = None,
) -> List[str]:
    """
    Validate that every staff call slot has at least one qualified staff
    member; a single qualified person is flagged since they would carry
    every call.

    Returns:
        List of warning strings (empty = all OK)
    """
    if slots is None:
        slots = list(SLOT_SPECIALTY_MAP)

    warnings = []
    for kind in slots:
        qualified = get_qualified_staff(staff, kind)
        if not qualified:
            warnings.append(
                f"Slot '{kind}' requires '{required_specialty(kind)}' but NO qualified staff in roster"
            )
        elif len(qualified) < 2:
            warnings.append(
                f"Slot '{kind}' has only 1 qualified staff member "
                f"({qualified[0].name}) — every {kind} falls on them"
            )
    return warnings
