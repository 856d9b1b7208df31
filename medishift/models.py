"""
models.py — Roster Model for the MediShift scheduling engine

Typed, immutable records for everything the engine consumes or produces:

  Resident / Staff      people on the roster
  Roster                ordered collection; order is the deterministic tie-break
  ActivityKind          closed set of per-day activities
  ActivityAssignment    (person, day, activity) triple produced by the engine
  OffServiceRotation    catalogue entry (name, call eligibility)
  OffServiceRequest     mandatory rotation a resident must do this year
  PredefinedCall        call fixed by the program before the engine runs
  OrCase                operating-room case booked for a day (routine | complex)
  ClinicSession         clinic with its appointment volume for a day

Day references on records (vacation_days, chief_or_days, and the day of a
PredefinedCall, OrCase or ClinicSession) are 1-based day numbers inside the
scheduling window.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterator, List, Optional, Tuple, Union


class ActivityKind(Enum):
    DAY_CALL = "Day Call"
    NIGHT_CALL = "Night Call"
    WEEKEND_CALL = "Weekend Call"
    BACKUP = "Backup"
    CRANIAL_STAFF_CALL = "Cranial Staff Call"
    SPINE_STAFF_CALL = "Spine Staff Call"
    VACATION = "Vacation"
    OFF_SERVICE = "Off-Service"
    NEUROSURGERY = "Neurosurgery"
    CLINIC = "Clinic"
    ACADEMIC_EVENT = "Academic Event"
    POST_CALL = "Post-Call"
    OR = "OR"
    HOLIDAY = "Holiday"
    PAGER_HOLDER = "Pager Holder"

    def __str__(self) -> str:
        return self.value

    @property
    def is_call(self) -> bool:
        return self in CALL_KINDS

    @property
    def is_primary_call(self) -> bool:
        return self in PRIMARY_CALL_KINDS

    @property
    def is_staff_call(self) -> bool:
        return self in STAFF_CALL_KINDS

    @classmethod
    def parse(cls, raw: str) -> "ActivityKind":
        """Accept the display value, the enum name or the original D/N/W codes."""
        key = str(raw).strip()
        if key in _CALL_CODES:
            return _CALL_CODES[key]
        for kind in cls:
            if key.lower() in (kind.value.lower(), kind.name.lower()):
                return kind
        raise ValueError(f"Unknown activity kind: {raw!r}")


PRIMARY_CALL_KINDS: FrozenSet[ActivityKind] = frozenset({
    ActivityKind.DAY_CALL,
    ActivityKind.NIGHT_CALL,
    ActivityKind.WEEKEND_CALL,
})
STAFF_CALL_KINDS: FrozenSet[ActivityKind] = frozenset({
    ActivityKind.CRANIAL_STAFF_CALL,
    ActivityKind.SPINE_STAFF_CALL,
})
CALL_KINDS: FrozenSet[ActivityKind] = (
    PRIMARY_CALL_KINDS | STAFF_CALL_KINDS | frozenset({ActivityKind.BACKUP})
)
# Calls that leave the resident post-call the next day
OVERNIGHT_CALL_KINDS: FrozenSet[ActivityKind] = frozenset({
    ActivityKind.NIGHT_CALL,
    ActivityKind.WEEKEND_CALL,
})
# Markers that take the whole day off the schedule
ABSENCE_KINDS: FrozenSet[ActivityKind] = frozenset({
    ActivityKind.VACATION,
    ActivityKind.HOLIDAY,
})

_CALL_CODES: Dict[str, ActivityKind] = {
    "D": ActivityKind.DAY_CALL,
    "N": ActivityKind.NIGHT_CALL,
    "W": ActivityKind.WEEKEND_CALL,
    "B": ActivityKind.BACKUP,
}

NO_HOLIDAY_GROUP = "neither"


# ---------------------------------------------------------------------------
# People
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Resident:
    id: str
    name: str
    level: int
    on_service: bool = True
    off_service_rotation: Optional[str] = None
    home_call_cap: Optional[int] = None
    off_service_call_cap: int = 4
    vacation_days: FrozenSet[int] = frozenset()
    prior_weekend_calls: int = 0
    holiday_group: Optional[str] = None
    can_be_backup: bool = False
    allow_solo_pgy1_call: bool = False
    is_chief: bool = False
    chief_or_days: FrozenSet[int] = frozenset()
    chief_takes_call: bool = True
    exempt_from_call: bool = False
    visiting: bool = False
    double_call_allowance: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "vacation_days", frozenset(self.vacation_days))
        object.__setattr__(self, "chief_or_days", frozenset(self.chief_or_days))

    @property
    def is_staff(self) -> bool:
        return False

    @property
    def group(self) -> Optional[str]:
        """Holiday group tag, or None when the resident belongs to no group."""
        if not self.holiday_group or self.holiday_group == NO_HOLIDAY_GROUP:
            return None
        return self.holiday_group

    @property
    def needs_supervision(self) -> bool:
        """True when a primary call by this resident requires a backup."""
        if self.visiting:
            return True
        return self.level == 1 and not self.allow_solo_pgy1_call


@dataclass(frozen=True)
class Staff:
    id: str
    name: str
    specialties: FrozenSet[str] = frozenset()
    vacation_days: FrozenSet[int] = frozenset()
    call_cap: Optional[int] = None
    double_call_allowance: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "specialties", frozenset(s.lower() for s in self.specialties))
        object.__setattr__(self, "vacation_days", frozenset(self.vacation_days))

    @property
    def is_staff(self) -> bool:
        return True

    @property
    def group(self) -> Optional[str]:
        return None

    def has_specialty(self, tag: str) -> bool:
        return tag.lower() in {s.lower() for s in self.specialties}


Person = Union[Resident, Staff]


@dataclass(frozen=True)
class Roster:
    """
    Residents and staff for one scheduling request.

    Roster position (residents in supplied order, then staff) is the stable
    tie-break used everywhere candidates are ranked.
    """
    residents: Tuple[Resident, ...] = ()
    staff: Tuple[Staff, ...] = ()
    _positions: Dict[str, int] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "residents", tuple(self.residents))
        object.__setattr__(self, "staff", tuple(self.staff))
        positions = {p.id: i for i, p in enumerate(self.people)}
        object.__setattr__(self, "_positions", positions)

    @property
    def people(self) -> Tuple[Person, ...]:
        return self.residents + self.staff

    @property
    def home_residents(self) -> Tuple[Resident, ...]:
        """Residents belonging to the home program (visiting residents excluded)."""
        return tuple(r for r in self.residents if not r.visiting)

    def position(self, person_id: str) -> int:
        return self._positions[person_id]

    def get(self, person_id: str) -> Optional[Person]:
        pos = self._positions.get(person_id)
        if pos is None:
            return None
        return self.people[pos]

    def __contains__(self, person_id: object) -> bool:
        return person_id in self._positions

    def __iter__(self) -> Iterator[Person]:
        return iter(self.people)

    def __len__(self) -> int:
        return len(self.people)


# ---------------------------------------------------------------------------
# Assignments and rotation inputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ActivityAssignment:
    person_id: str
    day: int            # 1-based day number
    activity: ActivityKind

    def __str__(self) -> str:
        return f"Day {self.day}: {self.person_id} → {self.activity}"


@dataclass(frozen=True)
class OffServiceRotation:
    name: str
    can_take_call: bool = False


@dataclass(frozen=True)
class OffServiceRequest:
    resident_id: str
    rotation: str
    duration_blocks: int = 1
    timing: str = "any"   # early | mid | late | any


@dataclass(frozen=True)
class PredefinedCall:
    day: int
    person_id: str
    activity: ActivityKind


@dataclass(frozen=True)
class OrCase:
    day: int
    complexity: str = "routine"   # routine | complex
    surgeon: str = ""
    procedure: str = ""

    @property
    def is_complex(self) -> bool:
        return self.complexity == "complex"


@dataclass(frozen=True)
class ClinicSession:
    day: int
    appointments: int
    virtual_appointments: int = 0
    staff_name: str = ""
    clinic_type: str = "general"  # cranial | spine | general

    @property
    def physical_appointments(self) -> int:
        return self.appointments - self.virtual_appointments


def sort_assignments(assignments: List[ActivityAssignment], roster: Roster) -> List[ActivityAssignment]:
    """Order by day, then roster position, then activity order of declaration."""
    kind_order = {kind: i for i, kind in enumerate(ActivityKind)}
    return sorted(
        assignments,
        key=lambda a: (a.day, roster.position(a.person_id), kind_order[a.activity]),
    )
