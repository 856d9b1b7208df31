"""
schedule_config.py — Constraint configuration and scheduling constants

Everything a program director can tune lives in ConstraintConfig; the module
constants below are its defaults.

CALL CAPS
─────────
  On-service residents without an explicit home_call_cap get a cap from
  CALL_CAP_TABLE, keyed by the number of days in the window they are
  available (window length minus vacation days):

      19–22 days → 5 calls      23–26 days → 6 calls
      27–29 days → 7 calls      30–31 days → 8 calls

  No matching row means uncapped. Off-service residents use
  off_service_call_cap; staff use call_cap. Backup never counts.

DAILY SLOTS
───────────
  Weekday:               Day Call, Night Call, [Backup], Cranial, Spine
  Weekend day / holiday: Weekend Call,         [Backup], Cranial, Spine

  Backup is filled when backup_policy == "always", or ("as_needed") as soon
  as a primary assignee needs supervision (PGY-1 without solo flag, visiting).

OR CASES AND CLINICS (weekdays only)
────────────────────────────────────
  Complex case: PGY-4+ lead, then a PGY-1/2 at least two levels below.
  Routine case: the two most senior free residents.
  Clinic: < 5 in-person appointments → one floating resident if any;
          otherwise 1 resident (2 above 25), juniors first, then floating
          seniors.
  Pager Holder (any day, when enabled): the most junior resident with an
          empty day; OR instead when a PGY-3+ is operating and they are PGY-1/2.

ROTATION TIMING WINDOWS (13 blocks)
───────────────────────────────────
  early = 1–4    mid = 5–9    late = 10–13    any = 1–13

RANKING PRECEDENCE
──────────────────
  1. holiday-group rank   (major holidays, primary call, policy "alternate")
  2. fairness cost        (COST_WEIGHTS below)
  3. roster position
"""

from dataclasses import dataclass, field, fields, replace
from datetime import date
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from medishift.calendar_model import BLOCKS_PER_YEAR, DEFAULT_WEEKEND_DAYS, DayRef
from medishift.errors import ConfigurationError
from medishift.models import ActivityKind, ClinicSession, OffServiceRotation, OrCase

HOME_SERVICE_NAME = "Neurosurgery"

# (min_available_days, max_available_days, calls)
CALL_CAP_TABLE: Tuple[Tuple[int, int, int], ...] = (
    (19, 22, 5),
    (23, 26, 6),
    (27, 29, 7),
    (30, 31, 8),
)

TIMING_WINDOWS: Dict[str, Tuple[int, int]] = {
    "early": (1, 4),
    "mid":   (5, 9),
    "late":  (10, 13),
    "any":   (1, BLOCKS_PER_YEAR),
}

COST_WEIGHTS: Dict[str, float] = {
    "call_count":      500.0,    # per primary call already taken
    "backup_count":    500.0,    # per backup already taken (Backup slot only)
    "weekend_count":   300.0,    # per weekend call incl. prior, weekend slots only
    "recency":        2000.0,    # × (4 − days since last call) when ≤ 3 days
    "seniority":       100.0,    # × level on primary call; × −level on backup
    "visiting":      -1000.0,    # visiting residents are preferred for primary call
    "double_call":  100000.0,    # second call-type activity on the same day
}

# Mon=0 … Thu=3: days with a full on-service team expected
COVERAGE_CHECK_WEEKDAYS: FrozenSet[int] = frozenset({0, 1, 2, 3})

WEEKDAY_PRIMARY_SLOTS: Tuple[ActivityKind, ...] = (
    ActivityKind.DAY_CALL,
    ActivityKind.NIGHT_CALL,
)
WEEKEND_PRIMARY_SLOTS: Tuple[ActivityKind, ...] = (
    ActivityKind.WEEKEND_CALL,
)
STAFF_CALL_SLOTS: Tuple[ActivityKind, ...] = (
    ActivityKind.CRANIAL_STAFF_CALL,
    ActivityKind.SPINE_STAFF_CALL,
)

DEFAULT_ROTATIONS: Tuple[OffServiceRotation, ...] = (
    OffServiceRotation("Neuroradiology", can_take_call=False),
    OffServiceRotation("Plastics", can_take_call=True),
    OffServiceRotation("Research", can_take_call=False),
)

# OR staffing: complex cases need a PGY-4+ lead; a PGY-3+ in a case is paired
# with a PGY-1/2 at least two levels below.
# Sat=5, Sun=6: no booked OR cases or clinics
CLOSED_WEEKDAYS: FrozenSet[int] = frozenset({5, 6})
OR_COMPLEXITIES = ("routine", "complex")
OR_LEAD_LEVEL = 4
OR_SENIOR_LEVEL = 3
OR_JUNIOR_MAX_LEVEL = 2
OR_PAIR_GAP = 2
OR_CASE_TEAM_SIZE = 2

# Clinic staffing by physical (in-person) appointments:
#   < 5  → a floating resident if one exists, never reported
#   > 25 → two residents, otherwise one
CLINIC_LOW_VOLUME = 5
CLINIC_HIGH_VOLUME = 25
CLINIC_JUNIOR_MAX_LEVEL = 3
CLINIC_SENIOR_MIN_LEVEL = 4
CLINIC_TYPES = ("cranial", "spine", "general")

HOLIDAY_GROUP_POLICIES = ("alternate", "ignore")
CHIEF_RESERVED_POLICIES = ("exclusive", "allow_call")
BACKUP_POLICIES = ("as_needed", "always")


@dataclass(frozen=True)
class ConstraintConfig:
    """Caller-supplied rule set for one engine invocation."""

    # Coverage minimums (0 = not checked; programs set their own, see config/constraints.json)
    min_daily_headcount: int = 0
    min_daily_seniors: int = 0
    daily_senior_level: int = 3
    min_block_headcount: int = 0
    min_block_seniors: int = 0
    senior_level: int = 4

    # Call rules
    backup_min_level: int = 3
    backup_policy: str = "as_needed"
    max_consecutive_call_days: Optional[int] = None
    max_weekend_calls: Optional[int] = 4
    allow_double_call: bool = False
    post_call_rest: bool = True
    call_cap_table: Tuple[Tuple[int, int, int], ...] = CALL_CAP_TABLE
    staff_call_kinds: Tuple[ActivityKind, ...] = STAFF_CALL_SLOTS

    # Holidays
    holiday_group_policy: str = "alternate"
    stat_holidays: Tuple[DayRef, ...] = ()
    major_holidays: Tuple[DayRef, ...] = ()
    holiday_leave_windows: Dict[str, Tuple[date, date]] = field(default_factory=dict)
    weekend_days: FrozenSet[int] = DEFAULT_WEEKEND_DAYS
    coverage_check_weekdays: FrozenSet[int] = COVERAGE_CHECK_WEEKDAYS

    # Chief residents
    chief_reserved_policy: str = "exclusive"
    chief_compatible_kinds: FrozenSet[ActivityKind] = frozenset({ActivityKind.BACKUP})

    # Clinic / academic
    clinic_days: Dict[int, int] = field(default_factory=dict)
    academic_days: Tuple[int, ...] = ()
    clinic_sessions: Tuple[ClinicSession, ...] = ()

    # Operating room
    or_cases: Tuple[OrCase, ...] = ()
    assign_pager_holder: bool = False

    # Rotations
    rotations: Dict[str, OffServiceRotation] = field(
        default_factory=lambda: {r.name: r for r in DEFAULT_ROTATIONS}
    )
    timing_windows: Dict[str, Tuple[int, int]] = field(default_factory=lambda: dict(TIMING_WINDOWS))
    academic_year_start: Optional[date] = None
    home_service_name: str = HOME_SERVICE_NAME

    cost_weights: Dict[str, float] = field(default_factory=lambda: dict(COST_WEIGHTS))

    def call_cap_for_available_days(self, available_days: int) -> Optional[int]:
        for low, high, calls in self.call_cap_table:
            if low <= available_days <= high:
                return calls
        return None

    def rotation(self, name: Optional[str]) -> Optional[OffServiceRotation]:
        if not name:
            return None
        return self.rotations.get(name)

    def weight(self, key: str) -> float:
        return self.cost_weights.get(key, COST_WEIGHTS.get(key, 0.0))

    def with_overrides(self, **overrides: Any) -> "ConstraintConfig":
        return replace(self, **overrides)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ConstraintConfig":
        """
        Build a config from plain JSON-style data (see config.load_constraint_config).
        Unknown keys raise ConfigurationError so typos surface immediately.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")

        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            if value is None:
                kwargs[key] = None
            elif key in ("weekend_days", "coverage_check_weekdays"):
                kwargs[key] = frozenset(int(v) for v in value)
            elif key in ("stat_holidays", "major_holidays"):
                kwargs[key] = tuple(_parse_day_ref(v) for v in value)
            elif key == "academic_days":
                kwargs[key] = tuple(int(v) for v in value)
            elif key == "clinic_days":
                kwargs[key] = {int(k): int(v) for k, v in value.items()}
            elif key == "holiday_leave_windows":
                kwargs[key] = {
                    group: (date.fromisoformat(span[0]), date.fromisoformat(span[1]))
                    for group, span in value.items()
                }
            elif key == "academic_year_start":
                kwargs[key] = date.fromisoformat(value) if isinstance(value, str) else value
            elif key == "call_cap_table":
                kwargs[key] = tuple((int(a), int(b), int(c)) for a, b, c in value)
            elif key in ("staff_call_kinds",):
                kwargs[key] = tuple(ActivityKind.parse(v) for v in value)
            elif key == "chief_compatible_kinds":
                kwargs[key] = frozenset(ActivityKind.parse(v) for v in value)
            elif key == "or_cases":
                kwargs[key] = _parse_or_cases(value)
            elif key == "clinic_sessions":
                kwargs[key] = tuple(_parse_clinic_session(entry) for entry in value)
            elif key == "rotations":
                kwargs[key] = _parse_rotations(value)
            elif key == "timing_windows":
                kwargs[key] = {name: (int(span[0]), int(span[1])) for name, span in value.items()}
            elif key == "cost_weights":
                kwargs[key] = {**COST_WEIGHTS, **{k: float(v) for k, v in value.items()}}
            else:
                kwargs[key] = value
        return cls(**kwargs)


def _parse_day_ref(value: Any) -> DayRef:
    if isinstance(value, (date, int)):
        return value
    text = str(value).strip()
    if text.isdigit():
        return int(text)
    return date.fromisoformat(text)


def _parse_rotations(value: Any) -> Dict[str, OffServiceRotation]:
    items: List[OffServiceRotation] = []
    if isinstance(value, Mapping):
        for name, can_take_call in value.items():
            items.append(OffServiceRotation(str(name), bool(can_take_call)))
    else:
        for entry in value:
            items.append(OffServiceRotation(str(entry["name"]), bool(entry.get("can_take_call", False))))
    return {r.name: r for r in items}


def _parse_or_cases(value: Any) -> Tuple[OrCase, ...]:
    """Accept {"3": ["complex", "routine"]} (day → complexities) or a list of case objects."""
    cases: List[OrCase] = []
    if isinstance(value, Mapping):
        for day, entries in value.items():
            for entry in entries:
                if isinstance(entry, Mapping):
                    cases.append(_or_case(int(day), entry))
                else:
                    cases.append(OrCase(int(day), str(entry).strip().lower()))
    else:
        for entry in value:
            cases.append(_or_case(int(entry["day"]), entry))
    return tuple(sorted(cases, key=lambda c: c.day))


def _or_case(day: int, entry: Mapping[str, Any]) -> OrCase:
    return OrCase(
        day=day,
        complexity=str(entry.get("complexity", "routine")).strip().lower(),
        surgeon=str(entry.get("surgeon", "")),
        procedure=str(entry.get("procedure", "")),
    )


def _parse_clinic_session(entry: Mapping[str, Any]) -> ClinicSession:
    return ClinicSession(
        day=int(entry["day"]),
        appointments=int(entry.get("appointments", 0)),
        virtual_appointments=int(entry.get("virtual_appointments", 0)),
        staff_name=str(entry.get("staff_name", "")),
        clinic_type=str(entry.get("clinic_type", "general")).strip().lower(),
    )
