"""
constraints.py — Constraint Evaluator for the MediShift scheduling engine

Eligibility rules (evaluated in order, first failure wins):
  0. SLOT_ROLE        resident slot needs a resident; staff slot needs staff
                      with the matching specialty tag
  1. ON_SERVICE       on home service for the day's block, or on an
                      off-service rotation flagged call-eligible
  2. VACATION         not a vacation day or holiday-leave day
  3. CALL_CAP         running call count below the home / off-service / staff cap
  4. DAILY_LIMIT      one call-type activity per day (two with double call)
  5. SUPERVISION      PGY-1 without solo flag needs a co-assigned senior
  6. BACKUP           Backup requires can_be_backup and seniority
  7. CHIEF_RESERVED   chief's reserved OR days exclude call
  8. CALL_EXEMPT      exempt residents / non-call chiefs
  9. POST_CALL        no call the day after Night/Weekend Call
 10. CONSECUTIVE      max consecutive call days
 11. WEEKEND_CAP      max weekend calls in the window

Each rule is a small object with applies_to() / check(); the evaluator owns
the ordered list, so rules can be tested in isolation and new ones added
without touching the assignment loop.

Also here:
  ConstraintViolation  (scope, description) record produced by both engines
  ConstraintChecker    audits a finished activity grid (vacation, double call,
                       staff qualification)
  validate_inputs      structural checks that raise before any assignment work

Usage:
  evaluator = ConstraintEvaluator(roster, calendar, config, rotation_plan)
  verdict = evaluator.is_eligible(person, day, ActivityKind.NIGHT_CALL, ctx)
  ranked = evaluator.rank_candidates(pool, day, ActivityKind.NIGHT_CALL, ctx)
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from medishift.calendar_model import (
    BLOCKS_PER_YEAR,
    CalendarDay,
    academic_year_start_for,
    block_for_date,
)
from medishift.errors import ConfigurationError, EmptyRosterError
from medishift.models import (
    ABSENCE_KINDS,
    ActivityKind,
    OffServiceRequest,
    Person,
    PredefinedCall,
    PRIMARY_CALL_KINDS,
    Resident,
    Roster,
    Staff,
)
from medishift.schedule_config import (
    BACKUP_POLICIES,
    CHIEF_RESERVED_POLICIES,
    CLINIC_TYPES,
    HOLIDAY_GROUP_POLICIES,
    OR_COMPLEXITIES,
    ConstraintConfig,
)
from medishift.skills import check_slot_qualification, required_specialty

if TYPE_CHECKING:   # pragma: no cover
    from medishift.engine import SchedulingContext
    from medishift.rotation import RotationPlan

logger = logging.getLogger(__name__)

# Ungrouped people sort after every holiday group on major holidays
UNGROUPED_HOLIDAY_RANK = 10 ** 6


# ---------------------------------------------------------------------------
# Violations
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ViolationScope:
    kind: str       # "day" | "block"
    index: int      # 1-based day number or block number

    def __str__(self) -> str:
        return f"{self.kind.capitalize()} {self.index}"


@dataclass
class ConstraintViolation:
    constraint_type: str
    description: str
    scope: ViolationScope
    person_id: Optional[str] = None
    activity: Optional[ActivityKind] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        parts = [f"[{self.constraint_type}] {self.description}"]
        if self.person_id:
            parts.append(f"person={self.person_id}")
        if self.activity:
            parts.append(f"activity={self.activity}")
        return " | ".join(parts)


# Violation type codes
UNFILLED_SLOT = "UNFILLED_SLOT"
INSUFFICIENT_BACKUP = "INSUFFICIENT_BACKUP"
POST_CALL_CONFLICT = "POST_CALL_CONFLICT"
PREDEFINED_CALL_INELIGIBLE = "PREDEFINED_CALL_INELIGIBLE"
DAILY_HEADCOUNT = "DAILY_HEADCOUNT"
DAILY_SENIOR_COVERAGE = "DAILY_SENIOR_COVERAGE"
CLINIC_UNDERSTAFFED = "CLINIC_UNDERSTAFFED"
OR_CASE_UNSTAFFED = "OR_CASE_UNSTAFFED"
BLOCK_HEADCOUNT = "BLOCK_HEADCOUNT"
BLOCK_SENIOR_COVERAGE = "BLOCK_SENIOR_COVERAGE"
ROTATION_UNPLACED = "ROTATION_UNPLACED"
VACATION_ASSIGNMENT = "VACATION_ASSIGNMENT"
DOUBLE_BOOKING = "DOUBLE_BOOKING"
SPECIALTY_MISMATCH = "SPECIALTY_MISMATCH"


def day_violation(
    constraint_type: str,
    day: int,
    description: str,
    person_id: Optional[str] = None,
    activity: Optional[ActivityKind] = None,
    **details: Any,
) -> ConstraintViolation:
    return ConstraintViolation(
        constraint_type=constraint_type,
        description=f"Day {day}: {description}",
        scope=ViolationScope("day", day),
        person_id=person_id,
        activity=activity,
        details=details,
    )


def block_violation(
    constraint_type: str,
    block: int,
    description: str,
    person_id: Optional[str] = None,
    **details: Any,
) -> ConstraintViolation:
    return ConstraintViolation(
        constraint_type=constraint_type,
        description=description,
        scope=ViolationScope("block", block),
        person_id=person_id,
        details=details,
    )


# ---------------------------------------------------------------------------
# Eligibility verdict
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Eligibility:
    eligible: bool
    reason: str = ""
    rule: str = ""

    def __bool__(self) -> bool:
        return self.eligible


ELIGIBLE = Eligibility(True)


def ineligible(rule: str, reason: str) -> Eligibility:
    return Eligibility(False, reason=reason, rule=rule)


RESIDENT_CALL_KINDS = PRIMARY_CALL_KINDS | {ActivityKind.BACKUP}


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

class EligibilityRule:
    """One independent predicate over (person, day, kind, context)."""

    name = "RULE"
    kinds: Optional[frozenset] = None   # None = every call-type activity

    def applies_to(self, person: Person, kind: ActivityKind) -> bool:
        return self.kinds is None or kind in self.kinds

    def check(
        self,
        evaluator: "ConstraintEvaluator",
        person: Person,
        day: CalendarDay,
        kind: ActivityKind,
        ctx: "SchedulingContext",
    ) -> Eligibility:
        raise NotImplementedError


class SlotRoleRule(EligibilityRule):
    name = "SLOT_ROLE"

    def check(self, evaluator, person, day, kind, ctx):
        if kind.is_staff_call:
            if not isinstance(person, Staff):
                return ineligible(self.name, f"{person.name} is not staff")
            if not check_slot_qualification(person, kind):
                return ineligible(
                    self.name,
                    f"{person.name} lacks the '{required_specialty(kind)}' specialty",
                )
            return ELIGIBLE
        if not isinstance(person, Resident):
            return ineligible(self.name, f"{person.name} is staff, not a resident")
        return ELIGIBLE


class OnServiceRule(EligibilityRule):
    name = "ON_SERVICE"
    kinds = RESIDENT_CALL_KINDS

    def check(self, evaluator, person, day, kind, ctx):
        if evaluator.is_on_home_service(person, day):
            return ELIGIBLE
        rotation_name = evaluator.service_on(person, day)
        if rotation_name is None:
            # Off service with no named rotation: call-eligible iff it has an off-service cap
            if person.off_service_call_cap > 0:
                return ELIGIBLE
            return ineligible(self.name, f"{person.name} is off service with no call allowance")
        rotation = evaluator.config.rotation(rotation_name)
        if rotation is not None and rotation.can_take_call:
            return ELIGIBLE
        return ineligible(
            self.name,
            f"{person.name} is on {rotation_name}, which does not take call",
        )


class VacationRule(EligibilityRule):
    name = "VACATION"

    def check(self, evaluator, person, day, kind, ctx):
        if day.number in person.vacation_days:
            return ineligible(self.name, f"{person.name} is on vacation")
        if day.number in evaluator.holiday_leave_days(person):
            return ineligible(self.name, f"{person.name} is on holiday leave")
        return ELIGIBLE


class CallCapRule(EligibilityRule):
    name = "CALL_CAP"

    def applies_to(self, person, kind):
        return kind is not ActivityKind.BACKUP

    def check(self, evaluator, person, day, kind, ctx):
        cap = evaluator.call_cap(person, day)
        if cap is None:
            return ELIGIBLE
        taken = ctx.call_count(person.id)
        if taken >= cap:
            return ineligible(self.name, f"{person.name} reached call cap ({taken}/{cap})")
        return ELIGIBLE


class DailyCallLimitRule(EligibilityRule):
    name = "DAILY_LIMIT"

    def check(self, evaluator, person, day, kind, ctx):
        today = ctx.calls_on(person.id, day.number)
        if not today:
            return ELIGIBLE
        if kind in today:
            return ineligible(self.name, f"{person.name} already holds {kind} today")
        if (
            evaluator.config.allow_double_call
            and len(today) < 2
            and ctx.double_call_remaining(person.id) > 0
        ):
            return ELIGIBLE
        return ineligible(
            self.name,
            f"{person.name} already on {', '.join(str(k) for k in today)} today",
        )


class SupervisionRule(EligibilityRule):
    name = "SUPERVISION"
    kinds = PRIMARY_CALL_KINDS

    def check(self, evaluator, person, day, kind, ctx):
        if person.level != 1 or person.allow_solo_pgy1_call:
            return ELIGIBLE
        if ctx.backup_on(day.number) is not None:
            return ELIGIBLE
        for other in evaluator.roster.residents:
            if other.id == person.id:
                continue
            if evaluator.is_eligible(other, day, ActivityKind.BACKUP, ctx):
                return ELIGIBLE
        return ineligible(self.name, f"{person.name} (PGY-1) has no senior available as backup")


class BackupRule(EligibilityRule):
    name = "BACKUP"
    kinds = frozenset({ActivityKind.BACKUP})

    def check(self, evaluator, person, day, kind, ctx):
        if person.visiting:
            return ineligible(self.name, f"{person.name} is visiting and cannot back up")
        if not person.can_be_backup:
            return ineligible(self.name, f"{person.name} is not flagged as backup-capable")
        if person.level < evaluator.config.backup_min_level:
            return ineligible(
                self.name,
                f"{person.name} (PGY-{person.level}) is below backup level "
                f"PGY-{evaluator.config.backup_min_level}",
            )
        return ELIGIBLE


class ChiefReservedDayRule(EligibilityRule):
    name = "CHIEF_RESERVED"
    kinds = RESIDENT_CALL_KINDS

    def check(self, evaluator, person, day, kind, ctx):
        if not person.is_chief or day.number not in person.chief_or_days:
            return ELIGIBLE
        config = evaluator.config
        if config.chief_reserved_policy == "allow_call" or kind in config.chief_compatible_kinds:
            return ELIGIBLE
        return ineligible(self.name, f"{person.name} has a reserved chief OR day")


class CallExemptionRule(EligibilityRule):
    name = "CALL_EXEMPT"
    kinds = RESIDENT_CALL_KINDS

    def check(self, evaluator, person, day, kind, ctx):
        if person.exempt_from_call:
            return ineligible(self.name, f"{person.name} is exempt from call")
        if person.is_chief and not person.chief_takes_call:
            return ineligible(self.name, f"{person.name} is a chief who does not take call")
        return ELIGIBLE


class PostCallRule(EligibilityRule):
    name = "POST_CALL"
    kinds = RESIDENT_CALL_KINDS

    def check(self, evaluator, person, day, kind, ctx):
        if not evaluator.config.post_call_rest:
            return ELIGIBLE
        if ctx.had_overnight_call(person.id, day.number - 1):
            return ineligible(self.name, f"{person.name} is post-call")
        return ELIGIBLE


class ConsecutiveCallRule(EligibilityRule):
    name = "CONSECUTIVE"

    def applies_to(self, person, kind):
        return kind is not ActivityKind.BACKUP

    def check(self, evaluator, person, day, kind, ctx):
        limit = evaluator.config.max_consecutive_call_days
        if limit is None:
            return ELIGIBLE
        streak = ctx.call_streak_before(person.id, day.number)
        if streak >= limit:
            return ineligible(
                self.name,
                f"{person.name} already has {streak} consecutive call days (max {limit})",
            )
        return ELIGIBLE


class WeekendCapRule(EligibilityRule):
    name = "WEEKEND_CAP"
    kinds = PRIMARY_CALL_KINDS

    def check(self, evaluator, person, day, kind, ctx):
        limit = evaluator.config.max_weekend_calls
        if limit is None or not day.uses_weekend_call:
            return ELIGIBLE
        taken = ctx.weekend_call_count(person.id)
        if taken >= limit:
            return ineligible(self.name, f"{person.name} reached weekend call cap ({taken}/{limit})")
        return ELIGIBLE


DEFAULT_RULES: Tuple[EligibilityRule, ...] = (
    SlotRoleRule(),
    OnServiceRule(),
    VacationRule(),
    CallCapRule(),
    DailyCallLimitRule(),
    SupervisionRule(),
    BackupRule(),
    ChiefReservedDayRule(),
    CallExemptionRule(),
    PostCallRule(),
    ConsecutiveCallRule(),
    WeekendCapRule(),
)


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------

class ConstraintEvaluator:
    """
    Answers "may this person take this activity today" and "what does it cost".

    Holds only read-only inputs; all running counters come in through the
    SchedulingContext argument, so one evaluator can serve many invocations.
    """

    def __init__(
        self,
        roster: Roster,
        calendar: Sequence[CalendarDay],
        config: ConstraintConfig,
        rotation_plan: Optional["RotationPlan"] = None,
        rules: Optional[Sequence[EligibilityRule]] = None,
    ):
        self.roster = roster
        self.calendar = list(calendar)
        self.config = config
        self.rotation_plan = rotation_plan
        self.rules: Tuple[EligibilityRule, ...] = tuple(rules) if rules is not None else DEFAULT_RULES

        self.year_start = config.academic_year_start
        if self.year_start is None and self.calendar:
            self.year_start = academic_year_start_for(self.calendar[0].date)

        self._leave_days = self._build_leave_days()
        self._caps: Dict[Tuple[str, bool], Optional[int]] = {}

    # -----------------------------------------------------------------------
    # Service / availability lookups
    # -----------------------------------------------------------------------

    def _build_leave_days(self) -> Dict[str, Set[int]]:
        """Holiday-group leave windows resolved to day numbers, per group."""
        out: Dict[str, Set[int]] = {}
        for group, (first, last) in self.config.holiday_leave_windows.items():
            out[group] = {
                d.number for d in self.calendar if first <= d.date <= last
            }
        return out

    def holiday_leave_days(self, person: Person) -> Set[int]:
        group = person.group
        if group is None:
            return set()
        return self._leave_days.get(group, set())

    def is_absent(self, person: Person, day: CalendarDay) -> bool:
        return day.number in person.vacation_days or day.number in self.holiday_leave_days(person)

    def block_of(self, day: CalendarDay) -> Optional[int]:
        if self.year_start is None:
            return None
        return block_for_date(day.date, self.year_start)

    def _planned_service(self, person: Resident, day: CalendarDay) -> Optional[str]:
        if self.rotation_plan is None or person.id not in self.rotation_plan.assignments:
            return None
        block = self.block_of(day)
        if block is None:
            return None
        return self.rotation_plan.service_for(person.id, block)

    def service_on(self, person: Resident, day: CalendarDay) -> Optional[str]:
        """
        Off-service rotation name for this day, or None when on home service
        (or off service with no named rotation).

        A resident flagged off service is off for the whole window; otherwise
        the rotation plan decides per block.
        """
        if not person.on_service:
            return person.off_service_rotation
        planned = self._planned_service(person, day)
        if planned is None or planned == self.config.home_service_name:
            return None
        return planned

    def is_on_home_service(self, person: Person, day: CalendarDay) -> bool:
        if isinstance(person, Staff):
            return True
        if not person.on_service:
            return False
        planned = self._planned_service(person, day)
        return planned is None or planned == self.config.home_service_name

    def available_days(self, person: Person) -> int:
        absent = sum(1 for d in self.calendar if self.is_absent(person, d))
        return len(self.calendar) - absent

    def call_cap(self, person: Person, day: CalendarDay) -> Optional[int]:
        """Applicable cap for primary/staff call on this day (None = uncapped)."""
        if isinstance(person, Staff):
            return person.call_cap
        home = self.is_on_home_service(person, day)
        key = (person.id, home)
        if key not in self._caps:
            if not home:
                cap = person.off_service_call_cap
            elif person.home_call_cap is not None:
                cap = person.home_call_cap
            else:
                cap = self.config.call_cap_for_available_days(self.available_days(person))
            self._caps[key] = cap
        return self._caps[key]

    def is_senior(self, person: Resident, level: Optional[int] = None) -> bool:
        return person.level >= (level if level is not None else self.config.senior_level)

    # -----------------------------------------------------------------------
    # Decision primitives
    # -----------------------------------------------------------------------

    def is_eligible(
        self,
        person: Person,
        day: CalendarDay,
        kind: ActivityKind,
        ctx: "SchedulingContext",
    ) -> Eligibility:
        """Evaluate every applicable rule in order; the first failure is returned."""
        if not kind.is_call:
            raise ValueError(f"{kind} is not a call-type activity")
        for rule in self.rules:
            if not rule.applies_to(person, kind):
                continue
            verdict = rule.check(self, person, day, kind, ctx)
            if not verdict:
                return verdict
        return ELIGIBLE

    def cost(
        self,
        person: Person,
        kind: ActivityKind,
        ctx: "SchedulingContext",
        day: CalendarDay,
    ) -> float:
        """
        Fairness cost of giving this person this activity today. Lower wins.
        Only used to rank people who already passed is_eligible().
        """
        w = self.config.weight
        score = 0.0

        if kind is ActivityKind.BACKUP:
            score += ctx.backup_count(person.id) * w("backup_count")
            score -= person.level * w("seniority")
        else:
            score += ctx.call_count(person.id) * w("call_count")
            if day.uses_weekend_call:
                prior = getattr(person, "prior_weekend_calls", 0)
                score += (ctx.weekend_call_count(person.id) + prior) * w("weekend_count")
            if isinstance(person, Resident):
                score += person.level * w("seniority")
                if person.visiting:
                    score += w("visiting")

        last = ctx.last_call_day(person.id, before=day.number)
        if last is not None:
            gap = day.number - last
            if gap <= 3:
                score += (4 - gap) * w("recency")

        if ctx.calls_on(person.id, day.number):
            score += w("double_call")
        return score

    def holiday_rank(
        self,
        person: Person,
        kind: ActivityKind,
        ctx: "SchedulingContext",
        day: CalendarDay,
    ) -> int:
        """Holiday-group balancing key; 0 for everyone on ordinary days."""
        if (
            not day.is_major_holiday
            or kind not in PRIMARY_CALL_KINDS
            or self.config.holiday_group_policy != "alternate"
        ):
            return 0
        group = person.group
        if group is None:
            return UNGROUPED_HOLIDAY_RANK
        return ctx.holiday_group_count(group)

    def rank_candidates(
        self,
        candidates: Iterable[Person],
        day: CalendarDay,
        kind: ActivityKind,
        ctx: "SchedulingContext",
    ) -> List[Person]:
        """Sort by (holiday-group rank, cost, roster position)."""
        return sorted(
            candidates,
            key=lambda p: (
                self.holiday_rank(p, kind, ctx, day),
                self.cost(p, kind, ctx, day),
                self.roster.position(p.id),
            ),
        )

    def eligible_candidates(
        self,
        pool: Iterable[Person],
        day: CalendarDay,
        kind: ActivityKind,
        ctx: "SchedulingContext",
    ) -> Tuple[List[Person], Dict[str, str]]:
        """Split a pool into eligible people and {person_id: reason} for the rest."""
        eligible: List[Person] = []
        rejected: Dict[str, str] = {}
        for person in pool:
            verdict = self.is_eligible(person, day, kind, ctx)
            if verdict:
                eligible.append(person)
            else:
                rejected[person.id] = verdict.reason
        return eligible, rejected


# ---------------------------------------------------------------------------
# Post-hoc audit of a finished schedule
# ---------------------------------------------------------------------------

ActivityGrid = Dict[str, List[List[ActivityKind]]]   # person_id → per-day activity lists


class ConstraintChecker:
    """
    Audits a finished per-person, per-day activity grid.

    The engine should never produce any of these; the checker exists so a
    schedule edited by hand (or produced by another tool) can be validated
    with the same vocabulary.
    """

    def __init__(
        self,
        roster: Roster,
        double_call_used: Optional[Dict[str, int]] = None,
    ):
        self.roster = roster
        self.double_call_used = double_call_used or {}

    def check_vacation(self, grid: ActivityGrid) -> List[ConstraintViolation]:
        """No working activity on a vacation day."""
        violations = []
        for person in self.roster:
            for index, activities in enumerate(grid.get(person.id, [])):
                number = index + 1
                if number not in person.vacation_days:
                    continue
                working = [a for a in activities if a not in ABSENCE_KINDS]
                for activity in working:
                    violations.append(day_violation(
                        VACATION_ASSIGNMENT, number,
                        f"{person.name} is on vacation but was assigned {activity}",
                        person_id=person.id, activity=activity,
                    ))
        return violations

    def check_double_booking(self, grid: ActivityGrid) -> List[ConstraintViolation]:
        """At most one call-type activity per day beyond consumed double-call allowance."""
        violations = []
        for person in self.roster:
            doubles = 0
            for index, activities in enumerate(grid.get(person.id, [])):
                calls = [a for a in activities if a.is_call]
                if len(calls) == 2:
                    doubles += 1
                if len(calls) > 2 or (len(calls) == 2 and doubles > self.double_call_used.get(person.id, 0)):
                    violations.append(day_violation(
                        DOUBLE_BOOKING, index + 1,
                        f"{person.name} holds {', '.join(str(c) for c in calls)} on the same day",
                        person_id=person.id,
                    ))
        return violations

    def check_staff_qualification(self, grid: ActivityGrid) -> List[ConstraintViolation]:
        violations = []
        for person in self.roster:
            for index, activities in enumerate(grid.get(person.id, [])):
                for activity in activities:
                    if not activity.is_staff_call:
                        continue
                    if isinstance(person, Staff) and check_slot_qualification(person, activity):
                        continue
                    violations.append(day_violation(
                        SPECIALTY_MISMATCH, index + 1,
                        f"{person.name} assigned {activity} without the "
                        f"'{required_specialty(activity)}' specialty",
                        person_id=person.id, activity=activity,
                    ))
        return violations

    def check_all(self, grid: ActivityGrid) -> List[ConstraintViolation]:
        violations: List[ConstraintViolation] = []
        violations.extend(self.check_vacation(grid))
        violations.extend(self.check_double_booking(grid))
        violations.extend(self.check_staff_qualification(grid))
        return violations


# ---------------------------------------------------------------------------
# Structural validation (fatal, before any work)
# ---------------------------------------------------------------------------

def validate_roster(roster: Roster) -> List[str]:
    """
    Validate roster structure.

    Returns:
        warnings (strings); raises on errors
    """
    if not roster.residents:
        raise EmptyRosterError("Roster has no residents to schedule")

    ids = [p.id for p in roster.people]
    dupes = sorted({i for i in ids if ids.count(i) > 1})
    if dupes:
        raise ConfigurationError(f"Duplicate person ids in roster: {dupes}")

    warnings: List[str] = []
    for r in roster.residents:
        if not 1 <= r.level <= 7:
            raise ConfigurationError(f"{r.name}: PGY level {r.level} outside 1..7")
        if r.off_service_call_cap < 0 or (r.home_call_cap is not None and r.home_call_cap < 0):
            raise ConfigurationError(f"{r.name}: negative call cap")
        if r.double_call_allowance < 0:
            raise ConfigurationError(f"{r.name}: negative double-call allowance")
        if r.is_chief and not r.chief_or_days:
            warnings.append(f"{r.name}: chief with no reserved OR days")
    for s in roster.staff:
        if s.call_cap is not None and s.call_cap < 0:
            raise ConfigurationError(f"{s.name}: negative call cap")
        if not s.specialties:
            warnings.append(f"{s.name}: no specialty tags — cannot take staff call")
    return warnings


def validate_config(roster: Roster, config: ConstraintConfig) -> None:
    """Reject configurations that no roster could ever satisfy."""
    if config.holiday_group_policy not in HOLIDAY_GROUP_POLICIES:
        raise ConfigurationError(f"Unknown holiday_group_policy: {config.holiday_group_policy!r}")
    if config.chief_reserved_policy not in CHIEF_RESERVED_POLICIES:
        raise ConfigurationError(f"Unknown chief_reserved_policy: {config.chief_reserved_policy!r}")
    if config.backup_policy not in BACKUP_POLICIES:
        raise ConfigurationError(f"Unknown backup_policy: {config.backup_policy!r}")

    home = len(roster.home_residents)
    for key in ("min_daily_headcount", "min_daily_seniors", "min_block_headcount", "min_block_seniors"):
        value = getattr(config, key)
        if value < 0:
            raise ConfigurationError(f"{key} must be ≥ 0, got {value}")
        if value > home:
            raise ConfigurationError(
                f"{key}={value} exceeds the {home} home-service residents on the roster"
            )
    if config.min_daily_seniors > config.min_daily_headcount:
        raise ConfigurationError("min_daily_seniors exceeds min_daily_headcount")
    if config.min_block_seniors > config.min_block_headcount:
        raise ConfigurationError("min_block_seniors exceeds min_block_headcount")
    if config.max_consecutive_call_days is not None and config.max_consecutive_call_days < 1:
        raise ConfigurationError("max_consecutive_call_days must be ≥ 1")
    for name, (first, last) in config.timing_windows.items():
        if not 1 <= first <= last <= BLOCKS_PER_YEAR:
            raise ConfigurationError(f"Timing window '{name}' must lie within blocks 1..{BLOCKS_PER_YEAR}")
    for group, (first, last) in config.holiday_leave_windows.items():
        if last < first:
            raise ConfigurationError(f"Holiday leave window for '{group}' ends before it starts")
    for day_number, needed in config.clinic_days.items():
        if needed < 0:
            raise ConfigurationError(f"Clinic day {day_number} requires a negative resident count")
    for case in config.or_cases:
        if case.complexity not in OR_COMPLEXITIES:
            raise ConfigurationError(f"OR case on day {case.day} has unknown complexity {case.complexity!r}")
    for session in config.clinic_sessions:
        if session.clinic_type not in CLINIC_TYPES:
            raise ConfigurationError(f"Clinic on day {session.day} has unknown type {session.clinic_type!r}")
        if session.appointments < 0 or not 0 <= session.virtual_appointments <= session.appointments:
            raise ConfigurationError(
                f"Clinic on day {session.day}: {session.virtual_appointments} virtual of "
                f"{session.appointments} appointments is not a valid split"
            )


def validate_requests(
    roster: Roster,
    requests: Sequence[OffServiceRequest],
    config: ConstraintConfig,
) -> None:
    residents = {r.id: r for r in roster.home_residents}
    totals: Dict[str, int] = {}
    for req in requests:
        if req.resident_id not in residents:
            raise ConfigurationError(
                f"Off-service request for unknown home resident '{req.resident_id}'"
            )
        if req.rotation not in config.rotations:
            raise ConfigurationError(f"Off-service request for unknown rotation '{req.rotation}'")
        if req.rotation == config.home_service_name:
            raise ConfigurationError(f"'{req.rotation}' is the home service, not a rotation")
        if not 1 <= req.duration_blocks <= BLOCKS_PER_YEAR:
            raise ConfigurationError(
                f"Rotation '{req.rotation}' for '{req.resident_id}' has duration "
                f"{req.duration_blocks}; must be 1..{BLOCKS_PER_YEAR}"
            )
        if req.timing not in config.timing_windows:
            raise ConfigurationError(f"Unknown timing preference '{req.timing}'")
        totals[req.resident_id] = totals.get(req.resident_id, 0) + req.duration_blocks
    for resident_id, total in sorted(totals.items()):
        if total > BLOCKS_PER_YEAR:
            raise ConfigurationError(
                f"{residents[resident_id].name} has {total} off-service blocks requested; "
                f"the year has only {BLOCKS_PER_YEAR}"
            )


def validate_predefined_calls(
    roster: Roster,
    calls: Sequence[PredefinedCall],
    window_days: int,
) -> None:
    for call in calls:
        if call.person_id not in roster:
            raise ConfigurationError(f"Predefined call for unknown person '{call.person_id}'")
        if not 1 <= call.day <= window_days:
            raise ConfigurationError(
                f"Predefined call on day {call.day} lies outside the {window_days}-day window"
            )
        if not call.activity.is_call:
            raise ConfigurationError(f"Predefined activity {call.activity} is not a call")


def validate_inputs(
    roster: Roster,
    config: ConstraintConfig,
    window_days: int,
    requests: Sequence[OffServiceRequest] = (),
    predefined_calls: Sequence[PredefinedCall] = (),
) -> List[str]:
    """
    Run every structural check. Raises SchedulingInputError subclasses;
    returns non-fatal warnings for logging.
    """
    warnings = validate_roster(roster)
    validate_config(roster, config)
    validate_requests(roster, requests, config)
    validate_predefined_calls(roster, predefined_calls, window_days)
    for w in warnings:
        logger.warning(w)
    return warnings
