"""
engine.py — Daily Assignment Engine for the MediShift scheduling engine

Core algorithm: greedy, deterministic, day-by-day slot filling.

Passes:
  1. Vacation / holiday-leave markers
  2. Predefined calls (committed first, reported if they break a rule)
  3. For each day, in calendar order, for each slot:
       weekday:            Day Call, Night Call, [Backup], Cranial, Spine
       weekend / holiday:  Weekend Call,         [Backup], Cranial, Spine
     candidates = everyone passing ConstraintEvaluator.is_eligible()
     winner     = min by (holiday-group rank, fairness cost, roster position)
     commit → counters in the SchedulingContext update immediately
     no candidate → day-scoped violation, slot left empty, carry on
  4. Post-Call markers the day after Night / Weekend Call
  5. Daily coverage check (headcount and seniors on Mon–Thu)
  6. Booked OR cases (Mon–Fri), then chief OR days
  7. Clinic sessions by appointment volume, then clinic and academic days
  8. Pager Holder for the most junior resident with an empty day (optional)
  9. Remaining person-days → Neurosurgery (on service) or Off-Service

Day N's choices depend on the counters committed for days 1..N−1, so the
outer loop is strictly sequential. All running state lives in one
SchedulingContext per invocation; nothing is kept at module level.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from medishift.calendar_model import CalendarDay
from medishift.constraints import (
    CLINIC_UNDERSTAFFED,
    DAILY_HEADCOUNT,
    DAILY_SENIOR_COVERAGE,
    INSUFFICIENT_BACKUP,
    OR_CASE_UNSTAFFED,
    POST_CALL_CONFLICT,
    PREDEFINED_CALL_INELIGIBLE,
    UNFILLED_SLOT,
    ConstraintEvaluator,
    ConstraintViolation,
    DailyCallLimitRule,
    day_violation,
)
from medishift.models import (
    ABSENCE_KINDS,
    OVERNIGHT_CALL_KINDS,
    PRIMARY_CALL_KINDS,
    ActivityAssignment,
    ActivityKind,
    Person,
    PredefinedCall,
    Resident,
    Roster,
    sort_assignments,
)
from medishift.schedule_config import (
    CLINIC_HIGH_VOLUME,
    CLINIC_JUNIOR_MAX_LEVEL,
    CLINIC_LOW_VOLUME,
    CLINIC_SENIOR_MIN_LEVEL,
    CLOSED_WEEKDAYS,
    OR_CASE_TEAM_SIZE,
    OR_JUNIOR_MAX_LEVEL,
    OR_LEAD_LEVEL,
    OR_PAIR_GAP,
    OR_SENIOR_LEVEL,
    WEEKDAY_PRIMARY_SLOTS,
    WEEKEND_PRIMARY_SLOTS,
    ConstraintConfig,
)
from medishift.skills import required_specialty

logger = logging.getLogger(__name__)

# Type alias
ActivityGrid = Dict[str, List[List[ActivityKind]]]   # person_id → per-day activity lists


# ---------------------------------------------------------------------------
# Running state
# ---------------------------------------------------------------------------

class SchedulingContext:
    """
    Counters and committed activities for one engine invocation.

    Every commit goes through commit()/mark() so the counters the evaluator
    reads are always consistent with the activities recorded so far.
    """

    def __init__(self, roster: Roster, calendar: Sequence[CalendarDay]):
        self.roster = roster
        self.calendar = list(calendar)
        self.activities: Dict[str, Dict[int, List[ActivityKind]]] = {p.id: {} for p in roster}
        self.slot_holders: Dict[int, Dict[ActivityKind, str]] = {}

        self.call_counts: Dict[str, int] = {p.id: 0 for p in roster}
        self.backup_counts: Dict[str, int] = {p.id: 0 for p in roster}
        self.weekend_counts: Dict[str, int] = {p.id: 0 for p in roster}
        self.call_day_sets: Dict[str, Set[int]] = {p.id: set() for p in roster}
        self.double_call_left: Dict[str, int] = {p.id: p.double_call_allowance for p in roster}
        self.holiday_group_counts: Dict[str, int] = {
            p.group: 0 for p in roster.residents if p.group is not None
        }
        self._credited_holidays: Set[Tuple[str, int]] = set()

    # -----------------------------------------------------------------------
    # Queries (read by ConstraintEvaluator)
    # -----------------------------------------------------------------------

    def activities_on(self, person_id: str, day: int) -> List[ActivityKind]:
        return self.activities[person_id].get(day, [])

    def calls_on(self, person_id: str, day: int) -> List[ActivityKind]:
        return [a for a in self.activities_on(person_id, day) if a.is_call]

    def holder(self, day: int, kind: ActivityKind) -> Optional[str]:
        return self.slot_holders.get(day, {}).get(kind)

    def backup_on(self, day: int) -> Optional[str]:
        return self.holder(day, ActivityKind.BACKUP)

    def call_count(self, person_id: str) -> int:
        """Primary calls for residents, staff calls for staff. Backup never counts."""
        return self.call_counts[person_id]

    def backup_count(self, person_id: str) -> int:
        return self.backup_counts[person_id]

    def weekend_call_count(self, person_id: str) -> int:
        return self.weekend_counts[person_id]

    def double_call_remaining(self, person_id: str) -> int:
        return self.double_call_left[person_id]

    def holiday_group_count(self, group: str) -> int:
        return self.holiday_group_counts.get(group, 0)

    def last_call_day(self, person_id: str, before: int) -> Optional[int]:
        earlier = [d for d in self.call_day_sets[person_id] if d < before]
        return max(earlier) if earlier else None

    def call_streak_before(self, person_id: str, day: int) -> int:
        """Number of consecutive call days ending the day before `day`."""
        days = self.call_day_sets[person_id]
        streak = 0
        d = day - 1
        while d in days:
            streak += 1
            d -= 1
        return streak

    def had_overnight_call(self, person_id: str, day: int) -> bool:
        return any(a in OVERNIGHT_CALL_KINDS for a in self.activities_on(person_id, day))

    def is_post_call(self, person_id: str, day: int) -> bool:
        return ActivityKind.POST_CALL in self.activities_on(person_id, day)

    def is_absent(self, person_id: str, day: int) -> bool:
        return any(a in ABSENCE_KINDS for a in self.activities_on(person_id, day))

    # -----------------------------------------------------------------------
    # Mutation
    # -----------------------------------------------------------------------

    def mark(self, person_id: str, day: int, kind: ActivityKind) -> None:
        """Record a non-call activity (marker)."""
        day_list = self.activities[person_id].setdefault(day, [])
        if kind not in day_list:
            day_list.append(kind)

    def commit(self, person: Person, day: CalendarDay, kind: ActivityKind) -> None:
        """Record a call-type activity and update every counter in one step."""
        pid = person.id
        if self.calls_on(pid, day.number) and self.double_call_left[pid] > 0:
            self.double_call_left[pid] -= 1

        self.activities[pid].setdefault(day.number, []).append(kind)
        self.slot_holders.setdefault(day.number, {})[kind] = pid

        if kind is ActivityKind.BACKUP:
            self.backup_counts[pid] += 1
        else:
            self.call_counts[pid] += 1
            self.call_day_sets[pid].add(day.number)
            if kind in PRIMARY_CALL_KINDS and day.uses_weekend_call:
                self.weekend_counts[pid] += 1

        if kind in PRIMARY_CALL_KINDS and day.is_major_holiday:
            group = person.group
            if group is not None and (group, day.number) not in self._credited_holidays:
                self._credited_holidays.add((group, day.number))
                self.holiday_group_counts[group] = self.holiday_group_counts.get(group, 0) + 1

        logger.debug(f"Day {day.number} {kind} → {person.name}")

    # -----------------------------------------------------------------------
    # Export
    # -----------------------------------------------------------------------

    def to_assignments(self) -> List[ActivityAssignment]:
        out = [
            ActivityAssignment(pid, day, kind)
            for pid, days in self.activities.items()
            for day, kinds in days.items()
            for kind in kinds
        ]
        return sort_assignments(out, self.roster)


@dataclass
class DailyResult:
    assignments: List[ActivityAssignment]
    violations: List[ConstraintViolation]
    double_call_remaining: Dict[str, int]
    holiday_group_counts: Dict[str, int]
    call_counts: Dict[str, int] = field(default_factory=dict)
    unfilled: int = 0

    def grid(self, roster: Roster, num_days: int) -> ActivityGrid:
        return build_activity_grid(self.assignments, roster, num_days)


def build_activity_grid(
    assignments: Iterable[ActivityAssignment],
    roster: Roster,
    num_days: int,
) -> ActivityGrid:
    """Person id → list (index = day number − 1) of that day's activities."""
    grid: ActivityGrid = {p.id: [[] for _ in range(num_days)] for p in roster}
    for a in assignments:
        grid[a.person_id][a.day - 1].append(a.activity)
    return grid


# ---------------------------------------------------------------------------
# Core: single slot assignment
# ---------------------------------------------------------------------------

def _fill_slot(
    evaluator: ConstraintEvaluator,
    ctx: SchedulingContext,
    pool: Sequence[Person],
    day: CalendarDay,
    kind: ActivityKind,
    violations: List[ConstraintViolation],
) -> Optional[Person]:
    """
    Pick and commit the best eligible person for one slot.

    Returns the committed person, or None (after recording a violation).
    """
    existing = ctx.holder(day.number, kind)
    if existing is not None:
        return evaluator.roster.get(existing)

    eligible, rejected = evaluator.eligible_candidates(pool, day, kind, ctx)
    if not eligible:
        tag = required_specialty(kind)
        who = f"{tag} staff" if tag else "resident"
        violation_type = INSUFFICIENT_BACKUP if kind is ActivityKind.BACKUP else UNFILLED_SLOT
        violations.append(day_violation(
            violation_type, day.number,
            f"no eligible {who} for {kind}",
            activity=kind,
            rejected=rejected,
        ))
        logger.warning(f"Could not fill {kind} on day {day.number} ({day.date.isoformat()})")
        return None

    best = evaluator.rank_candidates(eligible, day, kind, ctx)[0]
    ctx.commit(best, day, kind)
    return best


def _apply_absence_markers(
    roster: Roster,
    calendar: Sequence[CalendarDay],
    evaluator: ConstraintEvaluator,
    ctx: SchedulingContext,
) -> None:
    for person in roster:
        leave = evaluator.holiday_leave_days(person)
        for day in calendar:
            if day.number in person.vacation_days:
                ctx.mark(person.id, day.number, ActivityKind.VACATION)
            elif day.number in leave:
                ctx.mark(person.id, day.number, ActivityKind.HOLIDAY)


def _apply_predefined_calls(
    predefined_calls: Sequence[PredefinedCall],
    calendar: Sequence[CalendarDay],
    evaluator: ConstraintEvaluator,
    ctx: SchedulingContext,
    violations: List[ConstraintViolation],
) -> int:
    """
    Commit calls fixed before the run. A call that breaks a rule is still
    committed (the program asked for it) and reported, except on vacation
    days, already-filled slots and a second call the daily limit forbids,
    which are reported and skipped.
    """
    committed = 0
    for call in predefined_calls:
        person = evaluator.roster.get(call.person_id)
        day = calendar[call.day - 1]
        holder = ctx.holder(day.number, call.activity)
        if holder is not None:
            violations.append(day_violation(
                PREDEFINED_CALL_INELIGIBLE, day.number,
                f"predefined {call.activity} for {person.name} ignored; slot already held by {holder}",
                person_id=person.id, activity=call.activity,
            ))
            continue

        verdict = evaluator.is_eligible(person, day, call.activity, ctx)
        if not verdict:
            violations.append(day_violation(
                PREDEFINED_CALL_INELIGIBLE, day.number,
                f"predefined {call.activity} for {person.name} breaks {verdict.rule}: {verdict.reason}",
                person_id=person.id, activity=call.activity,
            ))
            if evaluator.is_absent(person, day) or verdict.rule == DailyCallLimitRule.name:
                logger.warning(f"Skipping predefined {call.activity} on day {day.number}: {verdict.reason}")
                continue
        ctx.commit(person, day, call.activity)
        committed += 1
    return committed


def _assign_calls_for_day(
    day: CalendarDay,
    evaluator: ConstraintEvaluator,
    ctx: SchedulingContext,
    violations: List[ConstraintViolation],
) -> None:
    roster = evaluator.roster
    config = evaluator.config
    primaries = WEEKEND_PRIMARY_SLOTS if day.uses_weekend_call else WEEKDAY_PRIMARY_SLOTS

    backup_done = False
    for kind in primaries:
        holder = _fill_slot(evaluator, ctx, roster.residents, day, kind, violations)
        if backup_done or holder is None:
            continue
        if isinstance(holder, Resident) and holder.needs_supervision:
            _fill_slot(evaluator, ctx, roster.residents, day, ActivityKind.BACKUP, violations)
            backup_done = True

    if not backup_done and config.backup_policy == "always":
        _fill_slot(evaluator, ctx, roster.residents, day, ActivityKind.BACKUP, violations)

    for kind in config.staff_call_kinds:
        _fill_slot(evaluator, ctx, roster.staff, day, kind, violations)


def _apply_post_call(
    roster: Roster,
    calendar: Sequence[CalendarDay],
    ctx: SchedulingContext,
    violations: List[ConstraintViolation],
) -> None:
    last = len(calendar)
    for person in roster.residents:
        for day in calendar:
            if day.number == last or not ctx.had_overnight_call(person.id, day.number):
                continue
            nxt = day.number + 1
            if ctx.is_absent(person.id, nxt):
                continue
            conflicts = ctx.calls_on(person.id, nxt)
            for kind in conflicts:
                violations.append(day_violation(
                    POST_CALL_CONFLICT, nxt,
                    f"{person.name} is post-call but holds {kind}",
                    person_id=person.id, activity=kind,
                ))
            ctx.mark(person.id, nxt, ActivityKind.POST_CALL)


def _is_free_for_daytime(ctx: SchedulingContext, person_id: str, day: int) -> bool:
    return not (
        ctx.is_absent(person_id, day)
        or ctx.is_post_call(person_id, day)
        or any(a in PRIMARY_CALL_KINDS for a in ctx.activities_on(person_id, day))
    )


def _check_daily_coverage(
    calendar: Sequence[CalendarDay],
    evaluator: ConstraintEvaluator,
    ctx: SchedulingContext,
    violations: List[ConstraintViolation],
) -> None:
    config = evaluator.config
    for day in calendar:
        if day.is_holiday or day.weekday not in config.coverage_check_weekdays:
            continue
        available = [
            r for r in evaluator.roster.home_residents
            if evaluator.is_on_home_service(r, day)
            and not ctx.is_absent(r.id, day.number)
            and not ctx.is_post_call(r.id, day.number)
        ]
        if len(available) < config.min_daily_headcount:
            violations.append(day_violation(
                DAILY_HEADCOUNT, day.number,
                f"only {len(available)} residents available on service, "
                f"below the minimum of {config.min_daily_headcount}",
            ))
        seniors = [r for r in available if evaluator.is_senior(r, config.daily_senior_level)]
        if len(seniors) < config.min_daily_seniors:
            violations.append(day_violation(
                DAILY_SENIOR_COVERAGE, day.number,
                f"only {len(seniors)} residents of PGY-{config.daily_senior_level}+ available, "
                f"below the minimum of {config.min_daily_seniors}",
            ))


def _assign_chief_or_days(
    calendar: Sequence[CalendarDay],
    evaluator: ConstraintEvaluator,
    ctx: SchedulingContext,
) -> None:
    compatible = evaluator.config.chief_compatible_kinds
    for chief in (r for r in evaluator.roster.residents if r.is_chief):
        for number in sorted(chief.chief_or_days):
            if not 1 <= number <= len(calendar):
                continue
            if ctx.is_absent(chief.id, number) or ctx.is_post_call(chief.id, number):
                continue
            blocking = [k for k in ctx.calls_on(chief.id, number) if k not in compatible]
            if blocking:
                continue
            ctx.mark(chief.id, number, ActivityKind.OR)


def _is_free_for_or(
    evaluator: ConstraintEvaluator,
    ctx: SchedulingContext,
    person: Resident,
    day: CalendarDay,
) -> bool:
    return (
        evaluator.is_on_home_service(person, day)
        and _is_free_for_daytime(ctx, person.id, day.number)
        and ActivityKind.OR not in ctx.activities_on(person.id, day.number)
    )


def _assign_or_cases(
    calendar: Sequence[CalendarDay],
    evaluator: ConstraintEvaluator,
    ctx: SchedulingContext,
    violations: List[ConstraintViolation],
) -> None:
    """
    Staff each booked OR case with up to two residents, most senior first.

    A complex case takes a PGY-4+ lead. Whenever a PGY-3+ is in the case the
    second seat goes to a PGY-1/2 at least two levels below; otherwise the
    two most senior free residents operate. One case per resident per day.
    """
    roster = evaluator.roster
    for case in evaluator.config.or_cases:
        if not 1 <= case.day <= len(calendar):
            continue
        day = calendar[case.day - 1]
        if day.weekday in CLOSED_WEEKDAYS:
            continue
        candidates = sorted(
            (r for r in roster.residents if _is_free_for_or(evaluator, ctx, r, day)),
            key=lambda r: (-r.level, roster.position(r.id)),
        )

        team: List[Resident] = []
        if case.is_complex:
            lead = next((r for r in candidates if r.level >= OR_LEAD_LEVEL), None)
            if lead is not None:
                team.append(lead)
        senior = next((r for r in team if r.level >= OR_SENIOR_LEVEL), None)
        if senior is not None:
            junior = next(
                (
                    r for r in candidates
                    if r.level <= OR_JUNIOR_MAX_LEVEL and senior.level - r.level >= OR_PAIR_GAP
                ),
                None,
            )
            if junior is not None:
                team.append(junior)
        else:
            team.extend(candidates[:OR_CASE_TEAM_SIZE])

        for r in team:
            ctx.mark(r.id, day.number, ActivityKind.OR)

        label = f"{case.complexity} OR case"
        if case.procedure:
            label += f" ({case.procedure})"
        if not team:
            violations.append(day_violation(
                OR_CASE_UNSTAFFED, day.number, f"no free resident for the {label}",
            ))
            logger.warning(f"Could not staff {label} on day {day.number}")
        elif case.is_complex and not any(r.level >= OR_LEAD_LEVEL for r in team):
            violations.append(day_violation(
                OR_CASE_UNSTAFFED, day.number,
                f"no PGY-{OR_LEAD_LEVEL}+ resident free to lead the {label}",
            ))


def _assign_clinic_sessions(
    calendar: Sequence[CalendarDay],
    evaluator: ConstraintEvaluator,
    ctx: SchedulingContext,
    violations: List[ConstraintViolation],
) -> None:
    """
    Staff clinics from their in-person volume.

    Low-volume clinics take one floating resident if there is one. Otherwise
    one resident (two for a busy clinic) is drawn from the free juniors, most
    junior first, then from the floating seniors.
    """
    roster = evaluator.roster
    for session in evaluator.config.clinic_sessions:
        if not 1 <= session.day <= len(calendar):
            continue
        day = calendar[session.day - 1]
        if day.weekday in CLOSED_WEEKDAYS:
            continue
        number = day.number
        on_service = [r for r in roster.residents if evaluator.is_on_home_service(r, day)]
        floating = [r for r in on_service if not ctx.activities_on(r.id, number)]
        physical = session.physical_appointments

        if physical < CLINIC_LOW_VOLUME:
            if floating:
                ctx.mark(floating[0].id, number, ActivityKind.CLINIC)
            continue

        needed = 2 if physical > CLINIC_HIGH_VOLUME else 1
        juniors = sorted(
            (
                r for r in on_service
                if r.level <= CLINIC_JUNIOR_MAX_LEVEL
                and _is_free_for_daytime(ctx, r.id, number)
                and not {ActivityKind.OR, ActivityKind.CLINIC} & set(ctx.activities_on(r.id, number))
            ),
            key=lambda r: (r.level, roster.position(r.id)),
        )
        seniors = sorted(
            (r for r in floating if r.level >= CLINIC_SENIOR_MIN_LEVEL),
            key=lambda r: (r.level, roster.position(r.id)),
        )
        chosen = (juniors + seniors)[:needed]
        for r in chosen:
            ctx.mark(r.id, number, ActivityKind.CLINIC)
        if len(chosen) < needed:
            violations.append(day_violation(
                CLINIC_UNDERSTAFFED, number,
                f"{session.clinic_type} clinic with {physical} in-person appointments needs "
                f"{needed} residents but only {len(chosen)} are available",
            ))


def _assign_clinic_and_academic(
    calendar: Sequence[CalendarDay],
    evaluator: ConstraintEvaluator,
    ctx: SchedulingContext,
    violations: List[ConstraintViolation],
) -> None:
    config = evaluator.config
    roster = evaluator.roster

    for number, needed in sorted(config.clinic_days.items()):
        if not 1 <= number <= len(calendar) or needed <= 0:
            continue
        day = calendar[number - 1]
        pool = [
            r for r in roster.home_residents
            if evaluator.is_on_home_service(r, day)
            and _is_free_for_daytime(ctx, r.id, number)
            and not {ActivityKind.OR, ActivityKind.CLINIC} & set(ctx.activities_on(r.id, number))
        ]
        # Juniors first; among equals, people with nothing else that day first
        pool.sort(key=lambda r: (
            r.level,
            bool(ctx.activities_on(r.id, number)),
            roster.position(r.id),
        ))
        chosen = pool[:needed]
        for r in chosen:
            ctx.mark(r.id, number, ActivityKind.CLINIC)
        if len(chosen) < needed:
            violations.append(day_violation(
                CLINIC_UNDERSTAFFED, number,
                f"clinic needs {needed} residents but only {len(chosen)} are available",
            ))

    for number in sorted(set(config.academic_days)):
        if not 1 <= number <= len(calendar):
            continue
        day = calendar[number - 1]
        for r in roster.residents:
            if evaluator.is_on_home_service(r, day) and _is_free_for_daytime(ctx, r.id, number):
                ctx.mark(r.id, number, ActivityKind.ACADEMIC_EVENT)


def _assign_pager_holder(
    calendar: Sequence[CalendarDay],
    evaluator: ConstraintEvaluator,
    ctx: SchedulingContext,
) -> None:
    roster = evaluator.roster
    for day in calendar:
        number = day.number
        candidates = sorted(
            (
                r for r in roster.residents
                if evaluator.is_on_home_service(r, day)
                and not r.exempt_from_call
                and not ctx.activities_on(r.id, number)
            ),
            key=lambda r: (r.level, roster.position(r.id)),
        )
        if not candidates:
            continue
        holder = candidates[0]
        senior_operating = any(
            r.level >= OR_SENIOR_LEVEL and ActivityKind.OR in ctx.activities_on(r.id, number)
            for r in roster.residents
        )
        # A free PGY-1/2 scrubs in with the operating senior instead
        if senior_operating and holder.level <= OR_JUNIOR_MAX_LEVEL:
            ctx.mark(holder.id, number, ActivityKind.OR)
        else:
            ctx.mark(holder.id, number, ActivityKind.PAGER_HOLDER)


def _fill_service_days(
    calendar: Sequence[CalendarDay],
    evaluator: ConstraintEvaluator,
    ctx: SchedulingContext,
) -> None:
    for r in evaluator.roster.residents:
        for day in calendar:
            if ctx.activities_on(r.id, day.number):
                continue
            if evaluator.is_on_home_service(r, day):
                ctx.mark(r.id, day.number, ActivityKind.NEUROSURGERY)
            else:
                ctx.mark(r.id, day.number, ActivityKind.OFF_SERVICE)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def assign_daily_schedule(
    roster: Roster,
    calendar: Sequence[CalendarDay],
    config: ConstraintConfig,
    evaluator: Optional[ConstraintEvaluator] = None,
    predefined_calls: Sequence[PredefinedCall] = (),
    rotation_plan: Optional[Any] = None,
) -> DailyResult:
    """
    Produce the per-person, per-day activity calendar for one window.

    Args:
        roster:            Residents and staff (order = tie-break).
        calendar:          Output of build_calendar().
        config:            ConstraintConfig.
        evaluator:         Pre-built evaluator (built from the other args if None).
        predefined_calls:  Calls fixed before the run (validated by the caller).
        rotation_plan:     RotationPlan deciding who is on home service per block.

    Returns:
        DailyResult with sorted assignments and day-scoped violations.
    """
    if evaluator is None:
        evaluator = ConstraintEvaluator(roster, calendar, config, rotation_plan)

    ctx = SchedulingContext(roster, calendar)
    violations: List[ConstraintViolation] = []

    _apply_absence_markers(roster, calendar, evaluator, ctx)
    fixed = _apply_predefined_calls(predefined_calls, calendar, evaluator, ctx, violations)
    if predefined_calls:
        logger.info(f"Predefined calls committed: {fixed}/{len(predefined_calls)}")

    for day in calendar:
        _assign_calls_for_day(day, evaluator, ctx, violations)

    if config.post_call_rest:
        _apply_post_call(roster, calendar, ctx, violations)
    _check_daily_coverage(calendar, evaluator, ctx, violations)
    _assign_or_cases(calendar, evaluator, ctx, violations)
    _assign_chief_or_days(calendar, evaluator, ctx)
    _assign_clinic_sessions(calendar, evaluator, ctx, violations)
    _assign_clinic_and_academic(calendar, evaluator, ctx, violations)
    if config.assign_pager_holder:
        _assign_pager_holder(calendar, evaluator, ctx)
    _fill_service_days(calendar, evaluator, ctx)

    unfilled = sum(1 for v in violations if v.constraint_type in (UNFILLED_SLOT, INSUFFICIENT_BACKUP))
    logger.info(
        f"Daily schedule: {len(calendar)} days, "
        f"{sum(ctx.call_counts.values())} calls, {sum(ctx.backup_counts.values())} backups, "
        f"{unfilled} unfilled slots, {len(violations)} violations"
    )

    # Python's sort is stable: same-day violations keep their discovery order
    violations.sort(key=lambda v: v.scope.index)

    return DailyResult(
        assignments=ctx.to_assignments(),
        violations=violations,
        double_call_remaining=dict(ctx.double_call_left),
        holiday_group_counts=dict(ctx.holiday_group_counts),
        call_counts=dict(ctx.call_counts),
        unfilled=unfilled,
    )


# ---------------------------------------------------------------------------
# Fairness Metrics
# ---------------------------------------------------------------------------

def _spread(values: List[float]) -> Dict[str, float]:
    mean_val = sum(values) / len(values) if values else 0.0
    variance = sum((v - mean_val) ** 2 for v in values) / len(values) if values else 0.0
    std_val = math.sqrt(variance)
    cv = (std_val / mean_val * 100) if mean_val > 0 else 0.0
    return {
        "mean": mean_val,
        "std": std_val,
        "cv": cv,
        "min": min(values) if values else 0,
        "max": max(values) if values else 0,
    }


def calculate_fairness_metrics(
    assignments: Iterable[ActivityAssignment],
    roster: Roster,
    calendar: Sequence[CalendarDay],
    unfilled: int = 0,
) -> Dict[str, Any]:
    """
    Calculate per-person call counts and their spread.

    Spread statistics cover home-program residents only; visiting residents
    and staff are counted but excluded from the mean/CV.

    Returns:
        {
          mean, std, cv, min, max,          (primary calls, home residents)
          counts:          {person_id: primary/staff calls},
          weekend_counts:  {person_id: weekend calls},
          backup_counts:   {person_id: backups},
          per_activity:    {activity: {person_id: int}},
          staff:           {mean, std, cv, min, max} over staff calls,
          unfilled:        int,
        }
    """
    weekend_numbers = {d.number for d in calendar if d.uses_weekend_call}
    counts: Dict[str, int] = {p.id: 0 for p in roster}
    weekend_counts: Dict[str, int] = {p.id: 0 for p in roster}
    backup_counts: Dict[str, int] = {p.id: 0 for p in roster}
    per_activity: Dict[str, Dict[str, int]] = {}

    for a in assignments:
        if a.person_id not in counts:
            # Not on the current roster
            continue
        name = str(a.activity)
        per_activity.setdefault(name, {p.id: 0 for p in roster})
        per_activity[name][a.person_id] += 1
        if a.activity is ActivityKind.BACKUP:
            backup_counts[a.person_id] += 1
        elif a.activity.is_call:
            counts[a.person_id] += 1
            if a.activity in PRIMARY_CALL_KINDS and a.day in weekend_numbers:
                weekend_counts[a.person_id] += 1

    home_ids = [r.id for r in roster.home_residents]
    metrics = _spread([float(counts[i]) for i in home_ids])
    weekend_spread = _spread([float(weekend_counts[i]) for i in home_ids])
    metrics.update({
        "counts": counts,
        "weekend_counts": weekend_counts,
        "weekend_cv": weekend_spread["cv"],
        "backup_counts": backup_counts,
        "per_activity": per_activity,
        "staff": _spread([float(counts[s.id]) for s in roster.staff]),
        "unfilled": unfilled,
    })
    return metrics
