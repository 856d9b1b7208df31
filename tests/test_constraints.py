"""
Tests for the constraint evaluator (eligibility rules, fairness cost, ranking),
the post-hoc ConstraintChecker and structural input validation
"""

import sys
from datetime import date
from pathlib import Path

import pytest

# Add project root
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from medishift.calendar_model import build_calendar
from medishift.constraints import (
    DOUBLE_BOOKING,
    SPECIALTY_MISMATCH,
    UNGROUPED_HOLIDAY_RANK,
    VACATION_ASSIGNMENT,
    ConstraintChecker,
    ConstraintEvaluator,
    validate_inputs,
)
from medishift.engine import SchedulingContext
from medishift.errors import ConfigurationError, EmptyRosterError
from medishift.models import (
    ActivityKind,
    ClinicSession,
    OffServiceRequest,
    OrCase,
    PredefinedCall,
    Resident,
    Roster,
    Staff,
)
from medishift.schedule_config import ConstraintConfig

JULY = build_calendar(date(2025, 7, 1), date(2025, 7, 31))
RELAXED = ConstraintConfig(
    min_daily_headcount=0, min_daily_seniors=0,
    min_block_headcount=0, min_block_seniors=0,
)


def _setup(residents, staff=(), config=None, calendar=JULY):
    roster = Roster(residents=tuple(residents), staff=tuple(staff))
    config = config or ConstraintConfig()
    evaluator = ConstraintEvaluator(roster, calendar, config)
    ctx = SchedulingContext(roster, calendar)
    return roster, evaluator, ctx


# ---------------------------------------------------------------------------
# Eligibility rules
# ---------------------------------------------------------------------------

class TestEligibilityRules:
    """Each rule in isolation, plus rule ordering"""

    def test_fresh_resident_eligible(self):
        r = Resident("R1", "Alex", 3)
        _, ev, ctx = _setup([r])
        assert ev.is_eligible(r, JULY[0], ActivityKind.DAY_CALL, ctx)

    def test_vacation_day_ineligible(self):
        """Vacation days 10–15: day 12 is ineligible for any call"""
        r = Resident("R1", "Alex", 4, vacation_days=frozenset(range(10, 16)), can_be_backup=True)
        _, ev, ctx = _setup([r])
        day12 = JULY[11]
        for kind in (ActivityKind.DAY_CALL, ActivityKind.NIGHT_CALL, ActivityKind.BACKUP):
            verdict = ev.is_eligible(r, day12, kind, ctx)
            assert not verdict
            assert verdict.rule == "VACATION"
        assert ev.is_eligible(r, JULY[15], ActivityKind.DAY_CALL, ctx)

    def test_holiday_leave_window(self):
        config = ConstraintConfig(holiday_leave_windows={"christmas": (date(2025, 7, 3), date(2025, 7, 4))})
        r = Resident("R1", "Alex", 3, holiday_group="christmas")
        other = Resident("R2", "Blair", 3, holiday_group="new_year")
        _, ev, ctx = _setup([r, other], config=config)
        assert ev.is_eligible(r, JULY[2], ActivityKind.DAY_CALL, ctx).rule == "VACATION"
        assert ev.is_eligible(other, JULY[2], ActivityKind.DAY_CALL, ctx)

    def test_staff_cannot_take_resident_slot(self):
        s = Staff("S1", "Dr. Harper", frozenset({"cranial"}))
        r = Resident("R1", "Alex", 3)
        _, ev, ctx = _setup([r], [s])
        assert ev.is_eligible(s, JULY[0], ActivityKind.NIGHT_CALL, ctx).rule == "SLOT_ROLE"
        assert ev.is_eligible(r, JULY[0], ActivityKind.CRANIAL_STAFF_CALL, ctx).rule == "SLOT_ROLE"

    def test_staff_specialty_match(self):
        cranial = Staff("S1", "Dr. Harper", frozenset({"Cranial"}))
        r = Resident("R1", "Alex", 3)
        _, ev, ctx = _setup([r], [cranial])
        assert ev.is_eligible(cranial, JULY[0], ActivityKind.CRANIAL_STAFF_CALL, ctx)
        verdict = ev.is_eligible(cranial, JULY[0], ActivityKind.SPINE_STAFF_CALL, ctx)
        assert verdict.rule == "SLOT_ROLE"
        assert "spine" in verdict.reason

    def test_off_service_rotation_without_call(self):
        r = Resident("R1", "Alex", 3, on_service=False, off_service_rotation="Neuroradiology")
        _, ev, ctx = _setup([r])
        assert ev.is_eligible(r, JULY[0], ActivityKind.DAY_CALL, ctx).rule == "ON_SERVICE"

    def test_off_service_rotation_with_call(self):
        r = Resident("R1", "Alex", 3, on_service=False, off_service_rotation="Plastics")
        _, ev, ctx = _setup([r])
        assert ev.is_eligible(r, JULY[0], ActivityKind.DAY_CALL, ctx)

    def test_rule_order_first_failure_wins(self):
        """Off-service (rule 1) is reported before vacation (rule 2)"""
        r = Resident("R1", "Alex", 3, on_service=False, off_service_rotation="Research",
                     vacation_days=frozenset({1}))
        _, ev, ctx = _setup([r])
        assert ev.is_eligible(r, JULY[0], ActivityKind.DAY_CALL, ctx).rule == "ON_SERVICE"

    def test_call_cap(self):
        r = Resident("R1", "Alex", 3, home_call_cap=1)
        _, ev, ctx = _setup([r])
        ctx.commit(r, JULY[0], ActivityKind.DAY_CALL)
        assert ev.is_eligible(r, JULY[4], ActivityKind.DAY_CALL, ctx).rule == "CALL_CAP"

    def test_call_cap_table_uses_available_days(self):
        """31 days → 8 calls; 21 available days → 5 calls"""
        full = Resident("R1", "Alex", 3)
        away = Resident("R2", "Blair", 3, vacation_days=frozenset(range(1, 11)))
        _, ev, _ = _setup([full, away])
        assert ev.call_cap(full, JULY[0]) == 8
        assert ev.call_cap(away, JULY[20]) == 5

    def test_off_service_cap(self):
        r = Resident("R1", "Alex", 3, on_service=False, off_service_rotation="Plastics",
                     off_service_call_cap=2)
        _, ev, _ = _setup([r])
        assert ev.call_cap(r, JULY[0]) == 2

    def test_backup_does_not_count_toward_cap(self):
        r = Resident("R1", "Alex", 4, home_call_cap=1, can_be_backup=True)
        _, ev, ctx = _setup([r])
        ctx.commit(r, JULY[0], ActivityKind.BACKUP)
        assert ctx.call_count("R1") == 0
        assert ev.is_eligible(r, JULY[2], ActivityKind.DAY_CALL, ctx)

    def test_one_call_per_day(self):
        r = Resident("R1", "Alex", 3)
        _, ev, ctx = _setup([r])
        ctx.commit(r, JULY[2], ActivityKind.DAY_CALL)
        assert ev.is_eligible(r, JULY[2], ActivityKind.NIGHT_CALL, ctx).rule == "DAILY_LIMIT"

    def test_double_call_allowance(self):
        config = ConstraintConfig(allow_double_call=True)
        r = Resident("R1", "Alex", 3, double_call_allowance=1)
        plain = Resident("R2", "Blair", 3)
        _, ev, ctx = _setup([r, plain], config=config)
        ctx.commit(r, JULY[2], ActivityKind.DAY_CALL)
        ctx.commit(plain, JULY[2], ActivityKind.DAY_CALL)
        assert ev.is_eligible(r, JULY[2], ActivityKind.NIGHT_CALL, ctx)
        assert ev.is_eligible(plain, JULY[2], ActivityKind.NIGHT_CALL, ctx).rule == "DAILY_LIMIT"

    def test_pgy1_needs_backup(self):
        intern = Resident("R1", "Intern", 1)
        junior = Resident("R2", "Junior", 2)
        _, ev, ctx = _setup([intern, junior])
        assert ev.is_eligible(intern, JULY[0], ActivityKind.NIGHT_CALL, ctx).rule == "SUPERVISION"

    def test_pgy1_with_senior_available(self):
        intern = Resident("R1", "Intern", 1)
        senior = Resident("R2", "Senior", 5, can_be_backup=True)
        _, ev, ctx = _setup([intern, senior])
        assert ev.is_eligible(intern, JULY[0], ActivityKind.NIGHT_CALL, ctx)

    def test_pgy1_solo_flag(self):
        intern = Resident("R1", "Intern", 1, allow_solo_pgy1_call=True)
        _, ev, ctx = _setup([intern])
        assert ev.is_eligible(intern, JULY[0], ActivityKind.NIGHT_CALL, ctx)

    def test_backup_requirements(self):
        senior = Resident("R1", "Senior", 4, can_be_backup=True)
        unflagged = Resident("R2", "Unflagged", 5)
        junior = Resident("R3", "Junior", 2, can_be_backup=True)
        visitor = Resident("R4", "Visitor", 5, can_be_backup=True, visiting=True)
        _, ev, ctx = _setup([senior, unflagged, junior, visitor])
        day = JULY[0]
        assert ev.is_eligible(senior, day, ActivityKind.BACKUP, ctx)
        assert ev.is_eligible(unflagged, day, ActivityKind.BACKUP, ctx).rule == "BACKUP"
        assert ev.is_eligible(junior, day, ActivityKind.BACKUP, ctx).rule == "BACKUP"
        assert ev.is_eligible(visitor, day, ActivityKind.BACKUP, ctx).rule == "BACKUP"

    def test_chief_reserved_day(self):
        chief = Resident("R1", "Chief", 6, is_chief=True, chief_or_days=frozenset({3}), can_be_backup=True)
        _, ev, ctx = _setup([chief])
        assert ev.is_eligible(chief, JULY[2], ActivityKind.NIGHT_CALL, ctx).rule == "CHIEF_RESERVED"
        assert ev.is_eligible(chief, JULY[2], ActivityKind.BACKUP, ctx)
        assert ev.is_eligible(chief, JULY[1], ActivityKind.NIGHT_CALL, ctx)

    def test_chief_reserved_allow_call_policy(self):
        chief = Resident("R1", "Chief", 6, is_chief=True, chief_or_days=frozenset({3}))
        _, ev, ctx = _setup([chief], config=ConstraintConfig(chief_reserved_policy="allow_call"))
        assert ev.is_eligible(chief, JULY[2], ActivityKind.NIGHT_CALL, ctx)

    def test_call_exemptions(self):
        exempt = Resident("R1", "Exempt", 3, exempt_from_call=True)
        chief = Resident("R2", "Chief", 6, is_chief=True, chief_takes_call=False)
        _, ev, ctx = _setup([exempt, chief])
        assert ev.is_eligible(exempt, JULY[0], ActivityKind.DAY_CALL, ctx).rule == "CALL_EXEMPT"
        assert ev.is_eligible(chief, JULY[0], ActivityKind.DAY_CALL, ctx).rule == "CALL_EXEMPT"

    def test_post_call(self):
        r = Resident("R1", "Alex", 3)
        _, ev, ctx = _setup([r])
        ctx.commit(r, JULY[0], ActivityKind.NIGHT_CALL)
        assert ev.is_eligible(r, JULY[1], ActivityKind.DAY_CALL, ctx).rule == "POST_CALL"
        assert ev.is_eligible(r, JULY[2], ActivityKind.DAY_CALL, ctx)

    def test_post_call_disabled(self):
        r = Resident("R1", "Alex", 3)
        _, ev, ctx = _setup([r], config=ConstraintConfig(post_call_rest=False))
        ctx.commit(r, JULY[0], ActivityKind.NIGHT_CALL)
        assert ev.is_eligible(r, JULY[1], ActivityKind.DAY_CALL, ctx)

    def test_day_call_does_not_leave_post_call(self):
        r = Resident("R1", "Alex", 3)
        _, ev, ctx = _setup([r])
        ctx.commit(r, JULY[0], ActivityKind.DAY_CALL)
        assert ev.is_eligible(r, JULY[1], ActivityKind.DAY_CALL, ctx)

    def test_consecutive_call_limit(self):
        r = Resident("R1", "Alex", 3)
        _, ev, ctx = _setup([r], config=ConstraintConfig(max_consecutive_call_days=2))
        ctx.commit(r, JULY[0], ActivityKind.DAY_CALL)
        ctx.commit(r, JULY[1], ActivityKind.DAY_CALL)
        assert ev.is_eligible(r, JULY[2], ActivityKind.DAY_CALL, ctx).rule == "CONSECUTIVE"

    def test_weekend_cap(self):
        r = Resident("R1", "Alex", 3)
        _, ev, ctx = _setup([r], config=ConstraintConfig(max_weekend_calls=1))
        ctx.commit(r, JULY[3], ActivityKind.WEEKEND_CALL)   # Fri Jul 4
        assert ev.is_eligible(r, JULY[10], ActivityKind.WEEKEND_CALL, ctx).rule == "WEEKEND_CAP"
        assert ev.is_eligible(r, JULY[7], ActivityKind.DAY_CALL, ctx)

    def test_is_eligible_rejects_non_call_kind(self):
        r = Resident("R1", "Alex", 3)
        _, ev, ctx = _setup([r])
        with pytest.raises(ValueError):
            ev.is_eligible(r, JULY[0], ActivityKind.CLINIC, ctx)


# ---------------------------------------------------------------------------
# Cost and ranking
# ---------------------------------------------------------------------------

class TestCostAndRanking:
    """Fairness cost ordering and deterministic tie-breaks"""

    def test_tie_broken_by_roster_position(self):
        a = Resident("R1", "Alex", 3)
        b = Resident("R2", "Blair", 3)
        _, ev, ctx = _setup([a, b])
        ranked = ev.rank_candidates([b, a], JULY[0], ActivityKind.DAY_CALL, ctx)
        assert [p.id for p in ranked] == ["R1", "R2"]

    def test_fewer_calls_ranked_first(self):
        a = Resident("R1", "Alex", 3)
        b = Resident("R2", "Blair", 3)
        _, ev, ctx = _setup([a, b])
        ctx.commit(a, JULY[0], ActivityKind.DAY_CALL)
        ranked = ev.rank_candidates([a, b], JULY[7], ActivityKind.DAY_CALL, ctx)
        assert ranked[0].id == "R2"

    def test_recent_call_costs_more(self):
        a = Resident("R1", "Alex", 3)
        _, ev, ctx = _setup([a])
        ctx.commit(a, JULY[0], ActivityKind.DAY_CALL)
        assert ev.cost(a, ActivityKind.DAY_CALL, ctx, JULY[1]) > ev.cost(a, ActivityKind.DAY_CALL, ctx, JULY[9])

    def test_junior_preferred_for_primary_senior_for_backup(self):
        junior = Resident("R1", "Junior", 2, can_be_backup=True)
        senior = Resident("R2", "Senior", 5, can_be_backup=True)
        _, ev, ctx = _setup([junior, senior])
        day = JULY[0]
        assert ev.rank_candidates([junior, senior], day, ActivityKind.DAY_CALL, ctx)[0].id == "R1"
        assert ev.rank_candidates([junior, senior], day, ActivityKind.BACKUP, ctx)[0].id == "R2"

    def test_prior_weekend_calls_raise_weekend_cost(self):
        fresh = Resident("R1", "Fresh", 3)
        tired = Resident("R2", "Tired", 3, prior_weekend_calls=3)
        _, ev, ctx = _setup([fresh, tired])
        weekend = JULY[4]
        assert ev.cost(tired, ActivityKind.WEEKEND_CALL, ctx, weekend) > ev.cost(fresh, ActivityKind.WEEKEND_CALL, ctx, weekend)
        assert ev.cost(tired, ActivityKind.DAY_CALL, ctx, JULY[0]) == ev.cost(fresh, ActivityKind.DAY_CALL, ctx, JULY[0])

    def test_holiday_rank(self):
        cal = build_calendar(date(2025, 12, 24), date(2025, 12, 27), major_holidays=[2, 3])
        a = Resident("R1", "Alex", 3, holiday_group="christmas")
        b = Resident("R2", "Blair", 3, holiday_group="new_year")
        c = Resident("R3", "Casey", 3)
        _, ev, ctx = _setup([a, b, c], calendar=cal)
        ctx.commit(a, cal[1], ActivityKind.WEEKEND_CALL)
        assert ctx.holiday_group_count("christmas") == 1
        day = cal[2]
        assert ev.holiday_rank(a, ActivityKind.WEEKEND_CALL, ctx, day) == 1
        assert ev.holiday_rank(b, ActivityKind.WEEKEND_CALL, ctx, day) == 0
        assert ev.holiday_rank(c, ActivityKind.WEEKEND_CALL, ctx, day) == UNGROUPED_HOLIDAY_RANK
        # Ordinary day and backup slot ignore holiday groups
        assert ev.holiday_rank(a, ActivityKind.WEEKEND_CALL, ctx, cal[0]) == 0
        assert ev.holiday_rank(a, ActivityKind.BACKUP, ctx, day) == 0

    def test_holiday_group_counted_once_per_holiday(self):
        cal = build_calendar(date(2025, 12, 24), date(2025, 12, 26), major_holidays=[2])
        a = Resident("R1", "Alex", 3, holiday_group="christmas")
        a2 = Resident("R2", "Avery", 5, holiday_group="christmas", can_be_backup=True)
        _, _, ctx = _setup([a, a2], calendar=cal)
        ctx.commit(a, cal[1], ActivityKind.WEEKEND_CALL)
        ctx.commit(a2, cal[1], ActivityKind.BACKUP)
        assert ctx.holiday_group_count("christmas") == 1


# ---------------------------------------------------------------------------
# Post-hoc checker
# ---------------------------------------------------------------------------

class TestConstraintChecker:
    """Audit of a finished activity grid"""

    def test_clean_grid(self):
        r = Resident("R1", "Alex", 3, vacation_days=frozenset({2}))
        roster = Roster(residents=(r,))
        grid = {"R1": [[ActivityKind.DAY_CALL], [ActivityKind.VACATION], [ActivityKind.NEUROSURGERY]]}
        assert ConstraintChecker(roster).check_all(grid) == []

    def test_vacation_violation(self):
        r = Resident("R1", "Alex", 3, vacation_days=frozenset({2}))
        roster = Roster(residents=(r,))
        grid = {"R1": [[], [ActivityKind.VACATION, ActivityKind.NIGHT_CALL]]}
        violations = ConstraintChecker(roster).check_vacation(grid)
        assert len(violations) == 1
        assert violations[0].constraint_type == VACATION_ASSIGNMENT
        assert violations[0].scope.index == 2
        assert violations[0].description.startswith("Day 2:")

    def test_double_booking(self):
        r = Resident("R1", "Alex", 3, double_call_allowance=1)
        roster = Roster(residents=(r,))
        grid = {"R1": [[ActivityKind.DAY_CALL, ActivityKind.NIGHT_CALL]]}
        assert ConstraintChecker(roster).check_double_booking(grid)[0].constraint_type == DOUBLE_BOOKING
        assert ConstraintChecker(roster, double_call_used={"R1": 1}).check_double_booking(grid) == []

    def test_specialty_mismatch(self):
        s = Staff("S1", "Dr. Ellis", frozenset({"spine"}))
        roster = Roster(residents=(Resident("R1", "Alex", 3),), staff=(s,))
        grid = {"S1": [[ActivityKind.CRANIAL_STAFF_CALL]]}
        violations = ConstraintChecker(roster).check_staff_qualification(grid)
        assert [v.constraint_type for v in violations] == [SPECIALTY_MISMATCH]


# ---------------------------------------------------------------------------
# Structural validation
# ---------------------------------------------------------------------------

class TestValidateInputs:
    """Fatal structural errors raised before any assignment work"""

    @pytest.fixture
    def roster(self):
        return Roster(
            residents=(Resident("R1", "Alex", 5), Resident("R2", "Blair", 2)),
            staff=(Staff("S1", "Dr. Harper", frozenset({"cranial", "spine"})),),
        )

    def test_valid(self, roster):
        assert validate_inputs(roster, RELAXED, 31) == []

    def test_empty_roster(self):
        with pytest.raises(EmptyRosterError):
            validate_inputs(Roster(), RELAXED, 31)

    def test_staff_only_roster_is_empty(self):
        with pytest.raises(EmptyRosterError):
            validate_inputs(Roster(staff=(Staff("S1", "Dr. Harper"),)), RELAXED, 31)

    def test_duplicate_ids(self):
        roster = Roster(residents=(Resident("R1", "Alex", 3), Resident("R1", "Blair", 3)))
        with pytest.raises(ConfigurationError, match="Duplicate"):
            validate_inputs(roster, RELAXED, 31)

    def test_bad_level(self):
        with pytest.raises(ConfigurationError):
            validate_inputs(Roster(residents=(Resident("R1", "Alex", 0),)), RELAXED, 31)

    def test_negative_cap(self):
        with pytest.raises(ConfigurationError):
            validate_inputs(Roster(residents=(Resident("R1", "Alex", 3, home_call_cap=-1),)), RELAXED, 31)

    def test_headcount_exceeds_roster(self, roster):
        with pytest.raises(ConfigurationError, match="min_daily_headcount"):
            validate_inputs(roster, RELAXED.with_overrides(min_daily_headcount=3), 31)

    def test_visiting_not_counted_toward_minimums(self):
        roster = Roster(residents=(
            Resident("R1", "Alex", 5),
            Resident("V1", "Visitor", 3, visiting=True),
        ))
        with pytest.raises(ConfigurationError):
            validate_inputs(roster, RELAXED.with_overrides(min_block_headcount=2), 31)

    def test_unknown_policy(self, roster):
        with pytest.raises(ConfigurationError):
            validate_inputs(roster, RELAXED.with_overrides(backup_policy="sometimes"), 31)

    def test_unknown_or_complexity(self, roster):
        with pytest.raises(ConfigurationError, match="complexity"):
            validate_inputs(roster, RELAXED.with_overrides(or_cases=(OrCase(2, "elective"),)), 31)

    def test_clinic_virtual_exceeds_total(self, roster):
        sessions = (ClinicSession(2, appointments=5, virtual_appointments=8),)
        with pytest.raises(ConfigurationError):
            validate_inputs(roster, RELAXED.with_overrides(clinic_sessions=sessions), 31)

    def test_request_unknown_resident(self, roster):
        with pytest.raises(ConfigurationError):
            validate_inputs(roster, RELAXED, 31, requests=[OffServiceRequest("R9", "Research")])

    def test_request_unknown_rotation(self, roster):
        with pytest.raises(ConfigurationError):
            validate_inputs(roster, RELAXED, 31, requests=[OffServiceRequest("R1", "Cardiology")])

    def test_request_duration_out_of_range(self, roster):
        with pytest.raises(ConfigurationError):
            validate_inputs(roster, RELAXED, 31, requests=[OffServiceRequest("R1", "Research", 14)])
        with pytest.raises(ConfigurationError):
            validate_inputs(roster, RELAXED, 31, requests=[OffServiceRequest("R1", "Research", 0)])

    def test_request_total_exceeds_year(self, roster):
        requests = [OffServiceRequest("R1", "Research", 8), OffServiceRequest("R1", "Plastics", 6)]
        with pytest.raises(ConfigurationError, match="13"):
            validate_inputs(roster, RELAXED, 31, requests=requests)

    def test_predefined_unknown_person(self, roster):
        with pytest.raises(ConfigurationError):
            validate_inputs(roster, RELAXED, 31,
                            predefined_calls=[PredefinedCall(1, "R9", ActivityKind.DAY_CALL)])

    def test_predefined_outside_window(self, roster):
        with pytest.raises(ConfigurationError):
            validate_inputs(roster, RELAXED, 31,
                            predefined_calls=[PredefinedCall(32, "R1", ActivityKind.DAY_CALL)])

    def test_warnings_returned(self):
        roster = Roster(
            residents=(Resident("R1", "Chief", 6, is_chief=True),),
            staff=(Staff("S1", "Dr. Nobody"),),
        )
        warnings = validate_inputs(roster, RELAXED, 31)
        assert len(warnings) == 2
