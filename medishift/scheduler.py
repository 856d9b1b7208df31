"""
scheduler.py — Top-level entry point

generate_schedule() wires the components together:

  build_calendar → validate_inputs → plan_rotations
                 → assign_daily_schedule → merge_violations → metrics

Structural problems raise SchedulingInputError before any assignment work;
everything else comes back as violations on a best-effort ScheduleResult.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from medishift.calendar_model import CalendarDay, build_calendar
from medishift.constraints import ConstraintEvaluator, ConstraintViolation, validate_inputs
from medishift.engine import (
    ActivityGrid,
    assign_daily_schedule,
    build_activity_grid,
    calculate_fairness_metrics,
)
from medishift.models import ActivityAssignment, OffServiceRequest, PredefinedCall, Roster
from medishift.reporter import merge_violations
from medishift.rotation import RotationPlan, plan_rotations
from medishift.schedule_config import ConstraintConfig
from medishift.skills import validate_slot_coverage

logger = logging.getLogger(__name__)


@dataclass
class ScheduleResult:
    calendar: List[CalendarDay]
    activities: ActivityGrid
    assignments: List[ActivityAssignment]
    rotation_plan: RotationPlan
    violations: List[ConstraintViolation]
    daily_violations: List[ConstraintViolation] = field(default_factory=list)
    block_violations: List[ConstraintViolation] = field(default_factory=list)
    double_call_remaining: Dict[str, int] = field(default_factory=dict)
    holiday_group_counts: Dict[str, int] = field(default_factory=dict)
    metrics: Dict[str, Any] = field(default_factory=dict)

    def activities_for(self, person_id: str, day: int) -> List:
        return self.activities[person_id][day - 1]

    def holders(self, day: int) -> Dict[str, str]:
        """Activity display name → person id for every call held on a day."""
        return {
            str(a.activity): a.person_id
            for a in self.assignments
            if a.day == day and a.activity.is_call
        }


def generate_schedule(
    roster: Roster,
    start: date,
    end: date,
    config: Optional[ConstraintConfig] = None,
    requests: Sequence[OffServiceRequest] = (),
    predefined_calls: Sequence[PredefinedCall] = (),
) -> ScheduleResult:
    """
    Build the full schedule for [start, end].

    Raises:
        InvalidRangeError, EmptyRosterError, ConfigurationError
    """
    if config is None:
        config = ConstraintConfig()

    calendar = build_calendar(
        start, end,
        holidays=config.stat_holidays,
        major_holidays=config.major_holidays,
        weekend_days=config.weekend_days,
    )
    validate_inputs(roster, config, len(calendar), requests, predefined_calls)
    for warning in validate_slot_coverage(roster.staff, config.staff_call_kinds):
        logger.warning(warning)

    plan = plan_rotations(roster.home_residents, requests, config)
    evaluator = ConstraintEvaluator(roster, calendar, config, plan)
    daily = assign_daily_schedule(
        roster, calendar, config,
        evaluator=evaluator,
        predefined_calls=predefined_calls,
        rotation_plan=plan,
    )

    violations = merge_violations(daily.violations, plan.violations)
    metrics = calculate_fairness_metrics(daily.assignments, roster, calendar, unfilled=daily.unfilled)
    logger.info(
        f"Schedule {start.isoformat()} → {end.isoformat()}: "
        f"{len(daily.assignments)} activities, {len(violations)} violations, "
        f"call CV {metrics['cv']:.1f}%"
    )

    return ScheduleResult(
        calendar=calendar,
        activities=build_activity_grid(daily.assignments, roster, len(calendar)),
        assignments=daily.assignments,
        rotation_plan=plan,
        violations=violations,
        daily_violations=daily.violations,
        block_violations=plan.violations,
        double_call_remaining=daily.double_call_remaining,
        holiday_group_counts=daily.holiday_group_counts,
        metrics=metrics,
    )
