"""
MediShift Roster Scheduling Engine

Modules:
- models: Residents, staff, roster, activity kinds, rotation requests
- calendar_model: Scheduling window and 13-block academic year
- schedule_config: ConstraintConfig and scheduling constants
- constraints: Eligibility rules, fairness cost, violations, input validation
- engine: Greedy day-by-day call assignment
- rotation: Off-service rotation block planner
- scheduler: generate_schedule() entry point
- config / exporter / cli: file loaders, CSV/Excel export, command line
"""

from .calendar_model import CalendarDay, build_calendar
from .config import (
    load_constraint_config,
    load_off_service_requests,
    load_predefined_calls,
    load_roster,
)
from .constraints import ConstraintEvaluator, ConstraintViolation, ViolationScope
from .engine import SchedulingContext, assign_daily_schedule, calculate_fairness_metrics
from .errors import (
    ConfigurationError,
    EmptyRosterError,
    InvalidRangeError,
    SchedulingInputError,
)
from .models import (
    ActivityAssignment,
    ActivityKind,
    OffServiceRequest,
    OffServiceRotation,
    PredefinedCall,
    Resident,
    Roster,
    Staff,
)
from .reporter import format_violations, merge_violations
from .rotation import RotationPlan, plan_rotations
from .schedule_config import ConstraintConfig
from .scheduler import ScheduleResult, generate_schedule

__all__ = [
    "CalendarDay",
    "build_calendar",
    "load_constraint_config",
    "load_off_service_requests",
    "load_predefined_calls",
    "load_roster",
    "ConstraintEvaluator",
    "ConstraintViolation",
    "ViolationScope",
    "SchedulingContext",
    "assign_daily_schedule",
    "calculate_fairness_metrics",
    "ConfigurationError",
    "EmptyRosterError",
    "InvalidRangeError",
    "SchedulingInputError",
    "ActivityAssignment",
    "ActivityKind",
    "OffServiceRequest",
    "OffServiceRotation",
    "PredefinedCall",
    "Resident",
    "Roster",
    "Staff",
    "format_violations",
    "merge_violations",
    "RotationPlan",
    "plan_rotations",
    "ConstraintConfig",
    "ScheduleResult",
    "generate_schedule",
]
