"""
errors.py — Structural input errors for the MediShift scheduling engine

Raised before any assignment work begins. A caller never receives a partial
schedule together with one of these; unmet scheduling constraints are reported
as ConstraintViolation entries instead (see constraints.py).
"""


class SchedulingInputError(ValueError):
    """Base class for fatal, structural problems with roster/calendar/config."""


class InvalidRangeError(SchedulingInputError):
    """Calendar window end date precedes its start date."""


class EmptyRosterError(SchedulingInputError):
    """No residents to schedule."""


class ConfigurationError(SchedulingInputError):
    """Contradictory or malformed configuration, roster records or requests."""
