"""
config.py — File loaders for the MediShift scheduling engine

Loads the roster, staff list, off-service requests, predefined calls and the
constraint configuration from config/. The engine itself never touches files;
these loaders turn CSV/JSON into the frozen records in models.py.

Day lists (vacation_days, chief_or_days) are 1-based day numbers inside the
scheduling window, written as ranges and singles separated by semicolons:
  "10-15;20"  →  {10, 11, 12, 13, 14, 15, 20}
ISO dates ("2025-07-10") are also accepted when the loader is given the
window start.
"""

import json
import logging
import math
from datetime import date
from pathlib import Path
from typing import Any, FrozenSet, List, Optional, Set

from medishift.models import (
    ActivityKind,
    OffServiceRequest,
    PredefinedCall,
    Resident,
    Roster,
    Staff,
)
from medishift.schedule_config import ConstraintConfig

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_DIR = PROJECT_ROOT / "config"
DEFAULT_ROSTER_PATH       = DEFAULT_CONFIG_DIR / "roster.csv"
DEFAULT_STAFF_PATH        = DEFAULT_CONFIG_DIR / "staff.csv"
DEFAULT_REQUESTS_PATH     = DEFAULT_CONFIG_DIR / "off_service_requests.csv"
DEFAULT_PREDEFINED_PATH   = DEFAULT_CONFIG_DIR / "predefined_calls.csv"
DEFAULT_CONSTRAINTS_PATH  = DEFAULT_CONFIG_DIR / "constraints.json"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return str(value).strip() in ("", "nan", "None")


def _parse_yes_no(value: Any, default: bool = False) -> bool:
    if _is_blank(value):
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("yes", "true", "1", "y")


def _parse_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    if _is_blank(value):
        return default
    return int(float(value))


def _parse_str(value: Any) -> Optional[str]:
    if _is_blank(value):
        return None
    return str(value).strip()


def _parse_tags(raw: Any) -> List[str]:
    """
    Parse specialty tags.
    Handles comma-, semicolon- and pipe-separated values; returns lowercase list.
    """
    if _is_blank(raw):
        return []
    s = str(raw).strip().strip('"').strip("'")
    s = s.replace(";", ",").replace("|", ",")
    return [p.strip().lower() for p in s.split(",") if p.strip()]


def parse_day_list(raw: Any, window_start: Optional[date] = None) -> FrozenSet[int]:
    """
    Parse "10-15;20" style day lists into 1-based day numbers.

    ISO dates and date ranges ("2025-07-10..2025-07-12") are converted
    relative to window_start; without one they raise ValueError.
    """
    if _is_blank(raw):
        return frozenset()
    days: Set[int] = set()
    for token in str(raw).replace(",", ";").split(";"):
        token = token.strip()
        if not token:
            continue
        if ".." in token or (token.count("-") >= 2):
            first, last = _date_span(token)
            if window_start is None:
                raise ValueError(f"Date '{token}' in day list needs a window start date")
            lo = (first - window_start).days + 1
            hi = (last - window_start).days + 1
            days.update(range(lo, hi + 1))
        elif "-" in token:
            lo, hi = (int(p) for p in token.split("-", 1))
            if hi < lo:
                raise ValueError(f"Day range '{token}' runs backwards")
            days.update(range(lo, hi + 1))
        else:
            days.add(int(float(token)))
    return frozenset(d for d in days if d >= 1)


def _date_span(token: str):
    if ".." in token:
        first, last = token.split("..", 1)
        return date.fromisoformat(first.strip()), date.fromisoformat(last.strip())
    d = date.fromisoformat(token)
    return d, d


# ---------------------------------------------------------------------------
# Roster loaders
# ---------------------------------------------------------------------------

def load_residents(
    roster_path: Optional[Path] = None,
    window_start: Optional[date] = None,
) -> List[Resident]:
    """
    Load residents from roster.csv.

    Expected columns:
      id, name, level
    Optional columns:
      on_service, off_service_rotation, home_call_cap, off_service_call_cap,
      vacation_days, prior_weekend_calls, holiday_group, can_be_backup,
      allow_solo_pgy1_call, is_chief, chief_or_days, chief_takes_call,
      exempt_from_call, visiting, double_call_allowance

    File order is roster order (the tie-break).
    """
    import pandas as pd

    path = Path(roster_path) if roster_path else DEFAULT_ROSTER_PATH
    if not path.exists():
        raise FileNotFoundError(f"Roster file not found: {path}")

    df = pd.read_csv(path, dtype={"id": str})
    missing = {"id", "name", "level"} - set(df.columns)
    if missing:
        raise ValueError(f"Roster file {path} is missing columns: {sorted(missing)}")

    residents: List[Resident] = []
    for _, row in df.iterrows():
        residents.append(Resident(
            id=str(row["id"]).strip(),
            name=str(row["name"]).strip(),
            level=int(row["level"]),
            on_service=_parse_yes_no(row.get("on_service"), default=True),
            off_service_rotation=_parse_str(row.get("off_service_rotation")),
            home_call_cap=_parse_int(row.get("home_call_cap")),
            off_service_call_cap=_parse_int(row.get("off_service_call_cap"), default=4),
            vacation_days=parse_day_list(row.get("vacation_days"), window_start),
            prior_weekend_calls=_parse_int(row.get("prior_weekend_calls"), default=0),
            holiday_group=_parse_str(row.get("holiday_group")),
            can_be_backup=_parse_yes_no(row.get("can_be_backup")),
            allow_solo_pgy1_call=_parse_yes_no(row.get("allow_solo_pgy1_call")),
            is_chief=_parse_yes_no(row.get("is_chief")),
            chief_or_days=parse_day_list(row.get("chief_or_days"), window_start),
            chief_takes_call=_parse_yes_no(row.get("chief_takes_call"), default=True),
            exempt_from_call=_parse_yes_no(row.get("exempt_from_call")),
            visiting=_parse_yes_no(row.get("visiting")),
            double_call_allowance=_parse_int(row.get("double_call_allowance"), default=0),
        ))

    logger.info(f"Loaded {len(residents)} residents from {path}")
    return residents


def load_staff(
    staff_path: Optional[Path] = None,
    window_start: Optional[date] = None,
) -> List[Staff]:
    """
    Load staff from staff.csv (columns: id, name, specialties, vacation_days,
    call_cap, double_call_allowance). Missing file → empty list.
    """
    import pandas as pd

    path = Path(staff_path) if staff_path else DEFAULT_STAFF_PATH
    if not path.exists():
        logger.warning(f"Staff file not found: {path}. No staff call will be scheduled.")
        return []

    df = pd.read_csv(path, dtype={"id": str})
    staff: List[Staff] = []
    for _, row in df.iterrows():
        staff.append(Staff(
            id=str(row["id"]).strip(),
            name=str(row["name"]).strip(),
            specialties=frozenset(_parse_tags(row.get("specialties"))),
            vacation_days=parse_day_list(row.get("vacation_days"), window_start),
            call_cap=_parse_int(row.get("call_cap")),
            double_call_allowance=_parse_int(row.get("double_call_allowance"), default=0),
        ))

    logger.info(f"Loaded {len(staff)} staff from {path}")
    return staff


def load_roster(
    roster_path: Optional[Path] = None,
    staff_path: Optional[Path] = None,
    window_start: Optional[date] = None,
) -> Roster:
    """Residents (required) plus staff (optional) as one Roster."""
    return Roster(
        residents=tuple(load_residents(roster_path, window_start)),
        staff=tuple(load_staff(staff_path, window_start)),
    )


# ---------------------------------------------------------------------------
# Rotation requests and predefined calls
# ---------------------------------------------------------------------------

def load_off_service_requests(
    requests_path: Optional[Path] = None,
) -> List[OffServiceRequest]:
    """
    Load off_service_requests.csv (resident_id, rotation, duration_blocks,
    timing). Missing file → no requests.
    """
    import pandas as pd

    path = Path(requests_path) if requests_path else DEFAULT_REQUESTS_PATH
    if not path.exists():
        logger.warning(f"Off-service requests not found: {path}. Everyone stays on service.")
        return []

    df = pd.read_csv(path, dtype={"resident_id": str})
    requests = [
        OffServiceRequest(
            resident_id=str(row["resident_id"]).strip(),
            rotation=str(row["rotation"]).strip(),
            duration_blocks=_parse_int(row.get("duration_blocks"), default=1),
            timing=(_parse_str(row.get("timing")) or "any").lower(),
        )
        for _, row in df.iterrows()
    ]
    logger.info(f"Loaded {len(requests)} off-service requests from {path}")
    return requests


def load_predefined_calls(
    calls_path: Optional[Path] = None,
) -> List[PredefinedCall]:
    """
    Load predefined_calls.csv (day, person_id, activity). Activity accepts the
    display name ("Night Call") or the short codes D/N/W/B.
    """
    import pandas as pd

    path = Path(calls_path) if calls_path else DEFAULT_PREDEFINED_PATH
    if not path.exists():
        logger.warning(f"Predefined calls not found: {path}. Engine fills every slot.")
        return []

    df = pd.read_csv(path, dtype={"person_id": str})
    calls = [
        PredefinedCall(
            day=int(row["day"]),
            person_id=str(row["person_id"]).strip(),
            activity=ActivityKind.parse(row["activity"]),
        )
        for _, row in df.iterrows()
    ]
    logger.info(f"Loaded {len(calls)} predefined calls from {path}")
    return calls


# ---------------------------------------------------------------------------
# Constraint configuration
# ---------------------------------------------------------------------------

def load_constraint_config(
    config_path: Optional[Path] = None,
) -> ConstraintConfig:
    """Load constraints.json into a ConstraintConfig. Missing file → defaults."""
    path = Path(config_path) if config_path else DEFAULT_CONSTRAINTS_PATH
    if not path.exists():
        logger.warning(f"Constraint config not found: {path}. Using defaults.")
        return ConstraintConfig()
    with open(path) as f:
        data = json.load(f)
    # Metadata keys
    data = {k: v for k, v in data.items() if k not in ("notes", "last_updated")}
    config = ConstraintConfig.from_dict(data)
    logger.info(f"Loaded constraint config from {path}")
    return config


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    roster = load_roster()
    print(f"Loaded {len(roster.residents)} residents, {len(roster.staff)} staff")
    for r in roster.residents:
        flags = " ".join(f for f, on in (
            ("chief", r.is_chief), ("backup", r.can_be_backup), ("visiting", r.visiting),
        ) if on)
        print(f"  {r.id:<6} {r.name:<22} PGY-{r.level} {flags}")
    for s in roster.staff:
        print(f"  {s.id:<6} {s.name:<22} {', '.join(sorted(s.specialties)) or '(none)'}")
