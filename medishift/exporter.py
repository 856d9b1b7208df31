"""
exporter.py — Export Layer for MediShift schedules

Outputs:
  - Excel (.xlsx): person × day activity grid, plus Rotations (person × block),
    Blocks (headcount per block) and Violations sheets
  - CSV: flat (day, date, person, activity) for programmatic review
  - Fairness audit report (.txt): per-person call counts, CV, weekend and
    backup spread
  - Violations (.txt): one line per violation, in day/block order

Usage:
  from medishift.exporter import export_to_csv, export_to_excel, export_fairness_report
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from medishift.calendar_model import BLOCKS_PER_YEAR
from medishift.constraints import ConstraintViolation
from medishift.models import ActivityKind, Roster
from medishift.reporter import format_violations, summarize_violations

logger = logging.getLogger(__name__)

ACTIVITY_CODES: Dict[ActivityKind, str] = {
    ActivityKind.DAY_CALL:           "D",
    ActivityKind.NIGHT_CALL:         "N",
    ActivityKind.WEEKEND_CALL:       "W",
    ActivityKind.BACKUP:             "B",
    ActivityKind.CRANIAL_STAFF_CALL: "CS",
    ActivityKind.SPINE_STAFF_CALL:   "SS",
    ActivityKind.VACATION:           "V",
    ActivityKind.OFF_SERVICE:        "OS",
    ActivityKind.NEUROSURGERY:       "NS",
    ActivityKind.CLINIC:             "C",
    ActivityKind.ACADEMIC_EVENT:     "A",
    ActivityKind.POST_CALL:          "PC",
    ActivityKind.OR:                 "OR",
    ActivityKind.HOLIDAY:            "H",
    ActivityKind.PAGER_HOLDER:       "P",
}


# ---------------------------------------------------------------------------
# CSV Export
# ---------------------------------------------------------------------------

def export_to_csv(
    result: Any,
    roster: Roster,
    output_path: Path,
    calls_only: bool = False,
) -> None:
    """
    Export schedule to flat CSV: day, date, person_id, name, activity.

    Args:
        result:       ScheduleResult
        roster:       Roster (for display names)
        output_path:  .csv file path
        calls_only:   If True, only call-type activities are written
    """
    import csv
    output_path.parent.mkdir(parents=True, exist_ok=True)
    dates = {d.number: d.date.isoformat() for d in result.calendar}

    with open(output_path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=["day", "date", "person_id", "name", "activity"])
        writer.writeheader()
        for a in result.assignments:
            if calls_only and not a.activity.is_call:
                continue
            person = roster.get(a.person_id)
            writer.writerow({
                "day": a.day,
                "date": dates[a.day],
                "person_id": a.person_id,
                "name": person.name if person else a.person_id,
                "activity": str(a.activity),
            })

    logger.info(f"CSV exported → {output_path}")


# ---------------------------------------------------------------------------
# Excel Export
# ---------------------------------------------------------------------------

def _cell_text(activities: List[ActivityKind], use_codes: bool) -> str:
    if use_codes:
        return "/".join(ACTIVITY_CODES.get(a, str(a)) for a in activities)
    return "; ".join(str(a) for a in activities)


def export_to_excel(
    result: Any,
    roster: Roster,
    output_path: Path,
    use_codes: bool = True,
) -> None:
    """
    Export schedule to a formatted Excel workbook.

    Sheets:
      Schedule    rows=person, columns=day (date header), cells=activities
      Rotations   rows=resident, columns=block 1..13, cells=service
      Blocks      headcount / seniors / juniors per block
      Violations  scope, type, description

    Args:
        result:       ScheduleResult
        roster:       Roster (row order and display names)
        output_path:  .xlsx file path
        use_codes:    Short activity codes (D, N, W, B, …) instead of full names
    """
    import pandas as pd

    output_path.parent.mkdir(parents=True, exist_ok=True)

    columns = [f"{d.date.strftime('%a %m-%d')}" for d in result.calendar]
    rows = []
    for person in roster:
        days = result.activities.get(person.id, [])
        rows.append([_cell_text(acts, use_codes) for acts in days])
    grid = pd.DataFrame(rows, columns=columns, index=[p.name for p in roster])
    grid.index.name = "Person"

    plan = result.rotation_plan
    rotation_rows = {
        roster.get(rid).name: services
        for rid, services in plan.assignments.items()
    }
    rotations = pd.DataFrame.from_dict(
        rotation_rows, orient="index",
        columns=[f"Block {b}" for b in range(1, BLOCKS_PER_YEAR + 1)],
    )
    rotations.index.name = "Resident"

    blocks = pd.DataFrame(plan.block_summary())

    violations = pd.DataFrame(
        [
            {
                "Scope": str(v.scope),
                "Type": v.constraint_type,
                "Person": v.person_id or "",
                "Description": v.description,
            }
            for v in result.violations
        ],
        columns=["Scope", "Type", "Person", "Description"],
    )

    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        grid.to_excel(writer, sheet_name="Schedule")
        _format_excel_grid(writer, "Schedule")
        rotations.to_excel(writer, sheet_name="Rotations")
        _format_excel_grid(writer, "Rotations")
        blocks.to_excel(writer, sheet_name="Blocks", index=False)
        _format_excel_grid(writer, "Blocks")
        violations.to_excel(writer, sheet_name="Violations", index=False)
        _format_excel_grid(writer, "Violations", max_width=80)

    logger.info(f"Excel exported → {output_path}")


def _format_excel_grid(writer: Any, sheet_name: str, max_width: int = 30) -> None:
    """Apply basic formatting to a sheet: column widths, header bold, row shading."""
    from openpyxl.styles import Alignment, Font, PatternFill

    ws = writer.sheets[sheet_name]
    header_fill = PatternFill("solid", fgColor="1F4E79")
    header_font = Font(bold=True, color="FFFFFF")

    for cell in ws[1]:
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal="center")

    for col in ws.columns:
        max_len = max((len(str(c.value)) for c in col if c.value), default=8)
        ws.column_dimensions[col[0].column_letter].width = min(max_len + 2, max_width)

    alt = PatternFill("solid", fgColor="EBF3FB")
    for i, row in enumerate(ws.iter_rows(min_row=2), start=2):
        if i % 2 == 0:
            for cell in row:
                cell.fill = alt

    ws.freeze_panes = "B2"


# ---------------------------------------------------------------------------
# Fairness Report
# ---------------------------------------------------------------------------

def export_fairness_report(
    metrics: Dict[str, Any],
    roster: Roster,
    output_path: Path,
    target_cv: float = 15.0,
    title: str = "",
) -> str:
    """
    Export the fairness audit report (text format).

    Includes:
      - Call CV, mean, std, min, max (home residents)
      - Per-person calls, weekend calls, backups with deviation from mean
      - Staff call spread
      - Unfilled slot count
      - Pass/fail vs target CV

    Args:
        metrics:     Output of engine.calculate_fairness_metrics()
        roster:      Roster (row order and display names)
        output_path: .txt file path
        target_cv:   CV target in percent
        title:       Optional label appended to the header
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)

    counts = metrics.get("counts", {})
    weekend = metrics.get("weekend_counts", {})
    backups = metrics.get("backup_counts", {})
    mean_val = metrics.get("mean", 0)
    cv = metrics.get("cv", 0)
    staff = metrics.get("staff", {})
    pass_fail = "✓ PASS" if cv < target_cv else "✗ FAIL"

    sep = "=" * 70
    lines = [
        sep,
        f"  FAIRNESS AUDIT REPORT{(' — ' + title) if title else ''}",
        sep,
        "",
        f"  Resident call CV:      {cv:.2f}%  (target <{target_cv:.0f}%)  {pass_fail}",
        f"  Mean calls:            {mean_val:.2f}",
        f"  Std Dev:               {metrics.get('std', 0):.2f}",
        f"  Min / Max:             {metrics.get('min', 0):.0f} / {metrics.get('max', 0):.0f}",
        f"  Weekend call CV:       {metrics.get('weekend_cv', 0):.2f}%",
        f"  Staff call CV:         {staff.get('cv', 0):.2f}%",
        f"  Unfilled slots:        {metrics.get('unfilled', 0)}",
        "",
        "─" * 70,
        "  Per-Resident Calls",
        "─" * 70,
        f"  {'Name':<24} {'PGY':>4} {'Calls':>6} {'Wknd':>6} {'Backup':>7}  {'Δ Mean':>8}",
    ]

    for r in roster.residents:
        calls = counts.get(r.id, 0)
        delta = calls - mean_val
        flag = ""
        if r.visiting:
            flag = "  (visiting)"
        elif delta > mean_val * 0.20:
            flag = "  ← ↑ over"
        elif delta < -mean_val * 0.20:
            flag = "  ← ↓ under"
        lines.append(
            f"  {r.name:<24} {r.level:>4d} {calls:>6d} {weekend.get(r.id, 0):>6d} "
            f"{backups.get(r.id, 0):>7d} {delta:>+9.2f}{flag}"
        )

    if roster.staff:
        lines += [
            "",
            "─" * 70,
            "  Staff Calls",
            "─" * 70,
        ]
        per_activity = metrics.get("per_activity", {})
        for s in roster.staff:
            cranial = per_activity.get(str(ActivityKind.CRANIAL_STAFF_CALL), {}).get(s.id, 0)
            spine = per_activity.get(str(ActivityKind.SPINE_STAFF_CALL), {}).get(s.id, 0)
            lines.append(f"  {s.name:<24} cranial={cranial:<4d} spine={spine:<4d} total={counts.get(s.id, 0)}")

    lines.append("")
    lines.append(sep)

    report_text = "\n".join(lines)
    with open(output_path, "w") as f:
        f.write(report_text)

    logger.info(f"Fairness report exported → {output_path}")
    return report_text


def export_violations(
    violations: List[ConstraintViolation],
    output_path: Path,
    verbose: Optional[bool] = False,
) -> str:
    """Write the merged violation list, one per line, with a per-type summary."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    lines = [f"{len(violations)} violations"]
    for kind, n in summarize_violations(violations).items():
        lines.append(f"  {kind:<28} {n}")
    lines.append("")
    lines.extend(format_violations(violations, verbose=bool(verbose)))

    text = "\n".join(lines) + "\n"
    with open(output_path, "w") as f:
        f.write(text)

    logger.info(f"Violations exported → {output_path}")
    return text
