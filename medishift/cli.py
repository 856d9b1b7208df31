"""
cli.py — Schedule generation from the command line

Full orchestration:
  1. Load roster, staff, off-service requests, predefined calls, constraints
  2. Generate the schedule (calendar → rotations → daily calls)
  3. Audit the finished grid (vacation, double booking, staff specialties)
  4. Export CSV, Excel, fairness report, violations report
  5. Print summary to console

Usage:
  python -m medishift.cli --start 2025-07-01 --end 2025-07-31
  python -m medishift.cli --start 2025-07-01 --end 2025-07-31 --config-dir my_program/ --visual
"""

import argparse
import json
import logging
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from medishift.config import (
    DEFAULT_CONFIG_DIR,
    PROJECT_ROOT,
    load_constraint_config,
    load_off_service_requests,
    load_predefined_calls,
    load_roster,
)
from medishift.constraints import ConstraintChecker
from medishift.errors import SchedulingInputError
from medishift.exporter import (
    export_fairness_report,
    export_to_csv,
    export_to_excel,
    export_violations,
)
from medishift.models import Roster
from medishift.reporter import summarize_violations
from medishift.scheduler import ScheduleResult, generate_schedule
from medishift.skills import get_specialty_summary

logger = logging.getLogger(__name__)

OUTPUTS_DIR = PROJECT_ROOT / "outputs"


# ---------------------------------------------------------------------------
# Visual analysis (matplotlib)
# ---------------------------------------------------------------------------

def _generate_visual_analysis(
    result: ScheduleResult,
    roster: Roster,
    output_dir: Path,
    prefix: str,
) -> None:
    """Call distribution and per-block headcount charts."""
    try:
        import matplotlib
        matplotlib.use("Agg")
        import matplotlib.pyplot as plt
    except ImportError:
        logger.warning("matplotlib not installed — skip visual analysis. Install with: pip install matplotlib")
        return

    metrics = result.metrics
    counts = metrics.get("counts", {})
    mean_val = metrics.get("mean", 0)
    std_val = metrics.get("std", 0)
    residents = [r for r in roster.residents if not r.visiting]
    names = [r.name for r in residents]
    calls = [counts.get(r.id, 0) for r in residents]
    x = range(len(names))

    # Chart 1: Call distribution
    fig, ax = plt.subplots(figsize=(12, 5))
    colors = ["#b22222" if c > mean_val + std_val else "#1a3d7c" if c < mean_val - std_val else "#4a90d9" for c in calls]
    ax.bar(x, calls, color=colors, alpha=0.85, width=0.65)
    ax.axhline(mean_val, color="crimson", linewidth=1.8, linestyle="--", label=f"Mean: {mean_val:.1f}")
    ax.axhline(mean_val + std_val, color="orange", linewidth=1, linestyle=":")
    ax.axhline(mean_val - std_val, color="orange", linewidth=1, linestyle=":")
    ax.set_xticks(list(x))
    ax.set_xticklabels(names, rotation=40, ha="right", fontsize=9)
    ax.set_ylabel("Calls")
    ax.set_title(f"Call Distribution by Resident\nCV = {metrics.get('cv', 0):.1f}%", fontsize=13, fontweight="bold")
    ax.legend()
    ax.grid(axis="y", alpha=0.3)
    fig.tight_layout()
    fig.savefig(output_dir / f"{prefix}_call_distribution.png", dpi=150)
    plt.close(fig)
    print(f"  ✓ Visual  → {prefix}_call_distribution.png")

    # Chart 2: Block headcount
    summary = result.rotation_plan.block_summary()
    blocks = [row["block"] for row in summary]
    fig, ax = plt.subplots(figsize=(10, 4))
    ax.bar(blocks, [row["juniors"] for row in summary], color="#4a90d9", label="Juniors")
    ax.bar(blocks, [row["seniors"] for row in summary],
           bottom=[row["juniors"] for row in summary], color="#1a3d7c", label="Seniors")
    ax.set_xticks(blocks)
    ax.set_xlabel("Block")
    ax.set_ylabel("Residents on service")
    ax.set_title("Home-Service Headcount per Block", fontsize=13, fontweight="bold")
    ax.legend()
    ax.grid(axis="y", alpha=0.3)
    fig.tight_layout()
    fig.savefig(output_dir / f"{prefix}_block_headcount.png", dpi=150)
    plt.close(fig)
    print(f"  ✓ Visual  → {prefix}_block_headcount.png")


# ---------------------------------------------------------------------------
# Main orchestrator
# ---------------------------------------------------------------------------

def run_schedule(
    start_date: date,
    end_date: date,
    config_dir: Path = DEFAULT_CONFIG_DIR,
    output_dir: Path = OUTPUTS_DIR,
    visual: bool = False,
) -> Dict[str, Any]:
    """
    Generate, audit and export a schedule.

    Args:
        start_date:  First date to schedule
        end_date:    Last date to schedule
        config_dir:  Directory holding roster.csv, staff.csv, constraints.json, …
        output_dir:  Directory for output files
        visual:      If True, write matplotlib charts

    Returns:
        Dict with result, audit violations, output paths
    """
    config_dir = Path(config_dir)
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    prefix = f"schedule_{start_date}_{end_date}"
    sep = "=" * 70

    print(f"\n{sep}")
    print(f"  MEDISHIFT SCHEDULE")
    print(f"  Period: {start_date} → {end_date}")
    print(f"{sep}\n")

    # ── 1. Load configuration ──────────────────────────────────────────────
    print("Step 1/4: Loading configuration...")
    roster = load_roster(
        config_dir / "roster.csv", config_dir / "staff.csv", window_start=start_date,
    )
    config = load_constraint_config(config_dir / "constraints.json")
    requests = load_off_service_requests(config_dir / "off_service_requests.csv")
    predefined = load_predefined_calls(config_dir / "predefined_calls.csv")
    print(
        f"  ✓ {len(roster.residents)} residents | {len(roster.staff)} staff | "
        f"{len(requests)} rotation requests | {len(predefined)} predefined calls"
    )
    spec_summary = get_specialty_summary(roster.staff)
    print(f"  ✓ Staff specialties: {', '.join(f'{k}={len(v)}' for k, v in sorted(spec_summary.items())) or '(none)'}")

    # ── 2. Generate ────────────────────────────────────────────────────────
    print("\nStep 2/4: Generating schedule...")
    result = generate_schedule(roster, start_date, end_date, config, requests, predefined)
    print(f"  ✓ {len(result.assignments)} activities across {len(result.calendar)} days")

    # ── 3. Audit ───────────────────────────────────────────────────────────
    print("\nStep 3/4: Auditing schedule...")
    used = {p.id: p.double_call_allowance - result.double_call_remaining.get(p.id, 0) for p in roster}
    audit = ConstraintChecker(roster, double_call_used=used).check_all(result.activities)
    status = "✓" if not audit else "✗"
    print(f"  {status} Audit findings: {len(audit)}")
    for kind, n in summarize_violations(result.violations).items():
        print(f"    {kind:<28} {n}")

    # ── 4. Export ──────────────────────────────────────────────────────────
    print("\nStep 4/4: Exporting outputs...")
    csv_path        = output_dir / f"{prefix}.csv"
    xlsx_path       = output_dir / f"{prefix}.xlsx"
    report_path     = output_dir / f"{prefix}_fairness_report.txt"
    violations_path = output_dir / f"{prefix}_violations.txt"
    fairness_path   = output_dir / f"{prefix}_fairness_data.json"

    export_to_csv(result, roster, csv_path)
    export_to_excel(result, roster, xlsx_path)
    export_fairness_report(result.metrics, roster, report_path, title=f"{start_date} → {end_date}")
    export_violations(result.violations + audit, violations_path)

    with open(fairness_path, "w") as f:
        json.dump({
            "call_cv": result.metrics.get("cv", 0),
            "weekend_cv": result.metrics.get("weekend_cv", 0),
            "counts": result.metrics.get("counts", {}),
            "holiday_group_counts": result.holiday_group_counts,
            "double_call_remaining": result.double_call_remaining,
            "unfilled": result.metrics.get("unfilled", 0),
        }, f, indent=2)

    print(f"  ✓ CSV:        {csv_path.name}")
    print(f"  ✓ Excel:      {xlsx_path.name}")
    print(f"  ✓ Report:     {report_path.name}")
    print(f"  ✓ Violations: {violations_path.name}")
    print(f"  ✓ Fairness:   {fairness_path.name}")

    # ── Summary ────────────────────────────────────────────────────────────
    metrics = result.metrics
    print(f"\n{sep}")
    print("  SUMMARY")
    print(f"{sep}")
    print(f"  Period:            {start_date} → {end_date}")
    print(f"  Unfilled slots:    {metrics['unfilled']}")
    print(f"  Call CV:           {metrics['cv']:.2f}%")
    print(f"  Violations:        {len(result.violations)}")
    if result.holiday_group_counts:
        groups = ", ".join(f"{g}={n}" for g, n in sorted(result.holiday_group_counts.items()))
        print(f"  Holiday groups:    {groups}")

    if visual:
        _generate_visual_analysis(result, roster, output_dir, prefix)

    print(f"\n{sep}\n")

    return {
        "result":     result,
        "audit":      audit,
        "outputs": {
            "csv":        csv_path,
            "excel":      xlsx_path,
            "report":     report_path,
            "violations": violations_path,
            "fairness":   fairness_path,
        },
    }


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate a residency call and rotation schedule")
    parser.add_argument("--start",      required=True, help="Start date YYYY-MM-DD")
    parser.add_argument("--end",        required=True, help="End date YYYY-MM-DD")
    parser.add_argument("--config-dir", default=None,  help="Input directory (default: config/)")
    parser.add_argument("--output-dir", default=None,  help="Output directory (default: outputs/)")
    parser.add_argument("--verbose",    action="store_true", help="Debug logging (one line per commit)")
    parser.add_argument("--visual",     action="store_true", help="Generate matplotlib charts")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        start = datetime.strptime(args.start, "%Y-%m-%d").date()
        end   = datetime.strptime(args.end,   "%Y-%m-%d").date()
    except ValueError as e:
        print(f"Invalid date format: {e}")
        return 1

    config_dir = Path(args.config_dir) if args.config_dir else DEFAULT_CONFIG_DIR
    out_dir = Path(args.output_dir) if args.output_dir else OUTPUTS_DIR
    try:
        run_schedule(start, end, config_dir=config_dir, output_dir=out_dir, visual=args.visual)
    except (SchedulingInputError, FileNotFoundError) as e:
        print(f"Error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
