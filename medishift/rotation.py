"""
rotation.py — Block Rotation Planner for the MediShift scheduling engine

Places each resident's mandatory off-service rotations on the 13-block
academic year, then checks home-service coverage per block.

Algorithm (single pass, never backtracks):
  For each request, in roster order then request order:
    candidates = every start block whose run of `duration_blocks` blocks is
                 still entirely on home service for that resident
    best       = min by
                   1. most blocks inside the timing window (early/mid/late/any)
                   2. fewest block coverage shortfalls the placement creates
                   3. smallest Σ_b |seniors_b − juniors_b| (parity)
                   4. earliest start
    no candidate → ROTATION_UNPLACED, scoped to the window's first block
  Residents flagged off service start with every block off service, so
  they never count toward a block and their requests cannot be placed.
  Unplaced blocks stay on home service.
  For each block: headcount < min_block_headcount or seniors < min_block_seniors
  → block-scoped violation (reported, never re-planned).
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple, Union

from medishift.calendar_model import BLOCKS_PER_YEAR
from medishift.constraints import (
    BLOCK_HEADCOUNT,
    BLOCK_SENIOR_COVERAGE,
    ROTATION_UNPLACED,
    ConstraintViolation,
    block_violation,
)
from medishift.models import ActivityKind, OffServiceRequest, Resident, Roster
from medishift.schedule_config import ConstraintConfig

logger = logging.getLogger(__name__)


@dataclass
class RotationPlan:
    """Per-resident, per-block service names plus the planner's violations."""

    assignments: Dict[str, List[str]]           # resident id → 13 service names
    levels: Dict[str, int]
    home_service_name: str
    senior_level: int
    violations: List[ConstraintViolation] = field(default_factory=list)
    # (resident id, rotation, first_block, last_block), one per placed request
    placements: List[Tuple[str, str, int, int]] = field(default_factory=list)

    def service_for(self, resident_id: str, block: int) -> str:
        if not 1 <= block <= BLOCKS_PER_YEAR:
            raise ValueError(f"Block must be 1..{BLOCKS_PER_YEAR}, got {block}")
        services = self.assignments.get(resident_id)
        if services is None:
            return self.home_service_name
        return services[block - 1]

    def on_home_service(self, block: int) -> List[str]:
        return [
            rid for rid, services in self.assignments.items()
            if services[block - 1] == self.home_service_name
        ]

    def headcount(self, block: int) -> int:
        return len(self.on_home_service(block))

    def seniors(self, block: int) -> int:
        return sum(1 for rid in self.on_home_service(block) if self.levels[rid] >= self.senior_level)

    def juniors(self, block: int) -> int:
        return self.headcount(block) - self.seniors(block)

    def rotation_runs(self, resident_id: str) -> List[Tuple[str, int, int]]:
        """Placed rotations as (rotation, first_block, last_block), by first block."""
        runs = [(rotation, first, last) for rid, rotation, first, last in self.placements if rid == resident_id]
        return sorted(runs, key=lambda run: run[1])

    def block_summary(self) -> List[Dict[str, int]]:
        return [
            {
                "block": b,
                "headcount": self.headcount(b),
                "seniors": self.seniors(b),
                "juniors": self.juniors(b),
            }
            for b in range(1, BLOCKS_PER_YEAR + 1)
        ]


# ---------------------------------------------------------------------------
# Placement scoring
# ---------------------------------------------------------------------------

def _shortfalls(
    plan: RotationPlan,
    blocks: range,
    resident: Resident,
    config: ConstraintConfig,
) -> int:
    """Number of (block, minimum) pairs below target if `resident` leaves `blocks`."""
    is_senior = resident.level >= config.senior_level
    count = 0
    for b in blocks:
        if plan.headcount(b) - 1 < config.min_block_headcount:
            count += 1
        if plan.seniors(b) - (1 if is_senior else 0) < config.min_block_seniors:
            count += 1
    return count


def _parity(plan: RotationPlan, blocks: range, resident: Resident, config: ConstraintConfig) -> int:
    is_senior = resident.level >= config.senior_level
    total = 0
    for b in range(1, BLOCKS_PER_YEAR + 1):
        seniors, juniors = plan.seniors(b), plan.juniors(b)
        if b in blocks:
            if is_senior:
                seniors -= 1
            else:
                juniors -= 1
        total += abs(seniors - juniors)
    return total


def _best_start(
    plan: RotationPlan,
    resident: Resident,
    request: OffServiceRequest,
    config: ConstraintConfig,
) -> Optional[Tuple[int, int]]:
    """Return (start_block, blocks_in_window) of the best free run, or None."""
    home = config.home_service_name
    first, last = config.timing_windows[request.timing]
    services = plan.assignments[resident.id]
    duration = request.duration_blocks

    best_key = None
    best: Optional[Tuple[int, int]] = None
    for start in range(1, BLOCKS_PER_YEAR - duration + 2):
        blocks = range(start, start + duration)
        if any(services[b - 1] != home for b in blocks):
            continue
        in_window = sum(1 for b in blocks if first <= b <= last)
        key = (
            -in_window,
            _shortfalls(plan, blocks, resident, config),
            _parity(plan, blocks, resident, config),
            start,
        )
        if best_key is None or key < best_key:
            best_key, best = key, (start, in_window)
    return best


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def _initial_service(resident: Resident, home: str) -> str:
    """Home service, or the resident's own off-service label when flagged off service."""
    if resident.on_service:
        return home
    return resident.off_service_rotation or str(ActivityKind.OFF_SERVICE)


def plan_rotations(
    residents: Union[Roster, Sequence[Resident]],
    requests: Sequence[OffServiceRequest],
    config: ConstraintConfig,
) -> RotationPlan:
    """
    Place off-service rotations on the 13-block year.

    Args:
        residents:  Home-program residents (a Roster is reduced to its
                    home_residents). Order is the processing order.
        requests:   Mandatory rotations (validated by the caller).
        config:     ConstraintConfig (block minimums, timing windows).

    Returns:
        RotationPlan with block-scoped violations sorted by block.
    """
    if isinstance(residents, Roster):
        residents = residents.home_residents
    home = config.home_service_name

    plan = RotationPlan(
        assignments={r.id: [_initial_service(r, home)] * BLOCKS_PER_YEAR for r in residents},
        levels={r.id: r.level for r in residents},
        home_service_name=home,
        senior_level=config.senior_level,
    )
    by_id = {r.id: r for r in residents}
    position = {r.id: i for i, r in enumerate(residents)}
    violations: List[ConstraintViolation] = []

    ordered = sorted(
        enumerate(requests),
        key=lambda item: (position.get(item[1].resident_id, len(position)), item[0]),
    )
    for _, req in ordered:
        resident = by_id.get(req.resident_id)
        if resident is None:
            logger.warning(f"Skipping rotation request for non-home resident '{req.resident_id}'")
            continue
        first, last = config.timing_windows[req.timing]
        found = _best_start(plan, resident, req, config)
        if found is None:
            violations.append(block_violation(
                ROTATION_UNPLACED, first,
                f"Block {first}: no free run of {req.duration_blocks} blocks for "
                f"{resident.name}'s {req.rotation} rotation ({req.timing}, blocks {first}-{last})",
                person_id=resident.id,
                rotation=req.rotation,
            ))
            logger.warning(f"Could not place {req.rotation} for {resident.name}")
            continue

        start, in_window = found
        for b in range(start, start + req.duration_blocks):
            plan.assignments[resident.id][b - 1] = req.rotation
        end = start + req.duration_blocks - 1
        plan.placements.append((resident.id, req.rotation, start, end))
        logger.debug(f"{resident.name}: {req.rotation} blocks {start}-{end}")
        if in_window < req.duration_blocks:
            logger.info(
                f"{resident.name}: {req.rotation} placed in blocks {start}-{end}, "
                f"{in_window}/{req.duration_blocks} inside the {req.timing} window"
            )

    for b in range(1, BLOCKS_PER_YEAR + 1):
        headcount = plan.headcount(b)
        if headcount < config.min_block_headcount:
            violations.append(block_violation(
                BLOCK_HEADCOUNT, b,
                f"Block {b} has only {headcount} residents on service, "
                f"which is below the minimum of {config.min_block_headcount}.",
                headcount=headcount,
            ))
        seniors = plan.seniors(b)
        if seniors < config.min_block_seniors:
            violations.append(block_violation(
                BLOCK_SENIOR_COVERAGE, b,
                f"Block {b} has only {seniors} senior residents (PGY-{config.senior_level}+) "
                f"on service, which is below the minimum of {config.min_block_seniors}.",
                seniors=seniors,
            ))

    violations.sort(key=lambda v: v.scope.index)
    plan.violations = violations
    logger.info(
        f"Rotation plan: {len(plan.placements)} rotations placed, "
        f"{len(violations)} block violations"
    )
    return plan
