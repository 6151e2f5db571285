"""Observation history views for Westgard rule evaluation.

Rules compare the current observation against one of two scopes:
- the same analytical run (within-run rules)
- the same control level, in chronological order (across-run rules)

The views here are plain tuples built from the supplied history; nothing is
cached or mutated between calls.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Hashable, Sequence


@dataclass(frozen=True)
class Observation:
    """A single QC control measurement.

    Attributes:
        id: Sequence position or opaque identifier
        value: Measured value
        z: Value in SD units relative to the locked mean/SD (0 when SD is 0)
        level: Control level label, e.g. "L1"
        timestamp: When the measurement was taken
        run_id: Analytical run the measurement belongs to
    """
    id: Hashable
    value: float
    z: float
    level: str
    timestamp: datetime
    run_id: str = "default"

    @property
    def sign(self) -> int:
        """Side of the mean: 1 above, -1 below, 0 exactly on it."""
        if self.z > 0:
            return 1
        if self.z < 0:
            return -1
        return 0


@dataclass(frozen=True)
class RuleContext:
    """History scoped for rule evaluation of one observation.

    Attributes:
        current: Observation being classified
        same_run: Other observations from the current run
        same_level: Other observations of the current level, oldest first
    """
    current: Observation
    same_run: tuple[Observation, ...]
    same_level: tuple[Observation, ...]

    def previous(self, n: int) -> tuple[Observation, ...] | None:
        """Return the n same-level observations immediately before current.

        Returns None when fewer than n are available so callers make the
        insufficient-history branch explicit.
        """
        available = len(self.same_level)
        if n <= 0:
            return ()
        if available < n:
            return None
        return self.same_level[available - n:available]


def build_context(current: Observation, history: Sequence[Observation]) -> RuleContext:
    """Scope raw history to the run and level views the rules need.

    The current observation is excluded by id if the caller included it in
    history. The level view is sorted by timestamp; ties keep input order.
    """
    others = [p for p in history if p.id != current.id]

    same_run = tuple(p for p in others if p.run_id == current.run_id)
    same_level = tuple(sorted(
        (p for p in others if p.level == current.level),
        key=lambda p: p.timestamp,
    ))

    return RuleContext(current=current, same_run=same_run, same_level=same_level)
