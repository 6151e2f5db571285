"""Control limit establishment and locking for QC lots.

A lot's limits are established from its in-control history once enough
observations exist, then locked. A locked ControlLimitSet is never
recomputed; only its lock metadata is written, once.

Establishment steps:
1. Optionally drop values whose |z| exceeds max_z (known out-of-control runs)
2. Gate on the sufficiency check (default: 20 points)
3. Compute mean, sample SD, CV and the ±1/2/3 SD limits
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Sequence

import structlog

from labqc.core.exceptions import InsufficientDataError, LimitsLockedError
from labqc.utils.statistics import (
    ControlLimitBounds,
    calculate_limit_bounds,
    filter_in_control,
    qc_statistics,
    sufficiency_check,
    z_score,
)

logger = structlog.get_logger(__name__)


class LimitSource(str, Enum):
    """Provenance of a lot's mean and SD."""
    LAB = "lab"
    MANUFACTURER = "manufacturer"
    PEER = "peer"


@dataclass(frozen=True)
class ControlLimitSet:
    """Mean/SD control limits for one analyte/level/instrument/lot.

    Attributes:
        mean: Established mean
        sd: Established standard deviation
        cv: Coefficient of variation in percent
        limits: ±1/2/3 SD bounds around the mean
        source: Where mean/SD came from
        established_at: When the limits were computed
        point_count: Observations used (0 for supplied values)
        locked: Whether the limits are locked
        locked_at: When the limits were locked
        locked_by: Who locked the limits
        notes: Free text provenance note
    """

    mean: float
    sd: float
    cv: float
    limits: ControlLimitBounds
    source: LimitSource
    established_at: datetime
    point_count: int = 0
    locked: bool = False
    locked_at: datetime | None = None
    locked_by: str | None = None
    notes: str = ""

    @classmethod
    def from_values(
        cls,
        mean: float,
        sd: float,
        source: LimitSource = LimitSource.MANUFACTURER,
        established_at: datetime | None = None,
        notes: str = "",
    ) -> "ControlLimitSet":
        """Build an unlocked set from a supplied mean/SD (manufacturer or peer group)."""
        if sd < 0:
            raise ValueError(f"SD cannot be negative, got {sd}")
        return cls(
            mean=mean,
            sd=sd,
            cv=(sd / abs(mean)) * 100 if mean != 0 else 0.0,
            limits=calculate_limit_bounds(mean, sd),
            source=source,
            established_at=established_at or datetime.now(timezone.utc),
            notes=notes,
        )

    def z_score(self, value: float) -> float:
        """z-score of a value against these limits (0 when SD is 0)."""
        return z_score(value, self.mean, self.sd)

    def lock(self, locked_by: str, at: datetime | None = None) -> "ControlLimitSet":
        """Return a locked copy of this set.

        Raises:
            LimitsLockedError: If the set is already locked
        """
        if self.locked:
            raise LimitsLockedError(
                f"Limits already locked by {self.locked_by} at {self.locked_at}"
            )
        locked = replace(
            self,
            locked=True,
            locked_at=at or datetime.now(timezone.utc),
            locked_by=locked_by,
        )
        logger.info(
            "control_limits_locked",
            mean=locked.mean,
            sd=locked.sd,
            locked_by=locked_by,
        )
        return locked


def establish_limits(
    values: Sequence[float],
    z_scores: Sequence[float] | None = None,
    *,
    min_points: int | None = None,
    max_z: float | None = None,
    min_days: int | None = None,
    source: LimitSource = LimitSource.LAB,
    existing: ControlLimitSet | None = None,
    established_at: datetime | None = None,
) -> ControlLimitSet:
    """Establish lab control limits from a lot's in-control history.

    Args:
        values: QC values for the lot, oldest first
        z_scores: Optional z-scores for values; when given, values with
            |z| > max_z are excluded before computing limits
        min_points: Minimum usable values (LABQC_MIN_POINTS when None)
        max_z: In-control |z| threshold (LABQC_MAX_Z_FOR_LIMITS when None)
        min_days: Optional minimum number of days
        source: Provenance to record on the new set
        existing: Current limit set for the lot, if any
        established_at: Timestamp to record (now when None)

    Returns:
        Unlocked ControlLimitSet

    Raises:
        LimitsLockedError: If existing limits are locked
        InsufficientDataError: If too few usable values remain
    """
    from labqc.core.config import get_settings

    if existing is not None and existing.locked:
        raise LimitsLockedError(
            "Limits are locked for this lot and cannot be recomputed"
        )

    settings = get_settings()
    if min_points is None:
        min_points = settings.min_points
    if max_z is None:
        max_z = settings.max_z_for_limits

    usable = list(values)
    filtered_count = 0
    if z_scores is not None:
        filtered = filter_in_control(values, z_scores, max_z)
        usable = filtered.in_control_values
        filtered_count = filtered.filtered_count

    report = sufficiency_check(usable, min_points=min_points, min_days=min_days)
    if not report.sufficient:
        raise InsufficientDataError(
            f"Insufficient in-control points. Found {report.points_count}, "
            f"need at least {min_points}: {report.message}",
            points_count=report.points_count,
            required_points=min_points,
        )

    stats = qc_statistics(usable)

    logger.info(
        "control_limits_established",
        mean=stats.mean,
        sd=stats.standard_deviation,
        points=stats.count,
        filtered=filtered_count,
    )

    return ControlLimitSet(
        mean=stats.mean,
        sd=stats.standard_deviation,
        cv=stats.cv,
        limits=stats.control_limits,
        source=source,
        established_at=established_at or datetime.now(timezone.utc),
        point_count=stats.count,
        notes=f"Established from {stats.count} in-control points",
    )
