"""Statistical functions for laboratory QC limit establishment.

This module provides functions for:
- z-score transforms against an established mean/SD
- Descriptive statistics (mean, sample SD, CV%)
- ±1/2/3 SD control limits with outlier counts
- Sufficiency checks and in-control filtering before limits are established
- Process capability indices and sigma metrics
- Trend detection on moving averages
"""

import math
from dataclasses import dataclass, field
from typing import List, Sequence

import numpy as np

from labqc.core.exceptions import EmptyDatasetError


@dataclass
class BasicStatistics:
    """Descriptive statistics for a set of QC values.

    Attributes:
        mean: Arithmetic mean
        standard_deviation: Sample standard deviation (n-1)
        variance: Sample variance (n-1)
        count: Number of values
        min: Smallest value
        max: Largest value
        range: max - min
        cv: Coefficient of variation in percent (0 when mean is 0)
    """
    mean: float
    standard_deviation: float
    variance: float
    count: int
    min: float
    max: float
    range: float
    cv: float


@dataclass(frozen=True)
class ControlLimitBounds:
    """The six ±1/2/3 SD bounds around a mean."""
    limit_1s_lower: float
    limit_1s_upper: float
    limit_2s_lower: float
    limit_2s_upper: float
    limit_3s_lower: float
    limit_3s_upper: float


@dataclass
class QCStatistics(BasicStatistics):
    """Basic statistics extended with control limits and outlier counts.

    Attributes:
        control_limits: ±1/2/3 SD bounds (target mean/SD when supplied)
        outliers: Values outside the ±3 SD band
        in_control_count: Values within the ±3 SD band (inclusive)
        out_of_control_count: Values outside the ±3 SD band
    """
    control_limits: ControlLimitBounds | None = None
    outliers: List[float] = field(default_factory=list)
    in_control_count: int = 0
    out_of_control_count: int = 0


@dataclass
class SufficiencyReport:
    """Whether enough data exists to establish control limits."""
    sufficient: bool
    points_count: int
    required_points: int
    message: str
    days_count: int | None = None
    required_days: int | None = None


@dataclass
class InControlFilter:
    """Values retained after excluding out-of-control points."""
    in_control_values: List[float]
    filtered_count: int
    original_count: int


@dataclass
class CapabilityIndices:
    """Process capability and performance indices.

    cpm is only computed when a target value is supplied.
    """
    cp: float
    cpk: float
    pp: float
    ppk: float
    cpm: float | None = None


@dataclass
class TrendResult:
    """Outcome of moving-average trend detection."""
    has_upward_trend: bool
    has_downward_trend: bool
    trend_strength: float
    message: str


def z_score(value: float, mean: float, sd: float) -> float:
    """Express a value in SD units relative to an established mean.

    Args:
        value: Measured value
        mean: Established mean
        sd: Established standard deviation

    Returns:
        (value - mean) / sd, or 0.0 when sd is 0

    Examples:
        >>> z_score(116.0, 100.0, 5.0)
        3.2
        >>> z_score(116.0, 100.0, 0.0)
        0.0
    """
    if sd == 0:
        return 0.0
    return (value - mean) / sd


def z_scores(values: Sequence[float], mean: float, sd: float) -> List[float]:
    """Vectorised z_score over a sequence of values."""
    if sd == 0:
        return [0.0] * len(values)
    arr = np.asarray(values, dtype=np.float64)
    return ((arr - mean) / sd).tolist()


def basic_statistics(values: Sequence[float]) -> BasicStatistics:
    """Calculate descriptive statistics using the sample (n-1) estimator.

    Args:
        values: QC values

    Returns:
        BasicStatistics for the values. A single value has SD 0.

    Raises:
        EmptyDatasetError: If values is empty

    Examples:
        >>> stats = basic_statistics([95.0, 100.0, 105.0])
        >>> stats.mean, stats.standard_deviation
        (100.0, 5.0)
    """
    if len(values) == 0:
        raise EmptyDatasetError()

    arr = np.asarray(values, dtype=np.float64)
    count = int(arr.size)
    mean = float(np.mean(arr))
    variance = float(np.var(arr, ddof=1)) if count > 1 else 0.0
    standard_deviation = math.sqrt(variance)

    min_value = float(np.min(arr))
    max_value = float(np.max(arr))

    cv = (standard_deviation / abs(mean)) * 100 if mean != 0 else 0.0

    return BasicStatistics(
        mean=mean,
        standard_deviation=standard_deviation,
        variance=variance,
        count=count,
        min=min_value,
        max=max_value,
        range=max_value - min_value,
        cv=cv,
    )


def calculate_limit_bounds(mean: float, sd: float) -> ControlLimitBounds:
    """Calculate the ±1/2/3 SD bounds around a mean.

    Examples:
        >>> bounds = calculate_limit_bounds(100.0, 5.0)
        >>> bounds.limit_2s_upper
        110.0
    """
    return ControlLimitBounds(
        limit_1s_lower=mean - sd,
        limit_1s_upper=mean + sd,
        limit_2s_lower=mean - 2 * sd,
        limit_2s_upper=mean + 2 * sd,
        limit_3s_lower=mean - 3 * sd,
        limit_3s_upper=mean + 3 * sd,
    )


def qc_statistics(
    values: Sequence[float],
    target_mean: float | None = None,
    target_sd: float | None = None,
) -> QCStatistics:
    """Calculate QC statistics with ±1/2/3 SD control limits.

    The limits are centred on target_mean/target_sd when supplied, otherwise
    on the computed mean/SD. Outliers are values outside the ±3 SD band.

    Args:
        values: QC values
        target_mean: Optional mean to build the limits from
        target_sd: Optional SD to build the limits from

    Returns:
        QCStatistics

    Raises:
        EmptyDatasetError: If values is empty

    Examples:
        >>> stats = qc_statistics([95.0, 100.0, 105.0])
        >>> stats.control_limits.limit_1s_upper
        105.0
    """
    basic = basic_statistics(values)

    mean = target_mean if target_mean is not None else basic.mean
    sd = target_sd if target_sd is not None else basic.standard_deviation
    bounds = calculate_limit_bounds(mean, sd)

    outliers = [
        float(v) for v in values
        if v < bounds.limit_3s_lower or v > bounds.limit_3s_upper
    ]
    in_control_count = len(values) - len(outliers)

    return QCStatistics(
        mean=basic.mean,
        standard_deviation=basic.standard_deviation,
        variance=basic.variance,
        count=basic.count,
        min=basic.min,
        max=basic.max,
        range=basic.range,
        cv=basic.cv,
        control_limits=bounds,
        outliers=outliers,
        in_control_count=in_control_count,
        out_of_control_count=len(outliers),
    )


def sufficiency_check(
    values: Sequence[float],
    min_points: int = 20,
    min_days: int | None = None,
) -> SufficiencyReport:
    """Decide whether enough in-control data exists to establish limits.

    Per-day grouping is not available from a flat value list, so when
    min_days is given the day count is estimated as two runs per day.

    Args:
        values: In-control QC values
        min_points: Minimum number of values (default: 20)
        min_days: Optional minimum number of days

    Returns:
        SufficiencyReport; never raises

    Examples:
        >>> sufficiency_check([100.0] * 19).sufficient
        False
        >>> sufficiency_check([100.0] * 20).message
        'Sufficient data for establishing limits'
    """
    points_count = len(values)
    points_sufficient = points_count >= min_points

    days_count = None
    days_sufficient = True
    if min_days:
        days_count = math.ceil(points_count / 2)
        days_sufficient = days_count >= min_days

    if not points_sufficient:
        message = f"Need {min_points - points_count} more data points"
    elif not days_sufficient:
        message = f"Need data from {min_days - days_count} more days"
    else:
        message = "Sufficient data for establishing limits"

    return SufficiencyReport(
        sufficient=points_sufficient and days_sufficient,
        points_count=points_count,
        required_points=min_points,
        message=message,
        days_count=days_count,
        required_days=min_days if min_days else None,
    )


def filter_in_control(
    values: Sequence[float],
    z_scores: Sequence[float],
    max_z: float = 2.0,
) -> InControlFilter:
    """Drop values whose |z| exceeds max_z before establishing limits.

    Args:
        values: QC values
        z_scores: z-score for each value, same length as values
        max_z: Largest |z| retained (inclusive, default: 2)

    Returns:
        InControlFilter

    Raises:
        ValueError: If values and z_scores differ in length
    """
    if len(values) != len(z_scores):
        raise ValueError(
            f"values ({len(values)}) and z_scores ({len(z_scores)}) "
            "must have the same length"
        )

    kept = [float(v) for v, z in zip(values, z_scores) if abs(z) <= max_z]
    return InControlFilter(
        in_control_values=kept,
        filtered_count=len(values) - len(kept),
        original_count=len(values),
    )


def capability_indices(
    values: Sequence[float],
    lsl: float,
    usl: float,
    target: float | None = None,
) -> CapabilityIndices:
    """Calculate Cp, Cpk, Pp, Ppk and optionally Cpm.

    No rational subgrouping is modelled, so the within (Cp/Cpk) and overall
    (Pp/Ppk) indices share the same sample SD. Cpm replaces the variance with
    the mean squared deviation from target.

    Args:
        values: QC values
        lsl: Lower specification limit
        usl: Upper specification limit
        target: Optional target value for Cpm

    Returns:
        CapabilityIndices. A zero SD yields infinite indices, except that
        Cpk/Ppk are NaN when the mean sits exactly on a specification limit
        (0/0: capability is undefined there).

    Raises:
        EmptyDatasetError: If values is empty

    Examples:
        >>> idx = capability_indices([95.0, 100.0, 105.0], lsl=85.0, usl=115.0)
        >>> idx.cp
        1.0
    """
    stats = basic_statistics(values)
    mean = stats.mean
    sd = stats.standard_deviation

    with np.errstate(divide="ignore", invalid="ignore"):
        spread = np.float64(usl - lsl)
        cp = float(spread / (6 * np.float64(sd)))
        cpk = float(min(
            np.float64(usl - mean) / (3 * np.float64(sd)),
            np.float64(mean - lsl) / (3 * np.float64(sd)),
        ))

        cpm = None
        if target is not None:
            msd = sd ** 2 + (mean - target) ** 2
            cpm = float(spread / (6 * np.sqrt(np.float64(msd))))

    return CapabilityIndices(cp=cp, cpk=cpk, pp=cp, ppk=cpk, cpm=cpm)


def sigma_metric(tea: float, bias: float, cv: float) -> float:
    """Calculate the sigma metric of an analytical method.

    sigma = (TEa - |bias|) / CV, all expressed in percent.

    Args:
        tea: Total allowable error (%)
        bias: Observed bias (%)
        cv: Observed imprecision (%)

    Returns:
        Sigma metric

    Raises:
        ValueError: If cv is not positive

    Examples:
        >>> sigma_metric(10.0, 2.0, 2.0)
        4.0
    """
    if cv <= 0:
        raise ValueError(f"CV must be positive, got {cv}")
    return (tea - abs(bias)) / cv


def moving_averages(values: Sequence[float], window_size: int) -> List[float]:
    """Simple moving averages of width window_size, one per full window."""
    if window_size < 1:
        raise ValueError(f"Window size must be at least 1, got {window_size}")
    if len(values) < window_size:
        return []
    arr = np.asarray(values, dtype=np.float64)
    kernel = np.ones(window_size) / window_size
    return np.convolve(arr, kernel, mode="valid").tolist()


def detect_trend(
    values: Sequence[float],
    window_size: int = 7,
    slope_threshold: float = 0.1,
) -> TrendResult:
    """Detect a sustained drift from the slope of the moving averages.

    Fits an ordinary least squares line to the moving-average series (index
    as x). A slope above +threshold flags an upward trend, below -threshold a
    downward one.

    Args:
        values: QC values in chronological order
        window_size: Moving average width (default: 7)
        slope_threshold: Minimum |slope| flagged as a trend (default: 0.1)

    Returns:
        TrendResult; insufficient data is reported, not raised

    Raises:
        ValueError: If window_size is less than 1
    """
    if window_size < 1:
        raise ValueError(f"Window size must be at least 1, got {window_size}")

    if len(values) < window_size:
        return TrendResult(
            has_upward_trend=False,
            has_downward_trend=False,
            trend_strength=0.0,
            message="Insufficient data for trend analysis",
        )

    averages = moving_averages(values, window_size)

    # A single average has no slope
    if len(averages) < 2:
        slope = 0.0
    else:
        x = np.arange(len(averages), dtype=np.float64)
        slope = float(np.polyfit(x, np.asarray(averages), 1)[0])

    has_upward_trend = slope > slope_threshold
    has_downward_trend = slope < -slope_threshold

    if has_upward_trend:
        message = "Upward trend detected"
    elif has_downward_trend:
        message = "Downward trend detected"
    else:
        message = "No significant trend detected"

    return TrendResult(
        has_upward_trend=has_upward_trend,
        has_downward_trend=has_downward_trend,
        trend_strength=abs(slope),
        message=message,
    )
