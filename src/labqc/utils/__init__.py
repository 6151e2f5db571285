"""Utilities for labqc statistical quality control calculations."""

from .constants import (
    REJECT_RULES,
    RuleInfo,
    RuleRecommendation,
    all_rules,
    false_rejection_rate,
    get_rule_info,
    is_reject_rule,
    recommended_rules,
)

from .statistics import (
    BasicStatistics,
    CapabilityIndices,
    ControlLimitBounds,
    InControlFilter,
    QCStatistics,
    SufficiencyReport,
    TrendResult,
    basic_statistics,
    calculate_limit_bounds,
    capability_indices,
    detect_trend,
    filter_in_control,
    moving_averages,
    qc_statistics,
    sigma_metric,
    sufficiency_check,
    z_score,
    z_scores,
)

__all__ = [
    # Rule catalogue
    "REJECT_RULES",
    "RuleInfo",
    "RuleRecommendation",
    "all_rules",
    "false_rejection_rate",
    "get_rule_info",
    "is_reject_rule",
    "recommended_rules",
    # Data classes
    "BasicStatistics",
    "CapabilityIndices",
    "ControlLimitBounds",
    "InControlFilter",
    "QCStatistics",
    "SufficiencyReport",
    "TrendResult",
    # z-scores
    "z_score",
    "z_scores",
    # Statistics
    "basic_statistics",
    "calculate_limit_bounds",
    "qc_statistics",
    "sufficiency_check",
    "filter_in_control",
    "capability_indices",
    "sigma_metric",
    "moving_averages",
    "detect_trend",
]
