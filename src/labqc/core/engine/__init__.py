"""QC Engine - Westgard rule evaluation and control limit establishment."""

from .control_limits import ControlLimitSet, LimitSource, establish_limits
from .cusum import CUSUMState, update_cusum
from .evaluator import (
    EvaluationResult,
    WestgardEvaluator,
    determine_status,
    evaluate_point,
    evaluate_series,
)
from .history import Observation, RuleContext, build_context
from .rule_config import RuleConfiguration
from .westgard_rules import (
    RuleResult,
    Severity,
    WestgardRule,
    WestgardRuleLibrary,
    check_1_2s,
    check_1_3s,
    check_2_2s_across,
    check_2_2s_within,
    check_2of3_2s,
    check_3_1s,
    check_4_1s,
    check_6x,
    check_7t,
    check_9x,
    check_10x,
    check_r_4s,
)

__all__ = [
    # Evaluator
    "WestgardEvaluator",
    "EvaluationResult",
    "determine_status",
    "evaluate_point",
    "evaluate_series",
    # History
    "Observation",
    "RuleContext",
    "build_context",
    # Configuration
    "RuleConfiguration",
    # CUSUM
    "CUSUMState",
    "update_cusum",
    # Control Limits
    "ControlLimitSet",
    "LimitSource",
    "establish_limits",
    # Westgard Rules
    "WestgardRuleLibrary",
    "WestgardRule",
    "RuleResult",
    "Severity",
    "check_1_2s",
    "check_1_3s",
    "check_2_2s_within",
    "check_2_2s_across",
    "check_r_4s",
    "check_4_1s",
    "check_10x",
    "check_2of3_2s",
    "check_3_1s",
    "check_6x",
    "check_9x",
    "check_7t",
]
