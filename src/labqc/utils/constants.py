"""Westgard rule catalogue for laboratory QC evaluation.

Rule codes, display names, severities and approximate single-rule false
rejection probabilities for the multi-rule procedure. The table is the single
source of truth for which rules classify a run as "reject".
"""

from dataclasses import dataclass
from typing import Dict, Iterable

# Severity labels used by the catalogue and the evaluator
REJECT = "reject"
WARNING = "warning"

# Rule codes
RULE_1_2S = "1_2s"
RULE_1_3S = "1_3s"
RULE_2_2S_WITHIN = "2_2s_within"
RULE_2_2S_ACROSS = "2_2s_across"
RULE_R_4S = "R_4s"
RULE_4_1S = "4_1s"
RULE_10X = "10x"
RULE_2OF3_2S = "2of3_2s"
RULE_3_1S = "3_1s"
RULE_6X = "6x"
RULE_9X = "9x"
RULE_7T = "7T"
RULE_CUSUM_POSITIVE = "CUSUM_positive"
RULE_CUSUM_NEGATIVE = "CUSUM_negative"
RULE_ERROR = "error"


@dataclass(frozen=True)
class RuleInfo:
    """Catalogue entry for a single QC rule.

    Attributes:
        code: Rule code used in violation records (e.g. "1_3s")
        name: Short display name
        description: One-line description of the violating pattern
        severity: "reject" or "warning"
        category: "westgard", "extension" or "cusum"
        is_extension: True for rules outside the classic Westgard set
        default_enabled: Whether new configurations enable the rule
        false_rejection_rate: Approximate probability of a false rejection
            for an in-control process with this rule alone
    """
    code: str
    name: str
    description: str
    severity: str
    category: str
    is_extension: bool
    default_enabled: bool
    false_rejection_rate: float


_RULE_TABLE: Dict[str, RuleInfo] = {
    RULE_1_2S: RuleInfo(
        RULE_1_2S, "Single point ±2SD", "Single point exceeds ±2SD (warning)",
        WARNING, "westgard", False, True, 0.0455,
    ),
    RULE_1_3S: RuleInfo(
        RULE_1_3S, "Single point ±3SD", "Single point exceeds ±3SD",
        REJECT, "westgard", False, True, 0.0027,
    ),
    RULE_2_2S_WITHIN: RuleInfo(
        RULE_2_2S_WITHIN, "2 points ±2SD within run",
        "2 points in same run exceed ±2SD on same side",
        REJECT, "westgard", False, True, 0.0002,
    ),
    RULE_2_2S_ACROSS: RuleInfo(
        RULE_2_2S_ACROSS, "2 points ±2SD across runs",
        "2 consecutive points same level exceed ±2SD on same side",
        REJECT, "westgard", False, True, 0.0002,
    ),
    RULE_R_4S: RuleInfo(
        RULE_R_4S, "Range 4SD within run",
        "Range between 2 points in same run exceeds 4SD",
        REJECT, "westgard", False, True, 0.0001,
    ),
    RULE_4_1S: RuleInfo(
        RULE_4_1S, "4 consecutive ±1SD",
        "4 consecutive points exceed ±1SD on same side",
        REJECT, "westgard", False, True, 0.0003,
    ),
    RULE_10X: RuleInfo(
        RULE_10X, "10 consecutive same side",
        "10 consecutive points on same side of mean",
        REJECT, "westgard", False, True, 0.001,
    ),
    RULE_2OF3_2S: RuleInfo(
        RULE_2OF3_2S, "2 of 3 exceed ±2SD",
        "2 out of 3 consecutive points exceed ±2SD on same side",
        REJECT, "westgard", False, False, 0.0,
    ),
    RULE_3_1S: RuleInfo(
        RULE_3_1S, "3 consecutive exceed ±1SD",
        "3 consecutive points exceed ±1SD on same side",
        REJECT, "westgard", False, False, 0.0,
    ),
    RULE_6X: RuleInfo(
        RULE_6X, "6 consecutive same side",
        "6 consecutive points on same side of mean",
        REJECT, "westgard", False, False, 0.0,
    ),
    RULE_9X: RuleInfo(
        RULE_9X, "9 consecutive same side",
        "9 consecutive points on same side of mean",
        REJECT, "westgard", False, False, 0.0,
    ),
    RULE_7T: RuleInfo(
        RULE_7T, "7 point trend",
        "7 consecutive points showing consistent trend",
        REJECT, "extension", True, False, 0.0,
    ),
    RULE_CUSUM_POSITIVE: RuleInfo(
        RULE_CUSUM_POSITIVE, "CUSUM upper",
        "Upper cumulative sum exceeds decision interval H",
        WARNING, "cusum", True, False, 0.0,
    ),
    RULE_CUSUM_NEGATIVE: RuleInfo(
        RULE_CUSUM_NEGATIVE, "CUSUM lower",
        "Lower cumulative sum exceeds decision interval H",
        WARNING, "cusum", True, False, 0.0,
    ),
}

REJECT_RULES = frozenset(
    code for code, info in _RULE_TABLE.items() if info.severity == REJECT
)


def get_rule_info(code: str) -> RuleInfo:
    """Get the catalogue entry for a rule code.

    Args:
        code: Rule code, e.g. "R_4s"

    Returns:
        RuleInfo for the code

    Raises:
        ValueError: If the code is not in the catalogue

    Examples:
        >>> get_rule_info("1_3s").severity
        'reject'
    """
    try:
        return _RULE_TABLE[code]
    except KeyError:
        raise ValueError(f"Unknown rule code: {code!r}") from None


def all_rules() -> list[RuleInfo]:
    """Return every catalogue entry in evaluation order."""
    return list(_RULE_TABLE.values())


def is_reject_rule(code: str) -> bool:
    """True if a violation of *code* classifies the run as reject."""
    return code in REJECT_RULES


def false_rejection_rate(rule_codes: Iterable[str]) -> float:
    """Approximate combined false rejection rate for a rule selection.

    Sums the single-rule rates. This overestimates slightly because rule
    triggers are not independent, which is acceptable for comparing
    candidate selections. Unknown codes contribute nothing.

    Examples:
        >>> round(false_rejection_rate(["1_3s", "R_4s"]), 4)
        0.0028
    """
    return float(sum(
        _RULE_TABLE[code].false_rejection_rate
        for code in rule_codes
        if code in _RULE_TABLE
    ))


@dataclass(frozen=True)
class RuleRecommendation:
    """Rule selection recommended for an assay's sigma level.

    Attributes:
        rules: Rule codes to enable
        description: Human-readable rating of the method
        qc_levels: Suggested number of control measurements per run
    """
    rules: tuple[str, ...]
    description: str
    qc_levels: int


def recommended_rules(sigma_level: float) -> RuleRecommendation:
    """Recommend a Westgard rule selection from the method's sigma metric.

    Args:
        sigma_level: Sigma metric of the analytical method

    Returns:
        RuleRecommendation for the sigma band

    Examples:
        >>> recommended_rules(6.2).rules
        ('1_3s',)
        >>> recommended_rules(3.5).qc_levels
        6
    """
    if sigma_level >= 6:
        return RuleRecommendation(
            rules=(RULE_1_3S,),
            description="Excellent method - single rule sufficient",
            qc_levels=2,
        )
    if sigma_level >= 5:
        return RuleRecommendation(
            rules=(RULE_1_3S, RULE_2_2S_WITHIN, RULE_2_2S_ACROSS, RULE_R_4S),
            description="Good method - multi-rule approach",
            qc_levels=2,
        )
    if sigma_level >= 4:
        return RuleRecommendation(
            rules=(RULE_1_3S, RULE_2_2S_WITHIN, RULE_2_2S_ACROSS, RULE_R_4S, RULE_4_1S),
            description="Acceptable method - enhanced monitoring",
            qc_levels=4,
        )
    return RuleRecommendation(
        rules=(
            RULE_1_3S, RULE_2_2S_WITHIN, RULE_2_2S_ACROSS,
            RULE_R_4S, RULE_4_1S, RULE_10X,
        ),
        description="Poor method - comprehensive rule set required",
        qc_levels=6,
    )
