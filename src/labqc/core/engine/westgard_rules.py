"""Westgard multi-rule checks for laboratory QC violation detection.

Each rule is a standalone pure function over a RuleContext (the current
observation plus its run and level history). WestgardRuleLibrary is a flat
registry from rule code to check function; it holds no per-call state.

Within-run rules compare against other levels measured in the same run.
Across-run rules compare against the chronological series of the same level
and only ever inspect the N points immediately preceding the current one.

References:
    - Westgard JO, Barry PL, Hunt MR, Groth T. "A multi-rule Shewhart chart
      for quality control in clinical chemistry" (1981)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Hashable, Iterable

from labqc.core.engine.history import Observation, RuleContext
from labqc.utils import constants
from labqc.utils.constants import get_rule_info


class Severity(Enum):
    """Violation severity levels."""
    REJECT = constants.REJECT
    WARNING = constants.WARNING


@dataclass
class RuleResult:
    """Result of a violated Westgard rule.

    Attributes:
        rule: Rule code, e.g. "1_3s" or "CUSUM_positive"
        violated: Always True for results returned by the checks
        severity: REJECT or WARNING
        message: Human-readable description of the violation
        involved_ids: Observation ids that triggered the rule
    """
    rule: str
    violated: bool
    severity: Severity
    message: str
    involved_ids: list[Hashable] = field(default_factory=list)


RuleCheck = Callable[[RuleContext], RuleResult | None]


def _violation(code: str, message: str, points: Iterable[Observation]) -> RuleResult:
    return RuleResult(
        rule=code,
        violated=True,
        severity=Severity(get_rule_info(code).severity),
        message=message,
        involved_ids=[p.id for p in points],
    )


def _beyond(point: Observation, limit: float, sign: int) -> bool:
    """True if point is at or beyond *limit* SD on the *sign* side."""
    return abs(point.z) >= limit and point.sign == sign


def _over(point: Observation, limit: float, sign: int) -> bool:
    """True if point is strictly beyond *limit* SD on the *sign* side."""
    return abs(point.z) > limit and point.sign == sign


def _side(sign: int) -> str:
    return "above" if sign > 0 else "below"


# ---------------------------------------------------------------------------
# Single-point rules
# ---------------------------------------------------------------------------

def check_1_3s(ctx: RuleContext) -> RuleResult | None:
    """1_3s: one point at or beyond ±3SD."""
    current = ctx.current
    if abs(current.z) >= 3:
        return _violation(
            constants.RULE_1_3S,
            f"Point exceeds ±3SD (z={current.z:.2f})",
            [current],
        )
    return None


def check_1_2s(ctx: RuleContext) -> RuleResult | None:
    """1_2s warning: one point between ±2SD and ±3SD."""
    current = ctx.current
    if 2 <= abs(current.z) < 3:
        return _violation(
            constants.RULE_1_2S,
            f"Point exceeds ±2SD (z={current.z:.2f}) - Warning",
            [current],
        )
    return None


# ---------------------------------------------------------------------------
# Within-run rules
# ---------------------------------------------------------------------------

def check_2_2s_within(ctx: RuleContext) -> RuleResult | None:
    """2_2s within run: two points in the same run beyond 2SD, same side."""
    current = ctx.current
    if abs(current.z) < 2:
        return None

    for other in ctx.same_run:
        if _beyond(other, 2, current.sign):
            return _violation(
                constants.RULE_2_2S_WITHIN,
                f"Two points in run {current.run_id} exceed 2SD {_side(current.sign)} the mean",
                [current, other],
            )
    return None


def check_r_4s(ctx: RuleContext) -> RuleResult | None:
    """R_4s: two points in the same run on opposite sides spanning 4SD."""
    current = ctx.current
    for other in ctx.same_run:
        if current.sign * other.sign >= 0:
            continue
        spread = abs(current.z - other.z)
        if spread >= 4:
            return _violation(
                constants.RULE_R_4S,
                f"Range between points in run {current.run_id} exceeds 4SD ({spread:.2f}SD)",
                [current, other],
            )
    return None


# ---------------------------------------------------------------------------
# Across-run rules (same level, chronological)
# ---------------------------------------------------------------------------

def check_2_2s_across(ctx: RuleContext) -> RuleResult | None:
    """2_2s across runs: current and previous same-level point beyond 2SD, same side."""
    current = ctx.current
    if abs(current.z) < 2:
        return None

    previous = ctx.previous(1)
    if previous is None:
        return None

    last = previous[0]
    if _beyond(last, 2, current.sign):
        return _violation(
            constants.RULE_2_2S_ACROSS,
            f"Two consecutive {current.level} points exceed 2SD {_side(current.sign)} the mean",
            [current, last],
        )
    return None


def check_2of3_2s(ctx: RuleContext) -> RuleResult | None:
    """2of3_2s: current beyond 2SD and 1 of the 2 preceding points too, same side.

    Only the two immediately preceding points are inspected. With a single
    preceding point available, that point alone is inspected.
    """
    current = ctx.current
    if abs(current.z) < 2:
        return None

    previous = ctx.previous(2)
    if previous is None:
        previous = ctx.previous(1)
    if previous is None:
        return None

    matching = [p for p in previous if _beyond(p, 2, current.sign)]
    if matching:
        return _violation(
            constants.RULE_2OF3_2S,
            f"2 of 3 consecutive {current.level} points exceed 2SD {_side(current.sign)} the mean",
            [current, *matching],
        )
    return None


def _consecutive_over(ctx: RuleContext, code: str, count: int, limit: float) -> RuleResult | None:
    """current and the count-1 preceding points all beyond limit SD, same side."""
    current = ctx.current
    if abs(current.z) <= limit:
        return None

    previous = ctx.previous(count - 1)
    if previous is None:
        return None

    if all(_over(p, limit, current.sign) for p in previous):
        return _violation(
            code,
            f"{count} consecutive {current.level} points exceed {limit:g}SD "
            f"{_side(current.sign)} the mean",
            [current, *previous],
        )
    return None


def check_4_1s(ctx: RuleContext) -> RuleResult | None:
    """4_1s: four consecutive points beyond 1SD, same side."""
    return _consecutive_over(ctx, constants.RULE_4_1S, 4, 1)


def check_3_1s(ctx: RuleContext) -> RuleResult | None:
    """3_1s: three consecutive points beyond 1SD, same side."""
    return _consecutive_over(ctx, constants.RULE_3_1S, 3, 1)


def _consecutive_side(ctx: RuleContext, code: str, count: int) -> RuleResult | None:
    """current and the count-1 preceding points all on the same side of the mean."""
    current = ctx.current
    if current.sign == 0:
        return None

    previous = ctx.previous(count - 1)
    if previous is None:
        return None

    if all(p.sign == current.sign for p in previous):
        return _violation(
            code,
            f"{count} consecutive {current.level} points {_side(current.sign)} the mean",
            [current, *previous],
        )
    return None


def check_10x(ctx: RuleContext) -> RuleResult | None:
    """10x: ten consecutive points on the same side of the mean."""
    return _consecutive_side(ctx, constants.RULE_10X, 10)


def check_9x(ctx: RuleContext) -> RuleResult | None:
    """9x: nine consecutive points on the same side of the mean."""
    return _consecutive_side(ctx, constants.RULE_9X, 9)


def check_6x(ctx: RuleContext) -> RuleResult | None:
    """6x: six consecutive points on the same side of the mean."""
    return _consecutive_side(ctx, constants.RULE_6X, 6)


def check_7t(ctx: RuleContext) -> RuleResult | None:
    """7T: seven consecutive points steadily increasing or decreasing.

    The window is re-sorted by timestamp, current point included, so the
    order observations were supplied in does not matter.
    """
    previous = ctx.previous(6)
    if previous is None:
        return None

    window = sorted([*previous, ctx.current], key=lambda p: p.timestamp)
    values = [p.value for p in window]

    increasing = all(values[i] < values[i + 1] for i in range(len(values) - 1))
    decreasing = all(values[i] > values[i + 1] for i in range(len(values) - 1))

    if increasing or decreasing:
        direction = "increasing" if increasing else "decreasing"
        return _violation(
            constants.RULE_7T,
            f"7 consecutive {ctx.current.level} points {direction}",
            window,
        )
    return None


@dataclass(frozen=True)
class WestgardRule:
    """Registry entry binding a rule code to its check function."""
    code: str
    check: RuleCheck

    @property
    def severity(self) -> Severity:
        return Severity(get_rule_info(self.code).severity)


class WestgardRuleLibrary:
    """Registry of all Westgard rule checks.

    Reject rules are evaluated in registration order and every violation is
    collected. The 1_2s warning rule is evaluated last and only when no
    reject rule fired.
    """

    def __init__(self):
        self._rules: dict[str, WestgardRule] = {}
        self._register_default_rules()

    def _register_default_rules(self) -> None:
        checks = [
            (constants.RULE_1_3S, check_1_3s),
            (constants.RULE_2_2S_WITHIN, check_2_2s_within),
            (constants.RULE_2_2S_ACROSS, check_2_2s_across),
            (constants.RULE_R_4S, check_r_4s),
            (constants.RULE_4_1S, check_4_1s),
            (constants.RULE_10X, check_10x),
            (constants.RULE_2OF3_2S, check_2of3_2s),
            (constants.RULE_3_1S, check_3_1s),
            (constants.RULE_6X, check_6x),
            (constants.RULE_9X, check_9x),
            (constants.RULE_7T, check_7t),
            (constants.RULE_1_2S, check_1_2s),
        ]
        for code, check in checks:
            self._rules[code] = WestgardRule(code=code, check=check)

    @property
    def codes(self) -> list[str]:
        """Registered rule codes in evaluation order."""
        return list(self._rules)

    def get_rule(self, code: str) -> WestgardRule | None:
        return self._rules.get(code)

    def check_single(self, ctx: RuleContext, code: str) -> RuleResult | None:
        """Check one rule by code; unknown codes are never violated."""
        rule = self._rules.get(code)
        if rule is None:
            return None
        return rule.check(ctx)

    def check_all(self, ctx: RuleContext, enabled_rules: set[str] | None = None) -> list[RuleResult]:
        """Check all enabled rules and return the violations.

        Args:
            ctx: Scoped history for the current observation
            enabled_rules: Rule codes to check (None = all registered)

        Returns:
            Violated rules, reject rules first
        """
        if enabled_rules is None:
            enabled_rules = set(self._rules)

        violations = []
        for code, rule in self._rules.items():
            if code not in enabled_rules or rule.severity is Severity.WARNING:
                continue
            result = rule.check(ctx)
            if result is not None and result.violated:
                violations.append(result)

        if not violations:
            for code, rule in self._rules.items():
                if code not in enabled_rules or rule.severity is not Severity.WARNING:
                    continue
                result = rule.check(ctx)
                if result is not None and result.violated:
                    violations.append(result)

        return violations
