"""QC point evaluator running the complete Westgard pipeline for one observation.

The evaluator coordinates history scoping, rule evaluation, the CUSUM update
and the final classification. It never persists anything: the caller stores
the returned status, violations and CUSUM state, and serialises calls for the
same analyte/level/instrument/lot.
"""

from dataclasses import dataclass, field
from typing import Hashable, Sequence

import structlog

from labqc.core.engine.cusum import CUSUMState, crossed_rule, update_cusum
from labqc.core.engine.history import Observation, build_context
from labqc.core.engine.rule_config import RuleConfiguration
from labqc.core.engine.westgard_rules import RuleResult, Severity, WestgardRuleLibrary
from labqc.utils import constants
from labqc.utils.constants import is_reject_rule

logger = structlog.get_logger(__name__)

STATUS_IN_CONTROL = "in-control"
STATUS_WARNING = "warning"
STATUS_REJECT = "reject"


@dataclass
class EvaluationResult:
    """Result of evaluating one observation.

    Attributes:
        observation_id: Id of the evaluated observation
        z: z-score of the evaluated observation
        status: "in-control", "warning" or "reject"
        violations: Violated rules, reject rules first
        cusum: Updated CUSUM state to persist (previous state when CUSUM
            is disabled or evaluation failed)
    """

    observation_id: Hashable
    z: float
    status: str
    violations: list[RuleResult] = field(default_factory=list)
    cusum: CUSUMState = field(default_factory=CUSUMState)

    @property
    def in_control(self) -> bool:
        return self.status == STATUS_IN_CONTROL

    @property
    def rule_codes(self) -> list[str]:
        return [v.rule for v in self.violations]


def determine_status(violations: Sequence[RuleResult]) -> str:
    """Classify an observation from its violations.

    Examples:
        >>> determine_status([])
        'in-control'
    """
    if not violations:
        return STATUS_IN_CONTROL
    if any(is_reject_rule(v.rule) for v in violations):
        return STATUS_REJECT
    return STATUS_WARNING


class WestgardEvaluator:
    """Evaluates observations against a Westgard rule configuration.

    Pipeline for one observation:
    1. Scope history to the same run and the same level (chronological)
    2. Evaluate enabled reject rules, collecting every violation
    3. Evaluate the 1_2s warning only if no reject rule fired
    4. Update the CUSUM state and report a crossing, if enabled
    5. Classify the observation

    Args:
        rule_library: Rule registry (a default library is created if None)
    """

    def __init__(self, rule_library: WestgardRuleLibrary | None = None):
        self._rule_library = rule_library or WestgardRuleLibrary()

    def evaluate_point(
        self,
        current: Observation,
        history: Sequence[Observation],
        config: RuleConfiguration,
        previous_cusum: CUSUMState | None = None,
    ) -> EvaluationResult:
        """Evaluate one observation.

        Never raises for well-typed input. An unexpected fault is logged with
        its traceback and reported as a single "error" violation.

        Args:
            current: Observation to classify
            history: Earlier observations for the same analyte/instrument/lot
            config: Active rule configuration
            previous_cusum: Persisted CUSUM state (initial state if None)

        Returns:
            EvaluationResult
        """
        if previous_cusum is None:
            previous_cusum = CUSUMState.initial()

        try:
            ctx = build_context(current, history)
            violations = self._rule_library.check_all(ctx, config.enabled_rules())

            cusum = previous_cusum
            if config.enable_cusum:
                cusum = update_cusum(previous_cusum, current.z, config.cusum_k, config.cusum_h)
                code = crossed_rule(cusum, config.cusum_h)
                if code is not None:
                    violations.append(_cusum_violation(code, current, cusum))
        except Exception:
            logger.error(
                "westgard_evaluation_failed",
                observation_id=current.id,
                control_level=current.level,
                run_id=current.run_id,
                exc_info=True,
            )
            violations = [
                RuleResult(
                    rule=constants.RULE_ERROR,
                    violated=True,
                    severity=Severity.WARNING,
                    message="Error occurred during rule evaluation",
                    involved_ids=[current.id],
                )
            ]
            cusum = previous_cusum

        status = determine_status(violations)

        logger.debug(
            "westgard_evaluation_complete",
            observation_id=current.id,
            z=current.z,
            status=status,
            rules=[v.rule for v in violations],
        )

        return EvaluationResult(
            observation_id=current.id,
            z=current.z,
            status=status,
            violations=violations,
            cusum=cusum,
        )

    def evaluate_series(
        self,
        observations: Sequence[Observation],
        config: RuleConfiguration,
        initial_cusum: CUSUMState | None = None,
    ) -> list[EvaluationResult]:
        """Evaluate a batch of observations in chronological order.

        Each observation is evaluated with every earlier one as history and
        the CUSUM state is carried from point to point, as if the batch had
        been submitted one measurement at a time.

        Args:
            observations: Observations in any order
            config: Active rule configuration
            initial_cusum: CUSUM state before the first observation

        Returns:
            One EvaluationResult per observation, in chronological order
        """
        ordered = sorted(observations, key=lambda p: p.timestamp)
        cusum = initial_cusum or CUSUMState.initial()

        results = []
        for index, current in enumerate(ordered):
            result = self.evaluate_point(current, ordered[:index], config, cusum)
            cusum = result.cusum
            results.append(result)
        return results


def _cusum_violation(code: str, current: Observation, cusum: CUSUMState) -> RuleResult:
    if code == constants.RULE_CUSUM_POSITIVE:
        message = f"CUSUM upper sum {cusum.pos:.2f} exceeds decision interval"
    else:
        message = f"CUSUM lower sum {cusum.neg:.2f} exceeds decision interval"
    return RuleResult(
        rule=code,
        violated=True,
        severity=Severity.WARNING,
        message=message,
        involved_ids=[current.id],
    )


_default_evaluator = WestgardEvaluator()


def evaluate_point(
    current: Observation,
    history: Sequence[Observation],
    config: RuleConfiguration,
    previous_cusum: CUSUMState | None = None,
) -> EvaluationResult:
    """Evaluate one observation with the default rule library."""
    return _default_evaluator.evaluate_point(current, history, config, previous_cusum)


def evaluate_series(
    observations: Sequence[Observation],
    config: RuleConfiguration,
    initial_cusum: CUSUMState | None = None,
) -> list[EvaluationResult]:
    """Evaluate a batch of observations with the default rule library."""
    return _default_evaluator.evaluate_series(observations, config, initial_cusum)
