"""Tabular CUSUM on z-scores for detecting small sustained shifts.

The state is returned to the caller after every update; the engine keeps no
accumulators between calls.
"""

from dataclasses import dataclass

from labqc.utils.constants import RULE_CUSUM_NEGATIVE, RULE_CUSUM_POSITIVE

DEFAULT_K = 0.5
DEFAULT_H = 4.0


@dataclass(frozen=True)
class CUSUMState:
    """Upper/lower cumulative sums for one level/lot.

    Attributes:
        pos: Upper cumulative sum (>= 0)
        neg: Lower cumulative sum (>= 0)
        crossed: True if either sum exceeded H on the last update
    """
    pos: float = 0.0
    neg: float = 0.0
    crossed: bool = False

    @classmethod
    def initial(cls) -> "CUSUMState":
        """State for a level/lot with no history."""
        return cls()


def update_cusum(
    state: CUSUMState,
    z: float,
    k: float = DEFAULT_K,
    h: float = DEFAULT_H,
) -> CUSUMState:
    """Feed one z-score into the CUSUM.

    pos' = max(0, pos + z - K)
    neg' = max(0, neg - z - K)

    Args:
        state: Previous state
        z: z-score of the new observation
        k: Slack constant in SD units (default: 0.5)
        h: Decision interval in SD units (default: 4.0)

    Returns:
        New CUSUMState

    Examples:
        >>> update_cusum(CUSUMState(), 1.5)
        CUSUMState(pos=1.0, neg=0.0, crossed=False)
    """
    pos = max(0.0, state.pos + z - k)
    neg = max(0.0, state.neg - z - k)
    return CUSUMState(pos=pos, neg=neg, crossed=pos > h or neg > h)


def crossed_rule(state: CUSUMState, h: float = DEFAULT_H) -> str | None:
    """Rule code for an updated state, upper side taking precedence."""
    if state.pos > h:
        return RULE_CUSUM_POSITIVE
    if state.neg > h:
        return RULE_CUSUM_NEGATIVE
    return None
