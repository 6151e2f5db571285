"""Westgard rule configuration for an analyte/level/instrument combination.

Configurations arrive from the row store, so flags may be spelled "TRUE" /
"FALSE" and numbers may be strings. Blank cells fall back to the defaults.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from labqc.utils import constants

# Rule code enabled by each configuration flag
_FLAG_RULES: dict[str, str] = {
    "enable_1_2s_warning": constants.RULE_1_2S,
    "enable_1_3s_reject": constants.RULE_1_3S,
    "enable_2_2s_within_run_reject": constants.RULE_2_2S_WITHIN,
    "enable_2_2s_across_runs_reject": constants.RULE_2_2S_ACROSS,
    "enable_r_4s_within_run_reject": constants.RULE_R_4S,
    "enable_4_1s_reject": constants.RULE_4_1S,
    "enable_10x_reject": constants.RULE_10X,
    "enable_2of3_2s_reject": constants.RULE_2OF3_2S,
    "enable_3_1s_reject": constants.RULE_3_1S,
    "enable_6x_reject": constants.RULE_6X,
    "enable_9x_reject": constants.RULE_9X,
    "enable_7t_reject": constants.RULE_7T,
}

# Rules conventionally paired with the replicate count per run
_MULTIPLES_OF_TWO = (
    constants.RULE_1_3S,
    constants.RULE_2_2S_WITHIN,
    constants.RULE_2_2S_ACROSS,
    constants.RULE_R_4S,
    constants.RULE_4_1S,
    constants.RULE_10X,
)
_MULTIPLES_OF_THREE = (
    constants.RULE_1_3S,
    constants.RULE_2OF3_2S,
    constants.RULE_R_4S,
    constants.RULE_3_1S,
    constants.RULE_6X,
)


class RuleConfiguration(BaseModel):
    """Enable flags and CUSUM parameters for rule evaluation.

    n_per_run only selects which x-pattern family is conventional for the
    configuration; evaluation always honours the enable flags as given.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    enable_1_2s_warning: bool = True
    enable_1_3s_reject: bool = True
    enable_2_2s_within_run_reject: bool = True
    enable_2_2s_across_runs_reject: bool = True
    enable_r_4s_within_run_reject: bool = Field(True, alias="enable_R_4s_within_run_reject")
    enable_4_1s_reject: bool = True
    enable_10x_reject: bool = True
    enable_2of3_2s_reject: bool = False
    enable_3_1s_reject: bool = False
    enable_6x_reject: bool = False
    enable_9x_reject: bool = False
    enable_7t_reject: bool = Field(False, alias="enable_7T_reject")

    enable_cusum: bool = False
    cusum_k: float = Field(0.5, alias="cusum_K", ge=0)
    cusum_h: float = Field(4.0, alias="cusum_H", gt=0)
    n_per_run: int | None = Field(None, ge=1)

    @model_validator(mode="before")
    @classmethod
    def _drop_blank_cells(cls, data: Any) -> Any:
        """Treat empty row-store cells as missing so defaults apply."""
        if isinstance(data, dict):
            return {
                key: value for key, value in data.items()
                if not (value is None or (isinstance(value, str) and not value.strip()))
            }
        return data

    @classmethod
    def default(cls) -> "RuleConfiguration":
        """Configuration with the catalogue defaults and configured CUSUM parameters."""
        from labqc.core.config import get_settings

        settings = get_settings()
        return cls(cusum_k=settings.cusum_k, cusum_h=settings.cusum_h)

    @classmethod
    def for_replicates(cls, n_per_run: int, **overrides: Any) -> "RuleConfiguration":
        """Configuration enabling only the rule family conventional for N.

        Args:
            n_per_run: Control measurements per run
            **overrides: Extra field values, e.g. enable_cusum=True

        Examples:
            >>> cfg = RuleConfiguration.for_replicates(3)
            >>> sorted(cfg.enabled_rules())
            ['1_2s', '1_3s', '2of3_2s', '3_1s', '6x', 'R_4s']
        """
        family = _conventional_family(n_per_run)
        flags = {flag: code in family for flag, code in _FLAG_RULES.items()}
        flags["enable_1_2s_warning"] = True
        return cls(n_per_run=n_per_run, **{**flags, **overrides})

    def enabled_rules(self) -> set[str]:
        """Rule codes whose enable flag is set (CUSUM excluded)."""
        return {code for flag, code in _FLAG_RULES.items() if getattr(self, flag)}

    def conventional_rules(self) -> tuple[str, ...]:
        """Rule family conventionally paired with n_per_run (N=2 when unset)."""
        return _conventional_family(self.n_per_run or 2)


def _conventional_family(n_per_run: int) -> tuple[str, ...]:
    if n_per_run % 3 == 0:
        return _MULTIPLES_OF_THREE
    return _MULTIPLES_OF_TWO
