"""Tests for observation history scoping."""

from datetime import datetime, timedelta

import pytest

from labqc.core.engine.history import Observation, RuleContext, build_context


T0 = datetime(2024, 3, 1, 7, 0)


def _obs(pid, z=0.5, level="L1", run_id="R1", hour=None) -> Observation:
    return Observation(
        id=pid,
        value=100.0 + z,
        z=z,
        level=level,
        timestamp=T0 + timedelta(hours=pid if hour is None else hour),
        run_id=run_id,
    )


class TestObservation:

    @pytest.mark.parametrize("z, expected", [(1.2, 1), (-0.1, -1), (0.0, 0)])
    def test_sign(self, z: float, expected: int):
        assert _obs(1, z=z).sign == expected

    def test_default_run(self):
        obs = Observation(id="a", value=1.0, z=0.0, level="L1", timestamp=T0)
        assert obs.run_id == "default"

    def test_frozen(self):
        obs = _obs(1)
        with pytest.raises(AttributeError):
            obs.z = 3.0


class TestBuildContext:

    def test_current_excluded_by_id(self):
        current = _obs(3)
        ctx = build_context(current, [_obs(1), _obs(2), current])
        assert [p.id for p in ctx.same_level] == [1, 2]
        assert current not in ctx.same_run

    def test_same_run_filter(self):
        current = _obs(3, level="L2", run_id="R2")
        history = [_obs(1, run_id="R1"), _obs(2, level="L1", run_id="R2")]

        ctx = build_context(current, history)

        assert [p.id for p in ctx.same_run] == [2]
        assert ctx.same_level == ()

    def test_same_level_sorted_by_timestamp(self):
        current = _obs(9, hour=10)
        history = [_obs(1, hour=5), _obs(2, hour=2), _obs(3, hour=8)]

        ctx = build_context(current, history)

        assert [p.id for p in ctx.same_level] == [2, 1, 3]

    def test_timestamp_ties_keep_input_order(self):
        current = _obs(9, hour=10)
        history = [_obs(4, hour=1), _obs(2, hour=1), _obs(7, hour=1)]

        ctx = build_context(current, history)

        assert [p.id for p in ctx.same_level] == [4, 2, 7]

    def test_empty_history(self):
        ctx = build_context(_obs(1), [])
        assert ctx.same_run == ()
        assert ctx.same_level == ()


class TestRuleContextPrevious:

    @pytest.fixture
    def ctx(self) -> RuleContext:
        return build_context(_obs(5), [_obs(i) for i in range(1, 5)])

    def test_previous_returns_most_recent(self, ctx: RuleContext):
        assert [p.id for p in ctx.previous(2)] == [3, 4]

    def test_previous_all(self, ctx: RuleContext):
        assert [p.id for p in ctx.previous(4)] == [1, 2, 3, 4]

    def test_previous_insufficient(self, ctx: RuleContext):
        assert ctx.previous(5) is None

    def test_previous_zero(self, ctx: RuleContext):
        assert ctx.previous(0) == ()
