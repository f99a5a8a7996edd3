"""
Unit tests for metrics, approval and the report card

Tests cover:
- Gini coefficient edge cases
- Grade mapping with inclusive lower bounds
- Metrics on an empty world (no NaN, neutral values)
- Wealth percentiles and the average inflation expectation
- The approval rating and the one-time no-confidence trigger
- The historical comparison in the final report
"""

import json
import math

import numpy as np
import pytest

from agents import Agent
from config import CONFIG
from context import StepContext
from events import EventModifiers
from market import Market
from metrics import (
    ApprovalRating,
    Metrics,
    assign_wealth_percentiles,
    build_report,
    domain_scores,
    gini,
    grade_for_score,
)
from policy import PolicyState, Treasury
from scenarios import get_scenario


class TestGini:

    def test_equal_wealth(self):
        assert gini([100, 100, 100, 100]) == pytest.approx(0.0)

    def test_one_holds_everything(self):
        """With n agents and one holder the discrete Gini is (n - 1) / n"""
        assert gini([0, 0, 0, 400]) == pytest.approx(0.75)

    def test_empty_and_zero(self):
        assert gini([]) == 0.0
        assert gini([0, 0, 0]) == 0.0

    def test_negative_wealth_counts_as_zero(self):
        assert gini([-500, 0, 0, 400]) == pytest.approx(gini([0, 0, 0, 400]))

    def test_bounded(self):
        rng = np.random.default_rng(3)
        for _ in range(20):
            value = gini(rng.lognormal(5, 2, size=50))
            assert 0.0 <= value <= 1.0


class TestGrades:

    @pytest.mark.parametrize("score,grade", [
        (100, "A+"), (90, "A+"), (89.9, "A"), (80, "A"), (79, "B"), (70, "B"),
        (69, "C"), (60, "C"), (59, "D"), (45, "D"), (44.9, "F"), (0, "F"),
    ])
    def test_step_function(self, score, grade):
        assert grade_for_score(score) == grade


class TestMetricsUpdate:

    def make_context(self, agents=(), businesses=()):
        return StepContext(
            tick=10,
            rng=np.random.default_rng(0),
            policy=PolicyState(),
            treasury=Treasury(),
            market=Market(),
            metrics=Metrics(),
            modifiers=EventModifiers(),
            agents=list(agents),
            businesses=list(businesses),
            banks=[],
        )

    def test_empty_world_is_neutral(self):
        metrics = Metrics()
        metrics.update(self.make_context())

        assert metrics.population == 0
        assert metrics.unemployment == 0.0
        assert metrics.gini == 0.0
        assert metrics.gdp == 0.0
        assert metrics.cpi == pytest.approx(100.0)
        assert metrics.crime_rate == 0.0
        for key, value in metrics.to_dict(include_history=False).items():
            if isinstance(value, float):
                assert math.isfinite(value), f"{key} is not finite"

    def test_non_finite_values_sanitized(self):
        metrics = Metrics()
        metrics.cpi = float("nan")
        metrics.gdp = float("inf")
        data = metrics.to_dict()
        assert data["cpi"] == 100.0
        assert data["gdp"] == 0.0
        json.dumps(data, allow_nan=False)

    def test_crimes_drained_on_update(self):
        metrics = Metrics()
        metrics.record_crimes(3, 1)
        metrics.record_crimes(2, 0)
        metrics.update(self.make_context())
        assert metrics.street_crimes == 5
        assert metrics.corporate_crimes == 1
        assert metrics.pending_street_crimes == 0

    def test_history_recorded(self):
        metrics = Metrics()
        ctx = self.make_context()
        for _ in range(3):
            metrics.update(ctx)
        assert len(metrics.history["gdp"]) == 3

    def test_inflation_expectation_averaged_over_adults(self):
        adults = [
            Agent(id=i, age=CONFIG.ticks(30), skill=0.5, education=0.5, wealth=100.0)
            for i in range(2)
        ]
        adults[0].inflation_expectation = 0.02
        adults[1].inflation_expectation = 0.10
        child = Agent(id=9, age=CONFIG.ticks(5), skill=0.5, education=0.5, wealth=0.0)
        child.inflation_expectation = 1.0

        metrics = Metrics()
        metrics.update(self.make_context(agents=adults + [child]))
        assert metrics.inflation_expectation == pytest.approx(6.0)
        assert metrics.history["inflation_expectation"][-1] == pytest.approx(6.0)
        assert metrics.to_dict()["inflation_expectation"] == pytest.approx(6.0)


class TestWealthPercentiles:

    def make_agents(self, wealths):
        return [
            Agent(id=i, age=CONFIG.ticks(30), skill=0.5, education=0.5, wealth=w)
            for i, w in enumerate(wealths)
        ]

    def test_midpoint_ranks(self):
        agents = self.make_agents([300.0, 100.0, 200.0, 400.0])
        assign_wealth_percentiles(agents)
        assert [a.wealth_percentile for a in agents] == pytest.approx([0.625, 0.125, 0.375, 0.875])

    def test_equal_wealth_is_middle(self):
        agents = self.make_agents([50.0] * 5)
        assign_wealth_percentiles(agents)
        assert all(a.wealth_percentile == pytest.approx(0.5) for a in agents)
        assert {a.social_class for a in agents} == {"middle"}

    def test_dead_agents_skipped(self):
        agents = self.make_agents([10.0, 20.0, 30.0])
        agents[2].alive = False
        agents[2].wealth_percentile = 0.42
        assign_wealth_percentiles(agents)
        assert agents[0].wealth_percentile == pytest.approx(0.25)
        assert agents[1].wealth_percentile == pytest.approx(0.75)
        assert agents[2].wealth_percentile == 0.42


class TestApproval:

    def test_collapse_forces_one_vote(self):
        metrics = Metrics(inflation=100.0, poverty_rate=0.5, social_unrest=0.9)
        approval = ApprovalRating()
        forced = [approval.update(metrics, PolicyState()) for _ in range(30)]

        assert approval.value < 20
        assert forced.count(True) == 1
        assert metrics.approval == approval.value

    def test_bounded(self):
        metrics = Metrics(gdp_growth=10.0)
        approval = ApprovalRating()
        policy = PolicyState({"bread_and_circuses": True})
        for _ in range(200):
            approval.update(metrics, policy)
        assert 0.0 <= approval.value <= 100.0


class TestReport:

    def test_domain_scores_bounded(self):
        scores = domain_scores(Metrics(gini=0.9, gdp_growth=-1.0, inflation=500.0, social_unrest=1.0))
        assert all(0 <= v <= 100 for v in scores.values())

    def test_beating_history_lifts_weak_score(self):
        scenario = get_scenario("great_depression")
        metrics = Metrics(gini=0.65, gdp=90.0, gdp_growth=-0.02, inflation=20.0, social_unrest=0.5)
        report = build_report(scenario, metrics, initial_gdp=100.0, policy=PolicyState(), tick=780)

        assert report["beat_history"]
        assert report["final_score"] == 75
        assert report["grade"] == "B"
        assert "outperformed" in report["verdict"]
        assert report["player_outcome"]["gdp_change_percent"] == -10
        assert report["historical_gdp_change_percent"] == -46.0

    def test_missing_history_is_neutral(self):
        report = build_report(get_scenario("default"), Metrics(), None, PolicyState(), 0)
        assert report["player_outcome"]["gdp_change_percent"] == 0
        assert report["verdict"] is None
        assert not report["beat_history"]
