"""
Unit tests for educational insights

Tests cover:
- Each insight fires at most once per tracker
- Rate limiting between insights
- Trackers owned by different engines never share state
"""

from global_economy import GlobalEconomy
from insights import INSIGHT_TRIGGERS, InsightState, InsightTracker
from metrics import Metrics
from policy import PolicyState


def make_state(**metric_values):
    return InsightState(
        metrics=Metrics(**metric_values),
        policy=PolicyState(),
        businesses=[],
        banks_alive=3,
        banks_created=3,
        global_economy=GlobalEconomy(),
    )


class TestInsightTracker:

    def test_quiet_economy_fires_nothing(self):
        assert InsightTracker().check(10, make_state()) is None

    def test_fires_once(self):
        tracker = InsightTracker(cooldown=0)
        state = make_state(gini=0.6)
        first = tracker.check(10, state)

        assert first["id"] == "high_inequality"
        assert first["tick"] == 10
        assert tracker.check(20, state) is None, "An insight never fires twice"

    def test_rate_limited(self):
        tracker = InsightTracker(cooldown=100)
        state = make_state(gini=0.6, unemployment=0.3)

        assert tracker.check(10, state)["id"] == "high_inequality"
        assert tracker.check(50, state) is None
        assert tracker.check(110, state)["id"] == "high_unemployment"

    def test_bank_crisis_needs_failures(self):
        tracker = InsightTracker(cooldown=0)
        state = make_state()
        state.banks_alive = 1
        state.banks_created = 1
        assert tracker.check(1, state) is None

        state.banks_created = 3
        assert tracker.check(2, state)["id"] == "bank_crisis"

    def test_independent_trackers(self):
        state = make_state(gini=0.6)
        first, second = InsightTracker(), InsightTracker()
        assert first.check(10, state)["id"] == "high_inequality"
        assert second.check(10, state)["id"] == "high_inequality"

    def test_unique_ids(self):
        ids = [t.id for t in INSIGHT_TRIGGERS]
        assert len(ids) == len(set(ids))
