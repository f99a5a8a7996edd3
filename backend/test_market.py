"""
Unit tests for sector pricing

Tests cover:
- Prices staying inside their [min, max] band under extreme imbalance
- Per-step change limits
- Convergence toward the market-clearing price after calibration
- CPI and inflation arithmetic
- Price controls and dominance bookkeeping
"""

import pytest

from agents import Agent, Business
from config import CONFIG, SECTORS
from events import EventModifiers
from market import Market, nominal_gdp, real_gdp, unemployment_rate, update_dominance
from policy import PolicyState


def crowd(count):
    return [Agent(id=i, age=CONFIG.ticks(30), skill=0.5, education=0.5, wealth=100.0) for i in range(count)]


def supplied_firms(production):
    firms = [Business(id=i, sector=s) for i, s in enumerate(SECTORS, start=1)]
    for business in firms:
        business.production = production
    return firms


class TestPriceBounds:
    """Prices are always strictly positive and inside their band"""

    def test_extreme_demand_hits_ceiling(self):
        market = Market()
        agents = crowd(2000)
        policy = PolicyState()
        for _ in range(500):
            market.update(agents, [], policy, EventModifiers())

        for sector in SECTORS:
            assert market.prices[sector] <= CONFIG.market.price_max[sector]
        assert market.prices["food"] == pytest.approx(CONFIG.market.price_max["food"])

    def test_glut_hits_floor(self):
        market = Market()
        flood = [Business(id=i, sector=s, productivity=2.0) for i, s in enumerate(SECTORS, start=1)]
        for business in flood:
            business.production = 1_000_000.0
        policy = PolicyState()
        for _ in range(500):
            market.update([], flood, policy, EventModifiers())

        for sector in SECTORS:
            assert market.prices[sector] >= CONFIG.market.price_min[sector]
            assert market.prices[sector] > 0
        assert market.prices["food"] == pytest.approx(CONFIG.market.price_min["food"])

    def test_step_change_limited(self):
        market = Market()
        before = dict(market.prices)
        market.update(crowd(5000), [], PolicyState(), EventModifiers())
        for sector in SECTORS:
            assert market.prices[sector] <= before[sector] * (1 + CONFIG.market.max_step_change) + 1e-9

    def test_price_control_limits_food_swing(self):
        market = Market()
        policy = PolicyState({"price_control_food": True})
        market.update(crowd(5000), [], policy, EventModifiers())
        assert market.prices["food"] <= 10.0 * (1 + CONFIG.market.price_control_band) + 1e-9

    def test_calibrated_market_holds_opening_prices(self):
        market = Market()
        agents = crowd(100)
        firms = supplied_firms(50.0)
        market.calibrate(agents, firms, EventModifiers())
        for _ in range(200):
            market.update(agents, firms, PolicyState(), EventModifiers())

        for sector in SECTORS:
            assert market.prices[sector] == pytest.approx(CONFIG.market.initial_prices[sector])
        assert market.inflation == pytest.approx(0.0, abs=1e-9)

    def test_price_converges_to_clearing_level(self):
        """Halving output doubles the price that clears the same spending"""
        market = Market()
        agents = crowd(100)
        firms = supplied_firms(50.0)
        market.calibrate(agents, firms, EventModifiers())
        for business in firms:
            business.production = 25.0
        for _ in range(600):
            market.update(agents, firms, PolicyState(), EventModifiers())

        for sector in SECTORS:
            expected = 2 * CONFIG.market.initial_prices[sector]
            assert market.prices[sector] == pytest.approx(expected, rel=1e-3)
            assert CONFIG.market.price_min[sector] < market.prices[sector] < CONFIG.market.price_max[sector]

    def test_demand_reported_in_units(self):
        market = Market()
        market.update(crowd(100), [], PolicyState(), EventModifiers())
        spending = 100 * CONFIG.market.default_average_wage * CONFIG.market.demand_shares["food"]
        assert market.demand["food"] == pytest.approx(spending / CONFIG.market.initial_prices["food"])

    def test_inflation_expectations_lift_spending(self):
        market = Market()
        calm = market.sector_spending(crowd(10), EventModifiers())
        eager_crowd = crowd(10)
        for agent in eager_crowd:
            agent.inflation_expectation = 0.13
        eager = market.sector_spending(eager_crowd, EventModifiers())
        for sector in SECTORS:
            assert eager[sector] == pytest.approx(calm[sector] * 1.5)

    def test_nudge_price_stays_in_band(self):
        market = Market()
        market.nudge_price("luxury", 1000.0)
        assert market.prices["luxury"] == CONFIG.market.price_max["luxury"]
        market.nudge_price("luxury", 0.0)
        assert market.prices["luxury"] == CONFIG.market.price_min["luxury"]


class TestIndex:
    """CPI and inflation"""

    def test_cpi_at_base_prices(self):
        market = Market()
        market.refresh_cpi()
        assert market.cpi == pytest.approx(100.0)
        assert market.inflation == pytest.approx(0.0)

    def test_cpi_weights_food(self):
        """Doubling food (weight 0.35) lifts the CPI by 35 points"""
        market = Market()
        market.nudge_price("food", 2.0)
        market.refresh_cpi()
        assert market.cpi == pytest.approx(135.0)
        assert market.inflation == pytest.approx(0.35)

    def test_inflation_measured_over_lookback_window(self):
        """A one-off jump drops out of inflation exactly one window later"""
        lookback = CONFIG.market.inflation_lookback
        market = Market()
        market.nudge_price("food", 2.0)
        market.refresh_cpi()
        for _ in range(lookback - 1):
            market.refresh_cpi()
        assert market.inflation == pytest.approx(0.35)

        market.refresh_cpi()
        assert market.inflation == pytest.approx(0.0)

    def test_to_dict_reports_inflation_percent(self):
        market = Market()
        market.nudge_price("food", 2.0)
        market.refresh_cpi()
        assert market.to_dict()["inflation"] == pytest.approx(35.0)


class TestAggregates:

    def test_dominance_is_production_share(self):
        big = Business(id=1, sector="food")
        small = Business(id=2, sector="food")
        big.production, small.production = 30.0, 10.0
        update_dominance([big, small])
        assert big.dominance == pytest.approx(0.75)
        assert small.market_share == pytest.approx(0.25)

    def test_real_gdp_uses_base_prices(self):
        business = Business(id=1, sector="housing")
        business.production = 4.0
        assert real_gdp([business]) == pytest.approx(4.0 * CONFIG.market.initial_prices["housing"])
        assert nominal_gdp([business], {"housing": 100.0}) == pytest.approx(400.0)

    def test_unemployment_of_empty_population(self):
        assert unemployment_rate([]) == 0.0
