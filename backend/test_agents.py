"""
Unit tests for Agent and Business

Tests cover:
- Construction-time validation and derived life stage
- Employment transitions keeping state and employer links consistent
- Business roster management, layoffs and closure
- Bankruptcy detection
- Inflation expectations and their pull on spending
- Wage offers responding to labor scarcity
"""

import numpy as np
import pytest

from agents import Agent, Business, EmploymentState
from config import CONFIG
from context import StepContext
from events import EventModifiers
from market import Market
from metrics import Metrics, assign_wealth_percentiles
from policy import PolicyState, Treasury


def make_agent(agent_id=1, years=30, skill=0.5, wealth=100.0):
    return Agent(id=agent_id, age=CONFIG.ticks(years), skill=skill, education=0.5, wealth=wealth)


def make_context(agents, businesses=(), policy=None, inflation=0.0, seed=0):
    agents = list(agents)
    businesses = list(businesses)
    market = Market()
    market.inflation = inflation
    return StepContext(
        tick=1,
        rng=np.random.default_rng(seed),
        policy=policy or PolicyState(),
        treasury=Treasury(),
        market=market,
        metrics=Metrics(),
        modifiers=EventModifiers(),
        agents=agents,
        businesses=businesses,
        banks=[],
        agent_lookup={a.id: a for a in agents},
        business_lookup={b.id: b for b in businesses},
    )


class TestAgentConstruction:
    """Validation and derived fields"""

    def test_negative_age_rejected(self):
        """An agent cannot be constructed with a negative age"""
        with pytest.raises(ValueError):
            Agent(id=1, age=-1, skill=0.5, education=0.5, wealth=0.0)

    def test_life_stage_derived_from_age(self):
        """Young agents start as children and old agents start retired"""
        assert make_agent(years=5).state == EmploymentState.CHILD
        assert make_agent(years=30).state == EmploymentState.UNEMPLOYED
        assert make_agent(years=70).state == EmploymentState.RETIRED

    def test_bounded_attributes_clamped(self):
        """Skill and education outside [0, 1] are clamped"""
        agent = Agent(id=1, age=CONFIG.ticks(30), skill=1.7, education=-0.2, wealth=0.0)
        assert agent.skill == 1.0
        assert agent.education == 0.0

    def test_negative_wealth_kept(self):
        """Negative wealth is debt and is never clamped"""
        agent = make_agent(wealth=-250.0)
        assert agent.wealth == -250.0
        assert agent.social_class == "poor"

    def test_social_class_from_wealth_percentile(self):
        """Bottom fifth is poor, top tenth is rich, everyone else middle"""
        agents = [make_agent(agent_id=i, wealth=i * 100.0) for i in range(10)]
        assign_wealth_percentiles(agents)
        classes = [a.social_class for a in agents]
        assert classes[:2] == ["poor", "poor"]
        assert classes[2:9] == ["middle"] * 7
        assert classes[9] == "rich"

    def test_indebted_agent_always_poor(self):
        """Debt makes an agent poor whatever their rank"""
        agent = make_agent(wealth=-1.0)
        agent.wealth_percentile = 0.95
        assert agent.social_class == "poor"

    def test_event_log_capped(self):
        """Only the most recent life events are kept"""
        agent = make_agent()
        for i in range(50):
            agent.log_event(f"event {i}")
        assert len(agent.events) == CONFIG.population.event_log_size
        assert agent.events[-1] == "event 49"


class TestEmployment:
    """Hiring, firing and ownership transitions"""

    def test_hire_sets_employer_and_state(self):
        """Hiring through the business updates both sides"""
        business = Business(id=7, sector="food")
        agent = make_agent()
        business.hire(agent, 14.0)

        assert agent.state == EmploymentState.WORKING
        assert agent.employer_id == 7
        assert agent.wage == 14.0
        assert business.employees == [agent.id]

    def test_owner_counts_as_employee(self):
        """The owner is on the roster and is in the OWNER state"""
        business = Business(id=3, sector="tech")
        owner = make_agent(skill=0.8)
        business.add_owner(owner)

        assert owner.is_owner
        assert owner.owned_business_id == 3
        assert owner.employer_id == 3
        assert owner.id in business.employees
        assert owner.wage == CONFIG.business.owner_wage

    def test_lay_off_releases_latest_non_owner(self):
        """Layoffs go last-in first-out and never release the owner"""
        business = Business(id=1, sector="housing")
        owner = make_agent(agent_id=1)
        first = make_agent(agent_id=2)
        second = make_agent(agent_id=3)
        business.add_owner(owner)
        business.hire(first, 12.0)
        business.hire(second, 12.0)
        lookup = {a.id: a for a in (owner, first, second)}

        assert business.lay_off(lookup) == 3
        assert second.state == EmploymentState.UNEMPLOYED
        assert second.employer_id is None
        assert business.lay_off(lookup) == 2
        assert business.lay_off(lookup) is None, "Owner must never be laid off"
        assert business.employees == [1]

    def test_close_fires_everyone(self):
        """Closing a business returns the owner and staff to unemployment"""
        business = Business(id=1, sector="luxury")
        owner = make_agent(agent_id=1)
        worker = make_agent(agent_id=2)
        business.add_owner(owner)
        business.hire(worker, 20.0)

        business.close({1: owner, 2: worker}, "bankruptcy")

        assert not business.alive
        assert business.closed_reason == "bankruptcy"
        assert business.employees == []
        for agent in (owner, worker):
            assert agent.state == EmploymentState.UNEMPLOYED
            assert agent.employer_id is None
            assert agent.owned_business_id is None

    def test_government_job_has_no_employer(self):
        """Guaranteed jobs are WORKING with no employer"""
        agent = make_agent()
        agent.take_government_job(12.0)
        assert agent.state == EmploymentState.WORKING
        assert agent.gov_job
        assert agent.employer_id is None

        agent.fire("guaranteed jobs ended")
        assert agent.state == EmploymentState.UNEMPLOYED
        assert not agent.gov_job


class TestBusiness:
    """Business validation and exit conditions"""

    def test_invalid_sector_rejected(self):
        with pytest.raises(ValueError):
            Business(id=1, sector="shipping")

    def test_invalid_capacity_rejected(self):
        with pytest.raises(ValueError):
            Business(id=1, sector="food", capacity=0)

    def test_name_generated_from_sector(self):
        business = Business(id=4, sector="food")
        assert business.name.endswith("#4")

    def test_open_positions(self):
        business = Business(id=1, sector="food", capacity=2)
        assert business.open_positions == 2
        business.hire(make_agent(agent_id=1), 10.0)
        business.hire(make_agent(agent_id=2), 10.0)
        assert business.open_positions == 0

    def test_bankrupt_on_negative_capital(self):
        business = Business(id=1, sector="tech", capital=CONFIG.business.bankruptcy_threshold - 1)
        assert business.is_bankrupt()

    def test_bankrupt_after_empty_grace_period(self):
        business = Business(id=1, sector="tech")
        business.zero_employee_ticks = CONFIG.business.zero_employee_grace
        assert business.is_bankrupt()

    def test_healthy_business_not_bankrupt(self):
        assert not Business(id=1, sector="tech").is_bankrupt()


class TestInflationExpectations:
    """Adaptive expectations and the spending they drive"""

    def test_expectation_blends_toward_market_inflation(self):
        agent = make_agent()
        agent._update_inflation_expectation(make_context([agent], inflation=0.12))
        assert agent.inflation_expectation == pytest.approx(0.9 * 0.02 + 0.1 * 0.12)

        ctx = make_context([agent], inflation=0.5)
        for _ in range(50):
            agent._update_inflation_expectation(ctx)
        assert 0.45 < agent.inflation_expectation <= 0.5

    def test_tight_money_pulls_expectations_down(self):
        """Rates above neutral shave expectations every step"""
        dove, hawk = make_agent(agent_id=1), make_agent(agent_id=2)
        dove._update_inflation_expectation(make_context([dove]))
        hawk._update_inflation_expectation(make_context([hawk], policy=PolicyState({"interest_rate": 0.2})))

        assert dove.inflation_expectation == pytest.approx(0.018)
        assert hawk.inflation_expectation == pytest.approx(0.018 - 0.15 * 0.03)

    def test_expectation_clamped(self):
        agent = make_agent()
        agent._update_inflation_expectation(make_context([agent], inflation=-5.0))
        assert agent.inflation_expectation == CONFIG.population.min_inflation_expectation
        for _ in range(200):
            agent._update_inflation_expectation(make_context([agent], inflation=50.0))
        assert agent.inflation_expectation == CONFIG.population.max_inflation_expectation

    def test_spending_multiplier_capped_at_double(self):
        agent = make_agent()
        assert agent.spending_multiplier == 1.0
        agent.inflation_expectation = 0.13
        assert agent.spending_multiplier == pytest.approx(1.5)
        agent.inflation_expectation = 2.0
        assert agent.spending_multiplier == pytest.approx(2.0)

    def test_expectations_raise_consumption(self):
        calm, eager = make_agent(agent_id=1), make_agent(agent_id=2)
        for agent in (calm, eager):
            agent.wage = 20.0
        eager.inflation_expectation = 0.13

        calm._consume_goods(make_context([calm]))
        eager._consume_goods(make_context([eager]))
        assert eager.expenses == pytest.approx(calm.expenses * 1.5)
        assert eager.wealth < calm.wealth


class TestWageOffers:
    """Offers follow labor scarcity and never undercut the minimum wage"""

    def make_firm(self, capacity=3, workers=3):
        business = Business(id=1, sector="food", capacity=capacity)
        staff = [make_agent(agent_id=i) for i in range(1, workers + 1)]
        for agent in staff:
            business.hire(agent, CONFIG.business.default_wage)
        return business, staff

    def jobless(self, count):
        return [make_agent(agent_id=100 + i) for i in range(count)]

    def test_tight_market_bids_up_slack_market_bids_down(self):
        tight_firm, tight_staff = self.make_firm()
        slack_firm, slack_staff = self.make_firm()

        tight_firm.tick(make_context(tight_staff, [tight_firm]))
        slack_firm.tick(make_context(slack_staff + self.jobless(60), [slack_firm]))

        assert tight_firm.profit > 0 and slack_firm.profit > 0
        assert tight_firm.wage_offered > CONFIG.business.default_wage > slack_firm.wage_offered

    def test_open_positions_add_premium(self):
        full, full_staff = self.make_firm(capacity=3)
        hiring, hiring_staff = self.make_firm(capacity=5)

        full.tick(make_context(full_staff, [full]))
        hiring.tick(make_context(hiring_staff, [hiring]))

        assert hiring.wage_offered > full.wage_offered

    def test_offer_settles_at_minimum_wage(self):
        firm, staff = self.make_firm()
        ctx = make_context(staff + self.jobless(60), [firm])
        min_wage = ctx.policy.get("min_wage")
        for _ in range(300):
            firm.tick(ctx)
            assert firm.wage_offered >= min_wage
        assert firm.wage_offered == pytest.approx(min_wage, abs=1e-3)
