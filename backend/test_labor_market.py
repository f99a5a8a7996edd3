"""
Unit tests for the labor market matcher

Tests cover:
- Deterministic ordering (wage offers, then skill, with id tie-breaks)
- The reservation wage function
- Minimum wage, hiring suppression and under-capitalized firms
- Eligibility (children and prisoners never match)
"""

import pytest

from agents import Agent, Business, EmploymentState
from config import CONFIG
from labor import eligible_candidates, match_labor, reservation_wage
from policy import PolicyState


def make_agent(agent_id, skill, years=30, education=0.5):
    return Agent(id=agent_id, age=CONFIG.ticks(years), skill=skill, education=education, wealth=100.0)


def open_policy(**overrides):
    values = {"min_wage": 0, "unemployment_benefit": 0}
    values.update(overrides)
    return PolicyState(values)


class TestReservationWage:
    """The acceptance threshold agents apply to offers"""

    def test_formula(self):
        """benefit income x markup + skill and education premiums"""
        # benefit income = 100 * 0.1 = 10; 10 * 1.05 + 6 * 0.5 + 2 * 0.5
        assert reservation_wage(0.5, 0.5, 100.0) == pytest.approx(14.5)

    def test_grows_with_skill_and_benefit(self):
        low = reservation_wage(0.2, 0.5, 0.0)
        assert reservation_wage(0.9, 0.5, 0.0) > low
        assert reservation_wage(0.2, 0.5, 200.0) > low

    def test_generous_benefit_blocks_matches(self):
        """Offers below the reservation wage are declined"""
        business = Business(id=1, sector="food", wage_offered=20.0, capacity=3)
        agents = [make_agent(1, 0.5), make_agent(2, 0.9)]
        matches = match_labor(agents, [business], open_policy(unemployment_benefit=500))

        assert matches == []
        assert all(a.state == EmploymentState.UNEMPLOYED for a in agents)


class TestMatching:
    """Clearing order and constraints"""

    def test_highest_wage_firm_takes_most_skilled(self):
        """Firms propose by wage; candidates rank by skill then id"""
        cheap = Business(id=1, sector="food", wage_offered=15.0, capacity=1)
        rich = Business(id=2, sector="tech", wage_offered=20.0, capacity=1)
        agents = [make_agent(3, 0.9), make_agent(1, 0.9), make_agent(2, 0.2)]

        matches = match_labor(agents, [cheap, rich], open_policy())

        assert matches == [(1, 2, 20.0), (3, 1, 15.0)]
        assert agents[1].employer_id == 2
        assert agents[0].employer_id == 1
        assert agents[2].state == EmploymentState.UNEMPLOYED

    def test_same_input_same_result(self):
        """Two clearings of identical markets agree exactly"""
        def build():
            firms = [Business(id=i, sector="food", wage_offered=12.0, capacity=2) for i in range(1, 4)]
            people = [make_agent(i, 0.5) for i in range(1, 9)]
            return people, firms

        first = match_labor(*build(), open_policy())
        second = match_labor(*build(), open_policy())
        assert first == second
        assert len(first) == 6

    def test_min_wage_raises_offer(self):
        business = Business(id=1, sector="food", wage_offered=5.0, capacity=1)
        agent = make_agent(1, 0.5)
        matches = match_labor([agent], [business], open_policy(min_wage=12))

        assert matches == [(1, 1, 12.0)]
        assert agent.wage == 12.0

    def test_hiring_suppressed(self):
        business = Business(id=1, sector="food", wage_offered=30.0, capacity=5)
        agents = [make_agent(i, 0.5) for i in range(1, 4)]
        assert match_labor(agents, [business], open_policy(), hiring_suppressed=True) == []

    def test_undercapitalized_firm_skipped(self):
        """A firm must hold ten times its wage offer to hire"""
        business = Business(id=1, sector="food", wage_offered=12.0, capital=50.0, capacity=5)
        assert match_labor([make_agent(1, 0.5)], [business], open_policy()) == []

    def test_capacity_respected(self):
        business = Business(id=1, sector="food", wage_offered=25.0, capacity=2)
        agents = [make_agent(i, 0.5) for i in range(1, 6)]
        matches = match_labor(agents, [business], open_policy())

        assert len(matches) == 2
        assert len(business.employees) == 2
        assert business.open_positions == 0


class TestEligibility:

    def test_children_and_prisoners_excluded(self):
        child = make_agent(1, 0.9, years=10)
        prisoner = make_agent(2, 0.9)
        prisoner.incarcerated = True
        free = make_agent(3, 0.1)

        assert eligible_candidates([child, prisoner, free]) == [free]

    def test_employed_agents_excluded(self):
        employed = make_agent(1, 0.5)
        Business(id=1, sector="food").hire(employed, 12.0)
        assert eligible_candidates([employed]) == []
