"""
Labor Market Matcher

Periodic clearing between unemployed agents and businesses with open
positions. Businesses propose in descending wage order; within each
proposal, agents are taken in descending skill order. Both orderings use
the id as the tie-breaker so a clearing is fully deterministic.
"""

from typing import Dict, List, Tuple

import numpy as np

from agents import Agent, Business, EmploymentState
from config import CONFIG


def reservation_wage(skill: float, education: float, unemployment_benefit: float) -> float:
    """
    Lowest wage an agent will accept.

    A job has to beat the benefit income the agent already receives by a
    markup, plus a premium that grows with skill and education.
    """
    cfg = CONFIG.labor_market
    benefit_income = unemployment_benefit * CONFIG.population.benefit_income_rate
    return (
        benefit_income * cfg.benefit_markup
        + cfg.skill_weight * skill
        + cfg.education_weight * education
    )


def eligible_candidates(agents: List[Agent]) -> List[Agent]:
    working_age = CONFIG.ticks(CONFIG.population.working_age_years)
    return [
        a for a in agents
        if a.alive
        and a.state == EmploymentState.UNEMPLOYED
        and not a.incarcerated
        and a.age >= working_age
    ]


def hiring_businesses(businesses: List[Business]) -> List[Business]:
    """Living businesses with open positions that can carry the wage bill, highest wage first."""
    multiple = CONFIG.business.hiring_capital_multiple
    open_firms = [
        b for b in businesses
        if b.alive and b.open_positions > 0 and b.capital > b.wage_offered * multiple
    ]
    return sorted(open_firms, key=lambda b: (-b.wage_offered, b.id))


def match_labor(
    agents: List[Agent],
    businesses: List[Business],
    policy,
    hiring_suppressed: bool = False,
) -> List[Tuple[int, int, float]]:
    """
    Clear the labor market once.

    Args:
        agents: All agents (filtered internally)
        businesses: All businesses (filtered internally)
        policy: PolicyState supplying min_wage and unemployment_benefit
        hiring_suppressed: When True no business hires this clearing

    Returns:
        List of (agent_id, business_id, wage) for every accepted match
    """
    if hiring_suppressed:
        return []

    candidates = eligible_candidates(agents)
    firms = hiring_businesses(businesses)
    if not candidates or not firms:
        return []

    skills = np.array([a.skill for a in candidates], dtype=float)
    ids = np.array([a.id for a in candidates], dtype=np.int64)
    order = np.lexsort((ids, -skills))
    ranked = [candidates[i] for i in order]

    benefit = policy.get("unemployment_benefit")
    reservations: Dict[int, float] = {
        a.id: reservation_wage(a.skill, a.education, benefit) for a in ranked
    }
    min_wage = policy.get("min_wage")
    matched_ids = set()
    matches: List[Tuple[int, int, float]] = []

    for business in firms:
        offer = max(business.wage_offered, min_wage)
        slots = business.open_positions
        for agent in ranked:
            if slots <= 0:
                break
            if agent.id in matched_ids:
                continue
            if offer < reservations[agent.id]:
                continue
            business.hire(agent, offer)
            matched_ids.add(agent.id)
            matches.append((agent.id, business.id, offer))
            slots -= 1

    return matches
