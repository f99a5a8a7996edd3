"""
Policy State and Fiscal Effects

Holds the flat mapping of policy levers, validates lever updates against
declared bounds, and applies every lever's per-step effect to agents,
businesses and the treasury. One-shot levers (the debt jubilee) are
consumed by a read that resets them.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from agents import EmploymentState
from config import CONFIG

logger = logging.getLogger(__name__)


DEFAULT_POLICIES: Dict[str, object] = {
    "income_tax": 0.25,
    "corporate_tax": 0.21,
    "min_wage": 10.0,
    "ubi": 0.0,
    "interest_rate": 0.05,
    "anti_monopoly": False,
    "education_funding": 0.3,
    "unemployment_benefit": 50.0,
    "price_control_food": False,
    "price_control_housing": False,
    "print_money": 0.0,
    "public_healthcare": False,
    "wealth_tax": 0.0,
    "open_borders": False,
    "subsidies_farming": False,
    # Unconventional laws
    "four_day_week": False,
    "robot_tax": 0.0,
    "bread_and_circuses": False,
    "mandatory_profit_share": 0.0,
    "land_value_tax": 0.0,
    "ban_advertising": False,
    "debt_jubilee": False,
    "lottery_redistribution": False,
    "sumptuary": False,
    "degrowth": False,
    "algo_central_planning": False,
    "universal_bank_account": False,
    # Chaos levers
    "helicopter_money": 0.0,
    "maximum_wage": 0.0,
    "wealth_confiscation": 0.0,
    "nationalize_industries": False,
    "punitive_tariffs": 0.0,
    "guaranteed_jobs": False,
    # Crime, finance and trade
    "police_funding": 0.0,
    "financial_oversight": 0.0,
    "reserve_requirement": 0.1,
    "deposit_insurance": True,
    "export_subsidies": 0.0,
    "foreign_reserve_intervention": False,
}

POLICY_BOUNDS: Dict[str, Tuple[float, float]] = {
    "income_tax": (0.0, 0.6),
    "corporate_tax": (0.0, 0.5),
    "min_wage": (0.0, 50.0),
    "ubi": (0.0, 1000.0),
    "interest_rate": (0.0, 0.2),
    "education_funding": (0.0, 1.0),
    "unemployment_benefit": (0.0, 500.0),
    "print_money": (0.0, 100.0),
    "wealth_tax": (0.0, 0.05),
    "robot_tax": (0.0, 0.5),
    "mandatory_profit_share": (0.0, 0.3),
    "land_value_tax": (0.0, 0.05),
    "helicopter_money": (0.0, 500.0),
    "maximum_wage": (0.0, 500.0),
    "wealth_confiscation": (0.0, 0.5),
    "punitive_tariffs": (0.0, 2.0),
    "police_funding": (0.0, 1.0),
    "financial_oversight": (0.0, 1.0),
    "export_subsidies": (0.0, 1.0),
    "reserve_requirement": (0.0, 1.0),
}

ONE_SHOT_POLICIES = frozenset({"debt_jubilee"})


def validate_policy(name: str, value):
    """
    Coerce a lever value into its legal range.

    Numeric levers are clamped to POLICY_BOUNDS; boolean levers are coerced
    with bool(). Raises KeyError for unknown levers and ValueError/TypeError
    for values that cannot be converted.
    """
    if name not in DEFAULT_POLICIES:
        raise KeyError(name)
    if name in POLICY_BOUNDS:
        low, high = POLICY_BOUNDS[name]
        return max(low, min(high, float(value)))
    return bool(value)


class PolicyState:
    """Flat lever mapping with validated updates and consume-on-read one-shots."""

    def __init__(self, overrides: Optional[Dict[str, object]] = None):
        self._values: Dict[str, object] = dict(DEFAULT_POLICIES)
        for name, value in (overrides or {}).items():
            self.set(name, value)

    def get(self, name: str):
        return self._values[name]

    def __getitem__(self, name: str):
        return self._values[name]

    def __contains__(self, name: str) -> bool:
        return name in self._values

    def set(self, name: str, value) -> bool:
        """Apply a validated lever update. Unknown levers and bad values are ignored."""
        try:
            self._values[name] = validate_policy(name, value)
        except KeyError:
            logger.warning(f"Ignoring unknown policy lever: {name}")
            return False
        except (TypeError, ValueError):
            logger.warning(f"Ignoring invalid value for {name}: {value!r}")
            return False
        return True

    def consume(self, name: str) -> bool:
        """Read a one-shot lever and reset it to inactive."""
        if name not in ONE_SHOT_POLICIES:
            raise KeyError(f"{name} is not a one-shot policy")
        active = bool(self._values[name])
        self._values[name] = False
        return active

    def to_dict(self) -> Dict[str, object]:
        return dict(self._values)


@dataclass
class Treasury:
    """
    Government accounts.

    Revenue and spending accumulate between metrics updates; `settle`
    turns them into the per-step budget balance and rolls that into debt.
    """

    debt: float = 0.0
    budget: float = 0.0
    revenue: float = 0.0
    spending: float = 0.0
    last_revenue: float = 0.0
    last_spending: float = 0.0
    interest_paid: float = 0.0
    leaked: float = 0.0

    def collect(self, amount: float) -> None:
        if amount > 0:
            self.revenue += amount

    def spend(self, amount: float) -> None:
        if amount > 0:
            self.spending += amount

    def add_debt(self, amount: float) -> None:
        self.debt = self._clamp(self.debt + amount)

    def settle(self, window: int, leakage: float, interest_rate: float, gdp: float) -> None:
        cfg = CONFIG.metrics
        window = max(window, 1)
        kept = self.revenue * (1 - leakage)
        self.leaked = self.revenue - kept
        self.budget = (kept - self.spending) / window
        self.last_revenue = self.revenue / window
        self.last_spending = self.spending / window
        self.revenue = 0.0
        self.spending = 0.0

        self.debt -= self.budget * cfg.debt_accrual_factor
        self.interest_paid = 0.0
        if self.debt > 0:
            rate = interest_rate
            debt_to_gdp = self.debt / max(gdp, 1.0)
            if debt_to_gdp > 1:
                rate += (debt_to_gdp - 1) * 0.02
            self.interest_paid = self.debt * rate * cfg.debt_interest_factor
            self.debt += self.interest_paid
        self.debt = self._clamp(self.debt)

    @staticmethod
    def _clamp(debt: float) -> float:
        limit = CONFIG.metrics.debt_clamp
        return max(-limit, min(limit, debt))


def apply_policy_effects(ctx) -> Dict[str, object]:
    """
    Apply every lever's per-step effect.

    Levies are assessed on pre-transfer wealth, then transfers are paid,
    then business-side and agent-side effects run. The debt jubilee is
    consumed here. Returns a summary of notable one-off actions.
    """
    policy = ctx.policy
    treasury = ctx.treasury
    rng = ctx.rng
    agents = [a for a in ctx.agents if a.alive]
    businesses = [b for b in ctx.businesses if b.alive]
    summary: Dict[str, object] = {"jubilee": False, "jubilee_loans_cleared": 0}

    # Levies on pre-transfer wealth
    wealth_tax = policy.get("wealth_tax")
    land_tax = policy.get("land_value_tax")
    confiscation = policy.get("wealth_confiscation")
    rich = CONFIG.population.rich_threshold
    levies = []
    for agent in agents:
        levy = 0.0
        if wealth_tax > 0 and agent.wealth > rich:
            levy += (agent.wealth - rich) * wealth_tax * 0.01
        if land_tax > 0 and agent.wealth > 100:
            levy += agent.wealth * land_tax * 0.0002
        if confiscation > 0 and agent.wealth > 1000:
            levy += (agent.wealth - 1000) * confiscation * 0.01
        if levy > 0:
            levies.append((agent, levy))
    for agent, levy in levies:
        agent.wealth -= levy
        treasury.collect(levy)

    robot_tax = policy.get("robot_tax")
    if robot_tax > 0:
        for business in businesses:
            if business.sector == "tech" and business.capital > 0:
                tax = business.capital * robot_tax * 0.0005
                business.capital -= tax
                treasury.collect(tax)

    if land_tax > 0:
        for business in businesses:
            if business.capital > 0:
                tax = business.capital * land_tax * 0.0002
                business.capital -= tax
                treasury.collect(tax)

    profit_share = policy.get("mandatory_profit_share")
    if profit_share > 0:
        for business in businesses:
            if not business.employees:
                continue
            share = max(0.0, business.capital * profit_share * 0.001)
            per_worker = share / len(business.employees)
            business.capital -= share
            for agent_id in business.employees:
                worker = ctx.agent_lookup.get(agent_id)
                if worker is not None:
                    worker.wealth += per_worker

    # Transfers
    ubi = policy.get("ubi") * 0.01
    helicopter = policy.get("helicopter_money") * 0.01
    printed = policy.get("print_money") * 0.01
    if ubi > 0 or helicopter > 0 or printed > 0:
        for agent in agents:
            transfer = helicopter + printed
            if ubi > 0 and agent.state != EmploymentState.CHILD:
                transfer += ubi
                treasury.spend(ubi)
            agent.wealth += transfer
        if helicopter > 0:
            treasury.spend(helicopter * len(agents) * 0.1)

    if policy.get("universal_bank_account") and rng.random() < 0.002:
        for agent in agents:
            if agent.wealth < 20:
                agent.wealth = min(20.0, max(0.0, agent.wealth + 0.5))

    if policy.get("lottery_redistribution") and rng.random() < 0.05:
        donors = sorted((a for a in agents if a.wealth > 200), key=lambda a: a.wealth, reverse=True)
        poor = [a for a in agents if a.wealth < 50]
        if donors and poor:
            donor = donors[int(rng.integers(min(10, len(donors))))]
            recipient = poor[int(rng.integers(len(poor)))]
            transfer = donor.wealth * 0.05
            donor.wealth -= transfer
            recipient.wealth += transfer

    # Business-side effects
    min_wage = policy.get("min_wage")
    max_wage = policy.get("maximum_wage")
    nationalize = policy.get("nationalize_industries")
    flat_wage = max(min_wage, CONFIG.business.nationalized_min_wage)
    for business in businesses:
        if min_wage > 0 and business.wage_offered < min_wage:
            business.wage_offered = min_wage
        if max_wage > 0 and business.wage_offered > max_wage:
            business.wage_offered = max_wage
        if policy.get("anti_monopoly") and business.dominance > 0.5:
            business.capacity = max(5, int(business.capacity * 0.9))
        if policy.get("interest_rate") > 0.1 and business.capital > 0:
            business.capital -= business.capital * policy.get("interest_rate") * 0.001
        if policy.get("ban_advertising") and business.sector == "luxury":
            business.capacity = max(3, int(business.capacity * 0.999))
        business.nationalized = bool(nationalize)
        if nationalize:
            business.wage_offered = flat_wage
            treasury.spend(len(business.employees) * flat_wage * 0.001)

    # Agent-side effects
    education = policy.get("education_funding")
    if education > 0.3:
        young = CONFIG.ticks(30)
        for agent in agents:
            if agent.age < young and rng.random() < education * 0.0001:
                agent.skill = min(1.0, agent.skill + 0.001)
                agent.education = min(1.0, agent.education + 0.001)

    if policy.get("public_healthcare") and rng.random() < 0.001:
        sickest = [a for a in agents if a.health < 0.5][:5]
        for agent in sickest:
            agent.health = min(1.0, agent.health + 0.01)

    if policy.get("four_day_week") and rng.random() < 0.01:
        for agent in agents:
            agent.health = min(1.0, agent.health + 0.0005)

    if policy.get("bread_and_circuses"):
        treasury.spend(0.5)
        boost = rng.random() < 0.02
        for agent in agents:
            if boost:
                agent.happiness = min(1.0, agent.happiness + 0.002)
            agent.unrest = max(0.0, agent.unrest - 0.001)

    if policy.get("degrowth") and rng.random() < 0.005:
        for agent in agents:
            agent.health = min(1.0, agent.health + 0.0001)

    if max_wage > 0 and rng.random() < 0.002:
        for agent in agents:
            if agent.skill > 0.7:
                agent.skill = max(0.0, agent.skill - 0.001)

    sumptuary = policy.get("sumptuary")
    for agent in agents:
        agent.sumptuary_limited = bool(sumptuary) and agent.wealth > 300

    guaranteed_wage = max(min_wage, CONFIG.labor_market.guaranteed_job_wage)
    working_age = CONFIG.ticks(CONFIG.population.working_age_years)
    if policy.get("guaranteed_jobs"):
        for agent in agents:
            if agent.state == EmploymentState.UNEMPLOYED and agent.age > working_age and not agent.incarcerated:
                agent.take_government_job(guaranteed_wage)
    else:
        for agent in agents:
            if agent.gov_job:
                agent.fire("guaranteed jobs ended")

    # One-shot: debt jubilee
    if policy.consume("debt_jubilee"):
        cleared = 0
        for agent in agents:
            if agent.wealth < 0:
                agent.wealth = 0.0
            cleared += len(agent.loans)
            for loan in agent.loans:
                loan.active = False
            agent.loans = []
            agent.deposits = 0.0
            agent.missed_payments = 0
            agent.in_debt_spiral = False
        for bank in ctx.banks:
            bank.forgive_all()
        summary["jubilee"] = True
        summary["jubilee_loans_cleared"] = cleared
        logger.info(f"Debt jubilee applied: {cleared} loans cleared")

    return summary
