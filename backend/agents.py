"""
Policy Economy Agent System

Defines the two autonomous actors of the simulation: individual agents
(people) and businesses. Each advances one step at a time against a
StepContext that carries prices, policy levers, event modifiers and the
engine-owned random generator.

Employment is modelled as an explicit state machine. The `state` field is
the only stored employment fact; `employed` and `is_owner` are projections
of it, and every transition goes through hire / fire / become_owner /
retire / die.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from banking import Loan, find_lender
from config import CONFIG, SECTORS


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp a value into [low, high]."""
    return max(low, min(high, value))


class EmploymentState(str, Enum):
    CHILD = "child"
    WORKING = "working"
    UNEMPLOYED = "unemployed"
    RETIRED = "retired"
    OWNER = "owner"
    DEAD = "dead"


BUSINESS_NAMES: Dict[str, List[str]] = {
    "food": ["FarmFresh", "GrainCo", "HarvestHub", "OrchardInc", "FoodWorks", "NourishCo"],
    "housing": ["ShelterCo", "HomeBase", "RoofWorks", "DwellCo", "AbodeLtd", "NestBuilders"],
    "tech": ["DataSpark", "ByteForge", "CodeWorks", "TechVault", "NeuralCo", "SyntaxLtd"],
    "luxury": ["GoldEdge", "EliteCo", "PremiumHub", "LuxuryInc", "OpalWorks", "CrestLtd"],
}


@dataclass(slots=True)
class Agent:
    """
    An individual in the simulated economy.

    Agents age, consume, earn, borrow, sometimes commit crimes and start
    businesses. Bounded attributes (skill, education, health, happiness,
    unrest) are kept in [0, 1] and credit score in [300, 850]. Wealth is
    signed; negative wealth is debt and is never clamped.
    """

    id: int
    age: int
    skill: float
    education: float
    wealth: float
    health: float = 0.8
    happiness: float = 0.5
    x: float = 0.0
    y: float = 0.0
    alive: bool = True
    state: EmploymentState = EmploymentState.UNEMPLOYED
    wage: float = 0.0
    employer_id: Optional[int] = None
    owned_business_id: Optional[int] = None
    gov_job: bool = False
    unemployed_ticks: int = 0
    income: float = 0.0
    expenses: float = 0.0

    # Banking
    credit_score: float = 500.0
    deposits: float = 0.0
    loans: List[Loan] = field(default_factory=list)
    missed_payments: int = 0
    in_debt_spiral: bool = False

    # Social
    unrest: float = 0.0
    victim_tick: int = -1
    wealth_percentile: float = 0.5  # Rank among the living, refreshed each step
    inflation_expectation: float = field(
        default_factory=lambda: CONFIG.population.initial_inflation_expectation
    )

    # Crime
    incarcerated: bool = False
    prison_ticks: int = 0
    reoffend_risk: float = 0.0
    criminal_record: List[str] = field(default_factory=list)

    # Capped life-event log
    events: List[str] = field(default_factory=list)
    born_in_year: int = 0

    # Ephemeral per-step flags
    wants_business: bool = False
    needs_business_loan: bool = False
    sumptuary_limited: bool = False

    def __post_init__(self):
        """Validate invariants and derive the initial life stage."""
        if self.age < 0:
            raise ValueError(f"age must be non-negative, got {self.age}")
        self.skill = clamp(self.skill)
        self.education = clamp(self.education)
        self.health = clamp(self.health)
        self.happiness = clamp(self.happiness)
        if self.state == EmploymentState.UNEMPLOYED:
            if self.age < CONFIG.ticks(CONFIG.population.working_age_years):
                self.state = EmploymentState.CHILD
            elif self.age >= CONFIG.ticks(CONFIG.population.retirement_age_years):
                self.state = EmploymentState.RETIRED

    # ------------------------------------------------------------------
    # Projections of the employment state
    # ------------------------------------------------------------------

    @property
    def employed(self) -> bool:
        return self.state in (EmploymentState.WORKING, EmploymentState.OWNER)

    @property
    def is_owner(self) -> bool:
        return self.state == EmploymentState.OWNER

    @property
    def social_class(self) -> str:
        pop = CONFIG.population
        if self.wealth < 0 or self.wealth_percentile < pop.poor_percentile:
            return "poor"
        if self.wealth_percentile >= pop.rich_percentile:
            return "rich"
        return "middle"

    @property
    def spending_multiplier(self) -> float:
        """Extra spending driven by expected inflation above the anchor, capped at double."""
        pop = CONFIG.population
        excess = self.inflation_expectation - pop.expectation_anchor
        if excess <= 0:
            return 1.0
        return 1.0 + min(pop.max_expectation_boost, excess * pop.expectation_spending_gain)

    @property
    def age_years(self) -> int:
        return self.age // CONFIG.time.ticks_per_year

    @property
    def active_loans(self) -> List[Loan]:
        return [loan for loan in self.loans if loan.active]

    def log_event(self, text: str) -> None:
        """Append to the life-event log, keeping only the most recent entries."""
        self.events.append(text)
        overflow = len(self.events) - CONFIG.population.event_log_size
        if overflow > 0:
            del self.events[:overflow]

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def hire(self, business: "Business", wage: float) -> None:
        if not self.alive:
            return
        self.state = EmploymentState.WORKING
        self.employer_id = business.id
        self.wage = wage
        self.gov_job = False
        self.unemployed_ticks = 0
        self.log_event(f"Hired at {business.name} (age {self.age_years})")

    def take_government_job(self, wage: float) -> None:
        if not self.alive:
            return
        self.state = EmploymentState.WORKING
        self.employer_id = None
        self.wage = wage
        self.gov_job = True
        self.unemployed_ticks = 0
        self.log_event(f"Took a guaranteed government job (age {self.age_years})")

    def fire(self, reason: str = "layoff") -> None:
        if not self.alive:
            return
        if self.employed:
            self.log_event(f"Lost job ({reason}) at age {self.age_years}")
        self.employer_id = None
        self.owned_business_id = None
        self.wage = 0.0
        self.gov_job = False
        if self.state in (EmploymentState.WORKING, EmploymentState.OWNER):
            self.state = EmploymentState.UNEMPLOYED

    def become_owner(self, business: "Business", wage: Optional[float] = None) -> None:
        if not self.alive:
            return
        self.state = EmploymentState.OWNER
        self.owned_business_id = business.id
        self.employer_id = business.id
        self.wage = CONFIG.business.owner_wage if wage is None else wage
        self.gov_job = False
        self.unemployed_ticks = 0
        self.log_event(f"Started {business.name} at age {self.age_years}")

    def come_of_age(self) -> None:
        if self.state == EmploymentState.CHILD:
            self.state = EmploymentState.UNEMPLOYED

    def retire(self, business_lookup: Dict[int, "Business"]) -> None:
        """Leave the workforce. An owned business keeps running without its owner on payroll."""
        if not self.alive or self.state == EmploymentState.RETIRED:
            return
        employer = business_lookup.get(self.employer_id) if self.employer_id is not None else None
        if employer is not None:
            employer.remove_employee(self.id)
        self.employer_id = None
        self.owned_business_id = None
        self.wage = 0.0
        self.gov_job = False
        self.state = EmploymentState.RETIRED
        self.log_event(f"Retired at age {self.age_years}")

    def die(self, ctx, cause: str) -> None:
        """
        Mark the agent dead and release every link it holds.

        The owned business is closed (removal happens at cleanup), the
        employer link is dropped and 80% of positive wealth passes to a
        random living heir.
        """
        if not self.alive:
            return
        self.log_event(f"Died from {cause} at age {self.age_years}")

        if self.owned_business_id is not None:
            owned = ctx.business_lookup.get(self.owned_business_id)
            if owned is not None and owned.alive:
                owned.close(ctx.agent_lookup, "owner died")
        if self.employer_id is not None:
            employer = ctx.business_lookup.get(self.employer_id)
            if employer is not None:
                employer.remove_employee(self.id)

        self.alive = False
        self.state = EmploymentState.DEAD
        self.employer_id = None
        self.owned_business_id = None
        self.wage = 0.0
        self.gov_job = False
        self.deposits = 0.0

        if self.wealth > 0:
            heirs = [a for a in ctx.agents if a.alive and a.id != self.id]
            if heirs:
                heir = heirs[int(ctx.rng.integers(len(heirs)))]
                inheritance = self.wealth * CONFIG.population.inheritance_share
                heir.wealth += inheritance
                heir.log_event(f"Inherited {round(inheritance)} from agent #{self.id}")

    # ------------------------------------------------------------------
    # Per-step behavior
    # ------------------------------------------------------------------

    def tick(self, ctx) -> None:
        """
        Advance one step.

        Order: age, mortality roll, age transitions, prison, inflation
        expectations, consumption, health, income, happiness, crime, entrepreneurship, desperation
        borrowing, poverty death.
        """
        if not self.alive:
            return

        self.age += 1
        self.wants_business = False
        self.needs_business_loan = False

        if self._should_die(ctx):
            self.die(ctx, "natural causes")
            return

        self._age_transitions(ctx)

        if self.incarcerated:
            self._serve_sentence()
            return

        if self.state == EmploymentState.CHILD:
            return

        self._update_inflation_expectation(ctx)
        self._consume_goods(ctx)
        self._apply_health_effects(ctx)
        self._earn_income(ctx)
        self._update_happiness(ctx)
        self._consider_crime(ctx)
        self._consider_starting_business(ctx)
        self._consider_desperation_loan(ctx)

        if self.wealth < CONFIG.population.poverty_death_wealth:
            self.die(ctx, "poverty")

    def _should_die(self, ctx) -> bool:
        pop = CONFIG.population
        if self.age >= CONFIG.ticks(pop.max_age_years):
            return True
        chance = pop.base_death_rate * (1 - self.health * 0.5)
        if self.state == EmploymentState.RETIRED:
            chance *= pop.retired_death_multiplier
        if ctx.policy.get("public_healthcare"):
            chance *= 0.5
        chance *= ctx.modifiers.death_multiplier
        return ctx.rng.random() < chance

    def _age_transitions(self, ctx) -> None:
        pop = CONFIG.population
        if self.state == EmploymentState.CHILD and self.age >= CONFIG.ticks(pop.working_age_years):
            self.come_of_age()
        elif (
            self.state not in (EmploymentState.CHILD, EmploymentState.RETIRED)
            and self.age >= CONFIG.ticks(pop.retirement_age_years)
        ):
            self.retire(ctx.business_lookup)

    def _serve_sentence(self) -> None:
        self.prison_ticks -= 1
        if self.prison_ticks <= 0:
            self.incarcerated = False
            self.prison_ticks = 0
            self.log_event(f"Released from prison at age {self.age_years}")

    def _update_inflation_expectation(self, ctx) -> None:
        pop = CONFIG.population
        memory = pop.expectation_memory
        expectation = self.inflation_expectation * memory + ctx.market.inflation * (1 - memory)
        rate = ctx.policy.get("interest_rate")
        if rate > pop.neutral_interest_rate:
            expectation -= (rate - pop.neutral_interest_rate) * pop.hawkish_pull
        self.inflation_expectation = clamp(
            expectation, pop.min_inflation_expectation, pop.max_inflation_expectation
        )

    def _consume_goods(self, ctx) -> None:
        pop = CONFIG.population
        total = 0.0
        for sector in SECTORS:
            share = pop.consumption_rates[sector]
            if sector in ("food", "housing") and ctx.policy.get(f"price_control_{sector}"):
                share *= pop.price_control_spending_factor
            if sector == "luxury" and (
                self.wealth < pop.luxury_wealth_floor or self.sumptuary_limited
            ):
                share = 0.0
            total += self.wage * share
        total *= self.spending_multiplier

        if self.wealth > pop.lifestyle_threshold:
            total += (self.wealth - pop.lifestyle_threshold) * pop.lifestyle_drain_rate

        if ctx.rng.random() < pop.emergency_probability:
            emergency_share = ctx.rng.uniform(pop.emergency_min_share, pop.emergency_max_share)
            total += max(0.0, self.wealth * emergency_share)

        total *= ctx.modifiers.consumer_spending
        self.expenses = total
        self.wealth -= total * pop.real_consumption_factor

    def _apply_health_effects(self, ctx) -> None:
        food_price = ctx.market.prices.get("food", 10.0)
        if ctx.sector_counts.get("food", 0) == 0:
            self.health -= 0.01
        elif food_price > 50:
            self.health -= 0.002
        elif food_price > 30 and self.wealth < CONFIG.population.poverty_threshold:
            self.health -= 0.005
        self.health = clamp(self.health + ctx.modifiers.health_drift)

    def _earn_income(self, ctx) -> None:
        income = 0.0
        if self.employed and self.wage > 0:
            gross = self.wage
            if self.gov_job:
                ctx.treasury.spend(gross)
            tax = gross * ctx.policy.get("income_tax")
            ctx.treasury.collect(tax)
            income = gross - tax
            self.credit_score = clamp(
                self.credit_score + 0.5,
                CONFIG.population.min_credit_score,
                CONFIG.population.max_credit_score,
            )
        elif self.state == EmploymentState.UNEMPLOYED:
            benefit = ctx.policy.get("unemployment_benefit") * CONFIG.population.benefit_income_rate
            if benefit > 0:
                ctx.treasury.spend(benefit)
                income = benefit
            self.unemployed_ticks += 1
        self.income = income
        self.wealth += income

    def _update_happiness(self, ctx) -> None:
        h = 0.5
        h += clamp(self.wealth / 1000 * 0.2, -0.3, 0.3)
        h += 0.1 if self.employed else -0.15
        h -= (1 - self.health) * 0.15
        if ctx.sector_counts.get("housing", 0) == 0:
            h -= 0.1
        if ctx.last_gini > 0.6:
            h -= 0.1
        if ctx.policy.get("public_healthcare"):
            h += 0.05
        if self.victim_tick >= 0 and ctx.tick - self.victim_tick < CONFIG.crime.victim_memory_ticks:
            h -= CONFIG.crime.victim_happiness_penalty
        if self.in_debt_spiral:
            h -= 0.25
        self.happiness = clamp(h)
        self.unrest = clamp(1 - self.happiness - 0.3)

    def _consider_crime(self, ctx) -> None:
        crime = CONFIG.crime
        if self.state == EmploymentState.RETIRED:
            return

        if not self.is_owner:
            young = (
                CONFIG.ticks(CONFIG.population.working_age_years)
                < self.age
                < CONFIG.ticks(crime.youth_max_years)
            )
            propensity = (
                1
                + (crime.poverty_factor if self.wealth < CONFIG.population.poverty_threshold else 0)
                + (crime.unemployment_factor if not self.employed else 0)
                + self.unrest * crime.unrest_factor
                + (crime.youth_factor if young else 0)
                + self.reoffend_risk * crime.reoffend_factor
                - ctx.policy.get("police_funding") * crime.police_deterrence
            )
            if ctx.rng.random() < crime.street_base_chance * propensity:
                self._commit_street_crime(ctx)
            return

        greed = (
            1
            + (0.3 if not ctx.policy.get("anti_monopoly") else 0)
            + (0.3 if ctx.last_gini > 0.5 else 0)
            + (0.2 if self.wealth > 2000 else 0)
            - ctx.policy.get("financial_oversight") * crime.oversight_deterrence
        )
        if ctx.rng.random() < crime.corporate_base_chance * greed:
            self._commit_corporate_crime(ctx)

    def _commit_street_crime(self, ctx) -> None:
        crime = CONFIG.crime
        victims = [a for a in ctx.agents if a.alive and a.id != self.id and not a.incarcerated]
        if not victims:
            return
        victim = victims[int(ctx.rng.integers(len(victims)))]
        roll = ctx.rng.random()
        if roll < 0.5:
            kind = "theft"
            stolen = min(victim.wealth * crime.theft_share, crime.theft_cap)
            if stolen > 0:
                victim.wealth -= stolen
                self.wealth += stolen
        elif roll < 0.8:
            kind = "robbery"
            stolen = min(victim.wealth * crime.robbery_share, crime.robbery_cap)
            if stolen > 0:
                victim.wealth -= stolen
                self.wealth += stolen
            victim.health = clamp(victim.health - crime.robbery_health_damage, 0.1, 1.0)
        else:
            kind = "assault"
            victim.health = clamp(victim.health - crime.assault_health_damage, 0.1, 1.0)
        victim.victim_tick = ctx.tick
        ctx.street_crimes += 1

        arrest_chance = crime.street_arrest_chance + ctx.policy.get("police_funding") * crime.police_arrest_bonus
        if ctx.rng.random() < arrest_chance:
            self._get_arrested(ctx, kind, crime.street_sentence)

    def _commit_corporate_crime(self, ctx) -> None:
        crime = CONFIG.crime
        business = ctx.business_lookup.get(self.owned_business_id)
        if business is None or not business.alive:
            return
        stolen = max(0.0, business.capital * crime.embezzlement_share)
        business.capital -= stolen
        self.wealth += stolen
        ctx.corporate_crimes += 1

        arrest_chance = (
            crime.corporate_arrest_chance
            + ctx.policy.get("financial_oversight") * crime.oversight_arrest_bonus
        )
        if ctx.rng.random() < arrest_chance:
            self._get_arrested(ctx, "embezzlement", crime.corporate_sentence)

    def _get_arrested(self, ctx, kind: str, base_sentence: int) -> None:
        crime = CONFIG.crime
        self.incarcerated = True
        self.prison_ticks = base_sentence + int(ctx.rng.integers(crime.sentence_jitter))
        self.criminal_record.append(kind)
        self.reoffend_risk = clamp(self.reoffend_risk + crime.reoffend_increment)
        self.credit_score = clamp(
            self.credit_score - crime.arrest_credit_penalty,
            CONFIG.population.min_credit_score,
            CONFIG.population.max_credit_score,
        )
        if self.is_owner:
            owned = ctx.business_lookup.get(self.owned_business_id)
            if owned is not None and owned.alive:
                owned.close(ctx.agent_lookup, "owner arrested")
        elif self.employer_id is not None:
            employer = ctx.business_lookup.get(self.employer_id)
            if employer is not None:
                employer.remove_employee(self.id)
        self.fire("arrested")
        self.log_event(f"Arrested for {kind} at age {self.age_years}")

    def _consider_starting_business(self, ctx) -> None:
        pop = CONFIG.population
        if self.state != EmploymentState.UNEMPLOYED or self.skill <= pop.startup_min_skill:
            return
        if ctx.rng.random() >= pop.startup_probability:
            return
        can_afford = self.wealth > pop.startup_self_funded_wealth
        can_borrow = self.credit_score >= pop.startup_loan_min_credit and any(b.alive for b in ctx.banks)
        if can_afford or can_borrow:
            self.wants_business = True
            self.needs_business_loan = not can_afford

    def _consider_desperation_loan(self, ctx) -> None:
        pop = CONFIG.population
        if self.state != EmploymentState.UNEMPLOYED or self.wealth >= 0 or self.active_loans:
            return
        if ctx.rng.random() >= pop.desperation_loan_chance:
            return
        benefit_income = ctx.policy.get("unemployment_benefit") * pop.benefit_income_rate
        amount = max(pop.desperation_loan_min, benefit_income * 3)
        bank = find_lender(ctx.banks, self, "personal", amount, ctx.policy)
        if bank is not None:
            bank.issue_loan(self, "personal", amount, ctx.policy)
            self.log_event(f"Took desperation loan (${round(amount)})")

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "alive": self.alive,
            "state": self.state.value,
            "age": self.age,
            "wealth": self.wealth,
            "wage": self.wage,
            "skill": self.skill,
            "education": self.education,
            "health": self.health,
            "happiness": self.happiness,
            "unrest": self.unrest,
            "employed": self.employed,
            "employer_id": self.employer_id,
            "is_owner": self.is_owner,
            "business_id": self.owned_business_id,
            "social_class": self.social_class,
            "wealth_percentile": self.wealth_percentile,
            "inflation_expectation": self.inflation_expectation,
            "credit_score": self.credit_score,
            "loan_count": len(self.active_loans),
            "in_debt_spiral": self.in_debt_spiral,
            "incarcerated": self.incarcerated,
            "events": self.events[-CONFIG.population.event_log_exposed:],
        }


@dataclass(slots=True)
class Business:
    """
    A firm producing one sector's good.

    The owner is counted as an employee. Employees are kept in hire order
    so layoffs always release the most recent hire first. Bankruptcy is
    never decided inside `tick`; the engine checks `is_bankrupt` during
    cleanup.
    """

    id: int
    sector: str
    name: str = ""
    capital: float = CONFIG.business.start_capital
    productivity: float = 1.0
    wage_offered: float = CONFIG.business.default_wage
    capacity: int = CONFIG.business.max_capacity
    owner_id: Optional[int] = None
    employees: List[int] = field(default_factory=list)
    x: float = 0.0
    y: float = 0.0

    alive: bool = True
    nationalized: bool = False
    production: float = 0.0
    inventory: float = 0.0
    revenue: float = 0.0
    expenses: float = 0.0
    profit: float = 0.0
    profit_history: List[float] = field(default_factory=list)
    market_share: float = 0.0
    dominance: float = 0.0
    zero_employee_ticks: int = 0
    firing_cooldown: int = 0
    age: int = 0
    closed_reason: Optional[str] = None

    def __post_init__(self):
        """Validate invariants after initialization."""
        if self.sector not in SECTORS:
            raise ValueError(f"sector must be one of {SECTORS}, got {self.sector!r}")
        if self.capacity < CONFIG.business.min_capacity:
            raise ValueError(f"capacity must be at least {CONFIG.business.min_capacity}, got {self.capacity}")
        if self.productivity <= 0:
            raise ValueError(f"productivity must be positive, got {self.productivity}")
        if not self.name:
            names = BUSINESS_NAMES[self.sector]
            self.name = f"{names[self.id % len(names)]} #{self.id}"

    @property
    def open_positions(self) -> int:
        return max(0, self.capacity - len(self.employees))

    # ------------------------------------------------------------------
    # Roster management
    # ------------------------------------------------------------------

    def hire(self, agent: Agent, wage: float) -> None:
        if agent.id in self.employees:
            return
        self.employees.append(agent.id)
        agent.hire(self, wage)

    def add_owner(self, agent: Agent) -> None:
        self.owner_id = agent.id
        if agent.id not in self.employees:
            self.employees.append(agent.id)
        agent.become_owner(self)

    def remove_employee(self, agent_id: int) -> None:
        if agent_id in self.employees:
            self.employees.remove(agent_id)

    def lay_off(self, agent_lookup: Dict[int, Agent], reason: str = "layoff") -> Optional[int]:
        """Release the most recent hire that is not the owner."""
        for agent_id in reversed(self.employees):
            if agent_id == self.owner_id:
                continue
            self.employees.remove(agent_id)
            agent = agent_lookup.get(agent_id)
            if agent is not None:
                agent.fire(reason)
            self.firing_cooldown = CONFIG.business.layoff_cooldown
            return agent_id
        return None

    def close(self, agent_lookup: Dict[int, Agent], reason: str) -> None:
        """Shut down: every employee (owner included) loses their job."""
        if not self.alive:
            return
        self.alive = False
        self.closed_reason = reason
        for agent_id in list(self.employees):
            agent = agent_lookup.get(agent_id)
            if agent is not None and agent.employer_id == self.id:
                agent.fire(reason)
        self.employees = []
        if self.owner_id is not None:
            owner = agent_lookup.get(self.owner_id)
            if owner is not None and owner.owned_business_id == self.id:
                owner.fire(reason)
                owner.log_event(f"Business closed ({reason}) at age {owner.age_years}")

    def is_bankrupt(self) -> bool:
        return (
            self.capital < CONFIG.business.bankruptcy_threshold
            or self.zero_employee_ticks >= CONFIG.business.zero_employee_grace
        )

    # ------------------------------------------------------------------
    # Per-step behavior
    # ------------------------------------------------------------------

    def tick(self, ctx) -> None:
        if not self.alive:
            return
        self.age += 1
        self.firing_cooldown = max(0, self.firing_cooldown - 1)

        self.produce(ctx)
        self._sell_goods(ctx)
        self._pay_wages(ctx)
        self._adjust_workforce(ctx)

        if self.employees:
            self.zero_employee_ticks = 0
        else:
            self.zero_employee_ticks += 1

    def produce(self, ctx) -> None:
        if not self.employees:
            self.production = 0.0
            return
        policy = ctx.policy
        modifiers = ctx.modifiers
        output = (
            CONFIG.market.base_production[self.sector]
            * len(self.employees)
            * self.productivity
            * modifiers.production
            * modifiers.demand
        )
        if policy.get("subsidies_farming") and self.sector == "food":
            output *= 1.3
        education = policy.get("education_funding")
        if education > 0.5:
            output *= 1 + education * 0.1
        if policy.get("four_day_week"):
            output *= 0.82
        if self.nationalized:
            output *= 0.92
        if self.sector == "food":
            output *= modifiers.food_supply
        self.production = float(math.floor(output))
        self.inventory = min(self.inventory + self.production, CONFIG.business.inventory_cap)

    def _sell_goods(self, ctx) -> None:
        price = ctx.market.prices.get(self.sector, CONFIG.market.initial_prices[self.sector])
        sold = min(self.inventory, math.floor(self.production * CONFIG.business.sell_through))
        self.revenue = sold * price
        self.inventory = max(0.0, self.inventory - sold)
        self.capital += self.revenue

    def _pay_wages(self, ctx) -> None:
        cfg = CONFIG.business
        min_wage = ctx.policy.get("min_wage")
        effective_wage = max(self.wage_offered, min_wage)
        wage_bill = effective_wage * len(self.employees)

        self.expenses = wage_bill
        self.capital -= wage_bill
        self.profit = self.revenue - self.expenses
        self.profit_history.append(self.profit)
        if len(self.profit_history) > cfg.profit_history_size:
            del self.profit_history[0]

        if self.profit > 0:
            tax = self.profit * ctx.policy.get("corporate_tax")
            self.capital -= tax
            ctx.treasury.collect(tax)

        self._adjust_wage_offer(ctx, min_wage)

    def _adjust_wage_offer(self, ctx, min_wage: float) -> None:
        """
        Move the offer part way toward a target set by labor scarcity.

        The target rises above the default wage when unemployment is below
        its natural rate (more so with unfilled positions) and falls when
        the jobless pool is large. Loss-making firms cap the target at a
        wage cut. The offer never drops below the minimum wage.
        """
        cfg = CONFIG.business
        slack = ctx.labor_slack()
        target = cfg.default_wage * (1 + cfg.scarcity_sensitivity * (cfg.natural_unemployment - slack))
        if self.open_positions > 0 and slack < cfg.natural_unemployment:
            target *= 1 + cfg.vacancy_premium
        if self.profit < 0 and self.employees:
            target = min(target, self.wage_offered * cfg.wage_cut)
        target = max(target, min_wage)

        offer = self.wage_offered + (target - self.wage_offered) * cfg.wage_adjust_rate
        self.wage_offered = max(min_wage, min(cfg.max_wage_offer, offer))

    def _adjust_workforce(self, ctx) -> None:
        cfg = CONFIG.business
        full_output = CONFIG.market.base_production[self.sector] * self.capacity * self.productivity
        utilization = min(self.production / full_output, 1.0) if self.production > 0 else 0.0

        if (
            self.firing_cooldown == 0
            and len(self.employees) > 1
            and (utilization < cfg.fire_utilization or self.capital < 0)
        ):
            self.lay_off(ctx.agent_lookup)
            return

        automation = ctx.modifiers.automation_rate
        if (
            automation > 0
            and self.sector != "tech"
            and len(self.employees) > 1
            and ctx.rng.random() < automation * 0.01
        ):
            self.lay_off(ctx.agent_lookup, "automation")

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "sector": self.sector,
            "x": self.x,
            "y": self.y,
            "alive": self.alive,
            "capital": self.capital,
            "revenue": self.revenue,
            "profit": self.profit,
            "production": self.production,
            "inventory": self.inventory,
            "employees": list(self.employees),
            "employee_count": len(self.employees),
            "capacity": self.capacity,
            "wage_offered": self.wage_offered,
            "productivity": self.productivity,
            "market_share": self.market_share,
            "dominance": self.dominance,
            "nationalized": self.nationalized,
            "owner_id": self.owner_id,
        }
