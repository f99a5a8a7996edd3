"""
Economy Simulation Engine

This module implements the simulation coordinator that owns every
subsystem (agents, businesses, banks, market, policy, events, global
economy, metrics, insights) and advances them through a fixed per-step
pipeline.

All randomness comes from one numpy Generator owned by the engine, so a
fixed seed reproduces a run exactly.
"""

import logging
import math
from typing import Dict, List, Optional, Union

import numpy as np

from agents import Agent, Business, EmploymentState, clamp
from banking import Bank, create_initial_banks, find_lender
from config import CONFIG, SECTORS
from context import StepContext
from events import EVENT_TEMPLATES, EventSystem
from global_economy import GLOBAL_SHOCKS, GlobalEconomy
from insights import InsightState, InsightTracker
from labor import match_labor
from market import Market, update_dominance
from metrics import ApprovalRating, Metrics, assign_wealth_percentiles, build_report
from policy import PolicyState, Treasury, apply_policy_effects
from scenarios import Scenario, get_scenario

logger = logging.getLogger(__name__)

CANVAS_WIDTH = 800.0
CANVAS_HEIGHT = 600.0

RUNNER_COMMANDS = {"SET_SPEED", "PAUSE", "RESUME"}


def _scrub(value):
    """Replace non-finite floats anywhere in a payload with 0."""
    if isinstance(value, float):
        return value if math.isfinite(value) else 0.0
    if isinstance(value, dict):
        return {k: _scrub(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_scrub(v) for v in value]
    return value


class Economy:
    """
    Main simulation coordinator.

    Each call to `step` runs the whole pipeline once and returns the
    notifications produced during that step. Commands arrive through
    `apply_command`; the runner owns speed, pause and resume.
    """

    def __init__(
        self,
        scenario: Union[str, Scenario, None] = "default",
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        """
        Build a fresh economy for a scenario.

        Args:
            scenario: Scenario id or a Scenario instance; unknown ids fall back to the default
            seed: Seed for the engine's random generator
            rng: A generator to use instead of seeding a new one
        """
        self.reset(scenario, seed=seed, rng=rng)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def reset(
        self,
        scenario: Union[str, Scenario, None] = None,
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        """
        Rebuild every component for a scenario.

        Nothing from the previous run survives: fired insights, approval,
        pending choices and the follow-up queue all start empty.

        Mutates state.
        """
        if isinstance(scenario, Scenario):
            self.scenario = scenario
        else:
            self.scenario = get_scenario(scenario)
        self.seed = seed
        self.rng = rng if rng is not None else np.random.default_rng(seed)

        self.tick = 0
        self.policy = PolicyState(self.scenario.policies)
        self.treasury = Treasury(debt=self.scenario.start_gov_debt)
        self.market = Market()
        self.metrics = Metrics()
        self.approval = ApprovalRating()
        self.events = EventSystem()
        for event_type, fire_tick in self.scenario.scheduled_events:
            self.events.schedule(event_type, fire_tick)
        self.global_economy = GlobalEconomy()
        self.insights = InsightTracker()

        self.banks: List[Bank] = create_initial_banks()
        self.banks_created = len(self.banks)
        self._next_agent_id = 1
        self._next_business_id = 1

        self.agents: List[Agent] = self._create_initial_agents()
        self.businesses: List[Business] = self._create_initial_businesses()

        self._force_shock: Optional[str] = None
        self.initial_gdp: Optional[float] = None
        self.peak_unemployment = 0.0
        self._inflation_total = 0.0
        self._inflation_samples = 0
        self.zero_gdp_streak = 0
        self.completed = False
        self.failed = False
        self.final_report: Optional[Dict[str, object]] = None

        self._warmup()
        logger.info(
            f"Economy reset: scenario={self.scenario.id} agents={len(self.agents)} "
            f"businesses={len(self.businesses)} seed={seed}"
        )

    def _random_adult_age(self) -> int:
        pop = CONFIG.population
        low = CONFIG.ticks(pop.working_age_years)
        high = CONFIG.ticks(pop.retirement_age_years * 0.6)
        return int(self.rng.integers(low, high))

    def _random_position(self):
        return (
            float(self.rng.uniform(20, CANVAS_WIDTH - 20)),
            float(self.rng.uniform(20, CANVAS_HEIGHT - 20)),
        )

    def _new_agent(self, **kwargs) -> Agent:
        agent = Agent(id=self._next_agent_id, **kwargs)
        self._next_agent_id += 1
        return agent

    def _create_initial_agents(self) -> List[Agent]:
        scenario = self.scenario
        pop = CONFIG.population
        agents = []
        for _ in range(scenario.agent_count):
            x, y = self._random_position()
            wealth = max(10.0, float(self.rng.normal(
                pop.initial_wealth_mean * scenario.wealth_multiplier,
                pop.initial_wealth_std * scenario.wealth_inequality,
            )))
            agents.append(self._new_agent(
                age=self._random_adult_age(),
                skill=float(np.clip(self.rng.normal(scenario.avg_skill, 0.2), 0.05, 1.0)),
                education=float(np.clip(self.rng.normal(scenario.avg_education, 0.25), 0.0, 1.0)),
                wealth=wealth,
                x=x,
                y=y,
            ))
        return agents

    def _random_capacity(self) -> int:
        cfg = CONFIG.business
        return int(self.rng.integers(cfg.min_capacity, cfg.max_capacity + 1))

    def _create_initial_businesses(self) -> List[Business]:
        """
        Create the starting firms, spread round-robin across sectors.

        Each firm is owned by the most skilled available working-age agent
        with skill above the entrepreneurship threshold, when one exists.
        """
        businesses = []
        for i in range(self.scenario.business_count):
            x, y = self._random_position()
            business = Business(
                id=self._next_business_id,
                sector=SECTORS[i % len(SECTORS)],
                productivity=float(np.clip(self.rng.normal(1.0, 0.2), 0.3, 2.5)),
                capacity=self._random_capacity(),
                x=x,
                y=y,
            )
            self._next_business_id += 1

            candidates = [
                a for a in self.agents
                if a.alive
                and a.state == EmploymentState.UNEMPLOYED
                and a.skill > CONFIG.population.startup_min_skill
            ]
            if candidates:
                owner = min(candidates, key=lambda a: (-a.skill, a.id))
                business.add_owner(owner)
            businesses.append(business)
        return businesses

    def _warmup(self) -> None:
        """
        Seed a running economy.

        Fills most open positions, derives credit scores from wealth and
        skill, and gives firms starting output and inventory so the first
        metrics are meaningful. Anchors each market so the seeded economy
        clears at its opening prices.

        Mutates state.
        """
        labor = CONFIG.labor_market
        pool = [a for a in self.agents if a.alive and a.state == EmploymentState.UNEMPLOYED]
        firms = [b for b in self.businesses if b.alive]
        total_slots = sum(b.open_positions for b in firms)
        target = int(total_slots * labor.warmup_fill_share)
        filled = 0
        min_wage = self.policy.get("min_wage")

        for business in firms:
            for _ in range(business.open_positions):
                if not pool or filled >= target:
                    break
                agent = pool.pop(int(self.rng.integers(len(pool))))
                wage = max(min_wage, labor.warmup_base_wage + agent.skill * labor.warmup_skill_wage)
                business.hire(agent, wage)
                filled += 1

        pop = CONFIG.population
        for agent in self.agents:
            agent.credit_score = clamp(
                400 + math.floor(agent.wealth / 10) + math.floor(agent.skill * 100),
                pop.min_credit_score,
                pop.max_credit_score,
            )
            if agent.employed and agent.wage > 0:
                agent.income = agent.wage
                agent.deposits = agent.wage * float(self.rng.uniform(5, 15))

        ctx = self._build_context()
        for business in firms:
            business.produce(ctx)
            business.inventory = min(business.production * 3, CONFIG.business.inventory_cap)
            business.revenue = business.production * self.market.prices[business.sector]
            business.profit = business.revenue * CONFIG.business.profit_margin
            business.profit_history = [business.profit * float(self.rng.uniform(0.8, 1.2))] * 5

        self.market.calibrate(self.agents, firms, ctx.modifiers)
        update_dominance(firms)
        assign_wealth_percentiles(self.agents)

        self.metrics.update(self._build_context(), self.global_economy)

    # ------------------------------------------------------------------
    # Step pipeline
    # ------------------------------------------------------------------

    @property
    def awaiting_choice(self) -> bool:
        return self.events.awaiting_choice

    def _build_context(self) -> StepContext:
        alive_businesses = [b for b in self.businesses if b.alive]
        sector_counts = {sector: 0 for sector in SECTORS}
        for business in alive_businesses:
            sector_counts[business.sector] += 1
        return StepContext(
            tick=self.tick,
            rng=self.rng,
            policy=self.policy,
            treasury=self.treasury,
            market=self.market,
            metrics=self.metrics,
            modifiers=self.events.modifiers(),
            agents=self.agents,
            businesses=self.businesses,
            banks=self.banks,
            agent_lookup={a.id: a for a in self.agents},
            business_lookup={b.id: b for b in self.businesses},
            sector_counts=sector_counts,
            last_gini=self.metrics.gini,
        )

    def step(self) -> List[Dict[str, object]]:
        """
        Execute one full simulation step.

        Follows strict phase ordering:
        1. Agent ticks
        2. Business ticks
        3. Bank ticks (loan servicing, failures)
        4. Labor market clearing (every labor_match_interval steps)
        5. Global economy tick
        6. Market price update with trade flows
        7. Monopoly consequences
        8. Policy effects (consumes one-shot levers)
        9. Scheduled follow-ups due this step
        10. Event lottery, forced shocks, age-out and ongoing effects
        11. Births (every birth_interval steps)
        12. Cleanup of the dead, the bankrupt and failed banks
        13. New business formation
        14. Metrics and approval (every metrics_interval steps)
        15. Insight check
        16. Failure check
        17. Scenario completion check

        Returns:
            Notifications produced during the step
        """
        self.tick += 1
        ctx = self._build_context()
        notifications: List[Dict[str, object]] = []

        for agent in self.agents:
            if agent.alive:
                agent.tick(ctx)
        self.metrics.record_crimes(ctx.street_crimes, ctx.corporate_crimes)

        for business in self.businesses:
            if business.alive:
                business.tick(ctx)

        for bank in self.banks:
            if bank.alive:
                bank.tick(ctx)

        if self.tick % CONFIG.time.labor_match_interval == 0:
            match_labor(self.agents, self.businesses, self.policy, ctx.modifiers.hiring_suppressed)

        trade_flows, shock_notice = self.global_economy.tick(self.market, self.policy, self.rng)
        if shock_notice is not None:
            notifications.append({"type": "GLOBAL_SHOCK", "shock": shock_notice})

        self.market.update(self.agents, self.businesses, self.policy, ctx.modifiers, trade_flows)

        self._apply_monopoly_consequences()

        apply_policy_effects(ctx)

        for event in self.events.fire_scheduled(ctx):
            notifications.append(self._event_notice(event))

        force_type, self._force_shock = self._force_shock, None
        new_event = self.events.tick(ctx, force_type=force_type)
        if new_event is not None:
            notifications.append(self._event_notice(new_event))
        self._spawn_immigrants(ctx)

        if self.tick % CONFIG.time.birth_interval == 0:
            self._process_births(ctx)

        self._cleanup(ctx)
        self._process_new_businesses(ctx)
        assign_wealth_percentiles(self.agents)

        if self.tick % CONFIG.time.metrics_interval == 0:
            notifications.extend(self._update_metrics(ctx))

        insight = self.insights.check(self.tick, InsightState(
            metrics=self.metrics,
            policy=self.policy,
            businesses=self.businesses,
            banks_alive=sum(1 for b in self.banks if b.alive),
            banks_created=self.banks_created,
            global_economy=self.global_economy,
        ))
        if insight is not None:
            notifications.append({"type": "INSIGHT", "insight": insight})

        if not self.failed and not self.completed:
            failure = self._check_failure()
            if failure is not None:
                notifications.append(failure)

        if not self.failed and not self.completed and self.scenario.duration_years:
            if self.tick // CONFIG.time.ticks_per_year >= self.scenario.duration_years:
                self.completed = True
                self.final_report = self.build_report()
                logger.info(f"Scenario {self.scenario.id} complete: grade {self.final_report['grade']}")
                notifications.append({"type": "SCENARIO_COMPLETE", "report": self.final_report})

        return notifications

    def run(self, ticks: int) -> List[Dict[str, object]]:
        """Run several steps back to back and collect their notifications."""
        notifications = []
        for _ in range(ticks):
            notifications.extend(self.step())
        return notifications

    @staticmethod
    def _event_notice(event) -> Dict[str, object]:
        return {"type": "EVENT", "event": event.to_dict(), "requires_choice": event.requires_choice}

    def _apply_monopoly_consequences(self) -> None:
        """
        Social costs of market dominance when anti-monopoly policy is off.

        Mutates state.
        """
        if self.policy.get("anti_monopoly"):
            return
        alive_agents = [a for a in self.agents if a.alive]
        for sector in SECTORS:
            members = [b for b in self.businesses if b.alive and b.sector == sector]
            dominant = next((b for b in members if b.dominance > 0.5), None)
            if dominant is None:
                continue
            for agent in alive_agents:
                agent.unrest = clamp(agent.unrest + 0.003)
            if sector == "food":
                self.market.nudge_price("food", 1.001)
            elif sector == "housing":
                for agent in alive_agents:
                    agent.wealth -= agent.expenses * 0.002
            if dominant.dominance > 0.7:
                for competitor in members:
                    if competitor.id != dominant.id:
                        competitor.capital -= competitor.capital * 0.02

    def _spawn_immigrants(self, ctx: StepContext) -> None:
        while self.events.spawn_requests:
            count, skill_bonus = self.events.spawn_requests.pop(0)
            for _ in range(count):
                x, y = self._random_position()
                agent = self._new_agent(
                    age=self._random_adult_age(),
                    skill=float(np.clip(self.rng.normal(0.6 + skill_bonus, 0.15), 0.3, 1.0)),
                    education=float(np.clip(self.rng.normal(0.6, 0.2), 0.2, 1.0)),
                    wealth=float(np.clip(self.rng.normal(300, 100), 50, 800)),
                    credit_score=CONFIG.population.initial_credit_score,
                    born_in_year=self.tick // CONFIG.time.ticks_per_year,
                    x=x,
                    y=y,
                )
                self.agents.append(agent)
                ctx.agent_lookup[agent.id] = agent
            logger.info(f"{count} immigrants arrived at tick {self.tick}")

    def _process_births(self, ctx: StepContext) -> None:
        pop = CONFIG.population
        low = CONFIG.ticks(pop.fertile_min_years)
        high = CONFIG.ticks(pop.fertile_max_years)
        parents = [a for a in self.agents if a.alive and low < a.age < high]
        for parent in parents:
            if self.rng.random() >= pop.birth_chance:
                continue
            child = self._new_agent(
                age=0,
                skill=float(np.clip(self.rng.normal(parent.skill, 0.15), 0.1, 1.0)),
                education=0.0,
                wealth=10.0,
                credit_score=pop.initial_credit_score,
                born_in_year=self.tick // CONFIG.time.ticks_per_year,
                x=parent.x + float(self.rng.uniform(-10, 10)),
                y=parent.y + float(self.rng.uniform(-10, 10)),
            )
            self.agents.append(child)
            ctx.agent_lookup[child.id] = child

    def _cleanup(self, ctx: StepContext) -> None:
        """
        Turn deaths, bankruptcies and bank failures into removals.

        Mutates state.
        """
        for business in self.businesses:
            if business.alive and business.is_bankrupt():
                logger.info(f"Business {business.name} went bankrupt at tick {self.tick}")
                business.close(ctx.agent_lookup, "bankruptcy")

        self.agents[:] = [a for a in self.agents if a.alive]
        self.businesses[:] = [b for b in self.businesses if b.alive]
        self.banks[:] = [b for b in self.banks if b.alive]
        ctx.agent_lookup = {a.id: a for a in self.agents}
        ctx.business_lookup = {b.id: b for b in self.businesses}

        if not self.banks:
            bank = Bank(id=self.banks_created + 1, reserves=CONFIG.banking.initial_reserves)
            self.banks.append(bank)
            self.banks_created += 1
            logger.info(f"Central bank chartered {bank.name} after every bank failed")

    def _process_new_businesses(self, ctx: StepContext) -> None:
        """
        Open businesses for agents who decided to start one this step.

        Mutates state.
        """
        cfg = CONFIG.business
        founders = [a for a in self.agents if a.wants_business]
        for agent in founders:
            needs_loan = agent.needs_business_loan
            agent.wants_business = False
            agent.needs_business_loan = False
            if not agent.alive or agent.state != EmploymentState.UNEMPLOYED:
                continue
            if sum(1 for b in self.businesses if b.alive) >= cfg.max_businesses:
                continue

            if needs_loan:
                bank = find_lender(self.banks, agent, "business", cfg.startup_loan_amount, self.policy)
                if bank is None:
                    continue
                bank.issue_loan(agent, "business", cfg.startup_loan_amount, self.policy)
                start_capital = cfg.startup_loan_amount
                agent.wealth -= start_capital
                agent.log_event(f"Took business loan (${round(start_capital)}) at age {agent.age_years}")
            else:
                if agent.wealth < CONFIG.population.startup_self_funded_wealth:
                    continue
                start_capital = agent.wealth * 0.5
                agent.wealth -= start_capital

            sector = SECTORS[int(self.rng.integers(len(SECTORS)))]
            business = Business(
                id=self._next_business_id,
                sector=sector,
                capital=start_capital,
                productivity=float(np.clip(self.rng.normal(agent.skill, 0.2), 0.3, 2.0)),
                capacity=self._random_capacity(),
                x=agent.x,
                y=agent.y,
            )
            self._next_business_id += 1
            business.add_owner(agent)
            self.businesses.append(business)
            ctx.business_lookup[business.id] = business
            logger.info(f"Agent #{agent.id} founded {business.name}")

        for agent in self.agents:
            agent.wants_business = False
            agent.needs_business_loan = False

    def _update_metrics(self, ctx: StepContext) -> List[Dict[str, object]]:
        notifications = []
        self.metrics.update(ctx, self.global_economy)
        if self.initial_gdp is None:
            self.initial_gdp = self.metrics.gdp
        self.peak_unemployment = max(self.peak_unemployment, self.metrics.unemployment)
        self._inflation_total += self.metrics.inflation
        self._inflation_samples += 1

        if self.approval.update(self.metrics, self.policy):
            event = self.events.trigger("vote_of_no_confidence", ctx)
            if event is not None:
                notifications.append(self._event_notice(event))
        return notifications

    def _check_failure(self) -> Optional[Dict[str, object]]:
        if not any(a.alive for a in self.agents):
            return self._fail("extinction", "Everyone is dead. The civilization has ended.")

        if self.tick % CONFIG.time.metrics_interval == 0:
            if self.metrics.gdp == 0:
                self.zero_gdp_streak += 1
            else:
                self.zero_gdp_streak = 0
            if self.zero_gdp_streak >= CONFIG.metrics.zero_gdp_failure_updates:
                return self._fail(
                    "economic_collapse",
                    "GDP has been zero for an extended period. The economy has flatlined.",
                )
        return None

    def _fail(self, reason: str, message: str) -> Dict[str, object]:
        self.failed = True
        self.final_report = self.build_report()
        logger.info(f"Scenario {self.scenario.id} failed at tick {self.tick}: {reason}")
        return {"type": "SCENARIO_FAILED", "reason": reason, "message": message, "report": self.final_report}

    def build_report(self) -> Dict[str, object]:
        inflation_avg = (
            self._inflation_total / self._inflation_samples if self._inflation_samples else None
        )
        return _scrub(build_report(
            self.scenario,
            self.metrics,
            self.initial_gdp,
            self.policy,
            self.tick,
            peak_unemployment=self.peak_unemployment,
            inflation_avg=inflation_avg,
        ))

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def apply_command(self, command: Dict[str, object]) -> List[Dict[str, object]]:
        """
        Apply one engine-level command.

        Unknown commands and malformed payloads are logged and ignored.
        Speed, pause and resume belong to the runner and are accepted here
        without effect.

        Returns:
            Notifications produced immediately by the command
        """
        kind = command.get("type") if isinstance(command, dict) else None

        if kind == "SET_POLICY":
            name = command.get("policy")
            if not isinstance(name, str) or "value" not in command:
                logger.warning(f"Ignoring malformed SET_POLICY: {command}")
                return []
            self.policy.set(name, command["value"])
            return []

        if kind == "RESET":
            seed = command.get("seed")
            self.reset(command.get("scenario"), seed=seed if isinstance(seed, int) else None)
            return [{"type": "STATE_UPDATE", "snapshot": self.get_snapshot()}]

        if kind == "RESOLVE_CHOICE":
            return self.resolve_choice(str(command.get("eventId")), str(command.get("choiceId")))

        if kind == "FORCE_SHOCK":
            event_type = command.get("eventType") or "random"
            if event_type in {s["type"] for s in GLOBAL_SHOCKS}:
                self.global_economy.start_shock(event_type)
            elif event_type == "random" or event_type in EVENT_TEMPLATES:
                self._force_shock = event_type
            else:
                logger.warning(f"Ignoring FORCE_SHOCK for unknown event type: {event_type}")
            return []

        if kind == "GET_SNAPSHOT":
            return [{"type": "STATE_UPDATE", "snapshot": self.get_snapshot()}]

        if kind in RUNNER_COMMANDS:
            return []

        logger.warning(f"Ignoring unknown command: {kind!r}")
        return []

    def resolve_choice(self, event_id: str, choice_id: str) -> List[Dict[str, object]]:
        """
        Resolve the pending choice event.

        A mismatched event or choice id leaves the event pending. When a
        deferred choice event is promoted into the pending slot, its notice
        is returned so the client can show it.
        """
        ctx = self._build_context()
        if not self.events.resolve(event_id, choice_id, ctx):
            return []
        self._spawn_immigrants(ctx)
        if self.events.pending is not None:
            return [self._event_notice(self.events.pending)]
        return []

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def get_snapshot(self) -> Dict[str, object]:
        """Public view of the whole simulation, free of NaN and infinities."""
        pending = self.events.pending
        return _scrub({
            "tick": self.tick,
            "year": self.tick // CONFIG.time.ticks_per_year,
            "scenario": {
                "id": self.scenario.id,
                "name": self.scenario.name,
                "duration_years": self.scenario.duration_years,
            },
            "agents": [a.to_dict() for a in self.agents if a.alive],
            "businesses": [b.to_dict() for b in self.businesses if b.alive],
            "banks": [b.to_dict() for b in self.banks],
            "metrics": self.metrics.to_dict(),
            "market": self.market.to_dict(),
            "policies": self.policy.to_dict(),
            "treasury": {
                "debt": self.treasury.debt,
                "budget": self.treasury.budget,
                "interest_paid": self.treasury.interest_paid,
            },
            "active_events": [e.to_dict() for e in self.events.active],
            "pending_choice": pending.to_dict() if pending is not None else None,
            "awaiting_choice": self.awaiting_choice,
            "deferred_choices": len(self.events.deferred),
            "scheduled_events": [{"type": t, "tick": at} for t, at in self.events.scheduled],
            "global_economy": self.global_economy.to_dict(),
            "approval": self.approval.value,
            "approval_history": list(self.approval.history),
            "completed": self.completed,
            "failed": self.failed,
        })
