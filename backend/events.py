"""
Shock Event System

Economic shocks are drawn from immutable templates. A triggered event is
a deep copy of its template, so choice overrides never leak back into the
template. Events with choices wait in a single pending slot until they
are resolved; further choice events queue behind it in FIFO order.
Resolving a choice may schedule follow-up events at a fixed offset.

Lifecycle per instance:
    pending  - waiting for a choice, contributes nothing
    active   - contributes ongoing effects and step modifiers
    expired  - (now - start) >= duration, removed from the active set
"""

import copy
import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Deque, Dict, List, Mapping, Optional, Tuple

from config import CONFIG

logger = logging.getLogger(__name__)


def _freeze(template: Dict) -> Mapping:
    return MappingProxyType(template)


DO_NOTHING_CHOICE: Mapping = _freeze({
    "id": "do_nothing",
    "label": "Do Nothing",
    "description": "No intervention. Let the situation play out without government action.",
    "tradeoff": "Preserves the budget, but cedes control to market forces.",
    "effect_override": None,
    "gov_debt_penalty": 0.0,
    "policy_overrides": {},
    "follow_ups": [],
})


EVENT_TEMPLATES: Mapping[str, Mapping] = _freeze({
    "pandemic": _freeze({
        "name": "Pandemic",
        "description": "A disease is spreading fast. How do you respond?",
        "duration": 200,
        "effects": {
            "health_multiplier": 0.7,
            "production_multiplier": 0.6,
            "death_rate_multiplier": 3.0,
            "consumer_spending_multiplier": 0.5,
        },
        "choices": [
            {
                "id": "lockdown",
                "label": "Lockdown",
                "description": "Shut down non-essential businesses. Mandate isolation.",
                "tradeoff": "Fewer deaths. GDP falls sharply and unemployment spikes short-term.",
                "effect_override": {"health_multiplier": 0.95, "production_multiplier": 0.4,
                                    "death_rate_multiplier": 1.2, "duration": 150},
            },
            {
                "id": "herd_immunity",
                "label": "Herd Immunity",
                "description": "Keep the economy open and let immunity build.",
                "tradeoff": "The economy keeps running at the cost of a much higher death toll.",
                "effect_override": {"health_multiplier": 0.5, "production_multiplier": 0.8,
                                    "death_rate_multiplier": 5.0, "duration": 250},
                "follow_ups": [("recession", 60)],
            },
            {
                "id": "targeted_support",
                "label": "Targeted Support",
                "description": "Protect vulnerable groups and support businesses.",
                "tradeoff": "Balanced outcome that costs significant government spending.",
                "effect_override": {"health_multiplier": 0.8, "production_multiplier": 0.65,
                                    "death_rate_multiplier": 1.8, "duration": 180},
                "gov_debt_penalty": 1000.0,
            },
        ],
    }),
    "crop_failure": _freeze({
        "name": "Crop Failure",
        "description": "Severe drought has decimated harvests. Food prices are spiking.",
        "duration": 150,
        "effects": {"food_supply_multiplier": 0.3, "food_price_multiplier": 2.5},
        "choices": [
            {
                "id": "food_aid",
                "label": "Emergency Food Aid",
                "description": "Distribute food and subsidize prices for low-income households.",
                "tradeoff": "Prevents starvation but costs the government and leaves supply unfixed.",
                "effect_override": {"food_supply_multiplier": 0.3, "food_price_multiplier": 1.4,
                                    "duration": 120},
                "gov_debt_penalty": 600.0,
            },
            {
                "id": "price_controls_food",
                "label": "Cap Food Prices",
                "description": "Legally limit how much food can cost.",
                "tradeoff": "Keeps food accessible now but weakens the next harvest.",
                "effect_override": {"food_supply_multiplier": 0.3, "food_price_multiplier": 1.1,
                                    "duration": 200},
                "policy_overrides": {"price_control_food": True},
                "follow_ups": [("crop_failure", 150)],
            },
            {
                "id": "import_food",
                "label": "Open Food Imports",
                "description": "Remove trade barriers on food.",
                "tradeoff": "Stabilizes prices quickly but adds trade dependency.",
                "effect_override": {"food_supply_multiplier": 0.8, "food_price_multiplier": 1.3,
                                    "duration": 100},
                "policy_overrides": {"open_borders": True},
            },
        ],
    }),
    "tech_breakthrough": _freeze({
        "name": "Tech Breakthrough",
        "description": "A new technology could double productivity but automate many jobs.",
        "duration": 300,
        "effects": {
            "tech_productivity_multiplier": 2.0,
            "tech_worker_wage_multiplier": 1.5,
            "other_jobs_automated_rate": 0.1,
        },
        "choices": [
            {
                "id": "embrace_tech",
                "label": "Embrace It Fully",
                "description": "Let the market adopt the technology at full speed.",
                "tradeoff": "Maximum growth with rapid job displacement.",
                "effect_override": {"tech_productivity_multiplier": 2.5, "tech_worker_wage_multiplier": 2.0,
                                    "other_jobs_automated_rate": 0.25, "duration": 300},
                "follow_ups": [("financial_bubble", 120)],
            },
            {
                "id": "managed_transition",
                "label": "Managed Transition",
                "description": "Tax tech gains and fund retraining for displaced workers.",
                "tradeoff": "Slower adoption, higher cost, smoother adjustment.",
                "effect_override": {"tech_productivity_multiplier": 1.7, "tech_worker_wage_multiplier": 1.3,
                                    "other_jobs_automated_rate": 0.08, "duration": 250},
                "gov_debt_penalty": 800.0,
                "policy_overrides": {"education_funding": 0.8, "unemployment_benefit": 150},
            },
            {
                "id": "restrict_automation",
                "label": "Regulate Automation",
                "description": "Limit how quickly companies can replace workers with machines.",
                "tradeoff": "Protects jobs short-term and slows growth.",
                "effect_override": {"tech_productivity_multiplier": 1.2, "tech_worker_wage_multiplier": 1.1,
                                    "other_jobs_automated_rate": 0.03, "duration": 350},
            },
        ],
    }),
    "financial_bubble": _freeze({
        "name": "Financial Bubble",
        "description": "Asset prices are wildly inflated. A crash appears imminent.",
        "duration": 250,
        "effects": {"wealth_inflation_phase": 1.5, "wealth_crash_phase": 0.4},
        "choices": [
            {
                "id": "let_it_burn",
                "label": "Let It Burn",
                "description": "No intervention. Let markets correct naturally.",
                "tradeoff": "Short, sharp crash. Banks may not survive it.",
                "effect_override": {"wealth_crash_phase": 0.25, "duration": 150},
                "follow_ups": [("bank_run", 80)],
            },
            {
                "id": "bailout",
                "label": "Bail Out Banks",
                "description": "Government buys toxic assets to prevent bank collapse.",
                "tradeoff": "Softer crash, massive debt, and rewarded recklessness.",
                "effect_override": {"wealth_crash_phase": 0.6, "duration": 350},
                "gov_debt_penalty": 2000.0,
                "follow_ups": [("corruption", 120)],
            },
            {
                "id": "regulate",
                "label": "Emergency Controls",
                "description": "Freeze credit, impose capital controls, force write-downs.",
                "tradeoff": "Medium crash that suppresses growth for years.",
                "effect_override": {"wealth_crash_phase": 0.45, "duration": 200},
                "policy_overrides": {"anti_monopoly": True, "interest_rate": 0.08},
            },
        ],
    }),
    "corruption": _freeze({
        "name": "Corruption Scandal",
        "description": "Government corruption diverts tax revenue. Public services collapse.",
        "duration": 180,
        "effects": {"tax_revenue_leakage": 0.5, "public_trust_multiplier": 0.6},
        "choices": [],
    }),
    "immigration_wave": _freeze({
        "name": "Immigration Wave",
        "description": "Skilled workers arrive, boosting productivity and competition for jobs.",
        "duration": 0,
        "effects": {
            "new_agent_count": CONFIG.events.immigration_count,
            "new_agent_skill_bonus": CONFIG.events.immigration_skill_bonus,
        },
        "choices": [],
    }),
    "recession": _freeze({
        "name": "Recession",
        "description": "The economy is contracting. Businesses are cutting and unemployment is rising.",
        "duration": 200,
        "effects": {"demand_multiplier": 0.6, "business_capital_drain": 0.02, "hiring_suppression": True},
        "choices": [
            {
                "id": "stimulus",
                "label": "Stimulus Package",
                "description": "Government spending on infrastructure, public jobs and direct payments.",
                "tradeoff": "Kickstarts demand and adds to government debt.",
                "effect_override": {"demand_multiplier": 0.85, "business_capital_drain": 0.01,
                                    "hiring_suppression": False, "duration": 130},
                "gov_debt_penalty": 1500.0,
                "follow_ups": [("boom", 100)],
            },
            {
                "id": "austerity",
                "label": "Austerity",
                "description": "Cut government spending and let weak firms fail.",
                "tradeoff": "Improves the budget and deepens the recession.",
                "effect_override": {"demand_multiplier": 0.45, "business_capital_drain": 0.04,
                                    "hiring_suppression": True, "duration": 280},
                "policy_overrides": {"unemployment_benefit": 0, "education_funding": 0.1},
                "follow_ups": [("recession", 150)],
            },
            {
                "id": "rate_cut",
                "label": "Cut Interest Rates",
                "description": "Lower borrowing costs to encourage investment.",
                "tradeoff": "Helps businesses invest; risks asset bubbles.",
                "effect_override": {"demand_multiplier": 0.72, "business_capital_drain": 0.01,
                                    "hiring_suppression": False, "duration": 160},
                "policy_overrides": {"interest_rate": 0.005},
            },
        ],
    }),
    "boom": _freeze({
        "name": "Economic Boom",
        "description": "Consumer confidence surges. Spending rises, businesses thrive.",
        "duration": 150,
        "effects": {"demand_multiplier": 1.4, "hiring_boost": True, "wage_growth_rate": 1.02},
        "choices": [],
    }),
    "bank_run": _freeze({
        "name": "Bank Run",
        "description": "Depositors are queuing to pull their savings. Bank reserves are draining.",
        "duration": 120,
        "effects": {"reserve_shock": 0.4, "reserve_drain": 0.02, "demand_multiplier": 0.85,
                    "hiring_suppression": True},
        "choices": [
            {
                "id": "guarantee_deposits",
                "label": "Guarantee Deposits",
                "description": "The government guarantees every deposit.",
                "tradeoff": "Stops the panic quickly and puts taxpayers on the hook.",
                "effect_override": {"reserve_shock": 0.1, "reserve_drain": 0.005, "demand_multiplier": 0.95,
                                    "hiring_suppression": False, "duration": 60},
                "gov_debt_penalty": 1500.0,
                "policy_overrides": {"deposit_insurance": True},
            },
            {
                "id": "emergency_liquidity",
                "label": "Emergency Liquidity",
                "description": "The central bank floods the banks with cheap credit.",
                "tradeoff": "Keeps banks open; near-zero rates fuel the next bubble.",
                "effect_override": {"reserve_shock": 0.2, "reserve_drain": 0.01, "duration": 80},
                "policy_overrides": {"interest_rate": 0.01},
            },
            {
                "id": "let_banks_fail",
                "label": "Let Banks Fail",
                "description": "No rescue. Weak banks go under.",
                "tradeoff": "No cost today; a credit freeze tomorrow.",
                "effect_override": {"reserve_shock": 0.6, "reserve_drain": 0.04, "duration": 100},
                "follow_ups": [("recession", 40)],
            },
        ],
    }),
    "vote_of_no_confidence": _freeze({
        "name": "Vote of No Confidence",
        "description": "Approval has collapsed and parliament is moving against the government.",
        "duration": 100,
        "effects": {"unrest_drift": 0.002},
        "choices": [
            {
                "id": "reshuffle_cabinet",
                "label": "Reshuffle the Cabinet",
                "description": "Replace unpopular ministers and promise reform.",
                "tradeoff": "Calms parliament briefly at a modest cost.",
                "effect_override": {"unrest_drift": 0.001, "duration": 60},
                "gov_debt_penalty": 300.0,
            },
            {
                "id": "populist_giveaway",
                "label": "Populist Giveaway",
                "description": "Hand out cash to win back voters.",
                "tradeoff": "Buys popularity with borrowed money.",
                "effect_override": {"unrest_drift": 0.0, "duration": 40},
                "gov_debt_penalty": 800.0,
                "policy_overrides": {"ubi": 200},
            },
        ],
    }),
})

# Follow-up-only types never come out of the lottery.
LOTTERY_TYPES: Tuple[str, ...] = (
    "pandemic", "crop_failure", "tech_breakthrough", "financial_bubble",
    "corruption", "immigration_wave", "recession", "boom",
)


class EventPhase(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    EXPIRED = "expired"


@dataclass
class EventModifiers:
    """Step multipliers derived from the active event set."""
    production: float = 1.0
    demand: float = 1.0
    consumer_spending: float = 1.0
    death_multiplier: float = 1.0
    food_supply: float = 1.0
    food_price_pressure: float = 0.0
    health_drift: float = 0.0
    hiring_suppressed: bool = False
    automation_rate: float = 0.0
    tax_leakage: float = 0.0


@dataclass
class Event:
    """A triggered instance; owns a private copy of its template."""

    id: str
    type: str
    name: str
    description: str
    duration: int
    effects: Dict[str, object]
    choices: List[Dict[str, object]]
    trigger_tick: int
    start_tick: Optional[int] = None
    phase: EventPhase = EventPhase.PENDING
    choice_made: Optional[str] = None
    bubble_phase: Optional[str] = None

    @property
    def requires_choice(self) -> bool:
        return self.phase == EventPhase.PENDING

    def find_choice(self, choice_id: str) -> Optional[Dict[str, object]]:
        for choice in self.choices:
            if choice["id"] == choice_id:
                return choice
        return None

    def is_expired(self, now: int) -> bool:
        if self.duration == 0 or self.start_tick is None:
            return False
        return now - self.start_tick >= self.duration

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "description": self.description,
            "duration": self.duration,
            "effects": dict(self.effects),
            "trigger_tick": self.trigger_tick,
            "start_tick": self.start_tick,
            "phase": self.phase.value,
            "choice_made": self.choice_made,
            "choices": [
                {
                    "id": c["id"],
                    "label": c.get("label", c["id"]),
                    "description": c.get("description", ""),
                    "tradeoff": c.get("tradeoff", ""),
                }
                for c in self.choices
            ],
        }


def build_event(event_type: str, tick: int) -> Event:
    """Instantiate a template. Raises KeyError for unknown types."""
    template = EVENT_TEMPLATES[event_type]
    choices = [copy.deepcopy(dict(c)) for c in template["choices"]]
    if choices and not any(c["id"] == "do_nothing" for c in choices):
        choices.append(copy.deepcopy(dict(DO_NOTHING_CHOICE)))
    return Event(
        id=f"{event_type}_{tick}",
        type=event_type,
        name=template["name"],
        description=template["description"],
        duration=int(template["duration"]),
        effects=copy.deepcopy(dict(template["effects"])),
        choices=choices,
        trigger_tick=tick,
    )


class EventSystem:
    """
    Owns the pending slot, the deferred queue, the active set and the
    follow-up schedule.
    """

    def __init__(self):
        self.active: List[Event] = []
        self.pending: Optional[Event] = None
        self.deferred: Deque[Event] = deque()
        self.scheduled: List[Tuple[str, int]] = []
        self.history: List[Dict[str, object]] = []
        self.last_trigger_tick: int = 0
        self.spawn_requests: List[Tuple[int, float]] = []

    @property
    def awaiting_choice(self) -> bool:
        return self.pending is not None

    # ------------------------------------------------------------------
    # Triggering
    # ------------------------------------------------------------------

    def lottery_weights(self, metrics, policy) -> Dict[str, float]:
        return {
            "pandemic": 1.0,
            "crop_failure": 1.0,
            "tech_breakthrough": 1.5,
            "financial_bubble": 2.0 if metrics.gini > 0.5 else 0.5,
            "corruption": 2.0 if metrics.gov_debt > 1000 else 0.5,
            "immigration_wave": 3.0 if policy.get("open_borders") else 0.5,
            "recession": 2.0 if metrics.inflation > 5 else 0.3,
            "boom": 2.0 if metrics.unemployment < 0.05 else 0.5,
        }

    def draw_type(self, ctx) -> str:
        weights = self.lottery_weights(ctx.metrics, ctx.policy)
        types = list(LOTTERY_TYPES)
        probabilities = [weights[t] for t in types]
        total = sum(probabilities)
        index = ctx.rng.choice(len(types), p=[p / total for p in probabilities])
        return types[int(index)]

    def trigger(self, event_type: str, ctx) -> Optional[Event]:
        """
        Instantiate and register an event.

        Events with choices enter the pending slot, or the deferred queue
        when the slot is taken. Events without choices activate at once.
        Unknown types are ignored.
        """
        if event_type not in EVENT_TEMPLATES:
            logger.warning(f"Ignoring unknown event type: {event_type}")
            return None

        event = build_event(event_type, ctx.tick)
        taken = {e.id for e in self.active} | {e.id for e in self.deferred}
        if self.pending is not None:
            taken.add(self.pending.id)
        suffix = 2
        base_id = event.id
        while event.id in taken:
            event.id = f"{base_id}_{suffix}"
            suffix += 1

        self.last_trigger_tick = ctx.tick
        self.history.append({"id": event.id, "type": event_type, "name": event.name, "tick": ctx.tick})
        logger.info(f"Event triggered: {event.id}")

        if event.choices:
            if self.pending is None:
                self.pending = event
            else:
                self.deferred.append(event)
            return event

        self._activate(event, ctx)
        return event

    def schedule(self, event_type: str, fire_tick: int) -> None:
        self.scheduled.append((event_type, fire_tick))

    def fire_scheduled(self, ctx) -> List[Event]:
        """Trigger every follow-up whose fire tick has arrived."""
        due = [(t, at) for t, at in self.scheduled if at <= ctx.tick]
        if not due:
            return []
        self.scheduled = [(t, at) for t, at in self.scheduled if at > ctx.tick]
        fired = []
        for event_type, _ in due:
            event = self.trigger(event_type, ctx)
            if event is not None:
                fired.append(event)
        return fired

    def tick(self, ctx, force_type: Optional[str] = None) -> Optional[Event]:
        """
        Age out expired events, run the lottery (or a forced trigger), then
        apply ongoing effects of the active set.
        """
        self._age_out(ctx.tick)

        new_event = None
        if force_type is not None:
            if force_type == "random":
                force_type = self.draw_type(ctx)
            new_event = self.trigger(force_type, ctx)
        elif ctx.tick > self.last_trigger_tick + CONFIG.events.cooldown_ticks:
            chance = CONFIG.events.base_probability * (
                1 - CONFIG.events.active_penalty * len(self.active)
            )
            if ctx.rng.random() < chance:
                new_event = self.trigger(self.draw_type(ctx), ctx)

        for event in self.active:
            self._apply_ongoing(event, ctx)
        return new_event

    def _age_out(self, now: int) -> None:
        still_active = []
        for event in self.active:
            if event.is_expired(now):
                event.phase = EventPhase.EXPIRED
                logger.info(f"Event expired: {event.id}")
            else:
                still_active.append(event)
        self.active = still_active

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, event_id: str, choice_id: str, ctx) -> bool:
        """
        Resolve the pending event with a choice.

        Mismatched event or choice ids leave everything untouched and
        return False.
        """
        event = self.pending
        if event is None or event.id != event_id:
            logger.warning(f"Ignoring resolution for non-pending event {event_id}")
            return False
        choice = event.find_choice(choice_id)
        if choice is None:
            logger.warning(f"Ignoring unknown choice {choice_id} for {event_id}")
            return False

        override = choice.get("effect_override") or {}
        for key, value in override.items():
            if key == "duration":
                event.duration = int(value)
            else:
                event.effects[key] = value

        for name, value in (choice.get("policy_overrides") or {}).items():
            ctx.policy.set(name, value)
        penalty = choice.get("gov_debt_penalty") or 0.0
        if penalty:
            ctx.treasury.add_debt(penalty)

        event.choice_made = choice_id
        self.pending = None
        self._activate(event, ctx)

        for follow_type, offset in choice.get("follow_ups") or []:
            self.schedule(follow_type, ctx.tick + int(offset))

        logger.info(f"Event {event_id} resolved with {choice_id}")
        if self.deferred:
            self.pending = self.deferred.popleft()
        return True

    def _activate(self, event: Event, ctx) -> None:
        event.phase = EventPhase.ACTIVE
        event.start_tick = ctx.tick
        self.active.append(event)
        self._apply_immediate(event, ctx)

    # ------------------------------------------------------------------
    # Effects
    # ------------------------------------------------------------------

    def _apply_immediate(self, event: Event, ctx) -> None:
        effects = event.effects
        rng = ctx.rng
        if event.type == "pandemic":
            for agent in ctx.agents:
                if agent.alive:
                    agent.health = max(0.1, min(1.0, agent.health * rng.uniform(0.8, 1.0)))
        elif event.type == "immigration_wave":
            self.spawn_requests.append(
                (int(effects["new_agent_count"]), float(effects["new_agent_skill_bonus"]))
            )
        elif event.type == "financial_bubble":
            event.bubble_phase = "inflate"
        elif event.type == "tech_breakthrough":
            cap = CONFIG.business.max_wage_offer
            for business in ctx.businesses:
                if business.alive and business.sector == "tech":
                    business.productivity *= float(effects["tech_productivity_multiplier"])
                    business.wage_offered = min(
                        cap, business.wage_offered * float(effects["tech_worker_wage_multiplier"])
                    )
        elif event.type == "bank_run":
            shock = float(effects["reserve_shock"])
            for bank in ctx.banks:
                if bank.alive:
                    bank.reserves -= bank.reserves * shock

    def _apply_ongoing(self, event: Event, ctx) -> None:
        effects = event.effects
        rng = ctx.rng
        if event.type == "pandemic":
            if rng.random() < 0.01:
                for business in ctx.businesses:
                    if business.alive and business.capital > 0:
                        business.capital -= business.capital * 0.005
        elif event.type == "financial_bubble":
            elapsed = ctx.tick - (event.start_tick or ctx.tick)
            progress = elapsed / event.duration if event.duration > 0 else 0.0
            if progress < 0.5:
                if rng.random() < 0.05:
                    for agent in ctx.agents:
                        if agent.alive and agent.wealth > 500:
                            agent.wealth *= 1.01
            elif event.bubble_phase == "inflate":
                event.bubble_phase = "crash"
                crash = float(effects["wealth_crash_phase"])
                for agent in ctx.agents:
                    if agent.alive and agent.wealth > 0:
                        agent.wealth *= crash + rng.uniform(0.0, 0.3)
        elif event.type == "recession":
            if rng.random() < 0.1:
                drain = float(effects["business_capital_drain"])
                for business in ctx.businesses:
                    if business.alive and business.capital > 0:
                        business.capital -= business.capital * drain
        elif event.type == "boom":
            if rng.random() < 0.05:
                cap = CONFIG.business.max_wage_offer
                growth = float(effects["wage_growth_rate"])
                for business in ctx.businesses:
                    if business.alive:
                        business.wage_offered = min(cap, business.wage_offered * growth)
        elif event.type == "bank_run":
            if rng.random() < 0.1:
                drain = float(effects["reserve_drain"])
                for bank in ctx.banks:
                    if bank.alive:
                        bank.reserves -= bank.reserves * drain
        elif event.type == "vote_of_no_confidence":
            drift = float(effects.get("unrest_drift", 0.0))
            if drift:
                for agent in ctx.agents:
                    if agent.alive:
                        agent.unrest = min(1.0, agent.unrest + drift)

    def modifiers(self) -> EventModifiers:
        mods = EventModifiers()
        for event in self.active:
            effects = event.effects
            mods.production *= float(effects.get("production_multiplier", 1.0))
            mods.demand *= float(effects.get("demand_multiplier", 1.0))
            mods.consumer_spending *= float(effects.get("consumer_spending_multiplier", 1.0))
            mods.death_multiplier *= float(effects.get("death_rate_multiplier", 1.0))
            mods.food_supply *= float(effects.get("food_supply_multiplier", 1.0))
            mods.food_price_pressure += (float(effects.get("food_price_multiplier", 1.0)) - 1) * 0.01
            mods.health_drift -= (1 - float(effects.get("health_multiplier", 1.0))) * 0.001
            mods.hiring_suppressed = mods.hiring_suppressed or bool(effects.get("hiring_suppression", False))
            mods.automation_rate = max(mods.automation_rate, float(effects.get("other_jobs_automated_rate", 0.0)))
            mods.tax_leakage = max(mods.tax_leakage, float(effects.get("tax_revenue_leakage", 0.0)))
        return mods

    def to_dict(self) -> Dict[str, object]:
        return {
            "active": [e.to_dict() for e in self.active],
            "pending": self.pending.to_dict() if self.pending else None,
            "deferred_count": len(self.deferred),
            "scheduled": [{"type": t, "tick": at} for t, at in self.scheduled],
            "history": self.history[-20:],
        }
