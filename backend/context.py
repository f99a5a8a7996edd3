"""
Per-step context handed to every actor.

The engine builds one StepContext per step. It carries shared state by
reference (prices, policy, treasury, event modifiers) and the one random
generator every subsystem draws from.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from agents import Agent, Business
from banking import Bank
from events import EventModifiers
from market import Market, unemployment_rate
from metrics import Metrics
from policy import PolicyState, Treasury


@dataclass
class StepContext:
    tick: int
    rng: np.random.Generator
    policy: PolicyState
    treasury: Treasury
    market: Market
    metrics: Metrics
    modifiers: EventModifiers
    agents: List[Agent]
    businesses: List[Business]
    banks: List[Bank]
    agent_lookup: Dict[int, Agent] = field(default_factory=dict)
    business_lookup: Dict[int, Business] = field(default_factory=dict)
    sector_counts: Dict[str, int] = field(default_factory=dict)
    last_gini: float = 0.0

    # Crimes committed during this step
    street_crimes: int = 0
    corporate_crimes: int = 0

    # Labor force share without work, computed on first use
    unemployment: Optional[float] = None

    def labor_slack(self) -> float:
        if self.unemployment is None:
            self.unemployment = unemployment_rate(self.agents)
        return self.unemployment
