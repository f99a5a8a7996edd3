"""
Educational Insights

Threshold notifications that explain what is happening in the economy.
Each insight fires at most once per run and no more than one insight is
emitted per cooldown window.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set

from config import CONFIG

logger = logging.getLogger(__name__)


@dataclass
class InsightState:
    """Everything an insight condition may look at."""
    metrics: object
    policy: object
    businesses: list
    banks_alive: int
    banks_created: int
    global_economy: object


@dataclass(frozen=True)
class InsightTrigger:
    id: str
    title: str
    body: str
    condition: Callable[[InsightState], bool]


INSIGHT_TRIGGERS: List[InsightTrigger] = [
    InsightTrigger(
        "monopoly_forming", "Monopoly Forming",
        "One business controls over 60% of a market. Competition disappears and prices rise.",
        lambda s: any(b.alive and b.dominance > 0.6 for b in s.businesses),
    ),
    InsightTrigger(
        "high_inequality", "Extreme Inequality",
        "The Gini coefficient is above 0.55. Wealth is concentrating at the top.",
        lambda s: s.metrics.gini > 0.55,
    ),
    InsightTrigger(
        "high_unemployment", "Mass Unemployment",
        "More than a fifth of the labor force cannot find work.",
        lambda s: s.metrics.unemployment > 0.2,
    ),
    InsightTrigger(
        "inflation_spiral", "Inflation Spiral",
        "Prices are rising fast and real wages are falling.",
        lambda s: s.metrics.inflation > 8,
    ),
    InsightTrigger(
        "min_wage_tradeoff", "Minimum Wage Tradeoff",
        "The minimum wage is high while unemployment climbs. Small firms cannot afford to hire.",
        lambda s: s.policy.get("min_wage") > 15 and s.metrics.unemployment > 0.15,
    ),
    InsightTrigger(
        "budget_surplus", "Fiscal Surplus",
        "Tax revenue exceeds spending and the government is a net creditor.",
        lambda s: s.metrics.gov_budget > 500 and s.metrics.gov_debt < 0,
    ),
    InsightTrigger(
        "bank_crisis", "Banking Crisis",
        "Banks are failing. Credit dries up and the economy contracts.",
        lambda s: s.banks_alive < 2 and s.banks_created >= 2,
    ),
    InsightTrigger(
        "credit_bubble", "Credit Bubble",
        "Private debt is more than twice GDP. One shock could cascade.",
        lambda s: s.metrics.gdp > 0 and s.metrics.total_private_debt > s.metrics.gdp * 2,
    ),
    InsightTrigger(
        "stagnation", "Stagnation",
        "Output is shrinking while unemployment stays high.",
        lambda s: s.metrics.gdp_growth < 0 and s.metrics.unemployment > 0.12,
    ),
    InsightTrigger(
        "crime_wave", "Crime Wave",
        "Crime is rising with poverty and unemployment.",
        lambda s: s.metrics.crime_rate > 0.3,
    ),
    InsightTrigger(
        "corporate_scandal", "Corporate Scandal",
        "Several business owners were caught embezzling in a single period.",
        lambda s: s.metrics.corporate_crimes > 3,
    ),
    InsightTrigger(
        "prison_overcrowding", "Prison Overcrowding",
        "More than a tenth of the population is behind bars.",
        lambda s: s.metrics.population > 0 and s.metrics.prison_population / s.metrics.population > 0.1,
    ),
    InsightTrigger(
        "debt_spiral", "Household Debt Spiral",
        "Many households keep missing loan payments and sink deeper into debt.",
        lambda s: s.metrics.population > 0 and s.metrics.agents_in_debt_spiral / s.metrics.population > 0.15,
    ),
    InsightTrigger(
        "currency_crisis", "Currency Crisis",
        "The currency has lost almost half its value. Imports are getting expensive.",
        lambda s: s.global_economy is not None and s.global_economy.fx_rate > 1.8,
    ),
    InsightTrigger(
        "trade_deficit", "Trade Deficit",
        "The economy imports far more than it exports.",
        lambda s: s.global_economy is not None and s.global_economy.cumulative_trade_balance < -300,
    ),
]


class InsightTracker:
    """Engine-owned record of fired insights. Rebuilt on every reset."""

    def __init__(self, cooldown: int = CONFIG.insights.cooldown_ticks):
        self.cooldown = cooldown
        self.fired: Set[str] = set()
        self.last_tick: Optional[int] = None

    def check(self, tick: int, state: InsightState) -> Optional[Dict[str, object]]:
        """Return the first unfired insight whose condition holds, if the window allows it."""
        if self.last_tick is not None and tick - self.last_tick < self.cooldown:
            return None
        for trigger in INSIGHT_TRIGGERS:
            if trigger.id in self.fired:
                continue
            if not trigger.condition(state):
                continue
            self.fired.add(trigger.id)
            self.last_tick = tick
            logger.info(f"Insight fired: {trigger.id} at tick {tick}")
            return {"id": trigger.id, "title": trigger.title, "body": trigger.body, "tick": tick}
        return None
