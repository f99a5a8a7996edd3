"""
Metrics, Approval and Scoring

Aggregates macro indicators from live simulation state every metrics
interval, settles the treasury, tracks the government's approval rating
and builds the end-of-scenario report card.
"""

import logging
import math
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterable, Optional

import numpy as np

from agents import EmploymentState
from config import CONFIG
from market import nominal_gdp, poverty_rate, real_gdp, unemployment_rate

logger = logging.getLogger(__name__)

HISTORY_KEYS = (
    "gdp", "gini", "unemployment", "inflation", "cpi", "poverty_rate",
    "gov_debt", "avg_wage", "social_unrest", "crime_rate", "population",
    "private_debt", "credit_score", "debt_spiral", "approval", "inflation_expectation",
)

# Neutral replacements for non-finite values
NEUTRAL_DEFAULTS = {"cpi": 100.0, "fx_rate": 1.0, "approval": CONFIG.metrics.approval_initial}


def gini(values: Iterable[float]) -> float:
    """
    Gini coefficient of non-negative wealth.

    Uses the sorted discrete form sum((2k - n - 1) * x_k) / (n * sum(x)).
    Negative wealth counts as zero. Returns 0 for an empty population or a
    zero total.
    """
    x = np.sort(np.maximum(np.asarray(list(values), dtype=float), 0.0))
    n = x.size
    if n == 0:
        return 0.0
    total = float(x.sum())
    if total <= 0 or not math.isfinite(total):
        return 0.0
    ranks = np.arange(1, n + 1)
    value = float(np.sum((2 * ranks - n - 1) * x) / (n * total))
    return min(1.0, max(0.0, value))


def assign_wealth_percentiles(agents: Iterable) -> None:
    """
    Store each living agent's wealth percentile in [0, 1].

    Uses midpoint ranks, so tied agents share one percentile and a perfectly
    equal population sits at 0.5.
    """
    living = [a for a in agents if a.alive]
    if not living:
        return
    wealth = np.array([a.wealth for a in living], dtype=float)
    ordered = np.sort(wealth)
    below = np.searchsorted(ordered, wealth, side="left")
    through = np.searchsorted(ordered, wealth, side="right")
    percentiles = (below + through) / (2 * len(living))
    for agent, percentile in zip(living, percentiles):
        agent.wealth_percentile = float(percentile)


def grade_for_score(score: float) -> str:
    """Letter grade; every lower bound is inclusive."""
    if score >= 90:
        return "A+"
    if score >= 80:
        return "A"
    if score >= 70:
        return "B"
    if score >= 60:
        return "C"
    if score >= 45:
        return "D"
    return "F"


def _finite(value: float, default: float = 0.0) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return default
    return value if math.isfinite(value) else default


def _new_history() -> Dict[str, Deque[float]]:
    return {key: deque(maxlen=CONFIG.metrics.history_length) for key in HISTORY_KEYS}


@dataclass
class Metrics:
    """
    Macro indicators recomputed from live state.

    Nothing here is patched incrementally except the crime counters, which
    accumulate between updates and are drained by `update`.
    """

    tick: int = 0
    year: int = 0
    population: int = 0
    business_count: int = 0
    gini: float = 0.0
    avg_wealth: float = 0.0
    median_wealth: float = 0.0
    gdp: float = 0.0
    nominal_gdp: float = 0.0
    gdp_growth: float = 0.0
    unemployment: float = 0.0
    poverty_rate: float = 0.0
    avg_wage: float = 0.0
    cpi: float = 100.0
    inflation: float = 0.0  # Percent
    inflation_expectation: float = CONFIG.population.initial_inflation_expectation * 100  # Percent
    social_unrest: float = 0.0
    tax_revenue: float = 0.0
    gov_spending: float = 0.0
    gov_budget: float = 0.0
    gov_debt: float = 0.0
    gov_interest: float = 0.0
    tax_leaked: float = 0.0
    crime_rate: float = 0.0
    street_crimes: int = 0
    corporate_crimes: int = 0
    prison_population: int = 0
    bank_count: int = 0
    total_private_debt: float = 0.0
    avg_credit_score: float = 0.0
    agents_in_debt_spiral: int = 0
    fx_rate: float = 1.0
    foreign_reserves: float = CONFIG.global_economy.initial_reserves
    trade_balance: float = 0.0
    approval: float = CONFIG.metrics.approval_initial
    history: Dict[str, Deque[float]] = field(default_factory=_new_history)

    # Crimes observed since the last update
    pending_street_crimes: int = 0
    pending_corporate_crimes: int = 0

    def record_crimes(self, street: int, corporate: int) -> None:
        self.pending_street_crimes += street
        self.pending_corporate_crimes += corporate

    def update(self, ctx, global_economy=None, window: int = CONFIG.time.metrics_interval) -> None:
        """
        Recompute every indicator and settle the treasury.

        Args:
            ctx: StepContext of the current step
            global_economy: GlobalEconomy whose FX and trade figures are reported
            window: Steps since the previous update, used to average the budget
        """
        agents = [a for a in ctx.agents if a.alive]
        businesses = [b for b in ctx.businesses if b.alive]

        self.tick = ctx.tick
        self.year = ctx.tick // CONFIG.time.ticks_per_year
        self.population = len(agents)
        self.business_count = len(businesses)

        wealth = np.array([max(0.0, a.wealth) for a in agents], dtype=float)
        self.gini = gini(wealth)
        self.avg_wealth = float(wealth.mean()) if wealth.size else 0.0
        self.median_wealth = float(np.percentile(wealth, 50)) if wealth.size else 0.0

        previous_gdp = self.gdp
        self.gdp = real_gdp(businesses)
        self.nominal_gdp = nominal_gdp(businesses, ctx.market.prices)
        self.gdp_growth = (self.gdp - previous_gdp) / previous_gdp if previous_gdp > 0 else 0.0

        self.unemployment = unemployment_rate(agents)
        self.poverty_rate = poverty_rate(agents)
        earners = [a.wage for a in agents if a.employed and a.wage > 0]
        self.avg_wage = float(np.mean(earners)) if earners else 0.0

        self.cpi = ctx.market.cpi
        self.inflation = ctx.market.inflation * 100
        expectations = [a.inflation_expectation for a in agents if a.state != EmploymentState.CHILD]
        if expectations:
            self.inflation_expectation = float(np.mean(expectations)) * 100
        unrest = [a.unrest for a in agents if a.state != EmploymentState.CHILD]
        self.social_unrest = float(np.mean(unrest)) if unrest else 0.0

        treasury = ctx.treasury
        treasury.settle(window, ctx.modifiers.tax_leakage, ctx.policy.get("interest_rate"), self.gdp)
        self.tax_revenue = treasury.last_revenue
        self.gov_spending = treasury.last_spending
        self.gov_budget = treasury.budget
        self.gov_debt = treasury.debt
        self.gov_interest = treasury.interest_paid
        self.tax_leaked = treasury.leaked

        self.street_crimes = self.pending_street_crimes
        self.corporate_crimes = self.pending_corporate_crimes
        self.pending_street_crimes = 0
        self.pending_corporate_crimes = 0
        total_crimes = self.street_crimes + self.corporate_crimes
        self.crime_rate = total_crimes / self.population * 1000 if self.population else 0.0
        self.prison_population = sum(1 for a in agents if a.incarcerated)

        self.bank_count = sum(1 for b in ctx.banks if b.alive)
        self.total_private_debt = sum(loan.remaining for a in agents for loan in a.loans if loan.active)
        adults = [a.credit_score for a in agents if a.state != EmploymentState.CHILD]
        self.avg_credit_score = float(np.mean(adults)) if adults else 0.0
        self.agents_in_debt_spiral = sum(1 for a in agents if a.in_debt_spiral)

        if global_economy is not None:
            self.fx_rate = global_economy.fx_rate
            self.foreign_reserves = global_economy.foreign_reserves
            self.trade_balance = global_economy.cumulative_trade_balance

        self._sanitize()
        self._push_history()

    def _sanitize(self) -> None:
        for name in self.to_dict(include_history=False):
            value = getattr(self, name)
            if isinstance(value, float) and not math.isfinite(value):
                replacement = NEUTRAL_DEFAULTS.get(name, 0.0)
                logger.warning(f"Replacing non-finite metric {name}={value} with {replacement}")
                setattr(self, name, replacement)

    def _push_history(self) -> None:
        h = self.history
        h["gdp"].append(self.gdp)
        h["gini"].append(self.gini)
        h["unemployment"].append(self.unemployment * 100)
        h["inflation"].append(self.inflation)
        h["cpi"].append(self.cpi)
        h["poverty_rate"].append(self.poverty_rate * 100)
        h["gov_debt"].append(self.gov_debt)
        h["avg_wage"].append(self.avg_wage)
        h["social_unrest"].append(self.social_unrest)
        h["crime_rate"].append(self.crime_rate)
        h["population"].append(float(self.population))
        h["private_debt"].append(self.total_private_debt)
        h["credit_score"].append(self.avg_credit_score)
        h["debt_spiral"].append(float(self.agents_in_debt_spiral))
        h["approval"].append(self.approval)
        h["inflation_expectation"].append(self.inflation_expectation)

    def to_dict(self, include_history: bool = True) -> Dict[str, object]:
        data = {
            "tick": self.tick,
            "year": self.year,
            "population": self.population,
            "business_count": self.business_count,
            "gini": self.gini,
            "avg_wealth": self.avg_wealth,
            "median_wealth": self.median_wealth,
            "gdp": self.gdp,
            "nominal_gdp": self.nominal_gdp,
            "gdp_growth": self.gdp_growth,
            "unemployment": self.unemployment,
            "poverty_rate": self.poverty_rate,
            "avg_wage": self.avg_wage,
            "cpi": self.cpi,
            "inflation": self.inflation,
            "inflation_expectation": self.inflation_expectation,
            "social_unrest": self.social_unrest,
            "tax_revenue": self.tax_revenue,
            "gov_spending": self.gov_spending,
            "gov_budget": self.gov_budget,
            "gov_debt": self.gov_debt,
            "gov_interest": self.gov_interest,
            "tax_leaked": self.tax_leaked,
            "crime_rate": self.crime_rate,
            "street_crimes": self.street_crimes,
            "corporate_crimes": self.corporate_crimes,
            "prison_population": self.prison_population,
            "bank_count": self.bank_count,
            "total_private_debt": self.total_private_debt,
            "avg_credit_score": self.avg_credit_score,
            "agents_in_debt_spiral": self.agents_in_debt_spiral,
            "fx_rate": self.fx_rate,
            "foreign_reserves": self.foreign_reserves,
            "trade_balance": self.trade_balance,
            "approval": self.approval,
        }
        if not include_history:
            return data
        for key, value in list(data.items()):
            if isinstance(value, float):
                data[key] = _finite(value, NEUTRAL_DEFAULTS.get(key, 0.0))
        data["history"] = {key: [_finite(v) for v in series] for key, series in self.history.items()}
        return data


class ApprovalRating:
    """
    Government approval in [0, 100].

    Moves with trends between consecutive metrics updates and with the
    absolute state of the economy. A drop below the no-confidence
    threshold requests a vote of no confidence exactly once until approval
    recovers.
    """

    def __init__(self, initial: float = CONFIG.metrics.approval_initial):
        self.value = initial
        self.history: Deque[float] = deque(maxlen=CONFIG.metrics.history_length)
        self._previous: Optional[Dict[str, float]] = None
        self._no_confidence_triggered = False

    def update(self, metrics: Metrics, policy) -> bool:
        """Apply one update. Returns True when a vote of no confidence must be forced."""
        delta = 0.0
        prev = self._previous
        if prev is not None:
            if metrics.gdp_growth > 0:
                delta += metrics.gdp_growth * 20
            else:
                delta += metrics.gdp_growth * 30

            unemployment_change = metrics.unemployment - prev["unemployment"]
            if unemployment_change < 0:
                delta += 2
            elif unemployment_change > 0:
                delta -= 3

            if metrics.avg_wage - prev["avg_wage"] > 0:
                delta += 1

            poverty_change = metrics.poverty_rate - prev["poverty_rate"]
            if poverty_change < 0:
                delta += 1.5
            elif poverty_change > 0:
                delta -= 1.5

        if metrics.inflation > 8:
            delta -= (metrics.inflation - 8) * 0.15
        if metrics.poverty_rate > 0.3:
            delta -= 1
        if metrics.social_unrest > 0.5:
            delta -= metrics.social_unrest * 2
        if metrics.crime_rate > 0.3:
            delta -= 1
        if metrics.agents_in_debt_spiral > metrics.population * 0.1:
            delta -= 1

        if policy.get("income_tax") > 0.4:
            delta -= 1
        if policy.get("wealth_confiscation") > 0:
            delta -= 2
        if policy.get("nationalize_industries"):
            delta -= 1.5
        if policy.get("ubi") > 100:
            delta += 0.5
        if policy.get("public_healthcare"):
            delta += 0.3
        if policy.get("bread_and_circuses"):
            delta += 1

        self.value = min(100.0, max(0.0, _finite(self.value + delta * 0.3, CONFIG.metrics.approval_initial)))
        self.history.append(round(self.value, 1))
        self._previous = {
            "unemployment": metrics.unemployment,
            "avg_wage": metrics.avg_wage,
            "poverty_rate": metrics.poverty_rate,
        }
        metrics.approval = self.value
        if metrics.history["approval"]:
            metrics.history["approval"][-1] = self.value

        force_vote = False
        if self.value < CONFIG.metrics.no_confidence_threshold and not self._no_confidence_triggered:
            self._no_confidence_triggered = True
            force_vote = True
            logger.info(f"Approval collapsed to {self.value:.1f}; calling a vote of no confidence")
        if self.value >= CONFIG.metrics.no_confidence_recovery:
            self._no_confidence_triggered = False
        return force_vote


def domain_scores(metrics: Metrics) -> Dict[str, int]:
    equality = round(max(0.0, (1 - metrics.gini / 0.7) * 100))
    growth = round(min(100.0, max(0.0, (metrics.gdp_growth + 0.02) * 2000)))
    stability = round(max(0.0, 100 - abs(metrics.inflation) * 5 - metrics.social_unrest * 100))
    return {"equality": equality, "growth": growth, "stability": stability}


def build_report(scenario, metrics: Metrics, initial_gdp: Optional[float], policy, tick: int,
                 peak_unemployment: float = 0.0, inflation_avg: Optional[float] = None) -> Dict[str, object]:
    """
    Build the end-of-scenario report card.

    The final score is the mean of the equality, growth and stability
    domains. Historical scenarios compare the GDP change since the first
    metrics update against what actually happened; beating history with a
    weak score lifts it by ten points (after a floor of 65) before grading.

    Args:
        scenario: Scenario being reported on
        metrics: Latest metrics
        initial_gdp: Real GDP at the first metrics update, or None if none ran yet
        policy: PolicyState at the end of the run
        tick: Current step
        peak_unemployment: Highest unemployment observed (fraction)
        inflation_avg: Average inflation (percent) over the run
    """
    domains = domain_scores(metrics)
    final_score = round(sum(domains.values()) / len(domains))

    gdp_change = None
    if initial_gdp is not None:
        gdp_change = (metrics.gdp - initial_gdp) / (initial_gdp or 1)

    beat_history = bool(
        scenario.historical
        and scenario.historical_gdp_change is not None
        and gdp_change is not None
        and gdp_change > scenario.historical_gdp_change
    )

    verdict = None
    if scenario.historical:
        if beat_history and final_score < 70:
            final_score = min(100, max(final_score, 65) + 10)
            verdict = "You outperformed history, but the era was brutal. Grade adjusted."
        elif beat_history:
            verdict = "Exceptional. You rewrote history."
        elif scenario.historical_gdp_change is not None:
            verdict = "History proved hard to beat."

    if inflation_avg is None:
        inflation_avg = metrics.inflation

    return {
        "scenario_id": scenario.id,
        "scenario_name": scenario.name,
        "final_score": final_score,
        "grade": grade_for_score(final_score),
        "verdict": verdict,
        "beat_history": beat_history,
        "domains": {
            "equality": {"score": domains["equality"], "label": "Equality"},
            "growth": {"score": domains["growth"], "label": "Growth"},
            "stability": {"score": domains["stability"], "label": "Stability"},
        },
        "player_outcome": {
            "gdp_change_percent": round(gdp_change * 100) if gdp_change is not None else 0,
            "peak_unemployment": round(_finite(max(peak_unemployment, metrics.unemployment)) * 100),
            "inflation_avg": round(_finite(inflation_avg), 1),
            "gini": round(metrics.gini, 2),
            "poverty_rate": round(metrics.poverty_rate * 100),
        },
        "historical_gdp_change_percent": (
            round(scenario.historical_gdp_change * 100, 1)
            if scenario.historical_gdp_change is not None else None
        ),
        "final_policies": policy.to_dict(),
        "year": tick // CONFIG.time.ticks_per_year,
    }
