"""
Goods Market

Per-sector price discovery toward a market-clearing target, a weighted
consumer price index, inflation over a fixed lookback window, and each
business's dominance within its sector.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterable, List, Optional

from agents import Agent, Business, EmploymentState
from config import CONFIG, SECTORS


def _zeros() -> Dict[str, float]:
    return {sector: 0.0 for sector in SECTORS}


@dataclass
class Market:
    """
    Sector prices and the CPI.

    Prices are always strictly positive: every update clamps them to the
    sector's [min, max] band and to the global price floor.
    """

    prices: Dict[str, float] = field(default_factory=lambda: dict(CONFIG.market.initial_prices))
    base_prices: Dict[str, float] = field(default_factory=lambda: dict(CONFIG.market.initial_prices))
    supply: Dict[str, float] = field(default_factory=_zeros)
    demand: Dict[str, float] = field(default_factory=_zeros)
    imports: Dict[str, float] = field(default_factory=_zeros)
    exports: Dict[str, float] = field(default_factory=_zeros)
    cpi: float = 100.0
    inflation: float = 0.0  # Fractional change over the lookback window
    cpi_history: Deque[float] = field(default_factory=deque)
    # Spending per unit of output at which a sector clears; set by calibrate()
    reference_ratio: Dict[str, float] = field(default_factory=lambda: {s: 1.0 for s in SECTORS})

    def __post_init__(self):
        self.cpi_history = deque(self.cpi_history, maxlen=CONFIG.market.inflation_lookback + 1)
        if not self.cpi_history:
            self.cpi_history.append(self.cpi)

    def sector_spending(self, agents: List[Agent], modifiers) -> Dict[str, float]:
        """Money households put toward each sector this step."""
        cfg = CONFIG.market
        consumers = [a for a in agents if a.alive and a.state != EmploymentState.CHILD]
        if not consumers:
            return _zeros()
        earners = [a for a in consumers if a.employed]
        average_wage = (
            sum(a.wage or cfg.default_average_wage for a in earners) / len(earners)
            if earners
            else cfg.default_average_wage
        )
        eagerness = sum(a.spending_multiplier for a in consumers) / len(consumers)
        budget = len(consumers) * average_wage * modifiers.demand * eagerness
        return {sector: budget * cfg.demand_shares[sector] for sector in SECTORS}

    def calibrate(self, agents: List[Agent], businesses: List[Business], modifiers) -> None:
        """
        Anchor each sector so the current economy clears at the current prices.

        Called once after warmup. Sectors with no output or no spending keep
        a plain units market (ratio 1).
        """
        spending = self.sector_spending(agents, modifiers)
        for sector in SECTORS:
            supply = sum(b.production for b in businesses if b.alive and b.sector == sector)
            price = self.prices[sector]
            self.supply[sector] = supply
            self.demand[sector] = spending[sector] / price
            if supply > 0 and spending[sector] > 0:
                self.reference_ratio[sector] = spending[sector] / (price * supply)

    def update(
        self,
        agents: List[Agent],
        businesses: List[Business],
        policy,
        modifiers,
        trade_flows: Optional[Dict[str, Dict[str, float]]] = None,
    ) -> None:
        """
        Run one round of price discovery, then refresh CPI, inflation and dominance.

        Each sector has a target price at which household spending buys the
        available output. The price closes part of the gap to that target,
        scaled by the sector's elasticity, before policy and event pressure.
        """
        cfg = CONFIG.market
        spending = self.sector_spending(agents, modifiers)
        living = [b for b in businesses if b.alive]
        trade_flows = trade_flows or {}

        tariff_factor = 1 + policy.get("punitive_tariffs") * cfg.tariff_pressure
        for sector in SECTORS:
            flows = trade_flows.get(sector, {})
            self.imports[sector] = flows.get("imports", 0.0)
            self.exports[sector] = flows.get("exports", 0.0)
            produced = sum(b.production for b in living if b.sector == sector)
            supply = max(0.0, produced + self.imports[sector] - self.exports[sector])
            price = self.prices[sector]
            self.supply[sector] = supply
            self.demand[sector] = spending[sector] / price

            target = spending[sector] / (max(supply, 1.0) * self.reference_ratio[sector])
            change = (target - price) / price * cfg.elasticity[sector] * cfg.target_pull

            if sector in ("food", "housing") and policy.get(f"price_control_{sector}"):
                change = max(-cfg.price_control_band, min(cfg.price_control_band, change))
            if policy.get("print_money") > 0:
                change += policy.get("print_money") * cfg.print_money_pressure
            if policy.get("algo_central_planning"):
                change *= cfg.central_planning_damping

            pressure = tariff_factor
            if sector == "food":
                pressure *= 1 + modifiers.food_price_pressure
            change = (1 + change) * pressure - 1
            change = max(-cfg.max_step_change, min(cfg.max_step_change, change))

            new_price = price * (1 + change)
            new_price = max(cfg.price_min[sector], min(cfg.price_max[sector], new_price))
            self.prices[sector] = max(cfg.price_floor, new_price)

        self.refresh_cpi()
        update_dominance(living)

    def refresh_cpi(self) -> None:
        weights = CONFIG.market.cpi_weights
        self.cpi = sum(
            self.prices[s] / self.base_prices[s] * weights[s] * 100 for s in SECTORS
        )
        self.cpi_history.append(self.cpi)
        oldest = self.cpi_history[0]
        self.inflation = (self.cpi - oldest) / oldest if oldest > 0 else 0.0

    def nudge_price(self, sector: str, factor: float) -> None:
        """Apply an external multiplicative pressure while keeping the price in bounds."""
        cfg = CONFIG.market
        price = self.prices[sector] * factor
        price = max(cfg.price_min[sector], min(cfg.price_max[sector], price))
        self.prices[sector] = max(cfg.price_floor, price)

    def to_dict(self) -> Dict[str, object]:
        return {
            "prices": dict(self.prices),
            "supply": dict(self.supply),
            "demand": dict(self.demand),
            "imports": dict(self.imports),
            "exports": dict(self.exports),
            "cpi": self.cpi,
            "inflation": self.inflation * 100,
        }


def update_dominance(businesses: Iterable[Business]) -> None:
    """Set market share and dominance to each business's production share in its sector."""
    by_sector: Dict[str, List[Business]] = {sector: [] for sector in SECTORS}
    for business in businesses:
        if business.alive:
            by_sector[business.sector].append(business)
    for members in by_sector.values():
        total = sum(b.production for b in members)
        if total <= 0:
            continue
        for business in members:
            business.market_share = business.production / total
            business.dominance = business.market_share


def real_gdp(businesses: Iterable[Business]) -> float:
    """Output valued at base-period prices."""
    base = CONFIG.market.initial_prices
    return sum(b.production * base[b.sector] for b in businesses if b.alive)


def nominal_gdp(businesses: Iterable[Business], prices: Dict[str, float]) -> float:
    return sum(b.production * prices[b.sector] for b in businesses if b.alive)


def unemployment_rate(agents: Iterable[Agent]) -> float:
    labor_force = [
        a for a in agents
        if a.alive and a.state not in (EmploymentState.CHILD, EmploymentState.RETIRED, EmploymentState.DEAD)
    ]
    if not labor_force:
        return 0.0
    jobless = sum(1 for a in labor_force if a.state == EmploymentState.UNEMPLOYED)
    return jobless / len(labor_force)


def poverty_rate(agents: Iterable[Agent]) -> float:
    adults = [a for a in agents if a.alive and a.state != EmploymentState.CHILD]
    if not adults:
        return 0.0
    poor = sum(1 for a in adults if a.wealth < CONFIG.population.poverty_threshold)
    return poor / len(adults)
