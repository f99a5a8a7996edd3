"""
Global Economy Layer

World prices, the exchange rate, foreign reserves, per-sector trade flows
and global price shocks. The domestic market reads the trade flows this
module produces before it discovers prices.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Tuple

from config import CONFIG, SECTORS

logger = logging.getLogger(__name__)


GLOBAL_SHOCKS: List[Dict[str, object]] = [
    {
        "type": "oil_crisis",
        "label": "Oil Crisis",
        "price_multipliers": {"food": 1.6, "housing": 1.3, "tech": 1.2, "luxury": 1.1},
        "duration": 200,
    },
    {
        "type": "global_recession",
        "label": "Global Recession",
        "price_multipliers": {"food": 0.7, "housing": 0.6, "tech": 0.5, "luxury": 0.5},
        "duration": 300,
    },
    {
        "type": "commodity_supercycle",
        "label": "Commodity Supercycle",
        "price_multipliers": {"food": 1.8, "housing": 1.5, "tech": 1.1, "luxury": 1.2},
        "duration": 250,
    },
    {
        "type": "trade_war",
        "label": "Trade War",
        "price_multipliers": {"food": 1.2, "housing": 1.1, "tech": 1.4, "luxury": 1.3},
        "duration": 180,
    },
    {
        "type": "tech_deflation",
        "label": "Tech Deflation",
        "price_multipliers": {"food": 1.0, "housing": 1.0, "tech": 0.4, "luxury": 0.8},
        "duration": 200,
    },
]


@dataclass
class ActiveShock:
    type: str
    label: str
    price_multipliers: Dict[str, float]
    duration: int
    ticks_remaining: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "type": self.type,
            "label": self.label,
            "duration": self.duration,
            "ticks_remaining": self.ticks_remaining,
        }


def _history() -> Deque[float]:
    return deque(maxlen=CONFIG.metrics.history_length)


@dataclass
class GlobalEconomy:
    """
    The rest of the world as seen from the simulated economy.

    Attributes:
        world_prices: Per-sector world price in foreign currency
        fx_rate: Domestic currency per unit of foreign currency, in [fx_min, fx_max]
        foreign_reserves: Never negative
        trade_balance: Per-sector balance of the latest step
        cumulative_trade_balance: Running sum of every step's balance
    """

    world_prices: Dict[str, float] = field(default_factory=lambda: dict(CONFIG.market.initial_prices))
    base_prices: Dict[str, float] = field(default_factory=lambda: dict(CONFIG.market.initial_prices))
    fx_rate: float = 1.0
    foreign_reserves: float = CONFIG.global_economy.initial_reserves
    trade_balance: Dict[str, float] = field(default_factory=lambda: {s: 0.0 for s in SECTORS})
    cumulative_trade_balance: float = 0.0
    active_shock: Optional[ActiveShock] = None
    fx_history: Deque[float] = field(default_factory=_history)
    reserve_history: Deque[float] = field(default_factory=_history)
    balance_history: Deque[float] = field(default_factory=_history)

    def tick(self, market, policy, rng) -> Tuple[Dict[str, Dict[str, float]], Optional[Dict[str, object]]]:
        """
        Advance the world one step.

        Returns:
            (trade_flows, shock_notice) where trade_flows maps each sector to
            its imports and exports, and shock_notice is set only on the
            first step of a new global shock.
        """
        cfg = CONFIG.global_economy
        self._walk_world_prices(rng)
        shock_notice = self._advance_shock(rng)

        # Exchange rate
        net_trade = sum(self.trade_balance.values())
        trade_pressure = -net_trade * 0.00001
        rate_differential = (policy.get("interest_rate") - 0.05) * 0.5 * 100 * cfg.rate_differential_weight
        print_pressure = policy.get("print_money") * 0.0002
        inflation_pressure = market.inflation * 0.005
        reversion = (1.0 - self.fx_rate) * cfg.fx_reversion
        delta = trade_pressure - rate_differential + print_pressure + inflation_pressure + reversion
        self.fx_rate = self._clamp_fx(self.fx_rate + delta)

        if policy.get("foreign_reserve_intervention") and self.foreign_reserves > cfg.intervention_min_reserves:
            dampening = delta * 0.5
            self.fx_rate = self._clamp_fx(self.fx_rate - dampening)
            self.foreign_reserves = max(0.0, self.foreign_reserves - abs(dampening) * cfg.intervention_cost)

        # Trade flows
        tariff = policy.get("punitive_tariffs")
        export_subsidy = policy.get("export_subsidies")
        flows: Dict[str, Dict[str, float]] = {}
        step_balance = 0.0
        for sector in SECTORS:
            domestic = market.prices[sector]
            world = self.world_prices[sector] * self.fx_rate
            import_threshold = world * (1 + tariff) * cfg.import_threshold
            export_threshold = world * (1 + export_subsidy) * cfg.export_threshold
            supply = market.supply[sector]

            imports = 0.0
            exports = 0.0
            if import_threshold > 0 and domestic > import_threshold:
                gap = (domestic - import_threshold) / domestic
                imports = gap * supply * cfg.max_import_share
            if domestic > 0 and domestic < export_threshold:
                gap = (export_threshold - domestic) / export_threshold
                exports = gap * supply * cfg.max_export_share

            flows[sector] = {"imports": imports, "exports": exports}
            balance = exports * domestic - imports * world
            self.trade_balance[sector] = balance
            step_balance += balance

        self.foreign_reserves = max(0.0, self.foreign_reserves + step_balance * 0.01)
        self.cumulative_trade_balance += step_balance

        self.fx_history.append(round(self.fx_rate, 3))
        self.reserve_history.append(round(self.foreign_reserves))
        self.balance_history.append(round(step_balance))
        return flows, shock_notice

    def _walk_world_prices(self, rng) -> None:
        cfg = CONFIG.global_economy
        for sector in SECTORS:
            base = self.base_prices[sector]
            current = self.world_prices[sector]
            noise = rng.uniform(-1.0, 1.0) * cfg.world_price_volatility
            reversion = (base - current) / base * cfg.world_price_reversion
            self.world_prices[sector] = max(1.0, current * (1 + noise + reversion))

    def _advance_shock(self, rng) -> Optional[Dict[str, object]]:
        if self.active_shock is None and rng.random() < CONFIG.global_economy.shock_probability:
            template = GLOBAL_SHOCKS[int(rng.integers(len(GLOBAL_SHOCKS)))]
            self.start_shock(template["type"])

        shock = self.active_shock
        if shock is None:
            return None

        progress = 1 - shock.ticks_remaining / shock.duration
        ramp = min(1.0, progress * 3)
        for sector in SECTORS:
            target = 1 + (shock.price_multipliers.get(sector, 1.0) - 1) * ramp
            if target > 1:
                self.world_prices[sector] *= 1 + (target - 1) * 0.01
            else:
                self.world_prices[sector] *= 1 - (1 - target) * 0.01
            self.world_prices[sector] = max(1.0, self.world_prices[sector])

        shock.ticks_remaining -= 1
        notice = None
        if shock.ticks_remaining == shock.duration - 1:
            notice = {"type": shock.type, "label": shock.label, "duration": shock.duration}
        if shock.ticks_remaining <= 0:
            logger.info(f"Global shock ended: {shock.type}")
            self.active_shock = None
        return notice

    def start_shock(self, shock_type: str) -> bool:
        """Start a named global shock. Ignored when one is already running."""
        if self.active_shock is not None:
            return False
        for template in GLOBAL_SHOCKS:
            if template["type"] == shock_type:
                self.active_shock = ActiveShock(
                    type=template["type"],
                    label=template["label"],
                    price_multipliers=dict(template["price_multipliers"]),
                    duration=int(template["duration"]),
                    ticks_remaining=int(template["duration"]),
                )
                logger.info(f"Global shock started: {shock_type}")
                return True
        logger.warning(f"Ignoring unknown global shock: {shock_type}")
        return False

    @staticmethod
    def _clamp_fx(rate: float) -> float:
        cfg = CONFIG.global_economy
        return max(cfg.fx_min, min(cfg.fx_max, rate))

    def to_dict(self) -> Dict[str, object]:
        return {
            "world_prices": dict(self.world_prices),
            "fx_rate": self.fx_rate,
            "foreign_reserves": self.foreign_reserves,
            "trade_balance": dict(self.trade_balance),
            "cumulative_trade_balance": self.cumulative_trade_balance,
            "active_shock": self.active_shock.to_dict() if self.active_shock else None,
            "history": {
                "fx_rate": list(self.fx_history),
                "foreign_reserves": list(self.reserve_history),
                "trade_balance": list(self.balance_history),
            },
        }
