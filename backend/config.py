"""
Simulation Configuration

Centralizes all tunable parameters for the policy economy simulation.
Every subsystem reads its constants from the global CONFIG instance
instead of carrying its own magic numbers.
"""

from dataclasses import dataclass, field
from typing import Dict, List

SECTORS: List[str] = ["food", "housing", "tech", "luxury"]


def _per_sector(food: float, housing: float, tech: float, luxury: float) -> Dict[str, float]:
    return {"food": food, "housing": housing, "tech": tech, "luxury": luxury}


@dataclass
class TimeConfig:
    """Time-related constants."""
    ticks_per_year: int = 52  # One tick = one week
    labor_match_interval: int = 5
    metrics_interval: int = 10
    birth_interval: int = 52
    snapshot_interval: int = 3


@dataclass
class PopulationConfig:
    """Agent life cycle, consumption and wellbeing parameters."""

    # Life cycle (in years, converted with ticks_per_year)
    working_age_years: int = 18
    retirement_age_years: int = 65
    max_age_years: int = 85
    fertile_min_years: int = 20
    fertile_max_years: int = 45
    birth_chance: float = 0.02  # Per fertile adult per birth interval

    # Initial distributions
    initial_wealth_mean: float = 500.0
    initial_wealth_std: float = 300.0
    initial_skill_mean: float = 0.5
    initial_education_mean: float = 0.5

    # Wealth thresholds (poverty rate and the wealth tax)
    poverty_threshold: float = 100.0
    rich_threshold: float = 5000.0

    # Social class from the wealth percentile among the living
    poor_percentile: float = 0.2
    rich_percentile: float = 0.9

    # Inflation expectations (fractions per lookback window)
    initial_inflation_expectation: float = 0.02
    expectation_memory: float = 0.9
    expectation_anchor: float = 0.03
    expectation_spending_gain: float = 5.0
    max_expectation_boost: float = 1.0
    neutral_interest_rate: float = 0.05
    hawkish_pull: float = 0.03
    min_inflation_expectation: float = -0.1
    max_inflation_expectation: float = 2.0

    # Consumption
    consumption_rates: Dict[str, float] = field(
        default_factory=lambda: _per_sector(0.15, 0.30, 0.10, 0.05)
    )
    real_consumption_factor: float = 0.65  # Only part of nominal spending leaves wealth
    luxury_wealth_floor: float = 200.0
    price_control_spending_factor: float = 0.8
    lifestyle_threshold: float = 1000.0
    lifestyle_drain_rate: float = 0.002
    emergency_probability: float = 0.001
    emergency_min_share: float = 0.05
    emergency_max_share: float = 0.15

    # Income
    benefit_income_rate: float = 0.1  # Share of the benefit lever paid per tick

    # Mortality
    base_death_rate: float = 0.00005
    retired_death_multiplier: float = 3.0
    poverty_death_wealth: float = -500.0
    inheritance_share: float = 0.8

    # Record keeping
    event_log_size: int = 20
    event_log_exposed: int = 10

    # Credit score bounds
    min_credit_score: float = 300.0
    max_credit_score: float = 850.0
    initial_credit_score: float = 650.0

    # Entrepreneurship
    startup_probability: float = 0.00003
    startup_min_skill: float = 0.4
    startup_self_funded_wealth: float = 300.0
    startup_loan_min_credit: float = 600.0

    # Desperation borrowing
    desperation_loan_chance: float = 0.01
    desperation_loan_min: float = 30.0


@dataclass
class CrimeConfig:
    """Street and corporate crime, arrest and incarceration parameters."""
    street_base_chance: float = 0.00002
    poverty_factor: float = 0.5
    unemployment_factor: float = 0.3
    unrest_factor: float = 0.3
    youth_factor: float = 0.2
    youth_max_years: int = 35
    reoffend_factor: float = 0.3
    police_deterrence: float = 0.5
    corporate_base_chance: float = 0.00001
    oversight_deterrence: float = 0.5
    theft_share: float = 0.10
    theft_cap: float = 50.0
    robbery_share: float = 0.15
    robbery_cap: float = 80.0
    robbery_health_damage: float = 0.05
    assault_health_damage: float = 0.1
    embezzlement_share: float = 0.1
    street_arrest_chance: float = 0.1
    police_arrest_bonus: float = 0.4
    corporate_arrest_chance: float = 0.05
    oversight_arrest_bonus: float = 0.35
    street_sentence: int = 100
    corporate_sentence: int = 200
    sentence_jitter: int = 100
    reoffend_increment: float = 0.15
    arrest_credit_penalty: float = 100.0
    victim_memory_ticks: int = 200
    victim_happiness_penalty: float = 0.15


@dataclass
class BusinessConfig:
    """Firm production, wage and exit parameters."""
    start_capital: float = 500.0
    bankruptcy_threshold: float = -200.0
    zero_employee_grace: int = 52
    min_capacity: int = 1
    max_capacity: int = 15
    hire_utilization: float = 0.7
    fire_utilization: float = 0.3
    layoff_cooldown: int = 15
    profit_margin: float = 0.15
    default_wage: float = 12.0
    owner_wage: float = 20.0
    max_wage_offer: float = 100.0
    wage_cut: float = 0.98
    natural_unemployment: float = 0.05
    scarcity_sensitivity: float = 2.0
    vacancy_premium: float = 0.1
    wage_adjust_rate: float = 0.05
    sell_through: float = 0.9
    inventory_cap: float = 100.0
    profit_history_size: int = 50
    max_businesses: int = 80
    startup_loan_amount: float = 300.0
    nationalized_min_wage: float = 15.0
    hiring_capital_multiple: float = 10.0


@dataclass
class MarketConfig:
    """Sector pricing and index parameters."""
    initial_prices: Dict[str, float] = field(
        default_factory=lambda: _per_sector(10.0, 50.0, 30.0, 80.0)
    )
    elasticity: Dict[str, float] = field(
        default_factory=lambda: _per_sector(0.15, 0.2, 0.8, 1.5)
    )
    price_min: Dict[str, float] = field(
        default_factory=lambda: _per_sector(2.0, 10.0, 5.0, 10.0)
    )
    price_max: Dict[str, float] = field(
        default_factory=lambda: _per_sector(200.0, 500.0, 300.0, 800.0)
    )
    base_production: Dict[str, float] = field(
        default_factory=lambda: _per_sector(15.0, 5.0, 10.0, 8.0)
    )
    cpi_weights: Dict[str, float] = field(
        default_factory=lambda: _per_sector(0.35, 0.35, 0.15, 0.15)
    )
    demand_shares: Dict[str, float] = field(
        default_factory=lambda: _per_sector(0.15, 0.25, 0.10, 0.05)
    )
    target_pull: float = 0.2
    max_step_change: float = 0.08
    price_floor: float = 0.01
    price_control_band: float = 0.01
    print_money_pressure: float = 0.0001
    central_planning_damping: float = 0.5
    tariff_pressure: float = 0.0002
    food_pressure_scale: float = 0.01
    inflation_lookback: int = 10
    default_average_wage: float = 20.0


@dataclass
class LaborMarketConfig:
    """Labor market clearing and reservation wage parameters."""
    benefit_markup: float = 1.05  # Jobs must beat benefit income by 5%
    skill_weight: float = 6.0
    education_weight: float = 2.0
    warmup_fill_share: float = 0.8
    warmup_base_wage: float = 8.0
    warmup_skill_wage: float = 12.0
    guaranteed_job_wage: float = 12.0


@dataclass
class BankingConfig:
    """Bank reserves, loan terms and failure parameters."""
    initial_banks: int = 3
    initial_reserves: float = 5000.0
    interest_spread: float = 0.02
    loan_terms: Dict[str, int] = field(
        default_factory=lambda: {"business": 200, "personal": 100}
    )
    loan_spreads: Dict[str, float] = field(
        default_factory=lambda: {"business": 0.03, "personal": 0.05}
    )
    min_credit_scores: Dict[str, float] = field(
        default_factory=lambda: {"business": 550.0, "personal": 400.0}
    )
    stress_npl_rate: float = 0.15
    stress_score_penalty: float = 100.0
    freeze_npl_rate: float = 0.25
    max_debt_to_income: float = 20.0
    write_off_ticks: int = 50
    write_off_loss_share: float = 0.5
    insured_limit: float = 1000.0


@dataclass
class EventConfig:
    """Shock lottery parameters."""
    base_probability: float = 0.0002
    cooldown_ticks: int = 100
    active_penalty: float = 0.3
    immigration_count: int = 30
    immigration_skill_bonus: float = 0.3


@dataclass
class MetricsConfig:
    """Aggregation, fiscal accounting and scoring parameters."""
    history_length: int = 200
    debt_accrual_factor: float = 0.1
    debt_interest_factor: float = 0.01
    debt_clamp: float = 50000.0
    zero_gdp_failure_updates: int = 5
    approval_initial: float = 50.0
    no_confidence_threshold: float = 20.0
    no_confidence_recovery: float = 25.0


@dataclass
class GlobalEconomyConfig:
    """Exchange rate, reserves and trade parameters."""
    initial_reserves: float = 500.0
    world_price_volatility: float = 0.005
    world_price_reversion: float = 0.01
    shock_probability: float = 0.0003
    import_threshold: float = 1.2
    export_threshold: float = 0.8
    max_import_share: float = 0.15
    max_export_share: float = 0.10
    rate_differential_weight: float = 0.01
    fx_reversion: float = 0.01
    fx_min: float = 0.2
    fx_max: float = 5.0
    intervention_min_reserves: float = 50.0
    intervention_cost: float = 500.0


@dataclass
class InsightConfig:
    """Educational insight rate limiting."""
    cooldown_ticks: int = 100


@dataclass
class RunnerConfig:
    """Cooperative runner loop parameters."""
    frame_interval: float = 0.05  # Seconds between frames
    default_speed: int = 1
    max_speed: int = 50


@dataclass
class SimulationConfig:
    """Master configuration for the entire simulation."""

    # Sub-configurations
    time: TimeConfig = field(default_factory=TimeConfig)
    population: PopulationConfig = field(default_factory=PopulationConfig)
    crime: CrimeConfig = field(default_factory=CrimeConfig)
    business: BusinessConfig = field(default_factory=BusinessConfig)
    market: MarketConfig = field(default_factory=MarketConfig)
    labor_market: LaborMarketConfig = field(default_factory=LaborMarketConfig)
    banking: BankingConfig = field(default_factory=BankingConfig)
    events: EventConfig = field(default_factory=EventConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    global_economy: GlobalEconomyConfig = field(default_factory=GlobalEconomyConfig)
    insights: InsightConfig = field(default_factory=InsightConfig)
    runner: RunnerConfig = field(default_factory=RunnerConfig)

    def __post_init__(self):
        """Validation of cross-cutting bounds."""
        if self.time.ticks_per_year <= 0:
            raise ValueError("ticks_per_year must be positive")
        for name in ("labor_match_interval", "metrics_interval", "birth_interval", "snapshot_interval"):
            if getattr(self.time, name) <= 0:
                raise ValueError(f"{name} must be positive")

        pop = self.population
        if not (0 < pop.working_age_years < pop.retirement_age_years < pop.max_age_years):
            raise ValueError("age thresholds must satisfy 0 < working < retirement < max")
        if pop.poverty_threshold >= pop.rich_threshold:
            raise ValueError("poverty_threshold must be below rich_threshold")
        if not (0 < pop.poor_percentile < pop.rich_percentile < 1):
            raise ValueError("class percentiles must satisfy 0 < poor < rich < 1")
        if pop.min_inflation_expectation >= pop.max_inflation_expectation:
            raise ValueError("inflation expectation bounds are inverted")

        market = self.market
        for sector in SECTORS:
            if market.price_min[sector] <= 0:
                raise ValueError(f"price_min for {sector} must be positive")
            if market.price_min[sector] > market.price_max[sector]:
                raise ValueError(f"price bounds for {sector} are inverted")
            if market.initial_prices[sector] <= 0:
                raise ValueError(f"initial price for {sector} must be positive")
        if market.price_floor <= 0:
            raise ValueError("price_floor must be positive")
        if abs(sum(market.cpi_weights.values()) - 1.0) > 1e-9:
            raise ValueError("cpi_weights must sum to 1")

        if self.global_economy.fx_min <= 0 or self.global_economy.fx_min >= self.global_economy.fx_max:
            raise ValueError("fx bounds must satisfy 0 < fx_min < fx_max")
        if self.metrics.history_length <= 0:
            raise ValueError("history_length must be positive")

    def ticks(self, years: float) -> int:
        """Convert a span in years to ticks."""
        return int(years * self.time.ticks_per_year)


# Global configuration instance
CONFIG = SimulationConfig()
