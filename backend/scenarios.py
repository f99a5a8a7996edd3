"""
Scenario Presets

Named starting configurations: policy overrides, population and business
counts, the initial wealth distribution and any events scheduled ahead of
time. Historical scenarios also carry the real-world GDP change that a run
is compared against in the report card.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_SCENARIO_ID = "default"


@dataclass(frozen=True)
class Scenario:
    id: str
    name: str
    description: str = ""
    policies: Dict[str, object] = field(default_factory=dict)
    agent_count: int = 200
    business_count: int = 20
    wealth_multiplier: float = 1.0
    wealth_inequality: float = 1.0
    avg_skill: float = 0.5
    avg_education: float = 0.5
    start_gov_debt: float = 0.0
    duration_years: Optional[int] = None
    historical: bool = False
    historical_gdp_change: Optional[float] = None  # Fractional, e.g. -0.46
    scheduled_events: Tuple[Tuple[str, int], ...] = ()

    def __post_init__(self):
        if self.agent_count < 0 or self.business_count < 0:
            raise ValueError("agent_count and business_count must be non-negative")
        if self.duration_years is not None and self.duration_years <= 0:
            raise ValueError("duration_years must be positive when set")

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "agent_count": self.agent_count,
            "business_count": self.business_count,
            "duration_years": self.duration_years,
            "historical": self.historical,
            "historical_gdp_change": self.historical_gdp_change,
            "scheduled_events": [{"type": t, "tick": at} for t, at in self.scheduled_events],
        }


SCENARIOS: Dict[str, Scenario] = {
    s.id: s
    for s in [
        Scenario(
            id="default",
            name="Balanced Start",
            description="A mixed economy with moderate taxes, basic safety nets and room to experiment.",
        ),
        Scenario(
            id="free_market",
            name="Free Market Utopia",
            description="No minimum wage, no taxes, no safety net. Watch monopolies form.",
            policies={
                "income_tax": 0, "corporate_tax": 0, "min_wage": 0, "ubi": 0,
                "interest_rate": 0.02, "anti_monopoly": False, "education_funding": 0,
                "unemployment_benefit": 0, "print_money": 0, "public_healthcare": False,
                "wealth_tax": 0,
            },
            wealth_multiplier=1.2,
            wealth_inequality=1.5,
        ),
        Scenario(
            id="debt_spiral",
            name="The Debt Spiral",
            description="Heavy social spending left a large debt and a growing deficit.",
            policies={
                "income_tax": 0.45, "corporate_tax": 0.35, "min_wage": 15, "ubi": 200,
                "interest_rate": 0.12, "anti_monopoly": True, "education_funding": 0.8,
                "unemployment_benefit": 150, "print_money": 5, "public_healthcare": True,
                "wealth_tax": 0.02,
            },
            business_count=18,
            wealth_multiplier=0.8,
            wealth_inequality=0.8,
            avg_skill=0.55,
            start_gov_debt=5000,
        ),
        Scenario(
            id="tech_disruption",
            name="Tech Disruption",
            description="A stable economy about to be hit by a wave of automation.",
            policies={
                "income_tax": 0.28, "corporate_tax": 0.21, "min_wage": 12,
                "education_funding": 0.5, "unemployment_benefit": 80,
            },
            scheduled_events=(("tech_breakthrough", 200),),
        ),
        Scenario(
            id="weimar_hyperinflation",
            name="Weimar Hyperinflation",
            description="The printing presses are running to pay reparations. Stabilize the currency.",
            policies={
                "income_tax": 0.15, "corporate_tax": 0.10, "min_wage": 0, "interest_rate": 0.01,
                "education_funding": 0.2, "unemployment_benefit": 0, "price_control_food": True,
                "print_money": 40,
            },
            agent_count=180,
            business_count=15,
            wealth_multiplier=0.5,
            wealth_inequality=1.8,
            avg_skill=0.45,
            duration_years=10,
            historical=True,
            historical_gdp_change=-0.25,
        ),
        Scenario(
            id="great_depression",
            name="The Great Depression",
            description="October 1929. Markets have collapsed and banks are failing.",
            policies={
                "income_tax": 0.02, "corporate_tax": 0.12, "min_wage": 0, "interest_rate": 0.06,
                "education_funding": 0.1, "unemployment_benefit": 0,
            },
            business_count=12,
            wealth_multiplier=0.35,
            wealth_inequality=2.0,
            avg_skill=0.4,
            duration_years=15,
            historical=True,
            historical_gdp_change=-0.46,
            scheduled_events=(("recession", 1), ("financial_bubble", 80)),
        ),
        Scenario(
            id="stagflation_1970s",
            name="1970s Stagflation",
            description="An oil embargo pushes prices up while the economy stagnates.",
            policies={
                "income_tax": 0.30, "corporate_tax": 0.48, "min_wage": 8, "interest_rate": 0.06,
                "education_funding": 0.4, "unemployment_benefit": 100, "print_money": 8,
            },
            business_count=18,
            wealth_multiplier=0.85,
            wealth_inequality=1.1,
            duration_years=12,
            historical=True,
            historical_gdp_change=-0.03,
            scheduled_events=(("crop_failure", 20), ("recession", 150)),
        ),
        Scenario(
            id="japan_lost_decade",
            name="Japan's Lost Decade",
            description="The asset bubble burst, rates are near zero and growth will not return.",
            policies={
                "income_tax": 0.33, "corporate_tax": 0.38, "min_wage": 6, "interest_rate": 0.005,
                "education_funding": 0.6, "unemployment_benefit": 80, "print_money": 2,
                "public_healthcare": True,
            },
            wealth_multiplier=0.9,
            wealth_inequality=0.9,
            avg_skill=0.65,
            duration_years=15,
            historical=True,
            historical_gdp_change=0.10,
            scheduled_events=(("financial_bubble", 1), ("recession", 10)),
        ),
        Scenario(
            id="crisis_of_2008",
            name="2008 Financial Crisis",
            description="The housing bubble has burst and credit is frozen.",
            policies={
                "income_tax": 0.28, "corporate_tax": 0.35, "min_wage": 10, "interest_rate": 0.05,
                "education_funding": 0.4, "unemployment_benefit": 100,
            },
            business_count=16,
            wealth_multiplier=0.7,
            wealth_inequality=1.6,
            duration_years=10,
            historical=True,
            historical_gdp_change=-0.043,
            scheduled_events=(("financial_bubble", 1), ("recession", 30)),
        ),
        Scenario(
            id="nordic_miracle",
            name="Build the Nordic Model",
            description="Aim for low inequality, high productivity and a strong safety net at once.",
            policies={
                "income_tax": 0.45, "corporate_tax": 0.25, "min_wage": 18, "interest_rate": 0.03,
                "anti_monopoly": True, "education_funding": 0.9, "unemployment_benefit": 200,
                "public_healthcare": True, "wealth_tax": 0.01, "subsidies_farming": True,
            },
            business_count=22,
            wealth_inequality=0.7,
            avg_skill=0.6,
            avg_education=0.65,
            duration_years=20,
            historical=True,
            historical_gdp_change=0.35,
        ),
    ]
}


def get_scenario(scenario_id: Optional[str]) -> Scenario:
    """Look up a scenario, falling back to the default for unknown or missing ids."""
    if scenario_id in SCENARIOS:
        return SCENARIOS[scenario_id]
    if scenario_id is not None:
        logger.warning(f"Unknown scenario {scenario_id!r}; falling back to {DEFAULT_SCENARIO_ID}")
    return SCENARIOS[DEFAULT_SCENARIO_ID]


def list_scenarios() -> List[Dict[str, object]]:
    return [s.to_dict() for s in SCENARIOS.values()]
