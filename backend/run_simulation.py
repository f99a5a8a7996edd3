"""
Run a policy economy scenario headless.

The economy is stepped for a fixed number of ticks, progress is printed at
an interval, and KPIs can optionally be logged to sqlite. Choice events are
resolved automatically so the run never blocks.

Usage:
    python run_simulation.py --scenario great_depression --seed 7 --ticks 780
    python run_simulation.py --ticks 520 --db ecosim.db --json report.json
"""

import argparse
import json
import logging
import os
import sys
import time
from typing import Dict, List, Optional

# Repository root, so the KPI writer in data/ can be imported from a checkout
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import CONFIG
from data.db_writer import init_db, log_metrics
from economy import Economy
from events import DO_NOTHING_CHOICE

logger = logging.getLogger(__name__)


def auto_resolve(economy: Economy, strategy: str) -> Optional[str]:
    """
    Resolve the pending choice without a player.

    Args:
        economy: Economy with a pending choice
        strategy: "do_nothing" or "first" (the first listed choice)

    Returns:
        The id of the chosen option, or None when nothing was pending
    """
    pending = economy.events.pending
    if pending is None:
        return None
    choice_id = DO_NOTHING_CHOICE["id"]
    if strategy == "first" and pending.choices:
        choice_id = pending.choices[0]["id"]
    economy.resolve_choice(pending.id, choice_id)
    return choice_id


def main(
    scenario: str = "default",
    seed: Optional[int] = None,
    num_ticks: int = 520,
    progress_every: int = 52,
    db_path: Optional[str] = None,
    json_path: Optional[str] = None,
    choice_strategy: str = "do_nothing",
) -> Dict[str, object]:
    """Run one scenario and return its report (partial if it neither completed nor failed)."""
    print("=" * 80)
    print(f"POLICY ECONOMY SIMULATION (scenario={scenario}, {num_ticks} ticks, seed={seed})")
    print("=" * 80)
    print()

    start_time = time.time()
    economy = Economy(scenario, seed=seed)
    print(f"Scenario: {economy.scenario.name}")
    print(f"Agents: {len(economy.agents)}  Businesses: {len(economy.businesses)}  Banks: {len(economy.banks)}")
    print()

    if db_path:
        init_db(db_path)
        print(f"Logging KPIs to: {db_path}")
        print()

    print("Tick | Year |      GDP | Unemploy |  Gini |    CPI | Infl% | Pop")
    print("-" * 80)

    notable: List[Dict[str, object]] = []
    for _ in range(num_ticks):
        if economy.awaiting_choice:
            auto_resolve(economy, choice_strategy)

        for note in economy.step():
            if note["type"] in ("EVENT", "INSIGHT", "GLOBAL_SHOCK"):
                notable.append({"tick": economy.tick, **note})
            if note["type"] == "EVENT":
                logger.info(f"Event at tick {economy.tick}: {note['event']['name']}")

        m = economy.metrics
        if db_path and economy.tick % CONFIG.time.metrics_interval == 0:
            log_metrics(m, db_path)

        if economy.tick % progress_every == 0 or economy.tick == num_ticks:
            print(f"{economy.tick:4d} | {economy.tick // CONFIG.time.ticks_per_year:4d} | "
                  f"{m.gdp:8.0f} | {m.unemployment:7.1%} | {m.gini:5.3f} | "
                  f"{m.cpi:6.1f} | {m.inflation:5.1f} | {m.population}")

        if economy.completed or economy.failed:
            break

    total_time = time.time() - start_time
    print()
    print(f"✓ Ran {economy.tick} ticks in {total_time:.2f} seconds")

    report = economy.final_report or economy.build_report()
    status = "failed" if economy.failed else "complete" if economy.completed else "stopped"
    print(f"  Status: {status}")
    print(f"  Final score: {report['final_score']} ({report['grade']})")
    if report.get("verdict"):
        print(f"  {report['verdict']}")
    print(f"  Events and insights: {len(notable)}")

    if json_path:
        with open(json_path, "w") as f:
            json.dump({"status": status, "report": report, "notable": notable}, f, indent=2, default=str)
        print(f"✓ Report saved to: {json_path}")
    print("=" * 80)
    return report


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(description="Run a policy economy scenario headless.")
    parser.add_argument("--scenario", type=str, default="default", help="Scenario id")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--ticks", type=int, default=520, help="Number of ticks to run")
    parser.add_argument("--progress-every", type=int, default=52, help="Progress print interval (ticks)")
    parser.add_argument("--db", type=str, default=None, help="sqlite file for KPI rows")
    parser.add_argument("--json", type=str, default=None, help="Write the final report to this JSON file")
    parser.add_argument(
        "--choices",
        choices=["do_nothing", "first"],
        default="do_nothing",
        help="How pending choice events are resolved"
    )
    args = parser.parse_args()

    main(
        scenario=args.scenario,
        seed=args.seed,
        num_ticks=args.ticks,
        progress_every=max(1, args.progress_every),
        db_path=args.db,
        json_path=args.json,
        choice_strategy=args.choices,
    )
