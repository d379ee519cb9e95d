"""Lightweight evaluation harness for deterministic scenarios."""

from __future__ import annotations

from typing import Dict, List

from evaluation.scenarios import EvaluationScenario, SCENARIOS
from lineup_app.app import LineupConciergeApp
from lineup_app.config import EngineConfig
from memory.history_store import InMemoryHistoryStore


def _lineups(response: Dict[str, object]) -> List[Dict[str, object]]:
    if "days" in response:
        return list(response.get("days", []))
    return [response] if response.get("item_ids") else []


def _evaluate_expectations(expectations: Dict[str, object], response: Dict[str, object]) -> Dict[str, object]:
    checks: Dict[str, bool] = {}
    lineups = _lineups(response)
    checks["status"] = response.get("status") == expectations.get("status", "ok")
    if "failure_kind" in expectations:
        checks["failure_kind"] = (response.get("failure") or {}).get("kind") == expectations["failure_kind"]
    if "item_count" in expectations:
        checks["item_count"] = bool(lineups) and all(
            len(lineup["item_ids"]) == int(expectations["item_count"]) for lineup in lineups
        )
    if "required_item_ids" in expectations:
        checks["required_item_ids"] = bool(lineups) and all(
            set(expectations["required_item_ids"]) <= set(lineup["item_ids"]) for lineup in lineups
        )
    if "forbidden_item_ids" in expectations:
        checks["forbidden_item_ids"] = all(
            not set(expectations["forbidden_item_ids"]) & set(lineup["item_ids"]) for lineup in lineups
        )
    if "min_days" in expectations:
        checks["min_days"] = len(lineups) >= int(expectations["min_days"])
    if "shared_outerwear" in expectations:
        checks["shared_outerwear"] = bool(lineups) and all(
            expectations["shared_outerwear"] in lineup["item_ids"] for lineup in lineups
        )
    if expectations.get("stay_footwear_fixed"):
        footwear_ids = {
            next(item["item_id"] for item in lineup["lineup"] if item["category"] == "footwear")
            for lineup in lineups
            if lineup.get("kind") == "stay"
        }
        checks["stay_footwear_fixed"] = len(footwear_ids) <= 1
    return {"passed": all(checks.values()), "checks": checks}


def run_scenario(scenario: EvaluationScenario) -> Dict[str, object]:
    concierge = LineupConciergeApp(
        config=EngineConfig(),
        catalog_rows=scenario.catalog,
        history_store=InMemoryHistoryStore(),
    )
    if scenario.kind == "trip":
        response = concierge.plan_trip(**scenario.request)
    else:
        response = concierge.recommend_look(**scenario.request)
    evaluation = _evaluate_expectations(scenario.expectations, response)
    return {
        "scenario": scenario.name,
        "passed": evaluation["passed"],
        "checks": evaluation["checks"],
        "lineup_count": len(_lineups(response)),
        "response": response,
    }


def run_evaluation_suite() -> List[Dict[str, object]]:
    return [run_scenario(scenario) for scenario in SCENARIOS]


def run_smoke_checks() -> List[str]:
    results = run_evaluation_suite()
    return [f"{result['scenario']}: {'passed' if result['passed'] else 'failed'}" for result in results]


__all__ = ["run_evaluation_suite", "run_scenario", "run_smoke_checks"]
