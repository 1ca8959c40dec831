"""Propagation scenario catalogue and runner."""

from __future__ import annotations

from flask import Blueprint, current_app

from membertx.api.deps import get_transactions, json_response, timing
from membertx.core.errors import NotFound
from membertx.scenarios import SCENARIOS, get_scenario, run_scenario
from membertx.schemas import ScenarioSchema

bp = Blueprint("scenarios", __name__)

scenario_list_schema = ScenarioSchema(many=True)


@bp.get("")
@timing
def list_scenarios():
    """Return every known scenario with its expected result."""

    return json_response({"data": scenario_list_schema.dump(SCENARIOS)})


@bp.post("/<name>")
@timing
def execute_scenario(name: str):
    """Run one scenario against the live database and report what happened."""

    try:
        scenario = get_scenario(name)
    except KeyError as exc:
        raise NotFound(f"Scenario not found: {name}") from exc
    report = run_scenario(
        scenario,
        get_transactions(),
        failure_marker=current_app.config["LOG_FAILURE_MARKER"],
    )
    return json_response({"data": report.to_dict()})
