"""Flask CLI commands running the propagation scenarios against the database."""

from __future__ import annotations

import logging

import click
from flask import current_app
from flask.cli import with_appcontext

from membertx.core.extensions import db, session_factory
from membertx.core.logger import TX_LOGGER
from membertx.scenarios import SCENARIOS, ScenarioReport, get_scenario, run_scenario
from membertx.tx import TransactionManager

LOGGER = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    """Surface per-transaction debug records when requested."""
    if not verbose:
        return
    for name in (TX_LOGGER, "membertx.scenarios", __name__):
        logging.getLogger(name).setLevel(logging.DEBUG)


def _echo_summary(reports: list[ScenarioReport]) -> None:
    """Pretty-print a tabular summary of scenario results."""
    click.echo("Scenario summary:")
    if not reports:
        click.echo("  (nothing ran)")
        return
    width = max(len(report.scenario) for report in reports)
    for report in reports:
        status = "PASS" if report.passed else "FAIL"
        error = report.error or "-"
        click.echo(
            f"  {report.scenario.ljust(width)}  {status}  error={error}"
            f"  member={'yes' if report.member_persisted else 'no'}"
            f"  log={'yes' if report.log_persisted else 'no'}"
        )


def _ensure_non_production() -> None:
    """Abort destructive commands when running in production."""
    config = current_app.config
    env = str(config.get("ENV", "production")).lower()
    app_env = str(config.get("APP_ENV", "")).lower()
    is_debug = bool(config.get("DEBUG"))
    is_testing = bool(config.get("TESTING"))
    if app_env == "production" or (env == "production" and not is_debug and not is_testing):
        raise click.UsageError(
            "'flask scenarios run --fresh' is restricted to non-production environments."
        )


@click.group("scenarios")
def scenarios_cli() -> None:
    """Transaction propagation scenarios."""


@scenarios_cli.command("list")
def list_command() -> None:
    """Print every scenario and its expected result."""
    width = max(len(s.name) for s in SCENARIOS)
    for scenario in SCENARIOS:
        policy = scenario.policy.describe()
        expected = scenario.expected_error.__name__ if scenario.expected_error else "-"
        click.echo(
            f"{scenario.name.ljust(width)}  service={policy['service']}"
            f" member={policy['member_repository']} log={policy['log_repository']}"
            f" recover={scenario.recover} fail_log={scenario.fail_log} error={expected}"
        )
        click.echo(f"{''.ljust(width)}  {scenario.description}")


@scenarios_cli.command("run")
@click.argument("names", nargs=-1)
@click.option("--fresh", is_flag=True, help="Drop the schema before running.")
@click.option("--verbose", is_flag=True, help="Log every transaction begin/join/commit.")
@with_appcontext
def run_command(names: tuple[str, ...], fresh: bool, verbose: bool) -> None:
    """Run the named scenarios (all of them by default) and verify their results."""
    _configure_logging(verbose)
    try:
        selected = [get_scenario(name) for name in names] if names else list(SCENARIOS)
    except KeyError as exc:
        raise click.BadParameter(str(exc.args[0]), param_hint="NAMES") from exc

    if fresh:
        _ensure_non_production()
        LOGGER.info("Dropping database schema...")
        db.session.remove()
        db.drop_all()
    db.create_all()

    transactions = TransactionManager(session_factory())
    marker = current_app.config["LOG_FAILURE_MARKER"]
    reports = [run_scenario(s, transactions, failure_marker=marker) for s in selected]
    _echo_summary(reports)

    failed = [r.scenario for r in reports if not r.passed]
    if failed:
        raise click.ClickException(f"{len(failed)} scenario(s) failed: {', '.join(failed)}")
