"""
ContextGuard Command Line Interface.

Commands: evaluate, demo, policy, serve
"""

from __future__ import annotations

import dataclasses
import json
import logging
from pathlib import Path

import click
import yaml

from . import __version__
from .access import AccessContext, PolicyEvaluator
from .config import EngineConfig, Strategy, load_config, parse_strategy
from .exceptions import ContextGuardError
from .policy import AccessPolicy
from .resources import SCENARIOS, ResourceCatalog, demo_catalog, demo_context

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def _print_result(result, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(result.to_dict(), sort_keys=True))
        return
    click.echo(f"Verdict:     {result.verdict.value}")
    click.echo(f"Allowed:     {'yes' if result.allowed else 'no'}")
    click.echo(f"Step-up:     {'yes' if result.require_step_up else 'no'}")
    if result.risk_score is not None:
        bar = "#" * (result.risk_score // 5)
        click.echo(f"Risk score:  {result.risk_score:3d}/100 |{bar}")
    if result.reason:
        click.echo(f"Reason:      {result.reason}")
    for v in result.violations:
        click.echo(f"  - {v}")


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False),
              help="YAML engine config file")
@click.option("--strategy", type=click.Choice([s.value for s in Strategy]), default=None,
              help="Override the evaluation strategy")
@click.option("--log-level", type=click.Choice(LOG_LEVELS, case_sensitive=False),
              default="WARNING", show_default=True)
@click.pass_context
def cli(ctx, config_path: str | None, strategy: str | None, log_level: str):
    """ContextGuard: context-aware access control decisions"""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        force=True,
    )
    try:
        config = load_config(config_path)
        if strategy:
            config = dataclasses.replace(config, strategy=parse_strategy(strategy))
    except ContextGuardError as exc:
        raise click.ClickException(str(exc)) from exc
    ctx.obj = config


@cli.command()
@click.option("--resource", "resource_id", default=None, help="Demo resource id (1-4)")
@click.option("--policy-file", default=None, type=click.Path(exists=True, dir_okay=False),
              help="YAML file holding a single policy")
@click.option("--country", default="India", help="Request country")
@click.option("--device", default="device-123", help="Request device id")
@click.option("--ip", default="103.45.67.89", help="Request IP address")
@click.option("--timestamp", default="2025-10-30T10:00:00+00:00", help="ISO-8601 request time")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_obj
def evaluate(config: EngineConfig, resource_id, policy_file, country, device, ip, timestamp, as_json):
    """Evaluate one access attempt against a policy."""
    if policy_file:
        data = yaml.safe_load(Path(policy_file).read_text()) or {}
        if not isinstance(data, dict):
            raise click.ClickException(f"{policy_file} must contain a policy mapping")
        policy = AccessPolicy.from_dict(data.get("policy", data))
    elif resource_id:
        try:
            policy = demo_catalog().get(resource_id).policy
        except ContextGuardError as exc:
            raise click.ClickException(str(exc)) from exc
    else:
        raise click.UsageError("Give --resource or --policy-file")

    context = AccessContext(device_id=device, ip_address=ip, country=country, timestamp=timestamp)
    if not as_json:
        click.echo(f"[*] Evaluating with strategy '{config.strategy.value}'")
    _print_result(PolicyEvaluator(config).evaluate(context, policy), as_json)


@cli.command()
@click.option("--scenario", type=click.Choice(SCENARIOS), default=None,
              help="Run one scenario instead of all")
@click.pass_obj
def demo(config: EngineConfig, scenario: str | None):
    """Run the demo scenarios against the demo resources."""
    click.echo("=" * 60)
    click.echo(f"  ContextGuard  -  Demo ({config.strategy.value})")
    click.echo("=" * 60)

    evaluator = PolicyEvaluator(config)
    catalog = demo_catalog()
    for name in [scenario] if scenario else SCENARIOS:
        ctx = demo_context(name)
        click.echo(f"\n[{name}] device={ctx.device_id} country={ctx.country} "
                   f"time={ctx.time_of_day(config.zone())}")
        for resource in catalog.resources.values():
            result = evaluator.evaluate(ctx, resource.policy)
            score = "" if result.risk_score is None else f" score={result.risk_score}"
            click.echo(f"  {resource.name:28s} {result.verdict.value:17s}{score}")
            for v in result.violations:
                click.echo(f"      - {v}")

    click.echo("\n" + "=" * 60)
    click.echo("  Demo complete.")
    click.echo("=" * 60)


@cli.command()
@click.option("--file", "catalog_file", default=None, type=click.Path(exists=True, dir_okay=False),
              help="YAML resource catalog")
def policy(catalog_file: str | None):
    """Validate a resource catalog and export it as YAML."""
    if catalog_file:
        catalog = ResourceCatalog()
        try:
            resources = catalog.load_yaml(Path(catalog_file).read_text())
        except ContextGuardError as exc:
            raise click.ClickException(str(exc)) from exc
        click.echo(f"[+] Loaded {len(resources)} resources from {catalog_file}")
    else:
        catalog = demo_catalog()
        click.echo(f"[+] Using {len(catalog)} demo resources")

    summary = catalog.summary()
    click.echo("\n--- Policy Summary ---")
    click.echo(f"Resources: {summary['total_resources']}, step-up by default: {summary['step_up_required']}")
    for resource in catalog.resources.values():
        p = resource.policy
        window = (f"{p.allowed_time_start}-{p.allowed_time_end}"
                  if p.time_window() else "any time")
        click.echo(f"  {resource.resource_id}: {resource.name}")
        click.echo(f"      countries={', '.join(p.allowed_countries) or 'any'}; {window}; "
                   f"devices={', '.join(p.trusted_devices) or 'any'}")

    click.echo("\n--- Exported YAML ---")
    click.echo(catalog.export_yaml())


@cli.command()
@click.option("--host", default="127.0.0.1", help="API host")
@click.option("--port", default=5000, help="API port")
@click.pass_obj
def serve(config: EngineConfig, host: str, port: int):
    """Run the REST API with the demo resources loaded."""
    from .api import create_app
    from .stepup import OTPStore, StepUpService, Sweeper

    store = OTPStore(ttl=config.otp_ttl_seconds)
    sweeper = Sweeper(store, interval=config.otp_sweep_interval)
    app = create_app(config, catalog=demo_catalog(), step_up=StepUpService(store))

    click.echo(f"[*] Starting ContextGuard API on {host}:{port} ({config.strategy.value})")
    sweeper.start()
    try:
        app.run(host=host, port=port)
    finally:
        sweeper.stop()


def main():
    cli()


if __name__ == "__main__":
    main()
