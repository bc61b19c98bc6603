"""
Command line entry point for the POC resource provisioner.

``provisioner provision`` creates the reference deployment step by step and
writes the resulting identifiers to a KEY=VALUE file for the deployment
scripts that follow. ``provisioner plan`` shows what a run would create.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click
from pydantic import ValidationError

from provisioner import __version__
from provisioner.core.config import Settings, get_settings
from provisioner.core.exceptions import ConfigurationError, InvalidNameError, InvalidPlanError
from provisioner.core.logging import add_context, configure_logging, get_logger
from provisioner.provisioning.blueprint import build_reference_plan
from provisioner.provisioning.client import ProvisioningClient
from provisioner.provisioning.fake import FakeProvisioningClient
from provisioner.provisioning.models import RunContext
from provisioner.provisioning.naming import NameGenerator, new_run_seed
from provisioner.provisioning.orchestrator import Orchestrator
from provisioner.provisioning.output import save_artifact
from provisioner.provisioning.plan import ProvisioningPlan
from provisioner.tools.azure.adapter import AzureProvisioningClient
from provisioner.tools.azure.public_ip import lookup_public_ip

logger = get_logger(__name__)

EXIT_ABORTED = 1
EXIT_CONFIG = 2

RULE = "=" * 40


def _banner(title: str) -> None:
    click.echo(RULE)
    click.echo(title)
    click.echo(RULE)


def _print_configuration(settings: Settings, plan: ProvisioningPlan, names: dict[str, str]) -> None:
    click.echo("Configuration:")
    click.echo(f"  Resource Group: {names.get('resource_group', '-')}")
    click.echo(f"  Location: {settings.deployment.region}")
    for step in plan:
        if step.id != "resource_group" and step.id in names:
            click.echo(f"  {step.id}: {names[step.id]}")
    click.echo("")


def _print_summary(ctx: RunContext, output: Path) -> None:
    def attr(step_id: str, key: str) -> str:
        return ctx.attribute(step_id, key) if ctx.has_record(step_id) else "-"

    click.echo("")
    if ctx.succeeded:
        _banner("Deployment Complete!")
    else:
        _banner("Deployment Aborted")
        click.echo(f"Error: {ctx.failure}")
    click.echo("")
    click.echo("Resources created:")
    for record in ctx.records:
        click.echo(f"  {record.resource_type.value}: {record.name}")
    if ctx.has_record("user_service"):
        click.echo(f"  User Service: {attr('user_service', 'url')}")
    if ctx.has_record("product_service"):
        click.echo(f"  Product Service: {attr('product_service', 'url')}")
    for warning in ctx.warnings:
        click.echo(f"WARNING: {warning}")
    click.echo("")
    click.echo(f"Variables saved to: {output}")
    if ctx.succeeded:
        click.echo("")
        click.echo("Next steps:")
        click.echo("  1. Run database migrations")
        click.echo("  2. Deploy your APIs to App Services")
        click.echo("  3. Create Static Web App for Angular")


async def _provision(
    settings: Settings,
    plan: ProvisioningPlan,
    seed: int,
    fake: bool,
    fail_on: tuple[str, ...],
) -> RunContext:
    client: ProvisioningClient
    if fake:
        client = FakeProvisioningClient(fail_on=fail_on)
        return await Orchestrator(client, echo=click.echo).run(plan, run_seed=seed)
    async with await AzureProvisioningClient.connect(settings.azure) as azure:
        return await Orchestrator(azure, echo=click.echo).run(plan, run_seed=seed)


@click.group()
@click.version_option(__version__, prog_name="provisioner")
def cli() -> None:
    """Provision the POC Azure resources."""
    try:
        settings = get_settings()
    except ValidationError as exc:
        click.echo(f"ERROR: invalid configuration: {exc}", err=True)
        sys.exit(EXIT_CONFIG)
    configure_logging(
        level=settings.observability.log_level,
        fmt=settings.observability.log_format,
        log_file=settings.observability.log_file,
        force=True,
    )
    logger.debug("settings.loaded", config=settings.export_safe_config())


@cli.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Where to write the KEY=VALUE file (default: azure-vars.txt).",
)
@click.option("--fake", is_flag=True, help="Run against the in-memory client instead of Azure.")
@click.option(
    "--fail-on",
    multiple=True,
    help="With --fake: make the client fail for this method or resource name.",
)
@click.option("--caller-ip", default=None, help="Public IP to allow on the SQL firewall.")
@click.option("--skip-caller-ip", is_flag=True, help="Do not look up the public IP.")
def provision(
    output: Path | None,
    fake: bool,
    fail_on: tuple[str, ...],
    caller_ip: str | None,
    skip_caller_ip: bool,
) -> None:
    """Create every resource of the reference deployment, in order."""
    settings = get_settings()
    output = output or settings.output_file
    if fail_on and not fake:
        raise click.UsageError("--fail-on only applies together with --fake")

    _banner("Azure POC Resources Deployment")
    click.echo("")
    if caller_ip is None and not skip_caller_ip:
        click.echo("Getting your public IP...")
        caller_ip = asyncio.run(
            lookup_public_ip(
                settings.observability.public_ip_url,
                timeout=settings.observability.public_ip_timeout_seconds,
            )
        )

    seed = new_run_seed()
    add_context(run_seed=seed, fake=fake)
    try:
        plan = build_reference_plan(settings.deployment, caller_ip)
        names = plan.resolve_names(seed, NameGenerator())
    except (InvalidPlanError, InvalidNameError) as exc:
        click.echo(f"ERROR: {exc}", err=True)
        sys.exit(EXIT_CONFIG)

    _print_configuration(settings, plan, names)
    click.echo("Starting deployment...")
    click.echo("")

    try:
        ctx = asyncio.run(_provision(settings, plan, seed, fake, fail_on))
    except ConfigurationError as exc:
        logger.error("provision.configuration_error", error=exc.message)
        click.echo(f"ERROR: {exc.message}", err=True)
        sys.exit(EXIT_CONFIG)

    try:
        path = save_artifact(ctx, output)
    except InvalidPlanError as exc:
        click.echo(f"ERROR: {exc}", err=True)
        sys.exit(EXIT_CONFIG)
    _print_summary(ctx, path)
    if not ctx.succeeded:
        sys.exit(EXIT_ABORTED)


@cli.command()
@click.option("--seed", type=int, default=None, help="Run seed to resolve names with.")
@click.option("--caller-ip", default=None, help="Public IP the firewall step would allow.")
def plan(seed: int | None, caller_ip: str | None) -> None:
    """Show the ordered steps and the names a run would use."""
    settings = get_settings()
    seed = new_run_seed() if seed is None else seed
    try:
        provisioning_plan = build_reference_plan(settings.deployment, caller_ip)
        names = provisioning_plan.resolve_names(seed, NameGenerator())
    except (InvalidPlanError, InvalidNameError) as exc:
        click.echo(f"ERROR: {exc}", err=True)
        sys.exit(EXIT_CONFIG)

    click.echo(f"Run seed: {seed}")
    total = len(provisioning_plan)
    for position, step in enumerate(provisioning_plan, 1):
        flag = "" if step.required else " (optional)"
        deps = ", ".join(sorted(step.depends_on)) or "-"
        click.echo(f"[{position}/{total}] {step.id}: {step.resource_type.value}{flag}")
        click.echo(f"    name: {names.get(step.id, '-')}")
        click.echo(f"    depends on: {deps}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
