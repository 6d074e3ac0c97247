"""CLI entry point for aumos-authz.

Invoked as::

    authz [OPTIONS] COMMAND [ARGS]...

or during development::

    python -m aumos_authz.cli.main

Commands
--------
- enforce      Decide a single request against a model and policy
- roles        Show the roles a user holds
- policy show  List the loaded policy and grouping rows
- audit show   Display recent decision audit entries
- version      Show version information

``enforce`` exits 0 when the request is allowed, 1 when it is denied and 2
when the request or the model is malformed.
"""
from __future__ import annotations

import sys
from pathlib import Path

import click
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from aumos_authz.config import ConfigLoader, EnforcerConfig
from aumos_authz.errors import AuthzError
from aumos_authz.management import Enforcer

console = Console()
err_console = Console(stderr=True)

_DEFAULT_CONFIG = Path("authz.yaml")


# ---------------------------------------------------------------------------
# Shared options
# ---------------------------------------------------------------------------


def _source_options(command):  # type: ignore[no-untyped-def]
    command = click.option(
        "--config",
        "-c",
        "config_path",
        default=str(_DEFAULT_CONFIG),
        show_default=True,
        type=click.Path(),
        help="Path to authz.yaml.",
    )(command)
    command = click.option(
        "--policy",
        "-p",
        "policy_path",
        type=click.Path(exists=True),
        help="Policy CSV file (overrides policy_path in the config).",
    )(command)
    command = click.option(
        "--model",
        "-m",
        "model_path",
        type=click.Path(exists=True),
        help="Model .conf file (overrides model_path in the config).",
    )(command)
    return command


def _load_config(config_path: str) -> EnforcerConfig:
    loader = ConfigLoader()
    cfg_path = Path(config_path)
    if cfg_path.exists():
        return loader.load(cfg_path)
    return loader.defaults()


def _build_enforcer(model_path: str | None, policy_path: str | None, config_path: str) -> Enforcer:
    config = _load_config(config_path)
    updates: dict[str, object] = {}
    if model_path:
        updates["model_path"] = Path(model_path)
    if policy_path:
        updates["policy_path"] = Path(policy_path)
    if updates:
        config = config.model_copy(update=updates)
    if config.model_path is None:
        err_console.print("[red]No model given.[/red] Pass --model or set model_path in the config.")
        sys.exit(2)
    try:
        enforcer = Enforcer.from_config(config)
    except (AuthzError, FileNotFoundError) as exc:
        err_console.print(f"[red]Cannot build enforcer:[/red] {exc}")
        sys.exit(2)
    enforcer.enable_log(False)
    return enforcer


# ---------------------------------------------------------------------------
# Root command group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="aumos-authz")
def cli() -> None:
    """Authz CLI — decide requests and inspect policies."""


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from aumos_authz import __version__

    console.print(
        Panel(
            f"[bold]aumos-authz[/bold]  v[cyan]{__version__}[/cyan]\n"
            "Embeddable model-driven authorization engine.",
            title="Version",
            border_style="blue",
        )
    )


# ---------------------------------------------------------------------------
# enforce
# ---------------------------------------------------------------------------


@cli.command(name="enforce")
@_source_options
@click.argument("request_values", nargs=-1, required=True)
def enforce_command(
    model_path: str | None,
    policy_path: str | None,
    config_path: str,
    request_values: tuple[str, ...],
) -> None:
    """Decide REQUEST_VALUES (e.g. alice data1 read) against the policy."""
    enforcer = _build_enforcer(model_path, policy_path, config_path)
    try:
        result = enforcer.enforce_ex(*request_values)
    except AuthzError as exc:
        err_console.print(f"[red]Invalid request:[/red] {exc}")
        sys.exit(2)

    status_str = "[green]ALLOWED[/green]" if result.allowed else "[red]DENIED[/red]"
    console.print(Panel(status_str, title="Enforcement Result", border_style="blue"))
    console.print(f"  Request: [bold]{', '.join(request_values)}[/bold]")
    if result.explain:
        console.print(f"  Decided by: [cyan]{', '.join(result.explain)}[/cyan]")

    sys.exit(0 if result.allowed else 1)


# ---------------------------------------------------------------------------
# roles
# ---------------------------------------------------------------------------


@cli.command(name="roles")
@_source_options
@click.option("--domain", "-d", default="", help="Domain to look the user up in.")
@click.argument("user")
def roles_command(
    model_path: str | None,
    policy_path: str | None,
    config_path: str,
    domain: str,
    user: str,
) -> None:
    """Show the roles USER holds directly."""
    enforcer = _build_enforcer(model_path, policy_path, config_path)
    try:
        roles = enforcer.get_roles_for_user(user, domain)
    except AuthzError as exc:
        err_console.print(f"[red]Cannot list roles:[/red] {exc}")
        sys.exit(2)

    if not roles:
        console.print(f"[yellow]{user} holds no roles.[/yellow]")
        return

    table = Table(title=f"Roles of {user}", box=box.SIMPLE)
    table.add_column("Role", style="cyan")
    table.add_column("Domain", style="magenta")
    for role in roles:
        table.add_row(role, domain or "-")
    console.print(table)


# ---------------------------------------------------------------------------
# policy group
# ---------------------------------------------------------------------------


@cli.group(name="policy")
def policy_group() -> None:
    """Policy inspection commands."""


@policy_group.command(name="show")
@_source_options
def policy_show_command(model_path: str | None, policy_path: str | None, config_path: str) -> None:
    """List the loaded policy and grouping rows."""
    enforcer = _build_enforcer(model_path, policy_path, config_path)
    model = enforcer.get_model()
    assert model is not None

    table = Table(title="Policy", box=box.SIMPLE)
    table.add_column("Type", style="cyan")
    table.add_column("Rule")
    rows = 0
    for key in model.keys("p") + model.role_keys():
        for rule in model.get_policy(key):
            table.add_row(key, ", ".join(rule))
            rows += 1

    if not rows:
        console.print("[yellow]No policy rows loaded.[/yellow]")
        return
    console.print(table)
    console.print(f"  Total rows: [cyan]{rows}[/cyan]")


# ---------------------------------------------------------------------------
# audit group
# ---------------------------------------------------------------------------


@cli.group(name="audit")
def audit_group() -> None:
    """Decision audit trail commands."""


@audit_group.command(name="show")
@click.option("--last", "-n", default=20, show_default=True, type=int, help="Number of recent entries to show.")
@click.option(
    "--config",
    "-c",
    "config_path",
    default=str(_DEFAULT_CONFIG),
    type=click.Path(),
    help="Path to authz.yaml.",
)
def audit_show_command(last: int, config_path: str) -> None:
    """Show recent decision audit entries."""
    from aumos_authz.audit.logger import DecisionAuditLog

    config = _load_config(config_path)
    audit = DecisionAuditLog(log_path=config.audit.log_path)
    records = audit.last_n(last)

    if not records:
        console.print("[yellow]No audit entries found.[/yellow]")
        return

    table = Table(title=f"Last {last} Decisions", box=box.SIMPLE)
    table.add_column("Timestamp", style="dim", no_wrap=True)
    table.add_column("Request", style="cyan")
    table.add_column("Decision")
    table.add_column("Decided by", style="magenta")

    for record in records:
        ts = str(record.get("timestamp", ""))[:19].replace("T", " ")
        request = ", ".join(str(v) for v in record.get("request", []))  # type: ignore[union-attr]
        decision = "[green]allow[/green]" if record.get("allowed") else "[red]deny[/red]"
        explain = ", ".join(str(v) for v in record.get("explain", []))  # type: ignore[union-attr]
        table.add_row(ts, request, decision, explain)

    console.print(table)
    console.print(f"  Total audit records: [cyan]{audit.count()}[/cyan]")


if __name__ == "__main__":
    cli()
