"""Enhanced extraction quota commands."""

import click
from finledger.cli.error_handling import handle_domain_error
from finledger.domain.entities import QuotaState
from finledger.domain.quota import QuotaService


def _quota_service(ctx) -> QuotaService:
    settings = ctx.obj["settings"]
    return QuotaService(ctx.obj["db"], default_limit=settings.default_monthly_quota)


def print_quota_state(state: QuotaState) -> None:
    click.echo(
        f"{state.period_key}: {state.used}/{state.limit} used, "
        f"{state.remaining} remaining (resets {state.reset_date.isoformat()})"
    )


@click.group()
def quota_group():
    """Inspect and manage enhanced extraction quotas."""
    pass


@quota_group.command("show")
@click.option("--owner", required=True, help="Quota owner")
@click.option("--months", type=int, default=1, help="Number of monthly periods to show")
@click.pass_context
def show_quota(ctx, owner: str, months: int):
    """Show an owner's quota usage."""
    service = _quota_service(ctx)
    if months <= 1:
        print_quota_state(service.check_quota(owner))
        return
    for state in service.usage_history(owner, months=months):
        print_quota_state(state)


@quota_group.command("set-limit")
@click.argument("limit", type=int)
@click.option("--owner", required=True, help="Quota owner")
@click.pass_context
def set_limit(ctx, limit: int, owner: str):
    """Set the owner's monthly limit, starting with the current period."""
    try:
        state = _quota_service(ctx).set_limit(owner, limit)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    print_quota_state(state)


@quota_group.command("reset")
@click.option("--owner", required=True, help="Quota owner")
@click.option("--period", help="Period to reset as YYYY-MM (default: current month)")
@click.pass_context
def reset_quota(ctx, owner: str, period: str | None):
    """Reset an owner's usage count to zero."""
    state = _quota_service(ctx).reset_usage(owner, period)
    click.echo(f"Reset quota usage for {owner} in {period or state.period_key}")


def register_commands(cli):
    """Register quota commands with main CLI."""
    cli.add_command(quota_group, name="quota")
