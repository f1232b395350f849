"""Category rule commands."""

import click
from finledger.cli.error_handling import handle_domain_error
from finledger.domain.categorization import CategoryRuleService
from finledger.domain.category import CategoryService
from finledger.domain.entities import MatchField
from finledger.domain.errors import NotFoundError, category_path_not_found


@click.group()
def rule_group():
    """Manage automatic categorization rules."""
    pass


@rule_group.command("add")
@click.argument("keyword")
@click.argument("category_path")
@click.option("--owner", required=True, help="Rule owner")
@click.option(
    "--field",
    "match_field",
    type=click.Choice([f.value for f in MatchField], case_sensitive=False),
    default=MatchField.DESCRIPTION.value,
    help="Text the keyword is matched against (default: description)",
)
@click.option("--priority", type=int, default=0, help="Higher priorities are checked first")
@click.option("--case-sensitive", is_flag=True, help="Match case exactly")
@click.option("--pattern", "is_pattern", is_flag=True, help="Treat KEYWORD as a regular expression")
@click.pass_context
def add_rule(
    ctx,
    keyword: str,
    category_path: str,
    owner: str,
    match_field: str,
    priority: int,
    case_sensitive: bool,
    is_pattern: bool,
):
    """Add a rule assigning CATEGORY_PATH to transactions matching KEYWORD.

    Examples:
        finledger rule add NETFLIX "Entertainment > Streaming" --owner u1
        finledger rule add "CAFE%PALERMO" "Food & Dining > Coffee" --owner u1 --priority 10
    """
    db = ctx.obj["db"]
    try:
        category = CategoryService(db).get_category_by_path(owner, category_path)
        if category is None:
            raise NotFoundError(category_path_not_found(category_path))
        rule_id = CategoryRuleService(db).add_rule(
            owner_id=owner,
            keyword=keyword,
            category_id=category.id,
            match_field=match_field.lower(),
            priority=priority,
            case_sensitive=case_sensitive,
            is_pattern=is_pattern,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Created rule {rule_id}: '{keyword}' -> '{category_path}'")


@rule_group.command("list")
@click.option("--owner", required=True, help="Rule owner")
@click.pass_context
def list_rules(ctx, owner: str):
    """List an owner's rules, highest priority first."""
    db = ctx.obj["db"]
    rules = CategoryRuleService(db).list_rules(owner)
    if not rules:
        click.echo("No rules found.")
        return

    category_service = CategoryService(db)
    click.echo(f"\n{'ID':<6} {'Priority':>8}  {'Field':<12} {'Keyword':<30} Category")
    click.echo("-" * 80)
    for rule in rules:
        flags = []
        if rule.is_pattern:
            flags.append("regex")
        if rule.case_sensitive:
            flags.append("case")
        keyword = rule.keyword + (f" [{', '.join(flags)}]" if flags else "")
        click.echo(
            f"{rule.id:<6} {rule.priority:>8}  {rule.match_field.value:<12} {keyword:<30} "
            f"{category_service.format_category_path(rule.category_id)}"
        )


@rule_group.command("delete")
@click.argument("rule_id", type=int)
@click.option("--owner", required=True, help="Rule owner")
@click.pass_context
def delete_rule(ctx, rule_id: int, owner: str):
    """Delete a rule."""
    try:
        CategoryRuleService(ctx.obj["db"]).delete_rule(owner, rule_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Deleted rule {rule_id}")


def register_commands(cli):
    """Register rule commands with main CLI."""
    cli.add_command(rule_group, name="rule")
