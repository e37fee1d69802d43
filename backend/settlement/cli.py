# Overview: Flask CLI command groups for schema reset, policies, slips and credits.

# backend/settlement/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Return policies:
# - python -m flask policies list
#   List active policies in resolution order.
# - python -m flask policies seed-default
#   Persist the built-in default policy as an editable catch-all (idempotent).
#
# Exchange slips:
# - python -m flask slips expire
#   Mark active slips past their expiry date as expired.
#
# Store credit:
# - python -m flask credits balance 42
#   Show a customer's spendable credit rows and total balance.

import click
from flask.cli import with_appcontext

from .errors import SettlementError
from .extensions import db
from .services import policy_service, settlement_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask policies seed-default' next.")


@click.group('policies')
def policies_group():
    """Return policy inspection and bootstrap."""


@policies_group.command('list')
@with_appcontext
def list_policies():
    """List active policies in resolution order."""
    policies = policy_service.list_active_policies()

    if not policies:
        click.echo(f"No active policies. Built-in default applies: {policy_service.DEFAULT_POLICY.name}")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Priority':<9} {'Name':<30} {'Window':<8} {'Scope'}")
    click.echo("="*80)

    for policy in policies:
        if policy.applies_to_all_products:
            scope = "all products"
        else:
            scope = (
                f"{len(policy.categories)} categories, {len(policy.products)} products, "
                f"types={','.join(policy.customer_types or []) or '-'}"
            )
        click.echo(f"{policy.id:<5} {policy.priority:<9} {policy.name:<30} {policy.return_window_days:<8} {scope}")

    click.echo("="*80 + "\n")


@policies_group.command('seed-default')
@with_appcontext
def seed_default_policy():
    """Persist the built-in default policy."""
    policy = policy_service.seed_default_policy()
    click.echo(f"PASS Default policy ready (id={policy.id}, priority={policy.priority})")


@click.group('slips')
def slips_group():
    """Exchange slip maintenance."""


@slips_group.command('expire')
@with_appcontext
def expire_slips():
    """Expire active slips past their expiry date."""
    expired = settlement_service.expire_exchange_slips()
    click.echo(f"PASS Expired {expired} exchange slip(s)")


@click.group('credits')
def credits_group():
    """Store credit inspection."""


@credits_group.command('balance')
@click.argument('customer_id', type=int)
@with_appcontext
def credit_balance(customer_id):
    """Show a customer's spendable store credit."""
    try:
        summary = settlement_service.get_customer_credits(customer_id)
    except SettlementError as e:
        raise click.ClickException(e.message)

    click.echo(f"Customer {customer_id}: {summary['total_balance_cents']} cents available")
    for credit in summary["credits"]:
        click.echo(
            f"  #{credit['id']:<6} {credit['balance_cents']:>10} / {credit['amount_cents']:<10} "
            f"{credit['source']:<12} {credit['source_reference'] or '-'}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(policies_group)
    app.cli.add_command(slips_group)
    app.cli.add_command(credits_group)
