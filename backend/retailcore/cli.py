# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/retailcore/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "retailcore:create_app".
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Shift inspection:
# - python -m flask shifts list --branch-id 1 --status active --limit 20
#   List recent shifts with their buckets and variance.
# - python -m flask shifts summary 12
#   Print the close preview (totals by method, expected cash) for a shift.
#
# Settlement inspection:
# - python -m flask settlement outstanding --branch-id 1
#   List credit sales and payable purchase orders with a balance left.
#
# Pricing:
# - python -m flask pricing quote --qty 3 --price 10000 --item-discount 10 --doc-discount 5 --tax-mode add --tax-rate 11
#   Price a single-line document and print the breakdown.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .money import format_currency, to_decimal
from .services import shift_service, sales_service, purchase_order_service
from .services.pricing_service import (
    LineItem,
    compute_totals,
    discount_from_input,
    tax_config_from_input,
)


def _fmt(value) -> str:
    if value is None:
        return "-"
    return format_currency(value, current_app.config.get("CURRENCY_SYMBOL", "Rp"))


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


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

    click.echo("PASS Database reset complete.")


@click.group('shifts')
def shifts_group():
    """Shift inspection commands."""


@shifts_group.command('list')
@click.option('--cashier-id', help='Filter by cashier ID')
@click.option('--branch-id', type=int, help='Filter by branch ID')
@click.option('--status', type=click.Choice(['active', 'ended']), help='Filter by status')
@click.option('--limit', type=int, default=20, help='Max shifts to show')
@with_appcontext
def list_shifts_cli(cashier_id, branch_id, status, limit):
    """
    List shifts.

    Example:
        flask shifts list
        flask shifts list --branch-id 1 --status active
    """
    shifts = shift_service.list_shifts(
        cashier_id=cashier_id, branch_id=branch_id, status=status, limit=limit
    )

    if not shifts:
        click.echo("No shifts found.")
        return

    click.echo("\n" + "="*120)
    click.echo(f"{'ID':<5} {'Branch':<7} {'Cashier':<15} {'Status':<8} {'Started':<20} {'Expected cash':<20} {'Variance'}")
    click.echo("="*120)

    for shift in shifts:
        cashier = shift.cashier_name or shift.cashier_id
        click.echo(f"{shift.id:<5} {shift.branch_id:<7} {cashier[:15]:<15} {shift.status:<8} "
                   f"{str(shift.started_at)[:19]:<20} {_fmt(shift.expected_cash):<20} {_fmt(shift.variance)}")

    click.echo("="*120 + "\n")


@shifts_group.command('summary')
@click.argument('shift_id', type=int)
@with_appcontext
def shift_summary_cli(shift_id):
    """Print the close preview for a shift."""
    shift = shift_service.get_shift(shift_id)
    summary = shift_service.prepare_close(shift)

    click.echo(f"\nShift {shift.id} ({shift.status}) - cashier {shift.cashier_name or shift.cashier_id}, branch {shift.branch_id}")
    click.echo(f"  Starting balance: {_fmt(summary.starting_balance)}")
    for method, total in summary.totals_by_method.items():
        click.echo(f"  {method:<10} {_fmt(total)}")
    click.echo(f"  Total sales:      {_fmt(summary.total_sales)} ({summary.sale_count} sale(s))")
    click.echo(f"  Expected cash:    {_fmt(summary.expected_cash)}\n")


@click.group('settlement')
def settlement_group():
    """Outstanding balance inspection commands."""


@settlement_group.command('outstanding')
@click.option('--branch-id', type=int, help='Filter by branch ID')
@with_appcontext
def outstanding_cli(branch_id):
    """List credit documents that still carry a balance."""
    sales = sales_service.list_outstanding_sales(branch_id=branch_id)
    orders = purchase_order_service.list_outstanding_purchase_orders(branch_id=branch_id)

    click.echo("\nReceivables (credit sales)")
    click.echo("-"*90)
    if not sales:
        click.echo("  none")
    for sale in sales:
        click.echo(f"  {sale['invoice_number']:<28} {(sale['customer_name'] or sale['customer_id'] or '-')[:20]:<20} "
                   f"{_fmt(sale['outstanding_amount']):<20} {sale['display_status']}")

    click.echo("\nPayables (credit purchase orders)")
    click.echo("-"*90)
    if not orders:
        click.echo("  none")
    for po in orders:
        click.echo(f"  {po['po_number']:<28} {(po['supplier_name'] or po['supplier_id'])[:20]:<20} "
                   f"{_fmt(po['outstanding_amount']):<20} {po['display_status']}")
    click.echo("")


@click.group('pricing')
def pricing_group():
    """Pricing engine commands."""


@pricing_group.command('quote')
@click.option('--qty', type=int, required=True, help='Quantity')
@click.option('--price', required=True, help='Unit price')
@click.option('--item-discount', default=None, help='Item discount percentage')
@click.option('--doc-discount', default=None, help='Document discount percentage')
@click.option('--shipping', default='0', help='Shipping cost')
@click.option('--voucher', default='0', help='Voucher discount')
@click.option('--tax-mode', type=click.Choice(['none', 'add', 'inclusive']), default='none')
@click.option('--tax-rate', default=None, help='Tax rate percentage')
@with_appcontext
def quote_cli(qty, price, item_discount, doc_discount, shipping, voucher, tax_mode, tax_rate):
    """Price a single-line document."""
    line = LineItem(
        product_id="CLI",
        quantity=qty,
        unit_price=to_decimal(price),
        discount=discount_from_input("percentage" if item_discount else None, item_discount),
    )
    breakdown = compute_totals(
        [line],
        discount_from_input("percentage" if doc_discount else None, doc_discount),
        to_decimal(shipping),
        to_decimal(voucher),
        tax_config_from_input(tax_mode, tax_rate, current_app.config.get("DEFAULT_TAX_RATE", 0)),
    )

    click.echo(f"\n  Gross:             {_fmt(breakdown.gross_total)}")
    click.echo(f"  Item discounts:    {_fmt(breakdown.item_discount_total)}")
    click.echo(f"  Subtotal:          {_fmt(breakdown.subtotal)}")
    click.echo(f"  Document discount: {_fmt(breakdown.document_discount_amount)}")
    click.echo(f"  Tax ({breakdown.tax_mode}):  {_fmt(breakdown.tax_amount)}")
    click.echo(f"  Shipping:          {_fmt(breakdown.shipping_cost)}")
    click.echo(f"  Voucher:           {_fmt(breakdown.voucher_discount)}")
    click.echo(f"  Grand total:       {_fmt(breakdown.grand_total)}\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(shifts_group)
    app.cli.add_command(settlement_group)
    app.cli.add_command(pricing_group)
