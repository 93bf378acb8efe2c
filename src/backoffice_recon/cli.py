"""
Command-line interface for the back-office reconciliation tool.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional
import json
import sys

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .ai import create_provider
from .config import ReconConfig, generate_default_config, load_config
from .fees.calculator import calculate_batch_fees, calculate_fee
from .matching import ApprovalQueue, RulesEngine, SettlementMatcher
from .models.fees import BatchFeeSummary
from .models.rules import MatchType, TransactionType
from .models.settlement import BankDeposit
from .models.tenant import TenantContext
from .parsers import BankStatementParser, PaymentParser, SettlementParser
from .reports.excel_generator import ExcelReportGenerator
from .storage import ReconStore, SqlStore
from .utils.exceptions import ReconciliationError
from .utils.logging_config import setup_logging
from .webhooks import ApiLogRecorder, WebhookReceiver

console = Console()


@dataclass
class AppContext:
    """Objects shared by every command."""

    config: ReconConfig
    tenant: TenantContext
    verbose: bool = False
    _store: Optional[ReconStore] = field(default=None, repr=False)

    @property
    def store(self) -> ReconStore:
        if self._store is None:
            storage = self.config.storage
            self._store = SqlStore(storage.database_url, echo=storage.echo)
        return self._store


pass_app = click.make_pass_decorator(AppContext)


def _fail(app: AppContext, error: Exception) -> None:
    console.print(f"[red]Error: {error}[/red]")
    if app.verbose:
        console.print_exception()
    sys.exit(1)


class MoneyType(click.ParamType):
    """Parses a GBP amount such as 12.50 or £1,250.00."""

    name = "amount"

    def convert(self, value, param, ctx):
        if isinstance(value, Decimal):
            return value
        try:
            amount = Decimal(str(value).replace("£", "").replace(",", "").strip())
        except InvalidOperation:
            self.fail(f"{value!r} is not a valid amount", param, ctx)
        if not amount.is_finite():
            self.fail(f"{value!r} is not a valid amount", param, ctx)
        return amount


MONEY = MoneyType()


def _money(value: Optional[Decimal]) -> str:
    return f"£{value:,.2f}" if value is not None else "-"


@click.group()
@click.version_option(version=__version__)
@click.option(
    "-c",
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file (YAML)",
)
@click.option(
    "-u", "--user", envvar="BACKOFFICE_USER", help="Account to act as (or BACKOFFICE_USER)"
)
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.pass_context
def main(ctx: click.Context, config: Optional[Path], user: Optional[str], verbose: bool):
    """Back-office settlement and bank reconciliation tool."""
    try:
        recon_config = load_config(config)
    except ReconciliationError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    log_config = recon_config.logging
    setup_logging(log_config.level, log_config.file, log_config.format, verbose=verbose)
    ctx.obj = AppContext(config=recon_config, tenant=TenantContext(user), verbose=verbose)


# Fees


@main.command()
@click.argument("amount", type=MONEY)
@click.option("-p", "--payment-type", default="CreditCard", show_default=True)
@click.option("-e", "--entry-method", default="", help="e.g. CardPresent, Chip, Swipe, BACS")
@pass_app
def fee(app: AppContext, amount: Decimal, payment_type: str, entry_method: str):
    """Calculate the merchant fee for one payment."""
    calc = calculate_fee(amount, payment_type, entry_method, app.config.fees)

    table = Table(title=f"Fee for {_money(amount)}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Fee Type", calc.fee_type.value)
    table.add_row("Rate", f"{calc.rate * 100:.2f}%")
    table.add_row("Fixed Fee", _money(calc.fixed_fee))
    table.add_row("Fee", _money(calc.fee))
    console.print(table)


@main.command("batch-fees")
@click.argument("payments_file", type=click.Path(exists=True, path_type=Path))
@pass_app
def batch_fees(app: AppContext, payments_file: Path):
    """
    Calculate fees for a payments export.

    PAYMENTS_FILE: CSV with amount, payment type and entry method columns
    """
    try:
        payments = PaymentParser(app.config.input.payments).parse_file(payments_file)
    except ReconciliationError as e:
        _fail(app, e)

    _display_fee_summary(calculate_batch_fees(payments, app.config.fees))


# Settlements


@main.command("import-settlements")
@click.argument("settlements_file", type=click.Path(exists=True, path_type=Path))
@pass_app
def import_settlements(app: AppContext, settlements_file: Path):
    """
    Import a processor settlement report.

    SETTLEMENTS_FILE: CSV export of settlements
    """
    if not app.tenant.is_authenticated:
        _fail(app, ReconciliationError("--user is required"))

    try:
        parser = SettlementParser(app.config.input.settlements)
        settlements = parser.parse_file(settlements_file, app.tenant.user_id)
        written = app.store.upsert_settlements(settlements)
    except ReconciliationError as e:
        _fail(app, e)

    console.print(f"[green]Imported {written} of {len(settlements)} settlements[/green]")


@main.command("import-bank")
@click.argument("statement_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--match/--no-match",
    default=True,
    help="Match income rows against unreconciled settlements",
)
@pass_app
def import_bank(app: AppContext, statement_file: Path, match: bool):
    """
    Import a bank statement and match deposits to settlements.

    STATEMENT_FILE: Starling CSV export
    """
    if not app.tenant.is_authenticated:
        _fail(app, ReconciliationError("--user is required"))

    try:
        parser = BankStatementParser(app.config.input.bank)
        transactions = parser.parse_file(statement_file, app.tenant.user_id)
        added = app.store.add_transactions(transactions)
    except ReconciliationError as e:
        _fail(app, e)

    console.print(
        f"[green]Imported {len(added)} new transactions ({len(transactions)} in file)[/green]"
    )
    if not match:
        return

    matcher = SettlementMatcher(app.store, app.config.settlements)
    reconciled = 0
    # Rows already stored were matched when first imported
    for deposit in parser.to_bank_deposits(added):
        result = matcher.find_settlement_matches(app.tenant, deposit)
        if result.auto_reconciled:
            reconciled += 1
            console.print(
                f"  {deposit.date} {_money(deposit.amount)} -> "
                f"settlement {result.reconciled_settlement_id}"
            )
    console.print(f"Auto-reconciled {reconciled} settlements")


@main.command("match-deposit")
@click.option("--id", "deposit_id", required=True, help="Bank transaction id")
@click.option("--amount", type=MONEY, required=True)
@click.option("--date", "deposit_date", type=click.DateTime(["%Y-%m-%d"]), required=True)
@click.option("--description", default=None)
@pass_app
def match_deposit(
    app: AppContext,
    deposit_id: str,
    amount: Decimal,
    deposit_date: datetime,
    description: Optional[str],
):
    """Find settlements for one bank deposit, auto-reconciling a unique match."""
    deposit = BankDeposit(
        id=deposit_id, amount=amount, date=deposit_date.date(), description=description
    )
    matcher = SettlementMatcher(app.store, app.config.settlements)
    result = matcher.find_settlement_matches(app.tenant, deposit)

    table = Table(title=f"Candidates for {deposit_id} ({_money(amount)})")
    table.add_column("Settlement")
    table.add_column("Date")
    table.add_column("Net", justify="right")
    table.add_column("Variance", justify="right")
    table.add_column("Transactions", justify="right")
    table.add_column("In Margin")
    for m in result.matches:
        table.add_row(
            m.settlement_id,
            str(m.settlement_date),
            _money(m.mb_net),
            _money(m.variance),
            str(m.transaction_count),
            "[green]yes[/green]" if m.within_margin else "no",
        )
    console.print(table)

    if result.auto_reconciled:
        console.print(f"[green]Auto-reconciled settlement {result.reconciled_settlement_id}[/green]")
    elif not result.matches:
        console.print("[yellow]No candidate settlements in the window[/yellow]")
    else:
        console.print("[yellow]No unique match, reconcile manually[/yellow]")


@main.command()
@click.argument("settlement_id")
@click.argument("bank_transaction_id")
@click.argument("bank_amount", type=MONEY)
@pass_app
def reconcile(app: AppContext, settlement_id: str, bank_transaction_id: str, bank_amount: Decimal):
    """Manually link a settlement to a bank deposit."""
    matcher = SettlementMatcher(app.store, app.config.settlements)
    result = matcher.manual_reconcile(app.tenant, settlement_id, bank_transaction_id, bank_amount)
    if not result.success:
        _fail(app, ReconciliationError(result.error))
    console.print(f"[green]Settlement {settlement_id} reconciled to {bank_transaction_id}[/green]")


@main.command()
@pass_app
def unreconciled(app: AppContext):
    """List settlements still waiting for a bank deposit."""
    summary = SettlementMatcher(app.store, app.config.settlements).get_unreconciled_settlements(
        app.tenant
    )

    table = Table(title="Unreconciled Settlements")
    table.add_column("Settlement")
    table.add_column("Date")
    table.add_column("Net", justify="right")
    table.add_column("Transactions", justify="right")
    for s in summary.settlements:
        table.add_row(s.settlement_id, str(s.settlement_date), _money(s.mb_net), str(s.transaction_count))
    console.print(table)
    console.print(f"\nTotal: {summary.total} settlements, {_money(summary.total_value)}")


@main.command()
@pass_app
def stats(app: AppContext):
    """Show reconciliation statistics."""
    result = SettlementMatcher(app.store, app.config.settlements).get_reconciliation_stats(
        app.tenant
    )

    table = Table(title="Reconciliation Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Reconciled", str(result.total_reconciled))
    table.add_row("Auto-reconciled", str(result.auto_reconciled_count))
    table.add_row("Manually reconciled", str(result.manual_reconciled_count))
    table.add_row("Unreconciled", str(result.total_unreconciled))
    table.add_row("Average Variance", _money(result.average_variance))
    console.print(table)


# Rules


@main.command("run-rules")
@click.option(
    "--include-confirmed", is_flag=True, help="Also evaluate transactions already confirmed"
)
@pass_app
def run_rules(app: AppContext, include_confirmed: bool):
    """Run active reconciliation rules against bank transactions."""
    try:
        result = RulesEngine(app.store, app.config.rules).run(app.tenant, include_confirmed)
    except ReconciliationError as e:
        _fail(app, e)

    console.print(
        f"Processed {result.processed} transactions: "
        f"[green]{result.matched} matched[/green], "
        f"{result.already_reconciled} already reconciled"
    )


@main.command()
@pass_app
def rules(app: AppContext):
    """List reconciliation rules in evaluation order."""
    try:
        rule_list = RulesEngine(app.store, app.config.rules).list_rules(app.tenant)
    except ReconciliationError as e:
        _fail(app, e)

    table = Table(title="Reconciliation Rules")
    table.add_column("Priority", justify="right")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Category")
    table.add_column("Active")
    table.add_column("Matches", justify="right")
    table.add_column("ID")
    for r in rule_list:
        table.add_row(
            str(r.priority),
            r.name,
            r.match_type.value,
            r.action_category_id or "-",
            "yes" if r.is_active else "no",
            str(r.match_count),
            r.id,
        )
    console.print(table)


@main.command("add-rule")
@click.argument("name")
@click.option(
    "-t",
    "--match-type",
    type=click.Choice([m.value for m in MatchType]),
    required=True,
)
@click.option("--category", "action_category_id", help="Category to suggest")
@click.option("--priority", type=int, default=None, help="Lower runs first")
@click.option("--counter-party", "match_counter_party_pattern")
@click.option("--pattern", "match_description_pattern", help="Reference text or regex")
@click.option("--vendor", "match_vendor_id")
@click.option("--staff", "match_staff_id")
@click.option("--min-amount", "match_amount_min", type=MONEY)
@click.option("--max-amount", "match_amount_max", type=MONEY)
@click.option(
    "--transaction-type",
    "match_transaction_type",
    type=click.Choice([t.value for t in TransactionType]),
)
@click.option("--notes", "action_notes_template")
@pass_app
def add_rule(app: AppContext, name: str, match_type: str, **options):
    """Create a reconciliation rule."""
    criteria = {k: v for k, v in options.items() if v is not None}
    if "match_transaction_type" in criteria:
        criteria["match_transaction_type"] = TransactionType(criteria["match_transaction_type"])

    engine = RulesEngine(app.store, app.config.rules)
    try:
        rule = engine.create_rule(app.tenant, name, MatchType(match_type), **criteria)
        preview = engine.preview_rule(app.tenant, rule)
    except ReconciliationError as e:
        _fail(app, e)

    console.print(f"[green]Created rule {rule.id}[/green]")
    console.print(f"Would match {preview.match_count} unreconciled transactions")


@main.command()
@click.option("--limit", type=int, default=20, show_default=True)
@pass_app
def suggest(app: AppContext, limit: int):
    """Ask the AI provider for categories for unreconciled transactions."""
    if not app.tenant.is_authenticated:
        _fail(app, ReconciliationError("--user is required"))

    provider = create_provider(app.config.ai)
    try:
        transactions = app.store.list_transactions(app.tenant.user_id, limit=limit)
    except ReconciliationError as e:
        _fail(app, e)

    table = Table(title="Suggested Categories")
    table.add_column("Date")
    table.add_column("Counter Party")
    table.add_column("Amount", justify="right")
    table.add_column("Bank Category")
    table.add_column("Suggestion")
    for txn in transactions:
        table.add_row(
            str(txn.date),
            txn.raw_party or "-",
            _money(txn.amount),
            txn.bank_category or "-",
            provider.categorize(
                f"{txn.raw_party or ''} {txn.description}".strip(), txn.amount, txn.type.value
            ),
        )
    console.print(table)


# Approval queue


@main.command()
@pass_app
def pending(app: AppContext):
    """List rule matches awaiting approval."""
    try:
        matches = ApprovalQueue(app.store).list_pending(app.tenant)
    except ReconciliationError as e:
        _fail(app, e)

    table = Table(title=f"Pending Matches ({len(matches)})")
    table.add_column("Match ID")
    table.add_column("Transaction")
    table.add_column("Rule")
    table.add_column("Category")
    table.add_column("Notes")
    for m in matches:
        table.add_row(
            m.id, m.transaction_id, m.rule_id, m.suggested_category_id or "-", m.suggested_notes or ""
        )
    console.print(table)


@main.command()
@click.argument("match_ids", nargs=-1, required=True)
@click.option("--category", help="Approve with this category instead of the suggestion")
@click.option("--notes", help="Notes to store with an edited approval")
@pass_app
def approve(app: AppContext, match_ids: tuple[str, ...], category: Optional[str], notes: Optional[str]):
    """Approve one or more pending matches."""
    queue = ApprovalQueue(app.store)
    try:
        if category:
            for match_id in match_ids:
                queue.approve_with_edit(app.tenant, match_id, category, notes)
            console.print(f"[green]Approved {len(match_ids)} matches[/green]")
            return
        result = queue.bulk_approve(app.tenant, list(match_ids))
    except ReconciliationError as e:
        _fail(app, e)

    _display_bulk_result("Approved", result)


@main.command()
@click.argument("match_ids", nargs=-1, required=True)
@pass_app
def reject(app: AppContext, match_ids: tuple[str, ...]):
    """Reject one or more pending matches."""
    try:
        result = ApprovalQueue(app.store).bulk_reject(app.tenant, list(match_ids))
    except ReconciliationError as e:
        _fail(app, e)

    _display_bulk_result("Rejected", result)


# Reporting and integrations


@main.command()
@click.option("-o", "--output", type=click.Path(path_type=Path), help="Output Excel file path")
@click.option(
    "--payments",
    type=click.Path(exists=True, path_type=Path),
    help="Payments CSV to include a fee breakdown",
)
@pass_app
def report(app: AppContext, output: Optional[Path], payments: Optional[Path]):
    """Generate an Excel reconciliation report."""
    if not app.tenant.is_authenticated:
        _fail(app, ReconciliationError("--user is required"))

    if output is None:
        now = datetime.now()
        output = Path(
            app.config.output.excel.filename_template.format(
                date=now.strftime("%Y%m%d"), time=now.strftime("%H%M%S")
            )
        )

    matcher = SettlementMatcher(app.store, app.config.settlements)
    try:
        fee_summary = None
        if payments:
            parsed = PaymentParser(app.config.input.payments).parse_file(payments)
            fee_summary = calculate_batch_fees(parsed, app.config.fees)

        report_path = ExcelReportGenerator(app.config).generate_report(
            user_id=app.tenant.user_id,
            stats=matcher.get_reconciliation_stats(app.tenant),
            settlements=app.store.list_settlements(app.tenant.user_id),
            pending_matches=ApprovalQueue(app.store).list_pending(app.tenant),
            output_path=output,
            fee_summary=fee_summary,
        )
    except ReconciliationError as e:
        _fail(app, e)

    console.print(f"\n[green]Report generated: {report_path}[/green]")


@main.command()
@click.argument("payload_file", type=click.Path(exists=True, path_type=Path))
@pass_app
def webhook(app: AppContext, payload_file: Path):
    """
    Process a membership platform webhook payload.

    PAYLOAD_FILE: JSON body as delivered by the platform
    """
    try:
        with open(payload_file, "r") as f:
            payload = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        _fail(app, e)

    recorder = ApiLogRecorder(app.store, app.config.webhooks.source)
    response = WebhookReceiver(app.store, recorder).handle(payload)
    console.print_json(data=response)


@main.command("init-config")
@click.option(
    "-o", "--output", type=click.Path(path_type=Path), default=Path("config.yaml")
)
def init_config(output: Path):
    """Generate a sample configuration file."""
    generate_default_config(output)
    console.print(f"[green]Configuration file generated: {output}[/green]")


def _display_fee_summary(summary: BatchFeeSummary) -> None:
    """Display batch fee totals in console."""
    table = Table(title="Fee Summary")
    table.add_column("Fee Type", style="cyan")
    table.add_column("Transactions", justify="right")
    table.add_column("Fees", justify="right")

    for fee_type, bucket in summary.breakdown.items():
        table.add_row(fee_type.value, str(bucket.count), _money(bucket.fees))
    table.add_row("fee-free", str(summary.skipped_count), _money(Decimal("0")))
    table.add_section()
    table.add_row("Percentage fees", "", _money(summary.total_percentage_fees))
    table.add_row("Fixed fees", "", _money(summary.total_fixed_fees))
    table.add_row("[bold]Total[/bold]", str(summary.charged_count), _money(summary.total_fees))

    console.print(table)


def _display_bulk_result(verb: str, result) -> None:
    colour = "green" if result.success else "yellow"
    console.print(f"[{colour}]{verb} {result.succeeded}, failed {result.failed}[/{colour}]")


if __name__ == "__main__":
    main()
