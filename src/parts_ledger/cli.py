"""Command-line entry points for the parts ledger.

All orchestration in this module is limited to argparse wiring, translating
command-line arguments into the inputs consumed by the business layer, and
printing results. Keeping the CLI thin ensures the same parser configuration
can be reused by tests or by any alternative front-end.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass, replace
from datetime import timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Mapping, MutableMapping, Optional, Sequence

from . import core_logic, csv_io, log, models
from .constants import BASE_CURRENCY, Country, PurchaseCurrency, SalesPeriod, VehicleType
from .currency import format_bdt, to_decimal


@dataclass(frozen=True)
class CommandSpec:
    """Describe how a CLI sub-command is configured and executed."""

    name: str
    help_text: str
    register: Callable[[argparse._SubParsersAction[argparse.ArgumentParser]], argparse.ArgumentParser]
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int]


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="parts-ledger",
        description="Command-line tools for the auto-parts inventory and credit ledger.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to config.ini (searched upward from the working directory by default).",
    )
    return parser


def configure_subcommands(
    parser: argparse.ArgumentParser,
) -> Mapping[str, CommandSpec]:
    """Wire all CLI sub-commands onto the supplied parser."""
    subparsers = parser.add_subparsers(dest="command", required=True, title="commands")
    write_specs = register_write_commands(subparsers)
    read_specs = register_read_commands(subparsers)
    return build_command_table([*write_specs.values(), *read_specs.values()])


def register_write_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare mutating CLI commands such as sales and payments."""
    specs = {
        "add-product": register_add_product_command(subparsers),
        "update-product": register_update_product_command(subparsers),
        "delete-product": register_delete_command(
            "delete-product", "Delete a product.", "--product-id", run_delete_product
        ),
        "sale": register_sale_command(subparsers),
        "delete-sale": register_delete_command(
            "delete-sale", "Delete a sale (stock is not restored).", "--sale-id", run_delete_sale
        ),
        "add-credit": register_add_credit_command(subparsers),
        "delete-credit": register_delete_command(
            "delete-credit", "Delete a standalone credit.", "--credit-id", run_delete_credit
        ),
        "pay": register_pay_command(subparsers),
        "delete-payment": register_delete_command(
            "delete-payment", "Delete a payment.", "--payment-id", run_delete_payment
        ),
        "import-csv": register_import_csv_command(subparsers),
        "sync": register_simple_command("sync", "Push locally cached records to the remote store.", run_sync),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_read_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare read-only CLI commands such as reports and exports."""
    specs = {
        "stock": register_stock_command(subparsers),
        "buyers": register_buyers_command(subparsers),
        "debts": register_debts_command(subparsers),
        "consistency": register_simple_command(
            "consistency", "Check the ledger for inconsistent records.", run_consistency_report
        ),
        "summary": register_simple_command("summary", "Display ledger totals.", run_summary_report),
        "export-csv": register_output_command(
            "export-csv", "Export products in the import CSV format.", run_export_products
        ),
        "export-sales": register_output_command("export-sales", "Export sales as CSV.", run_export_sales),
        "sales-report": register_sales_report_command(subparsers),
        "monthly-summary": register_monthly_summary_command(subparsers),
        "csv-template": register_output_command(
            "csv-template", "Write a product import template.", run_csv_template
        ),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def _add_product_fields(parser: argparse.ArgumentParser, *, required: bool) -> None:
    parser.add_argument("--name", required=required)
    parser.add_argument("--type", dest="vehicle_type", required=required, help=_choices_help(VehicleType))
    parser.add_argument("--category", required=required)
    parser.add_argument("--brand", required=required)
    parser.add_argument("--country", required=required, help=_choices_help(Country))
    parser.add_argument("--purchase-price", required=False)
    parser.add_argument("--selling-price", required=required)
    parser.add_argument("--quantity", type=int, required=required)
    pricing = parser.add_argument_group("detailed pricing")
    pricing.add_argument("--original-amount", help="Unit cost in the purchase currency.")
    pricing.add_argument(
        "--currency",
        default=None,
        choices=[currency.value for currency in PurchaseCurrency],
        help=f"Purchase currency (default: {BASE_CURRENCY}).",
    )
    pricing.add_argument("--exchange-rate", help="Taka per unit of the purchase currency.")
    pricing.add_argument("--duty", help="Import duty per unit in Taka.")


def _choices_help(enum_type: Iterable[Any]) -> str:
    return "One of: " + ", ".join(member.value for member in enum_type)


def register_add_product_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-product``."""
    name = "add-product"
    help_text = "Add a product to the catalogue."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        _add_product_fields(parser, required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_product)


def register_update_product_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``update-product``."""
    name = "update-product"
    help_text = "Edit a product; omitted fields keep their current value."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product-id", required=True)
        _add_product_fields(parser, required=False)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_update_product)


def register_delete_command(
    name: str,
    help_text: str,
    id_flag: str,
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int],
) -> CommandSpec:
    """Build a spec for a ``delete-*`` command taking one identifier flag."""

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument(id_flag, dest="record_id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=execute)


def register_simple_command(
    name: str,
    help_text: str,
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int],
) -> CommandSpec:
    """Build a spec for a command that takes no arguments."""

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=execute)


def register_output_command(
    name: str,
    help_text: str,
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int],
) -> CommandSpec:
    """Build a spec for a command writing a single output file."""

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--output", type=Path, required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=execute)


def parse_sale_line(raw: str) -> core_logic.SaleLine:
    """Parse ``PRODUCT_ID:QTY[:PRICE]`` into a :class:`core_logic.SaleLine`."""
    parts = raw.split(":")
    if len(parts) not in (2, 3) or not parts[0]:
        raise argparse.ArgumentTypeError(f"Expected PRODUCT_ID:QTY[:PRICE], got '{raw}'")
    try:
        quantity = int(parts[1])
        price = to_decimal(parts[2]) if len(parts) == 3 else None
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid sale item '{raw}': {exc}") from exc
    return core_logic.SaleLine(product_id=parts[0], quantity=quantity, selling_price=price)


def register_sale_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``sale``."""
    name = "sale"
    help_text = "Record a sale with a cash/credit split."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument(
            "--item",
            dest="items",
            action="append",
            type=parse_sale_line,
            required=True,
            metavar="PRODUCT_ID:QTY[:PRICE]",
            help="Sale line; repeat for several products.",
        )
        parser.add_argument("--buyer", required=True)
        parser.add_argument("--cash", default="0")
        parser.add_argument("--credit", default="0")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_sale)


def register_add_credit_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-credit``."""
    name = "add-credit"
    help_text = "Grant credit to a buyer outside of a sale."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--buyer", required=True)
        parser.add_argument("--amount", required=True)
        parser.add_argument("--description", required=True)
        parser.add_argument("--date", help="ISO date; defaults to now.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_credit)


def register_pay_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``pay``."""
    name = "pay"
    help_text = "Record a payment against a buyer's outstanding credit."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--buyer", required=True)
        parser.add_argument("--amount", required=True)
        parser.add_argument("--date", help="ISO date; defaults to now.")
        parser.add_argument("--description")
        parser.add_argument("--sale-id")
        parser.add_argument("--credit-id")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_pay)


def register_import_csv_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``import-csv``."""
    name = "import-csv"
    help_text = "Import products from a CSV file."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("path", type=Path)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_import_csv)


def register_stock_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``stock``."""
    name = "stock"
    help_text = "Display stock levels and inventory value."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--category")
        parser.add_argument("--brand")
        parser.add_argument("--country")
        parser.add_argument("--type", dest="vehicle_type")
        parser.add_argument("--search", help="Case-insensitive product name filter.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_stock_report)


def register_buyers_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``buyers``."""
    name = "buyers"
    help_text = "List known buyers and their spellings."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_buyers_report)


def register_debts_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``debts``."""
    name = "debts"
    help_text = "Display outstanding credit balances."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument(
            "--merge-aliases",
            action="store_true",
            help="Combine balances of buyer names that differ only in case or spacing.",
        )
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_debts_report)


def register_sales_report_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``sales-report``."""
    name = "sales-report"
    help_text = "Display sales totals for the current day, week, month, or year."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument(
            "--period",
            choices=[period.value for period in SalesPeriod],
            default=SalesPeriod.MONTH.value,
            help="Calendar window to report; weeks start on Sunday.",
        )
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_sales_report)


def register_monthly_summary_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``monthly-summary``."""
    name = "monthly-summary"
    help_text = "Write a monthly sales summary CSV with a daily breakdown."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--year", type=int, required=True)
        parser.add_argument("--month", type=int, required=True, help="1 to 12")
        parser.add_argument("--output", type=Path, required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_monthly_summary)


def load_runtime_context(config_path: Optional[Path] = None) -> core_logic.RuntimeContext:
    """Resolve the runtime context for CLI operations and check its schema version."""
    context = core_logic.load_runtime_context(Path(config_path) if config_path is not None else None)
    core_logic.ensure_schema_version(context)
    return context


def dispatch_command(
    context: core_logic.RuntimeContext,
    args: argparse.Namespace,
    command_table: Mapping[str, CommandSpec],
) -> int:
    """Dispatch the parsed arguments to the configured executor."""
    if not hasattr(args, "command") or args.command is None:
        raise KeyError("No command specified")
    spec = command_table.get(args.command)
    if spec is None:
        raise KeyError(f"Unknown command: {args.command}")
    return spec.execute(context, args)


def build_command_table(
    specs: Iterable[CommandSpec],
) -> MutableMapping[str, CommandSpec]:
    """Build an index of command specifications keyed by command name."""
    table: Dict[str, CommandSpec] = {}
    for spec in specs:
        if spec.name in table:
            raise ValueError(f"Duplicate command name: {spec.name}")
        table[spec.name] = spec
    return table


def _optional_money(raw: Optional[str]) -> Optional[Decimal]:
    return None if raw is None else to_decimal(raw)


def translate_pricing(args: argparse.Namespace) -> Optional[models.PurchasePricing]:
    """Build detailed pricing when ``--original-amount`` is given."""
    if args.original_amount is None:
        return None
    return models.PurchasePricing.build(
        to_decimal(args.original_amount),
        currency=args.currency or BASE_CURRENCY,
        exchange_rate=_optional_money(args.exchange_rate),
        duty_per_unit=to_decimal(args.duty) if args.duty is not None else Decimal("0"),
    )


def translate_add_product(args: argparse.Namespace) -> models.Product:
    """Translate CLI args into a new product.

    Without an explicit ``--purchase-price`` the flat price mirrors the final
    price of the detailed pricing.
    """
    pricing = translate_pricing(args)
    purchase_price = _optional_money(args.purchase_price)
    if purchase_price is None:
        purchase_price = pricing.final_purchase_price if pricing is not None else Decimal("0")
    return models.Product(
        id="",
        name=args.name.strip(),
        type=args.vehicle_type,
        category=args.category,
        brand=args.brand,
        country=args.country,
        purchase_price=purchase_price,
        selling_price=to_decimal(args.selling_price),
        quantity=args.quantity,
        pricing=pricing,
    )


def translate_update_product(args: argparse.Namespace, current: models.Product) -> models.Product:
    """Overlay the supplied CLI fields onto ``current``."""
    changes: Dict[str, Any] = {}
    for attribute, value in (
        ("name", args.name),
        ("type", args.vehicle_type),
        ("category", args.category),
        ("brand", args.brand),
        ("country", args.country),
        ("quantity", args.quantity),
    ):
        if value is not None:
            changes[attribute] = value
    if args.purchase_price is not None:
        changes["purchase_price"] = to_decimal(args.purchase_price)
    if args.selling_price is not None:
        changes["selling_price"] = to_decimal(args.selling_price)
    pricing = translate_pricing(args)
    if pricing is not None:
        changes["pricing"] = pricing
        changes.setdefault("purchase_price", pricing.final_purchase_price)
    return replace(current, **changes)


def run_add_product(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the add-product workflow in the BLL."""
    product = core_logic.add_product(context, translate_add_product(args))
    print(f"Added product {product.id}: {product.name}")
    return 0


def run_update_product(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the update-product workflow in the BLL."""
    current = core_logic.get_product(context, args.product_id)
    product = core_logic.update_product(context, translate_update_product(args, current))
    print(f"Updated product {product.id}: {product.name}")
    return 0


def run_delete_product(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.delete_product(context, args.record_id)
    print(f"Deleted product {args.record_id}")
    return 0


def run_sale(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the sale workflow via the BLL."""
    sale = core_logic.record_sale(
        context,
        args.items,
        buyer_name=args.buyer,
        cash_amount=to_decimal(args.cash),
        credit_amount=to_decimal(args.credit),
    )
    print(
        f"Recorded sale {sale.id} for {sale.buyer_name}: {format_bdt(sale.total_revenue)} "
        f"(cash {format_bdt(sale.credit_info.cash_amount)}, credit {format_bdt(sale.credit_info.credit_amount)})"
    )
    return 0


def run_delete_sale(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.delete_sale(context, args.record_id)
    print(f"Deleted sale {args.record_id}")
    return 0


def run_add_credit(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the standalone credit workflow via the BLL."""
    credit = core_logic.add_standalone_credit(
        context,
        buyer_name=args.buyer,
        amount=to_decimal(args.amount),
        description=args.description,
        date=args.date,
    )
    print(f"Added credit {credit.id} for {credit.buyer_name}: {format_bdt(credit.credit_amount)}")
    return 0


def run_delete_credit(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.delete_standalone_credit(context, args.record_id)
    print(f"Deleted credit {args.record_id}")
    return 0


def run_pay(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the payment workflow via the BLL."""
    payment = core_logic.add_payment(
        context,
        buyer_name=args.buyer,
        amount=to_decimal(args.amount),
        date=args.date,
        description=args.description,
        sale_id=args.sale_id,
        credit_id=args.credit_id,
    )
    remaining = core_logic.outstanding_for(context, payment.buyer_name)
    print(
        f"Recorded payment {payment.id} from {payment.buyer_name}: {format_bdt(payment.amount)} "
        f"(outstanding {format_bdt(remaining)})"
    )
    return 0


def run_delete_payment(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.delete_payment(context, args.record_id)
    print(f"Deleted payment {args.record_id}")
    return 0


def run_import_csv(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Import products and report rejected rows; exit 2 when any row failed."""
    report = core_logic.import_products(context, args.path)
    print(f"Imported {len(report.imported)} product(s)")
    for failure in report.failures:
        print(f"Row {failure.row_number}: {'; '.join(failure.errors)}")
    return 2 if report.failures else 0


def run_sync(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    pushed = core_logic.sync(context)
    for collection, count in pushed.items():
        print(f"{collection.value}: {count}")
    return 0


def run_stock_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print each matching product followed by the inventory totals."""
    summary = core_logic.inventory_summary(
        context,
        category=args.category,
        brand=args.brand,
        country=args.country,
        vehicle_type=args.vehicle_type,
        search=args.search,
    )
    for product in summary.products:
        print(
            f"{product.id}  {product.name}  [{product.type} / {product.category} / {product.brand} / "
            f"{product.country}]  qty={product.quantity}  cost={format_bdt(core_logic.actual_purchase_price(product))}"
            f"  price={format_bdt(product.selling_price)}  stock cost={format_bdt(core_logic.inventory_value(product))}"
        )
    print(
        f"Products: {summary.product_count}  Units: {summary.total_quantity}  "
        f"Cost: {format_bdt(summary.total_cost)}  Value: {format_bdt(summary.total_value)}  "
        f"Potential profit: {format_bdt(summary.total_profit)}"
    )
    return 0


def run_buyers_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    for buyer in core_logic.buyer_directory(context):
        aliases = ", ".join(alias for alias in buyer.aliases if alias != buyer.canonical_name)
        suffix = f"  (also: {aliases})" if aliases else ""
        print(f"{buyer.buyer_id}  {buyer.canonical_name}{suffix}")
    return 0


def run_debts_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print buyers who owe money, optionally merged across spellings."""
    if args.merge_aliases:
        directory = core_logic.buyer_directory(context)
        merged = directory.merged_outstanding_credit(
            core_logic.list_sales(context),
            core_logic.list_standalone_credits(context),
            core_logic.list_payments(context),
        )
        rows = [(name, amount) for name, amount in sorted(merged.items()) if amount > 0]
    else:
        rows = [(balance.name, balance.amount) for balance in core_logic.buyers_with_outstanding_credit(context)]

    for name, amount in rows:
        print(f"{name}: {format_bdt(amount)}")
    if not rows:
        print("No outstanding credit.")
    return 0


def run_consistency_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print the consistency report; exit 2 when it found errors."""
    report = core_logic.consistency_report(context)
    for label, messages in (
        ("ERROR", report.errors),
        ("NEGATIVE", report.negative_credits),
        ("DUPLICATE", report.duplicate_transactions),
        ("NAME", report.buyer_mismatches),
        ("WARNING", report.warnings),
    ):
        for message in messages:
            print(f"[{label}] {message}")
    print("Ledger is consistent." if report.is_consistent else "Ledger has inconsistencies.")
    return 0 if report.is_consistent else 2


def run_summary_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    summary = core_logic.data_summary(context)
    print(f"Sales: {summary.sale_count}  Credits: {summary.credit_count}  Payments: {summary.payment_count}")
    print(f"Buyers: {summary.unique_buyers}")
    print(f"Sale credit: {format_bdt(summary.total_sales_credit)}")
    print(f"Standalone credit: {format_bdt(summary.total_standalone_credit)}")
    print(f"Payments: {format_bdt(summary.total_payments)}")
    print(f"Net outstanding: {format_bdt(summary.net_outstanding)}")
    return 0


def run_sales_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    report = core_logic.sales_period_report(context, SalesPeriod(args.period))
    last_day = report.end - timedelta(days=1)
    print(f"Period: {report.period.value} ({report.start:%d/%m/%Y} - {last_day:%d/%m/%Y})")
    print(f"Sales: {report.sale_count}  Credit sales: {report.credit_sale_count}")
    print(f"Revenue: {format_bdt(report.total_revenue)}  Profit: {format_bdt(report.total_profit)}")
    print(f"Credit given: {format_bdt(report.total_credit)}  Average sale: {format_bdt(report.avg_sale_value)}")
    return 0


def run_export_products(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    path = csv_io.write_text(args.output, csv_io.products_to_csv(core_logic.list_products(context)))
    print(f"Wrote {path}")
    return 0


def run_export_sales(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    path = csv_io.write_text(args.output, csv_io.sales_to_csv(core_logic.list_sales(context)))
    print(f"Wrote {path}")
    return 0


def run_monthly_summary(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    content = csv_io.monthly_summary_csv(core_logic.list_sales(context), args.year, args.month)
    path = csv_io.write_text(args.output, content)
    print(f"Wrote {path}")
    return 0


def run_csv_template(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    path = csv_io.write_text(args.output, csv_io.generate_template())
    print(f"Wrote {path}")
    return 0


def handle_cli_error(error: Exception) -> int:
    """Convert raised exceptions into user-friendly exit codes."""
    if isinstance(error, core_logic.ValidationFailed):
        for message in error.errors:
            log.error("%s", message)
        return 2
    if isinstance(error, core_logic.BusinessRuleViolation):
        log.error("%s", error)
        return 2
    if isinstance(error, FileNotFoundError):
        log.error("%s", error)
        return 3
    log.error("%s", error)
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point that orchestrates parsing and execution."""
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    try:
        context = load_runtime_context(getattr(args, "config", None))
        return dispatch_command(context, args, command_table)
    except Exception as error:  # pragma: no cover - centralised error handler tested separately
        return handle_cli_error(error)
