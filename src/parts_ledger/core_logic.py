"""Business logic layer for the parts ledger.

This module orchestrates the workflows behind every user action: stocking
products, recording sales, granting standalone credit and receiving payments.
Each workflow validates its candidate records first and aborts with
:class:`ValidationFailed` before touching storage. It then writes through the
:class:`~parts_ledger.data_manager.LedgerGateway` and evicts the memoized
collections it changed.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from . import csv_io, data_manager, ledger, log, models, validators
from .buyers import BuyerDirectory
from .constants import EXPECTED_SCHEMA_VERSION, Collection, IdPrefix, SalesPeriod
from .currency import (
    ZERO,
    MoneyLike,
    add_currency,
    multiply_currency,
    round_to_currency,
    subtract_currency,
    to_decimal,
)


class BusinessRuleViolation(Exception):
    """Raised when a requested operation violates a domain constraint."""


class MissingReferenceError(BusinessRuleViolation):
    """Raised when a referenced product, sale, credit, or payment is unknown."""


class ValidationFailed(BusinessRuleViolation):
    """Raised when a candidate record fails validation; ``errors`` lists every rule broken."""

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors: Tuple[str, ...] = tuple(errors)
        super().__init__("; ".join(self.errors))


@dataclass(frozen=True)
class RuntimeContext:
    """Container for configuration and the storage gateway used by the BLL."""

    settings: data_manager.ConfigSettings
    gateway: data_manager.LedgerGateway
    _cache: Dict[str, Dict[str, Any]] = field(default_factory=dict, repr=False, compare=False)


@dataclass(frozen=True)
class SaleLine:
    """One requested line of a sale.

    ``selling_price`` overrides the product's list price for this sale when
    given.
    """

    product_id: str
    quantity: int
    selling_price: Optional[Decimal] = None


@dataclass(frozen=True)
class InventorySummary:
    """Stock totals over the products matching a filter."""

    products: Tuple[models.Product, ...]
    product_count: int
    total_quantity: int
    total_cost: Decimal
    total_value: Decimal
    total_profit: Decimal
    avg_cost_per_item: Decimal
    avg_value_per_item: Decimal


@dataclass(frozen=True)
class SalesPeriodSummary:
    """Sales totals for one calendar window ``[start, end)``."""

    period: SalesPeriod
    start: datetime
    end: datetime
    sale_count: int
    total_revenue: Decimal
    total_profit: Decimal
    credit_sale_count: int
    total_credit: Decimal
    avg_sale_value: Decimal


def _resolve_timestamp(candidate: Optional[datetime]) -> datetime:
    """Return ``candidate`` when provided, otherwise the current UTC datetime."""

    return candidate if candidate is not None else datetime.now(UTC)


def _require_valid(result: validators.ValidationResult, action: str) -> None:
    if not result.valid:
        log.warning("%s rejected: %s", action, "; ".join(result.errors))
        raise ValidationFailed(result.errors)


# ---------------------------------------------------------------------------
# Context and memoized collections
# ---------------------------------------------------------------------------


def _get_cache_bucket(context: RuntimeContext, name: str) -> Dict[str, Any]:
    """Return a mutable cache bucket dedicated to the supplied name.

    The business logic layer memoizes each collection it reads from the
    gateway, keyed by collection name, so repeated queries within one context
    do not hit the remote store again.

    Args:
        context (RuntimeContext): Runtime state carrying the shared cache
            dictionary.
        name (str): Logical bucket name to fetch or create.

    Returns:
        dict[str, Any]: Mutable mapping used to cache derived collections.
    """

    bucket = context._cache.get(name)
    if bucket is None:
        log.debug("Initializing cache bucket '%s'", name)
        bucket = {}
        context._cache[name] = bucket
    return bucket


def _invalidate_cache(context: RuntimeContext, *names: str) -> None:
    """Evict one or more cache buckets after a write.

    Missing buckets are ignored. The derived ``ledger`` bucket is evicted
    whenever any transaction collection is.
    """

    if not names:
        return

    ledger_inputs = {
        Collection.SALES.value,
        Collection.STANDALONE_CREDITS.value,
        Collection.PAYMENTS.value,
    }
    if ledger_inputs.intersection(names):
        names = (*names, "ledger")

    log.debug("Invalidating cache buckets: %s", ", ".join(names))

    for name in names:
        context._cache.pop(name, None)


def _ensure_collection_cache(context: RuntimeContext, collection: Collection) -> Dict[str, Any]:
    """Populate the bucket for ``collection`` on demand.

    Returns:
        dict[str, Any]: Bucket containing ``all`` records in collection order
            and a ``by_id`` lookup dictionary.
    """

    bucket = _get_cache_bucket(context, collection.value)
    if "all" not in bucket:
        records = context.gateway.list(collection)
        bucket["all"] = records
        bucket["by_id"] = {record.id: record for record in records}
        log.debug("Populated %s cache with %d entries", collection.value, len(records))
    return bucket


def _ensure_ledger_cache(context: RuntimeContext) -> Dict[str, Any]:
    bucket = _get_cache_bucket(context, "ledger")
    if "outstanding" not in bucket:
        bucket["outstanding"] = ledger.outstanding_credit(*_ledger_inputs(context))
    return bucket


def _ledger_inputs(
    context: RuntimeContext,
) -> Tuple[List[models.Sale], List[models.StandaloneCredit], List[models.Payment]]:
    return list_sales(context), list_standalone_credits(context), list_payments(context)


def _lookup(context: RuntimeContext, collection: Collection, record_id: str, label: str) -> Any:
    try:
        return _ensure_collection_cache(context, collection)["by_id"][record_id]
    except KeyError as exc:
        log.warning("%s lookup failed for id '%s'", label, record_id)
        raise MissingReferenceError(f"Unknown {label.lower()} id: {record_id}") from exc


def load_runtime_context(config_path: Optional[Path] = None) -> RuntimeContext:
    """Load configuration settings and build the storage gateway.

    Args:
        config_path (Path | None): Optional override path for the configuration
            file. When omitted the data layer performs its upward search from
            the current working directory.

    Returns:
        RuntimeContext: Context with an empty cache, ready for workflows.

    Raises:
        FileNotFoundError: If the configuration file cannot be located.
        KeyError: When mandatory configuration options are missing.
        ValueError: When a configured value is invalid.
    """
    located_config = data_manager.find_config_file(config_path)
    resolved_config = Path(located_config).expanduser().resolve()
    parser = data_manager.read_config(resolved_config)
    settings = data_manager.parse_settings(parser, base_path=resolved_config.parent)
    gateway = data_manager.build_gateway(settings)
    log.info(
        "Loaded runtime context for '%s' (%s backend)",
        settings.shop_name,
        settings.backend.value,
    )
    return RuntimeContext(settings=settings, gateway=gateway)


def ensure_schema_version(context: RuntimeContext) -> None:
    """Check that the configured schema version matches this release.

    Raises:
        RuntimeError: If ``config.ini`` declares a different version than
            ``EXPECTED_SCHEMA_VERSION``.
    """
    if context.settings.schema_version != EXPECTED_SCHEMA_VERSION:
        log.error(
            "Ledger schema mismatch: expected %s, found %s",
            EXPECTED_SCHEMA_VERSION,
            context.settings.schema_version,
        )
        raise RuntimeError(
            "Ledger schema mismatch: expected %s, found %s"
            % (EXPECTED_SCHEMA_VERSION, context.settings.schema_version)
        )

    log.debug("Schema version '%s' validated", context.settings.schema_version)


def sync(context: RuntimeContext) -> Dict[Collection, int]:
    """Push cached records to the remote store and drop memoized collections."""

    pushed = context.gateway.sync_to_remote()
    _invalidate_cache(context, *(collection.value for collection in Collection))
    return pushed


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def list_products(context: RuntimeContext) -> List[models.Product]:
    return list(_ensure_collection_cache(context, Collection.PRODUCTS)["all"])


def list_sales(context: RuntimeContext) -> List[models.Sale]:
    return list(_ensure_collection_cache(context, Collection.SALES)["all"])


def list_standalone_credits(context: RuntimeContext) -> List[models.StandaloneCredit]:
    return list(_ensure_collection_cache(context, Collection.STANDALONE_CREDITS)["all"])


def list_payments(context: RuntimeContext) -> List[models.Payment]:
    return list(_ensure_collection_cache(context, Collection.PAYMENTS)["all"])


def get_product(context: RuntimeContext, product_id: str) -> models.Product:
    """Resolve a product by identifier.

    Raises:
        MissingReferenceError: If ``product_id`` is unknown.
    """
    return _lookup(context, Collection.PRODUCTS, product_id, "Product")


def get_sale(context: RuntimeContext, sale_id: str) -> models.Sale:
    return _lookup(context, Collection.SALES, sale_id, "Sale")


def outstanding_for(context: RuntimeContext, buyer_name: str) -> Decimal:
    """Return what ``buyer_name`` currently owes (zero for unknown buyers)."""

    return _ensure_ledger_cache(context)["outstanding"].get(buyer_name, ZERO)


def all_buyers(context: RuntimeContext) -> List[str]:
    return ledger.all_buyers(*_ledger_inputs(context))


def buyers_with_outstanding_credit(context: RuntimeContext) -> List[ledger.BuyerBalance]:
    balances = _ensure_ledger_cache(context)["outstanding"]
    return [
        ledger.BuyerBalance(name=name, amount=amount)
        for name, amount in sorted(balances.items())
        if amount > 0
    ]


def consistency_report(context: RuntimeContext, *, now: Optional[datetime] = None) -> ledger.ConsistencyReport:
    return ledger.consistency_report(*_ledger_inputs(context), now=_resolve_timestamp(now))


def data_summary(context: RuntimeContext) -> ledger.DataSummary:
    return ledger.data_summary(*_ledger_inputs(context))


def buyer_directory(context: RuntimeContext) -> BuyerDirectory:
    return BuyerDirectory.from_transactions(*_ledger_inputs(context))


# ---------------------------------------------------------------------------
# Product economics
# ---------------------------------------------------------------------------


def actual_purchase_price(product: models.Product) -> Decimal:
    """Return the unit cost, preferring detailed pricing over the flat field.

    A zero ``final_purchase_price`` counts as absent.
    """

    pricing = product.pricing
    if pricing is not None and pricing.final_purchase_price:
        return round_to_currency(pricing.final_purchase_price)
    return round_to_currency(product.purchase_price)


def unit_profit(product: models.Product) -> Decimal:
    return subtract_currency(round_to_currency(product.selling_price), actual_purchase_price(product))


def inventory_value(product: models.Product) -> Decimal:
    """Cost of the units on hand."""

    return multiply_currency(actual_purchase_price(product), product.quantity)


def potential_profit(product: models.Product) -> Decimal:
    """Profit if every unit on hand sells at the list price."""

    return multiply_currency(unit_profit(product), product.quantity)


def summarize_inventory(products: Iterable[models.Product]) -> InventorySummary:
    """Aggregate stock totals for ``products``.

    ``total_value`` prices stock at the selling price; ``total_profit`` is the
    value less the cost.
    """

    selected = tuple(products)
    total_quantity = 0
    total_cost = ZERO
    total_value = ZERO
    for product in selected:
        total_quantity += product.quantity
        total_cost = add_currency(total_cost, inventory_value(product))
        total_value = add_currency(total_value, multiply_currency(product.selling_price, product.quantity))

    count = len(selected)
    return InventorySummary(
        products=selected,
        product_count=count,
        total_quantity=total_quantity,
        total_cost=total_cost,
        total_value=total_value,
        total_profit=subtract_currency(total_value, total_cost),
        avg_cost_per_item=round_to_currency(total_cost / count) if count else ZERO,
        avg_value_per_item=round_to_currency(total_value / count) if count else ZERO,
    )


def inventory_summary(
    context: RuntimeContext,
    *,
    category: Optional[str] = None,
    brand: Optional[str] = None,
    country: Optional[str] = None,
    vehicle_type: Optional[str] = None,
    search: Optional[str] = None,
) -> InventorySummary:
    """Summarise stock, optionally filtered.

    Filters match exactly; ``search`` matches a case-insensitive substring of
    the product name. ``None`` disables a filter.
    """

    needle = search.lower() if search else None
    selected = [
        product
        for product in list_products(context)
        if (category is None or product.category == category)
        and (brand is None or product.brand == brand)
        and (country is None or product.country == country)
        and (vehicle_type is None or product.type == vehicle_type)
        and (needle is None or needle in product.name.lower())
    ]
    return summarize_inventory(selected)


def period_bounds(period: SalesPeriod, now: datetime) -> Tuple[datetime, datetime]:
    """Return the ``[start, end)`` UTC window of ``period`` containing ``now``."""

    moment = models.parse_timestamp(now) or _resolve_timestamp(None)
    midnight = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    period = SalesPeriod(period)
    if period is SalesPeriod.DAY:
        return midnight, midnight + timedelta(days=1)
    if period is SalesPeriod.WEEK:
        start = midnight - timedelta(days=(midnight.weekday() + 1) % 7)
        return start, start + timedelta(days=7)
    if period is SalesPeriod.MONTH:
        start = midnight.replace(day=1)
        if start.month == 12:
            return start, start.replace(year=start.year + 1, month=1)
        return start, start.replace(month=start.month + 1)
    start = midnight.replace(month=1, day=1)
    return start, start.replace(year=start.year + 1)


def summarize_sales_period(
    sales: Iterable[models.Sale],
    period: SalesPeriod,
    now: Optional[datetime] = None,
) -> SalesPeriodSummary:
    """Total the sales dated inside the current ``period``.

    Sales with unparseable dates are left out. A credit sale is one with a
    non-zero credit portion.
    """

    start, end = period_bounds(period, _resolve_timestamp(now))
    selected = []
    for sale in sales:
        moment = models.parse_timestamp(sale.date)
        if moment is not None and start <= moment < end:
            selected.append(sale)

    total_revenue = total_profit = total_credit = ZERO
    credit_sale_count = 0
    for sale in selected:
        total_revenue = add_currency(total_revenue, sale.total_revenue)
        total_profit = add_currency(total_profit, sale.total_profit)
        if to_decimal(sale.credit_info.credit_amount) > 0:
            credit_sale_count += 1
            total_credit = add_currency(total_credit, sale.credit_info.credit_amount)

    count = len(selected)
    return SalesPeriodSummary(
        period=SalesPeriod(period),
        start=start,
        end=end,
        sale_count=count,
        total_revenue=total_revenue,
        total_profit=total_profit,
        credit_sale_count=credit_sale_count,
        total_credit=total_credit,
        avg_sale_value=round_to_currency(total_revenue / count) if count else ZERO,
    )


def sales_period_report(
    context: RuntimeContext,
    period: SalesPeriod,
    *,
    now: Optional[datetime] = None,
) -> SalesPeriodSummary:
    return summarize_sales_period(list_sales(context), period, now)


# ---------------------------------------------------------------------------
# Product workflows
# ---------------------------------------------------------------------------


def add_product(context: RuntimeContext, product: models.Product) -> models.Product:
    """Validate and persist a new product; an identifier is assigned when blank.

    Raises:
        ValidationFailed: If the product breaks a catalogue rule.
    """
    _require_valid(validators.validate_product(product), "Product")
    created = context.gateway.create(product)
    _invalidate_cache(context, Collection.PRODUCTS.value)
    log.info("Added product '%s' (%s)", created.name, created.id)
    return created


def update_product(context: RuntimeContext, product: models.Product) -> models.Product:
    """Validate and persist an edited product.

    Raises:
        MissingReferenceError: If no product has ``product.id``.
        ValidationFailed: If the edited product breaks a catalogue rule.
    """
    get_product(context, product.id)
    _require_valid(validators.validate_product(product), "Product update")
    context.gateway.update(product)
    _invalidate_cache(context, Collection.PRODUCTS.value)
    log.info("Updated product '%s' (%s)", product.name, product.id)
    return product


def delete_product(context: RuntimeContext, product_id: str) -> None:
    """Delete a product. Past sales keep their snapshot of it."""

    get_product(context, product_id)
    context.gateway.delete(Collection.PRODUCTS, product_id)
    _invalidate_cache(context, Collection.PRODUCTS.value)
    log.info("Deleted product '%s'", product_id)


def import_products(context: RuntimeContext, csv_path: Path) -> csv_io.ImportReport:
    """Import products from a CSV file.

    Valid rows are persisted together in one batch; invalid rows are reported
    and skipped.

    Returns:
        csv_io.ImportReport: Persisted products (with identifiers) and the
            rejected rows.

    Raises:
        FileNotFoundError: If ``csv_path`` does not exist.
        csv_io.CsvFormatError: If the header lacks a required column.
    """
    report = csv_io.read_products_csv(csv_path)
    gateway = context.gateway
    created = tuple(gateway.with_id(product) for product in report.imported)
    gateway.commit([gateway.mutation_for(data_manager.MutationKind.INSERT, product) for product in created])
    if created:
        _invalidate_cache(context, Collection.PRODUCTS.value)
    log.info(
        "Imported %d product(s) from '%s' (%d row(s) rejected)",
        len(created),
        csv_path,
        len(report.failures),
    )
    return csv_io.ImportReport(imported=created, failures=report.failures)


# ---------------------------------------------------------------------------
# Sales
# ---------------------------------------------------------------------------


def build_sale_items(products: Iterable[models.Product], lines: Sequence[SaleLine]) -> Tuple[models.SaleItem, ...]:
    """Snapshot each requested line against the current catalogue.

    The per-unit profit is the selling price less the product's actual
    purchase price. Lines naming an unknown product keep the raw identifier as
    their name and a zero profit, so validation can report them alongside any
    other problem.
    """

    catalogue = {product.id: product for product in products}
    items = []
    for line in lines:
        product = catalogue.get(line.product_id)
        if product is None:
            price = round_to_currency(line.selling_price) if line.selling_price is not None else ZERO
            items.append(models.SaleItem(line.product_id, line.product_id, line.quantity, ZERO, price))
            continue
        price = round_to_currency(line.selling_price if line.selling_price is not None else product.selling_price)
        items.append(
            models.SaleItem(
                product_id=product.id,
                product_name=product.name,
                quantity=line.quantity,
                profit=subtract_currency(price, actual_purchase_price(product)),
                selling_price=price,
            )
        )
    return tuple(items)


def record_sale(
    context: RuntimeContext,
    lines: Sequence[SaleLine],
    *,
    buyer_name: str,
    cash_amount: MoneyLike,
    credit_amount: MoneyLike = 0,
    timestamp: Optional[datetime] = None,
) -> models.Sale:
    """Validate and record a sale together with its stock decrements.

    The sale insert and every product quantity update are committed as one
    batch, so either all of them persist or none do. Stock is checked against
    each product's total across lines.

    Args:
        context (RuntimeContext): Runtime context providing storage and caches.
        lines (Sequence[SaleLine]): Requested lines.
        buyer_name (str): Buyer the sale (and any credit) is recorded against.
        cash_amount (MoneyLike): Cash received.
        credit_amount (MoneyLike): Amount extended on credit.
        timestamp (datetime | None): Sale time; defaults to now (UTC).

    Returns:
        models.Sale: The persisted sale.

    Raises:
        ValidationFailed: If the sale breaks any rule, including a payment
            split that does not add up to the sale's revenue.
    """
    products = list_products(context)
    items = build_sale_items(products, lines)

    total_revenue = ZERO
    total_profit = ZERO
    for item in items:
        total_revenue = add_currency(total_revenue, multiply_currency(item.selling_price, item.quantity))
        total_profit = add_currency(total_profit, multiply_currency(item.profit, item.quantity))

    cash = round_to_currency(to_decimal(cash_amount))
    credit = round_to_currency(to_decimal(credit_amount))
    credit_info = models.CreditInfo(
        cash_amount=cash,
        credit_amount=credit,
        total_amount=add_currency(cash, credit),
    )
    buyer = (buyer_name or "").strip()
    _require_valid(validators.validate_sale(items, buyer, credit_info, products), "Sale")

    when = _resolve_timestamp(timestamp)
    sale = models.Sale(
        id=models.generate_id(IdPrefix.SALE, when=when),
        date=models.format_timestamp(when),
        items=items,
        total_revenue=total_revenue,
        total_profit=total_profit,
        buyer_name=buyer,
        credit_info=credit_info,
    )

    sold: Dict[str, int] = {}
    for item in items:
        sold[item.product_id] = sold.get(item.product_id, 0) + item.quantity
    catalogue = {product.id: product for product in products}

    gateway = context.gateway
    mutations = [gateway.mutation_for(data_manager.MutationKind.INSERT, sale)]
    for product_id, quantity in sold.items():
        product = catalogue[product_id]
        remaining = max(0, product.quantity - quantity)
        mutations.append(gateway.mutation_for(data_manager.MutationKind.UPDATE, replace(product, quantity=remaining)))

    gateway.commit(mutations)
    _invalidate_cache(context, Collection.SALES.value, Collection.PRODUCTS.value)
    log.info(
        "Recorded sale '%s' for '%s' (revenue=%s, cash=%s, credit=%s)",
        sale.id,
        sale.buyer_name,
        sale.total_revenue,
        credit_info.cash_amount,
        credit_info.credit_amount,
    )
    return sale


def delete_sale(context: RuntimeContext, sale_id: str) -> None:
    """Delete a sale. Sold stock is not returned to inventory."""

    get_sale(context, sale_id)
    context.gateway.delete(Collection.SALES, sale_id)
    _invalidate_cache(context, Collection.SALES.value)
    log.info("Deleted sale '%s'", sale_id)


# ---------------------------------------------------------------------------
# Credit and payments
# ---------------------------------------------------------------------------


def add_standalone_credit(
    context: RuntimeContext,
    *,
    buyer_name: str,
    amount: MoneyLike,
    description: str,
    date: Optional[str] = None,
) -> models.StandaloneCredit:
    """Grant credit to a buyer outside of a sale.

    Args:
        context (RuntimeContext): Runtime context providing storage and caches.
        buyer_name (str): Buyer receiving the credit.
        amount (MoneyLike): Credit amount; must be positive.
        description (str): Reason for the credit.
        date (str | None): ISO date of the grant; defaults to now. Future dates
            are rejected.

    Raises:
        ValidationFailed: If any field is invalid.
    """
    now = _resolve_timestamp(None)
    credit = models.StandaloneCredit(
        id="",
        buyer_name=(buyer_name or "").strip(),
        credit_amount=round_to_currency(to_decimal(amount)),
        description=(description or "").strip(),
        date=date or models.format_timestamp(now),
    )
    _require_valid(validators.validate_standalone_credit(credit, now=now), "Standalone credit")
    created = context.gateway.create(credit)
    _invalidate_cache(context, Collection.STANDALONE_CREDITS.value)
    log.info("Added standalone credit '%s' for '%s' (%s)", created.id, created.buyer_name, created.credit_amount)
    return created


def delete_standalone_credit(context: RuntimeContext, credit_id: str) -> None:
    _lookup(context, Collection.STANDALONE_CREDITS, credit_id, "Credit")
    context.gateway.delete(Collection.STANDALONE_CREDITS, credit_id)
    _invalidate_cache(context, Collection.STANDALONE_CREDITS.value)
    log.info("Deleted standalone credit '%s'", credit_id)


def add_payment(
    context: RuntimeContext,
    *,
    buyer_name: str,
    amount: MoneyLike,
    date: Optional[str] = None,
    description: Optional[str] = None,
    sale_id: Optional[str] = None,
    credit_id: Optional[str] = None,
) -> models.Payment:
    """Record a payment against a buyer's outstanding credit.

    The payment may not exceed what the buyer currently owes.

    Raises:
        ValidationFailed: If the payment is invalid or exceeds the balance.
    """
    now = _resolve_timestamp(None)
    payment = models.Payment(
        id="",
        buyer_name=(buyer_name or "").strip(),
        amount=round_to_currency(to_decimal(amount)),
        date=date or models.format_timestamp(now),
        description=description or None,
        sale_id=sale_id,
        credit_id=credit_id,
    )
    available = outstanding_for(context, payment.buyer_name)
    _require_valid(validators.validate_payment(payment, available, now=now), "Payment")
    created = context.gateway.create(payment)
    _invalidate_cache(context, Collection.PAYMENTS.value)
    log.info("Recorded payment '%s' from '%s' (%s)", created.id, created.buyer_name, created.amount)
    return created


def delete_payment(context: RuntimeContext, payment_id: str) -> None:
    _lookup(context, Collection.PAYMENTS, payment_id, "Payment")
    context.gateway.delete(Collection.PAYMENTS, payment_id)
    _invalidate_cache(context, Collection.PAYMENTS.value)
    log.info("Deleted payment '%s'", payment_id)
