"""Ledger aggregation over sales, standalone credits, and payments.

Buyers are identified by exact ``buyer_name`` equality. Every aggregate in
this module replays the three collections in one fixed order: credit lines of
all sales, then all standalone credits, then all payments, each in collection
order. Money is rounded after every step, so this order is what makes
balances reproducible to the cent.

The functions are pure and cheap; callers recompute them whenever a
collection changes and treat each result as a point-in-time snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from . import log, models
from .currency import ZERO, add_currency, ensure_non_negative, format_bdt, subtract_currency


@dataclass(frozen=True)
class BuyerBalance:
    """Outstanding amount owed by one buyer."""

    name: str
    amount: Decimal


@dataclass(frozen=True)
class ConsistencyReport:
    """Advisory diagnostics over the ledger collections.

    The report never blocks a write. ``is_consistent`` is ``False`` when any
    error or negative-credit finding exists; warnings alone keep it ``True``.
    """

    is_consistent: bool
    warnings: Tuple[str, ...]
    errors: Tuple[str, ...]
    buyer_mismatches: Tuple[str, ...]
    negative_credits: Tuple[str, ...]
    duplicate_transactions: Tuple[str, ...]


@dataclass(frozen=True)
class DataSummary:
    """Ledger-wide totals used for debugging and dashboards."""

    total_sales_credit: Decimal
    total_standalone_credit: Decimal
    total_payments: Decimal
    net_outstanding: Decimal
    unique_buyers: int
    sale_count: int
    credit_count: int
    payment_count: int


@dataclass(frozen=True)
class _PaymentStep:
    payment: models.Payment
    prior_balance: Decimal
    unclamped_balance: Decimal


def _credit_grants(
    sales: Sequence[models.Sale],
    standalone_credits: Sequence[models.StandaloneCredit],
) -> Dict[str, Decimal]:
    balances: Dict[str, Decimal] = {}
    for sale in sales:
        if sale.credit_info.credit_amount > 0:
            current = balances.get(sale.buyer_name, ZERO)
            balances[sale.buyer_name] = add_currency(current, sale.credit_info.credit_amount)
    for credit in standalone_credits:
        current = balances.get(credit.buyer_name, ZERO)
        balances[credit.buyer_name] = add_currency(current, credit.credit_amount)
    return balances


def _replay_payments(
    balances: Dict[str, Decimal],
    payments: Sequence[models.Payment],
) -> Iterator[_PaymentStep]:
    """Apply payments to ``balances`` in order, yielding each step.

    ``balances`` is updated in place with the clamped value after each step.
    """

    for payment in payments:
        prior = balances.get(payment.buyer_name, ZERO)
        unclamped = subtract_currency(prior, payment.amount)
        balances[payment.buyer_name] = ensure_non_negative(unclamped)
        yield _PaymentStep(payment=payment, prior_balance=prior, unclamped_balance=unclamped)


def _buyer_names(
    sales: Sequence[models.Sale],
    standalone_credits: Sequence[models.StandaloneCredit],
    payments: Sequence[models.Payment],
) -> Iterator[str]:
    for sale in sales:
        yield sale.buyer_name
    for credit in standalone_credits:
        yield credit.buyer_name
    for payment in payments:
        yield payment.buyer_name


def all_buyers(
    sales: Sequence[models.Sale],
    standalone_credits: Sequence[models.StandaloneCredit],
    payments: Sequence[models.Payment],
) -> List[str]:
    """Return every distinct buyer name, sorted."""

    return sorted(set(_buyer_names(sales, standalone_credits, payments)))


def outstanding_credit(
    sales: Sequence[models.Sale],
    standalone_credits: Sequence[models.StandaloneCredit],
    payments: Sequence[models.Payment],
) -> Dict[str, Decimal]:
    """Compute the amount each buyer owes.

    Sale credit lines and standalone credits add to a buyer's balance;
    payments subtract from it and the result is clamped at zero, so an excess
    payment is absorbed rather than carried as credit in the buyer's favour.
    Buyers who only appear on payments are reported with a zero balance.

    Args:
        sales (Sequence[Sale]): Sales whose ``credit_info.credit_amount`` adds
            to the buyer's balance when positive.
        standalone_credits (Sequence[StandaloneCredit]): Credits granted
            outside of a sale.
        payments (Sequence[Payment]): Payments received.

    Returns:
        dict[str, Decimal]: Mapping of buyer name to a non-negative balance.
    """

    balances = _credit_grants(sales, standalone_credits)
    for _ in _replay_payments(balances, payments):
        pass
    return balances


def buyers_with_outstanding_credit(
    sales: Sequence[models.Sale],
    standalone_credits: Sequence[models.StandaloneCredit],
    payments: Sequence[models.Payment],
) -> List[BuyerBalance]:
    """List buyers who still owe money, sorted by name."""

    balances = outstanding_credit(sales, standalone_credits, payments)
    return [
        BuyerBalance(name=name, amount=amount)
        for name, amount in sorted(balances.items())
        if amount > 0
    ]


def consistency_report(
    sales: Sequence[models.Sale],
    standalone_credits: Sequence[models.StandaloneCredit],
    payments: Sequence[models.Payment],
    *,
    now: Optional[datetime] = None,
) -> ConsistencyReport:
    """Inspect the ledger for data that should be investigated.

    Findings:

    * negative credit: a payment larger than the buyer's running balance at
      the moment it is replayed;
    * buyer-name variations: names equal after ``lower().strip()`` but spelled
      differently;
    * duplicate IDs across all three collections;
    * orphaned payments: the buyer has no sale credit and no standalone credit;
    * records dated after ``now``.

    Args:
        sales (Sequence[Sale]): Recorded sales.
        standalone_credits (Sequence[StandaloneCredit]): Standalone credits.
        payments (Sequence[Payment]): Recorded payments.
        now (datetime | None): Evaluation instant for future-date checks.
            Defaults to the current UTC time.

    Returns:
        ConsistencyReport: Advisory bundle; it never prevents a write.
    """

    warnings: List[str] = []
    errors: List[str] = []
    buyer_mismatches: List[str] = []
    negative_credits: List[str] = []
    duplicate_transactions: List[str] = []

    balances = _credit_grants(sales, standalone_credits)
    for step in _replay_payments(balances, payments):
        if step.unclamped_balance < 0:
            negative_credits.append(
                f"{step.payment.buyer_name}: Payment of {format_bdt(step.payment.amount)} "
                f"exceeds credit balance of {format_bdt(step.prior_balance)}"
            )

    variations: Dict[str, Dict[str, None]] = {}
    for name in _buyer_names(sales, standalone_credits, payments):
        variations.setdefault(name.lower().strip(), {})[name] = None
    for key, spellings in variations.items():
        if len(spellings) > 1:
            buyer_mismatches.append(f'Potential name variations for "{key}": {", ".join(spellings)}')

    seen_ids: set[str] = set()
    duplicate_ids: Dict[str, None] = {}
    record_ids = [
        *(sale.id for sale in sales),
        *(credit.id for credit in standalone_credits),
        *(payment.id for payment in payments),
    ]
    for record_id in record_ids:
        if record_id in seen_ids:
            duplicate_ids[record_id] = None
        seen_ids.add(record_id)
    duplicate_transactions.extend(f"Duplicate transaction ID: {record_id}" for record_id in duplicate_ids)

    credited_buyers = {sale.buyer_name for sale in sales if sale.credit_info.credit_amount > 0}
    credited_buyers.update(credit.buyer_name for credit in standalone_credits)
    for payment in payments:
        if payment.buyer_name not in credited_buyers:
            warnings.append(
                f"Payment from {payment.buyer_name} ({format_bdt(payment.amount)}) "
                "has no corresponding credit record"
            )

    reference = models.parse_timestamp(now) if now is not None else models.now_utc()
    for record in (*sales, *standalone_credits, *payments):
        moment = models.parse_timestamp(record.date)
        if moment is not None and moment > reference:
            warnings.append(f"Future-dated transaction: {record.id} dated {moment:%d/%m/%Y}")

    if negative_credits:
        errors.append(f"{len(negative_credits)} payment(s) exceed available credit")
    if duplicate_transactions:
        errors.append(f"{len(duplicate_transactions)} duplicate transaction ID(s) found")
    if buyer_mismatches:
        warnings.append(f"{len(buyer_mismatches)} potential buyer name variation(s) detected")

    report = ConsistencyReport(
        is_consistent=not errors and not negative_credits,
        warnings=tuple(warnings),
        errors=tuple(errors),
        buyer_mismatches=tuple(buyer_mismatches),
        negative_credits=tuple(negative_credits),
        duplicate_transactions=tuple(duplicate_transactions),
    )
    if not report.is_consistent:
        log.warning("Ledger consistency check found %d error(s)", len(report.errors))
    return report


def data_summary(
    sales: Sequence[models.Sale],
    standalone_credits: Sequence[models.StandaloneCredit],
    payments: Sequence[models.Payment],
) -> DataSummary:
    """Summarise ledger totals; ``net_outstanding`` is not clamped."""

    total_sales_credit = ZERO
    for sale in sales:
        total_sales_credit = add_currency(total_sales_credit, sale.credit_info.credit_amount)
    total_standalone = ZERO
    for credit in standalone_credits:
        total_standalone = add_currency(total_standalone, credit.credit_amount)
    total_payments = ZERO
    for payment in payments:
        total_payments = add_currency(total_payments, payment.amount)

    return DataSummary(
        total_sales_credit=total_sales_credit,
        total_standalone_credit=total_standalone,
        total_payments=total_payments,
        net_outstanding=subtract_currency(add_currency(total_sales_credit, total_standalone), total_payments),
        unique_buyers=len(set(_buyer_names(sales, standalone_credits, payments))),
        sale_count=len(sales),
        credit_count=len(standalone_credits),
        payment_count=len(payments),
    )


__all__ = [
    "BuyerBalance",
    "ConsistencyReport",
    "DataSummary",
    "all_buyers",
    "outstanding_credit",
    "buyers_with_outstanding_credit",
    "consistency_report",
    "data_summary",
]
