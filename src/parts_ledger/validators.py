"""Business-rule validation for candidate records.

Every function here is pure: it inspects a candidate record and returns a
:class:`ValidationResult` listing *all* violated rules rather than stopping at
the first. Validators never raise for bad input; callers check ``valid`` and
abort before any persistence call when it is ``False``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from . import models
from .currency import (
    MoneyLike,
    currency_equals,
    round_to_currency,
    safe_parse_int,
    safe_parse_money,
)


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a validation pass."""

    valid: bool
    errors: Tuple[str, ...] = ()

    @classmethod
    def from_errors(cls, errors: Sequence[str]) -> "ValidationResult":
        return cls(valid=not errors, errors=tuple(errors))


def _is_blank(value: Any) -> bool:
    return value is None or not str(value).strip()


def _check_date(raw: Any, label: str, now: Optional[datetime], errors: List[str]) -> None:
    if _is_blank(raw):
        errors.append("Date is required")
        return
    parsed = models.parse_timestamp(raw)
    if parsed is None:
        errors.append("Invalid date format")
        return
    reference = models.parse_timestamp(now) if now is not None else models.now_utc()
    if parsed > reference:
        errors.append(f"{label} date cannot be in the future")


def validate_product(product: models.Product) -> ValidationResult:
    """Check a product (new or edited) against the catalogue rules.

    When detailed pricing is present, the stored final purchase price must
    match ``original * (rate or 1) + duty`` within half a cent.
    """

    errors: List[str] = []

    if _is_blank(product.name):
        errors.append("Product name is required")
    if not product.type:
        errors.append("Product type is required")
    if not product.category:
        errors.append("Product category is required")
    if not product.brand:
        errors.append("Product brand is required")
    if not product.country:
        errors.append("Product country is required")

    if safe_parse_money(product.purchase_price) <= 0:
        errors.append("Purchase price must be greater than 0")
    if safe_parse_money(product.selling_price) <= 0:
        errors.append("Selling price must be greater than 0")
    if safe_parse_int(product.quantity) < 0:
        errors.append("Quantity cannot be negative")

    pricing = product.pricing
    if pricing is not None:
        original_amount = safe_parse_money(pricing.original_amount)
        if original_amount <= 0:
            errors.append("Original amount in pricing must be greater than 0")

        if pricing.exchange_rate is not None and safe_parse_money(pricing.exchange_rate) <= 0:
            errors.append("Exchange rate must be greater than 0")

        duty_per_unit = safe_parse_money(pricing.duty_per_unit)
        if duty_per_unit < 0:
            errors.append("Duty per unit cannot be negative")

        final_price = safe_parse_money(pricing.final_purchase_price)
        if final_price <= 0:
            errors.append("Final purchase price must be greater than 0")

        rate = safe_parse_money(pricing.exchange_rate) if pricing.exchange_rate is not None else None
        try:
            expected: Optional[Decimal] = models.compute_final_purchase_price(
                original_amount, rate, duty_per_unit
            )
        except ValueError:
            expected = None
        if expected is None or not currency_equals(final_price, expected):
            errors.append("Final purchase price calculation is inconsistent")

    return ValidationResult.from_errors(errors)


def validate_sale(
    items: Sequence[models.SaleItem],
    buyer_name: str,
    credit_info: models.CreditInfo,
    available_products: Iterable[models.Product],
) -> ValidationResult:
    """Check a prospective sale against stock levels and the payment split.

    Args:
        items (Sequence[SaleItem]): Lines being sold, with price and profit
            snapshots.
        buyer_name (str): Free-text buyer the sale is recorded against.
        credit_info (CreditInfo): Cash/credit split of the payment.
        available_products (Iterable[Product]): Current catalogue used to
            resolve each line and check stock.

    Returns:
        ValidationResult: Result listing every failed rule. The central rule is
            that the payment total equals both ``cash + credit`` and the sum of
            line revenues.
    """

    errors: List[str] = []
    catalogue = {product.id: product for product in available_products}

    if _is_blank(buyer_name):
        errors.append("Buyer name is required")
    if not items:
        errors.append("At least one sale item is required")

    # Stock is checked against the total requested per product, not per line.
    requested: Dict[str, int] = {}
    for item in items or ():
        quantity = safe_parse_int(item.quantity)
        if quantity > 0:
            requested[item.product_id] = requested.get(item.product_id, 0) + quantity
    stock_checked: Set[str] = set()

    for index, item in enumerate(items or (), start=1):
        product = catalogue.get(item.product_id)
        if product is None:
            errors.append(f"Product not found for item {index}: {item.product_name}")
            continue

        quantity = safe_parse_int(item.quantity)
        if quantity <= 0:
            errors.append(f"Invalid quantity for {item.product_name}: must be greater than 0")
        if item.product_id not in stock_checked:
            stock_checked.add(item.product_id)
            total_requested = requested.get(item.product_id, 0)
            if total_requested > product.quantity:
                errors.append(
                    f"Insufficient inventory for {item.product_name}: "
                    f"requested {total_requested}, available {product.quantity}"
                )

        selling_price = safe_parse_money(item.selling_price)
        if selling_price <= 0:
            errors.append(f"Invalid selling price for {item.product_name}: must be greater than 0")

        # A loss may not exceed the line's own revenue.
        if safe_parse_money(item.profit) < -selling_price:
            errors.append(
                f"Unreasonable loss for {item.product_name}: profit cannot be less than -{selling_price}"
            )

    cash_amount = safe_parse_money(credit_info.cash_amount)
    credit_amount = safe_parse_money(credit_info.credit_amount)
    total_amount = safe_parse_money(credit_info.total_amount)

    if cash_amount < 0:
        errors.append("Cash amount cannot be negative")
    if credit_amount < 0:
        errors.append("Credit amount cannot be negative")

    if not currency_equals(total_amount, round_to_currency(safe_parse_money(cash_amount + credit_amount))):
        errors.append("Total amount does not match cash + credit amounts")

    # An out-of-range revenue total parses as zero.
    total_revenue = round_to_currency(
        safe_parse_money(
            sum(
                (safe_parse_money(item.selling_price) * safe_parse_int(item.quantity) for item in items or ()),
                Decimal("0"),
            )
        )
    )
    if not currency_equals(total_amount, total_revenue):
        errors.append("Total payment must equal total revenue")

    return ValidationResult.from_errors(errors)


def validate_standalone_credit(
    credit: models.StandaloneCredit,
    *,
    now: Optional[datetime] = None,
) -> ValidationResult:
    errors: List[str] = []

    if _is_blank(credit.buyer_name):
        errors.append("Buyer name is required")
    if safe_parse_money(credit.credit_amount) <= 0:
        errors.append("Credit amount must be greater than 0")
    if _is_blank(credit.description):
        errors.append("Description is required")
    _check_date(credit.date, "Credit", now, errors)

    return ValidationResult.from_errors(errors)


def validate_payment(
    payment: models.Payment,
    available_credit: MoneyLike,
    *,
    now: Optional[datetime] = None,
) -> ValidationResult:
    """Check a payment against the buyer's outstanding credit.

    ``available_credit`` is the buyer's current balance from the ledger; a
    payment larger than it is rejected rather than recorded as an advance.
    """

    errors: List[str] = []

    if _is_blank(payment.buyer_name):
        errors.append("Buyer name is required")

    amount = safe_parse_money(payment.amount)
    available = round_to_currency(safe_parse_money(available_credit))
    if amount <= 0:
        errors.append("Payment amount must be greater than 0")
    if amount > available:
        errors.append(
            f"Payment amount ({round_to_currency(amount)}) exceeds available credit ({available})"
        )
    _check_date(payment.date, "Payment", now, errors)

    return ValidationResult.from_errors(errors)


__all__ = [
    "ValidationResult",
    "validate_product",
    "validate_sale",
    "validate_standalone_credit",
    "validate_payment",
]
