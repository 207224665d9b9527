"""Record types for the parts ledger and their persisted representation.

Records are immutable dataclasses. Money is held as two-place
:class:`~decimal.Decimal`, dates as ISO-8601 strings (parsed on demand with
:func:`parse_timestamp`). The ``*_to_record``/``*_from_record`` pairs convert
between dataclasses and the flat camelCase mappings written to the row store
and the local cache. Readers re-round every money field and tolerate missing
values so that records written by older clients still load.
"""

from __future__ import annotations

import itertools
import re
import secrets
import string
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from .constants import BASE_CURRENCY, Collection, IdPrefix
from .currency import (
    MoneyLike,
    ZERO,
    round_to_currency,
    safe_parse_int,
    safe_parse_money,
    to_decimal,
)


Record = Dict[str, Any]

_BASE36 = string.digits + string.ascii_lowercase
_ID_PATTERN = re.compile(r"^[a-z]+_\d+-[a-z0-9]+-[a-z0-9]+$")
_id_counter = itertools.count(1)


@dataclass(frozen=True)
class PurchasePricing:
    """Detailed purchase cost of a product, possibly quoted in a foreign currency."""

    original_amount: Decimal
    currency: str
    duty_per_unit: Decimal
    final_purchase_price: Decimal
    exchange_rate: Optional[Decimal] = None

    @classmethod
    def build(
        cls,
        original_amount: MoneyLike,
        *,
        currency: str = BASE_CURRENCY,
        exchange_rate: Optional[MoneyLike] = None,
        duty_per_unit: MoneyLike = 0,
    ) -> "PurchasePricing":
        """Create pricing with ``final_purchase_price`` derived from its parts."""

        rate = None if exchange_rate is None else to_decimal(exchange_rate)
        return cls(
            original_amount=to_decimal(original_amount),
            currency=currency,
            exchange_rate=rate,
            duty_per_unit=to_decimal(duty_per_unit),
            final_purchase_price=compute_final_purchase_price(original_amount, rate, duty_per_unit),
        )


@dataclass(frozen=True)
class Product:
    """A stocked item."""

    id: str
    name: str
    type: str
    category: str
    brand: str
    country: str
    purchase_price: Decimal
    selling_price: Decimal
    quantity: int
    pricing: Optional[PurchasePricing] = None


@dataclass(frozen=True)
class SaleItem:
    """One line of a sale; name, price and profit are frozen at sale time."""

    product_id: str
    product_name: str
    quantity: int
    profit: Decimal
    selling_price: Decimal


@dataclass(frozen=True)
class CreditInfo:
    """Split of a sale's total between cash received and credit extended."""

    cash_amount: Decimal
    credit_amount: Decimal
    total_amount: Decimal


@dataclass(frozen=True)
class Sale:
    id: str
    date: str
    items: Tuple[SaleItem, ...]
    total_revenue: Decimal
    total_profit: Decimal
    buyer_name: str
    credit_info: CreditInfo


@dataclass(frozen=True)
class StandaloneCredit:
    """Credit granted to a buyer outside of a sale (e.g. a carried-over balance)."""

    id: str
    buyer_name: str
    credit_amount: Decimal
    description: str
    date: str
    is_standalone: bool = field(default=True)


@dataclass(frozen=True)
class Payment:
    """Money received from a buyer against their outstanding credit.

    ``sale_id`` and ``credit_id`` are informational back-references and are
    never enforced.
    """

    id: str
    buyer_name: str
    amount: Decimal
    date: str
    description: Optional[str] = None
    sale_id: Optional[str] = None
    credit_id: Optional[str] = None


LedgerRecord = Union[Product, Sale, StandaloneCredit, Payment]


def compute_final_purchase_price(
    original_amount: MoneyLike,
    exchange_rate: Optional[MoneyLike],
    duty_per_unit: MoneyLike,
) -> Decimal:
    """Return ``round(original * (rate or 1) + duty)``.

    A missing or zero exchange rate means the amount is already in Taka.
    """

    rate = to_decimal(exchange_rate) if exchange_rate else Decimal("1")
    return round_to_currency(to_decimal(original_amount) * rate + to_decimal(duty_per_unit))


# ---------------------------------------------------------------------------
# Identifiers and timestamps
# ---------------------------------------------------------------------------


def now_utc() -> datetime:
    return datetime.now(UTC)


def _to_base36(number: int) -> str:
    digits = []
    while True:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
        if number == 0:
            break
    return "".join(reversed(digits))


def generate_id(prefix: Union[IdPrefix, str], *, when: Optional[datetime] = None) -> str:
    """Generate a collision-resistant record identifier.

    Args:
        prefix (IdPrefix | str): Record type designator such as ``"sale"``.
        when (datetime | None): Timestamp contributing the millisecond part.
            Defaults to the current UTC time.

    Returns:
        str: Identifier formed as ``{prefix}_{millis}-{random9}-{counter}``
            where the random part and the process-wide counter are base36. The
            counter keeps identifiers unique within the same millisecond.
    """

    prefix_value = prefix.value if isinstance(prefix, IdPrefix) else prefix
    moment = when or now_utc()
    millis = int(moment.timestamp() * 1000)
    random_part = "".join(secrets.choice(_BASE36) for _ in range(9))
    counter = _to_base36(next(_id_counter)).rjust(3, "0")
    return f"{prefix_value}_{millis}-{random_part}-{counter}"


def is_valid_id(identifier: str) -> bool:
    return bool(_ID_PATTERN.match(identifier or ""))


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 date or datetime into an aware UTC datetime.

    Date-only strings map to midnight UTC, naive datetimes are treated as
    UTC, and a trailing ``Z`` is accepted. Unparseable input returns ``None``.
    """

    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            moment = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


def format_timestamp(moment: datetime) -> str:
    """Render ``moment`` as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ---------------------------------------------------------------------------
# Record (de)serialization
# ---------------------------------------------------------------------------


def _money_out(value: Decimal) -> float:
    return float(round_to_currency(value))


def _money_in(raw: Any) -> Decimal:
    return round_to_currency(safe_parse_money(raw))


def _text_in(raw: Any) -> str:
    return "" if raw is None else str(raw)


def _optional_text_in(raw: Any) -> Optional[str]:
    return None if raw in (None, "") else str(raw)


def pricing_to_record(pricing: PurchasePricing) -> Record:
    record: Record = {
        "originalAmount": float(pricing.original_amount),
        "currency": pricing.currency,
        "dutyPerUnit": float(pricing.duty_per_unit),
        "finalPurchasePrice": _money_out(pricing.final_purchase_price),
    }
    if pricing.exchange_rate is not None:
        record["exchangeRate"] = float(pricing.exchange_rate)
    return record


def pricing_from_record(raw: Mapping[str, Any]) -> PurchasePricing:
    rate_raw = raw.get("exchangeRate")
    return PurchasePricing(
        original_amount=safe_parse_money(raw.get("originalAmount")),
        currency=_text_in(raw.get("currency")) or BASE_CURRENCY,
        exchange_rate=None if rate_raw is None else safe_parse_money(rate_raw),
        duty_per_unit=safe_parse_money(raw.get("dutyPerUnit")),
        final_purchase_price=_money_in(raw.get("finalPurchasePrice")),
    )


def product_to_record(product: Product) -> Record:
    record: Record = {
        "id": product.id,
        "name": product.name,
        "type": product.type,
        "category": product.category,
        "brand": product.brand,
        "country": product.country,
        "purchasePrice": _money_out(product.purchase_price),
        "sellingPrice": _money_out(product.selling_price),
        "quantity": int(product.quantity),
    }
    if product.pricing is not None:
        record["pricing"] = pricing_to_record(product.pricing)
    return record


def product_from_record(raw: Mapping[str, Any]) -> Product:
    pricing_raw = raw.get("pricing")
    return Product(
        id=_text_in(raw.get("id")),
        name=_text_in(raw.get("name")),
        type=_text_in(raw.get("type")),
        category=_text_in(raw.get("category")),
        brand=_text_in(raw.get("brand")),
        country=_text_in(raw.get("country")),
        purchase_price=_money_in(raw.get("purchasePrice")),
        selling_price=_money_in(raw.get("sellingPrice")),
        quantity=safe_parse_int(raw.get("quantity")),
        pricing=pricing_from_record(pricing_raw) if isinstance(pricing_raw, Mapping) else None,
    )


def sale_item_to_record(item: SaleItem) -> Record:
    return {
        "productId": item.product_id,
        "productName": item.product_name,
        "quantity": int(item.quantity),
        "profit": _money_out(item.profit),
        "sellingPrice": _money_out(item.selling_price),
    }


def sale_item_from_record(raw: Mapping[str, Any]) -> SaleItem:
    return SaleItem(
        product_id=_text_in(raw.get("productId")),
        product_name=_text_in(raw.get("productName")),
        quantity=safe_parse_int(raw.get("quantity")),
        profit=_money_in(raw.get("profit")),
        selling_price=_money_in(raw.get("sellingPrice")),
    )


def sale_to_record(sale: Sale) -> Record:
    return {
        "id": sale.id,
        "date": sale.date,
        "items": [sale_item_to_record(item) for item in sale.items],
        "totalRevenue": _money_out(sale.total_revenue),
        "totalProfit": _money_out(sale.total_profit),
        "buyerName": sale.buyer_name,
        "creditInfo": {
            "cashAmount": _money_out(sale.credit_info.cash_amount),
            "creditAmount": _money_out(sale.credit_info.credit_amount),
            "totalAmount": _money_out(sale.credit_info.total_amount),
        },
    }


def sale_from_record(raw: Mapping[str, Any]) -> Sale:
    credit_raw = raw.get("creditInfo") or {}
    items_raw = raw.get("items") or []
    return Sale(
        id=_text_in(raw.get("id")),
        date=_text_in(raw.get("date")),
        items=tuple(sale_item_from_record(item) for item in items_raw),
        total_revenue=_money_in(raw.get("totalRevenue")),
        total_profit=_money_in(raw.get("totalProfit")),
        buyer_name=_text_in(raw.get("buyerName")),
        credit_info=CreditInfo(
            cash_amount=_money_in(credit_raw.get("cashAmount")),
            credit_amount=_money_in(credit_raw.get("creditAmount")),
            total_amount=_money_in(credit_raw.get("totalAmount")),
        ),
    )


def standalone_credit_to_record(credit: StandaloneCredit) -> Record:
    return {
        "id": credit.id,
        "buyerName": credit.buyer_name,
        "creditAmount": _money_out(credit.credit_amount),
        "description": credit.description,
        "date": credit.date,
        "isStandalone": True,
    }


def standalone_credit_from_record(raw: Mapping[str, Any]) -> StandaloneCredit:
    return StandaloneCredit(
        id=_text_in(raw.get("id")),
        buyer_name=_text_in(raw.get("buyerName")),
        credit_amount=_money_in(raw.get("creditAmount")),
        description=_text_in(raw.get("description")),
        date=_text_in(raw.get("date")),
    )


def payment_to_record(payment: Payment) -> Record:
    record: Record = {
        "id": payment.id,
        "buyerName": payment.buyer_name,
        "amount": _money_out(payment.amount),
        "date": payment.date,
    }
    if payment.description is not None:
        record["description"] = payment.description
    if payment.sale_id is not None:
        record["saleId"] = payment.sale_id
    if payment.credit_id is not None:
        record["creditId"] = payment.credit_id
    return record


def payment_from_record(raw: Mapping[str, Any]) -> Payment:
    return Payment(
        id=_text_in(raw.get("id")),
        buyer_name=_text_in(raw.get("buyerName")),
        amount=_money_in(raw.get("amount")),
        date=_text_in(raw.get("date")),
        description=_optional_text_in(raw.get("description")),
        sale_id=_optional_text_in(raw.get("saleId")),
        credit_id=_optional_text_in(raw.get("creditId")),
    )


@dataclass(frozen=True)
class RecordCodec:
    """Serializer pair and identifier prefix for one collection."""

    serialize: Callable[[Any], Record]
    deserialize: Callable[[Mapping[str, Any]], Any]
    id_prefix: IdPrefix


CODECS: Dict[Collection, RecordCodec] = {
    Collection.PRODUCTS: RecordCodec(product_to_record, product_from_record, IdPrefix.PRODUCT),
    Collection.SALES: RecordCodec(sale_to_record, sale_from_record, IdPrefix.SALE),
    Collection.STANDALONE_CREDITS: RecordCodec(
        standalone_credit_to_record, standalone_credit_from_record, IdPrefix.CREDIT
    ),
    Collection.PAYMENTS: RecordCodec(payment_to_record, payment_from_record, IdPrefix.PAYMENT),
}


def collection_for(record: LedgerRecord) -> Collection:
    """Return the collection a record instance belongs to."""

    if isinstance(record, Product):
        return Collection.PRODUCTS
    if isinstance(record, Sale):
        return Collection.SALES
    if isinstance(record, StandaloneCredit):
        return Collection.STANDALONE_CREDITS
    if isinstance(record, Payment):
        return Collection.PAYMENTS
    raise TypeError(f"Unsupported record type: {type(record).__name__}")


__all__ = [
    "Record",
    "PurchasePricing",
    "Product",
    "SaleItem",
    "CreditInfo",
    "Sale",
    "StandaloneCredit",
    "Payment",
    "LedgerRecord",
    "ZERO",
    "compute_final_purchase_price",
    "now_utc",
    "generate_id",
    "is_valid_id",
    "parse_timestamp",
    "format_timestamp",
    "RecordCodec",
    "CODECS",
    "collection_for",
]
