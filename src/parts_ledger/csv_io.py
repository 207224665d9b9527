"""CSV import and export for products and sales.

The product CSV has eight columns, matched case-insensitively after trimming::

    name,type,category,brand,country,purchasePrice,sellingPrice,quantity

Import validates every row with :func:`~parts_ledger.validators.validate_product`
and reports per-row outcomes, so one bad row never sinks the whole file.
Export writes the same columns, which means an exported file imports back to
the same product set apart from identifiers.
"""

from __future__ import annotations

import calendar
import csv
import io
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

from . import log, models
from .currency import ZERO, add_currency, calculate_percentage, round_to_currency, safe_parse_int, safe_parse_money
from .validators import validate_product


PRODUCT_CSV_COLUMNS: Tuple[str, ...] = (
    "name",
    "type",
    "category",
    "brand",
    "country",
    "purchasePrice",
    "sellingPrice",
    "quantity",
)

TEMPLATE_ROWS: Tuple[Tuple[str, ...], ...] = (
    ("Clutch Plate", "TATA", "Clutch & Pressure", "Luk", "India", "2500.00", "3000.00", "10"),
    ("Brake Lining", "Leyland", "Brake / Brake Lining", "TARGET", "India", "800.00", "1200.00", "25"),
    ("Water Pump", "Bedford", "Water Pump", "Other", "China", "1500.00", "2000.00", "5"),
)

SALES_CSV_HEADERS: Tuple[str, ...] = (
    "Date",
    "Buyer",
    "Items Count",
    "Total Revenue (BDT)",
    "Total Profit (BDT)",
    "Cash Amount (BDT)",
    "Credit Amount (BDT)",
    "Items Detail",
)


class CsvFormatError(ValueError):
    """Raised when a product CSV lacks required columns."""


@dataclass(frozen=True)
class ImportFailure:
    """A CSV row that could not be imported; ``row_number`` counts the header as 1."""

    row_number: int
    errors: Tuple[str, ...]


@dataclass(frozen=True)
class ImportReport:
    imported: Tuple[models.Product, ...] = field(default_factory=tuple)
    failures: Tuple[ImportFailure, ...] = field(default_factory=tuple)


def _render(rows: Iterable[Sequence[object]], *, quote_all: bool = False) -> str:
    buffer = io.StringIO()
    writer = csv.writer(
        buffer,
        lineterminator="\n",
        quoting=csv.QUOTE_ALL if quote_all else csv.QUOTE_MINIMAL,
    )
    writer.writerows(rows)
    return buffer.getvalue()


def generate_template() -> str:
    """Return the import template: the header plus three sample rows."""

    return _render([PRODUCT_CSV_COLUMNS, *TEMPLATE_ROWS])


def _header_map(header: Sequence[str]) -> Dict[str, int]:
    """Map each required column to its index in ``header``.

    Raises:
        CsvFormatError: If any required column is missing.
    """

    positions = {name.strip().lower(): idx for idx, name in enumerate(header)}
    missing = [column for column in PRODUCT_CSV_COLUMNS if column.lower() not in positions]
    if missing:
        raise CsvFormatError(f"CSV is missing required column(s): {', '.join(missing)}")
    return {column: positions[column.lower()] for column in PRODUCT_CSV_COLUMNS}


def _product_from_row(row: Sequence[str], columns: Mapping[str, int]) -> models.Product:
    def cell(column: str) -> str:
        index = columns[column]
        return row[index].strip() if index < len(row) else ""

    return models.Product(
        id="",
        name=cell("name"),
        type=cell("type"),
        category=cell("category"),
        brand=cell("brand"),
        country=cell("country"),
        purchase_price=round_to_currency(safe_parse_money(cell("purchasePrice"))),
        selling_price=round_to_currency(safe_parse_money(cell("sellingPrice"))),
        quantity=safe_parse_int(cell("quantity")),
    )


def parse_products_csv(text: str) -> ImportReport:
    """Parse product CSV text into validated products.

    Blank lines are skipped. Products are returned without identifiers; the
    caller assigns them when persisting.

    Args:
        text (str): Full CSV document including the header row.

    Returns:
        ImportReport: Valid products in file order and one
            :class:`ImportFailure` per rejected row.

    Raises:
        CsvFormatError: If the document is empty or a required column is
            missing from the header.
    """

    reader = csv.reader(io.StringIO(text.lstrip("\ufeff")))
    try:
        header = next(reader)
    except StopIteration as exc:
        raise CsvFormatError("CSV file is empty") from exc
    columns = _header_map(header)

    imported: List[models.Product] = []
    failures: List[ImportFailure] = []
    for row_number, row in enumerate(reader, start=2):
        if not any(value.strip() for value in row):
            continue
        product = _product_from_row(row, columns)
        result = validate_product(product)
        if result.valid:
            imported.append(product)
        else:
            failures.append(ImportFailure(row_number=row_number, errors=result.errors))

    log.info("Parsed product CSV: %d valid row(s), %d rejected", len(imported), len(failures))
    return ImportReport(imported=tuple(imported), failures=tuple(failures))


def read_products_csv(path: Path) -> ImportReport:
    return parse_products_csv(Path(path).expanduser().read_text(encoding="utf-8-sig"))


def products_to_csv(products: Iterable[models.Product]) -> str:
    rows: List[Sequence[object]] = [PRODUCT_CSV_COLUMNS]
    for product in products:
        rows.append(
            (
                product.name,
                product.type,
                product.category,
                product.brand,
                product.country,
                round_to_currency(product.purchase_price),
                round_to_currency(product.selling_price),
                product.quantity,
            )
        )
    return _render(rows)


def _sale_date_label(sale: models.Sale) -> str:
    moment = models.parse_timestamp(sale.date)
    return moment.strftime("%d/%m/%Y") if moment is not None else sale.date


def sales_to_csv(sales: Iterable[models.Sale]) -> str:
    """Render sales as a quoted CSV report, one row per sale."""

    rows: List[Sequence[object]] = [SALES_CSV_HEADERS]
    for sale in sales:
        detail = "; ".join(
            f"{item.product_name} ({item.quantity}x{item.selling_price})" for item in sale.items
        )
        rows.append(
            (
                _sale_date_label(sale),
                sale.buyer_name,
                len(sale.items),
                sale.total_revenue,
                sale.total_profit,
                sale.credit_info.cash_amount,
                sale.credit_info.credit_amount,
                detail,
            )
        )
    return _render(rows, quote_all=True)


def monthly_summary_csv(sales: Iterable[models.Sale], year: int, month: int) -> str:
    """Summarise the sales of one calendar month with a daily breakdown.

    Args:
        sales (Iterable[Sale]): Sales to filter; dates are taken in UTC.
        year (int): Four-digit year.
        month (int): Month number, 1 to 12.

    Returns:
        str: Quoted CSV with month totals followed by one row per day 1 to 31.
            Days beyond the month's length are listed with zero totals.

    Raises:
        ValueError: If ``month`` is outside 1 to 12.
    """

    if not 1 <= month <= 12:
        raise ValueError(f"Month must be between 1 and 12: {month}")

    in_month: List[Tuple[int, models.Sale]] = []
    for sale in sales:
        moment = models.parse_timestamp(sale.date)
        if moment is not None and moment.year == year and moment.month == month:
            in_month.append((moment.day, sale))

    total_revenue = total_profit = total_cash = total_credit = ZERO
    daily: Dict[int, List[Decimal]] = defaultdict(lambda: [ZERO, ZERO])
    daily_count: Dict[int, int] = defaultdict(int)
    for day, sale in in_month:
        total_revenue = add_currency(total_revenue, sale.total_revenue)
        total_profit = add_currency(total_profit, sale.total_profit)
        total_cash = add_currency(total_cash, sale.credit_info.cash_amount)
        total_credit = add_currency(total_credit, sale.credit_info.credit_amount)
        daily_count[day] += 1
        daily[day][0] = add_currency(daily[day][0], sale.total_revenue)
        daily[day][1] = add_currency(daily[day][1], sale.total_profit)

    count = len(in_month)
    average = round_to_currency(total_revenue / count) if count else ZERO
    margin = f"{calculate_percentage(total_profit, total_revenue)}%" if total_revenue > 0 else "0%"

    rows: List[Sequence[object]] = [
        ("Monthly Summary", f"{calendar.month_name[month]} {year}"),
        ("Total Sales", count),
        ("Total Revenue (BDT)", total_revenue),
        ("Total Profit (BDT)", total_profit),
        ("Total Cash (BDT)", total_cash),
        ("Total Credit (BDT)", total_credit),
        ("Average Sale (BDT)", average),
        ("Profit Margin %", margin),
        ("",),
        ("Daily Breakdown", ""),
        ("Date", "Sales Count", "Revenue (BDT)", "Profit (BDT)"),
    ]
    for day in range(1, 32):
        revenue, profit = daily[day] if day in daily else (ZERO, ZERO)
        rows.append((f"{day}/{month}/{year}", daily_count.get(day, 0), revenue, profit))

    return _render(rows, quote_all=True)


def write_text(path: Path, content: str) -> Path:
    """Write CSV text to ``path``, creating parent directories on demand."""

    destination = Path(path).expanduser().resolve()
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_text(content, encoding="utf-8", newline="")
    return destination


__all__ = [
    "PRODUCT_CSV_COLUMNS",
    "CsvFormatError",
    "ImportFailure",
    "ImportReport",
    "generate_template",
    "parse_products_csv",
    "read_products_csv",
    "products_to_csv",
    "sales_to_csv",
    "monthly_summary_csv",
    "write_text",
]
