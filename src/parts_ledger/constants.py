"""Enumerations shared across the parts ledger modules.

Centralises domain constants so that the persistence gateway, the ledger
aggregator, and the command-line front-end rely on a single source of truth
for category lists, collection names, and identifier prefixes.
"""

from __future__ import annotations

from enum import Enum


# Central schema version expected by all layers when validating the store.
EXPECTED_SCHEMA_VERSION = "1.0.0"

BASE_CURRENCY = "BDT"


class VehicleType(str, Enum):
    """Enumerate the vehicle families a part is stocked for."""

    TATA = "TATA"
    LEYLAND = "Leyland"
    BEDFORD = "Bedford"
    OTHER = "Other"


class Country(str, Enum):
    """Enumerate supported countries of origin."""

    INDIA = "India"
    CHINA = "China"


class PurchaseCurrency(str, Enum):
    """Enumerate the currencies a purchase price may be quoted in."""

    BDT = "BDT"
    USD = "USD"
    INR = "INR"
    CNY = "CNY"


class SalesPeriod(str, Enum):
    """Enumerate the calendar windows sales can be reported over.

    Weeks start on Sunday.
    """

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


CURRENCY_SYMBOLS = {
    PurchaseCurrency.BDT.value: "৳",
    PurchaseCurrency.USD.value: "$",
    PurchaseCurrency.INR.value: "₹",
    PurchaseCurrency.CNY.value: "¥",
}


DEFAULT_CATEGORIES: tuple[str, ...] = (
    "Clutch & Pressure",
    "Brake / Brake Lining",
    "Propeller Shaft",
    "Steering / Suspension",
    "Gears",
    "Pipes",
    "Bearings",
    "Water Pump",
    "Rubber Items / Mountings",
    "Electrical / Wiring / Switches",
    "Filter",
    "Compressor Head",
    "Cabin Parts / Brake Cabin",
    "Power Steering Pump",
    "Cable",
    "Control / Controller",
    "Horn",
    "Grease Gun",
    "Tools / Spanner / Hardware",
    "Layparts Items",
    "Others / Miscellaneous",
)

DEFAULT_BRANDS: tuple[str, ...] = (
    "TARGET", "D.D", "Telco", "Luk", "LAP", "LIPE", "Eicher", "C/A", "S+B",
    "S+S", "MANISH", "ABC", "CALEX", "KMP", "DIN", "KKK", "BULL", "HARISH",
    "TVS", "Mahindra", "VICTOR", "NPN", "J---6", "LUCUS", "PAYEN", "KANSAI",
    "BOSS", "M.C.", "Layparts", "Prizol", "Daewoo", "MOD", "TKL", "Other",
)


class Collection(str, Enum):
    """Enumerate the record collections managed by the persistence gateway.

    The values double as local-cache keys and as remote table names.
    """

    PRODUCTS = "products"
    SALES = "sales"
    STANDALONE_CREDITS = "standaloneCredits"
    PAYMENTS = "payments"


class IdPrefix(str, Enum):
    """Enumerate identifier prefixes per record type."""

    PRODUCT = "prod"
    SALE = "sale"
    CREDIT = "credit"
    PAYMENT = "payment"


class StoreBackend(str, Enum):
    """Enumerate the remote row store implementations."""

    WORKBOOK = "workbook"
    REST = "rest"


__all__ = [
    "EXPECTED_SCHEMA_VERSION",
    "BASE_CURRENCY",
    "VehicleType",
    "Country",
    "PurchaseCurrency",
    "SalesPeriod",
    "CURRENCY_SYMBOLS",
    "DEFAULT_CATEGORIES",
    "DEFAULT_BRANDS",
    "Collection",
    "IdPrefix",
    "StoreBackend",
]
