"""Explicit buyer identities layered over free-text buyer names.

Ledger records carry a ``buyer_name`` string and the ledger joins on exact
equality. The directory in this module groups spellings that normalize to the
same key ("Shohag", "shohag ", "SHOHAG") under one :class:`Buyer` with a
stable identifier, so callers can offer a canonical name when recording new
transactions and can view balances merged across aliases. It does not rewrite
stored records.
"""

from __future__ import annotations

import hashlib
from collections import Counter
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from . import ledger, models
from .currency import ZERO, add_currency


def normalize_buyer_name(name: str) -> str:
    """Lower-case, trim, and collapse inner whitespace."""

    return " ".join((name or "").lower().split())


def buyer_id_for(name: str) -> str:
    digest = hashlib.sha1(normalize_buyer_name(name).encode("utf-8")).hexdigest()
    return f"buyer_{digest[:12]}"


@dataclass(frozen=True)
class Buyer:
    """A buyer identity and every spelling recorded for it."""

    buyer_id: str
    canonical_name: str
    aliases: Tuple[str, ...]


class BuyerDirectory:
    """Alias table mapping recorded buyer names to :class:`Buyer` entries."""

    def __init__(self, names: Iterable[str]) -> None:
        counts: Counter[str] = Counter(name for name in names if name and name.strip())
        grouped: Dict[str, List[str]] = {}
        for name in counts:
            grouped.setdefault(normalize_buyer_name(name), []).append(name)

        self._by_key: Dict[str, Buyer] = {}
        for key, spellings in grouped.items():
            # Most frequent spelling wins; ties resolve alphabetically.
            canonical = sorted(spellings, key=lambda spelling: (-counts[spelling], spelling))[0]
            self._by_key[key] = Buyer(
                buyer_id=buyer_id_for(canonical),
                canonical_name=canonical,
                aliases=tuple(sorted(spellings)),
            )

    @classmethod
    def from_transactions(
        cls,
        sales: Sequence[models.Sale],
        standalone_credits: Sequence[models.StandaloneCredit],
        payments: Sequence[models.Payment],
    ) -> "BuyerDirectory":
        names = [
            *(sale.buyer_name for sale in sales),
            *(credit.buyer_name for credit in standalone_credits),
            *(payment.buyer_name for payment in payments),
        ]
        return cls(names)

    def __len__(self) -> int:
        return len(self._by_key)

    def __iter__(self):
        return iter(sorted(self._by_key.values(), key=lambda buyer: buyer.canonical_name))

    def resolve(self, name: str) -> Optional[Buyer]:
        """Return the buyer a spelling belongs to, or ``None`` when unknown."""

        return self._by_key.get(normalize_buyer_name(name))

    def canonical_name(self, name: str) -> str:
        """Return the canonical spelling for ``name`` (itself when unknown)."""

        buyer = self.resolve(name)
        return buyer.canonical_name if buyer is not None else name.strip()

    def ambiguous(self) -> List[Buyer]:
        """Buyers recorded under more than one spelling."""

        return [buyer for buyer in self if len(buyer.aliases) > 1]

    def merged_outstanding_credit(
        self,
        sales: Sequence[models.Sale],
        standalone_credits: Sequence[models.StandaloneCredit],
        payments: Sequence[models.Payment],
    ) -> Dict[str, Decimal]:
        """Sum exact-name balances per buyer identity, keyed by canonical name.

        Each alias is settled on its own first (so the clamp applies per
        spelling, matching the ledger), then the alias balances are added.
        """

        merged: Dict[str, Decimal] = {}
        for name, amount in ledger.outstanding_credit(sales, standalone_credits, payments).items():
            canonical = self.canonical_name(name)
            merged[canonical] = add_currency(merged.get(canonical, ZERO), amount)
        return merged


__all__ = [
    "Buyer",
    "BuyerDirectory",
    "normalize_buyer_name",
    "buyer_id_for",
]
