"""
Collaborators

Interfaces the engine consumes (rate lookup, persistence, document
rendering) and the in-process implementations used by the API and tests.
"""

import copy
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Protocol

from .exceptions import ConcurrentModification
from .models import Commission, Deal


class RateLookup(Protocol):
    def get_default_rate(self, rep_id: str) -> Decimal | None: ...

    def get_setter_rate(self, rep_id: str) -> Decimal | None: ...

    def get_closer_rate(self, rep_id: str) -> Decimal | None: ...


class DealRepository(Protocol):
    def add_deal(self, deal: Deal) -> Deal: ...

    def load_deal(self, deal_id: str) -> Deal: ...

    def save_deal(self, deal: Deal, expected_version: int) -> Deal: ...

    def load_commissions(self, deal_id: str) -> list[Commission]: ...

    def save_commissions(self, commissions: list[Commission]) -> None: ...


class DocumentRenderer(Protocol):
    def render(self, kind: str, deal_snapshot: Deal, signature_image: str | None, payment_details: dict) -> str: ...


# =============================================================================
# RATES
# =============================================================================


@dataclass
class RepRates:
    """Commission configuration for one rep. Percents are percentages."""

    rep_id: str
    commission_level: str | None = None  # 'junior', 'senior' or 'manager'
    default_commission_percent: Decimal | None = None
    setter_percent: Decimal | None = None
    closer_percent: Decimal | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "RepRates":
        def pct(key):
            value = data.get(key)
            return Decimal(str(value)) if value is not None else None

        return cls(
            rep_id=str(data["rep_id"]),
            commission_level=data.get("commission_level"),
            default_commission_percent=pct("default_commission_percent"),
            setter_percent=pct("setter_percent"),
            closer_percent=pct("closer_percent"),
        )


class RateTable:
    """Dictionary-backed RateLookup."""

    # Default self-gen percent per commission level
    LEVEL_DEFAULT_RATES = {
        "junior": Decimal("5"),
        "senior": Decimal("10"),
        "manager": Decimal("13"),
    }

    def __init__(self, reps: list[RepRates] | None = None):
        self._reps = {rep.rep_id: rep for rep in reps or []}

    @classmethod
    def from_list(cls, data: list[dict]) -> "RateTable":
        return cls([RepRates.from_dict(item) for item in data])

    def add(self, rep: RepRates) -> None:
        self._reps[rep.rep_id] = rep

    def get_default_rate(self, rep_id: str) -> Decimal | None:
        rep = self._reps.get(rep_id)
        if rep is None:
            return None
        if rep.default_commission_percent is not None:
            return rep.default_commission_percent
        return self.LEVEL_DEFAULT_RATES.get(rep.commission_level)

    def get_setter_rate(self, rep_id: str) -> Decimal | None:
        rep = self._reps.get(rep_id)
        return rep.setter_percent if rep else None

    def get_closer_rate(self, rep_id: str) -> Decimal | None:
        rep = self._reps.get(rep_id)
        return rep.closer_percent if rep else None


# =============================================================================
# PERSISTENCE
# =============================================================================


@dataclass
class InMemoryDealRepository:
    """
    DealRepository kept in process memory.

    Saves are conditional on the version the caller read; a mismatch raises
    ConcurrentModification. Stored objects are copies, so callers never share
    state with the store.
    """

    deals: dict[str, Deal] = field(default_factory=dict)
    commissions: dict[str, list[Commission]] = field(default_factory=dict)

    def add_deal(self, deal: Deal) -> Deal:
        if deal.id in self.deals:
            raise ValueError(f"Deal {deal.id} already exists")
        self.deals[deal.id] = copy.deepcopy(deal)
        return copy.deepcopy(deal)

    def load_deal(self, deal_id: str) -> Deal:
        if deal_id not in self.deals:
            raise KeyError(f"Deal not found: {deal_id}")
        return copy.deepcopy(self.deals[deal_id])

    def save_deal(self, deal: Deal, expected_version: int) -> Deal:
        stored = self.deals.get(deal.id)
        if stored is None:
            raise KeyError(f"Deal not found: {deal.id}")
        if stored.version != expected_version:
            raise ConcurrentModification(deal.id, expected_version, stored.version)

        deal.version = expected_version + 1
        self.deals[deal.id] = copy.deepcopy(deal)
        return deal

    def load_commissions(self, deal_id: str) -> list[Commission]:
        return copy.deepcopy(self.commissions.get(deal_id, []))

    def save_commissions(self, commissions: list[Commission]) -> None:
        """Replace the stored commission set of every deal present in `commissions`."""
        by_deal: dict[str, list[Commission]] = {}
        for commission in commissions:
            by_deal.setdefault(commission.deal_id, []).append(copy.deepcopy(commission))
        self.commissions.update(by_deal)


# =============================================================================
# DOCUMENTS
# =============================================================================


class StorageKeyRenderer:
    """
    DocumentRenderer that returns the object key a receipt is stored under.

    The template rendering and upload happen in the document service; the
    engine only keeps the handle.
    """

    def __init__(self, prefix: str = "receipts"):
        self.prefix = prefix.rstrip("/")

    def render(self, kind: str, deal_snapshot: Deal, signature_image: str | None, payment_details: dict) -> str:
        date_paid = payment_details.get("date_paid")
        suffix = date_paid.isoformat() if date_paid else "undated"
        return f"{self.prefix}/{deal_snapshot.id}/{kind}-{suffix}.html"
