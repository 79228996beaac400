"""
Deal Service

Runs the rule components against persisted deals. Each operation is a
single read-decide-write step; the write is conditional on the version that
was read, so a concurrent change surfaces as ConcurrentModification for the
caller to re-read and retry.
"""

import logging
from datetime import date, datetime
from decimal import Decimal

from .exceptions import DealEngineError, PreconditionNotMet
from .models import Commission, Deal, ReceiptArtifactRef, RepAssignments
from .rules import CommissionAllocator, ReceiptTracker, TransitionValidator

logger = logging.getLogger(__name__)


class DealService:
    """Deal lifecycle operations over a repository."""

    def __init__(self, repository, rates, renderer):
        self.repository = repository
        self.rates = rates
        self.renderer = renderer
        self.transitions = TransitionValidator()
        self.allocator = CommissionAllocator()
        self.receipts = ReceiptTracker()

    def create_deal(self, deal: Deal, arrangement: str, assignments: RepAssignments) -> list[Commission]:
        """Store a new deal with the commission lines of the chosen arrangement."""
        commissions = self.allocator.allocate(deal.id, arrangement, assignments, deal.contract_value, self.rates)
        self.repository.add_deal(deal)
        self.repository.save_commissions(commissions)

        flagged = [c.rep_id for c in commissions if c.needs_override]
        if flagged:
            logger.warning(f"Deal {deal.id}: no commission rate configured for {', '.join(flagged)}")
        logger.info(f"Deal {deal.id} created with {len(commissions)} commission line(s) ({arrangement})")
        return commissions

    def change_status(self, deal_id: str, target: str, actor_role: str, now: datetime | None = None) -> Deal:
        deal = self.repository.load_deal(deal_id)
        expected_version = deal.version
        previous = deal.status

        try:
            self.transitions.apply(deal, target, actor_role, now=now)
        except DealEngineError as e:
            logger.info(f"Deal {deal_id}: {previous} -> {target} denied for {actor_role}: {e.message}")
            raise

        saved = self.repository.save_deal(deal, expected_version)
        logger.info(f"Deal {deal_id}: {previous} -> {target} by {actor_role}")
        return saved

    def request_payment(self, deal_id: str, actor_role: str, now: datetime | None = None) -> Deal:
        deal = self.repository.load_deal(deal_id)
        expected_version = deal.version
        self.transitions.request_payment(deal, actor_role, now=now)
        saved = self.repository.save_deal(deal, expected_version)
        logger.info(f"Deal {deal_id}: payment requested")
        return saved

    def update_contract_value(self, deal_id: str, total_contract_value: Decimal) -> list[Commission]:
        """Change the deal total and recompute the unpaid commission amounts."""
        if total_contract_value < 0:
            raise ValueError(f"total_contract_value cannot be negative, got: {total_contract_value}")

        deal = self.repository.load_deal(deal_id)
        expected_version = deal.version
        deal.total_contract_value = total_contract_value

        commissions = self.repository.load_commissions(deal_id)
        self.allocator.recompute(commissions, total_contract_value)

        self.repository.save_deal(deal, expected_version)
        self.repository.save_commissions(commissions)

        frozen = sum(1 for c in commissions if c.paid)
        if frozen:
            logger.info(f"Deal {deal_id}: {frozen} paid commission(s) left unchanged by the new total")
        return commissions

    def override_commission(
        self,
        deal_id: str,
        role: str,
        amount: Decimal,
        reason: str,
        actor_role: str,
        now: datetime | None = None,
    ) -> Commission:
        commissions = self.repository.load_commissions(deal_id)
        matches = [c for c in commissions if c.role == role]
        if not matches:
            raise PreconditionNotMet(f"Deal {deal_id} has no {role} commission to override")

        commission = self.allocator.apply_override(matches[0], amount, reason, actor_role, now=now)
        self.repository.save_commissions(commissions)
        logger.info(f"Deal {deal_id}: {role} commission overridden to {commission.override_amount}")
        return commission

    def mark_commission_paid(
        self, deal_id: str, role: str, actor_role: str, now: datetime | None = None
    ) -> Commission:
        commissions = self.repository.load_commissions(deal_id)
        matches = [c for c in commissions if c.role == role]
        if not matches:
            raise PreconditionNotMet(f"Deal {deal_id} has no {role} commission to pay")

        commission = self.allocator.mark_paid(matches[0], actor_role, now=now)
        self.repository.save_commissions(commissions)
        return commission

    def record_payment(
        self,
        deal_id: str,
        kind: str,
        amount: Decimal,
        date_paid: date,
        method: str | None = None,
        check_number: str | None = None,
        signature_image: str | None = None,
        replace: bool = False,
        now: datetime | None = None,
    ) -> ReceiptArtifactRef:
        deal = self.repository.load_deal(deal_id)
        expected_version = deal.version

        record = self.receipts.replace_receipt if replace else self.receipts.record_payment
        ref = record(
            deal, kind, amount, date_paid, method, check_number, self.renderer,
            signature_image=signature_image, now=now,
        )

        self.repository.save_deal(deal, expected_version)
        logger.info(f"Deal {deal_id}: {kind} receipt {'replaced' if replace else 'recorded'} ({ref.handle})")
        return ref
