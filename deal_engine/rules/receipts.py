"""
Receipt Tracker

Keeps the per-deal ledger of payment receipts (ACV, deductible, depreciation)
and applies the deal-field side effects of recording one. Rendering the
receipt document is delegated to a DocumentRenderer collaborator.
"""

from datetime import date, datetime, timezone
from decimal import Decimal

from ..exceptions import PreconditionNotMet, ReceiptAlreadyExists
from ..models import ACV, DEDUCTIBLE, DEPRECIATION, PAYMENT_KINDS, Deal, ReceiptArtifactRef
from .commission import quantize_money

# Milestone stamped when each kind of receipt is recorded
RECEIPT_MILESTONES = {
    ACV: "collect_acv",
    DEDUCTIBLE: "collect_deductible",
    DEPRECIATION: "depreciation_collected",
}

DEFAULT_PAYMENT_METHOD = "Check"


class ReceiptTracker:
    """Records payment receipts; one receipt per kind unless explicitly replaced."""

    def record_payment(
        self,
        deal: Deal,
        kind: str,
        amount: Decimal,
        date_paid: date,
        method: str | None,
        check_number: str | None,
        renderer,
        signature_image: str | None = None,
        now: datetime | None = None,
    ) -> ReceiptArtifactRef:
        """
        Record a collected payment and its receipt.

        Raises:
            ReceiptAlreadyExists: `kind` is already collected or receipted on the deal
            ValueError: unknown kind or non-positive amount
        """
        self._validate(kind, amount)
        if deal.payments[kind].is_recorded:
            raise ReceiptAlreadyExists(deal.id, kind)
        return self._record(deal, kind, amount, date_paid, method, check_number, renderer, signature_image, now)

    def replace_receipt(
        self,
        deal: Deal,
        kind: str,
        amount: Decimal,
        date_paid: date,
        method: str | None,
        check_number: str | None,
        renderer,
        signature_image: str | None = None,
        now: datetime | None = None,
    ) -> ReceiptArtifactRef:
        """Explicitly replace an existing receipt. The original milestone is kept."""
        self._validate(kind, amount)
        if not deal.payments[kind].is_recorded:
            raise PreconditionNotMet(f"No {kind} receipt exists yet for deal {deal.id}; record one first")
        return self._record(deal, kind, amount, date_paid, method, check_number, renderer, signature_image, now)

    def receipt_status(self, deal: Deal) -> dict[str, bool]:
        return {kind: deal.payments[kind].has_receipt for kind in PAYMENT_KINDS}

    def outstanding(self, deal: Deal) -> list[str]:
        """Kinds not yet collected."""
        return [kind for kind in PAYMENT_KINDS if not deal.payments[kind].is_recorded]

    def _validate(self, kind: str, amount: Decimal) -> None:
        if kind not in PAYMENT_KINDS:
            raise ValueError(f"Invalid receipt kind: {kind}. Must be one of {', '.join(PAYMENT_KINDS)}")
        if amount is None or amount <= 0:
            raise ValueError(f"Payment amount must be positive, got: {amount}")

    def _record(self, deal, kind, amount, date_paid, method, check_number, renderer, signature_image, now):
        when = now or datetime.now(timezone.utc)
        amount = quantize_money(amount)
        method = method or DEFAULT_PAYMENT_METHOD

        payment_details = {
            "kind": kind,
            "amount": amount,
            "date_paid": date_paid,
            "method": method,
            "check_number": check_number,
        }
        # Render before any write; a renderer failure leaves the deal untouched
        handle = renderer.render(kind, deal, signature_image, payment_details)
        if not handle:
            raise RuntimeError(f"Renderer returned no handle for the {kind} receipt of deal {deal.id}")

        payment = deal.payments[kind]
        payment.collected = True
        payment.amount = amount
        payment.date_paid = date_paid
        payment.method = method
        payment.check_number = check_number
        payment.receipt_url = handle
        deal.stamp_milestone(RECEIPT_MILESTONES[kind], when)

        return ReceiptArtifactRef(deal_id=deal.id, kind=kind, handle=handle, recorded_at=when)
