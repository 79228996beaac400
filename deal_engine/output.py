"""
Output Builder

Turns engine results into JSON-ready dictionaries for the API.
"""

from datetime import date, datetime
from decimal import Decimal

from . import statuses
from .models import PAYMENT_KINDS, ClaimSplit, Commission, Deal, ReceiptArtifactRef, StatusInfo, TransitionDecision


def to_money(value: Decimal | None) -> float | None:
    """Convert Decimal to float with 2 decimal places."""
    if value is None:
        return None
    return round(float(value), 2)


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class OutputBuilder:
    """Builds API response bodies."""

    def status_info(self, info: StatusInfo) -> dict:
        return {
            "status": info.status,
            "phase": info.phase,
            "label": info.label,
            "rank": info.rank,
            "is_admin_only": info.is_admin_only,
            "is_legacy_alias": info.is_legacy_alias,
            "superseded_by": info.superseded_by,
        }

    def deal(self, deal: Deal) -> dict:
        """Flat deal row, using the same column names the input accepts."""
        output = {
            "id": deal.id,
            "status": deal.status,
            "phase": statuses.phase_of(deal.status),
            "version": deal.version,
            "total_contract_value": to_money(deal.total_contract_value),
            "total_price": to_money(deal.total_price),
            "rcv": to_money(deal.rcv),
            "acv": to_money(deal.acv),
            "depreciation": to_money(deal.depreciation),
            "deductible": to_money(deal.deductible),
            "supplement_amount": to_money(deal.supplement_amount),
            "invoice_amount": to_money(deal.invoice_amount),
            "contract_signed": deal.contract_signed,
            "install_date": _iso(deal.install_date),
            "payment_requested": deal.payment_requested,
            "payment_request_date": _iso(deal.payment_request_date),
        }

        for kind in PAYMENT_KINDS:
            payment = deal.payments[kind]
            output[f"{kind}_check_collected"] = payment.collected
            output[f"{kind}_check_amount"] = to_money(payment.amount)
            output[f"{kind}_check_date"] = _iso(payment.date_paid)
            output[f"{kind}_receipt_url"] = payment.receipt_url

        for status, stamped in deal.milestones.items():
            output[f"{status}_date"] = _iso(stamped)

        return output

    def commission(self, commission: Commission) -> dict:
        return {
            "id": commission.id,
            "deal_id": commission.deal_id,
            "rep_id": commission.rep_id,
            "commission_type": commission.role,
            "commission_percent": float(commission.commission_percent),
            "commission_amount": to_money(commission.commission_amount),
            "effective_amount": to_money(commission.effective_amount),
            "paid": commission.paid,
            "paid_at": _iso(commission.paid_at),
            "needs_override": commission.needs_override,
            "commission_override_amount": to_money(commission.override_amount),
            "commission_override_reason": commission.override_reason,
            "commission_override_date": _iso(commission.override_date),
        }

    def commissions(self, commissions: list[Commission]) -> dict:
        total = sum((c.effective_amount for c in commissions), Decimal("0"))
        return {
            "commissions": [self.commission(c) for c in commissions],
            "total_commission": to_money(total),
            "needs_override": any(c.needs_override for c in commissions),
        }

    def decision(self, decision: TransitionDecision) -> dict:
        output = {"target": decision.target, "allowed": decision.allowed}
        if not decision.allowed:
            output["code"] = decision.error.code
            output["reason"] = decision.reason
        return output

    def receipt(self, ref: ReceiptArtifactRef) -> dict:
        return {
            "deal_id": ref.deal_id,
            "kind": ref.kind,
            "handle": ref.handle,
            "recorded_at": _iso(ref.recorded_at),
        }

    def claim_split(self, split: ClaimSplit) -> dict:
        return {
            "rcv": to_money(split.rcv),
            "depreciation": to_money(split.depreciation),
            "acv": to_money(split.acv),
            "deductible": to_money(split.deductible),
            "first_check": to_money(split.first_check),
            "second_check": to_money(split.second_check),
            "homeowner_out_of_pocket": to_money(split.homeowner_out_of_pocket),
        }
