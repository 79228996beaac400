"""
Input Validation for the Deal Engine

Validates deal and commission snapshots before any rule runs.
Raises ValueError with clear messages for any constraint violations.
"""

from .models import COMMISSION_ROLES, Commission, Deal
from .statuses import describe

MONEY_FIELDS = (
    "total_contract_value",
    "total_price",
    "rcv",
    "acv",
    "depreciation",
    "deductible",
    "supplement_amount",
    "invoice_amount",
)


class InputValidator:
    """Validates deal input according to business rules."""

    def validate_deal(self, deal: Deal) -> None:
        """Run all deal checks. Raises ValueError (UnknownStatus for a bad status)."""
        if not deal.id:
            raise ValueError("Deal id is required")

        describe(deal.status)

        if deal.version < 0:
            raise ValueError(f"version cannot be negative, got: {deal.version}")

        for name in MONEY_FIELDS:
            value = getattr(deal, name)
            if value is not None and value < 0:
                raise ValueError(f"{name} cannot be negative, got: {value}")

        for kind, payment in deal.payments.items():
            if payment.amount is not None and payment.amount < 0:
                raise ValueError(f"{kind}_check_amount cannot be negative, got: {payment.amount}")

    def validate_commissions(self, commissions: list[Commission]) -> None:
        for commission in commissions:
            if commission.role not in COMMISSION_ROLES:
                raise ValueError(
                    f"Invalid commission role: {commission.role}. Must be one of {', '.join(COMMISSION_ROLES)}"
                )
            if not (0 <= commission.commission_percent <= 100):
                raise ValueError(
                    f"commission_percent must be between 0 and 100, got: {commission.commission_percent}"
                )
            if commission.commission_amount < 0:
                raise ValueError(f"commission_amount cannot be negative, got: {commission.commission_amount}")
