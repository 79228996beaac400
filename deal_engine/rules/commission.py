"""
Commission Allocator

Builds the commission lines for a deal from the arrangement chosen at
creation time, and keeps unpaid amounts in step with the contract value.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from ..exceptions import ConflictingCommissionRoles, InsufficientRole, NoRepAssigned
from ..models import (
    ARRANGEMENT_SELF_GEN,
    ARRANGEMENT_SETTER_CLOSER,
    ARRANGEMENTS,
    CLOSER,
    COMMISSION_ROLES,
    ROLE_ADMIN,
    SELF_GEN,
    SETTER,
    Commission,
    RepAssignments,
)


def quantize_money(value: Decimal) -> Decimal:
    """Round to 2 decimal places using ROUND_HALF_UP."""
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def commission_amount(percent: Decimal, total: Decimal) -> Decimal:
    """Percent is a percentage: 10 means 10% of the total."""
    return quantize_money(total * percent / Decimal("100"))


class CommissionAllocator:
    """Allocates, recomputes and amends commission lines."""

    def allocate(
        self,
        deal_id: str,
        arrangement: str,
        assignments: RepAssignments,
        total_contract_value: Decimal,
        rates,
    ) -> list[Commission]:
        """
        Produce the commission set for a new deal.

        Args:
            arrangement: 'self_gen' or 'setter_closer'
            assignments: which rep fills each role
            rates: RateLookup collaborator

        Raises:
            NoRepAssigned: no rep for the chosen arrangement
            ConflictingCommissionRoles: reps given for roles the arrangement excludes
            ValueError: unknown arrangement
        """
        if arrangement not in ARRANGEMENTS:
            raise ValueError(f"Invalid arrangement: {arrangement}. Must be 'self_gen' or 'setter_closer'")

        if arrangement == ARRANGEMENT_SELF_GEN:
            return self._allocate_self_gen(deal_id, assignments, total_contract_value, rates)
        return self._allocate_setter_closer(deal_id, assignments, total_contract_value, rates)

    def _allocate_self_gen(self, deal_id, assignments, total, rates) -> list[Commission]:
        if assignments.setter or assignments.closer:
            raise ConflictingCommissionRoles(
                "A self-generated deal cannot also have setter or closer commissions"
            )
        if not assignments.self_gen:
            raise NoRepAssigned("A self-generated deal needs the rep who sourced and closed it")

        percent = rates.get_default_rate(assignments.self_gen)
        return [self._build(deal_id, assignments.self_gen, SELF_GEN, percent, total)]

    def _allocate_setter_closer(self, deal_id, assignments, total, rates) -> list[Commission]:
        if assignments.self_gen:
            raise ConflictingCommissionRoles(
                "A setter/closer deal cannot also have a self-gen commission"
            )
        if not assignments.setter and not assignments.closer:
            raise NoRepAssigned("A setter/closer deal needs at least a setter or a closer")

        commissions = []
        if assignments.setter:
            percent = rates.get_setter_rate(assignments.setter)
            commissions.append(self._build(deal_id, assignments.setter, SETTER, percent, total))
        if assignments.closer:
            percent = rates.get_closer_rate(assignments.closer)
            commissions.append(self._build(deal_id, assignments.closer, CLOSER, percent, total))
        return commissions

    def _build(self, deal_id, rep_id, role, percent, total) -> Commission:
        if percent is None:
            # No configured rate: keep the deal, let an admin set the amount
            return Commission(
                deal_id=deal_id,
                rep_id=rep_id,
                role=role,
                commission_percent=Decimal("0"),
                commission_amount=Decimal("0"),
                needs_override=True,
            )
        return Commission(
            deal_id=deal_id,
            rep_id=rep_id,
            role=role,
            commission_percent=percent,
            commission_amount=commission_amount(percent, total),
        )

    def recompute(self, commissions: list[Commission], total_contract_value: Decimal) -> list[Commission]:
        """Recompute every unpaid amount for a new contract value. Paid lines are frozen."""
        for commission in commissions:
            if commission.paid:
                continue
            commission.commission_amount = commission_amount(
                commission.commission_percent, total_contract_value
            )
        return commissions

    def add(self, existing: list[Commission], new: Commission) -> list[Commission]:
        """Add a commission line, enforcing one line per role and self-gen exclusivity."""
        self.validate_roles(existing + [new])
        existing.append(new)
        return existing

    def validate_roles(self, commissions: list[Commission]) -> None:
        """Raise ConflictingCommissionRoles if the set mixes self-gen with setter/closer."""
        by_deal: dict[str, list[str]] = {}
        for commission in commissions:
            if commission.role not in COMMISSION_ROLES:
                raise ValueError(f"Invalid commission role: {commission.role}")
            by_deal.setdefault(commission.deal_id, []).append(commission.role)

        for deal_id, roles in by_deal.items():
            if SELF_GEN in roles and (SETTER in roles or CLOSER in roles):
                raise ConflictingCommissionRoles(
                    f"Deal {deal_id} cannot combine self-gen with setter/closer commissions"
                )
            for role in set(roles):
                if roles.count(role) > 1:
                    raise ConflictingCommissionRoles(f"Deal {deal_id} already has a {role} commission")

    def apply_override(
        self,
        commission: Commission,
        amount: Decimal,
        reason: str,
        actor_role: str,
        now: datetime | None = None,
    ) -> Commission:
        """Admin amendment of a commission amount. The only way to change a paid line."""
        if actor_role != ROLE_ADMIN:
            raise InsufficientRole("Only admins can override commission amounts")
        if not reason or not reason.strip():
            raise ValueError("A reason is required when overriding a commission amount")
        if amount < 0:
            raise ValueError(f"Override amount cannot be negative, got: {amount}")

        commission.override_amount = quantize_money(amount)
        commission.override_reason = reason.strip()
        commission.override_date = now or datetime.now(timezone.utc)
        commission.needs_override = False
        return commission

    def mark_paid(self, commission: Commission, actor_role: str, now: datetime | None = None) -> Commission:
        """Admin-only, like overrides. Marking an already paid line keeps the first paid_at."""
        if actor_role != ROLE_ADMIN:
            raise InsufficientRole("Only admins can mark commissions as paid")
        if not commission.paid:
            commission.paid = True
            commission.paid_at = now or datetime.now(timezone.utc)
        return commission

    @staticmethod
    def total(commissions: list[Commission]) -> Decimal:
        """Sum of effective (override-aware) amounts."""
        return sum((c.effective_amount for c in commissions), Decimal("0"))
