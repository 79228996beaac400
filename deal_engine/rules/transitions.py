"""
Transition Validator

Decides whether a deal may move to a new status. The rules are evaluated in
a fixed order and the first failing rule wins:

1. `pending` is only reachable through the Request Payment action
2. Legacy statuses cannot be chosen as a target
3. Backward moves (lower rank), resets and no-ops are always allowed
4. Forward moves into admin-only statuses need an admin
5. A cancelled deal must be reopened as a lead before advancing
6. Data-readiness preconditions keyed by target status
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from .. import statuses
from ..exceptions import (
    IllegalTargetStatus,
    InsufficientRole,
    PreconditionNotMet,
    UseExplicitPaymentRequestAction,
)
from ..models import ACTOR_ROLES, ROLE_ADMIN, Deal, TransitionDecision

PAYMENT_REQUEST_STATUS = "pending"


@dataclass(frozen=True)
class Requirement:
    """A data gate on a target status, evaluated against the current deal."""

    check: Callable[[Deal, bool], bool]
    message: str


# What's needed to move to each status
STATUS_REQUIREMENTS: dict[str, Requirement] = {
    "signed": Requirement(
        check=lambda deal, is_admin: deal.contract_signed is True,
        message="Contract must be signed before marking as Signed",
    ),
    "permit": Requirement(
        check=lambda deal, is_admin: bool(deal.permit_file_url),
        message="Permit document must be uploaded before moving to Permit",
    ),
    "collect_acv": Requirement(
        check=lambda deal, is_admin: is_admin,
        message="Only admins can collect ACV and advance to build phase",
    ),
    "collect_deductible": Requirement(
        check=lambda deal, is_admin: is_admin,
        message="Only admins can collect deductible",
    ),
    "install_scheduled": Requirement(
        check=lambda deal, is_admin: is_admin and deal.install_date is not None,
        message="Only admins can schedule installations. Install date must be set.",
    ),
    "installed": Requirement(
        check=lambda deal, is_admin: is_admin and len(deal.install_images) > 0,
        message="Only admins can mark as installed. Installation photos must be uploaded.",
    ),
    "complete": Requirement(
        check=lambda deal, is_admin: is_admin and len(deal.completion_images) > 0,
        message="Only admins can mark as complete. Completion photos must be uploaded.",
    ),
    "paid": Requirement(
        check=lambda deal, is_admin: is_admin and deal.status in ("complete", "pending"),
        message="Only admins can mark as paid. Deal must be in Complete or Pending status.",
    ),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransitionValidator:
    """Judges status changes; never writes anything but status and its milestone."""

    def __init__(self, requirements: dict[str, Requirement] | None = None):
        self.requirements = STATUS_REQUIREMENTS if requirements is None else requirements

    def check(self, deal: Deal, target: str, actor_role: str) -> TransitionDecision:
        """
        Decide whether `actor_role` may move `deal` to `target`.

        Returns:
            TransitionDecision; when denied, `error` holds the typed reason.

        Raises:
            UnknownStatus: target or current status is not in the taxonomy
            ValueError: actor_role is not a known role
        """
        if actor_role not in ACTOR_ROLES:
            raise ValueError(f"Invalid actor role: {actor_role}. Must be one of {', '.join(ACTOR_ROLES)}")

        target_info = statuses.describe(target)
        current_info = statuses.describe(deal.status)
        is_admin = actor_role == ROLE_ADMIN

        if target == PAYMENT_REQUEST_STATUS:
            return TransitionDecision.deny(target, UseExplicitPaymentRequestAction())

        if target_info.is_legacy_alias:
            return TransitionDecision.deny(target, IllegalTargetStatus(target, target_info.superseded_by))

        # Backward moves, resets and no-ops are always allowed. A legacy status shares
        # its successor's rank, so moving onto the successor is a forward move.
        if (
            target in statuses.RESET_TARGETS
            or target == deal.status
            or target_info.rank < current_info.rank
        ):
            return TransitionDecision.allow(target)

        if target_info.is_admin_only and not is_admin:
            return TransitionDecision.deny(
                target, InsufficientRole(f"Only admins can change a deal to {target_info.label}")
            )

        if deal.status == "cancelled":
            return TransitionDecision.deny(
                target, PreconditionNotMet("Cancelled deals must be reopened as a Lead before advancing")
            )

        requirement = self.requirements.get(target)
        if requirement and not requirement.check(deal, is_admin):
            return TransitionDecision.deny(target, PreconditionNotMet(requirement.message))

        return TransitionDecision.allow(target)

    def apply(self, deal: Deal, target: str, actor_role: str, now: datetime | None = None) -> Deal:
        """Check the transition, then set the status and stamp its milestone (first time only)."""
        decision = self.check(deal, target, actor_role)
        decision.raise_for_denial()

        deal.status = target
        deal.stamp_milestone(target, now or _utcnow())
        return deal

    def request_payment(self, deal: Deal, actor_role: str, now: datetime | None = None) -> Deal:
        """
        Rep asks for their commission on a finished job.

        The only way into `pending`; repeat requests on a pending deal are no-ops.
        """
        if actor_role not in ACTOR_ROLES:
            raise ValueError(f"Invalid actor role: {actor_role}. Must be one of {', '.join(ACTOR_ROLES)}")
        statuses.describe(deal.status)

        if deal.status == PAYMENT_REQUEST_STATUS:
            return deal
        if deal.status != "complete":
            raise PreconditionNotMet("Payment can only be requested once the job is Complete")

        when = now or _utcnow()
        deal.payment_requested = True
        deal.payment_request_date = when
        deal.status = PAYMENT_REQUEST_STATUS
        deal.stamp_milestone(PAYMENT_REQUEST_STATUS, when)
        return deal


_default_validator = TransitionValidator()


def check_transition(deal: Deal, target: str, actor_role: str) -> TransitionDecision:
    return _default_validator.check(deal, target, actor_role)


def apply_transition(deal: Deal, target: str, actor_role: str, now: datetime | None = None) -> Deal:
    return _default_validator.apply(deal, target, actor_role, now=now)


def request_payment(deal: Deal, actor_role: str, now: datetime | None = None) -> Deal:
    return _default_validator.request_payment(deal, actor_role, now=now)
