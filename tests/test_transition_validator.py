"""
Unit Tests for the Transition Validator

Tests verify rule order, role gates, data preconditions and milestone stamping.
"""

from datetime import date, datetime, timezone

import pytest

from deal_engine import statuses
from deal_engine.exceptions import (
    IllegalTargetStatus,
    InsufficientRole,
    PreconditionNotMet,
    UnknownStatus,
    UseExplicitPaymentRequestAction,
)
from deal_engine.models import Deal
from deal_engine.rules import TransitionValidator

NOW = datetime(2026, 3, 2, 15, 30, tzinfo=timezone.utc)


@pytest.fixture
def validator():
    return TransitionValidator()


def make_deal(status="lead", **fields) -> Deal:
    return Deal(id="deal-1", status=status, **fields)


class TestRuleOrder:

    def test_unknown_target(self, validator):
        with pytest.raises(UnknownStatus):
            validator.check(make_deal(), "finished", "admin")

    def test_unknown_current_status(self, validator):
        with pytest.raises(UnknownStatus):
            validator.check(make_deal(status="archived"), "lead", "admin")

    def test_unknown_role(self, validator):
        with pytest.raises(ValueError):
            validator.check(make_deal(), "signed", "crew")

    @pytest.mark.parametrize("alias", ["permit", "materials_ordered", "collect_acv", "adjuster_scheduled"])
    def test_legacy_alias_is_illegal_target(self, validator, alias):
        decision = validator.check(make_deal(status="lead"), alias, "admin")

        assert not decision.allowed
        assert isinstance(decision.error, IllegalTargetStatus)

    def test_legacy_alias_rejected_even_when_backward(self, validator):
        decision = validator.check(make_deal(status="paid"), "collect_acv", "admin")

        assert isinstance(decision.error, IllegalTargetStatus)

    def test_legacy_alias_is_accepted_as_source(self, validator):
        deal = make_deal(status="collect_acv")

        assert validator.check(deal, "acv_collected", "admin").allowed
        assert validator.check(deal, "approved", "rep").allowed


class TestBackwardMoves:
    """Backward and no-op moves are never blocked by role or precondition."""

    @pytest.mark.parametrize("role", ["rep", "admin"])
    @pytest.mark.parametrize("current", ["signed", "installed", "complete", "paid", "depreciation_collected"])
    def test_every_lower_or_equal_target_is_allowed(self, validator, role, current):
        deal = make_deal(status=current)
        current_rank = statuses.rank(current)

        for target in statuses.target_statuses():
            if statuses.rank(target) <= current_rank:
                decision = validator.check(deal, target, role)
                assert decision.allowed, f"{current} -> {target} ({role}) should be allowed"

    @pytest.mark.parametrize("target", ["cancelled", "on_hold", "lead"])
    def test_reset_targets_always_allowed(self, validator, target):
        assert validator.check(make_deal(status="installed"), target, "rep").allowed

    def test_same_status_is_idempotent_noop(self, validator):
        deal = make_deal(status="install_scheduled")

        assert validator.check(deal, "install_scheduled", "rep").allowed

    def test_backward_to_admin_status_as_rep(self, validator):
        """A rep may correct a deal back to an admin-only status it already passed."""
        assert validator.check(make_deal(status="complete"), "installed", "rep").allowed


class TestRoleGate:

    @pytest.mark.parametrize("current", ["lead", "approved", "installed", "complete"])
    def test_rep_can_never_mark_paid(self, validator, current):
        deal = make_deal(status=current, completion_images=["a.jpg"], install_images=["b.jpg"])

        decision = validator.check(deal, "paid", "rep")

        assert not decision.allowed
        assert isinstance(decision.error, InsufficientRole)

    @pytest.mark.parametrize("target", ["acv_collected", "deductible_collected", "install_scheduled",
                                        "installed", "invoice_sent", "depreciation_collected", "complete"])
    def test_rep_cannot_enter_admin_statuses(self, validator, target):
        decision = validator.check(make_deal(status="approved"), target, "rep")

        assert isinstance(decision.error, InsufficientRole)

    def test_rep_can_move_forward_within_sign_phase(self, validator):
        assert validator.check(make_deal(status="lead"), "claim_filed", "rep").allowed

    def test_admin_moves_into_build_phase(self, validator):
        assert validator.check(make_deal(status="approved"), "acv_collected", "admin").allowed

    @pytest.mark.parametrize("legacy,successor", [
        ("permit", "install_scheduled"),
        ("collect_acv", "acv_collected"),
        ("collect_deductible", "deductible_collected"),
    ])
    def test_rep_cannot_step_from_legacy_status_onto_admin_successor(self, validator, legacy, successor):
        decision = validator.check(make_deal(status=legacy), successor, "rep")

        assert not decision.allowed
        assert isinstance(decision.error, InsufficientRole)

    def test_legacy_permit_to_install_scheduled_still_needs_install_date(self, validator):
        deal = make_deal(status="permit")

        decision = validator.check(deal, "install_scheduled", "admin")
        assert isinstance(decision.error, PreconditionNotMet)

        deal.install_date = date(2026, 4, 1)
        assert validator.check(deal, "install_scheduled", "admin").allowed

    def test_legacy_materials_status_onto_successor_as_rep(self, validator):
        assert validator.check(make_deal(status="materials_ordered"), "materials_selected", "rep").allowed


class TestPreconditions:

    def test_signed_requires_signed_contract(self, validator):
        decision = validator.check(make_deal(contract_signed=False), "signed", "rep")

        assert isinstance(decision.error, PreconditionNotMet)
        assert "contract" in decision.reason.lower()

    def test_signed_allowed_once_contract_signed(self, validator):
        assert validator.check(make_deal(contract_signed=True), "signed", "rep").allowed

    def test_install_scheduled_requires_install_date(self, validator):
        deal = make_deal(status="materials_selected")

        decision = validator.check(deal, "install_scheduled", "admin")
        assert isinstance(decision.error, PreconditionNotMet)
        assert "install date" in decision.reason.lower()

        deal.install_date = date(2026, 4, 1)
        assert validator.check(deal, "install_scheduled", "admin").allowed

    def test_installed_requires_install_images(self, validator):
        deal = make_deal(status="install_scheduled", install_images=[])

        decision = validator.check(deal, "installed", "admin")
        assert isinstance(decision.error, PreconditionNotMet)
        assert "photos" in decision.reason.lower()

        deal.install_images.append("roof-after.jpg")
        assert validator.check(deal, "installed", "admin").allowed

    def test_complete_requires_completion_images(self, validator):
        deal = make_deal(status="depreciation_collected")

        assert isinstance(validator.check(deal, "complete", "admin").error, PreconditionNotMet)

        deal.completion_images = ["done.jpg"]
        assert validator.check(deal, "complete", "admin").allowed

    def test_paid_requires_complete_or_pending(self, validator):
        decision = validator.check(make_deal(status="depreciation_collected"), "paid", "admin")
        assert isinstance(decision.error, PreconditionNotMet)

        assert validator.check(make_deal(status="complete"), "paid", "admin").allowed
        assert validator.check(make_deal(status="pending"), "paid", "admin").allowed

    def test_preconditions_read_current_snapshot(self, validator):
        """Data arriving with the update does not count; only the stored deal."""
        deal = make_deal(status="install_scheduled")
        decision = validator.check(deal, "installed", "admin")

        assert not decision.allowed
        assert deal.status == "install_scheduled"

    def test_statuses_without_requirements_pass(self, validator):
        assert validator.check(make_deal(status="installed"), "completion_signed", "rep").allowed

    def test_cancelled_deal_must_be_reopened_first(self, validator):
        deal = make_deal(status="cancelled", contract_signed=True)

        decision = validator.check(deal, "signed", "rep")
        assert isinstance(decision.error, PreconditionNotMet)

        assert validator.check(deal, "lead", "rep").allowed


class TestPendingStatus:

    @pytest.mark.parametrize("current", ["lead", "complete", "paid", "pending"])
    def test_pending_never_a_direct_target(self, validator, current):
        deal = make_deal(status=current, completion_images=["x.jpg"])

        decision = validator.check(deal, "pending", "admin")

        assert not decision.allowed
        assert isinstance(decision.error, UseExplicitPaymentRequestAction)

    def test_request_payment_moves_complete_deal_to_pending(self, validator):
        deal = make_deal(status="complete")

        validator.request_payment(deal, "rep", now=NOW)

        assert deal.status == "pending"
        assert deal.payment_requested is True
        assert deal.payment_request_date == NOW
        assert deal.milestone("pending") == NOW

    def test_request_payment_requires_complete(self, validator):
        with pytest.raises(PreconditionNotMet):
            validator.request_payment(make_deal(status="installed"), "rep")

    def test_request_payment_is_idempotent(self, validator):
        deal = make_deal(status="complete")
        validator.request_payment(deal, "rep", now=NOW)
        later = datetime(2026, 3, 5, tzinfo=timezone.utc)

        validator.request_payment(deal, "rep", now=later)

        assert deal.payment_request_date == NOW


class TestApply:

    def test_apply_sets_status_and_milestone(self, validator):
        deal = make_deal(status="lead", contract_signed=True)

        result = validator.apply(deal, "signed", "rep", now=NOW)

        assert result is deal
        assert deal.status == "signed"
        assert deal.milestone("signed") == NOW

    def test_apply_raises_typed_error_and_leaves_deal(self, validator):
        deal = make_deal(status="lead")

        with pytest.raises(PreconditionNotMet):
            validator.apply(deal, "signed", "rep", now=NOW)

        assert deal.status == "lead"
        assert deal.milestones == {}

    def test_milestones_are_monotonic(self, validator):
        deal = make_deal(status="lead", contract_signed=True)
        first = datetime(2026, 1, 1, tzinfo=timezone.utc)
        second = datetime(2026, 2, 1, tzinfo=timezone.utc)

        validator.apply(deal, "signed", "rep", now=first)
        validator.apply(deal, "lead", "rep", now=second)
        validator.apply(deal, "signed", "rep", now=second)

        assert deal.milestone("signed") == first
        assert deal.milestone("lead") == second

    def test_apply_touches_nothing_else(self, validator):
        deal = make_deal(status="materials_selected", install_date=date(2026, 5, 1))

        validator.apply(deal, "install_scheduled", "admin", now=NOW)

        assert deal.install_images == []
        assert deal.payment_requested is False
        assert set(deal.milestones) == {"install_scheduled"}

    def test_end_to_end_signing(self, validator):
        deal = make_deal(status="lead", contract_signed=False)

        denied = validator.check(deal, "signed", "rep")
        assert isinstance(denied.error, PreconditionNotMet)

        deal.contract_signed = True
        assert validator.check(deal, "signed", "rep").allowed

        validator.apply(deal, "signed", "rep", now=NOW)
        assert deal.status == "signed"
        assert deal.milestone("signed") is not None
