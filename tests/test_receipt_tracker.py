"""
Unit Tests for the Receipt Tracker
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from deal_engine.collaborators import StorageKeyRenderer
from deal_engine.exceptions import PreconditionNotMet, ReceiptAlreadyExists
from deal_engine.models import Deal
from deal_engine.rules import ReceiptTracker

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class RecordingRenderer:
    """Renderer double that remembers what it was asked to render."""

    def __init__(self):
        self.calls = []

    def render(self, kind, deal_snapshot, signature_image, payment_details):
        self.calls.append((kind, deal_snapshot.id, signature_image, payment_details))
        return f"artifact-{len(self.calls)}"


class FailingRenderer:
    def render(self, kind, deal_snapshot, signature_image, payment_details):
        raise RuntimeError("template service unavailable")


class BlankHandleRenderer:
    def render(self, kind, deal_snapshot, signature_image, payment_details):
        return ""


@pytest.fixture
def tracker():
    return ReceiptTracker()


@pytest.fixture
def renderer():
    return RecordingRenderer()


@pytest.fixture
def deal():
    return Deal(id="deal-7", status="approved")


class TestRecordPayment:

    def test_records_triple_receipt_and_milestone(self, tracker, renderer, deal):
        ref = tracker.record_payment(
            deal, "acv", Decimal("8500"), date(2026, 3, 9), "Check", "1042", renderer,
            signature_image="data:image/png;base64,AAA", now=NOW,
        )

        payment = deal.payments["acv"]
        assert payment.collected is True
        assert payment.amount == Decimal("8500.00")
        assert payment.date_paid == date(2026, 3, 9)
        assert payment.check_number == "1042"
        assert payment.receipt_url == "artifact-1"
        assert deal.milestone("collect_acv") == NOW
        assert ref.handle == "artifact-1"
        assert ref.kind == "acv"
        assert ref.deal_id == "deal-7"

    def test_renderer_receives_snapshot_and_details(self, tracker, renderer, deal):
        tracker.record_payment(
            deal, "deductible", Decimal("1000"), date(2026, 3, 9), None, None, renderer,
            signature_image="sig", now=NOW,
        )

        kind, deal_id, signature, details = renderer.calls[0]
        assert kind == "deductible"
        assert deal_id == "deal-7"
        assert signature == "sig"
        assert details["amount"] == Decimal("1000.00")
        assert details["method"] == "Check"

    @pytest.mark.parametrize("kind,milestone", [
        ("acv", "collect_acv"),
        ("deductible", "collect_deductible"),
        ("depreciation", "depreciation_collected"),
    ])
    def test_milestone_per_kind(self, tracker, renderer, deal, kind, milestone):
        tracker.record_payment(deal, kind, Decimal("100"), date(2026, 3, 9), "Cash", None, renderer, now=NOW)

        assert deal.milestone(milestone) == NOW

    def test_second_receipt_of_same_kind_is_rejected(self, tracker, renderer, deal):
        tracker.record_payment(deal, "acv", Decimal("8500"), date(2026, 3, 9), "Check", "1042", renderer, now=NOW)

        with pytest.raises(ReceiptAlreadyExists):
            tracker.record_payment(
                deal, "acv", Decimal("9999"), date(2026, 3, 12), "Check", "2000", renderer, now=NOW,
            )

        payment = deal.payments["acv"]
        assert payment.amount == Decimal("8500.00")
        assert payment.date_paid == date(2026, 3, 9)
        assert len(renderer.calls) == 1

    def test_kinds_are_independent_and_unordered(self, tracker, renderer, deal):
        tracker.record_payment(deal, "depreciation", Decimal("4000"), date(2026, 5, 1), "Check", None, renderer)
        tracker.record_payment(deal, "acv", Decimal("8500"), date(2026, 5, 2), "Check", None, renderer)

        assert tracker.receipt_status(deal) == {"acv": True, "deductible": False, "depreciation": True}
        assert tracker.outstanding(deal) == ["deductible"]

    def test_does_not_change_status(self, tracker, renderer, deal):
        tracker.record_payment(deal, "acv", Decimal("10"), date(2026, 3, 9), "Check", None, renderer)

        assert deal.status == "approved"

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
    def test_amount_must_be_positive(self, tracker, renderer, deal, amount):
        with pytest.raises(ValueError):
            tracker.record_payment(deal, "acv", amount, date(2026, 3, 9), "Check", None, renderer)

    def test_unknown_kind(self, tracker, renderer, deal):
        with pytest.raises(ValueError):
            tracker.record_payment(deal, "supplement", Decimal("10"), date(2026, 3, 9), "Check", None, renderer)

    def test_renderer_failure_leaves_deal_untouched(self, tracker, deal):
        with pytest.raises(RuntimeError):
            tracker.record_payment(deal, "acv", Decimal("10"), date(2026, 3, 9), "Check", None, FailingRenderer())

        assert deal.payments["acv"].collected is False
        assert deal.milestones == {}

    def test_blank_handle_is_rejected_before_any_write(self, tracker, deal):
        with pytest.raises(RuntimeError):
            tracker.record_payment(deal, "acv", Decimal("100"), date(2026, 3, 9), "Check", None, BlankHandleRenderer())

        assert deal.payments["acv"].collected is False
        assert deal.payments["acv"].amount is None
        assert deal.milestones == {}

    def test_collected_without_receipt_counts_as_recorded(self, tracker, renderer, deal):
        payment = deal.payments["acv"]
        payment.collected = True
        payment.amount = Decimal("100.00")

        with pytest.raises(ReceiptAlreadyExists):
            tracker.record_payment(deal, "acv", Decimal("999"), date(2026, 3, 9), "Check", None, renderer)

        assert payment.amount == Decimal("100.00")
        assert renderer.calls == []
        assert tracker.outstanding(deal) == ["deductible", "depreciation"]

    def test_collected_without_receipt_can_be_replaced(self, tracker, renderer, deal):
        deal.payments["deductible"].collected = True

        ref = tracker.replace_receipt(deal, "deductible", Decimal("1000"), date(2026, 3, 9), "Check", None, renderer)

        assert deal.payments["deductible"].receipt_url == ref.handle


class TestReplaceReceipt:

    def test_replace_overwrites_values_but_keeps_milestone(self, tracker, renderer, deal):
        tracker.record_payment(deal, "acv", Decimal("8500"), date(2026, 3, 9), "Check", "1042", renderer, now=NOW)
        later = datetime(2026, 3, 20, tzinfo=timezone.utc)

        ref = tracker.replace_receipt(
            deal, "acv", Decimal("8750"), date(2026, 3, 19), "Check", "1043", renderer, now=later,
        )

        assert deal.payments["acv"].amount == Decimal("8750.00")
        assert deal.payments["acv"].receipt_url == "artifact-2"
        assert deal.milestone("collect_acv") == NOW
        assert ref.recorded_at == later

    def test_replace_requires_existing_receipt(self, tracker, renderer, deal):
        with pytest.raises(PreconditionNotMet):
            tracker.replace_receipt(deal, "acv", Decimal("10"), date(2026, 3, 9), "Check", None, renderer)


class TestStorageKeyRenderer:

    def test_handle_is_storage_key(self, tracker, deal):
        ref = tracker.record_payment(
            deal, "acv", Decimal("10"), date(2026, 3, 9), "Check", None, StorageKeyRenderer("receipts/"),
        )

        assert ref.handle == "receipts/deal-7/acv-2026-03-09.html"
