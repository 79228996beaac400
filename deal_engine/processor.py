"""
Deal Processor - Stateless Facade

Takes a deal snapshot as a plain dictionary, runs one lifecycle action
through the rule components, and returns a plain dictionary. The HTTP entry
points route each endpoint to one action here.
"""

import json
from decimal import Decimal
from typing import Any, Callable, Dict

from . import statuses
from .collaborators import RateTable, StorageKeyRenderer
from .exceptions import DealEngineError
from .models import Commission, Deal, RepAssignments, parse_date
from .output import OutputBuilder
from .rules import (
    CommissionAllocator,
    ProgressionAdvisor,
    ReceiptTracker,
    TransitionValidator,
    split_claim,
)
from .validators import InputValidator


# POST endpoint -> action, shared by the Flask app and the Lambda handler
ENDPOINTS = {
    "/transitions/check": "check_transition",
    "/transitions/apply": "apply_transition",
    "/payment_request": "request_payment",
    "/commissions/allocate": "allocate_commissions",
    "/commissions/recompute": "recompute_commissions",
    "/receipts": "record_payment",
    "/progression": "progression",
    "/insurance/split": "split_claim",
}


def _require(data: Dict[str, Any], key: str):
    if key not in data or data[key] is None:
        raise ValueError(f"Missing required field: {key}")
    return data[key]


class DealProcessor:
    """
    Dictionary-in / dictionary-out access to the deal lifecycle rules.

    Actions:
    - statuses: the taxonomy
    - check_transition / apply_transition / request_payment
    - allocate_commissions / recompute_commissions
    - record_payment (add `"replace": true` to replace an existing receipt)
    - progression: suggested status and next steps
    - split_claim: insurance check math
    """

    def __init__(self, renderer=None):
        self.validator = InputValidator()
        self.transitions = TransitionValidator()
        self.allocator = CommissionAllocator()
        self.receipts = ReceiptTracker()
        self.progression = ProgressionAdvisor()
        self.renderer = renderer or StorageKeyRenderer()
        self.output_builder = OutputBuilder()

        self.actions: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
            "statuses": self.list_statuses,
            "check_transition": self.check_transition,
            "apply_transition": self.apply_transition,
            "request_payment": self.request_payment,
            "allocate_commissions": self.allocate_commissions,
            "recompute_commissions": self.recompute_commissions,
            "record_payment": self.record_payment,
            "progression": self.suggest_progression,
            "split_claim": self.split_claim,
        }

    def process(self, action: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Run one named action on raw dictionary input."""
        handler = self.actions.get(action)
        if handler is None:
            raise ValueError(f"Unknown action: {action}")
        return handler(data or {})

    def _load_deal(self, data: Dict[str, Any]) -> Deal:
        deal = Deal.from_dict(_require(data, "deal"))
        self.validator.validate_deal(deal)
        return deal

    def _load_commissions(self, data: Dict[str, Any]) -> list[Commission]:
        commissions = [Commission.from_dict(item) for item in data.get("commissions", [])]
        self.validator.validate_commissions(commissions)
        return commissions

    def list_statuses(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "statuses": [self.output_builder.status_info(info) for info in statuses.STATUS_TABLE.values()],
            "targets": statuses.target_statuses(),
        }

    def check_transition(self, data: Dict[str, Any]) -> Dict[str, Any]:
        deal = self._load_deal(data)
        decision = self.transitions.check(deal, _require(data, "target_status"), _require(data, "actor_role"))
        return self.output_builder.decision(decision)

    def apply_transition(self, data: Dict[str, Any]) -> Dict[str, Any]:
        deal = self._load_deal(data)
        self.transitions.apply(deal, _require(data, "target_status"), _require(data, "actor_role"))
        return {"deal": self.output_builder.deal(deal)}

    def request_payment(self, data: Dict[str, Any]) -> Dict[str, Any]:
        deal = self._load_deal(data)
        self.transitions.request_payment(deal, _require(data, "actor_role"))
        return {"deal": self.output_builder.deal(deal)}

    def allocate_commissions(self, data: Dict[str, Any]) -> Dict[str, Any]:
        deal_id = str(_require(data, "deal_id"))
        total = Decimal(str(_require(data, "total_contract_value")))
        if total < 0:
            raise ValueError(f"total_contract_value cannot be negative, got: {total}")

        commissions = self.allocator.allocate(
            deal_id,
            _require(data, "arrangement"),
            RepAssignments.from_dict(data.get("rep_assignments", {})),
            total,
            RateTable.from_list(data.get("rates", [])),
        )
        return self.output_builder.commissions(commissions)

    def recompute_commissions(self, data: Dict[str, Any]) -> Dict[str, Any]:
        total = Decimal(str(_require(data, "total_contract_value")))
        if total < 0:
            raise ValueError(f"total_contract_value cannot be negative, got: {total}")

        commissions = self._load_commissions(data)
        self.allocator.validate_roles(commissions)
        self.allocator.recompute(commissions, total)
        return self.output_builder.commissions(commissions)

    def record_payment(self, data: Dict[str, Any]) -> Dict[str, Any]:
        deal = self._load_deal(data)
        record = self.receipts.replace_receipt if data.get("replace") else self.receipts.record_payment
        ref = record(
            deal,
            _require(data, "kind"),
            Decimal(str(_require(data, "amount"))),
            parse_date(_require(data, "date_paid")),
            data.get("payment_method"),
            data.get("check_number"),
            self.renderer,
            signature_image=data.get("signature_image"),
        )
        return {"receipt": self.output_builder.receipt(ref), "deal": self.output_builder.deal(deal)}

    def suggest_progression(self, data: Dict[str, Any]) -> Dict[str, Any]:
        deal = self._load_deal(data)
        suggested = self.progression.suggest_status(deal)
        return {
            "current_status": deal.status,
            "suggested_status": suggested,
            "next_steps": self.progression.next_steps(deal.status),
            "progress_percentage": statuses.progress_percentage(deal.status),
        }

    def split_claim(self, data: Dict[str, Any]) -> Dict[str, Any]:
        split = split_claim(
            Decimal(str(_require(data, "rcv"))),
            Decimal(str(_require(data, "depreciation_percent"))),
            Decimal(str(data.get("deductible", 0))),
        )
        return self.output_builder.claim_split(split)


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================


def process_action_from_json(action: str, json_input: str) -> str:
    """
    Run one action on a JSON string and return a JSON string.
    Errors come back as JSON bodies rather than exceptions.
    """
    try:
        input_data = json.loads(json_input)
        result = DealProcessor().process(action, input_data)
        return json.dumps(result, indent=2)

    except DealEngineError as e:
        return json.dumps(e.to_dict(), indent=2)

    except ValueError as e:
        error_response = {"error": str(e), "status": "validation_failed"}
        return json.dumps(error_response, indent=2)
