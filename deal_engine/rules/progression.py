"""
Status Progression Advisor

Works out which status a deal's recorded evidence supports, and what is
still needed to reach the next step. Advisory only: it never changes a deal,
status changes still go through the TransitionValidator.
"""

from .. import statuses
from ..models import ACV, DEDUCTIBLE, DEPRECIATION, Deal

APPROVAL_TYPES = ("full", "partial", "sale")

NEXT_STEPS: dict[str, list[str]] = {
    "lead": ["Upload inspection photos"],
    "inspection_scheduled": ["Fill insurance details (company, policy number, claim number)"],
    "claim_filed": ["Sign agreement or upload insurance agreement"],
    "signed": ["Meet the adjuster at the inspection appointment"],
    "adjuster_met": ["Wait for the insurance decision"],
    "awaiting_approval": [
        "Select approval type and mark as approved",
        "Upload Lost Statement (required for Full Approval)",
    ],
    "approved": ["Generate ACV receipt"],
    "acv_collected": ["Generate Deductible receipt"],
    "deductible_collected": ["Select materials and colors"],
    "materials_selected": ["Schedule install date (Admin only)"],
    "install_scheduled": ["Upload install photos"],
    "installed": ["Get the completion form signed by the homeowner"],
    "completion_signed": ["Generate and send invoice (Admin only)"],
    "invoice_sent": ["Generate Depreciation receipt"],
    "depreciation_collected": ["Mark job as complete"],
    "complete": ["Request commission payment"],
    "pending": ["Admin approves the commission payment"],
    "paid": ["Job complete!"],
}


class ProgressionAdvisor:
    """Derives the status supported by a deal's data."""

    def suggest_status(self, deal: Deal) -> str:
        """
        Status the deal's evidence supports.

        Checks from the end of the workflow backwards, so the furthest
        step with evidence wins.
        """
        payments = deal.payments

        if payments[DEPRECIATION].has_receipt and payments[DEPRECIATION].collected:
            return "complete"

        if deal.invoice_url or deal.milestone("invoice_sent"):
            if payments[DEPRECIATION].has_receipt:
                return "depreciation_collected"
            return "invoice_sent"

        if deal.install_images:
            return "installed"

        if deal.install_date:
            return "install_scheduled"

        if payments[DEDUCTIBLE].has_receipt or deal.milestone("collect_deductible"):
            return "deductible_collected"

        if payments[ACV].has_receipt or payments[ACV].collected:
            return "acv_collected"

        has_agreement = bool(deal.contract_signed or deal.insurance_agreement_url or deal.signature_url)
        has_approval = deal.approval_type in APPROVAL_TYPES
        # Full approval needs the lost statement before it counts
        missing_lost_statement = deal.approval_type == "full" and not deal.lost_statement_url

        if has_approval:
            if missing_lost_statement or not has_agreement:
                return "approved"
            return "signed"

        if has_agreement:
            # Older deals recorded approval only as a date
            if deal.milestone("approved"):
                return "signed"
            return "awaiting_approval"

        if deal.insurance_company and deal.claim_number:
            return "claim_filed"

        if deal.inspection_images:
            return "inspection_scheduled"

        return "lead"

    def next_steps(self, status: str) -> list[str]:
        """Human-readable requirements for moving past `status`."""
        return list(NEXT_STEPS.get(statuses.canonical(status), []))
