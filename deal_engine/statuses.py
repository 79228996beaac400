"""
Status Taxonomy

Single source of truth for every deal status: the phase it belongs to, its
position in the workflow, whether only admins may set it, and (for legacy
values kept for old data) which current status replaced it.

The job cycle follows the training's stages:
SIGN -> BUILD -> COLLECT -> COMPLETE, with ON_HOLD / CANCELLED reachable from anywhere.
"""

from .exceptions import UnknownStatus
from .models import StatusInfo

PHASE_SIGN = "sign"
PHASE_BUILD = "build"
PHASE_COLLECT = "collect"
PHASE_COMPLETE = "complete"
PHASE_OTHER = "other"
PHASES = (PHASE_SIGN, PHASE_BUILD, PHASE_COLLECT, PHASE_COMPLETE)

# Highest rank of the main line; used for progress percentages
FINAL_STEP = 16


def _info(status, phase, label, rank, admin=False, superseded_by=None) -> StatusInfo:
    return StatusInfo(
        status=status,
        phase=phase,
        label=label,
        rank=rank,
        is_admin_only=admin,
        is_legacy_alias=superseded_by is not None,
        superseded_by=superseded_by,
    )


_STATUSES = [
    # SIGN PHASE
    _info("lead", PHASE_SIGN, "Lead", 1),
    _info("inspection_scheduled", PHASE_SIGN, "Inspection Scheduled", 2),
    _info("claim_filed", PHASE_SIGN, "Claim Filed", 3),
    _info("signed", PHASE_SIGN, "Signed", 4),
    _info("adjuster_met", PHASE_SIGN, "Adjuster Met", 5),
    _info("awaiting_approval", PHASE_SIGN, "Awaiting Approval", 6),
    _info("approved", PHASE_SIGN, "Approved", 7),
    # BUILD PHASE
    _info("acv_collected", PHASE_BUILD, "ACV Collected", 8, admin=True),
    _info("deductible_collected", PHASE_BUILD, "Deductible Collected", 9, admin=True),
    _info("materials_selected", PHASE_BUILD, "Materials Selected", 10),
    _info("install_scheduled", PHASE_BUILD, "Install Scheduled", 11, admin=True),
    _info("installed", PHASE_BUILD, "Installed", 12, admin=True),
    _info("completion_signed", PHASE_BUILD, "Completion Signed", 13),
    # COLLECT PHASE
    _info("invoice_sent", PHASE_COLLECT, "RCV Sent", 14, admin=True),
    _info("depreciation_collected", PHASE_COLLECT, "Depreciation Collected", 15, admin=True),
    # COMPLETE PHASE
    _info("complete", PHASE_COMPLETE, "Complete", 16, admin=True),
    _info("paid", PHASE_COMPLETE, "Paid", 18, admin=True),
    # SIDE BRANCHES
    _info("on_hold", PHASE_OTHER, "On Hold", 0),
    _info("cancelled", PHASE_OTHER, "Cancelled", 0),
    # LEGACY (accepted on stored deals, never offered as a target)
    _info("adjuster_scheduled", PHASE_SIGN, "Adjuster Scheduled", 5, superseded_by="adjuster_met"),
    _info("collect_acv", PHASE_BUILD, "Collect ACV", 8, admin=True, superseded_by="acv_collected"),
    _info(
        "collect_deductible", PHASE_BUILD, "Collect Deductible", 9, admin=True,
        superseded_by="deductible_collected",
    ),
    _info("materials_ordered", PHASE_BUILD, "Materials Ordered", 10, superseded_by="materials_selected"),
    _info("materials_delivered", PHASE_BUILD, "Materials Delivered", 10, superseded_by="materials_selected"),
    _info("permit", PHASE_BUILD, "Permit", 11, superseded_by="install_scheduled"),
    # Payment requested by the rep; sits between complete and paid
    _info("pending", PHASE_COMPLETE, "Payment Pending", 17, superseded_by="complete"),
]

STATUS_TABLE: dict[str, StatusInfo] = {info.status: info for info in _STATUSES}

# Always-available "abort" / reset targets
SIDE_BRANCHES = frozenset({"on_hold", "cancelled"})
RESET_TARGETS = frozenset({"lead", "on_hold", "cancelled"})
TERMINAL_STATUSES = frozenset({"paid", "cancelled"})


def describe(status) -> StatusInfo:
    """Return the StatusInfo for `status`, raising UnknownStatus for anything else."""
    if not isinstance(status, str) or status not in STATUS_TABLE:
        raise UnknownStatus(status)
    return STATUS_TABLE[status]


def is_known(status) -> bool:
    return isinstance(status, str) and status in STATUS_TABLE


def rank(status: str) -> int:
    return describe(status).rank


def phase_of(status: str) -> str:
    return describe(status).phase


def is_admin_only(status: str) -> bool:
    return describe(status).is_admin_only


def canonical(status: str) -> str:
    """Map a legacy alias to the status that replaced it."""
    info = describe(status)
    return info.superseded_by or info.status


def target_statuses() -> list[str]:
    """Statuses that may be chosen as the target of a transition, in workflow order."""
    current = [info for info in _STATUSES if not info.is_legacy_alias]
    return [info.status for info in sorted(current, key=lambda i: (i.rank == 0, i.rank))]


def statuses_in_phase(phase: str) -> list[str]:
    """Current (non-legacy) statuses of a phase, ordered by rank."""
    infos = [i for i in _STATUSES if i.phase == phase and not i.is_legacy_alias]
    return [i.status for i in sorted(infos, key=lambda i: i.rank)]


def progress_percentage(status: str) -> int:
    """How far through the job cycle a status is (0 for side branches)."""
    step = rank(status)
    if step == 0:
        return 0
    return min(100, round(step / FINAL_STEP * 100))
