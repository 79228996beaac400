"""
Rules Package

Provides the decision components of the deal lifecycle.
"""

from .commission import CommissionAllocator
from .insurance import split_claim
from .progression import ProgressionAdvisor
from .receipts import ReceiptTracker
from .transitions import TransitionValidator, apply_transition, check_transition, request_payment

__all__ = [
    "TransitionValidator",
    "CommissionAllocator",
    "ReceiptTracker",
    "ProgressionAdvisor",
    "split_claim",
    "check_transition",
    "apply_transition",
    "request_payment",
]
