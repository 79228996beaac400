"""
Insurance claim math (from the sales training).
"""

from decimal import Decimal

from ..models import ClaimSplit
from .commission import quantize_money


def split_claim(rcv: Decimal, depreciation_percent: Decimal, deductible: Decimal) -> ClaimSplit:
    """
    Split a claim into the two insurance checks.

    RCV - depreciation = ACV. The first check is ACV less the deductible
    the homeowner pays; depreciation is released after the work is done.
    """
    if rcv < 0:
        raise ValueError(f"rcv cannot be negative, got: {rcv}")
    if not (0 <= depreciation_percent <= 100):
        raise ValueError(f"depreciation_percent must be between 0 and 100, got: {depreciation_percent}")
    if deductible < 0:
        raise ValueError(f"deductible cannot be negative, got: {deductible}")

    depreciation = quantize_money(rcv * depreciation_percent / Decimal("100"))
    acv = rcv - depreciation

    return ClaimSplit(
        rcv=quantize_money(rcv),
        depreciation=depreciation,
        acv=quantize_money(acv),
        deductible=quantize_money(deductible),
        first_check=quantize_money(acv - deductible),
        second_check=depreciation,
        homeowner_out_of_pocket=quantize_money(deductible),
    )
