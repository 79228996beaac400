"""
Domain Models for the Roofing Deal Engine

These dataclasses provide type-safe representations of deals, commissions
and the results produced by the rule components.
All monetary values and percents use Decimal for precision.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from .exceptions import DealEngineError

# Actor roles
ROLE_ADMIN = "admin"
ROLE_REP = "rep"
ACTOR_ROLES = (ROLE_ADMIN, ROLE_REP)

# Commission roles
SELF_GEN = "self_gen"
SETTER = "setter"
CLOSER = "closer"
COMMISSION_ROLES = (SELF_GEN, SETTER, CLOSER)

# Commission arrangements chosen at deal creation
ARRANGEMENT_SELF_GEN = "self_gen"
ARRANGEMENT_SETTER_CLOSER = "setter_closer"
ARRANGEMENTS = (ARRANGEMENT_SELF_GEN, ARRANGEMENT_SETTER_CLOSER)

# Collectable payment kinds
ACV = "acv"
DEDUCTIBLE = "deductible"
DEPRECIATION = "depreciation"
PAYMENT_KINDS = (ACV, DEDUCTIBLE, DEPRECIATION)


def _decimal(value, default: str = "0") -> Decimal:
    if value is None or value == "":
        return Decimal(default)
    return Decimal(str(value))


def _decimal_or_none(value) -> Decimal | None:
    if value is None or value == "":
        return None
    return Decimal(str(value))


_TRUE_STRINGS = ("true", "t", "yes", "y", "1")
_FALSE_STRINGS = ("false", "f", "no", "n", "0", "")


def parse_bool(value, default: bool = False) -> bool:
    """Read a boolean column; "false" and "0" are False. Anything unrecognised raises ValueError."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise ValueError(f"Expected a boolean, got: {value!r}")


def parse_datetime(value) -> datetime | None:
    """Parse an ISO-8601 timestamp (a trailing 'Z' is accepted)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def parse_date(value) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


# =============================================================================
# TAXONOMY
# =============================================================================


@dataclass(frozen=True)
class StatusInfo:
    """Static description of one deal status."""

    status: str
    phase: str
    label: str
    rank: int
    is_admin_only: bool = False
    is_legacy_alias: bool = False
    superseded_by: str | None = None


# =============================================================================
# DEAL
# =============================================================================


@dataclass
class PaymentCollection:
    """Collection state for one collectable amount (ACV, deductible or depreciation)."""

    collected: bool = False
    amount: Decimal | None = None
    date_paid: date | None = None
    receipt_url: str | None = None
    method: str | None = None
    check_number: str | None = None

    @property
    def has_receipt(self) -> bool:
        return bool(self.receipt_url)

    @property
    def is_recorded(self) -> bool:
        """Collected or receipted; older rows may carry the flag without a receipt."""
        return self.collected or self.has_receipt

    @classmethod
    def from_dict(cls, kind: str, data: dict) -> "PaymentCollection":
        """Read the flat `<kind>_check_*` / `<kind>_receipt_url` columns of a deal row."""
        return cls(
            collected=parse_bool(data.get(f"{kind}_check_collected")),
            amount=_decimal_or_none(data.get(f"{kind}_check_amount")),
            date_paid=parse_date(data.get(f"{kind}_check_date")),
            receipt_url=data.get(f"{kind}_receipt_url"),
            method=data.get(f"{kind}_payment_method"),
            check_number=data.get(f"{kind}_check_number"),
        )


def _empty_payments() -> dict[str, PaymentCollection]:
    return {kind: PaymentCollection() for kind in PAYMENT_KINDS}


@dataclass
class Deal:
    """A homeowner roofing project tracked from lead to paid."""

    id: str
    status: str = "lead"
    version: int = 0

    # Financials
    total_contract_value: Decimal | None = None
    total_price: Decimal | None = None  # Legacy alias of total_contract_value
    rcv: Decimal | None = None
    acv: Decimal | None = None
    depreciation: Decimal | None = None
    deductible: Decimal | None = None
    supplement_amount: Decimal | None = None
    invoice_amount: Decimal | None = None

    # Workflow evidence
    contract_signed: bool = False
    signature_url: str | None = None
    permit_file_url: str | None = None
    install_date: date | None = None
    install_images: list[str] = field(default_factory=list)
    completion_images: list[str] = field(default_factory=list)
    inspection_images: list[str] = field(default_factory=list)

    # Claim and approval evidence
    insurance_company: str | None = None
    claim_number: str | None = None
    insurance_agreement_url: str | None = None
    approval_type: str | None = None  # 'full', 'partial' or 'sale'
    lost_statement_url: str | None = None
    invoice_url: str | None = None

    # Payment ledger and milestones
    payments: dict[str, PaymentCollection] = field(default_factory=_empty_payments)
    milestones: dict[str, datetime] = field(default_factory=dict)

    # Commission payment request
    payment_requested: bool = False
    payment_request_date: datetime | None = None

    @property
    def contract_value(self) -> Decimal:
        """Total used for commission math, falling back to the legacy total_price."""
        if self.total_contract_value is not None:
            return self.total_contract_value
        if self.total_price is not None:
            return self.total_price
        return Decimal("0")

    def milestone(self, status: str) -> datetime | None:
        return self.milestones.get(status)

    def stamp_milestone(self, status: str, when: datetime) -> bool:
        """Record the first time `status` was reached. Returns False if already set."""
        if self.milestones.get(status) is not None:
            return False
        self.milestones[status] = when
        return True

    @classmethod
    def from_dict(cls, data: dict) -> "Deal":
        # statuses imports StatusInfo from this module
        from .statuses import STATUS_TABLE

        milestones = {}
        for status in STATUS_TABLE:
            stamped = parse_datetime(data.get(f"{status}_date"))
            if stamped is not None:
                milestones[status] = stamped

        return cls(
            id=str(data["id"]),
            status=data.get("status", "lead"),
            version=int(data.get("version", 0)),
            total_contract_value=_decimal_or_none(data.get("total_contract_value")),
            total_price=_decimal_or_none(data.get("total_price")),
            rcv=_decimal_or_none(data.get("rcv")),
            acv=_decimal_or_none(data.get("acv")),
            depreciation=_decimal_or_none(data.get("depreciation")),
            deductible=_decimal_or_none(data.get("deductible")),
            supplement_amount=_decimal_or_none(data.get("supplement_amount")),
            invoice_amount=_decimal_or_none(data.get("invoice_amount")),
            contract_signed=parse_bool(data.get("contract_signed")),
            signature_url=data.get("signature_url"),
            permit_file_url=data.get("permit_file_url"),
            install_date=parse_date(data.get("install_date")),
            install_images=list(data.get("install_images") or []),
            completion_images=list(data.get("completion_images") or []),
            inspection_images=list(data.get("inspection_images") or []),
            insurance_company=data.get("insurance_company"),
            claim_number=data.get("claim_number"),
            insurance_agreement_url=data.get("insurance_agreement_url"),
            approval_type=data.get("approval_type"),
            lost_statement_url=data.get("lost_statement_url"),
            invoice_url=data.get("invoice_url"),
            payments={kind: PaymentCollection.from_dict(kind, data) for kind in PAYMENT_KINDS},
            milestones=milestones,
            payment_requested=parse_bool(data.get("payment_requested")),
            payment_request_date=parse_datetime(data.get("payment_request_date")),
        )


# =============================================================================
# COMMISSIONS
# =============================================================================


@dataclass
class Commission:
    """One commission line for a (deal, rep, role)."""

    deal_id: str
    rep_id: str
    role: str
    commission_percent: Decimal
    commission_amount: Decimal = Decimal("0")
    paid: bool = False
    paid_at: datetime | None = None
    needs_override: bool = False  # No rate configured; admin must set the amount
    override_amount: Decimal | None = None
    override_reason: str | None = None
    override_date: datetime | None = None
    id: str | None = None

    @property
    def effective_amount(self) -> Decimal:
        """Amount actually owed: an explicit override wins over the computed amount."""
        if self.override_amount is not None:
            return self.override_amount
        return self.commission_amount

    @classmethod
    def from_dict(cls, data: dict) -> "Commission":
        return cls(
            id=data.get("id"),
            deal_id=str(data["deal_id"]),
            rep_id=str(data["rep_id"]),
            # 'commission_type' is the column name on deal_commissions rows
            role=data.get("role", data.get("commission_type")),
            commission_percent=_decimal(data.get("commission_percent")),
            commission_amount=_decimal(data.get("commission_amount")),
            paid=parse_bool(data.get("paid")),
            paid_at=parse_datetime(data.get("paid_at")),
            needs_override=parse_bool(data.get("needs_override")),
            override_amount=_decimal_or_none(data.get("commission_override_amount")),
            override_reason=data.get("commission_override_reason"),
            override_date=parse_datetime(data.get("commission_override_date")),
        )


@dataclass
class RepAssignments:
    """Which rep fills each commission role on a new deal."""

    self_gen: str | None = None
    setter: str | None = None
    closer: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "RepAssignments":
        return cls(
            self_gen=data.get("self_gen") or None,
            setter=data.get("setter") or None,
            closer=data.get("closer") or None,
        )


# =============================================================================
# RESULT MODELS
# =============================================================================


@dataclass
class TransitionDecision:
    """Outcome of a transition check: allowed, or denied with a typed error."""

    target: str
    allowed: bool
    error: DealEngineError | None = None

    @property
    def reason(self) -> str | None:
        return self.error.message if self.error else None

    @classmethod
    def allow(cls, target: str) -> "TransitionDecision":
        return cls(target=target, allowed=True)

    @classmethod
    def deny(cls, target: str, error: DealEngineError) -> "TransitionDecision":
        return cls(target=target, allowed=False, error=error)

    def raise_for_denial(self) -> None:
        if not self.allowed:
            raise self.error


@dataclass
class ReceiptArtifactRef:
    """Opaque handle of a rendered payment receipt."""

    deal_id: str
    kind: str
    handle: str
    recorded_at: datetime


@dataclass
class ClaimSplit:
    """How an insurance claim is paid out."""

    rcv: Decimal
    depreciation: Decimal
    acv: Decimal
    deductible: Decimal
    first_check: Decimal  # ACV less deductible, issued on approval
    second_check: Decimal  # Depreciation, released after the work is complete
    homeowner_out_of_pocket: Decimal
