"""
Domain: contract terms and the contract rollover engine.

A sale carries exactly one *current* contract: amount, payment type and
method, term, card details, payment date, end date and the ledger of
installments paid against it. When the current contract's end date has
passed, the next accepted update archives it and starts a new period.

Rules implemented here:
- Rollover is decided by the calendar (end of the previous period), never by
  counting installments.
- The archived snapshot is a full copy of the pre-update contract, stamped
  with the archive time. Archived entries are never modified.
- Archiving is idempotent per period: a boundary that is already archived is
  not archived again.
- Month arithmetic is calendar based (see `domain.time.add_months`).

Everything here is pure: timestamps are passed in explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Optional, Tuple
from uuid import UUID

from .errors import InvalidInput
from .time import add_months, require_utc_timestamp

# Display placeholders stored on a draft sale until the first payment update.
CARD_PLACEHOLDER = "****"
EXP_PLACEHOLDER = "MM/YY"
CVV_PLACEHOLDER = "***"

_CENT = Decimal("0.01")
_HALF_CENT = Decimal("0.005")


def round2(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def rounding_allowance(term: Optional[int]) -> Decimal:
    """
    Largest drift between a ledger of `term` cent-rounded installments and the total.

    Each installment is `round2(total / term)`, off by at most half a cent, so
    a full term of them can land up to `term * 0.005` above or below the total.
    """

    return _HALF_CENT * (term or 0)


class PaymentType(str, Enum):
    RECURRING = "Recurring"
    ONE_TIME = "One-time"


class PaymentMethod(str, Enum):
    CREDIT_CARD = "Credit Card"
    BANK_TRANSFER = "Bank Transfer"
    PAYPAL = "PayPal"
    OTHER = "Other"


def parse_optional_enum(enum_cls: Any, value: Any, label: str) -> Any:
    """Parse an enum value that may also be null."""

    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(f'"{member.value}"' for member in enum_cls)
        raise InvalidInput(f"Invalid {label}: {value!r} (expected one of {allowed} or null)") from None


@dataclass(frozen=True, slots=True)
class PartialPayment:
    """One installment paid against the current contract."""

    amount: Decimal
    payment_date: datetime
    created_at: datetime
    created_by: Optional[UUID] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("payment_date", self.payment_date)
        require_utc_timestamp("created_at", self.created_at)


@dataclass(frozen=True, slots=True)
class Contract:
    """The payment-related state of a sale for one contract period."""

    total_amount: Decimal = Decimal("0")
    payment_type: Optional[PaymentType] = None
    contract_term: Optional[int] = None
    payment_method: Optional[PaymentMethod] = None
    card: str = CARD_PLACEHOLDER
    exp: str = EXP_PLACEHOLDER
    cvv: str = CVV_PLACEHOLDER
    payment_date: Optional[datetime] = None
    contract_end_date: Optional[datetime] = None
    partial_payments: Tuple[PartialPayment, ...] = ()

    def __post_init__(self) -> None:
        if self.payment_date is not None:
            require_utc_timestamp("payment_date", self.payment_date)
        if self.contract_end_date is not None:
            require_utc_timestamp("contract_end_date", self.contract_end_date)

    @property
    def paid_amount(self) -> Decimal:
        return sum((p.amount for p in self.partial_payments), Decimal("0"))

    @property
    def remaining_amount(self) -> Decimal:
        return self.total_amount - self.paid_amount

    @property
    def is_fully_paid(self) -> bool:
        """True once the remaining amount is within installment rounding of zero."""

        return self.remaining_amount <= rounding_allowance(self.contract_term)

    def has_lapsed(self, now: datetime) -> bool:
        """True once the contract end date is reached."""

        return self.contract_end_date is not None and self.contract_end_date <= now

    def is_running(self, now: datetime) -> bool:
        """True while the contract end date is still in the future."""

        return self.contract_end_date is not None and self.contract_end_date > now


@dataclass(frozen=True, slots=True)
class ArchivedContract:
    """Immutable snapshot of a finished contract period."""

    contract: Contract
    archived_at: datetime

    def __post_init__(self) -> None:
        require_utc_timestamp("archived_at", self.archived_at)


@dataclass(frozen=True, slots=True)
class RolloverTerms:
    """
    The parts of an accepted update that steer the rollover.

    payment_type is the effective type after the update; payment_date is the
    date given in the update, if any.
    """

    payment_type: Optional[PaymentType]
    contract_term: int
    payment_date: Optional[datetime] = None
    has_new_installments: bool = False


def _period_end(start: datetime, terms: RolloverTerms) -> datetime:
    if terms.payment_type is PaymentType.RECURRING:
        return add_months(start, 1)
    return add_months(start, terms.contract_term)


def _next_end_date(current: Contract, terms: RolloverTerms, now: datetime) -> Optional[datetime]:
    default = terms.payment_date or current.payment_date or now

    if terms.payment_type is PaymentType.RECURRING:
        if terms.has_new_installments:
            return add_months(current.contract_end_date or default, 1)
        # No installment in this update: the running period is unchanged.
        return current.contract_end_date or add_months(default, 1)
    if terms.payment_type is PaymentType.ONE_TIME:
        return add_months(default, terms.contract_term)
    return current.contract_end_date


def rollover(
    current: Contract,
    terms: RolloverTerms,
    now: datetime,
    history: Tuple[ArchivedContract, ...] = (),
) -> tuple[Contract, Optional[ArchivedContract]]:
    """
    Decide the next contract end date and archive a lapsed period.

    Returns the contract with its end date (and, after an archive, its ledger)
    updated, plus the archived entry or None. All other fields are left for
    the caller to merge.
    """

    require_utc_timestamp("now", now)

    if not current.has_lapsed(now):
        return replace(current, contract_end_date=_next_end_date(current, terms, now)), None

    already_archived = any(
        entry.contract.contract_end_date == current.contract_end_date for entry in history
    )
    archived = None if already_archived else ArchivedContract(contract=current, archived_at=now)

    renewed = replace(
        current,
        partial_payments=(),
        contract_end_date=_period_end(now, terms),
    )
    return renewed, archived


__all__ = [
    "ArchivedContract",
    "CARD_PLACEHOLDER",
    "CVV_PLACEHOLDER",
    "Contract",
    "EXP_PLACEHOLDER",
    "PartialPayment",
    "PaymentMethod",
    "PaymentType",
    "RolloverTerms",
    "parse_optional_enum",
    "rollover",
    "round2",
    "rounding_allowance",
]
