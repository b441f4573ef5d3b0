"""
Domain: Sale aggregate.

A Sale is created in draft state when its lead's disposition becomes "Sale"
and is afterwards changed only through `Sale.apply_update`.

Contract excerpts implemented here:
- The lead identity fields are a snapshot taken at creation, not a live join.
- Every update must restate the contract term.
- Status is derived whenever payment fields change: Part-Payment for
  Recurring contracts, Completed otherwise.
- The installments of the current contract never sum to more than its total,
  give or take the cent rounding of a full term of installments.
- One-time contracts cannot be changed until their term has ended.
- A fully paid Recurring contract cannot be changed until its end date.
- Every accepted update runs the contract rollover (`domain.contract.rollover`).

No I/O here; `now` is always passed in.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal, InvalidOperation as DecimalError
from enum import Enum
from typing import Any, FrozenSet, Mapping, Optional, Tuple
from uuid import UUID

from .contract import (
    ArchivedContract,
    Contract,
    PartialPayment,
    PaymentMethod,
    PaymentType,
    RolloverTerms,
    parse_optional_enum,
    rollover,
    round2,
    rounding_allowance,
)
from .errors import InvalidInput, InvalidOperation, NoChange
from .events import LeadFieldsChanged
from .note import Note, append_note
from .time import parse_utc_datetime, require_utc_timestamp

_CARD_RE = re.compile(r"^\d{16}$")
_EXP_RE = re.compile(r"^(0[1-9]|1[0-2])/\d{2}$")
_CVV_RE = re.compile(r"^\d{3,4}$")

# Fields whose change counts as a payment update (status is then derived).
PAYMENT_FIELDS: Tuple[str, ...] = (
    "total_amount",
    "payment_method",
    "payment_type",
    "contract_term",
    "card",
    "exp",
    "cvv",
)
CARD_FIELDS: Tuple[str, ...] = ("card", "exp", "cvv")

PATCH_FIELDS: FrozenSet[str] = frozenset(
    PAYMENT_FIELDS + ("status", "partial_payments", "payment_date", "billing_address")
)


class SaleStatus(str, Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    FAILED = "Failed"
    REFUNDED = "Refunded"
    PART_PAYMENT = "Part-Payment"


def _money(value: Any, label: str) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        raise InvalidInput(f"Invalid {label}: {value!r}")
    try:
        amount = Decimal(str(value).strip())
    except DecimalError:
        raise InvalidInput(f"Invalid {label}: {value!r}") from None
    if not amount.is_finite():
        raise InvalidInput(f"Invalid {label}: {value!r}")
    return amount


def _date(value: Any, label: str) -> datetime:
    if value is None or value == "":
        raise InvalidInput(f"Invalid {label}: a date is required")
    try:
        return parse_utc_datetime(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"Invalid {label}: {value!r}") from None


def _contract_term(value: Any) -> int:
    message = "Contract term is required and must be a positive number of months"
    if isinstance(value, bool) or value is None:
        raise InvalidInput(message)
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int) or value <= 0:
        raise InvalidInput(message)
    return value


def _pattern(value: Any, pattern: re.Pattern[str], message: str) -> str:
    if not isinstance(value, str) or not pattern.match(value):
        raise InvalidInput(message)
    return value


@dataclass(frozen=True, slots=True)
class Installment:
    """An installment submitted in an update, before it is stamped into the ledger."""

    amount: Decimal
    payment_date: datetime


@dataclass(frozen=True, slots=True)
class SalePatch:
    """
    Validated partial update of a sale.

    `provided` records which fields the caller sent, so that an explicit null
    (e.g. clearing payment_method) can be told apart from an omitted field.
    """

    contract_term: int
    provided: FrozenSet[str]
    total_amount: Optional[Decimal] = None
    payment_type: Optional[PaymentType] = None
    payment_method: Optional[PaymentMethod] = None
    status: Optional[SaleStatus] = None
    card: Optional[str] = None
    exp: Optional[str] = None
    cvv: Optional[str] = None
    partial_payments: Tuple[Installment, ...] = ()
    payment_date: Optional[datetime] = None
    billing_address: Optional[str] = None

    def has(self, name: str) -> bool:
        return name in self.provided

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "SalePatch":
        """
        Validate a raw update payload.

        Raises InvalidInput on the first malformed field; nothing is applied
        unless the whole payload is valid.
        """

        if not payload:
            raise InvalidInput("No update fields provided")
        unknown = set(payload) - PATCH_FIELDS
        if unknown:
            raise InvalidInput(f"Unknown sale field(s): {', '.join(sorted(unknown))}")

        # Card fields sent as null/empty are treated as not sent.
        provided = {
            name
            for name, value in payload.items()
            if not (name in CARD_FIELDS and value in (None, ""))
        }
        values: dict[str, Any] = {}

        if "total_amount" in provided:
            amount = _money(payload["total_amount"], "total amount")
            if amount < 0:
                raise InvalidInput("Invalid total amount: must not be negative")
            values["total_amount"] = amount
        if "payment_method" in provided:
            values["payment_method"] = parse_optional_enum(
                PaymentMethod, payload["payment_method"], "payment method"
            )
        if "payment_type" in provided:
            values["payment_type"] = parse_optional_enum(
                PaymentType, payload["payment_type"], "payment type"
            )
        contract_term = _contract_term(payload.get("contract_term"))
        if "status" in provided:
            try:
                values["status"] = SaleStatus(payload["status"])
            except ValueError:
                raise InvalidInput(f"Invalid status: {payload['status']!r}") from None
        if "card" in provided:
            values["card"] = _pattern(payload["card"], _CARD_RE, "Invalid card number (must be 16 digits)")
        if "exp" in provided:
            values["exp"] = _pattern(payload["exp"], _EXP_RE, "Invalid expiration date (must be MM/YY)")
        if "cvv" in provided:
            values["cvv"] = _pattern(payload["cvv"], _CVV_RE, "Invalid CVV (must be 3 or 4 digits)")
        if "partial_payments" in provided:
            entries = payload["partial_payments"] or []
            if not isinstance(entries, (list, tuple)):
                raise InvalidInput("partial_payments must be a list")
            installments = []
            for entry in entries:
                if not isinstance(entry, Mapping):
                    raise InvalidInput("Invalid partial payment entry")
                amount = _money(entry.get("amount"), "partial payment amount")
                if amount <= 0:
                    raise InvalidInput("Invalid partial payment amount: must be positive")
                installments.append(
                    Installment(amount=amount, payment_date=_date(entry.get("payment_date"), "partial payment date"))
                )
            values["partial_payments"] = tuple(installments)
        if "payment_date" in provided:
            values["payment_date"] = _date(payload["payment_date"], "payment date")
        if "billing_address" in provided:
            address = payload["billing_address"]
            if not isinstance(address, str) or not address.strip():
                raise InvalidInput("Invalid billing address")
            values["billing_address"] = address.strip()

        provided.add("contract_term")
        return cls(contract_term=contract_term, provided=frozenset(provided), **values)


def _fmt_date(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d") if value is not None else "Not set"


def _label(value: Optional[Enum]) -> str:
    return value.value if value is not None else "Not set"


@dataclass(frozen=True, slots=True)
class Sale:
    """
    Sale aggregate: lead snapshot, current contract, archived contracts, notes.

    `version` is the optimistic-concurrency counter of the stored row.
    """

    sale_id: int
    lead_id: int
    name: str
    email: str
    phone_number: str
    business_name: str
    business_address: str
    billing_address: str
    created_at: datetime
    contract: Contract = Contract()
    status: SaleStatus = SaleStatus.PENDING
    previous_contracts: Tuple[ArchivedContract, ...] = ()
    notes: Tuple[Note, ...] = ()
    created_by: Optional[UUID] = None
    version: int = 0

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)

    @staticmethod
    def draft(
        sale_id: int,
        lead_id: int,
        snapshot: Mapping[str, str],
        *,
        at: datetime,
        by: Optional[UUID] = None,
    ) -> "Sale":
        """
        Build the draft sale for a lead that just converted.

        Payment fields hold placeholders and status is Pending. The creation
        note is system-attributed (created_by None).
        """

        return Sale(
            sale_id=sale_id,
            lead_id=lead_id,
            name=snapshot["name"],
            email=snapshot["email"],
            phone_number=snapshot["phone_number"],
            business_name=snapshot["business_name"],
            business_address=snapshot["business_address"],
            billing_address=snapshot["business_address"],
            created_at=at,
            notes=append_note((), f"Sale #{sale_id} created from lead #{lead_id}", at=at, by=None),
            created_by=by,
        )

    def with_note(self, text: str, *, at: datetime, by: Optional[UUID]) -> "Sale":
        return replace(self, notes=append_note(self.notes, text, at=at, by=by))

    def on_lead_fields_changed(self, event: LeadFieldsChanged) -> "Sale":
        """Mirror a lead business-address edit onto the billing address."""

        if not event.changed("business_address"):
            return self
        address = event.new_value("business_address")
        if address == self.billing_address:
            return self
        text = f'Billing address updated from lead #{event.lead_id}: "{self.billing_address}" to "{address}"'
        return replace(
            self,
            billing_address=address,
            notes=append_note(self.notes, text, at=event.occurred_at, by=event.actor_id),
        )

    def apply_update(
        self,
        patch: SalePatch,
        *,
        now: datetime,
        by: Optional[UUID],
    ) -> tuple["Sale", Optional[ArchivedContract]]:
        """
        Apply a validated patch and return the new sale plus any archived contract.

        Business rules are checked against the state *before* the update.
        Raises InvalidOperation when a rule rejects the update and NoChange
        when the patch changes nothing.
        """

        require_utc_timestamp("now", now)
        current = self.contract

        new_total = patch.total_amount if patch.has("total_amount") else current.total_amount
        payment_type = patch.payment_type if patch.has("payment_type") else current.payment_type
        term = patch.contract_term

        if patch.has("payment_type") and patch.payment_type is PaymentType.ONE_TIME and current.is_running(now):
            raise InvalidOperation(
                "One-time contract cannot be modified until its term ends on "
                f"{_fmt_date(current.contract_end_date)}"
            )
        if patch.has("payment_type") and patch.payment_type is PaymentType.RECURRING:
            if current.is_fully_paid and current.is_running(now):
                raise InvalidOperation(
                    "Contract is fully paid; it can be renewed after "
                    f"{_fmt_date(current.contract_end_date)}"
                )
        if patch.partial_payments:
            if payment_type is not PaymentType.RECURRING:
                raise InvalidOperation("Partial payments are only accepted for Recurring contracts")
            expected = round2(new_total / term)
            for installment in patch.partial_payments:
                if round2(installment.amount) != expected:
                    raise InvalidOperation(
                        f"Installment amount must be {expected} "
                        f"(total {round2(new_total)} over {term} months), got {installment.amount}"
                    )

        rolled, archived = rollover(
            current,
            RolloverTerms(
                payment_type=payment_type,
                contract_term=term,
                payment_date=patch.payment_date,
                has_new_installments=bool(patch.partial_payments),
            ),
            now,
            self.previous_contracts,
        )

        ledger = rolled.partial_payments + tuple(
            PartialPayment(amount=i.amount, payment_date=i.payment_date, created_at=now, created_by=by)
            for i in patch.partial_payments
        )
        paid = sum((p.amount for p in ledger), Decimal("0"))
        # Rounded installments may overshoot the total by a few cents over a full term.
        if paid - new_total > rounding_allowance(term):
            raise InvalidOperation(
                f"Partial payments ({round2(paid)}) would exceed the total amount ({round2(new_total)})"
            )

        def merged(name: str) -> Any:
            return getattr(patch, name) if patch.has(name) else getattr(current, name)

        payment_touched = bool(patch.partial_payments) or any(
            patch.has(name) and getattr(patch, name) != getattr(current, name) for name in PAYMENT_FIELDS
        )
        card_touched = any(
            patch.has(name) and getattr(patch, name) != getattr(current, name) for name in CARD_FIELDS
        )

        contract = replace(
            rolled,
            total_amount=new_total,
            payment_type=payment_type,
            contract_term=term,
            payment_method=merged("payment_method"),
            card=merged("card"),
            exp=merged("exp"),
            cvv=merged("cvv"),
            partial_payments=ledger,
        )

        notes = self.notes
        status = self.status

        def note(text: str) -> None:
            nonlocal notes
            notes = append_note(notes, text, at=now, by=by)

        if archived is not None:
            note(
                f"Contract period ending {_fmt_date(current.contract_end_date)} archived; "
                f"new period ends {_fmt_date(contract.contract_end_date)}"
            )

        if payment_touched:
            status = SaleStatus.PART_PAYMENT if payment_type is PaymentType.RECURRING else SaleStatus.COMPLETED
            contract = replace(contract, payment_date=patch.payment_date or now)
            installment_text = ""
            if patch.partial_payments:
                paid_now = sum((i.amount for i in patch.partial_payments), Decimal("0"))
                installment_text = f", Installment: ${round2(paid_now):.2f}"
            note(
                f"Updated payment details. Total Amount: ${round2(new_total):.2f}{installment_text}, "
                f"Method: {_label(contract.payment_method)}, Type: {_label(payment_type)}, "
                f"Term: {term} months, Contract End Date: {_fmt_date(contract.contract_end_date)}"
            )
            note(
                f"Payment confirmed by user. Total Amount: ${round2(new_total):.2f}, "
                f"Contract Term: {term} months, Payment Type: {_label(payment_type)}, "
                f"Contract End Date: {_fmt_date(contract.contract_end_date)}"
            )
        else:
            if patch.has("payment_date") and patch.payment_date != current.payment_date:
                contract = replace(contract, payment_date=patch.payment_date)
                note(f"Updated payment date to {_fmt_date(patch.payment_date)}")
            if patch.has("status") and patch.status is not self.status:
                status = patch.status
                note(f'Changed status from "{self.status.value}" to "{status.value}"')

        if card_touched:
            note("Card details updated by user")

        billing_address = self.billing_address
        if patch.has("billing_address") and patch.billing_address != self.billing_address:
            note(f'Updated billing_address from "{self.billing_address}" to "{patch.billing_address}"')
            billing_address = patch.billing_address

        if notes == self.notes and contract == current:
            raise NoChange(f"No changes to sale {self.sale_id}")

        previous = self.previous_contracts + ((archived,) if archived is not None else ())
        updated = replace(
            self,
            contract=contract,
            status=status,
            billing_address=billing_address,
            previous_contracts=previous,
            notes=notes,
        )
        return updated, archived


__all__ = [
    "CARD_FIELDS",
    "Installment",
    "PAYMENT_FIELDS",
    "Sale",
    "SalePatch",
    "SaleStatus",
]
