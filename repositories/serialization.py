"""
Row <-> domain conversion helpers shared by the repositories.

Timestamps are stored as ISO-8601 UTC strings, money as decimal strings, and
nested lists (notes, ledgers, archived contracts) as JSON arrays in jsonb
columns.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, List, Mapping, Optional, Tuple
from uuid import UUID

from domain.contract import (
    ArchivedContract,
    Contract,
    PartialPayment,
    PaymentMethod,
    PaymentType,
)
from domain.note import Note
from domain.time import parse_utc_datetime, require_utc_timestamp


def to_iso_utc(dt: Optional[datetime], *, name: str) -> Optional[str]:
    """Serialize a UTC datetime to ISO-8601 (timezone-aware, offset 0)."""

    if dt is None:
        return None
    require_utc_timestamp(name, dt)
    return dt.astimezone(timezone.utc).isoformat()


def from_iso(value: Any) -> Optional[datetime]:
    """
    Parse a Supabase timestamp into a timezone-aware UTC datetime.

    Supabase commonly returns ISO-8601 strings, sometimes with a trailing 'Z'.
    """

    if value is None or value == "":
        return None
    return parse_utc_datetime(value)


def to_uuid(value: Any) -> Optional[UUID]:
    return UUID(str(value)) if value else None


def _str_or_none(value: Optional[UUID]) -> Optional[str]:
    return str(value) if value is not None else None


def notes_to_json(notes: Iterable[Note]) -> List[dict[str, Any]]:
    return [
        {
            "text": note.text,
            "created_at": to_iso_utc(note.created_at, name="note.created_at"),
            "created_by": _str_or_none(note.created_by),
        }
        for note in notes
    ]


def notes_from_json(items: Optional[Iterable[Mapping[str, Any]]]) -> Tuple[Note, ...]:
    return tuple(
        Note(
            text=str(item["text"]),
            created_at=from_iso(item["created_at"]),
            created_by=to_uuid(item.get("created_by")),
        )
        for item in items or []
    )


def payments_to_json(payments: Iterable[PartialPayment]) -> List[dict[str, Any]]:
    return [
        {
            "amount": str(payment.amount),
            "payment_date": to_iso_utc(payment.payment_date, name="payment_date"),
            "created_at": to_iso_utc(payment.created_at, name="created_at"),
            "created_by": _str_or_none(payment.created_by),
        }
        for payment in payments
    ]


def payments_from_json(items: Optional[Iterable[Mapping[str, Any]]]) -> Tuple[PartialPayment, ...]:
    return tuple(
        PartialPayment(
            amount=Decimal(str(item["amount"])),
            payment_date=from_iso(item["payment_date"]),
            created_at=from_iso(item["created_at"]),
            created_by=to_uuid(item.get("created_by")),
        )
        for item in items or []
    )


def contract_to_row(contract: Contract) -> dict[str, Any]:
    """Flatten a contract into sale-row columns (also the archive entry shape)."""

    return {
        "total_amount": str(contract.total_amount),
        "payment_type": contract.payment_type.value if contract.payment_type else None,
        "contract_term": contract.contract_term,
        "payment_method": contract.payment_method.value if contract.payment_method else None,
        "card": contract.card,
        "exp": contract.exp,
        "cvv": contract.cvv,
        "payment_date": to_iso_utc(contract.payment_date, name="payment_date"),
        "contract_end_date": to_iso_utc(contract.contract_end_date, name="contract_end_date"),
        "partial_payments": payments_to_json(contract.partial_payments),
    }


def contract_from_row(row: Mapping[str, Any]) -> Contract:
    return Contract(
        total_amount=Decimal(str(row.get("total_amount") or "0")),
        payment_type=PaymentType(row["payment_type"]) if row.get("payment_type") else None,
        contract_term=int(row["contract_term"]) if row.get("contract_term") is not None else None,
        payment_method=PaymentMethod(row["payment_method"]) if row.get("payment_method") else None,
        card=str(row.get("card") or ""),
        exp=str(row.get("exp") or ""),
        cvv=str(row.get("cvv") or ""),
        payment_date=from_iso(row.get("payment_date")),
        contract_end_date=from_iso(row.get("contract_end_date")),
        partial_payments=payments_from_json(row.get("partial_payments")),
    )


def archive_to_json(entries: Iterable[ArchivedContract]) -> List[dict[str, Any]]:
    return [
        {
            **contract_to_row(entry.contract),
            "archived_at": to_iso_utc(entry.archived_at, name="archived_at"),
        }
        for entry in entries
    ]


def archive_from_json(items: Optional[Iterable[Mapping[str, Any]]]) -> Tuple[ArchivedContract, ...]:
    return tuple(
        ArchivedContract(contract=contract_from_row(item), archived_at=from_iso(item["archived_at"]))
        for item in items or []
    )


__all__ = [
    "archive_from_json",
    "archive_to_json",
    "contract_from_row",
    "contract_to_row",
    "from_iso",
    "notes_from_json",
    "notes_to_json",
    "to_iso_utc",
    "to_uuid",
]
