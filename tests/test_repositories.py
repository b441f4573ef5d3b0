"""
Tests for the repositories against the in-memory database.

Covers:
- Counter increments and the maintenance floor.
- Sale rows survive a write/read cycle (Decimal money, UTC timestamps, jsonb).
- The lead + sale transaction refuses stale versions.
- Client configuration and error handling.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

import config
from domain.contract import ArchivedContract, Contract, PartialPayment, PaymentMethod, PaymentType
from domain.errors import Conflict
from domain.lead import Lead, NewLead
from domain.sale import Sale, SaleStatus
from repositories import client as client_module
from repositories import lead_repository, sale_repository
from repositories.client import raise_for_error
from repositories.counter_repository import (
    LEAD_SEQUENCE,
    SALE_SEQUENCE,
    get_sequence_value,
    next_sequence_value,
    raise_sequence_floor,
)

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)

LEAD = {
    "name": "Jane Doe",
    "email": "jane@acme.test",
    "phone_number": "555-0100",
    "business_name": "Acme Plumbing",
    "business_address": "12 Main St",
}


def _stored_lead_and_sale() -> tuple[Lead, Sale]:
    lead = lead_repository.insert_lead(Lead.create(1, NewLead.from_payload(LEAD), at=NOW, by=None))
    sale = sale_repository.insert_sale(Sale.draft(1, 1, lead.snapshot(), at=NOW))
    return lead, sale


def test_counters_are_independent_and_increasing(fake_db) -> None:
    assert [next_sequence_value(LEAD_SEQUENCE) for _ in range(3)] == [1, 2, 3]
    assert next_sequence_value(SALE_SEQUENCE) == 1
    assert get_sequence_value(LEAD_SEQUENCE) == 3
    assert get_sequence_value("unused") == 0


def test_sequence_floor_never_moves_down(fake_db) -> None:
    next_sequence_value(LEAD_SEQUENCE)

    assert raise_sequence_floor(LEAD_SEQUENCE, 40) == 40
    assert raise_sequence_floor(LEAD_SEQUENCE, 10) == 40
    assert next_sequence_value(LEAD_SEQUENCE) == 41


def test_sale_row_round_trip(fake_db) -> None:
    _, sale = _stored_lead_and_sale()
    end = datetime(2025, 2, 15, 12, 0, tzinfo=timezone.utc)
    contract = Contract(
        total_amount=Decimal("1000.50"),
        payment_type=PaymentType.RECURRING,
        contract_term=12,
        payment_method=PaymentMethod.PAYPAL,
        card="1234567890123456",
        exp="12/27",
        cvv="123",
        payment_date=NOW,
        contract_end_date=end,
        partial_payments=(PartialPayment(amount=Decimal("83.38"), payment_date=NOW, created_at=NOW),),
    )
    changed = replace(
        sale,
        contract=contract,
        status=SaleStatus.PART_PAYMENT,
        previous_contracts=(ArchivedContract(contract=contract, archived_at=end),),
    )

    saved = sale_repository.update_sale(changed)

    assert sale_repository.get_sale_by_id(1) == saved
    assert saved.version == 1


def test_lead_and_sale_transaction_rejects_stale_sale(fake_db) -> None:
    lead, sale = _stored_lead_and_sale()
    sale_repository.update_sale(sale.with_note("someone else", at=NOW, by=None))

    with pytest.raises(Conflict):
        lead_repository.update_lead_with_sale(
            replace(lead, business_address="99 Side Rd"),
            replace(sale, billing_address="99 Side Rd"),
        )

    assert lead_repository.get_lead_by_id(1).business_address == "12 Main St"


def test_duplicate_sale_for_lead(fake_db) -> None:
    lead, _ = _stored_lead_and_sale()

    with pytest.raises(sale_repository.DuplicateSaleForLead):
        sale_repository.insert_sale(Sale.draft(2, lead.lead_id, lead.snapshot(), at=NOW))


def test_raise_for_error() -> None:
    assert raise_for_error(SimpleNamespace(data=[{"a": 1}], error=None), "read") == [{"a": 1}]
    assert raise_for_error(SimpleNamespace(data=7, error=None), "read") == [7]
    assert raise_for_error(SimpleNamespace(data=None, error=None), "read") == []

    with pytest.raises(RuntimeError, match="Failed to read"):
        raise_for_error(SimpleNamespace(data=None, error="boom"), "read")


def test_missing_credentials_fail_on_first_use(monkeypatch) -> None:
    client_module.use_client(None)
    monkeypatch.setattr(config, "SUPABASE_URL", None)

    with pytest.raises(RuntimeError, match="SUPABASE_URL"):
        client_module.get_supabase()
