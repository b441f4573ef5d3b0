"""
Tests for `services/sale_service.py`.

Runs end to end through the repositories against the in-memory database.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from domain.errors import Conflict, InvalidInput, InvalidOperation, NotFound
from domain.sale import SaleStatus
from repositories import sale_repository
from services import lead_service, notes_service, sale_service

RECURRING_UPDATE = {
    "total_amount": 1200,
    "payment_type": "Recurring",
    "contract_term": 12,
    "payment_method": "Credit Card",
    "card": "1234567890123456",
    "exp": "12/27",
    "cvv": "123",
    "partial_payments": [{"amount": 100, "payment_date": "2025-01-15"}],
}


@pytest.fixture
def sale_id(fake_db, sales_rep, now) -> int:
    result = lead_service.create_lead(
        {
            "name": "Jane Doe",
            "email": "jane@acme.test",
            "phone_number": "555-0100",
            "business_name": "Acme Plumbing",
            "business_address": "12 Main St",
            "disposition": "Sale",
        },
        sales_rep,
        now=now,
    )
    return result.sale.sale_id


def test_recurring_update_is_persisted(sale_id, sales_rep, now) -> None:
    sale_service.update_sale(sale_id, RECURRING_UPDATE, sales_rep, now=now)

    stored = sale_service.get_sale(sale_id)
    assert stored.status is SaleStatus.PART_PAYMENT
    assert stored.version == 1
    assert stored.contract.total_amount == Decimal("1200")
    assert [p.amount for p in stored.contract.partial_payments] == [Decimal("100")]
    assert stored.contract.contract_end_date == datetime(2025, 2, 15, 12, 0, tzinfo=timezone.utc)
    assert stored.notes[-1].text == "Card details updated by user"


def test_rejected_update_writes_nothing(sale_id, sales_rep, now) -> None:
    payload = {**RECURRING_UPDATE, "partial_payments": [{"amount": 150, "payment_date": "2025-01-15"}]}

    with pytest.raises(InvalidOperation):
        sale_service.update_sale(sale_id, payload, sales_rep, now=now)

    stored = sale_service.get_sale(sale_id)
    assert stored.version == 0
    assert stored.status is SaleStatus.PENDING
    assert len(stored.notes) == 1


def test_validation_happens_before_lookup(fake_db, sales_rep, now) -> None:
    with pytest.raises(InvalidInput):
        sale_service.update_sale(999, {"card": "123", "contract_term": 12}, sales_rep, now=now)
    with pytest.raises(NotFound):
        sale_service.update_sale(999, {"contract_term": 12}, sales_rep, now=now)


def test_stale_sale_write_is_rejected(sale_id, sales_rep, now) -> None:
    sale = sale_service.get_sale(sale_id)
    sale_repository.update_sale(sale.with_note("first", at=now, by=sales_rep.user_id))

    with pytest.raises(Conflict):
        sale_repository.update_sale(sale.with_note("second", at=now, by=sales_rep.user_id))


def test_lapsed_contract_is_archived_on_next_update(sale_id, sales_rep, now, caplog) -> None:
    caplog.set_level(logging.INFO, logger="services.sale_service")
    sale_service.update_sale(sale_id, RECURRING_UPDATE, sales_rep, now=now)
    march = datetime(2025, 3, 1, tzinfo=timezone.utc)
    installment = {"contract_term": 12, "partial_payments": [{"amount": 100, "payment_date": "2025-03-01"}]}

    renewed = sale_service.update_sale(sale_id, installment, sales_rep, now=march)

    assert len(renewed.previous_contracts) == 1
    archived = renewed.previous_contracts[0]
    assert archived.contract.contract_end_date == datetime(2025, 2, 15, 12, 0, tzinfo=timezone.utc)
    assert archived.archived_at == march
    assert renewed.contract.contract_end_date == datetime(2025, 4, 1, tzinfo=timezone.utc)
    assert [p.amount for p in renewed.contract.partial_payments] == [Decimal("100")]

    again = sale_service.update_sale(
        sale_id,
        {"contract_term": 12, "partial_payments": [{"amount": 100, "payment_date": "2025-03-02"}]},
        sales_rep,
        now=datetime(2025, 3, 2, tzinfo=timezone.utc),
    )
    assert len(again.previous_contracts) == 1
    assert again.contract.paid_amount == Decimal("200")

    assert any(r.message == "Contract period archived" for r in caplog.records)
    assert "1234567890123456" not in caplog.text


def test_rejection_is_logged_as_warning(sale_id, sales_rep, now, caplog) -> None:
    caplog.set_level(logging.INFO, logger="services.sale_service")
    payload = {**RECURRING_UPDATE, "total_amount": 600}

    with pytest.raises(InvalidOperation):
        sale_service.update_sale(sale_id, payload, sales_rep, now=now)

    assert [r.levelno for r in caplog.records if r.message == "Sale update rejected"] == [logging.WARNING]


def test_list_sales_and_due_contracts(sale_id, sales_rep, now) -> None:
    sale_service.update_sale(sale_id, RECURRING_UPDATE, sales_rep, now=now)

    assert [s.sale_id for s in sale_service.list_sales("Part-Payment")] == [sale_id]
    assert sale_service.list_sales("Completed") == []
    assert [s.sale_id for s in sale_service.list_due_sales("2025-02-20")] == [sale_id]
    assert sale_service.list_due_sales("2025-02-01") == []
    assert sale_service.list_due_sales(now=now) == []
    with pytest.raises(InvalidInput):
        sale_service.list_sales("Won")
    with pytest.raises(InvalidInput):
        sale_service.list_due_sales("next week")


def test_sale_note(sale_id, sales_rep, now) -> None:
    sale = notes_service.append_note("sale", sale_id, "Customer asked for invoice copy", sales_rep, now=now)

    assert sale.notes[-1].text == "Customer asked for invoice copy"
    assert sale.notes[-1].created_by == sales_rep.user_id
    assert sale_service.get_sale(sale_id).version == 1


def test_sale_for_lead_lookup(sale_id, fake_db) -> None:
    assert sale_service.get_sale_for_lead(1).sale_id == sale_id
    with pytest.raises(NotFound):
        sale_service.get_sale_for_lead(2)
