"""
Tests for `services/lead_service.py`.

Runs end to end through the repositories against the in-memory database.

Covers:
- Sequential lead ids and unique emails.
- Disposition -> Sale creates exactly one sale per lead, also under a race.
- Version-checked writes.
- Business address edits mirrored onto the sale in one write.
"""

from __future__ import annotations

import pytest

from domain.errors import Conflict, InvalidInput, NoChange, NotFound, Unauthorized
from domain.lead import Disposition
from domain.sale import Sale
from repositories import lead_repository, sale_repository
from services import lead_service, notes_service, sale_service

LEAD = {
    "name": "Jane Doe",
    "email": "jane@acme.test",
    "phone_number": "555-0100",
    "business_name": "Acme Plumbing",
    "business_address": "12 Main St",
}


def _create(actor, now, **overrides):
    return lead_service.create_lead({**LEAD, **overrides}, actor, now=now).lead


def test_lead_ids_are_sequential(fake_db, sales_rep, now) -> None:
    first = _create(sales_rep, now)
    second = _create(sales_rep, now, email="bob@acme.test")

    assert (first.lead_id, second.lead_id) == (1, 2)
    assert [lead.lead_id for lead in lead_service.list_leads()] == [2, 1]


def test_duplicate_email_is_rejected(fake_db, sales_rep, now) -> None:
    _create(sales_rep, now)

    with pytest.raises(Conflict):
        _create(sales_rep, now, email="JANE@acme.test")
    assert len(fake_db.rows("leads")) == 1


def test_create_requires_identity(fake_db, now) -> None:
    with pytest.raises(Unauthorized):
        lead_service.create_lead(LEAD, None, now=now)


def test_get_unknown_lead(fake_db) -> None:
    with pytest.raises(NotFound):
        lead_service.get_lead(42)


def test_disposition_to_sale_creates_draft_sale(fake_db, sales_rep, now) -> None:
    lead = _create(sales_rep, now)

    result = lead_service.set_disposition(lead.lead_id, "Sale", sales_rep, now=now)

    assert result.sale_created
    assert result.sale.sale_id == 1
    assert result.sale.lead_id == lead.lead_id
    assert result.lead.disposition is Disposition.SALE
    assert [n.text for n in result.lead.notes][-2:] == [
        'Changed status from "Follow up" to "Sale"',
        "Sale #1 created for this lead",
    ]
    stored = sale_service.get_sale_for_lead(lead.lead_id)
    assert stored.notes[0].created_by is None
    assert stored.billing_address == "12 Main St"


def test_disposition_to_sale_twice_yields_one_sale(fake_db, sales_rep, now) -> None:
    lead = _create(sales_rep, now)

    lead_service.set_disposition(lead.lead_id, "Sale", sales_rep, now=now)
    lead_service.set_disposition(lead.lead_id, "Follow up", sales_rep, now=now)
    again = lead_service.set_disposition(lead.lead_id, "Sale", sales_rep, now=now)

    assert not again.sale_created
    assert again.sale.sale_id == 1
    assert again.lead.notes[-1].text == "Existing sale #1 found for this lead; no new sale created"
    assert len(fake_db.rows("sales")) == 1


def test_concurrent_sale_creation_yields_one_sale(fake_db, sales_rep, now, monkeypatch) -> None:
    lead = _create(sales_rep, now)
    real_lookup = sale_repository.get_sale_by_lead
    lookups = []

    def racing_lookup(lead_id):
        lookups.append(lead_id)
        if len(lookups) == 1:
            # Another request inserts its sale right after our lookup.
            sale_repository.insert_sale(Sale.draft(99, lead_id, lead.snapshot(), at=now))
            return None
        return real_lookup(lead_id)

    monkeypatch.setattr(sale_repository, "get_sale_by_lead", racing_lookup)

    result = lead_service.set_disposition(lead.lead_id, "Sale", sales_rep, now=now)

    assert not result.sale_created
    assert result.sale.sale_id == 99
    assert len(fake_db.rows("sales")) == 1


def test_same_disposition_is_no_change(fake_db, sales_rep, now) -> None:
    lead = _create(sales_rep, now)

    with pytest.raises(NoChange):
        lead_service.set_disposition(lead.lead_id, "Follow up", sales_rep, now=now)
    with pytest.raises(InvalidInput):
        lead_service.set_disposition(lead.lead_id, "Closed", sales_rep, now=now)


def test_lead_created_as_sale_gets_its_sale(fake_db, sales_rep, now) -> None:
    result = lead_service.create_lead({**LEAD, "disposition": "Sale"}, sales_rep, now=now)

    assert result.sale_created
    assert result.lead.notes[-1].text == "Sale #1 created for this lead"
    assert result.lead.version == 1
    assert sale_service.get_sale_for_lead(result.lead.lead_id).sale_id == 1


def test_stale_lead_write_is_rejected(fake_db, sales_rep, now) -> None:
    lead = _create(sales_rep, now)

    lead_repository.update_lead(lead.with_note("first", at=now, by=sales_rep.user_id))

    with pytest.raises(Conflict):
        lead_repository.update_lead(lead.with_note("second", at=now, by=sales_rep.user_id))
    assert [n.text for n in lead_service.get_lead(lead.lead_id).notes][-1] == "first"


def test_business_address_edit_is_mirrored_to_sale(fake_db, sales_rep, now) -> None:
    lead = _create(sales_rep, now)
    lead_service.set_disposition(lead.lead_id, "Sale", sales_rep, now=now)

    edited = lead_service.edit_lead(lead.lead_id, {"business_address": "99 Side Rd"}, sales_rep, now=now)

    sale = sale_service.get_sale_for_lead(lead.lead_id)
    assert edited.business_address == "99 Side Rd"
    assert sale.billing_address == "99 Side Rd"
    assert sale.business_address == "12 Main St"
    assert sale.version == 1
    assert ("rpc", "save_lead_and_sale") in fake_db.calls


def test_edit_without_address_change_leaves_sale_alone(fake_db, sales_rep, now) -> None:
    lead = _create(sales_rep, now)
    lead_service.set_disposition(lead.lead_id, "Sale", sales_rep, now=now)

    lead_service.edit_lead(lead.lead_id, {"phone_number": "555-0199"}, sales_rep, now=now)

    assert sale_service.get_sale_for_lead(lead.lead_id).version == 0
    assert ("rpc", "save_lead_and_sale") not in fake_db.calls


def test_edit_to_taken_email_is_rejected(fake_db, sales_rep, now) -> None:
    lead = _create(sales_rep, now)
    _create(sales_rep, now, email="bob@acme.test")

    with pytest.raises(Conflict):
        lead_service.edit_lead(lead.lead_id, {"email": "bob@acme.test"}, sales_rep, now=now)


def test_notes_and_important_dates(fake_db, sales_rep, now) -> None:
    lead = _create(sales_rep, now)

    notes_service.append_note("lead", lead.lead_id, "  Call back Friday ", sales_rep, now=now)
    updated = lead_service.update_important_dates(lead.lead_id, ["2025-02-07"], sales_rep, now=now)

    assert [n.text for n in updated.notes][-2:] == ["Call back Friday", "Updated important dates: 2025-02-07"]
    assert updated.important_dates == ("2025-02-07",)
    with pytest.raises(InvalidInput):
        notes_service.append_note("lead", lead.lead_id, "   ", sales_rep, now=now)
    with pytest.raises(InvalidInput):
        notes_service.append_note("invoice", lead.lead_id, "hello", sales_rep, now=now)


def test_list_leads_by_disposition(fake_db, sales_rep, now) -> None:
    lead = _create(sales_rep, now)
    _create(sales_rep, now, email="bob@acme.test")
    lead_service.set_disposition(lead.lead_id, "Not Interested", sales_rep, now=now)

    assert [x.lead_id for x in lead_service.list_leads("Not Interested")] == [lead.lead_id]
    with pytest.raises(InvalidInput):
        lead_service.list_leads("Hot")
