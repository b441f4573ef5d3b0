"""
Leads API Endpoints.

Endpoints for creating, browsing and editing leads, and for moving a lead
through the disposition pipeline.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import current_actor
from api.models import (
    DispositionRequest,
    ImportantDatesRequest,
    LeadChangeResponse,
    LeadCreateRequest,
    LeadEditRequest,
    LeadListResponse,
    LeadResponse,
    NoteRequest,
    SaleResponse,
)
from domain.identity import Actor
from domain.note import NoteTarget
from services import lead_service, notes_service
from services.lead_service import DispositionResult

router = APIRouter()


def _change_response(result: DispositionResult) -> LeadChangeResponse:
    return LeadChangeResponse(
        lead=LeadResponse.from_domain(result.lead),
        sale=SaleResponse.from_domain(result.sale) if result.sale else None,
        sale_created=result.sale_created,
    )


@router.post(
    "/leads",
    response_model=LeadChangeResponse,
    status_code=201,
    summary="Create Lead",
)
def create_lead(request: LeadCreateRequest, actor: Actor = Depends(current_actor)):
    """
    Create a lead.

    Lead ids are sequential. Email must be unique across leads (409 otherwise).
    A lead created with disposition "Sale" gets its draft sale immediately.
    """
    result = lead_service.create_lead(request.model_dump(exclude_none=True), actor)
    return _change_response(result)


@router.get("/leads", response_model=LeadListResponse, summary="List Leads")
def list_leads(
    disposition: Optional[str] = Query(None, description='Filter by disposition, e.g. "Follow up"'),
    actor: Actor = Depends(current_actor),
):
    leads = lead_service.list_leads(disposition)
    return LeadListResponse(items=[LeadResponse.from_domain(lead) for lead in leads], total_count=len(leads))


@router.get("/leads/{lead_id}", response_model=LeadResponse, summary="Get Lead")
def get_lead(lead_id: int, actor: Actor = Depends(current_actor)):
    return LeadResponse.from_domain(lead_service.get_lead(lead_id))


@router.put("/leads/{lead_id}", response_model=LeadResponse, summary="Edit Lead")
def edit_lead(lead_id: int, request: LeadEditRequest, actor: Actor = Depends(current_actor)):
    """
    Edit identity fields (name, email, phone_number, business_name, business_address).

    A business address change is copied to the linked sale's billing address.
    """
    lead = lead_service.edit_lead(lead_id, request.model_dump(exclude_unset=True), actor)
    return LeadResponse.from_domain(lead)


@router.put("/leads/{lead_id}/notes", response_model=LeadResponse, summary="Add Lead Note")
def add_lead_note(lead_id: int, request: NoteRequest, actor: Actor = Depends(current_actor)):
    lead = notes_service.append_note(NoteTarget.LEAD, lead_id, request.text, actor)
    return LeadResponse.from_domain(lead)


@router.put("/leads/{lead_id}/dates", response_model=LeadResponse, summary="Set Important Dates")
def update_important_dates(
    lead_id: int,
    request: ImportantDatesRequest,
    actor: Actor = Depends(current_actor),
):
    lead = lead_service.update_important_dates(lead_id, request.important_dates, actor)
    return LeadResponse.from_domain(lead)


@router.put(
    "/leads/{lead_id}/disposition",
    response_model=LeadChangeResponse,
    summary="Change Disposition",
)
def set_disposition(lead_id: int, request: DispositionRequest, actor: Actor = Depends(current_actor)):
    """
    Change a lead's disposition.

    Moving to "Sale" creates the lead's draft sale, or reuses the existing one:
    a lead never has more than one sale. `sale_created` tells which happened.
    """
    result = lead_service.set_disposition(lead_id, request.disposition, actor)
    return _change_response(result)
