"""
Sales API Endpoints.

Endpoints for browsing sales and recording contract/payment updates.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import current_actor
from api.models import NoteRequest, SaleListResponse, SaleResponse, SaleUpdateRequest
from domain.identity import Actor
from domain.note import NoteTarget
from services import notes_service, sale_service

router = APIRouter()


def _list_response(sales) -> SaleListResponse:
    return SaleListResponse(items=[SaleResponse.from_domain(s) for s in sales], total_count=len(sales))


@router.get("/sales", response_model=SaleListResponse, summary="List Sales")
def list_sales(
    status: Optional[str] = Query(None, description='Filter by status, e.g. "Part-Payment"'),
    actor: Actor = Depends(current_actor),
):
    return _list_response(sale_service.list_sales(status))


@router.get(
    "/sales/due",
    response_model=SaleListResponse,
    summary="List Due Contracts",
    description="Sales whose current contract ends on or before `before` (default: now).",
)
def list_due_sales(
    before: Optional[str] = Query(None, description="ISO-8601 date or timestamp"),
    actor: Actor = Depends(current_actor),
):
    return _list_response(sale_service.list_due_sales(before))


@router.get("/sales/by-lead/{lead_id}", response_model=SaleResponse, summary="Get Sale For Lead")
def get_sale_for_lead(lead_id: int, actor: Actor = Depends(current_actor)):
    return SaleResponse.from_domain(sale_service.get_sale_for_lead(lead_id))


@router.get("/sales/{sale_id}", response_model=SaleResponse, summary="Get Sale")
def get_sale(sale_id: int, actor: Actor = Depends(current_actor)):
    return SaleResponse.from_domain(sale_service.get_sale(sale_id))


@router.put("/sales/{sale_id}", response_model=SaleResponse, summary="Update Sale")
def update_sale(sale_id: int, request: SaleUpdateRequest, actor: Actor = Depends(current_actor)):
    """
    Record contract and payment details.

    **Rules:**
    - `contract_term` is required on every update
    - Recurring installments must equal total / term, rounded to cents
    - A running One-time contract cannot be changed before its end date
    - A fully paid Recurring contract cannot be changed before its end date
    - Once the end date has passed, the next update archives the contract
      into `previous_contracts` and starts a new period

    **Errors:** 400 invalid input or rejected by a rule, 404 unknown sale,
    409 the sale changed since it was read.
    """
    sale = sale_service.update_sale(sale_id, request.model_dump(exclude_unset=True), actor)
    return SaleResponse.from_domain(sale)


@router.put("/sales/{sale_id}/notes", response_model=SaleResponse, summary="Add Sale Note")
def add_sale_note(sale_id: int, request: NoteRequest, actor: Actor = Depends(current_actor)):
    sale = notes_service.append_note(NoteTarget.SALE, sale_id, request.text, actor)
    return SaleResponse.from_domain(sale)
