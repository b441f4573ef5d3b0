"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
Business validation (card formats, installment amounts, ...) happens in the
domain layer; request models only check shapes and types.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from domain.contract import ArchivedContract, Contract, PartialPayment
from domain.identity import Actor
from domain.lead import Lead
from domain.note import Note
from domain.sale import Sale
from domain.user import User


# ============================================================================
# Shared Models
# ============================================================================

class NoteRequest(BaseModel):
    """Request to append a free-text note."""
    text: str = Field(..., description="Note text")

    class Config:
        extra = "forbid"
        json_schema_extra = {"example": {"text": "Called back, asked for a quote by Friday"}}


class NoteResponse(BaseModel):
    text: str
    created_at: datetime
    created_by: Optional[UUID] = None

    @classmethod
    def from_domain(cls, note: Note) -> "NoteResponse":
        return cls(text=note.text, created_at=note.created_at, created_by=note.created_by)


class MessageResponse(BaseModel):
    """Generic success/failure envelope."""
    success: bool
    message: Optional[str] = None


# ============================================================================
# Auth Models
# ============================================================================

class LoginRequest(BaseModel):
    email: str
    password: str

    class Config:
        json_schema_extra = {"example": {"email": "admin@example.com", "password": "change-me-now"}}


class UserCreateRequest(BaseModel):
    """Request to create a user (admin only)."""
    name: str
    email: str
    password: str = Field(..., description="At least 8 characters")
    role: Optional[str] = Field(None, description="admin, sales, customer_relations or procurement")

    class Config:
        extra = "forbid"
        json_schema_extra = {
            "example": {
                "name": "Dana Reyes",
                "email": "dana@example.com",
                "password": "s3cret-pass",
                "role": "sales",
            }
        }


class UserResponse(BaseModel):
    user_id: UUID
    name: str
    email: str
    role: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, user: User) -> "UserResponse":
        return cls(
            user_id=user.user_id,
            name=user.name,
            email=user.email,
            role=user.role.value,
            created_at=user.created_at,
        )

    @classmethod
    def from_actor(cls, actor: Actor) -> "UserResponse":
        return cls(user_id=actor.user_id, name=actor.name, email=actor.email, role=actor.role.value)


class LoginResponse(BaseModel):
    success: bool
    user: UserResponse


class CheckAuthResponse(BaseModel):
    authenticated: bool
    user: UserResponse


class UserListResponse(BaseModel):
    items: List[UserResponse]
    total_count: int


# ============================================================================
# Lead Models
# ============================================================================

class LeadCreateRequest(BaseModel):
    """Request to create a lead."""
    name: str
    email: str
    phone_number: str
    business_name: str
    business_address: str
    disposition: Optional[str] = Field(None, description='"Not Interested", "Follow up" or "Sale"')
    note: Optional[str] = None

    class Config:
        extra = "forbid"
        json_schema_extra = {
            "example": {
                "name": "Jane Doe",
                "email": "jane@acme.test",
                "phone_number": "555-0100",
                "business_name": "Acme Plumbing",
                "business_address": "12 Main St, Springfield",
                "disposition": "Follow up",
            }
        }


class LeadEditRequest(BaseModel):
    """Partial edit of a lead's identity fields. Only sent fields are applied."""
    name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    business_name: Optional[str] = None
    business_address: Optional[str] = None

    class Config:
        extra = "forbid"


class ImportantDatesRequest(BaseModel):
    important_dates: List[str] = Field(..., description="Calendar markers, YYYY-MM-DD")

    class Config:
        extra = "forbid"


class DispositionRequest(BaseModel):
    disposition: str

    class Config:
        extra = "forbid"
        json_schema_extra = {"example": {"disposition": "Sale"}}


class LeadResponse(BaseModel):
    lead_id: int
    name: str
    email: str
    phone_number: str
    business_name: str
    business_address: str
    disposition: str
    notes: List[NoteResponse]
    important_dates: List[str]
    created_at: datetime
    created_by: Optional[UUID] = None
    version: int

    @classmethod
    def from_domain(cls, lead: Lead) -> "LeadResponse":
        return cls(
            lead_id=lead.lead_id,
            name=lead.name,
            email=lead.email,
            phone_number=lead.phone_number,
            business_name=lead.business_name,
            business_address=lead.business_address,
            disposition=lead.disposition.value,
            notes=[NoteResponse.from_domain(n) for n in lead.notes],
            important_dates=list(lead.important_dates),
            created_at=lead.created_at,
            created_by=lead.created_by,
            version=lead.version,
        )


class LeadListResponse(BaseModel):
    items: List[LeadResponse]
    total_count: int


# ============================================================================
# Sale Models
# ============================================================================

class PartialPaymentRequest(BaseModel):
    amount: Decimal
    payment_date: str = Field(..., description="ISO-8601 date or timestamp")

    class Config:
        extra = "forbid"


class SaleUpdateRequest(BaseModel):
    """
    Partial update of a sale's contract and payment details.

    `contract_term` must always be sent. Fields left out are not changed;
    an explicit null clears payment_type / payment_method.
    """
    contract_term: Optional[int] = Field(None, description="Contract term in months")
    total_amount: Optional[Decimal] = None
    payment_type: Optional[str] = Field(None, description='"Recurring" or "One-time"')
    payment_method: Optional[str] = Field(None, description='"Credit Card", "Bank Transfer", "PayPal" or "Other"')
    status: Optional[str] = None
    card: Optional[str] = None
    exp: Optional[str] = None
    cvv: Optional[str] = None
    partial_payments: Optional[List[PartialPaymentRequest]] = None
    payment_date: Optional[str] = None
    billing_address: Optional[str] = None

    class Config:
        extra = "forbid"
        json_schema_extra = {
            "example": {
                "total_amount": 1200,
                "payment_type": "Recurring",
                "contract_term": 12,
                "payment_method": "Credit Card",
                "card": "1234567890123456",
                "exp": "12/27",
                "cvv": "123",
                "partial_payments": [{"amount": 100, "payment_date": "2025-01-15"}],
            }
        }


class PartialPaymentResponse(BaseModel):
    amount: Decimal
    payment_date: datetime
    created_at: datetime
    created_by: Optional[UUID] = None

    @classmethod
    def from_domain(cls, payment: PartialPayment) -> "PartialPaymentResponse":
        return cls(
            amount=payment.amount,
            payment_date=payment.payment_date,
            created_at=payment.created_at,
            created_by=payment.created_by,
        )


class ContractResponse(BaseModel):
    total_amount: Decimal
    payment_type: Optional[str] = None
    contract_term: Optional[int] = None
    payment_method: Optional[str] = None
    card: str
    exp: str
    cvv: str
    payment_date: Optional[datetime] = None
    contract_end_date: Optional[datetime] = None
    partial_payments: List[PartialPaymentResponse]
    paid_amount: Decimal
    remaining_amount: Decimal

    @classmethod
    def from_domain(cls, contract: Contract) -> "ContractResponse":
        return cls(
            total_amount=contract.total_amount,
            payment_type=contract.payment_type.value if contract.payment_type else None,
            contract_term=contract.contract_term,
            payment_method=contract.payment_method.value if contract.payment_method else None,
            card=contract.card,
            exp=contract.exp,
            cvv=contract.cvv,
            payment_date=contract.payment_date,
            contract_end_date=contract.contract_end_date,
            partial_payments=[PartialPaymentResponse.from_domain(p) for p in contract.partial_payments],
            paid_amount=contract.paid_amount,
            remaining_amount=contract.remaining_amount,
        )


class ArchivedContractResponse(ContractResponse):
    archived_at: datetime

    @classmethod
    def from_archive(cls, entry: ArchivedContract) -> "ArchivedContractResponse":
        base = ContractResponse.from_domain(entry.contract)
        return cls(**base.model_dump(), archived_at=entry.archived_at)


class SaleResponse(BaseModel):
    sale_id: int
    lead_id: int
    name: str
    email: str
    phone_number: str
    business_name: str
    business_address: str
    billing_address: str
    status: str
    contract: ContractResponse
    previous_contracts: List[ArchivedContractResponse]
    notes: List[NoteResponse]
    created_at: datetime
    created_by: Optional[UUID] = None
    version: int

    @classmethod
    def from_domain(cls, sale: Sale) -> "SaleResponse":
        return cls(
            sale_id=sale.sale_id,
            lead_id=sale.lead_id,
            name=sale.name,
            email=sale.email,
            phone_number=sale.phone_number,
            business_name=sale.business_name,
            business_address=sale.business_address,
            billing_address=sale.billing_address,
            status=sale.status.value,
            contract=ContractResponse.from_domain(sale.contract),
            previous_contracts=[ArchivedContractResponse.from_archive(e) for e in sale.previous_contracts],
            notes=[NoteResponse.from_domain(n) for n in sale.notes],
            created_at=sale.created_at,
            created_by=sale.created_by,
            version=sale.version,
        )


class SaleListResponse(BaseModel):
    items: List[SaleResponse]
    total_count: int


class LeadChangeResponse(BaseModel):
    """A lead after a create/disposition change, with its sale when it has converted."""
    lead: LeadResponse
    sale: Optional[SaleResponse] = None
    sale_created: bool = False

    class Config:
        json_schema_extra = {
            "example": {
                "lead": {"lead_id": 7, "disposition": "Sale"},
                "sale": {"sale_id": 3, "lead_id": 7, "status": "Pending"},
                "sale_created": True,
            }
        }


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    message: str

    class Config:
        json_schema_extra = {
            "example": {
                "success": False,
                "message": "Installment amount must be 100.00 (total 1200.00 over 12 months), got 150",
            }
        }
