"""
Pydantic models for request/response schemas.

All bodies are exchanged in camelCase; snake_case field names are accepted on
input as well. Money and share values are Decimals internally and are
rendered as JSON numbers.
"""

import datetime as dt
from decimal import Decimal
from typing import Annotated, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

from .domain.entities import GroupRole, ProcessingStage, ReceiptStatus, SplitType

Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
Share = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class CamelModel(BaseModel):
    """Base model using camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ==================== REQUEST MODELS ====================


class RegisterRequest(CamelModel):
    """Model for user registration."""

    email: str = Field(..., max_length=255)
    password: str
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)


class LoginRequest(CamelModel):
    """Model for user sign in."""

    email: str
    password: str


class ReceiptItemInput(CamelModel):
    """One line item as entered by the user or the OCR collaborator."""

    name: str = Field(..., min_length=1, max_length=200)
    price: Decimal = Field(..., ge=0, max_digits=18, decimal_places=2)
    quantity: int = Field(default=1, ge=1)


class UpdateItemsRequest(CamelModel):
    """Replacement set of receipt items, optionally with tax and tip."""

    items: List[ReceiptItemInput]
    tax: Optional[Decimal] = Field(default=None, ge=0, max_digits=18, decimal_places=2)
    tip: Optional[Decimal] = Field(default=None, ge=0, max_digits=18, decimal_places=2)
    merchant_name: Optional[str] = Field(default=None, max_length=200)
    date: Optional[dt.date] = None


class ProcessingResultRequest(CamelModel):
    """Stage report sent by the OCR/parsing collaborator."""

    stage: ProcessingStage
    merchant_name: Optional[str] = Field(default=None, max_length=200)
    date: Optional[dt.date] = None
    items: Optional[List[ReceiptItemInput]] = None
    tax: Optional[Decimal] = Field(default=None, ge=0, max_digits=18, decimal_places=2)
    tip: Optional[Decimal] = Field(default=None, ge=0, max_digits=18, decimal_places=2)
    ocr_confidence: Optional[Decimal] = Field(default=None, ge=0, le=1)
    error_message: Optional[str] = Field(default=None, max_length=1000)


class GroupCreate(CamelModel):
    """Model for creating a group."""

    name: str = Field(..., min_length=1, max_length=100)


class MemberAdd(CamelModel):
    """Model for adding a member by email."""

    email: str = Field(..., min_length=1, max_length=255)


class ShareInput(CamelModel):
    """One participant's share of an item."""

    user_id: str
    percentage: Optional[Decimal] = None
    amount: Optional[Decimal] = None


class ItemSplitInput(CamelModel):
    """Requested shares for one receipt item."""

    item_id: str
    shares: List[ShareInput] = Field(default_factory=list)


class SplitRequest(CamelModel):
    """
    Model for creating or replacing a split.

    ``participants`` defaults to the group's members when ``group_id`` is
    given. ``items`` is required for every strategy except Equal.
    """

    split_type: SplitType
    group_id: Optional[str] = None
    participants: Optional[List[str]] = None
    items: Optional[List[ItemSplitInput]] = None


# ==================== RESPONSE MODELS ====================


class UserResponse(CamelModel):
    """Model for user data in responses."""

    id: str
    email: str
    first_name: str
    last_name: str
    created_at: Optional[dt.datetime] = None

    @classmethod
    def from_user(cls, user) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            created_at=user.created_at,
        )


class AuthResponse(CamelModel):
    """Model for authentication response with token and user."""

    token: str
    user: UserResponse
    expires_at: dt.datetime


class ReceiptItemResponse(CamelModel):
    """Model for a receipt line item."""

    id: str
    name: str
    price: Money
    quantity: int
    line_number: int
    subtotal: Money

    @classmethod
    def from_item(cls, item) -> "ReceiptItemResponse":
        return cls(
            id=item.id,
            name=item.name,
            price=item.price,
            quantity=item.quantity,
            line_number=item.line_number,
            subtotal=item.price * item.quantity,
        )


class ReceiptResponse(CamelModel):
    """Full receipt with items and totals."""

    id: str
    user_id: str
    merchant_name: Optional[str] = None
    date: Optional[dt.date] = None
    subtotal: Money
    tax: Optional[Money] = None
    tip: Optional[Money] = None
    total: Money
    image_url: str
    status: ReceiptStatus
    stage: ProcessingStage
    ocr_confidence: Optional[Share] = None
    error_message: Optional[str] = None
    items: List[ReceiptItemResponse] = Field(default_factory=list)
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None

    @classmethod
    def from_receipt(cls, receipt) -> "ReceiptResponse":
        items = [ReceiptItemResponse.from_item(item) for item in receipt.items]
        return cls(
            id=receipt.id,
            user_id=receipt.user_id,
            merchant_name=receipt.merchant_name,
            date=receipt.date,
            subtotal=sum((item.subtotal for item in items), Decimal("0")),
            tax=receipt.tax,
            tip=receipt.tip,
            total=receipt.total,
            image_url=receipt.image_url,
            status=receipt.status,
            stage=receipt.stage,
            ocr_confidence=receipt.ocr_confidence,
            error_message=receipt.error_message,
            items=items,
            created_at=receipt.created_at,
            updated_at=receipt.updated_at,
        )


class ReceiptListItem(CamelModel):
    """Summary view of a receipt for list pages."""

    id: str
    merchant_name: Optional[str] = None
    date: Optional[dt.date] = None
    total: Money
    image_url: str
    status: ReceiptStatus
    stage: ProcessingStage
    created_at: Optional[dt.datetime] = None

    @classmethod
    def from_receipt(cls, receipt) -> "ReceiptListItem":
        return cls(
            id=receipt.id,
            merchant_name=receipt.merchant_name,
            date=receipt.date,
            total=receipt.total,
            image_url=receipt.image_url,
            status=receipt.status,
            stage=receipt.stage,
            created_at=receipt.created_at,
        )


class GroupMemberResponse(CamelModel):
    """Model for one group member."""

    user_id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: GroupRole
    joined_at: Optional[dt.datetime] = None


class GroupResponse(CamelModel):
    """Model for a group with its members."""

    id: str
    name: str
    created_by: str
    created_at: Optional[dt.datetime] = None
    members: List[GroupMemberResponse] = Field(default_factory=list)

    @classmethod
    def from_group(cls, group, users: Dict[str, object]) -> "GroupResponse":
        members = []
        for member in group.members:
            user = users.get(member.user_id)
            members.append(
                GroupMemberResponse(
                    user_id=member.user_id,
                    email=getattr(user, "email", None),
                    first_name=getattr(user, "first_name", None),
                    last_name=getattr(user, "last_name", None),
                    role=member.role,
                    joined_at=member.joined_at,
                )
            )
        return cls(
            id=group.id,
            name=group.name,
            created_by=group.created_by,
            created_at=group.created_at,
            members=members,
        )


class ItemAssignmentResponse(CamelModel):
    """Model for one item share inside a split."""

    id: str
    item_id: str
    user_id: str
    percentage: Share
    amount: Money


class SplitResponse(CamelModel):
    """Model for a split and its assignments."""

    id: str
    receipt_id: str
    group_id: Optional[str] = None
    created_by: str
    split_type: SplitType
    created_at: Optional[dt.datetime] = None
    assignments: List[ItemAssignmentResponse] = Field(default_factory=list)

    @classmethod
    def from_split(cls, split) -> "SplitResponse":
        return cls(
            id=split.id,
            receipt_id=split.receipt_id,
            group_id=split.group_id,
            created_by=split.created_by,
            split_type=split.split_type,
            created_at=split.created_at,
            assignments=[
                ItemAssignmentResponse(
                    id=assignment.id,
                    item_id=assignment.receipt_item_id,
                    user_id=assignment.user_id,
                    percentage=assignment.percentage,
                    amount=assignment.amount,
                )
                for assignment in split.assignments
            ],
        )


class UserShareResponse(CamelModel):
    """What one participant owes under a split."""

    user_id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    items_subtotal: Money
    tax: Money
    tip: Money
    total: Money


class SplitSummaryResponse(CamelModel):
    """Per-user totals of a split."""

    split_id: str
    receipt_id: str
    split_type: SplitType
    receipt_total: Money
    grand_total: Money
    difference: Money
    balanced: bool
    users: List[UserShareResponse] = Field(default_factory=list)


class HealthResponse(CamelModel):
    """Health check response model."""

    status: str
    timestamp: str
    database: str
    service: str = "splittat-api"


class MessageResponse(CamelModel):
    """Generic message response."""

    message: str
    success: bool = True


class ErrorResponse(CamelModel):
    """Error response model."""

    success: bool = False
    error: str
    message: str
    errors: Optional[Dict[str, List[str]]] = None
    request_id: Optional[str] = None
