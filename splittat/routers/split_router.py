"""
Split router.

Create, inspect, replace and delete splits and view per-user totals.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status

from ..dependencies import get_current_user, get_split_service
from ..domain.entities import ItemInstruction, ShareInstruction
from ..models import User
from ..schemas import (
    SplitRequest,
    SplitResponse,
    SplitSummaryResponse,
    UserShareResponse,
)
from ..services.split_service import SplitService

router = APIRouter(tags=["splits"])


def _instructions(request: SplitRequest) -> Optional[List[ItemInstruction]]:
    if request.items is None:
        return None
    return [
        ItemInstruction(
            item_id=item.item_id,
            shares=[
                ShareInstruction(
                    user_id=share.user_id,
                    percentage=share.percentage,
                    amount=share.amount,
                )
                for share in item.shares
            ],
        )
        for item in request.items
    ]


@router.post(
    "/receipts/{receipt_id}/splits",
    response_model=SplitResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Split a receipt",
)
def create_split(
    receipt_id: str,
    request: SplitRequest,
    current_user: User = Depends(get_current_user),
    split_service: SplitService = Depends(get_split_service),
):
    """
    Split a Ready receipt.

    Equal splits only need participants (or a group); the other strategies
    take per-item shares.
    """
    split = split_service.create(
        current_user,
        receipt_id,
        request.split_type,
        group_id=request.group_id,
        participants=request.participants,
        items=_instructions(request),
    )
    return SplitResponse.from_split(split)


@router.get(
    "/receipts/{receipt_id}/splits",
    response_model=List[SplitResponse],
    summary="List splits of a receipt",
)
def list_splits(
    receipt_id: str,
    current_user: User = Depends(get_current_user),
    split_service: SplitService = Depends(get_split_service),
):
    return [
        SplitResponse.from_split(split)
        for split in split_service.list_for_receipt(current_user, receipt_id)
    ]


@router.get("/splits/{split_id}", response_model=SplitResponse, summary="Get split")
def get_split(
    split_id: str,
    current_user: User = Depends(get_current_user),
    split_service: SplitService = Depends(get_split_service),
):
    return SplitResponse.from_split(split_service.get(current_user, split_id))


@router.put("/splits/{split_id}", response_model=SplitResponse, summary="Replace split")
def replace_split(
    split_id: str,
    request: SplitRequest,
    current_user: User = Depends(get_current_user),
    split_service: SplitService = Depends(get_split_service),
):
    """Re-run the allocation of a split with new instructions."""
    split = split_service.replace(
        current_user,
        split_id,
        request.split_type,
        group_id=request.group_id,
        participants=request.participants,
        items=_instructions(request),
    )
    return SplitResponse.from_split(split)


@router.delete(
    "/splits/{split_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete split",
)
def delete_split(
    split_id: str,
    current_user: User = Depends(get_current_user),
    split_service: SplitService = Depends(get_split_service),
):
    split_service.delete(current_user, split_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/splits/{split_id}/summary",
    response_model=SplitSummaryResponse,
    summary="Per-user totals",
)
def split_summary(
    split_id: str,
    current_user: User = Depends(get_current_user),
    split_service: SplitService = Depends(get_split_service),
):
    """
    What every participant owes, tax and tip included.

    ``balanced`` is false when the stored assignments no longer add up to
    the receipt items. ``difference`` is ``grandTotal - receiptTotal``; it is
    zero except for Custom splits, whose amounts may be a cent off per item.
    """
    summary = split_service.summary(current_user, split_id)
    users = []
    for total in summary.totals:
        user = summary.users.get(total.user_id)
        users.append(
            UserShareResponse(
                user_id=total.user_id,
                email=getattr(user, "email", None),
                first_name=getattr(user, "first_name", None),
                last_name=getattr(user, "last_name", None),
                items_subtotal=total.items_subtotal,
                tax=total.tax,
                tip=total.tip,
                total=total.total,
            )
        )
    return SplitSummaryResponse(
        split_id=summary.split.id,
        receipt_id=summary.receipt.id,
        split_type=summary.split.split_type,
        receipt_total=summary.receipt.total,
        grand_total=summary.grand_total,
        difference=summary.difference,
        balanced=summary.balanced,
        users=users,
    )
