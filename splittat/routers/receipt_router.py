"""
Receipt router.

Upload, list, view, edit and delete receipts, plus the endpoint the OCR
collaborator reports processing stages through.
"""

from typing import List

from fastapi import APIRouter, Depends, File, Response, UploadFile, status

from ..config import settings
from ..dependencies import get_current_user, get_receipt_service
from ..models import User
from ..schemas import (
    ProcessingResultRequest,
    ReceiptListItem,
    ReceiptResponse,
    UpdateItemsRequest,
)
from ..services.receipt_service import ItemData, ReceiptService

router = APIRouter(prefix="/receipts", tags=["receipts"])


def _items(inputs) -> List[ItemData]:
    return [ItemData(name=i.name, price=i.price, quantity=i.quantity) for i in inputs]


@router.post(
    "",
    response_model=ReceiptResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a receipt image",
)
def upload_receipt(
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    receipt_service: ReceiptService = Depends(get_receipt_service),
):
    """
    Upload a receipt photo.

    The receipt starts in the Uploaded stage; its items arrive later from
    the OCR collaborator or from manual editing.
    """
    # One byte over the limit is enough to reject the upload.
    data = file.file.read(settings.MAX_UPLOAD_BYTES + 1)
    receipt = receipt_service.upload(current_user, file.filename, file.content_type, data)
    return ReceiptResponse.from_receipt(receipt)


@router.get("", response_model=List[ReceiptListItem], summary="List receipts")
def list_receipts(
    current_user: User = Depends(get_current_user),
    receipt_service: ReceiptService = Depends(get_receipt_service),
):
    """List the current user's receipts, newest first."""
    return [ReceiptListItem.from_receipt(r) for r in receipt_service.list(current_user)]


@router.get("/{receipt_id}", response_model=ReceiptResponse, summary="Get receipt")
def get_receipt(
    receipt_id: str,
    current_user: User = Depends(get_current_user),
    receipt_service: ReceiptService = Depends(get_receipt_service),
):
    """Get a receipt with its items and totals."""
    return ReceiptResponse.from_receipt(receipt_service.get(current_user, receipt_id))


@router.put("/{receipt_id}/items", response_model=ReceiptResponse, summary="Replace items")
def update_items(
    receipt_id: str,
    request: UpdateItemsRequest,
    current_user: User = Depends(get_current_user),
    receipt_service: ReceiptService = Depends(get_receipt_service),
):
    """
    Replace all items of a receipt.

    Recomputes the total and marks the receipt Ready. Rejected with 409
    while splits exist for the receipt.
    """
    receipt = receipt_service.update_items(
        current_user,
        receipt_id,
        _items(request.items),
        tax=request.tax,
        tip=request.tip,
        merchant_name=request.merchant_name,
        receipt_date=request.date,
    )
    return ReceiptResponse.from_receipt(receipt)


@router.post(
    "/{receipt_id}/processing-result",
    response_model=ReceiptResponse,
    summary="Report processing stage",
)
def report_processing_result(
    receipt_id: str,
    request: ProcessingResultRequest,
    current_user: User = Depends(get_current_user),
    receipt_service: ReceiptService = Depends(get_receipt_service),
):
    """Advance a receipt through the OCR pipeline stages."""
    receipt = receipt_service.apply_processing_result(
        current_user,
        receipt_id,
        request.stage,
        merchant_name=request.merchant_name,
        receipt_date=request.date,
        items=_items(request.items) if request.items is not None else None,
        tax=request.tax,
        tip=request.tip,
        ocr_confidence=request.ocr_confidence,
        error_message=request.error_message,
    )
    return ReceiptResponse.from_receipt(receipt)


@router.delete(
    "/{receipt_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete receipt",
)
def delete_receipt(
    receipt_id: str,
    current_user: User = Depends(get_current_user),
    receipt_service: ReceiptService = Depends(get_receipt_service),
):
    """Delete a receipt together with its items and splits."""
    receipt_service.delete(current_user, receipt_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
