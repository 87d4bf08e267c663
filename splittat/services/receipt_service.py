"""
Receipt service.

Handles receipt uploads, listing, manual item editing, deletion and the
stage reports sent by the OCR/parsing collaborator. Every write that changes
items, tax or tip recomputes the receipt total.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional, Sequence

from ..config import settings
from ..domain.allocation import ZERO, to_money
from ..domain.entities import ProcessingStage
from ..domain.exceptions import Conflict, NotFound, ValidationFailed
from ..logging_config import get_logger
from ..metrics import track_receipt_upload, track_stage_transition
from ..models import Receipt, ReceiptItem, User
from ..repositories.interfaces import IReceiptRepository
from ..storage import ImageStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class ItemData:
    """Line item values coming from a request."""

    name: str
    price: Decimal
    quantity: int = 1


class ReceiptService:
    """Receipt CRUD and processing-state handling."""

    def __init__(self, receipts: IReceiptRepository, images: ImageStore):
        self.receipts = receipts
        self.images = images

    def upload(
        self,
        user: User,
        filename: Optional[str],
        content_type: Optional[str],
        data: bytes,
    ) -> Receipt:
        """
        Store an uploaded receipt image and create the receipt.

        Args:
            user: Uploading user
            filename: Original file name
            content_type: MIME type reported by the client
            data: Raw file contents

        Returns:
            New receipt in the Uploaded stage

        Raises:
            ValidationFailed: If the file is empty, too large or not an image
        """
        if not content_type or not content_type.startswith("image/"):
            track_receipt_upload(False)
            raise ValidationFailed(
                "Only image files are allowed", errors={"file": ["Unsupported file type"]}
            )
        if not data:
            track_receipt_upload(False)
            raise ValidationFailed("No file uploaded", errors={"file": ["File is empty"]})
        if len(data) > settings.MAX_UPLOAD_BYTES:
            track_receipt_upload(False)
            limit_mb = settings.MAX_UPLOAD_BYTES // (1024 * 1024)
            raise ValidationFailed(
                f"File size exceeds {limit_mb}MB limit",
                errors={"file": ["File too large"]},
            )

        image_url = self.images.save(data, filename, content_type)

        receipt = Receipt(user_id=user.id, image_url=image_url, total=ZERO)
        receipt.set_stage(ProcessingStage.UPLOADED)
        self.receipts.add(receipt)
        self.receipts.commit()

        logger.info("Receipt uploaded", receipt_id=receipt.id, user_id=user.id, size=len(data))
        track_receipt_upload(True, len(data))
        track_stage_transition(ProcessingStage.UPLOADED.value)
        return receipt

    def list(self, user: User) -> List[Receipt]:
        """List the user's receipts, newest first."""
        return self.receipts.list_for_user(user.id)

    def get(self, user: User, receipt_id: str) -> Receipt:
        """
        Load one of the user's receipts.

        Raises:
            NotFound: If the receipt does not exist or belongs to someone else
        """
        receipt = self.receipts.get_for_user(receipt_id, user.id)
        if receipt is None:
            raise NotFound("Receipt", receipt_id)
        return receipt

    def update_items(
        self,
        user: User,
        receipt_id: str,
        items: Sequence[ItemData],
        tax: Optional[Decimal] = None,
        tip: Optional[Decimal] = None,
        merchant_name: Optional[str] = None,
        receipt_date: Optional[date] = None,
    ) -> Receipt:
        """
        Replace every item of a receipt and mark it Ready.

        Lines are renumbered 1..n in the given order. Tax, tip, merchant and
        date are only changed when given.

        Raises:
            NotFound: If the receipt is not the user's
            Conflict: If splits already reference the current items
            ValidationFailed: If an item has a negative price or a
                quantity below one
        """
        receipt = self.get(user, receipt_id)

        if self.receipts.has_splits(receipt.id):
            raise Conflict("Receipt items cannot be changed while splits exist")

        self._replace_items(receipt, items)
        if tax is not None:
            receipt.tax = to_money(tax)
        if tip is not None:
            receipt.tip = to_money(tip)
        if merchant_name is not None:
            receipt.merchant_name = merchant_name.strip() or None
        if receipt_date is not None:
            receipt.date = receipt_date

        receipt.error_message = None
        self._set_stage(receipt, ProcessingStage.READY)
        receipt.total = compute_total(receipt)
        self.receipts.commit()

        logger.info(
            "Receipt items updated",
            receipt_id=receipt.id,
            item_count=len(items),
            total=str(receipt.total),
        )
        return receipt

    def delete(self, user: User, receipt_id: str) -> None:
        """
        Delete a receipt with its items and splits.

        Raises:
            NotFound: If the receipt is not the user's
        """
        receipt = self.get(user, receipt_id)
        image_url = receipt.image_url
        self.receipts.delete(receipt)
        self.receipts.commit()
        self.images.delete(image_url)
        logger.info("Receipt deleted", receipt_id=receipt_id, user_id=user.id)

    def apply_processing_result(
        self,
        user: User,
        receipt_id: str,
        stage: ProcessingStage,
        merchant_name: Optional[str] = None,
        receipt_date: Optional[date] = None,
        items: Optional[Sequence[ItemData]] = None,
        tax: Optional[Decimal] = None,
        tip: Optional[Decimal] = None,
        ocr_confidence: Optional[Decimal] = None,
        error_message: Optional[str] = None,
    ) -> Receipt:
        """
        Record a stage reported by the OCR/parsing collaborator.

        Only the forward transitions of the processing pipeline are
        accepted. Reaching Ready stores the parsed content and recomputes the
        total; reaching ParseFailed or Failed stores the error message.

        Raises:
            NotFound: If the receipt is not the user's
            Conflict: If the transition is not allowed from the current stage
        """
        receipt = self.get(user, receipt_id)
        current = ProcessingStage(receipt.stage)

        if not current.can_transition_to(stage):
            raise Conflict(
                f"Cannot move receipt from {current.value} to {stage.value}",
                details={"from": current.value, "to": stage.value},
            )

        if stage is ProcessingStage.READY:
            if items is None:
                raise ValidationFailed(
                    "Parsed items are required", errors={"items": ["Field required"]}
                )
            self._replace_items(receipt, items)
            receipt.merchant_name = merchant_name
            receipt.date = receipt_date
            receipt.tax = to_money(tax) if tax is not None else None
            receipt.tip = to_money(tip) if tip is not None else None
            receipt.ocr_confidence = ocr_confidence
            receipt.error_message = None
            receipt.total = compute_total(receipt)
        elif stage in (ProcessingStage.PARSE_FAILED, ProcessingStage.FAILED):
            receipt.error_message = error_message or "Receipt processing failed"
            if ocr_confidence is not None:
                receipt.ocr_confidence = ocr_confidence

        self._set_stage(receipt, stage)
        self.receipts.commit()
        return receipt

    def _replace_items(self, receipt: Receipt, items: Sequence[ItemData]) -> None:
        errors = {}
        for index, item in enumerate(items):
            if item.price < ZERO:
                errors[f"items[{index}].price"] = ["Price cannot be negative"]
            if item.quantity < 1:
                errors[f"items[{index}].quantity"] = ["Quantity must be at least 1"]
        if errors:
            raise ValidationFailed("Validation failed", errors=errors)

        rows = [
            ReceiptItem(
                name=item.name.strip(),
                price=to_money(item.price),
                quantity=item.quantity,
                line_number=line_number,
            )
            for line_number, item in enumerate(items, start=1)
        ]
        self.receipts.replace_items(receipt, rows)

    def _set_stage(self, receipt: Receipt, stage: ProcessingStage) -> None:
        previous = receipt.stage
        receipt.set_stage(stage)
        if previous != stage:
            logger.info(
                "Receipt stage changed",
                receipt_id=receipt.id,
                from_stage=getattr(previous, "value", previous),
                to_stage=stage.value,
            )
            track_stage_transition(stage.value)


def compute_total(receipt: Receipt) -> Decimal:
    """Sum of item subtotals plus tax and tip."""
    subtotal = sum((item.price * item.quantity for item in receipt.items), ZERO)
    return to_money(subtotal + (receipt.tax or ZERO) + (receipt.tip or ZERO))
