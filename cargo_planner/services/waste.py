from typing import List, Optional
from datetime import datetime
import logging
from sqlalchemy.orm import Session
from ..models import Item as ItemModel
from ..schemas import Item, WasteItem, WasteReason, WasteResponse
from ..utils.dates import as_utc, utcnow
from .inventory import to_item_schema
from .logging import LoggingService

logger = logging.getLogger(__name__)

def classify(item: Item, as_of: datetime) -> Optional[WasteReason]:
    """Waste reason for ``item`` at ``as_of``, or None while it is still usable.

    Expiry is checked before usage exhaustion. An item already marked as
    waste keeps its recorded reason.
    """
    if item.is_waste and item.waste_reason:
        return item.waste_reason
    if item.expiry_date and as_utc(as_of) > as_utc(item.expiry_date):
        return WasteReason.EXPIRED
    if item.usage_limit and item.uses_left is not None and item.uses_left <= 0:
        return WasteReason.OUT_OF_USES
    return None

class WasteManagementService:
    def __init__(self):
        self.logging_service = LoggingService()

    def mark_waste(
        self,
        db: Session,
        item: ItemModel,
        reason: WasteReason,
        user_id: str = "system",
        details: Optional[dict] = None
    ) -> bool:
        """Record ``reason`` on an item that is not waste yet; returns False if it already was."""
        if item.is_waste:
            return False
        item.is_waste = True
        item.waste_reason = reason.value
        self.logging_service.add_log(
            db=db,
            user_id=user_id,
            action_type="disposal",
            item_id=item.id,
            details={"reason": reason.value, "container": item.container_id, **(details or {})},
            container_id=item.container_id
        )
        return True

    def classify_stored_items(
        self,
        db: Session,
        as_of: datetime,
        user_id: str = "system"
    ) -> List[ItemModel]:
        """Run the classifier over every active item and mark the ones that turned to waste."""
        wasted = []
        for item in db.query(ItemModel).filter(ItemModel.is_waste == False).order_by(ItemModel.id).all():
            reason = classify(to_item_schema(item), as_of)
            if reason and self.mark_waste(db, item, reason, user_id, {"identifiedAt": as_utc(as_of).isoformat()}):
                wasted.append(item)
        return wasted

    def identify_waste_items(
        self,
        db: Session,
        as_of: Optional[datetime] = None,
        user_id: str = "system"
    ) -> WasteResponse:
        as_of = as_of or utcnow()
        wasted = self.classify_stored_items(db, as_of, user_id)
        db.commit()

        waste_items = [
            WasteItem(
                item_id=item.id,
                name=item.name,
                reason=WasteReason(item.waste_reason),
                container_id=item.container_id,
                position=item.position
            )
            for item in wasted
        ]
        expired = sum(1 for w in waste_items if w.reason == WasteReason.EXPIRED)
        logger.info(f"Identified {len(waste_items)} waste items ({expired} expired)")
        return WasteResponse(
            success=True,
            waste_items=waste_items,
            expired_count=expired,
            out_of_uses_count=len(waste_items) - expired,
            total_count=len(waste_items)
        )
