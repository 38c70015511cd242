from typing import Optional
from datetime import datetime
from sqlalchemy.orm import Session
from sqlalchemy import func
from ..models import Item
from ..schemas import Position, SearchResponse
from ..utils.dates import utcnow
from .inventory import InventoryService, to_item_schema
from .logging import LoggingService
from .retrieval import RetrievalService
from .waste import WasteManagementService, classify
import logging

logger = logging.getLogger(__name__)

class SearchService:
    def __init__(self):
        self.logging_service = LoggingService()
        self.inventory_service = InventoryService()
        self.retrieval_service = RetrievalService()
        self.waste_service = WasteManagementService()

    def search_item(
        self,
        db: Session,
        item_id: Optional[str] = None,
        item_name: Optional[str] = None
    ) -> SearchResponse:
        """Find an item by exact id or by name substring and plan how to get it out."""
        item = None
        if item_id:
            item = db.query(Item).filter(Item.id == str(item_id)).first()
        elif item_name:
            item = db.query(Item).filter(
                func.lower(Item.name).contains(item_name.lower(), autoescape=True)
            ).order_by(Item.priority.desc(), Item.id).first()

        total_items = db.query(func.count(Item.id)).scalar() or 0
        active_items = db.query(func.count(Item.id)).filter(Item.is_waste == False).scalar() or 0

        if not item:
            logger.info(f"No item matches itemId={item_id!r} itemName={item_name!r}")
            return SearchResponse(
                success=True,
                found=False,
                total_items=total_items,
                active_items=active_items
            )

        retrieval_steps = []
        if item.container_id:
            snapshot = self.inventory_service.container_snapshot(db, item.container_id)
            retrieval_steps = self.retrieval_service.plan_retrieval(item.id, snapshot).steps

        return SearchResponse(
            success=True,
            found=True,
            item=to_item_schema(item),
            retrieval_steps=retrieval_steps,
            total_items=total_items,
            active_items=active_items
        )

    def log_retrieval(
        self,
        db: Session,
        item_id: str,
        user_id: str,
        timestamp: Optional[datetime] = None
    ) -> bool:
        """Record one use of an item and mark it as waste if that used it up."""
        timestamp = timestamp or utcnow()
        item = db.query(Item).filter(Item.id == str(item_id)).first()
        if not item:
            return False

        details = {"timestamp": timestamp.isoformat()}
        if item.usage_limit is not None and item.uses_left is not None:
            old_uses = item.uses_left
            item.uses_left = max(0, old_uses - 1)
            details.update({"oldUsesRemaining": old_uses, "newUsesRemaining": item.uses_left})

        self.logging_service.add_log(
            db=db,
            user_id=user_id,
            action_type="retrieval",
            item_id=item.id,
            details=details,
            timestamp=timestamp,
            container_id=item.container_id
        )

        reason = classify(to_item_schema(item), timestamp)
        if reason:
            self.waste_service.mark_waste(db, item, reason, user_id, {"timestamp": timestamp.isoformat()})

        db.commit()
        return True

    def update_item_location(
        self,
        db: Session,
        item_id: str,
        user_id: str,
        container_id: str,
        position: Position,
        timestamp: Optional[datetime] = None
    ) -> bool:
        timestamp = timestamp or utcnow()
        item = self.inventory_service.get_item(db, item_id)
        old_container = item.container_id
        old_position = item.position

        self.inventory_service.move_item(db, item_id, container_id, position)

        self.logging_service.add_log(
            db=db,
            user_id=user_id,
            action_type="placement",
            item_id=item_id,
            details={
                "timestamp": timestamp.isoformat(),
                "oldContainer": old_container,
                "newContainer": container_id,
                "oldPosition": old_position,
                "newPosition": position.to_json()
            },
            timestamp=timestamp,
            container_id=container_id
        )

        db.commit()
        return True
