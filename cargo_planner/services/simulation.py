from datetime import timedelta
from sqlalchemy.orm import Session
from ..models import Item
from ..schemas import SimulationRequest, SimulationResponse, WasteReason
from ..utils.dates import as_utc, utcnow
from ..utils.error_handling import InventoryError
from .logging import LoggingService
from .waste import WasteManagementService

class SimulationService:
    def __init__(self):
        self.logging_service = LoggingService()
        self.waste_service = WasteManagementService()

    def simulate_time(
        self,
        db: Session,
        request: SimulationRequest,
        user_id: str = "simulation"
    ) -> SimulationResponse:
        current_date = utcnow()

        if request.num_of_days:
            target_date = current_date + timedelta(days=request.num_of_days)
            num_of_days = request.num_of_days
        elif request.to_timestamp:
            target_date = as_utc(request.to_timestamp)
            num_of_days = max(0, (target_date - current_date).days)
        else:
            raise InventoryError("Either numOfDays or toTimestamp must be provided")

        changes = {
            "itemsUsed": [],
            "itemsExpired": [],
            "itemsDepletedToday": []
        }

        for usage in request.items_to_be_used_per_day:
            item = db.query(Item).filter(Item.id == usage.item_id).first()
            if not item or item.is_waste:
                continue

            total_uses = usage.uses_per_day * num_of_days
            if item.usage_limit is not None and item.uses_left is not None:
                old_uses = item.uses_left
                item.uses_left = max(0, old_uses - total_uses)
                uses_consumed = old_uses - item.uses_left
            else:
                uses_consumed = total_uses

            changes["itemsUsed"].append({
                "itemId": item.id,
                "name": item.name,
                "usesUsed": uses_consumed,
                "remainingUses": item.uses_left
            })
            self.logging_service.add_log(
                db=db,
                user_id=user_id,
                action_type="retrieval",
                item_id=item.id,
                details={
                    "simulated": True,
                    "simulatedDate": target_date.isoformat(),
                    "usesConsumed": uses_consumed,
                    "newUsesRemaining": item.uses_left
                },
                container_id=item.container_id
            )

        db.flush()

        # Expiry wins over exhaustion when both happen in the simulated span
        for item in self.waste_service.classify_stored_items(db, target_date, user_id):
            if item.waste_reason == WasteReason.EXPIRED.value:
                changes["itemsExpired"].append({
                    "itemId": item.id,
                    "name": item.name,
                    "expiryDate": as_utc(item.expiry_date).isoformat()
                })
            else:
                changes["itemsDepletedToday"].append({
                    "itemId": item.id,
                    "name": item.name
                })

        db.commit()

        return SimulationResponse(
            success=True,
            new_date=target_date,
            changes=changes
        )
