from typing import List, Dict, Optional
import logging
import math
from sqlalchemy.orm import Session
from ..core.settings import settings
from ..models import Item as ItemModel, Container as ContainerModel
from ..schemas import Item, ItemUpdate, Container, ContainerUpdate, Position, PlacementPlan, ContainerSnapshot
from ..utils.dates import as_utc
from ..utils.error_handling import InventoryError, NotFoundError, CapacityConflictError
from .geometry import EPSILON, boxes_overlap, position_dims, volume_percentage, within_bounds
from .logging import LoggingService
from .placement import PlacementService

logger = logging.getLogger(__name__)

# Changing any of these re-stows the item
RELOCATING_FIELDS = {"width", "depth", "height", "mass", "container_id", "position"}

def to_item_schema(item: ItemModel) -> Item:
    return Item(
        item_id=item.id,
        name=item.name,
        width=item.width,
        depth=item.depth,
        height=item.height,
        mass=item.mass,
        priority=item.priority,
        expiry_date=as_utc(item.expiry_date) if item.expiry_date else None,
        usage_limit=item.usage_limit,
        uses_left=item.uses_left,
        preferred_zone=item.preferred_zone,
        container_id=item.container_id,
        position=Position.model_validate(item.position) if item.position else None,
        is_waste=bool(item.is_waste),
        waste_reason=item.waste_reason
    )

def to_container_schema(container: ContainerModel) -> Container:
    return Container(
        container_id=container.id,
        zone=container.zone,
        width=container.width,
        depth=container.depth,
        height=container.height,
        max_weight=container.max_weight,
        current_weight=container.current_weight,
        item_count=container.item_count,
        # Stored sums can drift a hair past the bounds
        utilization=min(100.0, max(0.0, container.utilization))
    )

class InventoryService:
    """Persistence for items and containers.

    Keeps container aggregates (weight, count, utilization) in step with item
    moves. Methods stage changes on the session; callers commit.
    """

    def __init__(self):
        self.logging_service = LoggingService()

    def get_item(self, db: Session, item_id: str) -> ItemModel:
        item = db.query(ItemModel).filter(ItemModel.id == str(item_id)).first()
        if not item:
            raise NotFoundError(f"Item {item_id} not found", {"itemId": item_id})
        return item

    def get_container(self, db: Session, container_id: str, for_update: bool = False) -> ContainerModel:
        query = db.query(ContainerModel).filter(ContainerModel.id == container_id)
        if for_update:
            query = query.with_for_update()
        container = query.first()
        if not container:
            raise NotFoundError(f"Container {container_id} not found", {"containerId": container_id})
        return container

    def load_items(
        self,
        db: Session,
        container_id: Optional[str] = None,
        is_waste: Optional[bool] = None,
        placed: Optional[bool] = None
    ) -> List[Item]:
        query = db.query(ItemModel)
        if container_id:
            query = query.filter(ItemModel.container_id == container_id)
        if is_waste is not None:
            query = query.filter(ItemModel.is_waste == is_waste)
        if placed is True:
            query = query.filter(ItemModel.container_id.isnot(None))
        elif placed is False:
            query = query.filter(ItemModel.container_id.is_(None))
        return [to_item_schema(item) for item in query.order_by(ItemModel.priority.desc(), ItemModel.id).all()]

    def load_containers(self, db: Session, zone: Optional[str] = None) -> List[Container]:
        query = db.query(ContainerModel)
        if zone:
            query = query.filter(ContainerModel.zone == zone)
        return [to_container_schema(container) for container in query.order_by(ContainerModel.id).all()]

    def container_snapshot(self, db: Session, container_id: str) -> ContainerSnapshot:
        container = self.get_container(db, container_id)
        return ContainerSnapshot(
            container=to_container_schema(container),
            items=self.load_items(db, container_id=container_id)
        )

    def occupied_positions(self, db: Session) -> Dict[str, List[Position]]:
        occupied: Dict[str, List[Position]] = {}
        stored = db.query(ItemModel).filter(
            ItemModel.container_id.isnot(None),
            ItemModel.position.isnot(None)
        ).all()
        for item in stored:
            occupied.setdefault(item.container_id, []).append(Position.model_validate(item.position))
        return occupied

    def save_container(self, db: Session, container: Container) -> ContainerModel:
        if db.query(ContainerModel).filter(ContainerModel.id == container.container_id).first():
            raise InventoryError(
                f"Container {container.container_id} already exists",
                {"containerId": container.container_id}
            )
        db_container = ContainerModel(
            id=container.container_id,
            zone=container.zone,
            width=container.width,
            depth=container.depth,
            height=container.height,
            max_weight=container.max_weight,
            current_weight=0.0,
            item_count=0,
            utilization=0.0
        )
        db.add(db_container)
        db.flush()
        return db_container

    def save_item(self, db: Session, item: Item, user_id: str = "system") -> ItemModel:
        """Create an item, stowing it straight away when a container is given.

        Without a position the item goes to the container's first free anchor.
        """
        if db.query(ItemModel).filter(ItemModel.id == item.item_id).first():
            raise InventoryError(f"Item {item.item_id} already exists", {"itemId": item.item_id})

        db_item = ItemModel(
            id=item.item_id,
            name=item.name,
            width=item.width,
            depth=item.depth,
            height=item.height,
            mass=item.mass,
            priority=item.priority,
            expiry_date=as_utc(item.expiry_date) if item.expiry_date else None,
            usage_limit=item.usage_limit,
            uses_left=item.uses_left,
            preferred_zone=item.preferred_zone,
            is_waste=item.is_waste,
            waste_reason=item.waste_reason.value if item.waste_reason else None
        )
        db.add(db_item)
        db.flush()

        if item.container_id:
            container = self.get_container(db, item.container_id, for_update=True)
            position = item.position or self._first_free_position(db, item, container)
            self.add_to_container(db, db_item, container, position)
            self.logging_service.add_log(
                db=db,
                user_id=user_id,
                action_type="placement",
                item_id=item.item_id,
                details={"containerId": container.id, "position": position.to_json()},
                container_id=container.id
            )
        return db_item

    def delete_item(self, db: Session, item_id: str):
        item = self.get_item(db, item_id)
        if item.container_id:
            self.remove_from_container(db, item)
        db.delete(item)

    def delete_container(self, db: Session, container_id: str):
        container = self.get_container(db, container_id, for_update=True)
        if container.item_count > 0:
            raise InventoryError(
                "Cannot delete container with items. Move items first.",
                {"containerId": container_id, "itemCount": container.item_count}
            )
        db.delete(container)

    def update_item(self, db: Session, item_id: str, update: ItemUpdate, user_id: str = "system") -> ItemModel:
        """Apply the fields set on ``update`` to a stored item.

        A change of dimensions, mass, container or position takes the item
        out of its container and stows it again, so both containers'
        aggregates follow. Without a new position the item keeps its old
        spot when it still fits there, otherwise it goes to the first free
        anchor.
        """
        item = self.get_item(db, item_id)
        fields = update.model_fields_set

        usage_limit = update.usage_limit if "usage_limit" in fields else item.usage_limit
        uses_left = update.uses_left if "uses_left" in fields else item.uses_left
        if usage_limit is not None and uses_left is not None and uses_left > usage_limit:
            raise InventoryError("usesLeft cannot exceed usageLimit", {"itemId": item.id})
        if update.is_waste and not item.is_waste and update.waste_reason is None:
            raise InventoryError("wasteReason is required when marking an item as waste", {"itemId": item.id})

        old_container_id = item.container_id
        old_position = Position.model_validate(item.position) if item.position else None
        target_id = update.container_id if "container_id" in fields else old_container_id
        if update.position is not None and not target_id:
            raise InventoryError(f"Item {item.id} needs a container to take a position", {"itemId": item.id})

        relocate = bool(fields & RELOCATING_FIELDS)
        if relocate and old_container_id:
            self.remove_from_container(db, item)

        for name in ("name", "width", "depth", "height", "mass", "priority", "preferred_zone"):
            value = getattr(update, name)
            if name in fields and value is not None:
                setattr(item, name, value)
        if "expiry_date" in fields:
            item.expiry_date = as_utc(update.expiry_date) if update.expiry_date else None
        if "usage_limit" in fields:
            item.usage_limit = update.usage_limit
        if "uses_left" in fields or "usage_limit" in fields:
            item.uses_left = uses_left if uses_left is not None else usage_limit

        if relocate and target_id:
            container = self.get_container(db, target_id, for_update=True)
            position = update.position
            keeps_spot = target_id == old_container_id and not fields & {"width", "depth", "height"}
            if position is None and keeps_spot:
                position = old_position
            if position is None:
                position = self._first_free_position(db, to_item_schema(item), container)
            self.add_to_container(db, item, container, position)
            if target_id != old_container_id:
                self.logging_service.add_log(
                    db=db,
                    user_id=user_id,
                    action_type="placement",
                    item_id=item.id,
                    details={
                        "oldContainer": old_container_id,
                        "newContainer": target_id,
                        "newPosition": position.to_json()
                    },
                    container_id=target_id
                )

        if "is_waste" in fields:
            if update.is_waste and not item.is_waste:
                item.is_waste = True
                item.waste_reason = update.waste_reason.value
                self.logging_service.add_log(
                    db=db,
                    user_id=user_id,
                    action_type="disposal",
                    item_id=item.id,
                    details={"reason": item.waste_reason, "container": item.container_id},
                    container_id=item.container_id
                )
            elif update.is_waste is False:
                item.is_waste = False
                item.waste_reason = None

        db.flush()
        return item

    def update_container(self, db: Session, container_id: str, update: ContainerUpdate) -> ContainerModel:
        """Change a container's zone, limits or dimensions.

        New dimensions must still enclose every stored item; utilization is
        recomputed against them. The weight limit cannot drop below the load.
        """
        container = self.get_container(db, container_id, for_update=True)
        fields = update.model_fields_set

        dims = tuple(
            getattr(update, axis) if axis in fields and getattr(update, axis) is not None
            else getattr(container, axis)
            for axis in ("width", "depth", "height")
        )
        stored = db.query(ItemModel).filter(ItemModel.container_id == container.id).all()
        for item in stored:
            if item.position and not within_bounds(Position.model_validate(item.position), dims):
                raise InventoryError(
                    f"Container {container.id} would no longer hold item {item.id}",
                    {"containerId": container.id, "itemId": item.id}
                )

        if update.max_weight is not None and update.max_weight < container.current_weight - EPSILON:
            raise InventoryError(
                f"Container {container.id} already holds {container.current_weight} kg",
                {"containerId": container.id, "currentWeight": container.current_weight}
            )

        if update.zone is not None:
            container.zone = update.zone
        if update.max_weight is not None:
            container.max_weight = update.max_weight
        container.width, container.depth, container.height = dims
        container.utilization = min(100.0, sum(
            volume_percentage((item.width, item.depth, item.height), dims) for item in stored
        ))
        db.flush()
        return container

    def add_to_container(
        self,
        db: Session,
        item: ItemModel,
        container: ContainerModel,
        position: Position
    ):
        """Stow ``item`` at ``position`` and grow the container aggregates.

        Raises ``CapacityConflictError`` when the container would end up over
        its weight limit or past 100% utilization.
        """
        dims = (container.width, container.depth, container.height)
        if not within_bounds(position, dims):
            raise InventoryError(
                f"Position lies outside container {container.id}",
                {"itemId": item.id, "containerId": container.id}
            )
        extent = sorted(position_dims(position))
        if not all(math.isclose(a, b, abs_tol=EPSILON) for a, b in zip(extent, sorted((item.width, item.depth, item.height)))):
            raise InventoryError(
                f"Position does not match the dimensions of item {item.id}",
                {"itemId": item.id}
            )

        neighbours = db.query(ItemModel).filter(
            ItemModel.container_id == container.id,
            ItemModel.id != item.id,
            ItemModel.position.isnot(None)
        ).all()
        for other in neighbours:
            if boxes_overlap(position, Position.model_validate(other.position)):
                raise InventoryError(
                    f"Position collides with item {other.id} in container {container.id}",
                    {"itemId": item.id, "blockingItemId": other.id, "containerId": container.id}
                )

        new_weight = container.current_weight + item.mass
        new_utilization = container.utilization + volume_percentage(
            (item.width, item.depth, item.height), dims
        )
        if new_weight > container.max_weight + EPSILON or new_utilization > 100 + EPSILON:
            raise CapacityConflictError(
                f"Container {container.id} cannot take item {item.id}",
                {
                    "containerId": container.id,
                    "itemId": item.id,
                    "weight": new_weight,
                    "maxWeight": container.max_weight,
                    "utilization": new_utilization
                }
            )

        container.current_weight = new_weight
        container.item_count += 1
        container.utilization = new_utilization
        item.container_id = container.id
        item.position = position.to_json()
        db.flush()

    def remove_from_container(self, db: Session, item: ItemModel) -> Optional[str]:
        """Take ``item`` out of its container, shrinking the aggregates. Returns the old container id."""
        old_container_id = item.container_id
        if not old_container_id:
            return None
        container = self.get_container(db, old_container_id, for_update=True)
        dims = (container.width, container.depth, container.height)
        container.current_weight = max(0.0, container.current_weight - item.mass)
        container.item_count = max(0, container.item_count - 1)
        container.utilization = max(
            0.0, container.utilization - volume_percentage((item.width, item.depth, item.height), dims)
        )
        item.container_id = None
        item.position = None
        db.flush()
        return old_container_id

    def move_item(self, db: Session, item_id: str, container_id: str, position: Position) -> ItemModel:
        item = self.get_item(db, item_id)
        target = self.get_container(db, container_id, for_update=True)
        self.remove_from_container(db, item)
        self.add_to_container(db, item, target, position)
        return item

    def apply_plan(self, db: Session, plan: PlacementPlan, user_id: str = "system"):
        for placement in plan.placements:
            item = self.get_item(db, placement.item_id)
            container = self.get_container(db, placement.container_id, for_update=True)
            self.add_to_container(db, item, container, placement.position)
            self.logging_service.add_log(
                db=db,
                user_id=user_id,
                action_type="placement",
                item_id=placement.item_id,
                details={"containerId": placement.container_id, "position": placement.position.to_json()},
                container_id=placement.container_id
            )
        for step in plan.rearrangements:
            self.logging_service.add_log(
                db=db,
                user_id=user_id,
                action_type="rearrangement",
                item_id=step.item_id,
                details=step.model_dump(mode="json", by_alias=True),
                container_id=step.to_container
            )

    def optimize_stored_items(
        self,
        db: Session,
        user_id: str = "system",
        placement_service: Optional[PlacementService] = None
    ) -> PlacementPlan:
        """Plan every unplaced, non-waste item into the stored containers and persist the result.

        A capacity conflict while applying rolls the transaction back and
        re-plans from a fresh snapshot.
        """
        placement_service = placement_service or PlacementService()
        attempts = max(1, settings.PLACEMENT_MAX_RETRIES)
        for attempt in range(1, attempts + 1):
            items = self.load_items(db, is_waste=False, placed=False)
            containers = self.load_containers(db)
            plan = placement_service.optimize_placement(items, containers, self.occupied_positions(db))
            try:
                self.apply_plan(db, plan, user_id)
                db.commit()
                return plan
            except CapacityConflictError as e:
                db.rollback()
                logger.warning(f"Placement attempt {attempt}/{attempts} conflicted: {e.message}")
                if attempt == attempts:
                    raise

    def _first_free_position(self, db: Session, item: Item, container: ContainerModel) -> Position:
        target = to_container_schema(container)
        occupied = self.occupied_positions(db).get(container.id, [])
        plan = PlacementService().optimize_placement(
            [item.model_copy(update={"preferred_zone": target.zone})],
            [target],
            {container.id: occupied}
        )
        if not plan.placements:
            raise CapacityConflictError(
                f"Container {container.id} has no room for item {item.item_id}",
                {"containerId": container.id, "itemId": item.item_id}
            )
        return plan.placements[0].position
