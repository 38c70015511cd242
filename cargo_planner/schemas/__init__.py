from enum import Enum
from typing import List, Dict, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, model_validator

AXES = ("width", "depth", "height")

class CamelModel(BaseModel):
    # Wire format is camelCase, attributes stay snake_case
    model_config = ConfigDict(populate_by_name=True)

class WasteReason(str, Enum):
    EXPIRED = "Expired"
    OUT_OF_USES = "Out of Uses"
    DAMAGED = "Damaged"

class Coordinates(CamelModel):
    width: float = Field(ge=0)
    depth: float = Field(ge=0)
    height: float = Field(ge=0)

    def as_tuple(self) -> tuple:
        return (self.width, self.depth, self.height)

class Position(CamelModel):
    start_coordinates: Coordinates = Field(alias="startCoordinates")
    end_coordinates: Coordinates = Field(alias="endCoordinates")

    @model_validator(mode="after")
    def _check_extent(self):
        for axis in AXES:
            if getattr(self.end_coordinates, axis) < getattr(self.start_coordinates, axis):
                raise ValueError(f"endCoordinates.{axis} must be >= startCoordinates.{axis}")
        return self

    @classmethod
    def from_origin(cls, start: tuple, dims: tuple) -> "Position":
        return cls(
            start_coordinates=Coordinates(width=start[0], depth=start[1], height=start[2]),
            end_coordinates=Coordinates(
                width=start[0] + dims[0],
                depth=start[1] + dims[1],
                height=start[2] + dims[2]
            )
        )

    def to_json(self) -> Dict:
        """Shape stored in the ``items.position`` JSON column."""
        return self.model_dump(by_alias=True)

class Item(CamelModel):
    item_id: str = Field(alias="itemId", min_length=1)
    name: str = Field(min_length=1)
    width: float = Field(gt=0)
    depth: float = Field(gt=0)
    height: float = Field(gt=0)
    mass: float = Field(0.0, ge=0)
    priority: int = Field(ge=0, le=100)
    expiry_date: Optional[datetime] = Field(None, alias="expiryDate")
    usage_limit: Optional[int] = Field(None, alias="usageLimit", ge=0)
    uses_left: Optional[int] = Field(None, alias="usesLeft", ge=0)
    preferred_zone: str = Field(alias="preferredZone", min_length=1)
    container_id: Optional[str] = Field(None, alias="containerId")
    position: Optional[Position] = None
    is_waste: bool = Field(False, alias="isWaste")
    waste_reason: Optional[WasteReason] = Field(None, alias="wasteReason")

    @model_validator(mode="after")
    def _check_uses(self):
        if self.uses_left is None:
            self.uses_left = self.usage_limit
        elif self.usage_limit is not None and self.uses_left > self.usage_limit:
            raise ValueError("usesLeft cannot exceed usageLimit")
        return self

    @property
    def dims(self) -> tuple:
        return (self.width, self.depth, self.height)

class Container(CamelModel):
    container_id: str = Field(alias="containerId", min_length=1)
    zone: str = Field(min_length=1)
    width: float = Field(gt=0)
    depth: float = Field(gt=0)
    height: float = Field(gt=0)
    max_weight: float = Field(alias="maxWeight", ge=0)
    current_weight: float = Field(0.0, alias="currentWeight", ge=0)
    item_count: int = Field(0, alias="itemCount", ge=0)
    utilization: float = Field(0.0, ge=0, le=100)

    @property
    def dims(self) -> tuple:
        return (self.width, self.depth, self.height)

class ItemUpdate(CamelModel):
    """Partial item update; only the fields sent are applied."""
    name: Optional[str] = Field(None, min_length=1)
    width: Optional[float] = Field(None, gt=0)
    depth: Optional[float] = Field(None, gt=0)
    height: Optional[float] = Field(None, gt=0)
    mass: Optional[float] = Field(None, ge=0)
    priority: Optional[int] = Field(None, ge=0, le=100)
    expiry_date: Optional[datetime] = Field(None, alias="expiryDate")
    usage_limit: Optional[int] = Field(None, alias="usageLimit", ge=0)
    uses_left: Optional[int] = Field(None, alias="usesLeft", ge=0)
    preferred_zone: Optional[str] = Field(None, alias="preferredZone", min_length=1)
    container_id: Optional[str] = Field(None, alias="containerId")
    position: Optional[Position] = None
    is_waste: Optional[bool] = Field(None, alias="isWaste")
    waste_reason: Optional[WasteReason] = Field(None, alias="wasteReason")

class ContainerUpdate(CamelModel):
    zone: Optional[str] = Field(None, min_length=1)
    width: Optional[float] = Field(None, gt=0)
    depth: Optional[float] = Field(None, gt=0)
    height: Optional[float] = Field(None, gt=0)
    max_weight: Optional[float] = Field(None, alias="maxWeight", ge=0)

class PlacementStep(CamelModel):
    step: int
    action: str
    item_id: str = Field(alias="itemId")
    from_container: Optional[str] = Field(None, alias="fromContainer")
    from_position: Optional[Position] = Field(None, alias="fromPosition")
    to_container: str = Field(alias="toContainer")
    to_position: Position = Field(alias="toPosition")

class PlacementRequest(CamelModel):
    items: List[Item]
    containers: List[Container]

class ItemPlacement(CamelModel):
    item_id: str = Field(alias="itemId")
    container_id: str = Field(alias="containerId")
    position: Position

class PlacementPlan(CamelModel):
    placements: List[ItemPlacement] = Field(default_factory=list)
    rearrangements: List[PlacementStep] = Field(default_factory=list)
    unplaced_items: List[str] = Field(default_factory=list, alias="unplacedItems")
    # Input containers with aggregates as they stand after the plan
    containers: List[Container] = Field(default_factory=list)

class PlacementResponse(CamelModel):
    success: bool
    placements: List[ItemPlacement]
    rearrangements: List[PlacementStep]
    unplaced_items: List[str] = Field(default_factory=list, alias="unplacedItems")
    space_utilization: Dict[str, float] = Field(default_factory=dict, alias="spaceUtilization")

class RetrievalStep(CamelModel):
    step: int
    action: str
    item_id: str = Field(alias="itemId")
    item_name: str = Field(alias="itemName")

class ContainerSnapshot(CamelModel):
    container: Container
    items: List[Item] = Field(default_factory=list)

class RetrievalPlan(CamelModel):
    found: bool
    item: Optional[Item] = None
    steps: List[RetrievalStep] = Field(default_factory=list)

class RetrievalPlanRequest(CamelModel):
    item_id: str = Field(alias="itemId")
    container_snapshot: ContainerSnapshot = Field(alias="containerSnapshot")

class RetrievalResponse(CamelModel):
    success: bool
    found: bool
    item: Optional[Item] = None
    retrieval_steps: Optional[List[RetrievalStep]] = Field(None, alias="retrievalSteps")

class SearchResponse(CamelModel):
    success: bool
    found: bool
    item: Optional[Item] = None
    retrieval_steps: List[RetrievalStep] = Field(default_factory=list, alias="retrievalSteps")
    total_items: int = Field(alias="totalItems")
    active_items: int = Field(alias="activeItems")

class RetrievalRequest(CamelModel):
    item_id: str = Field(alias="itemId")
    user_id: str = Field(alias="userId")
    timestamp: Optional[datetime] = None

class PlaceItemRequest(CamelModel):
    item_id: str = Field(alias="itemId")
    user_id: str = Field(alias="userId")
    timestamp: Optional[datetime] = None
    container_id: str = Field(alias="containerId")
    position: Position

class WasteItem(CamelModel):
    item_id: str = Field(alias="itemId")
    name: str
    reason: WasteReason
    container_id: Optional[str] = Field(None, alias="containerId")
    position: Optional[Position] = None

class WasteResponse(CamelModel):
    success: bool
    waste_items: List[WasteItem] = Field(alias="wasteItems")
    expired_count: int = Field(0, alias="expiredCount")
    out_of_uses_count: int = Field(0, alias="outOfUsesCount")
    total_count: int = Field(0, alias="totalCount")

class ItemUsage(CamelModel):
    item_id: str = Field(alias="itemId", min_length=1)
    uses_per_day: int = Field(1, alias="usesPerDay", ge=1)

class SimulationRequest(CamelModel):
    num_of_days: Optional[int] = Field(None, alias="numOfDays", ge=1)
    to_timestamp: Optional[datetime] = Field(None, alias="toTimestamp")
    items_to_be_used_per_day: List[ItemUsage] = Field(default_factory=list, alias="itemsToBeUsedPerDay")

class SimulationResponse(CamelModel):
    success: bool
    new_date: datetime = Field(alias="newDate")
    changes: Dict[str, List[Dict]]

class LogEntry(CamelModel):
    timestamp: datetime
    user_id: str = Field(alias="userId")
    action_type: str = Field(alias="actionType")
    item_id: str = Field(alias="itemId")
    container_id: Optional[str] = Field(None, alias="containerId")
    details: Dict

class Pagination(CamelModel):
    total: int
    page: int
    limit: int
    pages: int

class LogResponse(CamelModel):
    logs: List[LogEntry]
    pagination: Pagination
