from typing import List, Dict, Optional, Iterable
import logging
from ..core.settings import settings
from ..schemas import Item, Container, Position, PlacementStep, ItemPlacement, PlacementPlan
from ..utils.error_handling import PlacementValidationError
from .geometry import (
    EPSILON, Dims, boxes_overlap, fits, orientations, volume_percentage, within_bounds
)

logger = logging.getLogger(__name__)

class ContainerState:
    """Working copy of one container while a plan is being built."""

    def __init__(self, container: Container, occupied: Iterable[Position] = ()):
        self.container = container.model_copy()
        self.positions: List[Position] = list(occupied)

    @property
    def container_id(self) -> str:
        return self.container.container_id

class PlacementService:
    """Priority-first, zone-preferred, first-fit placement planner.

    Every call works on fresh copies of the given containers, so the service
    holds no state between calls and never mutates its inputs.
    """

    def __init__(self, allow_rotation: Optional[bool] = None):
        self.allow_rotation = settings.ALLOW_ROTATION if allow_rotation is None else allow_rotation

    def optimize_placement(
        self,
        items: List[Item],
        containers: List[Container],
        occupied: Optional[Dict[str, List[Position]]] = None
    ) -> PlacementPlan:
        """Assign each item a container and position.

        ``occupied`` maps container ids to boxes already stored there; new
        placements avoid them. Items that fit nowhere are listed in
        ``unplaced_items`` rather than raising.
        """
        occupied = occupied or {}
        logger.info(f"Starting placement optimization for {len(items)} items across {len(containers)} containers")
        self._validate(items, containers, occupied)

        states = self._prepare_containers(containers, occupied)
        zones = self._group_by_zone(states)

        placements: List[ItemPlacement] = []
        rearrangements: List[PlacementStep] = []
        unplaced: List[str] = []

        for item in self._prepare_items(items):
            placement = self._attempt_placement(item, zones.get(item.preferred_zone, []))

            if placement is None:
                fallback = [
                    state
                    for zone, bucket in zones.items() if zone != item.preferred_zone
                    for state in bucket
                ]
                placement = self._attempt_placement(item, fallback)
                if placement is not None:
                    logger.debug(
                        f"Item {item.item_id} placed outside preferred zone {item.preferred_zone!r} "
                        f"in {placement.container_id}"
                    )
                    rearrangements.append(PlacementStep(
                        step=len(rearrangements) + 1,
                        action="place",
                        item_id=item.item_id,
                        from_container="",
                        from_position=None,
                        to_container=placement.container_id,
                        to_position=placement.position
                    ))

            if placement is None:
                logger.info(f"No container can take item {item.item_id}")
                unplaced.append(item.item_id)
            else:
                placements.append(placement)

        logger.info(
            f"Placement finished: {len(placements)} placed, {len(unplaced)} unplaced, "
            f"{len(rearrangements)} rearrangements"
        )
        return PlacementPlan(
            placements=placements,
            rearrangements=rearrangements,
            unplaced_items=unplaced,
            containers=[state.container for state in states]
        )

    def _validate(
        self,
        items: List[Item],
        containers: List[Container],
        occupied: Dict[str, List[Position]]
    ):
        seen_items = set()
        for item in items:
            if item.item_id in seen_items:
                raise PlacementValidationError(f"Duplicate item {item.item_id}", {"itemId": item.item_id})
            seen_items.add(item.item_id)
            if min(item.dims) <= 0:
                raise PlacementValidationError(
                    f"Item {item.item_id} has non-positive dimensions", {"itemId": item.item_id}
                )

        by_id: Dict[str, Container] = {}
        for container in containers:
            if container.container_id in by_id:
                raise PlacementValidationError(
                    f"Duplicate container {container.container_id}",
                    {"containerId": container.container_id}
                )
            if min(container.dims) <= 0:
                raise PlacementValidationError(
                    f"Container {container.container_id} has non-positive dimensions",
                    {"containerId": container.container_id}
                )
            by_id[container.container_id] = container

        for container_id, positions in occupied.items():
            container = by_id.get(container_id)
            if container is None:
                raise PlacementValidationError(
                    f"Occupied space given for unknown container {container_id}",
                    {"containerId": container_id}
                )
            for position in positions:
                if not within_bounds(position, container.dims):
                    raise PlacementValidationError(
                        f"Stored position lies outside container {container_id}",
                        {"containerId": container_id, "position": position.to_json()}
                    )

    def _prepare_items(self, items: List[Item]) -> List[Item]:
        """Highest priority first; sorted() keeps input order on ties."""
        return sorted(items, key=lambda x: -x.priority)

    def _prepare_containers(
        self,
        containers: List[Container],
        occupied: Dict[str, List[Position]]
    ) -> List[ContainerState]:
        return [
            ContainerState(container, occupied.get(container.container_id, ()))
            for container in containers
        ]

    def _group_by_zone(self, states: List[ContainerState]) -> Dict[str, List[ContainerState]]:
        """Zone buckets in order of first appearance, containers in input order."""
        zones: Dict[str, List[ContainerState]] = {}
        for state in states:
            zones.setdefault(state.container.zone, []).append(state)
        return zones

    def _attempt_placement(
        self,
        item: Item,
        candidates: List[ContainerState]
    ) -> Optional[ItemPlacement]:
        for state in candidates:
            if not self._has_capacity(item, state.container):
                continue
            position = self._find_position_in_container(item, state)
            if position:
                self._update_container_state(state, item, position)
                return ItemPlacement(
                    item_id=item.item_id,
                    container_id=state.container_id,
                    position=position
                )
        return None

    def _has_capacity(self, item: Item, container: Container) -> bool:
        if container.current_weight + item.mass > container.max_weight + EPSILON:
            logger.debug(f"Item {item.item_id} would overload container {container.container_id}")
            return False
        added = volume_percentage(item.dims, container.dims)
        if container.utilization + added > 100 + EPSILON:
            logger.debug(f"Item {item.item_id} exceeds remaining volume of container {container.container_id}")
            return False
        return True

    def _find_position_in_container(
        self,
        item: Item,
        state: ContainerState
    ) -> Optional[Position]:
        container = state.container
        if not fits(item.dims, container.dims, self.allow_rotation):
            logger.debug(f"Item {item.item_id} is too large for container {container.container_id}")
            return None

        for anchor in self._candidate_anchors(state.positions):
            for dims in orientations(item.dims, self.allow_rotation):
                position = Position.from_origin(anchor, dims)
                if within_bounds(position, container.dims) and self._is_position_valid(position, state.positions):
                    return position

        logger.debug(f"No free anchor for item {item.item_id} in container {container.container_id}")
        return None

    def _candidate_anchors(self, positions: List[Position]) -> List[Dims]:
        """Extreme points: the origin plus the right, back and top corners of each stored box.

        Ordered front to back, then bottom to top, then left to right, so
        items planned earlier sit nearer the opening.
        """
        anchors = {(0.0, 0.0, 0.0)}
        for position in positions:
            start, end = position.start_coordinates, position.end_coordinates
            anchors.add((end.width, start.depth, start.height))
            anchors.add((start.width, end.depth, start.height))
            anchors.add((start.width, start.depth, end.height))
        return sorted(anchors, key=lambda a: (a[1], a[2], a[0]))

    def _is_position_valid(self, position: Position, positions: List[Position]) -> bool:
        return not any(boxes_overlap(position, existing) for existing in positions)

    def _update_container_state(self, state: ContainerState, item: Item, position: Position):
        container = state.container
        state.positions.append(position)
        container.current_weight += item.mass
        container.item_count += 1
        container.utilization = min(
            100.0, container.utilization + volume_percentage(item.dims, container.dims)
        )
        logger.debug(f"Updated container state for {container.container_id}")
