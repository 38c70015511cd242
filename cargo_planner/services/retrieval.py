from typing import List
import logging
from ..schemas import Item, ContainerSnapshot, RetrievalPlan, RetrievalStep
from ..utils.error_handling import InventoryError
from .geometry import projections_overlap, within_bounds

logger = logging.getLogger(__name__)

class RetrievalService:
    """Plans the moves needed to pull an item out through the container opening.

    The opening is the ``depth == 0`` face. Plans are computed from the given
    snapshot only; applying them is the caller's job.
    """

    def plan_retrieval(self, target_item_id: str, snapshot: ContainerSnapshot) -> RetrievalPlan:
        self._validate(snapshot)

        target = next((item for item in snapshot.items if item.item_id == target_item_id), None)
        if target is None:
            logger.info(f"Item {target_item_id} not in container {snapshot.container.container_id}")
            return RetrievalPlan(found=False)

        blocking_items = self._find_blocking_items(target, snapshot.items)
        return RetrievalPlan(
            found=True,
            item=target,
            steps=self._calculate_retrieval_steps(target, blocking_items)
        )

    def _validate(self, snapshot: ContainerSnapshot):
        container = snapshot.container
        for item in snapshot.items:
            if item.position and not within_bounds(item.position, container.dims):
                raise InventoryError(
                    f"Item {item.item_id} lies outside container {container.container_id}",
                    {"itemId": item.item_id, "containerId": container.container_id}
                )

    def _find_blocking_items(self, target: Item, items: List[Item]) -> List[Item]:
        """Items in front of the target whose face overlaps the target's face.

        Returned nearest the opening first, which is the order they have to
        come out in.
        """
        if not target.position:
            return []

        target_depth = target.position.start_coordinates.depth
        blocking_items = [
            item for item in items
            if item.item_id != target.item_id
            and item.position
            and item.position.start_coordinates.depth < target_depth
            and projections_overlap(item.position, target.position)
        ]
        blocking_items.sort(key=lambda x: (x.position.start_coordinates.depth, x.priority, x.item_id))
        return blocking_items

    def _calculate_retrieval_steps(self, target: Item, blocking_items: List[Item]) -> List[RetrievalStep]:
        steps: List[RetrievalStep] = []

        def add_step(action: str, item: Item):
            steps.append(RetrievalStep(
                step=len(steps) + 1,
                action=action,
                item_id=item.item_id,
                item_name=item.name
            ))

        for blocking_item in blocking_items:
            add_step("remove", blocking_item)
            add_step("setAside", blocking_item)

        add_step("retrieve", target)

        # Restore the deepest obstruction first so the packing order is preserved
        for blocking_item in reversed(blocking_items):
            add_step("placeBack", blocking_item)

        return steps
