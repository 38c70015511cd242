"""Axis-aligned box predicates shared by the placement and retrieval planners.

Dimensions are ``(width, depth, height)`` tuples in centimetres. Depth is the
access axis: a container opens at ``depth == 0``.
"""
from itertools import permutations
from typing import List, Tuple

from ..schemas import AXES, Position

Dims = Tuple[float, float, float]

# Absorbs float drift when anchors are sums of item extents
EPSILON = 1e-9

# Axes that a box must share with another to block it along depth
FACE_AXES = ("width", "height")


def volume(dims: Dims) -> float:
    return dims[0] * dims[1] * dims[2]


def volume_percentage(item_dims: Dims, container_dims: Dims) -> float:
    return volume(item_dims) / volume(container_dims) * 100


def orientations(dims: Dims, allow_rotation: bool = False) -> List[Dims]:
    """Declared orientation first, then the other distinct axis permutations."""
    dims = tuple(dims)
    if not allow_rotation:
        return [dims]
    result = [dims]
    for candidate in permutations(dims):
        if candidate not in result:
            result.append(candidate)
    return result


def fits(item_dims: Dims, space_dims: Dims, allow_rotation: bool = False) -> bool:
    return any(
        all(size <= room for size, room in zip(candidate, space_dims))
        for candidate in orientations(item_dims, allow_rotation)
    )


def position_dims(position: Position) -> Dims:
    start, end = position.start_coordinates, position.end_coordinates
    return tuple(getattr(end, axis) - getattr(start, axis) for axis in AXES)


def _intervals_overlap(pos_a: Position, pos_b: Position, axis: str) -> bool:
    a_start = getattr(pos_a.start_coordinates, axis)
    a_end = getattr(pos_a.end_coordinates, axis)
    b_start = getattr(pos_b.start_coordinates, axis)
    b_end = getattr(pos_b.end_coordinates, axis)
    return a_start < b_end - EPSILON and b_start < a_end - EPSILON


def boxes_overlap(pos_a: Position, pos_b: Position) -> bool:
    """True when the boxes share volume; touching faces do not count."""
    return all(_intervals_overlap(pos_a, pos_b, axis) for axis in AXES)


def projections_overlap(pos_a: Position, pos_b: Position) -> bool:
    """Overlap test on the width/height face, ignoring depth."""
    return all(_intervals_overlap(pos_a, pos_b, axis) for axis in FACE_AXES)


def within_bounds(position: Position, container_dims: Dims) -> bool:
    return all(
        getattr(position.start_coordinates, axis) >= -EPSILON
        and getattr(position.end_coordinates, axis) <= limit + EPSILON
        for axis, limit in zip(AXES, container_dims)
    )
