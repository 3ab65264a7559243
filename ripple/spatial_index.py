"""
Two-level spatial index for ripple broadcast.

Level 2 structure: every neighbor of the broadcasting node, scored by
distance and angle toward the target and grouped into coarse grid cells.
Level 1 structure: the occupied cells themselves, scored the same way on
the coarse board and ranked globally.

Both levels share one comparator:
    (a.angle - b.angle) * 6 + (a.distance - b.distance) * 4
This is a linear blend, not "angle first, distance as tie-break". It is
applied exactly as written (via cmp_to_key) so near-ties resolve the same
way every run; Python's sort is stable, so exact ties keep encounter order.

The index is built once per broadcast and never mutated afterwards.
"""

import math
from dataclasses import dataclass
from functools import cmp_to_key
from typing import Dict, Iterable, List

from .constants import ANGLE_WEIGHT, DISTANCE_WEIGHT
from .data_types import CellDetail, CellId, PointDetail, PointId
from .geometry import Point, angle_between

MAX_ANGLE = math.pi


@dataclass(frozen=True)
class SpatialIndex:
    """
    Built index for one broadcasting node.

    Attributes:
        point_details: Every indexed neighbor keyed by exact point id
        cell_details: Every occupied cell keyed by cell id
        cell_points: Per-cell neighbor lists, best candidate first
        sorted_cells: Occupied cells, best cell first
    """
    point_details: Dict[PointId, PointDetail]
    cell_details: Dict[CellId, CellDetail]
    cell_points: Dict[CellId, List[PointDetail]]
    sorted_cells: List[CellDetail]


def _compare_points(a: PointDetail, b: PointDetail) -> float:
    return (a.angle - b.angle) * ANGLE_WEIGHT + (a.distance - b.distance) * DISTANCE_WEIGHT


def _compare_cells(a: CellDetail, b: CellDetail) -> float:
    return (a.min_angle - b.min_angle) * ANGLE_WEIGHT + (a.min_distance - b.min_distance) * DISTANCE_WEIGHT


def score_point(current: Point, target: Point, point: Point, grid_size: int) -> PointDetail:
    """
    Score one neighbor relative to the current node and the target.

    Args:
        current: Broadcasting node
        target: Broadcast destination
        point: Neighbor to score
        grid_size: Cell edge length used to assign the neighbor's cell

    Returns:
        PointDetail with normalized distance and angle (nominally [0, 1],
        not clamped)
    """
    max_distance = current.edge_size * math.sqrt(2)
    distance = math.sqrt(point.distance_pow2(current) + point.distance_pow2(target))
    angle = angle_between(current.make_vector(point), current.make_vector(target))

    return PointDetail(
        point=point,
        point_id=point.point_id,
        distance=distance / max_distance,
        angle=angle / MAX_ANGLE,
        min_point_id=point.cell_id(grid_size),
    )


def score_cell(start_min_point: Point, end_min_point: Point, min_point: Point) -> CellDetail:
    """
    Score one coarse cell relative to the quantized current and target.

    All three points live on the same coarse board, so the distance is
    normalized by that board's diagonal.
    """
    max_distance = min_point.edge_size * math.sqrt(2)
    distance = math.sqrt(
        min_point.distance_pow2(start_min_point) + min_point.distance_pow2(end_min_point)
    )
    angle = angle_between(
        start_min_point.make_vector(min_point),
        start_min_point.make_vector(end_min_point),
    )

    return CellDetail(
        min_point=min_point,
        min_point_id=CellId(min_point.point_id),
        min_distance=distance / max_distance,
        min_angle=angle / MAX_ANGLE,
    )


def build_spatial_index(
    current: Point,
    target: Point,
    neighbors: Iterable[Point],
    grid_size: int
) -> SpatialIndex:
    """
    Build the two-level ranked index for one broadcasting node.

    Steps:
    1. Score every neighbor and group it into its coarse cell
    2. Sort each cell's neighbors by the 6:4 comparator
    3. Score every occupied cell on the coarse board
    4. Sort cells globally by the same comparator

    Args:
        current: Broadcasting node
        target: Broadcast destination
        neighbors: Directly connected points (iteration order is the tie-break)
        grid_size: Cell edge length in lattice units

    Returns:
        SpatialIndex (immutable by convention; consumers only read it)
    """
    if grid_size < 1:
        raise ValueError(f"grid_size must be >= 1, got {grid_size}")

    point_details: Dict[PointId, PointDetail] = {}
    cell_points: Dict[CellId, List[PointDetail]] = {}
    min_points: Dict[CellId, Point] = {}

    # Level 2: score neighbors and drop them into cells
    for point in neighbors:
        if point.point_id in point_details:
            continue  # Duplicate neighbor, already indexed

        detail = score_point(current, target, point, grid_size)
        point_details[detail.point_id] = detail

        cell_list = cell_points.get(detail.min_point_id)
        if cell_list is None:
            cell_list = []
            cell_points[detail.min_point_id] = cell_list
            min_points[detail.min_point_id] = point.min_point(grid_size)
        cell_list.append(detail)

    compare_points = cmp_to_key(_compare_points)
    for cell_list in cell_points.values():
        cell_list.sort(key=compare_points)

    # Level 1: score cells on the coarse board and rank them
    start_min_point = current.min_point(grid_size)
    end_min_point = target.min_point(grid_size)

    cell_details: Dict[CellId, CellDetail] = {}
    for cell_id, min_point in min_points.items():
        cell_details[cell_id] = score_cell(start_min_point, end_min_point, min_point)

    sorted_cells = sorted(cell_details.values(), key=cmp_to_key(_compare_cells))

    return SpatialIndex(
        point_details=point_details,
        cell_details=cell_details,
        cell_points=cell_points,
        sorted_cells=sorted_cells,
    )
