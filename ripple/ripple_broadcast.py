"""
Ripple broadcast strategy.

Forwards a message one hop at a time so it converges on the target with
few redundant transmissions. The neighbor set is indexed once into coarse
grid cells (spatial_index.py); traversal then runs as an explicit,
resumable state machine:

- Level 1: walk cells best-first and forward to each cell's top candidate.
  A cell that is already resolved is skipped and becomes the skip
  reference; later cells that are no farther and no better aligned than
  the reference are skipped too (dominance pruning).
- Level 2: forward to every remaining neighbor not yet resolved.
- Repeat both levels while the retry queue is non-empty, up to max_passes.

Each pull runs until the next forwarding target is found and returns it,
leaving the cursors where they stopped. Resolution state may change
between pulls and is re-read at every decision point.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Set

from .broadcast import BaseMatrixBroadcast, BroadcastMatrix
from .constants import DEFAULT_GRID_SIZE, MAX_BROADCAST_PASSES
from .data_types import BroadcastLevel, CellDetail, CellId, PointId
from .geometry import Point
from .signals import Signal
from .spatial_index import SpatialIndex, build_spatial_index


@dataclass
class TraversalState:
    """Cursor state preserved between pulls"""
    level: BroadcastLevel = BroadcastLevel.LEVEL1
    cell_cursor: int = 0  # Index into sorted_cells
    point_cursor: int = 0  # Index into the current cell's list (level 2 only)
    skip_reference: Optional[CellDetail] = None  # Last resolved cell seen this pass
    consumed: Set[PointId] = field(default_factory=set)  # Yielded this pass
    passes: int = 1
    exhausted: bool = False


def is_dominated(cell: CellDetail, reference: CellDetail) -> bool:
    """True when cell is no farther and no better aligned than reference."""
    return cell.min_distance <= reference.min_distance and cell.min_angle >= reference.min_angle


class RippleBroadcast(BaseMatrixBroadcast):
    """
    Spatial greedy broadcast from one node.

    Usage:
        broadcast = RippleBroadcastMatrix(point, neighbors).do_broadcast(end, data)
        point = broadcast.pull_next()
        ...deliver...
        broadcast.resolve_point(point)
    """

    def __init__(
        self,
        matrix: BroadcastMatrix,
        end_point: Point,
        data: Any,
        max_passes: int = MAX_BROADCAST_PASSES,
        grid_size: int = DEFAULT_GRID_SIZE
    ):
        super().__init__(matrix, end_point, data, max_passes=max_passes)
        self.grid_size = grid_size

        self._index: SpatialIndex = build_spatial_index(
            self.current_point, end_point, self.connected_points, grid_size
        )
        self._resolved_min_point_ids: Set[CellId] = set()
        self._state = TraversalState()

        # Fired with the CellId of every pruned cell
        self.on_skip_min_point_id = Signal()

    @property
    def index(self) -> SpatialIndex:
        return self._index

    @property
    def current_level(self) -> BroadcastLevel:
        return self._state.level

    @property
    def passes(self) -> int:
        return self._state.passes

    def has_resolved_min_point_id(self, min_point_id: CellId) -> bool:
        return min_point_id in self._resolved_min_point_ids

    def resolve_point(self, point: Point) -> bool:
        """
        Mark point (and its cell) as holding the message.

        Points outside this node's neighbor set are ignored.

        Returns:
            False for unknown points, otherwise the base controller's result
        """
        point_detail = self._index.point_details.get(point.point_id)
        if point_detail is None:
            return False
        self._resolved_min_point_ids.add(point_detail.min_point_id)
        return super().resolve_point(point)

    def pull_next(self) -> Optional[Point]:
        state = self._state
        while not state.exhausted:
            if state.level is BroadcastLevel.LEVEL1:
                point = self._scan_level1(state)
                if point is not None:
                    return point
                state.level = BroadcastLevel.LEVEL2
                state.cell_cursor = 0
                state.point_cursor = 0
            else:
                point = self._scan_level2(state)
                if point is not None:
                    return point
                if not self._rejected_point_ids:
                    state.exhausted = True
                else:
                    self._start_next_pass(state)
        return None

    def _scan_level1(self, state: TraversalState) -> Optional[Point]:
        sorted_cells = self._index.sorted_cells
        while state.cell_cursor < len(sorted_cells):
            cell = sorted_cells[state.cell_cursor]
            state.cell_cursor += 1

            if state.skip_reference is not None and is_dominated(cell, state.skip_reference):
                # Pruned by dominance only: the cell itself stays unresolved
                self.on_skip_min_point_id.emit(cell.min_point_id)
                continue

            if self.has_resolved_min_point_id(cell.min_point_id):
                state.skip_reference = cell
                self.on_skip_min_point_id.emit(cell.min_point_id)
                continue

            # Only the top-ranked candidate per cell in level 1
            top = self._index.cell_points[cell.min_point_id][0]
            state.consumed.add(top.point_id)
            return top.point
        return None

    def _scan_level2(self, state: TraversalState) -> Optional[Point]:
        sorted_cells = self._index.sorted_cells
        while state.cell_cursor < len(sorted_cells):
            cell_points = self._index.cell_points[sorted_cells[state.cell_cursor].min_point_id]
            while state.point_cursor < len(cell_points):
                detail = cell_points[state.point_cursor]
                state.point_cursor += 1
                if detail.point_id in state.consumed:
                    continue
                if self.has_resolved_point(detail.point):
                    continue
                state.consumed.add(detail.point_id)
                return detail.point
            state.cell_cursor += 1
            state.point_cursor = 0
        return None

    def _start_next_pass(self, state: TraversalState):
        if state.passes >= self.max_passes:
            raise self._not_converged(state.passes)
        state.passes += 1
        state.level = BroadcastLevel.LEVEL1
        state.cell_cursor = 0
        state.point_cursor = 0
        state.skip_reference = None
        state.consumed = set()


class RippleBroadcastMatrix(BroadcastMatrix):
    broadcast_cls = RippleBroadcast
