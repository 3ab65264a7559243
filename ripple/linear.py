"""
Linear (flood) broadcast strategy.

Baseline for efficiency comparison: forward to every connected point that
is not resolved yet, in connection order, with no spatial ranking and no
pruning. Passes repeat while the retry queue is non-empty.
"""

from typing import Any, Optional

from .broadcast import BaseMatrixBroadcast, BroadcastMatrix
from .constants import MAX_BROADCAST_PASSES
from .geometry import Point


class LinearBroadcast(BaseMatrixBroadcast):

    def __init__(
        self,
        matrix: BroadcastMatrix,
        end_point: Point,
        data: Any,
        max_passes: int = MAX_BROADCAST_PASSES
    ):
        super().__init__(matrix, end_point, data, max_passes=max_passes)
        self._cursor = 0
        self._passes = 1
        self._exhausted = False

    @property
    def passes(self) -> int:
        return self._passes

    def pull_next(self) -> Optional[Point]:
        points = self.connected_points
        while not self._exhausted:
            while self._cursor < len(points):
                point = points[self._cursor]
                self._cursor += 1
                if not self.has_resolved_point(point):
                    return point

            if not self._rejected_point_ids:
                self._exhausted = True
            elif self._passes >= self.max_passes:
                raise self._not_converged(self._passes)
            else:
                self._passes += 1
                self._cursor = 0
        return None


class LinearBroadcastMatrix(BroadcastMatrix):
    broadcast_cls = LinearBroadcast
