"""
Base broadcast controller shared by all forwarding strategies.

A BroadcastMatrix is one node's view of the mesh (its own point and its
connected points). Calling ``do_broadcast`` on it creates a broadcast of the
matrix's strategy class. Every broadcast tracks two point sets:

- resolved: points known to hold the message already
- rejected: points whose delivery failed and must be retried

Strategies implement ``pull_next``; the stepping harness pulls one point at
a time and reports the outcome through ``resolve_point``/``reject_point``.
"""

from typing import Any, FrozenSet, Iterator, Optional, Set, Tuple, Type

from .constants import MAX_BROADCAST_PASSES
from .data_types import PointId
from .geometry import Point


class BroadcastNotConvergedError(Exception):
    """Raised when a broadcast keeps retrying past its pass bound"""
    pass


class BaseMatrixBroadcast:
    """
    Per-node broadcast bookkeeping.

    Subclasses build their forwarding order in ``__init__`` and produce it
    lazily from ``pull_next``.
    """

    def __init__(
        self,
        matrix: 'BroadcastMatrix',
        end_point: Point,
        data: Any,
        max_passes: int = MAX_BROADCAST_PASSES
    ):
        """
        Args:
            matrix: Owning node view (current point + connected points)
            end_point: Broadcast destination
            data: Payload carried by the broadcast
            max_passes: Upper bound on retry passes before giving up
        """
        if max_passes < 1:
            raise ValueError(f"max_passes must be >= 1, got {max_passes}")

        self._matrix = matrix
        self.end_point = end_point
        self.data = data
        self.max_passes = max_passes

        self._resolved_point_ids: Set[PointId] = set()
        self._rejected_point_ids: Set[PointId] = set()

    @property
    def current_point(self) -> Point:
        return self._matrix.current_point

    @property
    def connected_points(self) -> Tuple[Point, ...]:
        return self._matrix.connected_points

    @property
    def rejected_point_ids(self) -> FrozenSet[PointId]:
        """Points queued for retry (read-only snapshot)."""
        return frozenset(self._rejected_point_ids)

    def has_resolved_point(self, point: Point) -> bool:
        return point.point_id in self._resolved_point_ids

    def resolve_point(self, point: Point) -> bool:
        """
        Mark point as holding the message.

        Clears any pending retry for the point.

        Returns:
            True the first time the point is resolved, False afterwards
        """
        point_id = point.point_id
        self._rejected_point_ids.discard(point_id)
        if point_id in self._resolved_point_ids:
            return False
        self._resolved_point_ids.add(point_id)
        return True

    def reject_point(self, point: Point) -> bool:
        """
        Queue point for retry after a failed delivery.

        Returns:
            False if the point is already resolved (nothing to retry)
        """
        if self.has_resolved_point(point):
            return False
        self._rejected_point_ids.add(point.point_id)
        return True

    def pull_next(self) -> Optional[Point]:
        """Return the next point to forward to, or None when exhausted."""
        raise NotImplementedError

    def get_next_point(self) -> Optional[Point]:
        return self.pull_next()

    def __iter__(self) -> Iterator[Point]:
        return self

    def __next__(self) -> Point:
        point = self.pull_next()
        if point is None:
            raise StopIteration
        return point

    def _not_converged(self, passes: int) -> BroadcastNotConvergedError:
        return BroadcastNotConvergedError(
            f"Broadcast from {self.current_point} to {self.end_point} did not converge: "
            f"{passes} passes, {len(self._rejected_point_ids)} points pending retry"
        )


class BroadcastMatrix:
    """
    One node's view of the mesh.

    Subclasses pick the forwarding strategy through ``broadcast_cls``.
    """

    broadcast_cls: Type[BaseMatrixBroadcast] = BaseMatrixBroadcast

    def __init__(self, current_point: Point, connected_points):
        self.current_point = current_point
        self.connected_points: Tuple[Point, ...] = tuple(connected_points)

    def do_broadcast(self, end_point: Point, data: Any, **options) -> BaseMatrixBroadcast:
        """Start a broadcast of ``data`` toward ``end_point`` from this node."""
        return self.broadcast_cls(self, end_point, data, **options)
